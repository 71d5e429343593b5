"""Display buffers for decoded rasters (STF window, grayscale and colour previews)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from astroanalyzer import debayer
from astroanalyzer.io import Raster

GRAY8 = "GRAY8"
BGR24 = "BGR24"


@dataclass(frozen=True)
class PreviewImage:
    """8-bit preview buffer ready for a bitmap constructor."""

    data: bytes
    width: int
    height: int
    channels: int
    pixel_format: str
    stf_range: tuple[float, float]

    @property
    def stride(self) -> int:
        return self.width * self.channels


def finite_range(pixels: np.ndarray) -> Optional[tuple[float, float]]:
    """Min/max over finite samples, or None if there is no usable range."""
    arr = np.asarray(pixels, dtype=np.float64)
    valid = arr[np.isfinite(arr)]
    if valid.size == 0:
        return None
    lo = float(np.min(valid))
    hi = float(np.max(valid))
    if hi <= lo:
        return None
    return lo, hi


def resolve_stf_range(
    pixels: np.ndarray,
    stf_min: Optional[float] = None,
    stf_max: Optional[float] = None,
) -> Optional[tuple[float, float]]:
    """Combine user clip limits with the data range.

    Either limit may be left unset to use the data value. An inverted or empty
    window falls back to the full data range.
    """
    data_range = finite_range(pixels)
    if data_range is None:
        return None
    lo = data_range[0] if stf_min is None else float(stf_min)
    hi = data_range[1] if stf_max is None else float(stf_max)
    if lo >= hi:
        return data_range
    return lo, hi


def render_grayscale(pixels: np.ndarray, lo: float, hi: float) -> bytes:
    """Linear STF mapping to 8-bit gray; non-finite samples become 0."""
    arr = np.asarray(pixels, dtype=np.float64)
    span = hi - lo if hi > lo else 1.0
    finite = np.isfinite(arr)
    with np.errstate(invalid="ignore"):
        norm = np.where(finite, (arr - lo) / span, 0.0)
    levels = np.clip(norm * 255.0, 0.0, 255.0).astype(np.uint8)
    return np.ascontiguousarray(levels).tobytes()


def render_preview(
    raster: Raster,
    stf_min: Optional[float] = None,
    stf_max: Optional[float] = None,
    debayer_enabled: bool = False,
    balance: bool = True,
) -> Optional[PreviewImage]:
    """Render a raster for display; colour only for CFA frames with debayering on."""
    if raster.width <= 0 or raster.height <= 0:
        return None
    stf = resolve_stf_range(raster.pixels, stf_min, stf_max)
    if stf is None:
        return None
    lo, hi = stf

    if debayer_enabled and raster.is_cfa:
        data = debayer.debayer_bilinear(raster, raster.bayer_pattern, lo, hi, balance=balance)
        return PreviewImage(
            data=data,
            width=raster.width,
            height=raster.height,
            channels=3,
            pixel_format=BGR24,
            stf_range=stf,
        )

    return PreviewImage(
        data=render_grayscale(raster.pixels, lo, hi),
        width=raster.width,
        height=raster.height,
        channels=1,
        pixel_format=GRAY8,
        stf_range=stf,
    )
