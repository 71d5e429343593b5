"""Bilinear debayering for single-channel CFA (Bayer) frames."""

from __future__ import annotations

import logging
from typing import Union

import numpy as np
from scipy import ndimage

from astroanalyzer.io import Raster

logger = logging.getLogger(__name__)

RED, GREEN, BLUE = 0, 1, 2

# 2x2 tile, top-left to bottom-right.
CFA_LAYOUTS = {
    "RGGB": ((RED, GREEN), (GREEN, BLUE)),
    "BGGR": ((BLUE, GREEN), (GREEN, RED)),
    "GRBG": ((GREEN, RED), (BLUE, GREEN)),
    "GBRG": ((GREEN, BLUE), (RED, GREEN)),
}

# Unknown patterns are read with a green upper-left cell.
FALLBACK_PATTERN = "GRBG"

_NEIGHBOURS_3X3 = np.array(
    [
        [1.0, 1.0, 1.0],
        [1.0, 0.0, 1.0],
        [1.0, 1.0, 1.0],
    ]
)

_EPS = 1e-6

ImageLike = Union[Raster, np.ndarray]


def normalize_pattern(pattern: str | None) -> str:
    token = str(pattern or "").upper().strip()
    if token not in CFA_LAYOUTS:
        return FALLBACK_PATTERN
    return token


def cfa_channel_map(pattern: str | None, shape: tuple[int, int]) -> np.ndarray:
    """Return the native channel (0=R, 1=G, 2=B) of every pixel."""
    h, w = shape
    tile = np.asarray(CFA_LAYOUTS[normalize_pattern(pattern)], dtype=np.int8)
    return np.tile(tile, ((h + 1) // 2, (w + 1) // 2))[:h, :w]


def _as_pixels(image: ImageLike) -> np.ndarray:
    arr = image.pixels if isinstance(image, Raster) else np.asarray(image, dtype=np.float64)
    if arr.ndim != 2:
        raise ValueError(f"Debayering expects a single-channel 2D mosaic, got shape {arr.shape}")
    return arr.astype(np.float64, copy=False)


def _range_width(range_min: float, range_max: float) -> float:
    return range_max - range_min if range_max > range_min else 1.0


def channel_planes(image: ImageLike, pattern: str | None, range_min: float) -> np.ndarray:
    """Scatter CFA samples into R/G/B planes and fill the gaps.

    Returns a ``(3, height, width)`` float64 array. Native samples are kept
    (non-finite ones replaced by ``range_min``); every other cell is the mean
    of same-channel samples among its 8 neighbours, or 0 if there are none.
    """
    pixels = _as_pixels(image)
    channel_map = cfa_channel_map(pattern, pixels.shape)
    planes = np.zeros((3,) + pixels.shape, dtype=np.float64)
    if pixels.size == 0:
        return planes

    values = np.where(np.isfinite(pixels), pixels, range_min)
    for c in (RED, GREEN, BLUE):
        native = channel_map == c
        planes[c][native] = values[native]

    for c in (RED, GREEN, BLUE):
        plane = planes[c]
        native = channel_map == c
        valid = native & np.isfinite(plane)
        samples = np.where(valid, plane, 0.0)
        sums = ndimage.convolve(samples, _NEIGHBOURS_3X3, mode="constant", cval=0.0)
        counts = ndimage.convolve(valid.astype(np.float64), _NEIGHBOURS_3X3, mode="constant", cval=0.0)
        filled = np.divide(sums, counts, out=np.zeros_like(sums), where=counts > 0.5)
        planes[c] = np.where(native, plane, filled)

    return planes


def normalize_planes(planes: np.ndarray, range_min: float, range_max: float) -> np.ndarray:
    """Map plane values into [0, 1] through the STF window."""
    span = _range_width(range_min, range_max)
    return np.clip((planes - range_min) / span, 0.0, 1.0)


def gray_world_scales(normalized: np.ndarray) -> np.ndarray:
    """Per-channel (R, G, B) gains that equalise the channel means."""
    means = normalized.reshape(3, -1).mean(axis=1) if normalized[0].size else np.zeros(3)
    target = float(np.mean(means))
    scales = np.ones(3, dtype=np.float64)
    for c in (RED, GREEN, BLUE):
        if target > _EPS and means[c] > _EPS:
            scales[c] = target / means[c]
    return scales


def debayer_bilinear_array(
    image: ImageLike,
    pattern: str | None,
    range_min: float,
    range_max: float,
    balance: bool = True,
) -> np.ndarray:
    """Debayer a CFA mosaic to a ``(height, width, 3)`` uint8 array in BGR order."""
    planes = channel_planes(image, pattern, range_min)
    normalized = normalize_planes(planes, range_min, range_max)

    if balance:
        scales = gray_world_scales(normalized)
    else:
        scales = np.ones(3, dtype=np.float64)
    logger.debug(
        "Debayer %s range=[%g, %g] scales R=%.4f G=%.4f B=%.4f",
        normalize_pattern(pattern), range_min, range_max, *scales,
    )

    balanced = np.clip(normalized * scales[:, None, None], 0.0, 1.0)
    levels = np.clip(balanced * 255.0, 0.0, 255.0).astype(np.uint8)
    bgr = np.stack([levels[BLUE], levels[GREEN], levels[RED]], axis=-1)
    return np.ascontiguousarray(bgr)


def debayer_bilinear(
    image: ImageLike,
    pattern: str | None,
    range_min: float,
    range_max: float,
    balance: bool = True,
) -> bytes:
    """Debayer to a BGR24 buffer: 3 bytes per pixel, stride = width * 3."""
    return debayer_bilinear_array(image, pattern, range_min, range_max, balance=balance).tobytes()
