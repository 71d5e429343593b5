from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

import numpy as np
import pytest

from astroanalyzer.io import BITPIX_DTYPES


def header_card(keyword: str, value: Any = None, comment: str | None = None) -> bytes:
    if value is None:
        text = keyword.ljust(8)
    else:
        if isinstance(value, bool):
            rendered = "T" if value else "F"
        elif isinstance(value, str):
            rendered = f"'{value:<8}'"
        else:
            rendered = str(value)
        text = f"{keyword:<8}= {rendered:>20}"
        if comment:
            text += f" / {comment}"
    return text.ljust(80)[:80].encode("ascii")


def build_fits(
    cards: list[tuple[str, Any]],
    data: bytes = b"",
    end: bool = True,
    pad_data: bool = True,
) -> bytes:
    """Assemble a primary HDU from (keyword, value) pairs and raw data bytes."""
    header = b"".join(header_card(k, v) for k, v in cards)
    if not end:
        return header + data
    header += header_card("END")
    header += b" " * ((2880 - len(header) % 2880) % 2880)
    if pad_data:
        data += b"\0" * ((2880 - len(data) % 2880) % 2880)
    return header + data


def encode_pixels(values: np.ndarray, bitpix: int) -> bytes:
    return np.asarray(values).astype(BITPIX_DTYPES[bitpix]).tobytes()


def image_cards(
    width: int,
    height: int,
    bitpix: int,
    extra: list[tuple[str, Any]] | None = None,
) -> list[tuple[str, Any]]:
    cards: list[tuple[str, Any]] = [
        ("SIMPLE", True),
        ("BITPIX", bitpix),
        ("NAXIS", 2),
        ("NAXIS1", width),
        ("NAXIS2", height),
    ]
    return cards + list(extra or [])


@pytest.fixture
def fits_factory(tmp_path: Path) -> Callable[..., Path]:
    """Write a 2D image to a FITS file under tmp_path and return its path."""

    def _write(
        name: str,
        values: np.ndarray,
        bitpix: int = 16,
        extra: list[tuple[str, Any]] | None = None,
    ) -> Path:
        arr = np.asarray(values)
        height, width = arr.shape
        payload = build_fits(image_cards(width, height, bitpix, extra), encode_pixels(arr, bitpix))
        path = tmp_path / name
        path.write_bytes(payload)
        return path

    return _write
