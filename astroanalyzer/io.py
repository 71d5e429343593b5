"""FITS primary-image reader and header metadata handling."""

from __future__ import annotations

import io as pyio
import logging
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, BinaryIO, Optional

import numpy as np

from astroanalyzer.errors import (
    FitsNotFoundError,
    InvalidDimensionsError,
    MalformedHeaderError,
    TruncatedDataError,
    UnsupportedEncodingError,
)

logger = logging.getLogger(__name__)

CARD_SIZE = 80
BLOCK_SIZE = 2880

BAYER_PATTERNS = ("RGGB", "BGGR", "GRBG", "GBRG")

# BITPIX -> big-endian storage dtype.
BITPIX_DTYPES = {
    8: np.dtype("u1"),
    16: np.dtype(">i2"),
    32: np.dtype(">i4"),
    -32: np.dtype(">f4"),
    -64: np.dtype(">f8"),
}

FITS_EXTENSIONS = (".fits", ".fit", ".fts")

# Integer keywords are signed 32-bit; anything wider reads as 0.
INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1


class FitsHeader(Mapping):
    """Read-only keyword -> value mapping with case-insensitive keywords."""

    def __init__(self, cards: Optional[Mapping[str, Any]] = None) -> None:
        self._cards: dict[str, str] = {}
        for key, value in (cards or {}).items():
            self._cards[_normalize_key(key)] = str(value).strip()

    def __getitem__(self, key: str) -> str:
        return self._cards[_normalize_key(key)]

    def __iter__(self) -> Iterator[str]:
        return iter(self._cards)

    def __len__(self) -> int:
        return len(self._cards)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and _normalize_key(key) in self._cards

    def __repr__(self) -> str:
        return f"FitsHeader({self._cards!r})"


def _normalize_key(key: Any) -> str:
    return str(key).strip().upper()


@dataclass(frozen=True, eq=False)
class Raster:
    """Decoded 2D image: float64 pixels (row-major) plus header metadata."""

    pixels: np.ndarray
    header: FitsHeader
    source_path: str = ""
    bayer_pattern: Optional[str] = None

    def __post_init__(self) -> None:
        arr = self.pixels
        if not (
            isinstance(arr, np.ndarray)
            and arr.dtype == np.float64
            and arr.flags.c_contiguous
            and not arr.flags.writeable
        ):
            arr = np.array(arr, dtype=np.float64, order="C")
            arr.setflags(write=False)
        if arr.ndim != 2:
            raise ValueError(f"Raster pixels must be 2D (height, width), got shape {arr.shape}")
        object.__setattr__(self, "pixels", arr)
        if not isinstance(self.header, FitsHeader):
            object.__setattr__(self, "header", FitsHeader(self.header))

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    @property
    def flat(self) -> np.ndarray:
        """Flat row-major view; sample (x, y) sits at index y * width + x."""
        return self.pixels.reshape(-1)

    @property
    def filename(self) -> str:
        return Path(self.source_path).name

    @property
    def is_cfa(self) -> bool:
        return self.bayer_pattern is not None


def _strip_value(value: Any) -> str:
    return str(value).strip().strip("'").strip()


def _first_header_value(header: Mapping[str, str], keys: list[str]) -> Optional[str]:
    for key in keys:
        if key in header and _strip_value(header[key]) != "":
            return header[key]
    return None


def _parse_int(header: Mapping[str, str], key: str) -> int:
    """Integer keyword value, or 0 when absent, non-integral or outside int32."""
    if key not in header:
        return 0
    token = _strip_value(header[key])
    try:
        value = int(token)
    except ValueError:
        try:
            number = float(token)
        except ValueError:
            return 0
        if not number.is_integer():
            return 0
        value = int(number)
    if not INT32_MIN <= value <= INT32_MAX:
        return 0
    return value


def _parse_float(header: Mapping[str, str], key: str, default: float) -> float:
    if key not in header:
        return default
    try:
        return float(_strip_value(header[key]))
    except ValueError:
        return default


def detect_bayer_pattern(header: Mapping[str, str]) -> Optional[str]:
    """Return normalized Bayer pattern if present."""
    raw = _first_header_value(header, ["BAYERPAT", "BAYERPATTERN", "COLORTYP", "CFA", "CFAPAT"])
    if raw is None:
        return None
    token = _strip_value(raw).upper().replace(" ", "")
    if token.startswith("BAYER_"):
        token = token[len("BAYER_"):]
    if token in BAYER_PATTERNS:
        return token
    return None


def parse_card(card: bytes) -> tuple[str, Optional[str]]:
    """Split one 80-byte card into (keyword, value).

    Value is None for cards without a ``= `` indicator in columns 9-10
    (COMMENT, HISTORY, END, ...). Anything after the first ``/`` is a comment.
    """
    text = card.decode("ascii", errors="replace")
    keyword = text[:8].strip()
    if text[8:10] != "= ":
        return keyword, None
    value = text[10:]
    slash = value.find("/")
    if slash >= 0:
        value = value[:slash]
    return keyword, value.strip()


def read_header(stream: BinaryIO) -> tuple[dict[str, str], int]:
    """Read header cards up to END; return cards and header byte length."""
    cards: dict[str, str] = {}
    consumed = 0
    while True:
        card = stream.read(CARD_SIZE)
        if len(card) < CARD_SIZE:
            raise MalformedHeaderError("Unexpected end of file while reading FITS header.")
        consumed += CARD_SIZE

        keyword, value = parse_card(card)
        if keyword == "END":
            return cards, consumed
        if keyword:
            cards[keyword.upper()] = value if value is not None else ""


def _remaining_bytes(stream: BinaryIO) -> int:
    position = stream.tell()
    end = stream.seek(0, pyio.SEEK_END)
    stream.seek(position)
    return max(end - position, 0)


def _read_pixels(
    stream: BinaryIO,
    dtype: np.dtype,
    width: int,
    height: int,
    bscale: float,
    bzero: float,
) -> np.ndarray:
    count = width * height
    nbytes = count * dtype.itemsize
    available = _remaining_bytes(stream)
    if nbytes > available:
        raise TruncatedDataError(
            f"Unexpected end of file while reading image data: "
            f"expected {nbytes} bytes, got {available}."
        )
    payload = stream.read(nbytes)
    raw = np.frombuffer(payload, dtype=dtype, count=count)
    pixels = bscale * raw.astype(np.float64) + bzero
    pixels = pixels.reshape(height, width)
    pixels.setflags(write=False)
    return pixels


def _read_primary_image(stream: BinaryIO, source: str) -> Raster:
    cards, header_size = read_header(stream)

    padding = (BLOCK_SIZE - header_size % BLOCK_SIZE) % BLOCK_SIZE
    if padding:
        stream.seek(padding, pyio.SEEK_CUR)

    bitpix = _parse_int(cards, "BITPIX")
    naxis = _parse_int(cards, "NAXIS")
    width = _parse_int(cards, "NAXIS1")
    height = _parse_int(cards, "NAXIS2") if naxis >= 2 else 1

    if width <= 0 or height <= 0:
        raise InvalidDimensionsError(f"Invalid FITS dimensions: {width}x{height}")

    bscale = _parse_float(cards, "BSCALE", 1.0)
    bzero = _parse_float(cards, "BZERO", 0.0)

    dtype = BITPIX_DTYPES.get(bitpix)
    if dtype is None:
        raise UnsupportedEncodingError(f"Unsupported BITPIX value: {bitpix}")

    pixels = _read_pixels(stream, dtype, width, height, bscale, bzero)

    cards["NAXIS1"] = str(width)
    cards["NAXIS2"] = str(height)
    cards["BITPIX"] = str(bitpix)

    bayer_pattern = detect_bayer_pattern(cards)
    logger.debug(
        "Decoded %s: %dx%d BITPIX=%d BSCALE=%g BZERO=%g bayer=%s",
        source, width, height, bitpix, bscale, bzero, bayer_pattern,
    )
    return Raster(
        pixels=pixels,
        header=FitsHeader(cards),
        source_path=source,
        bayer_pattern=bayer_pattern,
    )


def decode(path: str | Path) -> Raster:
    """Load the primary image of a FITS file from disk."""
    if path is None or not str(path).strip():
        raise ValueError("File path cannot be empty.")
    path_obj = Path(path)
    if not path_obj.is_file():
        raise FitsNotFoundError(f"FITS file not found: {path_obj}")
    try:
        stream = path_obj.open("rb")
    except OSError as exc:
        raise FitsNotFoundError(f"FITS file is not readable: {path_obj}") from exc
    with stream:
        return _read_primary_image(stream, source=str(path))


load_fits_from_path = decode


def decode_bytes(payload: bytes, source: str = "<bytes>") -> Raster:
    """Decode FITS bytes already held in memory (e.g. an upload)."""
    with pyio.BytesIO(payload) as stream:
        return _read_primary_image(stream, source=source)


def decode_all(paths: Iterable[str | Path]) -> Iterator[Raster]:
    """Lazily decode files one at a time; the first failure ends the sequence."""
    for path in paths:
        yield decode(path)


def scan_folder_for_fits(folder: str | Path) -> list[Path]:
    """Recursively discover FITS files in a folder."""
    root = Path(folder).expanduser()
    if not root.exists() or not root.is_dir():
        raise FileNotFoundError(f"Folder does not exist: {root}")

    files = [
        p for p in root.rglob("*")
        if p.is_file() and p.suffix.lower() in FITS_EXTENSIONS
    ]
    return sorted(f.resolve() for f in files)


def sibling_files(selected: str | Path) -> list[Path]:
    """Return files next to ``selected`` sharing its extension, sorted by name."""
    path = Path(selected)
    if not path.is_file():
        raise FileNotFoundError(f"Selected file does not exist: {path}")
    extension = path.suffix
    if not extension:
        raise ValueError(f"Selected file has no extension: {path}")
    return sorted(p for p in path.parent.glob("*" + extension) if p.is_file())


def report_header_lines(raster: Raster) -> list[str]:
    """Human-readable summary lines for one raster."""
    header = raster.header
    return [
        f"File: {raster.filename}",
        f"  Dimensions: {raster.width}x{raster.height}",
        f"  BITPIX: {header.get('BITPIX')}",
        f"  Bayer: {raster.bayer_pattern}",
        f"  Exposure(s): {_first_header_value(header, ['EXPTIME', 'EXPOSURE'])}",
        f"  Filter: {_first_header_value(header, ['FILTER', 'FILT'])}",
        f"  Date-Obs: {_first_header_value(header, ['DATE-OBS', 'DATEOBS'])}",
        f"  Camera: {_first_header_value(header, ['INSTRUME', 'CAMERA'])}",
        f"  Telescope: {_first_header_value(header, ['TELESCOP', 'TELESCOPE'])}",
    ]
