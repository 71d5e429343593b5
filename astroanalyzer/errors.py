"""Error taxonomy for FITS decoding and image analysis."""

from __future__ import annotations


class FitsError(RuntimeError):
    """Base class for failures while decoding a FITS file."""


class FitsNotFoundError(FitsError, FileNotFoundError):
    """The path does not resolve to a readable file."""


class MalformedHeaderError(FitsError):
    """Header cards ran out before an END card was found."""


class InvalidDimensionsError(FitsError):
    """NAXIS1 or NAXIS2 resolved to a non-positive size."""


class UnsupportedEncodingError(FitsError):
    """BITPIX is not one of the supported storage encodings."""


class TruncatedDataError(FitsError):
    """The data block ended before every declared pixel was read."""


class EmptyImageError(ValueError):
    """Statistics were requested for an image without pixels."""
