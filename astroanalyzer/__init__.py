"""AstroAnalyzer package for FITS decoding, image statistics, and Bayer debayering."""

__all__ = [
    "io",
    "statistics",
    "debayer",
    "preview",
    "pipeline",
    "config",
    "errors",
    "logging_utils",
]
