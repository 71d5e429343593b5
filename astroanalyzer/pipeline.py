"""Load -> analyse -> preview for one file or a lazy sequence of files."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from astroanalyzer import io as fits_io
from astroanalyzer import preview
from astroanalyzer import statistics
from astroanalyzer.config import AnalyzerSettings
from astroanalyzer.io import Raster
from astroanalyzer.logging_utils import configure_logging
from astroanalyzer.preview import PreviewImage
from astroanalyzer.statistics import ImageStatistics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnalysisResult:
    """Everything a viewer needs for one file."""

    raster: Raster
    statistics: ImageStatistics
    preview: Optional[PreviewImage]


def analyze_file(path: str | Path, settings: Optional[AnalyzerSettings] = None) -> AnalysisResult:
    settings = settings or AnalyzerSettings()
    raster = fits_io.decode(path)
    stats = statistics.analyze(raster, bins=settings.histogram_bins)
    image = preview.render_preview(
        raster,
        stf_min=settings.stf_min,
        stf_max=settings.stf_max,
        debayer_enabled=settings.debayer_enabled,
        balance=settings.white_balance,
    )
    logger.info(
        "Analyzed %s (%dx%d%s)",
        raster.filename,
        raster.width,
        raster.height,
        f", {raster.bayer_pattern}" if raster.is_cfa else "",
    )
    return AnalysisResult(raster=raster, statistics=stats, preview=image)


def analyze_files(
    paths: Iterable[str | Path],
    settings: Optional[AnalyzerSettings] = None,
) -> Iterator[AnalysisResult]:
    """Analyze files one at a time; errors propagate and end the sequence."""
    for path in paths:
        yield analyze_file(path, settings)


def setup_logging(settings: AnalyzerSettings) -> None:
    """Apply the logging section of the settings."""
    configure_logging(settings.log_level, settings.log_file)
