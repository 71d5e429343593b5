"""Descriptive statistics and histograms for decoded rasters."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

import numpy as np
import pandas as pd

from astroanalyzer.errors import EmptyImageError
from astroanalyzer.io import Raster

logger = logging.getLogger(__name__)

DEFAULT_BINS = 256


@dataclass(frozen=True)
class ImageStatistics:
    """Statistical measurements for one raster."""

    minimum: float
    maximum: float
    mean: float
    median: float
    variance: float
    standard_deviation: float
    sum: float
    pixel_count: int
    histogram: dict[float, int] = field(default_factory=dict)
    source_path: str = ""
    bins: int = DEFAULT_BINS


def _median(values: np.ndarray) -> float:
    # np.sort places NaN after every number.
    ordered = np.sort(values)
    mid = ordered.size // 2
    if ordered.size % 2 == 0:
        return float((ordered[mid - 1] + ordered[mid]) / 2.0)
    return float(ordered[mid])


def compute_histogram(values: np.ndarray, bins: int, minimum: float, maximum: float) -> dict[float, int]:
    """Equal-width histogram over [minimum, maximum] keyed by bin center."""
    if bins < 1:
        raise ValueError(f"Histogram bin count must be >= 1, got {bins}")

    # Degenerate or non-finite range: bin width is undefined.
    if maximum == minimum or not (np.isfinite(minimum) and np.isfinite(maximum)):
        return {float(minimum): int(values.size)}

    bin_width = (maximum - minimum) / bins
    if bin_width == 0.0:
        return {float(minimum): int(values.size)}

    index = np.floor((values - minimum) / bin_width).astype(np.int64)
    index = np.clip(index, 0, bins - 1)
    counts = np.bincount(index, minlength=bins)

    # Centers that round to the same double share one entry.
    histogram: dict[float, int] = {}
    for i in range(bins):
        center = float(minimum + (i + 0.5) * bin_width)
        histogram[center] = histogram.get(center, 0) + int(counts[i])
    return histogram


def analyze(raster: Raster, bins: int = DEFAULT_BINS) -> ImageStatistics:
    """Compute min/max/mean/median/variance/sum and a histogram for a raster.

    Non-finite samples are not filtered: NaN propagates into the aggregates
    following IEEE-754 rules.
    """
    if raster.width * raster.height == 0:
        raise EmptyImageError("Image has no pixel data")
    if bins < 1:
        raise ValueError(f"Histogram bin count must be >= 1, got {bins}")

    values = raster.flat
    count = int(values.size)

    with np.errstate(invalid="ignore", over="ignore"):
        minimum = float(np.min(values))
        maximum = float(np.max(values))
        total = float(np.sum(values))
        mean = total / count
        variance = float(np.mean((values - mean) ** 2))
        std = float(np.sqrt(variance))
        median = _median(values)
        histogram = compute_histogram(values, bins, minimum, maximum)

    logger.debug(
        "Statistics for %s: n=%d min=%g max=%g mean=%g std=%g",
        raster.source_path, count, minimum, maximum, mean, std,
    )
    return ImageStatistics(
        minimum=minimum,
        maximum=maximum,
        mean=mean,
        median=median,
        variance=variance,
        standard_deviation=std,
        sum=total,
        pixel_count=count,
        histogram=histogram,
        source_path=raster.source_path,
        bins=bins,
    )


def analyze_all(rasters: Iterable[Raster], bins: int = DEFAULT_BINS) -> Iterator[ImageStatistics]:
    """Lazily analyze rasters in order; the first failure ends the sequence."""
    for raster in rasters:
        yield analyze(raster, bins=bins)


def to_table(records: Iterable[ImageStatistics]) -> pd.DataFrame:
    """Convert statistics records into a DataFrame for display."""
    rows = []
    for idx, rec in enumerate(records):
        rows.append(
            {
                "idx": idx,
                "source": rec.source_path,
                "pixels": rec.pixel_count,
                "min": rec.minimum,
                "max": rec.maximum,
                "mean": rec.mean,
                "median": rec.median,
                "std": rec.standard_deviation,
                "variance": rec.variance,
                "sum": rec.sum,
                "bins": rec.bins,
            }
        )
    return pd.DataFrame(rows)
