"""Analysis settings and YAML loading."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import yaml

from astroanalyzer.logging_utils import resolve_level
from astroanalyzer.statistics import DEFAULT_BINS


@dataclass
class AnalyzerSettings:
    """User-configurable analysis settings."""

    histogram_bins: int = DEFAULT_BINS
    debayer_enabled: bool = False
    white_balance: bool = True
    stf_min: Optional[float] = None
    stf_max: Optional[float] = None
    log_level: str = "INFO"
    log_file: Optional[Path] = None


def _optional_float(raw: dict[str, Any], key: str) -> Optional[float]:
    value = raw.get(key)
    if value in (None, ""):
        return None
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{key} must be a number, got {value!r}") from exc


def _expand_path(value: Optional[str], base: Path) -> Optional[Path]:
    if value in (None, ""):
        return None
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = (base / path).resolve()
    return path


def settings_from_dict(raw: dict[str, Any], base: Optional[Path] = None) -> AnalyzerSettings:
    """Build settings from a plain mapping (as parsed from YAML)."""
    base = base or Path.cwd()
    analysis = raw.get("analysis", {}) or {}
    preview = raw.get("preview", {}) or {}
    logging_raw = raw.get("logging", {}) or {}

    try:
        bins = int(analysis.get("histogram_bins", DEFAULT_BINS))
    except (TypeError, ValueError) as exc:
        raise ValueError(f"histogram_bins must be an integer, got {analysis.get('histogram_bins')!r}") from exc
    if bins < 1:
        raise ValueError(f"histogram_bins must be >= 1, got {bins}")

    log_level = str(logging_raw.get("level", "INFO")).upper()
    resolve_level(log_level)

    return AnalyzerSettings(
        histogram_bins=bins,
        debayer_enabled=bool(preview.get("debayer_enabled", False)),
        white_balance=bool(preview.get("white_balance", True)),
        stf_min=_optional_float(preview, "stf_min"),
        stf_max=_optional_float(preview, "stf_max"),
        log_level=log_level,
        log_file=_expand_path(logging_raw.get("file"), base),
    )


def load_settings(path: str | Path) -> AnalyzerSettings:
    """Load settings from a YAML file; missing sections use defaults."""
    cfg_path = Path(path).expanduser().resolve()
    with cfg_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Settings file must contain a mapping: {cfg_path}")
    return settings_from_dict(raw, base=cfg_path.parent)
