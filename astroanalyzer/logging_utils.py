"""Handler setup for the ``astroanalyzer`` logger hierarchy.

Modules log through ``logging.getLogger(__name__)``; nothing is emitted
until :func:`configure_logging` attaches handlers to the package logger.
The root logger is left alone so a host application keeps its own setup.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

PACKAGE_LOGGER = "astroanalyzer"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

# Marks handlers installed here so a reconfigure replaces only those.
_OWNED = "_astroanalyzer_handler"


def resolve_level(level: Union[str, int]) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return resolved


def configure_logging(
    level: Union[str, int] = "INFO",
    log_file: Optional[Union[str, Path]] = None,
) -> logging.Logger:
    """Attach a stream handler (and a file handler) to the package logger."""
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        if getattr(handler, _OWNED, False):
            logger.removeHandler(handler)
            handler.close()

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))

    formatter = logging.Formatter(LOG_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
        setattr(handler, _OWNED, True)
        logger.addHandler(handler)

    logger.setLevel(resolve_level(level))
    return logger
