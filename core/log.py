"""Logging setup shared by the CLI and the web app."""

from __future__ import annotations

import logging
from pathlib import Path

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str = "INFO", filename: Path | None = None) -> logging.Logger:
    """Configure the root logger once and return the package logger.

    The TUI passes *filename* so log lines don't draw over the screen.
    """
    numeric = getattr(logging, str(level).upper(), None)
    if not isinstance(numeric, int):
        numeric = logging.INFO
    if filename is not None:
        logging.basicConfig(level=numeric, format=LOG_FORMAT, filename=str(filename), encoding="utf-8")
    else:
        logging.basicConfig(level=numeric, format=LOG_FORMAT)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("core").setLevel(numeric)
    return logging.getLogger("core")
