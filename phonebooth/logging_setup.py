"""Logging configuration for the phonebooth daemon."""

import logging
import sys
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(level: str, log_file: Optional[Path] = None) -> None:
    """Configure root logging to stderr and, optionally, a log file.

    Args:
        level: Logging level name (already validated by DaemonConfig).
        log_file: Optional path of a file to append log records to.
    """
    root = logging.getLogger()
    root.setLevel(level)

    # Drop handlers from a previous call so records aren't duplicated
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    if log_file:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
        except OSError as e:
            root.warning(f"Could not open log file {log_file}: {e}")
        else:
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)
