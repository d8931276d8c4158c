from __future__ import annotations

import logging
import os
import sys


class _ThirdPartyNoiseFilter(logging.Filter):
    """
    Keep tasktracker logs at the configured level, but only let other
    libraries (uvicorn access logs aside) through at WARNING+.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if name.startswith("tasktracker") or name.startswith("uvicorn"):
            return True
        return record.levelno >= logging.WARNING


def setup_logging(level: int | str | None = None) -> None:
    """
    Configure root logging with one stderr handler.

    Call this ONCE, early (the app does it on startup).
    """
    if level is None:
        level = os.environ.get("LOG_LEVEL", "INFO").upper()

    root = logging.getLogger()
    root.setLevel(level)

    # Remove any pre-existing handlers to avoid duplicates.
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(level)
    ch.setFormatter(fmt)
    ch.addFilter(_ThirdPartyNoiseFilter())
    root.addHandler(ch)

    logging.captureWarnings(True)
