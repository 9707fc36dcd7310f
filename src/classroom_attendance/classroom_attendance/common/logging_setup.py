from __future__ import annotations

import logging
import sys

# Package root logger, whichever way the package was imported.
PACKAGE_LOGGER = __name__.rsplit(".common", 1)[0]

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Attach one stream handler to the package logger (idempotent)."""
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    if not any(getattr(h, "_classroom_attendance", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._classroom_attendance = True
        logger.addHandler(handler)
    return logger
