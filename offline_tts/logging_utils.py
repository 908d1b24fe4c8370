from __future__ import annotations

import logging
from typing import Optional

from offline_tts.config import settings

PACKAGE_LOGGER = "offline_tts"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _configure_package_logger() -> logging.Logger:
    root = logging.getLogger(PACKAGE_LOGGER)
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
        root.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    return root


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a logger under the ``offline_tts`` namespace.

    The console handler lives on the package logger only; module loggers
    propagate to it, so the level is set in one place via
    ``OFFLINE_TTS_LOG_LEVEL``.
    """
    root = _configure_package_logger()
    if not name or name == PACKAGE_LOGGER:
        return root
    if not name.startswith(PACKAGE_LOGGER + "."):
        name = f"{PACKAGE_LOGGER}.{name}"
    return logging.getLogger(name)
