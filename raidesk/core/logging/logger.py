from __future__ import annotations

import logging
import os
from typing import Optional


ROOT_LOGGER = "raidesk"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

_CONFIGURED = False


def _configure_root() -> logging.Logger:
    global _CONFIGURED
    root = logging.getLogger(ROOT_LOGGER)
    if _CONFIGURED:
        return root
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    level_name = os.getenv("RAIDESK_LOG_LEVEL", "INFO").strip().upper()
    root.setLevel(getattr(logging, level_name, logging.INFO))
    _CONFIGURED = True
    return root


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return the ``raidesk`` logger, or ``raidesk.<name>`` below it."""

    root = _configure_root()
    if not name:
        return root
    return root.getChild(name)
