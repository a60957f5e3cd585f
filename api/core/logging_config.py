"""
Process-wide logging setup.
"""

from __future__ import annotations

import logging

from . import settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging() -> None:
    level = settings.log_level()
    root = logging.getLogger()
    if root.handlers:
        # uvicorn (or pytest) already installed handlers; only adjust the level.
        root.setLevel(level)
        return

    logging.basicConfig(level=level, format=LOG_FORMAT)
