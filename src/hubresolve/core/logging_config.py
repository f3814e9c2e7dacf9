"""Standard-library logging setup shared by the API and scripts."""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install one stream handler on the ``hubresolve`` logger.

    Calling this more than once only updates the level.
    """
    logger = logging.getLogger("hubresolve")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    if not any(getattr(h, "_hubresolve", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._hubresolve = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
