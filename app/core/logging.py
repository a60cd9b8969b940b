"""Logging setup. Modules log through `logging.getLogger(__name__)`; call setup_logging once at startup."""

import logging
import sys

from app.core.config import Settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

NOISY_LOGGERS = (
    "uvicorn.access",
    "httpx",
    "httpcore",
    "sqlalchemy.engine",
    "asyncio",
    "aiosqlite",
)


def setup_logging(settings: Settings) -> None:
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    if settings.debug:
        level = logging.DEBUG

    logging.basicConfig(format=LOG_FORMAT, stream=sys.stdout, level=level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    # Keep our loggers at the configured level even if root was configured earlier
    logging.getLogger("app").setLevel(level)
