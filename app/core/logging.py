# app/core/logging.py
import logging
import logging.config

from app.core.config import settings

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

def setup_logging(level: str | None = None) -> None:
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": {"format": _FORMAT}},
        "handlers": {
            "console": {"class": "logging.StreamHandler", "formatter": "default"},
        },
        "root": {"handlers": ["console"], "level": (level or settings.LOG_LEVEL).upper()},
        "loggers": {
            # SQL só em DEBUG explícito
            "sqlalchemy.engine": {"level": "WARNING"},
            "uvicorn.access": {"level": "INFO"},
        },
    })
