from logging.config import dictConfig
from typing import Iterable

from marketplace.core.config import LOG_JSON, LOG_LEVEL, LOG_QUIET

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
JSON_FORMAT = '{"time":"%(asctime)s","level":"%(levelname)s","logger":"%(name)s","message":"%(message)s"}'


def setup_logging(level: str = LOG_LEVEL, json_logs: bool = LOG_JSON, quiet: Iterable[str] = LOG_QUIET):
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {"format": LOG_FORMAT},
                "json": {"format": JSON_FORMAT},
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "json" if json_logs else "default",
                },
            },
            "loggers": {name: {"level": "WARNING"} for name in quiet},
            "root": {
                "level": level,
                "handlers": ["console"],
            },
        }
    )
