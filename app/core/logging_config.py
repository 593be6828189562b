"""
Logging configuration. Console output, plain text by default and JSON lines
when LOG_JSON is set (for log shippers in production).
"""

import logging
import logging.config
from datetime import datetime, timezone
from typing import Any, Dict

from pythonjsonlogger import jsonlogger

from app.core.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter that adds timestamp, level and logger name to every record."""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        # Request-scoped extras passed via logger.info(..., extra={...})
        for key in ("hostel_id", "user_id", "period"):
            if hasattr(record, key):
                log_record[key] = getattr(record, key)


def build_logging_config(level: str, json_output: bool) -> Dict[str, Any]:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            },
            "json": {
                "()": CustomJsonFormatter,
                "format": "%(timestamp)s %(level)s %(logger)s %(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "json" if json_output else "standard",
            },
        },
        "loggers": {
            "app": {
                "handlers": ["console"],
                "level": level,
                "propagate": False,
            },
            "sqlalchemy.engine": {
                "handlers": ["console"],
                "level": "WARNING",
                "propagate": False,
            },
        },
    }


def setup_logging() -> logging.Logger:
    """Configure application logging from settings."""
    logging.config.dictConfig(build_logging_config(settings.log_level.upper(), settings.log_json))
    logger = logging.getLogger("app")
    logger.info("Logging initialized with level: %s", settings.log_level.upper())
    return logger
