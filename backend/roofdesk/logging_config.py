"""
Logging configuration.

One console handler on the root logger, a choice of simple, detailed or JSON
line formats, and quieter levels for chatty third-party libraries. The API
calls ``setup_logging()`` from its lifespan and the Celery app calls it on
import; modules only ever ask for ``get_logger(__name__)``.
"""

import json
import logging
from typing import Optional

SIMPLE_FORMAT = "%(levelname)s - %(name)s - %(message)s"

DETAILED_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(funcName)s() - %(message)s"

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class JsonFormatter(logging.Formatter):
    """One JSON object per line; the message and traceback are escaped by ``json.dumps``."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "module": record.filename,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


MODULE_LOG_LEVELS = {
    "sqlalchemy": "WARNING",
    "sqlalchemy.engine": "WARNING",
    "sqlalchemy.pool": "WARNING",
    "httpx": "WARNING",
    "httpcore": "WARNING",
    "botocore": "WARNING",
    "boto3": "WARNING",
    "celery": "WARNING",
    "asyncio": "WARNING",
    "uvicorn": "INFO",
    "uvicorn.access": "INFO",
}


def build_formatter(fmt: str) -> logging.Formatter:
    if fmt == "json":
        return JsonFormatter(datefmt=DATE_FORMAT)
    if fmt == "simple":
        return logging.Formatter(SIMPLE_FORMAT, datefmt=DATE_FORMAT)
    return logging.Formatter(DETAILED_FORMAT, datefmt=DATE_FORMAT)


def setup_logging(log_level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """
    Configure the root logger.

    Args:
        log_level: Override the configured level (DEBUG, INFO, WARNING, ...)
        log_format: Override the configured format (simple, detailed, json)
    """
    from roofdesk.config import get_settings

    settings = get_settings()
    level = (log_level or settings.log_level or "INFO").upper()
    fmt = log_format or settings.log_format or "detailed"

    formatter = build_formatter(fmt)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    for module_name, module_level in MODULE_LOG_LEVELS.items():
        logging.getLogger(module_name).setLevel(module_level)

    root_logger.info("Logging configured: level=%s, format=%s", level, fmt)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
