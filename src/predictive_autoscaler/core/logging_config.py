#!/usr/bin/env python3
"""
Logging setup for the predictive autoscaler.

Records carry a ``resource_id`` attribute so that forecast and execution
lines for the same resource can be followed across interleaved tasks.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

NO_RESOURCE = "-"

CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(resource_id)s] %(message)s"
FILE_FORMAT = ("%(asctime)s - %(name)s - %(levelname)s - [%(resource_id)s] "
               "%(module)s:%(funcName)s:%(lineno)d - %(message)s")

# Client libraries that log every request at INFO
QUIET_LOGGERS = ("urllib3", "kubernetes", "pymongo", "redis")


class ResourceContextFilter(logging.Filter):
    """Gives records logged without a resource the placeholder id"""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "resource_id", None):
            record.resource_id = NO_RESOURCE
        return True


class ResourceLoggerAdapter(logging.LoggerAdapter):
    """Logger bound to one resource id"""

    def __init__(self, logger: logging.Logger, resource_id: str):
        super().__init__(logger, {"resource_id": resource_id})

    def process(self, msg, kwargs):
        extra = dict(kwargs.get("extra") or {})
        extra.setdefault("resource_id", self.extra["resource_id"])
        kwargs["extra"] = extra
        return msg, kwargs


def resource_logger(logger: logging.Logger, resource_id: str) -> ResourceLoggerAdapter:
    return ResourceLoggerAdapter(logger, resource_id)


class ColoredFormatter(logging.Formatter):
    """Colours the level name; the resource id is highlighted when present"""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESOURCE_COLOR = '\033[1m'
    RESET = '\033[0m'

    def format(self, record):
        # Colour a copy so the file handler sees plain text
        record = logging.makeLogRecord(record.__dict__)
        color = self.COLORS.get(record.levelname)
        if color:
            record.levelname = f"{color}{record.levelname}{self.RESET}"
        resource_id = getattr(record, "resource_id", NO_RESOURCE)
        if resource_id != NO_RESOURCE:
            record.resource_id = f"{self.RESOURCE_COLOR}{resource_id}{self.RESET}"
        return super().format(record)


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    enable_colors: bool = True
) -> None:
    """
    Configure the root logger for the command-line driver

    Args:
        level: Logging level name; unknown names fall back to INFO
        log_file: Optional file that also receives every record, uncoloured
        enable_colors: Colour console output
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    context = ResourceContextFilter()
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.addFilter(context)
    console_handler.setFormatter(
        ColoredFormatter(CONSOLE_FORMAT) if enable_colors else logging.Formatter(CONSOLE_FORMAT)
    )
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        file_handler.addFilter(context)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        root_logger.addHandler(file_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        f"Logging configured at {logging.getLevelName(numeric_level)}"
        + (f", also writing to {log_file}" if log_file else "")
    )
