#!/usr/bin/env python3
"""
Service logging setup

Configures the root logger once per process from ``LoggingConfig`` and
returns the service's named logger. Modules keep using
``logging.getLogger(__name__)``.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

from core.config import get_settings

_configured = False


class JSONLineFormatter(logging.Formatter):
    """One JSON object per record"""

    def __init__(self, service_name: str):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "service": self.service_name,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def setup_service_logger(service_name: str, level: Optional[str] = None) -> logging.Logger:
    """
    Configure logging for a service process.

    Args:
        service_name: Name attached to every record
        level: Overrides LOG_LEVEL when given

    Returns:
        Logger named after the service
    """
    global _configured

    log_config = get_settings().logging
    log_level = (level or log_config.log_level or "INFO").upper()

    if not _configured:
        if log_config.enable_structured:
            formatter: logging.Formatter = JSONLineFormatter(service_name)
        else:
            formatter = logging.Formatter(log_config.log_format)

        root = logging.getLogger()
        for handler in list(root.handlers):
            root.removeHandler(handler)

        if log_config.enable_console:
            console = logging.StreamHandler(sys.stdout)
            console.setFormatter(formatter)
            root.addHandler(console)

        if log_config.log_file:
            file_handler = logging.FileHandler(log_config.log_file)
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)

        root.setLevel(log_level)

        # Quiet chatty libraries
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("asyncio").setLevel(logging.WARNING)
        _configured = True

    service_logger = logging.getLogger(service_name)
    service_logger.setLevel(log_level)
    return service_logger
