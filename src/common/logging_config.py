"""Centralized logging configuration for all services."""

import logging
import sys
from pathlib import Path
from typing import Optional

from common.config import settings
from common.utils import DateTimeUtils


def setup_logging(
    service_name: str, log_file: Optional[str] = None, log_level: Optional[str] = None
) -> logging.Logger:
    """
    Configure logging for a service with consistent formatting.

    Args:
        service_name: Name of the service (e.g., 'manager', 'scanner')
        log_file: Optional log file path. If None, logs only to console
        log_level: Optional log level override. If None, uses settings.log_level

    Returns:
        Configured logger instance
    """
    level = log_level or settings.log_level
    log_level_value = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger(service_name)
    logger.setLevel(log_level_value)

    # Remove existing handlers to avoid duplicates
    logger.handlers.clear()

    detailed_formatter = logging.Formatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    simple_formatter = logging.Formatter(
        fmt="%(asctime)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level_value)
    console_handler.setFormatter(simple_formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file, mode="a")
        file_handler.setLevel(log_level_value)
        file_handler.setFormatter(detailed_formatter)
        logger.addHandler(file_handler)

    logger.propagate = False

    return logger


class ServiceLogger:
    """Service logger whose handlers are shared with the library packages."""

    PACKAGES = ("common", "processor", "translator", "scanner", "manager")

    def __init__(self, service_name: str, enable_file_logging: bool = True):
        self.service_name = service_name
        self.log_file: Optional[str] = None
        if enable_file_logging:
            date_string = DateTimeUtils.get_date_string_for_log_file()
            self.log_file = f"./logs/{service_name}_{date_string}.log"
        self.logger = setup_logging(service_name, self.log_file)

        # Library modules log under their module names (processor.*, common.*)
        for package in self.PACKAGES:
            package_logger = logging.getLogger(package)
            package_logger.setLevel(self.logger.level)
            package_logger.handlers = list(self.logger.handlers)


def configure_third_party_loggers(level: str = "WARNING") -> None:
    """Quiet the RabbitMQ, Redis and access-log loggers."""
    log_level = getattr(logging, level.upper(), logging.WARNING)

    for logger_name in ("aio_pika", "aiormq", "redis", "uvicorn.access"):
        logging.getLogger(logger_name).setLevel(log_level)


def setup_service_logging(
    service_name: str, enable_file_logging: bool = True
) -> ServiceLogger:
    """
    Set up logging for a service entry point.

    Args:
        service_name: Name of the service
        enable_file_logging: Also write to ``./logs/<service>_<date>.log``

    Returns:
        ServiceLogger instance
    """
    configure_third_party_loggers()
    return ServiceLogger(service_name, enable_file_logging)
