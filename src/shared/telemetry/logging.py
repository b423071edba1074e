"""Logging configuration for Agency Ops application"""
import logging
import sys

from src.infrastructure.config.settings import get_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Libraries that log every request or job tick at INFO
NOISY_LOGGERS = ("apscheduler.executors.default", "apscheduler.scheduler", "httpx", "httpcore")


def setup_logging() -> None:
    """Configure application-wide logging from settings"""
    settings = get_settings()
    level = logging.DEBUG if settings.debug else logging.getLevelName(settings.log_level.upper())

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
    if not settings.database_echo:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get logger for module"""
    return logging.getLogger(name)
