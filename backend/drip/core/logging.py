"""Logging configuration for the campaign service

Modules log through ``logging.getLogger(__name__)``; cron runs and
security events additionally go to the "cron" and "security" channels so
they can be filtered or shipped separately.
"""
import logging

from drip.core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Libraries that log every request or statement at INFO
QUIET_LIBRARIES = ("urllib3", "httpx", "sqlalchemy.engine", "resend", "opentelemetry")

CHANNELS = ("cron", "security")


def setup_logging():
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S", force=True)

    for name in QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)

    # Cron summaries and auth failures stay visible even when the app runs at WARNING
    for name in CHANNELS:
        logging.getLogger(name).setLevel(min(level, logging.INFO))
