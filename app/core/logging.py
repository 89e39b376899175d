"""
Logging utilities for the FastAPI application and the scheduled refresh job.

Provides a consistent logging format and configuration.
"""

import logging
import sys

_NOISY_LOGGERS = ("httpx", "httpcore", "stripe", "botocore")


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging and quiet per-request chatter from HTTP clients."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


__all__ = ["configure_logging"]
