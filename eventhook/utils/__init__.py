"""Utility modules for eventhook."""

from .logging import get_logger, redact, setup_logging

__all__ = [
    "get_logger",
    "redact",
    "setup_logging",
]
