"""Utility modules for logging, time conversion, and common helpers."""

from statuswatch.utils.logging import configure_logging, get_logger
from statuswatch.utils.timeutils import ms_to_datetime, now_ms

__all__ = ["configure_logging", "get_logger", "ms_to_datetime", "now_ms"]
