"""Utility functions for deploybot."""

from deploybot.utils.logging import bind_delivery, configure_logging, get_logger

__all__ = [
    "bind_delivery",
    "configure_logging",
    "get_logger",
]
