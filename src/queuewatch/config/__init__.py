"""Configuration module for the queue monitor."""

from queuewatch.config.constants import (
    DEFAULT_PAGE_URL,
    DEFAULT_STREAM_URL,
    MAX_RECONNECT_DELAY,
    MIN_RECONNECT_DELAY,
)
from queuewatch.config.settings import Settings, get_settings


__all__ = [
    "Settings",
    "get_settings",
    "DEFAULT_PAGE_URL",
    "DEFAULT_STREAM_URL",
    "MIN_RECONNECT_DELAY",
    "MAX_RECONNECT_DELAY",
]
