"""Core rotauth utilities.

This module exports core utilities for use throughout the application.
"""

from rotauth.core.config import Settings, get_settings
from rotauth.core.logging import (
    bind_correlation_id,
    clear_context,
    configure_logging,
    get_logger,
    log_context,
)

__all__ = [
    "Settings",
    "get_settings",
    "configure_logging",
    "get_logger",
    "log_context",
    "bind_correlation_id",
    "clear_context",
]
