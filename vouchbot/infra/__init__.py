"""Infrastructure utilities for Vouchbot."""
from .cog_base import StoreAwareCog, log_errors
from .config import VouchConfig, get_config, reset_config, set_config
from .logging import (
    ErrorLogFormatter,
    get_cog_logger,
    get_logger,
    structured_log,
)
from .pacing import Pacer
from .retries import async_call_with_backoff, is_transient

__all__ = [
    # Cog base classes
    "StoreAwareCog",
    "log_errors",
    # Configuration
    "VouchConfig",
    "get_config",
    "reset_config",
    "set_config",
    # Logging
    "ErrorLogFormatter",
    "get_cog_logger",
    "get_logger",
    "structured_log",
    # Pacing
    "Pacer",
    # Retries
    "async_call_with_backoff",
    "is_transient",
]
