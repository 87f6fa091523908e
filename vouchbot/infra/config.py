"""Centralized tunables for the vouch core."""
from __future__ import annotations

import os
from dataclasses import dataclass

from ..util import bool_env, float_env, int_env

DEFAULT_VOUCH_CAP = 50
DEFAULT_SCAN_MESSAGE_LIMIT = 1000
DEFAULT_SCAN_PAGE_SIZE = 100


@dataclass(frozen=True)
class VouchConfig:
    """Limits, pacing and file locations for vouch tracking."""

    vouch_cap: int = DEFAULT_VOUCH_CAP
    scan_message_limit: int = DEFAULT_SCAN_MESSAGE_LIMIT
    scan_page_size: int = DEFAULT_SCAN_PAGE_SIZE
    scan_page_delay: float = 1.0
    role_mutation_delay: float = 0.5
    count_command_messages: bool = False
    scan_on_startup: bool = True
    data_file: str = "vouchData.json"
    error_log_file: str = "error.log"

    def __post_init__(self) -> None:
        if self.vouch_cap < 0:
            raise ValueError("vouch_cap must be >= 0")
        if self.scan_message_limit < 0:
            raise ValueError("scan_message_limit must be >= 0")
        # Discord caps history pages at 100 messages.
        if not 1 <= self.scan_page_size <= 100:
            raise ValueError("scan_page_size must be between 1 and 100")

    @classmethod
    def from_env(cls) -> "VouchConfig":
        """Create config from environment variables."""
        return cls(
            vouch_cap=int_env("VOUCH_CAP", DEFAULT_VOUCH_CAP),
            scan_message_limit=int_env("SCAN_MESSAGE_LIMIT", DEFAULT_SCAN_MESSAGE_LIMIT),
            scan_page_size=int_env("SCAN_PAGE_SIZE", DEFAULT_SCAN_PAGE_SIZE),
            scan_page_delay=float_env("SCAN_PAGE_DELAY", 1.0),
            role_mutation_delay=float_env("ROLE_MUTATION_DELAY", 0.5),
            count_command_messages=bool_env("COUNT_COMMAND_MESSAGES", False),
            scan_on_startup=bool_env("SCAN_ON_STARTUP", True),
            data_file=os.getenv("VOUCH_DATA_FILE", "vouchData.json"),
            error_log_file=os.getenv("ERROR_LOG_FILE", "error.log"),
        )


# Global default configuration instance
_default_config: VouchConfig | None = None


def get_config() -> VouchConfig:
    """Return the global configuration instance.

    Creates the configuration on first access so environment variables are
    read lazily.
    """
    global _default_config
    if _default_config is None:
        _default_config = VouchConfig.from_env()
    return _default_config


def set_config(config: VouchConfig) -> None:
    """Set the global configuration instance (tests, overrides)."""
    global _default_config
    _default_config = config


def reset_config() -> None:
    """Reset the global configuration to reload from environment."""
    global _default_config
    _default_config = None
