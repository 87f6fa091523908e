"""Standardized logging utilities for Vouchbot."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

# Root logger name for all Vouchbot components
ROOT_LOGGER_NAME = "vouchbot"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a hierarchical logger under the vouchbot namespace.

    Args:
        name: Module or component name. If None, returns the root logger.
              The name is prefixed with "vouchbot." unless it already is.

    Example::

        from vouchbot.infra.logging import get_logger
        log = get_logger("scan")  # -> "vouchbot.scan"
    """
    if name is None:
        return logging.getLogger(ROOT_LOGGER_NAME)

    clean_name = name
    if clean_name.startswith(f"{ROOT_LOGGER_NAME}."):
        clean_name = clean_name[len(ROOT_LOGGER_NAME) + 1 :]

    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{clean_name}")


def get_cog_logger(cog_name: str) -> logging.Logger:
    """Return a logger under "vouchbot.cogs.<cog_name>"."""
    return get_logger(f"cogs.{cog_name}")


class ErrorLogFormatter(logging.Formatter):
    """Render records as ``<ISO8601 UTC timestamp> - <message>``.

    This is the line format of the append-only ``error.log``. Exception
    tracebacks are left out so every failure stays on one line; the console
    handler still shows them.
    """

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created, tz=timezone.utc)
        stamp = ts.isoformat(timespec="milliseconds").replace("+00:00", "Z")
        message = record.getMessage().replace("\n", " ")
        return f"{stamp} - {message}"


def structured_log(
    logger: logging.Logger,
    level: int,
    message: str,
    **fields: Any,
) -> None:
    """Log a message with structured key=value fields appended.

    Example::

        structured_log(log, logging.INFO, "Scan finished",
                       channel=123, messages=1000, mentions=42)
        # Logs: "Scan finished channel=123 messages=1000 mentions=42"
    """
    if fields:
        field_str = " ".join(f"{k}={v}" for k, v in fields.items())
        message = f"{message} {field_str}"
    logger.log(level, message)
