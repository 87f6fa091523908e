"""Base classes and decorators for Discord cogs."""
from __future__ import annotations

import asyncio
import functools
import logging
from typing import TYPE_CHECKING, Any, Callable, TypeVar

from discord.ext import commands

from ..vouch.store import VouchStore

if TYPE_CHECKING:
    from discord.ext.commands import Bot

log = logging.getLogger(f"vouchbot.{__name__}")

F = TypeVar("F", bound=Callable[..., Any])


class StoreAwareCog(commands.Cog):
    """Cog that owns a :class:`VouchStore` loaded from disk on ``cog_load``.

    Subclasses that override ``cog_load`` should call
    ``await super().cog_load()`` so the counts are in memory before any
    listener runs.
    """

    def __init__(self, bot: "Bot", store: VouchStore) -> None:
        self.bot = bot
        self.store = store
        self.store_loaded = False

    async def cog_load(self) -> None:
        await asyncio.to_thread(self.store.load)
        self.store_loaded = True
        log.info(
            "%s: loaded %d vouch entries", self.__class__.__name__, len(self.store)
        )


def log_errors(
    message: str = "Operation failed",
    *,
    reraise: bool = False,
    return_value: Any = None,
) -> Callable[[F], F]:
    """Decorator that logs exceptions with consistent formatting.

    Args:
        message: Log message prefix for the error
        reraise: If True, re-raise the exception after logging
        return_value: Value to return if an exception occurs (when not reraising)

    Example::

        @log_errors("Failed to credit vouch mentions")
        async def on_message(self, message):
            ...
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return await func(*args, **kwargs)
            except Exception:
                func_log = logging.getLogger(f"vouchbot.{func.__module__}")
                func_log.exception("%s in %s", message, func.__name__)
                if reraise:
                    raise
                return return_value

        return wrapper  # type: ignore[return-value]

    return decorator
