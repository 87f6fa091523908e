import os
import logging
import discord


def user_name(user: discord.abc.Snowflake | int | None) -> str:
    """Return a user's display name or fallback to their ID."""
    if user is None:
        return "unknown"
    if isinstance(user, int):
        return str(user)
    name = getattr(user, "display_name", None) or getattr(user, "name", None)
    if name:
        return name
    uid = getattr(user, "id", None)
    return str(uid) if uid is not None else "unknown"


def chan_name(channel: discord.abc.Connectable | None) -> str:
    """Return a readable channel name or fallback to ID."""
    if channel is None:
        return "unknown"
    name = getattr(channel, "name", None)
    if name:
        return f"#{name}"
    channel_id = getattr(channel, "id", None)
    return str(channel_id) if channel_id is not None else "unknown"


def guild_name(guild: discord.abc.Snowflake | int | None) -> str:
    """Return a guild's name or fallback to ID."""
    if guild is None:
        return "unknown"
    if isinstance(guild, int):
        return str(guild)
    name = getattr(guild, "name", None)
    if name:
        return name
    gid = getattr(guild, "id", None)
    return str(gid) if gid is not None else "unknown"


def vouch_label(count: int) -> str:
    """Return ``"1 vouch"`` / ``"3 vouches"``."""
    return f"{count} vouch{'' if count == 1 else 'es'}"


def int_env(var: str, default: int = 0) -> int:
    """Return int value from ENV or default if unset or invalid."""
    value = os.getenv(var)
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        logging.getLogger(__name__).warning(
            "Invalid integer for %s: %s; using %s", var, value, default
        )
        return default


def float_env(var: str, default: float = 0.0) -> float:
    """Return float value from ENV or default if unset or invalid."""
    value = os.getenv(var)
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        logging.getLogger(__name__).warning(
            "Invalid number for %s: %s; using %s", var, value, default
        )
        return default


def bool_env(var: str, default: bool = False) -> bool:
    """Return boolean value from ENV or default if unset or invalid."""
    value = os.getenv(var)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    logging.getLogger(__name__).warning(
        "Invalid boolean for %s: %s; using %s", var, value, default
    )
    return default
