"""Errors raised by the vouch core.

Every message is written for the person who ran the command; cogs reply with
``str(exc)`` directly.
"""
from __future__ import annotations


class VouchError(Exception):
    """Base class for user-facing vouch failures."""


class GuildNotFound(VouchError):
    def __init__(self) -> None:
        super().__init__("Guild not found. Ensure the bot is in the correct server.")


class ChannelNotFound(VouchError):
    def __init__(self, wanted: str, available: list[str] | None = None) -> None:
        message = (
            f"Could not find channel '{wanted}'. Ensure the channel exists, "
            "is text-based, and the bot has access."
        )
        if available:
            message += f" Available text channels: {', '.join(available)}."
        super().__init__(message)
        self.wanted = wanted
        self.available = available or []


class MemberNotFound(VouchError):
    def __init__(self, user_id: int) -> None:
        super().__init__(f"<@{user_id}> is not a member of this server.")
        self.user_id = user_id


class MissingPermissions(VouchError):
    def __init__(self, channel_name: str, missing: list[str]) -> None:
        super().__init__(
            f"Missing permissions in {channel_name}: {', '.join(missing)}. "
            "Grant the bot View Channel, Read Message History and Send Messages."
        )
        self.missing = missing


class SelfVouchError(VouchError):
    def __init__(self) -> None:
        super().__init__("You can't vouch for yourself!")


class VouchCapReached(VouchError):
    def __init__(self, user_id: int, cap: int) -> None:
        super().__init__(f"<@{user_id}> already has the maximum of {cap} vouches.")
        self.user_id = user_id
        self.cap = cap


class NothingToRemove(VouchError):
    def __init__(self, user_id: int) -> None:
        super().__init__(f"<@{user_id}> has no vouches to remove.")
        self.user_id = user_id


class ScanError(VouchError):
    """A history fetch failed part way through a scan."""
