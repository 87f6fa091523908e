"""Chat-platform capability surface used by the vouch core.

The core never touches discord.py objects directly. It talks to a
:class:`VouchPlatform`, implemented here over a running bot by
:class:`DiscordPlatform` and in the tests by an in-memory fake. Pacing and
retries for outbound calls happen in the adapter, not in business logic.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Protocol

import discord
from discord.ext import commands

from ..infra.pacing import Pacer
from ..infra.retries import async_call_with_backoff
from ..util import chan_name, guild_name
from .errors import ChannelNotFound, GuildNotFound
from .mentions import MessageSnapshot

log = logging.getLogger(f"vouchbot.{__name__}")

PAGE_ROUTE = "page"
ROLE_ROUTE = "role"

# (attribute on discord.Permissions, label shown to users)
REQUIRED_PERMISSIONS = (
    ("view_channel", "View Channel"),
    ("read_message_history", "Read Message History"),
    ("send_messages", "Send Messages"),
)


@dataclass(frozen=True)
class ChannelInfo:
    id: int
    name: str
    guild_id: int | None = None
    text_based: bool = True

    @property
    def mention(self) -> str:
        return f"<#{self.id}>"


@dataclass(frozen=True)
class MemberInfo:
    id: int
    tag: str
    role_ids: frozenset[int] = field(default_factory=frozenset)
    bot: bool = False


class VouchPlatform(Protocol):
    async def fetch_channel(self, channel_id: int) -> ChannelInfo | None: ...

    async def find_channel(self, guild_id: int, name: str) -> ChannelInfo | None: ...

    def text_channel_names(self, guild_id: int) -> list[str]: ...

    async def missing_permissions(self, channel_id: int) -> list[str]: ...

    async def fetch_member_ids(self, guild_id: int) -> set[int]: ...

    async def get_member(self, guild_id: int, user_id: int) -> MemberInfo | None: ...

    async def members_with_roles(
        self, guild_id: int, role_ids: Iterable[int]
    ) -> list[MemberInfo]: ...

    async def fetch_messages(
        self, channel_id: int, limit: int, before: int | None = None
    ) -> list[MessageSnapshot]: ...

    async def add_role(
        self, guild_id: int, user_id: int, role_id: int, reason: str | None = None
    ) -> None: ...

    async def remove_role(
        self, guild_id: int, user_id: int, role_id: int, reason: str | None = None
    ) -> None: ...

    async def send(self, channel_id: int, content: str) -> None: ...


def snapshot_message(msg: discord.Message) -> MessageSnapshot:
    return MessageSnapshot(
        id=msg.id,
        author_id=msg.author.id,
        content=msg.content or "",
        mention_ids=tuple(u.id for u in msg.mentions),
        author_bot=msg.author.bot,
    )


def snapshot_member(member: discord.Member) -> MemberInfo:
    return MemberInfo(
        id=member.id,
        tag=str(member),
        role_ids=frozenset(r.id for r in member.roles),
        bot=member.bot,
    )


def _is_text_based(channel: object) -> bool:
    return isinstance(channel, discord.abc.Messageable)


class DiscordPlatform:
    """:class:`VouchPlatform` over a discord.py bot."""

    def __init__(self, bot: commands.Bot, pacer: Pacer | None = None) -> None:
        self.bot = bot
        self.pacer = pacer or Pacer({})

    # ── lookups ───────────────────────────────────────────────────────────
    def _guild(self, guild_id: int) -> discord.Guild:
        guild = self.bot.get_guild(guild_id)
        if guild is None:
            raise GuildNotFound()
        return guild

    async def _channel(self, channel_id: int):
        channel = self.bot.get_channel(channel_id)
        if channel is not None:
            return channel
        try:
            return await self.bot.fetch_channel(channel_id)
        except discord.NotFound:
            log.warning("Channel %s not found", channel_id)
        except discord.HTTPException as exc:
            log.error("Failed to fetch channel by ID %s: %s", channel_id, exc)
        return None

    async def _member(self, guild: discord.Guild, user_id: int) -> discord.Member | None:
        """Return a member from cache or fetch if missing."""
        member = guild.get_member(user_id)
        if member:
            return member
        try:
            return await guild.fetch_member(user_id)
        except discord.NotFound:
            log.info("Member %s not found in guild %s", user_id, guild_name(guild))
        except discord.HTTPException as exc:
            log.error("Failed to fetch member %s: %s", user_id, exc)
        return None

    async def fetch_channel(self, channel_id: int) -> ChannelInfo | None:
        channel = await self._channel(channel_id)
        if channel is None:
            return None
        guild = getattr(channel, "guild", None)
        return ChannelInfo(
            id=channel.id,
            name=getattr(channel, "name", None) or str(channel.id),
            guild_id=guild.id if guild else None,
            text_based=_is_text_based(channel),
        )

    async def find_channel(self, guild_id: int, name: str) -> ChannelInfo | None:
        guild = self._guild(guild_id)
        wanted = name.lstrip("#").lower()
        for channel in guild.text_channels:
            if channel.name.lower() == wanted:
                return ChannelInfo(id=channel.id, name=channel.name, guild_id=guild.id)
        return None

    def text_channel_names(self, guild_id: int) -> list[str]:
        guild = self._guild(guild_id)
        return [f"{c.name} (ID: {c.id})" for c in guild.text_channels]

    async def missing_permissions(self, channel_id: int) -> list[str]:
        channel = await self._channel(channel_id)
        guild = getattr(channel, "guild", None)
        if channel is None or guild is None:
            return [label for _, label in REQUIRED_PERMISSIONS]
        perms = channel.permissions_for(guild.me)
        return [label for attr, label in REQUIRED_PERMISSIONS if not getattr(perms, attr)]

    # ── members ───────────────────────────────────────────────────────────
    async def fetch_member_ids(self, guild_id: int) -> set[int]:
        """Full member list, or the gateway cache if the fetch fails."""
        guild = self._guild(guild_id)
        try:
            ids = {m.id async for m in guild.fetch_members(limit=None)}
        except (discord.HTTPException, discord.ClientException) as exc:
            log.error("Failed to fetch guild members: %s", exc)
            ids = {m.id for m in guild.members}
            log.info("Falling back to %d cached members", len(ids))
        else:
            log.info("Fetched %d members for %s", len(ids), guild_name(guild))
        return ids

    async def get_member(self, guild_id: int, user_id: int) -> MemberInfo | None:
        member = await self._member(self._guild(guild_id), user_id)
        return snapshot_member(member) if member else None

    async def members_with_roles(
        self, guild_id: int, role_ids: Iterable[int]
    ) -> list[MemberInfo]:
        guild = self._guild(guild_id)
        wanted = set(role_ids)
        return [
            snapshot_member(m)
            for m in guild.members
            if any(r.id in wanted for r in m.roles)
        ]

    # ── history ───────────────────────────────────────────────────────────
    async def fetch_messages(
        self, channel_id: int, limit: int, before: int | None = None
    ) -> list[MessageSnapshot]:
        channel = await self._channel(channel_id)
        if channel is None:
            raise ChannelNotFound(str(channel_id))
        cursor = discord.Object(id=before) if before else None

        async def fetch_page() -> list[MessageSnapshot]:
            return [
                snapshot_message(m)
                async for m in channel.history(limit=limit, before=cursor)
            ]

        await self.pacer.wait(PAGE_ROUTE)
        return await async_call_with_backoff(fetch_page)

    # ── mutations ─────────────────────────────────────────────────────────
    async def _mutate_role(
        self, guild_id: int, user_id: int, role_id: int, add: bool, reason: str | None
    ) -> None:
        guild = self._guild(guild_id)
        member = await self._member(guild, user_id)
        if member is None:
            raise discord.ClientException(f"member {user_id} not in {guild_name(guild)}")
        role = discord.Object(id=role_id)
        call = member.add_roles if add else member.remove_roles
        await self.pacer.wait(ROLE_ROUTE)
        await async_call_with_backoff(lambda: call(role, reason=reason))

    async def add_role(
        self, guild_id: int, user_id: int, role_id: int, reason: str | None = None
    ) -> None:
        await self._mutate_role(guild_id, user_id, role_id, True, reason)

    async def remove_role(
        self, guild_id: int, user_id: int, role_id: int, reason: str | None = None
    ) -> None:
        await self._mutate_role(guild_id, user_id, role_id, False, reason)

    async def send(self, channel_id: int, content: str) -> None:
        channel = await self._channel(channel_id)
        if channel is None:
            log.error("Cannot send to missing channel %s", channel_id)
            return
        log.debug("Sending to %s: %s", chan_name(channel), content)
        # Reports name members and roles; never ping them.
        await channel.send(content, allowed_mentions=discord.AllowedMentions.none())
