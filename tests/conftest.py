from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from vouchbot.infra.config import VouchConfig
from vouchbot.vouch.mentions import MessageSnapshot
from vouchbot.vouch.platform import ChannelInfo, MemberInfo
from vouchbot.vouch.scan import ChannelScanner
from vouchbot.vouch.service import VouchService
from vouchbot.vouch.store import VouchStore
from vouchbot.vouch.tiers import Tier

GUILD_ID = 1
VOUCH_CHANNEL = 10
ROLE_A, ROLE_B, ROLE_C = 100, 200, 300
TIERS = (Tier(ROLE_A, 3), Tier(ROLE_B, 15), Tier(ROLE_C, 30))


class FakePlatform:
    """In-memory stand-in for DiscordPlatform."""

    def __init__(self) -> None:
        self.channels: dict[int, ChannelInfo] = {}
        self.messages: dict[int, list[MessageSnapshot]] = {}
        self.member_roles: dict[int, set[int]] = {}
        self.tags: dict[int, str] = {}
        self.cached_member_ids: set[int] | None = None
        self.member_fetch_fails = False
        self.page_fetch_fails = False
        self.missing: list[str] = []
        self.failing: set[tuple[str, int, int]] = set()
        self.sent: list[tuple[int, str]] = []
        self.calls: list[tuple[str, int, int]] = []
        self.page_calls: list[tuple[int, int | None]] = []
        # yield to the loop on every call, so concurrent operations interleave
        self.yields = False
        # (user_id, paused, release): park the next get_member for user_id
        self.hold: tuple[int, asyncio.Event, asyncio.Event] | None = None

    # setup helpers
    def add_channel(self, channel_id: int, name: str, text_based: bool = True) -> ChannelInfo:
        info = ChannelInfo(id=channel_id, name=name, guild_id=GUILD_ID, text_based=text_based)
        self.channels[channel_id] = info
        return info

    def add_member(self, user_id: int, roles=(), tag: str | None = None) -> None:
        self.member_roles[user_id] = set(roles)
        self.tags[user_id] = tag or f"user{user_id}"

    def add_messages(self, channel_id: int, messages: list[MessageSnapshot]) -> None:
        existing = self.messages.setdefault(channel_id, [])
        existing.extend(messages)
        existing.sort(key=lambda m: m.id, reverse=True)

    def roles_of(self, user_id: int) -> set[int]:
        return self.member_roles[user_id]

    def sent_text(self) -> str:
        return "\n".join(text for _, text in self.sent)

    async def _pause(self) -> None:
        if self.yields:
            await asyncio.sleep(0)

    # VouchPlatform
    async def fetch_channel(self, channel_id):
        return self.channels.get(channel_id)

    async def find_channel(self, guild_id, name):
        wanted = name.lstrip("#").lower()
        for info in self.channels.values():
            if info.name.lower() == wanted and info.text_based:
                return info
        return None

    def text_channel_names(self, guild_id):
        return [f"{c.name} (ID: {c.id})" for c in self.channels.values() if c.text_based]

    async def missing_permissions(self, channel_id):
        return list(self.missing)

    async def fetch_member_ids(self, guild_id):
        await self._pause()
        if self.member_fetch_fails:
            return set(self.cached_member_ids or ())
        return set(self.member_roles)

    async def get_member(self, guild_id, user_id):
        await self._pause()
        if self.hold is not None and self.hold[0] == user_id:
            _, paused, release = self.hold
            self.hold = None
            paused.set()
            await release.wait()
        if user_id not in self.member_roles:
            return None
        return MemberInfo(
            id=user_id,
            tag=self.tags[user_id],
            role_ids=frozenset(self.member_roles[user_id]),
        )

    async def members_with_roles(self, guild_id, role_ids):
        wanted = set(role_ids)
        return [
            await self.get_member(guild_id, uid)
            for uid, roles in self.member_roles.items()
            if roles & wanted
        ]

    async def fetch_messages(self, channel_id, limit, before=None):
        self.page_calls.append((limit, before))
        await self._pause()
        if self.page_fetch_fails:
            raise RuntimeError("503 Service Unavailable")
        msgs = self.messages.get(channel_id, [])
        if before is not None:
            msgs = [m for m in msgs if m.id < before]
        return msgs[:limit]

    async def _mutate(self, action, user_id, role_id):
        self.calls.append((action, user_id, role_id))
        await self._pause()
        if (action, user_id, role_id) in self.failing:
            raise RuntimeError("403 Missing Access")
        roles = self.member_roles[user_id]
        if action == "add":
            roles.add(role_id)
        else:
            roles.discard(role_id)

    async def add_role(self, guild_id, user_id, role_id, reason=None):
        await self._mutate("add", user_id, role_id)

    async def remove_role(self, guild_id, user_id, role_id, reason=None):
        await self._mutate("remove", user_id, role_id)

    async def send(self, channel_id, content):
        self.sent.append((channel_id, content))


def mention_message(msg_id: int, author_id: int, *user_ids: int, raw: bool = False, bot: bool = False) -> MessageSnapshot:
    """A message mentioning *user_ids*, structurally or as raw tokens."""
    tokens = " ".join(f"<@{uid}>" for uid in user_ids)
    return MessageSnapshot(
        id=msg_id,
        author_id=author_id,
        content=f"vouch {tokens}",
        mention_ids=() if raw else tuple(user_ids),
        author_bot=bot,
    )


@pytest.fixture()
def platform() -> FakePlatform:
    fake = FakePlatform()
    fake.add_channel(VOUCH_CHANNEL, "vouch")
    return fake


@pytest.fixture()
def config(tmp_path) -> VouchConfig:
    return VouchConfig(
        scan_page_delay=0,
        role_mutation_delay=0,
        data_file=str(tmp_path / "vouchData.json"),
        error_log_file=str(tmp_path / "error.log"),
    )


@pytest.fixture()
def store(config) -> VouchStore:
    return VouchStore(config.data_file)


@pytest.fixture()
def service(platform, store, config) -> VouchService:
    return VouchService(platform, store, TIERS, config, prefix="/")


@pytest.fixture()
def scanner(service) -> ChannelScanner:
    return ChannelScanner(service)
