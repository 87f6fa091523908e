"""Retroactive vouch scan over a channel's recent history."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..infra.logging import structured_log
from ..util import vouch_label
from .errors import MissingPermissions, ScanError, VouchError
from .mentions import MessageSnapshot, mentions_in
from .platform import ChannelInfo
from .service import TierUpdate, VouchService

log = logging.getLogger(f"vouchbot.{__name__}")


@dataclass
class ScanResult:
    total_messages: int
    mention_count: int
    updates: list[TierUpdate] = field(default_factory=list)


class ChannelScanner:
    """Page backward through a channel and turn mentions into vouches.

    One scan is one single-writer unit: the store lock is held from the
    member snapshot until the last role change, so live mentions and
    commands queue behind it instead of racing its save.
    """

    def __init__(self, service: VouchService) -> None:
        self.service = service
        self.platform = service.platform
        self.store = service.store
        self.config = service.config

    async def collect(self, channel: ChannelInfo) -> list[MessageSnapshot]:
        """Return up to ``scan_message_limit`` messages, newest first."""
        limit = self.config.scan_message_limit
        window: dict[int, MessageSnapshot] = {}
        before: int | None = None
        while len(window) < limit:
            size = min(self.config.scan_page_size, limit - len(window))
            try:
                page = await self.platform.fetch_messages(channel.id, size, before)
            except VouchError:
                raise
            except Exception as exc:
                raise ScanError(
                    f"Failed to fetch messages from #{channel.name}: {exc}"
                ) from exc
            if not page:
                break
            fresh = 0
            for msg in page:
                if msg.id not in window:
                    window[msg.id] = msg
                    fresh += 1
            if not fresh:
                # Cursor did not move; stop instead of refetching forever.
                break
            before = min(msg.id for msg in page)
        messages = list(window.values())[:limit]
        log.info("Fetched %d messages in channel %s", len(messages), channel.id)
        return messages

    def accumulate(
        self,
        messages: list[MessageSnapshot],
        member_ids: set[int],
        target_user_id: int | None = None,
    ) -> int:
        """Increment counts for mentioned members; return increments applied."""
        applied = 0
        cap = self.config.vouch_cap
        for msg in messages:
            for user_id in mentions_in(
                msg, self.service.prefix, self.config.count_command_messages
            ):
                if user_id not in member_ids:
                    continue
                if target_user_id is not None and user_id != target_user_id:
                    continue
                if self.store.increment(user_id, cap):
                    applied += 1
        return applied

    async def scan(
        self,
        channel: ChannelInfo,
        guild_id: int,
        target_user_id: int | None = None,
        report_channel_id: int | None = None,
    ) -> ScanResult:
        """Scan *channel* and reconcile roles for the target or everyone.

        Raises :class:`MissingPermissions` before touching anything, and
        :class:`ScanError` if history cannot be read. Counts already saved
        are kept when a later step fails.
        """
        if not channel.text_based:
            raise ScanError(
                f"#{channel.name} is not a text channel. Pick a text-based channel."
            )
        missing = await self.platform.missing_permissions(channel.id)
        if missing:
            raise MissingPermissions(f"#{channel.name}", missing)

        report_to = report_channel_id or channel.id
        who = f"<@{target_user_id}>" if target_user_id else "all server members"
        send = self.platform.send

        async with self.store.lock:
            member_ids = await self.platform.fetch_member_ids(guild_id)
            messages = await self.collect(channel)
            await send(
                report_to,
                f"Fetched {len(messages)} messages in #{channel.name} for vouch search.",
            )

            mention_count = self.accumulate(messages, member_ids, target_user_id)
            self.store.save()
            if mention_count:
                await send(
                    report_to,
                    f"Found {mention_count} unique explicit @mentions in "
                    f"#{channel.name} for {who}.",
                )
            else:
                await send(
                    report_to,
                    f"No explicit @mentions found in #{channel.name} for {who}.",
                )

            if target_user_id is not None:
                targets = [target_user_id] if target_user_id in member_ids else []
            else:
                targets = [uid for uid, _ in self.store.items() if uid in member_ids]

            updates = []
            for user_id in targets:
                update = await self.service.apply_tier(
                    guild_id, user_id, reason="Vouch scan"
                )
                if not update.member_found:
                    continue
                updates.append(update)
                if update.added is not None:
                    await send(
                        report_to,
                        f"{update.display} now has {vouch_label(update.count)} "
                        f"and earned the <@&{update.added}> role!",
                    )
                elif target_user_id is not None:
                    await send(
                        report_to, f"{update.display} now has {vouch_label(update.count)}."
                    )

        await send(
            report_to,
            "Vouch counts and roles have been updated based on explicit "
            f"@mentions in #{channel.name}.",
        )
        structured_log(
            log,
            logging.INFO,
            "Scan finished",
            channel=channel.id,
            messages=len(messages),
            mentions=mention_count,
            members=len(updates),
            target=target_user_id or "all",
        )
        return ScanResult(
            total_messages=len(messages), mention_count=mention_count, updates=updates
        )
