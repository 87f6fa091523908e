"""Vouch bookkeeping: counts in, tier roles out.

``VouchService`` owns every write to the :class:`VouchStore`. Each public
mutator takes the store lock, changes counts, saves, then brings the affected
members' tier roles in line through :meth:`VouchService.apply_tier`.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

from ..infra.config import VouchConfig
from .errors import MemberNotFound, NothingToRemove, SelfVouchError, VouchCapReached
from .mentions import MessageSnapshot, mentions_in
from .platform import MemberInfo, VouchPlatform
from .store import VouchStore
from .tiers import RoleChange, Tier, reconcile, resolve_tier

log = logging.getLogger(f"vouchbot.{__name__}")

ADD = "add"
REMOVE = "remove"


@dataclass(frozen=True)
class MutationOutcome:
    """Result of one add/remove role call."""

    user_id: int
    role_id: int
    action: str
    ok: bool = True
    error: str | None = None


@dataclass
class TierUpdate:
    """What happened when one member's tier roles were reconciled."""

    user_id: int
    count: int
    role_id: int | None = None
    tag: str | None = None
    member_found: bool = True
    outcomes: list[MutationOutcome] = field(default_factory=list)

    @property
    def added(self) -> int | None:
        for o in self.outcomes:
            if o.action == ADD and o.ok:
                return o.role_id
        return None

    @property
    def removed(self) -> list[int]:
        return [o.role_id for o in self.outcomes if o.action == REMOVE and o.ok]

    @property
    def failures(self) -> list[MutationOutcome]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def display(self) -> str:
        return self.tag or f"<@{self.user_id}>"


@dataclass
class ClearReport:
    """Result of a reset or wipe."""

    cleared_users: int
    members_touched: int = 0
    outcomes: list[MutationOutcome] = field(default_factory=list)

    @property
    def failures(self) -> list[MutationOutcome]:
        return [o for o in self.outcomes if not o.ok]


class VouchService:
    """Direct vouch operations plus the shared resolve-and-reconcile step."""

    def __init__(
        self,
        platform: VouchPlatform,
        store: VouchStore,
        tiers: Sequence[Tier],
        config: VouchConfig,
        prefix: str | None = None,
    ) -> None:
        self.platform = platform
        self.store = store
        self.tiers = tuple(tiers)
        self.tier_role_ids = tuple(t.role_id for t in self.tiers)
        self.config = config
        self.prefix = prefix

    # ── role reconciliation ───────────────────────────────────────────────
    async def _mutate(
        self, guild_id: int, user_id: int, role_id: int, action: str, reason: str
    ) -> MutationOutcome:
        call = self.platform.add_role if action == ADD else self.platform.remove_role
        try:
            await call(guild_id, user_id, role_id, reason=reason)
        except Exception as exc:
            # One failed call must not stop the member's other roles or the
            # other members; the outcome carries the failure instead.
            log.error("Failed to %s role %s for %s: %s", action, role_id, user_id, exc)
            return MutationOutcome(user_id, role_id, action, ok=False, error=str(exc))
        log.info("%s role %s for %s", "Added" if action == ADD else "Removed", role_id, user_id)
        return MutationOutcome(user_id, role_id, action)

    async def execute(
        self, guild_id: int, user_id: int, change: RoleChange, reason: str
    ) -> list[MutationOutcome]:
        """Apply *change*: every removal first, then the addition."""
        outcomes = []
        for role_id in change.to_remove:
            outcomes.append(await self._mutate(guild_id, user_id, role_id, REMOVE, reason))
        if change.to_add is not None:
            outcomes.append(await self._mutate(guild_id, user_id, change.to_add, ADD, reason))
        return outcomes

    async def apply_tier(
        self,
        guild_id: int,
        user_id: int,
        member: MemberInfo | None = None,
        reason: str = "Vouch tier update",
    ) -> TierUpdate:
        """Make *user_id*'s tier roles match their current count.

        Does not take the store lock; callers that mutate counts already hold
        it.
        """
        count = self.store.get(user_id)
        resolved = resolve_tier(count, self.tiers)
        update = TierUpdate(
            user_id=user_id,
            count=count,
            role_id=resolved.role_id if resolved else None,
        )
        if member is None:
            member = await self.platform.get_member(guild_id, user_id)
        if member is None:
            update.member_found = False
            log.info("Skipping tier update for %s: not in guild", user_id)
            return update
        update.tag = member.tag
        change = reconcile(member.role_ids, resolved, self.tier_role_ids)
        if not change.is_noop:
            update.outcomes = await self.execute(guild_id, user_id, change, reason)
        return update

    # ── direct commands ───────────────────────────────────────────────────
    def count_for(self, user_id: int) -> int:
        return self.store.get(user_id)

    async def vouch(self, guild_id: int, voucher_id: int, target_id: int) -> TierUpdate:
        """Credit one vouch from *voucher_id* to *target_id*."""
        if voucher_id == target_id:
            raise SelfVouchError()
        async with self.store.lock:
            member = await self.platform.get_member(guild_id, target_id)
            if member is None:
                raise MemberNotFound(target_id)
            if not self.store.increment(target_id, self.config.vouch_cap):
                raise VouchCapReached(target_id, self.config.vouch_cap)
            self.store.save()
            log.info("%s vouched for %s (now %d)", voucher_id, target_id, self.store.get(target_id))
            return await self.apply_tier(guild_id, target_id, member, reason="Vouch received")

    async def unvouch(self, guild_id: int, target_id: int) -> TierUpdate:
        """Remove one vouch from *target_id*; the count never drops below 0."""
        async with self.store.lock:
            if not self.store.decrement(target_id):
                raise NothingToRemove(target_id)
            self.store.save()
            log.info("Removed a vouch from %s (now %d)", target_id, self.store.get(target_id))
            return await self.apply_tier(guild_id, target_id, reason="Vouch removed")

    async def _clear(self, guild_id: int, reason: str) -> ClearReport:
        async with self.store.lock:
            cleared = self.store.clear()
            self.store.save()
            report = ClearReport(cleared_users=len(cleared))
            members = await self.platform.members_with_roles(guild_id, self.tier_role_ids)
            for member in members:
                change = reconcile(member.role_ids, None, self.tier_role_ids)
                if change.is_noop:
                    continue
                report.members_touched += 1
                report.outcomes += await self.execute(guild_id, member.id, change, reason)
        log.info(
            "%s: cleared %d counts, stripped tier roles from %d members (%d failures)",
            reason,
            report.cleared_users,
            report.members_touched,
            len(report.failures),
        )
        return report

    async def reset(self, guild_id: int) -> ClearReport:
        """Moderator reset: every count back to zero and tier roles stripped."""
        return await self._clear(guild_id, "Vouch reset")

    async def wipe(self, guild_id: int) -> ClearReport:
        """Owner wipe: same effect as reset, kept separate for its gate."""
        return await self._clear(guild_id, "Vouch wipe")

    # ── live mentions ─────────────────────────────────────────────────────
    async def credit_mentions(self, guild_id: int, message: MessageSnapshot) -> list[TierUpdate]:
        """Credit every member explicitly mentioned by a live vouch message."""
        mentioned = mentions_in(message, self.prefix, self.config.count_command_messages)
        if not mentioned:
            return []
        async with self.store.lock:
            credited: list[MemberInfo] = []
            for user_id in sorted(mentioned):
                member = await self.platform.get_member(guild_id, user_id)
                if member is None:
                    log.info("Ignoring mention of %s: not in guild", user_id)
                    continue
                if not self.store.increment(user_id, self.config.vouch_cap):
                    log.info("%s is at the vouch cap; mention not counted", user_id)
                    continue
                log.info("Mention of %s by %s counted as a vouch", user_id, message.author_id)
                credited.append(member)
            if not credited:
                return []
            self.store.save()
            return [
                await self.apply_tier(guild_id, m.id, m, reason="Vouch mention")
                for m in credited
            ]
