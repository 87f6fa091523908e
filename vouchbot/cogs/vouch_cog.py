"""
vouch_cog.py – Vouch tracking for the community server
======================================================
Members earn vouches when someone @mentions them in the vouch channel.
Counts climb a ladder of tier roles; a member always holds exactly the
highest tier role their count reaches, or none.

Commands (prefix and slash):
  • vouch @user            – give someone a vouch (not yourself)
  • vouches [@user]        – show a vouch count
  • unvouch @user          – moderators: take one vouch away
  • vouchreset             – moderators: clear every count and tier role
  • vouchwipe              – owner: clear every count and tier role
  • vouchsearch @user [#channel] – owner: rescan history for one member

On startup the bot announces itself in the vouch channel and, unless
SCAN_ON_STARTUP is off, rescans recent history for everyone.

All IDs come from **bot_config.py**; limits and pacing from
``infra.config.VouchConfig``.
"""
from __future__ import annotations

import logging
from typing import Optional

import discord
from discord.ext import commands

from .. import bot_config as cfg
from ..infra.cog_base import StoreAwareCog, log_errors
from ..infra.config import VouchConfig, get_config
from ..infra.pacing import Pacer
from ..util import chan_name, user_name, vouch_label
from ..vouch.errors import ChannelNotFound, GuildNotFound, VouchError
from ..vouch.platform import (
    PAGE_ROUTE,
    ROLE_ROUTE,
    ChannelInfo,
    DiscordPlatform,
    VouchPlatform,
    snapshot_message,
)
from ..vouch.scan import ChannelScanner
from ..vouch.service import TierUpdate, VouchService
from ..vouch.store import VouchStore
from ..vouch.tiers import load_tiers

# Use a hierarchical logger so messages propagate to the main vouchbot logger
log = logging.getLogger(f"vouchbot.{__name__}")

NO_PINGS = discord.AllowedMentions.none()
ROLE_FAILURE_HINT = "There was an issue updating roles. Check bot permissions."


def has_role(member: object, role_id: int) -> bool:
    """Return True if *member* holds *role_id*."""
    if not role_id:
        return False
    return any(getattr(r, "id", None) == role_id for r in getattr(member, "roles", ()))


def describe_update(update: TierUpdate, name: str | None = None) -> str:
    """Human summary of a member's count and any tier role earned."""
    who = name or update.display
    text = f"{who} now has {vouch_label(update.count)}"
    if update.added is not None:
        text += f" and earned the <@&{update.added}> role!"
    else:
        text += "."
    return text


class VouchCog(StoreAwareCog):
    """Counts vouches from mentions and keeps tier roles in sync."""

    def __init__(
        self,
        bot: commands.Bot,
        config: VouchConfig | None = None,
        platform: VouchPlatform | None = None,
        store: VouchStore | None = None,
    ):
        self.config = config if config is not None else get_config()
        if store is None:
            store = VouchStore(self.config.data_file)
        super().__init__(bot, store)
        if platform is None:
            pacer = Pacer(
                {
                    ROLE_ROUTE: self.config.role_mutation_delay,
                    PAGE_ROUTE: self.config.scan_page_delay,
                }
            )
            platform = DiscordPlatform(bot, pacer)
        self.platform = platform
        self.service = VouchService(
            platform,
            self.store,
            load_tiers(cfg.ROLE_TIER_DATA),
            self.config,
            prefix=cfg.COMMAND_PREFIX,
        )
        self.scanner = ChannelScanner(self.service)
        self._startup_done = False

    # ── helpers ───────────────────────────────────────────────────────────
    def _guild_id(self) -> int:
        if cfg.GUILD_ID:
            return cfg.GUILD_ID
        guilds = getattr(self.bot, "guilds", None) or []
        if not guilds:
            raise GuildNotFound()
        return guilds[0].id

    async def resolve_channel(
        self, guild_id: int, channel_id: int | None = None
    ) -> ChannelInfo:
        """Pick the channel to scan.

        An explicit channel wins; otherwise the configured vouch channel,
        then any text channel named like ``DEFAULT_VOUCH_CHANNEL_NAME``.
        """
        for candidate in (channel_id, cfg.VOUCH_CHANNEL_ID):
            if not candidate:
                continue
            info = await self.platform.fetch_channel(candidate)
            if info and info.text_based:
                log.info("Found channel by ID: %s (ID: %s)", info.name, info.id)
                return info
            if channel_id:
                break
        info = await self.platform.find_channel(guild_id, cfg.DEFAULT_VOUCH_CHANNEL_NAME)
        if info:
            log.info("Falling back to default vouch channel: %s (ID: %s)", info.name, info.id)
            return info
        raise ChannelNotFound(
            str(channel_id or cfg.DEFAULT_VOUCH_CHANNEL_NAME),
            self.platform.text_channel_names(guild_id),
        )

    async def _reply(self, ctx: commands.Context, text: str) -> None:
        await ctx.reply(text, allowed_mentions=NO_PINGS)

    async def _require_guild(self, ctx: commands.Context) -> int | None:
        if ctx.guild is None:
            await self._reply(ctx, "This command only works in a server.")
            return None
        return ctx.guild.id

    # ── startup ───────────────────────────────────────────────────────────
    @commands.Cog.listener()
    async def on_ready(self):
        if self._startup_done:
            return
        self._startup_done = True
        await self.startup_scan()

    @log_errors("Startup scan failed")
    async def startup_scan(self) -> None:
        """Announce in the vouch channel and rescan it when enabled."""
        try:
            guild_id = self._guild_id()
        except GuildNotFound:
            log.error("No guild found. Ensure the bot is in a server.")
            return
        try:
            channel = await self.resolve_channel(guild_id)
        except VouchError as exc:
            log.error("Failed to send startup message: %s", exc)
            return
        await self.platform.send(
            channel.id,
            "Vouch Bot is online and ready to track vouches based on explicit @mentions!",
        )
        if not self.config.scan_on_startup:
            return
        try:
            await self.scanner.scan(
                channel, guild_id, report_channel_id=cfg.REPORT_CHANNEL_ID or None
            )
        except VouchError as exc:
            log.error("Failed to process mentions in channel %s: %s", channel.id, exc)
            await self.platform.send(
                cfg.REPORT_CHANNEL_ID or channel.id,
                f"There was an issue searching for vouches: {exc}",
            )

    # ── live mentions ─────────────────────────────────────────────────────
    @commands.Cog.listener()
    @log_errors("Failed to credit vouch mentions")
    async def on_message(self, message: discord.Message):
        if message.author.bot or message.guild is None:
            return
        if message.channel.id != cfg.VOUCH_CHANNEL_ID:
            return
        updates = await self.service.credit_mentions(
            message.guild.id, snapshot_message(message)
        )
        for update in updates:
            if not update.member_found:
                continue
            # Below the first tier a mention is counted silently.
            if update.role_id is not None:
                await message.channel.send(describe_update(update), allowed_mentions=NO_PINGS)
            if update.failures:
                await message.channel.send(ROLE_FAILURE_HINT)

    # ── commands ──────────────────────────────────────────────────────────
    @commands.hybrid_command(name="vouch", description="Give a member a vouch")
    async def vouch(self, ctx: commands.Context, user: discord.Member):
        log.info("vouch invoked by %s for %s in %s", user_name(ctx.author), user_name(user), chan_name(ctx.channel))
        guild_id = await self._require_guild(ctx)
        if guild_id is None:
            return
        try:
            update = await self.service.vouch(guild_id, ctx.author.id, user.id)
        except VouchError as exc:
            await self._reply(ctx, str(exc))
            return
        except Exception:
            log.exception("Failed to update roles for %s", user_name(user))
            await self._reply(ctx, ROLE_FAILURE_HINT)
            return
        await ctx.send(describe_update(update, str(user)), allowed_mentions=NO_PINGS)
        if update.failures:
            await ctx.send(ROLE_FAILURE_HINT)

    @commands.hybrid_command(name="vouches", description="Show how many vouches a member has")
    async def vouches(self, ctx: commands.Context, user: Optional[discord.Member] = None):
        target = user or ctx.author
        count = self.service.count_for(target.id)
        await self._reply(
            ctx, f"{target} has {vouch_label(count)}, based on explicit @mentions."
        )

    @commands.hybrid_command(name="unvouch", description="Moderators: remove one vouch")
    async def unvouch(self, ctx: commands.Context, user: discord.Member):
        if not has_role(ctx.author, cfg.MOD_ROLE_ID):
            await self._reply(ctx, "Only moderators can use this command.")
            return
        guild_id = await self._require_guild(ctx)
        if guild_id is None:
            return
        log.info("unvouch invoked by %s for %s", user_name(ctx.author), user_name(user))
        try:
            update = await self.service.unvouch(guild_id, user.id)
        except VouchError as exc:
            await self._reply(ctx, str(exc))
            return
        except Exception:
            log.exception("Failed to update roles for %s during unvouch", user_name(user))
            await self._reply(ctx, ROLE_FAILURE_HINT)
            return
        await ctx.send(describe_update(update, str(user)), allowed_mentions=NO_PINGS)
        if update.failures:
            await ctx.send(ROLE_FAILURE_HINT)

    async def _clear(self, ctx: commands.Context, wipe: bool) -> None:
        guild_id = await self._require_guild(ctx)
        if guild_id is None:
            return
        await ctx.defer()
        try:
            if wipe:
                report = await self.service.wipe(guild_id)
            else:
                report = await self.service.reset(guild_id)
        except Exception:
            log.exception("Failed to %s vouches and roles", "wipe" if wipe else "reset")
            await ctx.send(
                f"There was an issue {'wiping' if wipe else 'resetting'} vouches and roles. "
                "Check bot permissions."
            )
            return
        if wipe:
            await ctx.send("All vouch counts and roles have been wiped.")
        else:
            await ctx.send("All vouch counts and roles have been reset to 0.")
        if report.failures:
            await ctx.send(
                f"{len(report.failures)} role removals failed. Check bot permissions."
            )

    @commands.hybrid_command(name="vouchreset", description="Moderators: reset all vouches")
    async def vouchreset(self, ctx: commands.Context):
        if not has_role(ctx.author, cfg.MOD_ROLE_ID):
            await self._reply(ctx, "Only moderators can use this command.")
            return
        log.info("vouchreset invoked by %s", user_name(ctx.author))
        await self._clear(ctx, wipe=False)

    @commands.hybrid_command(name="vouchwipe", description="Owner: wipe all vouch data")
    async def vouchwipe(self, ctx: commands.Context):
        if not has_role(ctx.author, cfg.OWNER_ROLE_ID):
            await self._reply(ctx, "Only the owner can use this command.")
            return
        log.info("vouchwipe invoked by %s", user_name(ctx.author))
        await self._clear(ctx, wipe=True)

    @commands.hybrid_command(
        name="vouchsearch", description="Owner: rescan channel history for one member"
    )
    async def vouchsearch(
        self,
        ctx: commands.Context,
        user: discord.Member,
        channel: Optional[discord.TextChannel] = None,
    ):
        if not has_role(ctx.author, cfg.OWNER_ROLE_ID):
            await self._reply(ctx, "Only the owner can use this command.")
            return
        guild_id = await self._require_guild(ctx)
        if guild_id is None:
            return
        log.info(
            "vouchsearch invoked by %s for %s in %s",
            user_name(ctx.author),
            user_name(user),
            chan_name(channel),
        )
        await ctx.defer()
        try:
            info = await self.resolve_channel(guild_id, channel.id if channel else None)
            await self.scanner.scan(
                info,
                guild_id,
                target_user_id=user.id,
                report_channel_id=cfg.REPORT_CHANNEL_ID or None,
            )
        except VouchError as exc:
            log.error("Failed to search vouches: %s", exc)
            await self._reply(
                ctx,
                f"There was an issue searching for vouches: {exc} Check bot permissions, "
                "channel access, or ensure the channel/user is correct.",
            )
            return
        except Exception as exc:
            log.exception("vouchsearch failed for %s", user_name(user))
            await self._reply(ctx, f"There was an issue searching for vouches: {exc}")
            return
        await ctx.send(
            f"Vouch counts and roles for {user} have been updated based on "
            f"explicit @mentions in #{info.name}.",
            allowed_mentions=NO_PINGS,
        )


async def setup(bot: commands.Bot):
    await bot.add_cog(VouchCog(bot))
