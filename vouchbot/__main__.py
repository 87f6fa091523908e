"""Entry point to run the Vouchbot Discord bot."""
import asyncio
import logging
import os
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

import discord
from discord.ext import commands

from . import bot_config as cfg
from .infra.config import get_config
from .infra.logging import ErrorLogFormatter

# ─── Logging Setup ─────────────────────────────────────────────────────────
logger = logging.getLogger("vouchbot")
log_format = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
root_logger = logging.getLogger()
console_handler = logging.StreamHandler()
console_handler.setFormatter(log_format)


def configure_logging() -> int:
    """Apply LOG_LEVEL to the root logger and attach the console handler.

    Safe to call more than once. Returns the level in effect.
    """
    level_name = os.getenv("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, None)
    if not isinstance(level, int):
        level = logging.INFO
    root_logger.setLevel(level)
    logger.setLevel(level)
    # Console stays at INFO or above even when file logging is DEBUG
    console_handler.setLevel(max(level, logging.INFO))
    if console_handler not in root_logger.handlers:
        root_logger.addHandler(console_handler)
    return level


def error_log_handler(path: str) -> logging.Handler:
    """Append-only ``<timestamp> - <message>`` log of every failure."""
    handler = logging.FileHandler(path, mode="a", encoding="utf-8")
    handler.setLevel(logging.ERROR)
    handler.setFormatter(ErrorLogFormatter())
    return handler


def bot_log_handler(log_dir: Path) -> logging.Handler:
    """Full log at the configured level, rotated at midnight, 90 days kept."""
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = TimedRotatingFileHandler(
        log_dir / "bot.log", when="midnight", backupCount=90, encoding="utf-8"
    )
    handler.setFormatter(log_format)
    return handler


configure_logging()
logger.info("Starting Vouchbot in %s environment", getattr(cfg, "env", "PROD"))

intents = discord.Intents.default()
intents.message_content = True
intents.members = True  # member snapshots and role checks need this


class VouchBot(commands.Bot):
    async def setup_hook(self) -> None:
        # Load cogs bundled with the package
        cog_dir = Path(__file__).resolve().parent / "cogs"
        for file in sorted(cog_dir.glob("*_cog.py")):
            await self.load_extension(f"vouchbot.cogs.{file.stem}")


bot = VouchBot(
    command_prefix=cfg.COMMAND_PREFIX,
    intents=intents,
    application_id=cfg.APPLICATION_ID,
)

_synced = False


@bot.event
async def on_ready() -> None:
    global _synced
    logger.info("Logged in as %s", bot.user)
    if bot.user:
        logger.info(
            "Invite Link: https://discord.com/api/oauth2/authorize?client_id=%s"
            "&permissions=268454912&scope=bot%%20applications.commands",
            bot.user.id,
        )
    if not _synced:
        try:
            cmds = await bot.tree.sync()
            logger.info("Synced %d commands.", len(cmds))
            _synced = True
        except Exception as e:
            logger.exception("Failed to sync commands: %s", e)


@bot.event
async def on_error(event: str, *args, **kwargs) -> None:
    logger.exception("Unhandled exception in event %s", event)


@bot.event
async def on_command_error(
    ctx: commands.Context, exc: commands.CommandError
) -> None:
    if isinstance(exc, commands.CommandNotFound):
        return
    if isinstance(exc, commands.UserInputError):
        await ctx.reply(f"{exc} Usage: {ctx.prefix}{ctx.command} {ctx.command.signature}")
        return
    logger.exception("Error in command '%s'", getattr(ctx.command, 'name', 'unknown'), exc_info=exc)
    await ctx.reply("An error occurred.")


@bot.tree.error
async def on_app_command_error(
    interaction: discord.Interaction, exc: discord.app_commands.AppCommandError
) -> None:
    cmd_name = getattr(interaction.command, "name", "unknown")
    logger.exception("Error in slash command '%s'", cmd_name, exc_info=exc)
    if interaction.response.is_done():
        await interaction.followup.send("An error occurred.", ephemeral=True)
    else:
        await interaction.response.send_message("An error occurred.", ephemeral=True)


def _handle_loop_exception(loop: asyncio.AbstractEventLoop, context: dict) -> None:
    exc = context.get("exception")
    logger.error(
        "Uncaught error in background task: %s",
        context.get("message", "unknown"),
        exc_info=exc,
    )


async def main() -> int:
    config = get_config()
    err_handler = error_log_handler(config.error_log_file)
    root_logger.addHandler(err_handler)
    try:
        return await _run_bot()
    finally:
        root_logger.removeHandler(err_handler)
        err_handler.close()


async def _run_bot() -> int:
    if not cfg.TOKEN:
        logger.error("DISCORD_TOKEN is missing in environment variables.")
        return 1

    asyncio.get_running_loop().set_exception_handler(_handle_loop_exception)

    file_handler = bot_log_handler(Path("logs"))
    root_logger.addHandler(file_handler)

    try:
        async with bot:
            await bot.start(cfg.TOKEN)
    except discord.LoginFailure as exc:
        logger.error("Failed to login. Please check your DISCORD_TOKEN: %s", exc)
        return 1
    finally:
        root_logger.removeHandler(file_handler)
        file_handler.close()
    return 0


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
