"""
Source of truth for IDs & tokens
======================================================
Supports **multi‑env** (TEST vs PROD) so you can run the bot in a sandbox
guild first, then flip the env var when you deploy.

Usage
-----
$ export env=TEST  # or PROD (default PROD)
$ python -m vouchbot

* .env (git‑ignored) keeps only secrets *
DISCORD_TOKEN=xxx
APPLICATION_ID=123

Every ID can also be injected via env‑vars if you'd rather not commit them.
Tunables (cap, scan window, pacing) live in ``infra.config.VouchConfig``.
"""
from __future__ import annotations
import os
import logging
from .util import int_env
from dotenv import load_dotenv
load_dotenv()

# ─── Select env ────────────────────────────────────────────────────────────
env = os.getenv("env", "prod").upper()
IS_TEST = env == "TEST"

# ─── Tokens ───────────────────────────────────────────────────────────────
TOKEN = os.getenv("DISCORD_TOKEN")
APPLICATION_ID = int_env("APPLICATION_ID", 0) or None

# ─── Commands ─────────────────────────────────────────────────────────────
COMMAND_PREFIX = os.getenv("COMMAND_PREFIX", "/")
DEFAULT_VOUCH_CHANNEL_NAME = os.getenv("DEFAULT_VOUCH_CHANNEL_NAME", "vouch")

# ─── IDs per environment ──────────────────────────────────────────────────
if IS_TEST:
    # -------- TEST SERVER IDs --------
    GUILD_ID = int_env("GUILD_ID", 0)

    # -------- CHANNELS --------
    VOUCH_CHANNEL_ID = int_env("VOUCH_CHANNEL_ID", 0)
    REPORT_CHANNEL_ID = int_env("REPORT_CHANNEL_ID", 0)

    # -------- ROLES --------
    MOD_ROLE_ID = int_env("MOD_ROLE_ID", 0)
    OWNER_ROLE_ID = int_env("OWNER_ROLE_ID", 0)
    # ----- vouch ladder (ascending)
    ROLE_TIER_DATA = [
        {"role_id": int_env("ROLE_TIER_1", 0), "vouches": 3},
        {"role_id": int_env("ROLE_TIER_2", 0), "vouches": 15},
        {"role_id": int_env("ROLE_TIER_3", 0), "vouches": 30},
    ]

else:
    # -------- PROD SERVER IDs --------
    GUILD_ID = int_env("GUILD_ID", 0)

    # -------- CHANNELS --------
    VOUCH_CHANNEL_ID = int_env("VOUCH_CHANNEL_ID", 1306602749621698560)
    # 0 means "report into the scanned channel"
    REPORT_CHANNEL_ID = int_env("REPORT_CHANNEL_ID", 0)

    # -------- ROLES --------
    MOD_ROLE_ID = int_env("MOD_ROLE_ID", 1306596690903437323)
    OWNER_ROLE_ID = int_env("OWNER_ROLE_ID", 1306596817588191274)
    # ----- vouch ladder (ascending)
    ROLE_TIER_DATA = [
        {"role_id": int_env("ROLE_TIER_1", 1339056153170284576), "vouches": 3},  # Trainer
        {"role_id": int_env("ROLE_TIER_2", 1339056251090243654), "vouches": 15},  # Seasoned Gym Leader
        {"role_id": int_env("ROLE_TIER_3", 1339056315904954471), "vouches": 30},  # Elite 4
    ]

# Helper: convenience log line
logging.getLogger(__name__).info(
    "Loaded %s env for vouch channel %s", env, VOUCH_CHANNEL_ID
)
