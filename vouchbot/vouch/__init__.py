"""Vouch tracking core: counts, mention extraction, tiers and scans."""
from .errors import (
    ChannelNotFound,
    GuildNotFound,
    MemberNotFound,
    MissingPermissions,
    NothingToRemove,
    ScanError,
    SelfVouchError,
    VouchCapReached,
    VouchError,
)
from .mentions import MessageSnapshot, extract_mentions, is_countable, mentions_in
from .platform import ChannelInfo, DiscordPlatform, MemberInfo, VouchPlatform
from .scan import ChannelScanner, ScanResult
from .service import ClearReport, MutationOutcome, TierUpdate, VouchService
from .store import VouchStore
from .tiers import RoleChange, Tier, load_tiers, reconcile, resolve_tier

__all__ = [
    # Errors
    "ChannelNotFound",
    "GuildNotFound",
    "MemberNotFound",
    "MissingPermissions",
    "NothingToRemove",
    "ScanError",
    "SelfVouchError",
    "VouchCapReached",
    "VouchError",
    # Mentions
    "MessageSnapshot",
    "extract_mentions",
    "is_countable",
    "mentions_in",
    # Platform
    "ChannelInfo",
    "DiscordPlatform",
    "MemberInfo",
    "VouchPlatform",
    # Scan
    "ChannelScanner",
    "ScanResult",
    # Service
    "ClearReport",
    "MutationOutcome",
    "TierUpdate",
    "VouchService",
    # Store
    "VouchStore",
    # Tiers
    "RoleChange",
    "Tier",
    "load_tiers",
    "reconcile",
    "resolve_tier",
]
