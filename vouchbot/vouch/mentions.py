"""Mention extraction for vouch messages."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable

# <@123> or <@!123>; role (<@&id>) and channel (<#id>) tokens never match.
USER_MENTION_RE = re.compile(r"<@!?(\d+)>")


@dataclass(frozen=True)
class MessageSnapshot:
    """The parts of a chat message the vouch core reads."""

    id: int
    author_id: int
    content: str = ""
    mention_ids: tuple[int, ...] = field(default_factory=tuple)
    author_bot: bool = False


def extract_mentions(text: str | None, structured_ids: Iterable[int] = ()) -> set[int]:
    """Return every user id mentioned by a message, each at most once.

    ``structured_ids`` is the platform's own parsed mention list; the raw
    text is scanned as well so tokens the platform did not resolve still
    count.
    """
    found = {int(uid) for uid in structured_ids}
    if text:
        found.update(int(m) for m in USER_MENTION_RE.findall(text))
    return found


def is_countable(
    message: MessageSnapshot,
    prefix: str | None = None,
    count_command_messages: bool = False,
) -> bool:
    """Return False for bot-authored messages and, by default, commands."""
    if message.author_bot:
        return False
    if prefix and not count_command_messages and message.content.startswith(prefix):
        return False
    return True


def mentions_in(
    message: MessageSnapshot,
    prefix: str | None = None,
    count_command_messages: bool = False,
) -> set[int]:
    """Mentions that earn a vouch, or an empty set for excluded messages."""
    if not is_countable(message, prefix, count_command_messages):
        return set()
    return extract_mentions(message.content, message.mention_ids)
