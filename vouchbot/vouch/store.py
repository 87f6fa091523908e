"""JSON-file backed vouch counter store.

The file holds a JSON array of ``[user_id, count]`` pairs with user ids as
decimal strings, e.g. ``[["1234", 3], ["5678", 17]]``. It is rewritten
wholesale after every logical mutation.
"""
from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Iterator

log = logging.getLogger(f"vouchbot.{__name__}")


class VouchStore:
    """In-memory vouch counts with load/save to a JSON file.

    Mutating callers hold :attr:`lock` for the whole logical operation so a
    long scan and a command cannot interleave their read-modify-save cycles.
    The mutators themselves never await.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self.counts: dict[int, int] = {}
        self.lock = asyncio.Lock()

    # ── persistence ───────────────────────────────────────────────────────
    def load(self) -> "VouchStore":
        """Replace the in-memory counts with the file's contents.

        A missing or unreadable file yields an empty store.
        """
        self.counts = {}
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            log.info("No vouch data found at %s, starting fresh", self.path)
            return self
        except OSError as exc:
            log.warning("Could not read vouch data %s: %s; starting fresh", self.path, exc)
            return self

        try:
            pairs = json.loads(raw)
        except json.JSONDecodeError as exc:
            log.warning("Corrupt vouch data in %s: %s; starting fresh", self.path, exc)
            return self
        if not isinstance(pairs, list):
            log.warning("Vouch data in %s is not a list; starting fresh", self.path)
            return self

        for pair in pairs:
            try:
                user_id, count = pair
                user_id, count = int(user_id), int(count)
            except (TypeError, ValueError):
                log.warning("Skipping malformed vouch entry %r", pair)
                continue
            if count < 0:
                log.warning("Skipping negative vouch count for %s", user_id)
                continue
            self.counts[user_id] = count
        log.info("Loaded %d vouch entries from %s", len(self.counts), self.path)
        return self

    def save(self) -> bool:
        """Write all counts to disk, replacing the previous file.

        A failed write is logged and reported by returning False; the
        in-memory counts stay authoritative and the next save retries.
        """
        pairs = [[str(uid), count] for uid, count in self.counts.items()]
        tmp = self.path.with_name(f"{self.path.name}.tmp")
        try:
            if self.path.parent != Path("."):
                self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(pairs), encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError as exc:
            log.error("Failed to save vouch data to %s: %s", self.path, exc)
            return False
        log.debug("Saved %d vouch entries to %s", len(pairs), self.path)
        return True

    # ── reads ─────────────────────────────────────────────────────────────
    def get(self, user_id: int) -> int:
        return self.counts.get(user_id, 0)

    def items(self) -> list[tuple[int, int]]:
        """Snapshot of ``(user_id, count)`` pairs."""
        return list(self.counts.items())

    def __len__(self) -> int:
        return len(self.counts)

    def __contains__(self, user_id: object) -> bool:
        return user_id in self.counts

    def __iter__(self) -> Iterator[int]:
        return iter(list(self.counts))

    # ── mutations ─────────────────────────────────────────────────────────
    def increment(self, user_id: int, cap: int | None = None) -> bool:
        """Add one vouch unless *cap* is reached. Return True if counted."""
        current = self.counts.get(user_id, 0)
        if cap is not None and current >= cap:
            return False
        self.counts[user_id] = current + 1
        return True

    def decrement(self, user_id: int) -> bool:
        """Remove one vouch, never going below zero. Return True if removed."""
        current = self.counts.get(user_id, 0)
        if current <= 0:
            return False
        self.counts[user_id] = current - 1
        return True

    def clear(self) -> list[int]:
        """Drop every count and return the user ids that had one."""
        cleared = list(self.counts)
        self.counts.clear()
        return cleared
