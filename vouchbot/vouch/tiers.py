"""Vouch tier ladder: resolve a count to a role and plan role changes."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence


@dataclass(frozen=True)
class Tier:
    role_id: int
    required: int


@dataclass(frozen=True)
class RoleChange:
    """Role mutations needed to converge a member onto one tier role."""

    to_add: int | None
    to_remove: tuple[int, ...] = ()

    @property
    def is_noop(self) -> bool:
        return self.to_add is None and not self.to_remove


def load_tiers(data: Iterable[Mapping[str, Any] | Tier]) -> tuple[Tier, ...]:
    """Build an ascending tier tuple from config entries.

    Entries are ``{"role_id": ..., "vouches": ...}`` mappings or ``Tier``
    objects. The sort is stable so equal thresholds keep config order.
    """
    tiers = []
    for entry in data:
        if isinstance(entry, Tier):
            tiers.append(entry)
        else:
            tiers.append(Tier(role_id=int(entry["role_id"]), required=int(entry["vouches"])))
    return tuple(sorted(tiers, key=lambda t: t.required))


def resolve_tier(count: int, tiers: Sequence[Tier]) -> Tier | None:
    """Return the highest tier whose threshold *count* meets, else None.

    *tiers* must be ascending. When thresholds coincide the later entry wins.
    """
    resolved = None
    for tier in tiers:
        if tier.required <= count:
            resolved = tier
    return resolved


def reconcile(
    current_roles: Iterable[int],
    resolved: Tier | None,
    tier_role_ids: Sequence[int],
) -> RoleChange:
    """Plan the removals and addition that leave exactly *resolved* held.

    Every held tier role other than the resolved one is removed, in ladder
    order. Roles outside the ladder are never touched.
    """
    held = set(current_roles)
    keep = resolved.role_id if resolved else None
    to_remove = []
    for role_id in tier_role_ids:
        if role_id in held and role_id != keep and role_id not in to_remove:
            to_remove.append(role_id)
    to_add = keep if keep is not None and keep not in held else None
    return RoleChange(to_add=to_add, to_remove=tuple(to_remove))
