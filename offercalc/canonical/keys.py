"""Reconciliation keys for matching offer lines against live bookings.

Key construction:
- equipment: (source_kind, source_group_id or "", item_id)
- crew: (trimmed title, start, end)
- transport: bare vehicle id, compared as an order-insensitive multiset

Quantity maps are pruned of zero entries so a missing key and a key with
quantity 0 compare equal.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import NamedTuple, TypeVar

from offercalc.models import SourceKind

K = TypeVar("K")


class EquipmentKey(NamedTuple):
    source_kind: SourceKind
    source_group_id: str
    item_id: str

    @classmethod
    def direct(cls, item_id: str) -> EquipmentKey:
        return cls(SourceKind.DIRECT, "", item_id)

    @classmethod
    def grouped(cls, group_id: str, item_id: str) -> EquipmentKey:
        return cls(SourceKind.GROUP, group_id, item_id)

    @property
    def group_id(self) -> str | None:
        return self.source_group_id or None

    def __str__(self) -> str:
        return f"{self.source_kind.value}:{self.source_group_id}:{self.item_id}"


class CrewKey(NamedTuple):
    title: str
    start_at: datetime
    end_at: datetime

    def __str__(self) -> str:
        return f"{self.title}__{self.start_at.isoformat()}__{self.end_at.isoformat()}"


def normalize_title(title: str | None) -> str:
    """Trim a crew title; None becomes an empty string."""
    return title.strip() if title else ""


def normalize_instant(value: datetime) -> datetime:
    """Express a timestamp as naive UTC so aware and stored values compare."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def crew_key(title: str | None, start: datetime, end: datetime) -> CrewKey | None:
    """Build a crew key, or None for untitled rows that cannot be matched."""
    trimmed = normalize_title(title)
    if not trimmed:
        return None
    return CrewKey(trimmed, normalize_instant(start), normalize_instant(end))


def prune_zero(quantities: Mapping[K, int]) -> dict[K, int]:
    return {key: qty for key, qty in quantities.items() if qty}


def tally(entries: Iterable[tuple[K, int]]) -> dict[K, int]:
    """Sum quantities per key and drop keys that end at zero."""
    totals: Counter[K] = Counter()
    for key, qty in entries:
        totals[key] += qty
    return prune_zero(totals)
