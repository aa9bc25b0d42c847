"""Human-readable rendering of an offer diff (badge tooltip)."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from offercalc.models import SourceKind
from offercalc.reconciliation.engine import EquipmentChange, OfferDiff


class ItemNames:
    """Resolves item ids to display names, falling back to the id."""

    def __init__(self, names: Mapping[str, str] | None = None):
        self._names = dict(names or {})

    def __call__(self, item_id: str) -> str:
        return self._names.get(item_id) or item_id

    def describe(self, change: EquipmentChange) -> str:
        suffix = " (group)" if change.key.source_kind is SourceKind.GROUP else ""
        return f"{self(change.key.item_id)}{suffix}"


def removals_first(changes: Sequence) -> tuple[list, list]:
    """Split changes into (removals, additions), each largest first."""
    removals = sorted(
        (c for c in changes if c.is_removal), key=lambda c: c.magnitude, reverse=True
    )
    additions = sorted(
        (c for c in changes if c.is_addition), key=lambda c: c.magnitude, reverse=True
    )
    return removals, additions


def _section(title: str, rows: list[str], limit: int, empty: str = "None") -> list[str]:
    lines = [title]
    if not rows:
        lines.append(empty)
    else:
        lines.extend(rows[:limit])
        if len(rows) > limit:
            lines.append(f"…and {len(rows) - limit} more")
    return lines


def describe_diff(
    offer_diff: OfferDiff,
    item_names: ItemNames | None = None,
    limit: int = 8,
) -> list[str]:
    """Tooltip lines enumerating what a sync would add and remove."""
    names = item_names or ItemNames()
    removed_equipment, added_equipment = removals_first(offer_diff.equipment_changes)
    removed_crew, added_crew = removals_first(offer_diff.crew_changes)

    lines: list[str] = []
    lines += _section(
        "Removed from bookings (present now, not in offer)",
        [f"- {names.describe(c)}: -{c.current - c.expected}" for c in removed_equipment],
        limit,
    )
    lines += _section(
        "Added to bookings (in offer, missing now)",
        [f"- {names.describe(c)}: +{c.expected - c.current}" for c in added_equipment],
        limit,
    )
    lines += _section(
        "Crew role changes",
        [
            f"- {c.key.title or 'Crew'}: {c.current} → {c.expected}"
            for c in [*removed_crew, *added_crew]
        ],
        limit,
    )

    if not offer_diff.transport_verifiable:
        lines.append(
            "Transport: cannot be strictly compared (offer does not specify vehicles)."
        )
    else:
        lines.append(f"Transport: {'matches' if offer_diff.transport_matches else 'differs'}")

    return lines
