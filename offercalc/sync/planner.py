"""Sync planning: what a booking sync would remove, and whether to ask first.

Additions never need confirmation. Any removal (a booking deleted or
shrunk) anywhere in the diff does, and so does replacing booked vehicles
when the offer's transport cannot be compared.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Hashable
from dataclasses import dataclass, field

from offercalc.reconciliation.engine import OfferDiff
from offercalc.reconciliation.report import ItemNames, removals_first

EQUIPMENT = "equipment"
CREW = "crew"
TRANSPORT = "transport"
VEHICLES_AT_RISK = "vehicles_at_risk"

DEFAULT_REMOVAL_SUMMARY_LIMIT = 10

RemovalKey = tuple[str, Hashable]


@dataclass(slots=True)
class SyncPlan:
    removal_summary: dict[str, list[str]] = field(default_factory=dict)
    # (resource class, canonical key) -> units removed; never capped
    removals: dict[RemovalKey, int] = field(default_factory=dict)

    @property
    def requires_confirmation(self) -> bool:
        return bool(self.removals)

    @property
    def removal_lines(self) -> list[str]:
        return [line for lines in self.removal_summary.values() for line in lines]

    def covers(self, other: SyncPlan) -> bool:
        """True when every removal in ``other`` was already approved in this plan.

        Compared per canonical key and amount, so a different vehicle or a
        removal hidden behind "…and N more" is never treated as approved.
        """
        return all(
            self.removals.get(key, 0) >= amount for key, amount in other.removals.items()
        )


def _capped(rows: list[str], limit: int, noun: str) -> list[str]:
    if len(rows) <= limit:
        return rows
    return rows[:limit] + [f"…and {len(rows) - limit} more {noun} removals"]


def plan_sync(
    offer_diff: OfferDiff,
    item_names: ItemNames | None = None,
    limit: int = DEFAULT_REMOVAL_SUMMARY_LIMIT,
) -> SyncPlan:
    """Summarize removals a sync would perform.

    Args:
        offer_diff: Diff computed from a snapshot fetched for this sync
        item_names: Item id -> display name resolver
        limit: Max summary lines per resource class

    Returns:
        SyncPlan; requires_confirmation is True iff anything would be removed
    """
    names = item_names or ItemNames()
    removals: dict[RemovalKey, int] = {}

    removed_equipment, _ = removals_first(offer_diff.equipment_changes)
    equipment_lines = []
    for change in removed_equipment:
        removals[(EQUIPMENT, change.key)] = change.current - change.expected
        equipment_lines.append(
            f"Equipment: {names.describe(change)} (-{change.current - change.expected})"
        )

    removed_crew, _ = removals_first(offer_diff.crew_changes)
    crew_lines = []
    for change in removed_crew:
        removals[(CREW, change.key)] = change.current - change.expected
        crew_lines.append(f"{change.key.title or 'Crew'} ({change.current} → {change.expected})")

    transport_lines = []
    removed_vehicles = 0
    for change in offer_diff.transport_changes:
        if change.is_removal:
            removals[(TRANSPORT, change.key)] = change.current - change.expected
            removed_vehicles += change.current - change.expected
    if removed_vehicles:
        transport_lines.append(f"{removed_vehicles} vehicle booking(s) will be removed/replaced")

    if not offer_diff.transport_verifiable and offer_diff.current_vehicle_ids:
        for vehicle_id, count in Counter(offer_diff.current_vehicle_ids).items():
            removals[(VEHICLES_AT_RISK, vehicle_id)] = count
        transport_lines.append(
            "Transport: existing vehicle bookings may be replaced "
            f"({len(offer_diff.current_vehicle_ids)} current)"
        )

    summary = {
        EQUIPMENT: _capped(equipment_lines, limit, "equipment"),
        CREW: _capped(crew_lines, limit, "crew"),
        TRANSPORT: transport_lines,
    }

    return SyncPlan(removal_summary=summary, removals=removals)
