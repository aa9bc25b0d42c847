"""Offer vs. booking reconciliation.

Compares the canonical key -> quantity maps of an offer and a job's live
bookings per resource class. A change with current > expected is a removal
(booked, no longer wanted); expected > current is an addition.

Transport is compared as a multiset of vehicle ids. When any offer transport
line has no vehicle the comparison is not verifiable and is treated as
neutral in the verdict. Transport change records are always computed against
the vehicles a sync would actually book, so removals stay visible either way.

Diffs are cheap and must be recomputed, never cached, before a sync.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Hashable, Mapping
from dataclasses import dataclass, field
from typing import Generic, Literal, TypeVar

from offercalc.canonical.keys import CrewKey, EquipmentKey
from offercalc.reconciliation.composition import OfferComposition
from offercalc.reconciliation.snapshot import BookingSnapshot

K = TypeVar("K", bound=Hashable)

SYNCED = "Synced"
NOT_SYNCED = "Not synced"
CHECKING = "Checking…"
NOT_APPLICABLE = "—"


@dataclass(slots=True, frozen=True)
class QuantityChange(Generic[K]):
    key: K
    expected: int
    current: int

    @property
    def is_removal(self) -> bool:
        return self.current > self.expected

    @property
    def is_addition(self) -> bool:
        return self.expected > self.current

    @property
    def magnitude(self) -> int:
        return abs(self.expected - self.current)


EquipmentChange = QuantityChange[EquipmentKey]
CrewChange = QuantityChange[CrewKey]
TransportChange = QuantityChange[str]


@dataclass(slots=True)
class OfferDiff:
    equipment_changes: list[EquipmentChange] = field(default_factory=list)
    crew_changes: list[CrewChange] = field(default_factory=list)
    transport_changes: list[TransportChange] = field(default_factory=list)
    transport_verifiable: bool = True
    transport_matches: bool = True
    expected_vehicle_ids: list[str] | None = None
    current_vehicle_ids: list[str] = field(default_factory=list)

    @property
    def equipment_matches(self) -> bool:
        return not self.equipment_changes

    @property
    def crew_matches(self) -> bool:
        return not self.crew_changes

    @property
    def is_synced(self) -> bool:
        return is_synced(self)

    @property
    def all_changes(self) -> list[QuantityChange]:
        return [*self.equipment_changes, *self.crew_changes, *self.transport_changes]

    @property
    def has_removals(self) -> bool:
        return any(change.is_removal for change in self.all_changes)

    @property
    def reasons(self) -> list[str]:
        reasons = []
        if not self.equipment_matches:
            reasons.append("Equipment differs")
        if not self.crew_matches:
            reasons.append("Crew differs")
        if self.transport_verifiable and not self.transport_matches:
            reasons.append("Transport differs")
        return reasons


def diff_quantities(expected: Mapping[K, int], current: Mapping[K, int]) -> list[QuantityChange[K]]:
    """Change records for every key whose quantities differ (missing == 0)."""
    changes = []
    for key in sorted(set(expected) | set(current), key=str):
        want = expected.get(key, 0)
        have = current.get(key, 0)
        if want != have:
            changes.append(QuantityChange(key=key, expected=want, current=have))
    return changes


def diff(snapshot: BookingSnapshot, composition: OfferComposition) -> OfferDiff:
    """Structural diff between an offer and the job's current bookings.

    Args:
        snapshot: Freshly fetched bookings of the offer's job
        composition: Offer lines with a group lookup for this pass

    Returns:
        OfferDiff with per-class change records and transport verdict
    """
    equipment_changes = diff_quantities(
        composition.expected_equipment(), snapshot.equipment_quantities()
    )
    crew_changes = diff_quantities(composition.expected_crew(), snapshot.crew_quantities())

    current_vehicles = snapshot.vehicle_ids()
    bookable = composition.bookable_vehicle_ids()
    transport_changes = diff_quantities(Counter(bookable), Counter(current_vehicles))

    expected_vehicles = composition.expected_vehicle_ids()
    verifiable = expected_vehicles is not None
    transport_matches = verifiable and expected_vehicles == current_vehicles

    return OfferDiff(
        equipment_changes=equipment_changes,
        crew_changes=crew_changes,
        transport_changes=transport_changes,
        transport_verifiable=verifiable,
        transport_matches=transport_matches,
        expected_vehicle_ids=expected_vehicles,
        current_vehicle_ids=current_vehicles,
    )


def is_synced(offer_diff: OfferDiff) -> bool:
    return (
        not offer_diff.equipment_changes
        and not offer_diff.crew_changes
        and (not offer_diff.transport_verifiable or offer_diff.transport_matches)
    )


@dataclass(slots=True, frozen=True)
class SyncStatus:
    """Badge shown next to an offer."""

    label: str
    tone: Literal["green", "gray"]
    title: str


def sync_status(
    composition: OfferComposition | None,
    snapshot: BookingSnapshot | None,
    *,
    offer_type: str = "technical",
    syncing: bool = False,
    groups_loading: bool = False,
) -> SyncStatus:
    """Resolve the sync badge for an offer.

    Args:
        composition: Offer lines, or None while still loading
        snapshot: Job bookings, or None while still loading
        offer_type: Only technical offers sync to bookings
        syncing: A sync for this offer is in flight
        groups_loading: Group member definitions are still being fetched
    """
    if offer_type != "technical":
        return SyncStatus(NOT_APPLICABLE, "gray", "Only technical offers can sync to bookings.")

    if composition is None or snapshot is None:
        return SyncStatus(CHECKING, "gray", "Refreshing bookings sync status…")

    if syncing:
        return SyncStatus(CHECKING, "gray", "Sync in progress… refreshing status.")

    if composition.needs_group_members and groups_loading:
        return SyncStatus(CHECKING, "gray", "Loading item group definitions…")

    offer_diff = diff(snapshot, composition)

    if offer_diff.is_synced:
        title = (
            "Offer matches current bookings."
            if offer_diff.transport_verifiable
            else "Offer matches current bookings (transport not strictly verifiable)."
        )
        return SyncStatus(SYNCED, "green", title)

    return SyncStatus(
        NOT_SYNCED,
        "gray",
        f"Offer does not match current bookings. {' • '.join(offer_diff.reasons)}",
    )
