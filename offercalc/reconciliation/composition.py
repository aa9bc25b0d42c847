"""Declared offer lines, shaped for reconciliation and booking generation.

Group lines are expanded through an injected GroupMembershipLookup so that a
group booked from the offer and the offer itself produce identical keys:
("group", group_id, member_item_id) with quantity member_qty * line_qty.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field

from offercalc.canonical.keys import CrewKey, EquipmentKey, crew_key, tally
from offercalc.models import (
    CompanyPricingConfig,
    CrewLine,
    EquipmentGroup,
    EquipmentLine,
    OfferHeader,
    OfferTotals,
    SourceKind,
    TransportLine,
)
from offercalc.pricing.engine import compute_totals
from offercalc.reconciliation.snapshot import CrewPeriod, ReservedEquipment

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class GroupMember:
    item_id: str
    quantity: int = 1


GroupLoader = Callable[[Sequence[str]], Mapping[str, Sequence[GroupMember]]]


class GroupMembershipLookup:
    """Memoizing group id -> members lookup.

    Create one per reconciliation pass; results are cached for the life of
    the instance only. Unknown groups resolve to no members.
    """

    def __init__(
        self,
        members: Mapping[str, Sequence[GroupMember]] | None = None,
        loader: GroupLoader | None = None,
    ):
        self._cache: dict[str, list[GroupMember]] = {
            group_id: list(rows) for group_id, rows in (members or {}).items()
        }
        self._loader = loader

    def prefetch(self, group_ids: Iterable[str]) -> None:
        """Load all uncached groups in one loader call."""
        missing = sorted({gid for gid in group_ids if gid and gid not in self._cache})
        if not missing or self._loader is None:
            return
        loaded = self._loader(missing)
        for group_id in missing:
            self._cache[group_id] = list(loaded.get(group_id, ()))

    def members(self, group_id: str) -> list[GroupMember]:
        if group_id not in self._cache:
            self.prefetch([group_id])
        if group_id not in self._cache:
            logger.debug("No members known for item group %s", group_id)
            return []
        return self._cache[group_id]


@dataclass(slots=True)
class OfferComposition:
    """Read-only view of what an offer declares."""

    header: OfferHeader
    equipment_groups: list[EquipmentGroup] = field(default_factory=list)
    crew_lines: list[CrewLine] = field(default_factory=list)
    transport_lines: list[TransportLine] = field(default_factory=list)
    groups: GroupMembershipLookup = field(default_factory=GroupMembershipLookup)

    @property
    def offer_id(self) -> str:
        return self.header.offer_id

    @property
    def job_id(self) -> str:
        return self.header.job_id

    @property
    def equipment_lines(self) -> list[EquipmentLine]:
        return [line for group in self.equipment_groups for line in group.lines]

    @property
    def group_ids(self) -> list[str]:
        return sorted({line.group_id for line in self.equipment_lines if line.group_id})

    @property
    def needs_group_members(self) -> bool:
        return bool(self.group_ids)

    def expanded_equipment(self) -> list[ReservedEquipment]:
        """Equipment reservations the offer implies, group lines expanded."""
        self.groups.prefetch(self.group_ids)
        rows: list[ReservedEquipment] = []
        for line in self.equipment_lines:
            if line.item_id:
                rows.append(ReservedEquipment(line.item_id, line.quantity))
                continue
            for member in self.groups.members(line.group_id):
                rows.append(
                    ReservedEquipment(
                        item_id=member.item_id,
                        quantity=(member.quantity or 1) * max(0, line.quantity),
                        source_kind=SourceKind.GROUP,
                        source_group_id=line.group_id,
                    )
                )
        return rows

    def expected_equipment(self) -> dict[EquipmentKey, int]:
        return tally((row.key, row.quantity) for row in self.expanded_equipment())

    def crew_periods(self) -> list[CrewPeriod]:
        """Crew periods the offer implies, one per titled crew line."""
        return [
            CrewPeriod(
                title=line.role_title.strip(),
                start_at=line.start_date,
                end_at=line.end_date,
                needed_count=line.crew_count,
                role_category=line.role_category,
            )
            for line in self.crew_lines
            if line.role_title.strip()
        ]

    def expected_crew(self) -> dict[CrewKey, int]:
        entries = []
        for line in self.crew_lines:
            key = crew_key(line.role_title, line.start_date, line.end_date)
            if key is not None:
                entries.append((key, line.crew_count))
        return tally(entries)

    def bookable_vehicle_ids(self) -> list[str]:
        """Vehicle ids a sync would book, sorted (lines without a vehicle skipped)."""
        return sorted(line.vehicle_id for line in self.transport_lines if line.vehicle_id)

    @property
    def transport_verifiable(self) -> bool:
        return all(line.vehicle_id for line in self.transport_lines)

    def expected_vehicle_ids(self) -> list[str] | None:
        """Sorted vehicle ids, or None when any transport line has no vehicle."""
        if not self.transport_verifiable:
            return None
        return self.bookable_vehicle_ids()

    def totals(self, company: CompanyPricingConfig | None = None) -> OfferTotals:
        company = company or CompanyPricingConfig()
        return compute_totals(
            self.equipment_lines,
            self.crew_lines,
            self.transport_lines,
            days_of_use=self.header.days_of_use,
            discount_percent=self.header.discount_percent,
            vat_percent=self.header.vat_percent,
            rental_table=company.rental_factor_table,
            transport_defaults=company.transport_defaults(),
        )
