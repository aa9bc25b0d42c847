"""Live bookings of a job, shaped for reconciliation."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from offercalc.canonical.keys import CrewKey, EquipmentKey, crew_key, tally
from offercalc.models import SourceKind


@dataclass(slots=True, frozen=True)
class ReservedEquipment:
    item_id: str
    quantity: int
    source_kind: SourceKind = SourceKind.DIRECT
    source_group_id: str | None = None

    @property
    def key(self) -> EquipmentKey:
        if self.source_kind is SourceKind.GROUP:
            return EquipmentKey.grouped(self.source_group_id or "", self.item_id)
        return EquipmentKey.direct(self.item_id)


@dataclass(slots=True, frozen=True)
class CrewPeriod:
    title: str | None
    start_at: datetime
    end_at: datetime
    needed_count: int | None = None
    role_category: str | None = None

    @property
    def key(self) -> CrewKey | None:
        return crew_key(self.title, self.start_at, self.end_at)


@dataclass(slots=True, frozen=True)
class ReservedVehicle:
    vehicle_id: str


@dataclass(slots=True)
class BookingSnapshot:
    """Read-only view of a job's equipment, crew and vehicle bookings."""

    job_id: str
    fetched_at: datetime
    equipment: list[ReservedEquipment] = field(default_factory=list)
    crew_periods: list[CrewPeriod] = field(default_factory=list)
    transport: list[ReservedVehicle] = field(default_factory=list)

    def equipment_quantities(self) -> dict[EquipmentKey, int]:
        return tally((row.key, row.quantity) for row in self.equipment)

    def crew_quantities(self) -> dict[CrewKey, int]:
        """Needed count per crew key; untitled periods are skipped."""
        return tally(
            (period.key, period.needed_count or 0)
            for period in self.crew_periods
            if period.key is not None
        )

    def vehicle_ids(self) -> list[str]:
        """Booked vehicle ids, sorted, duplicates kept."""
        return sorted(row.vehicle_id for row in self.transport if row.vehicle_id)

    @property
    def is_empty(self) -> bool:
        return not (self.equipment or self.crew_periods or self.transport)
