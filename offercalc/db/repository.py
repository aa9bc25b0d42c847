"""Database queries and writes for offers and job bookings."""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timezone
from decimal import Decimal
from typing import Sequence
from uuid import UUID

from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from offercalc.config import get_config
from offercalc.db.models import (
    CompanyModel,
    CustomerModel,
    GroupItemModel,
    ItemModel,
    JobModel,
    JobOfferModel,
    OfferCrewItemModel,
    OfferEquipmentGroupModel,
    OfferEquipmentItemModel,
    OfferTransportItemModel,
    ReservedItemModel,
    ReservedVehicleModel,
    TimePeriodModel,
)
from offercalc.models import (
    BillingMode,
    CompanyPricingConfig,
    CrewLine,
    EquipmentGroup,
    EquipmentLine,
    OfferHeader,
    OfferTotals,
    SourceKind,
    TransportLine,
)
from offercalc.pricing.crew_rates import hydrate_stored_crew_line
from offercalc.pricing.engine import crew_line_total, equipment_line_total, transport_line_total
from offercalc.reconciliation.composition import GroupMember, GroupMembershipLookup, OfferComposition
from offercalc.reconciliation.snapshot import (
    BookingSnapshot,
    CrewPeriod,
    ReservedEquipment,
    ReservedVehicle,
)

logger = logging.getLogger(__name__)

BOOKING_CATEGORIES = ("equipment", "crew", "transport")


def _uuid(value: UUID | str) -> UUID:
    return value if isinstance(value, UUID) else UUID(str(value))


def _str_or_none(value: UUID | None) -> str | None:
    return str(value) if value is not None else None


async def fetch_company_pricing(session: AsyncSession, company_id: UUID | str) -> CompanyPricingConfig:
    """Load a company's pricing settings (defaults when the company is unknown)."""
    company = await session.get(CompanyModel, _uuid(company_id))
    if company is None:
        logger.warning("Company %s not found; using default pricing", company_id)
        return CompanyPricingConfig()

    return CompanyPricingConfig(
        rental_factor_table=company.rental_factor_config,
        vehicle_daily_rate=company.vehicle_daily_rate,
        vehicle_distance_rate=company.vehicle_distance_rate,
        vehicle_distance_increment=(
            company.vehicle_distance_increment or get_config().pricing.distance_increment_km
        ),
        partner_discount_percent=company.partner_discount_percent,
        customer_discount_percent=company.customer_discount_percent,
        crew_rate_per_day=company.crew_rate_per_day,
        crew_rate_per_hour=company.crew_rate_per_hour,
    )


async def fetch_job(session: AsyncSession, job_id: UUID | str) -> JobModel | None:
    return await session.get(JobModel, _uuid(job_id))


async def fetch_offer_pricing(
    session: AsyncSession, offer_id: UUID | str
) -> CompanyPricingConfig:
    """Pricing settings of the company owning an offer's job."""
    stmt = (
        select(JobModel.company_id)
        .join(JobOfferModel, JobOfferModel.job_id == JobModel.id)
        .where(JobOfferModel.id == _uuid(offer_id))
    )
    company_id = (await session.execute(stmt)).scalar_one_or_none()
    if company_id is None:
        return CompanyPricingConfig()
    return await fetch_company_pricing(session, company_id)


async def default_discount_for_job(session: AsyncSession, job_id: UUID | str) -> Decimal:
    """Discount percent a new offer on this job starts with."""
    job = await fetch_job(session, job_id)
    if job is None:
        raise ValueError(f"Job {job_id} not found")

    pricing = await fetch_company_pricing(session, job.company_id)
    is_partner = False
    if job.customer_id is not None:
        customer = await session.get(CustomerModel, job.customer_id)
        is_partner = bool(customer and customer.is_partner)
    return pricing.default_discount_percent(is_partner)


async def fetch_booking_snapshot(session: AsyncSession, job_id: UUID | str) -> BookingSnapshot:
    """Read a job's live equipment, crew and vehicle bookings.

    Soft-deleted time periods and their reservations are ignored.
    """
    job_uuid = _uuid(job_id)
    # populate_existing: a snapshot must never be served from the identity map
    periods_stmt = (
        select(TimePeriodModel)
        .where(
            TimePeriodModel.job_id == job_uuid,
            TimePeriodModel.category.in_(BOOKING_CATEGORIES),
            or_(TimePeriodModel.deleted.is_(None), TimePeriodModel.deleted.is_(False)),
        )
        .execution_options(populate_existing=True)
    )
    periods = (await session.execute(periods_stmt)).scalars().all()

    by_category: dict[str, list[TimePeriodModel]] = defaultdict(list)
    for period in periods:
        by_category[period.category].append(period)

    equipment: list[ReservedEquipment] = []
    equipment_period_ids = [p.id for p in by_category["equipment"]]
    if equipment_period_ids:
        rows = await session.execute(
            select(ReservedItemModel)
            .where(ReservedItemModel.time_period_id.in_(equipment_period_ids))
            .execution_options(populate_existing=True)
        )
        for row in rows.scalars():
            equipment.append(
                ReservedEquipment(
                    item_id=str(row.item_id),
                    quantity=row.quantity or 0,
                    source_kind=SourceKind(row.source_kind or SourceKind.DIRECT.value),
                    source_group_id=_str_or_none(row.source_group_id),
                )
            )

    crew_periods = [
        CrewPeriod(
            title=period.title,
            start_at=period.start_at,
            end_at=period.end_at,
            needed_count=period.needed_count,
            role_category=period.role_category,
        )
        for period in by_category["crew"]
    ]

    transport: list[ReservedVehicle] = []
    transport_period_ids = [p.id for p in by_category["transport"]]
    if transport_period_ids:
        rows = await session.execute(
            select(ReservedVehicleModel)
            .where(ReservedVehicleModel.time_period_id.in_(transport_period_ids))
            .execution_options(populate_existing=True)
        )
        transport = [ReservedVehicle(vehicle_id=str(row.vehicle_id)) for row in rows.scalars()]

    return BookingSnapshot(
        job_id=str(job_uuid),
        fetched_at=datetime.now(timezone.utc),
        equipment=equipment,
        crew_periods=crew_periods,
        transport=transport,
    )


async def fetch_group_members(
    session: AsyncSession, group_ids: Sequence[str]
) -> dict[str, list[GroupMember]]:
    """Member items of the given item groups in one query."""
    if not group_ids:
        return {}

    stmt = select(GroupItemModel).where(
        GroupItemModel.group_id.in_([_uuid(gid) for gid in group_ids])
    )
    members: dict[str, list[GroupMember]] = {str(gid): [] for gid in group_ids}
    for row in (await session.execute(stmt)).scalars():
        members[str(row.group_id)].append(
            GroupMember(item_id=str(row.item_id), quantity=row.quantity or 1)
        )
    return members


async def fetch_offer_composition(
    session: AsyncSession,
    offer_id: UUID | str,
    pricing: CompanyPricingConfig | None = None,
) -> OfferComposition:
    """Load an offer with all its lines and the members of referenced groups.

    Raises:
        ValueError: If the offer does not exist
    """
    offer = await session.get(JobOfferModel, _uuid(offer_id))
    if offer is None:
        raise ValueError(f"Offer {offer_id} not found")

    pricing = pricing or await fetch_offer_pricing(session, offer.id)

    header = OfferHeader(
        offer_id=str(offer.id),
        job_id=str(offer.job_id),
        offer_type=offer.offer_type,
        title=offer.title,
        days_of_use=offer.days_of_use,
        discount_percent=offer.discount_percent,
        vat_percent=offer.vat_percent,
        bookings_synced_at=offer.bookings_synced_at,
    )

    group_rows = (
        await session.execute(
            select(OfferEquipmentGroupModel)
            .where(OfferEquipmentGroupModel.offer_id == offer.id)
            .order_by(OfferEquipmentGroupModel.sort_order)
        )
    ).scalars().all()

    equipment_groups: list[EquipmentGroup] = []
    for group in group_rows:
        item_rows = (
            await session.execute(
                select(OfferEquipmentItemModel)
                .where(OfferEquipmentItemModel.offer_group_id == group.id)
                .order_by(OfferEquipmentItemModel.sort_order)
            )
        ).scalars().all()
        equipment_groups.append(
            EquipmentGroup(
                id=str(group.id),
                group_name=group.group_name,
                sort_order=group.sort_order,
                lines=[
                    EquipmentLine(
                        id=str(row.id),
                        item_id=_str_or_none(row.item_id),
                        group_id=_str_or_none(row.group_id),
                        quantity=row.quantity,
                        unit_price=row.unit_price,
                        sort_order=row.sort_order,
                    )
                    for row in item_rows
                ],
            )
        )

    crew_rows = (
        await session.execute(
            select(OfferCrewItemModel)
            .where(OfferCrewItemModel.offer_id == offer.id)
            .order_by(OfferCrewItemModel.sort_order)
        )
    ).scalars().all()
    crew_lines = [
        hydrate_stored_crew_line(
            CrewLine(
                id=str(row.id),
                role_title=row.role_title or "",
                role_category=row.role_category,
                crew_count=row.crew_count,
                start_date=row.start_date,
                end_date=row.end_date,
                billing_mode=BillingMode(row.billing_type or BillingMode.DAILY.value),
                daily_rate=row.daily_rate,
                hourly_rate=row.hourly_rate,
                hours_per_day=row.hours_per_day,
                sort_order=row.sort_order,
            ),
            default_hourly_rate=pricing.crew_rate_per_hour,
            default_hours_per_day=get_config().pricing.default_hours_per_day,
        )
        for row in crew_rows
    ]

    transport_rows = (
        await session.execute(
            select(OfferTransportItemModel)
            .where(OfferTransportItemModel.offer_id == offer.id)
            .order_by(OfferTransportItemModel.sort_order)
        )
    ).scalars().all()
    transport_lines = [
        TransportLine(
            id=str(row.id),
            vehicle_id=_str_or_none(row.vehicle_id),
            vehicle_name=row.vehicle_name,
            distance_km=row.distance_km,
            start_date=row.start_date,
            end_date=row.end_date,
            daily_rate=row.daily_rate,
            distance_rate=row.distance_rate,
            sort_order=row.sort_order,
        )
        for row in transport_rows
    ]

    composition = OfferComposition(
        header=header,
        equipment_groups=equipment_groups,
        crew_lines=crew_lines,
        transport_lines=transport_lines,
    )
    members = await fetch_group_members(session, composition.group_ids)
    composition.groups = GroupMembershipLookup(members=members)
    return composition


async def fetch_item_names(session: AsyncSession, item_ids: Sequence[str]) -> dict[str, str]:
    if not item_ids:
        return {}
    stmt = select(ItemModel.id, ItemModel.name).where(
        ItemModel.id.in_([_uuid(item_id) for item_id in item_ids])
    )
    return {str(row.id): row.name for row in await session.execute(stmt)}


async def fetch_job_offers(session: AsyncSession, job_id: UUID | str) -> list[JobOfferModel]:
    stmt = (
        select(JobOfferModel)
        .where(JobOfferModel.job_id == _uuid(job_id))
        .order_by(JobOfferModel.created_at.asc())
    )
    return list((await session.execute(stmt)).scalars().all())


async def write_offer_totals(
    session: AsyncSession,
    composition: OfferComposition,
    totals: OfferTotals,
    pricing: CompanyPricingConfig | None = None,
) -> None:
    """Persist derived offer totals and per-line totals."""
    pricing = pricing or CompanyPricingConfig()
    offer_id = _uuid(composition.offer_id)

    await session.execute(
        update(JobOfferModel)
        .where(JobOfferModel.id == offer_id)
        .values(
            equipment_subtotal=totals.equipment_subtotal,
            crew_subtotal=totals.crew_subtotal,
            transport_subtotal=totals.transport_subtotal,
            total_before_discount=totals.total_before_discount,
            total_after_discount=totals.total_after_discount,
            total_with_vat=totals.total_with_vat,
        )
    )

    for line in composition.equipment_lines:
        if line.id:
            await session.execute(
                update(OfferEquipmentItemModel)
                .where(OfferEquipmentItemModel.id == _uuid(line.id))
                .values(total_price=equipment_line_total(line, totals.equipment_rental_factor))
            )

    for line in composition.crew_lines:
        if line.id:
            await session.execute(
                update(OfferCrewItemModel)
                .where(OfferCrewItemModel.id == _uuid(line.id))
                .values(
                    daily_rate=line.daily_rate,
                    hourly_rate=line.hourly_rate,
                    hours_per_day=line.hours_per_day,
                    total_price=crew_line_total(line),
                )
            )

    defaults = pricing.transport_defaults()
    for line in composition.transport_lines:
        if line.id:
            line_total, _ = transport_line_total(line, defaults)
            await session.execute(
                update(OfferTransportItemModel)
                .where(OfferTransportItemModel.id == _uuid(line.id))
                .values(total_price=line_total)
            )


async def delete_job_bookings(session: AsyncSession, job_id: UUID | str) -> int:
    """Hard-delete every equipment, crew and transport period of a job.

    Returns:
        Number of time periods removed
    """
    job_uuid = _uuid(job_id)
    period_ids = (
        await session.execute(
            select(TimePeriodModel.id).where(
                TimePeriodModel.job_id == job_uuid,
                TimePeriodModel.category.in_(BOOKING_CATEGORIES),
            )
        )
    ).scalars().all()
    if not period_ids:
        return 0

    await session.execute(
        delete(ReservedItemModel).where(ReservedItemModel.time_period_id.in_(period_ids))
    )
    await session.execute(
        delete(ReservedVehicleModel).where(ReservedVehicleModel.time_period_id.in_(period_ids))
    )
    await session.execute(delete(TimePeriodModel).where(TimePeriodModel.id.in_(period_ids)))
    return len(period_ids)


def _equipment_window(
    composition: OfferComposition, job: JobModel | None
) -> tuple[datetime, datetime]:
    if job is not None and job.start_at is not None and job.end_at is not None:
        return job.start_at, job.end_at

    dated = [*composition.crew_lines, *composition.transport_lines]
    if dated:
        return min(line.start_date for line in dated), max(line.end_date for line in dated)

    now = datetime.now(timezone.utc)
    return now, now


async def write_job_bookings(session: AsyncSession, composition: OfferComposition) -> None:
    """Create the bookings an offer implies on its (already cleared) job.

    One equipment period holds every reserved item, one crew period is written
    per titled crew line and one transport period per line naming a vehicle.
    """
    job_uuid = _uuid(composition.job_id)
    job = await fetch_job(session, job_uuid)

    equipment = composition.expanded_equipment()
    if equipment:
        start_at, end_at = _equipment_window(composition, job)
        period = TimePeriodModel(
            job_id=job_uuid,
            title=composition.header.title or "Equipment",
            category="equipment",
            start_at=start_at,
            end_at=end_at,
        )
        session.add(period)
        await session.flush()
        for row in equipment:
            if row.quantity <= 0:
                continue
            session.add(
                ReservedItemModel(
                    time_period_id=period.id,
                    item_id=_uuid(row.item_id),
                    quantity=row.quantity,
                    source_kind=row.source_kind.value,
                    source_group_id=_uuid(row.source_group_id) if row.source_group_id else None,
                )
            )

    for crew in composition.crew_periods():
        session.add(
            TimePeriodModel(
                job_id=job_uuid,
                title=crew.title,
                category="crew",
                start_at=crew.start_at,
                end_at=crew.end_at,
                needed_count=crew.needed_count,
                role_category=crew.role_category,
            )
        )

    for line in composition.transport_lines:
        if not line.vehicle_id:
            continue
        period = TimePeriodModel(
            job_id=job_uuid,
            title=line.vehicle_name or "Transport",
            category="transport",
            start_at=line.start_date,
            end_at=line.end_date,
        )
        session.add(period)
        await session.flush()
        session.add(ReservedVehicleModel(time_period_id=period.id, vehicle_id=_uuid(line.vehicle_id)))

    await session.flush()


async def mark_offer_synced(
    session: AsyncSession, offer_id: UUID | str, synced_at: datetime | None = None
) -> datetime:
    synced_at = synced_at or datetime.now(timezone.utc)
    await session.execute(
        update(JobOfferModel)
        .where(JobOfferModel.id == _uuid(offer_id))
        .values(bookings_synced_at=synced_at)
    )
    return synced_at
