"""SQLAlchemy async database models for offercalc.

Mirrors the booking backend tables the engine reads and the sync rewrites:
offers and their lines, item groups, and a job's time periods with reserved
items and vehicles.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    Text,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class CompanyModel(Base):
    """Company with its pricing settings."""

    __tablename__ = "companies"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False)

    # Pricing settings (NULL = use defaults)
    rental_factor_config: Mapped[str | None] = mapped_column(Text)  # JSON text
    vehicle_daily_rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    vehicle_distance_rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    vehicle_distance_increment: Mapped[int | None] = mapped_column(Integer)
    partner_discount_percent: Mapped[Decimal | None] = mapped_column(Numeric(5, 2))
    customer_discount_percent: Mapped[Decimal | None] = mapped_column(Numeric(5, 2))
    crew_rate_per_day: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    crew_rate_per_hour: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))


class CustomerModel(Base):
    __tablename__ = "customers"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    company_id: Mapped[UUID] = mapped_column(ForeignKey("companies.id"), nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    is_partner: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class JobModel(Base):
    __tablename__ = "jobs"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    company_id: Mapped[UUID] = mapped_column(ForeignKey("companies.id"), nullable=False)
    customer_id: Mapped[UUID | None] = mapped_column(ForeignKey("customers.id"))
    title: Mapped[str] = mapped_column(Text, nullable=False)
    start_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    end_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class ItemModel(Base):
    """Inventory item (only what the engine needs: id and display name)."""

    __tablename__ = "items"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    company_id: Mapped[UUID] = mapped_column(ForeignKey("companies.id"), nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)


class ItemGroupModel(Base):
    __tablename__ = "item_groups"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    company_id: Mapped[UUID] = mapped_column(ForeignKey("companies.id"), nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)


class GroupItemModel(Base):
    """Member of an item group."""

    __tablename__ = "group_items"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    group_id: Mapped[UUID] = mapped_column(
        ForeignKey("item_groups.id", ondelete="CASCADE"), nullable=False, index=True
    )
    item_id: Mapped[UUID] = mapped_column(ForeignKey("items.id"), nullable=False)
    quantity: Mapped[int | None] = mapped_column(Integer, default=1)


class VehicleModel(Base):
    __tablename__ = "vehicles"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    company_id: Mapped[UUID] = mapped_column(ForeignKey("companies.id"), nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)


class JobOfferModel(Base):
    """Priced offer for a job. Totals are derived and recomputable."""

    __tablename__ = "job_offers"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    job_id: Mapped[UUID] = mapped_column(ForeignKey("jobs.id"), nullable=False, index=True)
    offer_type: Mapped[str] = mapped_column(Text, nullable=False, default="technical")
    title: Mapped[str] = mapped_column(Text, nullable=False, default="")

    days_of_use: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    discount_percent: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=0)
    vat_percent: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=25)

    # Derived totals
    equipment_subtotal: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    crew_subtotal: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    transport_subtotal: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    total_before_discount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    total_after_discount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    total_with_vat: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))

    bookings_synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        CheckConstraint("days_of_use >= 1", name="check_days_of_use_positive"),
        CheckConstraint(
            "discount_percent >= 0 AND discount_percent <= 100",
            name="check_discount_percent_range",
        ),
    )


class OfferEquipmentGroupModel(Base):
    __tablename__ = "offer_equipment_groups"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    offer_id: Mapped[UUID] = mapped_column(
        ForeignKey("job_offers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    group_name: Mapped[str] = mapped_column(Text, nullable=False, default="")
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class OfferEquipmentItemModel(Base):
    __tablename__ = "offer_equipment_items"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    offer_group_id: Mapped[UUID] = mapped_column(
        ForeignKey("offer_equipment_groups.id", ondelete="CASCADE"), nullable=False, index=True
    )
    item_id: Mapped[UUID | None] = mapped_column(ForeignKey("items.id"))
    group_id: Mapped[UUID | None] = mapped_column(ForeignKey("item_groups.id"))
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    total_price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint(
            "(item_id IS NULL) <> (group_id IS NULL)", name="check_item_xor_group"
        ),
    )


class OfferCrewItemModel(Base):
    __tablename__ = "offer_crew_items"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    offer_id: Mapped[UUID] = mapped_column(
        ForeignKey("job_offers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role_title: Mapped[str] = mapped_column(Text, nullable=False, default="")
    role_category: Mapped[str | None] = mapped_column(Text)
    crew_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    billing_type: Mapped[str] = mapped_column(Text, nullable=False, default="daily")
    daily_rate: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False, default=0)
    hourly_rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 4))
    hours_per_day: Mapped[float | None] = mapped_column(Float)
    total_price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class OfferTransportItemModel(Base):
    __tablename__ = "offer_transport_items"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    offer_id: Mapped[UUID] = mapped_column(
        ForeignKey("job_offers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    vehicle_name: Mapped[str] = mapped_column(Text, nullable=False, default="")
    vehicle_id: Mapped[UUID | None] = mapped_column(ForeignKey("vehicles.id"))
    distance_km: Mapped[float | None] = mapped_column(Float)
    distance_rate: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    daily_rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    total_price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class TimePeriodModel(Base):
    """Booked time window of a job (equipment, crew or transport)."""

    __tablename__ = "time_periods"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    job_id: Mapped[UUID] = mapped_column(ForeignKey("jobs.id"), nullable=False)
    title: Mapped[str | None] = mapped_column(Text)
    category: Mapped[str] = mapped_column(Text, nullable=False)  # equipment, crew, transport
    start_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    needed_count: Mapped[int | None] = mapped_column(Integer)
    role_category: Mapped[str | None] = mapped_column(Text)
    deleted: Mapped[bool | None] = mapped_column(Boolean, default=False)

    __table_args__ = (
        Index("idx_time_periods_job_category", "job_id", "category"),
    )


class ReservedItemModel(Base):
    __tablename__ = "reserved_items"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    time_period_id: Mapped[UUID] = mapped_column(
        ForeignKey("time_periods.id", ondelete="CASCADE"), nullable=False, index=True
    )
    item_id: Mapped[UUID] = mapped_column(ForeignKey("items.id"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    source_kind: Mapped[str] = mapped_column(Text, nullable=False, default="direct")
    source_group_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True))


class ReservedVehicleModel(Base):
    __tablename__ = "reserved_vehicles"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    time_period_id: Mapped[UUID] = mapped_column(
        ForeignKey("time_periods.id", ondelete="CASCADE"), nullable=False, index=True
    )
    vehicle_id: Mapped[UUID] = mapped_column(ForeignKey("vehicles.id"), nullable=False)
