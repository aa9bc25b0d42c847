"""offercalc Pydantic models for type-safe data validation.

Rows fetched from the booking backend are validated into these models at the
boundary; pricing and reconciliation never see raw, loosely-typed records.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from offercalc.pricing.rental_factor import RentalFactorTable, parse_rental_table

DEFAULT_DISTANCE_INCREMENT_KM = 150
ALLOWED_VAT_PERCENTS = (Decimal("0"), Decimal("25"))
DEFAULT_VAT_PERCENT = Decimal("25")


class FlagSeverity(str, Enum):
    """Pricing flag severity levels."""

    ADVISORY = "Advisory"  # Price still produced, but a human should look


class BillingMode(str, Enum):
    """How a crew line is billed."""

    DAILY = "daily"
    HOURLY = "hourly"


class SourceKind(str, Enum):
    """Whether an equipment booking came directly or via a group expansion."""

    DIRECT = "direct"
    GROUP = "group"


class Flag(BaseModel):
    """Condition detected while pricing an offer."""

    type: str  # "DistanceRateMissing", ...
    severity: FlagSeverity
    message: str

    class Config:
        json_schema_extra = {
            "example": {
                "type": "DistanceRateMissing",
                "severity": "Advisory",
                "message": "Transport line 'Van' has 200 km but no distance rate",
            }
        }


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class TransportDefaults(BaseModel):
    """Company-level transport fallbacks."""

    daily_rate: Decimal | None = None
    distance_rate: Decimal | None = None
    distance_increment_km: int = DEFAULT_DISTANCE_INCREMENT_KM

    @field_validator("distance_increment_km", mode="before")
    @classmethod
    def validate_increment(cls, v: Any) -> int:
        if v is None:
            return DEFAULT_DISTANCE_INCREMENT_KM
        value = int(v)
        return value if value > 0 else DEFAULT_DISTANCE_INCREMENT_KM


class CompanyPricingConfig(BaseModel):
    """Company pricing settings as stored alongside the company record."""

    rental_factor_table: RentalFactorTable | None = None
    vehicle_daily_rate: Decimal | None = None
    vehicle_distance_rate: Decimal | None = None
    vehicle_distance_increment: int | None = DEFAULT_DISTANCE_INCREMENT_KM
    partner_discount_percent: Decimal | None = None
    customer_discount_percent: Decimal | None = None
    crew_rate_per_day: Decimal | None = None
    crew_rate_per_hour: Decimal | None = None

    @field_validator("rental_factor_table", mode="before")
    @classmethod
    def validate_rental_table(cls, v: Any) -> RentalFactorTable | None:
        # Malformed tables fall back to the default curve rather than failing
        return parse_rental_table(v)

    def transport_defaults(self) -> TransportDefaults:
        return TransportDefaults(
            daily_rate=self.vehicle_daily_rate,
            distance_rate=self.vehicle_distance_rate,
            distance_increment_km=self.vehicle_distance_increment,
        )

    def default_discount_percent(self, is_partner: bool) -> Decimal:
        """Discount a new offer starts with for this kind of customer."""
        value = (
            self.partner_discount_percent if is_partner else self.customer_discount_percent
        )
        return value if value is not None else Decimal("0")

    class Config:
        json_schema_extra = {
            "example": {
                "rental_factor_table": {"1": 1.0, "3": 2.0, "7": 2.8},
                "vehicle_daily_rate": "1200",
                "vehicle_distance_rate": "50",
                "vehicle_distance_increment": 150,
                "partner_discount_percent": "15",
                "customer_discount_percent": "5",
                "crew_rate_per_day": "4500",
                "crew_rate_per_hour": "550",
            }
        }


class EquipmentLine(BaseModel):
    """Offer equipment line referencing either one item or one item group."""

    id: str | None = None
    item_id: str | None = None
    group_id: str | None = None
    quantity: int = Field(gt=0)
    unit_price: Decimal = Decimal("0")
    sort_order: int = 0

    @field_validator("item_id", "group_id", mode="before")
    @classmethod
    def strip_ids(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("unit_price")
    @classmethod
    def validate_unit_price(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("unit_price must be non-negative")
        return v

    @model_validator(mode="after")
    def validate_reference(self) -> EquipmentLine:
        if (self.item_id is None) == (self.group_id is None):
            raise ValueError("exactly one of item_id or group_id must be set")
        return self

    @property
    def is_group(self) -> bool:
        return self.group_id is not None


class EquipmentGroup(BaseModel):
    """Named section of an offer holding equipment lines."""

    id: str | None = None
    group_name: str = ""
    sort_order: int = 0
    lines: list[EquipmentLine] = Field(default_factory=list)


class CrewLine(BaseModel):
    """Offer crew role line."""

    id: str | None = None
    role_title: str = ""
    role_category: str | None = None
    crew_count: int = Field(gt=0)
    start_date: datetime
    end_date: datetime
    billing_mode: BillingMode = BillingMode.DAILY
    daily_rate: Decimal = Decimal("0")
    hourly_rate: Decimal | None = None
    hours_per_day: float | None = None
    sort_order: int = 0

    class Config:
        json_schema_extra = {
            "example": {
                "role_title": "Sound technician",
                "crew_count": 2,
                "start_date": "2025-06-01T08:00:00Z",
                "end_date": "2025-06-02T18:00:00Z",
                "billing_mode": "hourly",
                "daily_rate": "5500",
                "hourly_rate": "550",
                "hours_per_day": 10.0,
            }
        }


class TransportLine(BaseModel):
    """Offer transport leg."""

    id: str | None = None
    vehicle_id: str | None = None
    vehicle_name: str = ""
    distance_km: float | None = Field(default=None, ge=0)
    start_date: datetime
    end_date: datetime
    daily_rate: Decimal | None = None
    distance_rate: Decimal | None = None
    sort_order: int = 0

    @field_validator("vehicle_id", mode="before")
    @classmethod
    def strip_vehicle_id(cls, v: Any) -> Any:
        return _blank_to_none(v)


class OfferHeader(BaseModel):
    """Offer metadata that drives pricing and sync eligibility."""

    offer_id: str
    job_id: str
    offer_type: str = "technical"
    title: str = ""
    days_of_use: int = 1
    discount_percent: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    vat_percent: Decimal = DEFAULT_VAT_PERCENT
    bookings_synced_at: datetime | None = None

    @field_validator("days_of_use", mode="before")
    @classmethod
    def clamp_days(cls, v: Any) -> int:
        if v is None:
            return 1
        return max(1, int(v))

    @field_validator("vat_percent", mode="before")
    @classmethod
    def normalize_vat(cls, v: Any) -> Decimal:
        """Offers are either VAT-free or carry standard VAT; anything else is standard."""
        if v is None:
            return DEFAULT_VAT_PERCENT
        value = Decimal(str(v))
        return value if value in ALLOWED_VAT_PERCENTS else DEFAULT_VAT_PERCENT

    @property
    def is_technical(self) -> bool:
        return self.offer_type == "technical"


class OfferTotals(BaseModel):
    """Derived money breakdown for an offer. Never edited by hand."""

    equipment_subtotal: Decimal
    crew_subtotal: Decimal
    transport_subtotal: Decimal
    total_before_discount: Decimal
    discount_amount: Decimal
    total_after_discount: Decimal
    total_with_vat: Decimal

    # Inputs echoed back for display
    days_of_use: int
    discount_percent: Decimal
    vat_percent: Decimal
    equipment_rental_factor: float

    flags: list[Flag] = Field(default_factory=list)

    @property
    def vat_amount(self) -> Decimal:
        return self.total_with_vat - self.total_after_discount

    class Config:
        json_schema_extra = {
            "example": {
                "equipment_subtotal": "640.00",
                "crew_subtotal": "0.00",
                "transport_subtotal": "0.00",
                "total_before_discount": "640.00",
                "discount_amount": "64.00",
                "total_after_discount": "576.00",
                "total_with_vat": "720.00",
                "days_of_use": 10,
                "discount_percent": "10",
                "vat_percent": "25",
                "equipment_rental_factor": 3.2,
                "flags": [],
            }
        }
