"""Offer pricing engine.

Computes per-class subtotals, the equipment-only discount and whole-offer VAT.

Rules:
- Equipment: unit_price * quantity * rental factor(days_of_use)
- Crew: daily_rate * crew_count * billable days of the line's own period
- Transport: daily rate * billable days + distance rate * started increments
- Discount applies to the equipment subtotal only
- VAT applies to the discounted total
- Money is rounded to 2 places only on output
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping
from decimal import ROUND_HALF_UP, Decimal

from offercalc.models import (
    CrewLine,
    EquipmentLine,
    Flag,
    FlagSeverity,
    OfferTotals,
    TransportDefaults,
    TransportLine,
)
from offercalc.pricing.periods import billable_days
from offercalc.pricing.rental_factor import rental_factor

logger = logging.getLogger(__name__)

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")
_CENT = Decimal("0.01")


def round_money(value: Decimal) -> Decimal:
    """Round a money amount to cents (half up)."""
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def equipment_line_total(line: EquipmentLine, factor: float) -> Decimal:
    return line.unit_price * line.quantity * Decimal(str(factor))


def crew_line_total(line: CrewLine) -> Decimal:
    return line.daily_rate * line.crew_count * billable_days(line.start_date, line.end_date)


def distance_increments(distance_km: float | None, increment_km: int) -> int:
    """Number of started distance increments (0 when no distance)."""
    if not distance_km:
        return 0
    return math.ceil(distance_km / increment_km)


def transport_line_total(
    line: TransportLine, defaults: TransportDefaults | None = None
) -> tuple[Decimal, Flag | None]:
    """Price one transport line.

    Returns:
        Tuple of (unrounded total, flag). The flag is set when the line has a
        distance but no distance rate resolves; the distance term is then 0.
    """
    defaults = defaults or TransportDefaults()

    daily_rate = line.daily_rate if line.daily_rate is not None else defaults.daily_rate
    daily_cost = (daily_rate or _ZERO) * billable_days(line.start_date, line.end_date)

    increments = distance_increments(line.distance_km, defaults.distance_increment_km)
    distance_rate = (
        line.distance_rate if line.distance_rate is not None else defaults.distance_rate
    )

    flag = None
    distance_cost = _ZERO
    if increments > 0:
        if distance_rate:
            distance_cost = distance_rate * increments
        else:
            label = line.vehicle_name or line.vehicle_id or "transport"
            flag = Flag(
                type="DistanceRateMissing",
                severity=FlagSeverity.ADVISORY,
                message=(
                    f"Transport line '{label}' covers {line.distance_km:g} km "
                    "but no distance rate is set; distance is not priced"
                ),
            )

    return daily_cost + distance_cost, flag


def compute_totals(
    equipment_lines: Iterable[EquipmentLine],
    crew_lines: Iterable[CrewLine],
    transport_lines: Iterable[TransportLine],
    days_of_use: int,
    discount_percent: Decimal,
    vat_percent: Decimal,
    rental_table: Mapping[int, float] | None = None,
    transport_defaults: TransportDefaults | None = None,
) -> OfferTotals:
    """Compute the full price breakdown of an offer.

    Args:
        equipment_lines: Equipment lines (group lines priced by their own unit price)
        crew_lines: Normalized crew lines
        transport_lines: Transport legs
        days_of_use: Rental period for equipment (clamped to >= 1)
        discount_percent: Equipment discount, 0-100
        vat_percent: VAT percent applied to the discounted total
        rental_table: Company rental factor table (default curve when None)
        transport_defaults: Company transport fallbacks

    Returns:
        OfferTotals with money rounded to cents
    """
    days_of_use = max(1, days_of_use)
    discount_percent = Decimal(discount_percent)
    vat_percent = Decimal(vat_percent)

    factor = rental_factor(days_of_use, rental_table)

    equipment_subtotal = sum(
        (equipment_line_total(line, factor) for line in equipment_lines), _ZERO
    )
    crew_subtotal = sum((crew_line_total(line) for line in crew_lines), _ZERO)

    transport_subtotal = _ZERO
    flags: list[Flag] = []
    for line in transport_lines:
        line_total, flag = transport_line_total(line, transport_defaults)
        transport_subtotal += line_total
        if flag is not None:
            logger.warning(flag.message)
            flags.append(flag)

    total_before_discount = equipment_subtotal + crew_subtotal + transport_subtotal
    discount_amount = equipment_subtotal * discount_percent / _HUNDRED
    total_after_discount = total_before_discount - discount_amount
    total_with_vat = total_after_discount * (1 + vat_percent / _HUNDRED)

    return OfferTotals(
        equipment_subtotal=round_money(equipment_subtotal),
        crew_subtotal=round_money(crew_subtotal),
        transport_subtotal=round_money(transport_subtotal),
        total_before_discount=round_money(total_before_discount),
        discount_amount=round_money(discount_amount),
        total_after_discount=round_money(total_after_discount),
        total_with_vat=round_money(total_with_vat),
        days_of_use=days_of_use,
        discount_percent=discount_percent,
        vat_percent=vat_percent,
        equipment_rental_factor=factor,
        flags=flags,
    )
