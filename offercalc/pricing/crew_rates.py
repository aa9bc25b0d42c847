"""Crew rate normalization.

Keeps a crew line's daily and hourly representations consistent. In hourly
mode the daily rate is always derived (hourly_rate * hours_per_day) and is
never trusted as authored input; in daily mode the hourly fields are cleared.
"""

from __future__ import annotations

from decimal import Decimal

from offercalc.models import BillingMode, CrewLine
from offercalc.pricing.periods import hours_per_day_from_dates

DEFAULT_HOURS_PER_DAY = 8.0

_ZERO = Decimal("0")


def _to_decimal(value: float) -> Decimal:
    return Decimal(str(value))


def resolve_hours_per_day(line: CrewLine, default: float = DEFAULT_HOURS_PER_DAY) -> float:
    """Hours per day for an hourly line: from its dates, else stored, else default."""
    computed = hours_per_day_from_dates(line.start_date, line.end_date)
    if computed is not None:
        return computed
    if line.hours_per_day is not None and line.hours_per_day > 0:
        return line.hours_per_day
    return default


def normalize_crew_line(
    line: CrewLine,
    default_hourly_rate: Decimal | None = None,
    default_hours_per_day: float = DEFAULT_HOURS_PER_DAY,
) -> CrewLine:
    """Return a copy of ``line`` with consistent daily and hourly rates.

    Apply after every mutation of a crew line. Idempotent.

    Args:
        line: Crew line, possibly just edited
        default_hourly_rate: Company hourly rate used when the line has none
        default_hours_per_day: Fallback when dates cannot provide hours

    Returns:
        Normalized copy of the line
    """
    if line.billing_mode is BillingMode.HOURLY:
        hours = resolve_hours_per_day(line, default_hours_per_day)
        hourly = line.hourly_rate if line.hourly_rate is not None else default_hourly_rate
        hourly = max(_ZERO, hourly if hourly is not None else _ZERO)
        return line.model_copy(
            update={
                "hours_per_day": hours,
                "hourly_rate": hourly,
                "daily_rate": hourly * _to_decimal(hours),
            }
        )

    return line.model_copy(
        update={
            "hourly_rate": None,
            "hours_per_day": None,
            "daily_rate": max(_ZERO, line.daily_rate),
        }
    )


def switch_billing_mode(
    line: CrewLine,
    mode: BillingMode,
    default_hourly_rate: Decimal | None = None,
    default_daily_rate: Decimal | None = None,
    default_hours_per_day: float = DEFAULT_HOURS_PER_DAY,
) -> CrewLine:
    """Move a crew line to another billing mode, deriving the other representation.

    Daily -> hourly: hours from dates (else stored positive hours, else default);
    hourly rate = daily rate / hours when a positive daily rate exists, else the
    stored positive hourly rate, else the company hourly rate, else 0.

    Hourly -> daily: the company daily rate when configured, else the current
    (derived) daily rate.
    """
    if line.billing_mode is mode:
        return normalize_crew_line(line, default_hourly_rate, default_hours_per_day)

    if mode is BillingMode.HOURLY:
        hours = hours_per_day_from_dates(line.start_date, line.end_date)
        if hours is None:
            hours = (
                line.hours_per_day
                if line.hours_per_day is not None and line.hours_per_day > 0
                else default_hours_per_day
            )

        if line.daily_rate > 0 and hours > 0:
            hourly = line.daily_rate / _to_decimal(hours)
        elif line.hourly_rate is not None and line.hourly_rate > 0:
            hourly = line.hourly_rate
        elif default_hourly_rate is not None:
            hourly = default_hourly_rate
        else:
            hourly = _ZERO

        switched = line.model_copy(
            update={
                "billing_mode": BillingMode.HOURLY,
                "hours_per_day": hours,
                "hourly_rate": max(_ZERO, hourly),
            }
        )
        return normalize_crew_line(switched, default_hourly_rate, default_hours_per_day)

    daily = default_daily_rate if default_daily_rate is not None else line.daily_rate
    switched = line.model_copy(
        update={"billing_mode": BillingMode.DAILY, "daily_rate": daily}
    )
    return normalize_crew_line(switched, default_hourly_rate, default_hours_per_day)


def hydrate_stored_crew_line(
    line: CrewLine,
    default_hourly_rate: Decimal | None = None,
    default_hours_per_day: float = DEFAULT_HOURS_PER_DAY,
) -> CrewLine:
    """Normalize a crew line as loaded from storage.

    Older hourly rows may lack an hourly rate; it is recovered from the stored
    daily rate before the usual normalization runs.
    """
    if line.billing_mode is BillingMode.HOURLY and line.hourly_rate is None:
        hours = resolve_hours_per_day(line, default_hours_per_day)
        if hours > 0:
            recovered = line.daily_rate / _to_decimal(hours)
        else:
            recovered = default_hourly_rate
        line = line.model_copy(update={"hourly_rate": recovered, "hours_per_day": hours})

    return normalize_crew_line(line, default_hourly_rate, default_hours_per_day)
