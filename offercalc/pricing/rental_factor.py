"""Equipment rental factor curve.

Maps days of use to a price multiplier applied to an item's per-day unit
price. Longer rentals cost less per extra day:

- exact breakpoint: table value
- below the first breakpoint: first value
- between breakpoints: linear interpolation
- beyond the last breakpoint: last value + 0.025 per extra day
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

logger = logging.getLogger(__name__)

RentalFactorTable = dict[int, float]

DEFAULT_RENTAL_FACTORS: RentalFactorTable = {
    1: 1.0,
    2: 1.6,
    3: 2.0,
    4: 2.3,
    5: 2.5,
    7: 2.8,
    10: 3.2,
    14: 3.5,
    21: 4.0,
    30: 4.5,
}

# Growth per day past the last breakpoint. Business constant, keep as is.
EXTRAPOLATION_GROWTH_PER_DAY = 0.025


def rental_factor(days: int, table: Mapping[int, float] | None = None) -> float:
    """Return the rental multiplier for a rental period.

    Args:
        days: Days of use
        table: Company breakpoint table; default curve when None or empty

    Returns:
        Multiplier (1.0 for non-positive periods)
    """
    if days <= 0:
        return 1.0

    factors = table or DEFAULT_RENTAL_FACTORS

    if days in factors:
        return float(factors[days])

    breakpoints = sorted(factors)

    if days < breakpoints[0]:
        return float(factors[breakpoints[0]])

    last_day = breakpoints[-1]
    if days > last_day:
        return float(factors[last_day]) + (days - last_day) * EXTRAPOLATION_GROWTH_PER_DAY

    lower_day = breakpoints[0]
    upper_day = breakpoints[-1]
    for lower, upper in zip(breakpoints, breakpoints[1:]):
        if lower <= days <= upper:
            lower_day, upper_day = lower, upper
            break

    lower_factor = float(factors[lower_day])
    upper_factor = float(factors[upper_day])
    ratio = (days - lower_day) / (upper_day - lower_day)
    return lower_factor + (upper_factor - lower_factor) * ratio


def parse_rental_table(raw: Any) -> RentalFactorTable | None:
    """Parse a stored rental factor table.

    Accepts a JSON string or a mapping with integer-like keys and positive
    numeric values. Anything malformed yields None so callers fall back to
    the default curve.

    Args:
        raw: JSON text, mapping, or None

    Returns:
        Parsed table, or None when absent or malformed
    """
    if raw is None or raw == "":
        return None

    data = raw
    if isinstance(raw, (str, bytes)):
        try:
            data = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Ignoring malformed rental factor JSON: %r", raw)
            return None

    if not isinstance(data, Mapping):
        logger.warning("Ignoring rental factor config of type %s", type(data).__name__)
        return None

    table: RentalFactorTable = {}
    for key, value in data.items():
        try:
            day = int(str(key).strip())
            factor = float(value)
        except (TypeError, ValueError):
            logger.warning("Ignoring malformed rental factor config: %r", raw)
            return None
        if day <= 0 or factor <= 0:
            logger.warning("Ignoring rental factor config with non-positive entry %r", key)
            return None
        table[day] = factor

    return table or None
