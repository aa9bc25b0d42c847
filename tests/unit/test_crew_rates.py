"""Unit tests for crew rate normalization and billing mode switches."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

import pytest

from offercalc.models import BillingMode, CrewLine
from offercalc.pricing.crew_rates import (
    hydrate_stored_crew_line,
    normalize_crew_line,
    switch_billing_mode,
)
from offercalc.pricing.periods import billable_days, hours_per_day_from_dates

DAY_START = datetime(2025, 6, 1, 8, 0)
DAY_END = datetime(2025, 6, 1, 18, 0)


def _line(**overrides) -> CrewLine:
    data = {
        "role_title": "Rigger",
        "crew_count": 1,
        "start_date": DAY_START,
        "end_date": DAY_END,
    }
    data.update(overrides)
    return CrewLine(**data)


class TestPeriods:
    def test_hours_per_day_single_day(self):
        assert hours_per_day_from_dates(DAY_START, DAY_END) == pytest.approx(10.0)

    def test_hours_per_day_spreads_over_started_days(self):
        # 34 hours over 2 started days
        end = datetime(2025, 6, 2, 18, 0)
        assert hours_per_day_from_dates(DAY_START, end) == pytest.approx(17.0)

    def test_hours_per_day_degenerate(self):
        assert hours_per_day_from_dates(DAY_START, DAY_START) is None
        assert hours_per_day_from_dates(DAY_END, DAY_START) is None
        assert hours_per_day_from_dates(None, DAY_END) is None

    def test_billable_days_at_least_one(self):
        assert billable_days(DAY_START, DAY_START) == 1
        assert billable_days(DAY_START, datetime(2025, 6, 3, 8, 0)) == 2
        assert billable_days(DAY_START, datetime(2025, 6, 3, 9, 0)) == 3


class TestNormalizeCrewLine:
    """Daily and hourly rates stay consistent."""

    def test_hourly_derives_daily_rate(self):
        line = normalize_crew_line(
            _line(billing_mode=BillingMode.HOURLY, hourly_rate=Decimal("550"), daily_rate=Decimal("1"))
        )
        assert line.hours_per_day == pytest.approx(10.0)
        assert line.daily_rate == Decimal("5500")

    def test_hourly_uses_company_rate_when_missing(self):
        line = normalize_crew_line(
            _line(billing_mode=BillingMode.HOURLY), default_hourly_rate=Decimal("400")
        )
        assert line.hourly_rate == Decimal("400")
        assert line.daily_rate == Decimal("4000")

    def test_hourly_without_any_rate_is_zero(self):
        line = normalize_crew_line(_line(billing_mode=BillingMode.HOURLY))
        assert line.hourly_rate == Decimal("0")
        assert line.daily_rate == Decimal("0")

    def test_hourly_negative_rate_clamped(self):
        line = normalize_crew_line(
            _line(billing_mode=BillingMode.HOURLY, hourly_rate=Decimal("-5"))
        )
        assert line.hourly_rate == Decimal("0")

    def test_hourly_degenerate_span_keeps_stored_hours(self):
        line = normalize_crew_line(
            _line(
                end_date=DAY_START,
                billing_mode=BillingMode.HOURLY,
                hourly_rate=Decimal("100"),
                hours_per_day=6.0,
            )
        )
        assert line.hours_per_day == pytest.approx(6.0)
        assert line.daily_rate == Decimal("600")

    def test_hourly_degenerate_span_defaults_to_eight_hours(self):
        line = normalize_crew_line(
            _line(end_date=DAY_START, billing_mode=BillingMode.HOURLY, hourly_rate=Decimal("100"))
        )
        assert line.hours_per_day == pytest.approx(8.0)
        assert line.daily_rate == Decimal("800")

    @pytest.mark.parametrize("stored_hours", [0.0, -2.0])
    def test_hourly_degenerate_span_ignores_non_positive_stored_hours(self, stored_hours):
        line = normalize_crew_line(
            _line(
                end_date=DAY_START,
                billing_mode=BillingMode.HOURLY,
                hourly_rate=Decimal("100"),
                hours_per_day=stored_hours,
            )
        )
        assert line.hours_per_day == pytest.approx(8.0)
        assert line.daily_rate == Decimal("800")

    def test_daily_clears_hourly_fields(self):
        line = normalize_crew_line(
            _line(daily_rate=Decimal("4500"), hourly_rate=Decimal("550"), hours_per_day=10.0)
        )
        assert line.hourly_rate is None
        assert line.hours_per_day is None
        assert line.daily_rate == Decimal("4500")

    def test_idempotent(self):
        once = normalize_crew_line(
            _line(billing_mode=BillingMode.HOURLY, hourly_rate=Decimal("550"))
        )
        assert normalize_crew_line(once) == once


class TestSwitchBillingMode:
    def test_daily_to_hourly_divides_daily_rate(self):
        line = switch_billing_mode(_line(daily_rate=Decimal("5500")), BillingMode.HOURLY)
        assert line.billing_mode is BillingMode.HOURLY
        assert line.hourly_rate == Decimal("550")
        assert line.daily_rate == Decimal("5500")

    def test_daily_to_hourly_falls_back_to_company_rate(self):
        line = switch_billing_mode(
            _line(daily_rate=Decimal("0")),
            BillingMode.HOURLY,
            default_hourly_rate=Decimal("450"),
        )
        assert line.hourly_rate == Decimal("450")
        assert line.daily_rate == Decimal("4500")

    def test_hourly_to_daily_prefers_company_daily_rate(self):
        hourly = normalize_crew_line(
            _line(billing_mode=BillingMode.HOURLY, hourly_rate=Decimal("550"))
        )
        line = switch_billing_mode(
            hourly, BillingMode.DAILY, default_daily_rate=Decimal("4000")
        )
        assert line.billing_mode is BillingMode.DAILY
        assert line.daily_rate == Decimal("4000")
        assert line.hourly_rate is None

    def test_hourly_to_daily_keeps_derived_rate(self):
        hourly = normalize_crew_line(
            _line(billing_mode=BillingMode.HOURLY, hourly_rate=Decimal("550"))
        )
        line = switch_billing_mode(hourly, BillingMode.DAILY)
        assert line.daily_rate == Decimal("5500")

    def test_same_mode_only_normalizes(self):
        line = switch_billing_mode(_line(daily_rate=Decimal("-10")), BillingMode.DAILY)
        assert line.daily_rate == Decimal("0")


class TestHydrateStoredCrewLine:
    def test_recovers_hourly_rate_from_daily(self):
        stored = _line(billing_mode=BillingMode.HOURLY, daily_rate=Decimal("5000"))
        line = hydrate_stored_crew_line(stored)
        assert line.hourly_rate == Decimal("500")
        assert line.daily_rate == Decimal("5000")

    def test_daily_line_untouched(self):
        stored = _line(daily_rate=Decimal("4500"))
        assert hydrate_stored_crew_line(stored).daily_rate == Decimal("4500")
