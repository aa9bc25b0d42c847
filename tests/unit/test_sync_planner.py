"""Unit tests for sync planning and diff reporting."""

from __future__ import annotations

from datetime import datetime

from offercalc.canonical.keys import CrewKey, EquipmentKey
from offercalc.config import reset_config
from offercalc.reconciliation.engine import OfferDiff, QuantityChange
from offercalc.reconciliation.report import ItemNames, describe_diff, removals_first
from offercalc.sync.planner import CREW, EQUIPMENT, TRANSPORT, plan_sync

START = datetime(2025, 6, 1, 8, 0)
END = datetime(2025, 6, 1, 18, 0)


def _equipment(item_id: str, expected: int, current: int, group: str | None = None):
    key = EquipmentKey.grouped(group, item_id) if group else EquipmentKey.direct(item_id)
    return QuantityChange(key=key, expected=expected, current=current)


def _crew(title: str, expected: int, current: int):
    return QuantityChange(key=CrewKey(title, START, END), expected=expected, current=current)


class TestPlanSync:
    """Confirmation gating and removal summaries."""

    def test_additions_only_need_no_confirmation(self):
        offer_diff = OfferDiff(
            equipment_changes=[_equipment("mixer", 2, 0)],
            crew_changes=[_crew("Rigger", 3, 1)],
        )
        plan = plan_sync(offer_diff)

        assert not plan.requires_confirmation
        assert plan.removal_lines == []

    def test_any_removal_needs_confirmation(self):
        offer_diff = OfferDiff(
            equipment_changes=[_equipment("mixer", 2, 0), _equipment("cable", 1, 4)],
        )
        plan = plan_sync(offer_diff, ItemNames({"cable": "XLR cable"}))

        assert plan.requires_confirmation
        assert plan.removal_summary[EQUIPMENT] == ["Equipment: XLR cable (-3)"]

    def test_crew_removal_line(self):
        plan = plan_sync(OfferDiff(crew_changes=[_crew("Rigger", 1, 3)]))

        assert plan.requires_confirmation
        assert plan.removal_summary[CREW] == ["Rigger (3 → 1)"]

    def test_transport_removal_counted(self):
        offer_diff = OfferDiff(
            transport_changes=[
                QuantityChange(key="van", expected=0, current=2),
                QuantityChange(key="truck", expected=1, current=0),
            ],
            transport_matches=False,
        )
        plan = plan_sync(offer_diff)

        assert plan.requires_confirmation
        assert plan.removal_summary[TRANSPORT] == ["2 vehicle booking(s) will be removed/replaced"]

    def test_removal_only_in_transport_still_gates(self):
        offer_diff = OfferDiff(
            transport_changes=[QuantityChange(key="van", expected=0, current=1)],
            current_vehicle_ids=["van"],
        )
        plan = plan_sync(offer_diff)

        assert plan.requires_confirmation
        assert plan.removal_summary[TRANSPORT] == ["1 vehicle booking(s) will be removed/replaced"]

    def test_unverifiable_transport_with_booked_vehicles_gates(self):
        # Offer has a van line and a line without a vehicle; the van is booked
        offer_diff = OfferDiff(
            transport_verifiable=False,
            transport_matches=False,
            current_vehicle_ids=["van"],
        )
        plan = plan_sync(offer_diff)

        assert plan.requires_confirmation
        assert plan.removal_summary[TRANSPORT] == [
            "Transport: existing vehicle bookings may be replaced (1 current)"
        ]

    def test_unverifiable_transport_without_bookings_is_quiet(self):
        plan = plan_sync(OfferDiff(transport_verifiable=False, transport_matches=False))

        assert not plan.requires_confirmation
        assert plan.removal_lines == []

    def test_summary_capped_per_class(self):
        changes = [_equipment(f"item-{n:02d}", 0, n + 1) for n in range(12)]
        plan = plan_sync(OfferDiff(equipment_changes=changes), limit=10)

        lines = plan.removal_summary[EQUIPMENT]
        assert len(lines) == 11
        assert lines[-1] == "…and 2 more equipment removals"
        # Largest removals first
        assert lines[0] == "Equipment: item-11 (-12)"

    def test_needs_no_environment(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        reset_config()

        changes = [_crew(f"Role {n:02d}", 0, 1) for n in range(12)]
        plan = plan_sync(OfferDiff(crew_changes=changes))

        assert plan.requires_confirmation
        assert plan.removal_summary[CREW][-1] == "…and 2 more crew removals"


class TestPlanCovers:
    """An approved plan only covers removals it actually contained."""

    def test_same_removals_covered(self):
        offer_diff = OfferDiff(equipment_changes=[_equipment("cable", 0, 20)])

        assert plan_sync(offer_diff).covers(plan_sync(offer_diff))

    def test_smaller_removal_covered(self):
        approved = plan_sync(OfferDiff(equipment_changes=[_equipment("cable", 0, 20)]))
        current = plan_sync(OfferDiff(equipment_changes=[_equipment("cable", 0, 5)]))

        assert approved.covers(current)
        assert not current.covers(approved)

    def test_different_vehicle_with_same_count_not_covered(self):
        approved = plan_sync(
            OfferDiff(transport_changes=[QuantityChange(key="van-a", expected=0, current=1)])
        )
        current = plan_sync(
            OfferDiff(transport_changes=[QuantityChange(key="truck-b", expected=0, current=1)])
        )

        assert approved.removal_lines == current.removal_lines
        assert not approved.covers(current)

    def test_removal_hidden_by_cap_not_covered(self):
        shown = [_equipment(f"item-{n:02d}", 0, 10) for n in range(10)]
        approved = plan_sync(OfferDiff(equipment_changes=[*shown, _equipment("k", 0, 1)]))
        current = plan_sync(OfferDiff(equipment_changes=[*shown, _equipment("l", 0, 1)]))

        assert approved.removal_lines == current.removal_lines
        assert not approved.covers(current)

    def test_additions_always_covered(self):
        approved = plan_sync(OfferDiff())
        current = plan_sync(OfferDiff(equipment_changes=[_equipment("mixer", 3, 0)]))

        assert approved.covers(current)


class TestDescribeDiff:
    """Badge tooltip text."""

    def test_sections_and_group_suffix(self):
        offer_diff = OfferDiff(
            equipment_changes=[
                _equipment("speaker", 0, 2, group="pa"),
                _equipment("mixer", 1, 0),
            ],
            crew_changes=[_crew("Rigger", 2, 1)],
        )
        lines = describe_diff(offer_diff, ItemNames({"speaker": "Speaker", "mixer": "Mixer"}))

        assert lines == [
            "Removed from bookings (present now, not in offer)",
            "- Speaker (group): -2",
            "Added to bookings (in offer, missing now)",
            "- Mixer: +1",
            "Crew role changes",
            "- Rigger: 1 → 2",
            "Transport: matches",
        ]

    def test_empty_sections_and_unverifiable_transport(self):
        lines = describe_diff(OfferDiff(transport_verifiable=False))

        assert lines[1] == "None"
        assert lines[-1] == (
            "Transport: cannot be strictly compared (offer does not specify vehicles)."
        )

    def test_section_capped(self):
        changes = [_equipment(f"item-{n}", 1, 0) for n in range(10)]
        lines = describe_diff(OfferDiff(equipment_changes=changes), limit=8)

        assert "…and 2 more" in lines

    def test_unknown_item_falls_back_to_id(self):
        assert ItemNames()("item-x") == "item-x"

    def test_removals_first_orders_by_magnitude(self):
        removals, additions = removals_first(
            [_equipment("a", 0, 1), _equipment("b", 0, 5), _equipment("c", 2, 0)]
        )
        assert [c.key.item_id for c in removals] == ["b", "a"]
        assert [c.key.item_id for c in additions] == ["c"]
