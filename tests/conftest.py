"""Pytest configuration and fixtures for offercalc tests.

Provides common fixtures for testing.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

import pytest

from offercalc.config import reset_config
from offercalc.models import (
    CrewLine,
    EquipmentGroup,
    EquipmentLine,
    OfferHeader,
    TransportLine,
)
from offercalc.reconciliation.composition import (
    GroupMember,
    GroupMembershipLookup,
    OfferComposition,
)

MIXER = "item-mixer"
SPEAKER = "item-speaker"
CABLE = "item-cable"
PA_GROUP = "group-pa"
VAN = "vehicle-van"
TRUCK = "vehicle-truck"

SHOW_START = datetime(2025, 6, 1, 8, 0)
SHOW_END = datetime(2025, 6, 2, 18, 0)


@pytest.fixture
def offer_header() -> OfferHeader:
    """Technical offer on job-1."""
    return OfferHeader(offer_id="offer-1", job_id="job-1", title="Summer festival")


@pytest.fixture
def pa_group_lookup() -> GroupMembershipLookup:
    """PA group: 2 speakers and 4 cables per unit."""
    return GroupMembershipLookup(
        members={
            PA_GROUP: [
                GroupMember(item_id=SPEAKER, quantity=2),
                GroupMember(item_id=CABLE, quantity=4),
            ]
        }
    )


@pytest.fixture
def sample_composition(
    offer_header: OfferHeader, pa_group_lookup: GroupMembershipLookup
) -> OfferComposition:
    """Offer with a direct mixer, one PA group, a sound tech and a van."""
    return OfferComposition(
        header=offer_header,
        equipment_groups=[
            EquipmentGroup(
                group_name="Audio",
                lines=[
                    EquipmentLine(item_id=MIXER, quantity=1, unit_price=Decimal("500")),
                    EquipmentLine(group_id=PA_GROUP, quantity=2, unit_price=Decimal("300")),
                ],
            )
        ],
        crew_lines=[
            CrewLine(
                role_title="Sound technician",
                crew_count=2,
                start_date=SHOW_START,
                end_date=SHOW_END,
                daily_rate=Decimal("4500"),
            )
        ],
        transport_lines=[
            TransportLine(
                vehicle_id=VAN,
                vehicle_name="Van",
                start_date=SHOW_START,
                end_date=SHOW_END,
                daily_rate=Decimal("1200"),
            )
        ],
        groups=pa_group_lookup,
    )


@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch):
    """Set up test environment variables."""
    # Set DATABASE_URL for config tests
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    reset_config()
    yield
    reset_config()
