"""Booking sync business operations (preview/execute).

A sync makes a job's bookings match one offer: every equipment, crew and
transport booking of the job is replaced wholesale by what the offer implies.
The decision to write is always made against a snapshot fetched for this
sync, never against a cached one.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from offercalc.config import get_config
from offercalc.db.repository import (
    delete_job_bookings,
    fetch_booking_snapshot,
    fetch_item_names,
    fetch_offer_composition,
    mark_offer_synced,
    write_job_bookings,
)
from offercalc.reconciliation.composition import OfferComposition
from offercalc.reconciliation.engine import OfferDiff, SyncStatus, diff, sync_status
from offercalc.reconciliation.report import ItemNames
from offercalc.reconciliation.snapshot import BookingSnapshot
from offercalc.sync.planner import SyncPlan, plan_sync

logger = structlog.get_logger()


class SnapshotRefreshError(Exception):
    """Raised when current bookings could not be fetched; the sync is aborted.

    Nothing has been written. Retrying is safe.
    """

    retryable = True


class ConfirmationRequiredError(Exception):
    """Raised when a sync would remove bookings and was not confirmed."""

    def __init__(self, plan: SyncPlan):
        self.plan = plan
        super().__init__(
            "Sync would remove existing bookings; confirmation required "
            f"({len(plan.removal_lines)} removal line(s))"
        )


class OfferNotSyncableError(Exception):
    """Raised when an offer may not drive bookings (e.g. a pretty offer)."""


@dataclass(slots=True)
class SyncPreview:
    composition: OfferComposition
    snapshot: BookingSnapshot
    diff: OfferDiff
    plan: SyncPlan
    status: SyncStatus
    item_names: ItemNames = field(default_factory=ItemNames)


@dataclass(slots=True)
class SyncOutcome:
    offer_id: str
    job_id: str
    synced_at: datetime
    periods_removed: int
    plan: SyncPlan


class BookingSyncService:
    """Refresh, diff, and replace a job's bookings from an offer."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def refresh(self, offer_id: str) -> tuple[OfferComposition, BookingSnapshot]:
        """Load the offer and fetch its job's bookings now.

        Raises:
            ValueError: If the offer does not exist
            SnapshotRefreshError: If bookings could not be read
        """
        composition = await fetch_offer_composition(self.session, offer_id)
        try:
            snapshot = await fetch_booking_snapshot(self.session, composition.job_id)
        except SQLAlchemyError as exc:
            logger.warning(
                "snapshot_refresh_failed",
                offer_id=str(offer_id),
                job_id=composition.job_id,
                error=str(exc),
            )
            raise SnapshotRefreshError(
                f"Could not refresh bookings for job {composition.job_id}"
            ) from exc
        return composition, snapshot

    async def _item_names(self, offer_diff: OfferDiff) -> ItemNames:
        item_ids = sorted({change.key.item_id for change in offer_diff.equipment_changes})
        return ItemNames(await fetch_item_names(self.session, item_ids))

    async def preview(self, offer_id: str) -> SyncPreview:
        """What a sync of this offer would do, computed from fresh bookings."""
        composition, snapshot = await self.refresh(offer_id)
        offer_diff = diff(snapshot, composition)
        names = await self._item_names(offer_diff)
        plan = plan_sync(offer_diff, names, limit=get_config().sync.removal_summary_limit)
        status = sync_status(composition, snapshot, offer_type=composition.header.offer_type)
        return SyncPreview(composition, snapshot, offer_diff, plan, status, names)

    async def execute(
        self,
        offer_id: str,
        confirmed: bool = False,
        approved_plan: SyncPlan | None = None,
        created_by: str = "cli",
    ) -> SyncOutcome:
        """Replace the job's bookings with what the offer implies.

        Args:
            offer_id: Offer to sync from
            confirmed: Caller accepts any removal the sync performs
            approved_plan: Plan the user already confirmed; removals found
                now that it did not show require confirmation again
            created_by: Recorded in the log line

        Raises:
            OfferNotSyncableError: If the offer type may not drive bookings
            SnapshotRefreshError: If bookings could not be re-read
            ConfirmationRequiredError: If unconfirmed removals exist
        """
        composition, snapshot = await self.refresh(offer_id)
        log = logger.bind(offer_id=composition.offer_id, job_id=composition.job_id)

        if get_config().sync.technical_offers_only and not composition.header.is_technical:
            raise OfferNotSyncableError(
                f"Only technical offers can sync to bookings (offer type "
                f"'{composition.header.offer_type}')"
            )

        offer_diff = diff(snapshot, composition)
        plan = plan_sync(
            offer_diff,
            await self._item_names(offer_diff),
            limit=get_config().sync.removal_summary_limit,
        )

        if approved_plan is not None and approved_plan.covers(plan):
            confirmed = True

        if plan.requires_confirmation and not confirmed:
            log.info("sync_needs_confirmation", removals=len(plan.removal_lines))
            raise ConfirmationRequiredError(plan)

        try:
            removed = await delete_job_bookings(self.session, composition.job_id)
            await write_job_bookings(self.session, composition)
            synced_at = await mark_offer_synced(self.session, composition.offer_id)
            await self.session.commit()
        except (SQLAlchemyError, asyncio.CancelledError):
            await self.session.rollback()
            log.error("sync_failed_rolled_back")
            raise

        log.info(
            "bookings_synced",
            created_by=created_by,
            periods_removed=removed,
            equipment_changes=len(offer_diff.equipment_changes),
            crew_changes=len(offer_diff.crew_changes),
            transport_changes=len(offer_diff.transport_changes),
        )

        return SyncOutcome(
            offer_id=composition.offer_id,
            job_id=composition.job_id,
            synced_at=synced_at,
            periods_removed=removed,
            plan=plan,
        )
