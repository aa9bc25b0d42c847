"""offercalc CLI - offer pricing and booking sync.

Commands:
- init: Initialize database schema
- price: Recompute and store an offer's totals
- status: Show the bookings sync badge for every offer of a job
- diff: Show what a sync of an offer would add and remove
- sync: Replace a job's bookings with what an offer implies
"""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from offercalc.config import get_config
from offercalc.core.logging import configure_logging
from offercalc.db.connection import close_db, get_session, init_db
from offercalc.db.repository import (
    fetch_booking_snapshot,
    fetch_job_offers,
    fetch_offer_composition,
    fetch_offer_pricing,
    write_offer_totals,
)
from offercalc.reconciliation.engine import sync_status
from offercalc.reconciliation.report import describe_diff
from offercalc.sync.service import (
    BookingSyncService,
    ConfirmationRequiredError,
    OfferNotSyncableError,
    SnapshotRefreshError,
)

app = typer.Typer(
    name="offercalc",
    help="offercalc - Offer pricing and booking reconciliation",
    no_args_is_help=True,
)

console = Console()


@app.callback()
def main():
    configure_logging()


@app.command()
def init(
    drop: bool = typer.Option(False, "--drop", help="Drop existing tables"),
):
    """Initialize database schema."""
    config = get_config()
    console.print(f"[bold]Initializing database:[/bold] {config.db.url}")

    async def _init():
        if drop:
            console.print("[yellow]Dropping existing tables...[/yellow]")
        console.print("[green]Creating tables...[/green]")
        await init_db(drop=drop)
        await close_db()

    asyncio.run(_init())
    console.print("[bold green]✓[/bold green] Database initialized")


@app.command()
def price(
    offer_id: str = typer.Argument(..., help="Offer to price"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Do not store totals"),
):
    """Recompute an offer's totals from its lines."""

    async def _price():
        try:
            async with get_session() as session:
                pricing = await fetch_offer_pricing(session, offer_id)
                composition = await fetch_offer_composition(session, offer_id, pricing)
                totals = composition.totals(pricing)
                if not dry_run:
                    await write_offer_totals(session, composition, totals, pricing)
            return composition, totals
        finally:
            await close_db()

    try:
        composition, totals = asyncio.run(_price())
    except ValueError as e:
        console.print(f"[bold red]✗[/bold red] {e}")
        raise typer.Exit(1)

    table = Table(title=f"Offer {composition.header.title or composition.offer_id}")
    table.add_column("Line", style="cyan")
    table.add_column("Amount", justify="right")
    table.add_row("Equipment", f"{totals.equipment_subtotal:.2f}")
    table.add_row("Crew", f"{totals.crew_subtotal:.2f}")
    table.add_row("Transport", f"{totals.transport_subtotal:.2f}")
    table.add_row("Total before discount", f"{totals.total_before_discount:.2f}")
    table.add_row(f"Discount ({totals.discount_percent}%)", f"-{totals.discount_amount:.2f}")
    table.add_row("Total after discount", f"{totals.total_after_discount:.2f}")
    table.add_row(f"VAT ({totals.vat_percent}%)", f"{totals.vat_amount:.2f}")
    table.add_row("[bold]Total with VAT[/bold]", f"[bold]{totals.total_with_vat:.2f}[/bold]")
    console.print(table)
    console.print(
        f"Rental factor: {totals.equipment_rental_factor:.3f} "
        f"for {totals.days_of_use} day(s)"
    )

    for flag in totals.flags:
        console.print(f"[yellow]⚠[/yellow] {flag.type}: {flag.message}")

    if dry_run:
        console.print("[dim]Dry run: totals not stored[/dim]")


@app.command()
def status(
    job_id: str = typer.Argument(..., help="Job whose offers to check"),
):
    """Show the bookings sync badge for each offer of a job."""

    async def _status():
        rows = []
        try:
            async with get_session() as session:
                snapshot = await fetch_booking_snapshot(session, job_id)
                for offer in await fetch_job_offers(session, job_id):
                    composition = await fetch_offer_composition(session, offer.id)
                    badge = sync_status(composition, snapshot, offer_type=offer.offer_type)
                    rows.append((offer, badge))
        finally:
            await close_db()
        return rows

    rows = asyncio.run(_status())
    if not rows:
        console.print("[yellow]No offers found for job[/yellow]")
        return

    table = Table(title=f"Offers for job {job_id}")
    table.add_column("Offer", style="cyan")
    table.add_column("Type")
    table.add_column("Bookings")
    table.add_column("Details", style="dim")
    table.add_column("Last synced", style="dim")

    for offer, badge in rows:
        style = "green" if badge.tone == "green" else "white"
        synced_at = offer.bookings_synced_at.isoformat() if offer.bookings_synced_at else "-"
        table.add_row(
            offer.title or str(offer.id),
            offer.offer_type,
            f"[{style}]{badge.label}[/{style}]",
            badge.title,
            synced_at,
        )

    console.print(table)


@app.command()
def diff(
    offer_id: str = typer.Argument(..., help="Offer to compare with its job's bookings"),
):
    """Show what syncing an offer would change."""

    async def _diff():
        try:
            async with get_session() as session:
                return await BookingSyncService(session).preview(offer_id)
        finally:
            await close_db()

    try:
        preview = asyncio.run(_diff())
    except (ValueError, SnapshotRefreshError) as e:
        console.print(f"[bold red]✗[/bold red] {e}")
        raise typer.Exit(1)

    console.print(f"[bold]{preview.status.label}[/bold] {preview.status.title}")
    for line in describe_diff(
        preview.diff, preview.item_names, limit=get_config().sync.tooltip_section_limit
    ):
        console.print(f"  {line}")


@app.command()
def sync(
    offer_id: str = typer.Argument(..., help="Offer to sync to bookings"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Accept removals without asking"),
    created_by: str = typer.Option("cli", "--by", help="Who is syncing"),
):
    """Replace the job's bookings with what the offer implies."""

    async def _sync():
        try:
            async with get_session() as session:
                service = BookingSyncService(session)
                preview = await service.preview(offer_id)
                if preview.plan.requires_confirmation and not yes:
                    console.print("[bold yellow]This sync will remove bookings:[/bold yellow]")
                    for line in preview.plan.removal_lines:
                        console.print(f"  {line}")
                    if not typer.confirm("Proceed?", default=False):
                        return None
                # Decision is re-checked against bookings fetched inside execute
                return await service.execute(
                    offer_id,
                    confirmed=yes,
                    approved_plan=preview.plan,
                    created_by=created_by,
                )
        finally:
            await close_db()

    try:
        outcome = asyncio.run(_sync())
    except SnapshotRefreshError as e:
        console.print(f"[bold red]✗ Could not refresh bookings:[/bold red] {e}")
        console.print("[yellow]Nothing was changed. Try again.[/yellow]")
        raise typer.Exit(1)
    except ConfirmationRequiredError as e:
        console.print(f"[bold red]✗ Bookings changed since preview:[/bold red] {e}")
        for line in e.plan.removal_lines:
            console.print(f"  {line}")
        console.print("[yellow]Nothing was changed. Review and run sync again.[/yellow]")
        raise typer.Exit(1)
    except (OfferNotSyncableError, ValueError) as e:
        console.print(f"[bold red]✗[/bold red] {e}")
        raise typer.Exit(1)

    if outcome is None:
        console.print("[yellow]Sync cancelled[/yellow]")
        return

    console.print(
        f"[bold green]✓[/bold green] Bookings synced at {outcome.synced_at.isoformat()} "
        f"({outcome.periods_removed} previous period(s) replaced)"
    )


if __name__ == "__main__":
    app()
