"""Obligation commands."""

import mimetypes
from pathlib import Path

import click
from condopay.cli.context import (
    get_settings,
    money,
    obligation_service,
    parse_amount_or_exit,
    parse_date_or_exit,
)
from condopay.cli.error_handling import handle_domain_error
from condopay.domain.entities import ObligationStatus, ObligationType
from condopay.domain.evidence import LocalEvidenceStore

TYPE_CHOICES = click.Choice([t.value for t in ObligationType])
STATUS_CHOICES = click.Choice([s.value for s in ObligationStatus])


@click.group()
def obligation_group():
    """Manage obligations (pagos)."""
    pass


@obligation_group.command("create")
@click.option("--resident", "resident_id", type=int, required=True, help="Debtor resident ID")
@click.option("--concept", required=True, help="Concept (e.g., 'Condominio marzo')")
@click.option("--amount", default="0", help="Amount in Bs (0 to fix it from --amount-usd)")
@click.option("--amount-usd", help="Amount in USD")
@click.option("--due", help="Due date (YYYY-MM-DD or relative like 'end of month')")
@click.option("--type", "obligation_type", type=TYPE_CHOICES, default="other", help="Obligation type")
@click.pass_context
def create_obligation(
    ctx,
    resident_id: int,
    concept: str,
    amount: str,
    amount_usd: str | None,
    due: str | None,
    obligation_type: str,
):
    """Report an obligation for a resident.

    Examples:
        condopay obligation create --resident 2 --concept "Agua" --amount 150
        condopay obligation create --resident 2 --concept "Cuota" --amount-usd 20 --due "end of month"
    """
    service = obligation_service(ctx)
    local_amount = parse_amount_or_exit(ctx, amount)
    usd = parse_amount_or_exit(ctx, amount_usd, "USD amount") if amount_usd else None
    due_date = parse_date_or_exit(ctx, due)

    try:
        obligation_id = service.create_obligation(
            debtor_id=resident_id,
            concept=concept,
            amount=local_amount,
            amount_usd=usd,
            due_date=due_date,
            obligation_type=ObligationType(obligation_type),
        )
        obligation = service.require_obligation(obligation_id)
        click.echo(f"Created obligation {obligation_id}")
        click.echo(f"  Concept: {obligation.concept}")
        click.echo(f"  Amount: {money(obligation.amount)}")
        if obligation.due_date:
            click.echo(f"  Due: {obligation.due_date}")
    except ValueError as e:
        handle_domain_error(ctx, e)


@obligation_group.command("bulk")
@click.option("--admin", "admin_id", type=int, required=True, help="Administrator ID")
@click.option("--concept", required=True, help="Concept shared by every obligation")
@click.option("--amount", default="0", help="Amount in Bs per resident")
@click.option("--amount-usd", help="Amount in USD per resident")
@click.option("--due", help="Due date")
@click.option("--type", "obligation_type", type=TYPE_CHOICES, default="maintenance", help="Obligation type")
@click.option("--condo", "condominium_id", type=int, help="Limit to one condominium (default: all)")
@click.pass_context
def bulk_create(
    ctx,
    admin_id: int,
    concept: str,
    amount: str,
    amount_usd: str | None,
    due: str | None,
    obligation_type: str,
    condominium_id: int | None,
):
    """Charge every active resident of one or all condominiums.

    Residents who already owe the same concept are skipped.

    Examples:
        condopay obligation bulk --admin 1 --concept "Condominio abril" --amount 350 --due 2024-04-30
    """
    service = obligation_service(ctx)
    local_amount = parse_amount_or_exit(ctx, amount)
    usd = parse_amount_or_exit(ctx, amount_usd, "USD amount") if amount_usd else None
    due_date = parse_date_or_exit(ctx, due)

    try:
        result = service.create_obligations_bulk(
            admin_id=admin_id,
            concept=concept,
            amount=local_amount,
            amount_usd=usd,
            due_date=due_date,
            obligation_type=ObligationType(obligation_type),
            condominium_id=condominium_id,
        )
    except ValueError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Created: {result.created}  Skipped: {result.skipped}  Failed: {result.failed}")
    for condo_id, scope in sorted(result.per_scope.items()):
        click.echo(
            f"  Condominium {condo_id}: created {scope.created}, "
            f"skipped {scope.skipped}, failed {scope.failed}"
        )
        for detail in scope.details:
            click.echo(f"    - {detail}")


@obligation_group.command("submit")
@click.argument("obligation_id", type=int, metavar="OBLIGATION_ID")
@click.option("--resident", "resident_id", type=int, required=True, help="Submitting resident ID")
@click.option("--amount", required=True, help="Amount paid (Bs)")
@click.option("--reference", help="Bank reference code")
@click.option("--method", "payment_method", help="Payment method (e.g., 'pago movil')")
@click.option("--note", help="Free-text note")
@click.option("--evidence", type=click.Path(exists=True, dir_okay=False), help="Receipt image or PDF")
@click.pass_context
def submit_evidence(
    ctx,
    obligation_id: int,
    resident_id: int,
    amount: str,
    reference: str | None,
    payment_method: str | None,
    note: str | None,
    evidence: str | None,
):
    """Submit payment evidence for review.

    Examples:
        condopay obligation submit 7 --resident 2 --amount 60 --reference 004512 --evidence recibo.jpg
    """
    service = obligation_service(ctx)
    claimed = parse_amount_or_exit(ctx, amount)

    blob_id = None
    if evidence:
        mime = mimetypes.guess_type(evidence)[0] or "application/octet-stream"
        store = LocalEvidenceStore(get_settings(ctx).evidence_dir)
        try:
            blob_id = store.store(Path(evidence).read_bytes(), mime)
        except ValueError as e:
            handle_domain_error(ctx, e)

    try:
        obligation = service.submit_evidence(
            obligation_id,
            resident_id=resident_id,
            claimed_amount=claimed,
            reference=reference,
            payment_method=payment_method,
            note=note,
            evidence_blob_id=blob_id,
        )
        click.echo(f"Evidence of {money(claimed)} submitted for obligation {obligation.id}; awaiting validation")
    except ValueError as e:
        handle_domain_error(ctx, e)


@obligation_group.command("reopen")
@click.argument("obligation_id", type=int, metavar="OBLIGATION_ID")
@click.option("--actor", "actor_id", type=int, required=True, help="Debtor or administrator ID")
@click.pass_context
def reopen(ctx, obligation_id: int, actor_id: int):
    """Let a rejected obligation accept new evidence."""
    service = obligation_service(ctx)
    try:
        obligation = service.reopen(obligation_id, actor_id)
        click.echo(f"Obligation {obligation_id} reopened ({obligation.status.value})")
    except ValueError as e:
        handle_domain_error(ctx, e)


@obligation_group.command("edit")
@click.argument("obligation_id", type=int, metavar="OBLIGATION_ID")
@click.option("--actor", "actor_id", type=int, required=True, help="Debtor or administrator ID")
@click.option("--concept", help="New concept")
@click.option("--amount", help="New amount (Bs)")
@click.option("--type", "obligation_type", type=TYPE_CHOICES, help="New type")
@click.option("--due", help="New due date")
@click.pass_context
def edit(
    ctx,
    obligation_id: int,
    actor_id: int,
    concept: str | None,
    amount: str | None,
    obligation_type: str | None,
    due: str | None,
):
    """Edit an obligation that has not received any payment."""
    service = obligation_service(ctx)
    new_amount = parse_amount_or_exit(ctx, amount) if amount else None
    due_date = parse_date_or_exit(ctx, due)
    try:
        service.update_obligation(
            obligation_id,
            actor_id,
            concept=concept,
            amount=new_amount,
            obligation_type=ObligationType(obligation_type) if obligation_type else None,
            due_date=due_date,
        )
        click.echo(f"Updated obligation {obligation_id}")
    except ValueError as e:
        handle_domain_error(ctx, e)


@obligation_group.command("cancel")
@click.argument("obligation_id", type=int, metavar="OBLIGATION_ID")
@click.option("--admin", "admin_id", type=int, required=True, help="Administrator ID")
@click.option("--reason", required=True, help="Why the obligation is cancelled")
@click.pass_context
def cancel(ctx, obligation_id: int, admin_id: int, reason: str):
    """Cancel an unpaid obligation."""
    service = obligation_service(ctx)
    try:
        service.cancel(obligation_id, admin_id, reason)
        click.echo(f"Cancelled obligation {obligation_id}")
    except ValueError as e:
        handle_domain_error(ctx, e)


@obligation_group.command("list")
@click.option("--resident", "resident_id", type=int, help="Only this debtor")
@click.option("--status", type=STATUS_CHOICES, help="Only this status")
@click.option("--group", "group_id", help="Only members of this distributed group")
@click.option("--all", "include_cancelled", is_flag=True, help="Include cancelled obligations")
@click.pass_context
def list_obligations(
    ctx, resident_id: int | None, status: str | None, group_id: str | None, include_cancelled: bool
):
    """List obligations."""
    service = obligation_service(ctx)
    obligations = service.list_obligations(
        debtor_id=resident_id,
        status=ObligationStatus(status) if status else None,
        group_id=group_id,
        include_cancelled=include_cancelled,
    )
    if not obligations:
        click.echo("No obligations found.")
        return

    click.echo(f"\nFound {len(obligations)} obligation(s):")
    click.echo("-" * 100)
    for o in obligations:
        flags = []
        if o.awaiting_validation:
            flags.append("awaiting validation")
        if o.is_cancelled:
            flags.append("cancelled")
        suffix = f" [{', '.join(flags)}]" if flags else ""
        click.echo(
            f"ID: {o.id:4d} | Resident: {o.debtor_id:3d} | {o.concept[:30]:30s} | "
            f"{money(o.amount):>14s} | Paid: {money(o.paid_amount):>14s} | {o.status.value}{suffix}"
        )


@obligation_group.command("show")
@click.argument("obligation_id", type=int, metavar="OBLIGATION_ID")
@click.pass_context
def show(ctx, obligation_id: int):
    """Show an obligation with its history."""
    service = obligation_service(ctx)
    try:
        o = service.require_obligation(obligation_id)
        events = service.history(obligation_id)
    except ValueError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Obligation {o.id}: {o.concept}")
    click.echo(f"  Resident: {o.debtor_id}  Unit: {o.unit_id}")
    click.echo(f"  Type: {o.obligation_type.value}  Origin: {o.origin.value}")
    click.echo(f"  Amount: {money(service.display_amount(o))}")
    if o.amount_usd is not None:
        click.echo(f"  Amount (USD): {o.amount_usd:,.2f}")
    click.echo(f"  Paid: {money(o.paid_amount)}  Remaining: {money(o.remaining)}")
    click.echo(f"  Status: {o.status.value}")
    if o.due_date:
        click.echo(f"  Due: {o.due_date}")
    if o.excess_amount > 0:
        click.echo(f"  Excess carried to credit: {money(o.excess_amount)}")
    if o.parent_obligation_id is not None:
        click.echo(
            f"  Remainder of obligation {o.parent_obligation_id} "
            f"(original amount {money(o.original_amount_reference)})"
        )
    if o.group_id:
        click.echo(f"  Group: {o.group_id} (target {money(o.group_target_amount)})")
    if o.rejection_reason:
        click.echo(f"  Rejection reason: {o.rejection_reason}")
    if o.is_cancelled:
        click.echo(f"  Cancelled: {o.cancellation_note}")

    click.echo("\nHistory:")
    for event in events:
        actor = f" by {event.actor_id}" if event.actor_id is not None else ""
        click.echo(f"  {event.created_at:%Y-%m-%d %H:%M} {event.event.value}{actor}")


@obligation_group.command("mark-overdue")
@click.option("--today", help="Reference date (default: today)")
@click.pass_context
def mark_overdue(ctx, today: str | None):
    """Flag pending obligations past their due date."""
    service = obligation_service(ctx)
    reference = parse_date_or_exit(ctx, today)
    marked = service.mark_overdue(reference)
    click.echo(f"Marked {len(marked)} obligation(s) overdue")


@obligation_group.command("statement")
@click.argument("resident_id", type=int, metavar="RESIDENT_ID")
@click.pass_context
def statement(ctx, resident_id: int):
    """Show a resident's account statement."""
    service = obligation_service(ctx)
    try:
        s = service.account_statement(resident_id)
    except ValueError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Account statement for resident {resident_id}")
    click.echo(f"  Outstanding: {money(s.total_outstanding)} ({s.open_count} open)")
    click.echo(f"  Paid: {money(s.total_paid)} ({s.paid_count} settled)")
    click.echo(f"  Available credit: {money(s.available_credit)}")


def register_commands(cli):
    """Register obligation commands with main CLI."""
    cli.add_command(obligation_group, name="obligation")
