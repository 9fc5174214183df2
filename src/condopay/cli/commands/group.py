"""Distributed group expense commands."""

import click
from condopay.cli.context import (
    goal_service,
    money,
    parse_amount_or_exit,
    parse_date_or_exit,
)
from condopay.cli.error_handling import handle_domain_error
from condopay.domain.entities import ObligationType

TYPE_CHOICES = click.Choice([t.value for t in ObligationType])


@click.group()
def group_group():
    """Manage fixed expenses shared by many residents."""
    pass


@group_group.command("create")
@click.option("--admin", "admin_id", type=int, required=True, help="Administrator ID")
@click.option("--concept", required=True, help="Concept of the shared expense")
@click.option("--total", default="0", help="Total to collect (Bs)")
@click.option("--total-usd", help="Total to collect (USD)")
@click.option("--due", help="Due date")
@click.option("--type", "obligation_type", type=TYPE_CHOICES, default="extraordinary_fee", help="Obligation type")
@click.option("--condo", "condominium_id", type=int, help="Limit to one condominium (default: all)")
@click.pass_context
def create_group(
    ctx,
    admin_id: int,
    concept: str,
    total: str,
    total_usd: str | None,
    due: str | None,
    obligation_type: str,
    condominium_id: int | None,
):
    """Split a fixed expense across active residents.

    Examples:
        condopay group create --admin 1 --concept "Bomba de agua" --total 1200 --condo 1
    """
    service = goal_service(ctx)
    amount = parse_amount_or_exit(ctx, total, "total")
    usd = parse_amount_or_exit(ctx, total_usd, "USD total") if total_usd else None
    due_date = parse_date_or_exit(ctx, due)
    try:
        result = service.create_distributed_expense(
            admin_id=admin_id,
            concept=concept,
            total=amount,
            total_usd=usd,
            due_date=due_date,
            obligation_type=ObligationType(obligation_type),
            condominium_id=condominium_id,
        )
    except ValueError as e:
        handle_domain_error(ctx, e)

    if result.group_id is None:
        click.echo("No eligible residents; no group created.")
    else:
        click.echo(f"Created group {result.group_id}")
    click.echo(f"Created: {result.created}  Skipped: {result.skipped}  Failed: {result.failed}")
    for scope in result.per_scope.values():
        for detail in scope.details:
            click.echo(f"  - {detail}")


@group_group.command("progress")
@click.argument("group_id", metavar="GROUP_ID")
@click.pass_context
def progress(ctx, group_id: str):
    """Show collection progress of a group."""
    service = goal_service(ctx)
    try:
        p = service.group_progress(group_id)
    except ValueError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Group {p.group_id}")
    click.echo(f"  Collected: {money(p.collected)} of {money(p.target)} ({p.percentage}%)")
    click.echo(f"  Outstanding: {money(p.outstanding)}")
    click.echo(f"  Participants paid: {p.participants_paid}/{p.participants_total}")


@group_group.command("add-participant")
@click.argument("group_id", metavar="GROUP_ID")
@click.argument("resident_id", type=int, metavar="RESIDENT_ID")
@click.option("--amount", required=True, help="Share of the new participant (Bs)")
@click.option("--admin", "admin_id", type=int, required=True, help="Administrator ID")
@click.pass_context
def add_participant(ctx, group_id: str, resident_id: int, amount: str, admin_id: int):
    """Add a resident to a group; the target does not change."""
    service = goal_service(ctx)
    share = parse_amount_or_exit(ctx, amount)
    try:
        obligation_id = service.add_participant(group_id, resident_id, share, admin_id)
        click.echo(f"Added resident {resident_id} to {group_id} (obligation {obligation_id})")
    except ValueError as e:
        handle_domain_error(ctx, e)


def register_commands(cli):
    """Register group commands with main CLI."""
    cli.add_command(group_group, name="group")
