"""Credit (abono) commands."""

import click
from condopay.cli.context import credit_service, money, parse_amount_or_exit
from condopay.cli.error_handling import handle_domain_error


@click.group()
def credit_group():
    """Inspect and apply carried-forward credit."""
    pass


@credit_group.command("balance")
@click.argument("resident_id", type=int, metavar="RESIDENT_ID")
@click.pass_context
def balance(ctx, resident_id: int):
    """Show a resident's available credit."""
    service = credit_service(ctx)
    click.echo(f"Available credit: {money(service.available_credit(resident_id))}")


@credit_group.command("entries")
@click.argument("resident_id", type=int, metavar="RESIDENT_ID")
@click.pass_context
def entries(ctx, resident_id: int):
    """Show a resident's credit ledger."""
    service = credit_service(ctx)
    rows = service.entries(resident_id)
    if not rows:
        click.echo("No credit entries.")
        return
    for e in rows:
        state = f"consumed by {e.consumed_by_obligation_id}" if e.consumed else "available"
        origin = f"from obligation {e.source_obligation_id}" if e.source_obligation_id else "manual"
        click.echo(f"#{e.id:4d} {money(e.amount):>14s} | {origin} | {state}")


@credit_group.command("apply")
@click.argument("resident_id", type=int, metavar="RESIDENT_ID")
@click.argument("obligation_id", type=int, metavar="OBLIGATION_ID")
@click.option("--amount", help="Maximum to apply (default: as much as possible)")
@click.pass_context
def apply(ctx, resident_id: int, obligation_id: int, amount: str | None):
    """Apply credit to one obligation."""
    service = credit_service(ctx)
    limit = parse_amount_or_exit(ctx, amount) if amount else None
    try:
        applied = service.apply_credit(resident_id, obligation_id, limit, actor_id=resident_id)
        click.echo(f"Applied {money(applied)} to obligation {obligation_id}")
    except ValueError as e:
        handle_domain_error(ctx, e)


@credit_group.command("apply-all")
@click.argument("resident_id", type=int, metavar="RESIDENT_ID")
@click.pass_context
def apply_all(ctx, resident_id: int):
    """Spread all credit over open obligations, oldest due date first."""
    service = credit_service(ctx)
    try:
        applied = service.apply_available_credit(resident_id, actor_id=resident_id)
    except ValueError as e:
        handle_domain_error(ctx, e)
    if not applied:
        click.echo("No credit applied.")
        return
    for obligation_id, amount in applied.items():
        click.echo(f"Applied {money(amount)} to obligation {obligation_id}")


def register_commands(cli):
    """Register credit commands with main CLI."""
    cli.add_command(credit_group, name="credit")
