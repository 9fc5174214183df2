"""Payment validation commands."""

import click
from condopay.cli.context import money, validation_service
from condopay.cli.error_handling import handle_domain_error
from condopay.domain.validation import Decision


@click.group()
def validate_group():
    """Approve or reject submitted payment evidence."""
    pass


@validate_group.command("approve")
@click.argument("obligation_id", type=int, metavar="OBLIGATION_ID")
@click.option("--admin", "admin_id", type=int, required=True, help="Administrator ID")
@click.option("--apply-credit", is_flag=True, help="Use the resident's credit before the evidence")
@click.pass_context
def approve(ctx, obligation_id: int, admin_id: int, apply_credit: bool):
    """Approve the evidence on an obligation.

    Examples:
        condopay validate approve 7 --admin 1
        condopay validate approve 7 --admin 1 --apply-credit
    """
    service = validation_service(ctx)
    db = ctx.obj["db"]
    try:
        obligation = service.validate(obligation_id, admin_id, Decision.approve(apply_credit=apply_credit))
    except ValueError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Obligation {obligation.id}: {obligation.status.value}")
    click.echo(f"  Paid: {money(obligation.paid_amount)} of {money(obligation.amount)}")
    if obligation.excess_amount > 0:
        click.echo(f"  Excess carried to credit: {money(obligation.excess_amount)}")
    remainder = db.get_remainder_of(obligation.id)
    if remainder is not None:
        click.echo(f"  Remainder obligation {remainder.id}: {money(remainder.amount)}")


@validate_group.command("reject")
@click.argument("obligation_id", type=int, metavar="OBLIGATION_ID")
@click.option("--admin", "admin_id", type=int, required=True, help="Administrator ID")
@click.option("--reason", required=True, help="Reason shown to the resident")
@click.pass_context
def reject(ctx, obligation_id: int, admin_id: int, reason: str):
    """Reject the evidence on an obligation.

    Examples:
        condopay validate reject 7 --admin 1 --reason "Reference not found in bank statement"
    """
    service = validation_service(ctx)
    try:
        service.validate(obligation_id, admin_id, Decision.reject(reason))
        click.echo(f"Obligation {obligation_id} rejected")
    except ValueError as e:
        handle_domain_error(ctx, e)


def register_commands(cli):
    """Register validation commands with main CLI."""
    cli.add_command(validate_group, name="validate")
