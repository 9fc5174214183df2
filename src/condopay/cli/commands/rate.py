"""Exchange rate commands."""

import click
from condopay.cli.context import parse_amount_or_exit, rate_resolver
from condopay.domain.rates import MIN_VALID_RATE


@click.group()
def rate_group():
    """Show or record the Bs/USD exchange rate."""
    pass


@rate_group.command("show")
@click.pass_context
def show_rate(ctx):
    """Show the rate used for USD amounts."""
    rate = rate_resolver(ctx).current_rate()
    kind = "live" if rate.is_live else "stored"
    click.echo(f"1 USD = Bs {rate.rate:,.2f} ({rate.source}, {kind})")


@rate_group.command("set")
@click.argument("rate", metavar="RATE")
@click.option("--source", default="manual", help="Where the rate comes from")
@click.pass_context
def set_rate(ctx, rate: str, source: str):
    """Record a rate used when live sources are unavailable."""
    value = parse_amount_or_exit(ctx, rate, "rate")
    if value < MIN_VALID_RATE:
        click.echo(f"Error: Rate must be at least {MIN_VALID_RATE}", err=True)
        ctx.exit(1)
    ctx.obj["db"].save_exchange_rate(value, source)
    click.echo(f"Recorded rate Bs {value:,.2f} ({source})")


def register_commands(cli):
    """Register rate commands with main CLI."""
    cli.add_command(rate_group, name="rate")
