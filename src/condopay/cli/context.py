"""CLI helpers for wiring services and parsing input."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import click

from condopay.config import Settings
from condopay.domain.credit import CreditLedgerService
from condopay.domain.goals import DistributedGoalService
from condopay.domain.notifications import DatabaseNotificationSink
from condopay.domain.obligation import ObligationService
from condopay.domain.rates import RateResolver
from condopay.domain.validation import ValidationService
from condopay.utils.amount_parser import parse_amount
from condopay.utils.date_parser import parse_date


def get_settings(ctx: click.Context) -> Settings:
    return ctx.obj["settings"]


def rate_resolver(ctx: click.Context) -> RateResolver:
    """One resolver per invocation so every command sees the same rate."""
    if "rate_resolver" not in ctx.obj:
        settings = get_settings(ctx)
        ctx.obj["rate_resolver"] = RateResolver(
            db=ctx.obj["db"],
            primary_url=settings.rate_primary_url,
            secondary_url=settings.rate_secondary_url,
            ttl_seconds=settings.rate_ttl_seconds,
            timeout_seconds=settings.rate_timeout_seconds,
        )
    return ctx.obj["rate_resolver"]


def obligation_service(ctx: click.Context) -> ObligationService:
    db = ctx.obj["db"]
    return ObligationService(db, notifier=DatabaseNotificationSink(db), rate_resolver=rate_resolver(ctx))


def validation_service(ctx: click.Context) -> ValidationService:
    db = ctx.obj["db"]
    return ValidationService(
        db,
        notifier=DatabaseNotificationSink(db),
        max_attempts=get_settings(ctx).validation_attempts,
    )


def credit_service(ctx: click.Context) -> CreditLedgerService:
    return CreditLedgerService(ctx.obj["db"])


def goal_service(ctx: click.Context) -> DistributedGoalService:
    return DistributedGoalService(ctx.obj["db"], obligations=obligation_service(ctx))


def parse_amount_or_exit(ctx: click.Context, raw: str, label: str = "amount") -> Decimal:
    """Parse an amount option, or exit with a CLI error."""
    try:
        return parse_amount(raw)
    except ValueError as e:
        click.echo(f"Error: Invalid {label}: {e}", err=True)
        ctx.exit(1)


def parse_date_or_exit(ctx: click.Context, raw: str | None) -> date | None:
    """Parse an optional date option, or exit with a CLI error."""
    if raw is None:
        return None
    try:
        return parse_date(raw)
    except ValueError as e:
        click.echo(f"Error: Invalid date format: {e}", err=True)
        ctx.exit(1)


def money(amount: Decimal | None) -> str:
    if amount is None:
        return "-"
    return f"Bs {amount:,.2f}"
