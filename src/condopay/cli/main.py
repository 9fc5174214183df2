"""Main CLI entry point."""

import logging

import click
from pydantic import ValidationError

from condopay.config import Settings
from condopay.database.factories import create_sqlite_database

# Import and register all commands at module level
from condopay.cli.commands import (
    directory,
    obligation,
    validate,
    credit,
    group,
    rate,
)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides CONDOPAY_DB_PATH environment variable)",
    envvar="CONDOPAY_DB_PATH",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    envvar="CONDOPAY_LOG_LEVEL",
    help="Logging verbosity",
)
@click.pass_context
def cli(ctx, db_path: str | None, log_level: str):
    """condopay - Condominium payment reconciliation.

    Track residents' obligations, review payment evidence, carry excess
    payments forward as credit and follow shared expenses as one goal.
    """
    ctx.ensure_object(dict)
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        ctx.obj["settings"] = Settings()
    except ValidationError as e:
        raise click.UsageError(f"Invalid CONDOPAY_* setting: {e}")

    # Initialize database connection only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        db = create_sqlite_database(database_path=db_path)
        db.connect()
        db.initialize_schema()
        ctx.obj["db"] = db
        ctx.call_on_close(db.disconnect)


# Register all commands
directory.register_commands(cli)
obligation.register_commands(cli)
validate.register_commands(cli)
credit.register_commands(cli)
group.register_commands(cli)
rate.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
