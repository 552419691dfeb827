"""Main CLI entry point."""

import logging

import click
from finstate.database.factories import create_sqlite_database
from finstate.logging_config import configure_logging

# Import and register all commands at module level
from finstate.cli.commands import (
    trial_balance,
    account,
    mapping,
    rules,
    report,
)


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides FINSTATE_DB_PATH environment variable)",
    envvar="FINSTATE_DB_PATH",
)
@click.option(
    "--user",
    default="system",
    show_default=True,
    envvar="FINSTATE_USER",
    help="User recorded in the audit trail (overrides FINSTATE_USER environment variable)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, db_path: str | None, user: str, verbose: bool):
    """Finstate - Trial balance to IFRS financial statements.

    Import a trial balance, classify its accounts, post adjustments with a
    full audit trail, and produce statements, ratios and cash flows.
    """
    ctx.ensure_object(dict)
    configure_logging(level=logging.DEBUG if verbose else logging.WARNING)
    ctx.obj["user"] = user

    # Initialize database connection only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        db = create_sqlite_database(database_path=db_path)
        db.connect()
        db.initialize_schema()
        ctx.obj["db"] = db


# Register all commands
trial_balance.register_commands(cli)
account.register_commands(cli)
mapping.register_commands(cli)
rules.register_commands(cli)
report.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
