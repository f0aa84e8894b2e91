"""Main CLI entry point."""

import click
from dealerbooks.config import configure_logging, load_settings
from dealerbooks.database.factories import create_database, create_sqlite_database

# Import and register all commands at module level
from dealerbooks.cli.commands import (
    accounts,
    bills,
    import_cmd,
    journal,
)


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to SQLite database file (overrides DEALERBOOKS_DB_PATH environment variable)",
    envvar="DEALERBOOKS_DB_PATH",
)
@click.option("--verbose", "-v", is_flag=True, help="Log import progress to stderr")
@click.pass_context
def cli(ctx, db_path: str | None, verbose: bool):
    """Dealerbooks - QuickBooks import for the dealership CRM.

    Load chart of accounts, customers, vendors, items, invoices, estimates,
    bills, vendor transactions, customer payments, journals and the general
    ledger from QuickBooks CSV exports.
    """
    ctx.ensure_object(dict)
    settings = load_settings()
    configure_logging("DEBUG" if verbose else settings.log_level)
    ctx.obj["settings"] = settings

    # Initialize database connection only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        if db_path is not None:
            db = create_sqlite_database(database_path=db_path)
        else:
            db = create_database(settings.database_url)
        db.connect()
        db.initialize_schema()
        ctx.obj["db"] = db
        ctx.call_on_close(db.disconnect)


# Register all commands
accounts.register_commands(cli)
bills.register_commands(cli)
import_cmd.register_commands(cli)
journal.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
