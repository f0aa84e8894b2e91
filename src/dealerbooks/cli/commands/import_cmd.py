"""QuickBooks import commands."""

import os

import click
from dealerbooks.cli.error_handling import handle_import_error
from dealerbooks.domain.errors import DomainError
from dealerbooks.domain.importer import IMPORT_TYPES, QuickBooksImportService
from dealerbooks.domain.master_import import IMPORT_AS_CHOICES
from dealerbooks.domain.uploads import CSV_EXTENSIONS, JSON_EXTENSIONS, validate_upload


def _echo_result(result: dict) -> None:
    click.echo(f"\n{result['message']}:")
    for key, value in result.items():
        if key in ("message", "errors"):
            continue
        label = key.replace("_", " ").capitalize()
        click.echo(f"  {label}: {value}")
    if result["errors"]:
        click.echo(f"  Errors: {len(result['errors'])}")
        for error in result["errors"]:
            click.echo(f"    {error}", err=True)


@click.command("import")
@click.argument("import_type", type=click.Choice(sorted(IMPORT_TYPES)), metavar="TYPE")
@click.argument("csv_file", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--import-as",
    type=click.Choice(IMPORT_AS_CHOICES),
    help="For items: import as parts, services or both (default both)",
)
@click.option("--dry-run", is_flag=True, help="Parse and validate everything, then roll back")
@click.pass_context
def import_csv(ctx, import_type: str, csv_file: str, import_as: str | None, dry_run: bool):
    """Import a QuickBooks CSV export.

    TYPE is the kind of export, e.g. customers, bills or general-ledger.

    Examples:
        dealerbooks import chart-of-accounts accounts.csv
        dealerbooks import items items.csv --import-as parts
        dealerbooks import general-ledger ledger.csv --dry-run
    """
    db = ctx.obj["db"]
    settings = ctx.obj["settings"]
    service = QuickBooksImportService(db)

    try:
        validate_upload(
            os.path.basename(csv_file),
            os.path.getsize(csv_file),
            CSV_EXTENSIONS,
            settings.max_upload_kb,
        )
        result = service.import_file(import_type, csv_file, import_as=import_as, dry_run=dry_run)
    except DomainError as e:
        handle_import_error(ctx, e)
        return

    _echo_result(result)


@click.command("restore")
@click.argument("json_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--table", "table_name", help="Table the records belong to (for list or single-object files)")
@click.option("--dry-run", is_flag=True, help="Validate the backup, then roll back")
@click.pass_context
def restore_json(ctx, json_file: str, table_name: str | None, dry_run: bool):
    """Restore records from a JSON backup.

    The file is either a complete backup ({"table": [records...]}) or the
    records of the single table named with --table.

    Examples:
        dealerbooks restore backup.json
        dealerbooks restore customers.json --table customers
    """
    db = ctx.obj["db"]
    settings = ctx.obj["settings"]
    service = QuickBooksImportService(db)

    try:
        validate_upload(
            os.path.basename(json_file),
            os.path.getsize(json_file),
            JSON_EXTENSIONS,
            settings.max_upload_kb,
        )
        result = service.restore_json(json_file, table_name=table_name, dry_run=dry_run)
    except DomainError as e:
        handle_import_error(ctx, e)
        return

    _echo_result(result)


def register_commands(cli):
    """Register import commands with main CLI."""
    cli.add_command(import_csv)
    cli.add_command(restore_json)
