"""Journal entry commands."""

import click
from dealerbooks.cli.error_handling import handle_domain_error
from dealerbooks.domain.accounts import ChartOfAccountsService
from dealerbooks.domain.entities import JournalEntry, JournalLine
from dealerbooks.domain.errors import DomainError
from dealerbooks.domain.journal import JournalService
from dealerbooks.utils.amount_parser import parse_amount
from dealerbooks.utils.date_parser import parse_date


@click.group()
def journal_group():
    """Create, post and void journal entries."""
    pass


def _parse_line(accounts: ChartOfAccountsService, raw_line: str) -> JournalLine:
    """Parse ACCOUNT_NUMBER:DEBIT:CREDIT into a journal line."""
    parts = raw_line.split(":")
    if len(parts) != 3:
        raise ValueError(f"Invalid line '{raw_line}', expected ACCOUNT_NUMBER:DEBIT:CREDIT")
    number, debit, credit = parts
    account = accounts.get_account_by_number(number.strip())
    if account is None:
        raise ValueError(f"Account number '{number.strip()}' not found")
    return JournalLine(account_id=account.id, debit=parse_amount(debit), credit=parse_amount(credit))


def _echo_entry(entry: JournalEntry) -> None:
    click.echo(f"Journal entry {entry.entry_number} (ID: {entry.id})")
    click.echo(f"  Date: {entry.entry_date}")
    click.echo(f"  Status: {entry.status}")
    if entry.description:
        click.echo(f"  Description: {entry.description}")
    for line in entry.lines:
        click.echo(f"    Account {line.account_id:4d} | Dr {line.debit:>10.2f} | Cr {line.credit:>10.2f}")
    click.echo(f"  Totals: Dr {entry.total_debits:.2f} / Cr {entry.total_credits:.2f}")


@journal_group.command("create")
@click.option("--date", "entry_date", required=True, help="Entry date (YYYY-MM-DD)")
@click.option(
    "--line",
    "lines",
    multiple=True,
    required=True,
    help="ACCOUNT_NUMBER:DEBIT:CREDIT, repeat for every line",
)
@click.option("--description", help="Entry description")
@click.option("--memo", help="Entry memo")
@click.option("--number", "entry_number", help="Entry number (defaults to the next JE-NNNNNN)")
@click.option("--post", "post_now", is_flag=True, help="Post the entry right away")
@click.pass_context
def create_entry(
    ctx,
    entry_date: str,
    lines: tuple[str, ...],
    description: str | None,
    memo: str | None,
    entry_number: str | None,
    post_now: bool,
) -> None:
    """Create a draft journal entry.

    Examples:
        dealerbooks journal create --date 2024-01-31 --line 6000:150:0 --line 1000:0:150
        dealerbooks journal create --date 2024-01-31 --line 6000:150:0 --line 1000:0:150 --post
    """
    db = ctx.obj["db"]
    service = JournalService(db)
    accounts = ChartOfAccountsService(db)

    try:
        parsed_date = parse_date(entry_date)
        if parsed_date is None:
            raise ValueError("An entry date is required")
        journal_lines = [_parse_line(accounts, raw_line) for raw_line in lines]
        entry_id = service.create_entry(
            entry_date=parsed_date,
            lines=journal_lines,
            description=description,
            memo=memo,
            entry_number=entry_number,
        )
        entry = service.post_entry(entry_id) if post_now else service.get_entry(entry_id)
    except (DomainError, ValueError) as e:
        handle_domain_error(ctx, e)
        return

    click.echo("Created " + ("and posted " if post_now else "") + f"journal entry {entry.entry_number}")
    _echo_entry(entry)


@journal_group.command("show")
@click.argument("entry_id", type=int)
@click.pass_context
def show_entry(ctx, entry_id: int) -> None:
    """Show a journal entry with its lines."""
    service = JournalService(ctx.obj["db"])
    entry = service.get_entry(entry_id)
    if entry is None:
        click.echo(f"Error: Journal entry {entry_id} not found", err=True)
        ctx.exit(1)
        return
    _echo_entry(entry)


@journal_group.command("post")
@click.argument("entry_id", type=int)
@click.pass_context
def post_entry(ctx, entry_id: int) -> None:
    """Post a draft entry and update account balances."""
    service = JournalService(ctx.obj["db"])
    try:
        entry = service.post_entry(entry_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Posted journal entry {entry.entry_number}")


@journal_group.command("void")
@click.argument("entry_id", type=int)
@click.pass_context
def void_entry(ctx, entry_id: int) -> None:
    """Void an entry; a posted entry's amounts leave the balances."""
    service = JournalService(ctx.obj["db"])
    try:
        entry = service.void_entry(entry_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Voided journal entry {entry.entry_number}")


def register_commands(cli):
    """Register journal commands with main CLI."""
    cli.add_command(journal_group, name="journal")
