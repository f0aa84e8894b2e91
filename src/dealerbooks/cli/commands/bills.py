"""Vendor bill commands."""

import click


@click.group()
def bills_group():
    """Inspect imported vendor bills."""
    pass


@bills_group.command("list")
@click.option("--vendor", help="Only bills for this vendor name")
@click.option("--open", "open_only", is_flag=True, help="Only bills with a balance left")
@click.pass_context
def list_bills(ctx, vendor: str | None, open_only: bool):
    """List bills, oldest first."""
    db = ctx.obj["db"]

    bills = db.list_bills(vendor_name=vendor, open_only=open_only)
    if not bills:
        click.echo("No bills found.")
        return

    click.echo("\nBills:")
    click.echo("-" * 100)
    for bill in bills:
        bill_date = bill.bill_date.isoformat() if bill.bill_date else "-"
        click.echo(
            f"{bill.bill_number:30.30s} | {bill.vendor_name:20.20s} | {bill_date:10s} | "
            f"{bill.status:8s} | Total: {bill.total:>10.2f} | Balance: {bill.balance:>10.2f}"
        )


def register_commands(cli):
    """Register bills commands with main CLI."""
    cli.add_command(bills_group, name="bills")
