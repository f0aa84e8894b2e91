"""Chart of accounts commands."""

import click
from dealerbooks.domain.accounts import ChartOfAccountsService


@click.group()
def accounts_group():
    """Browse the chart of accounts."""
    pass


def _print_tree(nodes: list[dict], depth: int = 0) -> None:
    for node in nodes:
        indent = "  " * depth
        click.echo(
            f"{indent}{node['account_number']} {node['account_name']} "
            f"({node['account_type']}) {node['current_balance']:>12.2f}"
        )
        _print_tree(node.get("children", []), depth + 1)


@accounts_group.command("list")
@click.option("--tree", is_flag=True, help="Show parent/child hierarchy")
@click.pass_context
def list_accounts(ctx, tree: bool):
    """List chart of accounts with current balances."""
    db = ctx.obj["db"]
    service = ChartOfAccountsService(db)

    if tree:
        nodes = service.get_account_tree()
        if not nodes:
            click.echo("No accounts found.")
            return
        _print_tree(nodes)
        return

    accounts = service.list_accounts()
    if not accounts:
        click.echo("No accounts found.")
        return

    click.echo("\nAccounts:")
    click.echo("-" * 80)
    for acc in accounts:
        click.echo(
            f"{acc.account_number:>8s} | {acc.account_name:30.30s} | "
            f"{acc.account_type:20s} | {acc.current_balance:>12.2f}"
        )


def register_commands(cli):
    """Register accounts commands with main CLI."""
    cli.add_command(accounts_group, name="accounts")
