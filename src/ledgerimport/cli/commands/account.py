"""Account management commands."""

import click
from ledgerimport.cli.account_resolution import resolve_account_or_exit
from ledgerimport.cli.error_handling import handle_domain_error
from ledgerimport.domain.account import AccountService
from ledgerimport.utils.amount_parser import amount_to_integer, parse_amount


@click.group()
def account_group():
    """Manage accounts."""
    pass


@account_group.command("create")
@click.argument("name", metavar="ACCOUNT_NAME")
@click.option("--external-id", help="Account number as it appears on bank statements")
@click.option("--off-budget", is_flag=True, help="Keep the account out of the budget")
@click.option("--balance", default="0", help="Starting balance (e.g. 1250.00)")
@click.pass_context
def create_account(ctx, name: str, external_id: str | None, off_budget: bool, balance: str):
    """Create a new account.

    Examples:
        ledgerimport account create "Checking"
        ledgerimport account create "Visa" --external-id 4111222233334444
        ledgerimport account create "Brokerage" --off-budget --balance 1000
    """
    db = ctx.obj["db"]
    service = AccountService(db)

    try:
        account_id = service.create_account(
            name=name,
            external_id=external_id,
            offbudget=off_budget,
            initial_balance=amount_to_integer(parse_amount(balance)),
        )
        click.echo(f"Created account '{name}' (ID: {account_id})")
    except ValueError as e:
        handle_domain_error(ctx, e)


@account_group.command("list")
@click.option("--all", "show_all", is_flag=True, help="Include closed accounts")
@click.pass_context
def list_accounts(ctx, show_all: bool):
    """List accounts."""
    db = ctx.obj["db"]
    service = AccountService(db)

    accounts = service.list_accounts(include_closed=show_all)
    if not accounts:
        click.echo("No accounts found.")
        return

    click.echo("\nAccounts:")
    click.echo("-" * 60)
    for acc in accounts:
        flags = []
        if acc.offbudget:
            flags.append("off budget")
        if acc.closed:
            flags.append("closed")
        suffix = f" ({', '.join(flags)})" if flags else ""
        click.echo(f"ID: {acc.id:3d} | {acc.name:20s} | Number: {acc.external_id or '-'}{suffix}")


@account_group.command("close")
@click.argument("account", metavar="ACCOUNT")
@click.pass_context
def close_account(ctx, account: str) -> None:
    """Close an account.

    ACCOUNT can be an account name, number or ID. Closed accounts are not
    offered as import candidates.
    """
    db = ctx.obj["db"]
    service = AccountService(db)
    account_id = resolve_account_or_exit(ctx, service, account)

    try:
        service.close_account(account_id)
        click.echo(f"Closed account {account_id}")
    except ValueError as e:
        handle_domain_error(ctx, e)


def register_commands(cli):
    """Register account commands with main CLI."""
    cli.add_command(account_group, name="account")
