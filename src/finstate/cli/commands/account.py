"""Ledger account commands."""

import click
from finstate.cli.error_handling import handle_domain_error
from finstate.cli.formatting import format_money
from finstate.cli.trial_balance_resolution import resolve_trial_balance_or_exit
from finstate.domain.trial_balance import TrialBalanceService
from finstate.utils.amount_parser import parse_amount


@click.group()
def account_group():
    """Edit and adjust trial balance accounts."""
    pass


def _amount_or_exit(ctx, value: str, label: str):
    try:
        return parse_amount(value)
    except ValueError as e:
        click.echo(f"Error: Invalid {label}: {e}", err=True)
        ctx.exit(1)


@account_group.command("edit")
@click.argument("trial_balance", metavar="TB")
@click.argument("account_id", metavar="ACCOUNT_ID")
@click.option("--name", help="New account name")
@click.option("--description", help="New description")
@click.option("--adj-debit", help="Replace the accumulated debit adjustment")
@click.option("--adj-credit", help="Replace the accumulated credit adjustment")
@click.option("--expected-version", type=int, help="Fail if the trial balance changed since this version")
@click.pass_context
def edit_account(
    ctx,
    trial_balance: str,
    account_id: str,
    name: str | None,
    description: str | None,
    adj_debit: str | None,
    adj_credit: str | None,
    expected_version: int | None,
):
    """Edit account fields.

    Original amounts are never edited; --adj-debit and --adj-credit replace
    the running adjustment totals.

    Examples:
        finstate account edit FY2024 1000 --name "Petty Cash"
        finstate account edit 1 4000 --adj-credit 2500
    """
    service = TrialBalanceService(ctx.obj["db"])
    trial_balance_id = resolve_trial_balance_or_exit(ctx, service, trial_balance)

    changes = {}
    if name is not None:
        changes["account_name"] = name
    if description is not None:
        changes["description"] = description
    if adj_debit is not None:
        changes["adjustment_debit"] = _amount_or_exit(ctx, adj_debit, "debit adjustment")
    if adj_credit is not None:
        changes["adjustment_credit"] = _amount_or_exit(ctx, adj_credit, "credit adjustment")

    try:
        tb = service.edit_account(
            trial_balance_id,
            account_id,
            changes,
            user_id=ctx.obj["user"],
            expected_version=expected_version,
        )
    except ValueError as e:
        handle_domain_error(ctx, e)

    click.echo(f"{tb.edit_history[-1].description} (version {tb.version})")


@account_group.command("adjust")
@click.argument("trial_balance", metavar="TB")
@click.argument("account_id", metavar="ACCOUNT_ID")
@click.option("--debit", default="0", help="Debit amount to add (may be negative)")
@click.option("--credit", default="0", help="Credit amount to add (may be negative)")
@click.option("--description", help="Audit trail description")
@click.option("--expected-version", type=int, help="Fail if the trial balance changed since this version")
@click.pass_context
def adjust_account(
    ctx,
    trial_balance: str,
    account_id: str,
    debit: str,
    credit: str,
    description: str | None,
    expected_version: int | None,
):
    """Post an adjusting entry to one account.

    Examples:
        finstate account adjust FY2024 1200 --debit 5000 --description "Accrued income"
        finstate account adjust FY2024 2100 --credit -150
    """
    service = TrialBalanceService(ctx.obj["db"])
    trial_balance_id = resolve_trial_balance_or_exit(ctx, service, trial_balance)
    delta_debit = _amount_or_exit(ctx, debit, "debit")
    delta_credit = _amount_or_exit(ctx, credit, "credit")

    try:
        tb = service.apply_adjustment(
            trial_balance_id,
            account_id,
            delta_debit,
            delta_credit,
            description=description,
            user_id=ctx.obj["user"],
            expected_version=expected_version,
        )
    except ValueError as e:
        handle_domain_error(ctx, e)

    account = tb.get_account(account_id)
    click.echo(f"Adjusted account {account_id} (version {tb.version})")
    click.echo(f"  Final debit:  {format_money(account.final_debit)}")
    click.echo(f"  Final credit: {format_money(account.final_credit)}")


def register_commands(cli):
    """Register account commands with main CLI."""
    cli.add_command(account_group, name="account")
