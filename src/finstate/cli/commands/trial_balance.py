"""Trial balance commands."""

from pathlib import Path

import click
from finstate.cli.error_handling import handle_domain_error
from finstate.cli.formatting import echo_rule, echo_validation_results, format_money
from finstate.cli.trial_balance_resolution import resolve_trial_balance_or_exit
from finstate.domain import ledger
from finstate.domain.classification import AUTO_MAP_THRESHOLD
from finstate.domain.csv_import import TrialBalanceImportService
from finstate.domain.entities import UNMAPPED
from finstate.domain.templates import TEMPLATES
from finstate.domain.trial_balance import EXPORT_FORMATS, TrialBalanceService
from finstate.utils.date_parser import parse_period_end


@click.group()
def tb_group():
    """Import and inspect trial balances."""
    pass


@tb_group.command("import")
@click.argument("csv_file", type=click.Path(exists=True))
@click.option("--name", help="Trial balance name (defaults to the file name)")
@click.option("--period-end", help="Period end date (e.g. 2024-06-30, 'June 2024', 'last month')")
@click.option(
    "--standard",
    type=click.Choice(sorted(TEMPLATES)),
    default="full",
    show_default=True,
    help="IFRS statement template",
)
@click.option("--auto-map", is_flag=True, help="Map accounts with a confident suggestion")
@click.option(
    "--threshold",
    type=int,
    default=AUTO_MAP_THRESHOLD,
    show_default=True,
    help="Confidence threshold for --auto-map",
)
@click.pass_context
def import_tb(
    ctx,
    csv_file: str,
    name: str | None,
    period_end: str | None,
    standard: str,
    auto_map: bool,
    threshold: int,
):
    """Import a trial balance from a CSV file.

    The file needs account ID, account name and debit/credit (or a single
    signed balance) columns. Optional statement and line item columns are
    imported as mappings.

    Examples:
        finstate tb import tb_2024.csv --name "FY2024" --period-end 2024-12-31
        finstate tb import export.csv --auto-map
    """
    db = ctx.obj["db"]
    service = TrialBalanceImportService(db)

    period = None
    if period_end:
        try:
            period = parse_period_end(period_end)
        except ValueError as e:
            click.echo(f"Error: Invalid period end: {e}", err=True)
            ctx.exit(1)

    try:
        result = service.import_csv(
            csv_file,
            name=name,
            period_end=period,
            ifrs_standard=standard,
            user_id=ctx.obj["user"],
            auto_classify=auto_map,
            threshold=threshold,
        )
    except (ValueError, FileNotFoundError) as e:
        handle_domain_error(ctx, e)

    tb = result["trial_balance"]
    validation = ledger.validate(tb)
    click.echo(f"\nImport complete: '{tb.name}' (ID: {tb.id})")
    click.echo(f"  Imported: {result['imported']} accounts")
    click.echo(f"  Mapped: {result['mapped']} accounts")
    click.echo(f"  Debits: {format_money(validation.total_debits)}")
    click.echo(f"  Credits: {format_money(validation.total_credits)}")
    if not validation.is_balanced:
        click.echo(f"  Warning: out of balance by {format_money(validation.difference)}")
    if result["errors"]:
        click.echo(f"  Errors: {len(result['errors'])}")
        for error in result["errors"]:
            click.echo(f"    {error}", err=True)


@tb_group.command("list")
@click.pass_context
def list_tbs(ctx):
    """List stored trial balances."""
    service = TrialBalanceService(ctx.obj["db"])

    summaries = service.list_trial_balances()
    if not summaries:
        click.echo("No trial balances found.")
        return

    click.echo("\nTrial balances:")
    echo_rule(90)
    click.echo(f"{'ID':<5} {'Name':<30} {'Version':<8} {'Accounts':<9} {'Period End':<12} {'Standard':<8}")
    echo_rule(90)
    for s in summaries:
        period = s.period_end.isoformat() if s.period_end else ""
        click.echo(
            f"{s.id:<5} {s.name[:30]:<30} {s.version:<8} {s.account_count:<9} {period:<12} {s.ifrs_standard:<8}"
        )


@tb_group.command("show")
@click.argument("trial_balance", metavar="TB")
@click.option("--as-of", "as_of", type=int, help="Show the trial balance as it was at this version")
@click.pass_context
def show_tb(ctx, trial_balance: str, as_of: int | None):
    """Show accounts with original, adjustment and final amounts.

    TB can be a trial balance name or ID.
    """
    service = TrialBalanceService(ctx.obj["db"])
    trial_balance_id = resolve_trial_balance_or_exit(ctx, service, trial_balance)

    try:
        tb = service.as_of(trial_balance_id, as_of) if as_of is not None else service.get(trial_balance_id)
    except ValueError as e:
        handle_domain_error(ctx, e)

    period = tb.period_end.isoformat() if tb.period_end else "n/a"
    click.echo(f"\n{tb.name} (ID: {tb.id}) version {tb.version}, period end {period}, standard {tb.ifrs_standard}")
    echo_rule(130)
    click.echo(
        f"{'Account':<12} {'Name':<32} {'Orig Dr':>14} {'Orig Cr':>14} {'Adj Dr':>12} {'Adj Cr':>12} "
        f"{'Final Dr':>14} {'Final Cr':>14}  Mapping"
    )
    echo_rule(130)
    for account in tb.accounts:
        mapping = tb.mappings.get(account.account_id)
        target = f"{mapping.statement.value}.{mapping.line_item}" if mapping else UNMAPPED
        marker = "*" if account.is_edited else " "
        click.echo(
            f"{account.account_id:<12} {account.account_name[:31] + marker:<32} "
            f"{format_money(account.original_debit):>14} {format_money(account.original_credit):>14} "
            f"{format_money(account.adjustment_debit):>12} {format_money(account.adjustment_credit):>12} "
            f"{format_money(account.final_debit):>14} {format_money(account.final_credit):>14}  {target}"
        )
    validation = ledger.validate(tb)
    echo_rule(130)
    click.echo(
        f"{'Totals':<45} {'':>14} {'':>14} {'':>12} {'':>12} "
        f"{format_money(validation.total_debits):>14} {format_money(validation.total_credits):>14}"
    )


@tb_group.command("validate")
@click.argument("trial_balance", metavar="TB")
@click.option("--original", is_flag=True, help="Check original amounts instead of final amounts")
@click.pass_context
def validate_tb(ctx, trial_balance: str, original: bool):
    """Check that total debits equal total credits."""
    service = TrialBalanceService(ctx.obj["db"])
    trial_balance_id = resolve_trial_balance_or_exit(ctx, service, trial_balance)

    result = service.validate(trial_balance_id, use_final=not original)
    click.echo(f"Total debits:  {format_money(result.total_debits)}")
    click.echo(f"Total credits: {format_money(result.total_credits)}")
    click.echo(f"Difference:    {format_money(result.difference)}")
    if result.is_balanced:
        click.echo("Trial balance is balanced.")
    else:
        click.echo("Trial balance is NOT balanced.")
        ctx.exit(1)


@tb_group.command("checks")
@click.argument("trial_balance", metavar="TB")
@click.option("--previous", help="Prior period trial balance (name or ID) for consistency checks")
@click.pass_context
def checks_tb(ctx, trial_balance: str, previous: str | None):
    """Run the full validation suite."""
    service = TrialBalanceService(ctx.obj["db"])
    trial_balance_id = resolve_trial_balance_or_exit(ctx, service, trial_balance)
    previous_id = None
    if previous is not None:
        previous_id = resolve_trial_balance_or_exit(ctx, service, previous)

    results = service.run_checks(trial_balance_id, previous_id)
    echo_validation_results(results)
    failed = [r for r in results if not r.is_valid]
    click.echo(f"\n{len(results)} checks, {len(failed)} failed")
    if failed:
        ctx.exit(1)


@tb_group.command("export")
@click.argument("trial_balance", metavar="TB")
@click.option(
    "--format",
    "fmt",
    type=click.Choice(EXPORT_FORMATS),
    default="csv",
    show_default=True,
    help="Export format",
)
@click.option("--output", "-o", type=click.Path(), help="Write to a file instead of stdout")
@click.pass_context
def export_tb(ctx, trial_balance: str, fmt: str, output: str | None):
    """Export accounts, mappings and (for JSON) the edit history."""
    service = TrialBalanceService(ctx.obj["db"])
    trial_balance_id = resolve_trial_balance_or_exit(ctx, service, trial_balance)

    text = service.export(trial_balance_id, fmt)
    if output:
        Path(output).write_text(text, encoding="utf-8")
        click.echo(f"Exported trial balance to {output}")
    else:
        click.echo(text, nl=False)


@tb_group.command("history")
@click.argument("trial_balance", metavar="TB")
@click.option("--account", help="Only show records for this account ID")
@click.pass_context
def history_tb(ctx, trial_balance: str, account: str | None):
    """Show the audit trail, oldest first."""
    service = TrialBalanceService(ctx.obj["db"])
    trial_balance_id = resolve_trial_balance_or_exit(ctx, service, trial_balance)

    records = service.history(trial_balance_id, account)
    if not records:
        click.echo("No history found.")
        return

    for record in records:
        click.echo(
            f"v{record.version:<4} {record.timestamp:%Y-%m-%d %H:%M:%S} {record.user_id:<12} "
            f"{record.action.value:<15} {record.description}"
        )
        for change in record.changes:
            click.echo(f"        {change.field}: {change.old_value} -> {change.new_value}")


@tb_group.command("delete")
@click.argument("trial_balance", metavar="TB")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete_tb(ctx, trial_balance: str, yes: bool):
    """Delete a trial balance with its mappings and history."""
    service = TrialBalanceService(ctx.obj["db"])
    trial_balance_id = resolve_trial_balance_or_exit(ctx, service, trial_balance)
    tb = service.get(trial_balance_id)

    if not yes and not click.confirm(f"Are you sure you want to delete trial balance '{tb.name}' (ID: {tb.id})?"):
        click.echo("Deletion cancelled.")
        return

    service.delete(trial_balance_id)
    click.echo(f"Deleted trial balance '{tb.name}'")


def register_commands(cli):
    """Register trial balance commands with main CLI."""
    cli.add_command(tb_group, name="tb")
