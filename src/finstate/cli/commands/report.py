"""Financial report commands."""

import json
from decimal import Decimal

import click
from finstate.cli.error_handling import handle_domain_error
from finstate.cli.formatting import echo_line_items, echo_rule, echo_validation_results, format_money
from finstate.cli.trial_balance_resolution import resolve_trial_balance_or_exit
from finstate.domain.cash_flow import METHODS, INDIRECT
from finstate.domain.entities import PopulationOptions, Statement
from finstate.domain.report import ReportService
from finstate.domain.statements import SECTION_TITLES, statements_to_csv, statements_to_json
from finstate.domain.templates import TEMPLATES
from finstate.domain.trial_balance import TrialBalanceService

_DEFAULTS = PopulationOptions()


@click.group()
def report_group():
    """Produce financial statements, ratios and cash flows."""
    pass


@report_group.command("statements")
@click.argument("trial_balance", metavar="TB")
@click.option("--standard", type=click.Choice(sorted(TEMPLATES)), help="Template (defaults to the trial balance's)")
@click.option("--include-zero", is_flag=True, help="Show line items with a zero balance")
@click.option("--aggregate-small", is_flag=True, help="Fold small balances into 'Other' line items")
@click.option(
    "--small-threshold",
    type=click.FLOAT,
    default=float(_DEFAULTS.small_balance_threshold),
    show_default=True,
    help="Materiality threshold for --aggregate-small",
)
@click.option(
    "--precision",
    type=int,
    default=_DEFAULTS.rounding_precision,
    show_default=True,
    help="Decimal places for line item values",
)
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["text", "json", "csv"]),
    default="text",
    show_default=True,
    help="Output format",
)
@click.pass_context
def statements(
    ctx,
    trial_balance: str,
    standard: str | None,
    include_zero: bool,
    aggregate_small: bool,
    small_threshold: float,
    precision: int,
    fmt: str,
):
    """Show the statement of financial position and profit or loss.

    Examples:
        finstate report statements FY2024
        finstate report statements FY2024 --aggregate-small --small-threshold 5000
        finstate report statements 1 --format json
    """
    db = ctx.obj["db"]
    trial_balance_id = resolve_trial_balance_or_exit(ctx, TrialBalanceService(db), trial_balance)
    options = PopulationOptions(
        include_zero_balances=include_zero,
        aggregate_small_balances=aggregate_small,
        small_balance_threshold=Decimal(str(small_threshold)),
        rounding_precision=precision,
    )

    try:
        populated, results = ReportService(db).validate_statements(trial_balance_id, standard, options)
    except ValueError as e:
        handle_domain_error(ctx, e)

    if fmt == "json":
        click.echo(statements_to_json(populated))
        return
    if fmt == "csv":
        click.echo(statements_to_csv(populated), nl=False)
        return

    totals = populated.totals
    click.echo("\nStatement of Financial Position")
    echo_rule(78, "=")
    for section, total in (
        (Statement.ASSETS, totals.total_assets),
        (Statement.LIABILITIES, totals.total_liabilities),
        (Statement.EQUITY, totals.total_equity),
    ):
        click.echo(SECTION_TITLES[section])
        echo_line_items(populated.sections[section])
        click.echo(f"{'':<8} {'Total ' + SECTION_TITLES[section]:<50} {format_money(total):>18}")
        echo_rule(78)

    click.echo("\nStatement of Profit or Loss")
    echo_rule(78, "=")
    for section in (Statement.REVENUE, Statement.EXPENSES):
        click.echo(SECTION_TITLES[section])
        echo_line_items(populated.sections[section])
        echo_rule(78)
    for label, value in (
        ("Gross Profit", totals.gross_profit),
        ("Operating Profit", totals.operating_profit),
        ("Profit Before Tax", totals.profit_before_tax),
        ("Income Tax Expense", totals.income_tax_expense),
        ("Profit for the Year", totals.profit_for_year),
    ):
        click.echo(f"{'':<8} {label:<50} {format_money(value):>18}")

    click.echo()
    echo_validation_results(results)


@report_group.command("ratios")
@click.argument("trial_balance", metavar="TB")
@click.option("--previous", help="Prior period trial balance (name or ID) for growth ratios")
@click.option("--shares", type=click.FLOAT, help="Shares outstanding for market ratios")
@click.option("--price", type=click.FLOAT, help="Share price for market ratios")
@click.option("--dividends", type=click.FLOAT, default=0.0, help="Dividends paid in the period")
@click.option("--format", "fmt", type=click.Choice(["text", "json"]), default="text", show_default=True)
@click.pass_context
def ratios(
    ctx,
    trial_balance: str,
    previous: str | None,
    shares: float | None,
    price: float | None,
    dividends: float,
    fmt: str,
):
    """Calculate financial ratios with alerts."""
    db = ctx.obj["db"]
    tb_service = TrialBalanceService(db)
    trial_balance_id = resolve_trial_balance_or_exit(ctx, tb_service, trial_balance)
    previous_id = resolve_trial_balance_or_exit(ctx, tb_service, previous) if previous else None

    suite, alerts = ReportService(db).ratios(
        trial_balance_id,
        previous_id=previous_id,
        shares_outstanding=Decimal(str(shares)) if shares else None,
        market_price=Decimal(str(price)) if price else None,
        dividends_paid=Decimal(str(dividends)),
    )

    if fmt == "json":
        payload = {
            "ratios": {
                category: [
                    {
                        "key": r.key,
                        "label": r.label,
                        "value": str(r.value),
                        "formula": r.formula,
                        "interpretation": r.interpretation,
                    }
                    for r in results
                ]
                for category, results in suite.items()
            },
            "alerts": [
                {"severity": a.severity, "ratio": a.ratio, "message": a.message, "threshold": str(a.threshold)}
                for a in alerts
            ],
        }
        click.echo(json.dumps(payload, indent=2))
        return

    for category, results in suite.items():
        click.echo(f"\n{category.title()}")
        echo_rule(100)
        for r in results:
            click.echo(f"  {r.label:<36} {r.value:>14.2f}  {r.interpretation}")
    if alerts:
        click.echo("\nAlerts:")
        for alert in alerts:
            click.echo(f"  [{alert.severity.upper()}] {alert.message}")


@report_group.command("cash-flow")
@click.argument("trial_balance", metavar="TB")
@click.option("--previous", help="Prior period trial balance (name or ID) for opening balances")
@click.option("--method", type=click.Choice(METHODS), default=INDIRECT, show_default=True)
@click.pass_context
def cash_flow(ctx, trial_balance: str, previous: str | None, method: str):
    """Derive a statement of cash flows from two balance sheets.

    Without --previous every opening balance is taken as zero.

    Examples:
        finstate report cash-flow FY2024 --previous FY2023
        finstate report cash-flow FY2024 --previous FY2023 --method direct
    """
    db = ctx.obj["db"]
    tb_service = TrialBalanceService(db)
    trial_balance_id = resolve_trial_balance_or_exit(ctx, tb_service, trial_balance)
    previous_id = resolve_trial_balance_or_exit(ctx, tb_service, previous) if previous else None

    try:
        statement, results = ReportService(db).cash_flow(trial_balance_id, previous_id, method)
    except ValueError as e:
        handle_domain_error(ctx, e)

    click.echo(f"\nStatement of Cash Flows ({statement.method} method)")
    echo_rule(78, "=")
    for section in statement.sections:
        click.echo(section.label)
        for item in section.items:
            click.echo(f"  {item.label:<56} {format_money(item.value):>18}")
        click.echo(f"  {'Net cash from ' + section.label.lower():<56} {format_money(section.total):>18}")
        echo_rule(78)
    click.echo(f"  {'Net change in cash':<56} {format_money(statement.net_change):>18}")
    click.echo(f"  {'Opening cash':<56} {format_money(statement.opening_cash):>18}")
    click.echo(f"  {'Closing cash':<56} {format_money(statement.closing_cash):>18}")
    click.echo()
    echo_validation_results(results)


def register_commands(cli):
    """Register report commands with main CLI."""
    cli.add_command(report_group, name="report")
