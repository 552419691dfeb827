"""Account mapping commands."""

import click
from finstate.cli.error_handling import handle_domain_error
from finstate.cli.trial_balance_resolution import resolve_trial_balance_or_exit
from finstate.domain.classification import AUTO_MAP_THRESHOLD, SUGGESTION_THRESHOLD
from finstate.domain.entities import STATEMENT_ORDER, UNMAPPED
from finstate.domain.mapping import MappingService
from finstate.domain.trial_balance import TrialBalanceService

STATEMENT_CHOICES = [s.value for s in STATEMENT_ORDER] + [UNMAPPED]


@click.group()
def mapping_group():
    """Classify accounts into statement line items."""
    pass


@mapping_group.command("suggest")
@click.argument("trial_balance", metavar="TB")
@click.option(
    "--threshold",
    type=int,
    default=SUGGESTION_THRESHOLD,
    show_default=True,
    help="Minimum confidence (0-100)",
)
@click.option("--all", "include_mapped", is_flag=True, help="Include accounts that are already mapped")
@click.pass_context
def suggest(ctx, trial_balance: str, threshold: int, include_mapped: bool):
    """Suggest mappings for unmapped accounts."""
    db = ctx.obj["db"]
    trial_balance_id = resolve_trial_balance_or_exit(ctx, TrialBalanceService(db), trial_balance)
    service = MappingService(db)

    suggestions = service.suggest(trial_balance_id, threshold=threshold, include_mapped=include_mapped)
    if not suggestions:
        click.echo("No suggestions found.")
        return

    click.echo(f"\nFound {len(suggestions)} suggestion(s):")
    click.echo("-" * 110)
    click.echo(f"{'Account':<12} {'Statement':<12} {'Line Item':<36} {'Conf':>4}  Reason")
    click.echo("-" * 110)
    for s in suggestions:
        click.echo(f"{s.account_id:<12} {s.statement.value:<12} {s.line_item[:36]:<36} {s.confidence:>4}  {s.reason}")


@mapping_group.command("set")
@click.argument("trial_balance", metavar="TB")
@click.argument("account_id", metavar="ACCOUNT_ID")
@click.argument("statement", type=click.Choice(STATEMENT_CHOICES))
@click.argument("line_item", required=False)
@click.option("--expected-version", type=int, help="Fail if the trial balance changed since this version")
@click.pass_context
def set_mapping(
    ctx,
    trial_balance: str,
    account_id: str,
    statement: str,
    line_item: str | None,
    expected_version: int | None,
):
    """Map an account to a statement line item.

    Use STATEMENT "unmapped" (without LINE_ITEM) to clear a mapping.

    Examples:
        finstate mapping set FY2024 1000 assets "Cash and Cash Equivalents"
        finstate mapping set FY2024 9999 unmapped
    """
    db = ctx.obj["db"]
    service = TrialBalanceService(db)
    trial_balance_id = resolve_trial_balance_or_exit(ctx, service, trial_balance)

    try:
        tb = service.update_mapping(
            trial_balance_id,
            account_id,
            statement,
            line_item,
            user_id=ctx.obj["user"],
            expected_version=expected_version,
        )
    except ValueError as e:
        handle_domain_error(ctx, e)

    click.echo(f"{tb.edit_history[-1].description} (version {tb.version})")
    if statement != UNMAPPED:
        for warning in MappingService(db).warnings(trial_balance_id).get(account_id, []):
            click.echo(f"Warning: {warning}", err=True)


@mapping_group.command("auto")
@click.argument("trial_balance", metavar="TB")
@click.option(
    "--threshold",
    type=int,
    default=AUTO_MAP_THRESHOLD,
    show_default=True,
    help="Minimum confidence to accept a suggestion",
)
@click.option("--expected-version", type=int, help="Fail if the trial balance changed since this version")
@click.pass_context
def auto(ctx, trial_balance: str, threshold: int, expected_version: int | None):
    """Map every unmapped account with a confident suggestion."""
    db = ctx.obj["db"]
    trial_balance_id = resolve_trial_balance_or_exit(ctx, TrialBalanceService(db), trial_balance)
    service = MappingService(db)

    try:
        tb, applied = service.auto_map(
            trial_balance_id,
            threshold=threshold,
            user_id=ctx.obj["user"],
            expected_version=expected_version,
        )
    except ValueError as e:
        handle_domain_error(ctx, e)

    if not applied:
        click.echo("No accounts met the threshold.")
        return
    for s in applied:
        click.echo(f"  {s.account_id:<12} -> {s.statement.value}.{s.line_item} ({s.confidence})")
    click.echo(f"Mapped {len(applied)} account(s) (version {tb.version})")


@mapping_group.command("quality")
@click.argument("trial_balance", metavar="TB")
@click.pass_context
def quality(ctx, trial_balance: str):
    """Report mapping completion and balance consistency."""
    db = ctx.obj["db"]
    trial_balance_id = resolve_trial_balance_or_exit(ctx, TrialBalanceService(db), trial_balance)
    service = MappingService(db)

    result = service.quality(trial_balance_id)
    click.echo(f"Mapped accounts:   {result.mapped_accounts}/{result.total_accounts}")
    click.echo(f"Completion:        {result.completion * 100:.1f}%")
    click.echo(f"Balance score:     {result.balance_score * 100:.1f}%")
    click.echo(f"Overall score:     {result.score * 100:.1f}%")
    for issue in result.issues:
        click.echo(f"Issue: {issue}")
    if result.unmapped_account_ids:
        click.echo(f"Unmapped: {', '.join(result.unmapped_account_ids)}")

    warnings = service.warnings(trial_balance_id)
    for account_id, messages in warnings.items():
        for message in messages:
            click.echo(f"Warning [{account_id}]: {message}")


def register_commands(cli):
    """Register mapping commands with main CLI."""
    cli.add_command(mapping_group, name="mapping")
