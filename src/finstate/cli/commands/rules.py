"""Classification rule commands."""

import click
from finstate.cli.error_handling import handle_domain_error
from finstate.domain.entities import STATEMENT_ORDER, ClassificationRule, Statement
from finstate.domain.rules import RuleService

STATEMENT_CHOICES = [s.value for s in STATEMENT_ORDER]


@click.group()
def rules_group():
    """Manage classification rules."""
    pass


def _echo_rules(rules: list[ClassificationRule]) -> None:
    click.echo("-" * 100)
    click.echo(f"{'ID':<28} {'Statement':<12} {'Line Item':<36} {'Prio':>4}  Source")
    click.echo("-" * 100)
    for rule in rules:
        source = "custom" if rule.is_custom else "built-in"
        click.echo(
            f"{rule.id[:28]:<28} {rule.statement.value:<12} {rule.line_item[:36]:<36} {rule.priority:>4}  {source}"
        )


@rules_group.command("list")
@click.option("--statement", type=click.Choice(STATEMENT_CHOICES), help="Only rules for this statement")
@click.pass_context
def list_rules(ctx, statement: str | None):
    """List classification rules by priority."""
    service = RuleService(ctx.obj["db"])

    rules = service.list_rules(Statement(statement) if statement else None)
    if not rules:
        click.echo("No rules found.")
        return
    click.echo(f"\n{len(rules)} rule(s):")
    _echo_rules(rules)


@rules_group.command("search")
@click.argument("query")
@click.pass_context
def search_rules(ctx, query: str):
    """Search rule names, line items and keywords."""
    service = RuleService(ctx.obj["db"])

    rules = service.search_rules(query)
    if not rules:
        click.echo(f"No rules match '{query}'.")
        return
    click.echo(f"\n{len(rules)} rule(s) match '{query}':")
    _echo_rules(rules)


@rules_group.command("add")
@click.argument("rule_id", metavar="RULE_ID")
@click.option("--name", help="Rule name (defaults to the line item)")
@click.option("--statement", type=click.Choice(STATEMENT_CHOICES), required=True, help="Target statement")
@click.option("--line-item", required=True, help="Target line item")
@click.option("--keyword", "keywords", multiple=True, help="Keyword (repeatable)")
@click.option("--pattern", "patterns", multiple=True, help="Regular expression (repeatable)")
@click.option("--code", "codes", multiple=True, help="Account code prefix (repeatable)")
@click.option("--priority", type=int, default=50, show_default=True, help="Rule priority")
@click.option("--description", help="Rule description")
@click.option("--replace", "replace_existing", is_flag=True, help="Replace an existing rule with the same ID")
@click.pass_context
def add_rule(
    ctx,
    rule_id: str,
    name: str | None,
    statement: str,
    line_item: str,
    keywords: tuple[str, ...],
    patterns: tuple[str, ...],
    codes: tuple[str, ...],
    priority: int,
    description: str | None,
    replace_existing: bool,
):
    """Add a custom classification rule.

    Examples:
        finstate rules add fuel-cards --statement expenses --line-item "Selling Expenses" --keyword "fuel card"
        finstate rules add cash-bank --replace --statement assets --line-item "Cash and Cash Equivalents" --pattern "\\bfnb\\b"
    """
    service = RuleService(ctx.obj["db"])
    rule = ClassificationRule(
        id=rule_id,
        name=name or line_item,
        statement=Statement(statement),
        line_item=line_item,
        keywords=keywords,
        patterns=patterns,
        account_codes=codes,
        priority=priority,
        description=description,
    )

    try:
        service.add_rule(rule, replace_existing=replace_existing)
    except ValueError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Saved rule '{rule_id}' ({statement}.{line_item})")


@rules_group.command("remove")
@click.argument("rule_id", metavar="RULE_ID")
@click.pass_context
def remove_rule(ctx, rule_id: str):
    """Remove a custom classification rule."""
    service = RuleService(ctx.obj["db"])

    try:
        service.remove_rule(rule_id)
    except ValueError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Removed rule '{rule_id}'")


def register_commands(cli):
    """Register rule commands with main CLI."""
    cli.add_command(rules_group, name="rules")
