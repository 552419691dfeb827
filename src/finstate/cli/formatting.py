"""Shared rendering helpers for CLI output."""

from decimal import Decimal
from typing import Iterable

import click

from finstate.domain.entities import StatementLineItem, ValidationResult

STATUS_LABELS = {"pass": "PASS", "warning": "WARN", "fail": "FAIL"}


def format_money(amount: Decimal) -> str:
    """Format an amount with thousands separators and two decimals."""
    return f"{amount:,.2f}"


def echo_rule(width: int = 80, char: str = "-") -> None:
    click.echo(char * width)


def echo_validation_results(results: Iterable[ValidationResult]) -> None:
    """Print one line per check with its details indented below."""
    for result in results:
        click.echo(f"[{STATUS_LABELS.get(result.status, result.status.upper())}] {result.check}: {result.message}")
        for detail in result.details:
            click.echo(f"       {detail}")


def echo_line_items(items: Iterable[StatementLineItem], name_width: int = 50) -> None:
    """Print a statement tree, indenting each level."""
    for item in items:
        indent = "  " * (item.level - 1)
        label = f"{indent}{item.name}"
        click.echo(f"{item.code:<8} {label:<{name_width}} {format_money(item.value):>18}")
        if item.children:
            echo_line_items(item.children, name_width)
