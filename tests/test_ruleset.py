"""Tests for the classification rule catalog."""

import pytest

from finstate.domain.entities import ClassificationRule, Statement
from finstate.domain.errors import NotFoundError, ValidationError
from finstate.domain.ruleset import DEFAULT_RULES, RuleSet, validate_rule


def _rule(rule_id="custom", **kwargs):
    values = {
        "name": "Custom",
        "statement": Statement.EXPENSES,
        "line_item": "Other Operating Expenses",
        "keywords": ("custom",),
    }
    values.update(kwargs)
    return ClassificationRule(id=rule_id, **values)


def test_default_catalog_is_valid():
    ids = [r.id for r in DEFAULT_RULES]
    assert len(ids) == len(set(ids))
    for rule in DEFAULT_RULES:
        validate_rule(rule)
    assert {r.statement for r in DEFAULT_RULES} == set(Statement)


def test_rule_set_defaults_to_catalog():
    rules = RuleSet()
    assert len(rules) == len(DEFAULT_RULES)
    assert "cash-bank" in rules
    assert rules.get("cash-bank").line_item == "Cash and Cash Equivalents"
    assert rules.get("missing") is None


def test_add_replaces_rule_with_same_id():
    rules = RuleSet([_rule(priority=10)])
    rules.add(_rule(priority=60, line_item="Selling Expenses"))

    assert len(rules) == 1
    assert rules.get("custom").line_item == "Selling Expenses"


def test_remove():
    rules = RuleSet([_rule()])
    rules.remove("custom")
    assert len(rules) == 0

    with pytest.raises(NotFoundError, match="Classification rule 'custom' not found"):
        rules.remove("custom")


def test_sorted_by_priority_is_stable():
    rules = RuleSet([_rule("a", priority=50), _rule("b", priority=90), _rule("c", priority=50)])
    assert [r.id for r in rules.sorted_by_priority()] == ["b", "a", "c"]


def test_by_statement_and_search():
    rules = RuleSet()

    liabilities = rules.by_statement(Statement.LIABILITIES)
    assert liabilities
    assert all(r.statement == Statement.LIABILITIES for r in liabilities)

    assert "trade-payables" in [r.id for r in rules.search("CREDITORS")]
    assert "cash-bank" in [r.id for r in rules.search("petty cash")]
    assert len(rules.search("  ")) == len(rules)
    assert rules.search("no such thing") == []


@pytest.mark.parametrize(
    "rule, message",
    [
        (_rule(" "), "ID cannot be empty"),
        (_rule(line_item=""), "has no line item"),
        (_rule(keywords=()), "needs at least one keyword"),
        (_rule(patterns=("([unclosed",)), "Invalid pattern"),
        (_rule(statement="assets"), "invalid statement"),
    ],
)
def test_validate_rule_rejects(rule, message):
    with pytest.raises(ValidationError, match=message):
        validate_rule(rule)


def test_add_validates():
    with pytest.raises(ValidationError):
        RuleSet([]).add(_rule(keywords=()))
