"""Tests for the account classification engine."""

from decimal import Decimal

import pytest

from finstate.domain.classification import (
    BOOST,
    FLOOR,
    PENALTY,
    VETO,
    AccountText,
    Override,
    apply_overrides,
    auto_map,
    best_match,
    business_rule_warnings,
    classify,
    fallback_classification,
    generate_suggestions,
    keyword_score,
    mapping_quality,
    score_rule,
)
from finstate.domain.entities import AccountMapping, ClassificationRule, RawAccount, Statement
from finstate.domain.ruleset import DEFAULT_RULES, RuleSet


def _account(name, debit="0", credit="0", account_id="X1"):
    return RawAccount(account_id, name, Decimal(debit), Decimal(credit))


def _liability_confidence(account):
    return max(
        score_rule(account, rule).confidence
        for rule in DEFAULT_RULES
        if rule.statement == Statement.LIABILITIES
    )


@pytest.mark.parametrize(
    "account_id, name, debit, credit, statement, line_item",
    [
        ("1000", "Cash at Bank", "50000", "0", Statement.ASSETS, "Cash and Cash Equivalents"),
        ("2100", "Trade Payables", "0", "25000", Statement.LIABILITIES, "Trade Payables"),
        ("2500", "Bank Loan", "0", "40000", Statement.LIABILITIES, "Other Non-Current Liabilities"),
        ("3000", "Share Capital", "0", "50000", Statement.EQUITY, "Share Capital"),
        ("3500", "Retained Earnings", "0", "45000", Statement.EQUITY, "Retained Earnings"),
        ("4000", "Sales Revenue", "0", "200000", Statement.REVENUE, "Revenue from Sales"),
        ("5000", "Cost of Sales", "120000", "0", Statement.EXPENSES, "Cost of Sales"),
        ("5050", "Salaries and Wages", "30000", "0", Statement.EXPENSES, "Employee Benefits"),
    ],
)
def test_classify_common_accounts(account_id, name, debit, credit, statement, line_item):
    suggestion = classify(_account(name, debit, credit, account_id))

    assert suggestion is not None
    assert suggestion.statement == statement
    assert suggestion.line_item == line_item
    assert suggestion.confidence >= 90
    assert suggestion.rule_id is not None


def test_bank_loan_is_never_cash():
    """Test a bank loan named after its bank classifies as a liability."""
    account = _account("Equity Bank Loan", credit="100000", account_id="L1")

    cash_score = score_rule(account, RuleSet().get("cash-bank"))
    assert cash_score.confidence == 0
    assert cash_score.vetoed is True

    suggestion = classify(account)
    assert suggestion.statement == Statement.LIABILITIES
    assert suggestion.confidence >= 90
    assert "bank loan" in suggestion.reason


@pytest.mark.parametrize(
    "name",
    ["Accrued Salaries", "Trade", "VAT", "Rent", "Insurance", "Interest", "Loan"],
)
def test_payable_suffix_never_lowers_liability_confidence(name):
    plain = _liability_confidence(_account(name, credit="100"))
    with_payable = _liability_confidence(_account(f"{name} Payable", credit="100"))
    assert with_payable >= plain


@pytest.mark.parametrize(
    "name",
    [
        "Accrued Salaries",
        "Trade",
        "VAT",
        "Rent",
        "Insurance",
        "Interest",
        "Loan",
        "Office Supplies",
        "Sales",
        "Bank Charges",
        "Share Capital",
        "Income Tax",
    ],
)
def test_payable_suffix_never_raises_other_statement_confidence(name):
    """Test adding "Payable" never makes a non-liability rule more confident."""
    for account_id in ("2100", "5170", "X1"):
        for side in ("debit", "credit"):
            plain = _account(name, account_id=account_id, **{side: "100"})
            with_payable = _account(f"{name} Payable", account_id=account_id, **{side: "100"})
            for rule in DEFAULT_RULES:
                if rule.statement == Statement.LIABILITIES:
                    continue
                assert (
                    score_rule(with_payable, rule).confidence <= score_rule(plain, rule).confidence
                ), f"{rule.id} rose for {name} Payable ({account_id}, {side})"


def test_receivable_vetoes_non_asset_rules():
    account = _account("Other Receivables", debit="100")
    for rule in DEFAULT_RULES:
        if rule.statement != Statement.ASSETS:
            assert score_rule(account, rule).confidence == 0


def test_classification_is_deterministic():
    account = _account("Office Rent Expense", debit="1200", account_id="5170")
    assert classify(account) == classify(account)


def test_fallback_uses_code_range():
    """Test unmatched accounts fall back to the leading digit of their code."""
    revenue = fallback_classification(_account("Qwerty", credit="100", account_id="4999"))
    assert revenue.statement == Statement.REVENUE
    assert revenue.line_item == "Other Income"
    assert revenue.confidence == 25
    assert revenue.reason == "fallback: account code 4xxx range with matching balance"

    expense = fallback_classification(_account("Qwerty", credit="100", account_id="9999"))
    assert expense.statement == Statement.EXPENSES
    assert expense.line_item == "Other Operating Expenses"
    assert expense.confidence == 15

    assert fallback_classification(_account("Qwerty", debit="1", account_id="A-1")) is None
    assert fallback_classification(_account("Qwerty", debit="1", account_id="0100")) is None


def test_classify_without_match_or_code_is_none():
    assert classify(_account("Qwerty", debit="1", account_id="ZZ")) is None


def test_classify_falls_back_below_threshold():
    suggestion = classify(_account("Qwerty", credit="100", account_id="4999"))
    assert suggestion.confidence == 25
    assert suggestion.rule_id is None


def test_custom_rule_set_is_respected():
    rule = ClassificationRule(
        id="fuel-cards",
        name="Fuel Cards",
        statement=Statement.EXPENSES,
        line_item="Selling Expenses",
        keywords=("fuel card",),
        patterns=(r"fuel\s*card",),
        priority=99,
    )
    rules = RuleSet()
    rules.add(rule)

    suggestion = classify(_account("Fuel Card Shell", debit="300", account_id="ZZ"), rules)
    assert suggestion.rule_id == "fuel-cards"
    assert suggestion.line_item == "Selling Expenses"


def test_keyword_score_prefers_phrases_and_caps():
    rule = ClassificationRule(
        id="k",
        name="k",
        statement=Statement.ASSETS,
        line_item="Inventory",
        keywords=("raw materials", "stock", "goods", "finished goods", "work in progress"),
    )
    phrase, _ = keyword_score(rule, AccountText.of(_account("Raw Materials")))
    single, _ = keyword_score(rule, AccountText.of(_account("Stock")))
    capped, reason = keyword_score(
        rule, AccountText.of(_account("Raw materials stock goods finished goods work in progress"))
    )

    assert phrase > single
    assert capped == 50
    assert reason.startswith("keywords: raw materials")


def _override(effect, amount):
    return Override(
        f"test-{effect}",
        effect,
        amount,
        f"{effect} fired",
        lambda rule: True,
        lambda text: "trigger" in text.full,
    )


def test_apply_overrides_effects():
    rule = DEFAULT_RULES[0]
    text = AccountText.of(_account("Trigger"))

    assert apply_overrides(rule, text, 50, [_override(BOOST, 20)])[0] == 70
    assert apply_overrides(rule, text, 10, [_override(PENALTY, 30)])[0] == 0
    assert apply_overrides(rule, text, 10, [_override(FLOOR, 90)])[0] == 90

    score, reasons, vetoed = apply_overrides(
        rule, text, 80, [_override(FLOOR, 90), _override(VETO, 0)]
    )
    assert (score, vetoed) == (0, True)
    assert reasons == ["floor fired", "veto fired"]

    untouched = AccountText.of(_account("Nothing"))
    assert apply_overrides(rule, untouched, 40, [_override(VETO, 0)]) == (40, [], False)


def test_best_match_returns_highest_scoring_rule():
    result = best_match(_account("Petty Cash", debit="200", account_id="1001"))
    assert result.rule.id == "cash-bank"
    assert result.confidence == 100


def test_generate_suggestions_sorted_and_filtered(raw_accounts):
    suggestions = generate_suggestions(raw_accounts, threshold=90)

    confidences = [s.confidence for s in suggestions]
    assert confidences == sorted(confidences, reverse=True)
    assert all(c >= 90 for c in confidences)
    assert "1000" in {s.account_id for s in suggestions}


def test_auto_map_skips_mapped_accounts(raw_accounts):
    mappings = {"1000": AccountMapping("1000", Statement.ASSETS, "Other Current Assets")}
    suggestions = auto_map(raw_accounts, mappings)

    assert "1000" not in {s.account_id for s in suggestions}
    assert all(s.confidence >= 80 for s in suggestions)


def test_mapping_quality_complete(sample_ledger):
    quality = mapping_quality(sample_ledger.accounts, sample_ledger.mappings)

    assert quality.total_accounts == 12
    assert quality.mapped_accounts == 12
    assert quality.completion == Decimal("1.0000")
    assert quality.balance_score == Decimal("1.0000")
    assert quality.score == Decimal("1.0000")
    assert quality.issues == ()


def test_mapping_quality_partial(sample_ledger):
    mappings = dict(sample_ledger.mappings)
    del mappings["5170"]
    quality = mapping_quality(sample_ledger.accounts, mappings)

    assert quality.unmapped_account_ids == ("5170",)
    assert quality.completion == Decimal("0.9167")
    assert quality.balance_difference == Decimal("10000")
    assert quality.balance_score == Decimal("0.9000")
    assert quality.score == Decimal("0.9117")
    assert quality.issues == ("1 accounts remain unmapped",)


def test_business_rule_warnings():
    payables = _account("Trade Payables", credit="100")
    assert business_rule_warnings(payables, Statement.ASSETS) == [
        "Account name suggests liability but classified as asset"
    ]
    assert business_rule_warnings(payables, Statement.LIABILITIES) == []
    assert business_rule_warnings(_account("Interest earned"), Statement.EXPENSES) == [
        "Account name suggests revenue but classified as expense"
    ]
