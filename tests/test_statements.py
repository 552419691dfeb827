"""Tests for statement population and balance sheet validation."""

import json
from decimal import Decimal

import pytest

from finstate.domain import ledger
from finstate.domain.entities import (
    AccountMapping,
    PopulationOptions,
    RawAccount,
    Statement,
)
from finstate.domain.errors import ValidationError
from finstate.domain.statements import (
    PROFIT_LINE_NAME,
    can_finalize,
    check_balance_sheet,
    populate,
    statements_to_csv,
    statements_to_json,
    validate_statements,
)


def _mapped(rows, name="Test"):
    """Build a mapped trial balance from (id, name, debit, credit, statement, line item) rows."""
    tb = ledger.import_from(
        [RawAccount(r[0], r[1], Decimal(r[2]), Decimal(r[3])) for r in rows],
        name,
        mappings=[AccountMapping(r[0], r[4], r[5]) for r in rows],
    )
    return ledger.build_mapped_trial_balance(tb)


@pytest.fixture
def sample_mapped(sample_ledger):
    return ledger.build_mapped_trial_balance(sample_ledger)


def test_check_balance_sheet_within_tolerance():
    """Test 100 = 40 + 60 balances and 100 vs 40 + 55 fails by 5."""
    balanced = check_balance_sheet(Decimal("100"), Decimal("40"), Decimal("60"))
    assert balanced.is_balanced is True
    assert balanced.magnitude == Decimal("0")

    off = check_balance_sheet(Decimal("100"), Decimal("40"), Decimal("55"))
    assert off.is_balanced is False
    assert off.difference == Decimal("5")
    assert off.magnitude == Decimal("5")


def test_check_balance_sheet_tolerance_is_inclusive():
    assert check_balance_sheet(Decimal("101"), Decimal("40"), Decimal("60")).is_balanced is True
    assert check_balance_sheet(Decimal("101.01"), Decimal("40"), Decimal("60")).is_balanced is False


def test_populate_sample_totals(sample_mapped):
    populated = populate(sample_mapped)
    totals = populated.totals

    assert populated.standard == "full"
    assert totals.total_assets == Decimal("200000")
    assert totals.current_assets == Decimal("100000")
    assert totals.non_current_assets == Decimal("100000")
    assert totals.total_liabilities == Decimal("65000")
    assert totals.current_liabilities == Decimal("25000")
    assert totals.non_current_liabilities == Decimal("40000")
    assert totals.total_equity == Decimal("135000")
    assert totals.total_revenue == Decimal("200000")
    assert totals.total_expenses == Decimal("160000")
    assert totals.cost_of_sales == Decimal("120000")
    assert totals.gross_profit == Decimal("80000")
    assert totals.operating_expenses == Decimal("40000")
    assert totals.operating_profit == Decimal("40000")
    assert totals.net_income == Decimal("40000")
    assert totals.profit_for_year == Decimal("40000")


def test_populate_groups_balance_sheet(sample_mapped):
    """Test assets are presented as non-current then current groups in template order."""
    populated = populate(sample_mapped)
    non_current, current = populated.sections[Statement.ASSETS]

    assert non_current.name == "Non-Current Assets"
    assert non_current.code == "A-NC"
    assert non_current.level == 1
    assert [c.name for c in non_current.children] == ["Property, Plant and Equipment"]
    assert current.name == "Current Assets"
    assert [c.name for c in current.children] == [
        "Inventory",
        "Trade Receivables",
        "Cash and Cash Equivalents",
    ]
    assert current.value == Decimal("100000")

    cash = current.children[-1]
    assert cash.code == "A009"
    assert cash.level == 2
    assert cash.required is True
    assert [a.account_id for a in cash.accounts] == ["1000"]


def test_populate_closes_profit_into_equity(sample_mapped):
    populated = populate(sample_mapped)
    equity = populated.sections[Statement.EQUITY]

    assert [i.name for i in equity] == ["Share Capital", "Retained Earnings", PROFIT_LINE_NAME]
    assert equity[-1].value == Decimal("40000")

    open_profit = populate(sample_mapped, options=PopulationOptions(close_profit_to_equity=False))
    assert open_profit.totals.total_equity == Decimal("95000")
    assert PROFIT_LINE_NAME not in [i.name for i in open_profit.sections[Statement.EQUITY]]


def test_populate_is_idempotent(sample_mapped):
    assert populate(sample_mapped) == populate(sample_mapped)


def test_populate_zero_balances(sample_mapped):
    """Test optional zero lines are hidden unless requested; required lines always show."""
    hidden = populate(sample_mapped)
    assert "Investment Property" not in [i.name for i in hidden.leaves(Statement.ASSETS)]

    shown = populate(sample_mapped, options=PopulationOptions(include_zero_balances=True))
    names = [i.name for i in shown.leaves(Statement.ASSETS)]
    assert "Investment Property" in names
    assert len(names) == 9

    sparse = _mapped(
        [
            ("1000", "Cash", "10", "0", Statement.ASSETS, "Cash and Cash Equivalents"),
            ("3000", "Capital", "0", "10", Statement.EQUITY, "Share Capital"),
        ]
    )
    required = populate(sparse)
    inventory = [i for i in required.leaves(Statement.ASSETS) if i.name == "Inventory"]
    assert inventory and inventory[0].value == Decimal("0")


def test_populate_unknown_line_item_is_appended():
    mapped = _mapped(
        [
            ("1000", "Cash", "100", "0", Statement.ASSETS, "Cash and Cash Equivalents"),
            ("1900", "Loan to director", "50", "0", Statement.ASSETS, "Long-term Loans Receivable"),
            ("3000", "Capital", "0", "150", Statement.EQUITY, "Share Capital"),
        ]
    )
    populated = populate(mapped)
    non_current = populated.sections[Statement.ASSETS][0]

    assert non_current.name == "Non-Current Assets"
    assert [c.name for c in non_current.children] == [
        "Property, Plant and Equipment",
        "Long-term Loans Receivable",
    ]
    assert populated.totals.non_current_assets == Decimal("50")


def test_populate_aggregates_small_balances():
    """Test small optional lines are folded into the section's 'Other' line."""
    mapped = _mapped(
        [
            ("1000", "Cash", "50000", "0", Statement.ASSETS, "Cash and Cash Equivalents"),
            ("1400", "Prepayments", "500", "0", Statement.ASSETS, "Prepayments"),
            ("1410", "Deposits", "300", "0", Statement.ASSETS, "Deposits Paid"),
            ("3000", "Capital", "0", "50800", Statement.EQUITY, "Share Capital"),
        ]
    )
    options = PopulationOptions(aggregate_small_balances=True, small_balance_threshold=Decimal("1000"))
    populated = populate(mapped, options=options)

    current = populated.sections[Statement.ASSETS][-1]
    names = [c.name for c in current.children]
    assert "Prepayments" not in names
    assert "Deposits Paid" not in names
    other = current.children[-1]
    assert other.name == "Other Current Assets"
    assert other.value == Decimal("800")
    assert other.code == "A008"
    assert sorted(a.account_id for a in other.accounts) == ["1400", "1410"]
    assert current.value == Decimal("50800")
    assert populated.totals.total_assets == Decimal("50800")


def test_aggregation_into_existing_line_keeps_totals():
    mapped = _mapped(
        [
            ("1000", "Cash", "50000", "0", Statement.ASSETS, "Cash and Cash Equivalents"),
            ("1400", "Prepayments", "500", "0", Statement.ASSETS, "Prepayments"),
            ("1450", "Sundry assets", "1500", "0", Statement.ASSETS, "Other Current Assets"),
            ("3000", "Capital", "0", "52000", Statement.EQUITY, "Share Capital"),
        ]
    )
    options = PopulationOptions(aggregate_small_balances=True, small_balance_threshold=Decimal("1000"))
    populated = populate(mapped, options=options)

    other = [i for i in populated.leaves(Statement.ASSETS) if i.name == "Other Current Assets"]
    assert len(other) == 1
    assert other[0].value == Decimal("2000")
    assert populated.totals.total_assets == Decimal("52000")

    # Aggregating twice from the same mapped ledger must not compound
    assert populate(mapped, options=options) == populated


def test_populate_rounding_precision():
    mapped = _mapped(
        [
            ("1000", "Cash", "100.49", "0", Statement.ASSETS, "Cash and Cash Equivalents"),
            ("3000", "Capital", "0", "100.49", Statement.EQUITY, "Share Capital"),
        ]
    )
    populated = populate(mapped, options=PopulationOptions(rounding_precision=0))
    assert populated.totals.total_assets == Decimal("100")


def test_populate_sme_template(sample_mapped):
    populated = populate(sample_mapped, "sme")

    assert populated.standard == "sme"
    assert "Employee Benefits" in [i.name for i in populated.sections[Statement.EXPENSES]]
    assert populated.totals.operating_profit == Decimal("40000")


def test_populate_unknown_standard(sample_mapped):
    with pytest.raises(ValidationError, match="Unknown IFRS standard"):
        populate(sample_mapped, "us-gaap")


def test_validate_statements_sample_passes(sample_mapped):
    results = validate_statements(populate(sample_mapped))

    assert [r.check for r in results] == ["balance-sheet-equation", "negative-line-items"]
    assert all(r.status == "pass" for r in results)
    assert can_finalize(results) is True


def test_validate_statements_rounding_warning():
    mapped = _mapped(
        [
            ("1000", "Cash", "100.50", "0", Statement.ASSETS, "Cash and Cash Equivalents"),
            ("3000", "Capital", "0", "100", Statement.EQUITY, "Share Capital"),
        ]
    )
    equation = validate_statements(populate(mapped))[0]

    assert equation.status == "warning"
    assert "0.50" in equation.message
    assert equation.is_valid is True


def test_validate_statements_out_of_balance_blocks_finalization():
    mapped = _mapped(
        [
            ("1000", "Cash", "100", "0", Statement.ASSETS, "Cash and Cash Equivalents"),
            ("2100", "Payables", "0", "40", Statement.LIABILITIES, "Trade Payables"),
            ("3000", "Capital", "0", "55", Statement.EQUITY, "Share Capital"),
        ]
    )
    results = validate_statements(populate(mapped))

    assert results[0].status == "fail"
    assert results[0].message == "Balance sheet out of balance by 5.00"
    assert can_finalize(results) is False


def test_validate_statements_flags_negative_lines():
    mapped = _mapped(
        [
            ("1000", "Bank overdraft", "0", "500", Statement.ASSETS, "Cash and Cash Equivalents"),
            ("3000", "Capital", "500", "0", Statement.EQUITY, "Share Capital"),
        ]
    )
    negatives = validate_statements(populate(mapped))[1]

    assert negatives.status == "warning"
    assert negatives.details == ("Cash and Cash Equivalents (assets): -500.00",)


def test_statements_serialization(sample_mapped):
    populated = populate(sample_mapped)

    data = json.loads(statements_to_json(populated))
    assert data["standard"] == "full"
    assert data["totals"]["total_assets"] == "200000.00"
    assert data["balance_sheet"]["assets"][1]["children"][0]["accounts"] == ["1300"]
    assert set(data["income_statement"]) == {"revenue", "expenses"}

    rows = statements_to_csv(populated).splitlines()
    assert rows[0] == "Statement,Section,Code,Line Item,Level,Value"
    assert "balance_sheet,assets,A-NC,Non-Current Assets,1,100000.00" in rows
