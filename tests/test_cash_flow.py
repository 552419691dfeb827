"""Tests for the statement of cash flows."""

from decimal import Decimal

import pytest

from finstate.domain import ledger
from finstate.domain.cash_flow import (
    DIRECT,
    INDIRECT,
    CashFlowBalances,
    CashFlowLine,
    CashFlowSection,
    CashFlowStatement,
    build_cash_flow,
    direct_method,
    validate_cash_flow,
)
from finstate.domain.entities import AccountMapping, RawAccount, Statement
from finstate.domain.statements import populate

# Prior period matching tests/fixtures/mapped_trial_balance.csv
PREVIOUS_ACCOUNTS = [
    ("1000", "Cash at Bank", "40000", "0", Statement.ASSETS, "Cash and Cash Equivalents"),
    ("1200", "Trade Receivables", "35000", "0", Statement.ASSETS, "Trade Receivables"),
    ("1300", "Inventory", "15000", "0", Statement.ASSETS, "Inventory"),
    ("1500", "Property Plant and Equipment", "90000", "0", Statement.ASSETS, "Property, Plant and Equipment"),
    ("2100", "Trade Payables", "0", "20000", Statement.LIABILITIES, "Trade Payables"),
    ("2500", "Bank Loan", "0", "50000", Statement.LIABILITIES, "Other Non-Current Liabilities"),
    ("3000", "Share Capital", "0", "50000", Statement.EQUITY, "Share Capital"),
    ("3500", "Retained Earnings", "0", "20000", Statement.EQUITY, "Retained Earnings"),
    ("4000", "Sales Revenue", "0", "150000", Statement.REVENUE, "Revenue from Sales"),
    ("5000", "Cost of Sales", "90000", "0", Statement.EXPENSES, "Cost of Sales"),
    ("5050", "Salaries and Wages", "15000", "0", Statement.EXPENSES, "Employee Benefits"),
    ("5170", "Rent Expense", "5000", "0", Statement.EXPENSES, "Administrative Expenses"),
]


@pytest.fixture
def current_statements(sample_ledger):
    return populate(ledger.build_mapped_trial_balance(sample_ledger))


@pytest.fixture
def previous_statements():
    tb = ledger.import_from(
        [RawAccount(r[0], r[1], Decimal(r[2]), Decimal(r[3])) for r in PREVIOUS_ACCOUNTS],
        "FY2023",
        mappings=[AccountMapping(r[0], r[4], r[5]) for r in PREVIOUS_ACCOUNTS],
    )
    return populate(ledger.build_mapped_trial_balance(tb))


def _items(section):
    return {item.id: item.value for item in section.items}


def test_balances_from_statements(current_statements):
    balances = CashFlowBalances.from_statements(current_statements)

    assert balances.cash == Decimal("50000")
    assert balances.receivables == Decimal("30000")
    assert balances.fixed_assets == Decimal("100000")
    assert balances.payables == Decimal("25000")
    assert balances.employee_costs == Decimal("30000")
    assert balances.other_current_assets == Decimal("0")
    assert balances.borrowings == Decimal("40000")


def test_indirect_method_reconciles(current_statements, previous_statements):
    """Test two balanced periods reconcile to the movement in cash."""
    statement = build_cash_flow(current_statements, previous_statements)

    assert statement.method == INDIRECT
    operating = _items(statement.operating)
    assert operating["net-income"] == Decimal("40000")
    assert operating["receivables"] == Decimal("5000")
    assert operating["inventory"] == Decimal("-5000")
    assert operating["payables"] == Decimal("5000")
    assert statement.operating.total == Decimal("45000")
    assert statement.investing.total == Decimal("-10000")
    financing = _items(statement.financing)
    assert financing["borrowings"] == Decimal("-10000")
    assert financing["share-capital"] == Decimal("0")
    assert financing["equity-other"] == Decimal("-15000")
    assert statement.financing.total == Decimal("-25000")

    assert statement.opening_cash == Decimal("40000")
    assert statement.closing_cash == Decimal("50000")
    assert statement.net_change == Decimal("10000")
    assert [r.status for r in validate_cash_flow(statement)] == ["pass"]


def test_direct_method_matches_indirect_totals(current_statements, previous_statements):
    direct = build_cash_flow(current_statements, previous_statements, DIRECT)
    indirect = build_cash_flow(current_statements, previous_statements, INDIRECT)

    operating = _items(direct.operating)
    assert operating["receipts-customers"] == Decimal("205000")
    assert operating["payments-suppliers"] == Decimal("-120000")
    assert operating["payments-employees"] == Decimal("-30000")
    assert operating["payments-operating"] == Decimal("-10000")
    assert direct.operating.total == indirect.operating.total
    assert direct.net_change == indirect.net_change
    assert [r.status for r in validate_cash_flow(direct)] == ["pass"]


def test_without_previous_period_opening_is_zero(current_statements):
    statement = build_cash_flow(current_statements)

    assert statement.opening_cash == Decimal("0")
    assert statement.operating.total == Decimal("15000")
    assert statement.investing.total == Decimal("-100000")
    assert statement.financing.total == Decimal("135000")
    assert statement.net_change == statement.closing_cash
    assert validate_cash_flow(statement)[0].status == "pass"


def test_unknown_method(current_statements):
    with pytest.raises(ValueError, match="Unknown cash flow method"):
        build_cash_flow(current_statements, method="magic")


def test_validate_cash_flow_detects_mismatch():
    section = CashFlowSection("operating", "Operating Activities", (CashFlowLine("x", "X", Decimal("100")),))
    empty = CashFlowSection("investing", "Investing Activities", ())
    statement = CashFlowStatement(
        method=INDIRECT,
        operating=section,
        investing=empty,
        financing=empty,
        opening_cash=Decimal("0"),
        closing_cash=Decimal("90"),
    )
    results = validate_cash_flow(statement)

    assert results[0].status == "fail"
    assert "does not equal closing cash (90)" in results[0].message


def test_validate_cash_flow_warns_on_negative_receipts():
    current = CashFlowBalances(receivables=Decimal("500"), revenue=Decimal("100"))
    results = validate_cash_flow(direct_method(current))

    assert results[-1].check == "cash-flow-receipts"
    assert results[-1].details == ("Cash receipts from customers",)
