"""Statement of cash flows.

Cash flows are derived from the balance movements between two populated
statements (the previous period defaults to all zeros) plus the current
income statement. Every balance sheet group is assigned to one activity,
so for two balanced periods the net change reconciles to the movement in
cash.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from finstate.domain.entities import ZERO, PopulatedStatements, Statement, ValidationResult
from finstate.logging_config import get_logger

logger = get_logger(__name__)

INDIRECT = "indirect"
DIRECT = "direct"
METHODS = (INDIRECT, DIRECT)

RECONCILIATION_TOLERANCE = Decimal("0.01")


@dataclass(frozen=True)
class CashFlowBalances:
    """Statement figures the cash flow calculation needs."""

    cash: Decimal = ZERO
    receivables: Decimal = ZERO
    inventory: Decimal = ZERO
    current_assets: Decimal = ZERO
    fixed_assets: Decimal = ZERO
    non_current_assets: Decimal = ZERO
    payables: Decimal = ZERO
    short_term_borrowings: Decimal = ZERO
    current_liabilities: Decimal = ZERO
    non_current_liabilities: Decimal = ZERO
    share_capital: Decimal = ZERO
    total_equity: Decimal = ZERO
    revenue: Decimal = ZERO
    cost_of_sales: Decimal = ZERO
    employee_costs: Decimal = ZERO
    operating_expenses: Decimal = ZERO
    depreciation: Decimal = ZERO
    finance_costs: Decimal = ZERO
    income_tax: Decimal = ZERO
    net_income: Decimal = ZERO

    @property
    def other_current_assets(self) -> Decimal:
        return self.current_assets - self.cash - self.receivables - self.inventory

    @property
    def other_non_current_assets(self) -> Decimal:
        return self.non_current_assets - self.fixed_assets

    @property
    def other_current_liabilities(self) -> Decimal:
        return self.current_liabilities - self.payables - self.short_term_borrowings

    @property
    def borrowings(self) -> Decimal:
        return self.non_current_liabilities + self.short_term_borrowings

    @classmethod
    def from_statements(cls, populated: PopulatedStatements) -> "CashFlowBalances":
        """Extract balances by matching line item names."""

        def named(section: Statement, *fragments: str) -> Decimal:
            return sum(
                (
                    item.value
                    for item in populated.leaves(section)
                    if any(f in item.name.lower() for f in fragments)
                ),
                ZERO,
            )

        totals = populated.totals
        return cls(
            cash=named(Statement.ASSETS, "cash"),
            receivables=named(Statement.ASSETS, "receivable"),
            inventory=named(Statement.ASSETS, "inventor"),
            current_assets=totals.current_assets,
            fixed_assets=named(Statement.ASSETS, "property, plant", "intangible"),
            non_current_assets=totals.non_current_assets,
            payables=named(Statement.LIABILITIES, "payable"),
            short_term_borrowings=named(Statement.LIABILITIES, "short-term borrowing"),
            current_liabilities=totals.current_liabilities,
            non_current_liabilities=totals.non_current_liabilities,
            share_capital=named(Statement.EQUITY, "share capital"),
            total_equity=totals.total_equity,
            revenue=totals.total_revenue,
            cost_of_sales=totals.cost_of_sales,
            employee_costs=named(Statement.EXPENSES, "employee", "salar", "wage"),
            operating_expenses=totals.operating_expenses,
            depreciation=named(Statement.EXPENSES, "depreciation", "amortisation", "amortization"),
            finance_costs=totals.finance_costs,
            income_tax=totals.income_tax_expense,
            net_income=totals.net_income,
        )


@dataclass(frozen=True)
class CashFlowLine:
    id: str
    label: str
    value: Decimal


@dataclass(frozen=True)
class CashFlowSection:
    id: str
    label: str
    items: tuple[CashFlowLine, ...]

    @property
    def total(self) -> Decimal:
        return sum((item.value for item in self.items), ZERO)


@dataclass(frozen=True)
class CashFlowStatement:
    method: str
    operating: CashFlowSection
    investing: CashFlowSection
    financing: CashFlowSection
    opening_cash: Decimal
    closing_cash: Decimal

    @property
    def sections(self) -> tuple[CashFlowSection, ...]:
        return (self.operating, self.investing, self.financing)

    @property
    def net_change(self) -> Decimal:
        return self.operating.total + self.investing.total + self.financing.total


def _investing(current: CashFlowBalances, previous: CashFlowBalances) -> CashFlowSection:
    capital_expenditure = -(current.fixed_assets - previous.fixed_assets + current.depreciation)
    other = -(current.other_non_current_assets - previous.other_non_current_assets)
    return CashFlowSection(
        "investing",
        "Investing Activities",
        (
            CashFlowLine("capital-expenditure", "Purchase of property, plant, equipment and intangibles", capital_expenditure),
            CashFlowLine("other-investments", "Movement in other non-current assets", other),
        ),
    )


def _financing(current: CashFlowBalances, previous: CashFlowBalances) -> CashFlowSection:
    share_capital = current.share_capital - previous.share_capital
    equity_other = current.total_equity - previous.total_equity - share_capital - current.net_income
    return CashFlowSection(
        "financing",
        "Financing Activities",
        (
            CashFlowLine("borrowings", "Net movement in borrowings", current.borrowings - previous.borrowings),
            CashFlowLine("share-capital", "Proceeds from share capital", share_capital),
            CashFlowLine("equity-other", "Dividends paid and other equity movements", equity_other),
        ),
    )


def indirect_method(
    current: CashFlowBalances, previous: Optional[CashFlowBalances] = None
) -> CashFlowStatement:
    """Start from net income and adjust for non-cash items and working capital."""
    previous = previous or CashFlowBalances()
    operating = CashFlowSection(
        "operating",
        "Operating Activities",
        (
            CashFlowLine("net-income", "Net income", current.net_income),
            CashFlowLine("depreciation", "Depreciation and amortisation", current.depreciation),
            CashFlowLine("receivables", "(Increase) decrease in trade receivables",
                         -(current.receivables - previous.receivables)),
            CashFlowLine("inventory", "(Increase) decrease in inventory",
                         -(current.inventory - previous.inventory)),
            CashFlowLine("other-current-assets", "(Increase) decrease in other current assets",
                         -(current.other_current_assets - previous.other_current_assets)),
            CashFlowLine("payables", "Increase (decrease) in trade payables",
                         current.payables - previous.payables),
            CashFlowLine("other-current-liabilities", "Increase (decrease) in accruals and other liabilities",
                         current.other_current_liabilities - previous.other_current_liabilities),
        ),
    )
    return CashFlowStatement(
        method=INDIRECT,
        operating=operating,
        investing=_investing(current, previous),
        financing=_financing(current, previous),
        opening_cash=previous.cash,
        closing_cash=current.cash,
    )


def direct_method(
    current: CashFlowBalances, previous: Optional[CashFlowBalances] = None
) -> CashFlowStatement:
    """Report gross operating receipts and payments."""
    previous = previous or CashFlowBalances()
    receipts = current.revenue - (current.receivables - previous.receivables)
    suppliers = -(
        current.cost_of_sales
        + (current.inventory - previous.inventory)
        - (current.payables - previous.payables)
    )
    other_operating = -(current.operating_expenses - current.employee_costs - current.depreciation)
    working_capital = (
        -(current.other_current_assets - previous.other_current_assets)
        + (current.other_current_liabilities - previous.other_current_liabilities)
    )
    operating = CashFlowSection(
        "operating",
        "Operating Activities",
        (
            CashFlowLine("receipts-customers", "Cash receipts from customers", receipts),
            CashFlowLine("payments-suppliers", "Cash paid to suppliers", suppliers),
            CashFlowLine("payments-employees", "Cash paid to employees", -current.employee_costs),
            CashFlowLine("payments-operating", "Cash paid for operating expenses", other_operating),
            CashFlowLine("working-capital", "Other working capital movements", working_capital),
            CashFlowLine("interest-paid", "Interest paid", -current.finance_costs),
            CashFlowLine("tax-paid", "Income tax paid", -current.income_tax),
        ),
    )
    return CashFlowStatement(
        method=DIRECT,
        operating=operating,
        investing=_investing(current, previous),
        financing=_financing(current, previous),
        opening_cash=previous.cash,
        closing_cash=current.cash,
    )


def build_cash_flow(
    current: PopulatedStatements,
    previous: Optional[PopulatedStatements] = None,
    method: str = INDIRECT,
) -> CashFlowStatement:
    """Build a cash flow statement from populated statements.

    Raises:
        ValueError: If the method is not "indirect" or "direct"
    """
    if method not in METHODS:
        raise ValueError(f"Unknown cash flow method '{method}'. Expected one of: {', '.join(METHODS)}")
    current_balances = CashFlowBalances.from_statements(current)
    previous_balances = CashFlowBalances.from_statements(previous) if previous else None
    if method == DIRECT:
        return direct_method(current_balances, previous_balances)
    return indirect_method(current_balances, previous_balances)


def validate_cash_flow(statement: CashFlowStatement) -> list[ValidationResult]:
    """Check that the net change reconciles to the movement in cash."""
    expected = statement.closing_cash - statement.opening_cash
    difference = abs(statement.net_change - expected)
    if difference <= RECONCILIATION_TOLERANCE:
        results = [
            ValidationResult(
                "cash-flow-reconciliation", "pass", "Net change in cash reconciles to cash balances"
            )
        ]
    else:
        logger.warning("Cash flow does not reconcile, difference %s", difference)
        results = [
            ValidationResult(
                "cash-flow-reconciliation",
                "fail",
                f"Net change in cash ({statement.net_change}) does not equal closing cash "
                f"({statement.closing_cash}) minus opening cash ({statement.opening_cash})",
            )
        ]
    negative_receipts = [
        item.label
        for item in statement.operating.items
        if item.id.startswith("receipts") and item.value < ZERO
    ]
    if negative_receipts:
        results.append(
            ValidationResult(
                "cash-flow-receipts",
                "warning",
                "Negative cash receipts detected, please verify amounts",
                tuple(negative_receipts),
            )
        )
    return results
