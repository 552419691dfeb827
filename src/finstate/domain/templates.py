"""IFRS statement templates.

A template is the ordered list of line items each statement section
presents. Balance sheet lines carry a current/non-current flag, expense
lines carry the role that places them in the income statement subtotals.
"""

from dataclasses import dataclass
from typing import Optional

from finstate.domain.entities import Statement
from finstate.domain.errors import ValidationError

# Expense roles
COST_OF_SALES = "cost_of_sales"
OPERATING = "operating"
FINANCE = "finance"
TAX = "tax"


@dataclass(frozen=True)
class TemplateLine:
    """One presentable line item of a statement section."""

    name: str
    required: bool = False
    current: bool = True
    role: Optional[str] = None


@dataclass(frozen=True)
class StatementTemplate:
    """Ordered line items for every statement section of one standard."""

    standard: str
    sections: dict[Statement, tuple[TemplateLine, ...]]

    def lines(self, section: Statement) -> tuple[TemplateLine, ...]:
        return self.sections.get(section, ())

    def find(self, section: Statement, name: str) -> Optional[TemplateLine]:
        """Look up a line by name, ignoring case."""
        key = name.strip().casefold()
        for line in self.lines(section):
            if line.name.casefold() == key:
                return line
        return None

    def required_lines(self) -> list[tuple[Statement, TemplateLine]]:
        return [
            (section, line)
            for section, lines in self.sections.items()
            for line in lines
            if line.required
        ]


def _nc(name: str, required: bool = False) -> TemplateLine:
    return TemplateLine(name, required=required, current=False)


def _x(name: str, role: str = OPERATING, required: bool = False) -> TemplateLine:
    return TemplateLine(name, required=required, role=role)


FULL_TEMPLATE = StatementTemplate(
    standard="full",
    sections={
        Statement.ASSETS: (
            _nc("Property, Plant and Equipment", required=True),
            _nc("Investment Property"),
            _nc("Intangible Assets"),
            _nc("Deferred Tax Assets"),
            _nc("Other Non-Current Assets"),
            TemplateLine("Inventory", required=True),
            TemplateLine("Trade Receivables", required=True),
            TemplateLine("Other Current Assets"),
            TemplateLine("Cash and Cash Equivalents", required=True),
        ),
        Statement.LIABILITIES: (
            _nc("Long-term Borrowings"),
            _nc("Deferred Tax Liabilities"),
            _nc("Other Non-Current Liabilities"),
            TemplateLine("Trade Payables", required=True),
            TemplateLine("Short-term Borrowings"),
            TemplateLine("Current Tax Liabilities"),
            TemplateLine("Other Current Liabilities"),
        ),
        Statement.EQUITY: (
            TemplateLine("Share Capital", required=True),
            TemplateLine("Retained Earnings", required=True),
            TemplateLine("Other Reserves"),
        ),
        Statement.REVENUE: (
            TemplateLine("Revenue from Sales", required=True),
            TemplateLine("Revenue from Services"),
            TemplateLine("Interest Income"),
            TemplateLine("Other Income"),
        ),
        Statement.EXPENSES: (
            _x("Cost of Sales", COST_OF_SALES, required=True),
            _x("Employee Benefits"),
            _x("Selling Expenses"),
            _x("Administrative Expenses"),
            _x("Depreciation and Amortisation"),
            _x("Other Operating Expenses"),
            _x("Other Expenses"),
            _x("Interest Expenses", FINANCE),
            _x("Finance Costs", FINANCE),
            _x("Income Tax Expenses", TAX),
        ),
    },
)

SME_TEMPLATE = StatementTemplate(
    standard="sme",
    sections={
        Statement.ASSETS: (
            _nc("Property, Plant and Equipment", required=True),
            _nc("Intangible Assets"),
            _nc("Other Non-Current Assets"),
            TemplateLine("Inventory", required=True),
            TemplateLine("Trade Receivables", required=True),
            TemplateLine("Other Current Assets"),
            TemplateLine("Cash and Cash Equivalents", required=True),
        ),
        Statement.LIABILITIES: (
            _nc("Other Non-Current Liabilities"),
            TemplateLine("Trade Payables", required=True),
            TemplateLine("Other Current Liabilities"),
        ),
        Statement.EQUITY: (
            TemplateLine("Share Capital", required=True),
            TemplateLine("Retained Earnings", required=True),
            TemplateLine("Other Reserves"),
        ),
        Statement.REVENUE: (
            TemplateLine("Revenue from Sales", required=True),
            TemplateLine("Other Income"),
        ),
        Statement.EXPENSES: (
            _x("Cost of Sales", COST_OF_SALES, required=True),
            _x("Administrative Expenses"),
            _x("Other Operating Expenses"),
            _x("Other Expenses"),
            _x("Finance Costs", FINANCE),
            _x("Income Tax Expenses", TAX),
        ),
    },
)

TEMPLATES = {t.standard: t for t in (FULL_TEMPLATE, SME_TEMPLATE)}


def get_template(standard: str) -> StatementTemplate:
    """Return the template for an IFRS standard variant.

    Raises:
        ValidationError: If the standard is unknown
    """
    template = TEMPLATES.get((standard or "").strip().lower())
    if template is None:
        raise ValidationError(
            f"Unknown IFRS standard '{standard}'. Expected one of: {', '.join(TEMPLATES)}"
        )
    return template


def infer_line(section: Statement, name: str) -> TemplateLine:
    """Describe a mapped line item the template does not list.

    The current flag and expense role are guessed from the name.
    """
    lowered = name.lower()
    current = not ("non-current" in lowered or "long-term" in lowered)
    role = None
    if section == Statement.EXPENSES:
        if "tax" in lowered:
            role = TAX
        elif "interest" in lowered or "finance" in lowered:
            role = FINANCE
        elif "cost of sales" in lowered or "cost of goods" in lowered:
            role = COST_OF_SALES
        else:
            role = OPERATING
    return TemplateLine(name, required=False, current=current, role=role)
