"""Statement population.

``populate`` turns a mapped trial balance into balance sheet and income
statement trees. It reads nothing but its arguments, so populating the same
mapped ledger twice gives equal results.
"""

import csv
import io
import json
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional, Union

from finstate.domain.entities import (
    STATEMENT_ORDER,
    ZERO,
    BalanceCheck,
    PopulatedStatements,
    PopulationOptions,
    Statement,
    StatementLineItem,
    StatementTotals,
    TrialBalanceAccount,
    ValidationResult,
)
from finstate.domain.templates import (
    COST_OF_SALES,
    FINANCE,
    OPERATING,
    TAX,
    StatementTemplate,
    TemplateLine,
    get_template,
    infer_line,
)
from finstate.logging_config import get_logger

logger = get_logger(__name__)

BALANCE_SHEET_TOLERANCE = Decimal("1")

SECTION_CODES = {
    Statement.ASSETS: ("A", "asset"),
    Statement.LIABILITIES: ("L", "liability"),
    Statement.EQUITY: ("E", "equity"),
    Statement.REVENUE: ("R", "revenue"),
    Statement.EXPENSES: ("X", "expense"),
}

SECTION_TITLES = {
    Statement.ASSETS: "Assets",
    Statement.LIABILITIES: "Liabilities",
    Statement.EQUITY: "Equity",
    Statement.REVENUE: "Revenue",
    Statement.EXPENSES: "Expenses",
}

# Sections presented as current / non-current groups
GROUPED_SECTIONS = (Statement.ASSETS, Statement.LIABILITIES)

# Where small balances are swept, keyed on (section, current flag)
SWEEP_TARGETS = {
    (Statement.ASSETS, True): "Other Current Assets",
    (Statement.ASSETS, False): "Other Non-Current Assets",
    (Statement.LIABILITIES, True): "Other Current Liabilities",
    (Statement.LIABILITIES, False): "Other Non-Current Liabilities",
    (Statement.EQUITY, None): "Other Reserves",
    (Statement.REVENUE, None): "Other Income",
    (Statement.EXPENSES, None): "Other Expenses",
}

PROFIT_LINE_ID = "equity_profit"
PROFIT_LINE_CODE = "E900"
PROFIT_LINE_NAME = "Profit for the Period"

MappedTrialBalance = dict[Statement, dict[str, list[TrialBalanceAccount]]]


@dataclass
class _Entry:
    line: TemplateLine
    index: Optional[int]
    value: Decimal
    accounts: list = field(default_factory=list)


def round_amount(value: Decimal, precision: int = 2) -> Decimal:
    """Round half up to ``precision`` decimal places."""
    return value.quantize(Decimal(1).scaleb(-precision), rounding=ROUND_HALF_UP)


def signed_total(section: Statement, accounts) -> Decimal:
    """Sum account balances on the section's normal side."""
    net = sum((a.debit - a.credit for a in accounts), ZERO)
    return net if section.is_debit_normal else -net


def _collect(
    section: Statement,
    bucket: dict[str, list],
    template: StatementTemplate,
    options: PopulationOptions,
) -> list[_Entry]:
    lines = list(template.lines(section))
    positions = {line.name.casefold(): i for i, line in enumerate(lines)}
    grouped: dict[int, list] = {}
    for name, accounts in bucket.items():
        key = name.strip().casefold()
        if key not in positions:
            positions[key] = len(lines)
            lines.append(infer_line(section, name.strip()))
        grouped.setdefault(positions[key], []).extend(accounts)

    entries = []
    for index, line in enumerate(lines):
        accounts = grouped.get(index, [])
        value = round_amount(signed_total(section, accounts), options.rounding_precision)
        if value == ZERO and not line.required and not options.include_zero_balances:
            continue
        entries.append(_Entry(line, index, value, list(accounts)))
    return entries


def _sweep(
    entries: list[_Entry],
    section: Statement,
    current: Optional[bool],
    template: StatementTemplate,
    threshold: Decimal,
) -> list[_Entry]:
    target_name = SWEEP_TARGETS[(section, current)]
    target = next((e for e in entries if e.line.name == target_name), None)
    kept, swept = [], []
    for entry in entries:
        small = entry.value != ZERO and abs(entry.value) < threshold
        if entry is not target and not entry.line.required and small:
            swept.append(entry)
        else:
            kept.append(entry)
    if not swept:
        return entries

    value = sum((e.value for e in swept), ZERO)
    accounts = [a for e in swept for a in e.accounts]
    if target is not None:
        merged = _Entry(target.line, target.index, target.value + value, target.accounts + accounts)
        return [merged if e is target else e for e in kept]

    index = None
    line = template.find(section, target_name)
    if line is not None:
        index = template.lines(section).index(line)
    else:
        line = TemplateLine(
            target_name,
            current=current if current is not None else True,
            role=OPERATING if section == Statement.EXPENSES else None,
        )
    kept.append(_Entry(line, index, value, accounts))
    return kept


def _node(section: Statement, entry: _Entry, level: int, suffix: str = "") -> StatementLineItem:
    prefix, slug = SECTION_CODES[section]
    if entry.index is not None:
        item_id, code = f"{slug}_{entry.index}", f"{prefix}{entry.index + 1:03d}"
    else:
        item_id, code = f"{slug}_other{suffix}", f"{prefix}999"
    return StatementLineItem(
        id=item_id,
        code=code,
        name=entry.line.name,
        value=entry.value,
        level=level,
        section=section,
        statement_type=section.statement_type,
        required=entry.line.required,
        accounts=tuple(entry.accounts),
    )


def _build_grouped(
    section: Statement,
    entries: list[_Entry],
    template: StatementTemplate,
    options: PopulationOptions,
) -> tuple[StatementLineItem, ...]:
    prefix, slug = SECTION_CODES[section]
    title = SECTION_TITLES[section]
    nodes = []
    for current, label, suffix in (
        (False, f"Non-Current {title}", "_non_current"),
        (True, f"Current {title}", "_current"),
    ):
        members = [e for e in entries if e.line.current == current]
        if options.aggregate_small_balances:
            members = _sweep(members, section, current, template, options.small_balance_threshold)
        if not members:
            continue
        children = tuple(_node(section, e, level=2, suffix=suffix) for e in members)
        nodes.append(
            StatementLineItem(
                id=f"{slug}{suffix}",
                code=f"{prefix}-{'C' if current else 'NC'}",
                name=label,
                value=sum((c.value for c in children), ZERO),
                level=1,
                section=section,
                statement_type=section.statement_type,
                required=any(c.required for c in children),
                accounts=tuple(a for c in children for a in c.accounts),
                children=children,
            )
        )
    return tuple(nodes)


def _role_total(entries: list[_Entry], role: str) -> Decimal:
    return sum((e.value for e in entries if e.line.role == role), ZERO)


def _total(entries: list[_Entry]) -> Decimal:
    return sum((e.value for e in entries), ZERO)


def populate(
    mapped: MappedTrialBalance,
    template: Union[StatementTemplate, str] = "full",
    options: Optional[PopulationOptions] = None,
) -> PopulatedStatements:
    """Populate statement trees from a mapped trial balance.

    Args:
        mapped: Accounts bucketed by statement and line item
        template: Template or IFRS standard name ("full" or "sme")
        options: Filtering, aggregation and rounding options

    Returns:
        PopulatedStatements with section trees and totals

    Raises:
        ValidationError: If the standard name is unknown
    """
    if isinstance(template, str):
        template = get_template(template)
    options = options or PopulationOptions()

    entries = {
        section: _collect(section, mapped.get(section, {}), template, options)
        for section in STATEMENT_ORDER
    }

    revenue = entries[Statement.REVENUE]
    expenses = entries[Statement.EXPENSES]
    total_revenue = _total(revenue)
    total_expenses = _total(expenses)
    cost_of_sales = _role_total(expenses, COST_OF_SALES)
    operating_expenses = _role_total(expenses, OPERATING)
    finance_costs = _role_total(expenses, FINANCE)
    income_tax = _role_total(expenses, TAX)
    gross_profit = total_revenue - cost_of_sales
    operating_profit = gross_profit - operating_expenses
    profit_before_tax = operating_profit - finance_costs
    net_income = total_revenue - total_expenses

    assets = entries[Statement.ASSETS]
    liabilities = entries[Statement.LIABILITIES]
    equity_total = _total(entries[Statement.EQUITY])

    sections: dict[Statement, tuple[StatementLineItem, ...]] = {}
    for section in STATEMENT_ORDER:
        if section in GROUPED_SECTIONS:
            sections[section] = _build_grouped(section, entries[section], template, options)
            continue
        members = entries[section]
        if options.aggregate_small_balances:
            members = _sweep(members, section, None, template, options.small_balance_threshold)
        sections[section] = tuple(_node(section, e, level=1) for e in members)

    if options.close_profit_to_equity:
        profit = round_amount(net_income, options.rounding_precision)
        equity_total += profit
        if profit != ZERO or options.include_zero_balances:
            sections[Statement.EQUITY] += (
                StatementLineItem(
                    id=PROFIT_LINE_ID,
                    code=PROFIT_LINE_CODE,
                    name=PROFIT_LINE_NAME,
                    value=profit,
                    level=1,
                    section=Statement.EQUITY,
                    statement_type=Statement.EQUITY.statement_type,
                    required=False,
                ),
            )

    totals = StatementTotals(
        total_assets=_total(assets),
        current_assets=_total([e for e in assets if e.line.current]),
        non_current_assets=_total([e for e in assets if not e.line.current]),
        total_liabilities=_total(liabilities),
        current_liabilities=_total([e for e in liabilities if e.line.current]),
        non_current_liabilities=_total([e for e in liabilities if not e.line.current]),
        total_equity=equity_total,
        total_revenue=total_revenue,
        total_expenses=total_expenses,
        cost_of_sales=cost_of_sales,
        gross_profit=gross_profit,
        operating_expenses=operating_expenses,
        operating_profit=operating_profit,
        finance_costs=finance_costs,
        profit_before_tax=profit_before_tax,
        income_tax_expense=income_tax,
        net_income=net_income,
    )
    logger.debug(
        "Populated %s statements: assets %s, liabilities %s, equity %s, net income %s",
        template.standard,
        totals.total_assets,
        totals.total_liabilities,
        totals.total_equity,
        totals.net_income,
    )
    return PopulatedStatements(
        standard=template.standard,
        sections=sections,
        totals=totals,
        options=options,
    )


def check_balance_sheet(
    total_assets: Decimal,
    total_liabilities: Decimal,
    total_equity: Decimal,
    tolerance: Decimal = BALANCE_SHEET_TOLERANCE,
) -> BalanceCheck:
    """Compare assets with liabilities plus equity."""
    right = total_liabilities + total_equity
    difference = total_assets - right
    return BalanceCheck(
        is_balanced=abs(difference) <= tolerance,
        left=total_assets,
        right=right,
        difference=difference,
    )


def validate_statements(
    populated: PopulatedStatements,
    tolerance: Decimal = BALANCE_SHEET_TOLERANCE,
) -> list[ValidationResult]:
    """Check the accounting equation and flag negative balance sheet lines.

    A difference within ``tolerance`` is a rounding warning; anything larger
    fails and blocks finalization.
    """
    totals = populated.totals
    check = check_balance_sheet(
        totals.total_assets, totals.total_liabilities, totals.total_equity, tolerance
    )
    if check.magnitude == ZERO:
        equation = ValidationResult(
            "balance-sheet-equation", "pass", "Assets equal liabilities plus equity"
        )
    elif check.is_balanced:
        equation = ValidationResult(
            "balance-sheet-equation",
            "warning",
            f"Rounding difference of {check.magnitude} within tolerance {tolerance}",
        )
    else:
        logger.warning("Balance sheet out of balance by %s", check.magnitude)
        equation = ValidationResult(
            "balance-sheet-equation",
            "fail",
            f"Balance sheet out of balance by {check.magnitude}",
            (
                f"Total assets: {check.left}",
                f"Total liabilities and equity: {check.right}",
            ),
        )

    negatives = [
        f"{item.name} ({item.section.value}): {item.value}"
        for section in GROUPED_SECTIONS
        for item in populated.leaves(section)
        if item.value < ZERO
    ]
    if negatives:
        balances = ValidationResult(
            "negative-line-items",
            "warning",
            f"{len(negatives)} balance sheet line item(s) carry a negative balance",
            tuple(negatives),
        )
    else:
        balances = ValidationResult(
            "negative-line-items", "pass", "No negative balance sheet line items"
        )
    return [equation, balances]


def can_finalize(results: list[ValidationResult]) -> bool:
    return all(r.is_valid for r in results)


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def line_item_to_dict(item: StatementLineItem) -> dict[str, Any]:
    return {
        "id": item.id,
        "code": item.code,
        "name": item.name,
        "value": str(item.value),
        "level": item.level,
        "section": item.section.value,
        "statement_type": item.statement_type,
        "required": item.required,
        "accounts": [a.account_id for a in item.accounts],
        "children": [line_item_to_dict(c) for c in item.children],
    }


def statements_to_dict(populated: PopulatedStatements) -> dict[str, Any]:
    totals = populated.totals
    return {
        "standard": populated.standard,
        "balance_sheet": {
            s.value: [line_item_to_dict(i) for i in items]
            for s, items in populated.balance_sheet.items()
        },
        "income_statement": {
            s.value: [line_item_to_dict(i) for i in items]
            for s, items in populated.income_statement.items()
        },
        "totals": {
            name: str(getattr(totals, name))
            for name in StatementTotals.__dataclass_fields__
        },
    }


def statements_to_json(populated: PopulatedStatements) -> str:
    return json.dumps(statements_to_dict(populated), indent=2)


def statements_to_csv(populated: PopulatedStatements) -> str:
    """Flatten the statement trees into CSV rows."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(["Statement", "Section", "Code", "Line Item", "Level", "Value"])

    def write(item: StatementLineItem) -> None:
        writer.writerow(
            [item.statement_type, item.section.value, item.code, item.name, item.level, str(item.value)]
        )
        for child in item.children:
            write(child)

    for section in STATEMENT_ORDER:
        for item in populated.sections[section]:
            write(item)
    return buffer.getvalue()
