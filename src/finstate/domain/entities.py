"""Domain model entities for finstate.

These are pure data classes representing business concepts, independent of
database schema. Ledger snapshots are never mutated in place: every change
produces a new ``TrialBalance`` with a bumped version and one more
``EditRecord`` in its history.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional


ZERO = Decimal("0")


class Statement(str, Enum):
    """Statement bucket an account is classified into."""

    ASSETS = "assets"
    LIABILITIES = "liabilities"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSES = "expenses"

    @property
    def is_debit_normal(self) -> bool:
        """Assets and expenses normally carry a debit balance."""
        return self in (Statement.ASSETS, Statement.EXPENSES)

    @property
    def statement_type(self) -> str:
        if self in (Statement.REVENUE, Statement.EXPENSES):
            return "income_statement"
        return "balance_sheet"


# Statements in presentation order
STATEMENT_ORDER = (
    Statement.ASSETS,
    Statement.LIABILITIES,
    Statement.EQUITY,
    Statement.REVENUE,
    Statement.EXPENSES,
)

UNMAPPED = "unmapped"


class EditAction(str, Enum):
    """Kinds of audit records written by the ledger."""

    IMPORT = "import"
    EDIT_ACCOUNT = "edit_account"
    EDIT_MAPPING = "edit_mapping"
    ADD_ADJUSTMENT = "add_adjustment"


@dataclass(frozen=True)
class RawAccount:
    """Account as received from an import source."""

    account_id: str
    account_name: str
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    description: Optional[str] = None


@dataclass(frozen=True)
class TrialBalanceAccount:
    """Ledger account with frozen originals and accumulated adjustments.

    Final amounts are derived, so ``final == original + adjustment`` holds
    for every snapshot.
    """

    account_id: str
    account_name: str
    original_debit: Decimal
    original_credit: Decimal
    adjustment_debit: Decimal = ZERO
    adjustment_credit: Decimal = ZERO
    description: Optional[str] = None
    is_edited: bool = False
    last_modified: Optional[datetime] = None
    modified_by: Optional[str] = None

    @property
    def final_debit(self) -> Decimal:
        return self.original_debit + self.adjustment_debit

    @property
    def final_credit(self) -> Decimal:
        return self.original_credit + self.adjustment_credit

    @property
    def debit(self) -> Decimal:
        return self.final_debit

    @property
    def credit(self) -> Decimal:
        return self.final_credit

    @property
    def net_balance(self) -> Decimal:
        """Final debit minus final credit."""
        return self.final_debit - self.final_credit

    @property
    def has_adjustment(self) -> bool:
        return self.adjustment_debit != ZERO or self.adjustment_credit != ZERO


@dataclass(frozen=True)
class ClassificationRule:
    """Catalog entry binding a statement line item to matching signals."""

    id: str
    name: str
    statement: Statement
    line_item: str
    keywords: tuple[str, ...] = ()
    patterns: tuple[str, ...] = ()
    account_codes: tuple[str, ...] = ()
    priority: int = 50
    description: Optional[str] = None
    is_custom: bool = False


@dataclass(frozen=True)
class MappingSuggestion:
    """Proposed classification for one account."""

    account_id: str
    statement: Statement
    line_item: str
    confidence: int
    reason: str
    rule_id: Optional[str] = None


@dataclass(frozen=True)
class AccountMapping:
    """Authoritative classification decision for one account."""

    account_id: str
    statement: Statement
    line_item: str


@dataclass(frozen=True)
class FieldChange:
    """Single field-level difference recorded in an audit entry."""

    field: str
    old_value: Optional[str]
    new_value: Optional[str]


@dataclass(frozen=True)
class EditRecord:
    """Append-only audit entry.

    ``version`` is the ledger version this change produced.
    """

    id: str
    timestamp: datetime
    user_id: str
    action: EditAction
    version: int
    description: str
    account_id: Optional[str] = None
    changes: tuple[FieldChange, ...] = ()


@dataclass(frozen=True)
class TrialBalance:
    """Trial balance aggregate: accounts, mappings and audit history."""

    id: Optional[int]
    name: str
    accounts: tuple[TrialBalanceAccount, ...]
    mappings: dict[str, AccountMapping]
    version: int
    has_adjustments: bool
    edit_history: tuple[EditRecord, ...]
    file_name: Optional[str] = None
    period_end: Optional[date] = None
    ifrs_standard: str = "full"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def get_account(self, account_id: str) -> Optional[TrialBalanceAccount]:
        """Return the account with the given ID, or None."""
        for account in self.accounts:
            if account.account_id == account_id:
                return account
        return None

    def mapping_for(self, account_id: str) -> Optional[AccountMapping]:
        return self.mappings.get(account_id)


@dataclass(frozen=True)
class TrialBalanceSummary:
    """Lightweight listing row for a stored trial balance."""

    id: int
    name: str
    version: int
    account_count: int
    period_end: Optional[date]
    ifrs_standard: str
    updated_at: datetime


@dataclass(frozen=True)
class BalanceCheck:
    """Result of comparing two sides that must agree."""

    is_balanced: bool
    left: Decimal
    right: Decimal
    difference: Decimal

    @property
    def magnitude(self) -> Decimal:
        return abs(self.difference)


@dataclass(frozen=True)
class TrialBalanceValidation:
    """Debit/credit column check of a ledger."""

    is_balanced: bool
    total_debits: Decimal
    total_credits: Decimal
    difference: Decimal


@dataclass(frozen=True)
class ValidationResult:
    """Structured, non-throwing outcome of one validation check."""

    check: str
    status: str
    message: str
    details: tuple[str, ...] = ()

    @property
    def is_valid(self) -> bool:
        return self.status != "fail"


@dataclass(frozen=True)
class StatementLineItem:
    """Node of a populated statement tree."""

    id: str
    code: str
    name: str
    value: Decimal
    level: int
    section: Statement
    statement_type: str
    required: bool
    accounts: tuple[TrialBalanceAccount, ...] = ()
    children: tuple["StatementLineItem", ...] = ()

    def leaves(self) -> list["StatementLineItem"]:
        """Return the leaf nodes under (and including) this node."""
        if not self.children:
            return [self]
        result = []
        for child in self.children:
            result.extend(child.leaves())
        return result


@dataclass(frozen=True)
class PopulationOptions:
    """Options controlling statement population."""

    include_zero_balances: bool = False
    aggregate_small_balances: bool = False
    small_balance_threshold: Decimal = Decimal("1000")
    rounding_precision: int = 2
    close_profit_to_equity: bool = True


@dataclass(frozen=True)
class StatementTotals:
    """Section totals and derived income statement subtotals."""

    total_assets: Decimal
    current_assets: Decimal
    non_current_assets: Decimal
    total_liabilities: Decimal
    current_liabilities: Decimal
    non_current_liabilities: Decimal
    total_equity: Decimal
    total_revenue: Decimal
    total_expenses: Decimal
    cost_of_sales: Decimal
    gross_profit: Decimal
    operating_expenses: Decimal
    operating_profit: Decimal
    finance_costs: Decimal
    profit_before_tax: Decimal
    income_tax_expense: Decimal
    net_income: Decimal

    @property
    def profit_for_year(self) -> Decimal:
        return self.profit_before_tax - self.income_tax_expense


@dataclass(frozen=True)
class PopulatedStatements:
    """Balance sheet and income statement trees with their totals."""

    standard: str
    sections: dict[Statement, tuple[StatementLineItem, ...]]
    totals: StatementTotals
    options: PopulationOptions = field(default_factory=PopulationOptions)

    @property
    def balance_sheet(self) -> dict[Statement, tuple[StatementLineItem, ...]]:
        return {
            s: self.sections[s]
            for s in (Statement.ASSETS, Statement.LIABILITIES, Statement.EQUITY)
        }

    @property
    def income_statement(self) -> dict[Statement, tuple[StatementLineItem, ...]]:
        return {s: self.sections[s] for s in (Statement.REVENUE, Statement.EXPENSES)}

    def leaves(self, section: Statement) -> list[StatementLineItem]:
        """Return all leaf line items of one section."""
        result = []
        for item in self.sections[section]:
            result.extend(item.leaves())
        return result
