"""Trial balance check suite.

Each check returns a ``ValidationResult`` instead of raising, so callers
can show every problem at once. Only "fail" results block finalization.
"""

import re
from decimal import Decimal
from typing import Optional

from finstate.domain import ledger
from finstate.domain.entities import (
    ZERO,
    Statement,
    TrialBalance,
    ValidationResult,
)
from finstate.domain.statements import BALANCE_SHEET_TOLERANCE, check_balance_sheet, signed_total

PASS = "pass"
WARNING = "warning"
FAIL = "fail"

SUSPENSE_PATTERN = re.compile(
    r"suspense|clearing|unallocated|misc|temp", re.IGNORECASE
)
SUSPENSE_MINIMUM = Decimal("0.01")

LARGE_BALANCE_THRESHOLD = Decimal("1000000")

# Line item fragments every IFRS balance sheet is expected to show
REQUIRED_LINE_ITEMS = {
    Statement.ASSETS: ("cash", "receivable", "inventor"),
    Statement.LIABILITIES: ("payable",),
    Statement.EQUITY: ("share capital", "retained earnings"),
}

VALID_CODE = re.compile(r"^[A-Za-z0-9\-.]{1,20}$")

# Accounts whose change between periods is worth flagging
KEY_ACCOUNT_PATTERN = re.compile(
    r"cash|revenue|income|expense|receivable|payable", re.IGNORECASE
)
VARIANCE_PERCENT = Decimal("50")
VARIANCE_MINIMUM = Decimal("10000")
VARIANCE_BASE_MINIMUM = Decimal("1000")


def check_trial_balance_balance(tb: TrialBalance) -> ValidationResult:
    result = ledger.validate(tb)
    if result.is_balanced:
        return ValidationResult("trial-balance-balance", PASS, "Trial balance is in balance")
    return ValidationResult(
        "trial-balance-balance",
        FAIL,
        f"Trial balance is out of balance by {result.difference}",
        (
            f"Total debits: {result.total_debits}",
            f"Total credits: {result.total_credits}",
        ),
    )


def check_accounting_equation(
    tb: TrialBalance, tolerance: Decimal = BALANCE_SHEET_TOLERANCE
) -> ValidationResult:
    """Assets against liabilities, equity and the unclosed period profit."""
    mapped = ledger.build_mapped_trial_balance(tb)

    def section_total(section: Statement) -> Decimal:
        return sum(
            (signed_total(section, accounts) for accounts in mapped[section].values()),
            ZERO,
        )

    profit = section_total(Statement.REVENUE) - section_total(Statement.EXPENSES)
    check = check_balance_sheet(
        section_total(Statement.ASSETS),
        section_total(Statement.LIABILITIES),
        section_total(Statement.EQUITY) + profit,
        tolerance,
    )
    if check.is_balanced:
        return ValidationResult(
            "accounting-equation", PASS, "Assets equal liabilities plus equity"
        )
    return ValidationResult(
        "accounting-equation",
        FAIL,
        f"Accounting equation is out of balance by {check.magnitude}",
        (
            f"Assets: {check.left}",
            f"Liabilities and equity incl. current profit: {check.right}",
        ),
    )


def check_chart_of_accounts(tb: TrialBalance) -> ValidationResult:
    missing_names = [a.account_id for a in tb.accounts if not a.account_name.strip()]
    invalid_codes = [a.account_id for a in tb.accounts if not VALID_CODE.match(a.account_id)]
    issues = []
    if missing_names:
        issues.append(f"{len(missing_names)} account(s) missing names: {', '.join(missing_names)}")
    if invalid_codes:
        issues.append(f"{len(invalid_codes)} account(s) with invalid codes: {', '.join(invalid_codes)}")
    if issues:
        return ValidationResult(
            "chart-of-accounts-structure",
            FAIL,
            "Chart of accounts structure issues detected",
            tuple(issues),
        )
    return ValidationResult(
        "chart-of-accounts-structure", PASS, "Chart of accounts structure is valid"
    )


def check_unmapped_accounts(tb: TrialBalance) -> ValidationResult:
    unmapped = ledger.unmapped_accounts(tb)
    if not unmapped:
        return ValidationResult("unmapped-accounts", PASS, "All accounts are mapped")
    return ValidationResult(
        "unmapped-accounts",
        WARNING,
        f"{len(unmapped)} account(s) are not mapped to a statement",
        tuple(f"{a.account_id} {a.account_name}" for a in unmapped),
    )


def check_required_line_items(tb: TrialBalance) -> ValidationResult:
    mapped = ledger.build_mapped_trial_balance(tb)
    missing = []
    for section, fragments in REQUIRED_LINE_ITEMS.items():
        names = [name.lower() for name in mapped[section]]
        for fragment in fragments:
            if not any(fragment in name for name in names):
                missing.append(f"{section.value}: {fragment}")
    if not mapped[Statement.REVENUE]:
        missing.append("revenue: any revenue line item")
    if not mapped[Statement.EXPENSES]:
        missing.append("expenses: any expense line item")
    if missing:
        return ValidationResult(
            "required-ifrs-line-items",
            WARNING,
            "Some recommended IFRS line items are missing",
            tuple(missing),
        )
    return ValidationResult(
        "required-ifrs-line-items", PASS, "All recommended IFRS line items are present"
    )


def check_suspense_accounts(tb: TrialBalance) -> ValidationResult:
    flagged = [
        f"{a.account_id} {a.account_name}: {a.net_balance}"
        for a in tb.accounts
        if SUSPENSE_PATTERN.search(a.account_name) and abs(a.net_balance) > SUSPENSE_MINIMUM
    ]
    if flagged:
        return ValidationResult(
            "suspense-accounts",
            WARNING,
            "Suspense accounts with non-zero balances detected",
            tuple(flagged),
        )
    return ValidationResult(
        "suspense-accounts", PASS, "No suspense accounts with balances found"
    )


def check_negative_balances(tb: TrialBalance) -> ValidationResult:
    """Flag accounts carrying a balance on the opposite of their normal side."""
    details = []
    for account in tb.accounts:
        mapping = tb.mappings.get(account.account_id)
        if mapping is None or mapping.statement not in (
            Statement.ASSETS,
            Statement.LIABILITIES,
            Statement.EQUITY,
        ):
            continue
        balance = signed_total(mapping.statement, [account])
        if balance < ZERO:
            side = "credit" if mapping.statement.is_debit_normal else "debit"
            details.append(
                f"{mapping.statement.value.title()} account {account.account_id} "
                f"'{account.account_name}' has a {side} balance ({abs(balance)})"
            )
    if details:
        return ValidationResult(
            "negative-balances",
            WARNING,
            f"{len(details)} account(s) carry a balance against their normal side",
            tuple(details),
        )
    return ValidationResult(
        "negative-balances", PASS, "Account balances agree with their normal side"
    )


def check_large_balances(
    tb: TrialBalance, threshold: Decimal = LARGE_BALANCE_THRESHOLD
) -> ValidationResult:
    large = [
        f"{a.account_id} {a.account_name}: {abs(a.net_balance)}"
        for a in tb.accounts
        if abs(a.net_balance) > threshold
    ]
    if large:
        return ValidationResult(
            "large-account-balances",
            WARNING,
            f"{len(large)} account(s) with balances above {threshold} detected",
            tuple(large),
        )
    return ValidationResult(
        "large-account-balances", PASS, "No unusually large account balances detected"
    )


def check_period_consistency(tb: TrialBalance, previous: TrialBalance) -> ValidationResult:
    """Compare the chart of accounts and key balances with a prior period."""
    current_ids = {a.account_id for a in tb.accounts}
    previous_ids = {a.account_id for a in previous.accounts}
    issues = []
    added = sorted(current_ids - previous_ids)
    removed = sorted(previous_ids - current_ids)
    if added:
        issues.append(f"{len(added)} new account(s): {', '.join(added)}")
    if removed:
        issues.append(f"{len(removed)} account(s) no longer present: {', '.join(removed)}")

    for account in tb.accounts:
        prior = previous.get_account(account.account_id)
        if prior is None or abs(prior.net_balance) <= VARIANCE_BASE_MINIMUM:
            continue
        change = account.net_balance - prior.net_balance
        percent = abs(change / prior.net_balance) * 100
        if (
            percent > VARIANCE_PERCENT
            and abs(change) > VARIANCE_MINIMUM
            and KEY_ACCOUNT_PATTERN.search(account.account_name)
        ):
            issues.append(
                f"{account.account_id} {account.account_name} changed by "
                f"{percent.quantize(Decimal('0.1'))}%"
            )
    if issues:
        return ValidationResult(
            "period-consistency",
            WARNING,
            "Period-over-period consistency issues detected",
            tuple(issues),
        )
    return ValidationResult(
        "period-consistency", PASS, "Period-over-period consistency is acceptable"
    )


def run_checks(
    tb: TrialBalance, previous: Optional[TrialBalance] = None
) -> list[ValidationResult]:
    """Run the full check suite against a ledger snapshot."""
    results = [
        check_trial_balance_balance(tb),
        check_accounting_equation(tb),
        check_chart_of_accounts(tb),
        check_unmapped_accounts(tb),
        check_required_line_items(tb),
        check_negative_balances(tb),
        check_suspense_accounts(tb),
        check_large_balances(tb),
    ]
    if previous is not None:
        results.append(check_period_consistency(tb, previous))
    return results
