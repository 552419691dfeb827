"""Account classification engine.

Classification runs in two phases. Each rule first gets a base score from
independent features (name pattern, keywords, account code prefix, balance
polarity). A closed table of override predicates is then evaluated against
that base score to boost, penalize, floor or veto the candidate. The best
candidate across the rule set becomes the suggestion.
"""

import re
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, Iterable, Optional

from finstate.domain.entities import (
    AccountMapping,
    ClassificationRule,
    MappingSuggestion,
    Statement,
    ZERO,
)
from finstate.domain.ruleset import RuleSet
from finstate.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ScoringWeights:
    """Tunable weights of the base scoring features.

    Only the relative order is meaningful:
    pattern > multi-word keyword > single keyword > code prefix > polarity.
    """

    pattern: int = 70
    multi_word_keyword: int = 20
    single_keyword: int = 12
    keyword_cap: int = 50
    code_prefix: int = 10
    polarity: int = 5
    short_circuit: int = 95


DEFAULT_WEIGHTS = ScoringWeights()

DEFAULT_THRESHOLD = 30
SUGGESTION_THRESHOLD = 70
AUTO_MAP_THRESHOLD = 80


@dataclass(frozen=True)
class AccountText:
    """Normalized text views of an account used for matching."""

    name: str
    full: str
    code: str

    @classmethod
    def of(cls, account) -> "AccountText":
        name = " ".join(account.account_name.lower().split())
        description = (getattr(account, "description", None) or "").lower()
        code = account.account_id.strip().lower()
        full = " ".join(part for part in (name, description, code) if part)
        return cls(name=name, full=full, code=code)


# ---------------------------------------------------------------------------
# Phase 1: base scoring features
# ---------------------------------------------------------------------------


def pattern_score(
    rule: ClassificationRule, text: AccountText, weights: ScoringWeights = DEFAULT_WEIGHTS
) -> tuple[int, Optional[str]]:
    """Score the first rule pattern matching the account name."""
    for pattern in rule.patterns:
        if re.search(pattern, text.name, re.IGNORECASE):
            return weights.pattern, f"pattern match: {pattern}"
    return 0, None


def keyword_score(
    rule: ClassificationRule, text: AccountText, weights: ScoringWeights = DEFAULT_WEIGHTS
) -> tuple[int, Optional[str]]:
    """Score keywords contained in the account text.

    Multi-word phrases are more specific than single words and weigh more.
    The total is capped.
    """
    hits = [k for k in rule.keywords if k.lower() in text.full]
    if not hits:
        return 0, None
    points = sum(
        weights.multi_word_keyword if " " in k.strip() else weights.single_keyword
        for k in hits
    )
    return min(weights.keyword_cap, points), f"keywords: {', '.join(hits)}"


def code_prefix_score(
    rule: ClassificationRule, text: AccountText, weights: ScoringWeights = DEFAULT_WEIGHTS
) -> tuple[int, Optional[str]]:
    for code in rule.account_codes:
        if text.code.startswith(code.lower()):
            return weights.code_prefix, f"account code: {code}"
    return 0, None


def polarity_score(
    rule: ClassificationRule, debit: Decimal, credit: Decimal, weights: ScoringWeights = DEFAULT_WEIGHTS
) -> tuple[int, Optional[str]]:
    """Small bonus when the balance sits on the section's normal side."""
    if rule.statement.is_debit_normal and debit > credit:
        return weights.polarity, "debit balance"
    if not rule.statement.is_debit_normal and credit > debit:
        return weights.polarity, "credit balance"
    return 0, None


# ---------------------------------------------------------------------------
# Phase 2: override table
# ---------------------------------------------------------------------------

VETO = "veto"
PENALTY = "penalty"
BOOST = "boost"
FLOOR = "floor"


@dataclass(frozen=True)
class Override:
    """Declarative contradiction or reinforcement rule.

    ``applies_to`` selects candidate rules, ``condition`` inspects the
    account text. When both hold, ``effect`` is applied with ``amount``.
    """

    name: str
    effect: str
    amount: int
    reason: str
    applies_to: Callable[[ClassificationRule], bool]
    condition: Callable[[AccountText], bool]


def _text(pattern: str, unless: Optional[str] = None) -> Callable[[AccountText], bool]:
    def check(text: AccountText) -> bool:
        if not re.search(pattern, text.full, re.IGNORECASE):
            return False
        return unless is None or not re.search(unless, text.full, re.IGNORECASE)

    return check


def _rules(*rule_ids: str) -> Callable[[ClassificationRule], bool]:
    return lambda rule: rule.id in rule_ids


def _statement(statement: Statement) -> Callable[[ClassificationRule], bool]:
    return lambda rule: rule.statement == statement


def _not_statement(statement: Statement) -> Callable[[ClassificationRule], bool]:
    return lambda rule: rule.statement != statement


_BANK_LOAN = r"\bbank\b.*\b(loans?|borrowings?|credit|overdrafts?)\b"


OVERRIDES: tuple[Override, ...] = (
    # Vetoes
    Override(
        "bank-loan-not-cash", VETO, 0,
        "rejected: bank loan is a liability, not a bank account",
        _rules("cash-bank"), _text(_BANK_LOAN),
    ),
    Override(
        "vehicle-expense-not-asset", VETO, 0,
        "rejected: vehicle expenses are not assets",
        _statement(Statement.ASSETS), _text(r"vehicle.*(expense|running|fuel|cost)"),
    ),
    Override(
        "repairs-not-asset", VETO, 0,
        "rejected: repairs and maintenance are expenses",
        _statement(Statement.ASSETS), _text(r"repair|maintenance", unless=r"prepaid"),
    ),
    Override(
        "payable-is-liability", VETO, 0,
        'rejected: contains "payable" but not classified as liability',
        _not_statement(Statement.LIABILITIES), _text(r"\bpayables?\b"),
    ),
    Override(
        "receivable-is-asset", VETO, 0,
        'rejected: contains "receivable" but not classified as asset',
        _not_statement(Statement.ASSETS), _text(r"\breceivables?\b"),
    ),
    Override(
        "bad-debts-are-expenses", VETO, 0,
        "rejected: bad and doubtful debts are expenses",
        _not_statement(Statement.EXPENSES), _text(r"(bad|doubtful)\s*debts?"),
    ),
    # Floors
    Override(
        "bank-loan-is-liability", FLOOR, 90,
        "override: bank loan classified as liability",
        _rules("bank-loans"), _text(_BANK_LOAN),
    ),
    # Penalties
    Override(
        "expense-token", PENALTY, 30,
        'reduced: contains "expense" but not classified as expense',
        _not_statement(Statement.EXPENSES), _text(r"\bexpenses?\b"),
    ),
    Override(
        "income-token", PENALTY, 20,
        'reduced: contains "income/revenue" but not classified as revenue',
        _not_statement(Statement.REVENUE), _text(r"\b(income|revenue)\b", unless=r"expense|tax"),
    ),
    Override(
        "contra-provision", PENALTY, 20,
        "reduced: accumulated/provision accounts are contra-assets or liabilities",
        _statement(Statement.ASSETS), _text(r"^(accumulated|provision)\s", unless=r"depreciation|amorti"),
    ),
    Override(
        "insurance-rent-expense", PENALTY, 15,
        "reduced: insurance/rent without payable is an expense",
        _not_statement(Statement.EXPENSES), _text(r"insurance|\brent\b", unless=r"payable|prepaid"),
    ),
    Override(
        "professional-fees-expense", PENALTY, 25,
        "reduced: professional fees are expenses",
        _not_statement(Statement.EXPENSES),
        _text(r"(professional|legal|audit|consulting)\s*(fees?|costs?)", unless=r"income|earned"),
    ),
    Override(
        "travel-expense", PENALTY, 20,
        "reduced: travel and entertainment are expenses",
        _not_statement(Statement.EXPENSES), _text(r"travel|entertainment|\bmeals?\b", unless=r"payable"),
    ),
    Override(
        "utilities-expense", PENALTY, 20,
        "reduced: utilities without payable are expenses",
        _not_statement(Statement.EXPENSES),
        _text(r"utilit(y|ies)|electricity|\bwater\b|\bpower\b|telephone|internet", unless=r"payable"),
    ),
    Override(
        "salaries-expense", PENALTY, 25,
        "reduced: salaries and wages without payable are expenses",
        _not_statement(Statement.EXPENSES), _text(r"salar(y|ies)|wages?|payroll", unless=r"payable|accrued"),
    ),
    # Boosts
    Override(
        "liability-payable", BOOST, 10,
        "boosted: payable accounts are liabilities",
        _statement(Statement.LIABILITIES), _text(r"\bpayables?\b"),
    ),
    Override(
        "bank-charges", BOOST, 20,
        "boosted: bank charges are administrative expenses",
        _rules("admin-expenses"), _text(r"(bank|momo)\s*(charges?|fees?)"),
    ),
    Override(
        "cost-of-sales", BOOST, 25,
        "boosted: strong cost of sales indicator",
        _rules("cost-of-sales"), _text(r"cost\s*of\s*(sales|goods\s*sold)"),
    ),
    Override(
        "selling", BOOST, 20,
        "boosted: selling indicates selling expenses",
        _rules("selling-expenses"), _text(r"selling"),
    ),
    Override(
        "non-operating-income", BOOST, 25,
        "boosted: non-operating income",
        _rules("other-income"), _text(r"non[-\s]*operating.*income"),
    ),
    Override(
        "non-operating-expense", BOOST, 25,
        "boosted: non-operating expenses",
        _rules("other-expenses"), _text(r"non[-\s]*operating.*expense"),
    ),
    Override(
        "prepaid-asset", BOOST, 20,
        "boosted: prepaid items are assets",
        _statement(Statement.ASSETS), _text(r"^prepaid|\bprepayments?\b", unless=r"customer"),
    ),
    Override(
        "accrued-liability", BOOST, 20,
        "boosted: accrued expenses are liabilities",
        _statement(Statement.LIABILITIES), _text(r"^accrue", unless=r"income|receivable|revenue"),
    ),
    Override(
        "accrued-income-asset", BOOST, 20,
        "boosted: accrued income is an asset",
        _statement(Statement.ASSETS), _text(r"^accrued.*(income|receivable|revenue)"),
    ),
    Override(
        "deposits-received", BOOST, 15,
        "boosted: deposits received are liabilities",
        _statement(Statement.LIABILITIES), _text(r"deposits?.*(received|customer|advance)|customer.*deposits?"),
    ),
    Override(
        "deposits-paid", BOOST, 15,
        "boosted: deposits paid are assets",
        _statement(Statement.ASSETS), _text(r"(security|refundable)\s*deposits?|deposits?\s*paid"),
    ),
    Override(
        "reserves-capital", BOOST, 15,
        "boosted: reserves and capital are equity",
        _statement(Statement.EQUITY), _text(r"reserves?|capital", unless=r"working|expenditure"),
    ),
    Override(
        "accumulated-depreciation", BOOST, 25,
        "boosted: accumulated depreciation is a contra-asset",
        _statement(Statement.ASSETS), _text(r"accumulated\s*(depreciation|amorti[sz]ation)"),
    ),
    Override(
        "income-tax", BOOST, 20,
        "boosted: income tax is an expense",
        _rules("income-tax-expenses"), _text(r"income.*tax|corporat(e|ion)\s*tax", unless=r"payable|receivable"),
    ),
    Override(
        "vat", BOOST, 20,
        "boosted: VAT is a liability",
        _rules("vat-liabilities"), _text(r"\bvat\b|value.*added"),
    ),
    Override(
        "interest-income", BOOST, 15,
        "boosted: interest income is revenue",
        _statement(Statement.REVENUE), _text(r"interest.*(income|received|earned)"),
    ),
    Override(
        "interest-expense", BOOST, 15,
        "boosted: interest expense is an expense",
        _statement(Statement.EXPENSES), _text(r"interest.*(expense|paid|cost)|finance\s*costs?"),
    ),
    Override(
        "forex-loss", BOOST, 15,
        "boosted: forex items are expenses unless gains",
        _statement(Statement.EXPENSES), _text(r"forex|exchange|currency", unless=r"gain|income"),
    ),
    Override(
        "forex-gain", BOOST, 15,
        "boosted: forex gains are revenue",
        _statement(Statement.REVENUE), _text(r"(forex|exchange|currency).*gain"),
    ),
)


def apply_overrides(
    rule: ClassificationRule,
    text: AccountText,
    base: int,
    overrides: Iterable[Override] = OVERRIDES,
) -> tuple[int, list[str], bool]:
    """Apply the override table to a base score.

    Boosts and penalties accumulate in table order, then floors are
    applied, then vetoes. A veto always yields zero. Penalties never take
    the running score below zero.

    Returns:
        Tuple of (adjusted score, reasons of fired overrides, vetoed flag)
    """
    score = base
    floors = []
    reasons = []
    vetoed = False
    for override in overrides:
        if not override.applies_to(rule) or not override.condition(text):
            continue
        reasons.append(override.reason)
        if override.effect == VETO:
            vetoed = True
        elif override.effect == PENALTY:
            score = max(0, score - override.amount)
        elif override.effect == BOOST:
            score += override.amount
        elif override.effect == FLOOR:
            floors.append(override.amount)
    for floor in floors:
        score = max(score, floor)
    if vetoed:
        score = 0
    return score, reasons, vetoed


# ---------------------------------------------------------------------------
# Rule scoring and selection
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RuleScore:
    """Score of one account against one rule."""

    rule: ClassificationRule
    base: int
    confidence: int
    reasons: tuple[str, ...]
    vetoed: bool = False

    @property
    def reason(self) -> str:
        return "; ".join(self.reasons) if self.reasons else "low confidence match"


def score_rule(
    account,
    rule: ClassificationRule,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
    overrides: Iterable[Override] = OVERRIDES,
) -> RuleScore:
    """Score an account (raw or ledger) against a single rule."""
    text = AccountText.of(account)
    base = 0
    reasons = []
    for points, reason in (
        pattern_score(rule, text, weights),
        keyword_score(rule, text, weights),
        code_prefix_score(rule, text, weights),
        polarity_score(rule, account.debit, account.credit, weights),
    ):
        base += points
        if reason:
            reasons.append(reason)

    adjusted, override_reasons, vetoed = apply_overrides(rule, text, base, overrides)
    reasons.extend(override_reasons)
    return RuleScore(
        rule=rule,
        base=base,
        confidence=min(100, max(0, adjusted)),
        reasons=tuple(reasons),
        vetoed=vetoed,
    )


def _as_rules(rules) -> list[ClassificationRule]:
    if rules is None:
        return RuleSet().sorted_by_priority()
    if isinstance(rules, RuleSet):
        return rules.sorted_by_priority()
    return sorted(rules, key=lambda r: -r.priority)


def best_match(
    account,
    rules=None,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
    overrides: Iterable[Override] = OVERRIDES,
) -> Optional[RuleScore]:
    """Return the highest scoring rule for an account.

    Rules are evaluated in descending priority. A score at or above the
    short-circuit level stops evaluation of lower-priority rules.
    """
    best: Optional[RuleScore] = None
    for rule in _as_rules(rules):
        result = score_rule(account, rule, weights, overrides)
        if result.confidence > (best.confidence if best else 0):
            best = result
        if result.confidence >= weights.short_circuit:
            break
    return best


# Chart-of-accounts numbering convention keyed on the leading digit
CODE_RANGES: dict[str, tuple[Statement, str]] = {
    "1": (Statement.ASSETS, "Other Current Assets"),
    "2": (Statement.LIABILITIES, "Other Current Liabilities"),
    "3": (Statement.EQUITY, "Other Reserves"),
    "4": (Statement.REVENUE, "Other Income"),
}
EXPENSE_FALLBACK = (Statement.EXPENSES, "Other Operating Expenses")

FALLBACK_AGREEING = 25
FALLBACK_DISAGREEING = 15


def fallback_classification(account) -> Optional[MappingSuggestion]:
    """Coarse classification from the account code's leading digit.

    Returns None when the account ID does not start with a digit.
    """
    code = account.account_id.strip()
    if not code or not code[0].isdigit() or code[0] == "0":
        return None
    statement, line_item = CODE_RANGES.get(code[0], EXPENSE_FALLBACK)
    debit, credit = account.debit, account.credit
    agrees = (debit > credit) if statement.is_debit_normal else (credit > debit)
    return MappingSuggestion(
        account_id=account.account_id,
        statement=statement,
        line_item=line_item,
        confidence=FALLBACK_AGREEING if agrees else FALLBACK_DISAGREEING,
        reason=f"fallback: account code {code[0]}xxx range"
        + (" with matching balance" if agrees else ""),
    )


def classify(
    account,
    rules=None,
    threshold: int = DEFAULT_THRESHOLD,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
    overrides: Iterable[Override] = OVERRIDES,
) -> Optional[MappingSuggestion]:
    """Classify one account against a rule set.

    Pure function of the account snapshot and the rules. When no rule
    reaches ``threshold`` the code-range fallback is tried; None means the
    account stays unmapped.

    Args:
        account: RawAccount or TrialBalanceAccount
        rules: RuleSet or iterable of rules (defaults to the built-in catalog)
        threshold: Minimum rule confidence to accept a rule match

    Returns:
        MappingSuggestion or None
    """
    best = best_match(account, rules, weights, overrides)
    if best is not None and best.confidence >= threshold:
        logger.debug(
            "Classified %s as %s.%s (%d)",
            account.account_id,
            best.rule.statement.value,
            best.rule.line_item,
            best.confidence,
        )
        return MappingSuggestion(
            account_id=account.account_id,
            statement=best.rule.statement,
            line_item=best.rule.line_item,
            confidence=best.confidence,
            reason=best.reason,
            rule_id=best.rule.id,
        )
    suggestion = fallback_classification(account)
    if suggestion is None:
        logger.debug("No classification for %s", account.account_id)
    return suggestion


def generate_suggestions(
    accounts: Iterable,
    rules=None,
    threshold: int = SUGGESTION_THRESHOLD,
) -> list[MappingSuggestion]:
    """Suggestions at or above ``threshold``, most confident first."""
    suggestions = []
    for account in accounts:
        suggestion = classify(account, rules)
        if suggestion is not None and suggestion.confidence >= threshold:
            suggestions.append(suggestion)
    return sorted(suggestions, key=lambda s: -s.confidence)


def auto_map(
    accounts: Iterable,
    mappings: dict[str, AccountMapping],
    rules=None,
    threshold: int = AUTO_MAP_THRESHOLD,
) -> list[MappingSuggestion]:
    """Return high-confidence suggestions for accounts that are not yet mapped."""
    unmapped = [a for a in accounts if a.account_id not in mappings]
    return generate_suggestions(unmapped, rules, threshold)


@dataclass(frozen=True)
class MappingQuality:
    """Completion and balance consistency of a set of mappings."""

    total_accounts: int
    mapped_accounts: int
    unmapped_account_ids: tuple[str, ...]
    completion: Decimal
    balance_score: Decimal
    balance_difference: Decimal
    score: Decimal
    issues: tuple[str, ...]


_SCORE_PLACES = Decimal("0.0001")


def mapping_quality(accounts: Iterable, mappings: dict[str, AccountMapping]) -> MappingQuality:
    """Score how complete and internally consistent the mappings are.

    The score weighs completion at 70% and balance-sheet consistency at 30%.
    Consistency compares mapped assets against liabilities, equity and the
    current-period result.
    """
    accounts = list(accounts)
    totals = {s: ZERO for s in Statement}
    unmapped = []
    for account in accounts:
        mapping = mappings.get(account.account_id)
        if mapping is None:
            unmapped.append(account.account_id)
            continue
        net = account.debit - account.credit
        totals[mapping.statement] += net if mapping.statement.is_debit_normal else -net

    total = len(accounts)
    completion = Decimal(total - len(unmapped)) / Decimal(total) if total else Decimal("1")
    profit = totals[Statement.REVENUE] - totals[Statement.EXPENSES]
    difference = abs(
        totals[Statement.ASSETS]
        - (totals[Statement.LIABILITIES] + totals[Statement.EQUITY] + profit)
    )
    if difference < Decimal("1000"):
        balance_score = Decimal("1")
    else:
        balance_score = max(ZERO, Decimal("1") - difference / Decimal("100000"))

    issues = []
    if unmapped:
        issues.append(f"{len(unmapped)} accounts remain unmapped")
    if balance_score < Decimal("0.9"):
        issues.append("Balance sheet equation may not balance with current mappings")

    score = completion * Decimal("0.7") + balance_score * Decimal("0.3")
    return MappingQuality(
        total_accounts=total,
        mapped_accounts=total - len(unmapped),
        unmapped_account_ids=tuple(unmapped),
        completion=completion.quantize(_SCORE_PLACES, rounding=ROUND_HALF_UP),
        balance_score=balance_score.quantize(_SCORE_PLACES, rounding=ROUND_HALF_UP),
        balance_difference=difference,
        score=score.quantize(_SCORE_PLACES, rounding=ROUND_HALF_UP),
        issues=tuple(issues),
    )


def business_rule_warnings(account, statement: Statement) -> list[str]:
    """Flag classifications that contradict the account's own wording."""
    text = AccountText.of(account).full
    warnings = []
    if statement == Statement.ASSETS and re.search(r"payable|creditor", text):
        warnings.append("Account name suggests liability but classified as asset")
    if statement == Statement.LIABILITIES and re.search(r"receivable|debtor|\bcash\b|bank account", text):
        warnings.append("Account name suggests asset but classified as liability")
    if statement == Statement.REVENUE and re.search(r"expense|\bcost\b|\bpaid\b", text):
        warnings.append("Account name suggests expense but classified as revenue")
    if statement == Statement.EXPENSES and re.search(r"income|revenue|earned", text):
        warnings.append("Account name suggests revenue but classified as expense")
    if statement == Statement.EQUITY and re.search(r"expense|revenue|receivable|payable", text):
        warnings.append("Account name does not appear to be equity")
    return warnings
