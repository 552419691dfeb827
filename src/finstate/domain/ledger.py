"""Trial balance ledger operations.

Every operation here is a pure function from one ``TrialBalance`` snapshot
to the next. A successful mutation bumps ``version`` by one and appends
exactly one ``EditRecord``; a failing one raises before anything is built,
so callers never see a half-applied change. The history is an event log:
``as_of`` rewinds a snapshot to any earlier version by restoring the old
values each record captured.
"""

import csv
import io
import json
import uuid
from dataclasses import replace
from datetime import UTC, date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, Mapping, Optional, Union

from finstate.domain.entities import (
    STATEMENT_ORDER,
    UNMAPPED,
    ZERO,
    AccountMapping,
    EditAction,
    EditRecord,
    FieldChange,
    RawAccount,
    Statement,
    TrialBalance,
    TrialBalanceAccount,
    TrialBalanceValidation,
)
from finstate.domain.errors import (
    NotFoundError,
    ValidationError,
    account_not_found,
    duplicate_account_ids,
)

BALANCE_TOLERANCE = Decimal("0.01")
CENT = Decimal("0.01")

EDITABLE_FIELDS = ("account_name", "description", "adjustment_debit", "adjustment_credit")
AMOUNT_FIELDS = ("adjustment_debit", "adjustment_credit")

MappedTrialBalance = dict[Statement, dict[str, list[TrialBalanceAccount]]]


def parse_statement(value: Union[str, Statement, None]) -> Optional[Statement]:
    """Parse a statement name; "unmapped" and None map to None.

    Raises:
        ValidationError: If the value is not a known statement
    """
    if value is None or isinstance(value, Statement):
        return value
    normalized = value.strip().lower()
    if normalized == UNMAPPED:
        return None
    try:
        return Statement(normalized)
    except ValueError:
        valid = ", ".join([s.value for s in Statement] + [UNMAPPED])
        raise ValidationError(f"Unknown statement '{value}'. Expected one of: {valid}")


def to_amount(value: Any, field: str = "amount") -> Decimal:
    """Coerce a value to a finite Decimal rounded half-up to cents.

    Amounts are stored with two decimal places.

    Raises:
        ValidationError: If the value is not a finite number
    """
    if isinstance(value, float):
        value = str(value)
    try:
        amount = value if isinstance(value, Decimal) else Decimal(value)
    except (ArithmeticError, TypeError, ValueError):
        raise ValidationError(f"Invalid {field}: {value!r}")
    if not amount.is_finite():
        raise ValidationError(f"Invalid {field}: {value!r}")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def _now() -> datetime:
    return datetime.now(UTC)


def _new_record(
    action: EditAction,
    version: int,
    user_id: str,
    description: str,
    timestamp: datetime,
    account_id: Optional[str] = None,
    changes: Iterable[FieldChange] = (),
) -> EditRecord:
    return EditRecord(
        id=uuid.uuid4().hex,
        timestamp=timestamp,
        user_id=user_id,
        action=action,
        version=version,
        description=description,
        account_id=account_id,
        changes=tuple(changes),
    )


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, Statement):
        return value.value
    if isinstance(value, Decimal):
        return format_amount(value)
    return str(value)


def _find_index(tb: TrialBalance, account_id: str) -> int:
    for index, account in enumerate(tb.accounts):
        if account.account_id == account_id:
            return index
    raise NotFoundError(account_not_found(account_id))


def _replace_account(
    tb: TrialBalance, index: int, account: TrialBalanceAccount
) -> tuple[TrialBalanceAccount, ...]:
    accounts = list(tb.accounts)
    accounts[index] = account
    return tuple(accounts)


def import_from(
    raw_accounts: Iterable[RawAccount],
    name: str,
    mappings: Optional[Union[Mapping[str, AccountMapping], Iterable[AccountMapping]]] = None,
    file_name: Optional[str] = None,
    user_id: str = "system",
    period_end: Optional[date] = None,
    ifrs_standard: str = "full",
    now: Optional[datetime] = None,
) -> TrialBalance:
    """Create a version 1 ledger from imported accounts.

    Originals are frozen from the raw debit/credit, adjustments start at
    zero, and a single import record is written.

    Raises:
        ValidationError: If the name is empty, amounts are invalid, account
            IDs repeat, or a mapping references an unknown account
    """
    if not name or not name.strip():
        raise ValidationError("Trial balance name cannot be empty")
    timestamp = now or _now()

    accounts = []
    seen = set()
    duplicates = []
    for raw in raw_accounts:
        account_id = raw.account_id.strip()
        if not account_id:
            raise ValidationError("Account ID cannot be empty")
        if account_id in seen:
            duplicates.append(account_id)
            continue
        seen.add(account_id)
        accounts.append(
            TrialBalanceAccount(
                account_id=account_id,
                account_name=raw.account_name.strip(),
                original_debit=to_amount(raw.debit, "debit"),
                original_credit=to_amount(raw.credit, "credit"),
                description=raw.description,
            )
        )
    if duplicates:
        raise ValidationError(duplicate_account_ids(duplicates))

    mapping_table: dict[str, AccountMapping] = {}
    if mappings is not None:
        items = mappings.values() if isinstance(mappings, Mapping) else mappings
        for mapping in items:
            if mapping.account_id not in seen:
                raise ValidationError(
                    f"Mapping references unknown account {mapping.account_id}"
                )
            mapping_table[mapping.account_id] = mapping

    source = file_name or "CSV file"
    record = _new_record(
        EditAction.IMPORT,
        version=1,
        user_id=user_id,
        description=f"Imported {len(accounts)} accounts from {source}",
        timestamp=timestamp,
    )
    return TrialBalance(
        id=None,
        name=name.strip(),
        accounts=tuple(accounts),
        mappings=mapping_table,
        version=1,
        has_adjustments=False,
        edit_history=(record,),
        file_name=file_name,
        period_end=period_end,
        ifrs_standard=ifrs_standard,
        created_at=timestamp,
        updated_at=timestamp,
    )


def edit_account(
    tb: TrialBalance,
    account_id: str,
    changes: Mapping[str, Any],
    user_id: str = "system",
    now: Optional[datetime] = None,
) -> TrialBalance:
    """Merge field changes into one account and record the field diff.

    Adjustment fields replace the running totals; final amounts follow
    automatically.

    Raises:
        NotFoundError: If the account does not exist
        ValidationError: If no changes are given or a field is not editable
    """
    index = _find_index(tb, account_id)
    if not changes:
        raise ValidationError("No changes supplied")
    unknown = sorted(set(changes) - set(EDITABLE_FIELDS))
    if unknown:
        raise ValidationError(
            f"Cannot edit field(s): {', '.join(unknown)}. "
            f"Editable fields: {', '.join(EDITABLE_FIELDS)}"
        )

    account = tb.accounts[index]
    values = {}
    diff = []
    for field in EDITABLE_FIELDS:
        if field not in changes:
            continue
        new_value = changes[field]
        if field in AMOUNT_FIELDS:
            new_value = to_amount(new_value, field)
        elif field == "account_name":
            new_value = (new_value or "").strip()
            if not new_value:
                raise ValidationError("Account name cannot be empty")
        old_value = getattr(account, field)
        if old_value != new_value:
            diff.append(FieldChange(field, _as_text(old_value), _as_text(new_value)))
        values[field] = new_value

    timestamp = now or _now()
    updated = replace(
        account,
        **values,
        is_edited=True,
        last_modified=timestamp,
        modified_by=user_id,
    )
    accounts = _replace_account(tb, index, updated)
    version = tb.version + 1
    fields = ", ".join(c.field for c in diff) or "no fields changed"
    record = _new_record(
        EditAction.EDIT_ACCOUNT,
        version=version,
        user_id=user_id,
        description=f"Edited account {account_id}: {fields}",
        timestamp=timestamp,
        account_id=account_id,
        changes=diff,
    )
    return replace(
        tb,
        accounts=accounts,
        version=version,
        has_adjustments=any(a.has_adjustment for a in accounts),
        edit_history=tb.edit_history + (record,),
        updated_at=timestamp,
    )


def update_mapping(
    tb: TrialBalance,
    account_id: str,
    statement: Union[str, Statement, None],
    line_item: Optional[str],
    user_id: str = "system",
    now: Optional[datetime] = None,
) -> TrialBalance:
    """Replace the authoritative mapping of one account (last write wins).

    Passing statement "unmapped" (or None) removes the mapping.

    Raises:
        NotFoundError: If the account does not exist
        ValidationError: If the statement is unknown or the line item empty
    """
    _find_index(tb, account_id)
    parsed = parse_statement(statement)
    if parsed is not None and (not line_item or not line_item.strip()):
        raise ValidationError("Line item cannot be empty")

    old = tb.mappings.get(account_id)
    mappings = dict(tb.mappings)
    if parsed is None:
        mappings.pop(account_id, None)
        new_line = None
        target = UNMAPPED
    else:
        new_line = line_item.strip()
        mappings[account_id] = AccountMapping(account_id, parsed, new_line)
        target = f"{parsed.value}.{new_line}"

    timestamp = now or _now()
    version = tb.version + 1
    record = _new_record(
        EditAction.EDIT_MAPPING,
        version=version,
        user_id=user_id,
        description=f"Mapped account {account_id} to {target}",
        timestamp=timestamp,
        account_id=account_id,
        changes=(
            FieldChange("statement", _as_text(old.statement if old else None), _as_text(parsed)),
            FieldChange("line_item", old.line_item if old else None, new_line),
        ),
    )
    return replace(
        tb,
        mappings=mappings,
        version=version,
        edit_history=tb.edit_history + (record,),
        updated_at=timestamp,
    )


def apply_adjustment(
    tb: TrialBalance,
    account_id: str,
    delta_debit: Any = ZERO,
    delta_credit: Any = ZERO,
    description: Optional[str] = None,
    user_id: str = "system",
    now: Optional[datetime] = None,
) -> TrialBalance:
    """Add signed deltas to an account's running adjustment totals.

    Raises:
        NotFoundError: If the account does not exist
        ValidationError: If the deltas are invalid or both zero
    """
    index = _find_index(tb, account_id)
    delta_debit = to_amount(delta_debit, "debit adjustment")
    delta_credit = to_amount(delta_credit, "credit adjustment")
    if delta_debit == ZERO and delta_credit == ZERO:
        raise ValidationError("Adjustment must change the debit or credit amount")

    account = tb.accounts[index]
    timestamp = now or _now()
    updated = replace(
        account,
        adjustment_debit=account.adjustment_debit + delta_debit,
        adjustment_credit=account.adjustment_credit + delta_credit,
        is_edited=True,
        last_modified=timestamp,
        modified_by=user_id,
    )
    diff = []
    if delta_debit != ZERO:
        diff.append(
            FieldChange(
                "adjustment_debit", _as_text(account.adjustment_debit), _as_text(updated.adjustment_debit)
            )
        )
    if delta_credit != ZERO:
        diff.append(
            FieldChange(
                "adjustment_credit", _as_text(account.adjustment_credit), _as_text(updated.adjustment_credit)
            )
        )

    version = tb.version + 1
    record = _new_record(
        EditAction.ADD_ADJUSTMENT,
        version=version,
        user_id=user_id,
        description=description
        or f"Applied adjustment to {account_id}: Dr {delta_debit}, Cr {delta_credit}",
        timestamp=timestamp,
        account_id=account_id,
        changes=diff,
    )
    return replace(
        tb,
        accounts=_replace_account(tb, index, updated),
        version=version,
        has_adjustments=True,
        edit_history=tb.edit_history + (record,),
        updated_at=timestamp,
    )


def validate(tb: TrialBalance, use_final: bool = True) -> TrialBalanceValidation:
    """Check that the debit and credit columns agree within one cent."""
    if use_final:
        total_debits = sum((a.final_debit for a in tb.accounts), ZERO)
        total_credits = sum((a.final_credit for a in tb.accounts), ZERO)
    else:
        total_debits = sum((a.original_debit for a in tb.accounts), ZERO)
        total_credits = sum((a.original_credit for a in tb.accounts), ZERO)
    difference = abs(total_debits - total_credits)
    return TrialBalanceValidation(
        is_balanced=difference < BALANCE_TOLERANCE,
        total_debits=total_debits,
        total_credits=total_credits,
        difference=difference,
    )


def build_mapped_trial_balance(tb: TrialBalance) -> MappedTrialBalance:
    """Index mapped accounts by statement and line item.

    Built fresh on every call; unmapped accounts are left out. Line items
    keep the order in which their first account appears in the ledger.
    """
    mapped: MappedTrialBalance = {statement: {} for statement in STATEMENT_ORDER}
    for account in tb.accounts:
        mapping = tb.mappings.get(account.account_id)
        if mapping is None:
            continue
        mapped[mapping.statement].setdefault(mapping.line_item, []).append(account)
    return mapped


def unmapped_accounts(tb: TrialBalance) -> list[TrialBalanceAccount]:
    return [a for a in tb.accounts if a.account_id not in tb.mappings]


def history(tb: TrialBalance, account_id: Optional[str] = None) -> list[EditRecord]:
    """Audit records, oldest first, optionally for a single account."""
    if account_id is None:
        return list(tb.edit_history)
    return [r for r in tb.edit_history if r.account_id == account_id]


def _restore_field(account: TrialBalanceAccount, change: FieldChange) -> TrialBalanceAccount:
    if change.field in AMOUNT_FIELDS:
        value = Decimal(change.old_value) if change.old_value is not None else ZERO
    else:
        value = change.old_value
        if change.field == "account_name" and value is None:
            value = ""
    return replace(account, **{change.field: value})


def as_of(tb: TrialBalance, version: int) -> TrialBalance:
    """Reconstruct the ledger as it was right after ``version`` was written.

    Raises:
        ValidationError: If the version is outside 1..current
    """
    if version < 1 or version > tb.version:
        raise ValidationError(f"Version must be between 1 and {tb.version}")
    if version == tb.version:
        return tb

    accounts = {a.account_id: a for a in tb.accounts}
    mappings = dict(tb.mappings)
    for record in reversed(tb.edit_history):
        if record.version <= version:
            break
        if record.action == EditAction.EDIT_MAPPING:
            old = {c.field: c.old_value for c in record.changes}
            if old.get("statement") is None:
                mappings.pop(record.account_id, None)
            else:
                mappings[record.account_id] = AccountMapping(
                    record.account_id, Statement(old["statement"]), old.get("line_item") or ""
                )
        elif record.account_id in accounts:
            account = accounts[record.account_id]
            for change in record.changes:
                account = _restore_field(account, change)
            accounts[record.account_id] = account

    remaining = tuple(r for r in tb.edit_history if r.version <= version)
    touched: dict[str, EditRecord] = {}
    for record in remaining:
        if record.account_id and record.action in (EditAction.EDIT_ACCOUNT, EditAction.ADD_ADJUSTMENT):
            touched[record.account_id] = record

    rebuilt = []
    for account in tb.accounts:
        account = accounts[account.account_id]
        last = touched.get(account.account_id)
        rebuilt.append(
            replace(
                account,
                is_edited=last is not None,
                last_modified=last.timestamp if last else None,
                modified_by=last.user_id if last else None,
            )
        )
    rebuilt = tuple(rebuilt)
    return replace(
        tb,
        accounts=rebuilt,
        mappings=mappings,
        version=version,
        has_adjustments=any(a.has_adjustment for a in rebuilt)
        or any(r.action == EditAction.ADD_ADJUSTMENT for r in remaining),
        edit_history=remaining,
        updated_at=remaining[-1].timestamp,
    )


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------

CSV_HEADERS = [
    "Account ID",
    "Account Name",
    "Description",
    "Original Debit",
    "Original Credit",
    "Adjustment Debit",
    "Adjustment Credit",
    "Final Debit",
    "Final Credit",
    "Statement",
    "Line Item",
]


def format_amount(amount: Decimal) -> str:
    return str(amount.quantize(CENT, rounding=ROUND_HALF_UP))


def export_csv(tb: TrialBalance) -> str:
    """Serialize the ledger accounts with their mappings as CSV text."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for account in tb.accounts:
        mapping = tb.mappings.get(account.account_id)
        writer.writerow(
            [
                account.account_id,
                account.account_name,
                account.description or "",
                format_amount(account.original_debit),
                format_amount(account.original_credit),
                format_amount(account.adjustment_debit),
                format_amount(account.adjustment_credit),
                format_amount(account.final_debit),
                format_amount(account.final_credit),
                mapping.statement.value if mapping else UNMAPPED,
                mapping.line_item if mapping else "",
            ]
        )
    return buffer.getvalue()


def edit_record_to_dict(record: EditRecord) -> dict[str, Any]:
    return {
        "id": record.id,
        "timestamp": record.timestamp.isoformat(),
        "user_id": record.user_id,
        "action": record.action.value,
        "version": record.version,
        "account_id": record.account_id,
        "description": record.description,
        "changes": [
            {"field": c.field, "old_value": c.old_value, "new_value": c.new_value}
            for c in record.changes
        ],
    }


def trial_balance_to_dict(tb: TrialBalance) -> dict[str, Any]:
    """Plain-data view of a ledger snapshot (amounts as strings)."""
    validation = validate(tb)
    return {
        "id": tb.id,
        "name": tb.name,
        "version": tb.version,
        "file_name": tb.file_name,
        "period_end": tb.period_end.isoformat() if tb.period_end else None,
        "ifrs_standard": tb.ifrs_standard,
        "has_adjustments": tb.has_adjustments,
        "totals": {
            "debits": format_amount(validation.total_debits),
            "credits": format_amount(validation.total_credits),
            "is_balanced": validation.is_balanced,
        },
        "accounts": [
            {
                "account_id": a.account_id,
                "account_name": a.account_name,
                "description": a.description,
                "original_debit": format_amount(a.original_debit),
                "original_credit": format_amount(a.original_credit),
                "adjustment_debit": format_amount(a.adjustment_debit),
                "adjustment_credit": format_amount(a.adjustment_credit),
                "final_debit": format_amount(a.final_debit),
                "final_credit": format_amount(a.final_credit),
                "statement": tb.mappings[a.account_id].statement.value
                if a.account_id in tb.mappings
                else UNMAPPED,
                "line_item": tb.mappings[a.account_id].line_item
                if a.account_id in tb.mappings
                else None,
            }
            for a in tb.accounts
        ],
        "edit_history": [edit_record_to_dict(r) for r in tb.edit_history],
    }


def export_json(tb: TrialBalance) -> str:
    return json.dumps(trial_balance_to_dict(tb), indent=2)
