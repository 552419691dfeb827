"""Mapper functions to convert between domain models and SQLAlchemy models.

This layer isolates the conversion logic, making it easy to change when
the database schema changes.
"""

import json
from datetime import datetime, UTC
from decimal import Decimal
from typing import Optional

from finstate.domain import entities as domain
from finstate.database.models import (
    TrialBalance as ORMTrialBalance,
    LedgerAccount as ORMLedgerAccount,
    AccountMapping as ORMAccountMapping,
    EditRecord as ORMEditRecord,
    ClassificationRule as ORMClassificationRule,
)


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite drops tzinfo; stored timestamps are always UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _amount(value) -> Decimal:
    return Decimal(value) if value is not None else domain.ZERO


def ledger_account_to_domain(orm_account: ORMLedgerAccount) -> domain.TrialBalanceAccount:
    """Convert SQLAlchemy LedgerAccount model to domain TrialBalanceAccount."""
    return domain.TrialBalanceAccount(
        account_id=orm_account.account_id,
        account_name=orm_account.account_name,
        original_debit=_amount(orm_account.original_debit),
        original_credit=_amount(orm_account.original_credit),
        adjustment_debit=_amount(orm_account.adjustment_debit),
        adjustment_credit=_amount(orm_account.adjustment_credit),
        description=orm_account.description,
        is_edited=orm_account.is_edited,
        last_modified=_utc(orm_account.last_modified),
        modified_by=orm_account.modified_by,
    )


def account_mapping_to_domain(orm_mapping: ORMAccountMapping) -> domain.AccountMapping:
    """Convert SQLAlchemy AccountMapping model to domain AccountMapping."""
    return domain.AccountMapping(
        account_id=orm_mapping.account_id,
        statement=domain.Statement(orm_mapping.statement),
        line_item=orm_mapping.line_item,
    )


def edit_record_to_domain(orm_record: ORMEditRecord) -> domain.EditRecord:
    """Convert SQLAlchemy EditRecord model to domain EditRecord."""
    changes = tuple(
        domain.FieldChange(c["field"], c.get("old_value"), c.get("new_value"))
        for c in json.loads(orm_record.changes or "[]")
    )
    return domain.EditRecord(
        id=orm_record.id,
        timestamp=_utc(orm_record.timestamp),
        user_id=orm_record.user_id,
        action=domain.EditAction(orm_record.action),
        version=orm_record.version,
        description=orm_record.description,
        account_id=orm_record.account_id,
        changes=changes,
    )


def changes_to_json(changes: tuple[domain.FieldChange, ...]) -> str:
    return json.dumps(
        [{"field": c.field, "old_value": c.old_value, "new_value": c.new_value} for c in changes]
    )


def trial_balance_to_domain(orm_tb: ORMTrialBalance) -> domain.TrialBalance:
    """Convert SQLAlchemy TrialBalance model (with children) to the domain aggregate."""
    mappings = {m.account_id: account_mapping_to_domain(m) for m in orm_tb.mappings}
    return domain.TrialBalance(
        id=orm_tb.id,
        name=orm_tb.name,
        accounts=tuple(ledger_account_to_domain(a) for a in orm_tb.accounts),
        mappings=mappings,
        version=orm_tb.version,
        has_adjustments=orm_tb.has_adjustments,
        edit_history=tuple(edit_record_to_domain(r) for r in orm_tb.edit_records),
        file_name=orm_tb.file_name,
        period_end=orm_tb.period_end,
        ifrs_standard=orm_tb.ifrs_standard,
        created_at=_utc(orm_tb.created_at),
        updated_at=_utc(orm_tb.updated_at),
    )


def trial_balance_to_summary(orm_tb: ORMTrialBalance) -> domain.TrialBalanceSummary:
    """Convert SQLAlchemy TrialBalance model to a listing row."""
    return domain.TrialBalanceSummary(
        id=orm_tb.id,
        name=orm_tb.name,
        version=orm_tb.version,
        account_count=len(orm_tb.accounts),
        period_end=orm_tb.period_end,
        ifrs_standard=orm_tb.ifrs_standard,
        updated_at=_utc(orm_tb.updated_at),
    )


def rule_to_domain(orm_rule: ORMClassificationRule) -> domain.ClassificationRule:
    """Convert SQLAlchemy ClassificationRule model to domain ClassificationRule."""
    return domain.ClassificationRule(
        id=orm_rule.id,
        name=orm_rule.name,
        statement=domain.Statement(orm_rule.statement),
        line_item=orm_rule.line_item,
        keywords=tuple(json.loads(orm_rule.keywords or "[]")),
        patterns=tuple(json.loads(orm_rule.patterns or "[]")),
        account_codes=tuple(json.loads(orm_rule.account_codes or "[]")),
        priority=orm_rule.priority,
        description=orm_rule.description,
        is_custom=True,
    )
