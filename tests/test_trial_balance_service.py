"""Tests for TrialBalanceService."""

import json
from datetime import date
from decimal import Decimal

import pytest

from finstate.domain import ledger
from finstate.domain.entities import EditAction, RawAccount, Statement
from finstate.domain.errors import ConflictError, NotFoundError, ValidationError
from finstate.domain.trial_balance import TrialBalanceService


def test_import_accounts_persists_version_one(trial_balance_service, stored_trial_balance):
    """Test importing stores the ledger with its mapping table and audit log."""
    tb = stored_trial_balance

    assert tb.id is not None
    assert tb.version == 1
    assert len(tb.accounts) == 12
    assert len(tb.mappings) == 12
    assert [a.account_id for a in tb.accounts][:3] == ["1000", "1200", "1300"]
    assert tb.get_account("1000").original_debit == Decimal("50000")
    assert tb.edit_history[0].action == EditAction.IMPORT
    assert tb.file_name == "fy2024.csv"

    loaded = trial_balance_service.get(tb.id)
    assert loaded.name == "FY2024"
    assert loaded.mappings["4000"].statement == Statement.REVENUE


def test_import_accounts_keeps_period_and_standard(trial_balance_service, raw_accounts):
    tb = trial_balance_service.import_accounts(
        "SME 2024", raw_accounts, period_end=date(2024, 12, 31), ifrs_standard="sme"
    )
    assert tb.period_end == date(2024, 12, 31)
    assert tb.ifrs_standard == "sme"
    assert tb.mappings == {}


def test_import_accounts_rejects_unknown_standard(trial_balance_service, raw_accounts):
    with pytest.raises(ValidationError):
        trial_balance_service.import_accounts("Bad", raw_accounts, ifrs_standard="gaap")


def test_import_accounts_rejects_duplicate_name(trial_balance_service, stored_trial_balance, raw_accounts):
    with pytest.raises(ConflictError, match="already exists"):
        trial_balance_service.import_accounts("FY2024", raw_accounts)


def test_import_accounts_auto_classify(trial_balance_service, raw_accounts):
    """Test auto classification maps confident accounts as part of version 1."""
    tb = trial_balance_service.import_accounts("Auto", raw_accounts, auto_classify=True)

    assert tb.version == 1
    assert len(tb.edit_history) == 1
    assert tb.mappings["1000"].line_item == "Cash and Cash Equivalents"
    assert tb.mappings["2100"].statement == Statement.LIABILITIES
    assert tb.mappings["3000"].line_item == "Share Capital"
    assert tb.mappings["4000"].statement == Statement.REVENUE
    assert tb.mappings["5000"].line_item == "Cost of Sales"


def test_import_out_of_balance_logs_warning(trial_balance_service, caplog):
    accounts = [
        RawAccount("1000", "Cash", Decimal("100"), Decimal("0")),
        RawAccount("3000", "Capital", Decimal("0"), Decimal("90")),
    ]
    with caplog.at_level("WARNING", logger="finstate"):
        tb = trial_balance_service.import_accounts("Lopsided", accounts)

    assert tb.id is not None
    assert "out of balance by 10" in caplog.text


def test_get_missing_trial_balance(trial_balance_service):
    with pytest.raises(NotFoundError, match="Trial balance 999 not found"):
        trial_balance_service.get(999)


def test_get_by_name(trial_balance_service, stored_trial_balance):
    assert trial_balance_service.get_by_name("FY2024").id == stored_trial_balance.id
    assert trial_balance_service.get_by_name("FY1999") is None


def test_list_and_delete(trial_balance_service, stored_trial_balance, raw_accounts):
    trial_balance_service.import_accounts("Budget", raw_accounts)

    summaries = trial_balance_service.list_trial_balances()
    assert [s.name for s in summaries] == ["Budget", "FY2024"]
    assert summaries[1].account_count == 12
    assert summaries[1].version == 1

    trial_balance_service.delete(stored_trial_balance.id)
    assert [s.name for s in trial_balance_service.list_trial_balances()] == ["Budget"]
    with pytest.raises(NotFoundError):
        trial_balance_service.delete(stored_trial_balance.id)


def test_apply_adjustment_persists(trial_balance_service, stored_trial_balance):
    """Test an adjustment is saved and survives a reload."""
    tb = trial_balance_service.apply_adjustment(
        stored_trial_balance.id, "1000", debit="5000", user_id="alice"
    )
    assert tb.version == 2

    reloaded = trial_balance_service.get(stored_trial_balance.id)
    cash = reloaded.get_account("1000")
    assert reloaded.version == 2
    assert reloaded.has_adjustments is True
    assert cash.final_debit == Decimal("55000")
    assert cash.modified_by == "alice"
    assert [r.action for r in reloaded.edit_history] == [EditAction.IMPORT, EditAction.ADD_ADJUSTMENT]
    change = reloaded.edit_history[-1].changes[0]
    assert (change.old_value, change.new_value) == ("0.00", "5000.00")
    assert reloaded.edit_history[-1].changes == tb.edit_history[-1].changes


def test_edit_account_persists(trial_balance_service, stored_trial_balance):
    trial_balance_service.edit_account(
        stored_trial_balance.id, "1200", {"account_name": "Debtors", "adjustment_credit": "250"}
    )
    account = trial_balance_service.get(stored_trial_balance.id).get_account("1200")
    assert account.account_name == "Debtors"
    assert account.final_credit == Decimal("250")


def test_update_mapping_persists_and_clears(trial_balance_service, stored_trial_balance):
    tb_id = stored_trial_balance.id
    trial_balance_service.update_mapping(tb_id, "1300", "assets", "Other Current Assets")
    assert trial_balance_service.get(tb_id).mappings["1300"].line_item == "Other Current Assets"

    trial_balance_service.update_mapping(tb_id, "1300", "unmapped", None)
    tb = trial_balance_service.get(tb_id)
    assert "1300" not in tb.mappings
    assert tb.version == 3


def test_stale_expected_version_is_rejected(trial_balance_service, stored_trial_balance):
    """Test a write based on an old version fails and changes nothing."""
    tb_id = stored_trial_balance.id
    trial_balance_service.apply_adjustment(tb_id, "1000", debit="100", expected_version=1)

    with pytest.raises(ConflictError, match="is at version 2, expected 1"):
        trial_balance_service.apply_adjustment(tb_id, "1200", debit="100", expected_version=1)

    tb = trial_balance_service.get(tb_id)
    assert tb.version == 2
    assert tb.get_account("1200").adjustment_debit == Decimal("0")


def test_concurrent_writers_cannot_overwrite(temp_db, stored_trial_balance):
    """Test the database refuses a snapshot derived from an outdated version."""
    first = TrialBalanceService(temp_db)
    snapshot = first.get(stored_trial_balance.id)

    first.update_mapping(snapshot.id, "1000", "assets", "Other Current Assets")
    stale_edit = ledger.apply_adjustment(snapshot, "1000", delta_debit="1")

    with pytest.raises(ConflictError):
        temp_db.save_trial_balance(stale_edit, expected_version=snapshot.version)
    assert first.get(snapshot.id).get_account("1000").adjustment_debit == Decimal("0")


def test_failed_operation_leaves_version_unchanged(trial_balance_service, stored_trial_balance):
    with pytest.raises(NotFoundError):
        trial_balance_service.apply_adjustment(stored_trial_balance.id, "9999", debit="1")
    with pytest.raises(ValidationError):
        trial_balance_service.update_mapping(stored_trial_balance.id, "1000", "cash", "Cash")

    assert trial_balance_service.get(stored_trial_balance.id).version == 1


def test_validate_original_and_final(trial_balance_service, stored_trial_balance):
    tb_id = stored_trial_balance.id
    trial_balance_service.apply_adjustment(tb_id, "1000", debit="10")

    assert trial_balance_service.validate(tb_id).is_balanced is False
    original = trial_balance_service.validate(tb_id, use_final=False)
    assert original.is_balanced is True
    assert original.total_debits == Decimal("360000")


def test_as_of_and_history(trial_balance_service, stored_trial_balance):
    tb_id = stored_trial_balance.id
    trial_balance_service.apply_adjustment(tb_id, "1000", debit="10")
    trial_balance_service.apply_adjustment(tb_id, "1200", credit="20")

    assert trial_balance_service.as_of(tb_id, 1).get_account("1000").final_debit == Decimal("50000")
    assert [r.version for r in trial_balance_service.history(tb_id)] == [1, 2, 3]
    assert [r.version for r in trial_balance_service.history(tb_id, "1200")] == [3]

    with pytest.raises(ValidationError):
        trial_balance_service.as_of(tb_id, 4)


def test_run_checks(trial_balance_service, stored_trial_balance):
    results = trial_balance_service.run_checks(stored_trial_balance.id)
    assert len(results) == 8
    assert all(r.status == "pass" for r in results)

    with_previous = trial_balance_service.run_checks(
        stored_trial_balance.id, previous_id=stored_trial_balance.id
    )
    assert with_previous[-1].check == "period-consistency"


def test_export_formats(trial_balance_service, stored_trial_balance):
    tb_id = stored_trial_balance.id

    csv_text = trial_balance_service.export(tb_id)
    assert csv_text.splitlines()[0].startswith("Account ID,Account Name")

    data = json.loads(trial_balance_service.export(tb_id, "json"))
    assert data["name"] == "FY2024"
    assert len(data["accounts"]) == 12

    with pytest.raises(ValidationError, match="Unsupported export format"):
        trial_balance_service.export(tb_id, "xlsx")
