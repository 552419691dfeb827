"""Domain tests for CSV import service."""

from datetime import date
from decimal import Decimal

import pytest

from finstate.domain.csv_import import detect_columns
from finstate.domain.entities import EditAction, Statement
from finstate.domain.errors import ConflictError, ValidationError


def test_detect_columns_aliases():
    columns = detect_columns(["Account Code", "Account Name", "Debit", "Credit", "Line Item"])
    assert columns == {
        "account_id": "Account Code",
        "account_name": "Account Name",
        "debit": "Debit",
        "credit": "Credit",
        "line_item": "Line Item",
    }


def test_detect_columns_patterns():
    columns = detect_columns(["GL_Code", "Ledger Description", "Total Dr", "Total Cr"])
    assert columns["account_id"] == "GL_Code"
    assert columns["debit"] == "Total Dr"
    assert columns["credit"] == "Total Cr"
    assert columns["account_name"] == "Ledger Description"


def test_detect_columns_balance_only():
    columns = detect_columns(["Code", "Name", "Closing Balance"])
    assert columns["balance"] == "Closing Balance"


def test_detect_columns_missing_raises():
    with pytest.raises(ValidationError) as excinfo:
        detect_columns(["Account Code", "Debit"])

    message = str(excinfo.value).lower()
    assert "missing required columns" in message
    assert "account_name" in message
    assert "debit/credit or balance" in message


def test_read_csv_sample(import_service, fixtures_dir):
    """Quoted thousands separators and empty cells are read as amounts."""
    data = import_service.read_csv(str(fixtures_dir / "sample_trial_balance.csv"))

    assert data["errors"] == []
    assert data["mappings"] == []
    accounts = data["accounts"]
    assert len(accounts) == 12
    assert accounts[0].account_id == "1000"
    assert accounts[0].debit == Decimal("50000.00")
    assert accounts[0].credit == Decimal("0")
    assert accounts[4].credit == Decimal("25000.00")


def test_read_csv_semicolon_with_mappings(import_service, fixtures_dir):
    data = import_service.read_csv(str(fixtures_dir / "mapped_trial_balance.csv"))

    assert len(data["accounts"]) == 12
    assert data["accounts"][4].debit == Decimal("0")
    assert len(data["mappings"]) == 12
    assert data["mappings"][0].statement == Statement.ASSETS
    assert data["mappings"][3].line_item == "Property, Plant and Equipment"


def test_read_csv_row_errors_collected(import_service, fixtures_dir):
    """Bad rows are skipped and reported; blank rows are ignored."""
    data = import_service.read_csv(str(fixtures_dir / "invalid_rows.csv"))

    assert [a.account_id for a in data["accounts"]] == ["1000", "3000"]
    assert data["errors"] == [
        "Row 3: Missing account ID",
        "Row 4: Missing account name for 1100",
        "Row 5: Could not parse amount 'abc'",
    ]


def test_read_csv_row_errors_logged(import_service, fixtures_dir, caplog):
    with caplog.at_level("WARNING", logger="finstate"):
        import_service.read_csv(str(fixtures_dir / "invalid_rows.csv"))

    assert "CSV import issue in invalid_rows.csv: Row 3: Missing account ID" in caplog.text


def test_read_csv_signed_balance_column(import_service, tmp_path):
    csv_path = tmp_path / "balances.csv"
    csv_path.write_text(
        "Code,Name,Balance\n1000,Cash,500\n3000,Capital,(500)\n",
        encoding="utf-8",
    )

    accounts = import_service.read_csv(str(csv_path))["accounts"]

    assert (accounts[0].debit, accounts[0].credit) == (Decimal("500"), Decimal("0"))
    assert (accounts[1].debit, accounts[1].credit) == (Decimal("0"), Decimal("500"))


def test_read_csv_negative_debit_moves_to_credit(import_service, tmp_path):
    csv_path = tmp_path / "negative.csv"
    csv_path.write_text(
        "Account ID,Account Name,Debit,Credit\n2100,Supplier control,-750.00,\n",
        encoding="utf-8",
    )

    account = import_service.read_csv(str(csv_path))["accounts"][0]
    assert account.debit == Decimal("0")
    assert account.credit == Decimal("750.00")


def test_read_csv_unknown_statement_reported(import_service, tmp_path):
    csv_path = tmp_path / "bad_statement.csv"
    csv_path.write_text(
        "Account ID,Account Name,Debit,Credit,Statement,Line Item\n"
        "1000,Cash,10,,cashflow,Cash\n",
        encoding="utf-8",
    )

    data = import_service.read_csv(str(csv_path))
    assert len(data["accounts"]) == 1
    assert data["mappings"] == []
    assert data["errors"][0].startswith("Row 2: Unknown statement 'cashflow'")


def test_read_csv_missing_file(import_service, tmp_path):
    with pytest.raises(FileNotFoundError):
        import_service.read_csv(str(tmp_path / "nope.csv"))


def test_import_csv_result_contract(import_service, fixtures_dir):
    """Import returns a structured result contract."""
    result = import_service.import_csv(
        str(fixtures_dir / "sample_trial_balance.csv"), period_end=date(2024, 12, 31)
    )

    tb = result["trial_balance"]
    assert tb.name == "sample_trial_balance"
    assert tb.file_name == "sample_trial_balance.csv"
    assert tb.period_end == date(2024, 12, 31)
    assert result["imported"] == 12
    assert result["mapped"] == 0
    assert result["errors"] == []
    assert tb.edit_history[0].action == EditAction.IMPORT
    assert tb.edit_history[0].description == "Imported 12 accounts from sample_trial_balance.csv"


def test_import_csv_with_mappings(import_service, fixtures_dir):
    result = import_service.import_csv(str(fixtures_dir / "mapped_trial_balance.csv"), name="FY2023")

    assert result["mapped"] == 12
    assert result["trial_balance"].mappings["2500"].line_item == "Other Non-Current Liabilities"


def test_import_csv_auto_classify(import_service, fixtures_dir):
    result = import_service.import_csv(
        str(fixtures_dir / "sample_trial_balance.csv"), name="Auto", auto_classify=True
    )
    assert result["mapped"] >= 8
    assert result["trial_balance"].version == 1


def test_import_csv_duplicate_name(import_service, fixtures_dir):
    csv_file = str(fixtures_dir / "sample_trial_balance.csv")
    import_service.import_csv(csv_file, name="FY2024")

    with pytest.raises(ConflictError):
        import_service.import_csv(csv_file, name="FY2024")


def test_import_csv_no_accounts(import_service, tmp_path):
    csv_path = tmp_path / "empty.csv"
    csv_path.write_text("Account ID,Account Name,Debit,Credit\n,,,\n", encoding="utf-8")

    with pytest.raises(ValidationError, match="No accounts found"):
        import_service.import_csv(str(csv_path))
