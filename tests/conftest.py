"""Shared pytest fixtures for finstate tests."""

import tempfile
import os
from decimal import Decimal
from pathlib import Path
import pytest

from finstate.database.factories import create_sqlite_database
from finstate.domain import ledger
from finstate.domain.csv_import import TrialBalanceImportService
from finstate.domain.entities import AccountMapping, RawAccount, Statement
from finstate.domain.mapping import MappingService
from finstate.domain.report import ReportService
from finstate.domain.rules import RuleService
from finstate.domain.trial_balance import TrialBalanceService
from finstate.logging_config import reset_logging


# account_id, name, debit, credit, statement, line item
SAMPLE_ACCOUNTS = [
    ("1000", "Cash at Bank", "50000", "0", Statement.ASSETS, "Cash and Cash Equivalents"),
    ("1200", "Trade Receivables", "30000", "0", Statement.ASSETS, "Trade Receivables"),
    ("1300", "Inventory", "20000", "0", Statement.ASSETS, "Inventory"),
    ("1500", "Property Plant and Equipment", "100000", "0", Statement.ASSETS, "Property, Plant and Equipment"),
    ("2100", "Trade Payables", "0", "25000", Statement.LIABILITIES, "Trade Payables"),
    ("2500", "Bank Loan", "0", "40000", Statement.LIABILITIES, "Other Non-Current Liabilities"),
    ("3000", "Share Capital", "0", "50000", Statement.EQUITY, "Share Capital"),
    ("3500", "Retained Earnings", "0", "45000", Statement.EQUITY, "Retained Earnings"),
    ("4000", "Sales Revenue", "0", "200000", Statement.REVENUE, "Revenue from Sales"),
    ("5000", "Cost of Sales", "120000", "0", Statement.EXPENSES, "Cost of Sales"),
    ("5050", "Salaries and Wages", "30000", "0", Statement.EXPENSES, "Employee Benefits"),
    ("5170", "Rent Expense", "10000", "0", Statement.EXPENSES, "Administrative Expenses"),
]


@pytest.fixture(autouse=True)
def clean_logging():
    """Drop handlers attached by CLI runs so they never hold a closed stream."""
    reset_logging()
    yield
    reset_logging()


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    # Create a temporary file for the database
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    # Create database
    db = create_sqlite_database(database_path=db_path)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    # Cleanup
    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def trial_balance_service(temp_db):
    """Create a TrialBalanceService with a temporary database."""
    return TrialBalanceService(temp_db)


@pytest.fixture
def import_service(temp_db):
    """Create a TrialBalanceImportService with a temporary database."""
    return TrialBalanceImportService(temp_db)


@pytest.fixture
def mapping_service(temp_db):
    """Create a MappingService with a temporary database."""
    return MappingService(temp_db)


@pytest.fixture
def report_service(temp_db):
    """Create a ReportService with a temporary database."""
    return ReportService(temp_db)


@pytest.fixture
def rule_service(temp_db):
    """Create a RuleService with a temporary database."""
    return RuleService(temp_db)


@pytest.fixture
def raw_accounts():
    """The sample ledger as raw import rows."""
    return [
        RawAccount(account_id, name, Decimal(debit), Decimal(credit))
        for account_id, name, debit, credit, _, _ in SAMPLE_ACCOUNTS
    ]


@pytest.fixture
def sample_mappings():
    """Mappings for every sample account."""
    return [
        AccountMapping(account_id, statement, line_item)
        for account_id, _, _, _, statement, line_item in SAMPLE_ACCOUNTS
    ]


@pytest.fixture
def sample_ledger(raw_accounts, sample_mappings):
    """Fully mapped, balanced version 1 ledger (not persisted)."""
    return ledger.import_from(
        raw_accounts, "FY2024", mappings=sample_mappings, file_name="fy2024.csv"
    )


@pytest.fixture
def stored_trial_balance(trial_balance_service, raw_accounts, sample_mappings):
    """Fully mapped sample ledger stored in the temporary database."""
    return trial_balance_service.import_accounts(
        "FY2024", raw_accounts, mappings=sample_mappings, file_name="fy2024.csv"
    )


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()


@pytest.fixture
def fixtures_dir():
    """Return the path to the test fixtures directory."""
    return Path(__file__).parent / "fixtures"
