"""CSV import domain service."""

import csv
import re
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional

from finstate.database.base import Database
from finstate.domain.classification import AUTO_MAP_THRESHOLD
from finstate.domain.entities import ZERO, AccountMapping, RawAccount
from finstate.domain.errors import ValidationError
from finstate.domain.ledger import parse_statement
from finstate.domain.trial_balance import TrialBalanceService
from finstate.logging_config import get_logger
from finstate.utils.amount_parser import parse_optional_amount

logger = get_logger(__name__)

# Normalized header -> field
COLUMN_ALIASES = {
    "account_id": ("account id", "account code", "account no", "account number", "acc no", "gl code", "code", "id"),
    "account_name": ("account name", "ledger account", "account", "name"),
    "debit": ("debit", "debits", "dr", "debit amount"),
    "credit": ("credit", "credits", "cr", "credit amount"),
    "balance": ("balance", "net balance", "closing balance", "amount"),
    "description": ("description", "notes", "memo"),
    "statement": ("statement", "financial statement"),
    "line_item": ("line item", "line", "mapping"),
}

# Looser matches tried for headers no alias claims, in field order
COLUMN_PATTERNS = (
    ("account_id", re.compile(r"code|acc_no|number|^id$", re.IGNORECASE)),
    ("debit", re.compile(r"debit|\bdr\b", re.IGNORECASE)),
    ("credit", re.compile(r"credit|\bcr\b", re.IGNORECASE)),
    ("account_name", re.compile(r"name|account|ledger", re.IGNORECASE)),
)


def _normalize_header(header: str) -> str:
    return " ".join(re.sub(r"[_\-./]+", " ", header).lower().split())


def detect_columns(headers: list[str]) -> dict[str, str]:
    """Match CSV headers to trial balance fields.

    Args:
        headers: CSV header row

    Returns:
        Dict of field name to CSV column name

    Raises:
        ValidationError: If account ID, account name or amount columns are missing
    """
    columns: dict[str, str] = {}
    for header in headers:
        normalized = _normalize_header(header)
        for field, aliases in COLUMN_ALIASES.items():
            if field not in columns and normalized in aliases:
                columns[field] = header
                break
    for header in headers:
        if header in columns.values():
            continue
        for field, pattern in COLUMN_PATTERNS:
            if field not in columns and pattern.search(header):
                columns[field] = header
                break

    missing = [f for f in ("account_id", "account_name") if f not in columns]
    if not ({"debit", "credit"} <= set(columns) or "balance" in columns):
        missing.append("debit/credit or balance")
    if missing:
        raise ValidationError(f"CSV file missing required columns: {', '.join(missing)}")
    return columns


class TrialBalanceImportService:
    """Service for importing trial balances from CSV files."""

    def __init__(self, db: Database):
        """Initialize CSV import service.

        Args:
            db: Database instance
        """
        self.db = db
        self.trial_balance_service = TrialBalanceService(db)

    def read_csv(self, csv_file_path: str) -> dict[str, Any]:
        """Read accounts (and optional mappings) from a CSV file.

        Rows that cannot be parsed are skipped and reported; blank rows are
        ignored. A single signed balance column is split into debit (positive)
        and credit (negative) when no debit/credit columns exist.

        Args:
            csv_file_path: Path to CSV file

        Returns:
            Dict with:
            - accounts: list of RawAccount in file order
            - mappings: list of AccountMapping from statement/line item columns
            - errors: list of error messages for skipped rows

        Raises:
            FileNotFoundError: If CSV file doesn't exist
            ValidationError: If required columns are missing
        """
        csv_path = Path(csv_file_path)
        if not csv_path.exists():
            raise FileNotFoundError(f"CSV file not found: {csv_file_path}")

        accounts = []
        mappings = []
        errors = []

        with open(csv_path, "r", encoding="utf-8-sig", newline="") as f:
            # Try to detect delimiter
            sample = f.read(1024)
            f.seek(0)
            try:
                delimiter = csv.Sniffer().sniff(sample, delimiters=",;\t|").delimiter
            except csv.Error:
                delimiter = ","

            reader = csv.DictReader(f, delimiter=delimiter)
            if reader.fieldnames is None:
                raise ValidationError("CSV file has no columns")
            columns = detect_columns([h for h in reader.fieldnames if h])

            def cell(row: dict, field: str) -> Optional[str]:
                column = columns.get(field)
                if column is None:
                    return None
                value = row.get(column)
                return value.strip() if value else None

            for row_num, row in enumerate(reader, start=2):  # Header is row 1
                if not any((v or "").strip() for v in row.values() if isinstance(v, str)):
                    continue

                account_id = cell(row, "account_id")
                if not account_id:
                    errors.append(f"Row {row_num}: Missing account ID")
                    continue
                account_name = cell(row, "account_name")
                if not account_name:
                    errors.append(f"Row {row_num}: Missing account name for {account_id}")
                    continue

                try:
                    if "debit" in columns and "credit" in columns:
                        debit = parse_optional_amount(cell(row, "debit"))
                        credit = parse_optional_amount(cell(row, "credit"))
                    else:
                        balance = parse_optional_amount(cell(row, "balance"))
                        debit = balance if balance > ZERO else ZERO
                        credit = -balance if balance < ZERO else ZERO
                except ValueError as e:
                    errors.append(f"Row {row_num}: {e}")
                    continue
                if debit < ZERO or credit < ZERO:
                    # A negative debit is a credit and vice versa
                    debit, credit = _normalize_sides(debit, credit)

                accounts.append(
                    RawAccount(
                        account_id=account_id,
                        account_name=account_name,
                        debit=debit,
                        credit=credit,
                        description=cell(row, "description"),
                    )
                )

                statement_text = cell(row, "statement")
                if statement_text:
                    try:
                        statement = parse_statement(statement_text.lower())
                    except ValidationError as e:
                        errors.append(f"Row {row_num}: {e}")
                        continue
                    line_item = cell(row, "line_item")
                    if statement is not None and line_item:
                        mappings.append(AccountMapping(account_id, statement, line_item))

        for error in errors:
            logger.warning("CSV import issue in %s: %s", csv_path.name, error)

        return {
            "accounts": accounts,
            "mappings": mappings,
            "errors": errors,
        }

    def import_csv(
        self,
        csv_file_path: str,
        name: Optional[str] = None,
        period_end: Optional[date] = None,
        ifrs_standard: str = "full",
        user_id: str = "system",
        auto_classify: bool = False,
        threshold: int = AUTO_MAP_THRESHOLD,
    ) -> dict[str, Any]:
        """Import a CSV file as a new trial balance.

        Args:
            csv_file_path: Path to CSV file
            name: Trial balance name (defaults to the file stem)
            period_end: Reporting period end date
            ifrs_standard: Statement template ("full" or "sme")
            user_id: Acting user for the audit record
            auto_classify: Map accounts whose suggestion reaches ``threshold``
            threshold: Auto-classification confidence threshold

        Returns:
            Dict with import statistics:
            - trial_balance: the stored TrialBalance
            - imported: number of accounts imported
            - mapped: number of accounts with a mapping
            - errors: list of error messages for skipped rows

        Raises:
            FileNotFoundError: If CSV file doesn't exist
            ValidationError: If no account could be read or the ledger is invalid
            ConflictError: If the name is already taken
        """
        data = self.read_csv(csv_file_path)
        if not data["accounts"]:
            raise ValidationError(f"No accounts found in {csv_file_path}")

        csv_path = Path(csv_file_path)
        tb = self.trial_balance_service.import_accounts(
            name or csv_path.stem,
            data["accounts"],
            mappings=data["mappings"],
            file_name=csv_path.name,
            period_end=period_end,
            ifrs_standard=ifrs_standard,
            user_id=user_id,
            auto_classify=auto_classify,
            threshold=threshold,
        )
        return {
            "trial_balance": tb,
            "imported": len(tb.accounts),
            "mapped": len(tb.mappings),
            "errors": data["errors"],
        }


def _normalize_sides(debit: Decimal, credit: Decimal) -> tuple[Decimal, Decimal]:
    net = debit - credit
    if net >= ZERO:
        return net, ZERO
    return ZERO, -net
