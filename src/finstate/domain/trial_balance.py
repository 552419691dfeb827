"""Trial balance domain service."""

from datetime import date
from typing import Any, Callable, Iterable, Optional

from finstate.database.base import Database
from finstate.domain import ledger
from finstate.domain.classification import AUTO_MAP_THRESHOLD, auto_map
from finstate.domain.entities import (
    AccountMapping,
    EditRecord,
    RawAccount,
    TrialBalance,
    TrialBalanceSummary,
    TrialBalanceValidation,
    ValidationResult,
)
from finstate.domain.errors import (
    ConflictError,
    NotFoundError,
    ValidationError,
    stale_version,
    trial_balance_not_found,
)
from finstate.domain.rules import RuleService
from finstate.domain.templates import get_template
from finstate.domain.validation import run_checks
from finstate.logging_config import get_logger

logger = get_logger(__name__)

EXPORT_FORMATS = ("csv", "json")


class TrialBalanceService:
    """Service for managing stored trial balances.

    Every mutation loads the current snapshot, applies one pure ledger
    operation and saves the result as a whole. Passing ``expected_version``
    turns the save into a compare-and-swap: a caller holding an older
    snapshot gets a ConflictError instead of overwriting newer work.
    """

    def __init__(self, db: Database):
        """Initialize trial balance service.

        Args:
            db: Database instance
        """
        self.db = db
        self.rule_service = RuleService(db)

    def import_accounts(
        self,
        name: str,
        raw_accounts: Iterable[RawAccount],
        mappings: Optional[Iterable[AccountMapping]] = None,
        file_name: Optional[str] = None,
        period_end: Optional[date] = None,
        ifrs_standard: str = "full",
        user_id: str = "system",
        auto_classify: bool = False,
        threshold: int = AUTO_MAP_THRESHOLD,
    ) -> TrialBalance:
        """Import accounts as a new version 1 trial balance.

        Args:
            name: Unique trial balance name
            raw_accounts: Accounts in source order
            mappings: Optional pre-existing mapping table
            file_name: Source file name recorded in the import audit entry
            period_end: Reporting period end date
            ifrs_standard: Statement template ("full" or "sme")
            user_id: Acting user for the audit record
            auto_classify: Map unmapped accounts whose best suggestion
                reaches ``threshold`` (still part of version 1)
            threshold: Auto-classification confidence threshold

        Returns:
            Stored trial balance with its ID

        Raises:
            ValidationError: If the accounts, mappings or standard are invalid
            ConflictError: If the name is already taken
        """
        get_template(ifrs_standard)
        raw_accounts = list(raw_accounts)
        mapping_table = {m.account_id: m for m in mappings or ()}

        if auto_classify:
            suggestions = auto_map(
                raw_accounts, mapping_table, self.rule_service.rule_set(), threshold
            )
            for suggestion in suggestions:
                mapping_table[suggestion.account_id] = AccountMapping(
                    suggestion.account_id, suggestion.statement, suggestion.line_item
                )

        tb = ledger.import_from(
            raw_accounts,
            name,
            mappings=mapping_table,
            file_name=file_name,
            user_id=user_id,
            period_end=period_end,
            ifrs_standard=ifrs_standard,
        )
        balance = ledger.validate(tb)
        if not balance.is_balanced:
            logger.warning(
                "Trial balance '%s' is out of balance by %s", tb.name, balance.difference
            )

        trial_balance_id = self.db.create_trial_balance(tb)
        logger.info(
            "Imported trial balance '%s' (id %s) with %d accounts, %d mapped",
            tb.name,
            trial_balance_id,
            len(tb.accounts),
            len(tb.mappings),
        )
        return self.get(trial_balance_id)

    def get(self, trial_balance_id: int) -> TrialBalance:
        """Get a trial balance by ID.

        Raises:
            NotFoundError: If the trial balance does not exist
        """
        tb = self.db.get_trial_balance(trial_balance_id)
        if tb is None:
            raise NotFoundError(trial_balance_not_found(trial_balance_id))
        return tb

    def get_by_name(self, name: str) -> Optional[TrialBalance]:
        """Get a trial balance by name.

        Returns:
            Trial balance or None if not found
        """
        return self.db.get_trial_balance_by_name(name)

    def list_trial_balances(self) -> list[TrialBalanceSummary]:
        """List all stored trial balances."""
        return self.db.list_trial_balances()

    def delete(self, trial_balance_id: int) -> None:
        """Delete a trial balance with its accounts, mappings and history.

        Raises:
            NotFoundError: If the trial balance does not exist
        """
        tb = self.get(trial_balance_id)
        self.db.delete_trial_balance(trial_balance_id)
        logger.info("Deleted trial balance '%s' (id %s)", tb.name, trial_balance_id)

    def _apply(
        self,
        trial_balance_id: int,
        operation: Callable[[TrialBalance], TrialBalance],
        expected_version: Optional[int] = None,
    ) -> TrialBalance:
        tb = self.get(trial_balance_id)
        if expected_version is not None and expected_version != tb.version:
            raise ConflictError(stale_version(trial_balance_id, expected_version, tb.version))
        updated = operation(tb)
        self.db.save_trial_balance(updated, expected_version=tb.version)
        return updated

    def edit_account(
        self,
        trial_balance_id: int,
        account_id: str,
        changes: dict[str, Any],
        user_id: str = "system",
        expected_version: Optional[int] = None,
    ) -> TrialBalance:
        """Edit account fields.

        Args:
            trial_balance_id: Trial balance ID
            account_id: Account to edit
            changes: Field name to new value (account_name, description,
                adjustment_debit, adjustment_credit)
            user_id: Acting user for the audit record
            expected_version: Version the caller last saw

        Returns:
            Updated trial balance

        Raises:
            NotFoundError: If the trial balance or account does not exist
            ValidationError: If the changes are invalid
            ConflictError: If expected_version is stale
        """
        updated = self._apply(
            trial_balance_id,
            lambda tb: ledger.edit_account(tb, account_id, changes, user_id=user_id),
            expected_version,
        )
        logger.info(
            "Edited account %s in trial balance %s (version %d)",
            account_id,
            trial_balance_id,
            updated.version,
        )
        return updated

    def update_mapping(
        self,
        trial_balance_id: int,
        account_id: str,
        statement: Optional[str],
        line_item: Optional[str],
        user_id: str = "system",
        expected_version: Optional[int] = None,
    ) -> TrialBalance:
        """Set or clear the mapping of one account.

        Args:
            trial_balance_id: Trial balance ID
            account_id: Account to map
            statement: Statement name, or "unmapped" to remove the mapping
            line_item: Target line item
            user_id: Acting user for the audit record
            expected_version: Version the caller last saw

        Returns:
            Updated trial balance

        Raises:
            NotFoundError: If the trial balance or account does not exist
            ValidationError: If the statement or line item is invalid
            ConflictError: If expected_version is stale
        """
        updated = self._apply(
            trial_balance_id,
            lambda tb: ledger.update_mapping(
                tb, account_id, statement, line_item, user_id=user_id
            ),
            expected_version,
        )
        logger.info("%s (trial balance %s)", updated.edit_history[-1].description, trial_balance_id)
        return updated

    def apply_adjustment(
        self,
        trial_balance_id: int,
        account_id: str,
        debit: Any = 0,
        credit: Any = 0,
        description: Optional[str] = None,
        user_id: str = "system",
        expected_version: Optional[int] = None,
    ) -> TrialBalance:
        """Add an adjusting entry to one account.

        Args:
            trial_balance_id: Trial balance ID
            account_id: Account to adjust
            debit: Debit delta (may be negative)
            credit: Credit delta (may be negative)
            description: Audit description, generated when omitted
            user_id: Acting user for the audit record
            expected_version: Version the caller last saw

        Returns:
            Updated trial balance

        Raises:
            NotFoundError: If the trial balance or account does not exist
            ValidationError: If the deltas are invalid or both zero
            ConflictError: If expected_version is stale
        """
        updated = self._apply(
            trial_balance_id,
            lambda tb: ledger.apply_adjustment(
                tb, account_id, debit, credit, description=description, user_id=user_id
            ),
            expected_version,
        )
        logger.info("%s (trial balance %s)", updated.edit_history[-1].description, trial_balance_id)
        return updated

    def validate(self, trial_balance_id: int, use_final: bool = True) -> TrialBalanceValidation:
        """Check the debit and credit columns of a stored trial balance."""
        return ledger.validate(self.get(trial_balance_id), use_final=use_final)

    def run_checks(
        self, trial_balance_id: int, previous_id: Optional[int] = None
    ) -> list[ValidationResult]:
        """Run the full validation suite, comparing against a prior period if given."""
        tb = self.get(trial_balance_id)
        previous = self.get(previous_id) if previous_id is not None else None
        return run_checks(tb, previous)

    def as_of(self, trial_balance_id: int, version: int) -> TrialBalance:
        """Reconstruct a stored trial balance at an earlier version.

        Raises:
            NotFoundError: If the trial balance does not exist
            ValidationError: If the version is outside 1..current
        """
        return ledger.as_of(self.get(trial_balance_id), version)

    def history(self, trial_balance_id: int, account_id: Optional[str] = None) -> list[EditRecord]:
        """Audit records, oldest first, optionally for a single account."""
        return ledger.history(self.get(trial_balance_id), account_id)

    def export(self, trial_balance_id: int, fmt: str = "csv") -> str:
        """Export a trial balance as CSV or JSON text.

        Raises:
            ValidationError: If the format is not supported
        """
        if fmt not in EXPORT_FORMATS:
            raise ValidationError(
                f"Unsupported export format '{fmt}'. Use one of: {', '.join(EXPORT_FORMATS)}"
            )
        tb = self.get(trial_balance_id)
        if fmt == "json":
            return ledger.export_json(tb)
        return ledger.export_csv(tb)
