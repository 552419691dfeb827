"""Account mapping domain service."""

from typing import Optional

from finstate.database.base import Database
from finstate.domain import ledger
from finstate.domain.classification import (
    AUTO_MAP_THRESHOLD,
    SUGGESTION_THRESHOLD,
    MappingQuality,
    auto_map,
    business_rule_warnings,
    classify,
    generate_suggestions,
    mapping_quality,
)
from finstate.domain.entities import MappingSuggestion, TrialBalance
from finstate.domain.errors import ConflictError, NotFoundError, account_not_found, stale_version
from finstate.domain.rules import RuleService
from finstate.domain.trial_balance import TrialBalanceService
from finstate.logging_config import get_logger

logger = get_logger(__name__)


class MappingService:
    """Service for classifying trial balance accounts.

    Suggestions are recomputed on every call from the effective rule set;
    only accepted suggestions become mappings on the stored ledger.
    """

    def __init__(self, db: Database):
        """Initialize mapping service.

        Args:
            db: Database instance
        """
        self.db = db
        self.trial_balance_service = TrialBalanceService(db)
        self.rule_service = RuleService(db)

    def suggest(
        self,
        trial_balance_id: int,
        threshold: int = SUGGESTION_THRESHOLD,
        include_mapped: bool = False,
    ) -> list[MappingSuggestion]:
        """Suggest mappings for the accounts of a trial balance.

        Args:
            trial_balance_id: Trial balance ID
            threshold: Minimum confidence to include a suggestion
            include_mapped: Also suggest for accounts that already have a mapping

        Returns:
            Suggestions, most confident first
        """
        tb = self.trial_balance_service.get(trial_balance_id)
        accounts = tb.accounts
        if not include_mapped:
            accounts = ledger.unmapped_accounts(tb)
        return generate_suggestions(accounts, self.rule_service.rule_set(), threshold)

    def classify_account(self, trial_balance_id: int, account_id: str) -> Optional[MappingSuggestion]:
        """Best suggestion for a single account, or None when it stays unmapped.

        Raises:
            NotFoundError: If the trial balance or account does not exist
        """
        tb = self.trial_balance_service.get(trial_balance_id)
        account = tb.get_account(account_id)
        if account is None:
            raise NotFoundError(account_not_found(account_id))
        return classify(account, self.rule_service.rule_set())

    def auto_map(
        self,
        trial_balance_id: int,
        threshold: int = AUTO_MAP_THRESHOLD,
        user_id: str = "system",
        expected_version: Optional[int] = None,
    ) -> tuple[TrialBalance, list[MappingSuggestion]]:
        """Map every unmapped account whose best suggestion reaches the threshold.

        Each accepted suggestion is recorded as its own mapping edit; all of
        them are saved together.

        Args:
            trial_balance_id: Trial balance ID
            threshold: Minimum confidence to accept a suggestion
            user_id: Acting user for the audit records
            expected_version: Version the caller last saw

        Returns:
            Tuple of (updated trial balance, applied suggestions)

        Raises:
            NotFoundError: If the trial balance does not exist
            ConflictError: If expected_version is stale
        """
        tb = self.trial_balance_service.get(trial_balance_id)
        if expected_version is not None and expected_version != tb.version:
            raise ConflictError(stale_version(trial_balance_id, expected_version, tb.version))

        suggestions = auto_map(tb.accounts, tb.mappings, self.rule_service.rule_set(), threshold)
        if not suggestions:
            return tb, []

        updated = tb
        for suggestion in suggestions:
            updated = ledger.update_mapping(
                updated,
                suggestion.account_id,
                suggestion.statement,
                suggestion.line_item,
                user_id=user_id,
            )
        self.db.save_trial_balance(updated, expected_version=tb.version)
        logger.info(
            "Auto-mapped %d accounts in trial balance %s (version %d)",
            len(suggestions),
            trial_balance_id,
            updated.version,
        )
        return updated, suggestions

    def quality(self, trial_balance_id: int) -> MappingQuality:
        """Score the completeness and consistency of the current mappings."""
        tb = self.trial_balance_service.get(trial_balance_id)
        return mapping_quality(tb.accounts, tb.mappings)

    def warnings(self, trial_balance_id: int) -> dict[str, list[str]]:
        """Mapped accounts whose wording contradicts their statement.

        Returns:
            Dict of account ID to warning messages (only accounts with warnings)
        """
        tb = self.trial_balance_service.get(trial_balance_id)
        result = {}
        for account in tb.accounts:
            mapping = tb.mappings.get(account.account_id)
            if mapping is None:
                continue
            messages = business_rule_warnings(account, mapping.statement)
            if messages:
                result[account.account_id] = messages
        return result
