"""Abstract database interface."""

from abc import ABC, abstractmethod
from typing import Optional

# Import entities directly to avoid circular import through domain/__init__.py
from finstate.domain.entities import (
    ClassificationRule,
    TrialBalance,
    TrialBalanceSummary,
)


class Database(ABC):
    """Abstract database interface for finstate.

    Trial balances are stored and replaced as whole aggregates.
    """

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    # Trial balance operations
    @abstractmethod
    def create_trial_balance(self, trial_balance: TrialBalance) -> int:
        """Store a new trial balance aggregate. Returns its ID.

        Raises ConflictError if the name is already taken.
        """
        pass

    @abstractmethod
    def get_trial_balance(self, trial_balance_id: int) -> Optional[TrialBalance]:
        """Get trial balance by ID."""
        pass

    @abstractmethod
    def get_trial_balance_by_name(self, name: str) -> Optional[TrialBalance]:
        """Get trial balance by name."""
        pass

    @abstractmethod
    def list_trial_balances(self) -> list[TrialBalanceSummary]:
        """List all stored trial balances."""
        pass

    @abstractmethod
    def save_trial_balance(
        self, trial_balance: TrialBalance, expected_version: Optional[int] = None
    ) -> None:
        """Replace a stored trial balance with a newer snapshot.

        Raises NotFoundError if it does not exist, and ConflictError without
        writing anything if expected_version differs from the stored version.
        """
        pass

    @abstractmethod
    def delete_trial_balance(self, trial_balance_id: int) -> None:
        """Delete a trial balance with its accounts, mappings and history."""
        pass

    # Classification rule operations
    @abstractmethod
    def save_rule(self, rule: ClassificationRule) -> None:
        """Insert or replace a custom classification rule."""
        pass

    @abstractmethod
    def get_rule(self, rule_id: str) -> Optional[ClassificationRule]:
        """Get custom rule by ID."""
        pass

    @abstractmethod
    def list_rules(self) -> list[ClassificationRule]:
        """List all custom rules."""
        pass

    @abstractmethod
    def delete_rule(self, rule_id: str) -> None:
        """Delete a custom rule."""
        pass
