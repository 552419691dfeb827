"""Shared domain error messages and error types."""


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as uniqueness violations or stale versions."""


def account_not_found(account_id: str) -> str:
    """Return message for missing ledger account."""
    return f"Account {account_id} not found"


def trial_balance_not_found(trial_balance_id: int | str) -> str:
    """Return message for missing trial balance."""
    return f"Trial balance {trial_balance_id} not found"


def trial_balance_name_taken(name: str) -> str:
    """Return message for duplicate trial balance name."""
    return f"Trial balance with name '{name}' already exists"


def rule_not_found(rule_id: str) -> str:
    """Return message for missing classification rule."""
    return f"Classification rule '{rule_id}' not found"


def stale_version(trial_balance_id: int, expected: int, actual: int) -> str:
    """Return message when a write was based on an outdated version."""
    return (
        f"Trial balance {trial_balance_id} is at version {actual}, "
        f"expected {expected}. Reload and retry."
    )


def duplicate_account_ids(account_ids: list[str]) -> str:
    """Return message when an import lists the same account more than once."""
    return f"Duplicate account IDs in import: {', '.join(account_ids)}"
