"""Utility for resolving trial balance names to IDs."""

from finstate.domain.errors import NotFoundError, trial_balance_not_found
from finstate.domain.trial_balance import TrialBalanceService


def resolve_trial_balance(service: TrialBalanceService, trial_balance: str | int) -> int:
    """Resolve trial balance name or ID to trial balance ID.

    Args:
        service: TrialBalanceService instance
        trial_balance: Name (str) or ID (int or string representation of int)

    Returns:
        Trial balance ID

    Raises:
        NotFoundError: If the trial balance is not found
    """
    if isinstance(trial_balance, int):
        service.get(trial_balance)
        return trial_balance

    try:
        trial_balance_id = int(trial_balance)
    except (ValueError, TypeError):
        trial_balance_id = None
    if trial_balance_id is not None:
        service.get(trial_balance_id)
        return trial_balance_id

    found = service.get_by_name(trial_balance)
    if found is None:
        raise NotFoundError(trial_balance_not_found(trial_balance))
    return found.id
