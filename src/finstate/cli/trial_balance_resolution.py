"""CLI helpers for trial balance resolution."""

from __future__ import annotations

import click
from finstate.cli.error_handling import handle_domain_error
from finstate.domain.trial_balance import TrialBalanceService
from finstate.utils.trial_balance_resolver import resolve_trial_balance


def resolve_trial_balance_or_exit(
    ctx: click.Context, service: TrialBalanceService, trial_balance: str | int
) -> int:
    """Resolve trial balance name or ID, or exit with a CLI error.

    This keeps error messaging and exit behavior consistent across commands.
    """
    try:
        return resolve_trial_balance(service, trial_balance)
    except ValueError as exc:
        handle_domain_error(ctx, exc)
