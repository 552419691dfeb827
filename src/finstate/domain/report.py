"""Financial reporting domain service."""

from decimal import Decimal
from typing import Optional

from finstate.database.base import Database
from finstate.domain import ledger
from finstate.domain.cash_flow import INDIRECT, CashFlowStatement, build_cash_flow, validate_cash_flow
from finstate.domain.entities import PopulatedStatements, PopulationOptions, ValidationResult
from finstate.domain.ratios import (
    FinancialData,
    RatioAlert,
    RatioResult,
    calculate_ratios,
    generate_alerts,
)
from finstate.domain.statements import BALANCE_SHEET_TOLERANCE, populate, validate_statements
from finstate.domain.trial_balance import TrialBalanceService


class ReportService:
    """Service for producing statements, ratios and cash flows.

    Nothing here is stored: every report is rebuilt from the current ledger.
    """

    def __init__(self, db: Database):
        """Initialize report service.

        Args:
            db: Database instance
        """
        self.db = db
        self.trial_balance_service = TrialBalanceService(db)

    def populate(
        self,
        trial_balance_id: int,
        standard: Optional[str] = None,
        options: Optional[PopulationOptions] = None,
    ) -> PopulatedStatements:
        """Populate statements for a stored trial balance.

        Args:
            trial_balance_id: Trial balance ID
            standard: Template name; defaults to the trial balance's own standard
            options: Population options

        Returns:
            PopulatedStatements

        Raises:
            NotFoundError: If the trial balance does not exist
            ValidationError: If the standard is unknown
        """
        tb = self.trial_balance_service.get(trial_balance_id)
        mapped = ledger.build_mapped_trial_balance(tb)
        return populate(mapped, standard or tb.ifrs_standard, options)

    def validate_statements(
        self,
        trial_balance_id: int,
        standard: Optional[str] = None,
        options: Optional[PopulationOptions] = None,
        tolerance: Decimal = BALANCE_SHEET_TOLERANCE,
    ) -> tuple[PopulatedStatements, list[ValidationResult]]:
        """Populate statements and validate them.

        Returns:
            Tuple of (populated statements, validation results)
        """
        populated = self.populate(trial_balance_id, standard, options)
        return populated, validate_statements(populated, tolerance)

    def ratios(
        self,
        trial_balance_id: int,
        previous_id: Optional[int] = None,
        shares_outstanding: Optional[Decimal] = None,
        market_price: Optional[Decimal] = None,
        dividends_paid: Decimal = Decimal("0"),
    ) -> tuple[dict[str, list[RatioResult]], list[RatioAlert]]:
        """Compute the ratio suite with alerts.

        Args:
            trial_balance_id: Current period trial balance ID
            previous_id: Optional prior period for growth ratios
            shares_outstanding: Share count for market ratios
            market_price: Share price for market ratios
            dividends_paid: Dividends for payout and yield ratios

        Returns:
            Tuple of (ratios by category, alerts)
        """
        data = FinancialData.from_statements(
            self.populate(trial_balance_id),
            shares_outstanding=shares_outstanding,
            market_price=market_price,
            dividends_paid=dividends_paid,
        )
        previous = None
        if previous_id is not None:
            previous = FinancialData.from_statements(self.populate(previous_id))
        suite = calculate_ratios(data, previous)
        return suite, generate_alerts(suite)

    def cash_flow(
        self,
        trial_balance_id: int,
        previous_id: Optional[int] = None,
        method: str = INDIRECT,
    ) -> tuple[CashFlowStatement, list[ValidationResult]]:
        """Build and validate a cash flow statement between two periods.

        Without a previous period all opening balances are zero.

        Returns:
            Tuple of (cash flow statement, validation results)

        Raises:
            ValueError: If the method is unknown
        """
        current = self.populate(trial_balance_id)
        previous = self.populate(previous_id) if previous_id is not None else None
        statement = build_cash_flow(current, previous, method)
        return statement, validate_cash_flow(statement)
