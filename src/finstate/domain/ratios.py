"""Financial ratio suite.

Ratios are computed from a flat ``FinancialData`` snapshot taken from
populated statements. A zero denominator yields a zero ratio so the suite
is always complete.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from finstate.domain.entities import ZERO, PopulatedStatements, Statement

LIQUIDITY = "liquidity"
EFFICIENCY = "efficiency"
LEVERAGE = "leverage"
PROFITABILITY = "profitability"
COVERAGE = "coverage"
TURNOVER = "turnover"
GROWTH = "growth"
MARKET = "market"

CATEGORIES = (LIQUIDITY, EFFICIENCY, LEVERAGE, PROFITABILITY, COVERAGE, TURNOVER, GROWTH, MARKET)

DAYS_IN_YEAR = Decimal("365")
HUNDRED = Decimal("100")
RATIO_PLACES = Decimal("0.0001")

# Share of long-term debt assumed to be repaid each year
PRINCIPAL_REPAYMENT_RATE = Decimal("0.1")


@dataclass(frozen=True)
class FinancialData:
    """Flattened statement figures the ratios are computed from."""

    total_assets: Decimal = ZERO
    current_assets: Decimal = ZERO
    non_current_assets: Decimal = ZERO
    cash: Decimal = ZERO
    short_term_investments: Decimal = ZERO
    receivables: Decimal = ZERO
    inventory: Decimal = ZERO
    prepaid_expenses: Decimal = ZERO
    fixed_assets: Decimal = ZERO
    total_liabilities: Decimal = ZERO
    current_liabilities: Decimal = ZERO
    non_current_liabilities: Decimal = ZERO
    payables: Decimal = ZERO
    long_term_debt: Decimal = ZERO
    total_equity: Decimal = ZERO
    revenue: Decimal = ZERO
    cost_of_sales: Decimal = ZERO
    gross_profit: Decimal = ZERO
    operating_expenses: Decimal = ZERO
    operating_income: Decimal = ZERO
    depreciation: Decimal = ZERO
    interest_expense: Decimal = ZERO
    tax_expense: Decimal = ZERO
    net_income: Decimal = ZERO
    shares_outstanding: Optional[Decimal] = None
    market_price: Optional[Decimal] = None
    dividends_paid: Decimal = ZERO

    @property
    def ebitda(self) -> Decimal:
        return self.operating_income + self.depreciation

    @property
    def working_capital(self) -> Decimal:
        return self.current_assets - self.current_liabilities

    @property
    def capital_employed(self) -> Decimal:
        return self.total_equity + self.long_term_debt

    @classmethod
    def from_statements(
        cls,
        populated: PopulatedStatements,
        shares_outstanding: Optional[Decimal] = None,
        market_price: Optional[Decimal] = None,
        dividends_paid: Decimal = ZERO,
    ) -> "FinancialData":
        """Extract figures by matching line item names.

        Long-term debt is taken as the whole non-current liabilities group.
        """

        def named(section: Statement, *fragments: str) -> Decimal:
            return sum(
                (
                    item.value
                    for item in populated.leaves(section)
                    if any(f in item.name.lower() for f in fragments)
                ),
                ZERO,
            )

        totals = populated.totals
        return cls(
            total_assets=totals.total_assets,
            current_assets=totals.current_assets,
            non_current_assets=totals.non_current_assets,
            cash=named(Statement.ASSETS, "cash"),
            short_term_investments=named(Statement.ASSETS, "short-term investment"),
            receivables=named(Statement.ASSETS, "receivable"),
            inventory=named(Statement.ASSETS, "inventor"),
            prepaid_expenses=named(Statement.ASSETS, "prepaid", "prepayment"),
            fixed_assets=named(Statement.ASSETS, "property, plant"),
            total_liabilities=totals.total_liabilities,
            current_liabilities=totals.current_liabilities,
            non_current_liabilities=totals.non_current_liabilities,
            payables=named(Statement.LIABILITIES, "payable"),
            long_term_debt=totals.non_current_liabilities,
            total_equity=totals.total_equity,
            revenue=totals.total_revenue,
            cost_of_sales=totals.cost_of_sales,
            gross_profit=totals.gross_profit,
            operating_expenses=totals.operating_expenses,
            operating_income=totals.operating_profit,
            depreciation=named(Statement.EXPENSES, "depreciation", "amortisation", "amortization"),
            interest_expense=totals.finance_costs,
            tax_expense=totals.income_tax_expense,
            net_income=totals.net_income,
            shares_outstanding=shares_outstanding,
            market_price=market_price,
            dividends_paid=dividends_paid,
        )


@dataclass(frozen=True)
class RatioResult:
    key: str
    label: str
    category: str
    value: Decimal
    formula: str
    interpretation: str


@dataclass(frozen=True)
class RatioAlert:
    severity: str
    ratio: str
    message: str
    threshold: Decimal


def safe_divide(numerator: Decimal, denominator: Decimal) -> Decimal:
    """Divide, returning zero for a zero denominator."""
    if denominator == ZERO:
        return ZERO
    return numerator / denominator


def _percent(numerator: Decimal, denominator: Decimal) -> Decimal:
    return safe_divide(numerator, denominator) * HUNDRED


def interpret(key: str, category: str, value: Decimal) -> str:
    if value == ZERO:
        return "Insufficient data for interpretation"
    if key in ("current_ratio", "quick_ratio"):
        if value >= 2:
            return "Strong liquidity position"
        if value >= Decimal("1.2"):
            return "Adequate liquidity"
        if value >= 1:
            return "Tight but manageable liquidity"
        return "Liquidity concerns, may struggle to meet short-term obligations"
    if category == PROFITABILITY and key.endswith("_margin"):
        if value >= 20:
            return "Excellent profitability"
        if value >= 10:
            return "Good profitability"
        if value >= 5:
            return "Moderate profitability"
        return "Low profitability"
    if key == "debt_to_equity":
        if value <= Decimal("0.3"):
            return "Conservative leverage"
        if value <= Decimal("0.6"):
            return "Moderate leverage"
        if value <= 1:
            return "High leverage"
        return "Very high leverage"
    return "Within expected range"


def _result(key: str, label: str, category: str, value: Decimal, formula: str) -> RatioResult:
    value = value.quantize(RATIO_PLACES, rounding=ROUND_HALF_UP)
    return RatioResult(key, label, category, value, formula, interpret(key, category, value))


def liquidity_ratios(data: FinancialData) -> list[RatioResult]:
    quick_assets = data.current_assets - data.inventory - data.prepaid_expenses
    liquid = data.cash + data.short_term_investments
    return [
        _result("current_ratio", "Current Ratio", LIQUIDITY,
                safe_divide(data.current_assets, data.current_liabilities),
                "Current Assets / Current Liabilities"),
        _result("quick_ratio", "Quick Ratio", LIQUIDITY,
                safe_divide(quick_assets, data.current_liabilities),
                "(Current Assets - Inventory - Prepaid) / Current Liabilities"),
        _result("cash_ratio", "Cash Ratio", LIQUIDITY,
                safe_divide(liquid, data.current_liabilities),
                "Cash and Cash Equivalents / Current Liabilities"),
        _result("working_capital", "Working Capital", LIQUIDITY,
                data.working_capital, "Current Assets - Current Liabilities"),
        _result("working_capital_ratio", "Working Capital Ratio", LIQUIDITY,
                safe_divide(data.working_capital, data.total_assets),
                "Working Capital / Total Assets"),
        _result("defensive_interval", "Defensive Interval (days)", LIQUIDITY,
                safe_divide(liquid, safe_divide(data.operating_expenses, DAYS_IN_YEAR)),
                "Liquid Assets / (Operating Expenses / 365)"),
    ]


def efficiency_ratios(data: FinancialData) -> list[RatioResult]:
    return [
        _result("asset_turnover", "Asset Turnover", EFFICIENCY,
                safe_divide(data.revenue, data.total_assets), "Revenue / Total Assets"),
        _result("fixed_asset_turnover", "Fixed Asset Turnover", EFFICIENCY,
                safe_divide(data.revenue, data.fixed_assets), "Revenue / Fixed Assets"),
        _result("working_capital_turnover", "Working Capital Turnover", EFFICIENCY,
                safe_divide(data.revenue, data.working_capital), "Revenue / Working Capital"),
        _result("capital_employed_turnover", "Capital Employed Turnover", EFFICIENCY,
                safe_divide(data.revenue, data.capital_employed), "Revenue / Capital Employed"),
        _result("equity_turnover", "Equity Turnover", EFFICIENCY,
                safe_divide(data.revenue, data.total_equity), "Revenue / Total Equity"),
    ]


def leverage_ratios(data: FinancialData) -> list[RatioResult]:
    total_capital = data.total_equity + data.total_liabilities
    return [
        _result("debt_to_equity", "Debt-to-Equity", LEVERAGE,
                safe_divide(data.total_liabilities, data.total_equity),
                "Total Liabilities / Total Equity"),
        _result("debt_to_assets", "Debt-to-Assets", LEVERAGE,
                safe_divide(data.total_liabilities, data.total_assets),
                "Total Liabilities / Total Assets"),
        _result("debt_to_capital", "Debt-to-Capital", LEVERAGE,
                safe_divide(data.total_liabilities, total_capital),
                "Total Liabilities / (Total Liabilities + Total Equity)"),
        _result("equity_multiplier", "Equity Multiplier", LEVERAGE,
                safe_divide(data.total_assets, data.total_equity),
                "Total Assets / Total Equity"),
        _result("long_term_debt_to_equity", "Long-term Debt-to-Equity", LEVERAGE,
                safe_divide(data.long_term_debt, data.total_equity),
                "Long-term Debt / Total Equity"),
    ]


def profitability_ratios(data: FinancialData) -> list[RatioResult]:
    return [
        _result("gross_profit_margin", "Gross Profit Margin (%)", PROFITABILITY,
                _percent(data.gross_profit, data.revenue), "(Gross Profit / Revenue) x 100"),
        _result("operating_profit_margin", "Operating Profit Margin (%)", PROFITABILITY,
                _percent(data.operating_income, data.revenue),
                "(Operating Profit / Revenue) x 100"),
        _result("net_profit_margin", "Net Profit Margin (%)", PROFITABILITY,
                _percent(data.net_income, data.revenue), "(Net Income / Revenue) x 100"),
        _result("ebitda_margin", "EBITDA Margin (%)", PROFITABILITY,
                _percent(data.ebitda, data.revenue), "(EBITDA / Revenue) x 100"),
        _result("return_on_assets", "Return on Assets (%)", PROFITABILITY,
                _percent(data.net_income, data.total_assets), "(Net Income / Total Assets) x 100"),
        _result("return_on_equity", "Return on Equity (%)", PROFITABILITY,
                _percent(data.net_income, data.total_equity), "(Net Income / Total Equity) x 100"),
        _result("return_on_capital_employed", "Return on Capital Employed (%)", PROFITABILITY,
                _percent(data.operating_income, data.capital_employed),
                "(Operating Profit / Capital Employed) x 100"),
    ]


def coverage_ratios(data: FinancialData) -> list[RatioResult]:
    debt_service = data.interest_expense + data.long_term_debt * PRINCIPAL_REPAYMENT_RATE
    return [
        _result("interest_coverage", "Interest Coverage", COVERAGE,
                safe_divide(data.operating_income, data.interest_expense),
                "Operating Profit / Interest Expense"),
        _result("debt_service_coverage", "Debt Service Coverage", COVERAGE,
                safe_divide(data.operating_income + data.interest_expense, debt_service),
                "(Operating Profit + Interest) / (Interest + 10% of Long-term Debt)"),
        _result("dividend_coverage", "Dividend Coverage", COVERAGE,
                safe_divide(data.net_income, data.dividends_paid), "Net Income / Dividends Paid"),
        _result("cash_coverage", "Cash Coverage", COVERAGE,
                safe_divide(data.cash + data.short_term_investments, data.interest_expense),
                "Cash and Cash Equivalents / Interest Expense"),
        _result("capital_adequacy", "Capital Adequacy", COVERAGE,
                safe_divide(data.total_equity, data.total_assets), "Total Equity / Total Assets"),
    ]


def turnover_ratios(data: FinancialData) -> list[RatioResult]:
    inventory_turnover = safe_divide(data.cost_of_sales, data.inventory)
    receivables_turnover = safe_divide(data.revenue, data.receivables)
    payables_turnover = safe_divide(data.cost_of_sales, data.payables)
    dso = safe_divide(DAYS_IN_YEAR, receivables_turnover)
    dio = safe_divide(DAYS_IN_YEAR, inventory_turnover)
    dpo = safe_divide(DAYS_IN_YEAR, payables_turnover)
    return [
        _result("inventory_turnover", "Inventory Turnover", TURNOVER,
                inventory_turnover, "Cost of Sales / Inventory"),
        _result("receivables_turnover", "Receivables Turnover", TURNOVER,
                receivables_turnover, "Revenue / Trade Receivables"),
        _result("payables_turnover", "Payables Turnover", TURNOVER,
                payables_turnover, "Cost of Sales / Trade Payables"),
        _result("days_sales_outstanding", "Days Sales Outstanding", TURNOVER,
                dso, "365 / Receivables Turnover"),
        _result("days_inventory_outstanding", "Days Inventory Outstanding", TURNOVER,
                dio, "365 / Inventory Turnover"),
        _result("days_payable_outstanding", "Days Payable Outstanding", TURNOVER,
                dpo, "365 / Payables Turnover"),
        _result("cash_conversion_cycle", "Cash Conversion Cycle", TURNOVER,
                dso + dio - dpo, "DSO + DIO - DPO"),
    ]


def growth_ratios(data: FinancialData, previous: FinancialData) -> list[RatioResult]:
    def growth(current: Decimal, prior: Decimal) -> Decimal:
        return _percent(current - prior, prior)

    return [
        _result("revenue_growth", "Revenue Growth (%)", GROWTH,
                growth(data.revenue, previous.revenue),
                "(Current Revenue - Previous Revenue) / Previous Revenue x 100"),
        _result("earnings_growth", "Earnings Growth (%)", GROWTH,
                growth(data.net_income, previous.net_income),
                "(Current Net Income - Previous Net Income) / Previous Net Income x 100"),
        _result("asset_growth", "Asset Growth (%)", GROWTH,
                growth(data.total_assets, previous.total_assets),
                "(Current Assets - Previous Assets) / Previous Assets x 100"),
        _result("equity_growth", "Equity Growth (%)", GROWTH,
                growth(data.total_equity, previous.total_equity),
                "(Current Equity - Previous Equity) / Previous Equity x 100"),
    ]


def market_ratios(data: FinancialData) -> list[RatioResult]:
    """Per-share ratios; empty unless a positive share count is known."""
    if not data.shares_outstanding or data.shares_outstanding <= ZERO:
        return []
    eps = data.net_income / data.shares_outstanding
    dividend_per_share = data.dividends_paid / data.shares_outstanding
    results = [
        _result("earnings_per_share", "Earnings per Share", MARKET, eps,
                "Net Income / Shares Outstanding"),
        _result("book_value_per_share", "Book Value per Share", MARKET,
                data.total_equity / data.shares_outstanding, "Total Equity / Shares Outstanding"),
        _result("dividend_payout", "Dividend Payout Ratio (%)", MARKET,
                _percent(dividend_per_share, eps), "(Dividends per Share / EPS) x 100"),
    ]
    if data.market_price:
        results.extend(
            [
                _result("price_to_earnings", "Price to Earnings", MARKET,
                        safe_divide(data.market_price, eps), "Share Price / EPS"),
                _result("dividend_yield", "Dividend Yield (%)", MARKET,
                        _percent(dividend_per_share, data.market_price),
                        "(Dividends per Share / Share Price) x 100"),
            ]
        )
    return results


def calculate_ratios(
    data: FinancialData, previous: Optional[FinancialData] = None
) -> dict[str, list[RatioResult]]:
    """Compute the ratio suite grouped by category.

    Growth ratios need a previous period; market ratios need a share count.
    Categories without results are left out.
    """
    suite = {
        LIQUIDITY: liquidity_ratios(data),
        EFFICIENCY: efficiency_ratios(data),
        LEVERAGE: leverage_ratios(data),
        PROFITABILITY: profitability_ratios(data),
        COVERAGE: coverage_ratios(data),
        TURNOVER: turnover_ratios(data),
    }
    if previous is not None:
        suite[GROWTH] = growth_ratios(data, previous)
    market = market_ratios(data)
    if market:
        suite[MARKET] = market
    return suite


def find_ratio(suite: dict[str, list[RatioResult]], key: str) -> Optional[RatioResult]:
    for results in suite.values():
        for result in results:
            if result.key == key:
                return result
    return None


def generate_alerts(suite: dict[str, list[RatioResult]]) -> list[RatioAlert]:
    """Threshold alerts on liquidity, leverage and profitability."""
    alerts = []
    current_ratio = find_ratio(suite, "current_ratio")
    if current_ratio is not None and current_ratio.value < 1:
        alerts.append(
            RatioAlert(
                "critical",
                "current_ratio",
                "Current ratio below 1.0, immediate liquidity concerns",
                Decimal("1"),
            )
        )
    debt_to_equity = find_ratio(suite, "debt_to_equity")
    if debt_to_equity is not None and debt_to_equity.value > 2:
        alerts.append(
            RatioAlert(
                "warning",
                "debt_to_equity",
                "High debt-to-equity ratio, monitor debt levels",
                Decimal("2"),
            )
        )
    net_margin = find_ratio(suite, "net_profit_margin")
    if net_margin is not None and net_margin.value < 0:
        alerts.append(
            RatioAlert(
                "critical",
                "net_profit_margin",
                "Negative net profit margin, the company is losing money",
                ZERO,
            )
        )
    return alerts
