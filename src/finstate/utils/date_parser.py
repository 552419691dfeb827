"""Date parsing utilities."""

from datetime import date, datetime, timedelta
from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta


def month_end(day: date) -> date:
    """Last day of the month containing ``day``."""
    return day.replace(day=1) + relativedelta(months=1) - timedelta(days=1)


def quarter_end(day: date) -> date:
    """Last day of the calendar quarter containing ``day``."""
    last_month = ((day.month - 1) // 3 + 1) * 3
    return month_end(day.replace(month=last_month, day=1))


def parse_period_end(date_str: str, today: date | None = None) -> date:
    """Parse a reporting period end date.

    Supports:
    - Absolute dates: "2024-06-30", "30 June 2024", etc.
    - Month only: "2024-06", "June 2024" (resolves to the month end)
    - Relative periods: "this month", "last month", "this quarter",
      "last quarter", "this year", "last year" (each resolves to the
      period's last day)

    Args:
        date_str: Period end in one of the formats above
        today: Reference date for relative periods (defaults to today)

    Returns:
        Date object

    Raises:
        ValueError: If date string cannot be parsed
    """
    text = date_str.strip().lower()
    today = today or date.today()

    relative = {
        "today": lambda: today,
        "this month": lambda: month_end(today),
        "end of month": lambda: month_end(today),
        "last month": lambda: today.replace(day=1) - timedelta(days=1),
        "this quarter": lambda: quarter_end(today),
        "last quarter": lambda: quarter_end(today - relativedelta(months=3)),
        "this year": lambda: today.replace(month=12, day=31),
        "end of year": lambda: today.replace(month=12, day=31),
        "last year": lambda: today.replace(month=1, day=1) - timedelta(days=1),
    }
    if text in relative:
        return relative[text]()

    try:
        first = date_parser.parse(text, default=datetime(today.year, 1, 1))
        second = date_parser.parse(text, default=datetime(today.year, 1, 28))
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{date_str}': {e}")

    # Differing results mean the text named no day, so it is a whole month
    if first.day != second.day:
        return month_end(first.date())
    return first.date()
