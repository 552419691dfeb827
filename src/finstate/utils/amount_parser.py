"""Amount parsing utilities."""

from decimal import Decimal, InvalidOperation
import re

# Exports often print an empty cell or a dash for a zero balance
_BLANK_AMOUNTS = {"", "-", "--", "\u2014"}


def parse_amount(amount_str: str) -> Decimal:
    """Parse an amount string into a Decimal.

    Handles various formats:
    - "1234.56"
    - "R 1 234.56" / "$1,234.56"
    - "-1,234.56"
    - "(1,234.56)" (negative in parentheses)
    - "1,234.56 DR" / "1,234.56 CR" (side markers are dropped)

    Args:
        amount_str: Amount string

    Returns:
        Decimal amount

    Raises:
        ValueError: If amount string cannot be parsed
    """
    if not amount_str or not amount_str.strip():
        raise ValueError("Empty amount string")

    text = amount_str.strip()

    # Handle parentheses notation (negative)
    is_negative = False
    if text.startswith("(") and text.endswith(")"):
        is_negative = True
        text = text[1:-1]

    text = re.sub(r"\s*(dr|cr)\.?$", "", text, flags=re.IGNORECASE)
    text = re.sub(r"[$€£¥]|^R(?=[\s\d-])", "", text)
    text = text.replace(",", "").replace(" ", "").replace("\u00a0", "")

    try:
        amount = Decimal(text)
    except InvalidOperation:
        raise ValueError(f"Could not parse amount '{amount_str.strip()}'")
    if not amount.is_finite():
        raise ValueError(f"Could not parse amount '{amount_str.strip()}'")
    return -amount if is_negative else amount


def parse_optional_amount(amount_str: str | None) -> Decimal:
    """Parse an amount cell where blank or a dash means zero."""
    if amount_str is None or amount_str.strip() in _BLANK_AMOUNTS:
        return Decimal("0")
    return parse_amount(amount_str)
