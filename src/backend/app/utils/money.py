"""
Money parsing and formatting helpers.

Handles the number shapes the amount patterns capture:
- Plain: 12, 12.50
- Thousands separators: 1,234.56
"""

from decimal import Decimal, InvalidOperation
from typing import Optional
import math
import re


CURRENCY_SYMBOLS = "$€£₹¥"
CURRENCY_CODES = ("USD", "EUR", "GBP", "INR", "JPY")


def parse_money(amount_str: str) -> Optional[float]:
    """
    Parse a captured amount string into a positive float.

    Args:
        amount_str: String containing an amount (e.g., "12.50", "$1,234.56")

    Returns:
        Amount as float, or None if it is empty, malformed or not positive

    Examples:
        >>> parse_money("1,234.56")
        1234.56
        >>> parse_money("0.00") is None
        True
    """
    if not amount_str or not isinstance(amount_str, str):
        return None

    cleaned = amount_str.strip()
    for symbol in CURRENCY_SYMBOLS:
        cleaned = cleaned.replace(symbol, '')
    cleaned = re.sub(r'(?i)\b(?:' + '|'.join(CURRENCY_CODES) + r')\b', '', cleaned)
    cleaned = cleaned.replace(',', '').strip()

    if not re.fullmatch(r'\d+(?:\.\d+)?', cleaned):
        return None

    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        return None

    amount = float(value)
    if not math.isfinite(amount) or amount <= 0:
        return None
    return amount


def format_amount(amount: Optional[float]) -> str:
    """
    Format an amount the way the submission form expects it.

    Whole numbers drop the fractional part ("45"), others keep their
    shortest representation ("12.5").
    """
    if amount is None:
        return ""
    if float(amount).is_integer():
        return str(int(amount))
    return repr(float(amount))
