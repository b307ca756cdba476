"""
Money and count parsing for register printouts.

Handles the formats POS shift reports print:
- Thousands separators: 1,234.56
- Currency symbol: $1,234.56
- Negative: -12.34, ($12.34), 12.34- (trailing minus)
- Missing decimals: 1234 → 1234
"""

from decimal import Decimal, InvalidOperation
from typing import Optional
import re

# Anything above this on a single shift report is an OCR merge of two numbers
MAX_SHIFT_AMOUNT = Decimal('1000000')


def parse_money(
    amount_str: Optional[str],
    allow_negative: bool = False
) -> Optional[Decimal]:
    """
    Parse a money token from OCR text.

    Args:
        amount_str: String containing amount (e.g., "$1,234.56", "($12.50)")
        allow_negative: Whether parentheses / minus signs are honored

    Returns:
        Decimal amount or None if parsing fails

    Examples:
        >>> parse_money("$1,245.67")
        Decimal('1245.67')
        >>> parse_money("($12.50)", allow_negative=True)
        Decimal('-12.50')
        >>> parse_money("12.50-", allow_negative=True)
        Decimal('-12.50')
    """
    if not amount_str or not isinstance(amount_str, str):
        return None

    is_negative = False
    cleaned = amount_str.strip()

    # Parentheses notation for negative amounts
    if cleaned.startswith('(') and cleaned.endswith(')'):
        if not allow_negative:
            return None
        is_negative = True
        cleaned = cleaned[1:-1].strip()

    # Leading or trailing minus (some registers print "12.50-")
    if cleaned.startswith('-') or cleaned.endswith('-'):
        if not allow_negative:
            return None
        is_negative = True
        cleaned = cleaned.strip('-').strip()

    cleaned = re.sub(r'[$\s,]', '', cleaned)

    if not cleaned or not re.fullmatch(r'\d+(?:\.\d*)?|\.\d+', cleaned):
        return None

    try:
        result = Decimal(cleaned.rstrip('.') or '0')
    except (InvalidOperation, ValueError):
        return None

    if result > MAX_SHIFT_AMOUNT:
        return None

    return -result if is_negative else result


def parse_count(count_str: Optional[str]) -> Optional[int]:
    """Parse an integer count token ("12", "1,024"); None if it is not one."""
    if not count_str:
        return None

    cleaned = count_str.replace(',', '').strip()
    if not cleaned.isdigit():
        return None
    return int(cleaned)


def decimal_to_str(value: Optional[Decimal]) -> Optional[str]:
    """
    Convert Decimal to string for database storage.

    Supabase-py JSON encoder cannot serialize Decimal objects directly.
    """
    return str(value) if value is not None else None


def str_to_decimal(value) -> Optional[Decimal]:
    """Inverse of decimal_to_str for values read back from the database."""
    if value is None or value == '':
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
