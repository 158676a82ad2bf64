"""
Amount Formatting and Parsing

Display follows the Polish locale used by the bookkeeping screens:
a space groups thousands, a comma separates decimals, and the currency
symbol follows the number ("1 234,56 zł").

Parsing accepts what users actually type into amount fields: dots or
commas as the decimal separator, grouping spaces, and a trailing
currency symbol or code.
"""

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional, Union

from balancer.config import get_settings
from balancer.errors import EntryValidationError


AmountLike = Union[Decimal, int, float, str]

CENT = Decimal("0.01")

CURRENCY_SYMBOLS = {
    "PLN": "zł",
    "EUR": "€",
    "USD": "$",
    "GBP": "£",
}

_GROUPING_CHARS = (" ", "\u00a0", "\u202f", "'")
_AMOUNT_PATTERN = re.compile(r"^\d+(\.\d+)?$")


def quantize_money(value: Optional[AmountLike]) -> Optional[Decimal]:
    """Round to whole cents, half up."""
    if value is None:
        return None
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_decimal(value: AmountLike) -> Decimal:
    """
    Convert a programmatic amount to Decimal.

    Floats go through str() so 0.1 stays 0.1.
    """
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise EntryValidationError(f"Not a valid amount: {value!r}")
    if not result.is_finite():
        raise EntryValidationError(f"Not a valid amount: {value!r}")
    return result


def currency_symbol(currency: str) -> str:
    """Display symbol for a currency, falling back to the code."""
    return CURRENCY_SYMBOLS.get(currency.upper(), currency.upper())


def format_number(value: AmountLike) -> str:
    """Format with grouping and two decimals: 1 234,56"""
    rounded = quantize_money(value)
    text = f"{abs(rounded):,.2f}".replace(",", " ").replace(".", ",")
    return f"-{text}" if rounded < 0 else text


def format_amount(value: AmountLike, currency: str) -> str:
    """Format an amount for display: 1 234,56 zł"""
    return f"{format_number(value)} {currency_symbol(currency)}"


def format_for_input(value: AmountLike) -> str:
    """
    Format an amount for an edit field.

    Zero renders as an empty field so the user can type straight away.
    """
    rounded = quantize_money(value)
    if rounded == 0:
        return ""
    return f"{rounded:.2f}"


def parse_amount(
    text: Optional[str],
    max_length: Optional[int] = None,
) -> Decimal:
    """
    Parse user input from an amount field.

    Empty input is zero. Negative amounts are rejected: the side of the
    entry carries the sign, not the number. The length limit applies to
    the digits before the decimal separator.

    Raises:
        EntryValidationError: input is too long or not a number
    """
    if text is None:
        return Decimal("0")

    if max_length is None:
        max_length = get_settings().balancing.max_amount_input_length

    raw = text.strip()

    for code, symbol in CURRENCY_SYMBOLS.items():
        for suffix in (symbol, code, code.lower()):
            if raw.endswith(suffix):
                raw = raw[: -len(suffix)].strip()
                break

    for char in _GROUPING_CHARS:
        raw = raw.replace(char, "")

    if not raw:
        return Decimal("0")

    if raw.startswith("-"):
        raise EntryValidationError("Amount cannot be negative")

    # Both separators present: the last one is the decimal separator
    if "," in raw and "." in raw:
        if raw.rfind(",") > raw.rfind("."):
            raw = raw.replace(".", "").replace(",", ".")
        else:
            raw = raw.replace(",", "")
    else:
        raw = raw.replace(",", ".")

    if raw.startswith("."):
        raw = "0" + raw
    if raw.endswith("."):
        raw = raw[:-1]

    if not _AMOUNT_PATTERN.match(raw):
        raise EntryValidationError(f"Not a valid amount: {text!r}")

    # Decimals do not count towards the limit
    if len(raw.partition(".")[0]) > max_length:
        raise EntryValidationError("Too many digits in amount field")

    return Decimal(raw)


def convert_to_base(amount: AmountLike, exchange_rate: AmountLike) -> Decimal:
    """Convert an amount to the base currency, rounded to cents."""
    rate = to_decimal(exchange_rate)
    if rate <= 0:
        raise EntryValidationError("Exchange rate must be positive")
    return quantize_money(to_decimal(amount) * rate)
