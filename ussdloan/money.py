"""
Money helpers
=============

Every monetary value is a Decimal rounded half-up to two places at the point
of computation, so stored and displayed amounts always add up exactly.
"""

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

TWO_PLACES = Decimal('0.01')
ZERO = Decimal('0.00')

# Money columns are Numeric(12, 2)
MAX_INTEGER_DIGITS = 10

NON_NUMERIC = re.compile(r"[^0-9.]")


def round_money(amount) -> Decimal:
    """
    Round amount to two decimal places using ROUND_HALF_UP

        round_money("10.005")  # Decimal('10.01')
    """
    if amount is None:
        return ZERO
    return Decimal(str(amount)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def parse_amount(text, strip_non_numeric=False):
    """
    Parse user input into an exact, unrounded Decimal.

    Returns None when the text is not a finite number. With strip_non_numeric,
    characters other than digits and the decimal point are dropped first
    ("GHS 1,000" -> "1000"). Callers compare against their bounds before
    rounding; see fits_ledger for amounts that can be stored.
    """
    text = (text or "").strip()
    if strip_non_numeric:
        text = NON_NUMERIC.sub("", text)
    if not text:
        return None
    try:
        value = Decimal(text)
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    return value


def fits_ledger(amount: Decimal) -> bool:
    """True when amount has at most MAX_INTEGER_DIGITS digits before the decimal point."""
    return amount.is_zero() or amount.copy_abs().adjusted() < MAX_INTEGER_DIGITS


def money(amount) -> str:
    return f"{round_money(amount):.2f}"


def percent(rate, places=0) -> str:
    return f"{Decimal(str(rate)) * 100:.{places}f}"
