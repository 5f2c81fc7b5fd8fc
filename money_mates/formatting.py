"""
Display Formatting

Money Mates shows a single currency. Amounts are whole-unit with
thousands separators, e.g. "₱5,000".
"""

from datetime import date
from decimal import Decimal
from typing import Optional, Union

from money_mates.config import get_settings


def format_currency(
    amount: Union[Decimal, int, float],
    symbol: Optional[str] = None,
) -> str:
    """Format an amount as "₱5,000" (no decimals)."""
    if symbol is None:
        symbol = get_settings().app.currency_symbol
    value = Decimal(str(amount))
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{abs(value):,.0f}"


def auto_period_label(day: date) -> str:
    """
    Display label of the half-month a transaction falls in.

    Always splits on the 15th, whatever the target's cutoff days are:
    "Jan 1-15, 2025" or "Jan 16-End, 2025".
    """
    half = "1-15" if day.day <= 15 else "16-End"
    return f"{day:%b} {half}, {day.year}"
