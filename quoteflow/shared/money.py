"""Money helpers. Amounts round half up to match invoice arithmetic."""

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional


def round_half_up(value: Optional[float], places: int = 2) -> float:
    if value is None:
        return 0.0
    exponent = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(exponent, rounding=ROUND_HALF_UP))


def round_amount(value: Optional[float]) -> float:
    return round_half_up(value, 2)


def round_integer(value: Optional[float]) -> int:
    return int(round_half_up(value, 0))


def line_amount(quantity: float, unit_price: float, discount_percent: float = 0) -> float:
    """quantity * unit_price less a percentage discount, to 2 places"""
    return round_amount(quantity * unit_price * (1 - (discount_percent or 0) / 100))


def calculate_totals(
    amounts: list[float], tax_rate: float = 5, discount_amount: float = 0
) -> dict:
    subtotal = round_amount(sum(amounts))
    tax_amount = round_amount(subtotal * (tax_rate or 0) / 100)
    total_amount = round_amount(subtotal + tax_amount - (discount_amount or 0))
    return {"subtotal": subtotal, "tax_amount": tax_amount, "total_amount": total_amount}
