"""Shared validation utilities"""

import re
from typing import Optional

SUPPORTED_CURRENCIES = ("TWD", "USD", "EUR", "JPY", "CNY")

# Weights for the Taiwan unified business number (統一編號) checksum
TAX_ID_WEIGHTS = (1, 2, 1, 2, 1, 2, 4, 1)


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()

    email_pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"

    if not re.match(email_pattern, email):
        raise ValueError("Invalid email format")

    return email


def is_valid_tax_id(tax_id: Optional[str]) -> bool:
    """
    Check a Taiwan unified business number.

    Each digit is multiplied by its weight and the digits of every product are
    summed. The total must be divisible by 5; when the 7th digit is 7 the total
    plus one is accepted as well.
    """
    if not tax_id or not re.fullmatch(r"\d{8}", tax_id):
        return False

    total = 0
    for digit, weight in zip(tax_id, TAX_ID_WEIGHTS):
        product = int(digit) * weight
        total += product // 10 + product % 10

    if total % 5 == 0:
        return True
    return tax_id[6] == "7" and (total + 1) % 5 == 0


def validate_tax_id(tax_id: Optional[str]) -> Optional[str]:
    if not tax_id:
        return tax_id
    tax_id = tax_id.strip()
    if not is_valid_tax_id(tax_id):
        raise ValueError("Invalid tax ID")
    return tax_id


def validate_industry_code(code: str) -> bool:
    """Industry codes are exactly four digits"""
    return bool(code) and re.fullmatch(r"\d{4}", code) is not None


def validate_profit_rate(rate: float) -> bool:
    return 0 <= rate <= 1


def validate_tax_year(year: int) -> bool:
    return 2000 <= year <= 2100


def validate_currency(currency: Optional[str]) -> Optional[str]:
    if not currency:
        return currency
    currency = currency.strip().upper()
    if currency not in SUPPORTED_CURRENCIES:
        raise ValueError(f"Unsupported currency: {currency}")
    return currency
