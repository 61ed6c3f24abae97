from typing import Optional

from config.settings import settings
from shared.exceptions import BadRequestException


def validate_currency(currency: Optional[str]) -> str:
    """
    Validates that the provided currency is supported.
    Returns the currency if valid, otherwise raises BadRequestException.
    If currency is None/Empty, returns the default currency.
    """
    if not currency:
        return settings.DEFAULT_CURRENCY

    currency = currency.upper()
    if currency not in settings.supported_currencies_list:
        raise BadRequestException(
            f"Unsupported currency: {currency}. Supported currencies: {', '.join(settings.supported_currencies_list)}"
        )

    return currency


def normalize_code(code: Optional[str]) -> str:
    """Voucher and referral codes are matched case-insensitively"""
    return (code or "").strip().upper()
