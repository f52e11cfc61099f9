"""
utils/currency.py

Currency & amount policy for ledger writes.

Every money movement stores the entered `amount`, its `currency`, the
`exchange_rate` used, and `amount_try`: the base-currency equivalent derived
once at write time. Pure helpers only; do not import repos here.
"""
from __future__ import annotations

from typing import Optional

from ..constants import CURRENCIES, DEFAULT_BASE_CURRENCY
from .validators import try_parse_float

__all__ = [
    "CurrencyError",
    "InvalidAmount",
    "InvalidExchangeRate",
    "InvalidCurrency",
    "effective_rate",
    "normalize_currency",
    "derive_base_amount",
]


class CurrencyError(ValueError):
    """Base class for money input errors raised to the caller."""


class InvalidAmount(CurrencyError):
    pass


class InvalidExchangeRate(CurrencyError):
    pass


class InvalidCurrency(CurrencyError):
    pass


def effective_rate(exchange_rate) -> float:
    """
    Rate used for valuation: the stored rate when it is > 0, else 1.0.

    Applied to rows already in the database so that a missing or zero rate
    never values a movement at zero.
    """
    ok, rate = try_parse_float(exchange_rate)
    return rate if ok and rate is not None and rate > 0 else 1.0


def normalize_currency(currency: Optional[str], base_currency: str = DEFAULT_BASE_CURRENCY) -> str:
    """Upper-case a currency code, defaulting to the base currency."""
    code = (currency or base_currency).strip().upper()
    if code not in CURRENCIES:
        raise InvalidCurrency(f"Unsupported currency: {currency!r}.")
    return code


def derive_base_amount(
    amount,
    currency: Optional[str],
    exchange_rate=None,
    base_currency: str = DEFAULT_BASE_CURRENCY,
    *,
    strict: bool = True,
) -> float:
    """
    Return the base-currency equivalent of `amount`.

      amount_try = amount                          if currency == base_currency
      amount_try = amount * effective_rate(rate)   otherwise

    Raises:
        InvalidAmount: amount is missing, non-numeric or <= 0.
        InvalidExchangeRate: (strict only) foreign currency and the supplied
            rate is missing, non-numeric or <= 0.
        InvalidCurrency: unknown currency code.

    `strict=False` is for re-deriving from stored rows, where the 1.0
    fallback applies instead of rejecting the rate.
    """
    ok, value = try_parse_float(amount)
    if not ok or value is None or value <= 0:
        raise InvalidAmount("Amount must be greater than zero.")

    code = normalize_currency(currency, base_currency)
    if code == base_currency:
        return value

    if strict:
        ok_rate, rate = try_parse_float(exchange_rate)
        if not ok_rate or rate is None or rate <= 0:
            raise InvalidExchangeRate(
                f"Exchange rate must be greater than zero for {code} amounts."
            )
    return value * effective_rate(exchange_rate)
