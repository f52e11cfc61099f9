# tests/test_currency.py
import pytest

from construction_ledger.utils.currency import (
    CurrencyError,
    InvalidAmount,
    InvalidCurrency,
    InvalidExchangeRate,
    derive_base_amount,
    effective_rate,
    normalize_currency,
)


def test_base_currency_amount_is_unchanged():
    assert derive_base_amount(1250.5, "TRY") == 1250.5
    # rate is irrelevant for the base currency
    assert derive_base_amount(100, "TRY", 0) == 100


def test_foreign_amount_uses_rate():
    assert derive_base_amount(100, "USD", 32.5) == pytest.approx(3250.0)
    assert derive_base_amount("10", "eur", "35") == pytest.approx(350.0)


@pytest.mark.parametrize("rate", [None, 0, -1, "abc"])
def test_foreign_amount_rejects_bad_supplied_rate(rate):
    with pytest.raises(InvalidExchangeRate):
        derive_base_amount(100, "USD", rate)


@pytest.mark.parametrize("rate", [None, 0, -2])
def test_stored_rows_fall_back_to_rate_one(rate):
    assert derive_base_amount(100, "USD", rate, strict=False) == 100.0


@pytest.mark.parametrize("amount", [0, -5, None, "abc", True])
def test_amount_must_be_positive_number(amount):
    with pytest.raises(InvalidAmount):
        derive_base_amount(amount, "TRY")


def test_unknown_currency():
    with pytest.raises(InvalidCurrency):
        derive_base_amount(10, "GBP", 40)
    with pytest.raises(InvalidCurrency):
        normalize_currency("XYZ")


def test_missing_currency_means_base():
    assert normalize_currency(None) == "TRY"
    assert normalize_currency(None, "EUR") == "EUR"
    assert derive_base_amount(10, None, None, "EUR") == 10


def test_other_base_currency():
    assert derive_base_amount(10, "EUR", None, base_currency="EUR") == 10
    assert derive_base_amount(10, "TRY", 0.03, base_currency="EUR") == pytest.approx(0.3)


@pytest.mark.parametrize("rate,expected", [(None, 1.0), (0, 1.0), (-3, 1.0), (2.5, 2.5), ("4", 4.0)])
def test_effective_rate(rate, expected):
    assert effective_rate(rate) == expected


def test_errors_are_value_errors():
    for exc in (InvalidAmount, InvalidExchangeRate, InvalidCurrency):
        assert issubclass(exc, CurrencyError)
        assert issubclass(exc, ValueError)
