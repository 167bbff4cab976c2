"""Tests for currency display helpers."""

from opsdesk.services.currency import CURRENCIES, currency_symbol, format_money, is_supported


def test_known_currency_symbols():
    assert currency_symbol("GHS") == "₵"
    assert currency_symbol("usd") == "$"
    assert currency_symbol("NGN") == "₦"


def test_unknown_currency_falls_back_to_code():
    assert currency_symbol("XOF") == "XOF"
    assert not is_supported("XOF")


def test_empty_currency_uses_default():
    assert currency_symbol(None) == CURRENCIES["GHS"]["symbol"]
    assert currency_symbol("") == "₵"


def test_format_money_two_decimals():
    assert format_money(1234.5, "GHS") == "₵ 1234.50"
    assert format_money(None, "USD") == "$ 0.00"
    assert format_money(-5, "EUR") == "€ -5.00"
