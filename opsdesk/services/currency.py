from opsdesk.core.config import DEFAULT_CURRENCY

CURRENCIES = {
    "GHS": {"name": "Ghanaian Cedi", "symbol": "₵"},
    "USD": {"name": "US Dollar", "symbol": "$"},
    "EUR": {"name": "Euro", "symbol": "€"},
    "GBP": {"name": "British Pound", "symbol": "£"},
    "NGN": {"name": "Nigerian Naira", "symbol": "₦"},
}


def is_supported(code: str | None) -> bool:
    return bool(code) and code.upper() in CURRENCIES


def currency_symbol(code: str | None) -> str:
    """Display symbol for a currency code; unknown codes are shown as-is."""
    if not code:
        code = DEFAULT_CURRENCY
    entry = CURRENCIES.get(code.upper())
    return entry["symbol"] if entry else code


def format_money(amount: float | None, code: str | None) -> str:
    return f"{currency_symbol(code)} {(amount or 0):.2f}"
