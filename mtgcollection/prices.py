# mtgcollection/prices.py
"""Market price selection and currency formatting."""
import logging

from . import config
from .errors import ValidationError

logger = logging.getLogger(__name__)

_SYMBOLS = {'USD': '$', 'EUR': '€'}


def normalize_currency(currency: str | None) -> str:
    cur = str(currency or '').strip().upper()
    if not cur:
        return config.DEFAULT_CURRENCY
    if cur not in config.CURRENCIES:
        raise ValidationError(f"Unsupported currency: {currency}")
    return cur


def parse_price(value) -> float | None:
    if value is None or value == '':
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.debug("Unparseable price %r", value)
        return None


def select_price(prices: dict | None, currency: str, is_foil: bool) -> float | None:
    """Pick the market price for a currency and foil status from Scryfall ``prices``."""
    prices = prices or {}
    base = 'eur' if normalize_currency(currency) == 'EUR' else 'usd'
    key = f"{base}_foil" if is_foil else base
    return parse_price(prices.get(key))


def _group(digits: str, sep: str) -> str:
    parts = []
    while len(digits) > 3:
        parts.insert(0, digits[-3:])
        digits = digits[:-3]
    parts.insert(0, digits)
    return sep.join(parts)


def format_price(amount: float | None, currency: str) -> str:
    """Format like ``Intl.NumberFormat``: en-US for USD, es-ES for EUR.

    es-ES only groups thousands from five integer digits on (1234,56 € vs 12.345,67 €).
    """
    cur = normalize_currency(currency)
    value = float(amount or 0.0)
    sign = '-' if value < 0 else ''
    whole, frac = f"{abs(value):.2f}".split('.')
    if cur == 'USD':
        return f"{sign}${_group(whole, ',')}.{frac}"
    grouped = _group(whole, '.') if len(whole) >= 5 else whole
    # Intl separates the euro sign with a no-break space
    return f"{sign}{grouped},{frac}\u00a0{_SYMBOLS[cur]}"
