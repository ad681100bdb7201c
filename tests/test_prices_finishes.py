import pytest

from mtgcollection import finishes
from mtgcollection.errors import ValidationError
from mtgcollection.prices import format_price, normalize_currency, parse_price, select_price

PRICES = {'usd': '10.00', 'usd_foil': '25.50', 'eur': '8.50', 'eur_foil': None}


def test_select_price():
    assert select_price(PRICES, 'EUR', False) == 8.5
    assert select_price(PRICES, 'EUR', True) is None
    assert select_price(PRICES, 'usd', True) == 25.5
    assert select_price(None, 'USD', False) is None


def test_normalize_currency():
    assert normalize_currency(None) == 'EUR'
    assert normalize_currency('usd') == 'USD'
    with pytest.raises(ValidationError):
        normalize_currency('GBP')


def test_parse_price():
    assert parse_price('1.5') == 1.5
    assert parse_price('') is None
    assert parse_price('n/a') is None


@pytest.mark.parametrize('amount, currency, expected', [
    (1234.56, 'USD', '$1,234.56'),
    (0, 'USD', '$0.00'),
    (-3.5, 'USD', '-$3.50'),
    (8.5, 'EUR', '8,50\u00a0€'),
    (1234.56, 'EUR', '1234,56\u00a0€'),
    (12345.67, 'EUR', '12.345,67\u00a0€'),
])
def test_format_price(amount, currency, expected):
    assert format_price(amount, currency) == expected


@pytest.mark.parametrize('finish, foil', [
    ('nonfoil', False),
    ('foil', True),
    ('etched', True),
    ('gilded', True),
    ('textured', True),
    ('showcase', False),
    ('borderless', False),
])
def test_is_finish_foil(finish, foil):
    assert finishes.is_finish_foil(finish) is foil


def test_finishes_by_category():
    groups = finishes.finishes_by_category()
    assert list(groups) == ['Standard', 'Special', 'Promotional', 'Premium']
    assert [f['value'] for f in groups['Standard']] == ['nonfoil', 'foil', 'etched']
    assert finishes.finish_label('unknown_finish') == 'unknown_finish'
