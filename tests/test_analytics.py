import pytest

from mtgcollection.analytics import (
    card_performance, collection_stats, format_change_percent, price_stats,
)


def card(cid, purchase, current, qty=1):
    return {'id': cid, 'name': cid, 'purchase_price': purchase, 'current_price': current, 'quantity': qty}


def test_card_roi_rules():
    assert card_performance(card('a', 10, 15))['roi_percentage'] == pytest.approx(50.0)
    assert card_performance(card('b', 0, 3))['roi_percentage'] == 100.0
    assert card_performance(card('c', 0, 0))['roi_percentage'] == 0.0
    perf = card_performance(card('d', 2, 1, qty=3))
    assert (perf['investment'], perf['current_value'], perf['gain']) == (6.0, 3.0, -3.0)


def test_collection_stats_totals_and_rankings():
    cards = [card(str(i), 10, 10 + delta) for i, delta in enumerate([5, -4, 1, 8, -1, 0, 3, -7])]

    stats = collection_stats(cards)

    assert stats['total_investment'] == 80.0
    assert stats['total_value'] == 85.0
    assert stats['total_gain'] == 5.0
    assert stats['total_roi_percentage'] == pytest.approx(6.25)
    assert [w['gain'] for w in stats['top_winners']] == [8, 5, 3, 1, 0]
    assert [w['gain'] for w in stats['top_losers']] == [-7, -4, -1, 0, 1]


def test_collection_stats_zero_investment():
    stats = collection_stats([card('free', 0, 2)])
    assert stats['total_roi_percentage'] == 0.0
    assert collection_stats([])['top_winners'] == []


def test_price_stats():
    history = [{'price': 4.0}, {'price': 6.0}, {'price': 5.0}]

    stats = price_stats(history, 4.0)

    assert (stats['min'], stats['max'], stats['current']) == (4.0, 6.0, 5.0)
    assert stats['average'] == pytest.approx(5.0)
    assert stats['change_percent'] == pytest.approx(25.0)
    assert price_stats(history, None)['change_percent'] == 0.0
    assert price_stats([], 4.0) is None


def test_format_change_percent():
    assert format_change_percent(12.5) == '+12.50%'
    assert format_change_percent(0) == '+0.00%'
    assert format_change_percent(-3.456) == '-3.46%'
