import json

import pytest

from conftest import raw_card
from mtgcollection.client import LocalBridge
from mtgcollection.errors import CommandError, ScryfallError
from mtgcollection.events import IMPORT_PROGRESS, progress_payload
from mtgcollection.viewmodels import (AddCardForm, CardSearch, Debouncer, ImportProgressView,
                                      PriceHistoryView, SettingsStore, StatsView, TagsView,
                                      WishlistFilter)


class FakeBridge:
    """Answers commands from a dict of values or callables taking the args."""

    def __init__(self, **responses):
        self.responses = responses
        self.calls = []
        self.handlers = {}

    def invoke(self, command, args=None):
        self.calls.append((command, args))
        answer = self.responses[command]
        if isinstance(answer, Exception):
            raise answer
        return answer(args) if callable(answer) else answer

    def listen(self, event, handler):
        self.handlers.setdefault(event, []).append(handler)
        return lambda: self.handlers[event].remove(handler)

    def emit(self, event, payload):
        for handler in list(self.handlers.get(event, [])):
            handler(payload)


@pytest.fixture
def settings(tmp_path):
    return SettingsStore(tmp_path / 'settings.json')


def test_settings_defaults_and_persists(tmp_path, settings):
    assert settings.currency == 'EUR'
    seen = []
    unsubscribe = settings.subscribe(seen.append)

    settings.set_currency('usd')

    assert seen == ['USD']
    assert json.loads((tmp_path / 'settings.json').read_text())['currency'] == 'USD'
    assert SettingsStore(tmp_path / 'settings.json').currency == 'USD'
    assert settings.format_price(1234.5) == '$1,234.50'
    unsubscribe()
    settings.set_currency('EUR')
    assert seen == ['USD']


def test_settings_ignores_garbage(tmp_path):
    path = tmp_path / 'settings.json'
    path.write_text('{not json')
    assert SettingsStore(path).currency == 'EUR'
    path.write_text('{"currency": "GBP"}')
    assert SettingsStore(path).currency == 'EUR'


def test_price_history_view(api, bolt, add_args):
    card_id = api.add_card(add_args(purchase_price=5.0), 'EUR')
    view = PriceHistoryView(LocalBridge(api))

    view.load(card_id, 5.0)

    assert not view.is_empty
    assert view.stats['current'] == 8.5
    assert view.change_text == '+70.00%'


def test_price_history_view_empty_and_error():
    view = PriceHistoryView(FakeBridge(get_card_price_history=[]))
    view.load('x', 1.0)
    assert view.is_empty and view.stats is None and view.change_text == ''

    view = PriceHistoryView(FakeBridge(get_card_price_history=CommandError('boom')))
    view.load('x', 1.0)
    assert view.error == 'Failed to load price history'


def test_add_card_form(api, stub, settings):
    stub.add(raw_card('foily', usd_foil='25.50'))
    card = api.get_card('foily')
    form = AddCardForm(LocalBridge(api), settings, card)
    assert (form.price, form.is_foil) == (8.5, False)

    settings.set_currency('USD')
    assert form.price == 10.0
    form.set_finish('foil')
    assert (form.price, form.is_foil) == (25.5, True)
    form.quantity = 2
    form.tags = ['Trade']

    new_id = form.submit()

    [saved] = api.get_collection()
    assert saved['id'] == new_id
    assert (saved['is_foil'], saved['finish'], saved['quantity']) == (True, 'foil', 2)
    assert [t['name'] for t in saved['tags']] == ['Trade']


def test_add_card_form_without_price_and_failure(settings):
    card = raw_card('p', eur=None)
    bridge = FakeBridge(add_card=ScryfallError('Scryfall is down'))
    form = AddCardForm(bridge, settings, card)
    assert form.price == 0.0

    assert form.submit() is None
    assert form.error == 'Failed to add card: Scryfall is down'


def test_debouncer_keeps_latest_call():
    seen = []
    d = Debouncer(60)
    d.call(seen.append, 1)
    d.call(seen.append, 2)

    d.flush()
    d.flush()

    assert seen == [2]
    d.call(seen.append, 3)
    d.cancel()
    d.flush()
    assert seen == [2]


def page(names, has_more=False, total=None):
    return {'data': [{'name': n} for n in names], 'has_more': has_more,
            'total_cards': total or len(names)}


def test_card_search_short_query_clears():
    bridge = FakeBridge()
    search = CardSearch(bridge, delay=60)
    search.results = [{'name': 'old'}]

    search.set_query('ab')
    search.flush()

    assert search.results == [] and bridge.calls == []


def test_card_search_load_more():
    pages = {1: page(['a', 'b'], has_more=True, total=3), 2: page(['c'])}
    bridge = FakeBridge(search_scryfall=lambda args: pages[args['page']])
    search = CardSearch(bridge, delay=60)

    search.set_query('bolt')
    search.flush()
    search.load_more()
    search.load_more()

    assert [c['name'] for c in search.results] == ['a', 'b', 'c']
    assert (search.page, search.has_more, search.total_cards) == (2, False, 3)
    assert [args['page'] for _, args in bridge.calls] == [1, 2]


def test_card_search_discards_stale_results():
    search = None

    def respond(args):
        # the user keeps typing while the request is in flight
        search.set_query('counterspell')
        return page(['Lightning Bolt'])

    search = CardSearch(FakeBridge(search_scryfall=respond), delay=60)
    search.set_query('bolt')
    search.flush()
    search._debouncer.cancel()

    assert search.results == []
    assert search.query == 'counterspell'


def test_card_search_error():
    search = CardSearch(FakeBridge(search_scryfall=ScryfallError('down')), delay=60)
    search.set_query('bolt')
    search.flush()
    assert search.error == 'Search failed'
    assert search.loading is False


def test_stats_view():
    view = StatsView(FakeBridge(get_collection_stats={'total_value': 3.0}))
    view.load()
    assert view.stats == {'total_value': 3.0}

    view._bridge = FakeBridge(get_collection_stats=CommandError('db locked'))
    view.load()
    assert (view.stats, view.error) == (None, 'Failed to load statistics')


def test_tags_view(api):
    view = TagsView(LocalBridge(api))

    tag_id = view.create('Trade', '#00ff00')
    assert [t['name'] for t in view.tags] == ['Trade']
    assert view.create('Trade', '#00ff00') is None
    assert view.error.startswith('Failed to create tag')

    view.delete(tag_id)
    assert view.tags == [] and view.error is None
    view.delete(tag_id)
    assert view.error.startswith('Failed to delete tag')


def test_import_progress_view():
    bridge = FakeBridge()
    view = ImportProgressView(bridge)

    def run_import(args):
        bridge.emit(IMPORT_PROGRESS, progress_payload(1, 4, 'Lightning Bolt'))
        assert view.percent == 25.0 and not view.complete
        return 'Imported 4 cards, skipped 0 cards'

    bridge.responses['import_collection'] = run_import

    assert view.run('import_collection', {'csvContent': '...'}) == 'Imported 4 cards, skipped 0 cards'
    assert view.complete and view.percent == 100.0
    assert view.message == 'Imported 4 cards, skipped 0 cards'
    assert bridge.handlers[IMPORT_PROGRESS] == []


def test_import_progress_view_error():
    view = ImportProgressView(FakeBridge(update_prices=CommandError('Another import is already running')))
    assert view.run('update_prices') is None
    assert view.error == 'Another import is already running'
    assert not view.complete


def test_wishlist_filter():
    items = [
        {'name': 'Black Lotus', 'set_code': 'lea', 'priority': 3},
        {'name': 'Sol Ring', 'set_code': 'c21', 'priority': 1},
        {'name': 'Mox Pearl', 'set_code': 'lea', 'priority': 1},
    ]
    assert [i['name'] for i in WishlistFilter('LEA').apply(items)] == ['Black Lotus', 'Mox Pearl']
    assert [i['name'] for i in WishlistFilter('', 1).apply(items)] == ['Sol Ring', 'Mox Pearl']
    assert WishlistFilter('ring', 3).apply(items) == []
    assert len(WishlistFilter().apply(items)) == 3


def test_debouncer_ignores_superseded_timer():
    seen = []
    d = Debouncer(60)
    d.call(seen.append, 'bol')
    d.call(seen.append, 'bolt')

    # the first timer fires late, after the second call replaced it
    d._fire(1)
    assert seen == []
    d._fire(2)
    assert seen == ['bolt']


def test_tags_view_rejects_missing_id(api):
    view = TagsView(LocalBridge(api))
    view.delete(None)
    assert view.error.startswith('Failed to delete tag')


def test_add_card_form_finish_options(settings):
    form = AddCardForm(FakeBridge(), settings, raw_card())
    groups = form.finish_options
    assert list(groups) == ['Standard', 'Special', 'Promotional', 'Premium']
    assert groups['Premium'][-1]['value'] == 'textured'
    assert form.finish_text == '📄 Non-foil'
    form.set_finish('etched')
    assert form.finish_text == '✨ Etched Foil'
