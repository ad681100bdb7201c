# mtgcollection/viewmodels.py
"""UI-free view models over a bridge (``invoke`` / ``listen``).

Each view keeps the state a screen renders and turns ``CommandError`` into a
user-visible message instead of raising.
"""
import json
import logging
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from . import analytics, config
from .errors import CommandError
from .events import IMPORT_PROGRESS
from .finishes import DEFAULT_FINISH, finish_icon, finish_label, finishes_by_category, is_finish_foil
from .prices import format_price, normalize_currency, select_price

logger = logging.getLogger(__name__)


class SettingsStore:
    """Currency preference persisted to a small JSON file."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path or config.SETTINGS_PATH)
        self._subscribers: List[Callable[[str], None]] = []
        self.currency = self._load()

    def _load(self) -> str:
        try:
            data = json.loads(self.path.read_text(encoding='utf-8'))
        except FileNotFoundError:
            return config.DEFAULT_CURRENCY
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable settings %s: %s", self.path, e)
            return config.DEFAULT_CURRENCY
        cur = str(data.get('currency') or '').upper() if isinstance(data, dict) else ''
        return cur if cur in config.CURRENCIES else config.DEFAULT_CURRENCY

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps({'currency': self.currency}, indent=2), encoding='utf-8')

    def set_currency(self, currency: str) -> None:
        self.currency = normalize_currency(currency)
        self._save()
        for fn in list(self._subscribers):
            fn(self.currency)

    def subscribe(self, fn: Callable[[str], None]) -> Callable[[], None]:
        self._subscribers.append(fn)

        def unsubscribe():
            if fn in self._subscribers:
                self._subscribers.remove(fn)
        return unsubscribe

    def format_price(self, amount: float) -> str:
        return format_price(amount, self.currency)


class PriceHistoryView:
    def __init__(self, bridge):
        self._bridge = bridge
        self.history: List[Dict[str, Any]] = []
        self.stats: Optional[Dict[str, Any]] = None
        self.error: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.history

    @property
    def change_text(self) -> str:
        return analytics.format_change_percent(self.stats['change_percent']) if self.stats else ''

    def load(self, card_id: str, purchase_price: Optional[float]) -> None:
        try:
            history = self._bridge.invoke('get_card_price_history', {'cardId': card_id})
        except CommandError as e:
            logger.error("Failed to load price history for %s: %s", card_id, e)
            self.history, self.stats = [], None
            self.error = 'Failed to load price history'
            return
        self.error = None
        self.history = list(history or [])
        self.stats = analytics.price_stats(self.history, purchase_price)


class AddCardForm:
    def __init__(self, bridge, settings: SettingsStore, card: Dict[str, Any]):
        self._bridge = bridge
        self._settings = settings
        self.card = card
        self.quantity = 1
        self.condition = 'NM'
        self.language = config.DEFAULT_LANGUAGE
        self.finish = DEFAULT_FINISH
        self.tags: List[str] = []
        self.error: Optional[str] = None
        self.price = 0.0
        self.autofill_price()
        self._unsubscribe = settings.subscribe(lambda _cur: self.autofill_price())

    @property
    def is_foil(self) -> bool:
        return is_finish_foil(self.finish)

    @property
    def finish_options(self) -> Dict[str, List[Dict[str, str]]]:
        """Finishes grouped by category, in the order the picker lists them."""
        return finishes_by_category()

    @property
    def finish_text(self) -> str:
        return f"{finish_icon(self.finish)} {finish_label(self.finish)}"

    def autofill_price(self) -> float:
        price = select_price(self.card.get('prices'), self._settings.currency, self.is_foil)
        self.price = price if price is not None else 0.0
        return self.price

    def set_finish(self, finish: str) -> None:
        self.finish = finish
        self.autofill_price()

    def build_args(self) -> Dict[str, Any]:
        return {
            'scryfall_id': self.card['id'],
            'condition': self.condition,
            'purchase_price': float(self.price),
            'quantity': int(self.quantity),
            'is_foil': self.is_foil,
            'language': self.language,
            'finish': self.finish,
            'tags': list(self.tags),
        }

    def submit(self) -> Optional[str]:
        """Add the card; returns the new id, or None with ``error`` set."""
        try:
            new_id = self._bridge.invoke('add_card', {
                'args': self.build_args(),
                'currencyPreference': self._settings.currency,
            })
        except CommandError as e:
            logger.error("Failed to add card: %s", e)
            self.error = f"Failed to add card: {e}"
            return None
        self.error = None
        self._unsubscribe()
        return new_id


class Debouncer:
    """Run a call after ``delay`` seconds of quiet; a newer call replaces a pending one."""

    def __init__(self, delay: float = 0.5):
        self.delay = delay
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._pending: Optional[Callable[[], None]] = None
        self._generation = 0

    def call(self, fn: Callable, *args, **kwargs) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            self._pending = lambda: fn(*args, **kwargs)
            self._timer = threading.Timer(self.delay, self._fire, args=(self._generation,))
            self._timer.daemon = True
            self._timer.start()

    def _fire(self, generation: Optional[int] = None) -> None:
        with self._lock:
            # A timer that lost the race to a newer call must not run its pending work
            if generation is not None and generation != self._generation:
                return
            pending, self._pending, self._timer = self._pending, None, None
        if pending is not None:
            pending()

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = self._pending = None

    def flush(self) -> None:
        """Run the pending call now, if any."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
        self._fire()


class CardSearch:
    MIN_QUERY_LENGTH = 3

    def __init__(self, bridge, delay: float = 0.5):
        self._bridge = bridge
        self._debouncer = Debouncer(delay)
        self._lock = threading.Lock()
        self.query = ''
        self.results: List[Dict[str, Any]] = []
        self.page = 1
        self.has_more = False
        self.total_cards = 0
        self.loading = False
        self.error: Optional[str] = None

    def set_query(self, query: str) -> None:
        with self._lock:
            self.query = query
        if len(query.strip()) < self.MIN_QUERY_LENGTH:
            self._debouncer.cancel()
            with self._lock:
                self.results, self.has_more, self.total_cards, self.page = [], False, 0, 1
            return
        self._debouncer.call(self._run, query, 1)

    def flush(self) -> None:
        self._debouncer.flush()

    def load_more(self) -> None:
        if not self.has_more or self.loading:
            return
        self._run(self.query, self.page + 1)

    def _run(self, query: str, page: int) -> None:
        self.loading = True
        try:
            result = self._bridge.invoke('search_scryfall', {'query': query, 'page': page})
        except CommandError as e:
            logger.error("Search failed for %r: %s", query, e)
            with self._lock:
                if query == self.query:
                    self.error = 'Search failed'
            return
        finally:
            self.loading = False
        with self._lock:
            # The user typed something else while this request was in flight
            if query != self.query:
                logger.debug("Discarding stale results for %r", query)
                return
            data = list(result.get('data') or [])
            self.results = self.results + data if page > 1 else data
            self.page = page
            self.has_more = bool(result.get('has_more'))
            self.total_cards = result.get('total_cards') or len(self.results)
            self.error = None


class StatsView:
    def __init__(self, bridge):
        self._bridge = bridge
        self.stats: Optional[Dict[str, Any]] = None
        self.error: Optional[str] = None

    def load(self) -> None:
        try:
            stats = self._bridge.invoke('get_collection_stats', {})
        except CommandError as e:
            logger.error("Failed to load statistics: %s", e)
            self.stats = None
            self.error = 'Failed to load statistics'
            return
        self.stats = stats
        self.error = None


class TagsView:
    def __init__(self, bridge):
        self._bridge = bridge
        self.tags: List[Dict[str, Any]] = []
        self.error: Optional[str] = None

    def _call(self, command: str, args: dict, failure: str):
        try:
            result = self._bridge.invoke(command, args)
        except CommandError as e:
            logger.error("%s: %s", failure, e)
            self.error = f"{failure}: {e}"
            return None
        self.error = None
        return result

    def load(self) -> None:
        tags = self._call('get_all_tags', {}, 'Failed to load tags')
        if tags is not None:
            self.tags = tags

    def create(self, name: str, color: str) -> Optional[int]:
        tag_id = self._call('create_tag', {'name': name, 'color': color}, 'Failed to create tag')
        if tag_id is not None:
            self.load()
        return tag_id

    def delete(self, tag_id: int) -> None:
        self._call('delete_tag', {'id': tag_id}, 'Failed to delete tag')
        if self.error is None:
            self.load()


class ImportProgressView:
    def __init__(self, bridge):
        self._bridge = bridge
        self.current = 0
        self.total = 0
        self.message = ''
        self.complete = False
        self.result = None
        self.error: Optional[str] = None

    @property
    def percent(self) -> float:
        if self.complete:
            return 100.0
        return self.current / self.total * 100 if self.total else 0.0

    def on_progress(self, payload: Dict[str, Any]) -> None:
        self.current = int(payload.get('current') or 0)
        self.total = int(payload.get('total') or 0)
        self.message = str(payload.get('message') or '')
        if self.total and self.current >= self.total:
            self.complete = True

    def run(self, command: str, args: Optional[dict] = None):
        """Invoke a long-running command while following its progress events."""
        self.current = self.total = 0
        self.message, self.complete, self.result, self.error = '', False, None, None
        unlisten = self._bridge.listen(IMPORT_PROGRESS, self.on_progress)
        try:
            self.result = self._bridge.invoke(command, args or {})
        except CommandError as e:
            logger.error("%s failed: %s", command, e)
            self.error = str(e)
        else:
            self.message = str(self.result or self.message)
        finally:
            unlisten()
        # Also complete when the command finished without ticking
        self.complete = self.error is None
        return self.result


class WishlistFilter:
    def __init__(self, query: str = '', priority: Optional[int] = None):
        self.query = query
        self.priority = priority

    def matches(self, item: Dict[str, Any]) -> bool:
        q = (self.query or '').strip().lower()
        if q and q not in str(item.get('name') or '').lower() \
                and q not in str(item.get('set_code') or '').lower():
            return False
        if self.priority is not None and int(item.get('priority') or 0) != int(self.priority):
            return False
        return True

    def apply(self, items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [i for i in items if self.matches(i)]
