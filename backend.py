# backend.py
import inspect
import logging
import re
import threading
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from mtgcollection import analytics, card_features, config, csv_io, image_utils
from mtgcollection import collection_sql as csql
from mtgcollection import sets_sql, tags_sql, wishlist_sql
from mtgcollection.errors import CommandError, NotFoundError, UnknownCommandError, ValidationError
from mtgcollection.events import IMPORT_PROGRESS, EventBus, progress_payload
from mtgcollection.finishes import DEFAULT_FINISH, is_finish_foil
from mtgcollection.prices import normalize_currency, parse_price, select_price
from mtgcollection.scryfall import ScryfallClient

logger = logging.getLogger('mtgcollection.backend')

# key -> (query, order, direction)
MARKET_QUERIES = {
    'standard_staples': ('f:standard game:paper', 'usd', 'desc'),
    'modern_staples': ('f:modern game:paper', 'usd', 'desc'),
    'commander_popularity': ('game:paper', 'edhrec', 'asc'),
    'new_hot': ('date>=now-30days game:paper', 'usd', 'desc'),
}
MARKET_TREND_SIZE = 10

COMMANDS = frozenset({
    'search_scryfall', 'get_card', 'get_card_languages',
    'add_card', 'update_card_details', 'update_card_quantity', 'remove_card',
    'get_collection', 'get_collection_sets', 'get_collection_stats',
    'get_card_price_history', 'get_portfolio_history',
    'get_sets', 'import_sets', 'get_set_cards', 'get_market_trends',
    'add_to_wishlist', 'remove_from_wishlist', 'update_wishlist_card', 'get_wishlist',
    'get_all_tags', 'create_tag', 'delete_tag', 'get_card_tags',
    'add_tag_to_card', 'remove_tag_from_card',
    'export_collection', 'import_collection',
    'recognize_card_with_features', 'update_prices', 'get_import_progress',
})

_CAMEL = re.compile(r'(?<!^)(?=[A-Z])')


def to_snake(key: str) -> str:
    return _CAMEL.sub('_', str(key)).lower()


def _require(value, name: str) -> str:
    v = str(value or '').strip()
    if not v:
        raise ValidationError(f"{name} is required")
    return v


def _int_arg(value, name: str, default=None):
    """Integer argument; query strings deliver numbers as text."""
    if value is None or value == '':
        if default is None:
            raise ValidationError(f"{name} is required")
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {name}: {value!r}")


def _flag(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes')
    return bool(value)


def _validate_add_args(args) -> dict:
    if not isinstance(args, dict):
        raise ValidationError("args must be an object")
    a = {to_snake(k): v for k, v in args.items()}
    a['scryfall_id'] = _require(a.get('scryfall_id'), 'scryfall_id')
    condition = str(a.get('condition') or 'NM').upper()
    if condition not in config.CONDITIONS:
        raise ValidationError(f"Invalid condition: {a.get('condition')}")
    a['condition'] = condition
    price = parse_price(a.get('purchase_price', 0))
    if price is None or price < 0:
        raise ValidationError("purchase_price must be a number >= 0")
    a['purchase_price'] = price
    try:
        qty = int(a.get('quantity', 1))
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid quantity: {a.get('quantity')!r}")
    if qty < 1:
        raise ValidationError("quantity must be at least 1")
    a['quantity'] = qty
    a['language'] = str(a.get('language') or config.DEFAULT_LANGUAGE)
    a['finish'] = str(a.get('finish') or DEFAULT_FINISH)
    a['is_foil'] = _flag(a.get('is_foil'))
    tags = a.get('tags') or []
    if isinstance(tags, str):
        tags = [t for t in tags.split(';') if t.strip()]
    a['tags'] = list(tags)
    return a


class Api:
    def __init__(self, db_path=None, scryfall: ScryfallClient | None = None,
                 events: EventBus | None = None, request_delay: float | None = None):
        self._db_path = Path(db_path or config.DB_PATH)
        self._scryfall = scryfall or ScryfallClient()
        self._events = events or EventBus()
        self._request_delay = config.REQUEST_DELAY if request_delay is None else request_delay
        # Progress snapshot for clients polling instead of listening
        self._import_lock = threading.Lock()
        self._import_running = False
        self._import_current = 0
        self._import_total = 0
        self._import_message = ''

    # --- bridge ---
    def invoke(self, command: str, args: dict | None = None):
        if command not in COMMANDS:
            raise UnknownCommandError(command)
        method = getattr(self, command)
        kwargs = {to_snake(k): v for k, v in (args or {}).items()}
        try:
            inspect.signature(method).bind(**kwargs)
        except TypeError as e:
            raise ValidationError(f"Invalid arguments for {command}: {e}") from e
        logger.info("invoke %s", command)
        return method(**kwargs)

    def listen(self, event: str, handler):
        return self._events.listen(event, handler)

    def _progress(self, current: int, total: int, message: str) -> None:
        with self._import_lock:
            self._import_current = current
            self._import_total = total
            self._import_message = message
        self._events.emit(IMPORT_PROGRESS, progress_payload(current, total, message))

    def _start_progress(self, total: int) -> None:
        with self._import_lock:
            if self._import_running:
                raise CommandError("Another import is already running")
            self._import_running = True
            self._import_current = 0
            self._import_total = total
            self._import_message = ''

    def _finish_progress(self) -> None:
        with self._import_lock:
            self._import_running = False

    def get_import_progress(self):
        """Returns the last import/price-refresh progress snapshot."""
        with self._import_lock:
            return {
                'running': self._import_running,
                'current': self._import_current,
                'total': self._import_total,
                'message': self._import_message,
            }

    # --- scryfall ---
    def search_scryfall(self, query, page=1):
        return self._scryfall.search_cards(query, _int_arg(page, 'page', 1))

    def get_card(self, scryfall_id):
        return self._scryfall.fetch_card(_require(scryfall_id, 'scryfallId'))

    def get_card_languages(self, oracle_id, set_code):
        return self._scryfall.get_card_languages(
            _require(oracle_id, 'oracleId'), _require(set_code, 'setCode').lower()
        )

    # --- collection ---
    def add_card(self, args, currency_preference=None):
        a = _validate_add_args(args)
        currency = normalize_currency(currency_preference)
        card = self._scryfall.fetch_card(a['scryfall_id'])
        market = select_price(card.get('prices'), currency, a['is_foil'])
        current = market if market is not None else a['purchase_price']
        card_id = str(uuid.uuid4())
        csql.insert_card(self._db_path, card_id, card, a, current)
        if market is not None:
            csql.insert_price_history(self._db_path, card_id, market, currency)
        logger.info("Added %s x%s (%s) as %s", card.get('name'), a['quantity'], a['finish'], card_id)
        return card_id

    def update_card_details(self, id, condition, language, purchase_price):
        cond = str(condition or '').upper()
        if cond not in config.CONDITIONS:
            raise ValidationError(f"Invalid condition: {condition}")
        price = parse_price(purchase_price)
        if price is None or price < 0:
            raise ValidationError("purchase_price must be a number >= 0")
        csql.update_card_details(self._db_path, _require(id, 'id'), cond,
                                 str(language or config.DEFAULT_LANGUAGE), price)
        return None

    def update_card_quantity(self, id, quantity):
        try:
            qty = int(quantity)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid quantity: {quantity!r}")
        if qty < 1:
            raise ValidationError("quantity must be at least 1")
        csql.update_card_quantity(self._db_path, _require(id, 'id'), qty)
        return None

    def remove_card(self, id):
        csql.remove_card(self._db_path, _require(id, 'id'))
        return None

    def get_collection(self, search_term='', set_code='', tag_id=None, foil_only=False,
                       sort_by='name', sort_order='asc'):
        tag_id = None if tag_id in (None, '') else _int_arg(tag_id, 'tagId')
        return csql.get_all_cards(self._db_path, search_term, set_code, tag_id,
                                  _flag(foil_only), sort_by, sort_order)

    def get_collection_sets(self):
        return csql.get_collection_sets(self._db_path)

    def get_collection_stats(self):
        return analytics.collection_stats(csql.get_all_cards(self._db_path))

    def get_card_price_history(self, card_id):
        return csql.get_card_price_history(self._db_path, _require(card_id, 'cardId'))

    def get_portfolio_history(self):
        return csql.get_portfolio_history(self._db_path)

    # --- sets & market ---
    def get_sets(self):
        if sets_sql.count_sets(self._db_path) == 0:
            logger.info("Set table empty, fetching from Scryfall")
            sets_sql.save_sets(self._db_path, self._scryfall.fetch_sets())
        return sets_sql.get_sets(self._db_path)

    def import_sets(self):
        sets = self._scryfall.fetch_sets()
        total = len(sets)
        self._start_progress(total)
        try:
            for i, s in enumerate(sets, start=1):
                sets_sql.save_sets(self._db_path, [s])
                if i % 10 == 0 or i == total:
                    self._progress(i, total, f"Importing set {s['name']}")
        finally:
            self._finish_progress()
        logger.info("Imported %s sets", total)
        return f"Imported {total} sets"

    def get_set_cards(self, set_code, page=1):
        return self._scryfall.fetch_cards_by_set(_require(set_code, 'setCode'), _int_arg(page, 'page', 1))

    def get_market_trends(self):
        with ThreadPoolExecutor(max_workers=len(MARKET_QUERIES)) as pool:
            futures = {
                key: pool.submit(self._scryfall.get_top_cards, q, order, direction, MARKET_TREND_SIZE)
                for key, (q, order, direction) in MARKET_QUERIES.items()
            }
            return {key: fut.result() for key, fut in futures.items()}

    # --- wishlist ---
    def add_to_wishlist(self, card, target_price=None, notes=None, priority=1):
        if not isinstance(card, dict) or not card.get('id'):
            raise ValidationError("card with an id is required")
        return wishlist_sql.add_to_wishlist(self._db_path, str(uuid.uuid4()), card,
                                            target_price, notes, priority)

    def remove_from_wishlist(self, id):
        wishlist_sql.remove_from_wishlist(self._db_path, _require(id, 'id'))
        return None

    def update_wishlist_card(self, id, target_price=None, notes=None, priority=1):
        wishlist_sql.update_wishlist_card(self._db_path, _require(id, 'id'),
                                          target_price, notes, priority)
        return None

    def get_wishlist(self):
        return wishlist_sql.get_wishlist(self._db_path)

    # --- tags ---
    def get_all_tags(self):
        return tags_sql.get_all_tags(self._db_path)

    def create_tag(self, name, color=tags_sql.DEFAULT_COLOR):
        return tags_sql.create_tag(self._db_path, name, color)

    def delete_tag(self, id):
        tags_sql.delete_tag(self._db_path, _int_arg(id, 'id'))
        return None

    def get_card_tags(self, card_id):
        return tags_sql.get_card_tags(self._db_path, _require(card_id, 'cardId'))

    def add_tag_to_card(self, card_id, tag_id):
        tags_sql.add_tag_to_card(self._db_path, _require(card_id, 'cardId'), _int_arg(tag_id, 'tagId'))
        return None

    def remove_tag_from_card(self, card_id, tag_id):
        tags_sql.remove_tag_from_card(self._db_path, _require(card_id, 'cardId'), _int_arg(tag_id, 'tagId'))
        return None

    # --- csv ---
    def export_collection(self):
        return csv_io.export_csv(csql.get_all_cards(self._db_path))

    def _resolve_row(self, row: dict) -> dict | None:
        if row.get('scryfall_id'):
            try:
                return self._scryfall.fetch_card(row['scryfall_id'])
            except NotFoundError:
                logger.warning("Scryfall id %s not found", row['scryfall_id'])
                return None
        page = self._scryfall.search_cards(csv_io.resolve_query(row))
        return page['data'][0] if page['data'] else None

    def import_collection(self, csv_content, currency_preference=None):
        currency = normalize_currency(currency_preference)
        rows = csv_io.parse_csv(csv_content)
        if not rows:
            raise ValidationError("No cards found in CSV")
        total = len(rows)
        imported = skipped = 0
        self._start_progress(total)
        try:
            for i, row in enumerate(rows, start=1):
                label = row['name'] or row['scryfall_id']
                try:
                    card = self._resolve_row(row)
                except CommandError as e:
                    logger.warning("Lookup failed for %s: %s", label, e)
                    card = None
                if card is None:
                    logger.warning("Skipping unresolved row: %s", label)
                    skipped += 1
                else:
                    args = {
                        'scryfall_id': card['id'],
                        'condition': row['condition'].upper() if row['condition'].upper() in config.CONDITIONS else 'NM',
                        'purchase_price': row['purchase_price'] or 0.0,
                        'quantity': row['quantity'],
                        'is_foil': row['is_foil'] or is_finish_foil(row['finish']),
                        'language': row['language'],
                        'finish': row['finish'],
                        'tags': csv_io.import_tags(row),
                    }
                    market = select_price(card.get('prices'), currency, args['is_foil'])
                    csql.insert_card(self._db_path, str(uuid.uuid4()), card, args,
                                     market if market is not None else args['purchase_price'])
                    imported += 1
                self._progress(i, total, f"Importing {label}")
                if self._request_delay and i < total:
                    time.sleep(self._request_delay)
        finally:
            self._finish_progress()
        logger.info("Imported %s cards, skipped %s", imported, skipped)
        return f"Imported {imported} cards, skipped {skipped} cards"

    # --- prices ---
    def update_prices(self, currency_preference=None):
        currency = normalize_currency(currency_preference)
        cards = csql.get_all_cards(self._db_path)
        total = len(cards)
        updated = 0
        self._start_progress(total)
        try:
            for i, c in enumerate(cards, start=1):
                try:
                    sc = self._scryfall.fetch_card(c['scryfall_id'])
                except CommandError as e:
                    logger.warning("Price fetch failed for %s: %s", c['name'], e)
                    sc = None
                price = select_price(sc.get('prices'), currency, c['is_foil']) if sc else None
                if price is None:
                    logger.warning("No %s price for %s, skipping", currency, c['name'])
                else:
                    csql.update_card_price(self._db_path, c['id'], price)
                    csql.insert_price_history(self._db_path, c['id'], price, currency)
                    updated += 1
                    logger.debug("%s -> %s %s", c['name'], price, currency)
                self._progress(i, total, f"Updating {c['name']}")
                if self._request_delay and i < total:
                    time.sleep(self._request_delay)
        finally:
            self._finish_progress()
        logger.info("Updated prices for %s cards", updated)
        return f"Updated prices for {updated} cards"

    # --- recognition ---
    def _rank_candidates(self, cards: list, target: int) -> list:
        ranked = []
        for c in cards:
            c = dict(c)
            c['similarity'] = None
            url = (c.get('image_uris') or {}).get('small')
            if url:
                try:
                    img = image_utils.load_image(self._scryfall.fetch_image(url))
                    c['similarity'] = card_features.hamming_distance(target, card_features.dhash(img))
                except CommandError as e:
                    logger.warning("Could not hash candidate %s: %s", c.get('name'), e)
            ranked.append(c)
        # Unhashable candidates sort last
        ranked.sort(key=lambda c: (c['similarity'] is None, c['similarity'] or 0))
        return ranked

    def recognize_card_with_features(self, image_data):
        img = image_utils.load_image(image_utils.decode_image_data(image_data))
        features = card_features.extract_features(img)
        name = image_utils.extract_card_name(img)
        query = card_features.build_search_query(features, name)
        page = self._scryfall.search_cards(query)
        if not page['data'] and name and query != name:
            logger.info("No match for %r, retrying with OCR text only", query)
            page = self._scryfall.search_cards(name)
        if not page['data'] and name:
            # OCR text is often a near miss; Scryfall's fuzzy lookup tolerates typos
            card = self._scryfall.named_fuzzy(name)
            page = {'data': [card] if card else []}
        top = page['data'][:config.RECOGNITION_CANDIDATES]
        return {
            'features': features.to_dict(),
            'detected_name': name,
            'feature_description': card_features.describe_features(features),
            'search_query': query,
            'candidates': self._rank_candidates(top, features.phash),
        }
