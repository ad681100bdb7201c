# mtgcollection/collection_sql.py
import logging
import sqlite3
from datetime import date as _date
from pathlib import Path
from typing import Any, Dict, List, Optional

from . import db
from . import tags_sql
from .errors import NotFoundError

logger = logging.getLogger(__name__)

CARD_COLUMNS = (
    'id', 'scryfall_id', 'name', 'set_code', 'collector_number', 'condition',
    'purchase_price', 'current_price', 'quantity', 'is_foil', 'image_uri',
    'language', 'finish', 'added_at',
)

# Whitelist: sort keys end up in the SQL text
SORT_COLUMNS = {
    'name': 'name COLLATE NOCASE',
    'set_code': 'set_code',
    'collector_number': 'CAST(collector_number AS INTEGER)',
    'condition': 'condition',
    'purchase_price': 'purchase_price',
    'current_price': 'current_price',
    'quantity': 'quantity',
    'added_at': 'added_at',
    'value': 'current_price * quantity',
    'gain': '(current_price - purchase_price) * quantity',
}


def _row_to_card(r: sqlite3.Row) -> Dict[str, Any]:
    card = {k: r[k] for k in CARD_COLUMNS}
    card['is_foil'] = bool(card['is_foil'])
    card['purchase_price'] = float(card['purchase_price'] or 0.0)
    card['current_price'] = float(card['current_price'] or 0.0)
    card['quantity'] = int(card['quantity'] or 0)
    return card


def _attach_tags(conn: sqlite3.Connection, cards: List[Dict[str, Any]]) -> None:
    if not cards:
        return
    by_id = {c['id']: c for c in cards}
    for c in cards:
        c['tags'] = []
    rows = conn.execute(
        """
        SELECT ct.card_id, t.id, t.name, t.color
        FROM card_tags ct JOIN tags t ON t.id = ct.tag_id
        ORDER BY t.name COLLATE NOCASE
        """
    ).fetchall()
    for r in rows:
        card = by_id.get(r['card_id'])
        if card is not None:
            card['tags'].append({'id': r['id'], 'name': r['name'], 'color': r['color']})


def insert_card(path: Path, card_id: str, card: Dict[str, Any], args: Dict[str, Any],
                current_price: float) -> str:
    """Insert a collection row built from a normalized Scryfall card and AddCardArgs."""
    uris = card.get('image_uris') or {}
    with db.connect(path) as conn:
        conn.execute(
            """
            INSERT INTO cards (id, scryfall_id, name, set_code, collector_number, condition,
                               purchase_price, current_price, quantity, is_foil, image_uri,
                               language, finish, added_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, CURRENT_TIMESTAMP)
            """,
            (
                card_id,
                card.get('id') or args.get('scryfall_id'),
                card.get('name') or '',
                card.get('set') or '',
                card.get('collector_number') or '',
                args['condition'],
                float(args['purchase_price']),
                float(current_price),
                int(args['quantity']),
                1 if args.get('is_foil') else 0,
                uris.get('normal') or uris.get('small') or None,
                args.get('language') or 'English',
                args.get('finish') or 'nonfoil',
            ),
        )
        for entry in args.get('tags') or []:
            name, color = tags_sql.parse_tag_string(entry)
            if not name:
                continue
            tag_id = tags_sql.ensure_tag(conn, name, color)
            conn.execute(
                "INSERT OR IGNORE INTO card_tags (card_id, tag_id) VALUES (?, ?)", (card_id, tag_id)
            )
    logger.debug("Inserted card %s (%s)", card_id, card.get('name'))
    return card_id


def get_all_cards(path: Path, search_term: str = '', set_code: str = '',
                  tag_id: Optional[int] = None, foil_only: bool = False,
                  sort_by: str = 'name', sort_order: str = 'asc') -> List[Dict[str, Any]]:
    where = []
    params: list = []
    term = str(search_term or '').strip()
    if term:
        where.append("(name LIKE ? COLLATE NOCASE OR set_code LIKE ? COLLATE NOCASE)")
        params += [f"%{term}%", f"%{term}%"]
    if set_code:
        where.append("set_code = ?")
        params.append(str(set_code).lower())
    if tag_id not in (None, ''):
        where.append("id IN (SELECT card_id FROM card_tags WHERE tag_id = ?)")
        params.append(int(tag_id))
    if foil_only:
        where.append("is_foil = 1")
    order = SORT_COLUMNS.get(str(sort_by or 'name'), SORT_COLUMNS['name'])
    direction = 'DESC' if str(sort_order or '').lower() == 'desc' else 'ASC'
    sql = f"SELECT {', '.join(CARD_COLUMNS)} FROM cards"
    if where:
        sql += " WHERE " + " AND ".join(where)
    sql += f" ORDER BY {order} {direction}, id ASC"
    with db.connect(path) as conn:
        cards = [_row_to_card(r) for r in conn.execute(sql, params).fetchall()]
        _attach_tags(conn, cards)
    return cards


def get_card(path: Path, card_id: str) -> Dict[str, Any]:
    with db.connect(path) as conn:
        r = conn.execute(
            f"SELECT {', '.join(CARD_COLUMNS)} FROM cards WHERE id = ?", (card_id,)
        ).fetchone()
        if r is None:
            raise NotFoundError(f"Card not found: {card_id}")
        card = _row_to_card(r)
        _attach_tags(conn, [card])
    return card


def get_collection_sets(path: Path) -> List[str]:
    with db.connect(path) as conn:
        rows = conn.execute("SELECT DISTINCT set_code FROM cards ORDER BY set_code").fetchall()
    return [r[0] for r in rows if r[0]]


def _require_changed(cur: sqlite3.Cursor, card_id: str) -> None:
    if cur.rowcount == 0:
        raise NotFoundError(f"Card not found: {card_id}")


def remove_card(path: Path, card_id: str) -> None:
    with db.connect(path) as conn:
        # Cascades cover these too; explicit deletes keep older databases without FKs clean
        conn.execute("DELETE FROM price_history WHERE card_id = ?", (card_id,))
        conn.execute("DELETE FROM card_tags WHERE card_id = ?", (card_id,))
        _require_changed(conn.execute("DELETE FROM cards WHERE id = ?", (card_id,)), card_id)
    logger.info("Removed card %s", card_id)


def update_card_details(path: Path, card_id: str, condition: str, language: str,
                        purchase_price: float) -> None:
    with db.connect(path) as conn:
        cur = conn.execute(
            "UPDATE cards SET condition = ?, language = ?, purchase_price = ? WHERE id = ?",
            (condition, language, float(purchase_price), card_id),
        )
        _require_changed(cur, card_id)


def update_card_quantity(path: Path, card_id: str, quantity: int) -> None:
    with db.connect(path) as conn:
        cur = conn.execute("UPDATE cards SET quantity = ? WHERE id = ?", (int(quantity), card_id))
        _require_changed(cur, card_id)


def update_card_price(path: Path, card_id: str, price: float) -> None:
    with db.connect(path) as conn:
        cur = conn.execute("UPDATE cards SET current_price = ? WHERE id = ?", (float(price), card_id))
        _require_changed(cur, card_id)


def insert_price_history(path: Path, card_id: str, price: float, currency: str,
                         day: Optional[str] = None) -> None:
    """Record today's price for a card; a second point on the same day replaces the first."""
    day = day or _date.today().isoformat()
    with db.connect(path) as conn:
        conn.execute(
            """
            INSERT INTO price_history (card_id, date, price, currency) VALUES (?, ?, ?, ?)
            ON CONFLICT(card_id, date) DO UPDATE SET price = excluded.price,
                                                     currency = excluded.currency
            """,
            (card_id, day, float(price), currency),
        )


def get_card_price_history(path: Path, card_id: str) -> List[Dict[str, Any]]:
    with db.connect(path) as conn:
        rows = conn.execute(
            "SELECT date, price, currency FROM price_history WHERE card_id = ? ORDER BY date ASC",
            (card_id,),
        ).fetchall()
    return [{'date': r['date'], 'price': float(r['price']), 'currency': r['currency']} for r in rows]


def get_portfolio_history(path: Path) -> List[Dict[str, Any]]:
    with db.connect(path) as conn:
        investment = conn.execute(
            "SELECT COALESCE(SUM(purchase_price * quantity), 0) FROM cards"
        ).fetchone()[0]
        rows = conn.execute(
            """
            SELECT ph.date AS date, SUM(ph.price * c.quantity) AS total_value
            FROM price_history ph JOIN cards c ON c.id = ph.card_id
            GROUP BY ph.date
            ORDER BY ph.date ASC
            """
        ).fetchall()
    return [
        {
            'date': r['date'],
            'total_value': float(r['total_value'] or 0.0),
            'total_investment': float(investment or 0.0),
        }
        for r in rows
    ]
