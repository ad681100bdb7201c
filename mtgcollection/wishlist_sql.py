# mtgcollection/wishlist_sql.py
import logging
from datetime import date as _date
from pathlib import Path
from typing import Any, Dict, List, Optional

from . import db
from .errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

PRIORITIES = (1, 2, 3)


def _check_priority(priority) -> int:
    try:
        p = int(priority)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid priority: {priority!r}")
    if p not in PRIORITIES:
        raise ValidationError(f"Priority must be 1, 2 or 3, got {p}")
    return p


def _price_or_none(value) -> Optional[float]:
    if value is None or value == '':
        return None
    try:
        price = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid target price: {value!r}")
    if price < 0:
        raise ValidationError("Target price cannot be negative")
    return price


def add_to_wishlist(path: Path, item_id: str, card: Dict[str, Any], target_price=None,
                    notes: Optional[str] = None, priority: int = 1) -> str:
    p = _check_priority(priority)
    uris = card.get('image_uris') or {}
    with db.connect(path) as conn:
        conn.execute(
            """
            INSERT INTO wishlist (id, scryfall_id, name, set_code, collector_number, image_uri,
                                  target_price, notes, added_date, priority)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                item_id,
                str(card.get('id') or ''),
                str(card.get('name') or ''),
                str(card.get('set') or card.get('set_code') or ''),
                str(card.get('collector_number') or ''),
                uris.get('normal') or uris.get('small') or card.get('image_uri'),
                _price_or_none(target_price),
                notes or None,
                _date.today().isoformat(),
                p,
            ),
        )
    logger.info("Added %s to wishlist", card.get('name'))
    return item_id


def remove_from_wishlist(path: Path, item_id: str) -> None:
    with db.connect(path) as conn:
        cur = conn.execute("DELETE FROM wishlist WHERE id = ?", (item_id,))
        if cur.rowcount == 0:
            raise NotFoundError(f"Wishlist card not found: {item_id}")


def update_wishlist_card(path: Path, item_id: str, target_price=None,
                         notes: Optional[str] = None, priority: int = 1) -> None:
    p = _check_priority(priority)
    with db.connect(path) as conn:
        cur = conn.execute(
            "UPDATE wishlist SET target_price = ?, notes = ?, priority = ? WHERE id = ?",
            (_price_or_none(target_price), notes or None, p, item_id),
        )
        if cur.rowcount == 0:
            raise NotFoundError(f"Wishlist card not found: {item_id}")


def get_wishlist(path: Path) -> List[Dict[str, Any]]:
    with db.connect(path) as conn:
        rows = conn.execute(
            """
            SELECT id, scryfall_id, name, set_code, collector_number, image_uri,
                   target_price, notes, added_date, priority
            FROM wishlist
            ORDER BY priority DESC, added_date DESC, rowid DESC
            """
        ).fetchall()
    return [dict(r) for r in rows]
