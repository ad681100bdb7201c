# mtgcollection/sets_sql.py
from pathlib import Path
from typing import Any, Dict, List

from . import db


def upsert_set(conn, s: Dict[str, Any]) -> None:
    conn.execute(
        """
        INSERT INTO sets (code, name, release_date, icon_uri, set_type, card_count, scryfall_id)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(code) DO UPDATE SET
            name = excluded.name,
            release_date = excluded.release_date,
            icon_uri = excluded.icon_uri,
            set_type = excluded.set_type,
            card_count = excluded.card_count,
            scryfall_id = excluded.scryfall_id
        """,
        (
            s['code'], s['name'], s.get('released_at'), s.get('icon_svg_uri'),
            s.get('set_type'), s.get('card_count'), s.get('id'),
        ),
    )


def save_sets(path: Path, sets: List[Dict[str, Any]]) -> int:
    with db.connect(path) as conn:
        for s in sets:
            upsert_set(conn, s)
    return len(sets)


def count_sets(path: Path) -> int:
    with db.connect(path) as conn:
        return int(conn.execute("SELECT COUNT(*) FROM sets").fetchone()[0])


def get_sets(path: Path) -> List[Dict[str, Any]]:
    """Stored sets newest first, in the same shape the Scryfall client returns."""
    with db.connect(path) as conn:
        rows = conn.execute(
            """
            SELECT code, name, release_date, icon_uri, set_type, card_count, scryfall_id
            FROM sets
            ORDER BY release_date IS NULL, release_date DESC, code
            """
        ).fetchall()
    return [
        {
            'id': r['scryfall_id'] or '',
            'code': r['code'],
            'name': r['name'],
            'released_at': r['release_date'],
            'icon_svg_uri': r['icon_uri'],
            'set_type': r['set_type'],
            'card_count': r['card_count'],
        }
        for r in rows
    ]
