# mtgcollection/tags_sql.py
import logging
import sqlite3
from pathlib import Path
from typing import Any, Dict, List, Tuple

from . import db
from .errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_COLOR = '#3b82f6'


def parse_tag_string(text: str) -> Tuple[str, str]:
    """Split ``"Name:Color"`` into its parts; a missing color gets the default."""
    name, _, color = str(text or '').partition(':')
    return name.strip(), (color.strip() or DEFAULT_COLOR)


def format_tag_string(tags: List[Dict[str, Any]]) -> str:
    return ';'.join(f"{t['name']}:{t['color']}" for t in tags)


def ensure_tag(conn: sqlite3.Connection, name: str, color: str = DEFAULT_COLOR) -> int:
    r = conn.execute("SELECT id FROM tags WHERE name = ?", (name,)).fetchone()
    if r is not None:
        return int(r[0])
    cur = conn.execute("INSERT INTO tags (name, color) VALUES (?, ?)", (name, color or DEFAULT_COLOR))
    logger.debug("Created tag %s", name)
    return int(cur.lastrowid)


def create_tag(path: Path, name: str, color: str = DEFAULT_COLOR) -> int:
    name = str(name or '').strip()
    if not name:
        raise ValidationError("Tag name is required")
    with db.connect(path) as conn:
        if conn.execute("SELECT 1 FROM tags WHERE name = ?", (name,)).fetchone():
            raise ValidationError(f"Tag already exists: {name}")
        cur = conn.execute(
            "INSERT INTO tags (name, color) VALUES (?, ?)", (name, str(color or DEFAULT_COLOR))
        )
        return int(cur.lastrowid)


def delete_tag(path: Path, tag_id: int) -> None:
    with db.connect(path) as conn:
        conn.execute("DELETE FROM card_tags WHERE tag_id = ?", (int(tag_id),))
        cur = conn.execute("DELETE FROM tags WHERE id = ?", (int(tag_id),))
        if cur.rowcount == 0:
            raise NotFoundError(f"Tag not found: {tag_id}")


def get_all_tags(path: Path) -> List[Dict[str, Any]]:
    with db.connect(path) as conn:
        rows = conn.execute("SELECT id, name, color FROM tags ORDER BY name COLLATE NOCASE").fetchall()
    return [dict(r) for r in rows]


def get_card_tags(path: Path, card_id: str) -> List[Dict[str, Any]]:
    with db.connect(path) as conn:
        rows = conn.execute(
            """
            SELECT t.id, t.name, t.color
            FROM tags t JOIN card_tags ct ON ct.tag_id = t.id
            WHERE ct.card_id = ?
            ORDER BY t.name COLLATE NOCASE
            """,
            (card_id,),
        ).fetchall()
    return [dict(r) for r in rows]


def add_tag_to_card(path: Path, card_id: str, tag_id: int) -> None:
    with db.connect(path) as conn:
        if conn.execute("SELECT 1 FROM cards WHERE id = ?", (card_id,)).fetchone() is None:
            raise NotFoundError(f"Card not found: {card_id}")
        if conn.execute("SELECT 1 FROM tags WHERE id = ?", (int(tag_id),)).fetchone() is None:
            raise NotFoundError(f"Tag not found: {tag_id}")
        conn.execute(
            "INSERT OR IGNORE INTO card_tags (card_id, tag_id) VALUES (?, ?)", (card_id, int(tag_id))
        )


def remove_tag_from_card(path: Path, card_id: str, tag_id: int) -> None:
    with db.connect(path) as conn:
        conn.execute("DELETE FROM card_tags WHERE card_id = ? AND tag_id = ?", (card_id, int(tag_id)))
