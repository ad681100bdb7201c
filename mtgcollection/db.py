# mtgcollection/db.py
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS sets (
    code TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    release_date TEXT,
    icon_uri TEXT,
    set_type TEXT,
    card_count INTEGER,
    scryfall_id TEXT
);
CREATE TABLE IF NOT EXISTS cards (
    id TEXT PRIMARY KEY,
    scryfall_id TEXT NOT NULL,
    name TEXT NOT NULL,
    set_code TEXT NOT NULL,
    collector_number TEXT NOT NULL,
    condition TEXT NOT NULL DEFAULT 'NM',
    purchase_price REAL NOT NULL DEFAULT 0,
    current_price REAL NOT NULL DEFAULT 0,
    quantity INTEGER NOT NULL DEFAULT 1,
    is_foil INTEGER NOT NULL DEFAULT 0,
    image_uri TEXT,
    language TEXT NOT NULL DEFAULT 'English',
    finish TEXT NOT NULL DEFAULT 'nonfoil',
    added_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
CREATE INDEX IF NOT EXISTS idx_cards_name ON cards(name);
CREATE INDEX IF NOT EXISTS idx_cards_set ON cards(set_code);
-- One price point per card and calendar day
CREATE TABLE IF NOT EXISTS price_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    card_id TEXT NOT NULL,
    date TEXT NOT NULL,
    price REAL NOT NULL,
    currency TEXT NOT NULL DEFAULT 'USD',
    FOREIGN KEY(card_id) REFERENCES cards(id) ON DELETE CASCADE
);
CREATE UNIQUE INDEX IF NOT EXISTS idx_price_history_card_date ON price_history(card_id, date);
CREATE TABLE IF NOT EXISTS wishlist (
    id TEXT PRIMARY KEY,
    scryfall_id TEXT NOT NULL,
    name TEXT NOT NULL,
    set_code TEXT NOT NULL,
    collector_number TEXT NOT NULL,
    image_uri TEXT,
    target_price REAL,
    notes TEXT,
    added_date TEXT NOT NULL,
    priority INTEGER NOT NULL DEFAULT 1
);
CREATE TABLE IF NOT EXISTS tags (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE,
    color TEXT NOT NULL DEFAULT '#3b82f6'
);
CREATE TABLE IF NOT EXISTS card_tags (
    card_id TEXT NOT NULL,
    tag_id INTEGER NOT NULL,
    PRIMARY KEY (card_id, tag_id),
    FOREIGN KEY(card_id) REFERENCES cards(id) ON DELETE CASCADE,
    FOREIGN KEY(tag_id) REFERENCES tags(id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_card_tags_tag ON card_tags(tag_id);
"""

# Columns added after the first release; older databases get them on startup
_CARD_MIGRATIONS = {
    'language': "ALTER TABLE cards ADD COLUMN language TEXT NOT NULL DEFAULT 'English'",
    'finish': "ALTER TABLE cards ADD COLUMN finish TEXT NOT NULL DEFAULT 'nonfoil'",
    'added_at': "ALTER TABLE cards ADD COLUMN added_at TIMESTAMP",
}
_SET_MIGRATIONS = {
    'set_type': "ALTER TABLE sets ADD COLUMN set_type TEXT",
    'card_count': "ALTER TABLE sets ADD COLUMN card_count INTEGER",
    'scryfall_id': "ALTER TABLE sets ADD COLUMN scryfall_id TEXT",
}

_initialized: set[str] = set()


def _open_conn(path: Path) -> sqlite3.Connection:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(p), timeout=30)
    conn.execute("PRAGMA busy_timeout=5000")
    conn.execute("PRAGMA foreign_keys=ON")
    conn.row_factory = sqlite3.Row
    return conn


def _migrate(conn: sqlite3.Connection, table: str, migrations: dict[str, str]) -> None:
    cols = {r[1] for r in conn.execute(f"PRAGMA table_info({table})")}
    for col, ddl in migrations.items():
        if col not in cols:
            logger.info("Migrating %s: adding column %s", table, col)
            conn.execute(ddl)


def ensure_db(path: Path) -> None:
    """Create tables and run column migrations once per database file."""
    key = str(Path(path).resolve())
    if key in _initialized:
        return
    conn = _open_conn(path)
    try:
        # Columns must exist before the schema script builds indexes on them
        tables = {r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
        if 'cards' in tables:
            _migrate(conn, 'cards', _CARD_MIGRATIONS)
        if 'sets' in tables:
            _migrate(conn, 'sets', _SET_MIGRATIONS)
        conn.executescript(SCHEMA)
        # WAL so readers don't block the price refresh writer
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.commit()
    finally:
        conn.close()
    _initialized.add(key)


@contextmanager
def connect(path: Path) -> Iterator[sqlite3.Connection]:
    """Open a connection, commit on success, roll back on error, always close."""
    ensure_db(path)
    conn = _open_conn(path)
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()
