"""SQLite-backed document store for the catalog and daily plans.

Documents are JSON objects addressed by slash-separated paths, e.g.
``ProductList/1397329/Profile/latestPrice`` or ``Plans/2024-5-7``.
A document's collection is its path minus the last segment.
"""

import json
import logging
import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

from src.models import CatalogItem, Searchability, to_price

logger = logging.getLogger(__name__)

CATALOG_COLLECTION = "ProductList"
PLANS_COLLECTION = "Plans"
MEMBER_PLANS_COLLECTION = "MemberItemsPlans"

LATEST_PRICE = "latestPrice"
SEARCHABLE = "searchable"
SCRAPED_DATETIME = "scrapedDatetime"

_UPSERT_SQL = """
    INSERT INTO documents (path, collection, data, updated_at)
    VALUES (?, ?, ?, ?)
    ON CONFLICT(path) DO UPDATE SET
        data = excluded.data,
        updated_at = excluded.updated_at
"""


class DocumentNotFoundError(LookupError):
    """Raised when updating a document that does not exist."""

    def __init__(self, path: str):
        super().__init__(f"Document not found: {path}")
        self.path = path


def get_db_path() -> Path:
    """Get database path from env or default."""
    path = os.environ.get("DB_PATH", "data/prices.db")
    return Path(path)


@contextmanager
def get_connection(immediate: bool = False):
    """Context manager for SQLite connection.

    With ``immediate=True`` the write lock is taken before the first read,
    so a read-modify-write inside the block runs as one transaction.
    """
    db_path = get_db_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    try:
        if immediate:
            conn.execute("BEGIN IMMEDIATE")
        yield conn
        conn.commit()
    finally:
        conn.close()


def init_db() -> None:
    """Create tables if they don't exist."""
    with get_connection() as conn:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS documents (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                path TEXT NOT NULL UNIQUE,
                collection TEXT NOT NULL,
                data TEXT NOT NULL,
                updated_at TIMESTAMP NOT NULL
            )
        """)
        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_collection
            ON documents(collection, id)
        """)


def _collection_of(path: str) -> str:
    return path.rsplit("/", 1)[0]


def _row(path: str, data: dict) -> tuple:
    return (path, _collection_of(path), json.dumps(data, default=str), datetime.now().isoformat())


def get_document(conn: sqlite3.Connection, path: str) -> dict | None:
    """Read one document, or None if it doesn't exist."""
    row = conn.execute("SELECT data FROM documents WHERE path = ?", (path,)).fetchone()
    return json.loads(row["data"]) if row else None


def set_document(conn: sqlite3.Connection, path: str, data: dict) -> None:
    """Create or replace a document."""
    conn.execute(_UPSERT_SQL, _row(path, data))


def update_document(conn: sqlite3.Connection, path: str, fields: dict) -> None:
    """Overwrite the given fields of an existing document."""
    existing = get_document(conn, path)
    if existing is None:
        raise DocumentNotFoundError(path)
    set_document(conn, path, {**existing, **fields})


def write_batch(
    conn: sqlite3.Connection, writes: list[tuple[str, dict]], merge: bool = False
) -> None:
    """Write many documents in a single statement.

    ``merge=True`` keeps fields of existing documents that aren't being written.
    """
    if not writes:
        return
    rows = []
    for path, data in writes:
        if merge:
            data = {**(get_document(conn, path) or {}), **data}
        rows.append(_row(path, data))
    conn.executemany(_UPSERT_SQL, rows)
    logger.debug("Batch wrote %d documents", len(rows))


def list_documents(conn: sqlite3.Connection, collection: str) -> list[str]:
    """Ids of the documents in a collection, in insertion order."""
    rows = conn.execute(
        "SELECT path FROM documents WHERE collection = ? ORDER BY id",
        (collection,),
    ).fetchall()
    return [row["path"].rsplit("/", 1)[1] for row in rows]


# ── Catalog ───────────────────────────────────────────────────────────────────

def item_path(item_id: str) -> str:
    return f"{CATALOG_COLLECTION}/{item_id}"


def profile_path(item_id: str, key: str) -> str:
    return f"{CATALOG_COLLECTION}/{item_id}/Profile/{key}"


def plan_path(plan_id: str, collection: str = PLANS_COLLECTION) -> str:
    return f"{collection}/{plan_id}"


def add_catalog_item(
    conn: sqlite3.Connection,
    item_id: str,
    price: float | None,
    trade_datetime: str,
    name: str = "",
) -> bool:
    """Register a purchased item, or refresh its price from a newer receipt.

    Returns True if a new catalog entry was created.
    """
    latest = {
        "itemId": item_id,
        "name": name,
        "price": price,
        "tradeDatetime": trade_datetime,
    }
    if get_document(conn, item_path(item_id)) is None:
        set_document(conn, item_path(item_id), {"itemId": item_id})
        set_document(conn, profile_path(item_id, LATEST_PRICE), latest)
        set_document(conn, profile_path(item_id, SEARCHABLE), {"searchable": None})
        set_document(conn, profile_path(item_id, SCRAPED_DATETIME), {"scrapedDatetime": None})
        logger.info("Catalog: added item %s @ %s", item_id, price)
        return True

    current = get_document(conn, profile_path(item_id, LATEST_PRICE)) or {}
    previous_trade = current.get("tradeDatetime")
    if not previous_trade or datetime.fromisoformat(trade_datetime) > datetime.fromisoformat(previous_trade):
        set_document(conn, profile_path(item_id, LATEST_PRICE), latest)
        logger.info("Catalog: item %s price refreshed to %s", item_id, price)
    else:
        logger.debug("Catalog: item %s receipt is older than stored price, ignored", item_id)
    return False


def load_catalog(conn: sqlite3.Connection) -> list[CatalogItem]:
    """Read every catalog item with its profile fields, in catalog order."""
    items: list[CatalogItem] = []
    for item_id in list_documents(conn, CATALOG_COLLECTION):
        latest = get_document(conn, profile_path(item_id, LATEST_PRICE)) or {}
        searchable = get_document(conn, profile_path(item_id, SEARCHABLE)) or {}
        scraped = get_document(conn, profile_path(item_id, SCRAPED_DATETIME)) or {}
        items.append(CatalogItem(
            item_id=item_id,
            price=to_price(latest.get("price")),
            trade_datetime=latest.get("tradeDatetime"),
            searchable=Searchability.parse(searchable.get("searchable")),
            scraped_at=scraped.get("scrapedDatetime"),
            name=latest.get("name", ""),
        ))
    return items
