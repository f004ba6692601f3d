"""
SQLite Database for the Share Store

Design Decision: Why SQLite?
============================

Options Considered:
1. SQLite - Embedded, no server, ACID compliant
2. Hosted document store - What a public deployment would use, but needs
   credentials and a network round-trip for every test
3. JSON files - Simple, but no uniqueness guarantee on codes

Decision: SQLite with aiosqlite
- Zero configuration
- The primary key on ``code`` turns a code collision into an IntegrityError
  the client can retry on
- Async support via aiosqlite

Tables:
- items: one row per saved snippet or file, keyed by share code
"""

import logging
from pathlib import Path
from typing import List, Optional

import aiosqlite

from .models import ItemKind, StoredItem

logger = logging.getLogger(__name__)

# Schema version for migrations
SCHEMA_VERSION = 1


class StoreDatabase:
    """SQLite persistence for share store items."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self._connection: Optional[aiosqlite.Connection] = None

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    @property
    def _db(self) -> aiosqlite.Connection:
        if self._connection is None:
            raise aiosqlite.OperationalError("Store database is not connected")
        return self._connection

    async def connect(self):
        """Open database connection."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._connection = await aiosqlite.connect(self.db_path)
        self._connection.row_factory = aiosqlite.Row

        await self._init_schema()

        logger.info(f"Store database connected: {self.db_path}")

    async def close(self):
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    async def _init_schema(self):
        """Initialize database schema."""
        await self._db.executescript("""
            CREATE TABLE IF NOT EXISTS items (
                code TEXT PRIMARY KEY,
                kind TEXT NOT NULL,
                content TEXT,
                language TEXT,
                name TEXT,
                url TEXT,
                size INTEGER,
                mime_type TEXT,
                created_at REAL NOT NULL,
                expires_at REAL NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_items_expires_at ON items(expires_at);
        """)
        await self._db.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
        await self._db.commit()

    async def insert_item(self, item: StoredItem):
        """
        Insert a new item.

        Raises:
            aiosqlite.IntegrityError: If the code is already taken
        """
        await self._db.execute(
            """INSERT INTO items (code, kind, content, language, name, url, size,
                                  mime_type, created_at, expires_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (item.code, item.kind.value, item.content, item.language, item.name,
             item.url, item.size, item.mime_type, item.created_at, item.expires_at)
        )
        await self._db.commit()

    async def set_item_url(self, code: str, url: str):
        """Attach the payload reference to a reserved file item."""
        await self._db.execute("UPDATE items SET url = ? WHERE code = ?", (url, code))
        await self._db.commit()

    async def get_item(self, code: str) -> Optional[StoredItem]:
        """Get an item by code, expired or not."""
        async with self._db.execute(
            "SELECT * FROM items WHERE code = ?", (code,)
        ) as cursor:
            row = await cursor.fetchone()
            return _row_to_item(row) if row else None

    async def get_expired_items(self, now: float) -> List[StoredItem]:
        """Get every item whose expiry has passed."""
        async with self._db.execute(
            "SELECT * FROM items WHERE expires_at < ?", (now,)
        ) as cursor:
            rows = await cursor.fetchall()
            return [_row_to_item(row) for row in rows]

    async def delete_item(self, code: str):
        """Delete an item record."""
        await self._db.execute("DELETE FROM items WHERE code = ?", (code,))
        await self._db.commit()

    async def count_items(self) -> int:
        async with self._db.execute("SELECT COUNT(*) FROM items") as cursor:
            row = await cursor.fetchone()
            return row[0]


def _row_to_item(row: aiosqlite.Row) -> StoredItem:
    return StoredItem(
        code=row['code'],
        kind=ItemKind(row['kind']),
        content=row['content'],
        language=row['language'],
        name=row['name'],
        url=row['url'],
        size=row['size'],
        mime_type=row['mime_type'],
        created_at=row['created_at'],
        expires_at=row['expires_at'],
    )
