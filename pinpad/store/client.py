"""
Share Store Client

Saves a snippet or a file under a short code with an expiry and loads it
back. Independent of any live session: this is the path for handing content
over when no peer is online.

Expiry:
- Snippets live 72 hours, files 24 hours
- A record past its expiry is reported as Expired even while it still
  physically exists; ``purge_expired`` removes such records for good
"""

import logging
import time
from dataclasses import replace
from typing import Callable, Optional

import aiosqlite

from ..errors import Expired, NotFound, StoreUnavailable
from .blobs import BlobStorage
from .codes import generate_store_code, normalize_store_code
from .database import StoreDatabase
from .models import TTL_BY_KIND, ItemKind, StoredItem

logger = logging.getLogger(__name__)

# Fresh codes to try when an insert collides with an existing code
MAX_CODE_ATTEMPTS = 5

DEFAULT_LANGUAGE = 'plaintext'


class RemoteStoreClient:
    """
    Time-limited key/payload store addressed by share codes.

    Args:
        database: Record persistence
        blobs: File payload persistence
        clock: Returns the current Unix time; injectable for tests
    """

    def __init__(self, database: StoreDatabase, blobs: BlobStorage,
                 clock: Callable[[], float] = time.time):
        self.database = database
        self.blobs = blobs
        self.clock = clock

    async def open(self):
        try:
            await self.database.connect()
        except (aiosqlite.Error, OSError) as e:
            raise StoreUnavailable(f"Could not open share store: {e}") from e

    async def close(self):
        await self.database.close()

    # === Save ===

    async def save_snippet(self, content: str, language: str = DEFAULT_LANGUAGE) -> StoredItem:
        """
        Save text for 72 hours.

        Raises:
            StoreUnavailable: On backend failure
        """
        return await self._insert(
            ItemKind.SNIPPET,
            content=content,
            language=language or DEFAULT_LANGUAGE,
        )

    async def save_file(self, name: str, data: bytes,
                        mime_type: str = 'application/octet-stream') -> StoredItem:
        """
        Upload a file payload and save its metadata for 24 hours.

        Raises:
            StoreUnavailable: On backend failure
        """
        item = await self._insert(
            ItemKind.FILE,
            name=name,
            size=len(data),
            mime_type=mime_type,
        )

        # The row reserves the code, so only this call writes its blob
        try:
            url = await self.blobs.put(item.code, data)
            await self.database.set_item_url(item.code, url)
        except (aiosqlite.Error, OSError) as e:
            logger.error(f"Failed to upload {name} as {item.code}: {e}")
            await self._release(item.code)
            raise StoreUnavailable("Failed to save. Check the share store.") from e

        return replace(item, url=url)

    async def _insert(self, kind: ItemKind, **fields) -> StoredItem:
        for attempt in range(MAX_CODE_ATTEMPTS):
            code = generate_store_code()
            if await self._lookup(code) is not None:
                logger.debug(f"Share code {code} taken, retrying")
                continue

            created_at = self.clock()
            item = StoredItem(
                code=code,
                kind=kind,
                created_at=created_at,
                expires_at=created_at + TTL_BY_KIND[kind].total_seconds(),
                **fields
            )
            try:
                await self.database.insert_item(item)
            except aiosqlite.IntegrityError:
                logger.debug(f"Share code {code} collided on insert, retrying")
                continue
            except aiosqlite.Error as e:
                logger.error(f"Failed to save {kind.value}: {e}")
                raise StoreUnavailable("Failed to save. Check the share store.") from e

            logger.info(f"Saved {kind.value} as {code}")
            return item

        raise StoreUnavailable("Could not allocate a share code")

    async def _release(self, code: str):
        try:
            await self.database.delete_item(code)
        except aiosqlite.Error as e:
            logger.warning(f"Could not release share code {code}: {e}")

    # === Load ===

    async def load(self, code: str) -> StoredItem:
        """
        Load the item saved under ``code`` (case-insensitive).

        Raises:
            NotFound: If nothing was saved under the code
            Expired: If the item is past its expiry
            StoreUnavailable: On backend failure
        """
        item = await self._lookup(normalize_store_code(code))
        if item is None:
            raise NotFound()
        if item.is_expired(self.clock()):
            raise Expired()
        return item

    async def fetch_file(self, item: StoredItem) -> bytes:
        """
        Download the payload of a file item.

        Raises:
            NotFound: If the payload is gone
            StoreUnavailable: On backend failure
        """
        if item.kind != ItemKind.FILE or not item.url:
            raise NotFound("This code does not hold a file.")
        try:
            return await self.blobs.get(item.url)
        except FileNotFoundError as e:
            raise NotFound() from e
        except (OSError, ValueError) as e:
            raise StoreUnavailable("Failed to load. Check the share store.") from e

    async def _lookup(self, code: str) -> Optional[StoredItem]:
        try:
            return await self.database.get_item(code)
        except (aiosqlite.Error, ValueError) as e:
            logger.error(f"Failed to load {code}: {e}")
            raise StoreUnavailable("Failed to load. Check the share store.") from e

    # === Maintenance ===

    async def purge_expired(self) -> int:
        """Delete expired records and their payloads. Returns how many were removed."""
        try:
            expired = await self.database.get_expired_items(self.clock())
            for item in expired:
                if item.url:
                    await self.blobs.delete(item.url)
                await self.database.delete_item(item.code)
        except (aiosqlite.Error, OSError) as e:
            raise StoreUnavailable(f"Failed to purge expired items: {e}") from e

        if expired:
            logger.info(f"Purged {len(expired)} expired items")
        return len(expired)
