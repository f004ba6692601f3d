"""
Store Module - Time-limited share store

Snippets and files saved under short codes for asynchronous handoff.
"""

from pathlib import Path

from .blobs import BlobStorage
from .client import RemoteStoreClient
from .codes import STORE_CODE_ALPHABET, generate_store_code, normalize_store_code
from .database import StoreDatabase
from .models import FILE_TTL, SNIPPET_TTL, ItemKind, StoredItem


def create_store(data_dir: Path, **kwargs) -> RemoteStoreClient:
    """Build an (unopened) store client rooted at ``data_dir``."""
    data_dir = Path(data_dir)
    return RemoteStoreClient(
        StoreDatabase(data_dir / "store.db"),
        BlobStorage(data_dir / "blobs"),
        **kwargs
    )


__all__ = [
    'BlobStorage',
    'RemoteStoreClient',
    'STORE_CODE_ALPHABET',
    'generate_store_code',
    'normalize_store_code',
    'StoreDatabase',
    'FILE_TTL',
    'SNIPPET_TTL',
    'ItemKind',
    'StoredItem',
    'create_store',
]
