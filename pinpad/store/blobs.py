"""
Blob Storage

Uploaded file payloads live on disk, one file per share code, and the store
record keeps a ``file://`` URI pointing at it.

Storage Layout:
```
blobs/
├── AB/
│   └── ABCDEF        # payload of share code ABCDEF
└── temp/             # partial writes, one file per writer
```
"""

import uuid
from pathlib import Path
from urllib.parse import urlparse
from urllib.request import url2pathname

import aiofiles
import aiofiles.os


class BlobStorage:
    """Local payload storage addressed by share code."""

    def __init__(self, blob_dir: Path):
        self.blob_dir = Path(blob_dir)
        self.temp_dir = self.blob_dir / "temp"
        self.temp_dir.mkdir(parents=True, exist_ok=True)

    def _blob_path(self, code: str) -> Path:
        # Use first 2 characters as subdirectory
        return self.blob_dir / code[:2] / code

    async def put(self, code: str, data: bytes) -> str:
        """Store a payload. Returns its URI."""
        blob_path = self._blob_path(code)
        await aiofiles.os.makedirs(blob_path.parent, exist_ok=True)

        # Write atomically (write to temp, then rename)
        temp_path = self.temp_dir / f"{code}-{uuid.uuid4().hex}.tmp"
        async with aiofiles.open(temp_path, 'wb') as f:
            await f.write(data)
        await aiofiles.os.replace(temp_path, blob_path)

        return blob_path.resolve().as_uri()

    async def get(self, url: str) -> bytes:
        """Read the payload behind a URI returned by ``put``."""
        async with aiofiles.open(self._path_from_url(url), 'rb') as f:
            return await f.read()

    async def delete(self, url: str) -> bool:
        path = self._path_from_url(url)
        if not path.exists():
            return False
        await aiofiles.os.remove(path)
        return True

    @staticmethod
    def _path_from_url(url: str) -> Path:
        parsed = urlparse(url)
        if parsed.scheme != 'file':
            raise ValueError(f"Unsupported blob URL: {url}")
        return Path(url2pathname(parsed.path))
