"""
Transfer records.

An ``IncomingTransfer`` lives from FILE_META until its byte count reaches the
declared size; it then becomes an immutable ``CompletedFile``.
"""

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

import aiofiles

DEFAULT_MIME_TYPE = 'application/octet-stream'


@dataclass
class IncomingTransfer:
    """The one file currently being received."""
    name: str
    declared_size: int
    mime_type: str = DEFAULT_MIME_TYPE
    chunks: List[bytes] = field(default_factory=list)
    received_size: int = 0
    started_at: float = field(default_factory=time.time)

    @property
    def progress_percent(self) -> float:
        """Received share of the declared size, capped at 100."""
        if self.declared_size == 0:
            return 100.0
        return min(100.0, self.received_size / self.declared_size * 100)

    @property
    def is_complete(self) -> bool:
        return self.received_size >= self.declared_size

    def append(self, chunk: bytes):
        self.chunks.append(chunk)
        self.received_size += len(chunk)

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'size': self.declared_size,
            'mime': self.mime_type,
            'received_size': self.received_size,
            'progress_percent': self.progress_percent,
        }


@dataclass(frozen=True)
class CompletedFile:
    """A fully received file. Never mutated after creation."""
    name: str
    size: int
    content: bytes
    mime_type: str = DEFAULT_MIME_TYPE
    received_at: float = field(default_factory=time.time)

    async def save(self, directory: Path) -> Path:
        """
        Write the file into ``directory``.

        Only the base name of the sender's file name is used. An existing
        file is never overwritten; a numeric suffix is added instead.
        """
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)

        safe_name = Path(self.name).name or 'download'
        target = directory / safe_name
        stem, suffix = target.stem, target.suffix
        counter = 1
        while target.exists():
            target = directory / f"{stem} ({counter}){suffix}"
            counter += 1

        async with aiofiles.open(target, 'wb') as f:
            await f.write(self.content)
        return target

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'size': self.size,
            'mime': self.mime_type,
            'received_at': self.received_at,
        }


@dataclass
class OutgoingTransfer:
    """Bookkeeping for a file being sent."""
    name: str
    size: int
    mime_type: str = DEFAULT_MIME_TYPE
    chunks_sent: int = 0
    bytes_sent: int = 0

    @property
    def progress_percent(self) -> float:
        if self.size == 0:
            return 100.0
        return min(100.0, self.bytes_sent / self.size * 100)
