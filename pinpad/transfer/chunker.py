"""
File Chunker

Design Decision: Chunk Size
===========================

Options Considered:
| Size    | Pros                              | Cons                          |
|---------|-----------------------------------|-------------------------------|
| 16KB    | Fits every data channel frame     | More messages per file        |
| 64KB    | Fewer messages                    | Exceeds some channel limits   |
| 256KB   | Low overhead on raw TCP           | Coarse progress, big frames   |

Decision: 16KB (16,384 bytes)
- Safe message size for browser-style data channels and our framed TCP link
- Progress moves smoothly even for small files

Chunking Strategy: Fixed-Size, strict offset order
- The last chunk carries the remainder
- The declared size is sampled once; at most that many bytes are streamed,
  so the receiver's completion check always lines up with the stream
"""

from pathlib import Path
from typing import AsyncIterator, Iterator, Tuple

import aiofiles

# Chunk size: 16KB
CHUNK_SIZE = 16 * 1024  # 16,384 bytes


class FileChunker:
    """Splits a file into fixed-size chunks for session transfer."""

    def __init__(self, chunk_size: int = CHUNK_SIZE):
        self.chunk_size = chunk_size

    def get_chunk_count(self, file_size: int) -> int:
        """Calculate number of chunks for a file of given size."""
        return (file_size + self.chunk_size - 1) // self.chunk_size

    def get_chunk_bounds(self, chunk_index: int, file_size: int) -> Tuple[int, int]:
        """
        Get byte range for a specific chunk.

        Returns:
            (start_offset, length) tuple
        """
        start = chunk_index * self.chunk_size
        length = min(self.chunk_size, file_size - start)
        return start, length

    async def chunk_file(self, file_path: Path, file_size: int) -> AsyncIterator[bytes]:
        """
        Read ``file_size`` bytes of a file as chunks, in offset order.

        Stops early if the file turns out shorter than ``file_size``.
        """
        async with aiofiles.open(file_path, 'rb') as f:
            for chunk_index in range(self.get_chunk_count(file_size)):
                _, length = self.get_chunk_bounds(chunk_index, file_size)
                chunk = await f.read(length)
                if not chunk:
                    break
                yield chunk

    def chunk_bytes(self, data: bytes) -> Iterator[bytes]:
        """Split in-memory data into chunks."""
        for chunk_index in range(self.get_chunk_count(len(data))):
            start, length = self.get_chunk_bounds(chunk_index, len(data))
            yield data[start:start + length]
