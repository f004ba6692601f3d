"""
File Transfer Engine

Transfer Flow:
1. Sender announces the file with FILE_META (name, size, mime)
2. Sender streams FILE_CHUNKs in offset order, each handed to the transport
   before the next is read
3. Receiver appends chunks and recomputes progress on every chunk
4. Receiver completes the file once the received byte count reaches the
   declared size; no completion message exists

One inbound transfer is in flight at a time. A new FILE_META silently
replaces a pending one; a closed connection discards it. Partial files are
never kept.
"""

import logging
import mimetypes
from pathlib import Path
from typing import Callable, List, Optional

from ..errors import NoPeer
from ..session.manager import SessionManager
from ..session.messages import Message, MessageType, file_chunk, file_meta
from .chunker import CHUNK_SIZE, FileChunker
from .models import DEFAULT_MIME_TYPE, CompletedFile, IncomingTransfer, OutgoingTransfer

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float, IncomingTransfer], None]
SendProgressCallback = Callable[[OutgoingTransfer], None]
ReceivedCallback = Callable[[CompletedFile], None]


def guess_mime_type(name: str) -> str:
    mime, _ = mimetypes.guess_type(name)
    return mime or DEFAULT_MIME_TYPE


class FileTransferEngine:
    """Sends and receives files over one session."""

    def __init__(self, session: SessionManager, chunk_size: int = CHUNK_SIZE):
        self.session = session
        self.chunker = FileChunker(chunk_size)

        self.incoming: Optional[IncomingTransfer] = None
        self.progress: float = 0.0
        self.received_files: List[CompletedFile] = []

        # Statistics
        self.files_sent = 0
        self.bytes_sent = 0
        self.chunks_discarded = 0

        self._progress_callbacks: List[ProgressCallback] = []
        self._send_callbacks: List[SendProgressCallback] = []
        self._received_callbacks: List[ReceivedCallback] = []

        session.set_handler(MessageType.FILE_META, self._on_file_meta)
        session.set_handler(MessageType.FILE_CHUNK, self._on_file_chunk)
        session.on_closed(self._on_session_closed)

    def on_progress(self, callback: ProgressCallback):
        """Inbound progress, called after every accepted chunk."""
        self._progress_callbacks.append(callback)

    def on_send_progress(self, callback: SendProgressCallback):
        self._send_callbacks.append(callback)

    def on_file_received(self, callback: ReceivedCallback):
        self._received_callbacks.append(callback)

    # === Outbound ===

    async def send_file(self, file_path: Path, mime_type: str = None) -> OutgoingTransfer:
        """
        Send a file from disk to the peer.

        Raises:
            NoPeer: If the session is not connected
            FileNotFoundError: If the file does not exist
        """
        if not self.session.is_connected:
            raise NoPeer()

        file_path = Path(file_path)
        if not file_path.is_file():
            raise FileNotFoundError(f"File not found: {file_path}")

        size = file_path.stat().st_size
        outgoing = OutgoingTransfer(
            name=file_path.name,
            size=size,
            mime_type=mime_type or guess_mime_type(file_path.name),
        )
        await self._announce(outgoing)

        async for chunk in self.chunker.chunk_file(file_path, size):
            await self._send_chunk(outgoing, chunk)

        if outgoing.bytes_sent != size:
            logger.warning(
                f"{outgoing.name} shrank while sending: {outgoing.bytes_sent} of {size} bytes"
            )
        self._finish(outgoing)
        return outgoing

    async def send_bytes(self, name: str, data: bytes, mime_type: str = None) -> OutgoingTransfer:
        """
        Send in-memory data to the peer as a file.

        Raises:
            NoPeer: If the session is not connected
        """
        if not self.session.is_connected:
            raise NoPeer()

        outgoing = OutgoingTransfer(
            name=name,
            size=len(data),
            mime_type=mime_type or guess_mime_type(name),
        )
        await self._announce(outgoing)

        for chunk in self.chunker.chunk_bytes(data):
            await self._send_chunk(outgoing, chunk)

        self._finish(outgoing)
        return outgoing

    async def _announce(self, outgoing: OutgoingTransfer):
        logger.info(f"Sending file {outgoing.name} ({outgoing.size:,} bytes)")
        await self.session.send(file_meta(outgoing.name, outgoing.size, outgoing.mime_type))

    async def _send_chunk(self, outgoing: OutgoingTransfer, chunk: bytes):
        await self.session.send(file_chunk(chunk))
        outgoing.chunks_sent += 1
        outgoing.bytes_sent += len(chunk)
        self.bytes_sent += len(chunk)
        for callback in self._send_callbacks:
            callback(outgoing)

    def _finish(self, outgoing: OutgoingTransfer):
        self.files_sent += 1
        logger.info(f"Sent {outgoing.name} in {outgoing.chunks_sent} chunks")

    # === Inbound ===

    async def _on_file_meta(self, message: Message):
        name = message.headers.get('name')
        size = message.headers.get('size')
        mime = message.headers.get('mime') or DEFAULT_MIME_TYPE

        if not isinstance(name, str) or not isinstance(size, int) or isinstance(size, bool) or size < 0:
            logger.warning(f"Dropping malformed FILE_META: {message.headers}")
            return

        if self.incoming is not None:
            logger.info(
                f"Discarding unfinished {self.incoming.name} "
                f"({self.incoming.received_size}/{self.incoming.declared_size} bytes)"
            )

        self.incoming = IncomingTransfer(name=name, declared_size=size, mime_type=mime)
        self.progress = 0.0
        logger.info(f"Receiving file {name} ({size:,} bytes)")

        if size == 0:
            self._complete()

    async def _on_file_chunk(self, message: Message):
        transfer = self.incoming
        if transfer is None:
            self.chunks_discarded += 1
            logger.debug(f"Discarding stray chunk ({len(message.data)} bytes)")
            return

        transfer.append(message.data)
        self.progress = 100.0 if transfer.is_complete else transfer.progress_percent
        for callback in self._progress_callbacks:
            callback(self.progress, transfer)

        if transfer.is_complete:
            self._complete()

    def _complete(self):
        transfer = self.incoming
        content = b''.join(transfer.chunks)
        if len(content) > transfer.declared_size:
            logger.warning(
                f"{transfer.name}: received {len(content)} bytes for a declared "
                f"{transfer.declared_size}, truncating"
            )
            content = content[:transfer.declared_size]

        completed = CompletedFile(
            name=transfer.name,
            size=transfer.declared_size,
            content=content,
            mime_type=transfer.mime_type,
        )
        self.received_files.append(completed)
        self.incoming = None
        self.progress = 0.0
        logger.info(f"Received {completed.name} ({completed.size:,} bytes)")

        for callback in self._received_callbacks:
            callback(completed)

    async def _on_session_closed(self):
        if self.incoming is not None:
            logger.info(
                f"Connection closed, dropping partial {self.incoming.name} "
                f"({self.incoming.received_size}/{self.incoming.declared_size} bytes)"
            )
        self.incoming = None
        self.progress = 0.0

    def get_stats(self) -> dict:
        return {
            'files_sent': self.files_sent,
            'bytes_sent': self.bytes_sent,
            'files_received': len(self.received_files),
            'bytes_received': sum(f.size for f in self.received_files),
            'chunks_discarded': self.chunks_discarded,
            'incoming': self.incoming.to_dict() if self.incoming else None,
            'progress_percent': self.progress,
        }
