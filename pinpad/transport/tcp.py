"""
TCP Transport

Design Decision: Addressing over TCP
====================================

Session addresses are names (``pinpad-482913``), not sockets. Over plain TCP
the host listens on a known endpoint and the guest dials it, then names the
session it wants in a hello frame. The host only accepts hellos addressed to
its own derived address, so knowing the PIN is what gets a guest in.

Frame Format:
```
+----------------+------------------+
| Length (4B)    | Payload          |
+----------------+------------------+
```

Handshake (JSON payloads):
```
guest -> host   {"op": "hello", "to": "<session address>", "from": "<guest address>"}
host  -> guest  {"op": "accept"} | {"op": "reject", "reason": "..."}
```

After the handshake every frame is one opaque session payload.
"""

import asyncio
import json
import logging
import struct
import uuid
from typing import List, Optional, Tuple

from ..errors import ProtocolError
from .base import (
    Acceptor, CloseHandler, DataHandler, PeerConnection, Transport,
)

logger = logging.getLogger(__name__)

FRAME_HEADER_FORMAT = '>I'
FRAME_HEADER_SIZE = struct.calcsize(FRAME_HEADER_FORMAT)
MAX_FRAME_SIZE = 16 * 1024 * 1024
HANDSHAKE_TIMEOUT = 10.0


async def write_frame(writer: asyncio.StreamWriter, payload: bytes):
    """Write one length-prefixed frame and wait for the buffer to drain."""
    writer.write(struct.pack(FRAME_HEADER_FORMAT, len(payload)) + payload)
    await writer.drain()


async def read_frame(reader: asyncio.StreamReader) -> Optional[bytes]:
    """Read one frame. Returns None at end of stream."""
    try:
        header = await reader.readexactly(FRAME_HEADER_SIZE)
        length = struct.unpack(FRAME_HEADER_FORMAT, header)[0]
        if length > MAX_FRAME_SIZE:
            raise ProtocolError(f"Frame too large: {length}")
        return await reader.readexactly(length) if length else b''
    except asyncio.IncompleteReadError:
        return None


def _control(op: str, **fields) -> bytes:
    return json.dumps({'op': op, **fields}).encode('utf-8')


def _parse_control(payload: Optional[bytes]) -> dict:
    if payload is None:
        raise ConnectionError("Connection closed during handshake")
    try:
        message = json.loads(payload.decode('utf-8'))
    except ValueError as e:
        raise ProtocolError(f"Bad handshake frame: {e}") from e
    if not isinstance(message, dict) or 'op' not in message:
        raise ProtocolError("Handshake frame has no op")
    return message


class TcpConnection(PeerConnection):
    """
    A framed TCP link.

    Until the handshake completes, payloads passed to ``send`` are held back
    and flushed right after the accept frame.
    """

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter,
                 remote_address: str, accepted: bool = True):
        self.reader = reader
        self.writer = writer
        self._remote_address = remote_address
        self._accepted = accepted
        self._pending: List[bytes] = []
        self._open = True
        self._closed_locally = False
        self._lock = asyncio.Lock()

        self._ready = asyncio.Event()
        self._data_handlers: List[DataHandler] = []
        self._close_handlers: List[CloseHandler] = []

    @property
    def remote_address(self) -> str:
        return self._remote_address

    @property
    def is_open(self) -> bool:
        return self._open

    def on_data(self, handler: DataHandler) -> None:
        self._data_handlers.append(handler)
        self._ready.set()

    def on_close(self, handler: CloseHandler) -> None:
        self._close_handlers.append(handler)

    async def send(self, payload: bytes) -> None:
        if not self._open:
            raise ConnectionError("Connection closed")
        async with self._lock:
            if not self._accepted:
                self._pending.append(bytes(payload))
                return
            await write_frame(self.writer, payload)

    async def mark_accepted(self):
        """Flush payloads held back during the handshake."""
        async with self._lock:
            self._accepted = True
            pending, self._pending = self._pending, []
            for payload in pending:
                await write_frame(self.writer, payload)

    async def close(self) -> None:
        if self._closed_locally:
            return
        self._closed_locally = True
        self._open = False
        self._ready.set()
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except (ConnectionError, OSError) as e:
            logger.debug(f"Error while closing link to {self._remote_address}: {e}")

    async def run(self):
        """Read frames until the link ends, dispatching each to the data handlers."""
        await self._ready.wait()
        try:
            while not self._closed_locally:
                payload = await read_frame(self.reader)
                if payload is None:
                    break
                for handler in self._data_handlers:
                    try:
                        await handler(payload)
                    except Exception:
                        logger.exception(f"Data handler failed for frame from {self._remote_address}")
        except (ConnectionError, OSError, ProtocolError) as e:
            if not self._closed_locally:
                logger.warning(f"Link to {self._remote_address} broken: {e}")
        finally:
            if not self._closed_locally:
                self._open = False
                logger.debug(f"Link to {self._remote_address} closed by peer")
                for handler in self._close_handlers:
                    try:
                        await handler()
                    except Exception:
                        logger.exception("Close handler failed")
                self.writer.close()


class TcpTransport(Transport):
    """
    TCP binding of the transport interface.

    Hosts call ``open(address)`` and listen on ``host:port``; guests call
    ``open()`` (ephemeral address, no listener) and dial ``peer_endpoint``.
    """

    def __init__(self, host: str = '0.0.0.0', port: int = 8470,
                 peer_endpoint: Optional[Tuple[str, int]] = None,
                 connect_timeout: float = 10.0):
        self.host = host
        self.port = port
        self.peer_endpoint = peer_endpoint
        self.connect_timeout = connect_timeout

        self.server: Optional[asyncio.AbstractServer] = None
        self._address: Optional[str] = None
        self._acceptor: Optional[Acceptor] = None
        self._connections: List[TcpConnection] = []
        self._tasks: List[asyncio.Task] = []

    @property
    def local_address(self) -> Optional[str]:
        return self._address

    def on_connection(self, acceptor: Acceptor) -> None:
        self._acceptor = acceptor

    async def open(self, address: Optional[str] = None) -> str:
        if address is None:
            self._address = f"guest-{uuid.uuid4().hex[:12]}"
            return self._address

        self.server = await asyncio.start_server(
            self._handle_connection,
            self.host,
            self.port
        )
        self._address = address
        self.port = self.server.sockets[0].getsockname()[1]
        logger.info(f"Session listener for {address} on {self.host}:{self.port}")
        return address

    async def connect(self, address: str) -> PeerConnection:
        if self.peer_endpoint is None:
            raise ConnectionError("No peer endpoint configured")
        ip, port = self.peer_endpoint

        reader, writer = await asyncio.wait_for(
            asyncio.open_connection(ip, port),
            timeout=self.connect_timeout
        )
        try:
            await write_frame(writer, _control('hello', to=address, **{'from': self._address}))
            reply = _parse_control(
                await asyncio.wait_for(read_frame(reader), timeout=self.connect_timeout)
            )
        except BaseException:
            writer.close()
            raise

        if reply['op'] != 'accept':
            writer.close()
            raise ConnectionRefusedError(reply.get('reason', 'rejected'))

        conn = TcpConnection(reader, writer, remote_address=address)
        self._connections.append(conn)
        self._tasks.append(asyncio.create_task(conn.run()))
        logger.info(f"Connected to {address} at {ip}:{port}")
        return conn

    async def _handle_connection(self, reader: asyncio.StreamReader,
                                 writer: asyncio.StreamWriter):
        """Handle an incoming connection: handshake, then pump frames."""
        peer = writer.get_extra_info('peername')
        logger.debug(f"New session connection from {peer}")

        try:
            hello = _parse_control(
                await asyncio.wait_for(read_frame(reader), timeout=HANDSHAKE_TIMEOUT)
            )
        except (ConnectionError, OSError, ProtocolError, asyncio.TimeoutError) as e:
            logger.warning(f"Handshake with {peer} failed: {e}")
            writer.close()
            return

        if hello.get('op') != 'hello' or hello.get('to') != self._address:
            logger.info(f"Rejecting {peer}: unknown session address {hello.get('to')!r}")
            await write_frame(writer, _control('reject', reason='Unknown session'))
            writer.close()
            return

        conn = TcpConnection(reader, writer, remote_address=str(hello.get('from')),
                             accepted=False)
        accepted = self._acceptor is not None and await self._acceptor(conn)
        if not accepted:
            await write_frame(writer, _control('reject', reason='Session already has a peer'))
            writer.close()
            return

        await write_frame(writer, _control('accept'))
        await conn.mark_accepted()
        self._connections.append(conn)
        await conn.run()

    async def close(self) -> None:
        for conn in self._connections:
            await conn.close()
        self._connections.clear()

        for task in self._tasks:
            task.cancel()
        self._tasks.clear()

        if self.server:
            self.server.close()
            await self.server.wait_closed()
            self.server = None
            logger.info("Session listener stopped")

        self._address = None
