"""
In-process transport.

A ``MemoryHub`` plays the broker role: transports register addresses on it
and connect to each other through it. Payloads travel through asyncio queues,
so delivery is ordered and reliable by construction. Used for tests and for
running both ends of a session inside one process.
"""

import asyncio
import logging
import uuid
from typing import Dict, List, Optional

from .base import (
    Acceptor, AddressInUse, CloseHandler, DataHandler, PeerConnection, Transport,
)

logger = logging.getLogger(__name__)

_REMOTE_CLOSED = object()
_LOCAL_CLOSED = object()


class MemoryConnection(PeerConnection):
    """One end of an in-process link."""

    def __init__(self, local_address: str, remote_address: str):
        self.local_address = local_address
        self._remote_address = remote_address
        self._peer: Optional['MemoryConnection'] = None
        self._open = True

        self._inbox: asyncio.Queue = asyncio.Queue()
        self._ready = asyncio.Event()
        self._data_handlers: List[DataHandler] = []
        self._close_handlers: List[CloseHandler] = []
        self._pump_task = asyncio.create_task(self._pump())

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
        if not self._open or self._peer is None:
            raise ConnectionError("Connection closed")
        self._peer._inbox.put_nowait(bytes(payload))
        # Let the receiving side run, mirroring a real write/drain
        await asyncio.sleep(0)

    async def close(self) -> None:
        if not self._open:
            return
        self._open = False
        if self._peer is not None:
            self._peer._inbox.put_nowait(_REMOTE_CLOSED)
        self._inbox.put_nowait(_LOCAL_CLOSED)
        self._ready.set()

    def _discard(self) -> None:
        """Drop a link that was never accepted."""
        self._open = False
        self._pump_task.cancel()

    async def _pump(self) -> None:
        """Deliver queued payloads to handlers, in order."""
        await self._ready.wait()
        while True:
            item = await self._inbox.get()

            if item is _LOCAL_CLOSED:
                return

            if item is _REMOTE_CLOSED:
                self._open = False
                logger.debug(f"Link to {self._remote_address} closed by peer")
                for handler in self._close_handlers:
                    try:
                        await handler()
                    except Exception:
                        logger.exception("Close handler failed")
                return

            for handler in self._data_handlers:
                try:
                    await handler(item)
                except Exception:
                    logger.exception(f"Data handler failed for payload from {self._remote_address}")


class MemoryHub:
    """Address registry shared by every ``MemoryTransport`` that should see each other."""

    def __init__(self):
        self._transports: Dict[str, 'MemoryTransport'] = {}

    def register(self, address: str, transport: 'MemoryTransport'):
        if address in self._transports:
            raise AddressInUse(f"Address already in use: {address}")
        self._transports[address] = transport

    def unregister(self, address: str):
        self._transports.pop(address, None)

    def lookup(self, address: str) -> Optional['MemoryTransport']:
        return self._transports.get(address)

    @property
    def addresses(self) -> List[str]:
        return list(self._transports)


class MemoryTransport(Transport):
    """Transport bound to a ``MemoryHub``."""

    def __init__(self, hub: MemoryHub):
        self.hub = hub
        self._address: Optional[str] = None
        self._acceptor: Optional[Acceptor] = None
        self._connections: List[MemoryConnection] = []

    @property
    def local_address(self) -> Optional[str]:
        return self._address

    async def open(self, address: Optional[str] = None) -> str:
        address = address or f"peer-{uuid.uuid4().hex}"
        self.hub.register(address, self)
        self._address = address
        logger.debug(f"Memory transport open as {address}")
        return address

    def on_connection(self, acceptor: Acceptor) -> None:
        self._acceptor = acceptor

    async def connect(self, address: str) -> PeerConnection:
        if self._address is None:
            raise ConnectionError("Transport is not open")

        await asyncio.sleep(0)
        target = self.hub.lookup(address)
        if target is None:
            raise ConnectionError(f"Could not connect to peer {address}")

        local = MemoryConnection(self._address, address)
        remote = MemoryConnection(address, self._address)
        local._peer, remote._peer = remote, local

        accepted = target._acceptor is not None and await target._acceptor(remote)
        if not accepted:
            local._discard()
            remote._discard()
            raise ConnectionRefusedError(f"Peer {address} rejected the connection")

        target._connections.append(remote)
        self._connections.append(local)
        return local

    async def close(self) -> None:
        if self._address is not None:
            self.hub.unregister(self._address)
        for conn in self._connections:
            await conn.close()
        self._connections.clear()
        self._address = None
