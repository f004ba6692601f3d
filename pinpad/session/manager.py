"""
Session Manager

Owns one peer session: the transport registration, the single logical
connection, and the lifecycle around it.

State Machine:
```
            create_session()            first inbound link
  IDLE ----------------------> HOSTING --------------------+
    |                                                      v
    |        join_session(pin)          link open       CONNECTED
    +------------------------> JOINING -------------------^   |
                                  |                            | peer closed / leave()
                                  | transport error            v
                                  +----------------------->  CLOSED
```

Host and guest are asymmetric: the host publishes under the address derived
from its PIN and accepts exactly one inbound link; the guest takes an
ephemeral address and dials the host's derived address. Everything above the
connection (document sync, file transfer) is multiplexed by message type.
"""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional

from ..errors import ConnectFailed, InvalidCode, NoPeer, ProtocolError
from ..transport.base import AddressInUse, PeerConnection, Transport
from .address import derive_host_address, generate_session_code, is_valid_session_code
from .messages import Message, MessageType

logger = logging.getLogger(__name__)

# How many fresh PINs to try when the derived address is already taken
MAX_SESSION_CODE_ATTEMPTS = 5

PEER_DISCONNECTED = "Peer disconnected"

MessageHandler = Callable[[Message], Awaitable[None]]
Listener = Callable[[], Awaitable[None]]
NoticeListener = Callable[[str], None]
TransportFactory = Callable[[], Transport]


class SessionRole(Enum):
    HOST = "host"
    GUEST = "guest"


class SessionStatus(Enum):
    IDLE = "idle"
    HOSTING = "hosting"
    JOINING = "joining"
    CONNECTED = "connected"
    CLOSED = "closed"


class ConnectionState(Enum):
    ABSENT = "absent"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class SessionManager:
    """
    One peer session.

    Protocol layers register per-type message handlers and lifecycle
    listeners; they only ever see ``is_connected`` and ``send``.
    """

    def __init__(self, transport_factory: TransportFactory):
        self._transport_factory = transport_factory
        self.transport: Optional[Transport] = None
        self.connection: Optional[PeerConnection] = None

        self.role: Optional[SessionRole] = None
        self.status = SessionStatus.IDLE
        self.connection_state = ConnectionState.ABSENT
        self.code: Optional[str] = None
        self.local_address: Optional[str] = None

        self.notices: List[str] = []
        self.messages_sent = 0
        self.messages_received = 0

        self._handlers: Dict[MessageType, MessageHandler] = {}
        self._connected_listeners: List[Listener] = []
        self._closed_listeners: List[Listener] = []
        self._notice_listeners: List[NoticeListener] = []

    # === Registration ===

    def set_handler(self, msg_type: MessageType, handler: MessageHandler):
        """Route inbound messages of ``msg_type`` to ``handler``."""
        self._handlers[msg_type] = handler

    def on_connected(self, listener: Listener):
        """Called each time the session enters CONNECTED."""
        self._connected_listeners.append(listener)

    def on_closed(self, listener: Listener):
        """Called when an open connection ends (peer left or link broke)."""
        self._closed_listeners.append(listener)

    def on_notice(self, listener: NoticeListener):
        """Called with user-visible notices such as 'Peer disconnected'."""
        self._notice_listeners.append(listener)

    @property
    def is_connected(self) -> bool:
        return self.status == SessionStatus.CONNECTED

    # === Lifecycle ===

    async def create_session(self) -> str:
        """
        Host a new session.

        Returns:
            The 6-digit PIN to show the user

        Raises:
            ConnectFailed: If no derived address could be opened
        """
        await self._teardown()

        for attempt in range(MAX_SESSION_CODE_ATTEMPTS):
            code = generate_session_code()
            transport = self._transport_factory()
            transport.on_connection(self._accept)
            try:
                self.local_address = await transport.open(derive_host_address(code))
            except AddressInUse:
                logger.debug(f"Session address for PIN {code} taken, retrying")
                continue
            except (OSError, asyncio.TimeoutError) as e:
                self.status = SessionStatus.CLOSED
                raise ConnectFailed(f"Could not open session: {e}") from e

            self.transport = transport
            self.code = code
            self.role = SessionRole.HOST
            self.status = SessionStatus.HOSTING
            self.connection_state = ConnectionState.ABSENT
            logger.info(f"Hosting session {code} as {self.local_address}")
            return code

        self.status = SessionStatus.CLOSED
        raise ConnectFailed("Could not reserve a session PIN")

    async def join_session(self, code: str):
        """
        Join the session identified by ``code``.

        Raises:
            InvalidCode: If ``code`` is not exactly six digits (transport untouched)
            ConnectFailed: If the host cannot be reached or rejects the link
        """
        if not is_valid_session_code(code):
            raise InvalidCode()

        await self._teardown()

        self.transport = self._transport_factory()
        self.transport.on_connection(self._reject)
        self.role = SessionRole.GUEST
        self.code = code
        self.status = SessionStatus.JOINING
        self.connection_state = ConnectionState.CONNECTING

        target = derive_host_address(code)
        try:
            self.local_address = await self.transport.open()
            logger.info(f"Joining session {code} ({target}) as {self.local_address}")
            conn = await self.transport.connect(target)
        except (OSError, asyncio.TimeoutError, ProtocolError) as e:
            logger.warning(f"Could not connect to {target}: {e}")
            transport, self.transport = self.transport, None
            await transport.close()
            self.status = SessionStatus.CLOSED
            self.connection_state = ConnectionState.CLOSED
            raise ConnectFailed() from e

        await self._bind(conn)

    async def leave(self):
        """Close the session locally. No disconnect notice is raised."""
        await self._teardown()
        if self.role is not None:
            self.status = SessionStatus.CLOSED
            logger.info(f"Left session {self.code}")

    async def _teardown(self):
        conn, self.connection = self.connection, None
        transport, self.transport = self.transport, None

        if conn is not None:
            self.connection_state = ConnectionState.CLOSED
            await conn.close()
        if transport is not None:
            await transport.close()

    # === Connection handling ===

    async def _accept(self, conn: PeerConnection) -> bool:
        """Host acceptor: the first link wins, later ones are rejected."""
        if self.status != SessionStatus.HOSTING:
            logger.info(f"Rejecting {conn.remote_address}: session already has a peer")
            return False

        logger.info(f"Peer {conn.remote_address} joined session {self.code}")
        await self._bind(conn)
        return True

    async def _reject(self, conn: PeerConnection) -> bool:
        logger.info(f"Guest does not accept inbound links; rejecting {conn.remote_address}")
        return False

    async def _bind(self, conn: PeerConnection):
        self.connection = conn
        self.connection_state = ConnectionState.OPEN
        self.status = SessionStatus.CONNECTED
        conn.on_data(self._on_data)
        conn.on_close(self._on_link_closed)

        for listener in self._connected_listeners:
            await listener()

    async def _on_data(self, payload: bytes):
        try:
            message = Message.from_bytes(payload)
        except ProtocolError as e:
            logger.warning(f"Dropping malformed frame: {e}")
            return

        self.messages_received += 1
        handler = self._handlers.get(message.type)
        if handler:
            await handler(message)
        else:
            logger.warning(f"No handler for {message.type}")

    async def _on_link_closed(self):
        if self.status != SessionStatus.CONNECTED:
            return

        logger.info(f"Peer left session {self.code}")
        self.connection = None
        self.connection_state = ConnectionState.CLOSED
        self.status = SessionStatus.CLOSED

        for listener in self._closed_listeners:
            await listener()
        self._notify(PEER_DISCONNECTED)

    def _notify(self, notice: str):
        self.notices.append(notice)
        for listener in self._notice_listeners:
            listener(notice)

    # === Messaging ===

    async def send(self, message: Message):
        """
        Send a message to the peer.

        Raises:
            NoPeer: If the session is not connected
        """
        if not self.is_connected or self.connection is None:
            raise NoPeer()
        try:
            await self.connection.send(message.to_bytes())
        except ConnectionError as e:
            raise NoPeer() from e
        self.messages_sent += 1

    def get_stats(self) -> dict:
        """Get session statistics."""
        return {
            'role': self.role.value if self.role else None,
            'status': self.status.value,
            'connection': self.connection_state.value,
            'code': self.code,
            'local_address': self.local_address,
            'messages_sent': self.messages_sent,
            'messages_received': self.messages_received,
        }
