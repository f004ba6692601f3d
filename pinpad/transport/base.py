"""
Transport Interface

The session layer never touches sockets. It consumes a point-to-point
transport that already provides addressing, NAT traversal (where relevant)
and ordered, reliable, exactly-once delivery of opaque payloads.

Capabilities:
- open(address)      publish ourselves under an address (or an ephemeral one)
- connect(address)   initiate a link to another address
- send(payload)      hand one payload to the transport
- on_data(handler)   receive payloads in send order
- on_close(handler)  learn that the remote side went away
"""

from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional

DataHandler = Callable[[bytes], Awaitable[None]]
CloseHandler = Callable[[], Awaitable[None]]


class AddressInUse(ConnectionError):
    """Raised by ``Transport.open`` when the address is already registered."""


class PeerConnection(ABC):
    """
    A live link to a single remote address.

    Payloads arriving before the first ``on_data`` registration are buffered,
    so a consumer that registers right after ``connect`` never misses one.
    Close handlers fire only when the remote side closes or the link breaks,
    not after a local ``close()``.
    """

    @property
    @abstractmethod
    def remote_address(self) -> str:
        ...

    @property
    @abstractmethod
    def is_open(self) -> bool:
        ...

    @abstractmethod
    async def send(self, payload: bytes) -> None:
        """Send one payload. Raises ConnectionError once the link is closed."""

    @abstractmethod
    def on_data(self, handler: DataHandler) -> None:
        ...

    @abstractmethod
    def on_close(self, handler: CloseHandler) -> None:
        ...

    @abstractmethod
    async def close(self) -> None:
        ...


# Decides whether to keep an inbound link. Payloads sent from inside the
# acceptor reach the initiator after the link is accepted.
Acceptor = Callable[[PeerConnection], Awaitable[bool]]


class Transport(ABC):
    """Factory of peer connections bound to one local address."""

    @property
    @abstractmethod
    def local_address(self) -> Optional[str]:
        ...

    @abstractmethod
    async def open(self, address: Optional[str] = None) -> str:
        """
        Register on the transport.

        Args:
            address: Address to publish under, or None for an ephemeral one

        Returns:
            The local address actually in use

        Raises:
            AddressInUse: If ``address`` is taken by another live transport
        """

    @abstractmethod
    async def connect(self, address: str) -> PeerConnection:
        """
        Open a link to ``address``.

        Raises:
            ConnectionRefusedError: If the remote acceptor rejected the link
            ConnectionError / OSError: If the address cannot be reached
        """

    @abstractmethod
    def on_connection(self, acceptor: Acceptor) -> None:
        """Register the acceptor for inbound links."""

    @abstractmethod
    async def close(self) -> None:
        """Unregister and drop every link."""
