"""
Transport Module - Point-to-point delivery substrate

The session layer depends only on the interface in ``base``.
"""

from .base import AddressInUse, PeerConnection, Transport
from .memory import MemoryHub, MemoryTransport
from .tcp import TcpTransport

__all__ = [
    'AddressInUse',
    'PeerConnection',
    'Transport',
    'MemoryHub',
    'MemoryTransport',
    'TcpTransport',
]
