"""
Session Module - PIN addressing, lifecycle and message envelope

Establishes the single peer link that document sync and file transfer share.
"""

from .address import (
    ADDRESS_PREFIX, derive_host_address, generate_session_code, is_valid_session_code,
)
from .manager import ConnectionState, SessionManager, SessionRole, SessionStatus
from .messages import Message, MessageType

__all__ = [
    'ADDRESS_PREFIX',
    'derive_host_address',
    'generate_session_code',
    'is_valid_session_code',
    'ConnectionState',
    'SessionManager',
    'SessionRole',
    'SessionStatus',
    'Message',
    'MessageType',
]
