"""
Session Message Envelope

Design Decision: Envelope Format
================================

Options Considered:
1. JSON only, chunks base64-encoded
   - Simple, but inflates every chunk by a third

2. Header JSON + raw binary body
   - Chunks travel as-is, headers stay readable
   - Same layout the chunk transfer protocol already uses

Decision: Length-prefixed JSON header followed by the raw body.

Message Format:
```
+--------------------+----------------+----------------+
| Header length (4B) | Header (JSON)  | Body (binary)  |
+--------------------+----------------+----------------+

Header JSON:
{
    "type": "CODE_UPDATE" | "FILE_META" | "FILE_CHUNK",
    ...type specific fields
}
```

The transport delivers each encoded message as one opaque payload, in order,
so no sequence numbers or acks are carried here.
"""

import json
import struct
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict

from ..errors import ProtocolError

HEADER_LENGTH_FORMAT = '>I'
HEADER_LENGTH_SIZE = struct.calcsize(HEADER_LENGTH_FORMAT)


class MessageType(Enum):
    """Session message types, multiplexed over the single peer connection."""
    CODE_UPDATE = "CODE_UPDATE"
    FILE_META = "FILE_META"
    FILE_CHUNK = "FILE_CHUNK"


@dataclass
class Message:
    """A session protocol message."""
    type: MessageType
    headers: Dict[str, Any] = field(default_factory=dict)
    data: bytes = b''

    def to_bytes(self) -> bytes:
        """Serialize message to bytes."""
        header_bytes = json.dumps({'type': self.type.value, **self.headers}).encode('utf-8')
        return struct.pack(HEADER_LENGTH_FORMAT, len(header_bytes)) + header_bytes + self.data

    @classmethod
    def from_bytes(cls, payload: bytes) -> 'Message':
        """Parse a payload produced by ``to_bytes``. Raises ProtocolError."""
        if len(payload) < HEADER_LENGTH_SIZE:
            raise ProtocolError(f"Frame too short: {len(payload)} bytes")

        header_length = struct.unpack(HEADER_LENGTH_FORMAT, payload[:HEADER_LENGTH_SIZE])[0]
        header_end = HEADER_LENGTH_SIZE + header_length
        if header_end > len(payload):
            raise ProtocolError("Header length exceeds frame size")

        try:
            headers = json.loads(payload[HEADER_LENGTH_SIZE:header_end].decode('utf-8'))
            msg_type = MessageType(headers.pop('type'))
        except (ValueError, KeyError, AttributeError, TypeError) as e:
            raise ProtocolError(f"Bad message header: {e}") from e

        return cls(type=msg_type, headers=headers, data=payload[header_end:])


def code_update(code: str) -> Message:
    """Build a CODE_UPDATE carrying the whole document."""
    return Message(MessageType.CODE_UPDATE, {'code': code})


def file_meta(name: str, size: int, mime: str) -> Message:
    """Build the FILE_META announcing an outbound file."""
    return Message(MessageType.FILE_META, {'name': name, 'size': size, 'mime': mime})


def file_chunk(chunk: bytes) -> Message:
    """Build a FILE_CHUNK carrying raw bytes."""
    return Message(MessageType.FILE_CHUNK, data=chunk)
