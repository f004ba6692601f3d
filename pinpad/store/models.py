"""Share store records."""

from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Optional

SNIPPET_TTL = timedelta(hours=72)
FILE_TTL = timedelta(hours=24)


class ItemKind(str, Enum):
    SNIPPET = "snippet"
    FILE = "file"


TTL_BY_KIND = {
    ItemKind.SNIPPET: SNIPPET_TTL,
    ItemKind.FILE: FILE_TTL,
}


@dataclass(frozen=True)
class StoredItem:
    """
    One saved snippet or file.

    Snippets carry their text inline; files carry a reference (``url``) to
    the uploaded payload plus its metadata. Timestamps are Unix seconds.
    """
    code: str
    kind: ItemKind
    created_at: float
    expires_at: float
    content: Optional[str] = None
    language: Optional[str] = None
    name: Optional[str] = None
    url: Optional[str] = None
    size: Optional[int] = None
    mime_type: Optional[str] = None

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at

    def to_dict(self) -> dict:
        return {
            'code': self.code,
            'kind': self.kind.value,
            'content': self.content,
            'language': self.language,
            'name': self.name,
            'url': self.url,
            'size': self.size,
            'mime': self.mime_type,
            'created_at': self.created_at,
            'expires_at': self.expires_at,
        }
