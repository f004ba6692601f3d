"""
Shared document synchronization.

The document is one string. Every local edit replaces it and ships the whole
text to the peer; every inbound CODE_UPDATE replaces it again. Arrival order
decides: the last write wins, there is no merge and no history.
"""

import logging
from typing import Callable, List

from ..session.manager import SessionManager
from ..session.messages import Message, MessageType, code_update

logger = logging.getLogger(__name__)

ChangeListener = Callable[[str, str], None]  # (text, origin: 'local' | 'remote')


class DocumentSync:
    """Keeps one session's document and mirrors it to the peer."""

    def __init__(self, session: SessionManager, text: str = ""):
        self.session = session
        self._text = text
        self._listeners: List[ChangeListener] = []

        session.set_handler(MessageType.CODE_UPDATE, self._on_code_update)
        session.on_connected(self._on_connected)

    @property
    def text(self) -> str:
        return self._text

    def on_change(self, listener: ChangeListener):
        self._listeners.append(listener)

    def seed(self, text: str):
        """Pre-load the document (e.g. from the share store) without sending it."""
        self._set(text, 'local')

    async def apply_local_edit(self, new_text: str):
        """Replace the document and, if connected, push it to the peer."""
        self._set(new_text, 'local')
        if self.session.is_connected:
            await self.session.send(code_update(new_text))

    async def _on_code_update(self, message: Message):
        code = message.headers.get('code')
        if not isinstance(code, str):
            logger.warning("Dropping CODE_UPDATE without text")
            return
        self._set(code, 'remote')

    async def _on_connected(self):
        # Hand pre-seeded content to the peer that just arrived
        if self._text:
            logger.debug(f"Sending initial document ({len(self._text)} chars)")
            await self.session.send(code_update(self._text))

    def _set(self, text: str, origin: str):
        self._text = text
        for listener in self._listeners:
            listener(text, origin)
