"""
PeerPad - Main Controller

Composes one live session with its two protocol layers:
- SessionManager for the PIN-addressed peer link
- DocumentSync for the shared code pad
- FileTransferEngine for chunked file transfer

Each PeerPad owns its own document and received-files list, so several can
run side by side in one process.
"""

import logging
from pathlib import Path
from typing import Callable, List, Optional

from .config import Config
from .session import SessionManager, SessionRole, SessionStatus
from .sync import DocumentSync
from .transfer import CompletedFile, FileTransferEngine, OutgoingTransfer
from .transport import TcpTransport, Transport

logger = logging.getLogger(__name__)


class PeerPad:
    """
    A complete peer endpoint.

    Combines all components into a unified interface:
    - create_session(): host and get a PIN
    - join_session(pin): connect to a host
    - update_code(text): edit the shared document
    - send_file(path): push a file to the peer
    """

    def __init__(self, transport_factory: Callable[[], Transport], initial_text: str = ""):
        self.session = SessionManager(transport_factory)
        self.document = DocumentSync(self.session, initial_text)
        self.files = FileTransferEngine(self.session)

    @classmethod
    def over_tcp(cls, config: Config, initial_text: str = "") -> 'PeerPad':
        """Build a PeerPad whose sessions run over TCP as configured."""
        def transport_factory() -> Transport:
            return TcpTransport(
                host=config.session_host,
                port=config.session_port,
                peer_endpoint=config.peer_endpoint,
                connect_timeout=config.connect_timeout,
            )
        return cls(transport_factory, initial_text)

    # === Session ===

    @property
    def code(self) -> Optional[str]:
        return self.session.code

    @property
    def is_connected(self) -> bool:
        return self.session.is_connected

    @property
    def is_host(self) -> bool:
        return self.session.role == SessionRole.HOST

    @property
    def status(self) -> SessionStatus:
        return self.session.status

    async def create_session(self) -> str:
        return await self.session.create_session()

    async def join_session(self, code: str):
        await self.session.join_session(code)

    async def leave(self):
        await self.session.leave()

    # === Document ===

    @property
    def text(self) -> str:
        return self.document.text

    def set_initial_code(self, text: str):
        self.document.seed(text)

    async def update_code(self, text: str):
        await self.document.apply_local_edit(text)

    # === Files ===

    @property
    def received_files(self) -> List[CompletedFile]:
        return self.files.received_files

    @property
    def file_progress(self) -> float:
        return self.files.progress

    async def send_file(self, file_path: Path) -> OutgoingTransfer:
        return await self.files.send_file(file_path)

    def get_stats(self) -> dict:
        """Get complete endpoint statistics."""
        return {
            'session': self.session.get_stats(),
            'document_length': len(self.document.text),
            'files': self.files.get_stats(),
        }
