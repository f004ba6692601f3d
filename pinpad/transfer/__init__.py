"""
Transfer Module - Chunked file transfer over a session

Handles splitting, streaming, reassembly and progress accounting.
"""

from .chunker import CHUNK_SIZE, FileChunker
from .engine import FileTransferEngine
from .models import CompletedFile, IncomingTransfer, OutgoingTransfer

__all__ = [
    'CHUNK_SIZE',
    'FileChunker',
    'FileTransferEngine',
    'CompletedFile',
    'IncomingTransfer',
    'OutgoingTransfer',
]
