"""
Sync Module - Last-writer-wins shared document
"""

from .document import DocumentSync

__all__ = ['DocumentSync']
