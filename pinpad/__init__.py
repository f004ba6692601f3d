"""
PinPad - serverless code pad and file sharing over a 6-digit PIN.
"""

from .node import PeerPad

__version__ = "1.0.0"

__all__ = ['PeerPad', '__version__']
