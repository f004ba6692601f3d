"""
API Module - HTTP front for the share store
"""

from .rest import create_app, run_api_server

__all__ = ['create_app', 'run_api_server']
