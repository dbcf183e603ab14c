"""
Database layer for the audience filter API.
"""

from .preview_store import PreviewStore
from .db_helpers import aconnect, with_connection

__all__ = ['PreviewStore', 'aconnect', 'with_connection']
