"""
CRUD operations module.

This module provides database operations organized by domain aggregate.
"""

from .sessions import delete_session, get_session, get_sessions, save_session

__all__ = [
    "delete_session",
    "get_session",
    "get_sessions",
    "save_session",
]
