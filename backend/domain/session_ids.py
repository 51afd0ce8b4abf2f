"""
Session id format and validation.
"""

import re
import time

from .exceptions import InvalidSessionIdError

SESSION_ID_PATTERN = re.compile(r"^[A-Za-z0-9-]+$")


def validate_session_id(session_id: str) -> str:
    """
    Check that a session id is safe to use as a storage key.

    Raises:
        InvalidSessionIdError: id is empty or has characters outside [A-Za-z0-9-]
    """
    if not isinstance(session_id, str) or not SESSION_ID_PATTERN.match(session_id):
        raise InvalidSessionIdError(f"Invalid session id: {session_id!r}")
    return session_id


def new_session_id(prefix: str = "session") -> str:
    """Create a session id of the form "{prefix}-{epoch millis}"."""
    sanitized = re.sub(r"[^A-Za-z0-9-]+", "-", prefix or "").strip("-") or "session"
    return f"{sanitized}-{int(time.time() * 1000)}"
