"""
CRUD operations for saved chat sessions.
"""

import logging
from typing import List, Optional

import models
import schemas
from domain.session_ids import validate_session_id
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from utils.serializers import utc_now

logger = logging.getLogger("CRUD")


async def save_session(db: AsyncSession, snapshot: schemas.SessionSnapshot) -> models.ChatSession:
    """Insert or overwrite the stored snapshot for ``snapshot.session_id``."""
    session_id = validate_session_id(snapshot.session_id)
    payload = snapshot.model_dump_json()
    now = utc_now()

    db_session = await db.get(models.ChatSession, session_id)
    if db_session is None:
        db_session = models.ChatSession(id=session_id, created_at=now)
        db.add(db_session)

    db_session.policy = str(snapshot.policy)
    db_session.streaming_enabled = snapshot.streaming_enabled
    db_session.user_name = snapshot.user_name
    db_session.message_count = len(snapshot.messages)
    db_session.payload = payload
    db_session.updated_at = now

    await db.commit()
    return db_session


async def get_session(db: AsyncSession, session_id: str) -> Optional[models.ChatSession]:
    """Get a stored session by id."""
    return await db.get(models.ChatSession, validate_session_id(session_id))


async def get_sessions(db: AsyncSession) -> List[models.ChatSession]:
    """Get all stored sessions, most recently updated first."""
    result = await db.execute(select(models.ChatSession).order_by(models.ChatSession.updated_at.desc()))
    return list(result.scalars().all())


async def delete_session(db: AsyncSession, session_id: str) -> bool:
    """
    Delete a stored session.

    Returns:
        True if a session was deleted, False if none was stored under the id
    """
    db_session = await db.get(models.ChatSession, validate_session_id(session_id))
    if db_session is None:
        return False
    await db.delete(db_session)
    await db.commit()
    logger.info(f"Deleted session {session_id}")
    return True
