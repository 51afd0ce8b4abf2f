"""
Persistence collaborator for session snapshots.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Protocol, runtime_checkable

import crud
import schemas
from domain.session_ids import validate_session_id
from sqlalchemy.ext.asyncio import async_sessionmaker

logger = logging.getLogger("SessionStore")

_EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


@runtime_checkable
class SessionStore(Protocol):
    async def save(self, session_id: str, snapshot: schemas.SessionSnapshot) -> None: ...

    async def load(self, session_id: str) -> Optional[schemas.SessionSnapshot]: ...


class DatabaseSessionStore:
    """Stores snapshots as JSON rows through SQLAlchemy."""

    def __init__(self, session_maker: Optional[async_sessionmaker] = None):
        if session_maker is None:
            from database import async_session_maker

            session_maker = async_session_maker
        self.session_maker = session_maker

    async def save(self, session_id: str, snapshot: schemas.SessionSnapshot) -> None:
        if snapshot.session_id != session_id:
            snapshot = snapshot.model_copy(update={"session_id": validate_session_id(session_id)})
        async with self.session_maker() as db:
            await crud.save_session(db, snapshot)

    async def load(self, session_id: str) -> Optional[schemas.SessionSnapshot]:
        async with self.session_maker() as db:
            db_session = await crud.get_session(db, session_id)
            if db_session is None:
                logger.debug(f"Session {session_id} not found")
                return None
            return schemas.SessionSnapshot.model_validate_json(db_session.payload)

    async def list_sessions(self) -> List[str]:
        async with self.session_maker() as db:
            return [db_session.id for db_session in await crud.get_sessions(db)]

    async def delete_session(self, session_id: str) -> bool:
        async with self.session_maker() as db:
            return await crud.delete_session(db, session_id)


class InMemorySessionStore:
    """Keeps snapshots in a dict; used for ephemeral sessions."""

    def __init__(self):
        self.snapshots: Dict[str, schemas.SessionSnapshot] = {}

    async def save(self, session_id: str, snapshot: schemas.SessionSnapshot) -> None:
        self.snapshots[validate_session_id(session_id)] = snapshot.model_copy(deep=True)

    async def load(self, session_id: str) -> Optional[schemas.SessionSnapshot]:
        snapshot = self.snapshots.get(validate_session_id(session_id))
        return snapshot.model_copy(deep=True) if snapshot is not None else None

    async def list_sessions(self) -> List[str]:
        ordered = sorted(self.snapshots.values(), key=lambda s: s.saved_at or s.created_at or _EPOCH, reverse=True)
        return [snapshot.session_id for snapshot in ordered]

    async def delete_session(self, session_id: str) -> bool:
        return self.snapshots.pop(validate_session_id(session_id), None) is not None
