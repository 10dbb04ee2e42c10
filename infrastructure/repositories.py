# infrastructure/repositories.py
"""Chat session store implementations"""
import json
import logging
from typing import AsyncContextManager, Callable, Dict, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from core.domain import ChatSession
from core.interfaces import ISessionStore
from database.session import ChatSessionEntity, get_session

logger = logging.getLogger(settings.LOGGER_NAME)

SessionFactory = Callable[[], AsyncContextManager[AsyncSession]]


class InMemorySessionStore(ISessionStore):
    """
    Process-local store. Sessions are round-tripped through their dict form so
    callers never share a mutable instance with the store.
    """

    def __init__(self):
        self._sessions: Dict[str, dict] = {}

    async def get(self, session_id: str) -> Optional[ChatSession]:
        data = self._sessions.get(session_id)
        return ChatSession.from_dict(data) if data is not None else None

    async def put(self, session: ChatSession) -> None:
        self._sessions[session.id] = session.to_dict()

    async def delete(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    async def list_all(self) -> List[ChatSession]:
        sessions = [ChatSession.from_dict(d) for d in self._sessions.values()]
        return sorted(sessions, key=lambda s: s.updated_at, reverse=True)


class SQLSessionStore(ISessionStore):
    """One row per session holding the JSON-serialised session."""

    def __init__(self, session_factory: SessionFactory = get_session):
        self.session_factory = session_factory

    @staticmethod
    def _to_domain(entity: Optional[ChatSessionEntity]) -> Optional[ChatSession]:
        if entity is None:
            return None
        return ChatSession.from_dict(json.loads(entity.payload))

    async def get(self, session_id: str) -> Optional[ChatSession]:
        async with self.session_factory() as db:
            return self._to_domain(await db.get(ChatSessionEntity, session_id))

    async def put(self, session: ChatSession) -> None:
        async with self.session_factory() as db:
            entity = await db.get(ChatSessionEntity, session.id)
            if entity is None:
                entity = ChatSessionEntity(id=session.id, created_at=session.created_at)
                db.add(entity)
            entity.title = session.title
            entity.model = session.model
            entity.updated_at = session.updated_at
            entity.payload = json.dumps(session.to_dict())
            await db.commit()
        logger.debug(f"Saved chat session {session.id}")

    async def delete(self, session_id: str) -> bool:
        async with self.session_factory() as db:
            result = await db.execute(delete(ChatSessionEntity).where(ChatSessionEntity.id == session_id))
            await db.commit()
            return result.rowcount > 0

    async def list_all(self) -> List[ChatSession]:
        async with self.session_factory() as db:
            result = await db.execute(select(ChatSessionEntity).order_by(ChatSessionEntity.updated_at.desc()))
            sessions = [self._to_domain(e) for e in result.scalars().all()]
        return [s for s in sessions if s is not None]
