from dataclasses import dataclass

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from friendpush.core.database import Cafe, User, Visit

logger = structlog.get_logger()


@dataclass(frozen=True)
class ActorInfo:
    username: str | None = None
    avatar_url: str | None = None


class ProfileLookup:
    """Best-effort lookups used to decorate alert pushes. Failures yield empty values."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None):
        self._session_factory = session_factory

    async def actor_info(self, user_id: str) -> ActorInfo:
        if self._session_factory is None:
            return ActorInfo()
        stmt = select(User.username, User.avatar_url).where(User.id == user_id)
        try:
            async with self._session_factory() as session:
                row = (await session.execute(stmt)).first()
        except (SQLAlchemyError, OSError) as e:
            logger.error("actor_lookup_failed", actor_prefix=user_id[:8], error=str(e))
            return ActorInfo()

        if row is None:
            logger.warning("actor_not_found", actor_prefix=user_id[:8])
            return ActorInfo()
        return ActorInfo(username=row.username, avatar_url=row.avatar_url)

    async def cafe_name(self, visit_id: str) -> str | None:
        if self._session_factory is None:
            return None
        stmt = select(Cafe.name).join(Visit, Visit.cafe_id == Cafe.id).where(Visit.id == visit_id)
        try:
            async with self._session_factory() as session:
                return (await session.execute(stmt)).scalar_one_or_none()
        except (SQLAlchemyError, OSError) as e:
            logger.error("visit_lookup_failed", visit_id=visit_id, error=str(e))
            return None
