import structlog
from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from friendpush.core.database import Friend

logger = structlog.get_logger()


class GraphResolver:
    """Resolves a user's friends from the symmetric `friends` edge table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None):
        self._session_factory = session_factory

    @property
    def is_configured(self) -> bool:
        return self._session_factory is not None

    async def resolve(self, actor_id: str) -> list[str]:
        """Return the other party of every edge touching `actor_id`, deduplicated.

        Storage errors are logged and reported as an empty graph.
        """
        if self._session_factory is None:
            return []

        stmt = select(Friend.user_id, Friend.friend_id).where(
            or_(Friend.user_id == actor_id, Friend.friend_id == actor_id)
        )
        try:
            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).all()
        except (SQLAlchemyError, OSError) as e:
            logger.error("friend_lookup_failed", actor_prefix=actor_id[:8], error=str(e))
            return []

        friend_ids: dict[str, None] = {}
        for user_id, friend_id in rows:
            other = friend_id if user_id == actor_id else user_id
            if other != actor_id:
                friend_ids[other] = None
        return list(friend_ids)
