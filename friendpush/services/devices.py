from dataclasses import dataclass

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from friendpush.core.database import UserDevice

logger = structlog.get_logger()

# Postgres caps a statement at 32767 bind parameters, older SQLite builds at 999.
DEFAULT_CHUNK_SIZE = 500


@dataclass(frozen=True)
class DeviceEndpoint:
    owner_id: str
    platform: str
    token: str


class EndpointResolver:
    """Looks up registered push tokens in `user_devices`."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        self._session_factory = session_factory
        self._chunk_size = max(1, chunk_size)

    @property
    def is_configured(self) -> bool:
        return self._session_factory is not None

    async def resolve(self, user_ids: list[str], platform: str) -> list[DeviceEndpoint]:
        """Return every `platform` device owned by `user_ids`, ordered by owner.

        Owners are queried `chunk_size` at a time so any friend count fits in
        the driver's parameter limit. Storage errors are logged and reported
        as no devices.
        """
        if not user_ids or self._session_factory is None:
            return []

        owners = sorted(set(user_ids))
        rows = []
        try:
            async with self._session_factory() as session:
                for start in range(0, len(owners), self._chunk_size):
                    chunk = owners[start : start + self._chunk_size]
                    stmt = (
                        select(UserDevice.user_id, UserDevice.push_token)
                        .where(UserDevice.user_id.in_(chunk), UserDevice.platform == platform)
                        .order_by(UserDevice.user_id, UserDevice.id)
                    )
                    rows.extend((await session.execute(stmt)).all())
        except (SQLAlchemyError, OSError) as e:
            logger.error(
                "device_lookup_failed",
                user_count=len(owners),
                platform=platform,
                error=str(e),
            )
            return []

        return [
            DeviceEndpoint(owner_id=user_id, platform=platform, token=token)
            for user_id, token in rows
            if token
        ]
