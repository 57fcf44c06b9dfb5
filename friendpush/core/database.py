import datetime

from sqlalchemy import DateTime, ForeignKey, String, func
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from friendpush.config import settings


class Base(DeclarativeBase):
    pass


# These tables are owned by the parent application; this service only reads them.


# ── Social graph ─────────────────────────────────────────────────────────────


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    username: Mapped[str | None] = mapped_column(String(255), nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)


class Friend(Base):
    __tablename__ = "friends"

    # Symmetric edge: the actor may sit in either column.
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), primary_key=True, index=True
    )
    friend_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), primary_key=True, index=True
    )
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime, server_default=func.now()
    )


# ── Device registrations ─────────────────────────────────────────────────────


class UserDevice(Base):
    __tablename__ = "user_devices"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), index=True)
    push_token: Mapped[str] = mapped_column(String(255))
    platform: Mapped[str] = mapped_column(String(20))  # ios / android


# ── Visits ───────────────────────────────────────────────────────────────────


class Cafe(Base):
    __tablename__ = "cafes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(255))


class Visit(Base):
    __tablename__ = "visits"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), index=True)
    cafe_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("cafes.id"), nullable=True
    )
    visibility: Mapped[str] = mapped_column(String(20), default="everyone")  # private/friends/everyone
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime, server_default=func.now()
    )


# ── Engine & Session ──────────────────────────────────────────────────────────
# Both stay None until FANOUT_DB_URL is set; callers treat that as missing configuration.

engine: AsyncEngine | None = (
    create_async_engine(settings.fanout_db_url, echo=False) if settings.fanout_db_url else None
)
async_session: async_sessionmaker[AsyncSession] | None = (
    async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False) if engine else None
)


async def close_db() -> None:
    """Dispose of the engine."""
    if engine is not None:
        await engine.dispose()
