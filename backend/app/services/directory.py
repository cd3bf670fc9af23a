"""
User Directory Adapter - profile lookup and presence flags

The calling core consumes the directory through two narrow operations:
- find_user_by_id(): role and display name of a known user
- mark_online() / mark_offline() / touch(): presence flags for other services

Presence is recorded in two places:
1. Redis key ``online:{user_id}`` with a TTL, refreshed by client heartbeats
2. ``users.is_online`` / ``users.socket_id`` in the database

A user who reconnected on a new socket keeps their online flag when the old
socket's disconnect arrives late: the DB row is only cleared when it still
points at the disconnecting handle.
"""
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Protocol
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.constants import PRESENCE_KEY_PREFIX
from app.config.redis import get_redis
from app.config.settings import settings
from app.models.user import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DirectoryUser:
    user_id: str
    role: str
    display_name: str
    is_online: bool


class UserDirectory(Protocol):
    """Interface for the user directory the calling core depends on."""

    async def find_user_by_id(self, user_id: str) -> Optional[DirectoryUser]:
        ...

    async def mark_online(self, user_id: str, connection_handle: str) -> None:
        ...

    async def mark_offline(self, user_id: str, connection_handle: str) -> None:
        ...

    async def touch(self, user_id: str) -> None:
        ...


def presence_key(user_id: str) -> str:
    return f"{PRESENCE_KEY_PREFIX}{user_id}"


class SqlUserDirectory:
    """Directory backed by the ``users`` table and Redis presence keys."""

    def __init__(
        self,
        session_factory: Optional[Callable[[], AsyncSession]] = None,
        redis_getter: Callable[[], Awaitable] = get_redis,
        presence_ttl: int = settings.PRESENCE_TTL_SECONDS,
    ):
        self._session_factory = session_factory
        self._redis_getter = redis_getter
        self.presence_ttl = presence_ttl

    def _session(self) -> AsyncSession:
        if self._session_factory is not None:
            return self._session_factory()
        from app.models import database
        return database.AsyncSessionLocal()

    async def find_user_by_id(self, user_id: str) -> Optional[DirectoryUser]:
        async with self._session() as db:
            result = await db.execute(select(User).where(User.id == user_id))
            user = result.scalar_one_or_none()

        if not user:
            return None

        return DirectoryUser(
            user_id=user.id,
            role=user.role,
            display_name=user.display_name,
            is_online=bool(user.is_online),
        )

    async def mark_online(self, user_id: str, connection_handle: str) -> None:
        """
        Mark user as online.

        Called when a connection announces the user via ``user-joined``.
        """
        redis = await self._redis_getter()
        await redis.set(presence_key(user_id), connection_handle, ex=self.presence_ttl)

        async with self._session() as db:
            result = await db.execute(select(User).where(User.id == user_id))
            user = result.scalar_one_or_none()
            if user:
                user.set_online(connection_handle)
                await db.commit()

        logger.info(f"[Directory] User {user_id} marked online on {connection_handle}")

    async def mark_offline(self, user_id: str, connection_handle: str) -> None:
        """
        Mark user as offline, unless they have since come back on another handle.
        """
        redis = await self._redis_getter()
        current = await redis.get(presence_key(user_id))
        if current is None or current == connection_handle:
            await redis.delete(presence_key(user_id))

        async with self._session() as db:
            result = await db.execute(select(User).where(User.id == user_id))
            user = result.scalar_one_or_none()
            if user and user.socket_id in (None, connection_handle):
                user.set_offline()
                await db.commit()

        logger.info(f"[Directory] User {user_id} marked offline ({connection_handle})")

    async def touch(self, user_id: str) -> None:
        """Refresh the presence TTL after a client heartbeat."""
        redis = await self._redis_getter()
        await redis.expire(presence_key(user_id), self.presence_ttl)
