"""
helpmate/services/session_store.py

Purpose: In-memory stores with fixed expiry

- ExpiringStore: cachetools TTLCache behind an asyncio lock
- SessionStore: widget chat sessions keyed by session id (24h lifetime)
- Expired entries are dropped on access and by a periodic purge
"""

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Generic, List, Optional, Tuple, TypeVar

from cachetools import TTLCache

from helpmate.core.config import settings
from helpmate.core.logging import get_logger

logger = get_logger(__name__)

V = TypeVar("V")


class ExpiringStore(Generic[V]):
    """
    Async-safe map whose entries expire a fixed time after insertion.

    Expiry is not extended by reads or updates of the value object. When
    ``maxsize`` is reached the least recently used entry is evicted.
    """

    def __init__(
        self,
        ttl_seconds: float,
        maxsize: int = 10000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._cache: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl_seconds, timer=clock)
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[V]:
        async with self._lock:
            self._cache.expire()
            return self._cache.get(key)

    async def set(self, key: str, value: V):
        async with self._lock:
            self._cache[key] = value

    async def set_default(self, key: str, factory: Callable[[], V]) -> Tuple[V, bool]:
        """
        Returns the live value for ``key``, inserting ``factory()`` if absent.

        Returns:
            (value, created)
        """
        async with self._lock:
            self._cache.expire()
            if key in self._cache:
                return self._cache[key], False
            value = factory()
            self._cache[key] = value
            return value, True

    async def delete(self, key: str) -> bool:
        async with self._lock:
            return self._cache.pop(key, None) is not None

    async def purge_expired(self) -> int:
        """Removes every expired entry and returns how many were dropped."""
        async with self._lock:
            return len(self._cache.expire())

    async def clear(self):
        async with self._lock:
            self._cache.clear()

    def __len__(self) -> int:
        return len(self._cache)


@dataclass
class ChatSession:
    """A widget visitor's conversation held in memory."""
    session_id: str
    integration_id: str
    visitor_id: Optional[str] = None
    messages: List[Dict[str, Any]] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.utcnow)
    last_active: datetime = field(default_factory=datetime.utcnow)

    def add_message(self, role: str, content: str):
        now = datetime.utcnow()
        self.messages.append({"role": role, "content": content, "timestamp": now})
        self.last_active = now

    def history(self, limit: int) -> List[Dict[str, str]]:
        """Last ``limit`` user/assistant messages, without timestamps."""
        turns = [m for m in self.messages if m["role"] in ("user", "assistant")]
        if limit > 0:
            turns = turns[-limit:]
        return [{"role": m["role"], "content": m["content"]} for m in turns]


class SessionStore:
    """
    Widget chat sessions keyed by session id.

    A session belongs to exactly one integration; a session id presented
    with another integration's API key is treated as unknown.
    """

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        maxsize: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._store: ExpiringStore[ChatSession] = ExpiringStore(
            ttl_seconds if ttl_seconds is not None else settings.session_ttl_seconds,
            maxsize=maxsize if maxsize is not None else settings.SESSION_MAX_ENTRIES,
            clock=clock,
        )

    @staticmethod
    def new_session_id() -> str:
        return uuid.uuid4().hex

    async def get(self, session_id: str) -> Optional[ChatSession]:
        return await self._store.get(session_id)

    async def get_or_create(
        self,
        session_id: Optional[str],
        integration_id: str,
        visitor_id: Optional[str] = None,
    ) -> Tuple[ChatSession, bool]:
        """
        Resolves the session for a widget message.

        Unknown ids are created under the id the client sent, so a widget
        that kept its id across a server restart continues under it.

        Returns:
            (session, created)
        """
        if session_id:
            existing = await self._store.get(session_id)
            if existing is not None:
                if existing.integration_id == integration_id:
                    return existing, False
                logger.warning(
                    "Session id reused across integrations, starting a new session",
                    extra={"session_id": session_id, "integration_id": integration_id}
                )
                session_id = None

        sid = session_id or self.new_session_id()
        return await self._store.set_default(
            sid,
            lambda: ChatSession(session_id=sid, integration_id=integration_id, visitor_id=visitor_id),
        )

    async def delete(self, session_id: str) -> bool:
        return await self._store.delete(session_id)

    async def purge_expired(self) -> int:
        return await self._store.purge_expired()

    async def clear(self):
        await self._store.clear()

    def __len__(self) -> int:
        return len(self._store)


# Global store instances
session_store = SessionStore()
scrape_cache: ExpiringStore[Any] = ExpiringStore(
    settings.SCRAPE_CACHE_TTL_SECONDS,
    maxsize=settings.SCRAPE_CACHE_MAX_ENTRIES,
)


async def purge_loop(interval_seconds: float):
    """
    Periodically drops expired sessions and cached pages.
    Runs until cancelled (started from the application lifespan).
    """
    while True:
        await asyncio.sleep(interval_seconds)
        sessions = await session_store.purge_expired()
        pages = await scrape_cache.purge_expired()
        if sessions or pages:
            logger.info(f"Purged {sessions} expired sessions and {pages} cached pages")
