"""
Session Store - Nøkkelbasert lagring av SessionState per samtale
================================================================

Inneholder:
- SessionStore-grensesnitt (get / set / delete / expire)
- InMemorySessionStore (prosesslevetid, TTL sjekkes ved lesing)
- RedisSessionStore (redis.asyncio, faller tilbake til lokalt lager ved feil)
- KeyedLock: én asyncio.Lock per samtale-ID
"""

import asyncio
import json
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional, Dict, Tuple

from schema import Config, SessionState

logger = logging.getLogger(__name__)


@dataclass
class SessionStoreConfig:
    """Konfigurasjon for session store"""
    url: str = "redis://localhost:6379"
    socket_timeout: float = 5.0
    socket_connect_timeout: float = 5.0
    prefix_session: str = "dyreid:session:"
    ttl_session: int = Config.SESSION_TTL_SECONDS


class SessionStore:
    """Grensesnitt. Implementasjoner må være trygge å kalle fra én event loop."""

    async def get(self, conversation_id: str) -> Optional[SessionState]:
        raise NotImplementedError

    async def set(self, conversation_id: str, state: SessionState) -> None:
        raise NotImplementedError

    async def delete(self, conversation_id: str) -> None:
        raise NotImplementedError

    async def expire(self, conversation_id: str, ttl_seconds: int) -> None:
        raise NotImplementedError

    async def get_or_create(self, conversation_id: str) -> SessionState:
        state = await self.get(conversation_id)
        if state is None:
            state = SessionState()
            await self.set(conversation_id, state)
        return state


# ==============================================================================
# IN-MEMORY
# ==============================================================================

class InMemorySessionStore(SessionStore):
    """
    Lagrer serialisert state, ikke objektet selv: en caller som muterer
    SessionState uten set() skal ikke endre lagret tilstand.
    """

    def __init__(self, ttl_seconds: int = Config.SESSION_TTL_SECONDS):
        self.ttl = ttl_seconds
        self._local_store: Dict[str, Tuple[str, float]] = {}

    def _deadline(self, ttl: Optional[int] = None) -> float:
        return time.monotonic() + (ttl if ttl is not None else self.ttl)

    async def get(self, conversation_id: str) -> Optional[SessionState]:
        item = self._local_store.get(conversation_id)
        if item is None:
            return None
        payload, deadline = item
        if time.monotonic() >= deadline:
            self._local_store.pop(conversation_id, None)
            return None
        return SessionState.from_dict(json.loads(payload))

    async def set(self, conversation_id: str, state: SessionState) -> None:
        self._local_store[conversation_id] = (json.dumps(state.to_dict()), self._deadline())

    async def delete(self, conversation_id: str) -> None:
        self._local_store.pop(conversation_id, None)

    async def expire(self, conversation_id: str, ttl_seconds: int) -> None:
        item = self._local_store.get(conversation_id)
        if item is not None:
            self._local_store[conversation_id] = (item[0], self._deadline(ttl_seconds))

    def __len__(self) -> int:
        return len(self._local_store)


# ==============================================================================
# REDIS
# ==============================================================================

class RedisSessionStore(SessionStore):
    """
    Redis-backend via redis.asyncio. Ved tilkoblingsfeil brukes et lokalt
    InMemorySessionStore resten av prosessens levetid.
    """

    def __init__(self, config: SessionStoreConfig = None, client=None):
        self._config = config or SessionStoreConfig()
        self._redis = client
        self._redis_available = client is not None
        self._fallback = InMemorySessionStore(self._config.ttl_session)

        if self._redis is None:
            self._connect()

    def _connect(self) -> bool:
        try:
            import redis.asyncio as aioredis

            self._redis = aioredis.from_url(
                self._config.url,
                socket_timeout=self._config.socket_timeout,
                socket_connect_timeout=self._config.socket_connect_timeout,
                decode_responses=True,
            )
            self._redis_available = True
            logger.info(f"Redis session store configured: {self._config.url}")
            return True
        except Exception as e:
            logger.warning(f"Redis connection failed: {e}. Using in-memory sessions.")
            self._redis_available = False
            return False

    @property
    def is_connected(self) -> bool:
        return self._redis_available

    def _key(self, conversation_id: str) -> str:
        return f"{self._config.prefix_session}{conversation_id}"

    def _mark_unavailable(self, op: str, e: Exception):
        logger.error(f"Redis {op} error: {e}. Falling back to in-memory sessions.")
        self._redis_available = False

    async def get(self, conversation_id: str) -> Optional[SessionState]:
        if self._redis_available:
            try:
                data = await self._redis.get(self._key(conversation_id))
                return SessionState.from_dict(json.loads(data)) if data else None
            except Exception as e:
                self._mark_unavailable("get", e)
        return await self._fallback.get(conversation_id)

    async def set(self, conversation_id: str, state: SessionState) -> None:
        if self._redis_available:
            try:
                await self._redis.setex(
                    self._key(conversation_id),
                    self._config.ttl_session,
                    json.dumps(state.to_dict(), ensure_ascii=False),
                )
                return
            except Exception as e:
                self._mark_unavailable("set", e)
        await self._fallback.set(conversation_id, state)

    async def delete(self, conversation_id: str) -> None:
        if self._redis_available:
            try:
                await self._redis.delete(self._key(conversation_id))
                return
            except Exception as e:
                self._mark_unavailable("delete", e)
        await self._fallback.delete(conversation_id)

    async def expire(self, conversation_id: str, ttl_seconds: int) -> None:
        if self._redis_available:
            try:
                await self._redis.expire(self._key(conversation_id), ttl_seconds)
                return
            except Exception as e:
                self._mark_unavailable("expire", e)
        await self._fallback.expire(conversation_id, ttl_seconds)


def create_session_store(redis_url: Optional[str] = None) -> SessionStore:
    """REDIS_URL satt -> Redis, ellers prosessminne."""
    if redis_url:
        return RedisSessionStore(SessionStoreConfig(url=redis_url))
    logger.info("REDIS_URL not set, using in-memory session store")
    return InMemorySessionStore()


# ==============================================================================
# PER-CONVERSATION LOCK
# ==============================================================================

class KeyedLock:
    """
    Serialiserer behandling per samtale-ID. Låser for ulike ID-er blokkerer ikke
    hverandre. Ubrukte låser fjernes når siste venter er ferdig.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._waiters: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str):
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

    def is_locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)
