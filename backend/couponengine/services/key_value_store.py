"""Session key-value stores used to persist the active coupon.

Stores are best-effort: a failing backend logs a warning and behaves like an
empty store, since losing the persisted coupon only means the shopper has to
enter it again.
"""

import logging
from typing import Protocol

import redis

from couponengine.core.config import settings

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class InMemoryKeyValueStore:
    """Dict-backed store for tests and single-process use."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class RedisKeyValueStore:
    """Redis-backed store scoped to one browsing session.

    Keys are namespaced as ``<prefix>:<session_id>:<key>`` and expire after
    ``ttl_seconds``, which is what ends the session for persisted state.
    """

    def __init__(
        self,
        session_id: str,
        client: redis.Redis | None = None,
        prefix: str = settings.COUPON_STORAGE_PREFIX,
        ttl_seconds: int = settings.COUPON_SESSION_TTL_SECONDS,
    ):
        self.session_id = session_id
        self.client = client or redis.Redis.from_url(settings.REDIS_URL, decode_responses=True)
        self.prefix = prefix
        self.ttl_seconds = ttl_seconds

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{self.session_id}:{key}"

    def get(self, key: str) -> str | None:
        try:
            value = self.client.get(self._key(key))
        except redis.RedisError as exc:
            logger.warning("Failed to read %s from session store: %s", key, exc)
            return None
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value  # type: ignore[return-value]

    def set(self, key: str, value: str) -> None:
        try:
            self.client.set(self._key(key), value, ex=self.ttl_seconds)
        except redis.RedisError as exc:
            logger.warning("Failed to write %s to session store: %s", key, exc)

    def remove(self, key: str) -> None:
        try:
            self.client.delete(self._key(key))
        except redis.RedisError as exc:
            logger.warning("Failed to remove %s from session store: %s", key, exc)
