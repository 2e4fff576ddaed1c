"""Ephemeral device credentials backed by a time-expiring key-value store."""

from __future__ import annotations

import logging
import secrets
import time
from collections.abc import Callable
from typing import Protocol

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from envelope.core.errors import CredentialStoreError, DeviceNotRegisteredError
from envelope.core.settings import Settings

logger = logging.getLogger(__name__)

_KEY_PREFIX = "device"


class KeyValueStore(Protocol):
    """Key-value store with per-key expiry."""

    async def get(self, key: str) -> str | None:
        """Return the live value for ``key`` or None when absent or expired."""

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""


class RedisKeyValueStore:
    """KeyValueStore over the redis-py asyncio client."""

    def __init__(self, client: aioredis.Redis) -> None:
        self._redis = client

    @classmethod
    def from_url(cls, url: str) -> RedisKeyValueStore:
        return cls(aioredis.from_url(url, decode_responses=True))

    async def get(self, key: str) -> str | None:
        try:
            value = await self._redis.get(key)
        except RedisError as err:
            raise CredentialStoreError(f"redis GET failed for {key!r}") from err
        if isinstance(value, bytes):
            return value.decode()
        return value

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        try:
            await self._redis.set(key, value, ex=ttl_seconds if ttl_seconds else None)
        except RedisError as err:
            raise CredentialStoreError(f"redis SET failed for {key!r}") from err

    async def close(self) -> None:
        await self._redis.aclose()


class InMemoryKeyValueStore:
    """Process-local KeyValueStore with lazy expiry.

    Used when no Redis URL is configured and in tests; ``clock`` lets callers
    move time forward without sleeping.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[str, float | None]] = {}

    async def get(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            self._entries.pop(key, None)
            return None
        return value

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        expires_at = self._clock() + ttl_seconds if ttl_seconds else None
        self._entries[key] = (value, expires_at)

    async def close(self) -> None:
        self._entries.clear()


def generate_token(length: int, alphabet: str) -> str:
    """Return a random token of ``length`` characters drawn uniformly from ``alphabet``."""
    return "".join(secrets.choice(alphabet) for _ in range(length))


class CredentialStore:
    """Issues and verifies opaque per-device tokens.

    Registration overwrites any previous token for the device. Verification only
    reads; it never creates a record.
    """

    def __init__(self, store: KeyValueStore, settings: Settings) -> None:
        self._store = store
        self._ttl = settings.credential_ttl
        self._token_length = settings.token_length
        self._alphabet = settings.token_alphabet

    @staticmethod
    def _key(device_id: str) -> str:
        return f"{_KEY_PREFIX}:{device_id}"

    async def register(self, device_id: str, token: str, ttl_seconds: int | None) -> None:
        """Store ``token`` for ``device_id`` with an optional TTL.

        Raises:
            CredentialStoreError: If the backing store is unavailable.
        """
        await self._store.set(self._key(device_id), token, ttl_seconds)

    async def issue(self, device_id: str) -> str:
        """Generate a fresh token for the device, store it and return it."""
        token = generate_token(self._token_length, self._alphabet)
        await self.register(device_id, token, self._ttl)
        logger.info("registered device %s", device_id)
        return token

    async def verify(self, device_id: str) -> str:
        """Return the live token of ``device_id``.

        Raises:
            DeviceNotRegisteredError: If no token exists or it has expired.
            CredentialStoreError: If the backing store is unavailable.
        """
        token = await self._store.get(self._key(device_id))
        if token is None:
            raise DeviceNotRegisteredError(device_id)
        return token

    async def matches(self, device_id: str, token: str) -> bool:
        """Return True if ``token`` equals the live token of ``device_id``."""
        stored = await self.verify(device_id)
        return secrets.compare_digest(stored.encode(), token.encode())


def build_key_value_store(settings: Settings) -> RedisKeyValueStore | InMemoryKeyValueStore:
    """Return the Redis-backed store when configured, otherwise the in-process one."""
    if settings.redis_url:
        return RedisKeyValueStore.from_url(settings.redis_url)
    logger.warning("REDIS_URL not set; device credentials are kept in process memory")
    return InMemoryKeyValueStore()
