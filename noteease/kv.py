"""Asynchronous key-value engines backing the persistence gateway.

Every engine implements the same small contract (``get``/``set``/``remove``/
``clear``). Engines raise ``KeyValueError`` on failure; the gateway above
them turns those into booleans and load-result flags.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Optional, Protocol

import redis.asyncio as aioredis

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "noteease"


class KeyValueError(Exception):
    """The underlying store rejected or failed an operation."""


class RecordTooLargeError(KeyValueError):
    """A value exceeds what the storage engine can hold in one row."""

    def __init__(self, key: str, size: int, limit: int) -> None:
        super().__init__(
            f"Row too big to fit into CursorWindow: {key} is {size} bytes "
            f"(limit {limit})"
        )
        self.key = key
        self.size = size
        self.limit = limit


class KeyValueStore(Protocol):
    """Contract the gateway depends on."""

    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str) -> bool: ...

    async def remove(self, key: str) -> bool: ...

    async def clear(self) -> bool: ...

    async def close(self) -> None: ...


def _check_size(key: str, value: str, limit: Optional[int]) -> None:
    if limit is None:
        return
    size = len(value.encode("utf-8"))
    if size > limit:
        raise RecordTooLargeError(key, size, limit)


# ---------------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------------


class InMemoryKeyValueStore:
    """Dict-backed store, used for tests and ephemeral sessions."""

    def __init__(self, max_value_bytes: Optional[int] = None) -> None:
        self._data: dict[str, str] = {}
        self._max_value_bytes = max_value_bytes

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> bool:
        _check_size(key, value, self._max_value_bytes)
        self._data[key] = value
        return True

    async def remove(self, key: str) -> bool:
        self._data.pop(key, None)
        return True

    async def clear(self) -> bool:
        self._data.clear()
        return True

    async def close(self) -> None:
        return None


# ---------------------------------------------------------------------------
# JSON file
# ---------------------------------------------------------------------------


class JsonFileKeyValueStore:
    """Stores every key as a string value inside a single JSON object file."""

    def __init__(self, path: Path, max_value_bytes: Optional[int] = None) -> None:
        self._path = Path(path)
        self._max_value_bytes = max_value_bytes
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise KeyValueError(f"Unreadable store file {self._path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise KeyValueError(f"Store file {self._path} is not a JSON object")
        return raw

    def _write(self, data: dict[str, str]) -> None:
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp, self._path)
        except OSError as exc:
            raise KeyValueError(f"Cannot write store file {self._path}: {exc}") from exc

    async def get(self, key: str) -> Optional[str]:
        async with self._lock:
            data = await asyncio.to_thread(self._read)
        value = data.get(key)
        if value is not None:
            if not isinstance(value, str):
                raise KeyValueError(f"Value for {key} is not a string")
            _check_size(key, value, self._max_value_bytes)
        return value

    async def set(self, key: str, value: str) -> bool:
        _check_size(key, value, self._max_value_bytes)
        async with self._lock:
            data = await asyncio.to_thread(self._read)
            data[key] = value
            await asyncio.to_thread(self._write, data)
        return True

    async def remove(self, key: str) -> bool:
        async with self._lock:
            data = await asyncio.to_thread(self._read)
            if key in data:
                del data[key]
                await asyncio.to_thread(self._write, data)
        return True

    async def clear(self) -> bool:
        async with self._lock:
            try:
                self._path.unlink(missing_ok=True)
            except OSError as exc:
                raise KeyValueError(f"Cannot remove {self._path}: {exc}") from exc
        logger.info("Store file removed: %s", self._path)
        return True

    async def close(self) -> None:
        return None


# ---------------------------------------------------------------------------
# Redis
# ---------------------------------------------------------------------------


class RedisKeyValueStore:
    """Async Redis engine. Keys live under ``<namespace>:`` in the database."""

    def __init__(self, redis_url: str, namespace: str = DEFAULT_NAMESPACE) -> None:
        self._redis_url = redis_url
        self._namespace = namespace
        self._client: Optional[aioredis.Redis] = None

    @property
    def available(self) -> bool:
        """Whether the Redis connection is active."""
        return self._client is not None

    async def connect(self) -> None:
        """Connect to Redis. Non-fatal if Redis is unavailable."""
        try:
            self._client = aioredis.from_url(self._redis_url, decode_responses=True)
            await self._client.ping()
            logger.info("Redis store connected: %s", self._redis_url)
        except Exception as e:
            logger.warning("Redis unavailable, storage operations will fail: %s", e)
            self._client = None

    async def close(self) -> None:
        """Close the Redis connection."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _key(self, key: str) -> str:
        return f"{self._namespace}:{key}"

    def _require_client(self) -> aioredis.Redis:
        if self._client is None:
            raise KeyValueError("Redis store is not connected")
        return self._client

    async def get(self, key: str) -> Optional[str]:
        client = self._require_client()
        try:
            return await client.get(self._key(key))
        except Exception as e:
            raise KeyValueError(f"Redis get failed: {e}") from e

    async def set(self, key: str, value: str) -> bool:
        client = self._require_client()
        try:
            return bool(await client.set(self._key(key), value))
        except Exception as e:
            raise KeyValueError(f"Redis set failed: {e}") from e

    async def remove(self, key: str) -> bool:
        client = self._require_client()
        try:
            await client.delete(self._key(key))
        except Exception as e:
            raise KeyValueError(f"Redis delete failed: {e}") from e
        return True

    async def clear(self) -> bool:
        """Delete every key in this store's namespace."""
        client = self._require_client()
        try:
            cursor: int | str = 0
            keys_to_delete: list[str] = []
            while True:
                cursor, keys = await client.scan(
                    cursor, match=f"{self._namespace}:*", count=100
                )
                keys_to_delete.extend(keys)
                if cursor == 0:
                    break
            if keys_to_delete:
                await client.delete(*keys_to_delete)
        except Exception as e:
            raise KeyValueError(f"Redis clear failed: {e}") from e
        return True
