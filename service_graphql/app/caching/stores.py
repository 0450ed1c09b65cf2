"""
Record stores backing the GraphQL cache.

A record store keeps ``{"id": ..., "query": ...}`` records by id and is
responsible for honoring the expiration hint passed with each write.
"""

import json
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Protocol, Tuple

import redis.asyncio as redis
from redis.exceptions import RedisError

from shared.errors import BackingStoreError
from shared.logging import get_logger

Record = Dict[str, Any]


@dataclass(frozen=True)
class WriteOptions:
    """Per-write metadata handed to the store alongside a record."""

    expires_at: Optional[int] = None  # epoch milliseconds
    metadata: Mapping[str, Any] = field(default_factory=dict)


class RecordStore(Protocol):
    """Contract consumed by the cache adapter."""

    async def get(self, key: str) -> Optional[Record]:
        ...

    async def put(self, record: Record, write_options: Optional[WriteOptions] = None) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...


class InMemoryRecordStore:
    """Process-local record store for development and tests."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._records: Dict[str, Tuple[Record, Optional[int]]] = {}

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    async def get(self, key: str) -> Optional[Record]:
        entry = self._records.get(key)
        if entry is None:
            return None

        record, expires_at = entry
        if expires_at is not None and expires_at <= self._now_ms():
            del self._records[key]
            return None
        return dict(record)

    async def put(self, record: Record, write_options: Optional[WriteOptions] = None) -> None:
        self._prune()
        expires_at = write_options.expires_at if write_options else None
        self._records[record["id"]] = (dict(record), expires_at)

    def _prune(self) -> None:
        """Drop expired records, including ones never read again."""
        now_ms = self._now_ms()
        expired = [
            key for key, (_, expires_at) in self._records.items()
            if expires_at is not None and expires_at <= now_ms
        ]
        for key in expired:
            del self._records[key]

    async def delete(self, key: str) -> None:
        self._records.pop(key, None)

    def expiration_of(self, key: str) -> Optional[int]:
        """Expiration hint stored with ``key``, if any."""
        entry = self._records.get(key)
        return entry[1] if entry else None

    def __len__(self) -> int:
        return len(self._records)


class RedisRecordStore:
    """Redis-backed record store; expiration is delegated to Redis via PXAT."""

    def __init__(self, redis_url: str, namespace: str = "graphql", client: Optional[redis.Redis] = None):
        self.redis_url = redis_url
        self.namespace = namespace
        self.logger = get_logger("graphql.cache.redis")
        self.redis: Optional[redis.Redis] = client

    def _client(self) -> redis.Redis:
        if self.redis is None:
            self.redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
                health_check_interval=30
            )
            self.logger.info("Redis record store connected", namespace=self.namespace)
        return self.redis

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    async def get(self, key: str) -> Optional[Record]:
        try:
            raw = await self._client().get(self._key(key))
        except RedisError as e:
            self.logger.error("Record fetch failed", key=key, error=str(e))
            raise BackingStoreError("redis", str(e)) from e

        if raw is None:
            return None
        return json.loads(raw)

    async def put(self, record: Record, write_options: Optional[WriteOptions] = None) -> None:
        kwargs: Dict[str, Any] = {}
        if write_options is not None and write_options.expires_at is not None:
            kwargs["pxat"] = write_options.expires_at

        try:
            await self._client().set(self._key(record["id"]), json.dumps(record), **kwargs)
        except RedisError as e:
            self.logger.error("Record write failed", key=record["id"], error=str(e))
            raise BackingStoreError("redis", str(e)) from e

    async def delete(self, key: str) -> None:
        try:
            await self._client().delete(self._key(key))
        except RedisError as e:
            self.logger.error("Record delete failed", key=key, error=str(e))
            raise BackingStoreError("redis", str(e)) from e

    async def ping(self) -> bool:
        try:
            return bool(await self._client().ping())
        except RedisError as e:
            raise BackingStoreError("redis", str(e)) from e

    async def close(self):
        if self.redis is not None:
            await self.redis.aclose()
            self.redis = None
            self.logger.info("Redis record store closed")
