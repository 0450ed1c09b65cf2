"""
Default GraphQL cache: a key-value cache over a record store.
"""

import time
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Mapping, Optional, Protocol

from .stores import RecordStore, WriteOptions

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


class KeyValueCache(Protocol):
    """The three-operation cache contract the engine relies on."""

    async def get(self, key: str) -> Optional[str]:
        ...

    async def set(self, key: str, value: str, options: Optional[Mapping[str, Any]] = None) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...


def _now_ms() -> int:
    return int(time.time() * 1000)


class RecordCache:
    """Stores each cache value as ``{"id": key, "query": value}``.

    Expired entries are the store's concern; this adapter only converts a
    ``ttl`` (seconds) into an absolute ``expires_at`` hint.
    """

    cache_type = "graphql"

    def __init__(self, store: RecordStore, *, metrics: Optional["MetricsCollector"] = None):
        self.store = store
        self.metrics = metrics

    async def get(self, key: str) -> Optional[str]:
        record = await self.store.get(key)
        value = record.get("query") if record else None

        if self.metrics is not None:
            metric = "cache_hits_total" if value is not None else "cache_misses_total"
            self.metrics.increment_counter(metric, cache_type=self.cache_type)
        return value

    async def set(
        self,
        key: str,
        value: str,
        options: Optional[Mapping[str, Any]] = None,
        write_options: Optional[WriteOptions] = None,
    ) -> None:
        ttl = options.get("ttl") if options else None
        if ttl:
            write_options = replace(write_options or WriteOptions(), expires_at=_now_ms() + int(ttl * 1000))

        await self.store.put({"id": key, "query": value}, write_options)

    async def delete(self, key: str) -> None:
        await self.store.delete(key)
