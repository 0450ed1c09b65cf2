"""
GraphQL caching package.

The engine talks to a three-operation key-value cache (get/set/delete).
The default implementation keeps values as records in a store that
understands expiration hints; Redis in production, memory in tests.
"""

from .record_cache import KeyValueCache, RecordCache
from .stores import InMemoryRecordStore, RecordStore, RedisRecordStore, WriteOptions

__all__ = [
    "KeyValueCache",
    "RecordCache",
    "RecordStore",
    "InMemoryRecordStore",
    "RedisRecordStore",
    "WriteOptions",
]
