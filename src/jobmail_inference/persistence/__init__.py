"""
Persistence layer for job records.

- base.py: RecordStore interface
- memory_store.py: InMemoryRecordStore
- redis_store.py: RedisRecordStore (redis.asyncio)
- redis_client.py: Connection pooling
"""

from jobmail_inference.persistence.base import RecordStore
from jobmail_inference.persistence.memory_store import InMemoryRecordStore
from jobmail_inference.persistence.redis_client import RedisClient, create_async_client
from jobmail_inference.persistence.redis_store import RedisRecordStore

__all__ = [
    "RecordStore",
    "InMemoryRecordStore",
    "RedisRecordStore",
    "RedisClient",
    "create_async_client",
]
