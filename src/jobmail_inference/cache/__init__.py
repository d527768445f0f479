"""
Content-addressed caching.

- hasher.py: content_key / record_key
- tiered.py: TieredCache (namespaced LRU with source-aware TTLs)
- persistence.py: RedisCachePersistence for the classification namespace
"""

from .hasher import content_key, normalize_subject, record_key
from .persistence import RedisCachePersistence
from .tiered import CacheEntry, CacheNamespace, NamespacePolicy, TieredCache

__all__ = [
    "content_key",
    "record_key",
    "normalize_subject",
    "TieredCache",
    "CacheNamespace",
    "CacheEntry",
    "NamespacePolicy",
    "RedisCachePersistence",
]
