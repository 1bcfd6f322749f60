"""Redis-backed TaggedCacheStore.

Lets several processes share built role maps. Layout in Redis:

- ``<key>``: JSON document ``{"value": ..., "tags": [...]}``
- ``<prefix>:tag:<tag>``: set of keys carrying ``tag``

Redis is an OPTIONAL dependency (``pip install rolegraph[redis]``); use
``rolegraph.stores.create_cache_store()`` to pick a store from config.
Every Redis failure surfaces as CacheStoreError, which RoleMapCache turns
into a rebuild.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, Optional, Sequence

import redis

from .exceptions import CacheStoreError
from .interfaces import PERMANENT, CacheItem, TaggedCacheStore

logger = logging.getLogger(__name__)


def _json_default(value: Any) -> Any:
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    if hasattr(value, "items"):
        return dict(value.items())
    raise TypeError(f"Cannot cache value of type {type(value).__name__}")


class RedisTagCache(TaggedCacheStore):
    """TaggedCacheStore over a synchronous redis-py client.

    Tag sets are not pruned when a key is overwritten with other tags; a
    stale membership only causes one extra invalidation of that key.
    """

    def __init__(self, client: redis.Redis, prefix: str = "rolegraph") -> None:
        self._client = client
        self._prefix = prefix

    @classmethod
    def from_url(cls, url: str, prefix: str = "rolegraph") -> RedisTagCache:
        return cls(redis.Redis.from_url(url, decode_responses=True), prefix=prefix)

    def tag_key(self, tag: str) -> str:
        return f"{self._prefix}:tag:{tag}"

    def get(self, key: str) -> Optional[CacheItem]:
        try:
            raw = self._client.get(key)
        except redis.RedisError as e:
            raise CacheStoreError(f"Redis read failed: {e}", key=key) from e
        if raw is None:
            return None
        try:
            doc = json.loads(raw)
            return CacheItem(value=doc["value"], valid=True, tags=tuple(doc.get("tags", ())))
        except (TypeError, ValueError, KeyError):
            logger.warning("Ignoring undecodable cache entry %s", key)
            return None

    def set(self, key: str, value: Any, ttl: int = PERMANENT, tags: Sequence[str] = ()) -> None:
        tags = sorted(set(tags))
        payload = json.dumps({"value": value, "tags": tags}, default=_json_default)
        try:
            pipe = self._client.pipeline()
            if ttl == PERMANENT:
                pipe.set(key, payload)
            elif ttl > 0:
                pipe.set(key, payload, ex=ttl)
            else:
                # Already expired.
                pipe.delete(key)
            for tag in tags:
                pipe.sadd(self.tag_key(tag), key)
            pipe.execute()
        except redis.RedisError as e:
            raise CacheStoreError(f"Redis write failed: {e}", key=key) from e

    def invalidate_tags(self, tags: Iterable[str]) -> None:
        tag_keys = [self.tag_key(tag) for tag in tags]
        if not tag_keys:
            return
        try:
            pipe = self._client.pipeline()
            for tag_key in tag_keys:
                pipe.smembers(tag_key)
            keys = set().union(*pipe.execute())

            pipe = self._client.pipeline()
            if keys:
                pipe.delete(*keys)
            pipe.delete(*tag_keys)
            pipe.execute()
        except redis.RedisError as e:
            raise CacheStoreError(f"Redis invalidation failed: {e}", tags=tag_keys) from e
        if keys:
            logger.debug("Invalidated %d cache entries for %d tags", len(keys), len(tag_keys))


__all__ = ["RedisTagCache"]
