"""Tagged cache for built role maps.

``RoleMapCache`` memoizes ``RoleMapBuilder`` output per root container in a
TaggedCacheStore. Entries never expire; they are dropped when one of their
tags is invalidated:

- ``relation_type:<id>`` for every relation type reachable from the root
  (fired when a relation type's mapping rules change)
- ``hierarchy:<container type id>`` for the type of every container in the
  root's component (fired when containers of that type gain or lose relations)
- ``container:<id>`` for every container in the root's component (fired
  when that container changes or is removed)

Cache population is single-flight per root: concurrent misses for the
same root wait for one build instead of repeating it. Published role maps
are read-only views.

A failing store never fails the caller; the role map is rebuilt instead.
"""

from __future__ import annotations

import logging
import threading
from types import MappingProxyType
from typing import Iterable, Optional

from .builder import RoleMapBuilder
from .config import RoleGraphConfig
from .interfaces import PERMANENT, RoleDirectory, TaggedCacheStore
from .models import RoleMap, freeze_role_map

logger = logging.getLogger(__name__)


def container_tag(container_id: str) -> str:
    return f"container:{container_id}"


def relation_type_tag(relation_type_id: str) -> str:
    return f"relation_type:{relation_type_id}"


def hierarchy_tag(type_id: str) -> str:
    return f"hierarchy:{type_id}"


def role_tag(role_id: str) -> str:
    return f"role:{role_id}"


def membership_tag(principal_key: str) -> str:
    return f"membership:{principal_key}"


class RoleMapCache:
    """Role maps per root container, backed by a tagged cache store."""

    def __init__(
        self,
        builder: RoleMapBuilder,
        store: TaggedCacheStore,
        directory: Optional[RoleDirectory] = None,
        config: Optional[RoleGraphConfig] = None,
    ) -> None:
        self._builder = builder
        self._store = store
        self._directory = directory
        self._config = config or RoleGraphConfig()
        self._tags: dict[str, frozenset[str]] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @property
    def builder(self) -> RoleMapBuilder:
        return self._builder

    def cache_key(self, root_id: str) -> str:
        return f"{self._config.cache_prefix}:{root_id}"

    def get_role_map(self, root_id: str) -> RoleMap:
        if not self._config.cache_enabled:
            return self._build(root_id)[0]

        cached = self._lookup(root_id)
        if cached is not None:
            return cached

        with self._key_lock(root_id):
            # Another caller may have populated the entry while we waited.
            cached = self._lookup(root_id)
            if cached is not None:
                return cached
            role_map, tags = self._build(root_id)
            self._store_role_map(root_id, role_map, tags)
            return role_map

    def tags_for(self, root_id: str) -> frozenset[str]:
        """Invalidation tags of the role map for ``root_id``.

        Uses the tags recorded at build time when available, otherwise
        derives them from the reachable edges of the hierarchy.
        """
        tags = self._tags.get(root_id)
        if tags is None:
            edges = self._builder.graph.reachable_edges(root_id)
            container_ids = {root_id}
            for edge in edges:
                container_ids.update((edge.parent_id, edge.child_id))
            tags = self._compute_tags(container_ids, {edge.relation_type_id for edge in edges})
        return tags

    def invalidate(self, tags: Iterable[str]) -> None:
        """Forward an invalidation to the store; failures are logged.

        Also forgets the recorded tags and idle build locks of every root
        whose entry the invalidation drops.
        """
        tags = list(tags)
        self._forget(tags)
        try:
            self._store.invalidate_tags(tags)
        except Exception as e:
            logger.warning("Cache store invalidation failed for %s: %s", tags, e)

    # ── Internals ────────────────────────────────────────

    def _build(self, root_id: str) -> tuple[RoleMap, frozenset[str]]:
        build = self._builder.build(root_id)
        tags = self._compute_tags(build.container_ids | {root_id}, build.relation_type_ids)
        self._tags[root_id] = tags
        return freeze_role_map(build.role_map), tags

    def _compute_tags(self, container_ids: Iterable[str], relation_type_ids: Iterable[str]) -> frozenset[str]:
        # Every container of the component: a change anywhere in it can
        # alter the root's role map.
        tags = {relation_type_tag(type_id) for type_id in relation_type_ids}
        for container_id in container_ids:
            tags.add(container_tag(container_id))
            if self._directory is not None:
                type_id = self._directory.container_type(container_id)
                if type_id is not None:
                    tags.add(hierarchy_tag(type_id))
        return frozenset(tags)

    def _forget(self, tags: Iterable[str]) -> None:
        dropped = set(tags)
        with self._locks_guard:
            for root_id in [r for r, root_tags in list(self._tags.items()) if not dropped.isdisjoint(root_tags)]:
                self._tags.pop(root_id, None)
                lock = self._locks.get(root_id)
                if lock is not None and not lock.locked():
                    del self._locks[root_id]

    def _lookup(self, root_id: str) -> Optional[RoleMap]:
        key = self.cache_key(root_id)
        try:
            item = self._store.get(key)
        except Exception as e:
            logger.warning("Cache store read failed for %s, rebuilding: %s", key, e)
            return None
        if item is None or not item.valid:
            logger.debug("Role map cache miss for %s", root_id)
            return None
        logger.debug("Role map cache hit for %s", root_id)
        if item.tags:
            self._tags[root_id] = frozenset(item.tags)
        value = item.value
        # Stores that serialize (e.g. Redis) hand back plain dicts.
        if not isinstance(value, MappingProxyType):
            value = freeze_role_map(value)
        return value

    def _store_role_map(self, root_id: str, role_map: RoleMap, tags: frozenset[str]) -> None:
        key = self.cache_key(root_id)
        try:
            self._store.set(key, role_map, ttl=PERMANENT, tags=sorted(tags))
        except Exception as e:
            logger.warning("Cache store write failed for %s: %s", key, e)

    def _key_lock(self, root_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(root_id)
            if lock is None:
                lock = self._locks[root_id] = threading.Lock()
            return lock


__all__ = [
    "RoleMapCache",
    "container_tag",
    "hierarchy_tag",
    "membership_tag",
    "relation_type_tag",
    "role_tag",
]
