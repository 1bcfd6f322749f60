"""In-memory implementations of the rolegraph collaborator contracts.

Useful for tests, for embedding rolegraph in small services, and as a
reference for adapters over real storage.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Sequence

from .config import RoleGraphConfig
from .exceptions import ConfigurationError, UnknownContainerError
from .graph import InMemoryHierarchy
from .interfaces import (
    PERMANENT,
    CacheItem,
    MembershipSource,
    RelationConfigProvider,
    RoleDirectory,
    TaggedCacheStore,
)
from .models import Container, RelationMappingConfig, Role

logger = logging.getLogger(__name__)


class InMemoryRelationConfigs(RelationConfigProvider):
    """Mapping rules keyed by relation type.

    The type of a relation is read from the hierarchy, so editing the
    hierarchy and editing the rules stay independent.
    """

    def __init__(self, hierarchy: InMemoryHierarchy, configs: Iterable[RelationMappingConfig] = ()) -> None:
        self._hierarchy = hierarchy
        self._configs: dict[str, RelationMappingConfig] = {}
        for config in configs:
            self.set_config(config)

    def set_config(self, config: RelationMappingConfig) -> None:
        self._configs[config.relation_type_id] = config

    def remove_config(self, relation_type_id: str) -> None:
        self._configs.pop(relation_type_id, None)

    def config_for(self, parent_id: str, child_id: str) -> Optional[RelationMappingConfig]:
        relation = self._hierarchy.relation(parent_id, child_id)
        if relation is None:
            return None
        return self._configs.get(relation.relation_type_id)


class InMemoryRoleDirectory(RoleDirectory):
    """Containers and role records held in dictionaries.

    Args:
        strict: Raise UnknownContainerError from ``container(...)`` for
            unknown ids. ``container_type`` never raises.
    """

    def __init__(
        self,
        containers: Iterable[Container] = (),
        roles: Iterable[Role] = (),
        *,
        strict: bool = False,
    ) -> None:
        self._containers: dict[str, Container] = {c.id: c for c in containers}
        self._roles: dict[str, Role] = {r.id: r for r in roles}
        self._strict = strict

    def add_container(self, container: Container) -> None:
        self._containers[container.id] = container

    def add_role(self, role: Role) -> None:
        self._roles[role.id] = role

    def container(self, container_id: str) -> Optional[Container]:
        found = self._containers.get(container_id)
        if found is None and self._strict:
            raise UnknownContainerError(f"Unknown container: {container_id}", container_id=container_id)
        return found

    def container_type(self, container_id: str) -> Optional[str]:
        found = self._containers.get(container_id)
        return found.type_id if found else None

    def container_ids(self) -> list[str]:
        return list(self._containers)

    def roles_of_type(self, type_id: str) -> list[Role]:
        return [role for role in self._roles.values() if role.type_id == type_id]

    def load_roles(self, role_ids: Iterable[str]) -> list[Role]:
        return [self._roles[role_id] for role_id in role_ids if role_id in self._roles]


class InMemoryMemberships(MembershipSource):
    """principal id → container id → role ids."""

    def __init__(self) -> None:
        self._memberships: dict[str, dict[str, list[str]]] = {}

    def add_membership(self, principal_id: str, container_id: str, role_ids: Sequence[str]) -> None:
        self._memberships.setdefault(principal_id, {})[container_id] = list(role_ids)

    def remove_membership(self, principal_id: str, container_id: str) -> None:
        self._memberships.get(principal_id, {}).pop(container_id, None)

    def memberships_of(self, principal_id: str) -> list[tuple[str, list[str]]]:
        return [
            (container_id, list(role_ids))
            for container_id, role_ids in self._memberships.get(principal_id, {}).items()
        ]


@dataclass
class _Entry:
    value: Any
    tags: frozenset[str]
    expires_at: Optional[float] = None
    valid: bool = True

    @property
    def is_expired(self) -> bool:
        return self.expires_at is not None and time.monotonic() >= self.expires_at


@dataclass
class _Stats:
    hits: int = 0
    misses: int = 0
    sets: int = 0
    invalidations: int = 0


class MemoryTagCache(TaggedCacheStore):
    """Thread-safe in-process TaggedCacheStore.

    Cache invalidation occurs:
    - When any tag of an entry is invalidated
    - When a finite TTL expires
    - On ``invalidate_all()`` or process restart (nothing is persisted)
    """

    def __init__(self) -> None:
        self._entries: dict[str, _Entry] = {}
        self._tag_index: dict[str, set[str]] = {}
        self._lock = threading.RLock()
        self._stats = _Stats()

    def get(self, key: str) -> Optional[CacheItem]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.is_expired:
                self._drop(key)
                entry = None
            if entry is None:
                self._stats.misses += 1
                return None
            self._stats.hits += 1
            return CacheItem(value=entry.value, valid=entry.valid, tags=tuple(sorted(entry.tags)))

    def set(self, key: str, value: Any, ttl: int = PERMANENT, tags: Sequence[str] = ()) -> None:
        expires_at = None if ttl == PERMANENT else time.monotonic() + ttl
        with self._lock:
            self._drop(key)
            entry = _Entry(value=value, tags=frozenset(tags), expires_at=expires_at)
            self._entries[key] = entry
            for tag in entry.tags:
                self._tag_index.setdefault(tag, set()).add(key)
            self._stats.sets += 1

    def invalidate_tags(self, tags: Iterable[str]) -> None:
        with self._lock:
            for tag in tags:
                keys = self._tag_index.pop(tag, set())
                for key in keys:
                    self._drop(key)
                self._stats.invalidations += len(keys)
                if keys:
                    logger.debug("Invalidated %d cache entries for tag %s", len(keys), tag)

    def invalidate_all(self) -> None:
        with self._lock:
            self._entries.clear()
            self._tag_index.clear()
            logger.info("Invalidated all cache entries")

    def get_stats(self) -> dict[str, int]:
        with self._lock:
            return {
                "size": len(self._entries),
                "hits": self._stats.hits,
                "misses": self._stats.misses,
                "sets": self._stats.sets,
                "invalidations": self._stats.invalidations,
            }

    def _drop(self, key: str) -> None:
        entry = self._entries.pop(key, None)
        if entry is None:
            return
        for tag in entry.tags:
            keys = self._tag_index.get(tag)
            if keys is not None:
                keys.discard(key)
                if not keys:
                    del self._tag_index[tag]


def create_cache_store(config: Optional[RoleGraphConfig] = None) -> TaggedCacheStore:
    """Pick the cache store for ``config``: Redis when ``redis_url`` is set, else in-process.

    Raises:
        ConfigurationError: ``redis_url`` is set but redis is not installed.
    """
    config = config or RoleGraphConfig()
    if not config.redis_url:
        return MemoryTagCache()

    try:
        from .redis_cache import RedisTagCache
    except ImportError as e:
        raise ConfigurationError("redis_url is set but the redis package is not installed") from e

    logger.info("Using Redis cache store for role maps")
    return RedisTagCache.from_url(config.redis_url, prefix=config.cache_prefix)


__all__ = [
    "create_cache_store",
    "InMemoryMemberships",
    "InMemoryRelationConfigs",
    "InMemoryRoleDirectory",
    "MemoryTagCache",
]
