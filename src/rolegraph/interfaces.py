"""Contracts rolegraph requires from its host.

The core never stores containers, roles, relations or cache entries itself;
it reads them through these interfaces. In-memory implementations live in
``rolegraph.graph`` and ``rolegraph.stores``.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from .models import RelationMappingConfig, Relation, Role, RoleScope

PERMANENT = -1
"""TTL meaning "never expires"; invalidation is purely tag-driven."""


class GraphProvider(ABC):
    """Answers structural questions about the container hierarchy."""

    @abstractmethod
    def reachable_edges(self, container_id: str) -> List[Relation]:
        """Direct relations among ``container_id``, its ancestors and its descendants."""
        raise NotImplementedError

    @abstractmethod
    def simple_paths(self, ancestor_id: str, descendant_id: str) -> List[List[str]]:
        """All simple paths from ``ancestor_id`` down to ``descendant_id``.

        Each path starts with ``ancestor_id`` and ends with ``descendant_id``.
        Returns an empty list when the containers are not related.
        """
        raise NotImplementedError


class RelationConfigProvider(ABC):
    @abstractmethod
    def config_for(self, parent_id: str, child_id: str) -> Optional[RelationMappingConfig]:
        """Mapping rules for the direct relation ``parent_id`` → ``child_id``, if any."""
        raise NotImplementedError


@dataclass(frozen=True)
class CacheItem:
    """What a TaggedCacheStore hands back on ``get``."""

    value: Any
    valid: bool = True
    tags: Tuple[str, ...] = ()


class TaggedCacheStore(ABC):
    """Key/value store whose entries are invalidated by tag."""

    @abstractmethod
    def get(self, key: str) -> Optional[CacheItem]:
        raise NotImplementedError

    @abstractmethod
    def set(self, key: str, value: Any, ttl: int = PERMANENT, tags: Sequence[str] = ()) -> None:
        raise NotImplementedError

    @abstractmethod
    def invalidate_tags(self, tags: Iterable[str]) -> None:
        raise NotImplementedError


class RoleDirectory(ABC):
    """Lookup of container types and role records."""

    @abstractmethod
    def container_type(self, container_id: str) -> Optional[str]:
        """Type of the container, or None for an unknown id."""
        raise NotImplementedError

    @abstractmethod
    def container_ids(self) -> List[str]:
        """Every container in the system."""
        raise NotImplementedError

    @abstractmethod
    def roles_of_type(self, type_id: str) -> List[Role]:
        raise NotImplementedError

    @abstractmethod
    def load_roles(self, role_ids: Iterable[str]) -> List[Role]:
        """Role records for ``role_ids``; unknown ids are skipped."""
        raise NotImplementedError

    def outsider_roles(self, type_id: str) -> List[Role]:
        return [r for r in self.roles_of_type(type_id) if r.scope == RoleScope.OUTSIDER]

    def anonymous_roles(self, type_id: str) -> List[Role]:
        return [r for r in self.roles_of_type(type_id) if r.scope == RoleScope.ANONYMOUS]


class MembershipSource(ABC):
    @abstractmethod
    def memberships_of(self, principal_id: str) -> List[Tuple[str, List[str]]]:
        """``(container_id, [role_id, ...])`` for every direct membership."""
        raise NotImplementedError


__all__ = [
    "PERMANENT",
    "CacheItem",
    "GraphProvider",
    "MembershipSource",
    "RelationConfigProvider",
    "RoleDirectory",
    "TaggedCacheStore",
]
