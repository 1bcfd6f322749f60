"""Core data models for rolegraph.

Containers, relations, roles and relation mapping rules are immutable
Pydantic models. A RoleMap is a plain nested mapping:

    role_map[source_container_id][target_container_id][source_role_id] = target_role_id

read as "a holder of ``source_role_id`` in the source container is granted
``target_role_id`` in the target container".
"""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

RoleMap = Mapping[str, Mapping[str, Mapping[str, str]]]
"""source container → target container → (source role → target role)."""

ANONYMOUS_PRINCIPAL_KEY = "anonymous"


class RoleScope(str, Enum):
    """Who a role applies to within its container type."""

    MEMBER = "member"
    OUTSIDER = "outsider"
    ANONYMOUS = "anonymous"


class Container(BaseModel):
    """A group-like entity that can nest other containers."""

    model_config = ConfigDict(frozen=True)

    id: str
    type_id: str


class Relation(BaseModel):
    """Directed nesting edge: ``child_id`` is nested in ``parent_id``."""

    model_config = ConfigDict(frozen=True)

    parent_id: str
    child_id: str
    relation_type_id: str


class Role(BaseModel):
    """A named bundle of permissions scoped to one container type."""

    model_config = ConfigDict(frozen=True)

    id: str
    type_id: str = ""
    permissions: frozenset[str] = Field(default_factory=frozenset)
    is_admin: bool = False
    scope: RoleScope = RoleScope.MEMBER


class RelationMappingConfig(BaseModel):
    """Role mapping rules for one relation type.

    Entries whose target is empty are ignored everywhere: "no mapping" and
    "mapped to nothing" mean the same thing. Use the ``child_to_parent()``,
    ``parent_to_child()`` and ``*_gate()`` accessors rather than the raw
    fields.
    """

    model_config = ConfigDict(frozen=True)

    relation_type_id: str
    # child role id -> parent role id
    child_to_parent_map: dict[str, Optional[str]] = Field(default_factory=dict)
    # parent role id -> child role id
    parent_to_child_map: dict[str, Optional[str]] = Field(default_factory=dict)
    # parent role id -> gate role ids the holder must also have in the child
    parent_target_roles: dict[str, frozenset[str]] = Field(default_factory=dict)
    # child role id -> gate role ids the holder must also have in the parent
    child_target_roles: dict[str, frozenset[str]] = Field(default_factory=dict)

    def child_to_parent(self) -> dict[str, str]:
        return {src: dst for src, dst in self.child_to_parent_map.items() if dst}

    def parent_to_child(self) -> dict[str, str]:
        return {src: dst for src, dst in self.parent_to_child_map.items() if dst}

    def parent_gate(self, parent_role_id: str) -> frozenset[str]:
        return frozenset(g for g in self.parent_target_roles.get(parent_role_id, ()) if g)

    def child_gate(self, child_role_id: str) -> frozenset[str]:
        return frozenset(g for g in self.child_target_roles.get(child_role_id, ()) if g)

    def filtered(self) -> RelationMappingConfig:
        """Copy of this config with all empty entries dropped."""
        return RelationMappingConfig(
            relation_type_id=self.relation_type_id,
            child_to_parent_map=self.child_to_parent(),
            parent_to_child_map=self.parent_to_child(),
            parent_target_roles={k: self.parent_gate(k) for k in self.parent_target_roles if self.parent_gate(k)},
            child_target_roles={k: self.child_gate(k) for k in self.child_target_roles if self.child_gate(k)},
        )


class Principal(BaseModel):
    """The account permissions are calculated for."""

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    is_anonymous: bool = False

    @property
    def key(self) -> str:
        """Stable identifier for cache tags; never collides with a real id of ``0``."""
        if self.is_anonymous or self.id is None:
            return ANONYMOUS_PRINCIPAL_KEY
        return f"user:{self.id}"

    @classmethod
    def anonymous(cls) -> Principal:
        return cls(id=None, is_anonymous=True)


class PermissionGrant(BaseModel):
    """Permissions granted in one target container."""

    model_config = ConfigDict(frozen=True)

    scope: str = "individual"
    target_container_id: str
    permissions: frozenset[str] = Field(default_factory=frozenset)
    is_admin: bool = False


class CalculatedPermissions(BaseModel):
    """Result of a permission calculation plus its cache dependencies."""

    items: list[PermissionGrant] = Field(default_factory=list)
    cache_tags: set[str] = Field(default_factory=set)
    cache_contexts: set[str] = Field(default_factory=set)

    def add_cache_tags(self, tags) -> None:
        self.cache_tags.update(tags)

    def add_cache_contexts(self, contexts) -> None:
        self.cache_contexts.update(contexts)

    def get_item(self, target_container_id: str) -> Optional[PermissionGrant]:
        for item in self.items:
            if item.target_container_id == target_container_id:
                return item
        return None


def freeze_role_map(role_map: RoleMap) -> RoleMap:
    """Return a read-only view of ``role_map`` safe to share between readers."""
    return MappingProxyType({
        source: MappingProxyType({
            target: MappingProxyType(dict(roles)) for target, roles in targets.items()
        })
        for source, targets in role_map.items()
    })


def thaw_role_map(role_map: RoleMap) -> dict[str, dict[str, dict[str, str]]]:
    """Plain nested dict copy of a (possibly frozen) role map."""
    return {
        source: {target: dict(roles) for target, roles in targets.items()}
        for source, targets in role_map.items()
    }


__all__ = [
    "ANONYMOUS_PRINCIPAL_KEY",
    "CalculatedPermissions",
    "Container",
    "PermissionGrant",
    "Principal",
    "Relation",
    "RelationMappingConfig",
    "Role",
    "RoleMap",
    "RoleScope",
    "freeze_role_map",
    "thaw_role_map",
]
