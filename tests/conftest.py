"""Shared fixtures: a fully wired in-memory rolegraph."""

from __future__ import annotations

from typing import Iterable, Optional

import pytest

from rolegraph import (
    Container,
    InMemoryHierarchy,
    InMemoryMemberships,
    InMemoryRelationConfigs,
    InMemoryRoleDirectory,
    MemoryTagCache,
    PermissionAggregator,
    Relation,
    RelationMappingConfig,
    Role,
    RoleGraphConfig,
    RoleMapBuilder,
    RoleMapCache,
    RoleScope,
)


class World:
    """Hierarchy, rules, roles and memberships plus the services over them."""

    def __init__(self, config: Optional[RoleGraphConfig] = None) -> None:
        self.config = config or RoleGraphConfig()
        self.hierarchy = InMemoryHierarchy(config=self.config)
        self.configs = InMemoryRelationConfigs(self.hierarchy)
        self.directory = InMemoryRoleDirectory()
        self.memberships = InMemoryMemberships()
        self.store = MemoryTagCache()
        self.builder = RoleMapBuilder(self.hierarchy, self.configs, self.config)
        self.cache = RoleMapCache(self.builder, self.store, self.directory, self.config)
        self.aggregator = PermissionAggregator(self.cache, self.directory, self.memberships)

    def container(self, container_id: str, type_id: str) -> None:
        self.directory.add_container(Container(id=container_id, type_id=type_id))

    def role(
        self,
        role_id: str,
        type_id: str,
        permissions: Iterable[str] = (),
        *,
        is_admin: bool = False,
        scope: RoleScope = RoleScope.MEMBER,
    ) -> Role:
        role = Role(
            id=role_id,
            type_id=type_id,
            permissions=frozenset(permissions),
            is_admin=is_admin,
            scope=scope,
        )
        self.directory.add_role(role)
        return role

    def relate(self, parent_id: str, child_id: str, relation_type_id: Optional[str] = None, **mapping) -> None:
        """Nest ``child_id`` in ``parent_id``; keyword args become the relation's mapping rules."""
        relation_type_id = relation_type_id or f"{parent_id}-{child_id}"
        self.hierarchy.add_relation(
            Relation(parent_id=parent_id, child_id=child_id, relation_type_id=relation_type_id)
        )
        if mapping:
            self.configs.set_config(RelationMappingConfig(relation_type_id=relation_type_id, **mapping))


@pytest.fixture
def world() -> World:
    return World()


@pytest.fixture
def chain(world: World) -> World:
    """G1 (org) → G2 (team) → G3 (squad): admin → editor → viewer, downwards and back up."""
    world.container("G1", "org")
    world.container("G2", "team")
    world.container("G3", "squad")
    world.role("admin", "org", {"administer org"}, is_admin=True)
    world.role("editor", "team", {"edit team", "view team"})
    world.role("viewer", "squad", {"view squad"})
    world.relate(
        "G1",
        "G2",
        parent_to_child_map={"admin": "editor"},
        child_to_parent_map={"editor": "admin"},
    )
    world.relate(
        "G2",
        "G3",
        parent_to_child_map={"editor": "viewer"},
        child_to_parent_map={"viewer": "editor"},
    )
    return world
