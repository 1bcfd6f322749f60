"""Effective permissions inherited through the container hierarchy.

``PermissionAggregator.calculate()`` turns a principal's directly held roles
into grants in every related container:

1. Resolve base roles: membership roles (member scope) or the outsider /
   anonymous roles of every container's type (outsider / anonymous scope).
2. Map them through the role map of the source container and apply the
   relation gates.
3. Aggregate the mapped roles per target container into one grant.

The calculation is pure; the result carries the cache tags and contexts
a caller needs to cache it correctly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from .cache import (
    RoleMapCache,
    container_tag,
    hierarchy_tag,
    membership_tag,
    relation_type_tag,
    role_tag,
)
from .interfaces import MembershipSource, RelationConfigProvider, RoleDirectory
from .logging import get_role_graph_logger
from .models import (
    CalculatedPermissions,
    PermissionGrant,
    Principal,
    RelationMappingConfig,
    RoleMap,
    RoleScope,
)

USER_CONTEXT = "user"


@dataclass
class _Run:
    """State of one ``calculate()`` call."""

    principal: Principal
    scope: RoleScope
    result: CalculatedPermissions = field(default_factory=CalculatedPermissions)
    memberships: Optional[dict[str, list[str]]] = None
    role_maps: dict[str, RoleMap] = field(default_factory=dict)
    relation_configs: dict[tuple[str, str], Optional[RelationMappingConfig]] = field(default_factory=dict)
    processed_types: set[str] = field(default_factory=set)
    # target container -> mapped role ids (insertion ordered)
    mapped: dict[str, dict[str, None]] = field(default_factory=dict)


class PermissionAggregator:
    """Calculates inherited container permissions for a principal.

    Args:
        role_maps: Role map cache (builds on miss).
        directory: Container types and role records.
        memberships: Direct memberships of principals.
        relation_configs: Mapping rules used for gate checks. Defaults to
            the provider the role map builder uses.
    """

    def __init__(
        self,
        role_maps: RoleMapCache,
        directory: RoleDirectory,
        memberships: MembershipSource,
        relation_configs: Optional[RelationConfigProvider] = None,
    ) -> None:
        self._role_maps = role_maps
        self._directory = directory
        self._memberships = memberships
        self._relation_configs = relation_configs or role_maps.builder.relation_configs

    def calculate(self, principal: Principal, scope: RoleScope | str) -> CalculatedPermissions:
        scope = RoleScope(scope)
        run = _Run(principal=principal, scope=scope)

        if scope == RoleScope.MEMBER:
            self._calculate_member_permissions(run)
        else:
            self._calculate_non_member_permissions(run)

        self._aggregate(run)

        log = get_role_graph_logger(__name__, principal_id=principal.key)
        log.debug(
            "Calculated %d inherited grants for scope %s",
            len(run.result.items),
            scope.value,
        )
        return run.result

    # ── Base roles ───────────────────────────────────────

    def _calculate_member_permissions(self, run: _Run) -> None:
        # Recalculate whenever the principal joins or leaves a container.
        run.result.add_cache_tags([membership_tag(run.principal.key)])
        run.result.add_cache_contexts([USER_CONTEXT])

        for container_id, role_ids in self._principal_memberships(run).items():
            run.result.add_cache_tags([container_tag(container_id)])
            type_id = self._directory.container_type(container_id)
            if type_id is None:
                continue
            self._add_type_tags(run, type_id)
            if not role_ids:
                continue
            self._add_inherited_roles(run, container_id, set(role_ids))

    def _calculate_non_member_permissions(self, run: _Run) -> None:
        run.result.add_cache_contexts([USER_CONTEXT])

        # Outsiders and anonymous users inherit through every container.
        for container_id in self._directory.container_ids():
            type_id = self._directory.container_type(container_id)
            if type_id is None:
                continue
            self._add_type_tags(run, type_id)
            if run.scope == RoleScope.ANONYMOUS:
                roles = self._directory.anonymous_roles(type_id)
            else:
                roles = self._directory.outsider_roles(type_id)
            if not roles:
                continue
            run.result.add_cache_tags(role_tag(role.id) for role in roles)
            self._add_inherited_roles(run, container_id, {role.id for role in roles})

    def _add_type_tags(self, run: _Run, type_id: str) -> None:
        if type_id not in run.processed_types:
            run.processed_types.add(type_id)
            run.result.add_cache_tags([hierarchy_tag(type_id)])

    # ── Mapping and gating ───────────────────────────────

    def _add_inherited_roles(self, run: _Run, source_id: str, role_ids: set[str]) -> None:
        role_map = self._role_map(run, source_id)
        for target_id, mapping in role_map.get(source_id, {}).items():
            if target_id == source_id:
                continue
            for source_role_id, target_role_id in mapping.items():
                if source_role_id not in role_ids:
                    continue
                if not self._passes_gate(run, source_id, target_id, source_role_id):
                    continue
                run.mapped.setdefault(target_id, {})[target_role_id] = None

    def _role_map(self, run: _Run, container_id: str) -> RoleMap:
        role_map = run.role_maps.get(container_id)
        if role_map is None:
            role_map = run.role_maps[container_id] = self._role_maps.get_role_map(container_id)
            run.result.add_cache_tags(self._role_maps.tags_for(container_id))
        return role_map

    def _passes_gate(self, run: _Run, source_id: str, target_id: str, source_role_id: str) -> bool:
        """Whether a mapping from ``source_id`` to ``target_id`` survives its relation gate.

        Only direct relations carry gates. When the source is the parent the
        parent gate applies, when it is the child the child gate applies.
        """
        config = self._relation_config(run, source_id, target_id)
        if config is not None:
            gate = config.parent_gate(source_role_id)
        else:
            config = self._relation_config(run, target_id, source_id)
            if config is None:
                return True
            gate = config.child_gate(source_role_id)

        run.result.add_cache_tags([relation_type_tag(config.relation_type_id)])
        if not gate:
            return True
        run.result.add_cache_tags(role_tag(role_id) for role_id in gate)
        return not gate.isdisjoint(self._held_role_ids(run, target_id))

    def _relation_config(self, run: _Run, parent_id: str, child_id: str) -> Optional[RelationMappingConfig]:
        key = (parent_id, child_id)
        if key not in run.relation_configs:
            run.relation_configs[key] = self._relation_configs.config_for(parent_id, child_id)
        return run.relation_configs[key]

    def _held_role_ids(self, run: _Run, container_id: str) -> set[str]:
        """Roles the principal holds directly in ``container_id``.

        Outside its memberships that is the anonymous or outsider roles of
        the container's type, following the calculation scope.
        """
        memberships = self._principal_memberships(run)
        if container_id in memberships:
            return set(memberships[container_id])
        type_id = self._directory.container_type(container_id)
        if type_id is None:
            return set()
        if run.scope == RoleScope.MEMBER:
            anonymous = run.principal.is_anonymous
        else:
            anonymous = run.scope == RoleScope.ANONYMOUS
        if anonymous:
            roles = self._directory.anonymous_roles(type_id)
        else:
            roles = self._directory.outsider_roles(type_id)
        run.result.add_cache_tags(role_tag(role.id) for role in roles)
        return {role.id for role in roles}

    def _principal_memberships(self, run: _Run) -> dict[str, list[str]]:
        if run.memberships is None:
            if run.principal.is_anonymous or run.principal.id is None:
                run.memberships = {}
            else:
                run.memberships = dict(self._memberships.memberships_of(run.principal.id))
        return run.memberships

    # ── Aggregation ──────────────────────────────────────

    def _aggregate(self, run: _Run) -> None:
        for target_id, role_ids in run.mapped.items():
            run.result.add_cache_tags([container_tag(target_id)])
            permissions: set[str] = set()
            is_admin = False
            for role in self._directory.load_roles(role_ids):
                run.result.add_cache_tags([role_tag(role.id)])
                permissions.update(role.permissions)
                is_admin = is_admin or role.is_admin

            if permissions or is_admin:
                run.result.items.append(
                    PermissionGrant(
                        target_container_id=target_id,
                        permissions=frozenset(permissions),
                        is_admin=is_admin,
                    )
                )


__all__ = ["PermissionAggregator", "USER_CONTEXT"]
