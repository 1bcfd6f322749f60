"""Transitive role map construction.

For a root container, ``RoleMapBuilder`` collects every ancestor/descendant
pair in the part of the hierarchy reachable from the root, enumerates all
simple paths between each pair and turns every path into role mappings:

- direct mappings for each hop, in both directions, from the relation's
  mapping rules;
- composed mappings for every pair of positions two or more hops apart,
  once walking the path downwards and once walking it upwards.

Given ``1 => 20 => 300 => 4000`` the composition derives the mappings
between 1 and 300, 1 and 4000, and 20 and 4000 (and back).

Results are merged with last-write-wins semantics in enumeration order:
when two paths between the same pair disagree, the path enumerated last
decides.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

from .config import RoleGraphConfig
from .exceptions import CycleDetectedError, HierarchyError, PathLimitExceededError
from .interfaces import GraphProvider, RelationConfigProvider
from .logging import get_role_graph_logger, safe_preview
from .models import Relation, RelationMappingConfig, RoleMap

MutableRoleMap = dict[str, dict[str, dict[str, str]]]


@dataclass(frozen=True)
class RoleMapBuild:
    """A built role map plus what it was built from."""

    root_id: str
    role_map: MutableRoleMap
    relation_type_ids: frozenset[str]
    container_ids: frozenset[str] = frozenset()
    pair_count: int = 0
    path_count: int = 0


def merge_role_maps(target: MutableRoleMap, *sources: RoleMap) -> MutableRoleMap:
    """Recursively merge ``sources`` into ``target``; later entries win."""
    for source in sources:
        for source_id, targets in source.items():
            for target_id, roles in targets.items():
                target.setdefault(source_id, {}).setdefault(target_id, {}).update(roles)
    return target


def compose_path_roles(path: list[str], path_map: RoleMap) -> MutableRoleMap:
    """Map the indirectly inherited roles between the containers of ``path``.

    Walks the path in the given order. For each start position, the direct
    mapping of the first hop is carried along the following hops; a role
    whose chain breaks is dropped and never picked up again.

    Args:
        path: Container ids in walking order.
        path_map: Direct mappings of every hop of the path, both directions.

    Returns:
        A role map holding only the composed (two hops or more) entries.
    """
    composed: MutableRoleMap = {}
    for i in range(len(path) - 2):
        source_id = path[i]
        tracked = dict(path_map.get(source_id, {}).get(path[i + 1], {}))
        for j in range(i + 2, len(path)):
            hop = path_map.get(path[j - 1], {}).get(path[j], {})
            tracked = {role: hop[via] for role, via in tracked.items() if via in hop}
            if not tracked:
                break
            composed.setdefault(source_id, {})[path[j]] = dict(tracked)
    return composed


class RoleMapBuilder:
    """Builds the role map for a root container."""

    def __init__(
        self,
        graph: GraphProvider,
        relation_configs: RelationConfigProvider,
        config: Optional[RoleGraphConfig] = None,
    ) -> None:
        self._graph = graph
        self._relation_configs = relation_configs
        self._config = config or RoleGraphConfig()

    @property
    def graph(self) -> GraphProvider:
        return self._graph

    @property
    def relation_configs(self) -> RelationConfigProvider:
        return self._relation_configs

    def build_role_map(self, root_id: str) -> MutableRoleMap:
        return self.build(root_id).role_map

    def build(self, root_id: str) -> RoleMapBuild:
        log = get_role_graph_logger(__name__, root_id=root_id)

        edges = self._graph.reachable_edges(root_id)
        relation_type_ids = {edge.relation_type_id for edge in edges}
        container_ids = {root_id}
        for edge in edges:
            container_ids.update((edge.parent_id, edge.child_id))
        # Per-build memo: every hop is looked up once even if many paths share it.
        hop_configs: dict[tuple[str, str], Optional[RelationMappingConfig]] = {}

        role_map: MutableRoleMap = {}
        pair_count = path_count = 0
        for ancestor_id, descendant_id in self._related_pairs(edges):
            pair_count += 1
            for path in self._paths(ancestor_id, descendant_id):
                path_count += 1
                path_map = self._direct_path_map(path, hop_configs)
                if not path_map:
                    continue
                merge_role_maps(
                    role_map,
                    path_map,
                    compose_path_roles(path, path_map),
                    compose_path_roles(path[::-1], path_map),
                )

        relation_type_ids.update(cfg.relation_type_id for cfg in hop_configs.values() if cfg is not None)
        if log.isEnabledFor(logging.DEBUG):
            log.debug(
                "Built role map: %d pairs, %d paths, %d sources",
                pair_count,
                path_count,
                len(role_map),
                extra={"role_map": safe_preview(role_map)},
            )
        return RoleMapBuild(
            root_id=root_id,
            role_map=role_map,
            relation_type_ids=frozenset(relation_type_ids),
            container_ids=frozenset(container_ids),
            pair_count=pair_count,
            path_count=path_count,
        )

    # ── Internals ────────────────────────────────────────

    def _direct_path_map(
        self,
        path: list[str],
        hop_configs: dict[tuple[str, str], Optional[RelationMappingConfig]],
    ) -> MutableRoleMap:
        """Direct mappings for every hop of an ancestor-first path."""
        path_map: MutableRoleMap = {}
        for parent_id, child_id in zip(path, path[1:]):
            key = (parent_id, child_id)
            if key not in hop_configs:
                hop_configs[key] = self._relation_configs.config_for(parent_id, child_id)
            relation_config = hop_configs[key]
            if relation_config is None:
                continue
            child_to_parent = relation_config.child_to_parent()
            if child_to_parent:
                path_map.setdefault(child_id, {})[parent_id] = child_to_parent
            parent_to_child = relation_config.parent_to_child()
            if parent_to_child:
                path_map.setdefault(parent_id, {})[child_id] = parent_to_child
        return path_map

    def _related_pairs(self, edges: Iterable[Relation]) -> Iterator[tuple[str, str]]:
        """Every (ancestor, descendant) pair among the containers of ``edges``."""
        children: dict[str, list[str]] = {}
        order: dict[str, None] = {}
        for edge in edges:
            children.setdefault(edge.parent_id, []).append(edge.child_id)
            order.setdefault(edge.parent_id)
            order.setdefault(edge.child_id)

        for ancestor_id in order:
            seen: set[str] = set()
            queue = list(children.get(ancestor_id, ()))
            while queue:
                current = queue.pop(0)
                if current == ancestor_id:
                    raise CycleDetectedError(
                        f"Container {ancestor_id} is nested in itself",
                        container_id=ancestor_id,
                    )
                if current in seen:
                    continue
                seen.add(current)
                yield ancestor_id, current
                queue.extend(children.get(current, ()))

    def _paths(self, ancestor_id: str, descendant_id: str) -> list[list[str]]:
        paths = self._graph.simple_paths(ancestor_id, descendant_id)
        max_length = self._config.max_path_length
        max_paths = self._config.max_paths_per_pair

        for path in paths:
            if not path or path[0] != ancestor_id or path[-1] != descendant_id:
                raise HierarchyError(
                    f"Path does not lead from {ancestor_id} to {descendant_id}",
                    path=list(path),
                )
            if len(set(path)) != len(path):
                raise CycleDetectedError(
                    f"Path between {ancestor_id} and {descendant_id} revisits a container",
                    path=list(path),
                )

        bounded = [path for path in paths if len(path) <= max_length][:max_paths]
        if len(bounded) < len(paths):
            if self._config.strict_path_limits:
                raise PathLimitExceededError(
                    f"Path enumeration between {ancestor_id} and {descendant_id} exceeded its bound",
                    ancestor_id=ancestor_id,
                    descendant_id=descendant_id,
                    path_count=len(paths),
                )
            get_role_graph_logger(__name__).warning(
                "Using %d of %d paths between %s and %s (max length %d, max paths %d)",
                len(bounded),
                len(paths),
                ancestor_id,
                descendant_id,
                max_length,
                max_paths,
            )
        return bounded


__all__ = [
    "RoleMapBuild",
    "RoleMapBuilder",
    "compose_path_roles",
    "merge_role_maps",
]
