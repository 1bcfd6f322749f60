"""In-memory container hierarchy.

``InMemoryHierarchy`` implements GraphProvider over a set of direct
relations. It keeps the hierarchy acyclic: a relation that would nest a
container (indirectly) in itself is rejected with CycleDetectedError.

Path enumeration is a depth-first search with a visited set, bounded by
``RoleGraphConfig.max_path_length`` and ``max_paths_per_pair``.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from .config import RoleGraphConfig
from .exceptions import CycleDetectedError, HierarchyError, PathLimitExceededError
from .interfaces import GraphProvider
from .models import Relation

logger = logging.getLogger(__name__)


class InMemoryHierarchy(GraphProvider):
    """Directed acyclic graph of container relations."""

    def __init__(
        self,
        relations: Iterable[Relation] = (),
        config: Optional[RoleGraphConfig] = None,
    ) -> None:
        self._config = config or RoleGraphConfig()
        # Insertion ordered; enumeration order follows it.
        self._children: dict[str, dict[str, Relation]] = {}
        self._parents: dict[str, dict[str, Relation]] = {}
        for relation in relations:
            self.add_relation(relation)

    # ── Mutation ─────────────────────────────────────────

    def add_relation(self, relation: Relation) -> None:
        """Nest ``relation.child_id`` in ``relation.parent_id``.

        Raises:
            HierarchyError: The relation already exists or is a self-relation.
            CycleDetectedError: The child is already an ancestor of the parent.
        """
        parent_id, child_id = relation.parent_id, relation.child_id
        if parent_id == child_id:
            raise CycleDetectedError(
                f"Container {parent_id} cannot be nested in itself",
                parent_id=parent_id,
                child_id=child_id,
            )
        if child_id in self._children.get(parent_id, {}):
            raise HierarchyError(
                f"Relation {parent_id} -> {child_id} already exists",
                parent_id=parent_id,
                child_id=child_id,
            )
        if parent_id in self.subgroup_ids(child_id):
            raise CycleDetectedError(
                f"Nesting {child_id} in {parent_id} would create a cycle",
                parent_id=parent_id,
                child_id=child_id,
            )
        self._children.setdefault(parent_id, {})[child_id] = relation
        self._parents.setdefault(child_id, {})[parent_id] = relation
        logger.debug("Added relation %s -> %s (%s)", parent_id, child_id, relation.relation_type_id)

    def remove_relation(self, parent_id: str, child_id: str) -> Relation:
        try:
            relation = self._children[parent_id].pop(child_id)
        except KeyError:
            raise HierarchyError(
                f"Relation {parent_id} -> {child_id} does not exist",
                parent_id=parent_id,
                child_id=child_id,
            ) from None
        del self._parents[child_id][parent_id]
        return relation

    # ── Queries ──────────────────────────────────────────

    def relation(self, parent_id: str, child_id: str) -> Optional[Relation]:
        return self._children.get(parent_id, {}).get(child_id)

    def relations(self) -> list[Relation]:
        return [rel for children in self._children.values() for rel in children.values()]

    def subgroup_ids(self, container_id: str) -> list[str]:
        """All descendants of ``container_id``, nearest first."""
        return self._walk(container_id, self._children)

    def supergroup_ids(self, container_id: str) -> list[str]:
        """All ancestors of ``container_id``, nearest first."""
        return self._walk(container_id, self._parents)

    def related_ids(self, container_id: str) -> list[str]:
        return self.supergroup_ids(container_id) + self.subgroup_ids(container_id)

    def reachable_edges(self, container_id: str) -> list[Relation]:
        members = {container_id, *self.related_ids(container_id)}
        return [
            rel
            for rel in self.relations()
            if rel.parent_id in members and rel.child_id in members
        ]

    def simple_paths(self, ancestor_id: str, descendant_id: str) -> list[list[str]]:
        if ancestor_id == descendant_id:
            return []

        max_length = self._config.max_path_length
        max_paths = self._config.max_paths_per_pair
        # Only containers that can still reach the descendant are explored.
        leads_to_target = {descendant_id, *self.supergroup_ids(descendant_id)}
        if ancestor_id not in leads_to_target:
            return []

        paths: list[list[str]] = []
        truncated = False

        # Iterative DFS; the stack holds (path, visited) pairs.
        stack: list[tuple[list[str], frozenset[str]]] = [([ancestor_id], frozenset({ancestor_id}))]
        while stack:
            path, visited = stack.pop()
            node = path[-1]
            if node == descendant_id:
                if len(paths) >= max_paths:
                    truncated = True
                    break
                paths.append(path)
                continue
            if len(path) >= max_length:
                truncated = True
                continue
            # Reversed so the first inserted child is explored first.
            for child_id in reversed(list(self._children.get(node, {}))):
                if child_id not in leads_to_target:
                    continue
                if child_id in visited:
                    raise CycleDetectedError(
                        f"Cycle through {child_id} while enumerating paths",
                        ancestor_id=ancestor_id,
                        descendant_id=descendant_id,
                    )
                stack.append((path + [child_id], visited | {child_id}))

        if truncated:
            if self._config.strict_path_limits:
                raise PathLimitExceededError(
                    f"Path enumeration between {ancestor_id} and {descendant_id} exceeded its bound",
                    ancestor_id=ancestor_id,
                    descendant_id=descendant_id,
                    max_path_length=max_length,
                    max_paths_per_pair=max_paths,
                )
            logger.warning(
                "Path enumeration between %s and %s truncated at %d paths (max length %d)",
                ancestor_id,
                descendant_id,
                len(paths),
                max_length,
            )
        return paths

    @staticmethod
    def _walk(start: str, edges: dict[str, dict[str, Relation]]) -> list[str]:
        seen: dict[str, None] = {}
        queue = list(edges.get(start, {}))
        while queue:
            current = queue.pop(0)
            if current in seen or current == start:
                continue
            seen[current] = None
            queue.extend(edges.get(current, {}))
        return list(seen)


__all__ = ["InMemoryHierarchy"]
