"""Tests for rolegraph.graph.InMemoryHierarchy."""

from __future__ import annotations

import logging

import pytest

from rolegraph import (
    CycleDetectedError,
    HierarchyError,
    InMemoryHierarchy,
    PathLimitExceededError,
    Relation,
    RoleGraphConfig,
)


def rel(parent_id: str, child_id: str, relation_type_id: str = "nest") -> Relation:
    return Relation(parent_id=parent_id, child_id=child_id, relation_type_id=relation_type_id)


class TestMutation:
    def test_add_and_lookup(self) -> None:
        hierarchy = InMemoryHierarchy([rel("A", "B", "org-team")])
        assert hierarchy.relation("A", "B") == rel("A", "B", "org-team")
        assert hierarchy.relation("B", "A") is None

    def test_self_relation_rejected(self) -> None:
        with pytest.raises(CycleDetectedError):
            InMemoryHierarchy([rel("A", "A")])

    def test_cycle_rejected(self) -> None:
        hierarchy = InMemoryHierarchy([rel("A", "B"), rel("B", "C")])
        with pytest.raises(CycleDetectedError) as exc_info:
            hierarchy.add_relation(rel("C", "A"))
        assert exc_info.value.code == "CYCLE_DETECTED"
        assert exc_info.value.details == {"parent_id": "C", "child_id": "A"}
        assert hierarchy.relation("C", "A") is None

    def test_duplicate_rejected(self) -> None:
        hierarchy = InMemoryHierarchy([rel("A", "B")])
        with pytest.raises(HierarchyError):
            hierarchy.add_relation(rel("A", "B", "other"))

    def test_remove(self) -> None:
        hierarchy = InMemoryHierarchy([rel("A", "B"), rel("B", "C")])
        removed = hierarchy.remove_relation("A", "B")
        assert removed == rel("A", "B")
        assert hierarchy.supergroup_ids("C") == ["B"]
        # The former cycle direction is now allowed.
        hierarchy.add_relation(rel("C", "A"))

    def test_remove_missing(self) -> None:
        with pytest.raises(HierarchyError):
            InMemoryHierarchy().remove_relation("A", "B")


class TestQueries:
    @pytest.fixture
    def tree(self) -> InMemoryHierarchy:
        #     A
        #    / \
        #   B   C
        #   |
        #   D
        return InMemoryHierarchy([rel("A", "B"), rel("A", "C"), rel("B", "D")])

    def test_subgroups_nearest_first(self, tree: InMemoryHierarchy) -> None:
        assert tree.subgroup_ids("A") == ["B", "C", "D"]

    def test_supergroups(self, tree: InMemoryHierarchy) -> None:
        assert tree.supergroup_ids("D") == ["B", "A"]
        assert tree.supergroup_ids("A") == []

    def test_related(self, tree: InMemoryHierarchy) -> None:
        assert sorted(tree.related_ids("B")) == ["A", "D"]

    def test_reachable_edges_exclude_siblings(self, tree: InMemoryHierarchy) -> None:
        edges = tree.reachable_edges("B")
        assert rel("A", "B") in edges
        assert rel("B", "D") in edges
        assert rel("A", "C") not in edges

    def test_reachable_edges_of_unknown_container(self, tree: InMemoryHierarchy) -> None:
        assert tree.reachable_edges("Z") == []


class TestSimplePaths:
    def test_single_path(self) -> None:
        hierarchy = InMemoryHierarchy([rel("A", "B"), rel("B", "C")])
        assert hierarchy.simple_paths("A", "C") == [["A", "B", "C"]]

    def test_all_paths_in_insertion_order(self) -> None:
        hierarchy = InMemoryHierarchy([
            rel("A", "B"),
            rel("A", "C"),
            rel("B", "D"),
            rel("C", "D"),
            rel("A", "D"),
        ])
        assert hierarchy.simple_paths("A", "D") == [
            ["A", "B", "D"],
            ["A", "C", "D"],
            ["A", "D"],
        ]

    def test_unrelated(self) -> None:
        hierarchy = InMemoryHierarchy([rel("A", "B"), rel("C", "D")])
        assert hierarchy.simple_paths("A", "D") == []
        assert hierarchy.simple_paths("B", "A") == []
        assert hierarchy.simple_paths("A", "A") == []

    def test_path_count_limit_truncates(self, caplog: pytest.LogCaptureFixture) -> None:
        config = RoleGraphConfig(max_paths_per_pair=1)
        hierarchy = InMemoryHierarchy(
            [rel("A", "B"), rel("A", "C"), rel("B", "D"), rel("C", "D")],
            config=config,
        )
        with caplog.at_level(logging.WARNING):
            paths = hierarchy.simple_paths("A", "D")
        assert paths == [["A", "B", "D"]]
        assert "truncated" in caplog.text

    def test_path_count_limit_not_hit(self, caplog: pytest.LogCaptureFixture) -> None:
        config = RoleGraphConfig(max_paths_per_pair=2)
        hierarchy = InMemoryHierarchy(
            [rel("A", "B"), rel("A", "C"), rel("B", "D"), rel("C", "D")],
            config=config,
        )
        with caplog.at_level(logging.WARNING):
            assert len(hierarchy.simple_paths("A", "D")) == 2
        assert "truncated" not in caplog.text

    def test_dead_end_branches_are_not_explored(self) -> None:
        config = RoleGraphConfig(max_path_length=3, strict_path_limits=True)
        hierarchy = InMemoryHierarchy(
            [rel("A", "X"), rel("X", "Y"), rel("Y", "Z"), rel("A", "B")],
            config=config,
        )
        assert hierarchy.simple_paths("A", "B") == [["A", "B"]]

    def test_path_length_limit_strict(self) -> None:
        config = RoleGraphConfig(max_path_length=2, strict_path_limits=True)
        hierarchy = InMemoryHierarchy([rel("A", "B"), rel("B", "C")], config=config)
        assert hierarchy.simple_paths("A", "B") == [["A", "B"]]
        with pytest.raises(PathLimitExceededError):
            hierarchy.simple_paths("A", "C")
