"""Tests for DependencyGraph."""

from __future__ import annotations

import pytest

from spreadcore import CircularDependencyError, DependencyGraph


@pytest.fixture
def dg() -> DependencyGraph:
    return DependencyGraph()


class TestBasics:
    def test_empty(self, dg: DependencyGraph) -> None:
        assert dg.size == 0
        assert len(dg) == 0
        assert list(dg.dependents("a")) == []
        assert list(dg.dependees("a")) == []
        assert dg["a"] == 0
        assert not dg.has_dependents("a")
        assert not dg.has_dependees("a")

    def test_add_both_directions(self, dg: DependencyGraph) -> None:
        dg.add_dependency("a", "b")
        dg.add_dependency("a", "c")
        dg.add_dependency("d", "c")
        assert dg.size == 3
        assert sorted(dg.dependents("a")) == ["b", "c"]
        assert sorted(dg.dependees("c")) == ["a", "d"]
        assert dg["c"] == 2
        assert dg["a"] == 0
        assert dg.has_dependents("a") and not dg.has_dependees("a")
        assert dg.has_dependees("b") and not dg.has_dependents("b")

    def test_add_is_idempotent(self, dg: DependencyGraph) -> None:
        dg.add_dependency("a", "b")
        dg.add_dependency("a", "b")
        assert dg.size == 1
        assert list(dg.dependents("a")) == ["b"]

    def test_remove_absent_pair_is_noop(self, dg: DependencyGraph) -> None:
        dg.add_dependency("a", "b")
        dg.remove_dependency("b", "a")
        dg.remove_dependency("x", "y")
        assert dg.size == 1

    def test_remove(self, dg: DependencyGraph) -> None:
        dg.add_dependency("a", "b")
        dg.remove_dependency("a", "b")
        assert dg.size == 0
        assert not dg.has_dependents("a")
        assert not dg.has_dependees("b")

    def test_self_loop_is_data(self, dg: DependencyGraph) -> None:
        dg.add_dependency("a", "a")
        assert dg.size == 1
        assert list(dg.dependents("a")) == ["a"]
        assert list(dg.dependees("a")) == ["a"]

    def test_iteration_survives_mutation(self, dg: DependencyGraph) -> None:
        dg.add_dependency("a", "b")
        dg.add_dependency("a", "c")
        for t in dg.dependents("a"):
            dg.remove_dependency("a", t)
        assert dg.size == 0


class TestReplace:
    def test_replace_dependents(self, dg: DependencyGraph) -> None:
        dg.add_dependency("a", "b")
        dg.add_dependency("a", "c")
        dg.add_dependency("x", "b")
        dg.replace_dependents("a", ["d", "e", "d"])
        assert sorted(dg.dependents("a")) == ["d", "e"]
        assert list(dg.dependees("b")) == ["x"]
        assert dg.size == 3

    def test_replace_dependees(self, dg: DependencyGraph) -> None:
        dg.add_dependency("a", "c")
        dg.add_dependency("b", "c")
        dg.replace_dependees("c", ["z"])
        assert list(dg.dependees("c")) == ["z"]
        assert not dg.has_dependents("a")
        assert dg.size == 1

    def test_replace_with_nothing(self, dg: DependencyGraph) -> None:
        dg.add_dependency("a", "c")
        dg.replace_dependees("c", [])
        assert dg.size == 0


class TestRecalculationOrder:
    def test_unknown_name(self, dg: DependencyGraph) -> None:
        assert dg.recalculation_order("a") == ["a"]

    def test_chain(self, dg: DependencyGraph) -> None:
        dg.add_dependency("a", "b")
        dg.add_dependency("b", "c")
        assert dg.recalculation_order("a") == ["a", "b", "c"]
        assert dg.recalculation_order("b") == ["b", "c"]

    def test_diamond_respects_dependencies(self, dg: DependencyGraph) -> None:
        dg.add_dependency("a", "b")
        dg.add_dependency("a", "c")
        dg.add_dependency("b", "d")
        dg.add_dependency("c", "d")
        dg.add_dependency("a", "d")
        order = dg.recalculation_order("a")
        assert sorted(order) == ["a", "b", "c", "d"]
        assert order[0] == "a"
        assert order[-1] == "d"

    def test_cycle_through_origin(self, dg: DependencyGraph) -> None:
        dg.add_dependency("a", "b")
        dg.add_dependency("b", "a")
        with pytest.raises(CircularDependencyError) as exc_info:
            dg.recalculation_order("a")
        assert exc_info.value.cycle_path == ["a", "b", "a"]

    def test_self_loop_is_cycle(self, dg: DependencyGraph) -> None:
        dg.add_dependency("a", "a")
        with pytest.raises(CircularDependencyError, match="a -> a"):
            dg.recalculation_order("a")

    def test_long_chain_is_not_recursive(self, dg: DependencyGraph) -> None:
        names = [f"c{i}" for i in range(5000)]
        for s, t in zip(names, names[1:]):
            dg.add_dependency(s, t)
        assert dg.recalculation_order("c0") == names
