"""Dependency graph between named cells.

An ordered pair ``(s, t)`` means "t depends on s": t's formula mentions
s.  ``t`` is a *dependent* of ``s`` and ``s`` is a *dependee* of ``t``.

Names are interned to integer slots; adjacency lives in per-slot sets so
traversals work on integers and only translate back to names at the
boundary.
"""

from __future__ import annotations

from typing import Iterable, Iterator

from spreadcore.errors import CircularDependencyError


class DependencyGraph:
    """A set of ordered (dependee, dependent) pairs, queryable both ways.

    Usage::

        dg = DependencyGraph()
        dg.add_dependency("A1", "B1")      # B1 depends on A1
        list(dg.dependents("A1"))          # ["B1"]
        dg["B1"]                           # 1 (number of dependees)
    """

    __slots__ = ("_index", "_names", "_dependents", "_dependees", "_size")

    def __init__(self) -> None:
        self._index: dict[str, int] = {}
        self._names: list[str] = []
        # slot -> slots that depend on it
        self._dependents: list[set[int]] = []
        # slot -> slots it depends on (reverse edges)
        self._dependees: list[set[int]] = []
        self._size = 0

    # ------------------------------------------------------------------
    # Slot management
    # ------------------------------------------------------------------

    def _slot(self, name: str) -> int:
        """Return the slot for *name*, allocating one if needed."""
        slot = self._index.get(name)
        if slot is None:
            slot = len(self._names)
            self._index[name] = slot
            self._names.append(name)
            self._dependents.append(set())
            self._dependees.append(set())
        return slot

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def size(self) -> int:
        """Number of ordered pairs in the graph."""
        return self._size

    def __len__(self) -> int:
        return self._size

    def __getitem__(self, name: str) -> int:
        """Number of dependees of *name*."""
        slot = self._index.get(name)
        return 0 if slot is None else len(self._dependees[slot])

    def has_dependents(self, name: str) -> bool:
        slot = self._index.get(name)
        return slot is not None and bool(self._dependents[slot])

    def has_dependees(self, name: str) -> bool:
        slot = self._index.get(name)
        return slot is not None and bool(self._dependees[slot])

    def dependents(self, name: str) -> Iterator[str]:
        """Names that depend directly on *name*."""
        slot = self._index.get(name)
        if slot is None:
            return iter(())
        return (self._names[t] for t in list(self._dependents[slot]))

    def dependees(self, name: str) -> Iterator[str]:
        """Names that *name* depends on directly."""
        slot = self._index.get(name)
        if slot is None:
            return iter(())
        return (self._names[s] for s in list(self._dependees[slot]))

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add_dependency(self, s: str, t: str) -> None:
        """Add the pair (s, t); a no-op if it already exists."""
        si = self._slot(s)
        ti = self._slot(t)
        if ti in self._dependents[si]:
            return
        self._dependents[si].add(ti)
        self._dependees[ti].add(si)
        self._size += 1

    def remove_dependency(self, s: str, t: str) -> None:
        """Remove the pair (s, t); a no-op if it does not exist."""
        si = self._index.get(s)
        ti = self._index.get(t)
        if si is None or ti is None or ti not in self._dependents[si]:
            return
        self._dependents[si].discard(ti)
        self._dependees[ti].discard(si)
        self._size -= 1

    def replace_dependents(self, s: str, new_dependents: Iterable[str]) -> None:
        """Drop every (s, *) pair, then add (s, t) for each t in *new_dependents*."""
        for t in list(self.dependents(s)):
            self.remove_dependency(s, t)
        for t in new_dependents:
            self.add_dependency(s, t)

    def replace_dependees(self, t: str, new_dependees: Iterable[str]) -> None:
        """Drop every (*, t) pair, then add (s, t) for each s in *new_dependees*."""
        for s in list(self.dependees(t)):
            self.remove_dependency(s, t)
        for s in new_dependees:
            self.add_dependency(s, t)

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def recalculation_order(self, name: str) -> list[str]:
        """Return *name* and everything that depends on it, dependees first.

        Depth-first post-order over the dependents relation, reversed, so
        each cell appears before every cell whose formula reads it.

        Raises:
            CircularDependencyError: If a cycle is reachable from *name*.
        """
        start = self._index.get(name)
        if start is None:
            return [name]

        finished: list[int] = []
        done: set[int] = set()
        on_path: list[int] = [start]
        on_path_set: set[int] = {start}
        # Each frame holds a node and an iterator over its remaining dependents.
        stack: list[tuple[int, Iterator[int]]] = [(start, iter(list(self._dependents[start])))]

        while stack:
            node, children = stack[-1]
            advanced = False
            for child in children:
                if child in on_path_set:
                    cycle = on_path[on_path.index(child):] + [child]
                    raise CircularDependencyError([self._names[i] for i in cycle])
                if child in done:
                    continue
                on_path.append(child)
                on_path_set.add(child)
                stack.append((child, iter(list(self._dependents[child]))))
                advanced = True
                break
            if not advanced:
                stack.pop()
                on_path.pop()
                on_path_set.discard(node)
                done.add(node)
                finished.append(node)

        finished.reverse()
        return [self._names[i] for i in finished]
