"""
diffscope — workspace dependency graph.

File: src/diffscope/workspace/graph.py

Purpose
- Hold the closed intra-workspace dependency relation and its reverse index.

What is included in this file
- ``WorkspaceGraph.build``: duplicate-name rejection, external-name pruning,
  one-shot edge inversion, and iterative DFS cycle detection.
- Path ownership (deepest package root wins).
- Stable serialization helpers.

Non-functional requirements
- Read-only after construction; every accessor returns sorted tuples.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from types import MappingProxyType

from diffscope.domain.errors import (
    CycleDetected,
    DuplicatePackageName,
    UnresolvedWorkspaceReference,
)
from diffscope.domain.models import JSONValue, Package


class WorkspaceGraph:
    """Packages plus forward edges (package -> dependencies) and the reverse index."""

    __slots__ = ("_by_name", "_edges", "_index", "_names", "_ownership", "_reverse")

    def __init__(
        self,
        packages: Mapping[str, Package],
        edges: Mapping[str, frozenset[str]],
        reverse: Mapping[str, frozenset[str]],
    ) -> None:
        self._by_name = MappingProxyType(dict(packages))
        self._names: tuple[str, ...] = tuple(sorted(packages))
        self._index = MappingProxyType({name: i for i, name in enumerate(self._names)})
        self._edges = MappingProxyType(dict(edges))
        self._reverse = MappingProxyType(dict(reverse))
        self._ownership: tuple[Package, ...] = tuple(
            sorted(packages.values(), key=lambda item: (-_depth(item.root), item.name))
        )

    @classmethod
    def build(cls, packages: Iterable[Package]) -> WorkspaceGraph:
        """Validate ``packages`` and build the graph.

        Raises ``DuplicatePackageName``, ``UnresolvedWorkspaceReference`` and
        ``CycleDetected``. Dependencies naming packages outside the workspace are
        dropped silently.
        """

        by_name: dict[str, Package] = {}
        manifests: dict[str, list[str]] = {}
        for package in packages:
            manifests.setdefault(package.name, []).append(package.manifest or package.root)
            by_name.setdefault(package.name, package)
        for name in sorted(manifests):
            if len(manifests[name]) > 1:
                raise DuplicatePackageName(name, sorted(manifests[name]))

        for name in sorted(by_name):
            for reference in sorted(by_name[name].workspace_references):
                if reference not in by_name:
                    raise UnresolvedWorkspaceReference(name, reference)

        edges: dict[str, frozenset[str]] = {}
        for name in sorted(by_name):
            internal = {dep for dep in by_name[name].dependencies if dep in by_name and dep != name}
            if name in by_name[name].dependencies:
                raise CycleDetected((name, name))
            edges[name] = frozenset(internal)

        reverse = cls.invert(edges)
        for name in by_name:
            reverse.setdefault(name, frozenset())

        cycles = _detect_cycles(edges)
        if cycles:
            raise CycleDetected(cycles[0])
        return cls(by_name, edges, reverse)

    @classmethod
    def empty(cls) -> WorkspaceGraph:
        return cls({}, {}, {})

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def names(self) -> tuple[str, ...]:
        return self._names

    @property
    def packages(self) -> tuple[Package, ...]:
        return tuple(self._by_name[name] for name in self._names)

    def __len__(self) -> int:
        return len(self._names)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def package(self, name: str) -> Package:
        try:
            return self._by_name[name]
        except KeyError:
            raise KeyError(f"unknown package: {name}") from None

    def index_of(self, name: str) -> int:
        return self._index[name]

    def edges(self) -> dict[str, tuple[str, ...]]:
        """Forward relation: package -> in-workspace dependencies."""
        return {name: tuple(sorted(self._edges[name])) for name in self._names}

    def reverse_edges(self) -> dict[str, tuple[str, ...]]:
        """Reverse relation: package -> in-workspace dependents."""
        return {name: tuple(sorted(self._reverse[name])) for name in self._names}

    def dependencies_of(self, name: str) -> tuple[str, ...]:
        self.package(name)
        return tuple(sorted(self._edges[name]))

    def dependents_of(self, name: str) -> tuple[str, ...]:
        self.package(name)
        return tuple(sorted(self._reverse[name]))

    def reverse_index_table(self) -> tuple[tuple[int, ...], ...]:
        """Dependents as package indices, positionally aligned with ``names``."""
        return tuple(
            tuple(sorted(self._index[dep] for dep in self._reverse[name])) for name in self._names
        )

    def owner_of(self, path: str) -> str | None:
        """Name of the package with the deepest root containing ``path``."""
        for package in self._ownership:
            if package.owns(path):
                return package.name
        return None

    @staticmethod
    def invert(relation: Mapping[str, Iterable[str]]) -> dict[str, frozenset[str]]:
        """Invert ``a -> {b}`` into ``b -> {a}``; nodes without edges map to empty sets."""

        inverted: dict[str, set[str]] = {name: set() for name in relation}
        for source in sorted(relation):
            for target in relation[source]:
                inverted.setdefault(target, set()).add(source)
        return {name: frozenset(values) for name, values in sorted(inverted.items())}

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "packages": [
                {
                    "name": package.name,
                    "root": package.root,
                    "manifest": package.manifest,
                    "kind": package.manifest_kind,
                    "dependencies": list(self.dependencies_of(package.name)),
                }
                for package in self.packages
            ],
        }


def _depth(root: str) -> int:
    if not root:
        return 0
    return root.count("/") + 1


def _detect_cycles(edges: Mapping[str, frozenset[str]]) -> tuple[tuple[str, ...], ...]:
    """Closed cycle paths, e.g. ``("a", "b", "a")``, found by iterative DFS."""

    state: dict[str, int] = {}
    stack: list[str] = []
    stack_index: dict[str, int] = {}
    cycles: dict[tuple[str, ...], None] = {}

    for start in sorted(edges):
        if state.get(start, 0) != 0:
            continue

        state[start] = 1
        stack.append(start)
        stack_index[start] = 0
        frames: list[tuple[str, Iterator[str]]] = [(start, iter(sorted(edges[start])))]

        while frames:
            node, child_iter = frames[-1]
            try:
                child = next(child_iter)
            except StopIteration:
                frames.pop()
                state[node] = 2
                stack.pop()
                del stack_index[node]
                continue

            child_state = state.get(child, 0)
            if child_state == 0:
                state[child] = 1
                stack_index[child] = len(stack)
                stack.append(child)
                frames.append((child, iter(sorted(edges.get(child, ())))))
                continue
            if child_state == 1:
                cycle = tuple(stack[stack_index[child] :] + [child])
                cycles[_canonicalize_cycle(cycle)] = None

    return tuple(sorted(cycles))


def _canonicalize_cycle(cycle: Sequence[str]) -> tuple[str, ...]:
    core = tuple(cycle[:-1])
    best = core
    for offset in range(1, len(core)):
        rotated = core[offset:] + core[:offset]
        if rotated < best:
            best = rotated
    return best + (best[0],)


__all__ = ["WorkspaceGraph"]
