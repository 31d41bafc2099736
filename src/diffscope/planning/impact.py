"""
diffscope — impact resolver.

File: src/diffscope/planning/impact.py

Purpose
- Compute direct and transitive affected packages from classification results.

Behavior
- Direct packages are the owners of changed paths; a rename across packages
  makes both the old and the new owner direct.
- Any infrastructure-classified path makes every package direct; graph-based
  scoping is bypassed in that case.
- Transitive packages are the closure of the direct set over the reverse
  dependency index, found with an explicit work queue over package indices and
  an integer bitmask of visited packages.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable

from diffscope.domain.models import ClassificationResult, ImpactSet
from diffscope.workspace.graph import WorkspaceGraph


class ImpactResolver:
    def __init__(self, graph: WorkspaceGraph) -> None:
        self._graph = graph
        self._reverse = graph.reverse_index_table()

    def resolve(self, classifications: Iterable[ClassificationResult]) -> ImpactSet:
        names = self._graph.names
        all_packages = False
        direct_mask = 0
        for result in classifications:
            if result.infra:
                all_packages = True
            for owner in result.owners:
                direct_mask |= 1 << self._graph.index_of(owner)

        if all_packages:
            direct_mask = (1 << len(names)) - 1

        transitive_mask = self.closure(direct_mask)
        return ImpactSet(
            direct=_names_from_mask(names, direct_mask),
            transitive=_names_from_mask(names, transitive_mask),
            total_packages=len(names),
            all_packages=all_packages,
        )

    def closure(self, seed_mask: int) -> int:
        """Breadth-first closure of ``seed_mask`` over dependents, to fixpoint."""

        visited = seed_mask
        queue: deque[int] = deque(
            index for index in range(len(self._reverse)) if seed_mask >> index & 1
        )
        while queue:
            index = queue.popleft()
            for dependent in self._reverse[index]:
                bit = 1 << dependent
                if visited & bit:
                    continue
                visited |= bit
                queue.append(dependent)
        return visited


def is_closed(impact: ImpactSet, graph: WorkspaceGraph) -> bool:
    """True when no dependent of a transitive package lies outside the transitive set."""

    members = set(impact.transitive)
    if not set(impact.direct) <= members:
        return False
    return all(set(graph.dependents_of(name)) <= members for name in impact.transitive)


def _names_from_mask(names: tuple[str, ...], mask: int) -> tuple[str, ...]:
    return tuple(name for index, name in enumerate(names) if mask >> index & 1)


__all__ = ["ImpactResolver", "is_closed"]
