"""Map each changed path to surfaces and an owning package. Pure: no I/O."""

from __future__ import annotations

from collections.abc import Iterable

from diffscope.config.model import PlannerConfig
from diffscope.constants import INFRA_SURFACE
from diffscope.domain.models import ChangedPath, ClassificationResult, PatternMatch
from diffscope.planning.globs import GlobPattern
from diffscope.workspace.graph import WorkspaceGraph


class SurfaceClassifier:
    """Evaluates every surface in configuration order against every candidate path.

    Renamed paths are matched under both their new and old location. A path
    matched by an infrastructure pattern is exempt from package ownership.
    """

    def __init__(self, config: PlannerConfig, graph: WorkspaceGraph) -> None:
        self._surfaces = config.surfaces
        self._graph = graph

    def classify(self, changed: ChangedPath) -> ClassificationResult:
        matches: list[PatternMatch] = []
        surfaces: list[str] = []
        for surface in self._surfaces:
            hit = _first_hit(surface.patterns, changed.candidate_paths)
            if hit is None:
                continue
            path, pattern = hit
            surfaces.append(surface.id)
            matches.append(PatternMatch(surface=surface.id, path=path, pattern=pattern))

        infra = INFRA_SURFACE in surfaces
        package: str | None = None
        previous: str | None = None
        if not infra:
            package = self._graph.owner_of(changed.path)
            if changed.old_path and changed.old_path != changed.path:
                previous = self._graph.owner_of(changed.old_path)
            if package is None:
                package, previous = previous, None
            elif previous == package:
                previous = None

        return ClassificationResult(
            changed=changed,
            surfaces=tuple(surfaces),
            package=package,
            matches=tuple(matches),
            infra=infra,
            previous_package=previous,
        )

    def classify_all(self, changes: Iterable[ChangedPath]) -> tuple[ClassificationResult, ...]:
        return tuple(self.classify(changed) for changed in changes)


def _first_hit(
    patterns: tuple[GlobPattern, ...], candidates: tuple[str, ...]
) -> tuple[str, str] | None:
    for candidate in candidates:
        for pattern in patterns:
            if pattern.matches(candidate):
                return candidate, pattern.source
    return None


__all__ = ["SurfaceClassifier"]
