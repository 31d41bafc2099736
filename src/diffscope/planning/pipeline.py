"""
diffscope — planning pipeline composition.

File: src/diffscope/planning/pipeline.py

Purpose
- Wire collector, graph builder, classifier, impact resolver, and decision
  engine into one call.

Concurrency
- The change-set collector and the manifest scan are independent; they run in
  worker threads joined under a single timeout. Everything after the join is
  single-threaded and pure.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import structlog

from diffscope.config.model import PlannerConfig
from diffscope.domain.errors import ConfigurationError, VcsUnavailable
from diffscope.domain.models import ChangeSet, Decision, Package, Provenance
from diffscope.planning.classifier import SurfaceClassifier
from diffscope.planning.decision import DecisionEngine
from diffscope.planning.impact import ImpactResolver
from diffscope.planning.policy import ProvenanceResult, detect_provenance
from diffscope.utils.concurrency import gather_in_threads
from diffscope.vcs.collector import ChangeSetCollector, CollectRequest
from diffscope.vcs.git_engine import GitEngine
from diffscope.workspace.graph import WorkspaceGraph
from diffscope.workspace.manifests import discover_packages

# Collector and scan share one deadline; each git call has its own timeout too.
_JOIN_TIMEOUT_FACTOR = 4.0


@dataclass(frozen=True, slots=True)
class PlanRequest:
    collect: CollectRequest = field(default_factory=CollectRequest)
    provenance: Provenance | None = None
    author: str | None = None


def plan_change_set(
    config: PlannerConfig,
    graph: WorkspaceGraph,
    change_set: ChangeSet,
    *,
    provenance: Provenance = Provenance.UNKNOWN,
    logger: Any | None = None,
) -> Decision:
    """Pure stage: classify, resolve impact, and decide for an already-collected change set."""

    classifier = SurfaceClassifier(config, graph)
    classifications = classifier.classify_all(change_set.paths)
    impact = ImpactResolver(graph).resolve(classifications)
    engine = DecisionEngine(config, logger=logger)
    return engine.decide(
        classifications,
        impact,
        change_set.revisions,
        provenance=provenance,
        warnings_in=change_set.warnings,
    )


class Planner:
    """End-to-end planning against a git repository on disk."""

    def __init__(
        self,
        config: PlannerConfig,
        repo_root: str | Path,
        *,
        engine: GitEngine | None = None,
        environ: Mapping[str, str] | None = None,
        logger: Any | None = None,
    ) -> None:
        self.config = config
        self.repo_root = Path(repo_root).resolve()
        self._engine = engine or GitEngine(
            self.repo_root, timeout_seconds=config.git_timeout_seconds
        )
        self._environ = dict(os.environ if environ is None else environ)
        self._log = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def workspace_root(self) -> Path:
        root = self.config.workspace_root
        if root is None:
            return self.repo_root
        if not root.is_absolute():
            return (self.repo_root / root).resolve()
        return root

    def load_graph(self) -> WorkspaceGraph:
        packages = discover_packages(
            self.workspace_root,
            kinds=self.config.manifest_kinds,
            exclude=self.config.workspace_exclude,
        )
        if self.workspace_root != self.repo_root:
            if not self.workspace_root.is_relative_to(self.repo_root):
                raise ConfigurationError(
                    f"workspace.root {self.workspace_root.as_posix()} is outside the repository"
                )
            prefix = self.workspace_root.relative_to(self.repo_root).as_posix()
            packages = tuple(_rebase(package, prefix) for package in packages)
        graph = WorkspaceGraph.build(packages)
        self._log.info("workspace_graph_built", packages=len(graph))
        return graph

    def collect(self, request: CollectRequest) -> ChangeSet:
        collector = ChangeSetCollector(
            self._engine, base_branch=self.config.base_branch, logger=self._log
        )
        return collector.collect(request)

    async def gather_inputs(self, request: CollectRequest) -> tuple[ChangeSet, WorkspaceGraph]:
        timeout = self.config.git_timeout_seconds * _JOIN_TIMEOUT_FACTOR
        try:
            change_set, graph = await gather_in_threads(
                lambda: self.collect(request),
                self.load_graph,
                timeout_seconds=timeout,
            )
        except TimeoutError as exc:
            raise VcsUnavailable(f"planning inputs not ready after {timeout:g}s") from exc
        return change_set, graph

    def resolve_provenance(self, request: PlanRequest) -> ProvenanceResult:
        return detect_provenance(
            self.config,
            explicit=request.provenance,
            author=request.author,
            environ=self._environ,
            head_author=lambda: self._engine.head_author(request.collect.target),
        )

    def plan(self, request: PlanRequest | None = None) -> Decision:
        request = request or PlanRequest()
        change_set, graph = asyncio.run(self.gather_inputs(request.collect))
        provenance = self.resolve_provenance(request)
        self._log.info(
            "provenance_resolved",
            provenance=provenance.provenance.value,
            source=provenance.source,
        )
        return plan_change_set(
            self.config,
            graph,
            change_set,
            provenance=provenance.provenance,
            logger=self._log,
        )


def _rebase(package: Package, prefix: str) -> Package:
    root = f"{prefix}/{package.root}" if package.root else prefix
    manifest = f"{prefix}/{package.manifest}" if package.manifest else package.manifest
    return replace(package, root=root, manifest=manifest)


__all__ = ["PlanRequest", "Planner", "plan_change_set"]
