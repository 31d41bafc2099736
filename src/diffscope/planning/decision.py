"""
diffscope — decision engine.

File: src/diffscope/planning/decision.py

Purpose
- Fold classifications, impact, and the active confidence policy into a
  ``Decision``.

Rules
- A surface is enabled when at least one changed path matched it, or when an
  ambiguity escalated under the active policy (which enables every surface).
- Each escalation adds one fallback reason to every surface and one warning.
- A profile is enabled when any of its required surfaces is enabled.
- Workflow jobs inherit the flag of the profile they map to.

Non-functional requirements
- Stateless and deterministic: identical inputs give an identical Decision.
"""

from __future__ import annotations

import warnings
from collections.abc import Iterable, Sequence
from typing import Any

import structlog

from diffscope.config.model import PlannerConfig
from diffscope.domain.errors import AmbiguityWarning
from diffscope.domain.models import (
    ClassificationResult,
    CollectMode,
    Decision,
    ImpactSet,
    JobDecision,
    ProfileDecision,
    Provenance,
    Reason,
    ReasonKind,
    RevisionPair,
    Surface,
    SurfaceDecision,
)
from diffscope.planning.policy import Ambiguity, detect_ambiguities, select_policy


class DecisionEngine:
    def __init__(self, config: PlannerConfig, *, logger: Any | None = None) -> None:
        self._config = config
        self._log = logger if logger is not None else structlog.get_logger(__name__)

    def decide(
        self,
        classifications: Sequence[ClassificationResult],
        impact: ImpactSet,
        revisions: RevisionPair,
        *,
        provenance: Provenance = Provenance.UNKNOWN,
        warnings_in: Iterable[str] = (),
    ) -> Decision:
        policy = select_policy(self._config, provenance)
        ambiguities = detect_ambiguities(classifications, policy)
        escalated = tuple(item for item in ambiguities if item.escalates)
        forced = revisions.mode is CollectMode.ALL

        collected_warnings = list(warnings_in)
        for ambiguity in ambiguities:
            collected_warnings.append(ambiguity.warning_message())
            warnings.warn(ambiguity.warning_message(), AmbiguityWarning, stacklevel=2)
            if ambiguity.escalates:
                self._log.warning(
                    "decision_fallback",
                    condition=ambiguity.condition.value,
                    path=ambiguity.path,
                    policy=policy.name,
                )

        surfaces = tuple(
            self._surface_decision(surface, classifications, escalated, forced=forced)
            for surface in self._config.surfaces
        )
        enabled = {item.surface for item in surfaces if item.enabled}

        profiles = tuple(
            ProfileDecision(
                profile=profile.name,
                enabled=any(surface in enabled for surface in profile.surfaces),
                surfaces=profile.surfaces,
                merge_base=profile.merge_base,
            )
            for profile in self._config.profiles
        )
        profile_flags = {item.profile: item.enabled for item in profiles}
        jobs = tuple(
            JobDecision(job=job, profile=target, enabled=profile_flags[target])
            for job, target in sorted(self._config.workflow.items())
        )

        return Decision(
            surfaces=surfaces,
            profiles=profiles,
            jobs=jobs,
            impact=impact,
            revisions=revisions,
            classifications=tuple(classifications),
            policy=policy.name,
            provenance=provenance,
            fallback=bool(escalated),
            warnings=tuple(collected_warnings),
        )

    def _surface_decision(
        self,
        surface: Surface,
        classifications: Sequence[ClassificationResult],
        escalated: tuple[Ambiguity, ...],
        *,
        forced: bool = False,
    ) -> SurfaceDecision:
        surface_id = surface.id
        reasons: list[Reason] = []
        for result in classifications:
            for match in result.matches:
                if match.surface != surface_id:
                    continue
                reasons.append(
                    Reason(
                        kind=ReasonKind.MATCH,
                        surface=surface_id,
                        path=match.path,
                        pattern=match.pattern,
                    )
                )
        if forced:
            reasons.append(
                Reason(
                    kind=ReasonKind.FORCED,
                    surface=surface_id,
                    path="*",
                    message="full run requested",
                )
            )
        for ambiguity in escalated:
            reasons.append(
                Reason(
                    kind=ReasonKind.FALLBACK,
                    surface=surface_id,
                    path=ambiguity.path,
                    message=ambiguity.reason_message(),
                )
            )

        decision = SurfaceDecision(
            surface=surface_id, kind=surface.kind, enabled=bool(reasons), reasons=tuple(reasons)
        )
        self._log.debug(
            "decision_surface",
            surface=surface_id,
            enabled=decision.enabled,
            reasons=len(decision.reasons),
        )
        return decision


__all__ = ["DecisionEngine"]
