"""Confidence policies: provenance detection and ambiguity detection."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Final

from diffscope.config.model import PlannerConfig
from diffscope.constants import ENV_AUTHOR, ENV_GITHUB_ACTOR, SHARED_CONFIG_FILENAMES
from diffscope.domain.models import (
    AmbiguityCondition,
    ChangeStatus,
    ClassificationResult,
    ConfidencePolicy,
    FallbackAction,
    Provenance,
)

CONDITION_LABELS: Final[Mapping[AmbiguityCondition, str]] = {
    AmbiguityCondition.UNOWNED_PATH: "unowned",
    AmbiguityCondition.RENAME_ONLY: "rename-only",
    AmbiguityCondition.BINARY_FILE: "binary",
    AmbiguityCondition.SHARED_CONFIG_DELETED: "deleted shared-config",
}


@dataclass(frozen=True, slots=True)
class Ambiguity:
    """One ambiguous changed path and what the active policy does about it."""

    condition: AmbiguityCondition
    path: str
    action: FallbackAction
    policy: str

    @property
    def escalates(self) -> bool:
        return self.action is FallbackAction.ACTIVATE_ALL

    def reason_message(self) -> str:
        return f"{CONDITION_LABELS[self.condition]} path under {self.policy} policy"

    def warning_message(self) -> str:
        return f"{self.path}: {self.reason_message()} ({self.action.value})"


@dataclass(frozen=True, slots=True)
class ProvenanceResult:
    provenance: Provenance
    author: str | None = None
    source: str = "none"


def detect_provenance(
    config: PlannerConfig,
    *,
    explicit: Provenance | None = None,
    author: str | None = None,
    environ: Mapping[str, str] | None = None,
    head_author: Callable[[], str | None] | None = None,
) -> ProvenanceResult:
    """Resolve authorship provenance.

    Precedence: explicit provenance, then an explicit author, then
    ``DIFFSCOPE_AUTHOR`` / ``GITHUB_ACTOR``, then the author of the target commit.
    Authors matching ``confidence.bot_authors`` are automated.
    """

    if explicit is not None:
        return ProvenanceResult(provenance=explicit, author=author, source="option")

    env = environ or {}
    candidates: list[tuple[str, str | None]] = [("option", author)]
    candidates.append((ENV_AUTHOR, env.get(ENV_AUTHOR)))
    candidates.append((ENV_GITHUB_ACTOR, env.get(ENV_GITHUB_ACTOR)))
    for source, value in candidates:
        if value and value.strip():
            return _classify_author(config, value.strip(), source)

    if head_author is not None:
        value = head_author()
        if value:
            return _classify_author(config, value, "git")
    return ProvenanceResult(provenance=Provenance.UNKNOWN)


def select_policy(config: PlannerConfig, provenance: Provenance) -> ConfidencePolicy:
    return config.policy_for(provenance)


def detect_ambiguities(
    classifications: Iterable[ClassificationResult], policy: ConfidencePolicy
) -> tuple[Ambiguity, ...]:
    """Every (condition, path) pair present in ``classifications``, in path order."""

    found: list[Ambiguity] = []
    for result in classifications:
        for condition in conditions_for(result):
            found.append(
                Ambiguity(
                    condition=condition,
                    path=result.changed.path,
                    action=policy.action_for(condition),
                    policy=policy.name,
                )
            )
    return tuple(found)


def conditions_for(result: ClassificationResult) -> tuple[AmbiguityCondition, ...]:
    changed = result.changed
    conditions: list[AmbiguityCondition] = []
    if result.unowned:
        conditions.append(AmbiguityCondition.UNOWNED_PATH)
    if changed.rename_only:
        conditions.append(AmbiguityCondition.RENAME_ONLY)
    if changed.binary:
        conditions.append(AmbiguityCondition.BINARY_FILE)
    if (
        changed.status is ChangeStatus.DELETED
        and PurePosixPath(changed.path).name in SHARED_CONFIG_FILENAMES
    ):
        conditions.append(AmbiguityCondition.SHARED_CONFIG_DELETED)
    return tuple(conditions)


def _classify_author(config: PlannerConfig, author: str, source: str) -> ProvenanceResult:
    provenance = Provenance.AUTOMATED if config.is_bot_author(author) else Provenance.HUMAN
    return ProvenanceResult(provenance=provenance, author=author, source=source)


__all__ = [
    "Ambiguity",
    "CONDITION_LABELS",
    "ProvenanceResult",
    "conditions_for",
    "detect_ambiguities",
    "detect_provenance",
    "select_policy",
]
