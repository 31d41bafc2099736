"""Frozen domain values shared by every planning stage, with canonical serialization."""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import PurePosixPath
from typing import TYPE_CHECKING

from diffscope.constants import DECISION_SCHEMA_VERSION

if TYPE_CHECKING:
    from collections.abc import Iterator

    from diffscope.planning.globs import GlobPattern

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]

_SLUG_PATTERN = re.compile(r"[^a-z0-9_-]+")


class ChangeStatus(StrEnum):
    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"


class CollectMode(StrEnum):
    MERGE_BASE = "merge-base"
    RANGE = "range"
    ALL = "all"


class SurfaceKind(StrEnum):
    BUILTIN = "builtin"
    CUSTOM = "custom"


class AmbiguityCondition(StrEnum):
    UNOWNED_PATH = "unowned-path"
    RENAME_ONLY = "rename-only"
    BINARY_FILE = "binary-file"
    SHARED_CONFIG_DELETED = "shared-config-deleted"


class FallbackAction(StrEnum):
    ACTIVATE_ALL = "activate-all"
    TRUST_CLASSIFICATION = "trust-classification"


class Provenance(StrEnum):
    HUMAN = "human"
    AUTOMATED = "automated"
    UNKNOWN = "unknown"


class ReasonKind(StrEnum):
    MATCH = "match"
    FALLBACK = "fallback"
    FORCED = "forced"


def canonical_json(value: JSONValue) -> str:
    """Serialize with sorted keys and compact separators."""

    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def normalize_repo_path(raw: str) -> str:
    """Return a repository-relative POSIX path with ``./`` prefixes removed."""

    normalized = PurePosixPath(raw.replace("\\", "/")).as_posix()
    while normalized.startswith("./"):
        normalized = normalized[2:]
    if normalized == ".":
        return ""
    return normalized


def slugify(name: str) -> str:
    """Output-key form of a profile or job name (``Build & Test`` -> ``build-test``)."""

    slug = _SLUG_PATTERN.sub("-", name.strip().lower()).strip("-")
    return slug or "job"


# ---------------------------------------------------------------------------
# Change set
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ChangedPath:
    """One repository-relative path from the diff, immutable once collected."""

    path: str
    status: ChangeStatus = ChangeStatus.MODIFIED
    old_path: str | None = None
    similarity: int | None = None
    binary: bool = False

    def __post_init__(self) -> None:
        if not self.path:
            raise ValueError("changed path must not be empty")
        if PurePosixPath(self.path).is_absolute():
            raise ValueError(f"changed path must be repository-relative: {self.path!r}")
        if self.status is ChangeStatus.RENAMED and not self.old_path:
            raise ValueError(f"renamed path {self.path!r} requires old_path")

    @property
    def rename_only(self) -> bool:
        return self.status is ChangeStatus.RENAMED and self.similarity == 100

    @property
    def candidate_paths(self) -> tuple[str, ...]:
        if self.old_path and self.old_path != self.path:
            return (self.path, self.old_path)
        return (self.path,)

    def to_dict(self) -> dict[str, JSONValue]:
        payload: dict[str, JSONValue] = {"path": self.path, "status": self.status.value}
        if self.old_path is not None:
            payload["old_path"] = self.old_path
        if self.similarity is not None:
            payload["similarity"] = self.similarity
        if self.binary:
            payload["binary"] = True
        return payload


@dataclass(frozen=True, slots=True)
class RevisionPair:
    """Base/target revisions actually used for the diff."""

    base: str | None
    target: str | None
    mode: CollectMode
    merge_base: str | None = None
    base_ref: str | None = None

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "base": self.base,
            "base_ref": self.base_ref,
            "target": self.target,
            "merge_base": self.merge_base,
            "mode": self.mode.value,
        }


@dataclass(frozen=True, slots=True)
class ChangeSet:
    """Ordered, deduplicated change set plus the revisions it was computed from."""

    paths: tuple[ChangedPath, ...]
    revisions: RevisionPair
    warnings: tuple[str, ...] = ()

    def __iter__(self) -> Iterator[ChangedPath]:
        return iter(self.paths)

    def __len__(self) -> int:
        return len(self.paths)


# ---------------------------------------------------------------------------
# Configuration-derived values
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Surface:
    """A named classification bucket: a single tagged value for builtin and custom kinds."""

    kind: SurfaceKind
    name: str
    patterns: tuple[GlobPattern, ...] = ()

    @property
    def id(self) -> str:
        if self.kind is SurfaceKind.CUSTOM:
            return f"custom:{self.name}"
        return self.name

    @classmethod
    def parse_id(cls, surface_id: str) -> tuple[SurfaceKind, str]:
        if surface_id.startswith("custom:"):
            return SurfaceKind.CUSTOM, surface_id[len("custom:") :]
        return SurfaceKind.BUILTIN, surface_id


@dataclass(frozen=True, slots=True)
class Profile:
    """Bundle of required surfaces mapped to external pipeline jobs."""

    name: str
    surfaces: tuple[str, ...]
    merge_base: bool = True


@dataclass(frozen=True, slots=True)
class ConfidencePolicy:
    """Maps each ambiguity condition to a fallback action."""

    name: str
    actions: Mapping[AmbiguityCondition, FallbackAction]

    def action_for(self, condition: AmbiguityCondition) -> FallbackAction:
        return self.actions.get(condition, FallbackAction.TRUST_CLASSIFICATION)

    def escalates(self, condition: AmbiguityCondition) -> bool:
        return self.action_for(condition) is FallbackAction.ACTIVATE_ALL


# ---------------------------------------------------------------------------
# Workspace
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Package:
    """A workspace member and the dependency names its manifest declares."""

    name: str
    root: str
    manifest: str = ""
    manifest_kind: str = ""
    dependencies: frozenset[str] = field(default_factory=frozenset)
    # Dependencies the manifest explicitly marks as in-workspace (path/workspace protocol).
    workspace_references: frozenset[str] = field(default_factory=frozenset)

    def owns(self, path: str) -> bool:
        if not self.root:
            return True
        return path == self.root or path.startswith(f"{self.root}/")


# ---------------------------------------------------------------------------
# Classification / impact
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PatternMatch:
    surface: str
    path: str
    pattern: str


@dataclass(frozen=True, slots=True)
class ClassificationResult:
    changed: ChangedPath
    surfaces: tuple[str, ...]
    package: str | None
    matches: tuple[PatternMatch, ...]
    infra: bool = False
    # Owner of the pre-rename location when it differs from ``package``.
    previous_package: str | None = None

    @property
    def owners(self) -> tuple[str, ...]:
        return tuple(name for name in (self.package, self.previous_package) if name is not None)

    @property
    def unowned(self) -> bool:
        return not self.surfaces and not self.owners

    def to_dict(self) -> dict[str, JSONValue]:
        payload = self.changed.to_dict()
        payload["surfaces"] = list(self.surfaces)
        payload["package"] = self.package
        if self.previous_package is not None:
            payload["previous_package"] = self.previous_package
        payload["infra"] = self.infra
        payload["unowned"] = self.unowned
        return payload


@dataclass(frozen=True, slots=True)
class ImpactSet:
    """Direct and transitive affected packages; direct is always a subset of transitive."""

    direct: tuple[str, ...]
    transitive: tuple[str, ...]
    total_packages: int
    all_packages: bool = False

    def __post_init__(self) -> None:
        missing = sorted(set(self.direct) - set(self.transitive))
        if missing:
            raise ValueError(f"direct packages missing from transitive set: {missing}")

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "direct": list(self.direct),
            "transitive": list(self.transitive),
            "direct_count": len(self.direct),
            "transitive_count": len(self.transitive),
            "total_packages": self.total_packages,
            "all_packages": self.all_packages,
        }


# ---------------------------------------------------------------------------
# Decision
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Reason:
    """One entry of the per-surface audit trail."""

    kind: ReasonKind
    surface: str
    path: str
    pattern: str | None = None
    message: str = ""

    def to_dict(self) -> dict[str, JSONValue]:
        payload: dict[str, JSONValue] = {
            "kind": self.kind.value,
            "path": self.path,
        }
        if self.pattern is not None:
            payload["pattern"] = self.pattern
        if self.message:
            payload["message"] = self.message
        return payload

    def describe(self) -> str:
        if self.kind is ReasonKind.MATCH:
            return f"{self.path} matched {self.pattern}"
        if self.kind is ReasonKind.FORCED:
            return self.message
        return f"{self.path}: {self.message}"


@dataclass(frozen=True, slots=True)
class SurfaceDecision:
    surface: str
    kind: SurfaceKind
    enabled: bool
    reasons: tuple[Reason, ...] = ()

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "enabled": self.enabled,
            "kind": self.kind.value,
            "reasons": [reason.to_dict() for reason in self.reasons],
        }


@dataclass(frozen=True, slots=True)
class ProfileDecision:
    profile: str
    enabled: bool
    surfaces: tuple[str, ...]
    merge_base: bool = True

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "enabled": self.enabled,
            "surfaces": list(self.surfaces),
            "merge_base": self.merge_base,
        }


@dataclass(frozen=True, slots=True)
class JobDecision:
    job: str
    profile: str
    enabled: bool

    def to_dict(self) -> dict[str, JSONValue]:
        return {"profile": self.profile, "enabled": self.enabled}


@dataclass(frozen=True, slots=True)
class Decision:
    """Final planning output; every renderer is a projection of this value."""

    surfaces: tuple[SurfaceDecision, ...]
    profiles: tuple[ProfileDecision, ...]
    jobs: tuple[JobDecision, ...]
    impact: ImpactSet
    revisions: RevisionPair
    classifications: tuple[ClassificationResult, ...]
    policy: str
    provenance: Provenance
    fallback: bool = False
    warnings: tuple[str, ...] = ()

    def surface(self, surface_id: str) -> SurfaceDecision:
        for item in self.surfaces:
            if item.surface == surface_id:
                return item
        raise KeyError(f"unknown surface: {surface_id}")

    def profile(self, name: str) -> ProfileDecision:
        for item in self.profiles:
            if item.profile == name:
                return item
        raise KeyError(f"unknown profile: {name}")

    @property
    def enabled_surfaces(self) -> tuple[str, ...]:
        return tuple(item.surface for item in self.surfaces if item.enabled)

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "schema_version": DECISION_SCHEMA_VERSION,
            "revisions": self.revisions.to_dict(),
            "policy": {
                "name": self.policy,
                "provenance": self.provenance.value,
                "fallback": self.fallback,
            },
            "surfaces": {item.surface: item.to_dict() for item in self.surfaces},
            "profiles": {item.profile: item.to_dict() for item in self.profiles},
            "jobs": {item.job: item.to_dict() for item in self.jobs},
            "impact": self.impact.to_dict(),
            "changes": [item.to_dict() for item in self.classifications],
            "warnings": list(self.warnings),
        }

    def to_json(self) -> str:
        return canonical_json(self.to_dict())


__all__ = [
    "AmbiguityCondition",
    "ChangeSet",
    "ChangeStatus",
    "ChangedPath",
    "ClassificationResult",
    "CollectMode",
    "ConfidencePolicy",
    "Decision",
    "FallbackAction",
    "ImpactSet",
    "JSONValue",
    "JobDecision",
    "Package",
    "PatternMatch",
    "Profile",
    "ProfileDecision",
    "Provenance",
    "Reason",
    "ReasonKind",
    "RevisionPair",
    "Surface",
    "SurfaceDecision",
    "SurfaceKind",
    "canonical_json",
    "normalize_repo_path",
    "slugify",
]
