"""Error taxonomy for planning runs.

Configuration and graph errors are fatal and stop the pipeline before any
surface decision exists. VCS errors are fatal for the invocation but are
expected to be retried by the caller (typically with full history). Ambiguity
is never an error: it is surfaced as a warning and absorbed by the active
confidence policy.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence


class DiffscopeError(Exception):
    """Base class for every fatal planning error."""


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigurationError(DiffscopeError):
    """Malformed configuration, duplicate names, or invalid glob syntax."""


class DuplicateSurfaceName(ConfigurationError):
    def __init__(self, surface: str) -> None:
        self.surface = surface
        super().__init__(f"duplicate surface name: {surface!r}")


class InvalidGlobPattern(ConfigurationError):
    def __init__(self, pattern: str, reason: str) -> None:
        self.pattern = pattern
        self.reason = reason
        super().__init__(f"invalid glob pattern {pattern!r}: {reason}")


class UnknownProfileReference(ConfigurationError):
    def __init__(self, job: str, profile: str) -> None:
        self.job = job
        self.profile = profile
        super().__init__(f"workflow job {job!r} references undeclared profile {profile!r}")


# ---------------------------------------------------------------------------
# Workspace graph
# ---------------------------------------------------------------------------


class GraphError(DiffscopeError):
    """Workspace dependency graph cannot be built correctly."""


class CycleDetected(GraphError):
    """Raised when the in-workspace dependency relation is not acyclic."""

    def __init__(self, cycle: Sequence[str]) -> None:
        self.cycle = tuple(cycle)
        rendered = " -> ".join(self.cycle) if self.cycle else "<unknown>"
        super().__init__(f"dependency cycle detected: {rendered}")


class DuplicatePackageName(GraphError):
    def __init__(self, name: str, manifests: Sequence[str]) -> None:
        self.name = name
        self.manifests = tuple(manifests)
        super().__init__(
            f"package name {name!r} is declared by more than one manifest: "
            + ", ".join(self.manifests)
        )


class UnresolvedWorkspaceReference(GraphError):
    def __init__(self, package: str, reference: str) -> None:
        self.package = package
        self.reference = reference
        super().__init__(
            f"package {package!r} references unknown workspace package {reference!r}"
        )


class ManifestError(GraphError):
    def __init__(self, manifest: str, message: str) -> None:
        self.manifest = manifest
        super().__init__(f"{manifest}: {message}")


# ---------------------------------------------------------------------------
# Version control
# ---------------------------------------------------------------------------


class VcsError(DiffscopeError):
    """Revision history could not be inspected."""


class RevisionNotFound(VcsError):
    def __init__(self, revision: str, detail: str = "") -> None:
        self.revision = revision
        message = f"revision not found: {revision!r}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class VcsUnavailable(VcsError):
    """git is missing, timed out, or the directory is not a repository."""


# ---------------------------------------------------------------------------
# Non-fatal warnings
# ---------------------------------------------------------------------------


class AmbiguityWarning(UserWarning):
    """A changed path could not be classified with confidence."""


class DirtyWorkspaceIgnored(UserWarning):
    """Uncommitted local changes exist but the diff mode does not include them."""


__all__ = [
    "AmbiguityWarning",
    "ConfigurationError",
    "CycleDetected",
    "DiffscopeError",
    "DirtyWorkspaceIgnored",
    "DuplicatePackageName",
    "DuplicateSurfaceName",
    "GraphError",
    "InvalidGlobPattern",
    "ManifestError",
    "RevisionNotFound",
    "UnknownProfileReference",
    "UnresolvedWorkspaceReference",
    "VcsError",
    "VcsUnavailable",
]
