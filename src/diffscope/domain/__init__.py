"""Public domain value types and the planning error taxonomy."""

from diffscope.domain.errors import (
    AmbiguityWarning,
    ConfigurationError,
    CycleDetected,
    DiffscopeError,
    DirtyWorkspaceIgnored,
    DuplicatePackageName,
    DuplicateSurfaceName,
    GraphError,
    InvalidGlobPattern,
    RevisionNotFound,
    UnknownProfileReference,
    VcsError,
    VcsUnavailable,
)
from diffscope.domain.models import (
    ChangedPath,
    ChangeSet,
    ChangeStatus,
    ClassificationResult,
    CollectMode,
    Decision,
    ImpactSet,
    Package,
    Profile,
    Provenance,
    Surface,
    SurfaceKind,
)

__all__ = [
    "AmbiguityWarning",
    "ChangeSet",
    "ChangeStatus",
    "ChangedPath",
    "ClassificationResult",
    "CollectMode",
    "ConfigurationError",
    "CycleDetected",
    "Decision",
    "DiffscopeError",
    "DirtyWorkspaceIgnored",
    "DuplicatePackageName",
    "DuplicateSurfaceName",
    "GraphError",
    "ImpactSet",
    "InvalidGlobPattern",
    "Package",
    "Profile",
    "Provenance",
    "RevisionNotFound",
    "Surface",
    "SurfaceKind",
    "UnknownProfileReference",
    "VcsError",
    "VcsUnavailable",
]
