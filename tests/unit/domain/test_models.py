"""Unit tests for domain values and the error taxonomy."""

from __future__ import annotations

import json

import pytest

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
    AmbiguityCondition,
    ChangedPath,
    ChangeStatus,
    CollectMode,
    ConfidencePolicy,
    Decision,
    FallbackAction,
    ImpactSet,
    Package,
    Provenance,
    Reason,
    ReasonKind,
    RevisionPair,
    Surface,
    SurfaceDecision,
    SurfaceKind,
    canonical_json,
    normalize_repo_path,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("./src/lib.rs", "src/lib.rs"),
        ("././a/b", "a/b"),
        ("docs\\guide.md", "docs/guide.md"),
        (".", ""),
        ("a//b", "a/b"),
    ],
)
def test_normalize_repo_path(raw: str, expected: str) -> None:
    assert normalize_repo_path(raw) == expected


def test_changed_path_rejects_invalid_input() -> None:
    with pytest.raises(ValueError, match="must not be empty"):
        ChangedPath(path="")
    with pytest.raises(ValueError, match="repository-relative"):
        ChangedPath(path="/etc/passwd")
    with pytest.raises(ValueError, match="requires old_path"):
        ChangedPath(path="b.rs", status=ChangeStatus.RENAMED)


def test_changed_path_rename_helpers() -> None:
    pure = ChangedPath(path="b.rs", status=ChangeStatus.RENAMED, old_path="a.rs", similarity=100)
    edited = ChangedPath(path="b.rs", status=ChangeStatus.RENAMED, old_path="a.rs", similarity=87)

    assert pure.rename_only is True
    assert edited.rename_only is False
    assert pure.candidate_paths == ("b.rs", "a.rs")
    assert ChangedPath(path="c.rs").candidate_paths == ("c.rs",)
    assert pure.to_dict() == {
        "path": "b.rs",
        "status": "renamed",
        "old_path": "a.rs",
        "similarity": 100,
    }


def test_surface_ids_are_tagged_by_kind() -> None:
    assert Surface(SurfaceKind.BUILTIN, "docs").id == "docs"
    assert Surface(SurfaceKind.CUSTOM, "themes").id == "custom:themes"
    assert Surface.parse_id("custom:themes") == (SurfaceKind.CUSTOM, "themes")
    assert Surface.parse_id("build") == (SurfaceKind.BUILTIN, "build")


def test_confidence_policy_defaults_to_trusting_classification() -> None:
    policy = ConfidencePolicy(
        name="partial",
        actions={AmbiguityCondition.BINARY_FILE: FallbackAction.ACTIVATE_ALL},
    )

    assert policy.escalates(AmbiguityCondition.BINARY_FILE) is True
    assert policy.escalates(AmbiguityCondition.UNOWNED_PATH) is False
    assert policy.action_for(AmbiguityCondition.RENAME_ONLY) is FallbackAction.TRUST_CLASSIFICATION


def test_package_ownership_respects_segment_boundaries() -> None:
    pkg = Package(name="helix-view", root="helix-view")

    assert pkg.owns("helix-view/src/lib.rs")
    assert pkg.owns("helix-view")
    assert not pkg.owns("helix-viewer/src/lib.rs")
    assert Package(name="root", root="").owns("anything.txt")


def test_impact_set_requires_direct_subset_of_transitive() -> None:
    with pytest.raises(ValueError, match="missing from transitive"):
        ImpactSet(direct=("core",), transitive=("view",), total_packages=2)


def test_reason_describe_per_kind() -> None:
    match = Reason(ReasonKind.MATCH, "docs", "README.md", pattern="*.md")
    fallback = Reason(
        ReasonKind.FALLBACK, "build", "tools/x", message="unowned path under strict policy"
    )
    forced = Reason(ReasonKind.FORCED, "build", "*", message="full run requested")

    assert match.describe() == "README.md matched *.md"
    assert fallback.describe() == "tools/x: unowned path under strict policy"
    assert forced.describe() == "full run requested"
    assert "pattern" not in fallback.to_dict()


def test_decision_lookup_and_canonical_json() -> None:
    decision = Decision(
        surfaces=(
            SurfaceDecision("build", SurfaceKind.BUILTIN, enabled=True),
            SurfaceDecision("docs", SurfaceKind.BUILTIN, enabled=False),
        ),
        profiles=(),
        jobs=(),
        impact=ImpactSet(direct=(), transitive=(), total_packages=0),
        revisions=RevisionPair(base="a" * 40, target="b" * 40, mode=CollectMode.RANGE),
        classifications=(),
        policy="balanced",
        provenance=Provenance.HUMAN,
    )

    assert decision.enabled_surfaces == ("build",)
    assert decision.surface("docs").enabled is False
    with pytest.raises(KeyError, match="unknown surface"):
        decision.surface("lint")
    with pytest.raises(KeyError, match="unknown profile"):
        decision.profile("ci")

    rendered = decision.to_json()
    assert rendered == canonical_json(json.loads(rendered))
    assert json.loads(rendered)["policy"] == {
        "name": "balanced",
        "provenance": "human",
        "fallback": False,
    }


def test_error_hierarchy_and_messages() -> None:
    assert issubclass(DuplicateSurfaceName, ConfigurationError)
    assert issubclass(InvalidGlobPattern, ConfigurationError)
    assert issubclass(UnknownProfileReference, ConfigurationError)
    assert issubclass(CycleDetected, GraphError)
    assert issubclass(DuplicatePackageName, GraphError)
    assert issubclass(RevisionNotFound, VcsError)
    assert issubclass(VcsUnavailable, VcsError)
    for error in (ConfigurationError, GraphError, VcsError):
        assert issubclass(error, DiffscopeError)
    assert issubclass(AmbiguityWarning, UserWarning)
    assert issubclass(DirtyWorkspaceIgnored, UserWarning)

    assert str(CycleDetected(["a", "b", "a"])) == "dependency cycle detected: a -> b -> a"
    assert "x/Cargo.toml, y/Cargo.toml" in str(
        DuplicatePackageName("dup", ["x/Cargo.toml", "y/Cargo.toml"])
    )
    assert str(RevisionNotFound("nope", "bad object")) == "revision not found: 'nope' (bad object)"
    assert "'ci'" in str(UnknownProfileReference("check", "ci"))
