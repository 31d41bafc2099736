"""Unit tests for planning.classifier."""

from __future__ import annotations

from diffscope.config.loader import config_from_mapping
from diffscope.domain.models import ChangedPath, ChangeStatus, Package
from diffscope.planning.classifier import SurfaceClassifier
from diffscope.workspace.graph import WorkspaceGraph

CONFIG = config_from_mapping(
    {
        "surfaces": {
            "build": ["**/*.rs", "**/Cargo.toml"],
            "test": ["**/*.rs", "**/tests/**"],
            "docs": ["book/**", "**/*.md"],
        },
        "infrastructure": [".github/**", "languages.toml"],
        "custom": {
            "themes": ["runtime/themes/**"],
            "runtime": ["runtime/**"],
        },
    }
)

GRAPH = WorkspaceGraph.build(
    [
        Package(name="helix-view", root="helix-view"),
        Package(name="helix-runtime", root="runtime"),
        Package(name="workspace-root", root=""),
    ]
)


def _classifier() -> SurfaceClassifier:
    return SurfaceClassifier(CONFIG, GRAPH)


def test_surfaces_are_evaluated_in_configuration_order() -> None:
    assert CONFIG.surface_ids == (
        "build",
        "test",
        "docs",
        "infra",
        "custom:runtime",
        "custom:themes",
    )

    result = _classifier().classify(ChangedPath("helix-view/src/lib.rs"))

    assert result.surfaces == ("build", "test")
    assert result.package == "helix-view"
    assert [(item.surface, item.pattern) for item in result.matches] == [
        ("build", "**/*.rs"),
        ("test", "**/*.rs"),
    ]


def test_overlapping_custom_surfaces_activate_independently() -> None:
    result = _classifier().classify(ChangedPath("runtime/themes/onedark.toml"))

    assert result.surfaces == ("custom:runtime", "custom:themes")
    assert result.package == "helix-runtime"


def test_infrastructure_paths_are_exempt_from_ownership() -> None:
    result = _classifier().classify(ChangedPath(".github/workflows/ci.yml"))

    assert result.infra is True
    assert result.surfaces == ("infra",)
    assert result.package is None
    assert result.unowned is False


def test_renames_match_under_old_and_new_location() -> None:
    renamed = ChangedPath(
        "notes/themes.txt",
        status=ChangeStatus.RENAMED,
        old_path="book/src/themes.md",
        similarity=100,
    )

    result = _classifier().classify(renamed)

    assert result.surfaces == ("docs",)
    assert result.matches[0].path == "book/src/themes.md"
    assert result.package == "workspace-root"
    assert result.previous_package is None
    assert result.owners == ("workspace-root",)


def test_rename_across_packages_records_both_owners() -> None:
    moved = ChangedPath(
        "runtime/src/util.rs",
        status=ChangeStatus.RENAMED,
        old_path="helix-view/src/util.rs",
        similarity=100,
    )

    result = _classifier().classify(moved)

    assert result.package == "helix-runtime"
    assert result.previous_package == "helix-view"
    assert result.owners == ("helix-runtime", "helix-view")
    assert result.to_dict()["previous_package"] == "helix-view"


def test_path_without_surface_or_owner_is_unowned() -> None:
    classifier = SurfaceClassifier(CONFIG, WorkspaceGraph.build([Package("a", root="a")]))

    result = classifier.classify(ChangedPath("vendor/obscure/file.bin", binary=True))

    assert result.surfaces == ()
    assert result.package is None
    assert result.unowned is True
    assert result.to_dict()["unowned"] is True


def test_classify_all_preserves_input_order() -> None:
    paths = (ChangedPath("b.md"), ChangedPath("a.rs"))

    results = _classifier().classify_all(paths)

    assert [item.changed.path for item in results] == ["b.md", "a.rs"]
