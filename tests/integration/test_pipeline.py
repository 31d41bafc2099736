"""End-to-end planning against real repositories, without the CLI."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from diffscope.config.loader import config_from_mapping
from diffscope.domain.errors import AmbiguityWarning
from diffscope.domain.models import CollectMode, Provenance
from diffscope.planning.pipeline import Planner, PlanRequest
from diffscope.vcs.collector import CollectRequest

if TYPE_CHECKING:
    from conftest import GitRepo

pytestmark = pytest.mark.integration

CONFIG = config_from_mapping(
    {
        "surfaces": {
            "build": ["**/*.rs", "**/Cargo.toml", "Cargo.lock"],
            "test": ["**/*.rs", "**/tests/**"],
            "docs": ["book/**", "**/*.md"],
        },
        "infrastructure": [".github/**", "languages.toml"],
        "custom": {"themes": ["runtime/themes/**"]},
        "profile": {"ci": {"surfaces": ["build", "test"]}, "docs": {"surfaces": ["docs"]}},
        "workflow": {"check": "ci", "book": "docs"},
    }
)


def _planner(repo: GitRepo, environ: dict[str, str] | None = None) -> Planner:
    return Planner(CONFIG, repo.root, environ=environ or {})


def test_graph_is_built_from_cargo_manifests(rust_workspace: GitRepo) -> None:
    graph = _planner(rust_workspace).load_graph()

    assert graph.names == ("helix-core", "helix-term", "helix-tui", "helix-view")
    assert graph.dependents_of("helix-view") == ("helix-term", "helix-tui")
    assert graph.dependencies_of("helix-term") == ("helix-tui", "helix-view")


def test_docs_only_branch_enables_docs_and_no_packages(rust_workspace: GitRepo) -> None:
    rust_workspace.commit("docs", {"book/src/themes.md": "# Themes\n\nUpdated.\n"})

    decision = _planner(rust_workspace).plan()

    assert decision.enabled_surfaces == ("docs",)
    assert decision.impact.direct == ()
    assert decision.provenance is Provenance.HUMAN
    assert {job.job: job.enabled for job in decision.jobs} == {"book": True, "check": False}


def test_core_change_reaches_every_dependent(rust_workspace: GitRepo) -> None:
    rust_workspace.commit("core", {"helix-core/src/lib.rs": "pub fn core2() {}\n"})

    decision = _planner(rust_workspace).plan()

    assert decision.enabled_surfaces == ("build", "test")
    assert decision.impact.direct == ("helix-core",)
    assert decision.impact.transitive == ("helix-core", "helix-term", "helix-tui", "helix-view")


def test_infrastructure_change_marks_all_packages(rust_workspace: GitRepo) -> None:
    rust_workspace.commit("ci", {".github/workflows/ci.yml": "on: push\n"})

    decision = _planner(rust_workspace).plan()

    assert decision.enabled_surfaces == ("infra",)
    assert decision.impact.all_packages is True
    assert len(decision.impact.direct) == 4


def test_since_mode_diffs_an_explicit_range(rust_workspace: GitRepo) -> None:
    first = rust_workspace.commit("one", {"helix-tui/src/lib.rs": "pub fn tui2() {}\n"})
    rust_workspace.commit("two", {"book/src/themes.md": "# Themes\n\nTwo.\n"})

    request = PlanRequest(collect=CollectRequest(mode=CollectMode.RANGE, base=first))
    decision = _planner(rust_workspace).plan(request)

    assert [item.changed.path for item in decision.classifications] == ["book/src/themes.md"]
    assert decision.revisions.base == first


def test_bot_authored_head_selects_the_automated_policy(rust_workspace: GitRepo) -> None:
    rust_workspace.write("vendor/blob.dat", "opaque\n")
    rust_workspace.git("add", "--all")
    rust_workspace.git(
        "commit", "-q", "-m", "bump", "--author", "dependabot[bot] <bot@example.invalid>"
    )

    with pytest.warns(AmbiguityWarning):
        decision = _planner(rust_workspace).plan()

    assert decision.provenance is Provenance.AUTOMATED
    assert decision.policy == "strict"
    assert decision.enabled_surfaces == CONFIG.surface_ids


def test_environment_author_overrides_git_history(rust_workspace: GitRepo) -> None:
    rust_workspace.commit("docs", {"book/src/themes.md": "# Themes\n\nBot.\n"})

    decision = _planner(rust_workspace, {"GITHUB_ACTOR": "renovate[bot]"}).plan()

    assert decision.provenance is Provenance.AUTOMATED


def test_workspace_root_option_rebases_package_roots(git_repo: GitRepo) -> None:
    git_repo.commit(
        "nested",
        {
            "rust/Cargo.toml": '[workspace]\nmembers = ["core"]\n',
            "rust/core/Cargo.toml": '[package]\nname = "core"\nversion = "0.1.0"\n',
            "rust/core/src/lib.rs": "pub fn f() {}\n",
        },
    )
    config = config_from_mapping({"workspace": {"root": "rust"}})

    graph = Planner(config, git_repo.root, environ={}).load_graph()

    assert graph.package("core").root == "rust/core"
    assert graph.owner_of("rust/core/src/lib.rs") == "core"
