"""Unit tests for change set collection against real repositories."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from diffscope.domain.errors import DirtyWorkspaceIgnored, RevisionNotFound
from diffscope.domain.models import ChangeStatus, CollectMode
from diffscope.vcs.collector import ChangeSetCollector, CollectRequest
from diffscope.vcs.git_engine import GitEngine

if TYPE_CHECKING:
    from conftest import GitRepo


@pytest.fixture
def diverged(git_repo: GitRepo) -> GitRepo:
    """``main`` and ``feature`` each carry one commit past their fork point."""

    git_repo.commit("init", {"shared.txt": "base\n"})
    git_repo.git("checkout", "-q", "-b", "feature")
    git_repo.commit("feature work", {"feature.txt": "feature\n"})
    git_repo.git("checkout", "-q", "main")
    git_repo.commit("main work", {"main.txt": "main\n"})
    git_repo.git("checkout", "-q", "feature")
    return git_repo


def _collector(repo: GitRepo) -> ChangeSetCollector:
    return ChangeSetCollector(GitEngine(repo.root), base_branch="main")


def test_merge_base_mode_excludes_base_branch_progress(diverged: GitRepo) -> None:
    change_set = _collector(diverged).collect(CollectRequest())

    assert [item.path for item in change_set] == ["feature.txt"]
    revisions = change_set.revisions
    assert revisions.mode is CollectMode.MERGE_BASE
    assert revisions.base_ref == "main"
    assert revisions.merge_base == diverged.rev("main~1")
    assert revisions.base == revisions.merge_base
    assert revisions.target == diverged.rev("feature")
    assert change_set.warnings == ()


def test_range_mode_diffs_the_two_revisions_directly(diverged: GitRepo) -> None:
    change_set = _collector(diverged).collect(CollectRequest(mode=CollectMode.RANGE, base="main"))

    assert [(item.path, item.status) for item in change_set] == [
        ("feature.txt", ChangeStatus.ADDED),
        ("main.txt", ChangeStatus.DELETED),
    ]
    assert change_set.revisions.merge_base is None
    assert change_set.revisions.base == diverged.rev("main")


def test_all_mode_lists_every_tracked_file(diverged: GitRepo) -> None:
    change_set = _collector(diverged).collect(CollectRequest(mode=CollectMode.ALL))

    assert [item.path for item in change_set] == ["feature.txt", "shared.txt"]
    assert all(item.status is ChangeStatus.MODIFIED for item in change_set)
    assert change_set.revisions.base is None


def test_environment_base_override_applies_only_without_explicit_base() -> None:
    environ = {"DIFFSCOPE_BASE": " release "}

    assert CollectRequest.from_environment(environ).base == "release"
    assert CollectRequest.from_environment(environ, base="main").base == "main"
    assert CollectRequest.from_environment({}).base is None


def test_unknown_base_revision_is_fatal(diverged: GitRepo) -> None:
    with pytest.raises(RevisionNotFound, match="'no-such-branch'"):
        _collector(diverged).collect(CollectRequest(base="no-such-branch"))


def test_dirty_worktree_is_ignored_with_a_warning(diverged: GitRepo) -> None:
    diverged.write("shared.txt", "edited\n")

    with pytest.warns(DirtyWorkspaceIgnored):
        change_set = _collector(diverged).collect(CollectRequest())

    assert [item.path for item in change_set] == ["feature.txt"]
    assert len(change_set.warnings) == 1
    assert "--include-worktree" in change_set.warnings[0]


def test_worktree_changes_are_included_on_request(diverged: GitRepo) -> None:
    diverged.write("shared.txt", "edited\n")

    change_set = _collector(diverged).collect(CollectRequest(include_worktree=True))

    assert [item.path for item in change_set] == ["feature.txt", "shared.txt"]
    assert change_set.revisions.target == "WORKTREE"
    assert change_set.warnings == ()


def test_worktree_mode_reports_untracked_files_as_added(diverged: GitRepo) -> None:
    diverged.write("notes/new.md", "draft\n")
    diverged.write("assets/logo.bin", b"\x89PNG\x00\x01")
    diverged.write("build/out.o", "ignored\n")
    diverged.write(".gitignore", "build/\n")

    change_set = _collector(diverged).collect(CollectRequest(include_worktree=True))

    by_path = {item.path: item for item in change_set}
    assert sorted(by_path) == [".gitignore", "assets/logo.bin", "feature.txt", "notes/new.md"]
    assert by_path["notes/new.md"].status is ChangeStatus.ADDED
    assert by_path["notes/new.md"].binary is False
    assert by_path["assets/logo.bin"].binary is True


def test_untracked_files_are_left_out_without_worktree_mode(diverged: GitRepo) -> None:
    diverged.write("notes/new.md", "draft\n")

    change_set = _collector(diverged).collect(CollectRequest())

    assert [item.path for item in change_set] == ["feature.txt"]
    assert change_set.warnings == ()


def test_renames_and_binary_files_carry_their_flags(git_repo: GitRepo) -> None:
    body = "".join(f"fn f{index}() {{}}\n" for index in range(30))
    git_repo.commit("init", {"crates/a/src/lib.rs": body})
    git_repo.git("checkout", "-q", "-b", "feature")
    git_repo.git("mv", "crates/a/src/lib.rs", "crates/b/src/lib.rs")
    git_repo.commit("move", {"assets/icon.png": b"\x00\x01\x02binary\x00"})

    change_set = _collector(git_repo).collect(CollectRequest())

    by_path = {item.path: item for item in change_set}
    moved = by_path["crates/b/src/lib.rs"]
    assert moved.old_path == "crates/a/src/lib.rs"
    assert moved.rename_only is True
    assert by_path["assets/icon.png"].binary is True
