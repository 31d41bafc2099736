"""
diffscope — unit tests for the read-only git engine.

File: tests/unit/vcs/test_git_engine.py

Purpose
- Validate GitEngine primitives over local temporary repositories.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from diffscope.domain.errors import RevisionNotFound, VcsUnavailable
from diffscope.domain.models import ChangeStatus
from diffscope.vcs.git_engine import GitEngine, NameStatusEntry

if TYPE_CHECKING:
    from pathlib import Path

    from conftest import GitRepo


def test_ensure_repository_returns_toplevel(git_repo: GitRepo) -> None:
    git_repo.commit("init", {"README.md": "hi\n"})
    nested = git_repo.root / "nested"
    nested.mkdir()

    assert GitEngine(nested).ensure_repository().resolve() == git_repo.root.resolve()


def test_directory_outside_a_repository_is_unavailable(tmp_path: Path) -> None:
    plain = tmp_path / "plain"
    plain.mkdir()

    with pytest.raises(VcsUnavailable, match="not a git repository"):
        GitEngine(plain).ensure_repository()


def test_missing_directory_is_unavailable(tmp_path: Path) -> None:
    with pytest.raises(VcsUnavailable, match="not a directory"):
        GitEngine(tmp_path / "absent").ls_files()


def test_rev_parse_resolves_and_rejects(git_repo: GitRepo) -> None:
    sha = git_repo.commit("init", {"README.md": "hi\n"})
    engine = GitEngine(git_repo.root)

    assert engine.rev_parse("main") == sha
    assert engine.rev_parse("HEAD") == sha
    with pytest.raises(RevisionNotFound, match="'nope'"):
        engine.rev_parse("nope")
    with pytest.raises(RevisionNotFound, match="invalid revision syntax"):
        engine.rev_parse("--all")


def test_merge_base_without_common_ancestor(git_repo: GitRepo) -> None:
    git_repo.commit("init", {"README.md": "hi\n"})
    git_repo.git("checkout", "-q", "--orphan", "island")
    git_repo.commit("island", {"island.txt": "alone\n"})
    engine = GitEngine(git_repo.root)

    with pytest.raises(RevisionNotFound, match="no common ancestor"):
        engine.merge_base("main", "island")


def test_name_status_reports_every_change_kind(git_repo: GitRepo) -> None:
    body = "".join(f"line {index}\n" for index in range(40))
    base = git_repo.commit(
        "init",
        {"keep.txt": "one\n", "drop.txt": "bye\n", "src/old_name.rs": body},
    )
    git_repo.git("mv", "src/old_name.rs", "src/new_name.rs")
    target = git_repo.commit(
        "changes",
        {"keep.txt": "two\n", "drop.txt": None, "docs/naïve file.md": "# hi\n"},
    )

    entries = GitEngine(git_repo.root).diff_name_status(base, target)

    assert sorted(entries, key=lambda item: item.path) == [
        NameStatusEntry(ChangeStatus.ADDED, "docs/naïve file.md"),
        NameStatusEntry(ChangeStatus.DELETED, "drop.txt"),
        NameStatusEntry(ChangeStatus.MODIFIED, "keep.txt"),
        NameStatusEntry(
            ChangeStatus.RENAMED, "src/new_name.rs", old_path="src/old_name.rs", similarity=100
        ),
    ]


def test_binary_paths_are_detected(git_repo: GitRepo) -> None:
    base = git_repo.commit("init", {"README.md": "hi\n"})
    target = git_repo.commit(
        "assets", {"assets/logo.png": b"\x89PNG\r\n\x1a\n\x00\x00\x00", "notes.txt": "text\n"}
    )

    assert GitEngine(git_repo.root).diff_binary_paths(base, target) == frozenset(
        {"assets/logo.png"}
    )


def test_ls_files_is_sorted(git_repo: GitRepo) -> None:
    git_repo.commit("init", {"b.txt": "b\n", "a/z.txt": "z\n", "a/a.txt": "a\n"})

    assert GitEngine(git_repo.root).ls_files() == ("a/a.txt", "a/z.txt", "b.txt")


def test_dirty_state_ignores_untracked_files(git_repo: GitRepo) -> None:
    git_repo.commit("init", {"tracked.txt": "v1\n"})
    engine = GitEngine(git_repo.root)

    git_repo.write("untracked.txt", "new\n")
    assert engine.is_dirty() is False

    git_repo.write("tracked.txt", "v2\n")
    assert engine.is_dirty() is True


def test_head_author(git_repo: GitRepo) -> None:
    git_repo.commit("init", {"README.md": "hi\n"})
    engine = GitEngine(git_repo.root)

    assert engine.head_author() == "Test Author"
    assert engine.head_author("does-not-exist") is None
