"""Shared fixtures: hermetic git environment and throwaway repositories."""

from __future__ import annotations

import os
import subprocess
from collections.abc import Iterator, Mapping
from pathlib import Path

import pytest
import structlog

_SCRUBBED_ENV = ("GITHUB_ACTOR", "GITHUB_OUTPUT", "NO_COLOR")


class GitRepo:
    """Minimal driver for a scratch repository used by tests."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def git(self, *args: str, check: bool = True) -> subprocess.CompletedProcess[str]:
        completed = subprocess.run(
            ["git", *args],
            cwd=self.root,
            env=os.environ.copy(),
            text=True,
            capture_output=True,
            check=False,
        )
        if check and completed.returncode != 0:
            msg = (
                f"git command failed: git {' '.join(args)}\n"
                f"stdout:\n{completed.stdout}\nstderr:\n{completed.stderr}"
            )
            raise AssertionError(msg)
        return completed

    def write(self, rel_path: str, content: str | bytes) -> Path:
        path = self.root / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
        return path

    def commit(self, message: str, files: Mapping[str, str | bytes | None]) -> str:
        """Apply ``files`` (``None`` deletes) and commit; return the new HEAD sha."""

        for rel_path, content in files.items():
            if content is None:
                self.git("rm", "-q", "--", rel_path)
            else:
                self.write(rel_path, content)
        self.git("add", "--all")
        self.git("commit", "-q", "-m", message)
        return self.rev()

    def rev(self, ref: str = "HEAD") -> str:
        return self.git("rev-parse", ref).stdout.strip()


@pytest.fixture(autouse=True)
def isolated_git_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    home = tmp_path / "home"
    xdg = tmp_path / "xdg"
    home.mkdir(exist_ok=True)
    xdg.mkdir(exist_ok=True)

    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(xdg))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_TERMINAL_PROMPT", "0")
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test Author")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "author@example.invalid")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test Author")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "author@example.invalid")
    for name in list(os.environ):
        if name.startswith("DIFFSCOPE_") or name in _SCRUBBED_ENV:
            monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def reset_structlog() -> Iterator[None]:
    yield
    structlog.reset_defaults()


@pytest.fixture
def git_repo(tmp_path: Path) -> GitRepo:
    root = tmp_path / "repo"
    root.mkdir()
    repo = GitRepo(root)
    repo.git("init", "-q")
    repo.git("symbolic-ref", "HEAD", "refs/heads/main")
    repo.git("config", "commit.gpgsign", "false")
    return repo


@pytest.fixture
def rust_workspace(git_repo: GitRepo) -> GitRepo:
    """Four-crate workspace: view <- term, view <- tui, tui <- term, core standalone.

    ``main`` holds the initial commit; work happens on branch ``feature``.
    """

    git_repo.commit(
        "initial workspace",
        {
            "Cargo.toml": '[workspace]\nmembers = ["helix-*"]\n',
            "helix-core/Cargo.toml": _crate("helix-core"),
            "helix-core/src/lib.rs": "pub fn core() {}\n",
            "helix-view/Cargo.toml": _crate("helix-view", "helix-core"),
            "helix-view/src/lib.rs": "pub fn view() {}\n",
            "helix-tui/Cargo.toml": _crate("helix-tui", "helix-view"),
            "helix-tui/src/lib.rs": "pub fn tui() {}\n",
            "helix-term/Cargo.toml": _crate("helix-term", "helix-view", "helix-tui"),
            "helix-term/src/main.rs": "fn main() {}\n",
            "book/src/themes.md": "# Themes\n",
            "README.md": "# helix\n",
        },
    )
    git_repo.git("checkout", "-q", "-b", "feature")
    return git_repo


def _crate(name: str, *path_deps: str) -> str:
    lines = ["[package]", f'name = "{name}"', 'version = "0.1.0"', "", "[dependencies]"]
    lines.extend(f'{dep} = {{ path = "../{dep}" }}' for dep in path_deps)
    lines.append('serde = "1"')
    return "\n".join(lines) + "\n"
