"""Deterministic, read-only git CLI wrapper used by the change-set collector."""

from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Final

from diffscope.constants import DEFAULT_GIT_TIMEOUT_SECONDS
from diffscope.domain.errors import RevisionNotFound, VcsError, VcsUnavailable
from diffscope.domain.models import ChangeStatus

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

_STATUS_MAP: Final[Mapping[str, ChangeStatus]] = {
    "A": ChangeStatus.ADDED,
    "C": ChangeStatus.ADDED,
    "M": ChangeStatus.MODIFIED,
    "T": ChangeStatus.MODIFIED,
    "D": ChangeStatus.DELETED,
    "R": ChangeStatus.RENAMED,
}
_NOT_A_REPOSITORY: Final[str] = "not a git repository"
_BINARY_SNIFF_BYTES: Final[int] = 8000


class GitCommandError(VcsError):
    """Raised when a git subprocess command exits non-zero."""

    def __init__(
        self,
        *,
        command: Sequence[str],
        returncode: int,
        stdout: str,
        stderr: str,
    ) -> None:
        self.command = tuple(command)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        message = f"git command failed ({returncode}): {' '.join(command)}"
        if stderr.strip():
            message = f"{message}: {stderr.strip()}"
        super().__init__(message)


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Normalized subprocess result for deterministic git wrapper behavior."""

    command: tuple[str, ...]
    cwd: str
    returncode: int
    stdout: str
    stderr: str


@dataclass(frozen=True, slots=True)
class NameStatusEntry:
    """One ``git diff --name-status`` record."""

    status: ChangeStatus
    path: str
    old_path: str | None = None
    similarity: int | None = None


class GitEngine:
    """Thin wrapper around the git CLI; never mutates the repository."""

    def __init__(
        self,
        repo_path: Path | str,
        *,
        timeout_seconds: float = DEFAULT_GIT_TIMEOUT_SECONDS,
        env_overrides: Mapping[str, str] | None = None,
    ) -> None:
        self.repo_path = Path(repo_path).resolve()
        self.timeout_seconds = timeout_seconds
        self._env_overrides = dict(env_overrides or {})

    def ensure_repository(self) -> Path:
        """Return the worktree top-level directory or raise ``VcsUnavailable``."""
        result = self._run_git(["rev-parse", "--show-toplevel"], check=False)
        if result.returncode != 0:
            raise VcsUnavailable(f"{self.repo_path.as_posix()} is not a git repository")
        return Path(result.stdout.strip())

    def rev_parse(self, ref: str) -> str:
        """Resolve ``ref`` to a full commit SHA or raise ``RevisionNotFound``."""
        if not ref or ref.startswith("-"):
            raise RevisionNotFound(ref, "invalid revision syntax")
        result = self._run_git(
            ["rev-parse", "--verify", "--quiet", "--end-of-options", f"{ref}^{{commit}}"],
            check=False,
        )
        sha = result.stdout.strip()
        if result.returncode != 0 or not sha:
            raise RevisionNotFound(ref)
        return sha

    def merge_base(self, left: str, right: str) -> str:
        result = self._run_git(["merge-base", left, right], check=False)
        sha = result.stdout.strip()
        if result.returncode == 1 and not sha:
            raise RevisionNotFound(f"{left}...{right}", "no common ancestor")
        if result.returncode != 0:
            raise GitCommandError(
                command=result.command,
                returncode=result.returncode,
                stdout=result.stdout,
                stderr=result.stderr,
            )
        return sha

    def diff_name_status(self, base: str, target: str | None) -> tuple[NameStatusEntry, ...]:
        """Changed entries between ``base`` and ``target`` (working tree when ``None``)."""
        output = self._run_git(["diff", "--name-status", "-z", "-M", *self._range(base, target)])
        tokens = output.stdout.split("\0")
        entries: list[NameStatusEntry] = []
        index = 0
        while index < len(tokens):
            raw_status = tokens[index]
            if not raw_status:
                index += 1
                continue
            code = raw_status[:1]
            status = _STATUS_MAP.get(code)
            if code in {"R", "C"}:
                old_path, new_path = tokens[index + 1], tokens[index + 2]
                index += 3
                similarity = _parse_similarity(raw_status)
                if status is ChangeStatus.RENAMED:
                    entries.append(
                        NameStatusEntry(status, new_path, old_path=old_path, similarity=similarity)
                    )
                else:
                    entries.append(NameStatusEntry(ChangeStatus.ADDED, new_path))
                continue
            path = tokens[index + 1]
            index += 2
            if status is None:
                # Unmerged (U) or unknown (X) records carry no classifiable change.
                continue
            entries.append(NameStatusEntry(status, path))
        return tuple(entries)

    def diff_binary_paths(self, base: str, target: str | None) -> frozenset[str]:
        """Paths git reports as binary (``-\\t-`` in ``--numstat``)."""
        output = self._run_git(["diff", "--numstat", "-z", "-M", *self._range(base, target)])
        tokens = output.stdout.split("\0")
        binary: set[str] = set()
        index = 0
        while index < len(tokens):
            record = tokens[index]
            if not record:
                index += 1
                continue
            added, _, rest = record.partition("\t")
            deleted, _, path = rest.partition("\t")
            if path:
                index += 1
            else:
                # Renames: "added\tdeleted\t" followed by old and new path tokens.
                path = tokens[index + 2]
                index += 3
            if added == "-" and deleted == "-":
                binary.add(path)
        return frozenset(binary)

    def ls_files(self) -> tuple[str, ...]:
        output = self._run_git(["ls-files", "-z"])
        return tuple(sorted({item for item in output.stdout.split("\0") if item}))

    def untracked_files(self) -> tuple[str, ...]:
        """Untracked, non-ignored paths across the whole worktree, relative to its top level."""
        output = self._run_git(
            ["ls-files", "-z", "--others", "--exclude-standard", "--full-name", "--", ":/"]
        )
        return tuple(sorted({item for item in output.stdout.split("\0") if item}))

    @staticmethod
    def file_is_binary(path: Path) -> bool:
        """Apply git's NUL-byte heuristic to the first block of ``path``."""
        try:
            with path.open("rb") as handle:
                return b"\0" in handle.read(_BINARY_SNIFF_BYTES)
        except OSError:
            return False

    def is_dirty(self) -> bool:
        output = self._run_git(["status", "--porcelain", "--untracked-files=no"])
        return bool(output.stdout.strip())

    def head_author(self, ref: str = "HEAD") -> str | None:
        result = self._run_git(["log", "-1", "--format=%an", ref], check=False)
        if result.returncode != 0:
            return None
        author = result.stdout.strip()
        return author or None

    @staticmethod
    def _range(base: str, target: str | None) -> tuple[str, ...]:
        if target is None:
            return (base, "--")
        return (base, target, "--")

    def _run_git(
        self,
        args: Sequence[str],
        *,
        cwd: Path | None = None,
        check: bool = True,
    ) -> CommandResult:
        command = ("git", "--no-pager", "-c", "core.quotepath=off", *args)
        run_cwd = (cwd if cwd is not None else self.repo_path).resolve()
        env = os.environ.copy()
        env["GIT_TERMINAL_PROMPT"] = "0"
        env.setdefault("GIT_CONFIG_NOSYSTEM", "1")
        env.setdefault("LC_ALL", "C")
        env.update(self._env_overrides)
        if not run_cwd.is_dir():
            raise VcsUnavailable(f"{run_cwd.as_posix()} is not a directory")

        try:
            completed = subprocess.run(
                command,
                cwd=run_cwd,
                env=env,
                text=True,
                encoding="utf-8",
                errors="surrogateescape",
                capture_output=True,
                check=False,
                timeout=self.timeout_seconds,
            )
        except FileNotFoundError as exc:
            raise VcsUnavailable(f"git executable not found: {exc}") from exc
        except subprocess.TimeoutExpired as exc:
            raise VcsUnavailable(
                f"git {' '.join(args)} timed out after {self.timeout_seconds:g}s"
            ) from exc

        result = CommandResult(
            command=command,
            cwd=run_cwd.as_posix(),
            returncode=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
        )

        if result.returncode != 0 and _NOT_A_REPOSITORY in result.stderr:
            raise VcsUnavailable(f"{run_cwd.as_posix()} is not a git repository")
        if check and result.returncode != 0:
            raise GitCommandError(
                command=result.command,
                returncode=result.returncode,
                stdout=result.stdout,
                stderr=result.stderr,
            )

        return result


def _parse_similarity(raw_status: str) -> int | None:
    digits = raw_status[1:]
    if not digits.isdigit():
        return None
    return max(0, min(100, int(digits)))


__all__ = ["CommandResult", "GitCommandError", "GitEngine", "NameStatusEntry"]
