"""
diffscope — change set collector.

File: src/diffscope/vcs/collector.py

Purpose
- Turn a base/target request into an ordered, deduplicated ``ChangeSet``.

Modes
- ``merge-base``: diff ``merge-base(base, target)..target`` (pull-request mode).
- ``range``: diff ``base..target`` for an explicit prior revision.
- ``all``: every tracked file reported as modified; detection is bypassed.

Uncommitted changes are ignored unless ``include_worktree`` is set, in which
case the working tree replaces the target revision and untracked, non-ignored
files are reported as added. Ignoring them records a ``DirtyWorkspaceIgnored``
warning on the change set.
"""

from __future__ import annotations

import warnings
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import structlog

from diffscope.constants import DEFAULT_TARGET_REVISION, ENV_BASE_REVISION
from diffscope.domain.errors import DirtyWorkspaceIgnored
from diffscope.domain.models import (
    ChangedPath,
    ChangeSet,
    ChangeStatus,
    CollectMode,
    RevisionPair,
)
from diffscope.vcs.git_engine import GitEngine


@dataclass(frozen=True, slots=True)
class CollectRequest:
    """What to diff. ``base`` of ``None`` means the configured base branch."""

    mode: CollectMode = CollectMode.MERGE_BASE
    base: str | None = None
    target: str = DEFAULT_TARGET_REVISION
    include_worktree: bool = False

    @classmethod
    def from_environment(
        cls,
        environ: Mapping[str, str],
        *,
        mode: CollectMode = CollectMode.MERGE_BASE,
        base: str | None = None,
        target: str = DEFAULT_TARGET_REVISION,
        include_worktree: bool = False,
    ) -> CollectRequest:
        """Apply the ``DIFFSCOPE_BASE`` override when no explicit base is given."""

        if base is None:
            env_base = environ.get(ENV_BASE_REVISION, "").strip()
            base = env_base or None
        return cls(mode=mode, base=base, target=target, include_worktree=include_worktree)


class ChangeSetCollector:
    """Read-only inspection of VCS metadata producing a ``ChangeSet``."""

    def __init__(
        self,
        engine: GitEngine,
        *,
        base_branch: str,
        logger: Any | None = None,
    ) -> None:
        self._engine = engine
        self._base_branch = base_branch
        self._log = logger if logger is not None else structlog.get_logger(__name__)

    def collect(self, request: CollectRequest) -> ChangeSet:
        toplevel = self._engine.ensure_repository()
        if request.mode is CollectMode.ALL:
            return self._collect_all(request)

        base_ref = request.base or self._base_branch
        base_sha = self._engine.rev_parse(base_ref)
        target_sha = self._engine.rev_parse(request.target)

        merge_base: str | None = None
        diff_base = base_sha
        if request.mode is CollectMode.MERGE_BASE:
            merge_base = self._engine.merge_base(base_sha, target_sha)
            diff_base = merge_base

        diff_target: str | None = None if request.include_worktree else target_sha
        entries = self._engine.diff_name_status(diff_base, diff_target)
        binary = self._engine.diff_binary_paths(diff_base, diff_target)

        by_path: dict[str, ChangedPath] = {}
        for entry in entries:
            by_path[entry.path] = ChangedPath(
                path=entry.path,
                status=entry.status,
                old_path=entry.old_path,
                similarity=entry.similarity,
                binary=entry.path in binary,
            )
        if request.include_worktree:
            for path in self._engine.untracked_files():
                by_path.setdefault(
                    path,
                    ChangedPath(
                        path=path,
                        status=ChangeStatus.ADDED,
                        binary=self._engine.file_is_binary(toplevel / path),
                    ),
                )

        warning_messages = self._dirty_warnings(request)
        revisions = RevisionPair(
            base=diff_base,
            target="WORKTREE" if request.include_worktree else target_sha,
            mode=request.mode,
            merge_base=merge_base,
            base_ref=base_ref,
        )
        paths = tuple(by_path[key] for key in sorted(by_path))
        self._log.info(
            "changes_collected",
            mode=request.mode.value,
            base=diff_base,
            target=revisions.target,
            changed=len(paths),
        )
        return ChangeSet(paths=paths, revisions=revisions, warnings=warning_messages)

    def _collect_all(self, request: CollectRequest) -> ChangeSet:
        target_sha = self._engine.rev_parse(request.target)
        paths = tuple(
            ChangedPath(path=path, status=ChangeStatus.MODIFIED)
            for path in self._engine.ls_files()
        )
        revisions = RevisionPair(
            base=None,
            target=target_sha,
            mode=CollectMode.ALL,
            base_ref=request.base,
        )
        self._log.info("changes_collected", mode=CollectMode.ALL.value, changed=len(paths))
        return ChangeSet(paths=paths, revisions=revisions)

    def _dirty_warnings(self, request: CollectRequest) -> tuple[str, ...]:
        if request.include_worktree or not self._engine.is_dirty():
            return ()
        message = (
            "uncommitted changes in the working tree were ignored; "
            "pass --include-worktree to plan against them"
        )
        warnings.warn(message, DirtyWorkspaceIgnored, stacklevel=3)
        self._log.warning("dirty_workspace_ignored", repo=self._engine.repo_path.as_posix())
        return (message,)


__all__ = ["ChangeSetCollector", "CollectRequest"]
