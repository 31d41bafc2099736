"""
diffscope — surface command executor.

File: src/diffscope/executor.py

Purpose
- Convenience layer behind ``diffscope run``: after planning, invoke the
  configured command of every enabled surface in configuration order.

Behavior
- Commands come from the ``[run]`` table; strings are split with ``shlex`` and
  executed without a shell.
- Execution stops at the first failing command unless ``keep_going`` is set.
- Each command sees ``DIFFSCOPE_SURFACE`` plus the affected package lists in
  its environment.
"""

from __future__ import annotations

import os
import shlex
import subprocess
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final

import structlog

from diffscope.config.model import PlannerConfig
from diffscope.domain.models import Decision

COMMAND_NOT_FOUND: Final[int] = 127

Runner = Callable[..., subprocess.CompletedProcess[Any]]


@dataclass(frozen=True, slots=True)
class CommandOutcome:
    surface: str
    command: tuple[str, ...]
    returncode: int | None = None
    skipped: bool = False

    @property
    def ok(self) -> bool:
        return self.skipped or self.returncode == 0


@dataclass(frozen=True, slots=True)
class RunReport:
    outcomes: tuple[CommandOutcome, ...]
    dry_run: bool = False

    @property
    def ok(self) -> bool:
        return all(item.ok for item in self.outcomes)

    @property
    def failures(self) -> tuple[CommandOutcome, ...]:
        return tuple(item for item in self.outcomes if not item.ok)


class SurfaceExecutor:
    def __init__(
        self,
        config: PlannerConfig,
        *,
        cwd: str | Path,
        environ: Mapping[str, str] | None = None,
        runner: Runner = subprocess.run,
        logger: Any | None = None,
    ) -> None:
        self._config = config
        self._cwd = Path(cwd)
        self._environ = dict(os.environ if environ is None else environ)
        self._runner = runner
        self._log = logger if logger is not None else structlog.get_logger(__name__)

    def commands_for(self, decision: Decision) -> tuple[tuple[str, tuple[str, ...]], ...]:
        """``(surface, argv)`` for every enabled surface that has a command."""

        planned: list[tuple[str, tuple[str, ...]]] = []
        for surface in decision.surfaces:
            if not surface.enabled:
                continue
            raw = self._config.run_commands.get(surface.surface)
            if raw is None:
                self._log.debug("run_no_command", surface=surface.surface)
                continue
            argv = tuple(shlex.split(raw)) if isinstance(raw, str) else tuple(raw)
            planned.append((surface.surface, argv))
        return tuple(planned)

    def execute(
        self,
        decision: Decision,
        *,
        keep_going: bool = False,
        dry_run: bool = False,
        echo: Callable[[str], None] | None = None,
    ) -> RunReport:
        outcomes: list[CommandOutcome] = []
        failed = False
        for surface, argv in self.commands_for(decision):
            rendered = shlex.join(argv)
            if echo is not None:
                echo(f"[{surface}] $ {rendered}")
            if dry_run or (failed and not keep_going):
                outcomes.append(CommandOutcome(surface=surface, command=argv, skipped=True))
                continue

            returncode = self._run_one(surface, argv, decision)
            outcome = CommandOutcome(surface=surface, command=argv, returncode=returncode)
            outcomes.append(outcome)
            if not outcome.ok:
                failed = True
                self._log.error(
                    "run_command_failed", surface=surface, command=rendered, returncode=returncode
                )
        return RunReport(outcomes=tuple(outcomes), dry_run=dry_run)

    def _run_one(self, surface: str, argv: tuple[str, ...], decision: Decision) -> int:
        env = dict(self._environ)
        env["DIFFSCOPE_SURFACE"] = surface
        env["DIFFSCOPE_DIRECT_PACKAGES"] = ",".join(decision.impact.direct)
        env["DIFFSCOPE_TRANSITIVE_PACKAGES"] = ",".join(decision.impact.transitive)
        self._log.info("run_command_started", surface=surface, command=shlex.join(argv))
        try:
            completed = self._runner(argv, cwd=self._cwd, env=env, check=False)
        except FileNotFoundError:
            self._log.error("run_command_missing", surface=surface, executable=argv[0])
            return COMMAND_NOT_FOUND
        return int(completed.returncode)


__all__ = ["CommandOutcome", "RunReport", "SurfaceExecutor"]
