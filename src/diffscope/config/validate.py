"""
diffscope — project-level configuration validation.

File: src/diffscope/config/validate.py

Purpose
- Back ``diffscope config validate``: schema issues, workspace graph problems
  (cycles, duplicate package names, unresolved workspace references), and in
  strict mode, surfaces no profile uses and patterns that match no tracked file.

Functional requirements
- Findings carry a config path or manifest and a message naming the offending input.
- Non-strict validation fails only on errors; strict validation also fails on warnings.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

from diffscope.config.model import PlannerConfig
from diffscope.config.schema import ConfigValidationIssue
from diffscope.constants import INFRA_SURFACE
from diffscope.domain.errors import ConfigurationError, GraphError, VcsError
from diffscope.domain.models import JSONValue
from diffscope.planning.pipeline import Planner
from diffscope.vcs.git_engine import GitEngine


class Severity(StrEnum):
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True, slots=True)
class ValidationFinding:
    severity: Severity
    path: str
    message: str

    def to_dict(self) -> dict[str, JSONValue]:
        return {"severity": self.severity.value, "path": self.path, "message": self.message}


@dataclass(frozen=True, slots=True)
class ValidationReport:
    findings: tuple[ValidationFinding, ...]
    strict: bool = False
    packages: int = 0

    @property
    def errors(self) -> tuple[ValidationFinding, ...]:
        return tuple(item for item in self.findings if item.severity is Severity.ERROR)

    @property
    def warnings(self) -> tuple[ValidationFinding, ...]:
        return tuple(item for item in self.findings if item.severity is Severity.WARNING)

    @property
    def graph_errors(self) -> tuple[ValidationFinding, ...]:
        return tuple(item for item in self.errors if item.path == "workspace")

    @property
    def ok(self) -> bool:
        if self.errors:
            return False
        return not (self.strict and self.warnings)

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "ok": self.ok,
            "strict": self.strict,
            "packages": self.packages,
            "findings": [item.to_dict() for item in self.findings],
        }


def findings_from_issues(issues: Iterable[ConfigValidationIssue]) -> tuple[ValidationFinding, ...]:
    return tuple(
        ValidationFinding(severity=Severity.ERROR, path=issue.path, message=issue.message)
        for issue in issues
    )


def validate_project(
    config: PlannerConfig,
    repo_root: str | Path,
    *,
    strict: bool = False,
    tracked_files: Iterable[str] | None = None,
) -> ValidationReport:
    """Check the workspace graph and, when ``strict``, surface usage and pattern reach."""

    findings: list[ValidationFinding] = []
    planner = Planner(config, repo_root)
    packages = 0
    try:
        graph = planner.load_graph()
        packages = len(graph)
    except GraphError as exc:
        findings.append(ValidationFinding(Severity.ERROR, "workspace", str(exc)))
    except ConfigurationError as exc:
        findings.append(ValidationFinding(Severity.ERROR, "workspace.root", str(exc)))

    if strict:
        findings.extend(_unused_surfaces(config))
        findings.extend(_unmatched_patterns(config, planner.repo_root, tracked_files))

    return ValidationReport(findings=tuple(findings), strict=strict, packages=packages)


def _unused_surfaces(config: PlannerConfig) -> list[ValidationFinding]:
    if not config.profiles:
        return []
    used = {surface for profile in config.profiles for surface in profile.surfaces}
    findings: list[ValidationFinding] = []
    for surface in config.surfaces:
        if surface.id == INFRA_SURFACE or surface.id in used:
            continue
        findings.append(
            ValidationFinding(
                Severity.WARNING,
                _surface_config_path(surface.id),
                f"surface {surface.id!r} is not required by any profile",
            )
        )
    return findings


def _unmatched_patterns(
    config: PlannerConfig, repo_root: Path, tracked_files: Iterable[str] | None
) -> list[ValidationFinding]:
    if tracked_files is None:
        try:
            files = GitEngine(repo_root, timeout_seconds=config.git_timeout_seconds).ls_files()
        except VcsError as exc:
            return [
                ValidationFinding(
                    Severity.WARNING, "<repository>", f"cannot list tracked files: {exc}"
                )
            ]
    else:
        files = tuple(sorted(tracked_files))

    findings: list[ValidationFinding] = []
    for surface in config.surfaces:
        for index, pattern in enumerate(surface.patterns):
            if any(pattern.matches(path) for path in files):
                continue
            findings.append(
                ValidationFinding(
                    Severity.WARNING,
                    f"{_surface_config_path(surface.id)}[{index}]",
                    f"pattern {pattern.source!r} matches no tracked file",
                )
            )
    return findings


def _surface_config_path(surface_id: str) -> str:
    if surface_id == INFRA_SURFACE:
        return "infrastructure"
    if surface_id.startswith("custom:"):
        return f"custom.{surface_id.removeprefix('custom:')}"
    return f"surfaces.{surface_id}"


__all__ = [
    "Severity",
    "ValidationFinding",
    "ValidationReport",
    "findings_from_issues",
    "validate_project",
]
