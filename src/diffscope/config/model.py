"""Immutable planner configuration threaded into every pipeline component."""

from __future__ import annotations

import fnmatch
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any

from diffscope.constants import (
    BUILTIN_POLICY_NAMES,
    BUILTIN_SURFACE_NAMES,
    CUSTOM_SURFACE_PREFIX,
    DEFAULT_AUTOMATED_POLICY,
    DEFAULT_BASE_BRANCH,
    DEFAULT_GIT_TIMEOUT_SECONDS,
    DEFAULT_POLICY,
    DEFAULT_RECEIPTS_DIR,
    DEFAULT_TARGET_REVISION,
    INFRA_SURFACE,
)
from diffscope.domain.errors import (
    ConfigurationError,
    DuplicateSurfaceName,
    UnknownProfileReference,
)
from diffscope.domain.models import (
    AmbiguityCondition,
    ConfidencePolicy,
    FallbackAction,
    Profile,
    Provenance,
    Surface,
    SurfaceKind,
)
from diffscope.planning.globs import GlobPattern, compile_globs

_ESCALATE = FallbackAction.ACTIVATE_ALL
_TRUST = FallbackAction.TRUST_CLASSIFICATION

BUILTIN_POLICIES: Mapping[str, ConfidencePolicy] = MappingProxyType(
    {
        "balanced": ConfidencePolicy(
            name="balanced",
            actions=MappingProxyType(
                {
                    AmbiguityCondition.UNOWNED_PATH: _ESCALATE,
                    AmbiguityCondition.RENAME_ONLY: _TRUST,
                    AmbiguityCondition.BINARY_FILE: _TRUST,
                    AmbiguityCondition.SHARED_CONFIG_DELETED: _TRUST,
                }
            ),
        ),
        "strict": ConfidencePolicy(
            name="strict",
            actions=MappingProxyType({condition: _ESCALATE for condition in AmbiguityCondition}),
        ),
        "targeted": ConfidencePolicy(
            name="targeted",
            actions=MappingProxyType({condition: _TRUST for condition in AmbiguityCondition}),
        ),
    }
)


@dataclass(frozen=True, slots=True)
class PlannerConfig:
    """Validated, frozen configuration.

    Surfaces are held in evaluation order: builtin surfaces in canonical order
    (build, test, bench, lint, docs, infra) followed by custom surfaces sorted
    by name. ``infra`` is always present.
    """

    surfaces: tuple[Surface, ...]
    profiles: tuple[Profile, ...] = ()
    workflow: Mapping[str, str] = field(default_factory=dict)
    policies: Mapping[str, ConfidencePolicy] = field(default_factory=lambda: dict(BUILTIN_POLICIES))
    policy: str = DEFAULT_POLICY
    automated_policy: str = DEFAULT_AUTOMATED_POLICY
    bot_authors: tuple[str, ...] = ()
    base_branch: str = DEFAULT_BASE_BRANCH
    target: str = DEFAULT_TARGET_REVISION
    git_timeout_seconds: float = DEFAULT_GIT_TIMEOUT_SECONDS
    workspace_root: Path | None = None
    manifest_kinds: tuple[str, ...] = ("cargo", "pyproject", "npm")
    workspace_exclude: tuple[GlobPattern, ...] = ()
    run_commands: Mapping[str, str | tuple[str, ...]] = field(default_factory=dict)
    log_level: str = "WARNING"
    log_format: str = "text"
    receipts_enabled: bool = False
    receipts_dir: Path = Path(DEFAULT_RECEIPTS_DIR)

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for surface in self.surfaces:
            if surface.id in seen:
                raise DuplicateSurfaceName(surface.id)
            seen.add(surface.id)
        if INFRA_SURFACE not in seen:
            raise ConfigurationError("configuration must declare the infra surface")

        profile_names: set[str] = set()
        for profile in self.profiles:
            if profile.name in profile_names:
                raise ConfigurationError(f"duplicate profile name: {profile.name!r}")
            profile_names.add(profile.name)
            for surface_id in profile.surfaces:
                if surface_id not in seen:
                    raise ConfigurationError(
                        f"profile {profile.name!r} references undeclared surface {surface_id!r}"
                    )

        for job in sorted(self.workflow):
            if self.workflow[job] not in profile_names:
                raise UnknownProfileReference(job, self.workflow[job])

        for name in (self.policy, self.automated_policy):
            if name not in self.policies:
                raise ConfigurationError(f"unknown confidence policy: {name!r}")

        for surface_id in sorted(self.run_commands):
            if surface_id not in seen:
                raise ConfigurationError(f"run command for undeclared surface {surface_id!r}")

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> PlannerConfig:
        """Freeze a validated config mapping (see ``config.schema``)."""

        surfaces_table: Mapping[str, list[str]] = config.get("surfaces", {})
        custom_table: Mapping[str, list[str]] = config.get("custom", {})

        surfaces: list[Surface] = []
        for name in BUILTIN_SURFACE_NAMES:
            if name == INFRA_SURFACE:
                patterns = config.get("infrastructure", [])
            elif name in surfaces_table:
                patterns = surfaces_table[name]
            else:
                continue
            surfaces.append(
                Surface(kind=SurfaceKind.BUILTIN, name=name, patterns=compile_globs(patterns))
            )
        for name in sorted(custom_table):
            surfaces.append(
                Surface(
                    kind=SurfaceKind.CUSTOM,
                    name=name.removeprefix(CUSTOM_SURFACE_PREFIX),
                    patterns=compile_globs(custom_table[name]),
                )
            )

        profiles = tuple(
            Profile(
                name=name,
                surfaces=tuple(body.get("surfaces", ())),
                merge_base=bool(body.get("merge_base", True)),
            )
            for name, body in sorted(config.get("profile", {}).items())
        )

        confidence = config.get("confidence", {})
        policies: dict[str, ConfidencePolicy] = dict(BUILTIN_POLICIES)
        for name, body in sorted(confidence.get("policies", {}).items()):
            policies[name] = _custom_policy(name, body)

        vcs = config.get("vcs", {})
        workspace = config.get("workspace", {})
        logging_section = config.get("logging", {})
        receipts = config.get("receipts", {})
        run_table = {
            surface: command if isinstance(command, str) else tuple(command)
            for surface, command in sorted(config.get("run", {}).items())
        }
        root = workspace.get("root")

        return cls(
            surfaces=tuple(surfaces),
            profiles=profiles,
            workflow=MappingProxyType(dict(sorted(config.get("workflow", {}).items()))),
            policies=MappingProxyType(policies),
            policy=confidence.get("policy", DEFAULT_POLICY),
            automated_policy=confidence.get("automated_policy", DEFAULT_AUTOMATED_POLICY),
            bot_authors=tuple(confidence.get("bot_authors", ())),
            base_branch=vcs.get("base_branch", DEFAULT_BASE_BRANCH),
            target=vcs.get("target", DEFAULT_TARGET_REVISION),
            git_timeout_seconds=float(vcs.get("timeout_seconds", DEFAULT_GIT_TIMEOUT_SECONDS)),
            workspace_root=Path(root) if root else None,
            manifest_kinds=tuple(workspace.get("manifests", ("cargo", "pyproject", "npm"))),
            workspace_exclude=compile_globs(workspace.get("exclude", [])),
            run_commands=MappingProxyType(run_table),
            log_level=logging_section.get("level", "WARNING"),
            log_format=logging_section.get("format", "text"),
            receipts_enabled=bool(receipts.get("enabled", False)),
            receipts_dir=Path(receipts.get("dir", DEFAULT_RECEIPTS_DIR)),
        )

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    @property
    def surface_ids(self) -> tuple[str, ...]:
        return tuple(surface.id for surface in self.surfaces)

    @property
    def infra_surface(self) -> Surface:
        return self.surface(INFRA_SURFACE)

    def surface(self, surface_id: str) -> Surface:
        for surface in self.surfaces:
            if surface.id == surface_id:
                return surface
        raise KeyError(f"unknown surface: {surface_id}")

    def profile(self, name: str) -> Profile:
        for profile in self.profiles:
            if profile.name == name:
                return profile
        raise KeyError(f"unknown profile: {name}")

    def is_bot_author(self, author: str) -> bool:
        lowered = author.strip().lower()
        return any(fnmatch.fnmatchcase(lowered, pattern.lower()) for pattern in self.bot_authors)

    def policy_for(self, provenance: Provenance) -> ConfidencePolicy:
        if provenance is Provenance.AUTOMATED:
            return self.policies[self.automated_policy]
        return self.policies[self.policy]


def _custom_policy(name: str, body: Mapping[str, str]) -> ConfidencePolicy:
    if name in BUILTIN_POLICY_NAMES:
        raise ConfigurationError(f"cannot redefine builtin policy {name!r}")
    actions = {
        condition: FallbackAction(body.get(condition.value, _TRUST.value))
        for condition in AmbiguityCondition
    }
    return ConfidencePolicy(name=name, actions=MappingProxyType(actions))


__all__ = ["BUILTIN_POLICIES", "PlannerConfig"]
