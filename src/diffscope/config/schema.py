"""
diffscope — configuration schema and validation.

File: src/diffscope/config/schema.py

Purpose
- Define authoritative configuration defaults and strict validation rules.

What is included in this file
- Schema versioning and migration guidance.
- Validation rules for required fields, types, enums, glob syntax, and
  cross-section references (profiles -> surfaces, workflow -> profiles).
- Deterministic deep-merge helpers with whole-table replacement for
  user-declared tables.

Functional requirements
- Validate config payloads and return structured errors (field path + message).
- Never accept a workflow job that points at an undeclared profile.

Non-functional requirements
- Keep rules deterministic and easy to audit.
"""

from __future__ import annotations

import copy
import math
import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, Literal, TypedDict

from diffscope.constants import (
    BUILTIN_POLICY_NAMES,
    BUILTIN_SURFACE_NAMES,
    CONFIG_SCHEMA_VERSION,
    CUSTOM_SURFACE_PREFIX,
    DEFAULT_AUTOMATED_POLICY,
    DEFAULT_BASE_BRANCH,
    DEFAULT_GIT_TIMEOUT_SECONDS,
    DEFAULT_POLICY,
    DEFAULT_RECEIPTS_DIR,
    DEFAULT_TARGET_REVISION,
    INFRA_SURFACE,
)
from diffscope.domain.errors import ConfigurationError, InvalidGlobPattern
from diffscope.domain.models import AmbiguityCondition, FallbackAction, slugify
from diffscope.planning.globs import compile_glob

ConfigSchemaVersion: Final[int] = CONFIG_SCHEMA_VERSION
MANIFEST_KINDS: Final[tuple[str, ...]] = ("cargo", "pyproject", "npm")
LOG_LEVELS: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR")
LOG_FORMATS: Final[tuple[str, ...]] = ("text", "json")

# Tables the user declares as a whole; a file value replaces the default table.
REPLACED_TABLES: Final[frozenset[tuple[str, ...]]] = frozenset(
    {
        ("surfaces",),
        ("infrastructure",),
        ("custom",),
        ("profile",),
        ("workflow",),
        ("run",),
        ("confidence", "bot_authors"),
        ("workspace", "manifests"),
    }
)

# Config paths that are normalized relative to the config file location.
PATH_FIELDS: Final[tuple[tuple[str, ...], ...]] = (
    ("workspace", "root"),
    ("receipts", "dir"),
)

_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")
_JOB_NAME_PATTERN = re.compile(r"^[^\s][^\n]*$")


class MetaConfig(TypedDict):
    schema_version: int


class VcsConfig(TypedDict):
    base_branch: str
    target: str
    timeout_seconds: float


class WorkspaceConfig(TypedDict):
    root: str
    manifests: list[str]
    exclude: list[str]


class ConfidenceConfig(TypedDict):
    policy: str
    automated_policy: str
    bot_authors: list[str]
    policies: dict[str, dict[str, str]]


class ProfileConfig(TypedDict):
    surfaces: list[str]
    merge_base: bool


class LoggingSection(TypedDict):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"]
    format: Literal["text", "json"]


class ReceiptsConfig(TypedDict):
    enabled: bool
    dir: str


class DiffscopeConfig(TypedDict):
    meta: MetaConfig
    vcs: VcsConfig
    workspace: WorkspaceConfig
    surfaces: dict[str, list[str]]
    infrastructure: list[str]
    confidence: ConfidenceConfig
    custom: dict[str, list[str]]
    profile: dict[str, ProfileConfig]
    workflow: dict[str, str]
    run: dict[str, str]
    logging: LoggingSection
    receipts: ReceiptsConfig


DEFAULT_CONFIG: Final[DiffscopeConfig] = {
    "meta": {
        "schema_version": ConfigSchemaVersion,
    },
    "vcs": {
        "base_branch": DEFAULT_BASE_BRANCH,
        "target": DEFAULT_TARGET_REVISION,
        "timeout_seconds": DEFAULT_GIT_TIMEOUT_SECONDS,
    },
    "workspace": {
        "root": ".",
        "manifests": list(MANIFEST_KINDS),
        "exclude": [],
    },
    "surfaces": {
        "build": [
            "**/*.rs",
            "**/Cargo.toml",
            "Cargo.lock",
            "**/*.py",
            "**/pyproject.toml",
            "**/*.{js,ts}",
            "**/package.json",
        ],
        "test": [
            "**/*.rs",
            "**/Cargo.toml",
            "Cargo.lock",
            "**/*.py",
            "**/pyproject.toml",
            "**/*.{js,ts}",
            "**/package.json",
            "**/tests/**",
        ],
        "docs": ["**/*.md", "docs/**", "book/**"],
    },
    "infrastructure": [".github/workflows/**", "diffscope.toml"],
    "confidence": {
        "policy": DEFAULT_POLICY,
        "automated_policy": DEFAULT_AUTOMATED_POLICY,
        "bot_authors": ["*[[]bot]", "dependabot*", "renovate*"],
        "policies": {},
    },
    "custom": {},
    "profile": {},
    "workflow": {},
    "run": {},
    "logging": {
        "level": "WARNING",
        "format": "text",
    },
    "receipts": {
        "enabled": False,
        "dir": DEFAULT_RECEIPTS_DIR.as_posix(),
    },
}


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """Single structured validation failure."""

    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    """Validation result with normalized config when no issues were found."""

    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ConfigurationError):
    """Raised when strict config validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid config:\n{rendered}")


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ConfigValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(ConfigValidationIssue(path=path, message=message))

    def items(self) -> tuple[ConfigValidationIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


def default_config() -> DiffscopeConfig:
    """Return a deep copy of deterministic built-in defaults."""

    return copy.deepcopy(DEFAULT_CONFIG)


def migration_guidance(found_version: int) -> str:
    """Return deterministic migration guidance for schema version mismatch."""

    if found_version < ConfigSchemaVersion:
        return (
            f"schema version {found_version} is older than supported {ConfigSchemaVersion}; "
            "upgrade diffscope.toml to the current schema"
        )
    if found_version > ConfigSchemaVersion:
        return (
            f"schema version {found_version} is newer than supported {ConfigSchemaVersion}; "
            "upgrade the diffscope runtime"
        )
    return "schema version is current"


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deterministically deep-merge ``overlay`` onto ``base``.

    Tables listed in ``REPLACED_TABLES`` are replaced wholesale so that a user
    declaring ``[surfaces]`` gets exactly the surfaces they declared.
    """

    merged = _deep_copy_mapping(base)
    _merge_into(merged, overlay, prefix=())
    return merged


def validate_config(config: Mapping[str, object] | object) -> ConfigValidationResult:
    """Validate config and return structured issues with deterministic paths."""

    issues = _IssueCollector()
    root = _as_object(config, "<root>", issues)
    if root is None:
        return ConfigValidationResult(config=None, issues=issues.items())

    normalized = _validate_root(root, issues)
    if issues.has_issues:
        return ConfigValidationResult(config=None, issues=issues.items())
    return ConfigValidationResult(config=normalized, issues=())


def assert_valid_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Validate config and raise ``ConfigValidationError`` on failure."""

    result = validate_config(config)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def declared_surface_ids(config: Mapping[str, object]) -> tuple[str, ...]:
    """Surface ids of a validated config in evaluation order."""

    surfaces = config.get("surfaces")
    custom = config.get("custom")
    builtin_names = set(surfaces) if isinstance(surfaces, Mapping) else set()
    builtin_names.add(INFRA_SURFACE)
    ordered = [name for name in BUILTIN_SURFACE_NAMES if name in builtin_names]
    if isinstance(custom, Mapping):
        ordered.extend(f"{CUSTOM_SURFACE_PREFIX}{name}" for name in sorted(custom))
    return tuple(ordered)


def _validate_root(payload: Mapping[str, object], issues: _IssueCollector) -> dict[str, Any]:
    allowed = {
        "meta",
        "vcs",
        "workspace",
        "surfaces",
        "infrastructure",
        "confidence",
        "custom",
        "profile",
        "workflow",
        "run",
        "logging",
        "receipts",
    }
    _reject_unknown_keys(payload, allowed, "", issues)
    _require_keys(payload, {"meta", "surfaces", "confidence"}, "", issues)

    out: dict[str, Any] = {}
    _section(payload, key="meta", issues=issues, validator=_validate_meta, out=out)
    _section(payload, key="vcs", issues=issues, validator=_validate_vcs, out=out)
    _section(payload, key="workspace", issues=issues, validator=_validate_workspace, out=out)
    _section(payload, key="surfaces", issues=issues, validator=_validate_surfaces, out=out)
    _section(payload, key="confidence", issues=issues, validator=_validate_confidence, out=out)
    _section(payload, key="custom", issues=issues, validator=_validate_custom, out=out)
    _section(payload, key="profile", issues=issues, validator=_validate_profiles, out=out)
    _section(payload, key="workflow", issues=issues, validator=_validate_workflow, out=out)
    _section(payload, key="run", issues=issues, validator=_validate_run, out=out)
    _section(payload, key="logging", issues=issues, validator=_validate_logging, out=out)
    _section(payload, key="receipts", issues=issues, validator=_validate_receipts, out=out)

    if "infrastructure" in payload:
        parsed = _as_glob_list(payload["infrastructure"], "infrastructure", issues)
        if parsed is not None:
            out["infrastructure"] = parsed
    else:
        out["infrastructure"] = []

    for key in ("custom", "profile", "workflow", "run"):
        out.setdefault(key, {})

    _validate_cross_references(out, issues)
    return out


def _section(
    payload: Mapping[str, object],
    *,
    key: str,
    issues: _IssueCollector,
    validator: Callable[[dict[str, object], str, _IssueCollector], dict[str, Any]],
    out: dict[str, Any],
) -> None:
    raw = payload.get(key)
    if raw is None:
        return
    section_obj = _as_object(raw, key, issues)
    if section_obj is None:
        return
    out[key] = validator(section_obj, key, issues)


def _validate_meta(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    _reject_unknown_keys(payload, {"schema_version"}, path, issues)
    _require_keys(payload, {"schema_version"}, path, issues)

    out: dict[str, Any] = {}
    if "schema_version" in payload:
        parsed = _as_int(
            payload["schema_version"], _join(path, "schema_version"), issues, minimum=1
        )
        if parsed is not None:
            out["schema_version"] = parsed
            if parsed != ConfigSchemaVersion:
                issues.add(_join(path, "schema_version"), migration_guidance(parsed))
    return out


def _validate_vcs(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    _reject_unknown_keys(payload, {"base_branch", "target", "timeout_seconds"}, path, issues)

    out: dict[str, Any] = {}
    for key in ("base_branch", "target"):
        if key in payload:
            parsed = _as_revision(payload[key], _join(path, key), issues)
            if parsed is not None:
                out[key] = parsed
    if "timeout_seconds" in payload:
        parsed_timeout = _as_float(
            payload["timeout_seconds"], _join(path, "timeout_seconds"), issues, minimum=0.1
        )
        if parsed_timeout is not None:
            out["timeout_seconds"] = parsed_timeout
    return out


def _validate_workspace(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    _reject_unknown_keys(payload, {"root", "manifests", "exclude"}, path, issues)

    out: dict[str, Any] = {}
    if "root" in payload:
        parsed_root = _as_path_text(payload["root"], _join(path, "root"), issues)
        if parsed_root is not None:
            out["root"] = parsed_root
    if "manifests" in payload:
        kinds = _as_str_list(payload["manifests"], _join(path, "manifests"), issues)
        if kinds is not None:
            for index, kind in enumerate(kinds):
                if kind not in MANIFEST_KINDS:
                    expected = ", ".join(MANIFEST_KINDS)
                    issues.add(
                        f"{path}.manifests[{index}]",
                        f"invalid value {kind!r}; expected one of: {expected}",
                    )
            out["manifests"] = [kind for kind in MANIFEST_KINDS if kind in kinds]
    if "exclude" in payload:
        parsed_exclude = _as_glob_list(payload["exclude"], _join(path, "exclude"), issues)
        if parsed_exclude is not None:
            out["exclude"] = parsed_exclude
    return out


def _validate_surfaces(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for name in sorted(payload):
        key_path = _join(path, name)
        if name == INFRA_SURFACE:
            issues.add(key_path, "declare infra patterns in the top-level 'infrastructure' list")
            continue
        if name.startswith(CUSTOM_SURFACE_PREFIX):
            issues.add(key_path, "custom surfaces belong in the [custom] table")
            continue
        if name not in BUILTIN_SURFACE_NAMES:
            expected = ", ".join(item for item in BUILTIN_SURFACE_NAMES if item != INFRA_SURFACE)
            issues.add(
                key_path,
                f"unknown builtin surface {name!r}; expected one of: {expected} "
                "(use [custom] for other names)",
            )
            continue
        parsed = _as_glob_list(payload[name], key_path, issues)
        if parsed is not None:
            out[name] = parsed
    return out


def _validate_custom(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for raw_name in sorted(payload):
        key_path = _join(path, _quote_key(raw_name))
        name = raw_name.removeprefix(CUSTOM_SURFACE_PREFIX)
        if not _NAME_PATTERN.fullmatch(name):
            issues.add(key_path, "custom surface name must match ^[A-Za-z0-9][A-Za-z0-9_.-]*$")
            continue
        if name in out:
            issues.add(key_path, f"duplicate surface name {CUSTOM_SURFACE_PREFIX + name!r}")
            continue
        parsed = _as_glob_list(payload[raw_name], key_path, issues)
        if parsed is not None:
            out[name] = parsed
    return out


def _validate_confidence(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {"policy", "automated_policy", "bot_authors", "policies"}
    _reject_unknown_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    for key in ("policy", "automated_policy"):
        if key in payload:
            parsed = _as_str(payload[key], _join(path, key), issues)
            if parsed is not None:
                out[key] = parsed
    if "bot_authors" in payload:
        authors = _as_str_list(payload["bot_authors"], _join(path, "bot_authors"), issues)
        if authors is not None:
            out["bot_authors"] = authors

    policies: dict[str, dict[str, str]] = {}
    raw_policies = payload.get("policies")
    if raw_policies is not None:
        policies_path = _join(path, "policies")
        policies_obj = _as_object(raw_policies, policies_path, issues)
        if policies_obj is not None:
            for name in sorted(policies_obj):
                policy_path = _join(policies_path, name)
                if name in BUILTIN_POLICY_NAMES:
                    issues.add(policy_path, f"cannot redefine builtin policy {name!r}")
                    continue
                if not _NAME_PATTERN.fullmatch(name):
                    issues.add(policy_path, "policy name must match ^[A-Za-z0-9][A-Za-z0-9_.-]*$")
                    continue
                body = _as_object(policies_obj[name], policy_path, issues)
                if body is None:
                    continue
                policies[name] = _validate_policy_body(body, policy_path, issues)
    out["policies"] = policies
    return out


def _validate_policy_body(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, str]:
    conditions = {item.value for item in AmbiguityCondition}
    actions = tuple(item.value for item in FallbackAction)
    _reject_unknown_keys(payload, conditions, path, issues)

    out: dict[str, str] = {}
    for condition in sorted(conditions):
        if condition not in payload:
            continue
        parsed = _as_enum(
            payload[condition], _join(path, condition), issues, allowed_values=actions
        )
        if parsed is not None:
            out[condition] = parsed
    return out


def _validate_profiles(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for name in sorted(payload):
        profile_path = _join(path, name)
        if not _NAME_PATTERN.fullmatch(name):
            issues.add(profile_path, "profile name must match ^[A-Za-z0-9][A-Za-z0-9_.-]*$")
            continue
        body = _as_object(payload[name], profile_path, issues)
        if body is None:
            continue
        _reject_unknown_keys(body, {"surfaces", "merge_base"}, profile_path, issues)
        _require_keys(body, {"surfaces"}, profile_path, issues)

        profile: dict[str, Any] = {"merge_base": True}
        if "surfaces" in body:
            surfaces = _as_str_list(body["surfaces"], _join(profile_path, "surfaces"), issues)
            if surfaces is not None:
                if not surfaces:
                    issues.add(_join(profile_path, "surfaces"), "must list at least one surface")
                profile["surfaces"] = surfaces
        if "merge_base" in body:
            parsed = _as_bool(body["merge_base"], _join(profile_path, "merge_base"), issues)
            if parsed is not None:
                profile["merge_base"] = parsed
        out[name] = profile
    return out


def _validate_workflow(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for job in sorted(payload):
        job_path = _join(path, _quote_key(job))
        if not _JOB_NAME_PATTERN.fullmatch(job):
            issues.add(job_path, "job name must be a single non-blank line")
            continue
        parsed = _as_str(payload[job], job_path, issues)
        if parsed is not None:
            out[job] = parsed
    return out


def _validate_run(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for surface in sorted(payload):
        command_path = _join(path, _quote_key(surface))
        raw = payload[surface]
        if isinstance(raw, list):
            parts = _as_str_list(raw, command_path, issues)
            if parts is not None:
                if not parts:
                    issues.add(command_path, "must not be empty")
                    continue
                out[surface] = parts
            continue
        parsed = _as_str(raw, command_path, issues)
        if parsed is not None:
            out[surface] = parsed
    return out


def _validate_logging(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    _reject_unknown_keys(payload, {"level", "format"}, path, issues)

    out: dict[str, Any] = {}
    if "level" in payload:
        raw_level = payload["level"]
        candidate = raw_level.strip().upper() if isinstance(raw_level, str) else raw_level
        parsed_level = _as_enum(
            candidate, _join(path, "level"), issues, allowed_values=LOG_LEVELS
        )
        if parsed_level is not None:
            out["level"] = parsed_level
    if "format" in payload:
        parsed_format = _as_enum(
            payload["format"], _join(path, "format"), issues, allowed_values=LOG_FORMATS
        )
        if parsed_format is not None:
            out["format"] = parsed_format
    return out


def _validate_receipts(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    _reject_unknown_keys(payload, {"enabled", "dir"}, path, issues)

    out: dict[str, Any] = {}
    if "enabled" in payload:
        parsed_enabled = _as_bool(payload["enabled"], _join(path, "enabled"), issues)
        if parsed_enabled is not None:
            out["enabled"] = parsed_enabled
    if "dir" in payload:
        parsed_dir = _as_path_text(payload["dir"], _join(path, "dir"), issues)
        if parsed_dir is not None:
            out["dir"] = parsed_dir
    return out


def _validate_cross_references(config: Mapping[str, Any], issues: _IssueCollector) -> None:
    known_surfaces = set(declared_surface_ids(config))

    profiles = config.get("profile", {})
    for name in sorted(profiles):
        for index, surface in enumerate(profiles[name].get("surfaces", ())):
            if surface not in known_surfaces:
                issues.add(
                    f"profile.{name}.surfaces[{index}]",
                    f"references undeclared surface {surface!r}",
                )

    workflow = config.get("workflow", {})
    for job in sorted(workflow):
        target = workflow[job]
        if target not in profiles:
            issues.add(
                f"workflow.{_quote_key(job)}",
                f"workflow job {job!r} references undeclared profile {target!r}",
            )

    _check_output_keys("profile", "profile", sorted(profiles), issues)
    _check_output_keys("workflow", "job", sorted(workflow), issues)

    run = config.get("run", {})
    for surface in sorted(run):
        if surface not in known_surfaces:
            issues.add(f"run.{_quote_key(surface)}", f"no such surface {surface!r}")

    confidence = config.get("confidence")
    if isinstance(confidence, Mapping):
        known_policies = set(BUILTIN_POLICY_NAMES) | set(confidence.get("policies", {}))
        for key in ("policy", "automated_policy"):
            selected = confidence.get(key)
            if isinstance(selected, str) and selected not in known_policies:
                expected = ", ".join(sorted(known_policies))
                issues.add(
                    f"confidence.{key}",
                    f"unknown policy {selected!r}; expected one of: {expected}",
                )


def _check_output_keys(
    table: str, prefix: str, names: Sequence[str], issues: _IssueCollector
) -> None:
    seen: dict[str, str] = {}
    for name in names:
        key = f"{prefix}-{slugify(name)}"
        first = seen.setdefault(key, name)
        if first != name:
            issues.add(
                f"{table}.{_quote_key(name)}",
                f"{name!r} and {first!r} both map to output key {key!r}",
            )


# ---------------------------------------------------------------------------
# Scalar coercion helpers
# ---------------------------------------------------------------------------


def _as_object(value: object, path: str, issues: _IssueCollector) -> dict[str, object] | None:
    if not isinstance(value, Mapping):
        issues.add(path, f"expected object, got {type(value).__name__}")
        return None
    out: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            issues.add(path, f"object key must be string, got {type(key).__name__}")
            continue
        out[key] = item
    return out


def _as_str(value: object, path: str, issues: _IssueCollector) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    parsed = value.strip()
    if not parsed:
        issues.add(path, "must not be empty")
        return None
    return parsed


def _as_revision(value: object, path: str, issues: _IssueCollector) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if parsed.startswith("-") or any(ch.isspace() for ch in parsed):
        issues.add(path, f"invalid revision {parsed!r}")
        return None
    return parsed


def _as_path_text(value: object, path: str, issues: _IssueCollector) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if "\x00" in parsed:
        issues.add(path, "must not contain NUL bytes")
        return None
    return parsed


def _as_str_list(value: object, path: str, issues: _IssueCollector) -> list[str] | None:
    if isinstance(value, str) or not isinstance(value, Sequence):
        issues.add(path, f"expected array of strings, got {type(value).__name__}")
        return None
    out: list[str] = []
    ok = True
    for index, item in enumerate(value):
        parsed = _as_str(item, f"{path}[{index}]", issues)
        if parsed is None:
            ok = False
            continue
        out.append(parsed)
    return out if ok else None


def _as_glob_list(value: object, path: str, issues: _IssueCollector) -> list[str] | None:
    patterns = _as_str_list(value, path, issues)
    if patterns is None:
        return None
    ok = True
    for index, pattern in enumerate(patterns):
        try:
            compile_glob(pattern)
        except InvalidGlobPattern as exc:
            issues.add(f"{path}[{index}]", str(exc))
            ok = False
    return patterns if ok else None


def _as_bool(value: object, path: str, issues: _IssueCollector) -> bool | None:
    if isinstance(value, bool):
        return value
    issues.add(path, f"expected boolean, got {type(value).__name__}")
    return None


def _as_int(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: int | None = None,
) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        issues.add(path, f"expected integer, got {type(value).__name__}")
        return None
    if minimum is not None and value < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    return value


def _as_float(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: float | None = None,
) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        issues.add(path, f"expected number, got {type(value).__name__}")
        return None
    parsed = float(value)
    if not math.isfinite(parsed):
        issues.add(path, "must be finite")
        return None
    if minimum is not None and parsed < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    return parsed


def _as_enum(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    allowed_values: tuple[str, ...],
) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if parsed not in allowed_values:
        expected = ", ".join(sorted(allowed_values))
        issues.add(path, f"invalid value {parsed!r}; expected one of: {expected}")
        return None
    return parsed


def _reject_unknown_keys(
    payload: Mapping[str, object],
    allowed: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(payload):
        if key not in allowed:
            issues.add(_join(path, key), "unknown field")


def _require_keys(
    payload: Mapping[str, object],
    required: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(required):
        if key not in payload:
            issues.add(_join(path, key), "missing required field")


def _join(path: str, key: str) -> str:
    if not path:
        return key
    return f"{path}.{key}"


def _quote_key(key: str) -> str:
    if _NAME_PATTERN.fullmatch(key):
        return key
    return f'"{key}"'


# ---------------------------------------------------------------------------
# Merge helpers
# ---------------------------------------------------------------------------


def _merge_into(
    target: dict[str, Any], overlay: Mapping[str, object], *, prefix: tuple[str, ...]
) -> None:
    for key in sorted(overlay):
        value = overlay[key]
        path = (*prefix, key)
        if path in REPLACED_TABLES:
            target[key] = _deep_copy_value(value)
            continue
        if isinstance(value, Mapping):
            existing = target.get(key)
            nested: dict[str, Any] = (
                _deep_copy_mapping(existing) if isinstance(existing, Mapping) else {}
            )
            _merge_into(nested, value, prefix=path)
            target[key] = nested
        else:
            target[key] = _deep_copy_value(value)


def _deep_copy_mapping(value: Mapping[str, object]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key in sorted(value):
        out[key] = _deep_copy_value(value[key])
    return out


def _deep_copy_value(value: object) -> Any:
    if isinstance(value, Mapping):
        out: dict[str, Any] = {}
        for key in sorted(value):
            if isinstance(key, str):
                out[key] = _deep_copy_value(value[key])
        return out
    if isinstance(value, (list, tuple)):
        return [_deep_copy_value(item) for item in value]
    return copy.deepcopy(value)


__all__ = [
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DEFAULT_CONFIG",
    "DiffscopeConfig",
    "LOG_FORMATS",
    "LOG_LEVELS",
    "MANIFEST_KINDS",
    "PATH_FIELDS",
    "REPLACED_TABLES",
    "assert_valid_config",
    "declared_surface_ids",
    "default_config",
    "merge_config",
    "migration_guidance",
    "validate_config",
]
