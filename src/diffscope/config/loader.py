"""
diffscope — runtime config loader.

File: src/diffscope/config/loader.py

Purpose
- Load effective config from defaults, TOML file, env vars, and CLI overrides.

What is included in this file
- Precedence logic: CLI > env (DIFFSCOPE_) > file > defaults.
- Config discovery: ``diffscope.toml`` first, then ``[tool.diffscope]`` in
  ``pyproject.toml``, relative to the repository root.
- TOML loading via ``tomllib``.
- Deterministic environment variable mapping and coercion.
- Path normalization relative to config file location.

Functional requirements
- Reject invalid config via schema validation before any planning starts.

Non-functional requirements
- Keep loading deterministic and reproducible.
"""

from __future__ import annotations

import json
import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final, Literal

from diffscope.config.model import PlannerConfig
from diffscope.config.schema import (
    PATH_FIELDS,
    assert_valid_config,
    default_config,
    merge_config,
)
from diffscope.constants import ENV_PREFIX
from diffscope.domain.errors import ConfigurationError

DEFAULT_CONFIG_FILE: Final[str] = "diffscope.toml"
PYPROJECT_FILE: Final[str] = "pyproject.toml"

# Only scalar settings in these sections are bound to environment variables.
_ENV_SECTIONS: Final[frozenset[str]] = frozenset(
    {"vcs", "workspace", "confidence", "logging", "receipts"}
)

_BOOLEAN_TRUE: Final[frozenset[str]] = frozenset({"1", "true", "t", "yes", "y", "on"})
_BOOLEAN_FALSE: Final[frozenset[str]] = frozenset({"0", "false", "f", "no", "n", "off"})


@dataclass(frozen=True, slots=True)
class _Binding:
    path: tuple[str, ...]
    value_type: Literal["str", "int", "float", "bool"]


@dataclass(frozen=True, slots=True)
class ConfigSource:
    """Where the file layer of the effective config came from."""

    path: Path | None
    section: str | None = None

    def describe(self) -> str:
        if self.path is None:
            return "<defaults>"
        if self.section:
            return f"{self.path.as_posix()} [{self.section}]"
        return self.path.as_posix()


class ConfigLoadError(ConfigurationError):
    """Raised when config cannot be loaded or overrides cannot be coerced."""


def load_config(
    config_path: str | Path | None = None,
    *,
    repo_root: str | Path | None = None,
    cli_overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Load effective config with deterministic precedence: CLI > env > file > defaults."""

    config, _ = load_config_with_source(
        config_path, repo_root=repo_root, cli_overrides=cli_overrides, environ=environ
    )
    return config


def load_config_with_source(
    config_path: str | Path | None = None,
    *,
    repo_root: str | Path | None = None,
    cli_overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
) -> tuple[dict[str, Any], ConfigSource]:
    """Like ``load_config`` but also report which file supplied the file layer."""

    root = Path(repo_root if repo_root is not None else Path.cwd()).expanduser().resolve()
    env_map = dict(os.environ if environ is None else environ)
    cli_map = dict(cli_overrides or {})

    source, file_payload = _read_config_source(config_path, root)
    base_dir = source.path.parent if source.path is not None else root

    merged = merge_config(default_config(), file_payload)
    merged = assert_valid_config(merged)

    env_overrides = _collect_env_overrides(merged, env_map)
    cli_payload = _materialize_cli_overrides(cli_map)

    merged = merge_config(merged, env_overrides)
    merged = merge_config(merged, cli_payload)
    merged = assert_valid_config(merged)

    normalized = normalize_paths(merged, base_dir=base_dir)
    return assert_valid_config(normalized), source


def load_planner_config(
    config_path: str | Path | None = None,
    *,
    repo_root: str | Path | None = None,
    cli_overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
) -> PlannerConfig:
    """Load, validate, and freeze the effective config."""

    config = load_config(
        config_path, repo_root=repo_root, cli_overrides=cli_overrides, environ=environ
    )
    return PlannerConfig.from_mapping(config)


def config_from_mapping(
    overlay: Mapping[str, object], *, base_dir: str | Path | None = None
) -> PlannerConfig:
    """Build a ``PlannerConfig`` from an in-memory overlay on top of the defaults."""

    merged = assert_valid_config(merge_config(default_config(), overlay))
    if base_dir is not None:
        merged = assert_valid_config(normalize_paths(merged, base_dir=Path(base_dir)))
    return PlannerConfig.from_mapping(merged)


def normalize_paths(config: Mapping[str, object], *, base_dir: Path) -> dict[str, Any]:
    """Normalize configured path fields relative to ``base_dir``."""

    materialized = merge_config({}, config)
    for field_path in PATH_FIELDS:
        _normalize_path_field(materialized, field_path, base_dir)
    return materialized


def dump_effective_config(config: Mapping[str, object]) -> str:
    """Return deterministic JSON dump of the effective config."""

    return json.dumps(config, sort_keys=True, indent=2, ensure_ascii=False)


def discover_config_file(repo_root: Path) -> ConfigSource:
    """Locate the config file for ``repo_root`` without reading it."""

    candidate = repo_root / DEFAULT_CONFIG_FILE
    if candidate.is_file():
        return ConfigSource(path=candidate)
    pyproject = repo_root / PYPROJECT_FILE
    if pyproject.is_file() and _tool_section(_load_toml_file(pyproject, required=True)):
        return ConfigSource(path=pyproject, section="tool.diffscope")
    return ConfigSource(path=None)


def _read_config_source(
    config_path: str | Path | None, repo_root: Path
) -> tuple[ConfigSource, dict[str, Any]]:
    if config_path is None:
        source = discover_config_file(repo_root)
    else:
        resolved = Path(config_path).expanduser()
        if not resolved.is_absolute():
            resolved = Path.cwd() / resolved
        resolved = resolved.resolve()
        is_pyproject = resolved.name == PYPROJECT_FILE
        source = ConfigSource(path=resolved, section="tool.diffscope" if is_pyproject else None)

    if source.path is None:
        return source, {}
    payload = _load_toml_file(source.path, required=True)
    if source.section is not None:
        section = _tool_section(payload)
        if section is None:
            raise ConfigLoadError(f"no [tool.diffscope] table in {source.path.as_posix()}")
        return source, section
    return source, payload


def _tool_section(payload: Mapping[str, object]) -> dict[str, Any] | None:
    tool = payload.get("tool")
    if not isinstance(tool, Mapping):
        return None
    section = tool.get("diffscope")
    if not isinstance(section, Mapping):
        return None
    return dict(section)


def _load_toml_file(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigLoadError(f"config file not found: {path.as_posix()}")
        return {}

    try:
        with path.open("rb") as handle:
            parsed = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigLoadError(f"invalid TOML in {path.as_posix()}: {exc}") from exc
    except OSError as exc:
        raise ConfigLoadError(f"unable to read config file {path.as_posix()}: {exc}") from exc

    return parsed


def _collect_env_overrides(
    config: Mapping[str, object], environ: Mapping[str, str]
) -> dict[str, Any]:
    bindings = _build_bindings(config)
    overrides: dict[str, Any] = {}
    for env_name in sorted(bindings):
        raw = environ.get(env_name)
        if raw is None:
            continue
        binding = bindings[env_name]
        value = _coerce_env(raw, binding.value_type, env_name, binding.path)
        _set_nested(overrides, binding.path, value)
    return overrides


def _build_bindings(config: Mapping[str, object]) -> dict[str, _Binding]:
    bindings: dict[str, _Binding] = {}
    for path, value in _iter_scalar_paths(config):
        if path[0] not in _ENV_SECTIONS or path[:2] == ("confidence", "policies"):
            continue
        kind = _kind_for_value(value)
        if kind is None:
            continue
        bindings[_env_name_for_path(path)] = _Binding(path=path, value_type=kind)
    return bindings


def _iter_scalar_paths(
    payload: Mapping[str, object],
    prefix: tuple[str, ...] = (),
) -> list[tuple[tuple[str, ...], object]]:
    pairs: list[tuple[tuple[str, ...], object]] = []
    for key in sorted(payload):
        value = payload[key]
        path = (*prefix, key)
        if isinstance(value, Mapping):
            pairs.extend(_iter_scalar_paths(value, path))
        else:
            pairs.append((path, value))
    return pairs


def _kind_for_value(value: object) -> Literal["str", "int", "float", "bool"] | None:
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int):
        return "int"
    if isinstance(value, float):
        return "float"
    if isinstance(value, str):
        return "str"
    return None


def _coerce_env(
    raw: str,
    value_type: Literal["str", "int", "float", "bool"],
    env_name: str,
    path: tuple[str, ...],
) -> object:
    value = raw.strip()
    if value_type == "str":
        return value
    if value_type == "int":
        try:
            return int(value)
        except ValueError as exc:
            raise ConfigLoadError(f"{env_name} -> {'.'.join(path)} must be an integer") from exc
    if value_type == "float":
        try:
            return float(value)
        except ValueError as exc:
            raise ConfigLoadError(f"{env_name} -> {'.'.join(path)} must be a number") from exc

    lowered = value.lower()
    if lowered in _BOOLEAN_TRUE:
        return True
    if lowered in _BOOLEAN_FALSE:
        return False
    raise ConfigLoadError(
        f"{env_name} -> {'.'.join(path)} must be a boolean (true/false/1/0/yes/no/on/off)"
    )


def _materialize_cli_overrides(cli_overrides: Mapping[str, object]) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    for key in sorted(cli_overrides):
        value = cli_overrides[key]
        path = tuple(part for part in key.split(".") if part)
        if not path:
            raise ConfigLoadError(f"invalid CLI override key {key!r}")
        _set_nested(payload, path, value)
    return payload


def _set_nested(target: dict[str, Any], path: tuple[str, ...], value: object) -> None:
    cursor = target
    for part in path[:-1]:
        next_node = cursor.get(part)
        if not isinstance(next_node, dict):
            next_node = {}
            cursor[part] = next_node
        cursor = next_node
    cursor[path[-1]] = value


def _get_nested(payload: Mapping[str, object], path: tuple[str, ...]) -> object | None:
    cursor: object = payload
    for part in path:
        if not isinstance(cursor, Mapping):
            return None
        if part not in cursor:
            return None
        cursor = cursor[part]
    return cursor


def _normalize_path_field(config: dict[str, Any], path: tuple[str, ...], base_dir: Path) -> None:
    value = _get_nested(config, path)
    if not isinstance(value, str):
        return
    _set_nested(config, path, _normalize_one_path(value, base_dir))


def _normalize_one_path(raw: str, base_dir: Path) -> str:
    expanded = os.path.expandvars(raw)
    candidate = Path(expanded).expanduser()
    if not candidate.is_absolute():
        candidate = base_dir / candidate
    normalized = Path(os.path.normpath(str(candidate)))
    return normalized.as_posix()


def _env_name_for_path(path: tuple[str, ...]) -> str:
    return ENV_PREFIX + "_".join(part.upper() for part in path)


__all__ = [
    "ConfigLoadError",
    "ConfigSource",
    "DEFAULT_CONFIG_FILE",
    "config_from_mapping",
    "discover_config_file",
    "dump_effective_config",
    "load_config",
    "load_config_with_source",
    "load_planner_config",
    "normalize_paths",
]
