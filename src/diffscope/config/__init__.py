"""
diffscope config package public API.

File: src/diffscope/config/__init__.py

Purpose
- Export config loading/validation entrypoints and public error types.

Functional requirements
- Support loading from ``diffscope.toml`` (or ``[tool.diffscope]``) plus
  ``DIFFSCOPE_`` env overrides.
- Fail fast with clear structured validation/load errors.
"""

from diffscope.config.loader import (
    DEFAULT_CONFIG_FILE,
    ConfigLoadError,
    ConfigSource,
    config_from_mapping,
    discover_config_file,
    dump_effective_config,
    load_config,
    load_config_with_source,
    load_planner_config,
    normalize_paths,
)
from diffscope.config.model import BUILTIN_POLICIES, PlannerConfig
from diffscope.config.schema import (
    DEFAULT_CONFIG,
    PATH_FIELDS,
    ConfigSchemaVersion,
    ConfigValidationError,
    ConfigValidationIssue,
    ConfigValidationResult,
    assert_valid_config,
    default_config,
    merge_config,
    migration_guidance,
    validate_config,
)

__all__ = [
    "BUILTIN_POLICIES",
    "ConfigLoadError",
    "ConfigSchemaVersion",
    "ConfigSource",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DEFAULT_CONFIG",
    "DEFAULT_CONFIG_FILE",
    "PATH_FIELDS",
    "PlannerConfig",
    "assert_valid_config",
    "config_from_mapping",
    "default_config",
    "discover_config_file",
    "dump_effective_config",
    "load_config",
    "load_config_with_source",
    "load_planner_config",
    "merge_config",
    "migration_guidance",
    "normalize_paths",
    "validate_config",
]
