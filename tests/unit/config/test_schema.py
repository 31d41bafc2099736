"""
diffscope — unit tests for config schema validation

File: tests/unit/config/test_schema.py

Purpose
- Validate strict config schema behavior, structured issue paths, and merge semantics.

What this test file should cover
- Defaults validate as-is.
- Unknown keys, invalid globs, and bad cross references are reported with exact paths.
- Declared tables replace defaults wholesale; scalar sections deep-merge.
"""

from __future__ import annotations

import pytest

from diffscope.config.schema import (
    ConfigSchemaVersion,
    ConfigValidationError,
    assert_valid_config,
    declared_surface_ids,
    default_config,
    merge_config,
    validate_config,
)


def _issues(overlay: dict[str, object]) -> dict[str, str]:
    result = validate_config(merge_config(default_config(), overlay))
    assert not result.is_valid
    return {issue.path: issue.message for issue in result.issues}


def test_defaults_validate_successfully() -> None:
    result = validate_config(default_config())

    assert result.is_valid
    assert result.config is not None
    assert result.config["meta"]["schema_version"] == ConfigSchemaVersion
    assert declared_surface_ids(result.config) == ("build", "test", "docs", "infra")


def test_unknown_key_rejection_is_explicit() -> None:
    issues = _issues({"vcs": {"remote": "origin"}, "extras": {}})

    assert issues["vcs.remote"] == "unknown field"
    assert issues["extras"] == "unknown field"


def test_invalid_glob_reports_index_and_pattern() -> None:
    issues = _issues({"surfaces": {"build": ["**/*.rs", "src/[abc"]}})

    assert "surfaces.build[1]" in issues
    assert "src/[abc" in issues["surfaces.build[1]"]


def test_unknown_builtin_surface_points_to_custom_table() -> None:
    issues = _issues({"surfaces": {"fuzz": ["fuzz/**"]}})

    assert "use [custom]" in issues["surfaces.fuzz"]


def test_duplicate_custom_surface_names_are_rejected() -> None:
    issues = _issues({"custom": {"custom:themes": ["a/**"], "themes": ["b/**"]}})

    assert issues["custom.themes"] == "duplicate surface name 'custom:themes'"


def test_cross_references_are_checked() -> None:
    issues = _issues(
        {
            "profile": {"ci": {"surfaces": ["build", "lint"]}},
            "workflow": {"check": "ci", "deploy": "release"},
            "run": {"bench": "cargo bench"},
            "confidence": {"policy": "paranoid"},
        }
    )

    assert issues["profile.ci.surfaces[1]"] == "references undeclared surface 'lint'"
    assert issues["workflow.deploy"] == (
        "workflow job 'deploy' references undeclared profile 'release'"
    )
    assert issues["run.bench"] == "no such surface 'bench'"
    assert issues["confidence.policy"].startswith("unknown policy 'paranoid'")


def test_profile_and_job_names_must_map_to_distinct_output_keys() -> None:
    issues = _issues(
        {
            "profile": {"a.b": {"surfaces": ["build"]}, "a-b": {"surfaces": ["test"]}},
            "workflow": {"Build & Test": "a-b", "build-test": "a.b"},
        }
    )

    assert issues["profile.a.b"] == "'a.b' and 'a-b' both map to output key 'profile-a-b'"
    assert issues["workflow.build-test"] == (
        "'build-test' and 'Build & Test' both map to output key 'job-build-test'"
    )


def test_builtin_policies_cannot_be_redefined() -> None:
    issues = _issues({"confidence": {"policies": {"strict": {"unowned-path": "activate-all"}}}})

    assert issues["confidence.policies.strict"] == "cannot redefine builtin policy 'strict'"


def test_custom_policy_actions_are_enumerated() -> None:
    issues = _issues({"confidence": {"policies": {"mine": {"binary-file": "panic"}}}})

    assert "confidence.policies.mine.binary-file" in issues


def test_range_violation_reports_exact_path() -> None:
    issues = _issues({"vcs": {"timeout_seconds": 0}})

    assert issues["vcs.timeout_seconds"] == "must be >= 0.1"


def test_schema_version_mismatch_includes_migration_guidance() -> None:
    issues = _issues({"meta": {"schema_version": ConfigSchemaVersion + 1}})

    assert "upgrade the diffscope runtime" in issues["meta.schema_version"]


def test_declared_tables_replace_defaults_while_sections_merge() -> None:
    merged = merge_config(
        default_config(),
        {"surfaces": {"lint": ["**/*.py"]}, "vcs": {"base_branch": "trunk"}},
    )

    assert merged["surfaces"] == {"lint": ["**/*.py"]}
    assert merged["vcs"]["base_branch"] == "trunk"
    assert merged["vcs"]["target"] == "HEAD"


def test_assert_valid_config_raises_with_every_issue() -> None:
    broken = merge_config(default_config(), {"vcs": {"remote": 1}, "logging": {"level": "loud"}})

    with pytest.raises(ConfigValidationError) as error:
        assert_valid_config(broken)

    paths = {issue.path for issue in error.value.issues}
    assert {"vcs.remote", "logging.level"} <= paths
    assert "invalid config:" in str(error.value)
