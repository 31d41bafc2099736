"""Unit tests for the frozen planner configuration."""

from __future__ import annotations

import pytest

from diffscope.config.loader import config_from_mapping
from diffscope.config.model import PlannerConfig
from diffscope.domain.errors import (
    ConfigurationError,
    DuplicateSurfaceName,
    UnknownProfileReference,
)
from diffscope.domain.models import Profile, Provenance, Surface, SurfaceKind
from diffscope.planning.globs import compile_globs

INFRA = Surface(kind=SurfaceKind.BUILTIN, name="infra", patterns=compile_globs([".github/**"]))
BUILD = Surface(kind=SurfaceKind.BUILTIN, name="build", patterns=compile_globs(["**/*.rs"]))


def test_surface_ids_are_unique() -> None:
    with pytest.raises(DuplicateSurfaceName, match="'build'"):
        PlannerConfig(surfaces=(BUILD, INFRA, BUILD))


def test_infra_surface_is_mandatory() -> None:
    with pytest.raises(ConfigurationError, match="infra surface"):
        PlannerConfig(surfaces=(BUILD,))


def test_profiles_may_only_require_declared_surfaces() -> None:
    with pytest.raises(ConfigurationError, match="undeclared surface 'docs'"):
        PlannerConfig(surfaces=(BUILD, INFRA), profiles=(Profile("ci", ("build", "docs")),))


def test_workflow_jobs_must_map_to_declared_profiles() -> None:
    with pytest.raises(UnknownProfileReference) as error:
        PlannerConfig(
            surfaces=(BUILD, INFRA),
            profiles=(Profile("ci", ("build",)),),
            workflow={"check": "ci", "deploy": "release"},
        )

    assert error.value.job == "deploy"
    assert error.value.profile == "release"


def test_custom_surface_ids_carry_the_prefix() -> None:
    config = config_from_mapping({"custom": {"custom:themes": ["runtime/themes/**"]}})

    surface = config.surface("custom:themes")
    assert surface.kind is SurfaceKind.CUSTOM
    assert surface.name == "themes"
    assert Surface.parse_id("custom:themes") == (SurfaceKind.CUSTOM, "themes")
    assert Surface.parse_id("lint") == (SurfaceKind.BUILTIN, "lint")


def test_lookups_raise_for_unknown_names() -> None:
    config = config_from_mapping({})

    with pytest.raises(KeyError):
        config.surface("bench")
    with pytest.raises(KeyError, match="unknown profile"):
        config.profile("nightly")


def test_policy_selection_follows_provenance() -> None:
    config = config_from_mapping(
        {"confidence": {"policy": "targeted", "automated_policy": "strict"}}
    )

    assert config.policy_for(Provenance.HUMAN).name == "targeted"
    assert config.policy_for(Provenance.UNKNOWN).name == "targeted"
    assert config.policy_for(Provenance.AUTOMATED).name == "strict"


def test_run_commands_are_split_lists_or_strings() -> None:
    config = config_from_mapping(
        {"run": {"build": "cargo build --workspace", "test": ["cargo", "test"]}}
    )

    assert config.run_commands["build"] == "cargo build --workspace"
    assert config.run_commands["test"] == ("cargo", "test")
