"""Unit tests for the process entrypoint and exit code routing."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from diffscope.domain.errors import (
    CycleDetected,
    RevisionNotFound,
    UnknownProfileReference,
)
from diffscope.main import ExitCode, _route_exception, cli_entrypoint

if TYPE_CHECKING:
    from conftest import GitRepo


@pytest.mark.parametrize(
    ("exc", "expected"),
    [
        (UnknownProfileReference("check", "ci"), ExitCode.CONFIG_ERROR),
        (CycleDetected(("a", "b", "a")), ExitCode.GRAPH_ERROR),
        (RevisionNotFound("nope"), ExitCode.VCS_ERROR),
        (FileNotFoundError("diffscope.toml"), ExitCode.CONFIG_ERROR),
        (RuntimeError("boom"), ExitCode.INTERNAL_ERROR),
    ],
)
def test_exceptions_route_to_exit_codes(exc: BaseException, expected: ExitCode) -> None:
    assert _route_exception(exc) is expected


def test_chained_causes_are_inspected() -> None:
    try:
        try:
            raise RevisionNotFound("main")
        except RevisionNotFound as inner:
            raise RuntimeError("planning failed") from inner
    except RuntimeError as outer:
        assert _route_exception(outer) is ExitCode.VCS_ERROR


def test_usage_errors_keep_argparse_exit_code(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli_entrypoint(["plan", "--format", "xml"]) == 2
    assert "invalid choice" in capsys.readouterr().err


def test_missing_repo_root_is_a_config_error(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    code = cli_entrypoint(["config", "show", "--repo-root", str(tmp_path / "absent")])

    assert code == ExitCode.CONFIG_ERROR
    assert "repo root is not a directory" in capsys.readouterr().err


def test_config_show_outside_a_repository_uses_defaults(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    code = cli_entrypoint(["config", "show", "--repo-root", str(tmp_path)])

    out = capsys.readouterr().out
    assert code == ExitCode.SUCCESS
    assert out.startswith("# source: <defaults>")
    assert "base_branch: main" in out


def test_unknown_profile_option_names_the_option(
    rust_workspace: GitRepo, capsys: pytest.CaptureFixture[str]
) -> None:
    code = cli_entrypoint(
        ["plan", "--repo-root", str(rust_workspace.root), "--profile", "nightly"]
    )

    err = capsys.readouterr().err
    assert code == ExitCode.CONFIG_ERROR
    assert "--profile 'nightly' is not declared" in err
    assert "workflow job" not in err
