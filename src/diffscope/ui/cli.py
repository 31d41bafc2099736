"""Command-line interface router for diffscope."""

from __future__ import annotations

import argparse
import json
import os
import sys
import warnings
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final

import yaml

from diffscope.config.loader import ConfigSource, dump_effective_config, load_config_with_source
from diffscope.config.model import PlannerConfig
from diffscope.config.schema import ConfigValidationError
from diffscope.config.validate import (
    ValidationFinding,
    ValidationReport,
    findings_from_issues,
    validate_project,
)
from diffscope.constants import ENV_GITHUB_OUTPUT
from diffscope.domain.errors import (
    AmbiguityWarning,
    ConfigurationError,
    DirtyWorkspaceIgnored,
    VcsError,
)
from diffscope.domain.models import CollectMode, Decision, Provenance
from diffscope.executor import RunReport, SurfaceExecutor
from diffscope.observability.logging import LOG_FORMATS, configure_logging
from diffscope.persistence.receipts import write_receipt
from diffscope.planning.pipeline import Planner, PlanRequest
from diffscope.ui.render import (
    OUTPUT_FORMATS,
    color_allowed,
    filter_decision,
    render,
    write_github_output,
)
from diffscope.vcs.collector import CollectRequest
from diffscope.vcs.git_engine import GitEngine

PLAN_WARNING_TYPES: Final[tuple[type[Warning], ...]] = (AmbiguityWarning, DirtyWorkspaceIgnored)


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = 1

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True, slots=True)
class CommandContext:
    repo_root: Path
    raw_config: dict[str, Any]
    source: ConfigSource
    config: PlannerConfig


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router for all supported CLI workflows."""

    parser = argparse.ArgumentParser(
        prog="diffscope",
        description=(
            "diffscope — change-impact planning for monorepo CI.\n\n"
            "Common workflows:\n"
            "  diffscope plan                      Plan against the merge-base with main\n"
            "  diffscope plan --format github      Write job outputs to $GITHUB_OUTPUT\n"
            "  diffscope run --dry-run             Show the commands a plan would run\n"
            "  diffscope config validate --strict  Check config and workspace graph\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--repo-root",
        default=".",
        help="Directory inside the repository (default: current working directory).",
    )
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to a diffscope TOML config (default: ./diffscope.toml or pyproject.toml).",
    )
    common.add_argument(
        "--set",
        dest="overrides",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Override a config value by dotted key, e.g. vcs.base_branch=develop.",
    )
    common.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Emit debug logs on stderr.",
    )
    common.add_argument(
        "--log-format",
        choices=LOG_FORMATS,
        default=None,
        help="Log output format (default: logging.format from config).",
    )
    common.add_argument(
        "--no-color",
        action="store_true",
        default=False,
        help="Disable colored output (also respects NO_COLOR env var).",
    )

    selection = argparse.ArgumentParser(add_help=False)
    mode = selection.add_mutually_exclusive_group()
    mode.add_argument(
        "--base",
        "--merge-base",
        dest="base",
        default=None,
        metavar="REV",
        help="Diff against the merge-base with REV (default: $DIFFSCOPE_BASE or vcs.base_branch).",
    )
    mode.add_argument(
        "--since",
        default=None,
        metavar="REV",
        help="Diff the explicit range REV..target instead of using a merge-base.",
    )
    mode.add_argument(
        "--all",
        dest="all_files",
        action="store_true",
        default=False,
        help="Treat every tracked file as changed (forced full run).",
    )
    selection.add_argument(
        "--target",
        default=None,
        metavar="REV",
        help="Revision being planned (default: vcs.target, usually HEAD).",
    )
    selection.add_argument(
        "--include-worktree",
        action="store_true",
        default=False,
        help="Include uncommitted working-tree changes and untracked files in the diff.",
    )
    selection.add_argument(
        "--surface",
        default=None,
        help="Restrict the decision to one surface (e.g. build or custom:themes).",
    )
    selection.add_argument(
        "--profile",
        default=None,
        help="Plan for one profile; its merge_base setting selects the diff mode.",
    )
    authorship = selection.add_mutually_exclusive_group()
    authorship.add_argument(
        "--automated",
        dest="provenance",
        action="store_const",
        const=Provenance.AUTOMATED,
        default=None,
        help="Treat the change as bot-authored (selects confidence.automated_policy).",
    )
    authorship.add_argument(
        "--human",
        dest="provenance",
        action="store_const",
        const=Provenance.HUMAN,
        help="Treat the change as human-authored (selects confidence.policy).",
    )
    authorship.add_argument(
        "--author",
        default=None,
        help="Author name matched against confidence.bot_authors.",
    )
    selection.add_argument(
        "--policy",
        default=None,
        help="Force one confidence policy regardless of provenance.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # plan ----------------------------------------------------------------
    plan_parser = subparsers.add_parser(
        "plan",
        parents=[common, selection],
        help="Decide which surfaces, profiles, and jobs must run",
        description=(
            "Collect the change set, classify it against configured surfaces, and emit a\n"
            "decision with per-surface reasons and the affected packages.\n\n"
            "Examples:\n"
            "  diffscope plan\n"
            "  diffscope plan --base origin/main --format json\n"
            "  diffscope plan --since HEAD~3 --explain\n"
            "  diffscope plan --surface docs --exit-code\n"
            "  diffscope plan --profile ci --format github\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    plan_parser.add_argument(
        "--format",
        dest="output_format",
        choices=OUTPUT_FORMATS,
        default="text",
        help="Output format (default: text).",
    )
    plan_parser.add_argument(
        "--explain",
        action="store_true",
        default=False,
        help="Include per-path classification and fallback reasons in text output.",
    )
    plan_parser.add_argument(
        "--exit-code",
        action="store_true",
        default=False,
        help="Exit 1 when the selected surface or profile (or every surface) is disabled.",
    )
    plan_parser.add_argument(
        "--receipt",
        default=None,
        metavar="PATH",
        help="Write a decision receipt to PATH (a directory or a .json file).",
    )
    plan_parser.set_defaults(handler=_cmd_plan)

    # run -----------------------------------------------------------------
    run_parser = subparsers.add_parser(
        "run",
        parents=[common, selection],
        help="Plan, then run the configured command of every enabled surface",
        description=(
            "Plan the change set and execute the [run] command of each enabled surface in\n"
            "configuration order. Stops at the first failure unless --keep-going.\n\n"
            "Examples:\n"
            "  diffscope run --dry-run\n"
            "  diffscope run --keep-going\n"
            "  diffscope run --surface test\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    run_parser.add_argument(
        "--keep-going",
        action="store_true",
        default=False,
        help="Continue with remaining surfaces after a failing command.",
    )
    run_parser.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        help="Print the commands without executing them.",
    )
    run_parser.set_defaults(handler=_cmd_run)

    # config --------------------------------------------------------------
    config_parser = subparsers.add_parser(
        "config",
        help="Validate or show the effective configuration",
        description=(
            "Inspect diffscope configuration.\n\n"
            "Examples:\n"
            "  diffscope config validate\n"
            "  diffscope config validate --strict --json\n"
            "  diffscope config show\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    config_subparsers = config_parser.add_subparsers(dest="config_command", required=True)

    validate_parser = config_subparsers.add_parser(
        "validate",
        parents=[common],
        help="Validate configuration and the workspace graph",
        description=(
            "Check the configuration schema, cross references, glob syntax, and the\n"
            "workspace dependency graph. --strict also flags surfaces no profile uses and\n"
            "patterns that match no tracked file.\n\n"
            "Examples:\n"
            "  diffscope config validate\n"
            "  diffscope config validate --strict\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    validate_parser.add_argument(
        "--strict",
        action="store_true",
        default=False,
        help="Treat unused surfaces and unmatched patterns as failures.",
    )
    validate_parser.add_argument(
        "--json", action="store_true", help="Emit deterministic JSON output"
    )
    validate_parser.set_defaults(handler=_cmd_config_validate)

    show_parser = config_subparsers.add_parser(
        "show",
        parents=[common],
        help="Print the effective configuration",
        description=(
            "Print the configuration after defaults, file, environment, and --set\n"
            "overrides are applied.\n\n"
            "Examples:\n"
            "  diffscope config show\n"
            "  diffscope config show --json\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    show_parser.add_argument("--json", action="store_true", help="Emit deterministic JSON output")
    show_parser.set_defaults(handler=_cmd_config_show)

    return parser


# ---------------------------------------------------------------------------
# Entrypoints
# ---------------------------------------------------------------------------


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return 2

    try:
        result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    return int(result)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_plan(args: argparse.Namespace) -> int:
    context = _load_context(args, require_repository=True)
    decision, caught = _plan(args, context)
    fmt = _require_str(getattr(args, "output_format", "text"), "format")

    if fmt != "text":
        for message in caught:
            print(f"warning: {message}", file=sys.stderr)

    _write_receipts(args, context, decision)

    shown = _select_surface(args, decision)
    if fmt == "github":
        destination = os.environ.get(ENV_GITHUB_OUTPUT, "").strip()
        if not destination:
            raise CLIError(f"--format github requires ${ENV_GITHUB_OUTPUT}", exit_code=2)
        write_github_output(shown, destination)

    sys.stdout.write(
        render(
            shown,
            fmt,
            explain=_flag(args, "explain"),
            color=color_allowed(_flag(args, "no_color")),
        )
    )

    if _flag(args, "exit_code") and not _selection_enabled(args, shown):
        return 1
    return 0


def _cmd_run(args: argparse.Namespace) -> int:
    context = _load_context(args, require_repository=True)
    decision, caught = _plan(args, context)
    for message in caught:
        print(f"warning: {message}", file=sys.stderr)

    shown = _select_surface(args, decision)
    executor = SurfaceExecutor(context.config, cwd=context.repo_root)
    report = executor.execute(
        shown,
        keep_going=_flag(args, "keep_going"),
        dry_run=_flag(args, "dry_run"),
        echo=print,
    )
    _print_run_summary(report)
    return 0 if report.ok else 1


def _cmd_config_validate(args: argparse.Namespace) -> int:
    strict = _flag(args, "strict")
    repo_root = _discover_root(_repo_root(args), required=False)
    try:
        context = _load_context(args, repo_root=repo_root)
    except ConfigValidationError as exc:
        report = ValidationReport(findings=findings_from_issues(exc.issues), strict=strict)
        _emit_validation(args, report)
        return 2

    report = validate_project(context.config, context.repo_root, strict=strict)
    _emit_validation(args, report, source=context.source)
    if report.graph_errors:
        return 3
    if report.errors:
        return 2
    return 0 if report.ok else 1


def _cmd_config_show(args: argparse.Namespace) -> int:
    repo_root = _discover_root(_repo_root(args), required=False)
    context = _load_context(args, repo_root=repo_root)
    if _flag(args, "json"):
        print(dump_effective_config(context.raw_config))
        return 0

    print(f"# source: {context.source.describe()}")
    sys.stdout.write(yaml.safe_dump(context.raw_config, sort_keys=True, default_flow_style=False))
    return 0


# ---------------------------------------------------------------------------
# Helpers — planning
# ---------------------------------------------------------------------------


def _plan(args: argparse.Namespace, context: CommandContext) -> tuple[Decision, tuple[str, ...]]:
    _check_profile_option(args, context.config)
    planner = Planner(context.config, context.repo_root)
    request = PlanRequest(
        collect=_collect_request(args, context.config),
        provenance=getattr(args, "provenance", None),
        author=_optional_str(getattr(args, "author", None)),
    )
    with warnings.catch_warnings(record=True) as records:
        warnings.simplefilter("always")
        decision = planner.plan(request)
    caught = tuple(
        str(record.message) for record in records if issubclass(record.category, PLAN_WARNING_TYPES)
    )
    return decision, caught


def _check_profile_option(args: argparse.Namespace, config: PlannerConfig) -> None:
    name = _optional_str(getattr(args, "profile", None))
    declared = sorted(profile.name for profile in config.profiles)
    if name is None or name in declared:
        return
    known = ", ".join(declared) or "<none>"
    raise ConfigurationError(f"--profile {name!r} is not declared; known profiles: {known}")


def _collect_request(args: argparse.Namespace, config: PlannerConfig) -> CollectRequest:
    target = _optional_str(getattr(args, "target", None)) or config.target
    include_worktree = _flag(args, "include_worktree")
    since = _optional_str(getattr(args, "since", None))

    if _flag(args, "all_files"):
        mode = CollectMode.ALL
        base = None
    elif since is not None:
        mode = CollectMode.RANGE
        base = since
    else:
        mode = CollectMode.MERGE_BASE
        base = _optional_str(getattr(args, "base", None))
        profile_name = _optional_str(getattr(args, "profile", None))
        if profile_name is not None and not config.profile(profile_name).merge_base:
            mode = CollectMode.RANGE

    return CollectRequest.from_environment(
        os.environ,
        mode=mode,
        base=base,
        target=target,
        include_worktree=include_worktree,
    )


def _select_surface(args: argparse.Namespace, decision: Decision) -> Decision:
    surface = _optional_str(getattr(args, "surface", None))
    if surface is None:
        return decision
    return filter_decision(decision, surface)


def _selection_enabled(args: argparse.Namespace, decision: Decision) -> bool:
    if _optional_str(getattr(args, "surface", None)) is not None:
        return any(item.enabled for item in decision.surfaces)
    profile_name = _optional_str(getattr(args, "profile", None))
    if profile_name is not None:
        return decision.profile(profile_name).enabled
    return bool(decision.enabled_surfaces)


def _write_receipts(args: argparse.Namespace, context: CommandContext, decision: Decision) -> None:
    explicit = _optional_str(getattr(args, "receipt", None))
    if explicit is not None:
        destination = Path(explicit).expanduser()
        if not destination.is_absolute():
            destination = Path.cwd() / destination
    elif context.config.receipts_enabled:
        destination = context.config.receipts_dir
        if not destination.is_absolute():
            destination = context.repo_root / destination
    else:
        return
    write_receipt(decision, destination, config=context.raw_config)


def _print_run_summary(report: RunReport) -> None:
    if not report.outcomes:
        print("no enabled surface has a configured command")
        return
    for outcome in report.outcomes:
        if outcome.skipped:
            state = "dry-run" if report.dry_run else "skipped"
        elif outcome.ok:
            state = "ok"
        else:
            state = f"failed (exit {outcome.returncode})"
        print(f"{outcome.surface}: {state}")


def _emit_validation(
    args: argparse.Namespace,
    report: ValidationReport,
    *,
    source: ConfigSource | None = None,
) -> None:
    if _flag(args, "json"):
        payload = report.to_dict()
        payload["source"] = source.describe() if source is not None else None
        _emit_json(payload)
        return

    where = source.describe() if source is not None else "<config>"
    for finding in report.findings:
        print(_format_finding(finding))
    if report.ok:
        print(f"{where}: ok ({report.packages} packages)")
    else:
        print(f"{where}: {len(report.errors)} error(s), {len(report.warnings)} warning(s)")


def _format_finding(finding: ValidationFinding) -> str:
    return f"{finding.severity.value}: {finding.path}: {finding.message}"


def _emit_json(payload: Mapping[str, object]) -> None:
    """Emit a JSON payload to stdout with deterministic formatting."""

    print(json.dumps(payload, sort_keys=True, indent=2, ensure_ascii=False))


# ---------------------------------------------------------------------------
# Helpers — config, paths, resolution
# ---------------------------------------------------------------------------


def _load_context(
    args: argparse.Namespace,
    *,
    repo_root: Path | None = None,
    require_repository: bool = False,
) -> CommandContext:
    if repo_root is None:
        repo_root = _discover_root(_repo_root(args), required=require_repository)
    overrides = _cli_overrides(args)
    raw_config, source = load_config_with_source(
        _optional_str(getattr(args, "config_path", None)),
        repo_root=repo_root,
        cli_overrides=overrides,
    )
    config = PlannerConfig.from_mapping(raw_config)
    configure_logging(config.log_level, config.log_format)
    return CommandContext(repo_root=repo_root, raw_config=raw_config, source=source, config=config)


def _cli_overrides(args: argparse.Namespace) -> dict[str, object]:
    overrides: dict[str, object] = {}
    for item in _string_sequence(getattr(args, "overrides", None)):
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise CLIError(f"invalid --set value {item!r}: expected KEY=VALUE", exit_code=2)
        overrides[key.strip()] = _parse_override_value(value.strip())

    policy = _optional_str(getattr(args, "policy", None))
    if policy is not None:
        overrides["confidence.policy"] = policy
        overrides["confidence.automated_policy"] = policy
    if _flag(args, "verbose"):
        overrides["logging.level"] = "DEBUG"
    log_format = _optional_str(getattr(args, "log_format", None))
    if log_format is not None:
        overrides["logging.format"] = log_format
    return overrides


def _parse_override_value(raw: str) -> object:
    """Decode JSON literals (numbers, booleans, lists); anything else stays a string."""

    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def _repo_root(args: argparse.Namespace) -> Path:
    raw = _require_str(getattr(args, "repo_root", None), "repo_root")
    candidate = Path(raw).expanduser().resolve()
    if not candidate.exists() or not candidate.is_dir():
        raise CLIError(f"repo root is not a directory: {candidate}", exit_code=2)
    return candidate


def _discover_root(candidate: Path, *, required: bool) -> Path:
    """Resolve the git top-level for ``candidate``; fall back to it when not required."""

    try:
        return GitEngine(candidate).ensure_repository().resolve()
    except VcsError:
        if required:
            raise
        return candidate


def _require_str(value: object, name: str) -> str:
    if not isinstance(value, str):
        raise CLIError(f"invalid {name}: expected string", exit_code=2)
    cleaned = value.strip()
    if not cleaned:
        raise CLIError(f"invalid {name}: value cannot be empty", exit_code=2)
    return cleaned


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise CLIError("invalid optional string argument", exit_code=2)
    cleaned = value.strip()
    return cleaned or None


def _flag(args: argparse.Namespace, name: str) -> bool:
    value = getattr(args, name, False)
    return bool(value)


def _string_sequence(value: object) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        cleaned = value.strip()
        return () if not cleaned else (cleaned,)
    if not isinstance(value, Sequence):
        raise CLIError("invalid sequence argument", exit_code=2)

    parsed: list[str] = []
    for item in value:
        if not isinstance(item, str):
            raise CLIError("invalid sequence argument", exit_code=2)
        cleaned = item.strip()
        if cleaned:
            parsed.append(cleaned)
    return tuple(parsed)


__all__ = [
    "CLIError",
    "build_parser",
    "run_cli",
]
