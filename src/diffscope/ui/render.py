"""Plan rendering: every output format is a projection of one ``Decision``.

File: src/diffscope/ui/render.py

Purpose
- Human-readable text (``rich``; ANSI styling only when color is enabled).
- Structured JSON and YAML documents.
- Flat ``key=true|false`` lines for CI job outputs, including the
  ``$GITHUB_OUTPUT`` file protocol.

Functional requirements
- No renderer re-derives classification, impact, or policy logic.
- Output is deterministic for a given Decision.
"""

from __future__ import annotations

import io
import json
import os
import sys
from dataclasses import replace
from pathlib import Path
from typing import TYPE_CHECKING, Final

import yaml
from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from diffscope.domain.errors import ConfigurationError
from diffscope.domain.models import Decision, slugify

if TYPE_CHECKING:
    from collections.abc import Sequence

OUTPUT_FORMATS: Final[tuple[str, ...]] = ("text", "json", "yaml", "kv", "github")

_TEXT_WIDTH: Final[int] = 100


def color_allowed(no_color_flag: bool) -> bool:
    """Check whether color output should be attempted."""

    if no_color_flag:
        return False
    if os.environ.get("NO_COLOR", ""):
        return False
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


class PlanTextRenderer:
    """Accumulates styled lines in a buffered ``rich`` console."""

    def __init__(self, *, color: bool = False, width: int = _TEXT_WIDTH) -> None:
        self._buffer = io.StringIO()
        self._console = Console(
            file=self._buffer,
            force_terminal=color,
            color_system="standard" if color else None,
            width=width,
            highlight=False,
            emoji=False,
        )

    def heading(self, text: str) -> None:
        self._console.print(Text(text, style="bold"))

    def section(self, title: str) -> None:
        self._console.print()
        self._console.print(Text(title, style="bold underline"))

    def flag(self, name: str, enabled: bool, detail: str = "") -> None:
        marker = Text("+ " if enabled else "- ", style="green" if enabled else "dim")
        line = Text("  ")
        line.append_text(marker)
        line.append(name.ljust(24), style="bold" if enabled else "dim")
        line.append("enabled " if enabled else "disabled", style="green" if enabled else "dim")
        if detail:
            line.append(f"  {detail}")
        self._console.print(line)

    def kv(self, key: str, value: object) -> None:
        self._console.print(Text(f"  {key}: {value}"))

    def items(self, entries: Sequence[str], *, prefix: str = "- ", style: str = "") -> None:
        for entry in entries:
            self._console.print(Text(f"  {prefix}{entry}", style=style))

    def table(self, headers: Sequence[str], rows: Sequence[Sequence[str]]) -> None:
        if not rows:
            return
        table = Table(box=box.SIMPLE, show_edge=False, pad_edge=False, header_style="bold")
        for header in headers:
            table.add_column(header, overflow="fold")
        for row in rows:
            table.add_row(*(Text(cell) for cell in row))
        self._console.print(table)

    def getvalue(self) -> str:
        return self._buffer.getvalue()


def render_text(decision: Decision, *, explain: bool = False, color: bool = False) -> str:
    out = PlanTextRenderer(color=color)
    revisions = decision.revisions
    if revisions.base:
        span = f"{_short(revisions.base)}..{_short(revisions.target)}"
    else:
        span = f"all files at {_short(revisions.target)}"
    out.heading(
        f"diffscope plan ({revisions.mode.value} {span}; policy {decision.policy}, "
        f"provenance {decision.provenance.value})"
    )

    out.section("Surfaces")
    for surface in decision.surfaces:
        detail = ""
        if surface.enabled:
            count = len(surface.reasons)
            detail = f"({count} reason{'s' if count != 1 else ''})"
        out.flag(surface.surface, surface.enabled, detail)

    if decision.profiles:
        out.section("Profiles")
        for profile in decision.profiles:
            out.flag(profile.profile, profile.enabled, ", ".join(profile.surfaces))

    if decision.jobs:
        out.section("Jobs")
        for job in decision.jobs:
            out.flag(job.job, job.enabled, f"(profile {job.profile})")

    impact = decision.impact
    out.section("Impact")
    if impact.all_packages:
        out.kv("scope", "all packages (infrastructure change)")
    out.kv("direct", _package_summary(impact.direct))
    out.kv("transitive", _package_summary(impact.transitive))
    out.kv("total packages", impact.total_packages)

    if explain:
        out.section("Changes")
        if decision.classifications:
            rows = [
                (
                    result.changed.path,
                    result.changed.status.value,
                    ", ".join(result.surfaces) or "-",
                    ", ".join(result.owners) or ("<infra>" if result.infra else "-"),
                )
                for result in decision.classifications
            ]
            out.table(("path", "status", "surfaces", "package"), rows)
        else:
            out.items(["no changed paths"])

        reasons = [
            f"{surface.surface}: {reason.describe()}"
            for surface in decision.surfaces
            for reason in surface.reasons
        ]
        if reasons:
            out.section("Reasons")
            out.items(reasons)

    if decision.warnings:
        out.section("Warnings")
        out.items(decision.warnings, style="yellow")

    return out.getvalue()


def render_json(decision: Decision) -> str:
    return json.dumps(decision.to_dict(), sort_keys=True, indent=2, ensure_ascii=False)


def render_yaml(decision: Decision) -> str:
    return yaml.safe_dump(
        decision.to_dict(), sort_keys=True, default_flow_style=False, allow_unicode=True
    )


def kv_pairs(decision: Decision) -> tuple[tuple[str, str], ...]:
    """``(key, "true"|"false")`` for every surface, profile, and workflow job."""

    pairs: list[tuple[str, str]] = []
    for surface in decision.surfaces:
        pairs.append((surface_key(surface.surface), _bool(surface.enabled)))
    for profile in decision.profiles:
        pairs.append((f"profile-{slugify(profile.profile)}", _bool(profile.enabled)))
    for job in decision.jobs:
        pairs.append((f"job-{slugify(job.job)}", _bool(job.enabled)))
    return tuple(pairs)


def render_kv(decision: Decision) -> str:
    return "\n".join(f"{key}={value}" for key, value in kv_pairs(decision)) + "\n"


def write_github_output(decision: Decision, path: str | Path) -> Path:
    """Append ``key=value`` lines to a GitHub Actions ``$GITHUB_OUTPUT`` file."""

    target = Path(path)
    with target.open("a", encoding="utf-8") as handle:
        handle.write(render_kv(decision))
    return target


def render(decision: Decision, fmt: str, *, explain: bool = False, color: bool = False) -> str:
    if fmt == "text":
        return render_text(decision, explain=explain, color=color)
    if fmt == "json":
        return render_json(decision) + "\n"
    if fmt == "yaml":
        return render_yaml(decision)
    if fmt in {"kv", "github"}:
        return render_kv(decision)
    raise ValueError(f"unsupported output format {fmt!r}")


def filter_decision(decision: Decision, surface_id: str) -> Decision:
    """Restrict ``decision`` to one surface and the profiles and jobs that require it."""

    kept = tuple(item for item in decision.surfaces if item.surface == surface_id)
    if not kept:
        known = ", ".join(item.surface for item in decision.surfaces)
        raise ConfigurationError(f"unknown surface {surface_id!r}; known surfaces: {known}")
    profiles = tuple(item for item in decision.profiles if surface_id in item.surfaces)
    names = {item.profile for item in profiles}
    jobs = tuple(item for item in decision.jobs if item.profile in names)
    return replace(decision, surfaces=kept, profiles=profiles, jobs=jobs)


def surface_key(surface_id: str) -> str:
    return surface_id.replace(":", "-")


def _bool(value: bool) -> str:
    return "true" if value else "false"


def _short(revision: str | None) -> str:
    if not revision:
        return "?"
    if len(revision) >= 40 and all(ch in "0123456789abcdef" for ch in revision):
        return revision[:12]
    return revision


def _package_summary(names: Sequence[str]) -> str:
    if not names:
        return "0 packages"
    noun = "package" if len(names) == 1 else "packages"
    return f"{len(names)} {noun}: {', '.join(names)}"


__all__ = [
    "OUTPUT_FORMATS",
    "PlanTextRenderer",
    "color_allowed",
    "filter_decision",
    "kv_pairs",
    "render",
    "render_json",
    "render_kv",
    "render_text",
    "render_yaml",
    "slugify",
    "surface_key",
    "write_github_output",
]
