"""
diffscope — workspace manifest discovery.

File: src/diffscope/workspace/manifests.py

Purpose
- Find package manifests under the workspace root and read package names and
  declared dependency names from them.

Supported manifests
- ``Cargo.toml``: ``[package].name``; ``dependencies``, ``dev-dependencies``,
  ``build-dependencies`` (and their ``target.*`` variants). ``package = "..."``
  renames resolve to the real crate name. A virtual manifest with only a
  ``[workspace]`` table is not a package.
- ``pyproject.toml``: ``[project].name``; PEP 508 requirement names in
  ``dependencies`` and ``optional-dependencies``, normalized per PEP 503.
- ``package.json``: ``name``; ``dependencies``, ``devDependencies``,
  ``peerDependencies``.

Non-functional requirements
- Read-only; no network access, no version resolution.
- Deterministic traversal order.
"""

from __future__ import annotations

import json
import os
import re
import tomllib
from collections.abc import Callable, Iterable, Mapping
from pathlib import Path
from typing import Any, Final

import structlog

from diffscope.constants import SKIPPED_DIRECTORIES
from diffscope.domain.errors import ManifestError
from diffscope.domain.models import Package
from diffscope.planning.globs import GlobPattern

MANIFEST_FILENAMES: Final[Mapping[str, str]] = {
    "cargo": "Cargo.toml",
    "pyproject": "pyproject.toml",
    "npm": "package.json",
}

_CARGO_DEPENDENCY_TABLES: Final[tuple[str, ...]] = (
    "dependencies",
    "dev-dependencies",
    "build-dependencies",
)
_NPM_DEPENDENCY_TABLES: Final[tuple[str, ...]] = (
    "dependencies",
    "devDependencies",
    "peerDependencies",
)
_PEP508_NAME: Final[re.Pattern[str]] = re.compile(r"^\s*([A-Za-z0-9][A-Za-z0-9._-]*)")
_PEP503_SEPARATORS: Final[re.Pattern[str]] = re.compile(r"[-_.]+")

logger = structlog.get_logger(__name__)


def normalize_python_name(name: str) -> str:
    """PEP 503 normalization: lowercase, runs of ``-_.`` collapse to ``-``."""

    return _PEP503_SEPARATORS.sub("-", name).lower()


def discover_packages(
    root: str | Path,
    kinds: Iterable[str] = tuple(MANIFEST_FILENAMES),
    exclude: Iterable[GlobPattern] = (),
) -> tuple[Package, ...]:
    """Scan ``root`` for manifests of the requested ``kinds``.

    Returned packages are sorted by (root, manifest). Directory names in
    ``SKIPPED_DIRECTORIES`` and paths matching any ``exclude`` pattern are not
    descended into.
    """

    base = Path(root)
    if not base.is_dir():
        raise ManifestError(base.as_posix(), "workspace root is not a directory")

    wanted = {MANIFEST_FILENAMES[kind]: kind for kind in kinds if kind in MANIFEST_FILENAMES}
    exclude_patterns = tuple(exclude)
    readers: dict[str, Callable[[Path, str], Package | None]] = {
        "cargo": read_cargo_manifest,
        "pyproject": read_pyproject_manifest,
        "npm": read_package_json,
    }

    packages: list[Package] = []
    for dirpath, dirnames, filenames in os.walk(base):
        current = Path(dirpath)
        rel_dir = current.relative_to(base).as_posix()
        rel_dir = "" if rel_dir == "." else rel_dir

        kept: list[str] = []
        for name in sorted(dirnames):
            if name in SKIPPED_DIRECTORIES:
                continue
            rel_child = f"{rel_dir}/{name}" if rel_dir else name
            if _excluded(rel_child, exclude_patterns):
                continue
            kept.append(name)
        dirnames[:] = kept

        for filename in sorted(filenames):
            kind = wanted.get(filename)
            if kind is None:
                continue
            rel_manifest = f"{rel_dir}/{filename}" if rel_dir else filename
            if _excluded(rel_manifest, exclude_patterns):
                continue
            package = readers[kind](current / filename, rel_manifest)
            if package is None:
                continue
            logger.debug(
                "manifest_discovered",
                package=package.name,
                manifest=rel_manifest,
                kind=kind,
                dependencies=len(package.dependencies),
            )
            packages.append(package)

    packages.sort(key=lambda item: (item.root, item.manifest))
    return tuple(packages)


def read_cargo_manifest(path: Path, rel_manifest: str) -> Package | None:
    payload = _load_toml(path, rel_manifest)
    package_table = payload.get("package")
    if not isinstance(package_table, Mapping):
        # Virtual workspace manifests only carry [workspace].
        return None
    name = package_table.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ManifestError(rel_manifest, "[package].name must be a non-empty string")

    dependencies: set[str] = set()
    references: set[str] = set()
    tables: list[Mapping[str, Any]] = [payload]
    targets = payload.get("target")
    if isinstance(targets, Mapping):
        tables.extend(value for _, value in sorted(targets.items()) if isinstance(value, Mapping))
    for table in tables:
        for section in _CARGO_DEPENDENCY_TABLES:
            declared = table.get(section)
            if not isinstance(declared, Mapping):
                continue
            for key, spec in declared.items():
                crate = key
                if isinstance(spec, Mapping):
                    renamed = spec.get("package")
                    if isinstance(renamed, str) and renamed.strip():
                        crate = renamed.strip()
                    if "path" in spec:
                        references.add(crate)
                dependencies.add(crate)

    return Package(
        name=name.strip(),
        root=_package_root(rel_manifest),
        manifest=rel_manifest,
        manifest_kind="cargo",
        dependencies=frozenset(dependencies),
        workspace_references=frozenset(references),
    )


def read_pyproject_manifest(path: Path, rel_manifest: str) -> Package | None:
    payload = _load_toml(path, rel_manifest)
    project = payload.get("project")
    if not isinstance(project, Mapping):
        return None
    name = project.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ManifestError(rel_manifest, "[project].name must be a non-empty string")

    requirements: list[str] = []
    declared = project.get("dependencies", [])
    if isinstance(declared, list):
        requirements.extend(item for item in declared if isinstance(item, str))
    optional = project.get("optional-dependencies", {})
    if isinstance(optional, Mapping):
        for _, extra in sorted(optional.items()):
            if isinstance(extra, list):
                requirements.extend(item for item in extra if isinstance(item, str))

    dependencies: set[str] = set()
    for requirement in requirements:
        match = _PEP508_NAME.match(requirement)
        if match is None:
            raise ManifestError(rel_manifest, f"unparseable requirement {requirement!r}")
        dependencies.add(normalize_python_name(match.group(1)))

    return Package(
        name=normalize_python_name(name.strip()),
        root=_package_root(rel_manifest),
        manifest=rel_manifest,
        manifest_kind="pyproject",
        dependencies=frozenset(dependencies),
    )


def read_package_json(path: Path, rel_manifest: str) -> Package | None:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ManifestError(rel_manifest, f"invalid JSON: {exc}") from exc
    except OSError as exc:
        raise ManifestError(rel_manifest, f"unable to read manifest: {exc}") from exc
    if not isinstance(payload, Mapping):
        raise ManifestError(rel_manifest, "manifest root must be an object")

    name = payload.get("name")
    if name is None:
        # Private workspace roots often omit a name.
        return None
    if not isinstance(name, str) or not name.strip():
        raise ManifestError(rel_manifest, "name must be a non-empty string")

    dependencies: set[str] = set()
    references: set[str] = set()
    for section in _NPM_DEPENDENCY_TABLES:
        declared = payload.get(section)
        if not isinstance(declared, Mapping):
            continue
        for dep_name, version in declared.items():
            dependencies.add(dep_name)
            if isinstance(version, str) and version.startswith("workspace:"):
                references.add(dep_name)

    return Package(
        name=name.strip(),
        root=_package_root(rel_manifest),
        manifest=rel_manifest,
        manifest_kind="npm",
        dependencies=frozenset(dependencies),
        workspace_references=frozenset(references),
    )


def _load_toml(path: Path, rel_manifest: str) -> dict[str, Any]:
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ManifestError(rel_manifest, f"invalid TOML: {exc}") from exc
    except OSError as exc:
        raise ManifestError(rel_manifest, f"unable to read manifest: {exc}") from exc


def _package_root(rel_manifest: str) -> str:
    parent = Path(rel_manifest).parent.as_posix()
    return "" if parent == "." else parent


def _excluded(rel_path: str, patterns: tuple[GlobPattern, ...]) -> bool:
    return any(pattern.matches(rel_path) for pattern in patterns)


__all__ = [
    "MANIFEST_FILENAMES",
    "discover_packages",
    "normalize_python_name",
    "read_cargo_manifest",
    "read_package_json",
    "read_pyproject_manifest",
]
