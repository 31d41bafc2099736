"""Stable constants shared across planning stages."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Final

# Schema versions for persisted/emitted contracts.
CONFIG_SCHEMA_VERSION: Final[int] = 1
DECISION_SCHEMA_VERSION: Final[int] = 1
RECEIPT_SCHEMA_VERSION: Final[int] = 1

# Surfaces.
INFRA_SURFACE: Final[str] = "infra"
BUILTIN_SURFACE_NAMES: Final[tuple[str, ...]] = (
    "build",
    "test",
    "bench",
    "lint",
    "docs",
    INFRA_SURFACE,
)
CUSTOM_SURFACE_PREFIX: Final[str] = "custom:"

# Confidence policies.
BUILTIN_POLICY_NAMES: Final[tuple[str, ...]] = ("balanced", "strict", "targeted")
DEFAULT_POLICY: Final[str] = "balanced"
DEFAULT_AUTOMATED_POLICY: Final[str] = "strict"

# Git defaults.
DEFAULT_BASE_BRANCH: Final[str] = "main"
DEFAULT_TARGET_REVISION: Final[str] = "HEAD"
DEFAULT_GIT_TIMEOUT_SECONDS: Final[float] = 30.0

# Environment inputs.
ENV_PREFIX: Final[str] = "DIFFSCOPE_"
ENV_BASE_REVISION: Final[str] = "DIFFSCOPE_BASE"
ENV_AUTHOR: Final[str] = "DIFFSCOPE_AUTHOR"
ENV_GITHUB_ACTOR: Final[str] = "GITHUB_ACTOR"
ENV_GITHUB_OUTPUT: Final[str] = "GITHUB_OUTPUT"

# Workspace scanning.
SKIPPED_DIRECTORIES: Final[frozenset[str]] = frozenset(
    {".git", ".hg", "target", "node_modules", ".venv", "venv", "__pycache__", ".tox"}
)
SHARED_CONFIG_FILENAMES: Final[frozenset[str]] = frozenset(
    {
        "Cargo.toml",
        "Cargo.lock",
        "pyproject.toml",
        "package.json",
        "package-lock.json",
        "rust-toolchain.toml",
        "diffscope.toml",
    }
)

# Receipts.
DEFAULT_RECEIPTS_DIR: Final[PurePosixPath] = PurePosixPath(".diffscope/receipts")

__all__ = [
    "BUILTIN_POLICY_NAMES",
    "BUILTIN_SURFACE_NAMES",
    "CONFIG_SCHEMA_VERSION",
    "CUSTOM_SURFACE_PREFIX",
    "DECISION_SCHEMA_VERSION",
    "DEFAULT_AUTOMATED_POLICY",
    "DEFAULT_BASE_BRANCH",
    "DEFAULT_GIT_TIMEOUT_SECONDS",
    "DEFAULT_POLICY",
    "DEFAULT_RECEIPTS_DIR",
    "DEFAULT_TARGET_REVISION",
    "ENV_AUTHOR",
    "ENV_BASE_REVISION",
    "ENV_GITHUB_ACTOR",
    "ENV_GITHUB_OUTPUT",
    "ENV_PREFIX",
    "INFRA_SURFACE",
    "RECEIPT_SCHEMA_VERSION",
    "SHARED_CONFIG_FILENAMES",
    "SKIPPED_DIRECTORIES",
]
