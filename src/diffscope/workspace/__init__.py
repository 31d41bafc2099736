"""Manifest discovery and the closed intra-workspace dependency graph."""

from diffscope.workspace.graph import WorkspaceGraph
from diffscope.workspace.manifests import MANIFEST_FILENAMES, discover_packages

__all__ = ["MANIFEST_FILENAMES", "WorkspaceGraph", "discover_packages"]
