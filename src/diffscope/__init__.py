"""
diffscope — change-impact planning for monorepo CI.

File: src/diffscope/__init__.py

Purpose
- Package root. Given a version-control diff, decide which pipeline surfaces
  must run and which workspace packages are affected.

Functional requirements
- Must not have side effects at import time (no config loading, no logging init).
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
