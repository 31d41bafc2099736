"""
diffscope — filesystem utilities

File: src/diffscope/utils/fs.py

Purpose
- Atomic file replacement for artifacts other tools read (decision receipts).

Functional requirements
- Atomic writes use temp files in the destination directory and replace in a single step.
"""

from __future__ import annotations

import contextlib
import os
import tempfile
from pathlib import Path

PathLike = str | os.PathLike[str]

__all__ = ["atomic_write"]


def atomic_write(path: PathLike, data: bytes | str, *, encoding: str = "utf-8") -> None:
    """
    Atomically write ``data`` to ``path``.

    The write strategy is:
    1. create temp file in the same directory,
    2. write + flush + fsync file data,
    3. replace target via ``os.replace``.
    """

    target = Path(path)
    target_parent = target.parent.resolve(strict=True)
    if not target_parent.is_dir():
        raise NotADirectoryError(f"{target_parent!s} is not a directory")

    fd, temp_name = tempfile.mkstemp(
        prefix=f".{target.name}.",
        suffix=".tmp",
        dir=str(target_parent),
    )
    temp_path = Path(temp_name)
    payload = data if isinstance(data, bytes) else data.encode(encoding)

    try:
        with os.fdopen(fd, "wb") as file_handle:
            file_handle.write(payload)
            file_handle.flush()
            os.fsync(file_handle.fileno())
        os.replace(temp_path, target)
    except Exception:
        with contextlib.suppress(OSError):
            temp_path.unlink(missing_ok=True)
        raise
