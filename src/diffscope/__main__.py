"""Module entrypoint for ``python -m diffscope``."""

from __future__ import annotations

from diffscope.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
