"""UI package exports for the CLI router and plan rendering."""

from diffscope.ui.cli import CLIError, build_parser, run_cli
from diffscope.ui.render import (
    OUTPUT_FORMATS,
    filter_decision,
    kv_pairs,
    render,
    write_github_output,
)

__all__ = [
    "CLIError",
    "OUTPUT_FORMATS",
    "build_parser",
    "filter_decision",
    "kv_pairs",
    "render",
    "run_cli",
    "write_github_output",
]
