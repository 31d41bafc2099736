"""Read-only git inspection producing change sets."""

from diffscope.vcs.collector import ChangeSetCollector, CollectRequest
from diffscope.vcs.git_engine import CommandResult, GitCommandError, GitEngine, NameStatusEntry

__all__ = [
    "ChangeSetCollector",
    "CollectRequest",
    "CommandResult",
    "GitCommandError",
    "GitEngine",
    "NameStatusEntry",
]
