"""Core modules for CommitPilot.

This module contains the core functionality including:
- Git operations
- Diff statistics
- Prompt building
- The commit workflow state machine
"""

from .diff import DiffStats, extract_diff_stats
from .git import GitOperations
from .prompt import CommitContext, ReviewKind, build_commit_prompt, build_review_prompt
from .workflow import Accepted, Cancelled, Generating, WaitingForAction

__all__ = [
    "DiffStats",
    "extract_diff_stats",
    "GitOperations",
    "CommitContext",
    "ReviewKind",
    "build_commit_prompt",
    "build_review_prompt",
    "Accepted",
    "Cancelled",
    "Generating",
    "WaitingForAction",
]
