"""Git operations module."""

import logging
import os
import subprocess

from ..errors import GitError, InvalidInputError

logger = logging.getLogger(__name__)

DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024

# Pin the patch format regardless of color, external diff and prefix settings
DIFF_FORMAT_ARGS = ["--no-color", "--no-ext-diff", "--src-prefix=a/", "--dst-prefix=b/"]


def _run(args: list[str], action: str, input: str | None = None) -> str:
    """Run a git command and return its stdout, raising GitError on failure."""
    logger.debug("Running git %s", " ".join(args))
    try:
        result = subprocess.run(
            ["git", *args], input=input, capture_output=True, text=True, check=True
        )
    except FileNotFoundError as e:
        raise GitError("git executable not found.", "Install git and make sure it is on PATH.") from e
    except subprocess.CalledProcessError as e:
        error_msg = e.stderr.strip() if e.stderr else str(e)
        raise GitError(f"Failed to {action}: {error_msg}") from e
    return result.stdout


class GitOperations:
    """Basic git operations handler."""

    @staticmethod
    def has_staged_changes() -> bool:
        """Check whether the index differs from HEAD."""
        try:
            status = subprocess.run(
                ["git", "diff", "--cached", "--quiet"],
                capture_output=True,
                text=True,
            )
        except FileNotFoundError as e:
            raise GitError("git executable not found.", "Install git and make sure it is on PATH.") from e

        # --quiet exits 1 when there are differences, anything else is a failure
        if status.returncode == 0:
            return False
        if status.returncode == 1:
            return True
        error_msg = status.stderr.strip() if status.stderr else f"exit code {status.returncode}"
        raise GitError(f"Failed to check staged changes: {error_msg}")

    @staticmethod
    def get_staged_diff() -> str:
        """Get the diff of everything staged for commit."""
        return _run(["diff", "--cached", *DIFF_FORMAT_ARGS], "get staged diff")

    @staticmethod
    def get_uncommitted_diff() -> str:
        """Get the diff of working tree changes not yet staged."""
        return _run(["diff", *DIFF_FORMAT_ARGS], "get uncommitted diff")

    @staticmethod
    def get_commit_diff(commit_hash: str) -> str:
        """Get the diff introduced by a single commit."""
        if not commit_hash or commit_hash.startswith("-"):
            raise InvalidInputError(f"Invalid commit hash: {commit_hash!r}")
        return _run(
            ["show", "--format=", *DIFF_FORMAT_ARGS, commit_hash], f"get diff of {commit_hash}"
        )

    @staticmethod
    def get_range_diff(commit_range: str) -> str:
        """Get the diff between the two ends of a ``base..head`` range."""
        parts = commit_range.split("..")
        if len(parts) != 2 or not all(parts) or any(p.startswith("-") for p in parts):
            raise InvalidInputError(
                f"Invalid range format: {commit_range}. Expected format: base..head"
            )
        base, head = parts
        return _run(["diff", *DIFF_FORMAT_ARGS, base, head], f"get diff of {commit_range}")

    @staticmethod
    def get_file_content(path: str, max_size: int = DEFAULT_MAX_FILE_SIZE) -> str:
        """Read a file for review, refusing anything larger than ``max_size`` bytes."""
        try:
            size = os.path.getsize(path)
        except OSError as e:
            raise InvalidInputError(f"Cannot read {path}: {e.strerror or e}") from e
        if size > max_size:
            raise InvalidInputError(
                f"File too large: {size} bytes (max {max_size} bytes). Please review manually."
            )
        try:
            with open(path, encoding="utf-8") as f:
                return f.read()
        except UnicodeDecodeError as e:
            raise InvalidInputError(f"{path} is not a UTF-8 text file.") from e
        except OSError as e:
            raise InvalidInputError(f"Cannot read {path}: {e.strerror or e}") from e

    @staticmethod
    def get_current_branch() -> str | None:
        """Get the checked out branch name, or None on a detached HEAD."""
        try:
            result = subprocess.run(
                ["git", "symbolic-ref", "--quiet", "--short", "HEAD"],
                capture_output=True,
                text=True,
            )
        except FileNotFoundError as e:
            raise GitError("git executable not found.", "Install git and make sure it is on PATH.") from e

        if result.returncode == 0:
            return result.stdout.strip() or None
        if result.returncode == 1:
            # Not a symbolic ref: detached HEAD
            return None
        error_msg = result.stderr.strip() if result.stderr else f"exit code {result.returncode}"
        raise GitError(f"Failed to get current branch: {error_msg}")

    @staticmethod
    def commit(message: str) -> None:
        """Create a commit with exactly the given message."""
        _run(["commit", "--cleanup=verbatim", "-F", "-"], "create commit", input=message)
