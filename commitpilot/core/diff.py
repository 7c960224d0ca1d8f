"""Diff statistics extraction from unified diff text."""

import logging
import re
from dataclasses import dataclass

from ..errors import DiffParseError

logger = logging.getLogger(__name__)

GIT_HEADER_PREFIX = "diff --git "
HUNK_HEADER = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")
DEV_NULL = "/dev/null"

# Default prefixes plus the ones diff.mnemonicPrefix and --no-index produce
OLD_PREFIXES = ("a/", "c/", "i/", "o/", "1/")
NEW_PREFIXES = ("b/", "i/", "w/", "o/", "2/")


@dataclass(frozen=True)
class DiffStats:
    """Files touched by a diff plus its line counts."""

    files_changed: tuple[str, ...] = ()
    insertions: int = 0
    deletions: int = 0

    @property
    def is_empty(self) -> bool:
        """True when the diff has nothing to operate on."""
        return not self.files_changed and not self.insertions and not self.deletions


def _split_lines(diff: str) -> list[str]:
    """Split on newlines only; file content may hold form feeds and other separators."""
    lines = diff.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def _unquote(path: str) -> str:
    """Undo git's C-style path quoting, e.g. ``"caf\\303\\251.txt"``."""
    if len(path) < 2 or not (path.startswith('"') and path.endswith('"')):
        return path
    inner = path[1:-1]
    try:
        raw = inner.encode("utf-8").decode("unicode_escape").encode("latin-1")
    except UnicodeError:
        return inner
    return raw.decode("utf-8", errors="replace")


def _strip_side(path: str, prefixes: tuple[str, ...]) -> str:
    for prefix in prefixes:
        if path.startswith(prefix):
            return path[len(prefix) :]
    return path


def _parse_git_header(line: str, line_number: int) -> str:
    """Return the post-image path of a ``diff --git a/<old> b/<new>`` line."""
    rest = line[len(GIT_HEADER_PREFIX) :].rstrip()

    # Quoted post-image path, used by git for unusual characters
    if rest.endswith('"'):
        start = rest.rfind(' "')
        if start != -1:
            return _strip_side(_unquote(rest[start + 1 :]), NEW_PREFIXES)

    # Both sides name the same file: split in the middle so paths may contain " b/"
    if len(rest) % 2 == 1:
        half = len(rest) // 2
        old, new = rest[:half], rest[half + 1 :]
        if old == new:
            # diff.noprefix
            return new
        if old[2:] == new[2:] and old[:2] in OLD_PREFIXES and new[:2] in NEW_PREFIXES:
            return new[2:]

    if rest[:2] in OLD_PREFIXES:
        for new_prefix in NEW_PREFIXES:
            marker = rest.rfind(" " + new_prefix)
            if marker != -1:
                return rest[marker + 3 :]
    raise DiffParseError(f"Malformed diff header: {line!r}", line_number)


def _header_path(line: str, prefixes: tuple[str, ...]) -> str:
    """Extract the path from a ``---``/``+++`` header, dropping timestamps."""
    path = line[3:].strip().split("\t", 1)[0]
    return _strip_side(_unquote(path), prefixes)


def extract_diff_stats(diff: str) -> DiffStats:
    """
    Parse unified diff text into a DiffStats.

    Args:
        diff: Unified diff, either git-style or plain ``---``/``+++`` patches.

    Returns:
        DiffStats with files in first-seen order. An empty diff gives
        ``DiffStats((), 0, 0)``.

    Raises:
        DiffParseError: On a malformed file or hunk header, or when the diff
            ends inside a hunk.
    """
    files: dict[str, None] = {}
    insertions = 0
    deletions = 0
    old_remaining = 0
    new_remaining = 0
    git_style = False
    old_path: str | None = None

    for number, line in enumerate(_split_lines(diff), start=1):
        if old_remaining > 0 or new_remaining > 0:
            if line.startswith("\\"):
                continue
            if line.startswith("+"):
                insertions += 1
                new_remaining -= 1
            elif line.startswith("-"):
                deletions += 1
                old_remaining -= 1
            elif line.startswith(" ") or line == "":
                old_remaining -= 1
                new_remaining -= 1
            else:
                raise DiffParseError("Hunk ended before its declared length", number)
            if old_remaining < 0 or new_remaining < 0:
                raise DiffParseError("Hunk is longer than its declared length", number)
            continue

        if line.startswith(GIT_HEADER_PREFIX):
            files.setdefault(_parse_git_header(line, number))
            git_style = True
            old_path = None
        elif line.startswith("@@"):
            match = HUNK_HEADER.match(line)
            if match is None:
                raise DiffParseError(f"Malformed hunk header: {line!r}", number)
            old_remaining = int(match.group(2) or 1)
            new_remaining = int(match.group(4) or 1)
        elif line.startswith("---"):
            old_path = _header_path(line, ("a/",))
        elif line.startswith("+++"):
            if not git_style:
                path = _header_path(line, ("b/",))
                if path == DEV_NULL:
                    path = old_path or ""
                if path and path != DEV_NULL:
                    files.setdefault(path)
        elif line.startswith("+"):
            insertions += 1
        elif line.startswith("-"):
            deletions += 1

    if old_remaining > 0 or new_remaining > 0:
        raise DiffParseError("Diff ended in the middle of a hunk (truncated input)")

    stats = DiffStats(tuple(files), insertions, deletions)
    logger.debug(
        "Diff stats: %d files, +%d -%d", len(stats.files_changed), insertions, deletions
    )
    return stats
