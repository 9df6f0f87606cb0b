"""Utilities for describing generated changes against their originals."""

import difflib
import re
from collections import Counter

HUNK_HEADER_RE = re.compile(r"^@@ -\d+(?:,(\d+))? \+\d+(?:,(\d+))? @@")


def generate_unified_diff(path: str, before: str, after: str) -> str:
    """Render a git-style unified diff of one replaced file.

    ``before`` is the snapshot fetched from the repository (empty for a new
    file) and ``after`` the generator's full replacement. Identical contents
    yield an empty string.
    """
    if before == after:
        return ""

    diff_lines = difflib.unified_diff(
        before.splitlines(keepends=True),
        after.splitlines(keepends=True),
        fromfile=f"a/{path}",
        tofile=f"b/{path}",
        lineterm="",
    )

    # keepends=True leaves the newline on content lines; headers have none
    return "\n".join(line.rstrip("\n") for line in diff_lines)


def count_changed_lines(diff_text: str) -> tuple[int, int]:
    """Return (added, removed) line counts of a unified diff.

    Only lines inside a hunk are counted, so ``---``/``+++`` file headers
    are skipped while content such as ``-- comment`` or ``++i`` is not.
    """
    added = removed = 0
    old_left = new_left = 0
    for line in diff_text.splitlines():
        if old_left <= 0 and new_left <= 0:
            match = HUNK_HEADER_RE.match(line)
            if match:
                old_left = int(match.group(1) or 1)
                new_left = int(match.group(2) or 1)
            continue
        if line.startswith("+"):
            added += 1
            new_left -= 1
        elif line.startswith("-"):
            removed += 1
            old_left -= 1
        elif not line.startswith("\\"):
            old_left -= 1
            new_left -= 1
    return added, removed


def detect_code_style(source_code: str) -> dict[str, str]:
    """Guess indentation and quoting so the prompt can ask the model to keep them.

    Returns:
        ``{"indent": "2 spaces" | "4 spaces" | "tabs" | ..., "quotes": "single" | "double"}``
    """
    if not source_code:
        return {"indent": "4 spaces", "quotes": "double"}

    widths: Counter[int] = Counter()
    indent = None
    for line in source_code.splitlines():
        if line.startswith("\t"):
            indent = "tabs"
            break
        width = len(line) - len(line.lstrip(" "))
        if width and line.strip():
            widths[width] += 1

    if indent is None:
        # Smallest indent level is taken as the base unit
        indent = f"{min(widths)} spaces" if widths else "4 spaces"

    quotes = "single" if source_code.count("'") > source_code.count('"') else "double"
    return {"indent": indent, "quotes": quotes}
