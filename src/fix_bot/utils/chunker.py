"""Split source files into bounded chunks aligned to declaration boundaries.

Boundaries come from a line-pattern heuristic, not a parser: when no
declaration start falls inside the search window the file is cut at exactly
``max_lines``, possibly in the middle of a declaration.
"""

import math
import re
from pathlib import PurePosixPath

from fix_bot.models.chunk_models import Chunk

DEFAULT_MAX_LINES = 700
CONTEXT_SCAN_LIMIT = 50
CHARS_PER_TOKEN = 4

FUNCTION_PATTERNS = [
    re.compile(r"^\s*(export\s+)?(default\s+)?(async\s+)?function\s*\*?\s*\w+"),
    re.compile(r"^\s*(export\s+)?const\s+\w+\s*=\s*(async\s+)?\("),
    re.compile(r"^\s*(export\s+)?const\s+\w+\s*=\s*(async\s+)?function"),
    re.compile(r"^\s*(async\s+)?def\s+\w+"),
]

CLASS_PATTERNS = [
    re.compile(r"^\s*(export\s+)?(default\s+)?(abstract\s+)?class\s+\w+"),
    re.compile(r"^\s*(export\s+)?interface\s+\w+"),
    re.compile(r"^\s*(export\s+)?type\s+\w+"),
    re.compile(r"^\s*(export\s+)?(const\s+)?enum\s+\w+"),
]

IMPORT_PATTERNS = [
    re.compile(r"^\s*import\s+"),
    re.compile(r"^\s*from\s+[\w.]+\s+import\s+"),
]
EXPORT_PATTERN = re.compile(r"^\s*export\s+[*{]")

COMMENT_PREFIXES = ("//", "/*", "*", "#")

# Extensions whose line comments start with "#"
HASH_COMMENT_EXTENSIONS = {
    ".py", ".pyi", ".rb", ".sh", ".bash", ".yml", ".yaml", ".toml", ".r", ".pl",
}


def comment_prefix_for(path: str) -> str:
    """Return the line-comment token used for markers in files like ``path``."""
    suffix = PurePosixPath(path).suffix.lower()
    return "#" if suffix in HASH_COMMENT_EXTENSIONS else "//"


def is_boundary_line(line: str) -> bool:
    """True when ``line`` opens a function, class, interface, type or enum."""
    return any(p.match(line) for p in FUNCTION_PATTERNS) or any(
        p.match(line) for p in CLASS_PATTERNS
    )


def is_import_or_export(line: str) -> bool:
    return any(p.match(line) for p in IMPORT_PATTERNS) or bool(EXPORT_PATTERN.match(line))


def extract_context(lines: list[str]) -> tuple[str, int]:
    """Collect the leading blank/comment/import lines of a file.

    Returns:
        Tuple of (context text, number of context lines).
    """
    context_lines: list[str] = []
    context_end_line = 0

    for line in lines[:CONTEXT_SCAN_LIMIT]:
        stripped = line.strip()
        if not stripped or stripped.startswith(COMMENT_PREFIXES) or is_import_or_export(line):
            context_lines.append(line)
            context_end_line += 1
            continue
        break

    return "\n".join(context_lines), context_end_line


def find_chunk_boundaries(lines: list[str], start: int, max_lines: int) -> list[int]:
    """Return 0-based cut indices after ``start``, the last one being ``len(lines)``."""
    boundaries: list[int] = []
    total = len(lines)
    current = start

    while current < total:
        next_boundary = min(current + max_lines, total)
        lower = current + max_lines // 2
        for index in range(min(current + max_lines, total - 1), lower, -1):
            if is_boundary_line(lines[index]):
                next_boundary = index
                break

        boundaries.append(next_boundary)
        current = next_boundary

    return boundaries


def chunk_file_content(
    content: str,
    max_lines: int = DEFAULT_MAX_LINES,
    comment_prefix: str = "//",
) -> list[Chunk]:
    """Chunk file content by function/class boundaries.

    The first chunk starts at line 1 and therefore already holds the file's
    imports; every later chunk is prefixed with that leading context plus a
    marker naming the omitted line range.

    Args:
        content: The complete file content.
        max_lines: Maximum lines per chunk body.
        comment_prefix: Line-comment token used for the omitted-range marker.

    Returns:
        Ordered chunks whose line ranges partition the file.

    Raises:
        ValueError: If max_lines is smaller than 1.
    """
    if max_lines < 1:
        raise ValueError(f"max_lines must be >= 1, got {max_lines}")

    lines = content.split("\n")

    if len(lines) <= max_lines:
        return [Chunk(snippet=content, start_line=1, end_line=len(lines))]

    context, context_end_line = extract_context(lines)
    cuts = [0] + find_chunk_boundaries(lines, context_end_line, max_lines)
    if cuts[-1] != len(lines):
        cuts.append(len(lines))

    chunks: list[Chunk] = []
    for start, end in zip(cuts, cuts[1:]):
        body = "\n".join(lines[start:end])
        if start == 0:
            chunks.append(Chunk(snippet=body, start_line=1, end_line=end))
            continue

        marker = f"{comment_prefix} ... (lines {context_end_line + 1}-{start} omitted) ..."
        chunks.append(
            Chunk(
                snippet=f"{context}\n\n{marker}\n\n{body}",
                start_line=start + 1,
                end_line=end,
                context=context,
            )
        )

    return chunks


def preview_chunking(content: str, max_lines: int = DEFAULT_MAX_LINES) -> str:
    """Describe how ``content`` would be chunked, for debugging."""
    chunks = chunk_file_content(content, max_lines)
    preview = f"File would be split into {len(chunks)} chunk(s):\n\n"

    for index, chunk in enumerate(chunks, 1):
        snippet_lines = chunk.snippet.split("\n")
        head = "\n".join(snippet_lines[:3])
        preview += f"Chunk {index}:\n"
        preview += f"  Lines: {chunk.start_line}-{chunk.end_line}\n"
        preview += f"  Length: {len(snippet_lines)} lines\n"
        preview += f"  Has context: {'Yes' if chunk.context else 'No'}\n"
        preview += f"  Preview: {head}\n"
        preview += "  ...\n\n"

    return preview


def estimate_tokens(chunks: list[Chunk]) -> int:
    """Rough token estimate for a chunk list (~4 characters per token)."""
    total_chars = sum(len(chunk.snippet) for chunk in chunks)
    return math.ceil(total_chars / CHARS_PER_TOKEN)
