"""Utilities for the fix bot."""

from fix_bot.utils.chunker import (
    chunk_file_content,
    comment_prefix_for,
    estimate_tokens,
    preview_chunking,
)
from fix_bot.utils.cleanup_scheduler import CleanupHandle, CleanupScheduler
from fix_bot.utils.diff_generator import (
    count_changed_lines,
    detect_code_style,
    generate_unified_diff,
)

__all__ = [
    "CleanupHandle",
    "CleanupScheduler",
    "chunk_file_content",
    "comment_prefix_for",
    "count_changed_lines",
    "detect_code_style",
    "estimate_tokens",
    "generate_unified_diff",
    "preview_chunking",
]
