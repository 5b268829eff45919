"""Boundary-safe chunker.

Splits oversized files into ordered chunks. A split happens after a line
only when the running chunk is over the threshold, the bracket depth is
zero, the scanner is outside comments and strings, and the line is a seam.
Joining the chunk contents in index order always gives back the input.
"""

from __future__ import annotations

import logging
import re

from .lexical import C_FAMILY_RULES, LexicalRules, LexicalScanner, LineState, split_lines
from .models import Chunk, FileRecord

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 8000
DEFAULT_HARD_LIMIT_FACTOR = 4

BOUNDARY_DIRECT = "direct"
BOUNDARY_TAIL = "remaining-tail"
BOUNDARY_FORCED_DEPTH = "forced-depth"
BOUNDARY_FORCED = "forced"

_IMPORT_EXPORT_RE = re.compile(r"^(import\b|export\b|from\s+\S+\s+import\b)")
_CLOSING_BRACE = {"}", "};"}


def chunk(
    content: str,
    size_threshold: int = DEFAULT_CHUNK_SIZE,
    *,
    rules: LexicalRules | None = None,
    source_file: FileRecord | None = None,
    hard_limit_factor: int = DEFAULT_HARD_LIMIT_FACTOR,
) -> list[Chunk]:
    """Split ``content`` into boundary-safe chunks of roughly ``size_threshold`` characters.

    Content at or under the threshold comes back as a single ``direct``
    chunk. Past ``size_threshold * hard_limit_factor`` with no seam in
    sight, the chunker settles for the next line that ends outside
    comments and strings (``forced-depth``); past twice that, it splits at
    the current line regardless (``forced``).
    """
    if size_threshold <= 0:
        raise ValueError(f"size_threshold must be positive, got {size_threshold}")

    lines = split_lines(content)
    if len(content) <= size_threshold:
        return [_make_chunk(0, source_file, 1, max(len(lines), 1), content, BOUNDARY_DIRECT)]

    active = rules or C_FAMILY_RULES
    scanner = LexicalScanner(active)
    hard_limit = size_threshold * max(1, hard_limit_factor)
    last = len(lines) - 1

    chunks: list[Chunk] = []
    start = 0
    size = 0
    for index, line in enumerate(lines):
        state = scanner.feed(line)
        size += len(line)
        if index == last:
            break

        boundary = None
        if size > size_threshold and state.neutral:
            if state.depth == 0:
                boundary = seam_type(line, state, active, lines, index)
            if boundary is None and size > hard_limit:
                boundary = BOUNDARY_FORCED_DEPTH
        if boundary is None and size > hard_limit * 2:
            boundary = BOUNDARY_FORCED

        if boundary is not None:
            if boundary in (BOUNDARY_FORCED_DEPTH, BOUNDARY_FORCED):
                logger.debug(
                    "No safe seam within %d chars, %s split after line %d of %s",
                    hard_limit,
                    boundary,
                    index + 1,
                    source_file.relative_path if source_file else "<content>",
                )
            chunks.append(
                _make_chunk(len(chunks), source_file, start + 1, index + 1, "".join(lines[start : index + 1]), boundary)
            )
            start = index + 1
            size = 0

    if start < len(lines):
        chunks.append(
            _make_chunk(len(chunks), source_file, start + 1, len(lines), "".join(lines[start:]), BOUNDARY_TAIL)
        )
    return chunks


def seam_type(
    line: str,
    state: LineState,
    rules: LexicalRules,
    lines: list[str],
    index: int,
) -> str | None:
    """Classify ``line`` as a seam, or return None when it is not one."""
    stripped = line.strip()
    if not stripped:
        kind = "blank-line"
    elif state.starts_in_comment or _is_comment_line(stripped, rules):
        kind = "comment"
    elif stripped in _CLOSING_BRACE and not rules.indentation_scoped:
        kind = "function-boundary"
    elif _IMPORT_EXPORT_RE.match(stripped):
        kind = "import-export"
    else:
        return None

    if rules.indentation_scoped:
        if kind == "import-export" and line[:1].isspace():
            return None
        if kind in ("blank-line", "comment") and not _next_code_at_top_level(lines, index, rules):
            return None
    return kind


def chunk_kind(content: str) -> str:
    """Rough label for what a chunk mostly holds."""
    if "class " in content:
        return "class-definition"
    if "function " in content or "def " in content:
        return "function-definition"
    if "import " in content or "export " in content:
        return "module-interface"
    if "const " in content or "let " in content:
        return "variable-declarations"
    return "mixed-code"


def _is_comment_line(stripped: str, rules: LexicalRules) -> bool:
    if any(stripped.startswith(prefix) for prefix in rules.line_comment_prefixes):
        return True
    return any(stripped.startswith(start) for start, _ in rules.block_comment_pairs)


def _next_code_at_top_level(lines: list[str], index: int, rules: LexicalRules) -> bool:
    for following in lines[index + 1 :]:
        stripped = following.strip()
        if not stripped or _is_comment_line(stripped, rules):
            continue
        return not following[0].isspace()
    return True


def _make_chunk(
    index: int,
    source_file: FileRecord | None,
    start_line: int,
    end_line: int,
    content: str,
    boundary_type: str,
) -> Chunk:
    return Chunk(
        index=index,
        source_file=source_file,
        start_line=start_line,
        end_line=end_line,
        content=content,
        size_bytes=len(content.encode("utf-8", errors="surrogatepass")),
        boundary_type=boundary_type,
        kind=chunk_kind(content),
    )
