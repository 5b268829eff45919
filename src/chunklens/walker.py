"""Tree walker - lazily enumerates project files.

Directories are pruned by exact name or glob before descending. File contents
are never opened here; the walker only stats entries.
"""

from __future__ import annotations

import fnmatch
import logging
import os
from collections.abc import Iterable, Iterator
from pathlib import Path

from .config import DEFAULT_EXCLUDE
from .models import FileRecord

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 32

# Extension -> language
EXT_LANG = {
    ".js": "javascript", ".mjs": "javascript", ".cjs": "javascript", ".jsx": "javascript",
    ".ts": "typescript", ".tsx": "typescript", ".mts": "typescript", ".cts": "typescript",
    ".py": "python", ".pyi": "python",
    ".java": "java", ".kt": "kotlin", ".scala": "scala",
    ".go": "go",
    ".rs": "rust",
    ".cs": "csharp",
    ".php": "php",
    ".swift": "swift",
    ".c": "c", ".h": "c",
    ".cpp": "cpp", ".cc": "cpp", ".cxx": "cpp", ".hpp": "cpp",
    ".rb": "ruby",
    ".json": "json",
    ".md": "markdown",
    ".yaml": "yaml", ".yml": "yaml",
    ".toml": "toml",
}


def detect_language(extension: str) -> str:
    return EXT_LANG.get(extension.lower(), "unknown")


def should_exclude(name: str, relative_path: str, exclude: Iterable[str]) -> bool:
    """Return True when an entry matches an exclusion rule.

    A rule matches the entry name exactly, or as a glob against the name or
    the root-relative path.
    """
    for pattern in exclude:
        if name == pattern:
            return True
        if fnmatch.fnmatch(name, pattern) or fnmatch.fnmatch(relative_path, pattern):
            return True
    return False


def walk(
    root: str | Path,
    exclude: Iterable[str] = DEFAULT_EXCLUDE,
    *,
    max_depth: int = DEFAULT_MAX_DEPTH,
    include_extensions: Iterable[str] | None = None,
) -> Iterator[FileRecord]:
    """Yield a ``FileRecord`` for every non-excluded file under ``root``.

    Traversal is depth-first in directory-read order. Directories nested
    deeper than ``max_depth`` are not entered, and a directory reached twice
    through symlinks is only walked once.
    """
    root_path = Path(root).resolve()
    if not root_path.is_dir():
        raise ValueError(f"Not a directory: {root_path}")

    rules = tuple(exclude)
    extensions = {ext.lower() for ext in include_extensions} if include_extensions is not None else None
    seen_dirs: set[tuple[int, int]] = set()
    stack: list[tuple[str, str, int]] = [(str(root_path), "", 0)]

    while stack:
        current, rel_dir, depth = stack.pop()
        try:
            stat = os.stat(current)
        except OSError as exc:
            logger.warning("Skipping unreadable directory %s: %s", current, exc)
            continue
        identity = (stat.st_dev, stat.st_ino)
        if identity in seen_dirs:
            logger.debug("Already visited %s, not following again", current)
            continue
        seen_dirs.add(identity)

        try:
            with os.scandir(current) as iterator:
                entries = list(iterator)
        except OSError as exc:
            logger.warning("Skipping unreadable directory %s: %s", current, exc)
            continue

        subdirs: list[tuple[str, str, int]] = []
        for entry in entries:
            rel = f"{rel_dir}/{entry.name}" if rel_dir else entry.name
            if should_exclude(entry.name, rel, rules):
                continue
            try:
                if entry.is_dir():
                    if depth + 1 > max_depth:
                        logger.debug("Max depth %d reached at %s", max_depth, rel)
                        continue
                    subdirs.append((entry.path, rel, depth + 1))
                    continue
                if not entry.is_file():
                    continue
                ext = os.path.splitext(entry.name)[1].lower()
                if extensions is not None and ext not in extensions:
                    continue
                info = entry.stat()
            except OSError as exc:
                logger.warning("Skipping unreadable entry %s: %s", rel, exc)
                continue

            yield FileRecord(
                path=os.path.abspath(entry.path),
                relative_path=rel,
                extension=ext,
                size_bytes=info.st_size,
                modified_at=info.st_mtime,
                language=detect_language(ext),
            )

        # reversed so the stack pops subdirectories in directory-read order
        stack.extend(reversed(subdirs))
