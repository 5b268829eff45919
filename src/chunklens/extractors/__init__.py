"""Pluggable structural extractors, one per language family."""

from __future__ import annotations

from ..models import Chunk, ChunkAnalysis
from .base import BaseExtractor, SourceView, StructuralExtractor
from .javascript import CFamilyExtractor, JavaScriptExtractor
from .python import PythonExtractor
from .registry import ExtractorRegistry, default_registry

_DEFAULT_REGISTRY = default_registry()


def extract(content: Chunk | str, path: str = "", *, quality: bool = False) -> ChunkAnalysis:
    """Extract structure from a chunk, or from whole-file text as a single chunk."""
    if isinstance(content, str):
        content = Chunk(
            index=0,
            source_file=None,
            start_line=1,
            end_line=max(1, content.count("\n") + (0 if content.endswith("\n") else 1)),
            content=content,
            size_bytes=len(content.encode("utf-8", errors="surrogatepass")),
            boundary_type="direct",
        )
    if not path and content.source_file is not None:
        path = content.source_file.path
    return _DEFAULT_REGISTRY.select(path).extract(content, quality=quality)


__all__ = [
    "BaseExtractor",
    "CFamilyExtractor",
    "ExtractorRegistry",
    "JavaScriptExtractor",
    "PythonExtractor",
    "SourceView",
    "StructuralExtractor",
    "default_registry",
    "extract",
]
