"""Data model shared by every stage of the analysis pipeline.

Everything here is a frozen dataclass: records are built once by the stage
that owns them and handed downstream unchanged. ``to_dict()`` produces the
JSON-shaped view consumed by document generators and API layers.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any

STRATEGY_DIRECT = "direct"
STRATEGY_CHUNKED = "chunked"
STRATEGY_SHALLOW = "shallow"


def _plain(value: Any) -> Any:
    """Convert dataclasses, tuples and sets into JSON-friendly structures."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        if hasattr(value, "to_dict"):
            return value.to_dict()
        return {f.name: _plain(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, dict):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if isinstance(value, (set, frozenset)):
        return sorted(_plain(v) for v in value)
    return value


@dataclass(frozen=True, slots=True)
class FileRecord:
    """One file discovered by the tree walker."""

    path: str
    relative_path: str
    extension: str
    size_bytes: int
    modified_at: float
    role: str = "generic"
    language: str = "unknown"

    @property
    def name(self) -> str:
        return self.relative_path.rsplit("/", 1)[-1]

    def with_role(self, role: str) -> FileRecord:
        return dataclasses.replace(self, role=role)

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "relative_path": self.relative_path,
            "extension": self.extension,
            "size_bytes": self.size_bytes,
            "modified_at": self.modified_at,
            "role": self.role,
            "language": self.language,
        }


@dataclass(frozen=True, slots=True)
class ChunkSpan:
    """Position and provenance of a chunk, without its content."""

    index: int
    start_line: int
    end_line: int
    size_bytes: int
    boundary_type: str
    kind: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "start_line": self.start_line,
            "end_line": self.end_line,
            "size_bytes": self.size_bytes,
            "boundary_type": self.boundary_type,
            "kind": self.kind,
        }


@dataclass(frozen=True, slots=True)
class Chunk:
    """A contiguous slice of one file, analysed independently."""

    index: int
    source_file: FileRecord | None
    start_line: int
    end_line: int
    content: str
    size_bytes: int
    boundary_type: str
    kind: str = "mixed-code"

    @property
    def line_count(self) -> int:
        return self.end_line - self.start_line + 1

    def span(self) -> ChunkSpan:
        return ChunkSpan(
            index=self.index,
            start_line=self.start_line,
            end_line=self.end_line,
            size_bytes=self.size_bytes,
            boundary_type=self.boundary_type,
            kind=self.kind,
        )

    def to_dict(self, include_content: bool = False) -> dict[str, Any]:
        data = self.span().to_dict()
        data["line_count"] = self.line_count
        data["source_file"] = self.source_file.relative_path if self.source_file else None
        if include_content:
            data["content"] = self.content
        return data


# --- Extracted entities ---


@dataclass(frozen=True, slots=True)
class FunctionInfo:
    name: str
    line: int
    end_line: int
    params: tuple[str, ...] = ()
    is_async: bool = False
    exported: bool = False
    kind: str = "declaration"
    complexity: int = 1
    calls: tuple[str, ...] = ()
    chunk_index: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return _plain_fields(self)


@dataclass(frozen=True, slots=True)
class ClassInfo:
    name: str
    line: int
    end_line: int
    superclass: str | None = None
    methods: tuple[str, ...] = ()
    properties: tuple[str, ...] = ()
    constructor_params: tuple[str, ...] = ()
    exported: bool = False
    chunk_index: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return _plain_fields(self)


@dataclass(frozen=True, slots=True)
class ImportInfo:
    module: str
    names: tuple[str, ...]
    kind: str
    external: bool
    line: int

    def to_dict(self) -> dict[str, Any]:
        return _plain_fields(self)


@dataclass(frozen=True, slots=True)
class ExportInfo:
    name: str
    kind: str
    line: int

    def to_dict(self) -> dict[str, Any]:
        return _plain_fields(self)


@dataclass(frozen=True, slots=True)
class ConstantInfo:
    name: str
    kind: str
    line: int

    def to_dict(self) -> dict[str, Any]:
        return _plain_fields(self)


@dataclass(frozen=True, slots=True)
class CommentInfo:
    kind: str
    text: str
    line: int

    def to_dict(self) -> dict[str, Any]:
        return _plain_fields(self)


@dataclass(frozen=True, slots=True)
class RouteInfo:
    method: str
    path: str
    line: int

    def to_dict(self) -> dict[str, Any]:
        return _plain_fields(self)


@dataclass(frozen=True, slots=True)
class Issue:
    """A problem found in the analysed content or while analysing it."""

    kind: str
    message: str
    severity: str = "low"
    line: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return _plain_fields(self)


def _plain_fields(obj: Any) -> dict[str, Any]:
    return {f.name: _plain(getattr(obj, f.name)) for f in dataclasses.fields(obj)}


# --- Per-chunk and per-module results ---


@dataclass(frozen=True, slots=True)
class ChunkAnalysis:
    """Structural facts extracted from a single chunk.

    Line numbers of every entity are local to the chunk (1-based); the merger
    translates them into file-absolute numbers.
    """

    chunk: Chunk
    functions: tuple[FunctionInfo, ...] = ()
    classes: tuple[ClassInfo, ...] = ()
    imports: tuple[ImportInfo, ...] = ()
    exports: tuple[ExportInfo, ...] = ()
    constants: tuple[ConstantInfo, ...] = ()
    comments: tuple[CommentInfo, ...] = ()
    routes: tuple[RouteInfo, ...] = ()
    complexity_score: int = 1
    pattern_tags: tuple[str, ...] = ()
    issues: tuple[Issue, ...] = ()
    findings: tuple[Issue, ...] = ()
    identifiers: frozenset[str] = frozenset()

    def to_dict(self) -> dict[str, Any]:
        return {
            "chunk": self.chunk.to_dict(),
            "functions": _plain(self.functions),
            "classes": _plain(self.classes),
            "imports": _plain(self.imports),
            "exports": _plain(self.exports),
            "constants": _plain(self.constants),
            "comments": _plain(self.comments),
            "routes": _plain(self.routes),
            "complexity_score": self.complexity_score,
            "pattern_tags": list(self.pattern_tags),
            "issues": _plain(self.issues),
            "findings": _plain(self.findings),
        }


@dataclass(frozen=True, slots=True)
class SharedSymbol:
    """A name declared in one chunk and referenced from other chunks."""

    name: str
    kind: str
    defined_in: int
    used_in: tuple[int, ...]

    def to_dict(self) -> dict[str, Any]:
        return _plain_fields(self)


@dataclass(frozen=True, slots=True)
class CrossChunkInsights:
    chunk_count: int = 1
    shared_symbols: tuple[SharedSymbol, ...] = ()
    imports_used_across_chunks: tuple[str, ...] = ()

    @property
    def has_cross_references(self) -> bool:
        return bool(self.shared_symbols)

    def to_dict(self) -> dict[str, Any]:
        return {
            "chunk_count": self.chunk_count,
            "shared_symbols": _plain(self.shared_symbols),
            "imports_used_across_chunks": list(self.imports_used_across_chunks),
        }


@dataclass(frozen=True, slots=True)
class ModuleAnalysis:
    """Merged structural summary of one file, chunked or not."""

    file: FileRecord
    strategy: str
    total_functions: int
    total_classes: int
    merged_functions: tuple[FunctionInfo, ...]
    merged_classes: tuple[ClassInfo, ...]
    complexity: int
    dependencies: tuple[str, ...]
    cross_chunk_insights: CrossChunkInsights
    imports: tuple[ImportInfo, ...] = ()
    exports: tuple[ExportInfo, ...] = ()
    constants: tuple[ConstantInfo, ...] = ()
    comments: tuple[CommentInfo, ...] = ()
    routes: tuple[RouteInfo, ...] = ()
    pattern_tags: dict[str, int] = field(default_factory=dict)
    issues: tuple[Issue, ...] = ()
    findings: tuple[Issue, ...] = ()
    technical_debt: float | None = None
    chunks: tuple[ChunkSpan, ...] = ()
    line_count: int = 0
    truncated: bool = False

    @property
    def chunk_count(self) -> int:
        return len(self.chunks)

    def to_dict(self) -> dict[str, Any]:
        return {
            "file": self.file.to_dict(),
            "strategy": self.strategy,
            "total_functions": self.total_functions,
            "total_classes": self.total_classes,
            "merged_functions": _plain(self.merged_functions),
            "merged_classes": _plain(self.merged_classes),
            "complexity": self.complexity,
            "dependencies": list(self.dependencies),
            "cross_chunk_insights": self.cross_chunk_insights.to_dict(),
            "imports": _plain(self.imports),
            "exports": _plain(self.exports),
            "constants": _plain(self.constants),
            "comments": _plain(self.comments),
            "routes": _plain(self.routes),
            "pattern_tags": dict(self.pattern_tags),
            "issues": _plain(self.issues),
            "findings": _plain(self.findings),
            "technical_debt": self.technical_debt,
            "chunks": _plain(self.chunks),
            "chunk_count": self.chunk_count,
            "line_count": self.line_count,
            "truncated": self.truncated,
        }


@dataclass(frozen=True, slots=True)
class CacheEntry:
    key: tuple[str, int]
    value: ModuleAnalysis
    created_at: float


@dataclass(frozen=True, slots=True)
class SkippedFile:
    """A file the run could not analyse, with the reason why."""

    path: str
    reason: str
    detail: str = ""

    def to_dict(self) -> dict[str, Any]:
        return _plain_fields(self)


FAILURE_REASONS = frozenset({"timeout", "error", "decode-error", "access-error"})


# --- Project level ---


@dataclass(frozen=True, slots=True)
class ProjectMetrics:
    """Aggregate project shape used to tune analysis depth."""

    total_files: int = 0
    code_files: int = 0
    sampled_files: int = 0
    total_lines: int = 0
    primary_language: str = "unknown"
    languages: dict[str, int] = field(default_factory=dict)
    estimated_complexity: float = 0.0
    project_size: str = "small"

    def to_dict(self) -> dict[str, Any]:
        return _plain_fields(self)


@dataclass(frozen=True, slots=True)
class ProjectAnalysis:
    """Aggregate result of one analysis run. Read-only once built."""

    root: str
    name: str
    modules: tuple[ModuleAnalysis, ...]
    metrics: ProjectMetrics
    config: dict[str, Any] = field(default_factory=dict)
    total_lines: int = 0
    complexity_distribution: dict[str, int] = field(default_factory=dict)
    architecture_files: tuple[str, ...] = ()
    dependency_graph: dict[str, list[str]] = field(default_factory=dict)
    internal_edges: dict[str, list[str]] = field(default_factory=dict)
    chunking_stats: dict[str, float] = field(default_factory=dict)
    skipped: tuple[SkippedFile, ...] = ()
    cache_hits: int = 0
    cancelled: bool = False
    duration_seconds: float = 0.0

    @property
    def primary_language(self) -> str:
        return self.metrics.primary_language

    @property
    def analyzed_count(self) -> int:
        return len(self.modules)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)

    @property
    def failed_count(self) -> int:
        return sum(1 for s in self.skipped if s.reason in FAILURE_REASONS)

    def module(self, relative_path: str) -> ModuleAnalysis | None:
        for module in self.modules:
            if module.file.relative_path == relative_path:
                return module
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "root": self.root,
            "name": self.name,
            "primary_language": self.primary_language,
            "total_lines": self.total_lines,
            "metrics": self.metrics.to_dict(),
            "config": _plain(self.config),
            "complexity_distribution": dict(self.complexity_distribution),
            "architecture_files": list(self.architecture_files),
            "dependency_graph": _plain(self.dependency_graph),
            "internal_edges": _plain(self.internal_edges),
            "chunking_stats": dict(self.chunking_stats),
            "analyzed_count": self.analyzed_count,
            "skipped_count": self.skipped_count,
            "failed_count": self.failed_count,
            "skipped": _plain(self.skipped),
            "cache_hits": self.cache_hits,
            "cancelled": self.cancelled,
            "duration_seconds": round(self.duration_seconds, 3),
            "modules": [m.to_dict() for m in self.modules],
        }
