"""Chunk merger - folds ordered chunk analyses into one ModuleAnalysis.

Entity line numbers are translated from chunk-local to file-absolute
(``chunk.start_line + local - 1``). A function or class re-detected by a
neighbouring chunk within ``dedup_distance`` lines is merged into one entry.
"""

from __future__ import annotations

import dataclasses
from collections import Counter
from collections.abc import Iterable, Sequence
from typing import Any, TypeVar

from .models import (
    STRATEGY_CHUNKED,
    STRATEGY_DIRECT,
    ChunkAnalysis,
    ClassInfo,
    CrossChunkInsights,
    FileRecord,
    FunctionInfo,
    Issue,
    ModuleAnalysis,
    SharedSymbol,
)

DEFAULT_DEDUP_DISTANCE = 3

SEVERITY_WEIGHTS = {"low": 1, "medium": 2, "high": 3}

T = TypeVar("T")


def merge(
    file: FileRecord,
    chunk_analyses: Sequence[ChunkAnalysis],
    *,
    dedup_distance: int = DEFAULT_DEDUP_DISTANCE,
    strategy: str | None = None,
    truncated: bool = False,
    technical_debt: bool = False,
    line_count: int | None = None,
) -> ModuleAnalysis:
    """Merge per-chunk results, in chunk index order, into a ModuleAnalysis.

    ``line_count`` is the length of the whole file when only a prefix of its
    chunks was analysed; it defaults to the last analysed line.
    """
    if not chunk_analyses:
        raise ValueError(f"No chunk analyses to merge for {file.relative_path}")
    ordered = sorted(chunk_analyses, key=lambda item: item.chunk.index)
    indices = [item.chunk.index for item in ordered]
    if len(set(indices)) != len(indices):
        raise ValueError(f"Duplicate chunk indices for {file.relative_path}: {indices}")

    functions: list[FunctionInfo] = []
    classes: list[ClassInfo] = []
    imports: list[Any] = []
    exports: list[Any] = []
    constants: list[Any] = []
    comments: list[Any] = []
    routes: list[Any] = []
    issues: list[Issue] = []
    findings: list[Issue] = []
    patterns: Counter[str] = Counter()
    complexity = 0

    for analysis in ordered:
        chunk = analysis.chunk
        offset = chunk.start_line - 1
        for fn in analysis.functions:
            placed = dataclasses.replace(
                fn, line=fn.line + offset, end_line=fn.end_line + offset, chunk_index=chunk.index
            )
            _absorb(functions, placed, dedup_distance, _merge_functions)
        for cls in analysis.classes:
            placed = dataclasses.replace(
                cls, line=cls.line + offset, end_line=cls.end_line + offset, chunk_index=chunk.index
            )
            _absorb(classes, placed, dedup_distance, _merge_classes)
        imports.extend(_shift(analysis.imports, offset))
        exports.extend(_shift(analysis.exports, offset))
        constants.extend(_shift(analysis.constants, offset))
        comments.extend(_shift(analysis.comments, offset))
        routes.extend(_shift(analysis.routes, offset))
        issues.extend(_shift(analysis.issues, offset))
        findings.extend(_shift(analysis.findings, offset))
        patterns.update(set(analysis.pattern_tags))
        complexity += analysis.complexity_score

    imports = _unique(imports, lambda item: (item.module, item.line))
    exports = _unique(exports, lambda item: (item.name, item.kind))
    constants = _unique(constants, lambda item: (item.name, item.kind))
    routes = _unique(routes, lambda item: (item.method, item.path, item.line))
    dependencies = tuple(dict.fromkeys(item.module for item in imports))

    spans = tuple(analysis.chunk.span() for analysis in ordered)
    analysed_lines = ordered[-1].chunk.end_line
    if line_count is None:
        line_count = analysed_lines
    if strategy is None:
        direct = len(ordered) == 1 and ordered[0].chunk.boundary_type == STRATEGY_DIRECT
        strategy = STRATEGY_DIRECT if direct else STRATEGY_CHUNKED

    debt = _technical_debt(findings, analysed_lines) if technical_debt else None

    return ModuleAnalysis(
        file=file,
        strategy=strategy,
        total_functions=len(functions),
        total_classes=len(classes),
        merged_functions=tuple(functions),
        merged_classes=tuple(classes),
        complexity=complexity,
        dependencies=dependencies,
        cross_chunk_insights=cross_chunk_insights(ordered),
        imports=tuple(imports),
        exports=tuple(exports),
        constants=tuple(constants),
        comments=tuple(comments),
        routes=tuple(routes),
        pattern_tags=dict(sorted(patterns.items())),
        issues=tuple(issues),
        findings=tuple(findings),
        technical_debt=debt,
        chunks=spans,
        line_count=line_count,
        truncated=truncated,
    )


def cross_chunk_insights(ordered: Sequence[ChunkAnalysis]) -> CrossChunkInsights:
    """Resolve names declared in one chunk and referenced from others.

    The symbol table over every chunk is built first, so a reference from an
    earlier chunk to a later declaration is found as well.
    """
    table: dict[str, tuple[str, int]] = {}
    import_modules: dict[str, str] = {}
    for analysis in ordered:
        index = analysis.chunk.index
        declared: list[tuple[str, str]] = []
        declared += [(fn.name, "function") for fn in analysis.functions]
        declared += [(cls.name, "class") for cls in analysis.classes]
        declared += [(const.name, "constant") for const in analysis.constants if const.kind != "env"]
        for imp in analysis.imports:
            for name in imp.names:
                declared.append((name, "import"))
                import_modules.setdefault(name, imp.module)
        for name, kind in declared:
            table.setdefault(name, (kind, index))

    shared: list[SharedSymbol] = []
    modules_across: list[str] = []
    if len(ordered) > 1:
        for name, (kind, defined_in) in table.items():
            used_in = tuple(
                analysis.chunk.index
                for analysis in ordered
                if analysis.chunk.index != defined_in and name in analysis.identifiers
            )
            if not used_in:
                continue
            shared.append(SharedSymbol(name=name, kind=kind, defined_in=defined_in, used_in=used_in))
            if kind == "import":
                modules_across.append(import_modules[name])

    shared.sort(key=lambda item: (item.defined_in, item.name))
    return CrossChunkInsights(
        chunk_count=len(ordered),
        shared_symbols=tuple(shared),
        imports_used_across_chunks=tuple(dict.fromkeys(modules_across)),
    )


def _absorb(existing: list[T], candidate: T, distance: int, combine) -> None:
    for position, current in enumerate(existing):
        if (
            current.name == candidate.name
            and current.chunk_index != candidate.chunk_index
            and abs(current.line - candidate.line) <= distance
        ):
            existing[position] = combine(current, candidate)
            return
    existing.append(candidate)


def _merge_functions(first: FunctionInfo, second: FunctionInfo) -> FunctionInfo:
    return dataclasses.replace(
        first,
        line=min(first.line, second.line),
        end_line=max(first.end_line, second.end_line),
        params=first.params or second.params,
        is_async=first.is_async or second.is_async,
        exported=first.exported or second.exported,
        complexity=max(first.complexity, second.complexity),
        calls=tuple(dict.fromkeys(first.calls + second.calls)),
    )


def _merge_classes(first: ClassInfo, second: ClassInfo) -> ClassInfo:
    return dataclasses.replace(
        first,
        line=min(first.line, second.line),
        end_line=max(first.end_line, second.end_line),
        superclass=first.superclass or second.superclass,
        methods=tuple(dict.fromkeys(first.methods + second.methods)),
        properties=tuple(dict.fromkeys(first.properties + second.properties)),
        constructor_params=first.constructor_params or second.constructor_params,
        exported=first.exported or second.exported,
    )


def _shift(items: Iterable[T], offset: int) -> list[T]:
    shifted = []
    for item in items:
        line = getattr(item, "line", None)
        shifted.append(item if line is None else dataclasses.replace(item, line=line + offset))
    return shifted


def _unique(items: list[T], key) -> list[T]:
    seen: set[Any] = set()
    output: list[T] = []
    for item in items:
        marker = key(item)
        if marker not in seen:
            seen.add(marker)
            output.append(item)
    return output


def _technical_debt(findings: Sequence[Issue], line_count: int) -> float:
    """Severity-weighted findings per 100 lines."""
    weight = sum(SEVERITY_WEIGHTS.get(finding.severity, 1) for finding in findings)
    return round(weight * 100 / max(line_count, 1), 2)
