"""Project dependency graph built from merged module imports."""

from __future__ import annotations

import posixpath
from collections.abc import Iterable

from .models import ModuleAnalysis

_JS_SUFFIXES = (".js", ".jsx", ".mjs", ".cjs", ".ts", ".tsx", ".mts", ".cts")


def build_dependency_graph(
    modules: Iterable[ModuleAnalysis],
) -> tuple[dict[str, list[str]], dict[str, list[str]]]:
    """Return (graph, internal_edges).

    ``graph`` maps each relative path to its imported specifiers;
    ``internal_edges`` maps it to the analysed files those specifiers resolve to.
    """
    modules = list(modules)
    known = {module.file.relative_path for module in modules}
    graph: dict[str, list[str]] = {}
    edges: dict[str, list[str]] = {}
    for module in modules:
        source = module.file.relative_path
        if not module.dependencies:
            continue
        graph[source] = list(module.dependencies)
        targets = []
        for specifier in module.dependencies:
            target = resolve_specifier(source, specifier, known, module.file.language)
            if target and target != source and target not in targets:
                targets.append(target)
        if targets:
            edges[source] = targets
    return graph, edges


def resolve_specifier(source: str, specifier: str, known: set[str], language: str = "") -> str | None:
    """Map an import specifier to a known relative path, or None."""
    if language == "python":
        return _resolve_python(source, specifier, known)
    if not specifier.startswith("."):
        return None
    base = posixpath.normpath(posixpath.join(posixpath.dirname(source), specifier))
    candidates = [base]
    candidates += [base + suffix for suffix in _JS_SUFFIXES]
    candidates += [f"{base}/index{suffix}" for suffix in _JS_SUFFIXES]
    for candidate in candidates:
        if candidate in known:
            return candidate
    return None


def _resolve_python(source: str, specifier: str, known: set[str]) -> str | None:
    stripped = specifier.lstrip(".")
    dots = len(specifier) - len(stripped)
    parts = [part for part in stripped.split(".") if part]
    if dots:
        package = posixpath.dirname(source)
        for _ in range(dots - 1):
            package = posixpath.dirname(package)
        base = posixpath.join(package, *parts) if parts else package
        for candidate in (f"{base}.py", f"{base}/__init__.py"):
            candidate = candidate.lstrip("/")
            if candidate in known:
                return candidate
        return None

    if not parts:
        return None
    tail = "/".join(parts)
    for suffix in (f"{tail}.py", f"{tail}/__init__.py"):
        matches = sorted(path for path in known if path == suffix or path.endswith("/" + suffix))
        if matches:
            return matches[0]
    return None
