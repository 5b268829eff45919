"""Extractor registry with deterministic selection."""

from __future__ import annotations

from dataclasses import dataclass, field

from .base import StructuralExtractor
from .javascript import CFamilyExtractor, JavaScriptExtractor
from .python import PythonExtractor


@dataclass(slots=True)
class ExtractorRegistry:
    """Ordered extractor registry with an explicit fallback."""

    _extractors: list[StructuralExtractor] = field(default_factory=list)
    _fallback: StructuralExtractor | None = None

    def register(self, extractor: StructuralExtractor, *, fallback: bool = False) -> None:
        if fallback:
            self._fallback = extractor
            return
        self._extractors.append(extractor)

    def select(self, path: str) -> StructuralExtractor:
        """Select the first extractor that supports ``path``, else the fallback."""
        for extractor in self._extractors:
            if extractor.supports_path(path):
                return extractor
        if self._fallback is not None:
            return self._fallback
        raise LookupError(f"No extractor supports path: {path}")

    def names(self) -> tuple[str, ...]:
        ordered = [extractor.name for extractor in self._extractors]
        if self._fallback is not None:
            ordered.append(self._fallback.name)
        return tuple(ordered)


def default_registry() -> ExtractorRegistry:
    registry = ExtractorRegistry()
    registry.register(PythonExtractor())
    registry.register(JavaScriptExtractor())
    registry.register(CFamilyExtractor(), fallback=True)
    return registry
