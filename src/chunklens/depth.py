"""Project metrics and the adaptive depth controller.

``collect_metrics`` samples the tree before the per-file pipeline starts;
``tune`` is a pure function from those metrics to the effective settings.
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from .config import EngineConfig
from .models import FileRecord, ProjectMetrics

logger = logging.getLogger(__name__)

NON_CODE_LANGUAGES = {"json", "markdown", "yaml", "toml", "unknown"}

LARGE_PROJECT_FILES = 100
SMALL_PROJECT_FILES = 20
LARGE_PROJECT_CHUNK_SIZE = 6000
LARGE_PROJECT_MAX_DEEP_FILES = 50
QUALITY_COMPLEXITY_CUTOFF = 0.7

FOCUS_PATTERNS = {
    "javascript": ("async/await", "callback", "promise", "mvc"),
    "typescript": ("async/await", "callback", "promise", "mvc"),
    "python": ("decorator", "context-manager", "generator", "mvc"),
}


@dataclass(frozen=True, slots=True)
class EffectiveConfig:
    """Settings the per-file pipeline actually runs with."""

    chunk_size: int
    large_file_threshold: int
    max_deep_files: int
    quality_analysis: bool
    technical_debt: bool
    focus_patterns: tuple[str, ...] = ()
    reasons: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "chunk_size": self.chunk_size,
            "large_file_threshold": self.large_file_threshold,
            "max_deep_files": self.max_deep_files,
            "quality_analysis": self.quality_analysis,
            "technical_debt": self.technical_debt,
            "focus_patterns": list(self.focus_patterns),
            "reasons": list(self.reasons),
        }


def is_code_file(record: FileRecord) -> bool:
    return record.language not in NON_CODE_LANGUAGES


def estimate_complexity(file_count: int, line_count: int) -> float:
    file_part = 0.8 if file_count > 100 else 0.6 if file_count > 50 else 0.3
    line_part = 0.9 if line_count > 50000 else 0.7 if line_count > 20000 else 0.4
    return (file_part + line_part) / 2


def categorize_size(file_count: int, line_count: int) -> str:
    if file_count > 100 or line_count > 50000:
        return "large"
    if file_count > 30 or line_count > 10000:
        return "medium"
    return "small"


def sample_records(records: Sequence[FileRecord], sample_size: int) -> list[FileRecord]:
    """Deterministic sample: the first ``sample_size`` code files by path."""
    code = sorted((r for r in records if is_code_file(r)), key=lambda r: r.relative_path)
    return code[:sample_size]


def build_metrics(records: Sequence[FileRecord], line_counts: Mapping[str, int]) -> ProjectMetrics:
    """Aggregate metrics from walk records and sampled line counts."""
    code = [record for record in records if is_code_file(record)]
    languages = Counter(record.language for record in code)
    ranked = sorted(languages.items(), key=lambda item: (-item[1], item[0]))
    primary = ranked[0][0] if ranked else "unknown"
    total_lines = sum(line_counts.values())
    return ProjectMetrics(
        total_files=len(records),
        code_files=len(code),
        sampled_files=len(line_counts),
        total_lines=total_lines,
        primary_language=primary,
        languages=dict(ranked),
        estimated_complexity=estimate_complexity(len(code), total_lines),
        project_size=categorize_size(len(code), total_lines),
    )


async def count_lines(path: str) -> int:
    data = await asyncio.to_thread(_read_bytes, path)
    return data.count(b"\n") + 1


def _read_bytes(path: str) -> bytes:
    with open(path, "rb") as handle:
        return handle.read()


async def collect_metrics(records: Sequence[FileRecord], sample_size: int = 50) -> ProjectMetrics:
    """Read a sample of files to estimate project size. Unreadable files are ignored."""
    line_counts: dict[str, int] = {}
    for record in sample_records(records, sample_size):
        try:
            line_counts[record.relative_path] = await count_lines(record.path)
        except OSError as exc:
            logger.debug("Could not sample %s: %s", record.relative_path, exc)
    return build_metrics(records, line_counts)


def tune(metrics: ProjectMetrics, config: EngineConfig) -> EffectiveConfig:
    """Derive effective settings from project metrics. No side effects."""
    chunk_size = config.chunk_size
    max_deep = config.max_deep_files
    quality = config.quality_analysis
    debt = config.technical_debt
    reasons: list[str] = []

    if config.adaptive:
        if metrics.total_files > LARGE_PROJECT_FILES:
            chunk_size = min(chunk_size, LARGE_PROJECT_CHUNK_SIZE)
            max_deep = min(max_deep, LARGE_PROJECT_MAX_DEEP_FILES)
            reasons.append(f"large project ({metrics.total_files} files): smaller chunks, fewer deep files")
        elif metrics.total_files < SMALL_PROJECT_FILES:
            max_deep = max(max_deep, metrics.total_files)
            reasons.append(f"small project ({metrics.total_files} files): every file analysed deeply")

        if metrics.estimated_complexity > QUALITY_COMPLEXITY_CUTOFF:
            quality = True
            debt = True
            reasons.append(f"estimated complexity {metrics.estimated_complexity:.2f}: quality analysis on")

    return EffectiveConfig(
        chunk_size=chunk_size,
        large_file_threshold=config.large_file_threshold,
        max_deep_files=max_deep,
        quality_analysis=quality,
        technical_debt=debt,
        focus_patterns=FOCUS_PATTERNS.get(metrics.primary_language, ()),
        reasons=tuple(reasons),
    )
