"""Module summarizer - feeds merged analyses to a local model.

Takes a ProjectAnalysis, builds one prompt per selected module, calls the
model, and collects summaries and per-module errors.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any

from .model import ModelError, OllamaClient
from .models import ModuleAnalysis, ProjectAnalysis
from .prompts import SYSTEM_PROMPT, module_summary_prompt

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 20


@dataclass
class ModuleSummary:
    """A generated summary for one module."""

    path: str
    role: str
    summary: str

    def to_dict(self) -> dict[str, Any]:
        return {"path": self.path, "role": self.role, "summary": self.summary}


@dataclass
class SummaryResult:
    """Complete summarization output."""

    summaries: list[ModuleSummary] = field(default_factory=list)
    model_used: str = ""
    generation_time_seconds: float = 0.0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "summaries": [s.to_dict() for s in self.summaries],
            "model_used": self.model_used,
            "generation_time_seconds": round(self.generation_time_seconds, 1),
            "errors": self.errors,
        }


class ModuleSummarizer:
    """Summarizes the most important modules of a project analysis."""

    def __init__(self, client: OllamaClient, limit: int = DEFAULT_LIMIT, pacing_delay: float = 0.0):
        self.client = client
        self.limit = limit
        self.pacing_delay = pacing_delay

    def select(self, analysis: ProjectAnalysis) -> list[ModuleAnalysis]:
        """Architecture files first, in ranking order, then the rest by path."""
        chosen: list[ModuleAnalysis] = []
        for path in analysis.architecture_files:
            module = analysis.module(path)
            if module is not None:
                chosen.append(module)
        seen = {module.file.relative_path for module in chosen}
        chosen.extend(module for module in analysis.modules if module.file.relative_path not in seen)
        return chosen[: self.limit]

    def summarize(self, analysis: ProjectAnalysis, progress_callback=None) -> SummaryResult:
        start = time.time()
        result = SummaryResult(model_used=self.client.model)
        modules = self.select(analysis)
        total = len(modules)

        for i, module in enumerate(modules):
            path = module.file.relative_path
            if progress_callback:
                progress_callback(f"Summarizing {path}...", i + 1, total)
            if i and self.pacing_delay:
                time.sleep(self.pacing_delay)
            try:
                text = self.client.generate(module_summary_prompt(module, analysis.name), system=SYSTEM_PROMPT)
            except ModelError as e:
                logger.warning("Summary for %s failed: %s", path, e)
                result.errors.append(f"{path}: {e}")
                continue
            result.summaries.append(ModuleSummary(path=path, role=module.file.role, summary=text))

        result.generation_time_seconds = time.time() - start
        return result
