"""Prompt templates for per-module summaries.

Prompts are built from the merged ModuleAnalysis only; file contents are
never sent to the model.
"""

from __future__ import annotations

from .models import ModuleAnalysis

SYSTEM_PROMPT = """You are an expert software engineer reading structural analysis of one source file.
Summarize what the module is responsible for and how it fits into the project.
Use only the facts provided. Do not invent functions or dependencies.
Answer in plain prose, two to four sentences."""

MAX_LISTED = 15


def module_context(module: ModuleAnalysis) -> str:
    """Compact text rendering of a ModuleAnalysis for prompting."""
    file = module.file
    lines = [
        f"File: {file.relative_path}",
        f"Language: {file.language}",
        f"Role: {file.role}",
        f"Lines: {module.line_count}",
        f"Analysis: {module.strategy} ({module.chunk_count} chunk(s){', truncated' if module.truncated else ''})",
        f"Complexity: {module.complexity}",
    ]
    if module.merged_classes:
        lines.append("Classes:")
        for cls in module.merged_classes[:MAX_LISTED]:
            base = f" extends {cls.superclass}" if cls.superclass else ""
            methods = ", ".join(cls.methods[:8])
            lines.append(f"  - {cls.name}{base}: {methods}")
    if module.merged_functions:
        lines.append("Functions:")
        for fn in module.merged_functions[:MAX_LISTED]:
            prefix = "async " if fn.is_async else ""
            lines.append(f"  - {prefix}{fn.name}({', '.join(fn.params)})")
        hidden = len(module.merged_functions) - MAX_LISTED
        if hidden > 0:
            lines.append(f"  ... and {hidden} more")
    if module.dependencies:
        lines.append(f"Imports: {', '.join(module.dependencies[:MAX_LISTED])}")
    if module.exports:
        lines.append(f"Exports: {', '.join(e.name for e in module.exports[:MAX_LISTED])}")
    if module.routes:
        lines.append("Routes: " + ", ".join(f"{r.method} {r.path}" for r in module.routes[:MAX_LISTED]))
    if module.pattern_tags:
        lines.append(f"Patterns: {', '.join(module.pattern_tags)}")
    doc = next((c.text for c in module.comments if c.kind == "doc"), "")
    if doc:
        lines.append(f"Leading doc comment: {doc[:300]}")
    return "\n".join(lines)


def module_summary_prompt(module: ModuleAnalysis, project_name: str = "") -> str:
    """Generate prompt for a single module summary."""
    project = f" in the project {project_name}" if project_name else ""
    return f"""Summarize this module{project}.

MODULE ANALYSIS:
{module_context(module)}

Write the summary now."""
