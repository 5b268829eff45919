"""File classifier - labels files by architectural role.

Rules are evaluated in order and the first match wins. A rule's priority
(lower is more important) drives the top-N architecture ranking. Only entry
points, project config, configuration and routing are architecture-relevant;
those files are ranked and always get deep analysis.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

from .models import FileRecord

_CODE_EXT = r"\.(js|jsx|mjs|cjs|ts|tsx|mts|cts|py|java|kt|go|rs|cs|php|rb|swift|scala|c|cc|cpp|cxx|h|hpp)$"

GENERIC_ROLE = "generic"
GENERIC_PRIORITY = 99


def _word(*names: str) -> str:
    """Match one of ``names`` as a whole path word or camelCase hump, optionally plural."""
    lower = "|".join(names)
    humps = "|".join([name.capitalize() for name in names] + [name.upper() for name in names])
    return rf"(?:(?:^|[/_.\-])(?:{lower}|{humps})|(?<=[a-z0-9])(?:{humps}))s?(?![a-z])"


@dataclass(slots=True, frozen=True)
class ClassificationRule:
    pattern: re.Pattern[str]
    priority: int
    role: str
    importance: str
    architecture: bool = True


RULES: tuple[ClassificationRule, ...] = (
    ClassificationRule(
        re.compile(r"^(index|main|app|server|__main__)" + _CODE_EXT), 1, "entry-point", "critical"
    ),
    ClassificationRule(
        re.compile(r"(^|/)(package\.json|pyproject\.toml|setup\.py|Cargo\.toml|go\.mod|pom\.xml)$"),
        1,
        "project-config",
        "critical",
    ),
    ClassificationRule(
        re.compile(r"(^|/)(tests?|__tests__|specs?)/|(^test_|_test\.|\.test\.|\.spec\.|^conftest\.py$)", re.I),
        8,
        "test",
        "low",
        architecture=False,
    ),
    ClassificationRule(
        re.compile(r"\.(md|rst|adoc|txt)$|(^|/)docs?/", re.I), 9, "documentation", "low", architecture=False
    ),
    ClassificationRule(
        re.compile(r"(\.config\.(js|cjs|mjs|json|ts)$|(^|/)(config|settings)\.(py|js|ts)$)"),
        2,
        "configuration",
        "high",
    ),
    ClassificationRule(
        re.compile(_word("route", "router", "api", "url", "view") + r".*" + _CODE_EXT), 2, "routing-layer", "high"
    ),
    ClassificationRule(
        re.compile(_word("middleware", "handler") + r".*" + _CODE_EXT),
        3,
        "middleware-layer",
        "high",
        architecture=False,
    ),
    ClassificationRule(
        re.compile(_word("service", "manager", "controller") + r".*" + _CODE_EXT),
        4,
        "service-layer",
        "medium",
        architecture=False,
    ),
    ClassificationRule(
        re.compile(_word("model", "schema", "entity", "entities") + r".*" + _CODE_EXT),
        5,
        "data-layer",
        "medium",
        architecture=False,
    ),
    ClassificationRule(
        re.compile(_word("util", "helper", "tool") + r".*" + _CODE_EXT), 6, "utility-layer", "medium", architecture=False
    ),
    ClassificationRule(re.compile(_word("constant") + r".*" + _CODE_EXT), 7, "constants", "low", architecture=False),
)


def match_rule(record: FileRecord) -> ClassificationRule | None:
    """Return the first rule matching the file name or its relative path."""
    for rule in RULES:
        if rule.pattern.search(record.name) or rule.pattern.search(record.relative_path):
            return rule
    return None


def classify(record: FileRecord) -> str:
    rule = match_rule(record)
    return rule.role if rule else GENERIC_ROLE


def classify_all(records: Iterable[FileRecord]) -> list[FileRecord]:
    """Return copies of ``records`` with their role filled in."""
    return [record.with_role(classify(record)) for record in records]


def rule_priority(record: FileRecord) -> int:
    rule = match_rule(record)
    return rule.priority if rule else GENERIC_PRIORITY


def is_architecture_relevant(record: FileRecord) -> bool:
    rule = match_rule(record)
    return rule is not None and rule.architecture


def file_priority(record: FileRecord) -> int:
    """Name and size based importance score. Higher is more important."""
    name = record.name.lower()
    score = 0
    if "index" in name or "main" in name:
        score += 10
    if "service" in name or "manager" in name:
        score += 8
    if "controller" in name or "handler" in name:
        score += 7
    if "model" in name or "entity" in name:
        score += 6
    if "util" in name or "helper" in name:
        score += 3

    size = record.size_bytes
    if 1000 < size < 10000:
        score += 5
    elif size >= 10000:
        score += 3
    else:
        score += 1
    return score


def ranking_key(record: FileRecord) -> tuple[int, int, int, str]:
    return (rule_priority(record), -record.size_bytes, -file_priority(record), record.relative_path)


def rank_architecture_files(records: Iterable[FileRecord], top_n: int = 20) -> list[FileRecord]:
    """Select the ``top_n`` most architecture-relevant files.

    Ordered by rule priority, then larger size, then file priority, with the
    relative path as a final tie-break so the result never depends on input
    order.
    """
    relevant = [record for record in records if is_architecture_relevant(record)]
    relevant.sort(key=ranking_key)
    return relevant[:top_n]
