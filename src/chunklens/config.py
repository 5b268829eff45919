"""Engine configuration and deterministic merge order.

Defaults, then an optional ``chunklens.toml`` at the project root, then
explicit overrides (CLI flags or keyword arguments).
"""

from __future__ import annotations

import dataclasses
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

CONFIG_FILENAME = "chunklens.toml"

DEFAULT_EXCLUDE = (
    ".git", ".hg", ".svn", "node_modules", "bower_components", "__pycache__",
    ".venv", "venv", "env", ".tox", ".mypy_cache", ".pytest_cache", ".ruff_cache",
    "target", "build", "dist", "out", ".next", ".nuxt", ".output", ".cache",
    "vendor", "Pods", "coverage", ".coverage", "htmlcov", ".nyc_output",
    ".idea", ".vscode", ".vs", ".gradle",
    "*.min.js", "*.min.css", "*.map", "*.lock",
)

DEFAULT_INCLUDE_EXTENSIONS = (
    ".js", ".mjs", ".cjs", ".jsx", ".ts", ".tsx", ".mts", ".cts",
    ".py", ".pyi",
    ".java", ".kt", ".go", ".rs", ".cs", ".php", ".swift", ".scala",
    ".c", ".h", ".cpp", ".cc", ".cxx", ".hpp",
)

# section -> fields accepted from chunklens.toml
_SECTIONS: dict[str, tuple[str, ...]] = {
    "analysis": (
        "chunk_size",
        "large_file_threshold",
        "max_deep_files",
        "architecture_top_n",
        "metrics_sample_size",
        "adaptive",
        "quality_analysis",
        "technical_debt",
        "dedup_line_distance",
        "hard_limit_factor",
    ),
    "walk": ("max_depth", "max_file_bytes", "exclude", "include_extensions"),
    "runtime": ("concurrency", "pacing_delay", "file_timeout"),
}

_FIELD_SECTION = {name: section for section, names in _SECTIONS.items() for name in names}

# fields where zero is a legal value
_NON_NEGATIVE = {"pacing_delay"}


@dataclass(frozen=True, slots=True)
class EngineConfig:
    """Fully merged engine settings."""

    chunk_size: int = 8000
    large_file_threshold: int = 50000
    max_file_bytes: int = 2 * 1024 * 1024
    max_depth: int = 32
    exclude: tuple[str, ...] = DEFAULT_EXCLUDE
    include_extensions: tuple[str, ...] = DEFAULT_INCLUDE_EXTENSIONS
    concurrency: int = 5
    pacing_delay: float = 0.1
    file_timeout: float = 30.0
    max_deep_files: int = 200
    architecture_top_n: int = 20
    metrics_sample_size: int = 50
    adaptive: bool = True
    quality_analysis: bool = False
    technical_debt: bool = False
    dedup_line_distance: int = 3
    hard_limit_factor: int = 4

    def replace(self, **changes: object) -> EngineConfig:
        return merge_config(self, {}, changes)

    def to_public_dict(self) -> dict[str, object]:
        """Return a serializable snapshot grouped the way chunklens.toml is."""
        snapshot: dict[str, object] = {}
        for section, names in _SECTIONS.items():
            table: dict[str, object] = {}
            for name in names:
                value = getattr(self, name)
                table[name] = list(value) if isinstance(value, tuple) else value
            snapshot[section] = table
        return snapshot


def load_config_file(root: Path) -> dict[str, object]:
    """Load optional chunklens.toml from the project root."""
    config_path = root / CONFIG_FILENAME
    if not config_path.is_file():
        return {}
    with config_path.open("rb") as handle:
        try:
            payload = tomllib.load(handle)
        except tomllib.TOMLDecodeError as exc:
            raise ValueError(f"{CONFIG_FILENAME} is not valid TOML: {exc}") from exc
    return payload


def load_effective_config(
    root: str | Path,
    overrides: Mapping[str, object] | None = None,
    base: EngineConfig | None = None,
) -> EngineConfig:
    """Merge defaults (or ``base``), the project file, then overrides."""
    payload = load_config_file(Path(root))
    return merge_config(base or EngineConfig(), payload, overrides or {})


def merge_config(
    base: EngineConfig,
    file_payload: Mapping[str, object],
    overrides: Mapping[str, object],
) -> EngineConfig:
    values: dict[str, object] = {}

    for key in file_payload:
        if key not in _SECTIONS:
            raise ValueError(f"Config section '{key}' is not recognised.")
    for section, names in _SECTIONS.items():
        table = _get_table(file_payload, section)
        for key, raw in table.items():
            if key not in names:
                raise ValueError(f"Config field '{section}.{key}' is not recognised.")
            values[key] = _validate(base, key, raw)

    for key, raw in overrides.items():
        if raw is None:
            continue
        if key not in _FIELD_SECTION:
            raise ValueError(f"Unknown config field: {key}")
        values[key] = _validate(base, key, raw)

    return dataclasses.replace(base, **values)


def _get_table(payload: Mapping[str, object], key: str) -> dict[str, object]:
    value = payload.get(key, {})
    if not isinstance(value, dict):
        raise ValueError(f"Config section '{key}' must be a table.")
    return value


def _validate(base: EngineConfig, key: str, raw: object) -> object:
    label = f"{_FIELD_SECTION[key]}.{key}"
    default = getattr(base, key)

    if isinstance(default, bool):
        if not isinstance(raw, bool):
            raise ValueError(f"Config field '{label}' must be a boolean.")
        return raw
    if isinstance(default, int):
        if isinstance(raw, bool) or not isinstance(raw, int) or raw <= 0:
            raise ValueError(f"Config field '{label}' must be a positive integer.")
        return raw
    if isinstance(default, float):
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            raise ValueError(f"Config field '{label}' must be a number.")
        if key in _NON_NEGATIVE:
            if raw < 0:
                raise ValueError(f"Config field '{label}' must not be negative.")
        elif raw <= 0:
            raise ValueError(f"Config field '{label}' must be positive.")
        return float(raw)
    return _tuple_of_strings(raw, label)


def _tuple_of_strings(value: object, label: str) -> tuple[str, ...]:
    if not isinstance(value, (list, tuple)):
        raise ValueError(f"Config field '{label}' must be a list of strings.")
    output: list[str] = []
    for item in value:
        if not isinstance(item, str):
            raise ValueError(f"Config field '{label}' must contain only strings.")
        output.append(item)
    return tuple(output)
