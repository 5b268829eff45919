"""Analysis session: walks a project and runs the per-file pipeline.

The per-file pipeline (read, chunk, extract, merge) runs on a bounded pool of
asyncio workers fed from a queue. Blocking work goes through
``asyncio.to_thread``; every file gets a hard timeout and a cancellation
check between chunks.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import threading
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

from .cache import AnalysisCache
from .chunker import chunk
from .classifier import classify_all, is_architecture_relevant, rank_architecture_files, ranking_key
from .config import EngineConfig, load_effective_config
from .depth import EffectiveConfig, collect_metrics, tune
from .extractors import default_registry
from .extractors.registry import ExtractorRegistry
from .graph import build_dependency_graph
from .lexical import rules_for_language
from .merger import merge
from .models import (
    STRATEGY_CHUNKED,
    STRATEGY_SHALLOW,
    FileRecord,
    ModuleAnalysis,
    ProjectAnalysis,
    SkippedFile,
)
from .walker import walk

logger = logging.getLogger(__name__)

COMPLEXITY_BUCKETS = (("low", 20), ("medium", 50))

ModuleCallback = Callable[[ModuleAnalysis], Awaitable[None] | None]


class AnalysisCancelled(Exception):
    """Raised inside the pipeline once a run has been cancelled."""


class FileTimeout(Exception):
    """A single file ran past its processing deadline."""


class BinaryContent(ValueError):
    """File bytes look binary (NUL bytes)."""


class CancellationToken:
    """Cooperative cancellation flag shared between a run and its caller.

    Safe to cancel from another thread or a signal handler.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise AnalysisCancelled("Analysis cancelled")


@dataclass(slots=True)
class _RunState:
    config: EngineConfig
    effective: EffectiveConfig
    deep: frozenset[str]
    token: CancellationToken
    on_module: ModuleCallback | None
    modules: dict[str, ModuleAnalysis]
    skipped: list[SkippedFile]
    cache_hits: int = 0


class AnalysisSession:
    """Owns one analysis cache; run it as many times as needed.

    With an explicit ``config`` the project's chunklens.toml is ignored.
    Otherwise every run merges defaults, the project file and ``overrides``.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        *,
        registry: ExtractorRegistry | None = None,
        **overrides: object,
    ) -> None:
        if config is not None and overrides:
            config = config.replace(**overrides)
            overrides = {}
        self.config = config
        self.overrides = overrides
        self.registry = registry or default_registry()
        self.cache = AnalysisCache()
        self._last_settings: tuple[object, ...] | None = None
        self.closed = False

    def __enter__(self) -> AnalysisSession:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self.cache.clear()
        self._last_settings = None
        self.closed = True

    def analyze(
        self,
        root: str | Path,
        *,
        token: CancellationToken | None = None,
        on_module: ModuleCallback | None = None,
    ) -> ProjectAnalysis:
        """Blocking wrapper around :meth:`run`."""
        return asyncio.run(self.run(root, token=token, on_module=on_module))

    def config_for(self, root: Path) -> EngineConfig:
        if self.config is not None:
            return self.config
        return load_effective_config(root, self.overrides)

    async def run(
        self,
        root: str | Path,
        *,
        token: CancellationToken | None = None,
        on_module: ModuleCallback | None = None,
    ) -> ProjectAnalysis:
        """Analyse every file under ``root`` and aggregate the results.

        Per-file failures end up in ``ProjectAnalysis.skipped``. Only a bad
        root or bad configuration raises.
        """
        if self.closed:
            raise RuntimeError("Analysis session is closed")
        root_path = Path(root).resolve()
        if not root_path.is_dir():
            raise ValueError(f"Not a directory: {root_path}")

        config = self.config_for(root_path)
        token = token or CancellationToken()
        started = time.perf_counter()
        logger.info("Analyzing %s", root_path)

        records = await asyncio.to_thread(_discover, root_path, config)
        dropped = self.cache.retain(record.path for record in records)
        if dropped:
            logger.debug("Dropped %d cache entries for files no longer present", dropped)

        metrics = await collect_metrics(records, config.metrics_sample_size)
        effective = tune(metrics, config)
        for reason in effective.reasons:
            logger.info("Adaptive depth: %s", reason)
        settings = _settings_key(effective)
        if self._last_settings is not None and self._last_settings != settings:
            logger.debug("Effective settings changed since last run, clearing cache")
            self.cache.clear()
        self._last_settings = settings

        architecture = rank_architecture_files(records, config.architecture_top_n)
        ordered = sorted(records, key=ranking_key)
        state = _RunState(
            config=config,
            effective=effective,
            deep=select_deep_files(ordered, effective.max_deep_files),
            token=token,
            on_module=on_module,
            modules={},
            skipped=[],
        )

        await self._run_pool(ordered, state)

        modules = tuple(state.modules[key] for key in sorted(state.modules))
        skipped = tuple(sorted(state.skipped, key=lambda item: item.path))
        graph, edges = build_dependency_graph(modules)
        analysis = ProjectAnalysis(
            root=str(root_path),
            name=root_path.name,
            modules=modules,
            metrics=metrics,
            config={"engine": config.to_public_dict(), "effective": effective.to_dict()},
            total_lines=sum(module.line_count for module in modules),
            complexity_distribution=complexity_distribution(modules),
            architecture_files=tuple(record.relative_path for record in architecture),
            dependency_graph=graph,
            internal_edges=edges,
            chunking_stats=chunking_stats(modules, effective.large_file_threshold),
            skipped=skipped,
            cache_hits=state.cache_hits,
            cancelled=token.cancelled,
            duration_seconds=time.perf_counter() - started,
        )
        logger.info(
            "Analyzed %d files (%d skipped, %d cache hits) in %.2fs",
            analysis.analyzed_count,
            analysis.skipped_count,
            analysis.cache_hits,
            analysis.duration_seconds,
        )
        return analysis

    async def _run_pool(self, records: Sequence[FileRecord], state: _RunState) -> None:
        queue: asyncio.Queue[FileRecord] = asyncio.Queue()
        for record in records:
            queue.put_nowait(record)

        async def worker() -> None:
            paced = False
            while True:
                try:
                    record = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                if state.token.cancelled:
                    state.skipped.append(SkippedFile(record.relative_path, "cancelled"))
                    continue
                if paced and state.config.pacing_delay:
                    await asyncio.sleep(state.config.pacing_delay)
                paced = True
                await self._process(record, state)

        size = max(1, min(state.config.concurrency, len(records)))
        workers = [asyncio.create_task(worker()) for _ in range(size)]
        try:
            await asyncio.gather(*workers)
        except BaseException:
            for task in workers:
                task.cancel()
            raise

    async def _process(self, record: FileRecord, state: _RunState) -> None:
        rel = record.relative_path
        config = state.config
        if record.size_bytes > config.max_file_bytes:
            logger.warning("Skipping %s: %d bytes exceeds limit of %d", rel, record.size_bytes, config.max_file_bytes)
            state.skipped.append(
                SkippedFile(rel, "too-large", f"{record.size_bytes} bytes exceeds {config.max_file_bytes}")
            )
            return

        cached = self.cache.get(record.path, record.size_bytes)
        if cached is not None:
            state.cache_hits += 1
            await self._deliver(cached, state)
            return

        try:
            analysis = await asyncio.wait_for(self._analyze_file(record, state), timeout=config.file_timeout)
        except (asyncio.TimeoutError, FileTimeout):
            logger.warning("Skipping %s: timed out after %.1fs", rel, config.file_timeout)
            state.skipped.append(SkippedFile(rel, "timeout", f"exceeded {config.file_timeout}s"))
            return
        except AnalysisCancelled:
            state.skipped.append(SkippedFile(rel, "cancelled"))
            return
        except (UnicodeDecodeError, BinaryContent) as exc:
            logger.warning("Skipping %s: not decodable as UTF-8 text", rel)
            state.skipped.append(SkippedFile(rel, "decode-error", str(exc)))
            return
        except OSError as exc:
            logger.warning("Skipping %s: %s", rel, exc)
            state.skipped.append(SkippedFile(rel, "access-error", str(exc)))
            return
        except Exception as exc:
            logger.warning("Analysis of %s failed: %s", rel, exc, exc_info=True)
            state.skipped.append(SkippedFile(rel, "error", f"{type(exc).__name__}: {exc}"))
            return

        # a shallow result depends on which files won the deep ceiling this run
        if analysis.strategy != STRATEGY_SHALLOW:
            self.cache.put(record.path, record.size_bytes, analysis)
        await self._deliver(analysis, state)

    async def _deliver(self, analysis: ModuleAnalysis, state: _RunState) -> None:
        state.modules[analysis.file.relative_path] = analysis
        if state.on_module is not None:
            result = state.on_module(analysis)
            if inspect.isawaitable(result):
                await result

    async def _analyze_file(self, record: FileRecord, state: _RunState) -> ModuleAnalysis:
        content = await asyncio.to_thread(read_source, record.path)
        state.token.raise_if_cancelled()
        deadline = time.monotonic() + state.config.file_timeout
        return await asyncio.to_thread(self._analyze_content, record, content, state, deadline)

    def _analyze_content(
        self, record: FileRecord, content: str, state: _RunState, deadline: float
    ) -> ModuleAnalysis:
        config = state.config
        effective = state.effective
        chunks = chunk(
            content,
            effective.chunk_size,
            rules=rules_for_language(record.language),
            source_file=record,
            hard_limit_factor=config.hard_limit_factor,
        )
        strategy = None
        truncated = False
        line_count = chunks[-1].end_line
        if len(chunks) > 1 and record.path not in state.deep:
            chunks = chunks[:1]
            strategy = STRATEGY_SHALLOW
            truncated = True
            logger.debug("%s is beyond the deep-analysis ceiling, first chunk only", record.relative_path)
        elif len(chunks) > 1:
            logger.debug("Chunked %s into %d chunks", record.relative_path, len(chunks))
        if len(content) > effective.large_file_threshold:
            logger.debug("%s is a large file (%d chars)", record.relative_path, len(content))

        extractor = self.registry.select(record.path)
        analyses = []
        for part in chunks:
            state.token.raise_if_cancelled()
            if time.monotonic() > deadline:
                raise FileTimeout(record.relative_path)
            analyses.append(extractor.extract(part, quality=effective.quality_analysis))

        return merge(
            record,
            analyses,
            dedup_distance=config.dedup_line_distance,
            strategy=strategy,
            truncated=truncated,
            technical_debt=effective.technical_debt,
            line_count=line_count,
        )


def analyze_project(
    path: str | Path,
    config: EngineConfig | None = None,
    *,
    token: CancellationToken | None = None,
    on_module: ModuleCallback | None = None,
    **overrides: object,
) -> ProjectAnalysis:
    """Analyse one project in a throwaway session."""
    with AnalysisSession(config, **overrides) as session:
        return session.analyze(path, token=token, on_module=on_module)


def read_source(path: str) -> str:
    with open(path, "rb") as handle:
        data = handle.read()
    if b"\x00" in data:
        raise BinaryContent(f"NUL byte in {path}")
    return data.decode("utf-8")


def select_deep_files(ordered: Sequence[FileRecord], max_deep_files: int) -> frozenset[str]:
    """Paths eligible for full chunked analysis.

    The first ``max_deep_files`` by ranking, plus every architecture-relevant
    file regardless of the ceiling.
    """
    deep = {record.path for record in ordered[:max_deep_files]}
    deep.update(record.path for record in ordered if is_architecture_relevant(record))
    return frozenset(deep)


def complexity_distribution(modules: Sequence[ModuleAnalysis]) -> dict[str, int]:
    distribution = {"low": 0, "medium": 0, "high": 0}
    for module in modules:
        for bucket, ceiling in COMPLEXITY_BUCKETS:
            if module.complexity <= ceiling:
                distribution[bucket] += 1
                break
        else:
            distribution["high"] += 1
    return distribution


def chunking_stats(modules: Sequence[ModuleAnalysis], large_file_threshold: int) -> dict[str, float]:
    chunked = [module for module in modules if module.strategy == STRATEGY_CHUNKED]
    shallow = [module for module in modules if module.strategy == STRATEGY_SHALLOW]
    chunked_total = sum(module.chunk_count for module in chunked)
    return {
        "total_chunks": sum(module.chunk_count for module in modules),
        "chunked_modules": len(chunked),
        "shallow_modules": len(shallow),
        "direct_modules": len(modules) - len(chunked) - len(shallow),
        "average_chunks_per_chunked_module": round(chunked_total / len(chunked), 2) if chunked else 0.0,
        "large_files": sum(1 for module in modules if module.file.size_bytes > large_file_threshold),
    }


def _discover(root: Path, config: EngineConfig) -> list[FileRecord]:
    return classify_all(
        walk(root, config.exclude, max_depth=config.max_depth, include_extensions=config.include_extensions)
    )


def _settings_key(effective: EffectiveConfig) -> tuple[object, ...]:
    # only the settings that shape a ModuleAnalysis
    return (
        effective.chunk_size,
        effective.max_deep_files,
        effective.quality_analysis,
        effective.technical_debt,
    )
