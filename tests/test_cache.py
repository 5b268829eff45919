"""Tests for the session analysis cache."""

from chunklens.cache import AnalysisCache
from chunklens.models import CrossChunkInsights, FileRecord, ModuleAnalysis


def _module(path: str = "a.js") -> ModuleAnalysis:
    record = FileRecord(f"/p/{path}", path, ".js", 10, 0.0, language="javascript")
    return ModuleAnalysis(
        file=record,
        strategy="direct",
        total_functions=0,
        total_classes=0,
        merged_functions=(),
        merged_classes=(),
        complexity=1,
        dependencies=(),
        cross_chunk_insights=CrossChunkInsights(),
    )


class TestAnalysisCache:
    def test_get_and_put(self):
        cache = AnalysisCache()
        module = _module()
        assert cache.get("/p/a.js", 10) is None
        cache.put("/p/a.js", 10, module)
        assert cache.get("/p/a.js", 10) is module
        assert cache.hits == 1
        assert cache.misses == 1
        assert ("/p/a.js", 10) in cache

    def test_size_is_part_of_key(self):
        cache = AnalysisCache()
        cache.put("/p/a.js", 10, _module())
        assert cache.get("/p/a.js", 11) is None

    def test_new_size_evicts_stale_entry(self):
        cache = AnalysisCache()
        cache.put("/p/a.js", 10, _module())
        cache.put("/p/a.js", 12, _module())
        assert len(cache) == 1
        assert ("/p/a.js", 10) not in cache
        assert ("/p/a.js", 12) in cache

    def test_retain_drops_missing_paths(self):
        cache = AnalysisCache()
        cache.put("/p/a.js", 10, _module("a.js"))
        cache.put("/p/b.js", 10, _module("b.js"))
        assert cache.retain(["/p/a.js"]) == 1
        assert len(cache) == 1
        assert cache.get("/p/b.js", 10) is None

    def test_invalidate(self):
        cache = AnalysisCache()
        cache.put("/p/a.js", 10, _module())
        assert cache.invalidate("/p/a.js")
        assert not cache.invalidate("/p/a.js")
        assert len(cache) == 0

    def test_clear_resets_counters(self):
        cache = AnalysisCache()
        cache.put("/p/a.js", 10, _module())
        cache.get("/p/a.js", 10)
        cache.clear()
        assert len(cache) == 0
        assert cache.hits == 0
        assert cache.entries() == []
