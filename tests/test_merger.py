"""Tests for the chunk merger."""

import pytest

from chunklens.merger import cross_chunk_insights, merge
from chunklens.models import (
    Chunk,
    ChunkAnalysis,
    ClassInfo,
    FileRecord,
    FunctionInfo,
    ImportInfo,
    Issue,
)

RECORD = FileRecord("/p/mod.js", "mod.js", ".js", 1000, 0.0, language="javascript")


def _chunk(index, start, end, boundary="function-boundary"):
    return Chunk(index, RECORD, start, end, "", 0, boundary)


def _fn(name, line, end=None, **kwargs):
    return FunctionInfo(name=name, line=line, end_line=end or line, **kwargs)


def _analysis(chunk, functions=(), classes=(), imports=(), complexity=1, identifiers=(), **kwargs):
    return ChunkAnalysis(
        chunk=chunk,
        functions=tuple(functions),
        classes=tuple(classes),
        imports=tuple(imports),
        complexity_score=complexity,
        identifiers=frozenset(identifiers),
        **kwargs,
    )


class TestMerge:
    def test_translates_lines_to_file_positions(self):
        first = _analysis(_chunk(0, 1, 10), functions=[_fn("a", 3, 5)])
        second = _analysis(_chunk(1, 11, 20, "remaining-tail"), functions=[_fn("b", 2, 4)])
        module = merge(RECORD, [first, second])
        assert [(f.name, f.line, f.end_line, f.chunk_index) for f in module.merged_functions] == [
            ("a", 3, 5, 0),
            ("b", 12, 14, 1),
        ]
        assert module.line_count == 20

    def test_merges_in_index_order_regardless_of_input_order(self):
        first = _analysis(_chunk(0, 1, 10), functions=[_fn("a", 1)])
        second = _analysis(_chunk(1, 11, 20), functions=[_fn("b", 1)])
        module = merge(RECORD, [second, first])
        assert [f.name for f in module.merged_functions] == ["a", "b"]
        assert [span.index for span in module.chunks] == [0, 1]

    def test_deduplicates_declaration_split_across_seam(self):
        first = _analysis(_chunk(0, 1, 10), functions=[_fn("render", 10, 10, params=("props",))])
        second = _analysis(
            _chunk(1, 11, 30),
            functions=[_fn("render", 1, 8, calls=("draw",), complexity=4)],
        )
        module = merge(RECORD, [first, second])
        assert module.total_functions == 1
        merged = module.merged_functions[0]
        assert (merged.line, merged.end_line) == (10, 18)
        assert merged.params == ("props",)
        assert merged.calls == ("draw",)
        assert merged.complexity == 4

    def test_keeps_same_name_far_apart(self):
        first = _analysis(_chunk(0, 1, 50), functions=[_fn("handle", 5)])
        second = _analysis(_chunk(1, 51, 100), functions=[_fn("handle", 30)])
        assert merge(RECORD, [first, second]).total_functions == 2

    def test_dedup_distance_is_configurable(self):
        first = _analysis(_chunk(0, 1, 10), functions=[_fn("x", 8)])
        second = _analysis(_chunk(1, 11, 20), functions=[_fn("x", 1)])
        assert merge(RECORD, [first, second], dedup_distance=3).total_functions == 1
        assert merge(RECORD, [first, second], dedup_distance=1).total_functions == 2

    def test_merges_classes(self):
        first = _analysis(
            _chunk(0, 1, 10),
            classes=[ClassInfo("Store", 9, 10, superclass="Base", methods=("get",))],
        )
        second = _analysis(
            _chunk(1, 11, 40),
            classes=[ClassInfo("Store", 1, 20, methods=("get", "set"), properties=("items",))],
        )
        module = merge(RECORD, [first, second])
        assert module.total_classes == 1
        store = module.merged_classes[0]
        assert store.superclass == "Base"
        assert store.methods == ("get", "set")
        assert store.properties == ("items",)
        assert (store.line, store.end_line) == (9, 30)

    def test_complexity_is_summed(self):
        analyses = [
            _analysis(_chunk(0, 1, 10), complexity=4),
            _analysis(_chunk(1, 11, 20), complexity=7),
            _analysis(_chunk(2, 21, 30, "remaining-tail"), complexity=1),
        ]
        assert merge(RECORD, analyses).complexity == 12

    def test_dependencies_are_unique_modules(self):
        first = _analysis(_chunk(0, 1, 10), imports=[ImportInfo("react", ("React",), "esm", True, 1)])
        second = _analysis(
            _chunk(1, 11, 20),
            imports=[ImportInfo("react", ("useState",), "esm", True, 2), ImportInfo("./api", (), "esm", False, 3)],
        )
        module = merge(RECORD, [first, second])
        assert module.dependencies == ("react", "./api")
        assert [i.line for i in module.imports] == [1, 12, 13]

    def test_strategy(self):
        direct = merge(RECORD, [_analysis(_chunk(0, 1, 5, "direct"))])
        assert direct.strategy == "direct"
        chunked = merge(RECORD, [_analysis(_chunk(0, 1, 5)), _analysis(_chunk(1, 6, 9))])
        assert chunked.strategy == "chunked"
        shallow = merge(RECORD, [_analysis(_chunk(0, 1, 5))], strategy="shallow", truncated=True)
        assert shallow.strategy == "shallow"
        assert shallow.truncated

    def test_line_count_covers_unanalysed_tail(self):
        findings = (Issue("fixme", "FIXME comment", "high", 1),)
        analyses = [_analysis(_chunk(0, 1, 30), findings=findings)]
        module = merge(RECORD, analyses, strategy="shallow", truncated=True, technical_debt=True, line_count=90)
        assert module.line_count == 90
        assert module.chunks[-1].end_line == 30
        assert module.technical_debt == 10.0

    def test_pattern_tags_count_chunks(self):
        analyses = [
            _analysis(_chunk(0, 1, 10), pattern_tags=("Factory", "Module")),
            _analysis(_chunk(1, 11, 20), pattern_tags=("Factory",)),
        ]
        assert merge(RECORD, analyses).pattern_tags == {"Factory": 2, "Module": 1}

    def test_issues_and_findings_are_shifted(self):
        analyses = [
            _analysis(_chunk(0, 1, 10)),
            _analysis(
                _chunk(1, 11, 20),
                issues=(Issue("extraction-error", "routes pass failed", "medium"),),
                findings=(Issue("todo", "TODO comment", "medium", 3),),
            ),
        ]
        module = merge(RECORD, analyses)
        assert module.issues[0].line is None
        assert module.findings[0].line == 13

    def test_technical_debt_only_when_enabled(self):
        findings = (Issue("fixme", "FIXME comment", "high", 1), Issue("debug-code", "Debug", "low", 2))
        analyses = [_analysis(_chunk(0, 1, 50, "direct"), findings=findings)]
        assert merge(RECORD, analyses).technical_debt is None
        assert merge(RECORD, analyses, technical_debt=True).technical_debt == 8.0

    def test_rejects_empty_and_duplicate_indices(self):
        with pytest.raises(ValueError, match="No chunk analyses"):
            merge(RECORD, [])
        with pytest.raises(ValueError, match="Duplicate chunk indices"):
            merge(RECORD, [_analysis(_chunk(0, 1, 5)), _analysis(_chunk(0, 6, 9))])


class TestCrossChunkInsights:
    def test_import_used_in_another_chunk(self):
        first = _analysis(_chunk(0, 1, 10), imports=[ImportInfo("lodash", ("_",), "esm", True, 1)], identifiers={"_"})
        second = _analysis(_chunk(1, 11, 20), functions=[_fn("pick", 1)], identifiers={"pick", "_"})
        insights = cross_chunk_insights([first, second])
        assert insights.chunk_count == 2
        assert [(s.name, s.kind, s.defined_in, s.used_in) for s in insights.shared_symbols] == [("_", "import", 0, (1,))]
        assert insights.imports_used_across_chunks == ("lodash",)

    def test_forward_reference_to_later_chunk(self):
        first = _analysis(_chunk(0, 1, 10), functions=[_fn("main", 1)], identifiers={"main", "later"})
        second = _analysis(_chunk(1, 11, 20), functions=[_fn("later", 1)], identifiers={"later"})
        shared = cross_chunk_insights([first, second]).shared_symbols
        assert [(s.name, s.defined_in, s.used_in) for s in shared] == [("later", 1, (0,))]

    def test_single_chunk_has_no_shared_symbols(self):
        only = _analysis(_chunk(0, 1, 10, "direct"), functions=[_fn("a", 1)], identifiers={"a"})
        insights = cross_chunk_insights([only])
        assert insights.shared_symbols == ()
        assert not insights.has_cross_references
