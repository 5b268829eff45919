"""Tests for the structural extractors."""

import pytest

from chunklens.chunker import chunk
from chunklens.extractors import (
    CFamilyExtractor,
    ExtractorRegistry,
    JavaScriptExtractor,
    PythonExtractor,
    default_registry,
    extract,
)
from chunklens.merger import merge
from chunklens.models import FileRecord

JS_SOURCE = "\n".join([
    "import fs from 'fs';",
    "import { join, resolve as res } from 'path';",
    "import './polyfill';",
    "const { readFile } = require('./io');",
    "const MAX_RETRIES = 3;",
    "const appConfig = { port: process.env.PORT };",
    "",
    "export class UserService extends BaseService {",
    "  constructor(repo, cache, logger) {",
    "    super();",
    "    this.repo = repo;",
    "  }",
    "",
    "  async findUser(id) {",
    "    if (id && this.cache) {",
    "      return this.cache.get(id);",
    "    }",
    "    return await this.repo.find(id);",
    "  }",
    "}",
    "",
    "export const handler = async (req, res) => {",
    "  res.send('ok');",
    "};",
    "",
    "function helper(x) {",
    "  return x * 2;",
    "}",
    "",
    "app.get('/users', handler);",
    "export default UserService;",
    "",
])

PY_SOURCE = "\n".join([
    '"""Service module."""',
    "import os",
    "from .models import User, Group",
    "from typing import (",
    "    Any,",
    "    Optional,",
    ")",
    "",
    '__all__ = ["UserService", "load"]',
    "",
    "MAX_USERS = 100",
    'DATABASE_URL = os.environ.get("DATABASE_URL")',
    "",
    "",
    "class UserService(BaseService, metaclass=Meta):",
    '    """Loads users."""',
    "",
    "    cache_size = 10",
    "",
    "    def __init__(self, repo, cache=None, *, logger=None):",
    "        self.repo = repo",
    "        self._cache = cache",
    "",
    "    async def fetch(self, user_id):",
    "        # TODO: add retries",
    "        if user_id and self.repo:",
    "            return await self.repo.get(user_id)",
    "        return None",
    "",
    "",
    "def load(path: str, strict: bool = False) -> dict:",
    "    with open(path) as handle:",
    "        return parse(handle.read())",
    "",
    "",
    '@app.route("/users", methods=["POST"])',
    "def create_user():",
    '    print("creating")',
    "    return {}",
    "",
])


@pytest.fixture
def js():
    return extract(JS_SOURCE, "src/service.js")


@pytest.fixture
def py():
    return extract(PY_SOURCE, "app/service.py")


class TestJavaScriptImports:
    def test_import_kinds_and_lines(self, js):
        assert [(i.module, i.kind, i.line) for i in js.imports] == [
            ("fs", "esm", 1),
            ("path", "esm", 2),
            ("./polyfill", "esm", 3),
            ("./io", "commonjs", 4),
        ]

    def test_import_names(self, js):
        by_module = {i.module: i for i in js.imports}
        assert by_module["fs"].names == ("fs",)
        assert by_module["path"].names == ("join", "res")
        assert by_module["./io"].names == ("readFile",)

    def test_external_by_leading_dot(self, js):
        by_module = {i.module: i for i in js.imports}
        assert by_module["fs"].external
        assert not by_module["./polyfill"].external
        assert not by_module["./io"].external

    def test_multiline_import(self):
        result = extract("import {\n  a,\n  b as c,\n} from './mod';\nconst x = 1;\n", "m.js")
        assert len(result.imports) == 1
        assert result.imports[0].names == ("a", "c")
        assert result.imports[0].line == 1

    def test_dynamic_import_and_require_in_string_ignored(self):
        source = "const s = \"require('nope')\";\nconst m = import('./lazy');\n"
        result = extract(source, "m.js")
        assert [(i.module, i.kind) for i in result.imports] == [("./lazy", "dynamic")]


class TestJavaScriptStructure:
    def test_functions(self, js):
        assert [(f.name, f.kind, f.line, f.end_line) for f in js.functions] == [
            ("handler", "arrow", 22, 24),
            ("helper", "declaration", 26, 28),
        ]

    def test_function_details(self, js):
        handler, helper = js.functions
        assert handler.params == ("req", "res")
        assert handler.is_async
        assert handler.exported
        assert helper.params == ("x",)
        assert not helper.is_async
        assert not helper.exported
        assert helper.calls == ()

    def test_regex_literal_quote_does_not_hide_later_code(self):
        source = "const quotes = /'/g;\nfunction a() {}\nfunction b() {}\nclass C {}\n"
        result = extract(source, "m.js")
        assert [f.name for f in result.functions] == ["a", "b"]
        assert [c.name for c in result.classes] == ["C"]

    def test_jsx_apostrophe_does_not_hide_later_components(self):
        source = "\n".join([
            "export function Banner() {",
            "  return <p>Don't panic</p>;",
            "}",
            "export function Footer() {",
            "  return <footer />;",
            "}",
            "",
        ])
        result = extract(source, "Banner.jsx")
        assert [f.name for f in result.functions] == ["Banner", "Footer"]

    def test_methods_are_not_functions(self, js):
        assert "findUser" not in {f.name for f in js.functions}

    def test_class(self, js):
        assert len(js.classes) == 1
        cls = js.classes[0]
        assert cls.name == "UserService"
        assert cls.superclass == "BaseService"
        assert cls.exported
        assert (cls.line, cls.end_line) == (8, 20)
        assert cls.methods == ("constructor", "findUser")
        assert cls.constructor_params == ("repo", "cache", "logger")
        assert cls.properties == ("repo",)

    def test_exports(self, js):
        assert {(e.name, e.kind) for e in js.exports} == {
            ("UserService", "named"),
            ("handler", "named"),
            ("UserService", "default"),
        }

    def test_commonjs_exports(self):
        result = extract("function a() {}\nmodule.exports = { a, b: a };\nexports.c = 1;\n", "m.js")
        assert {(e.name, e.kind) for e in result.exports} == {("a", "commonjs"), ("b", "commonjs"), ("c", "commonjs")}

    def test_constants(self, js):
        assert {(c.name, c.kind) for c in js.constants} == {
            ("MAX_RETRIES", "constant"),
            ("appConfig", "config"),
            ("PORT", "env"),
        }

    def test_routes(self, js):
        assert [(r.method, r.path, r.line) for r in js.routes] == [("GET", "/users", 30)]

    def test_complexity(self, js):
        # base 1 + if + &&
        assert js.complexity_score == 3

    def test_patterns(self, js):
        assert {"Module", "Express-Route", "Async/Await", "Dependency-Injection"} <= set(js.pattern_tags)
        assert "Singleton" not in js.pattern_tags

    def test_singleton_pattern(self):
        result = extract("class Db {\n  static getInstance() { return this.i; }\n}\n", "db.js")
        assert "Singleton" in result.pattern_tags

    def test_doc_and_marker_comments(self):
        source = "/**\n * Adds numbers.\n */\nfunction add(a, b) {\n  // NOTE: keep pure\n  return a + b;\n}\n"
        result = extract(source, "add.js")
        assert [(c.kind, c.text, c.line) for c in result.comments] == [
            ("doc", "Adds numbers.", 1),
            ("note", "keep pure", 5),
        ]


class TestPythonExtractor:
    def test_imports(self, py):
        assert [(i.module, i.names, i.external, i.line) for i in py.imports] == [
            ("os", ("os",), True, 2),
            (".models", ("User", "Group"), False, 3),
            ("typing", ("Any", "Optional"), True, 4),
        ]

    def test_functions_skip_methods(self, py):
        assert [(f.name, f.line, f.end_line) for f in py.functions] == [
            ("load", 31, 33),
            ("create_user", 37, 39),
        ]

    def test_function_details(self, py):
        load = py.functions[0]
        assert load.params == ("path", "strict")
        assert load.calls == ("open", "parse", "read")
        assert load.exported

    def test_class(self, py):
        cls = py.classes[0]
        assert cls.name == "UserService"
        assert cls.superclass == "BaseService"
        assert (cls.line, cls.end_line) == (15, 28)
        assert cls.methods == ("__init__", "fetch")
        assert cls.constructor_params == ("repo", "cache", "logger")
        assert cls.properties == ("cache_size", "repo", "_cache")

    def test_exports_from_all(self, py):
        assert [e.name for e in py.exports] == ["UserService", "load"]

    def test_constants(self, py):
        assert [(c.name, c.kind) for c in py.constants] == [
            ("MAX_USERS", "constant"),
            ("DATABASE_URL", "constant"),
            ("DATABASE_URL", "env"),
        ]

    def test_routes(self, py):
        assert [(r.method, r.path, r.line) for r in py.routes] == [("POST", "/users", 36)]

    def test_comments(self, py):
        assert [(c.kind, c.text, c.line) for c in py.comments] == [
            ("doc", "Service module.", 1),
            ("doc", "Loads users.", 16),
            ("todo", "add retries", 25),
        ]

    def test_complexity_and_patterns(self, py):
        assert py.complexity_score == 3
        assert {"Decorator", "Async/Await", "Dependency-Injection"} <= set(py.pattern_tags)

    def test_lambda_assignment(self):
        result = extract("square = lambda x: x * x\n", "m.py")
        assert [(f.name, f.kind, f.params) for f in result.functions] == [("square", "lambda", ("x",))]


class TestQualityFindings:
    def test_off_by_default(self, py):
        assert py.findings == ()

    def test_python_findings(self):
        result = extract(PY_SOURCE, "app/service.py", quality=True)
        assert [(f.kind, f.line) for f in result.findings] == [("todo", 25), ("debug-code", 38)]

    def test_javascript_findings(self):
        source = "function f(a) {\n  console.log(a); // FIXME broken\n}\n"
        result = extract(source, "f.js", quality=True)
        assert [(f.kind, f.severity, f.line) for f in result.findings] == [
            ("debug-code", "low", 2),
            ("fixme", "high", 2),
        ]

    def test_long_parameter_list(self):
        source = "function f(alpha, beta, gamma, delta, epsilon, zeta, eta, theta) {\n}\n"
        result = extract(source, "f.js", quality=True)
        assert [f.kind for f in result.findings] == ["long-parameter-list"]

    def test_deep_nesting(self):
        source = "function f() {\nif (a) {\nif (b) {\nif (c) {\nif (d) {\nx();\n}\n}\n}\n}\n}\n"
        result = extract(source, "f.js", quality=True)
        assert [(f.kind, f.line) for f in result.findings] == [("deep-nesting", 6)]


class TestFailurePolicy:
    def test_binary_content(self):
        result = extract("abc\x00def", "blob.js")
        assert result.functions == ()
        assert [i.kind for i in result.issues] == ["binary-content"]

    def test_failing_pass_leaves_category_empty(self):
        class Broken(JavaScriptExtractor):
            def extract_classes(self, view):
                raise RuntimeError("boom")

        part = chunk(JS_SOURCE, 100000)[0]
        result = Broken().extract(part)
        assert result.classes == ()
        assert len(result.functions) == 2
        assert [i.kind for i in result.issues] == ["extraction-error"]
        assert "classes" in result.issues[0].message

    def test_never_raises_on_garbage(self):
        result = extract("}}}{{{ ((( '''\n\"\"\" ` /* ", "weird.js")
        assert result.chunk.index == 0


class TestRegistry:
    def test_selects_by_extension(self):
        registry = default_registry()
        assert registry.select("a/b.py").name == "python"
        assert registry.select("a/b.tsx").name == "javascript"
        assert registry.select("Main.java").name == "c_family"
        assert registry.select("README").name == "c_family"

    def test_names_include_fallback_last(self):
        assert default_registry().names() == ("python", "javascript", "c_family")

    def test_no_fallback_raises(self):
        registry = ExtractorRegistry()
        registry.register(PythonExtractor())
        with pytest.raises(LookupError):
            registry.select("x.js")

    def test_c_family_uses_language_rules(self):
        record = FileRecord("/p/x.php", "x.php", ".php", 10, 0.0, language="php")
        source = "<?php\n# comment { \nfunction go($a) {\n  return $a;\n}\n"
        part = chunk(source, 8000, source_file=record)[0]
        result = CFamilyExtractor().extract(part)
        assert [(f.name, f.end_line) for f in result.functions] == [("go", 5)]

    def test_go_functions(self):
        source = "package main\n\nimport (\n\t\"fmt\"\n)\n\nfunc Hello(name string) string {\n\treturn fmt.Sprint(name)\n}\n"
        result = extract(source, "main.go")
        assert [(f.name, f.exported) for f in result.functions] == [("Hello", True)]
        assert [i.module for i in result.imports] == ["fmt"]


class TestChunkedCompleteness:
    def _python_module(self):
        parts = []
        for i in range(30):
            parts.append(f"class Model{i}(Base):\n")
            parts.append(f"    def run(self, value):\n        return value + {i}\n\n\n")
            parts.append(f"def helper_{i}(a, b):\n    if a:\n        return b\n    return a\n\n\n")
        return "".join(parts)

    @pytest.mark.parametrize("name,builder", [("big.js", "_js_module"), ("big.py", "_python_module")])
    def test_chunked_matches_direct(self, name, builder):
        content = getattr(self, builder)()
        record = FileRecord(f"/p/{name}", name, "." + name.split(".")[1], len(content), 0.0,
                            language="python" if name.endswith(".py") else "javascript")
        rules = PythonExtractor.rules if name.endswith(".py") else JavaScriptExtractor.rules
        direct = merge(record, [extract(c) for c in chunk(content, 10 ** 6, rules=rules, source_file=record)])
        chunked = merge(record, [extract(c) for c in chunk(content, 600, rules=rules, source_file=record)])
        assert chunked.chunk_count > 1
        assert direct.chunk_count == 1
        assert {f.name for f in chunked.merged_functions} == {f.name for f in direct.merged_functions}
        assert {c.name for c in chunked.merged_classes} == {c.name for c in direct.merged_classes}
        assert [f.line for f in chunked.merged_functions] == [f.line for f in direct.merged_functions]

    def _js_module(self):
        parts = []
        for i in range(30):
            parts.append(f"export class Widget{i} extends Base {{\n  render() {{\n    return {i};\n  }}\n}}\n\n")
            parts.append(f"export const make{i} = (opts) => {{\n  return new Widget{i}(opts);\n}};\n\n")
        return "".join(parts)
