"""Lexical extractor for JavaScript/TypeScript and other brace languages."""

from __future__ import annotations

import re

from ..lexical import C_FAMILY_RULES, LexicalRules, rules_for_language
from ..models import Chunk, ClassInfo, ConstantInfo, ExportInfo, FunctionInfo, ImportInfo, RouteInfo
from .base import (
    BaseExtractor,
    SourceView,
    collect_calls,
    dedupe,
    is_external,
    paren_contents,
    parse_params,
    split_top_level,
)

_NAME = r"[A-Za-z_$][\w$]*"

_IMPORT_START_RE = re.compile(r"^\s*import\b(?!\s*\()")
_IMPORT_FROM_RE = re.compile(r"""^\s*import\s+(?:type\s+)?(.+?)\s+from\s+['"]([^'"]+)['"]""", re.S)
_IMPORT_BARE_RE = re.compile(r"""^\s*import\s+['"]([^'"]+)['"]""")
_JAVA_IMPORT_RE = re.compile(r"^\s*import\s+(?:static\s+)?([\w.]+(?:\.\*)?)\s*;")
_GO_IMPORT_BLOCK_RE = re.compile(r"^\s*import\s*\(\s*$")
_USE_RE = re.compile(r"^\s*(?:using|use)\s+(?:static\s+)?([\w.:\\]+)")
_INCLUDE_RE = re.compile(r"""^\s*#\s*include\s*[<"]([^>"]+)[>"]""")
_QUOTED_RE = re.compile(r"""['"`]([^'"`]+)['"`]""")
_DYNAMIC_IMPORT_RE = re.compile(r"""\bimport\(\s*['"`]([^'"`]+)['"`]\s*\)""")
_REQUIRE_RE = re.compile(r"""\brequire\(\s*['"`]([^'"`]+)['"`]\s*\)""")
_REQUIRE_BINDING_RE = re.compile(rf"(?:const|let|var)\s+(\{{[^}}]*\}}|{_NAME})\s*=\s*$")

_EXPORT_DEFAULT_RE = re.compile(rf"^\s*export\s+default\s+(?:async\s+)?(?:function\*?|class)?\s*({_NAME})?")
_EXPORT_DECL_RE = re.compile(
    rf"^\s*export\s+(?:declare\s+)?(?:abstract\s+)?(?:async\s+)?"
    rf"(?:function\*?|class|const|let|var|interface|type|enum)\s+({_NAME})"
)
_EXPORT_LIST_RE = re.compile(r"^\s*export\s*(?:type\s*)?\{([^}]*)\}")
_EXPORT_ALL_RE = re.compile(r"^\s*export\s*\*")
_CJS_OBJECT_RE = re.compile(r"\bmodule\.exports\s*=\s*\{([^}]*)\}")
_CJS_VALUE_RE = re.compile(rf"\bmodule\.exports\s*=\s*({_NAME})")
_CJS_NAMED_RE = re.compile(rf"\b(?:module\.)?exports\.({_NAME})\s*=(?!=)")

_FUNCTION_RE = re.compile(
    rf"^\s*(export\s+)?(?:default\s+)?(async\s+)?function\s*\*?\s*({_NAME})\s*(?:<[^>]*>)?\s*\("
)
_ARROW_RE = re.compile(
    rf"^\s*(export\s+)?(?:const|let|var)\s+({_NAME})\s*(?::[^=]+)?=\s*(async\s+)?(?:\(|({_NAME})\s*=>)"
)
_FUNC_EXPR_RE = re.compile(rf"^\s*(export\s+)?(?:const|let|var)\s+({_NAME})\s*=\s*(async\s+)?function\b[^(]*\(")
_ARROW_TAIL_RE = re.compile(r"\s*(?::\s*[^=;{]+)?=>\s*(\{)?")
_GO_FUNC_RE = re.compile(r"^\s*func\s+(?:\([^)]*\)\s*)?([A-Za-z_]\w*)\s*(?:\[[^\]]*\])?\(")
_RUST_FN_RE = re.compile(r"^\s*(pub(?:\([^)]*\))?\s+)?(?:const\s+)?(async\s+)?(?:unsafe\s+)?fn\s+([A-Za-z_]\w*)\s*(?:<[^>]*>)?\(")

_CLASS_RE = re.compile(
    rf"^\s*(export\s+)?(?:default\s+)?(?:(?:abstract|public|private|protected|internal|static|final|sealed|partial)\s+)*"
    rf"class\s+({_NAME})(?:\s*<[^>{{]*>)?(?:\s+extends\s+([\w$.]+)|\s*:\s*([\w.]+))?"
)
_METHOD_RE = re.compile(
    r"^\s*(?:(?:public|private|protected|static|readonly|override|abstract|final|synchronized|get|set|async)\s+)*"
    r"(?:[\w$<>\[\],.?]+\s+)?\*?(#?[A-Za-z_$][\w$]*)\s*(?:<[^>]*>)?\s*\("
)
_PROPERTY_RE = re.compile(
    r"^\s*(?:(?:public|private|protected|static|readonly|declare|override|final)\s+)*"
    r"(?:[\w$<>\[\],.?]+\s+)?(#?[A-Za-z_$][\w$]*)\s*[?!]?\s*(?::[^=(;]+)?(?:=|;|$)"
)
_THIS_ASSIGN_RE = re.compile(r"\bthis\.(#?[A-Za-z_$][\w$]*)\s*=(?![=>])")
_SKIP_METHOD_NAMES = {"if", "for", "while", "switch", "catch", "function", "return", "new", "throw", "super"}

_CONSTANT_RE = re.compile(r"^\s*(?:export\s+)?const\s+([A-Z][A-Z0-9_]+)\b\s*(?::[^=]+)?=")
_STATIC_FINAL_RE = re.compile(r"\b(?:static\s+final|final\s+static|const)\s+[\w<>\[\]]+\s+([A-Z][A-Z0-9_]+)\s*=")
_CONFIG_RE = re.compile(r"^\s*(?:export\s+)?(?:const|let|var)\s+(\w*[Cc]onfig\w*)\s*(?::[^=]+)?=")
_ENV_DOT_RE = re.compile(r"\bprocess\.env\.([A-Za-z_]\w*)")
_ENV_CALL_RE = re.compile(
    r"""(?:process\.env\[\s*|os\.Getenv\(\s*|System\.getenv\(\s*|env::var\(\s*|getenv\(\s*)['"]([A-Za-z_]\w*)['"]"""
)

_ROUTE_RE = re.compile(
    r"""\b(app|router|server|api|route)\.(get|post|put|delete|patch|all|options|head|use)\s*\(\s*(['"`])([^'"`]*)\3"""
)


class JavaScriptExtractor(BaseExtractor):
    """Regex-driven extraction for JavaScript and TypeScript."""

    name = "javascript"
    rules = C_FAMILY_RULES
    extensions = (".js", ".jsx", ".mjs", ".cjs", ".ts", ".tsx", ".mts", ".cts")

    def extract_imports(self, view: SourceView) -> tuple[ImportInfo, ...]:
        imports: list[ImportInfo] = []
        total = len(view.lines)
        index = 0
        while index < total:
            masked = view.masked_lines[index]
            line_no = index + 1
            if _GO_IMPORT_BLOCK_RE.match(masked):
                index += 1
                while index < total and ")" not in view.masked_lines[index]:
                    for match in _QUOTED_RE.finditer(view.lines[index]):
                        imports.append(ImportInfo(match.group(1), (), "go", True, index + 1))
                    index += 1
                index += 1
                continue

            if _IMPORT_START_RE.match(masked):
                end = _statement_end(view, index)
                statement = "\n".join(view.lines[index : end + 1])
                imports.extend(_parse_import_statement(statement, line_no))
                index = end + 1
                continue

            use_match = _USE_RE.match(masked)
            if use_match:
                module = use_match.group(1).rstrip(";")
                imports.append(ImportInfo(module, (module.replace("::", ".").rsplit(".", 1)[-1],), "use", True, line_no))
            include_match = _INCLUDE_RE.match(view.lines[index])
            if include_match and masked.lstrip().startswith("#"):
                header = include_match.group(1)
                imports.append(ImportInfo(header, (), "include", "<" in view.lines[index], line_no))
            index += 1

        for pattern, kind in ((_REQUIRE_RE, "commonjs"), (_DYNAMIC_IMPORT_RE, "dynamic")):
            for match in pattern.finditer(view.text):
                if not view.in_code(match.start()):
                    continue
                line_no = view.line_at(match.start())
                names: tuple[str, ...] = ()
                if kind == "commonjs":
                    prefix = view.text[view.line_offsets[line_no - 1] : match.start()]
                    binding = _REQUIRE_BINDING_RE.search(prefix)
                    if binding:
                        names = _binding_names(binding.group(1))
                module = match.group(1)
                imports.append(ImportInfo(module, names, kind, is_external(module), line_no))

        imports.sort(key=lambda item: item.line)
        return tuple(imports)

    def extract_exports(self, view: SourceView) -> tuple[ExportInfo, ...]:
        exports: list[ExportInfo] = []
        for index, masked in enumerate(view.masked_lines):
            line_no = index + 1
            if "export" not in masked:
                continue
            match = _EXPORT_DEFAULT_RE.match(masked)
            if match:
                name = match.group(1)
                if not name or name in ("new", "async", "function", "class"):
                    name = "default"
                exports.append(ExportInfo(name, "default", line_no))
                continue
            match = _EXPORT_DECL_RE.match(masked)
            if match:
                exports.append(ExportInfo(match.group(1), "named", line_no))
                continue
            if _EXPORT_ALL_RE.match(masked):
                exports.append(ExportInfo("*", "re-export", line_no))
                continue
            if re.match(r"^\s*export\s*(?:type\s*)?\{", masked):
                end = _statement_end(view, index, closer="}")
                joined = " ".join(view.masked_lines[index : end + 1])
                list_match = _EXPORT_LIST_RE.match(joined)
                if list_match:
                    for part in split_top_level(list_match.group(1)):
                        exports.append(ExportInfo(part.split(" as ")[-1].strip(), "named", line_no))

        for match in _CJS_OBJECT_RE.finditer(view.masked):
            line_no = view.line_at(match.start())
            for part in split_top_level(match.group(1)):
                name = re.split(r"[:(\s]", part.lstrip("."), maxsplit=1)[0]
                if name:
                    exports.append(ExportInfo(name, "commonjs", line_no))
        for match in _CJS_VALUE_RE.finditer(view.masked):
            exports.append(ExportInfo(match.group(1), "commonjs", view.line_at(match.start())))
        for match in _CJS_NAMED_RE.finditer(view.masked):
            exports.append(ExportInfo(match.group(1), "commonjs", view.line_at(match.start())))

        exports.sort(key=lambda item: item.line)
        return dedupe(exports, key=lambda item: (item.name, item.kind))

    def extract_functions(self, view: SourceView) -> tuple[FunctionInfo, ...]:
        functions: list[FunctionInfo] = []
        for index, masked in enumerate(view.masked_lines):
            line_no = index + 1
            offset = view.line_offsets[index]

            match = _FUNCTION_RE.match(masked)
            if match:
                params = paren_contents(view.masked, offset + match.end() - 1)
                functions.append(
                    self._function(view, match.group(3), line_no, params, bool(match.group(2)), bool(match.group(1)), "declaration")
                )
                continue

            match = _FUNC_EXPR_RE.match(masked)
            if match:
                params = paren_contents(view.masked, offset + match.end() - 1)
                functions.append(
                    self._function(view, match.group(2), line_no, params, bool(match.group(3)), bool(match.group(1)), "expression")
                )
                continue

            match = _ARROW_RE.match(masked)
            if match:
                arrow = self._arrow(view, match, offset, line_no)
                if arrow is not None:
                    functions.append(arrow)
                continue

            match = _GO_FUNC_RE.match(masked)
            if match:
                params = paren_contents(view.masked, offset + match.end() - 1)
                name = match.group(1)
                functions.append(self._function(view, name, line_no, params, False, name[:1].isupper(), "declaration"))
                continue

            match = _RUST_FN_RE.match(masked)
            if match:
                params = paren_contents(view.masked, offset + match.end() - 1)
                functions.append(
                    self._function(view, match.group(3), line_no, params, bool(match.group(2)), bool(match.group(1)), "declaration")
                )
        return tuple(functions)

    def _arrow(self, view: SourceView, match: re.Match[str], offset: int, line_no: int) -> FunctionInfo | None:
        name = match.group(2)
        is_async = bool(match.group(3))
        exported = bool(match.group(1))
        if match.group(4):
            # single bare parameter: x => ...
            tail_start = offset + match.end()
            has_block = view.masked[tail_start : tail_start + 200].lstrip().startswith("{")
            return self._function(view, name, line_no, match.group(4), is_async, exported, "arrow", has_block)

        open_index = offset + match.end() - 1
        params = paren_contents(view.masked, open_index)
        if params is None:
            return None
        after = open_index + len(params) + 2
        tail = _ARROW_TAIL_RE.match(view.masked, after)
        if tail is None:
            return None
        return self._function(view, name, line_no, params, is_async, exported, "arrow", bool(tail.group(1)))

    def _function(
        self,
        view: SourceView,
        name: str,
        line_no: int,
        params: str | None,
        is_async: bool,
        exported: bool,
        kind: str,
        has_block: bool = True,
    ) -> FunctionInfo:
        end_line = view.block_end(line_no) if has_block else line_no
        body = view.body(line_no, end_line)
        calls = tuple(call for call in collect_calls(body) if call != name)
        return FunctionInfo(
            name=name,
            line=line_no,
            end_line=end_line,
            params=parse_params(params),
            is_async=is_async,
            exported=exported,
            kind=kind,
            complexity=self.body_complexity(body),
            calls=calls,
        )

    def extract_classes(self, view: SourceView) -> tuple[ClassInfo, ...]:
        classes: list[ClassInfo] = []
        for index, masked in enumerate(view.masked_lines):
            match = _CLASS_RE.match(masked)
            if not match:
                continue
            line_no = index + 1
            block = view.block_at(line_no)
            methods: list[str] = []
            properties: list[str] = []
            constructor_params: tuple[str, ...] = ()
            end_line = line_no
            if block is not None:
                end_line = block.end_line
                for member_line in range(block.start_line + 1, block.end_line + 1):
                    if view.depths[member_line - 1] != block.depth:
                        continue
                    member = view.masked_lines[member_line - 1]
                    method = _METHOD_RE.match(member)
                    if method and method.group(1) not in _SKIP_METHOD_NAMES:
                        methods.append(method.group(1))
                        if method.group(1) == "constructor":
                            open_index = view.line_offsets[member_line - 1] + method.end() - 1
                            constructor_params = parse_params(paren_contents(view.masked, open_index))
                        continue
                    prop = _PROPERTY_RE.match(member)
                    if prop and prop.group(1) not in _SKIP_METHOD_NAMES:
                        properties.append(prop.group(1))
                for assign in _THIS_ASSIGN_RE.finditer(view.body(block.start_line, block.end_line)):
                    properties.append(assign.group(1))

            classes.append(
                ClassInfo(
                    name=match.group(2),
                    line=line_no,
                    end_line=end_line,
                    superclass=match.group(3) or match.group(4),
                    methods=tuple(dict.fromkeys(methods)),
                    properties=tuple(dict.fromkeys(properties)),
                    constructor_params=constructor_params,
                    exported=bool(match.group(1)) or masked.lstrip().startswith("public "),
                )
            )
        return tuple(classes)

    def extract_constants(self, view: SourceView) -> tuple[ConstantInfo, ...]:
        constants: list[ConstantInfo] = []
        for index, masked in enumerate(view.masked_lines):
            line_no = index + 1
            match = _CONSTANT_RE.match(masked) or _STATIC_FINAL_RE.search(masked)
            if match:
                constants.append(ConstantInfo(match.group(1), "constant", line_no))
                continue
            match = _CONFIG_RE.match(masked)
            if match:
                constants.append(ConstantInfo(match.group(1), "config", line_no))

        for match in _ENV_DOT_RE.finditer(view.masked):
            constants.append(ConstantInfo(match.group(1), "env", view.line_at(match.start())))
        for match in _ENV_CALL_RE.finditer(view.text):
            if view.in_code(match.start()):
                constants.append(ConstantInfo(match.group(1), "env", view.line_at(match.start())))
        return dedupe(constants, key=lambda item: (item.name, item.kind))

    def extract_routes(self, view: SourceView) -> tuple[RouteInfo, ...]:
        routes: list[RouteInfo] = []
        for match in _ROUTE_RE.finditer(view.text):
            if not view.in_code(match.start()):
                continue
            routes.append(RouteInfo(match.group(2).upper(), match.group(4), view.line_at(match.start())))
        return tuple(routes)


class CFamilyExtractor(JavaScriptExtractor):
    """Fallback for Java, Go, C#, Rust, C/C++, PHP and anything unrecognised."""

    name = "c_family"
    extensions = (
        ".java", ".kt", ".scala", ".go", ".rs", ".cs", ".php", ".swift",
        ".c", ".h", ".cc", ".cpp", ".cxx", ".hpp",
    )

    def rules_for(self, chunk: Chunk) -> LexicalRules:
        if chunk.source_file is None:
            return self.rules
        return rules_for_language(chunk.source_file.language)


def _statement_end(view: SourceView, index: int, closer: str = ";", limit: int = 25) -> int:
    """Index of the line that ends the statement starting at ``index``."""
    last = min(len(view.lines), index + limit) - 1
    for cursor in range(index, last + 1):
        masked = view.masked_lines[cursor]
        original = view.lines[cursor]
        if closer in masked:
            return cursor
        if closer == ";" and (_IMPORT_BARE_RE.match(original) or re.search(r"""\bfrom\s+['"][^'"]+['"]""", original)):
            return cursor
    return index


def _parse_import_statement(statement: str, line_no: int) -> list[ImportInfo]:
    match = _IMPORT_FROM_RE.match(statement)
    if match:
        module = match.group(2)
        return [ImportInfo(module, _import_names(match.group(1)), "esm", is_external(module), line_no)]
    match = _IMPORT_BARE_RE.match(statement)
    if match:
        module = match.group(1)
        return [ImportInfo(module, (), "esm", is_external(module), line_no)]
    match = _JAVA_IMPORT_RE.match(statement)
    if match:
        module = match.group(1)
        return [ImportInfo(module, (module.rsplit(".", 1)[-1],), "java", True, line_no)]
    return []


def _import_names(clause: str) -> tuple[str, ...]:
    names: list[str] = []
    clause = " ".join(clause.split())
    brace = re.search(r"\{([^}]*)\}", clause)
    if brace:
        for part in brace.group(1).split(","):
            part = part.strip()
            if part:
                names.append(part.split(" as ")[-1].strip().removeprefix("type "))
    rest = re.sub(r"\{[^}]*\}", "", clause)
    for part in rest.split(","):
        part = part.strip()
        if part:
            names.append(part.split(" as ")[-1].strip())
    return tuple(names)


def _binding_names(binding: str) -> tuple[str, ...]:
    if not binding.startswith("{"):
        return (binding,)
    names = []
    for part in split_top_level(binding.strip("{} ")):
        names.append(part.split(":")[-1].strip())
    return tuple(name for name in names if name)
