"""Lexical extractor for Python source.

Blocks are found by indentation rather than braces; continuation lines
inside open brackets never end a block.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from ..lexical import HASH_RULES
from ..models import ClassInfo, ConstantInfo, ExportInfo, FunctionInfo, ImportInfo, RouteInfo
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

_DEF_RE = re.compile(r"^(\s*)(async\s+)?def\s+([A-Za-z_]\w*)\s*(?:\[[^\]]*\])?\(")
_CLASS_RE = re.compile(r"^(\s*)class\s+([A-Za-z_]\w*)\s*(?:\[[^\]]*\])?(\()?")
_LAMBDA_RE = re.compile(r"^([A-Za-z_]\w*)\s*(?::[^=]+)?=\s*lambda\b([^:]*):")
_IMPORT_RE = re.compile(r"^\s*import\s+(.+)$")
_FROM_RE = re.compile(r"^\s*from\s+(\.*[\w.]*)\s+import\s+(.+)$")
_ALL_RE = re.compile(r"^__all__\s*(?::[^=]+)?\+?=")
_QUOTED_RE = re.compile(r"""['"]([A-Za-z_]\w*)['"]""")
_CONSTANT_RE = re.compile(r"^([A-Z][A-Z0-9_]+)\s*(?::[^=]+)?=(?!=)")
_CONFIG_RE = re.compile(r"^(\w*[Cc]onfig\w*)\s*(?::[^=]+)?=(?!=)")
_ENV_RE = re.compile(r"""\bos\.(?:environ(?:\.get)?|getenv)\s*[\[(]\s*['"]([A-Za-z_]\w*)['"]""")
_SELF_ASSIGN_RE = re.compile(r"\bself\.([A-Za-z_]\w*)\s*(?::[^=\n]+)?=(?!=)")
_CLASS_ATTR_RE = re.compile(r"^\s*([A-Za-z_]\w*)\s*(?::[^=]+)?(?:=(?!=)|$)")
_ROUTE_DECORATOR_RE = re.compile(
    r"""^[ \t]*@(\w+)\.(route|get|post|put|delete|patch|head|options|websocket)\(\s*['"]([^'"]*)['"]([^\n]*)""",
    re.M,
)
_METHODS_KW_RE = re.compile(r"""methods\s*=\s*[\[(]\s*['"](\w+)['"]""")
_DJANGO_PATH_RE = re.compile(r"""\b(?:re_)?path\(\s*r?['"]([^'"]*)['"]""")
_DROP_PARAMS = ("self", "cls", "*", "/")


@dataclass(frozen=True, slots=True)
class _PyBlock:
    name: str
    line: int
    end_line: int
    indent: int
    body_indent: int


def _indent(line: str) -> int:
    return len(line) - len(line.lstrip())


class PythonExtractor(BaseExtractor):
    """Regex and indentation driven extraction for Python."""

    name = "python"
    rules = HASH_RULES
    extensions = (".py", ".pyi")

    complexity_re = re.compile(r"\b(?:if|elif|else|while|for|except|case|and|or)\b")
    debug_re = re.compile(r"(?<![\w.])print\s*\(")
    long_params_re = re.compile(r"\bdef\s+\w+\s*\([^)]{50,}")
    constructor_re = re.compile(r"\bdef\s+__init__\s*\(")

    pattern_rules = (
        ("Singleton", lambda s: "getInstance" in s or "_instance" in s),
        ("Observer", lambda s: "subscribe(" in s or "notify(" in s or "emit(" in s),
        ("Factory", lambda s: "Factory" in s),
        ("Decorator", lambda s: re.search(r"^\s*@\w", s, re.M) is not None),
        ("Context-Manager", lambda s: "__enter__" in s or "contextmanager" in s),
        ("Generator", lambda s: re.search(r"\byield\b", s) is not None),
        ("Async/Await", lambda s: "async def" in s and "await " in s),
    )

    def _block_end(self, view: SourceView, line_no: int, indent: int) -> tuple[int, int]:
        """Return (end_line, body_indent) of the indented block opened at ``line_no``."""
        end = line_no
        body_indent = -1
        for number in range(line_no + 1, len(view.masked_lines) + 1):
            masked = view.masked_lines[number - 1]
            if not masked.strip():
                continue
            if view.depths[number - 1] > 0:
                end = number
                continue
            current = _indent(masked.expandtabs(4))
            if current <= indent:
                break
            if body_indent < 0:
                body_indent = current
            end = number
        return end, body_indent

    def _classes(self, view: SourceView) -> list[_PyBlock]:
        blocks: list[_PyBlock] = []
        for index, masked in enumerate(view.masked_lines):
            match = _CLASS_RE.match(masked)
            if not match or view.depths[index] > 0:
                continue
            indent = len(match.group(1).expandtabs(4))
            end, body_indent = self._block_end(view, index + 1, indent)
            blocks.append(_PyBlock(match.group(2), index + 1, end, indent, body_indent))
        return blocks

    def _defs(self, view: SourceView) -> list[tuple[re.Match[str], int]]:
        found = []
        for index, masked in enumerate(view.masked_lines):
            match = _DEF_RE.match(masked)
            if match and view.depths[index] == 0:
                found.append((match, index + 1))
        return found

    def _params(self, view: SourceView, line_no: int, match: re.Match[str]) -> tuple[str, ...]:
        open_index = view.line_offsets[line_no - 1] + match.end() - 1
        return parse_params(paren_contents(view.masked, open_index), drop=_DROP_PARAMS)

    def extract_functions(self, view: SourceView) -> tuple[FunctionInfo, ...]:
        classes = self._classes(view)
        functions: list[FunctionInfo] = []
        for match, line_no in self._defs(view):
            indent = len(match.group(1).expandtabs(4))
            if any(c.line < line_no <= c.end_line and indent == c.body_indent for c in classes):
                continue
            name = match.group(3)
            end, _ = self._block_end(view, line_no, indent)
            body = view.body(line_no, end)
            functions.append(
                FunctionInfo(
                    name=name,
                    line=line_no,
                    end_line=end,
                    params=self._params(view, line_no, match),
                    is_async=bool(match.group(2)),
                    exported=not name.startswith("_"),
                    kind="declaration",
                    complexity=self.body_complexity(body),
                    calls=tuple(call for call in collect_calls(body) if call != name),
                )
            )

        for index, masked in enumerate(view.masked_lines):
            match = _LAMBDA_RE.match(masked)
            if match and view.depths[index] == 0:
                name = match.group(1)
                functions.append(
                    FunctionInfo(
                        name=name,
                        line=index + 1,
                        end_line=index + 1,
                        params=parse_params(match.group(2)),
                        exported=not name.startswith("_"),
                        kind="lambda",
                        complexity=self.body_complexity(masked),
                    )
                )
        functions.sort(key=lambda item: item.line)
        return tuple(functions)

    def extract_classes(self, view: SourceView) -> tuple[ClassInfo, ...]:
        classes: list[ClassInfo] = []
        for block in self._classes(view):
            offset = view.line_offsets[block.line - 1]
            header = view.masked_lines[block.line - 1]
            superclass = None
            paren = header.find("(", header.find(block.name) + len(block.name))
            if paren >= 0:
                bases = [b for b in split_top_level(paren_contents(view.masked, offset + paren) or "") if "=" not in b]
                superclass = bases[0] if bases else None

            methods: list[str] = []
            properties: list[str] = []
            constructor_params: tuple[str, ...] = ()
            for number in range(block.line + 1, block.end_line + 1):
                masked = view.masked_lines[number - 1]
                if not masked.strip() or view.depths[number - 1] > 0:
                    continue
                if _indent(masked.expandtabs(4)) != block.body_indent:
                    continue
                match = _DEF_RE.match(masked)
                if match:
                    methods.append(match.group(3))
                    if match.group(3) == "__init__":
                        constructor_params = self._params(view, number, match)
                    continue
                attr = _CLASS_ATTR_RE.match(masked)
                if attr and not masked.lstrip().startswith(("@", "class ", "return", "pass")):
                    properties.append(attr.group(1))
            for assign in _SELF_ASSIGN_RE.finditer(view.body(block.line, block.end_line)):
                properties.append(assign.group(1))

            classes.append(
                ClassInfo(
                    name=block.name,
                    line=block.line,
                    end_line=block.end_line,
                    superclass=superclass,
                    methods=tuple(dict.fromkeys(methods)),
                    properties=tuple(dict.fromkeys(properties)),
                    constructor_params=constructor_params,
                    exported=not block.name.startswith("_"),
                )
            )
        return tuple(classes)

    def extract_imports(self, view: SourceView) -> tuple[ImportInfo, ...]:
        imports: list[ImportInfo] = []
        total = len(view.masked_lines)
        index = 0
        while index < total:
            masked = view.masked_lines[index]
            line_no = index + 1
            match = _FROM_RE.match(masked)
            if match:
                clause = match.group(2)
                if "(" in clause and ")" not in clause:
                    while index + 1 < total and ")" not in view.masked_lines[index]:
                        index += 1
                        clause += " " + view.masked_lines[index]
                module = match.group(1)
                names = tuple(
                    part.split(" as ")[-1].strip()
                    for part in split_top_level(clause.replace("(", " ").replace(")", " ").replace("\\", " "))
                )
                imports.append(ImportInfo(module, names, "python", is_external(module), line_no))
                index += 1
                continue
            match = _IMPORT_RE.match(masked)
            if match:
                for part in split_top_level(match.group(1)):
                    module, _, alias = part.partition(" as ")
                    module = module.strip()
                    imports.append(ImportInfo(module, ((alias or module).strip(),), "python", True, line_no))
            index += 1
        return tuple(imports)

    def extract_exports(self, view: SourceView) -> tuple[ExportInfo, ...]:
        exports: list[ExportInfo] = []
        for index, masked in enumerate(view.masked_lines):
            if not _ALL_RE.match(masked):
                continue
            end = index
            while end + 1 < len(view.lines) and view.depths[end + 1] > 0:
                end += 1
            for number in range(index, end + 1):
                for match in _QUOTED_RE.finditer(view.lines[number]):
                    exports.append(ExportInfo(match.group(1), "named", index + 1))
        return dedupe(exports, key=lambda item: item.name)

    def extract_constants(self, view: SourceView) -> tuple[ConstantInfo, ...]:
        constants: list[ConstantInfo] = []
        for index, masked in enumerate(view.masked_lines):
            if view.depths[index] > 0:
                continue
            match = _CONSTANT_RE.match(masked)
            if match:
                constants.append(ConstantInfo(match.group(1), "constant", index + 1))
                continue
            match = _CONFIG_RE.match(masked)
            if match:
                constants.append(ConstantInfo(match.group(1), "config", index + 1))
        for match in _ENV_RE.finditer(view.text):
            if view.in_code(match.start()):
                constants.append(ConstantInfo(match.group(1), "env", view.line_at(match.start())))
        return dedupe(constants, key=lambda item: (item.name, item.kind))

    def extract_routes(self, view: SourceView) -> tuple[RouteInfo, ...]:
        routes: list[RouteInfo] = []
        for match in _ROUTE_DECORATOR_RE.finditer(view.text):
            if not view.in_code(match.start(1) - 1):
                continue
            verb = match.group(2)
            if verb == "route":
                methods = _METHODS_KW_RE.search(match.group(4))
                verb = methods.group(1) if methods else "GET"
            routes.append(RouteInfo(verb.upper(), match.group(3), view.line_at(match.start(1))))
        for match in _DJANGO_PATH_RE.finditer(view.text):
            if view.in_code(match.start()):
                routes.append(RouteInfo("ANY", match.group(1), view.line_at(match.start())))
        routes.sort(key=lambda item: item.line)
        return tuple(routes)

    def is_docstring(self, view: SourceView, offset: int, raw: str) -> bool:
        if raw[:3] not in ('"""', "'''"):
            return False
        line_start = view.line_offsets[view.line_at(offset) - 1]
        return not view.text[line_start:offset].strip()

    def nesting_depths(self, view: SourceView) -> tuple[int, ...]:
        levels: list[int] = []
        current = 0
        for masked in view.masked_lines:
            if masked.strip():
                current = _indent(masked.expandtabs(4)) // 4
            levels.append(current)
        return tuple(levels)
