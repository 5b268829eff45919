"""Extractor protocol and the pass runner shared by every language.

Each pass reads an immutable ``SourceView`` and returns its own result, so
a failing pass only empties its own category.
"""

from __future__ import annotations

import bisect
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

from ..lexical import C_FAMILY_RULES, LexicalRules, LexicalScanner, find_regions, split_lines
from ..models import (
    Chunk,
    ChunkAnalysis,
    ClassInfo,
    CommentInfo,
    ConstantInfo,
    ExportInfo,
    FunctionInfo,
    ImportInfo,
    Issue,
    RouteInfo,
)

logger = logging.getLogger(__name__)

IDENTIFIER_RE = re.compile(r"[A-Za-z_$][\w$]*")
_CALL_RE = re.compile(r"([A-Za-z_$][\w$]*)\s*\(")
_MARKER_RE = re.compile(r"\b(TODO|FIXME|NOTE|IMPORTANT|HACK|XXX)\b[:\s]*(.*)")

CALL_KEYWORDS = frozenset({
    "if", "for", "while", "switch", "catch", "function", "return", "typeof", "new",
    "await", "async", "super", "else", "do", "try", "with", "yield", "elif", "except", "def",
    "class", "and", "or", "not", "in", "lambda", "assert", "del", "sizeof",
})

DEEP_NESTING_LEVEL = 5
LONG_PARAMETER_CHARS = 50
MAX_CALLS = 20
MAX_COMMENT_TEXT = 200


@dataclass(frozen=True, slots=True)
class Block:
    start_line: int
    end_line: int
    depth: int


@dataclass(frozen=True)
class SourceView:
    """Read-only views of one chunk shared by all passes.

    ``lines`` and ``masked_lines`` have no line endings. Line numbers used
    by passes are 1-based and local to the chunk.
    """

    text: str
    masked: str
    lines: tuple[str, ...]
    masked_lines: tuple[str, ...]
    line_offsets: tuple[int, ...]
    depths: tuple[int, ...]
    blocks: tuple[Block, ...]
    rules: LexicalRules

    @classmethod
    def build(cls, text: str, rules: LexicalRules) -> SourceView:
        scanner = LexicalScanner(rules)
        raw_lines = split_lines(text)
        masked_parts: list[str] = []
        depths: list[int] = []
        offsets: list[int] = []
        offset = 0
        for raw in raw_lines:
            state = scanner.feed(raw)
            masked_parts.append(state.masked)
            depths.append(state.depth_before)
            offsets.append(offset)
            offset += len(raw)
        masked = "".join(masked_parts)
        return cls(
            text=text,
            masked=masked,
            lines=tuple(line.rstrip("\r\n") for line in raw_lines),
            masked_lines=tuple(line.rstrip("\r\n") for line in masked_parts),
            line_offsets=tuple(offsets),
            depths=tuple(depths),
            blocks=tuple(scan_blocks(masked)),
            rules=rules,
        )

    def line_at(self, offset: int) -> int:
        return max(1, bisect.bisect_right(self.line_offsets, offset))

    def in_code(self, offset: int) -> bool:
        """True when the character at ``offset`` is code, not comment or string."""
        if offset >= len(self.masked):
            return False
        char = self.text[offset]
        return not char.isspace() and self.masked[offset] == char

    def block_at(self, line: int, lookahead: int = 3) -> Block | None:
        """Outermost brace block opening on ``line`` or within ``lookahead`` lines."""
        first: Block | None = None
        for block in self.blocks:
            if block.start_line < line:
                continue
            if block.start_line > line + lookahead:
                break
            if first is None:
                first = block
            elif block.start_line != first.start_line:
                break
            elif block.depth < first.depth:
                first = block
        return first

    def block_end(self, line: int, lookahead: int = 3) -> int:
        block = self.block_at(line, lookahead)
        return block.end_line if block else line

    def body(self, start: int, end: int) -> str:
        return "\n".join(self.masked_lines[start - 1 : end])


class StructuralExtractor(Protocol):
    """Language-specific structural extraction over one chunk."""

    name: str
    rules: LexicalRules

    def supports_path(self, path: str) -> bool: ...

    def extract(self, chunk: Chunk, *, quality: bool = False) -> ChunkAnalysis: ...


def scan_blocks(masked_text: str) -> list[Block]:
    stack: list[int] = []
    blocks: list[Block] = []
    line = 1
    for char in masked_text:
        if char == "{":
            stack.append(line)
        elif char == "}":
            if stack:
                start_line = stack.pop()
                blocks.append(Block(start_line=start_line, end_line=line, depth=len(stack) + 1))
        elif char == "\n":
            line += 1
    blocks.sort(key=lambda item: (item.start_line, item.end_line, item.depth))
    return blocks


def paren_contents(masked: str, open_index: int, limit: int = 4000) -> str | None:
    """Text between the bracket at ``open_index`` and its match, or None."""
    if open_index >= len(masked) or masked[open_index] != "(":
        return None
    depth = 0
    end = min(len(masked), open_index + limit)
    for index in range(open_index, end):
        char = masked[index]
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                return masked[open_index + 1 : index]
    return None


def split_top_level(text: str, separator: str = ",") -> list[str]:
    parts: list[str] = []
    depth = 0
    current: list[str] = []
    for char in text:
        if char in "([{<":
            depth += 1
        elif char in ")]}>":
            depth = max(0, depth - 1)
        if char == separator and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(char)
    parts.append("".join(current))
    return [part for part in (p.strip() for p in parts) if part]


def parse_params(raw: str | None, drop: tuple[str, ...] = ()) -> tuple[str, ...]:
    if raw is None:
        return ()
    params: list[str] = []
    for part in split_top_level(" ".join(raw.split())):
        if part[0] in "{[":
            params.append(part)
            continue
        name = split_top_level(part, "=")[0] if "=" in part else part
        name = name.split(":", 1)[0].strip().rstrip("?")
        if name and name not in drop:
            params.append(name)
    return tuple(params)


def collect_calls(body: str) -> tuple[str, ...]:
    calls: list[str] = []
    for match in _CALL_RE.finditer(body):
        name = match.group(1)
        if name in CALL_KEYWORDS or name in calls:
            continue
        calls.append(name)
        if len(calls) >= MAX_CALLS:
            break
    return tuple(calls)


def is_external(module: str) -> bool:
    return not module.startswith((".", "/"))


def dedupe(items: list[Any], key: Callable[[Any], Any]) -> tuple[Any, ...]:
    seen: set[Any] = set()
    output = []
    for item in items:
        marker = key(item)
        if marker in seen:
            continue
        seen.add(marker)
        output.append(item)
    return tuple(output)


class BaseExtractor:
    """Runs independent extraction passes over a chunk.

    Subclasses supply the language-specific passes and regexes; comments,
    complexity, patterns and quality findings are shared.
    """

    name = "base"
    rules: LexicalRules = C_FAMILY_RULES
    extensions: tuple[str, ...] = ()

    complexity_re = re.compile(r"\b(?:if|else|while|for|switch|case|catch)\b|&&|\|\|")
    debug_re = re.compile(r"\bconsole\.(?:log|debug)\s*\(")
    long_params_re = re.compile(r"\bfunction\s+[A-Za-z_$][\w$]*\s*\([^)]{%d,}" % LONG_PARAMETER_CHARS)
    constructor_re = re.compile(r"\bconstructor\s*\(")

    pattern_rules: tuple[tuple[str, Callable[[str], bool]], ...] = (
        ("Singleton", lambda s: "getInstance" in s),
        ("Observer", lambda s: "addEventListener" in s or "emit(" in s),
        ("Factory", lambda s: "Factory" in s),
        ("Module", lambda s: "export class" in s or "module.exports" in s),
        ("Express-Route", lambda s: "app.get" in s or "router." in s),
        ("Middleware", lambda s: "next(" in s and "req," in s and "res," in s),
        ("Async/Await", lambda s: "async " in s and "await " in s),
    )

    def supports_path(self, path: str) -> bool:
        return path.lower().endswith(self.extensions)

    def rules_for(self, chunk: Chunk) -> LexicalRules:
        return self.rules

    def extract(self, chunk: Chunk, *, quality: bool = False) -> ChunkAnalysis:
        """Extract structural facts from one chunk. Never raises."""
        if "\x00" in chunk.content:
            return ChunkAnalysis(
                chunk=chunk,
                issues=(Issue("binary-content", "Content looks binary; nothing extracted", "medium"),),
            )

        issues: list[Issue] = []
        try:
            view = SourceView.build(chunk.content, self.rules_for(chunk))
        except Exception as exc:  # noqa: BLE001
            logger.warning("Could not scan chunk %d: %s", chunk.index, exc)
            return ChunkAnalysis(
                chunk=chunk,
                issues=(Issue("extraction-error", f"scan failed: {exc}", "medium"),),
            )

        def run(label: str, extract_pass: Callable[[SourceView], Any], empty: Any) -> Any:
            try:
                return extract_pass(view)
            except Exception as exc:  # noqa: BLE001
                logger.warning("%s pass failed on chunk %d: %s", label, chunk.index, exc)
                issues.append(Issue("extraction-error", f"{label} pass failed: {exc}", "medium"))
                return empty

        functions = run("functions", self.extract_functions, ())
        classes = run("classes", self.extract_classes, ())
        imports = run("imports", self.extract_imports, ())
        exports = run("exports", self.extract_exports, ())
        constants = run("constants", self.extract_constants, ())
        comments = run("comments", self.extract_comments, ())
        routes = run("routes", self.extract_routes, ())
        complexity = run("complexity", self.complexity, 1)
        patterns = run("patterns", self.detect_patterns, ())
        identifiers = run("identifiers", self.referenced_identifiers, frozenset())
        findings = run("quality", self.quality_findings, ()) if quality else ()

        return ChunkAnalysis(
            chunk=chunk,
            functions=tuple(functions),
            classes=tuple(classes),
            imports=tuple(imports),
            exports=tuple(exports),
            constants=tuple(constants),
            comments=tuple(comments),
            routes=tuple(routes),
            complexity_score=complexity,
            pattern_tags=tuple(patterns),
            issues=tuple(issues),
            findings=tuple(findings),
            identifiers=frozenset(identifiers),
        )

    # --- language specific passes ---

    def extract_functions(self, view: SourceView) -> tuple[FunctionInfo, ...]:
        return ()

    def extract_classes(self, view: SourceView) -> tuple[ClassInfo, ...]:
        return ()

    def extract_imports(self, view: SourceView) -> tuple[ImportInfo, ...]:
        return ()

    def extract_exports(self, view: SourceView) -> tuple[ExportInfo, ...]:
        return ()

    def extract_constants(self, view: SourceView) -> tuple[ConstantInfo, ...]:
        return ()

    def extract_routes(self, view: SourceView) -> tuple[RouteInfo, ...]:
        return ()

    # --- shared passes ---

    def complexity(self, view: SourceView) -> int:
        return 1 + len(self.complexity_re.findall(view.masked))

    def body_complexity(self, body: str) -> int:
        return 1 + len(self.complexity_re.findall(body))

    def extract_comments(self, view: SourceView) -> tuple[CommentInfo, ...]:
        comments: list[CommentInfo] = []
        for region in find_regions(view.text, view.rules):
            raw = view.text[region.start : region.end]
            line = view.line_at(region.start)
            if region.kind == "string":
                if self.is_docstring(view, region.start, raw):
                    comments.append(CommentInfo("doc", _compact(raw.strip("\"'")), line))
                continue
            if raw.startswith("/**"):
                comments.append(CommentInfo("doc", _compact(raw[3:].rstrip("/").rstrip("*")), line))
                continue

            for match in _MARKER_RE.finditer(raw):
                comments.append(
                    CommentInfo(
                        match.group(1).lower(),
                        _compact(match.group(2)),
                        view.line_at(region.start + match.start()),
                    )
                )
        return tuple(comments)

    def is_docstring(self, view: SourceView, offset: int, raw: str) -> bool:
        return False

    def detect_patterns(self, view: SourceView) -> tuple[str, ...]:
        tags = [tag for tag, check in self.pattern_rules if check(view.masked)]
        if self.has_injected_constructor(view):
            tags.append("Dependency-Injection")
        return tuple(tags)

    def has_injected_constructor(self, view: SourceView) -> bool:
        for match in self.constructor_re.finditer(view.masked):
            params = parse_params(paren_contents(view.masked, match.end() - 1), drop=("self",))
            if len(params) >= 3:
                return True
        return False

    def referenced_identifiers(self, view: SourceView) -> frozenset[str]:
        return frozenset(IDENTIFIER_RE.findall(view.masked))

    def nesting_depths(self, view: SourceView) -> tuple[int, ...]:
        return view.depths

    def quality_findings(self, view: SourceView) -> tuple[Issue, ...]:
        findings: list[Issue] = []
        for match in self.debug_re.finditer(view.masked):
            findings.append(Issue("debug-code", "Debug output left in code", "low", view.line_at(match.start())))
        for region in find_regions(view.text, view.rules):
            if region.kind != "comment":
                continue
            raw = view.text[region.start : region.end]
            for match in re.finditer(r"\b(TODO|FIXME)\b", raw):
                marker = match.group(1)
                findings.append(
                    Issue(
                        marker.lower(),
                        f"{marker} comment",
                        "high" if marker == "FIXME" else "medium",
                        view.line_at(region.start + match.start()),
                    )
                )
        for match in self.long_params_re.finditer(view.masked):
            findings.append(
                Issue("long-parameter-list", "Function has a long parameter list", "medium", view.line_at(match.start()))
            )
        previous = 0
        for line_number, depth in enumerate(self.nesting_depths(view), start=1):
            if depth >= DEEP_NESTING_LEVEL > previous:
                findings.append(
                    Issue("deep-nesting", f"Nesting depth reaches {depth}", "medium", line_number)
                )
            previous = depth
        findings.sort(key=lambda item: (item.line or 0, item.kind))
        return tuple(findings)


def _compact(text: str) -> str:
    cleaned = " ".join(line.strip().lstrip("*").strip() for line in text.splitlines())
    cleaned = " ".join(cleaned.split())
    return cleaned[:MAX_COMMENT_TEXT]
