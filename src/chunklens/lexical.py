"""Lexical scanning shared by the chunker and the extractors.

The scanner walks text line by line and tracks comment, string and bracket
state across line breaks. It never parses; it only knows where comments and
string literals begin and end for a family of languages.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

_NEUTRAL = None
_LINE_COMMENT = "line_comment"
_BLOCK_COMMENT = "block_comment"
_STRING = "string"

_LINE_RE = re.compile(r"[^\n]*\n|[^\n]+")


@dataclass(slots=True, frozen=True)
class LexicalRules:
    """Configurable lexical markers for one language family."""

    line_comment_prefixes: tuple[str, ...] = ("//",)
    block_comment_pairs: tuple[tuple[str, str], ...] = (("/*", "*/"),)
    string_delimiters: tuple[str, ...] = ("'", '"', "`")
    # delimiters whose strings may run past a line break
    multiline_strings: tuple[str, ...] = ("`",)
    escape_char: str = "\\"
    open_brackets: str = "{"
    close_brackets: str = "}"
    indentation_scoped: bool = False


C_FAMILY_RULES = LexicalRules()

HASH_RULES = LexicalRules(
    line_comment_prefixes=("#",),
    block_comment_pairs=(),
    string_delimiters=("'''", '"""', "'", '"'),
    multiline_strings=("'''", '"""'),
    open_brackets="{([",
    close_brackets="})]",
    indentation_scoped=True,
)

PHP_RULES = LexicalRules(line_comment_prefixes=("//", "#"))

_LANGUAGE_RULES = {
    "python": HASH_RULES,
    "php": PHP_RULES,
}


def rules_for_language(language: str) -> LexicalRules:
    return _LANGUAGE_RULES.get(language, C_FAMILY_RULES)


@dataclass(slots=True, frozen=True)
class Region:
    """A comment or string literal as character offsets ``[start, end)``."""

    kind: str
    start: int
    end: int


@dataclass(slots=True, frozen=True)
class LineState:
    """Scanner state observed for one line."""

    masked: str
    depth_before: int
    depth: int
    starts_in_comment: bool
    starts_in_string: bool
    in_comment: bool
    in_string: bool

    @property
    def neutral(self) -> bool:
        """True when the line ends outside any comment or string."""
        return not self.in_comment and not self.in_string


@dataclass
class LexicalScanner:
    """Incremental scanner fed one line (newline included) at a time."""

    rules: LexicalRules = field(default_factory=LexicalRules)
    track_regions: bool = False
    depth: int = 0
    offset: int = 0
    regions: list[Region] = field(default_factory=list)
    _mode: str | None = None
    _marker: str = ""
    _region_start: int = 0

    def __post_init__(self) -> None:
        by_length = lambda marker: -len(marker)  # noqa: E731
        self._line_prefixes = tuple(sorted((p for p in self.rules.line_comment_prefixes if p), key=by_length))
        self._block_pairs = tuple(
            sorted(
                ((s, e) for s, e in self.rules.block_comment_pairs if s and e),
                key=lambda pair: -len(pair[0]),
            )
        )
        self._strings = tuple(sorted((d for d in self.rules.string_delimiters if d), key=by_length))

    @property
    def in_comment(self) -> bool:
        return self._mode in (_LINE_COMMENT, _BLOCK_COMMENT)

    @property
    def in_string(self) -> bool:
        return self._mode == _STRING

    def feed(self, line: str) -> LineState:
        depth_before = self.depth
        starts_in_comment = self._mode == _BLOCK_COMMENT
        starts_in_string = self._mode == _STRING
        chars = list(line)
        length = len(line)
        index = 0

        while index < length:
            mode = self._mode
            if mode is _NEUTRAL:
                char = line[index]
                marker = _match_any(line, index, self._line_prefixes)
                if marker is not None:
                    self._enter(_LINE_COMMENT, "\n", index)
                    _blank(chars, index, len(marker))
                    index += len(marker)
                    continue
                pair = _match_block_start(line, index, self._block_pairs)
                if pair is not None:
                    self._enter(_BLOCK_COMMENT, pair[1], index)
                    _blank(chars, index, len(pair[0]))
                    index += len(pair[0])
                    continue
                marker = _match_any(line, index, self._strings)
                if marker is not None:
                    self._enter(_STRING, marker, index)
                    _blank(chars, index, len(marker))
                    index += len(marker)
                    continue
                if char in self.rules.open_brackets:
                    self.depth += 1
                elif char in self.rules.close_brackets:
                    self.depth = max(0, self.depth - 1)
                index += 1
                continue

            if mode == _LINE_COMMENT:
                if line[index] == "\n":
                    self._leave(index)
                else:
                    chars[index] = " "
                index += 1
                continue

            marker = self._marker
            if (
                mode == _STRING
                and line[index] == "\n"
                and marker not in self.rules.multiline_strings
                and not _continues_line(line, index, self.rules.escape_char)
            ):
                # unterminated single-line string ends with its line
                self._leave(index)
                index += 1
                continue
            closes = line.startswith(marker, index)
            if closes and mode == _STRING and _is_escaped(line, index, marker, self.rules.escape_char):
                closes = False
            if closes:
                _blank(chars, index, len(marker))
                index += len(marker)
                self._leave(index)
                continue
            if line[index] != "\n":
                chars[index] = " "
            index += 1

        self.offset += length
        return LineState(
            masked="".join(chars),
            depth_before=depth_before,
            depth=self.depth,
            starts_in_comment=starts_in_comment,
            starts_in_string=starts_in_string,
            in_comment=self.in_comment,
            in_string=self.in_string,
        )

    def finish(self) -> list[Region]:
        """Close any region left open at end of input and return all regions."""
        if self._mode is not _NEUTRAL:
            self._leave(0)
        return self.regions

    def _enter(self, mode: str, marker: str, index: int) -> None:
        self._mode = mode
        self._marker = marker
        self._region_start = self.offset + index

    def _leave(self, index: int) -> None:
        if self.track_regions:
            kind = "string" if self._mode == _STRING else "comment"
            self.regions.append(Region(kind, self._region_start, self.offset + index))
        self._mode = _NEUTRAL
        self._marker = ""


def mask_comments_and_strings(text: str, rules: LexicalRules | None = None) -> str:
    """Mask comments and strings, preserving line count and character offsets."""
    scanner = LexicalScanner(rules or C_FAMILY_RULES)
    return "".join(scanner.feed(line).masked for line in split_lines(text))


def find_regions(text: str, rules: LexicalRules | None = None) -> list[Region]:
    """Return comment and string regions of ``text`` in source order."""
    scanner = LexicalScanner(rules or C_FAMILY_RULES, track_regions=True)
    for line in split_lines(text):
        scanner.feed(line)
    return scanner.finish()


def split_lines(text: str) -> list[str]:
    """Split on ``\\n`` only, keeping line endings, so joining restores ``text``."""
    return _LINE_RE.findall(text)


def offset_in_regions(offset: int, regions: list[Region]) -> bool:
    """True when ``offset`` falls strictly inside a comment or string region."""
    return any(region.start < offset < region.end for region in regions)


def line_number_at(text: str, offset: int) -> int:
    return text.count("\n", 0, offset) + 1


def _blank(chars: list[str], index: int, count: int) -> None:
    for position in range(index, index + count):
        chars[position] = " "


def _match_any(text: str, index: int, markers: tuple[str, ...]) -> str | None:
    for marker in markers:
        if text.startswith(marker, index):
            return marker
    return None


def _match_block_start(
    text: str,
    index: int,
    pairs: tuple[tuple[str, str], ...],
) -> tuple[str, str] | None:
    for start, end in pairs:
        if text.startswith(start, index):
            return start, end
    return None


def _is_escaped(text: str, index: int, marker: str, escape_char: str) -> bool:
    if len(marker) > 1:
        return False
    backslashes = 0
    cursor = index - 1
    while cursor >= 0 and text[cursor] == escape_char:
        backslashes += 1
        cursor -= 1
    return backslashes % 2 == 1


def _continues_line(text: str, newline: int, escape_char: str) -> bool:
    """True when the line break at ``newline`` is escaped (``\\`` continuation)."""
    cursor = newline - 1
    if cursor >= 0 and text[cursor] == "\r":
        cursor -= 1
    return cursor >= 0 and _is_escaped(text, cursor + 1, "\n", escape_char)
