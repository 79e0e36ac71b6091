from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Iterator, Literal, Sequence

from .notation import ManualMatch, NotationStyle, PatternSet, compile_patterns, find_manual_matches

__all__ = [
    "Match",
    "Span",
    "fence_state_before",
    "inline_code_ranges",
    "line_toggles_fence",
    "markup_ranges",
    "overlaps",
    "raw_html_ranges",
    "ruby_ranges",
    "scan_document_lines",
    "scan_line",
    "scan_text",
]

MatchKind = Literal["manual", "auto"]

_FENCE_RE = re.compile(r"^(`{3,}|~{3,})(\s|$)")
_RUBY_RE = re.compile(r"<ruby\b[^>]*>.*?</ruby>", re.IGNORECASE)
_RAW_TAGS = ("code", "pre", "script", "style")
_RAW_OPEN_RE = re.compile(r"<(code|pre|script|style)\b[^>]*>", re.IGNORECASE)
_RAW_CLOSE_RE = {tag: re.compile(rf"</{tag}\s*>", re.IGNORECASE) for tag in _RAW_TAGS}
_HTML_COMMENT_RE = re.compile(r"<!--.*?-->")
_HTML_TAG_RE = re.compile(r"</?[A-Za-z][A-Za-z0-9-]*(?:\s[^<>]*)?/?>")
_AUTOLINK_RE = re.compile(r"<[A-Za-z][A-Za-z0-9+.-]{1,31}:[^\s<>]*>")
_BARE_URL_RE = re.compile(r"(?:https?|ftp)://[^\s<>()\[\]]+")
# The destination of an inline link or image: `](dest "title")`.
_LINK_DEST_RE = re.compile(
    r"\](\((?:[^()\s]|\([^()\s]*\))*(?:\s+(?:\"[^\"]*\"|'[^']*'|\([^)]*\)))?\s*\))"
)
_REF_DEF_RE = re.compile(r"^ {0,3}\[[^\]]+\]:\s*(\S+)")


@dataclass(frozen=True)
class Span:
    start: int
    end: int


@dataclass(frozen=True)
class Match:
    kind: MatchKind
    start: int
    end: int
    text: str
    manual: ManualMatch | None = None


def overlaps(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    return a_start < b_end and b_start < a_end


def line_toggles_fence(line: str) -> bool:
    return _FENCE_RE.match(line.lstrip()) is not None


def inline_code_ranges(line: str) -> list[Span]:
    """
    Inline code spans on one line.

    An opening run of N backticks closes only at a run of exactly N. A run that
    never closes swallows the rest of the line.
    """
    ranges: list[Span] = []
    size = len(line)
    i = 0
    while i < size:
        if line[i] != "`":
            i += 1
            continue
        opener_start = i
        while i < size and line[i] == "`":
            i += 1
        opener_len = i - opener_start
        close_end = -1
        while i < size:
            if line[i] != "`":
                i += 1
                continue
            run_start = i
            while i < size and line[i] == "`":
                i += 1
            if i - run_start == opener_len:
                close_end = i
                break
        if close_end == -1:
            ranges.append(Span(opener_start, size))
            break
        ranges.append(Span(opener_start, close_end))
    return ranges


def _hits(spans: Iterable[Span], start: int, end: int) -> bool:
    return any(overlaps(start, end, span.start, span.end) for span in spans)


def _free_regions(size: int, taken: list[Span]) -> Iterator[tuple[int, int]]:
    pos = 0
    for span in sorted(taken, key=lambda item: (item.start, item.end)):
        if span.start > pos:
            yield pos, span.start
        pos = max(pos, span.end)
    if pos < size:
        yield pos, size


def scan_text(
    text: str,
    patterns: PatternSet | NotationStyle,
    exclusions: Iterable[Span] = (),
) -> list[Match]:
    """
    Manual and automatic matches in ``text``, in ascending order.

    Manual overrides are found first. Automatic matches are searched only in
    the gaps left by manual matches and exclusion zones.
    """
    if not isinstance(patterns, PatternSet):
        patterns = compile_patterns(NotationStyle.parse(patterns))
    if not text or patterns.quick.search(text) is None:
        return []
    zones = list(exclusions)

    matches: list[Match] = []
    for manual in find_manual_matches(text, patterns):
        if _hits(zones, manual.start, manual.end):
            continue
        matches.append(Match("manual", manual.start, manual.end, manual.source, manual))

    taken = zones + [Span(m.start, m.end) for m in matches]
    for region_start, region_end in _free_regions(len(text), taken):
        for found in patterns.iter_auto(text, region_start, region_end):
            matches.append(Match("auto", found.start(), found.end(), found.group(0)))

    matches.sort(key=lambda item: item.start)
    return matches


def ruby_ranges(line: str) -> list[Span]:
    """Inline <ruby> markup already present in the source."""
    return [Span(found.start(), found.end()) for found in _RUBY_RE.finditer(line)]


def _within(spans: Iterable[Span], pos: int) -> bool:
    return any(span.start <= pos < span.end for span in spans)


def raw_html_ranges(
    line: str,
    open_tag: str | None = None,
    code: Sequence[Span] = (),
) -> tuple[list[Span], str | None]:
    """
    Raw ``<code>``, ``<pre>``, ``<script>`` and ``<style>`` elements on one line.

    ``open_tag`` names an element left open by an earlier line. Returns the
    spans and the element still open at the end of the line, if any. Openers
    inside inline code spans are ignored.
    """
    spans: list[Span] = []
    pos = 0
    if open_tag is not None:
        close = _RAW_CLOSE_RE[open_tag].search(line)
        if close is None:
            return [Span(0, len(line))], open_tag
        spans.append(Span(0, close.end()))
        pos = close.end()
    while True:
        opener = _RAW_OPEN_RE.search(line, pos)
        if opener is None:
            return spans, None
        if _within(code, opener.start()):
            pos = opener.end()
            continue
        tag = opener.group(1).lower()
        close = _RAW_CLOSE_RE[tag].search(line, opener.end())
        if close is None:
            spans.append(Span(opener.start(), len(line)))
            return spans, tag
        spans.append(Span(opener.start(), close.end()))
        pos = close.end()


def markup_ranges(line: str) -> list[Span]:
    """HTML tags and comments, autolinks, link destinations and bare URLs."""
    spans: list[Span] = []
    for pattern in (_HTML_COMMENT_RE, _HTML_TAG_RE, _AUTOLINK_RE, _BARE_URL_RE):
        spans.extend(Span(found.start(), found.end()) for found in pattern.finditer(line))
    for found in _LINK_DEST_RE.finditer(line):
        spans.append(Span(found.start(1), found.end(1)))
    definition = _REF_DEF_RE.match(line)
    if definition is not None:
        spans.append(Span(definition.start(1), definition.end()))
    return spans


def _advance(
    line: str,
    inside_fence: bool,
    raw_open: str | None,
) -> tuple[bool, str | None, list[Span] | None]:
    """Block state after ``line`` and the zones to exclude on it (``None``: skip the line)."""
    if raw_open is None and line_toggles_fence(line):
        return not inside_fence, None, None
    if inside_fence:
        return True, None, None
    code = inline_code_ranges(line)
    raw, raw_open = raw_html_ranges(line, raw_open, code)
    return False, raw_open, code + raw


def _block_state_before(lines: Sequence[str], index: int) -> tuple[bool, str | None]:
    inside, raw_open = False, None
    for line in lines[:index]:
        inside, raw_open, _ = _advance(line, inside, raw_open)
    return inside, raw_open


def fence_state_before(lines: Sequence[str], index: int) -> bool:
    """Whether line ``index`` starts inside a fenced block, counted from line 0."""
    return _block_state_before(lines, index)[0]


def scan_line(
    line: str,
    patterns: PatternSet | NotationStyle,
    zones: Sequence[Span] | None = None,
) -> list[Match]:
    """
    Matches on one source line outside code, raw HTML elements and markup.

    ``zones`` replaces the code and raw-element spans computed from the line
    alone, for callers that track elements spanning several lines.
    """
    if zones is None:
        code = inline_code_ranges(line)
        zones = code + raw_html_ranges(line, None, code)[0]
    return scan_text(line, patterns, list(zones) + ruby_ranges(line) + markup_ranges(line))


def scan_document_lines(
    lines: Sequence[str],
    patterns: PatternSet | NotationStyle,
    first: int = 0,
    last: int | None = None,
) -> Iterator[tuple[int, int, list[Match]]]:
    """
    Yield ``(line_index, line_offset, matches)`` for lines ``first..last``.

    Offsets assume lines joined with single newlines. Fence and raw HTML
    element state is counted from the top of the document so a window in the
    middle is still correct.
    """
    if not isinstance(patterns, PatternSet):
        patterns = compile_patterns(NotationStyle.parse(patterns))
    stop = len(lines) - 1 if last is None else min(last, len(lines) - 1)
    offset = sum(len(line) + 1 for line in lines[:first])
    inside, raw_open = _block_state_before(lines, first)
    for index in range(first, stop + 1):
        line = lines[index]
        inside, raw_open, zones = _advance(line, inside, raw_open)
        matches = [] if zones is None else scan_line(line, patterns, zones)
        yield index, offset, matches
        offset += len(line) + 1
