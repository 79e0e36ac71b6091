from __future__ import annotations

import html
import warnings
from dataclasses import dataclass
from typing import Iterator

from bs4 import (
    BeautifulSoup,
    FeatureNotFound,
    NavigableString,
    Tag,
    XMLParsedAsHTMLWarning,
)

from .logging_utils import debug_log
from .markup import AnnotationFragment, to_html, to_soup_nodes
from .notation import PatternSet, compile_patterns
from .scanner import Match, scan_document_lines, scan_text
from .settings import Settings
from .skip import front_matter_end, should_skip_text
from .tokenizer import Tokenizer

__all__ = [
    "AnnotatedText",
    "CONTENT_TAGS",
    "annotate_html",
    "annotate_markdown",
    "annotate_soup",
    "convert_text",
]

# Containers scanned in rendered documents.
CONTENT_TAGS = ["p", "h1", "h2", "h3", "h4", "h5", "h6", "ol", "ul", "table"]
SKIPPED_TAGS = {"code", "pre", "script", "style", "ruby", "rt", "rp"}


@dataclass(frozen=True)
class AnnotatedText:
    """A text run split into untouched pieces and annotation fragments."""

    source: str
    pieces: tuple[str | AnnotationFragment, ...]

    def to_html(self) -> str:
        out: list[str] = []
        for piece in self.pieces:
            if isinstance(piece, AnnotationFragment):
                out.append(to_html(piece))
            else:
                out.append(html.escape(piece, quote=False))
        return "".join(out)

    def strip_readings(self) -> str:
        return "".join(
            piece.strip_readings() if isinstance(piece, AnnotationFragment) else piece
            for piece in self.pieces
        )

    def to_soup_nodes(self, soup: BeautifulSoup) -> list[Tag | NavigableString]:
        nodes: list[Tag | NavigableString] = []
        for piece in self.pieces:
            if isinstance(piece, AnnotationFragment):
                nodes.extend(to_soup_nodes(piece, soup))
            elif piece:
                nodes.append(NavigableString(piece))
        return nodes


def _fragment_for(match: Match, tokenizer: Tokenizer | None, split_okurigana: bool) -> AnnotationFragment:
    if match.manual is not None:
        return AnnotationFragment.from_manual(match.manual)
    return AnnotationFragment.from_auto(match.text, tokenizer, split_okurigana=split_okurigana)


def _assemble(
    text: str,
    matches: list[Match],
    tokenizer: Tokenizer | None,
    split_okurigana: bool,
) -> tuple[str | AnnotationFragment, ...]:
    pieces: list[str | AnnotationFragment] = []
    pos = 0
    for match in matches:
        if match.start > pos:
            pieces.append(text[pos : match.start])
        try:
            fragment = _fragment_for(match, tokenizer, split_okurigana)
        except Exception as exc:
            debug_log(f"annotation failed for {match.text!r}: {exc}")
            pieces.append(match.text)
        else:
            pieces.append(fragment)
        pos = match.end
    if pos < len(text):
        pieces.append(text[pos:])
    return tuple(pieces)


def convert_text(
    text: str,
    patterns: PatternSet,
    tokenizer: Tokenizer | None,
    *,
    split_okurigana: bool = False,
) -> AnnotatedText | str:
    """
    Annotate one text run.

    Returns the original string unchanged when nothing in it matches, so the
    caller can skip replacing the node.
    """
    matches = scan_text(text, patterns)
    if not matches:
        return text
    pieces = _assemble(text, matches, tokenizer, split_okurigana)
    if not any(isinstance(piece, AnnotationFragment) and piece.annotated for piece in pieces):
        return text
    return AnnotatedText(source=text, pieces=pieces)


def _soup_from_html(html: str) -> BeautifulSoup:
    stripped = html.lstrip()
    lower_head = stripped[:200].lower()
    xmlish = stripped.startswith("<?xml") or ("<html" in lower_head and "xmlns" in lower_head)

    if xmlish:
        for parser in ("lxml-xml", "xml"):
            try:
                return BeautifulSoup(html, parser)
            except FeatureNotFound:
                continue

    with warnings.catch_warnings():
        warnings.filterwarnings("ignore", category=XMLParsedAsHTMLWarning)
        return BeautifulSoup(html, "html.parser")


def _collect_text_nodes(root: Tag) -> Iterator[NavigableString]:
    for child in list(root.children):
        if isinstance(child, Tag):
            if child.name in SKIPPED_TAGS:
                continue
            yield from _collect_text_nodes(child)
        elif type(child) is NavigableString and str(child).strip():
            yield child


def _content_blocks(soup: BeautifulSoup | Tag) -> list[Tag]:
    blocks: list[Tag] = []
    for tag in soup.find_all(CONTENT_TAGS):
        if tag.find_parent(CONTENT_TAGS) is not None:
            continue
        if tag.find_parent(list(SKIPPED_TAGS)) is not None:
            continue
        blocks.append(tag)
    return blocks


def annotate_soup(
    soup: BeautifulSoup,
    settings: Settings,
    tokenizer: Tokenizer | None,
) -> int:
    """Replace text nodes inside content containers in place; returns the number replaced."""
    if not settings.reading_mode:
        return 0
    patterns = compile_patterns(settings.notation_style)
    replaced = 0
    for block in _content_blocks(soup):
        if patterns.quick.search(block.get_text()) is None:
            continue
        for node in list(_collect_text_nodes(block)):
            converted = convert_text(
                str(node),
                patterns,
                tokenizer,
                split_okurigana=settings.split_okurigana,
            )
            if isinstance(converted, str):
                continue
            nodes = converted.to_soup_nodes(soup)
            anchor: Tag | NavigableString = node
            for new_node in nodes:
                anchor.insert_after(new_node)
                anchor = new_node
            node.extract()
            replaced += 1
    return replaced


def annotate_html(
    html: str,
    settings: Settings,
    tokenizer: Tokenizer | None,
) -> str:
    soup = _soup_from_html(html)
    if annotate_soup(soup, settings, tokenizer) == 0:
        return html
    return str(soup)


def annotate_markdown(
    text: str,
    settings: Settings,
    tokenizer: Tokenizer | None,
) -> str:
    """
    Rewrite Markdown source with inline ``<ruby>`` markup.

    Fenced blocks and inline code are left as written. Documents whose front
    matter switches annotation off are returned unchanged.
    """
    if not settings.reading_mode or should_skip_text(text):
        return text
    patterns = compile_patterns(settings.notation_style)
    if patterns.quick.search(text) is None:
        return text
    lines = text.split("\n")
    body = front_matter_end(lines)
    out: list[str] = lines[:body]
    for index, _, matches in scan_document_lines(lines, patterns, first=body):
        line = lines[index]
        if not matches:
            out.append(line)
            continue
        pieces = _assemble(line, matches, tokenizer, settings.split_okurigana)
        out.append(
            "".join(
                to_html(piece) if isinstance(piece, AnnotationFragment) else piece
                for piece in pieces
            )
        )
    return "\n".join(out)
