from __future__ import annotations

import html
from dataclasses import dataclass
from typing import Iterable, Iterator

from bs4 import BeautifulSoup, NavigableString, Tag

from .aligner import Segment, align_auto, align_manual
from .notation import ManualMatch
from .tokenizer import Tokenizer

__all__ = [
    "AnnotationFragment",
    "strip_ruby",
    "to_html",
    "to_soup_nodes",
]


@dataclass(frozen=True)
class AnnotationFragment:
    """
    Renderable output for one matched span.

    A fragment is a flat, ordered run of segments. Annotated segments become a
    base/reading pair; plain segments stay bare text. Dropping every reading
    gives back ``text`` exactly.
    """

    text: str
    segments: tuple[Segment, ...]

    @classmethod
    def plain(cls, text: str) -> "AnnotationFragment":
        return cls(text=text, segments=(Segment(text, None),) if text else ())

    @classmethod
    def from_manual(cls, match: ManualMatch) -> "AnnotationFragment":
        segments = align_manual(match.base, match.readings)
        return cls(text=match.base, segments=tuple(segments))

    @classmethod
    def from_auto(
        cls,
        text: str,
        tokenizer: Tokenizer | None,
        *,
        split_okurigana: bool = False,
    ) -> "AnnotationFragment":
        segments = align_auto(text, tokenizer, split_okurigana=split_okurigana)
        return cls(text=text, segments=tuple(segments))

    @property
    def annotated(self) -> bool:
        return any(segment.annotated for segment in self.segments)

    def strip_readings(self) -> str:
        return "".join(segment.base for segment in self.segments)

    def __iter__(self) -> Iterator[Segment]:
        return iter(self.segments)


def _ruby_html(segment: Segment) -> str:
    return (
        f"<ruby>{html.escape(segment.base, quote=False)}"
        f"<rt>{html.escape(segment.reading or '', quote=False)}</rt></ruby>"
    )


def to_html(fragment: AnnotationFragment | Iterable[Segment]) -> str:
    pieces: list[str] = []
    for segment in fragment:
        if segment.reading is None:
            pieces.append(html.escape(segment.base, quote=False))
        else:
            pieces.append(_ruby_html(segment))
    return "".join(pieces)


def to_soup_nodes(
    fragment: AnnotationFragment | Iterable[Segment],
    soup: BeautifulSoup,
) -> list[Tag | NavigableString]:
    nodes: list[Tag | NavigableString] = []
    for segment in fragment:
        if segment.reading is None:
            if nodes and isinstance(nodes[-1], NavigableString):
                nodes[-1] = NavigableString(str(nodes[-1]) + segment.base)
            else:
                nodes.append(NavigableString(segment.base))
            continue
        ruby = soup.new_tag("ruby")
        ruby.append(NavigableString(segment.base))
        rt = soup.new_tag("rt")
        rt.append(NavigableString(segment.reading))
        ruby.append(rt)
        nodes.append(ruby)
    return nodes


def strip_ruby(soup: BeautifulSoup | Tag) -> str:
    """Text of ``soup`` with every <rt>/<rp> removed."""
    parts: list[str] = []
    for node in soup.descendants:
        if not isinstance(node, NavigableString):
            continue
        if node.find_parent(["rt", "rp"]) is not None:
            continue
        parts.append(str(node))
    return "".join(parts)
