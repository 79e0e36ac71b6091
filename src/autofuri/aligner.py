from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

from .chars import is_kana_char, is_kana_string, katakana_to_hiragana
from .tokenizer import Token, Tokenizer, UNAVAILABLE

__all__ = [
    "Segment",
    "align_auto",
    "align_manual",
    "align_tokens",
    "split_okurigana",
]


@dataclass(frozen=True)
class Segment:
    """A base chunk and its reading; ``reading`` is ``None`` for plain text."""

    base: str
    reading: str | None = None

    @property
    def annotated(self) -> bool:
        return self.reading is not None


def align_manual(base: str, readings: Sequence[str]) -> list[Segment]:
    if len(readings) > 1:
        if len(readings) != len(base):
            raise ValueError(
                f"{len(readings)} reading segments cannot align with {len(base)} base characters"
            )
        return [Segment(ch, reading) for ch, reading in zip(base, readings)]
    if len(readings) == 1:
        return [Segment(base, readings[0])]
    return [Segment(base, None)]


def _common_prefix(a: str, b: str) -> int:
    size = 0
    for ch_a, ch_b in zip(a, b):
        if ch_a != ch_b:
            break
        size += 1
    return size


def split_okurigana(surface: str, reading: str) -> list[Segment]:
    """
    Split kana that the surface shares with its reading into plain segments.

    ``食べる``/``たべる`` becomes ``食(た) + べる`` and ``お茶``/``おちゃ`` becomes
    ``お + 茶(ちゃ)``. When the kana edges do not agree with the reading the
    token is returned whole.
    """
    hira_surface = katakana_to_hiragana(surface)
    head = 0
    while head < len(surface) and is_kana_char(surface[head]):
        head += 1
    tail = len(surface)
    while tail > head and is_kana_char(surface[tail - 1]):
        tail -= 1
    if head == 0 and tail == len(surface):
        return [Segment(surface, reading)]

    prefix = hira_surface[:head]
    suffix = hira_surface[tail:]
    if _common_prefix(prefix, reading) != len(prefix):
        return [Segment(surface, reading)]
    if suffix and not reading.endswith(suffix):
        return [Segment(surface, reading)]
    core_reading = reading[len(prefix) : len(reading) - len(suffix)]
    if not core_reading:
        return [Segment(surface, reading)]

    segments: list[Segment] = []
    if head:
        segments.append(Segment(surface[:head], None))
    segments.append(Segment(surface[head:tail], core_reading))
    if tail < len(surface):
        segments.append(Segment(surface[tail:], None))
    return segments


def _token_segments(token: Token, split: bool) -> list[Segment]:
    surface = token.surface
    reading = katakana_to_hiragana(token.reading) if token.reading else None
    if is_kana_string(surface) or not reading:
        return [Segment(surface, None)]
    if not is_kana_string(reading):
        return [Segment(surface, None)]
    if reading == katakana_to_hiragana(surface):
        return [Segment(surface, None)]
    if split:
        return split_okurigana(surface, reading)
    return [Segment(surface, reading)]


def align_tokens(
    text: str,
    tokens: Iterable[Token],
    *,
    split_okurigana: bool = False,
) -> list[Segment]:
    """
    Map tokenizer output for ``text`` onto segments.

    Tokens are located in ``text`` left to right. Characters the tokenizer
    skipped (whitespace, unknown runs) become plain segments so the result
    always concatenates back to ``text``.
    """
    segments: list[Segment] = []
    pos = 0
    for token in tokens:
        surface = token.surface
        if not surface:
            continue
        start = text.find(surface, pos)
        if start == -1:
            continue
        if start > pos:
            segments.append(Segment(text[pos:start], None))
        segments.extend(_token_segments(token, split_okurigana))
        pos = start + len(surface)
    if pos < len(text):
        segments.append(Segment(text[pos:], None))
    return segments


def align_auto(
    text: str,
    tokenizer: Tokenizer | None,
    *,
    split_okurigana: bool = False,
) -> list[Segment]:
    if tokenizer is None:
        return [Segment(text, None)]
    tokens = tokenizer.tokenize(text)
    if tokens is UNAVAILABLE:
        return [Segment(text, None)]
    return align_tokens(text, tokens, split_okurigana=split_okurigana)
