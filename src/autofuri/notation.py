from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Iterator

from .chars import JAPANESE_CLASS, KANJI_CLASS, is_kana_string

__all__ = [
    "ManualMatch",
    "NotationStyle",
    "PatternSet",
    "compile_patterns",
    "find_manual_matches",
    "parse_manual",
]


class NotationStyle(str, Enum):
    CURLY = "curly"
    SQUARE = "square"
    DISABLED = "disabled"

    @classmethod
    def parse(cls, value: object) -> "NotationStyle":
        if isinstance(value, NotationStyle):
            return value
        if isinstance(value, str):
            normalized = value.strip().lower()
            if normalized in {"none", "off", ""}:
                return cls.DISABLED
            for member in cls:
                if member.value == normalized:
                    return member
        raise ValueError(f"Unknown notation style: {value!r}")

    @property
    def brackets(self) -> tuple[str, str] | None:
        if self is NotationStyle.CURLY:
            return "{", "}"
        if self is NotationStyle.SQUARE:
            return "[", "]"
        return None


@dataclass(frozen=True)
class ManualMatch:
    start: int
    end: int
    source: str
    base: str
    readings: tuple[str, ...]

    @property
    def is_split(self) -> bool:
        return len(self.readings) > 1


@dataclass(frozen=True)
class PatternSet:
    """
    Compiled patterns for one notation style.

    ``re.Pattern`` objects keep no scan position between calls, so one set can
    be shared by every scan that uses the same style. Scans must still create
    their own iterator per call.
    """

    style: NotationStyle
    manual: re.Pattern[str] | None
    auto: re.Pattern[str]
    kanji: re.Pattern[str]
    quick: re.Pattern[str]

    def iter_auto(self, text: str, start: int = 0, end: int | None = None) -> Iterator[re.Match[str]]:
        """Maximal Japanese runs in ``text[start:end]`` that hold at least one kanji."""
        stop = len(text) if end is None else end
        for found in self.auto.finditer(text, start, stop):
            if self.kanji.search(found.group(0)) is not None:
                yield found


# Whole runs only; PatternSet.iter_auto applies the kanji requirement.
_AUTO_SOURCE = f"[{JAPANESE_CLASS}]+"
_KANJI_SOURCE = f"[{KANJI_CLASS}]"
_QUICK_SOURCE = f"[{JAPANESE_CLASS}]"


def _manual_source(open_: str, close: str) -> str:
    o = re.escape(open_)
    c = re.escape(close)
    forbidden = re.escape("{}[]|")
    body = rf"[^{forbidden}\s]+"
    segment = rf"[^{forbidden}\n]*"
    return rf"{o}(?P<base>{body})(?P<readings>(?:\|{segment})+){c}"


@lru_cache(maxsize=None)
def compile_patterns(style: NotationStyle) -> PatternSet:
    style = NotationStyle.parse(style)
    brackets = style.brackets
    manual = re.compile(_manual_source(*brackets)) if brackets else None
    return PatternSet(
        style=style,
        manual=manual,
        auto=re.compile(_AUTO_SOURCE),
        kanji=re.compile(_KANJI_SOURCE),
        quick=re.compile(_QUICK_SOURCE),
    )


def _validated(
    base: str,
    raw_readings: str,
) -> tuple[str, ...] | None:
    readings = tuple(raw_readings.split("|")[1:])
    if not base or not readings:
        return None
    if any(not is_kana_string(reading) for reading in readings):
        return None
    if len(readings) > 1 and len(readings) != len(base):
        return None
    return readings


def parse_manual(source: str, style: NotationStyle = NotationStyle.CURLY) -> ManualMatch | None:
    """
    Parse one complete manual override such as ``{漢字|かん|じ}``.

    Returns ``None`` for anything that is not a well-formed override in the
    given style, including segment-count mismatches.
    """
    patterns = compile_patterns(NotationStyle.parse(style))
    if patterns.manual is None:
        return None
    match = patterns.manual.fullmatch(source)
    if match is None:
        return None
    readings = _validated(match.group("base"), match.group("readings"))
    if readings is None:
        return None
    return ManualMatch(
        start=0,
        end=len(source),
        source=source,
        base=match.group("base"),
        readings=readings,
    )


def _iter_manual(pattern: re.Pattern[str], text: str, start: int, end: int) -> Iterator[ManualMatch]:
    for match in pattern.finditer(text, start, end):
        readings = _validated(match.group("base"), match.group("readings"))
        if readings is None:
            continue
        yield ManualMatch(
            start=match.start(),
            end=match.end(),
            source=match.group(0),
            base=match.group("base"),
            readings=readings,
        )


def find_manual_matches(
    text: str,
    style: NotationStyle | PatternSet,
    start: int = 0,
    end: int | None = None,
) -> list[ManualMatch]:
    """Leftmost, longest, non-overlapping manual overrides inside ``text[start:end]``."""
    patterns = style if isinstance(style, PatternSet) else compile_patterns(NotationStyle.parse(style))
    if patterns.manual is None:
        return []
    stop = len(text) if end is None else end
    return list(_iter_manual(patterns.manual, text, start, stop))
