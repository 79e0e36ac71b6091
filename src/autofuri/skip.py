from __future__ import annotations

from pathlib import Path
from typing import Callable

__all__ = [
    "SKIP_KEY",
    "front_matter",
    "front_matter_end",
    "path_skip_resolver",
    "should_skip_text",
]

SKIP_KEY = "auto-furigana"
_OFF_VALUES = {"false", "off", "disabled"}


def front_matter(text: str) -> dict[str, str]:
    """Flat ``key: value`` pairs from a leading ``---`` block."""
    lines = text.lstrip("﻿").split("\n")
    if not lines or lines[0].strip() != "---":
        return {}
    values: dict[str, str] = {}
    for line in lines[1:]:
        stripped = line.strip()
        if stripped in {"---", "..."}:
            return values
        if not stripped or stripped.startswith("#") or ":" not in stripped:
            continue
        key, _, value = stripped.partition(":")
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
            value = value[1:-1]
        values[key.strip()] = value
    # Unterminated block is not front matter.
    return {}


def front_matter_end(lines: list[str]) -> int:
    """Index of the first line after a closed leading ``---`` block, else 0."""
    if not lines or lines[0].lstrip("\ufeff").strip() != "---":
        return 0
    for index in range(1, len(lines)):
        if lines[index].strip() in {"---", "..."}:
            return index + 1
    return 0


def should_skip_text(text: str) -> bool:
    value = front_matter(text).get(SKIP_KEY)
    if value is None:
        return False
    return value.strip().lower() in _OFF_VALUES


def path_skip_resolver(root: Path | None = None) -> Callable[[str], bool]:
    """
    Resolve a document id (a path, relative to ``root`` if given) to its skip flag.

    Flags are cached per path and re-read only when the file's mtime changes.
    """
    cache: dict[Path, tuple[int, bool]] = {}

    def _resolve(doc_id: str) -> bool:
        path = Path(doc_id)
        if root is not None and not path.is_absolute():
            path = root / path
        try:
            mtime = path.stat().st_mtime_ns
        except OSError:
            cache.pop(path, None)
            return False
        cached = cache.get(path)
        if cached is not None and cached[0] == mtime:
            return cached[1]
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            return False
        flag = should_skip_text(text)
        cache[path] = (mtime, flag)
        return flag

    return _resolve
