from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Sequence

from .markup import AnnotationFragment, to_html
from .notation import compile_patterns
from .scanner import Match, Span, overlaps, scan_document_lines
from .settings import Settings
from .logging_utils import debug_log
from .tokenizer import Tokenizer

__all__ = [
    "Decoration",
    "DecorationDiff",
    "DecorationSet",
    "LivePreview",
    "RubyWidget",
    "Selection",
    "Trigger",
    "ViewState",
    "ViewUpdate",
    "build_decorations",
    "caret_zones",
    "diff_decorations",
    "same_render",
]


class Trigger(str, Enum):
    DOCUMENT_CHANGED = "document-changed"
    SELECTION_CHANGED = "selection-changed"
    VIEWPORT_CHANGED = "viewport-changed"
    COMPOSITION_CHANGED = "composition-changed"


@dataclass(frozen=True)
class Selection:
    anchor: int
    head: int | None = None

    @property
    def ends(self) -> tuple[int, int]:
        return self.anchor, self.anchor if self.head is None else self.head


@dataclass(frozen=True)
class ViewState:
    """Snapshot of a live text surface: document, visible window, carets, IME flag."""

    doc: str
    viewport: tuple[int, int] | None = None
    selections: tuple[Selection, ...] = ()
    composing: bool = False
    doc_id: str | None = None

    @property
    def lines(self) -> list[str]:
        return self.doc.split("\n")

    @property
    def visible_range(self) -> tuple[int, int]:
        if self.viewport is None:
            return 0, len(self.doc)
        start, end = self.viewport
        start = max(0, min(start, len(self.doc)))
        end = max(start, min(end, len(self.doc)))
        return start, end


@dataclass(frozen=True)
class ViewUpdate:
    state: ViewState
    triggers: frozenset[Trigger] = frozenset()

    @classmethod
    def between(cls, old: ViewState, new: ViewState) -> "ViewUpdate":
        triggers: set[Trigger] = set()
        if old.doc != new.doc:
            triggers.add(Trigger.DOCUMENT_CHANGED)
        if old.selections != new.selections:
            triggers.add(Trigger.SELECTION_CHANGED)
        if old.viewport != new.viewport:
            triggers.add(Trigger.VIEWPORT_CHANGED)
        if old.composing != new.composing:
            triggers.add(Trigger.COMPOSITION_CHANGED)
        return cls(state=new, triggers=frozenset(triggers))


def same_render(old_text: str, new_text: str) -> bool:
    return old_text == new_text


@dataclass(frozen=True, eq=False)
class RubyWidget:
    """
    Replacement widget for one matched span.

    The fragment is resolved lazily when the host asks for the rendering, so
    spans that are never drawn never reach the tokenizer.
    """

    text: str
    resolve: Callable[[], AnnotationFragment] = field(repr=False, compare=False)

    def eq(self, other: "RubyWidget") -> bool:
        return same_render(self.text, other.text)

    def fragment(self) -> AnnotationFragment:
        return self.resolve()

    def to_html(self) -> str:
        return f"<span>{to_html(self.fragment())}</span>"


@dataclass(frozen=True)
class Decoration:
    start: int
    end: int
    widget: RubyWidget
    kind: str = "auto"


DecorationSet = tuple[Decoration, ...]


@dataclass(frozen=True)
class DecorationDiff:
    kept: tuple[Decoration, ...]
    added: tuple[Decoration, ...]
    removed: tuple[Decoration, ...]

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed)


def caret_zones(state: ViewState, size: int = 1, composing_size: int = 2) -> list[Span]:
    radius = composing_size if state.composing else size
    zones: list[Span] = []
    for selection in state.selections:
        for pos in selection.ends:
            zones.append(Span(pos - radius, pos + radius))
    return zones


def _line_index_at(line_starts: list[int], pos: int) -> int:
    return max(0, bisect_right(line_starts, pos) - 1)


def _fragment_resolver(
    match: Match,
    tokenizer: Tokenizer | None,
    split_okurigana: bool,
) -> Callable[[], AnnotationFragment]:
    if match.manual is not None:
        manual = match.manual
        return lambda: AnnotationFragment.from_manual(manual)
    text = match.text
    return lambda: AnnotationFragment.from_auto(text, tokenizer, split_okurigana=split_okurigana)


def build_decorations(
    state: ViewState,
    settings: Settings,
    tokenizer: Tokenizer | None,
    skip: Callable[[str], bool] | None = None,
) -> DecorationSet:
    """
    Rebuild the decoration set for the visible part of ``state``.

    Matches intersecting a caret zone are left undecorated so input-method
    text is never replaced while it is being typed.
    """
    if state.doc_id is not None and skip is not None and skip(state.doc_id):
        return ()
    patterns = compile_patterns(settings.notation_style)
    if patterns.quick.search(state.doc) is None:
        return ()

    lines = state.lines
    line_starts: list[int] = []
    offset = 0
    for line in lines:
        line_starts.append(offset)
        offset += len(line) + 1

    vis_from, vis_to = state.visible_range
    first = _line_index_at(line_starts, vis_from)
    last = _line_index_at(line_starts, vis_to)
    zones = caret_zones(state)

    decorations: list[Decoration] = []
    for _, line_offset, matches in scan_document_lines(lines, patterns, first, last):
        for match in matches:
            start = line_offset + match.start
            end = line_offset + match.end
            if any(overlaps(start, end, zone.start, zone.end) for zone in zones):
                continue
            widget = RubyWidget(
                text=match.text,
                resolve=_fragment_resolver(match, tokenizer, settings.split_okurigana),
            )
            decorations.append(Decoration(start=start, end=end, widget=widget, kind=match.kind))
    return tuple(decorations)


def diff_decorations(old: Sequence[Decoration], new: Sequence[Decoration]) -> DecorationDiff:
    previous = {(item.start, item.end): item for item in old}
    kept: list[Decoration] = []
    added: list[Decoration] = []
    matched: set[tuple[int, int]] = set()
    for item in new:
        key = (item.start, item.end)
        prior = previous.get(key)
        if prior is not None and prior.widget.eq(item.widget):
            kept.append(prior)
            matched.add(key)
        else:
            added.append(item)
    removed = [item for key, item in previous.items() if key not in matched]
    return DecorationDiff(kept=tuple(kept), added=tuple(added), removed=tuple(removed))


class _Phase(str, Enum):
    IDLE = "idle"
    RECOMPUTING = "recomputing"


class LivePreview:
    """
    Decoration provider for one view.

    Every trigger rebuilds the set for the current viewport. Rebuilds are
    numbered; a result is applied only if no newer rebuild has started since.
    """

    def __init__(
        self,
        state: ViewState,
        settings: Settings,
        tokenizer: Tokenizer | None = None,
        *,
        skip: Callable[[str], bool] | None = None,
    ) -> None:
        self._settings = settings
        self._tokenizer = tokenizer
        self._skip = skip
        self._state = state
        self._phase = _Phase.IDLE
        self._generation = 0
        self.decorations: DecorationSet = ()
        self.last_diff = DecorationDiff((), (), ())
        self.refresh()

    @property
    def state(self) -> ViewState:
        return self._state

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def phase(self) -> str:
        return self._phase.value

    def begin_rebuild(self) -> int:
        self._generation += 1
        self._phase = _Phase.RECOMPUTING
        return self._generation

    def compute(self, state: ViewState | None = None) -> DecorationSet:
        if not self._settings.editing_mode:
            return ()
        return build_decorations(state or self._state, self._settings, self._tokenizer, self._skip)

    def commit(self, ticket: int, decorations: DecorationSet) -> bool:
        if ticket != self._generation:
            debug_log(f"discarding stale decoration rebuild {ticket} (latest {self._generation})")
            return False
        self.last_diff = diff_decorations(self.decorations, decorations)
        merged = self.last_diff.kept + self.last_diff.added
        self.decorations = tuple(sorted(merged, key=lambda item: item.start))
        self._phase = _Phase.IDLE
        return True

    def refresh(self) -> DecorationSet:
        ticket = self.begin_rebuild()
        self.commit(ticket, self.compute())
        return self.decorations

    def update(self, update: ViewUpdate) -> bool:
        self._state = update.state
        if not update.triggers:
            return False
        self.refresh()
        return True

    def move_to(self, state: ViewState) -> bool:
        return self.update(ViewUpdate.between(self._state, state))

    def reconfigure(self, settings: Settings) -> DecorationSet:
        self._settings = settings
        self.decorations = ()
        return self.refresh()

    def rendered(self) -> list[tuple[int, int, str]]:
        return [(item.start, item.end, item.widget.to_html()) for item in self.decorations]
