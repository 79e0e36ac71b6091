from .aligner import Segment, align_auto, align_manual, align_tokens
from .live import (
    Decoration,
    LivePreview,
    Selection,
    Trigger,
    ViewState,
    ViewUpdate,
    build_decorations,
    diff_decorations,
    same_render,
)
from .markup import AnnotationFragment, to_html
from .notation import ManualMatch, NotationStyle, compile_patterns, find_manual_matches, parse_manual
from .reading import AnnotatedText, annotate_html, annotate_markdown, convert_text
from .scanner import Match, scan_text
from .settings import DEFAULT_SETTINGS, Settings, SettingsChange, load_settings, save_settings
from .tokenizer import Token, Tokenizer, TokenizerState, TokenizerUnavailableError, UNAVAILABLE

__all__ = [
    "AnnotatedText",
    "AnnotationFragment",
    "DEFAULT_SETTINGS",
    "Decoration",
    "LivePreview",
    "ManualMatch",
    "Match",
    "NotationStyle",
    "Segment",
    "Selection",
    "Settings",
    "SettingsChange",
    "Token",
    "Tokenizer",
    "TokenizerState",
    "TokenizerUnavailableError",
    "Trigger",
    "UNAVAILABLE",
    "ViewState",
    "ViewUpdate",
    "align_auto",
    "align_manual",
    "align_tokens",
    "annotate_html",
    "annotate_markdown",
    "build_decorations",
    "compile_patterns",
    "convert_text",
    "diff_decorations",
    "find_manual_matches",
    "load_settings",
    "parse_manual",
    "same_render",
    "save_settings",
    "scan_text",
    "to_html",
]
