from __future__ import annotations

import importlib.util
import os
import shlex
import threading
import warnings
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Protocol

from .chars import katakana_to_hiragana
from .logging_utils import debug_log, warn_once

__all__ = [
    "FugashiBackend",
    "Token",
    "Tokenizer",
    "TokenizerState",
    "TokenizerUnavailableError",
    "UNAVAILABLE",
    "get_unidic_dicdir",
]


class TokenizerUnavailableError(RuntimeError):
    """Raised when the morphological tokenizer cannot be initialized."""


@dataclass(frozen=True)
class Token:
    surface: str
    reading: str | None = None


class _Unavailable:
    _instance: "_Unavailable | None" = None

    def __new__(cls) -> "_Unavailable":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNAVAILABLE"

    def __bool__(self) -> bool:
        return False


UNAVAILABLE = _Unavailable()


class TokenizerState(str, Enum):
    UNINITIALIZED = "uninitialized"
    BUILDING = "building"
    READY = "ready"
    FAILED = "failed"


class TokenizerBackend(Protocol):
    def tokenize(self, text: str) -> list[Token]: ...


def get_unidic_dicdir() -> Path | None:
    env_dir = os.environ.get("AUTOFURI_UNIDIC_DIR")
    if env_dir:
        candidate = Path(env_dir).expanduser()
        if (candidate / "dicrc").exists():
            return candidate
    try:
        import unidic  # type: ignore
    except ImportError:
        return None
    dicdir = Path(getattr(unidic, "DICDIR", ""))
    if dicdir and (dicdir / "dicrc").exists():
        return dicdir
    return None


class FugashiBackend:
    """Fugashi (MeCab) backend returning surface/reading pairs."""

    def __init__(self, dicdir: Path | None = None) -> None:
        try:
            from fugashi import GenericTagger, Tagger  # type: ignore
            from fugashi import fugashi as fugashi_core  # type: ignore
        except ImportError as exc:
            raise TokenizerUnavailableError(
                "Automatic furigana requires 'fugashi' (MeCab) to be installed."
            ) from exc

        dicdir = dicdir or get_unidic_dicdir()
        if dicdir:
            args = f"-d {shlex.quote(str(dicdir))}"
            feature_wrapper = getattr(fugashi_core, "UnidicFeatures29", None)
            try:
                if feature_wrapper is not None:
                    self._tagger = GenericTagger(args, feature_wrapper)
                else:
                    self._tagger = GenericTagger(args)
            except RuntimeError as exc:
                raise TokenizerUnavailableError(
                    f"Failed to initialize UniDic dictionary at '{dicdir}': {exc}"
                ) from exc
        else:
            # fugashi's Tagger locates unidic-lite by itself.
            if importlib.util.find_spec("unidic_lite") is None:
                warnings.warn(
                    "UniDic not detected; falling back to the default MeCab dictionary.",
                    RuntimeWarning,
                    stacklevel=2,
                )
            try:
                self._tagger = Tagger()
            except RuntimeError as exc:
                raise TokenizerUnavailableError(f"Failed to initialize MeCab: {exc}") from exc

    def tokenize(self, text: str) -> list[Token]:
        tokens: list[Token] = []
        if not text:
            return tokens
        for raw in self._tagger(text):
            surface = raw.surface
            if not surface:
                continue
            reading = self._extract_reading(raw)
            tokens.append(Token(surface=surface, reading=reading or None))
        return tokens

    def _extract_reading(self, token) -> str:
        feature = getattr(token, "feature", None)
        value: str | None = None
        for attr in ("kana", "reading", "reading_form", "pron", "pronunciation"):
            if feature is None:
                break
            attr_val = None
            if hasattr(feature, attr):
                attr_val = getattr(feature, attr)
            else:
                try:
                    attr_val = feature[attr]
                except Exception:  # pragma: no cover - feature object may not be subscriptable
                    attr_val = None
            if attr_val and attr_val != "*":
                value = attr_val
                break
        if not value:
            return ""
        return katakana_to_hiragana(str(value))


class Tokenizer:
    """
    Tokenizer dependency with an explicit lifecycle.

    The backend is built at most once. Callers never block on a build: while
    the state is anything other than ``READY``, :meth:`tokenize` returns
    :data:`UNAVAILABLE` and the renderer shows plain text.
    """

    def __init__(self, factory: Callable[[], TokenizerBackend] | None = None) -> None:
        self._factory = factory or FugashiBackend
        self._backend: TokenizerBackend | None = None
        self._state = TokenizerState.UNINITIALIZED
        self._error: BaseException | None = None
        self._lock = threading.Lock()
        self._listeners: list[Callable[[TokenizerState], None]] = []

    @classmethod
    def from_backend(cls, backend: TokenizerBackend) -> "Tokenizer":
        tokenizer = cls(lambda: backend)
        tokenizer.build()
        return tokenizer

    @property
    def state(self) -> TokenizerState:
        return self._state

    @property
    def error(self) -> BaseException | None:
        return self._error

    @property
    def ready(self) -> bool:
        return self._state is TokenizerState.READY

    def subscribe(self, listener: Callable[[TokenizerState], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _transition(self, state: TokenizerState) -> None:
        self._state = state
        debug_log(f"tokenizer state -> {state.value}")
        for listener in list(self._listeners):
            listener(state)

    def build(self) -> TokenizerState:
        with self._lock:
            if self._state in {TokenizerState.READY, TokenizerState.BUILDING}:
                return self._state
            self._transition(TokenizerState.BUILDING)
        try:
            backend = self._factory()
        except Exception as exc:
            self._error = exc
            self._transition(TokenizerState.FAILED)
            warn_once(
                f"tokenizer-build:{id(self)}",
                f"Tokenizer initialization failed; furigana falls back to plain text. ({exc})",
            )
            return self._state
        self._backend = backend
        self._error = None
        self._transition(TokenizerState.READY)
        return self._state

    def build_in_background(self) -> threading.Thread | None:
        if self._state in {TokenizerState.READY, TokenizerState.BUILDING}:
            return None
        thread = threading.Thread(target=self.build, name="autofuri-tokenizer", daemon=True)
        thread.start()
        return thread

    def tokenize(self, text: str) -> list[Token] | _Unavailable:
        backend = self._backend
        if self._state is not TokenizerState.READY or backend is None:
            warn_once(
                f"tokenizer-unavailable:{id(self)}",
                f"Tokenizer is {self._state.value}; automatic furigana rendered as plain text.",
            )
            return UNAVAILABLE
        try:
            return list(backend.tokenize(text))
        except Exception as exc:
            warn_once(
                f"tokenizer-error:{id(self)}",
                f"Tokenizer failed on input; rendering plain text. ({exc})",
            )
            return UNAVAILABLE

