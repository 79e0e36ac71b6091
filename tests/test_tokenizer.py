from __future__ import annotations

import warnings

import pytest

from autofuri.logging_utils import reset_warnings, set_debug_logging, warn_once
from autofuri.tokenizer import (
    FugashiBackend,
    Token,
    Tokenizer,
    TokenizerState,
    TokenizerUnavailableError,
    UNAVAILABLE,
    get_unidic_dicdir,
)


@pytest.fixture(autouse=True)
def _fresh_warnings():
    reset_warnings()
    yield
    reset_warnings()


class _StubBackend:
    def tokenize(self, text: str) -> list[Token]:
        return [Token(text, "ヨミ")]


class _BrokenBackend:
    def tokenize(self, text: str) -> list[Token]:
        raise RuntimeError("tagger crashed")


def test_lifecycle_reaches_ready_and_notifies_listeners() -> None:
    seen: list[TokenizerState] = []
    tokenizer = Tokenizer(_StubBackend)
    unsubscribe = tokenizer.subscribe(seen.append)
    assert tokenizer.state is TokenizerState.UNINITIALIZED
    assert tokenizer.build() is TokenizerState.READY
    assert seen == [TokenizerState.BUILDING, TokenizerState.READY]
    assert tokenizer.ready
    assert tokenizer.tokenize("漢字") == [Token("漢字", "ヨミ")]

    unsubscribe()
    tokenizer.build()
    assert seen == [TokenizerState.BUILDING, TokenizerState.READY]


def test_tokenize_before_build_is_unavailable() -> None:
    tokenizer = Tokenizer(_StubBackend)
    with pytest.warns(RuntimeWarning, match="uninitialized"):
        assert tokenizer.tokenize("漢字") is UNAVAILABLE
    assert not UNAVAILABLE


def test_failed_build_is_reported_once() -> None:
    def _factory():
        raise TokenizerUnavailableError("no dictionary")

    tokenizer = Tokenizer(_factory)
    with pytest.warns(RuntimeWarning, match="no dictionary"):
        assert tokenizer.build() is TokenizerState.FAILED
    assert isinstance(tokenizer.error, TokenizerUnavailableError)

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        tokenizer.build()
        tokenizer.tokenize("漢字")
        tokenizer.tokenize("仮名")
    messages = [str(item.message) for item in caught]
    assert len(messages) == 1
    assert "failed" in messages[0]


def test_backend_errors_degrade_to_unavailable() -> None:
    tokenizer = Tokenizer.from_backend(_BrokenBackend())
    with pytest.warns(RuntimeWarning, match="tagger crashed"):
        assert tokenizer.tokenize("漢字") is UNAVAILABLE


def test_background_build_runs_once() -> None:
    tokenizer = Tokenizer(_StubBackend)
    thread = tokenizer.build_in_background()
    assert thread is not None
    thread.join(timeout=5)
    assert tokenizer.ready
    assert tokenizer.build_in_background() is None


def test_warn_once_and_debug_output(capsys) -> None:
    set_debug_logging(True)
    try:
        with pytest.warns(RuntimeWarning):
            assert warn_once("key", "first")
        assert not warn_once("key", "again")
    finally:
        set_debug_logging(False)
    err = capsys.readouterr().err
    assert "[autofuri debug] first" in err
    assert "[autofuri debug] again" in err


def test_env_override_for_dictionary(monkeypatch, tmp_path) -> None:
    (tmp_path / "dicrc").write_text("", encoding="utf-8")
    monkeypatch.setenv("AUTOFURI_UNIDIC_DIR", str(tmp_path))
    assert get_unidic_dicdir() == tmp_path


@pytest.mark.filterwarnings("ignore::RuntimeWarning")
def test_fugashi_backend_reads_kanji_in_hiragana() -> None:
    pytest.importorskip("fugashi")
    try:
        backend = FugashiBackend()
    except TokenizerUnavailableError as exc:
        pytest.skip(str(exc))
    tokens = backend.tokenize("漢字を勉強した")
    assert "".join(token.surface for token in tokens) == "漢字を勉強した"
    assert tokens[0] == Token("漢字", "かんじ")
