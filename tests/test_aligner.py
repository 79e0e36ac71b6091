from __future__ import annotations

import pytest

from autofuri.aligner import Segment, align_auto, align_manual, align_tokens, split_okurigana
from autofuri.tokenizer import Token, Tokenizer, TokenizerState


class _StubBackend:
    def __init__(self, table: dict[str, list[Token]]) -> None:
        self._table = table

    def tokenize(self, text: str) -> list[Token]:
        return list(self._table.get(text, [Token(text, None)]))


def test_manual_alignment_is_positional() -> None:
    assert align_manual("漢字", ["かん", "じ"]) == [Segment("漢", "かん"), Segment("字", "じ")]


def test_manual_single_reading_is_one_segment() -> None:
    assert align_manual("漢字", ["かんじ"]) == [Segment("漢字", "かんじ")]


def test_manual_mismatch_raises() -> None:
    with pytest.raises(ValueError):
        align_manual("漢字", ["か", "ん", "じ"])


def test_kana_tokens_never_receive_readings() -> None:
    tokens = [Token("かな", "カナ"), Token("漢字", "カンジ")]
    segments = align_tokens("かな漢字", tokens)
    assert segments == [Segment("かな", None), Segment("漢字", "かんじ")]


def test_tokens_without_reading_stay_plain() -> None:
    segments = align_tokens("鬱X", [Token("鬱", None), Token("X", "*")])
    assert segments == [Segment("鬱", None), Segment("X", None)]


def test_katakana_word_is_not_annotated_with_its_own_reading() -> None:
    assert align_tokens("ＡＩ", [Token("ＡＩ", "エーアイ")]) == [Segment("ＡＩ", "えーあい")]
    assert align_tokens("テレビ", [Token("テレビ", "テレビ")]) == [Segment("テレビ", None)]


def test_gaps_between_tokens_are_kept_as_plain_text() -> None:
    text = "今日 は"
    segments = align_tokens(text, [Token("今日", "キョウ"), Token("は", "ハ")])
    assert segments == [Segment("今日", "きょう"), Segment(" ", None), Segment("は", None)]
    assert "".join(segment.base for segment in segments) == text


def test_untokenized_tail_is_preserved() -> None:
    segments = align_tokens("勉強中", [Token("勉強", "ベンキョウ")])
    assert segments[-1] == Segment("中", None)


def test_okurigana_split_leaves_kana_endings_bare() -> None:
    assert split_okurigana("食べる", "たべる") == [Segment("食", "た"), Segment("べる", None)]
    assert split_okurigana("お茶", "おちゃ") == [Segment("お", None), Segment("茶", "ちゃ")]
    assert split_okurigana("漢字", "かんじ") == [Segment("漢字", "かんじ")]


def test_okurigana_split_keeps_token_when_kana_disagrees() -> None:
    assert split_okurigana("食べる", "くう") == [Segment("食べる", "くう")]


def test_align_tokens_can_split_okurigana() -> None:
    segments = align_tokens("食べる", [Token("食べる", "タベル")], split_okurigana=True)
    assert segments == [Segment("食", "た"), Segment("べる", None)]


def test_auto_alignment_uses_the_tokenizer() -> None:
    tokenizer = Tokenizer.from_backend(
        _StubBackend({"勉強した": [Token("勉強", "ベンキョウ"), Token("し", "シ"), Token("た", "タ")]})
    )
    segments = align_auto("勉強した", tokenizer)
    assert segments == [
        Segment("勉強", "べんきょう"),
        Segment("し", None),
        Segment("た", None),
    ]


def test_auto_alignment_degrades_to_plain_text_when_tokenizer_missing() -> None:
    assert align_auto("勉強", None) == [Segment("勉強", None)]


@pytest.mark.filterwarnings("ignore::RuntimeWarning")
def test_auto_alignment_degrades_when_tokenizer_not_ready() -> None:
    tokenizer = Tokenizer(lambda: _StubBackend({}))
    assert tokenizer.state is TokenizerState.UNINITIALIZED
    assert align_auto("勉強", tokenizer) == [Segment("勉強", None)]
