from __future__ import annotations

from bs4 import BeautifulSoup

from autofuri.aligner import Segment
from autofuri.markup import AnnotationFragment, strip_ruby, to_html, to_soup_nodes
from autofuri.notation import parse_manual
from autofuri.tokenizer import Token, Tokenizer


class _StubBackend:
    def __init__(self, table: dict[str, list[Token]]) -> None:
        self._table = table

    def tokenize(self, text: str) -> list[Token]:
        return list(self._table.get(text, []))


def test_manual_fragment_renders_one_ruby_per_segment() -> None:
    match = parse_manual("{漢字|かん|じ}")
    assert match is not None
    fragment = AnnotationFragment.from_manual(match)
    assert to_html(fragment) == "<ruby>漢<rt>かん</rt></ruby><ruby>字<rt>じ</rt></ruby>"
    assert fragment.strip_readings() == "漢字"


def test_plain_segments_are_escaped_text() -> None:
    fragment = AnnotationFragment("a<b", (Segment("a<b", None),))
    assert to_html(fragment) == "a&lt;b"
    assert not fragment.annotated


def test_auto_fragment_round_trips_to_source_text() -> None:
    tokenizer = Tokenizer.from_backend(
        _StubBackend({"を勉強した": [Token("を", "ヲ"), Token("勉強", "ベンキョウ"), Token("した", "シタ")]})
    )
    fragment = AnnotationFragment.from_auto("を勉強した", tokenizer)
    assert fragment.strip_readings() == "を勉強した"
    assert to_html(fragment) == "を<ruby>勉強<rt>べんきょう</rt></ruby>した"


def test_soup_nodes_are_flat_and_strip_back_to_the_base() -> None:
    soup = BeautifulSoup("<p></p>", "html.parser")
    fragment = AnnotationFragment(
        "今日は",
        (Segment("今日", "きょう"), Segment("は", None)),
    )
    paragraph = soup.p
    for node in to_soup_nodes(fragment, soup):
        paragraph.append(node)
    assert str(paragraph) == "<p><ruby>今日<rt>きょう</rt></ruby>は</p>"
    assert paragraph.find("ruby").find("ruby") is None
    assert strip_ruby(paragraph) == "今日は"


def test_adjacent_plain_segments_become_one_text_node() -> None:
    soup = BeautifulSoup("", "html.parser")
    nodes = to_soup_nodes([Segment("を", None), Segment("した", None)], soup)
    assert len(nodes) == 1
    assert str(nodes[0]) == "をした"


def test_plain_fragment_helper() -> None:
    assert AnnotationFragment.plain("abc").segments == (Segment("abc", None),)
    assert AnnotationFragment.plain("").segments == ()
