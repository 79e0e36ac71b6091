from __future__ import annotations

import json

import pytest

from autofuri import cli
from autofuri.logging_utils import reset_warnings
from autofuri.tokenizer import Token, Tokenizer

SCENARIO = "今日は{漢字|かん|じ}を勉強した。"
SCENARIO_HTML = (
    "<ruby>今日<rt>きょう</rt></ruby>は"
    "<ruby>漢<rt>かん</rt></ruby><ruby>字<rt>じ</rt></ruby>"
    "を<ruby>勉強<rt>べんきょう</rt></ruby>した。"
)


class _StubBackend:
    table = {
        "今日は": [Token("今日", "キョウ"), Token("は", "ハ")],
        "を勉強した": [Token("を", "ヲ"), Token("勉強", "ベンキョウ"), Token("した", "シタ")],
        "漢字": [Token("漢字", "カンジ")],
    }

    def tokenize(self, text: str) -> list[Token]:
        return list(self.table.get(text, [Token(text, None)]))


@pytest.fixture(autouse=True)
def _isolated(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(cli, "Tokenizer", lambda: Tokenizer(_StubBackend))
    reset_warnings()


def test_convert_prints_annotated_html(capsys) -> None:
    assert cli.main(["convert", SCENARIO]) == 0
    assert capsys.readouterr().out.strip() == SCENARIO_HTML


def test_convert_without_tokenizer_keeps_manual_overrides(capsys) -> None:
    assert cli.main(["convert", "--no-auto", "{東京|とうきょう}に行く"]) == 0
    assert capsys.readouterr().out.strip() == "<ruby>東京<rt>とうきょう</rt></ruby>に行く"


def test_convert_style_flag_overrides_settings(capsys, tmp_path) -> None:
    (tmp_path / ".autofuri.json").write_text(json.dumps({"notationStyle": "curly"}), encoding="utf-8")
    assert cli.main(["convert", "--no-auto", "--style", "square", "{漢字|かんじ}"]) == 0
    assert capsys.readouterr().out.strip() == "{漢字|かんじ}"


def test_settings_file_is_read(capsys, tmp_path) -> None:
    settings = tmp_path / "custom.json"
    settings.write_text(json.dumps({"notationStyle": "square"}), encoding="utf-8")
    assert cli.main(["convert", "--no-auto", "--settings", str(settings), "[漢字|かんじ]"]) == 0
    assert capsys.readouterr().out.strip() == "<ruby>漢字<rt>かんじ</rt></ruby>"


def test_missing_settings_file_exits(tmp_path) -> None:
    with pytest.raises(SystemExit, match="Settings file not found"):
        cli.main(["convert", "--settings", str(tmp_path / "nope.json"), "漢字"])


def test_invalid_settings_file_exits(tmp_path) -> None:
    (tmp_path / ".autofuri.json").write_text(json.dumps({"readingMode": "yes"}), encoding="utf-8")
    with pytest.raises(SystemExit, match="Invalid settings"):
        cli.main(["convert", "漢字"])


def test_scan_lists_matches(capsys) -> None:
    assert cli.main(["scan", SCENARIO]) == 0
    out = capsys.readouterr().out
    assert "manual" in out
    assert "3-12" in out
    assert "12-17" in out


def test_render_single_markdown_file_to_stdout(capsys, tmp_path) -> None:
    source = tmp_path / "note.md"
    source.write_text("```\n漢字\n```\n" + SCENARIO, encoding="utf-8")
    assert cli.main(["render", str(source)]) == 0
    assert capsys.readouterr().out == "```\n漢字\n```\n" + SCENARIO_HTML


def test_render_directory_into_output_dir(tmp_path) -> None:
    src = tmp_path / "site"
    (src / "posts").mkdir(parents=True)
    (src / "index.html").write_text("<p>漢字</p><pre>漢字</pre>", encoding="utf-8")
    skipped = "---\nauto-furigana: off\n---\n漢字\n"
    (src / "posts" / "skip.md").write_text(skipped, encoding="utf-8")
    (src / "notes.bin").write_bytes(b"\x00")

    out = tmp_path / "out"
    assert cli.main([str(src), "-o", str(out)]) == 0
    assert (out / "index.html").read_text(encoding="utf-8") == (
        "<p><ruby>漢字<rt>かんじ</rt></ruby></p><pre>漢字</pre>"
    )
    assert (out / "posts" / "skip.md").read_text(encoding="utf-8") == skipped
    assert not (out / "notes.bin").exists()


def test_multiple_inputs_need_output_dir(tmp_path) -> None:
    for name in ("a.md", "b.md"):
        (tmp_path / name).write_text("漢字", encoding="utf-8")
    with pytest.raises(SystemExit, match="--output-dir"):
        cli.main([str(tmp_path / "a.md"), str(tmp_path / "b.md")])


def test_unsupported_input_is_rejected(tmp_path) -> None:
    path = tmp_path / "book.pdf"
    path.write_bytes(b"%PDF")
    with pytest.raises(SystemExit, match="Unsupported"):
        cli.main([str(path)])


def test_failed_tokenizer_warns_and_renders_manual_only(monkeypatch, capsys) -> None:
    def _broken():
        raise RuntimeError("no dictionary")

    monkeypatch.setattr(cli, "Tokenizer", lambda: Tokenizer(_broken))
    with pytest.warns(RuntimeWarning):
        assert cli.main(["convert", "{漢字|かんじ}と漢字"]) == 0
    captured = capsys.readouterr()
    assert captured.out.strip() == "<ruby>漢字<rt>かんじ</rt></ruby>と漢字"
    assert "Tokenizer unavailable" in captured.err


def test_version_flag(capsys) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--version"])
    assert excinfo.value.code == 0
    assert capsys.readouterr().out.startswith("autofuri ")


def test_missing_input_path_exits(tmp_path) -> None:
    with pytest.raises(SystemExit, match="Input path not found"):
        cli.main([str(tmp_path / "missing.md")])


def test_directory_without_supported_files_exits(tmp_path) -> None:
    empty = tmp_path / "empty"
    empty.mkdir()
    with pytest.raises(SystemExit, match="No .html or .md files"):
        cli.main([str(empty)])
