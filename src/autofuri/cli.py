from __future__ import annotations

import argparse
import shutil
import sys
from importlib import metadata
from pathlib import Path

import tomllib
from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from .logging_utils import set_debug_logging
from .notation import NotationStyle, compile_patterns
from .reading import AnnotatedText, annotate_html, annotate_markdown, convert_text
from .scanner import scan_line
from .settings import SETTINGS_FILENAME, Settings, SettingsError, load_settings
from .skip import should_skip_text
from .tokenizer import Tokenizer, TokenizerState

HTML_EXTS = (".html", ".htm", ".xhtml")
TEXT_EXTS = (".md", ".markdown", ".txt")


def _read_local_version() -> str | None:
    try:
        pyproject_path = Path(__file__).resolve().parents[2] / "pyproject.toml"
    except IndexError:  # pragma: no cover
        return None
    try:
        with pyproject_path.open("rb") as fh:
            data = tomllib.load(fh)
    except (FileNotFoundError, tomllib.TOMLDecodeError):
        return None
    return data.get("project", {}).get("version")


try:
    __version__ = metadata.version("autofuri")
except metadata.PackageNotFoundError:
    __version__ = _read_local_version() or "0.0.0+unknown"


def _add_common_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"autofuri {__version__}",
    )
    parser.add_argument(
        "--settings",
        help=f"Settings JSON file (default: ./{SETTINGS_FILENAME} when present)",
    )
    parser.add_argument(
        "--style",
        choices=[style.value for style in NotationStyle] + ["none"],
        help="Manual override notation: curly {漢字|かん|じ}, square [漢字|かん|じ], or disabled.",
    )
    parser.add_argument(
        "--split-okurigana",
        action="store_true",
        default=None,
        help="Annotate only the kanji part of a word and leave its kana ending bare.",
    )
    parser.add_argument(
        "--no-auto",
        action="store_true",
        help="Skip the tokenizer; only manual overrides are annotated.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable verbose debug logging (tokenizer state, dropped rebuilds).",
    )


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="autofuri",
        description="Add furigana (<ruby> readings) to HTML and Markdown files without touching the source text.",
    )
    _add_common_flags(ap)
    ap.add_argument(
        "paths",
        nargs="+",
        help="Files or directories to annotate (.html/.htm/.xhtml, .md/.markdown/.txt)",
    )
    ap.add_argument(
        "-o",
        "--output-dir",
        help="Write annotated copies here instead of printing a single file to stdout.",
    )
    return ap


def build_convert_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="autofuri convert",
        description="Print annotated HTML for a piece of Japanese text.",
    )
    _add_common_flags(ap)
    ap.add_argument(
        "text",
        nargs="+",
        help="Japanese text to annotate. Wrap the phrase in quotes if it contains spaces.",
    )
    return ap


def build_scan_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="autofuri scan",
        description="List the manual and automatic matches found in a piece of text.",
    )
    _add_common_flags(ap)
    ap.add_argument("text", nargs="+", help="Text to scan.")
    return ap


def _resolve_settings(args: argparse.Namespace) -> Settings:
    if args.settings:
        path = Path(args.settings)
        if not path.is_file():
            raise SystemExit(f"Settings file not found: {path}")
    else:
        path = Path.cwd() / SETTINGS_FILENAME
    try:
        settings = load_settings(path)
    except SettingsError as exc:
        raise SystemExit(f"Invalid settings in {path}: {exc}") from exc
    patch: dict[str, object] = {"reading_mode": True}
    if args.style:
        patch["notation_style"] = args.style
    if args.split_okurigana is not None:
        patch["split_okurigana"] = args.split_okurigana
    return settings.merged(patch)


def _build_tokenizer(args: argparse.Namespace, console: Console) -> Tokenizer | None:
    if args.no_auto:
        return None
    tokenizer = Tokenizer()
    if tokenizer.build() is TokenizerState.FAILED:
        console.print(
            f"[yellow]Tokenizer unavailable; only manual overrides will be annotated.[/yellow] ({tokenizer.error})"
        )
    return tokenizer


def _render_file(path: Path, settings: Settings, tokenizer: Tokenizer | None) -> str:
    text = path.read_text(encoding="utf-8")
    suffix = path.suffix.lower()
    if suffix in HTML_EXTS:
        return annotate_html(text, settings, tokenizer)
    return annotate_markdown(text, settings, tokenizer)


def _collect_inputs(paths: list[str]) -> list[tuple[Path, Path]]:
    """Pairs of (file, root) for every supported file under ``paths``."""
    collected: list[tuple[Path, Path]] = []
    for raw in paths:
        path = Path(raw)
        if not path.exists():
            raise FileNotFoundError(f"Input path not found: {path}")
        if path.is_dir():
            for child in sorted(path.rglob("*")):
                if child.is_file() and child.suffix.lower() in HTML_EXTS + TEXT_EXTS:
                    collected.append((child, path))
        elif path.suffix.lower() in HTML_EXTS + TEXT_EXTS:
            collected.append((path, path.parent))
        else:
            raise ValueError(f"Unsupported input type: {path}")
    return collected


def _run_render(args: argparse.Namespace) -> int:
    console = Console(stderr=True)
    settings = _resolve_settings(args)
    try:
        inputs = _collect_inputs(args.paths)
    except (FileNotFoundError, ValueError) as exc:
        raise SystemExit(str(exc)) from exc
    if not inputs:
        raise SystemExit("No .html or .md files found in the given paths.")

    if args.output_dir is None:
        if len(inputs) != 1:
            raise SystemExit("Multiple inputs need --output-dir.")
        tokenizer = _build_tokenizer(args, console)
        sys.stdout.write(_render_file(inputs[0][0], settings, tokenizer))
        return 0

    output_dir = Path(args.output_dir)
    tokenizer = _build_tokenizer(args, console)
    progress = Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    )
    skipped = 0
    with progress:
        task = progress.add_task("Annotating", total=len(inputs))
        for path, root in inputs:
            target = output_dir / path.relative_to(root)
            target.parent.mkdir(parents=True, exist_ok=True)
            text = path.read_text(encoding="utf-8")
            if should_skip_text(text):
                shutil.copyfile(path, target)
                skipped += 1
            else:
                target.write_text(_render_file(path, settings, tokenizer), encoding="utf-8")
            progress.advance(task, 1)
    console.print(
        f"Annotated {len(inputs) - skipped} file(s) into {output_dir}"
        + (f" ({skipped} skipped by front matter)" if skipped else "")
    )
    return 0


def _run_convert(args: argparse.Namespace) -> int:
    console = Console(stderr=True)
    settings = _resolve_settings(args)
    tokenizer = _build_tokenizer(args, console)
    text = " ".join(args.text)
    converted = convert_text(
        text,
        compile_patterns(settings.notation_style),
        tokenizer,
        split_okurigana=settings.split_okurigana,
    )
    if isinstance(converted, AnnotatedText):
        print(converted.to_html())
    else:
        print(converted)
    return 0


def _run_scan(args: argparse.Namespace) -> int:
    settings = _resolve_settings(args)
    text = " ".join(args.text)
    table = Table(title=f"Matches ({settings.notation_style.value})")
    table.add_column("kind")
    table.add_column("span", justify="right")
    table.add_column("text")
    table.add_column("readings")
    for match in scan_line(text, compile_patterns(settings.notation_style)):
        readings = "|".join(match.manual.readings) if match.manual else ""
        table.add_row(match.kind, f"{match.start}-{match.end}", match.text, readings)
    Console().print(table)
    return 0


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    if argv and argv[0] == "convert":
        convert_args = build_convert_parser().parse_args(argv[1:])
        set_debug_logging(convert_args.debug)
        return _run_convert(convert_args)
    if argv and argv[0] == "scan":
        scan_args = build_scan_parser().parse_args(argv[1:])
        set_debug_logging(scan_args.debug)
        return _run_scan(scan_args)

    parser = build_parser()
    if argv and argv[0] == "render":
        argv = argv[1:]
    if not argv:
        parser.print_help()
        return 0
    args = parser.parse_args(argv)
    set_debug_logging(args.debug)
    return _run_render(args)


if __name__ == "__main__":
    raise SystemExit(main())
