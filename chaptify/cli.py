from __future__ import annotations

import argparse
import sys
import zipfile
from pathlib import Path
from typing import Optional

from ebooklib.epub import EpubException
from rich.progress import (
    BarColumn,
    Progress,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)

from . import epub as epub_util
from . import extract as extract_util
from . import rules as rules_util
from .text import strip_anchor


def _input_path(raw: str) -> Path:
    # Paths pasted from a file manager often arrive quoted.
    return Path(raw.strip().strip('"').strip("'"))


def default_output_dir(input_path: Path) -> Path:
    return input_path.parent / input_path.stem


def _load_rules(
    args: argparse.Namespace, input_path: Path
) -> Optional[rules_util.GenericTitleRules]:
    rules_path: Optional[Path] = Path(args.rules) if args.rules else None
    if rules_path is None:
        candidate = rules_util.book_rules_path(input_path)
        if candidate.exists():
            rules_path = candidate
    try:
        return rules_util.load_generic_titles(rules_path)
    except (OSError, ValueError) as exc:
        sys.stderr.write(f"Invalid rules file {rules_path}: {exc}\n")
        return None


def _open_input(raw: str) -> Optional[Path]:
    input_path = _input_path(raw)
    if not input_path.exists():
        sys.stderr.write(f"Input file not found: {input_path}\n")
        return None
    if input_path.suffix.lower() != ".epub":
        sys.stderr.write("Only .epub files are supported.\n")
        return None
    return input_path


def _extract(args: argparse.Namespace) -> int:
    input_path = _open_input(args.input)
    if input_path is None:
        return 1
    rules = _load_rules(args, input_path)
    if rules is None:
        return 1
    out_dir = Path(args.out) if args.out else default_output_dir(input_path)

    try:
        events = extract_util.extract_epub(input_path, out_dir, rules.titles)
    except (OSError, EpubException, zipfile.BadZipFile) as exc:
        sys.stderr.write(f"Failed to read EPUB: {exc}\n")
        return 1

    print(f"Output directory: {out_dir}")

    progress = Progress(
        TextColumn("{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        TimeElapsedColumn(),
    )
    written = 0
    skipped = 0
    with progress:
        task = progress.add_task("Extracting chapters...", total=100)
        try:
            for event in events:
                progress.update(
                    task,
                    completed=event.percent,
                    description=f"Extracting: {event.status}",
                )
                if event.skipped:
                    skipped += 1
                    if args.verbose:
                        label = event.title or event.href
                        sys.stderr.write(
                            f"[{event.position}/{event.total}] skipped {label}: "
                            f"{event.reason}\n"
                        )
                else:
                    written += 1
        except OSError as exc:
            sys.stderr.write(f"Failed to write chapters: {exc}\n")
            return 1
        progress.update(task, completed=100)

    if not written:
        sys.stderr.write("No chapters found in EPUB.\n")
        return 2

    print(f"Wrote {written} chapters to {out_dir} ({skipped} skipped)")
    return 0


def _titles(args: argparse.Namespace) -> int:
    input_path = _open_input(args.input)
    if input_path is None:
        return 1
    rules = _load_rules(args, input_path)
    if rules is None:
        return 1

    try:
        book = epub_util.read_epub(input_path)
    except (OSError, EpubException, zipfile.BadZipFile) as exc:
        sys.stderr.write(f"Failed to read EPUB: {exc}\n")
        return 1

    items = epub_util.reading_order(book)
    nav_map = epub_util.build_navigation_map(epub_util.toc_entries(book))
    for position, item in enumerate(items, start=1):
        result = epub_util.resolve_title(
            item, strip_anchor(item.path), nav_map, rules.titles
        )
        if result.found:
            print(f"{position:>4}  {item.path}  [{result.source}] {result.title}")
        else:
            print(f"{position:>4}  {item.path}  (no title: {result.reason})")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="chaptify")
    subparsers = parser.add_subparsers(dest="command")

    extract = subparsers.add_parser(
        "extract", help="Extract chapters from an EPUB into numbered text files"
    )
    extract.add_argument("--input", required=True, help="Path to input .epub")
    extract.add_argument(
        "--out",
        "--output",
        dest="out",
        help="Output directory (default: folder named after the EPUB, next to it)",
    )
    extract.add_argument(
        "--rules",
        help=(
            "Path to JSON generic-title rules (defaults to generic-titles.json "
            "next to the EPUB if present)"
        ),
    )
    extract.add_argument(
        "--verbose",
        action="store_true",
        help="Print skipped items and the reason to stderr",
    )
    extract.set_defaults(func=_extract)

    titles = subparsers.add_parser(
        "titles", help="Show the title resolved for each item without writing"
    )
    titles.add_argument("--input", required=True, help="Path to input .epub")
    titles.add_argument("--rules", help="Path to JSON generic-title rules")
    titles.set_defaults(func=_titles)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    return int(args.func(args))
