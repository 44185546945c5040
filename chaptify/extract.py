from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Iterator, List, Optional, Sequence

from . import epub as epub_util
from .text import safe_filename, strip_anchor, title_keys, utf16_length

MIN_TEXT_LEN = 50
MIN_PAD_WIDTH = 3

STATUS_NO_TITLE = "Skipped (No Title)"

KIND_WRITTEN = "written"
KIND_NO_TITLE = "skipped-no-title"
KIND_TOO_SHORT = "skipped-short"


@dataclass(frozen=True)
class ProgressEvent:
    status: str
    percent: float
    kind: str
    position: int
    total: int
    href: str
    title: str = ""
    output_path: Optional[Path] = None
    reason: str = ""

    @property
    def skipped(self) -> bool:
        return self.kind != KIND_WRITTEN


def pad_width(total: int) -> int:
    return max(MIN_PAD_WIDTH, len(str(total)))


def chapter_filename(index: int, title: str, width: int) -> str:
    return f"{index:0{width}d} - {safe_filename(title)}.txt"


def iter_extract(
    items: Sequence[epub_util.ContentItem],
    nav_entries: Iterable[epub_util.NavEntry],
    output_dir: Path,
    generic_titles: Optional[Iterable[str]] = None,
) -> Iterator[ProgressEvent]:
    """Convert reading-order items to numbered chapter files, one per step.

    Yields a :class:`ProgressEvent` after each item. Numbering only advances
    for written chapters, so skipped items leave no gaps. The percentage is
    based on the item's position in the full reading order.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    nav_map = epub_util.build_navigation_map(nav_entries)
    if generic_titles is not None:
        generic_titles = title_keys(generic_titles)

    total = len(items)
    width = pad_width(total)
    written = 0

    for position, item in enumerate(items, start=1):
        percent = position / total * 100
        key = strip_anchor(item.path)

        resolved = epub_util.resolve_title(item, key, nav_map, generic_titles)
        if not resolved.found:
            yield ProgressEvent(
                status=STATUS_NO_TITLE,
                percent=percent,
                kind=KIND_NO_TITLE,
                position=position,
                total=total,
                href=item.path,
                reason=resolved.reason,
            )
            continue
        title = resolved.title

        text = epub_util.html_to_text(item.read_markup())
        if utf16_length(text) < MIN_TEXT_LEN:
            yield ProgressEvent(
                status=f"Skipped: {title}",
                percent=percent,
                kind=KIND_TOO_SHORT,
                position=position,
                total=total,
                href=item.path,
                title=title,
                reason=f"text shorter than {MIN_TEXT_LEN} characters",
            )
            continue

        written += 1
        out_path = output_dir / chapter_filename(written, title, width)
        out_path.write_text(text, encoding="utf-8")
        yield ProgressEvent(
            status=title,
            percent=percent,
            kind=KIND_WRITTEN,
            position=position,
            total=total,
            href=item.path,
            title=title,
            output_path=out_path,
        )


def extract_epub(
    epub_path: Path,
    output_dir: Path,
    generic_titles: Optional[Iterable[str]] = None,
) -> Iterator[ProgressEvent]:
    book = epub_util.read_epub(epub_path)
    items = epub_util.reading_order(book)
    nav_entries = epub_util.toc_entries(book)
    return iter_extract(items, nav_entries, output_dir, generic_titles)


def extract_chapters(
    epub_path: Path,
    output_dir: Path,
    generic_titles: Optional[Iterable[str]] = None,
    on_progress: Optional[Callable[[str, float], None]] = None,
) -> List[Path]:
    written: List[Path] = []
    for event in extract_epub(epub_path, output_dir, generic_titles):
        if on_progress is not None:
            on_progress(event.status, event.percent)
        if event.output_path is not None:
            written.append(event.output_path)
    return written
