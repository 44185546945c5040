from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from posixpath import dirname as posix_dirname
from posixpath import join as posix_join
from posixpath import normpath as posix_normpath
from typing import Callable, Dict, Iterable, List, Optional, Set, Union
from urllib.parse import unquote

from bs4 import BeautifulSoup, NavigableString, Tag, UnicodeDammit
from bs4.element import Comment, Declaration, Doctype, ProcessingInstruction
from ebooklib import ITEM_DOCUMENT, epub

from .text import (
    clean_header_lines,
    collapse_whitespace,
    is_generic_title,
    split_lines,
    strip_anchor,
)

TITLE_SCAN_CHARS = 3000
NCX_MEDIA_TYPE = "application/x-dtbncx+xml"

_NOISE_TAGS = {"script", "style", "head", "nav"}
_HIDDEN_STYLE_MARKERS = ("display:none", "visibility:hidden")
_HIDDEN_CLASS_MARKER = "hidden"
_BLOCK_TAGS = {
    "p",
    "div",
    "h1",
    "h2",
    "h3",
    "h4",
    "h5",
    "h6",
    "li",
    "ul",
    "ol",
    "blockquote",
    "article",
    "section",
    "pre",
}
_TITLE_HEADING_TAGS = ("h1", "h2", "h3")
_SKIPPED_STRINGS = (Comment, Declaration, Doctype, ProcessingInstruction)


@dataclass(frozen=True)
class NavEntry:
    title: str
    target: str
    children: List["NavEntry"] = field(default_factory=list)


@dataclass(frozen=True)
class ContentItem:
    path: str
    loader: Callable[[], Union[bytes, str]]

    def read_markup(self) -> str:
        return _decode_markup(self.loader())


@dataclass(frozen=True)
class TitleResult:
    title: str = ""
    source: str = ""
    reason: str = ""

    @property
    def found(self) -> bool:
        return bool(self.title.strip())


def _decode_markup(data: bytes | str) -> str:
    if not data:
        return ""
    if isinstance(data, bytes):
        return UnicodeDammit(data, ["utf-8"]).unicode_markup or ""
    return data


def read_epub(path: Path) -> epub.EpubBook:
    if not path.exists():
        raise FileNotFoundError(f"EPUB file not found: {path}")
    return epub.read_epub(str(path), options={"ignore_ncx": False})


def _item_name(item: object) -> str:
    get_name = getattr(item, "get_name", None)
    if callable(get_name):
        return get_name() or ""
    return getattr(item, "file_name", "") or ""


def reading_order(book: epub.EpubBook) -> List[ContentItem]:
    items: List[ContentItem] = []
    for idref, _linear in book.spine:
        item = book.get_item_with_id(idref)
        if not item or item.get_type() != ITEM_DOCUMENT:
            continue
        name = _item_name(item)
        if not name:
            continue
        items.append(ContentItem(path=name, loader=item.get_content))
    return items


def _resolve_toc_target(
    href: str, base_dir: str, known_paths: Optional[Set[str]]
) -> str:
    target = unquote(href or "").strip()
    if not target or not base_dir or "://" in target:
        return target
    path, sep, fragment = target.partition("#")
    if not path:
        return target
    if known_paths is not None and path.lower() in known_paths:
        return target
    if path.startswith("/"):
        resolved = path.lstrip("/")
    else:
        resolved = posix_normpath(posix_join(base_dir, path))
    return f"{resolved}{sep}{fragment}"


def nav_entries_from_toc(
    toc: Iterable,
    base_dir: str = "",
    known_paths: Optional[Set[str]] = None,
) -> List[NavEntry]:
    """Convert an ebooklib TOC (links, sections, nested tuples) to NavEntry nodes.

    NCX hrefs are relative to the NCX file, so targets are joined onto
    ``base_dir`` unless they already name a known content path.
    """

    def convert(nodes: Iterable) -> List[NavEntry]:
        entries: List[NavEntry] = []
        for node in nodes or []:
            if isinstance(node, epub.Link):
                entries.append(
                    NavEntry(
                        title=node.title or "",
                        target=_resolve_toc_target(node.href, base_dir, known_paths),
                    )
                )
            elif isinstance(node, epub.Section):
                entries.append(
                    NavEntry(
                        title=node.title or "",
                        target=_resolve_toc_target(node.href, base_dir, known_paths),
                        children=convert(getattr(node, "subitems", None) or []),
                    )
                )
            elif (
                isinstance(node, tuple)
                and len(node) == 2
                and isinstance(node[0], (epub.Section, epub.Link))
                and isinstance(node[1], (list, tuple))
            ):
                head, subitems = node
                entries.append(
                    NavEntry(
                        title=head.title or "",
                        target=_resolve_toc_target(head.href, base_dir, known_paths),
                        children=convert(subitems),
                    )
                )
            elif isinstance(node, (list, tuple)):
                entries.extend(convert(node))
        return entries

    return convert(toc)


def _ncx_dir(book: epub.EpubBook) -> str:
    for item in book.get_items():
        if getattr(item, "media_type", "") == NCX_MEDIA_TYPE:
            return posix_dirname(_item_name(item))
    return ""


def toc_entries(book: epub.EpubBook) -> List[NavEntry]:
    known_paths = {
        _item_name(item).lower() for item in book.get_items_of_type(ITEM_DOCUMENT)
    }
    return nav_entries_from_toc(
        book.toc or [], base_dir=_ncx_dir(book), known_paths=known_paths
    )


def build_navigation_map(entries: Iterable[NavEntry]) -> Dict[str, str]:
    nav_map: Dict[str, str] = {}

    def walk(nodes: Iterable[NavEntry]) -> None:
        for node in nodes:
            key = strip_anchor(node.target or "").lower()
            title = (node.title or "").strip()
            if key and title and key not in nav_map:
                nav_map[key] = title
            walk(node.children)

    walk(entries)
    return nav_map


def _parse_html_soup(html: bytes | str) -> BeautifulSoup:
    return BeautifulSoup(html, "lxml")


def _content_root(soup: BeautifulSoup) -> Tag:
    return soup.body if soup.body else soup


def _attr_text(tag: Tag, name: str) -> str:
    value = tag.get(name)
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return " ".join(str(v) for v in value)
    return str(value)


def _is_hidden(tag: Tag) -> bool:
    style = _attr_text(tag, "style").lower()
    if any(marker in style for marker in _HIDDEN_STYLE_MARKERS):
        return True
    return _HIDDEN_CLASS_MARKER in _attr_text(tag, "class").lower()


def _remove_noise(root: Tag) -> None:
    for tag in root.find_all(True):
        if tag.decomposed:
            continue
        if tag.name in _NOISE_TAGS or _is_hidden(tag):
            tag.decompose()


def _flatten(node: object, parts: List[str]) -> None:
    if isinstance(node, NavigableString):
        if isinstance(node, _SKIPPED_STRINGS):
            return
        text = collapse_whitespace(str(node))
        if text.strip():
            parts.append(text)
        return
    if not isinstance(node, Tag):
        return

    is_block = node.name in _BLOCK_TAGS
    if is_block and parts and not parts[-1].endswith("\n"):
        parts.append("\n")
    if node.name == "li":
        parts.append("- ")
    for child in node.children:
        _flatten(child, parts)
    if is_block:
        parts.append("\n")
    if node.name == "br":
        parts.append("\n")


def html_to_lines(html: bytes | str) -> List[str]:
    markup = _decode_markup(html)
    if not markup:
        return []
    root = _content_root(_parse_html_soup(markup))
    _remove_noise(root)
    parts: List[str] = []
    _flatten(root, parts)
    return split_lines("".join(parts))


def html_to_text(html: bytes | str) -> str:
    lines = clean_header_lines(html_to_lines(html))
    return "\n\n".join(lines)


def _heading_title(
    root: Tag, generic_titles: Optional[Iterable[str]]
) -> TitleResult:
    for tag_name in _TITLE_HEADING_TAGS:
        heading = root.find(tag_name)
        if heading is None:
            continue
        text = collapse_whitespace(heading.get_text()).strip()
        if text and not is_generic_title(text, generic_titles):
            return TitleResult(title=text, source=tag_name)
    return TitleResult(reason="no-candidate")


def resolve_title(
    item: ContentItem,
    key: str,
    nav_map: Dict[str, str],
    generic_titles: Optional[Iterable[str]] = None,
) -> TitleResult:
    """Pick a chapter title from the TOC, falling back to early headings.

    Only the first ``TITLE_SCAN_CHARS`` characters of the markup are parsed
    for headings. Read or parse failures yield an empty result whose reason
    starts with ``parse-error``.
    """
    nav_title = nav_map.get(key.lower())
    if nav_title and not is_generic_title(nav_title, generic_titles):
        return TitleResult(title=nav_title, source="toc")

    try:
        head = item.read_markup()[:TITLE_SCAN_CHARS]
        root = _content_root(_parse_html_soup(head))
        return _heading_title(root, generic_titles)
    except Exception as exc:
        return TitleResult(reason=f"parse-error: {exc}")
