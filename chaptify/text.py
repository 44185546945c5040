from __future__ import annotations

import re
import unicodedata
from typing import FrozenSet, Iterable, List, Optional


_WHITESPACE_RE = re.compile(r"\s+")
_INTEGER_RE = re.compile(r"[+-]?[0-9]+")
_ILLEGAL_FILENAME_RE = re.compile(r'[<>:"/\\|?*\x00-\x1f]')

FILENAME_MAX_LEN = 100
HEADER_SCAN_WINDOW = 9
HEADER_PREFIX_MIN_LEN = 5


def strip_anchor(path: str) -> str:
    """Return ``path`` without its ``#fragment``."""
    return path.split("#", 1)[0]


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text)


def is_integer(text: str) -> bool:
    return bool(_INTEGER_RE.fullmatch(text.strip()))


def normalize_title_key(title: str) -> str:
    """Comparison key for titles: trimmed, NFC-composed and casefolded."""
    return unicodedata.normalize("NFC", title.strip()).casefold()


def title_keys(titles: Iterable[str]) -> FrozenSet[str]:
    return frozenset(
        normalize_title_key(str(title)) for title in titles if str(title).strip()
    )


def is_generic_title(
    title: str, generic_titles: Optional[Iterable[str]] = None
) -> bool:
    """Return True when ``title`` is too uninformative to name a chapter.

    Blank values, bare integers and one- or two-character strings are always
    generic. ``generic_titles`` holds the locale-specific names, compared
    case-insensitively after NFC normalization; the built-in set is used
    when it is omitted.
    """
    cleaned = (title or "").strip()
    if not cleaned:
        return True
    if is_integer(cleaned):
        return True
    if len(cleaned) <= 2:
        return True
    if generic_titles is None:
        from .rules import DEFAULT_GENERIC_TITLE_KEYS

        keys = DEFAULT_GENERIC_TITLE_KEYS
    else:
        keys = title_keys(generic_titles)
    return normalize_title_key(cleaned) in keys


def safe_filename(title: str) -> str:
    safe = _ILLEGAL_FILENAME_RE.sub("_", title or "")
    safe = collapse_whitespace(safe).strip()
    if len(safe) > FILENAME_MAX_LEN:
        safe = safe[:FILENAME_MAX_LEN].strip()
    return safe


def split_lines(text: str) -> List[str]:
    lines: List[str] = []
    for piece in re.split(r"[\r\n]", text):
        cleaned = piece.strip()
        if cleaned:
            lines.append(cleaned)
    return lines


def _restates_header(header: str, candidate: str) -> bool:
    # Prefix matching is a heuristic: "Chapter 10" restates "Chapter 1".
    header_key = header.casefold()
    candidate_key = candidate.casefold()
    if header_key == candidate_key:
        return True
    return len(header) > HEADER_PREFIX_MIN_LEN and candidate_key.startswith(header_key)


def clean_header_lines(lines: Iterable[str]) -> List[str]:
    """Drop leading page numbers and collapse a restated chapter header.

    Leading lines that are bare integers are removed. When the first
    remaining line is repeated (or used as a prefix) within the next
    ``HEADER_SCAN_WINDOW`` lines, everything between the first line and the
    repetition is dropped, repetition included.
    """
    out = list(lines)
    while out and is_integer(out[0]):
        out.pop(0)
    if len(out) <= 1:
        return out

    header = unicodedata.normalize("NFC", out[0])
    limit = min(HEADER_SCAN_WINDOW + 1, len(out))
    for idx in range(1, limit):
        candidate = unicodedata.normalize("NFC", out[idx])
        if _restates_header(header, candidate):
            del out[1 : idx + 1]
            break
    return out


def utf16_length(text: str) -> int:
    return len(text.encode("utf-16-le")) // 2
