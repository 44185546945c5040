from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import FrozenSet, List, Optional

from .text import title_keys

RULES_KEY = "generic_titles"
RULES_FILENAME = "generic-titles.json"

DEFAULT_GENERIC_TITLES: List[str] = [
    "toc",
    "table of contents",
    "contents",
    "cover",
    "title page",
    "copyright",
    # Vietnamese
    "mục lục",
    "bìa",
]

DEFAULT_GENERIC_TITLE_KEYS: FrozenSet[str] = title_keys(DEFAULT_GENERIC_TITLES)


@dataclass(frozen=True)
class GenericTitleRules:
    titles: FrozenSet[str]
    source_path: Optional[Path] = None
    replace_defaults: bool = False


def book_rules_path(epub_path: Path) -> Path:
    return epub_path.parent / RULES_FILENAME


def load_generic_titles(rules_path: Optional[Path] = None) -> GenericTitleRules:
    titles = list(DEFAULT_GENERIC_TITLES)
    replace_defaults = False

    if rules_path is not None:
        data = json.loads(rules_path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"Rules file {rules_path} must contain a JSON object.")
        replace_defaults = bool(data.get("replace_defaults", False))
        if replace_defaults:
            titles = []
        if RULES_KEY in data:
            value = data[RULES_KEY]
            if not isinstance(value, list):
                raise ValueError(f"Rules key '{RULES_KEY}' must be a list.")
            titles.extend(str(item) for item in value)

    return GenericTitleRules(
        titles=title_keys(titles),
        source_path=rules_path,
        replace_defaults=replace_defaults,
    )
