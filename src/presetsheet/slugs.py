"""
Slug and key helpers.

Every identifier in an exported configuration (field tag keys, preset icon
slugs, option values) is derived here, so export and import agree on keys.
"""

from __future__ import annotations

import re
import unicodedata
from typing import Any

_NON_WORD = re.compile(r"[^\w\s-]", re.ASCII)
_SEPARATORS = re.compile(r"[\s_-]+")
_EDGE_HYPHENS = re.compile(r"^-+|-+$")
_COMBINING_MARKS = re.compile("[\u0300-\u036f]")
_SIZE_SUFFIX = re.compile(r"^(?:\d+px|\d+x|small|medium|large)$")


def slugify(value: Any) -> str:
    """Turn free text into an identifier-safe slug.

    Examples:
        "Animal type" -> "animal-type", "Café  au_lait" -> "cafe-au-lait",
        "  --Hi!--  " -> "hi", None -> ""
    """
    if not value:
        return ""

    text = value if isinstance(value, str) else str(value)
    text = _COMBINING_MARKS.sub("", unicodedata.normalize("NFD", text))
    text = text.lower().strip()
    text = _NON_WORD.sub("", text)
    text = _SEPARATORS.sub("-", text)
    return _EDGE_HYPHENS.sub("", text)


def build_slug_with_fallback(source: Any, prefix: str, index: int = 0) -> str:
    """Slugify ``source``, falling back to ``<prefix>-<index+1>``.

    ``index`` is zero-based. An empty or unsluggable prefix becomes "item".

    Examples:
        ("Mammal", "animal-type", 0) -> "mammal"
        ("", "animal-type", 2) -> "animal-type-3"
        ("", "", 0) -> "item-1"
    """
    slug = slugify(source)
    if slug:
        return slug
    return f"{slugify(prefix) or 'item'}-{index + 1}"


def field_tag_key(label: Any, index: int = 0) -> str:
    """Canonical tag key for a Details row."""
    return build_slug_with_fallback(label, "field", index)


def preset_slug(name: Any, index: int = 0) -> str:
    """Canonical icon slug for a Categories row."""
    return build_slug_with_fallback(name, "category", index)


def option_value(label: Any, tag_key: str, index: int = 0) -> str:
    """Canonical value for the option at ``index`` of field ``tag_key``."""
    return build_slug_with_fallback(label, tag_key or "option", index)


def normalize_icon_slug(slug: str) -> str:
    """Strip size/resolution suffixes from an icon file or symbol name.

    Examples:
        "river-100px" -> "river", "camp-medium" -> "camp", "tree-24px-2x" -> "tree"
    """
    if not slug:
        return ""
    parts = [part for part in slug.split("-") if part]
    while parts and _SIZE_SUFFIX.match(parts[-1]):
        parts.pop()
    return "-".join(parts)
