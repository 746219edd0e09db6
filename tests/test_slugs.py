"""Tests for slug and key helpers."""

from __future__ import annotations

import pytest

from presetsheet.slugs import (
    build_slug_with_fallback,
    field_tag_key,
    normalize_icon_slug,
    option_value,
    preset_slug,
    slugify,
)


class TestSlugify:
    """Tests for slugify()."""

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("Animal type", "animal-type"),
            ("Café  au_lait", "cafe-au-lait"),
            ("  --Hi!--  ", "hi"),
            ("Água", "agua"),
            ("a - b", "a-b"),
            (None, ""),
            ("", ""),
            ("!!!", ""),
        ],
    )
    def test_slugify(self, text: str | None, expected: str) -> None:
        assert slugify(text) == expected

    def test_non_string_values(self) -> None:
        assert slugify(42) == "42"

    def test_non_latin_text_is_dropped(self) -> None:
        """Only ASCII word characters survive."""
        assert slugify("日本語") == ""

    @pytest.mark.parametrize("text", ["Animal type", "Café au lait", "x__y--z", "Río Grande"])
    def test_idempotent(self, text: str) -> None:
        once = slugify(text)
        assert slugify(once) == once


class TestFallback:
    """Tests for build_slug_with_fallback() and its wrappers."""

    def test_uses_slug_when_available(self) -> None:
        assert build_slug_with_fallback("Mammal", "animal-type", 0) == "mammal"

    def test_falls_back_to_prefix_and_position(self) -> None:
        assert build_slug_with_fallback("", "animal-type", 2) == "animal-type-3"

    def test_empty_prefix_becomes_item(self) -> None:
        assert build_slug_with_fallback("", "", 0) == "item-1"
        assert build_slug_with_fallback("?", "!!", 4) == "item-5"

    @pytest.mark.parametrize("index", [0, 1, 7])
    def test_empty_field_label(self, index: int) -> None:
        assert field_tag_key("", index) == f"field-{index + 1}"

    def test_preset_slug(self) -> None:
        assert preset_slug("Water Point") == "water-point"
        assert preset_slug("", 3) == "category-4"

    def test_option_values_for_blank_labels(self) -> None:
        values = [option_value(label, "animal-type", i) for i, label in enumerate(["", "", ""])]
        assert values == ["animal-type-1", "animal-type-2", "animal-type-3"]


class TestNormalizeIconSlug:
    """Tests for normalize_icon_slug()."""

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("river-100px", "river"),
            ("camp-medium", "camp"),
            ("tree-24px-2x", "tree"),
            ("water-point", "water-point"),
            ("", ""),
        ],
    )
    def test_strips_size_suffixes(self, name: str, expected: str) -> None:
        assert normalize_icon_slug(name) == expected
