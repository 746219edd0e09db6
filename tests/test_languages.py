"""Tests for language resolution and the catalog cache."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from presetsheet.exceptions import NetworkError
from presetsheet.languages import (
    LanguageCatalogCache,
    LanguageResolver,
    load_fallback_catalog,
    parse_catalog,
    resolve_language,
)
from presetsheet.transport import LocalFileTransport


class CountingTransport(LocalFileTransport):
    """Serves a fixed catalog, or fails, and counts fetches."""

    def __init__(self, catalog: dict[str, Any] | None) -> None:
        super().__init__(Path("."))
        self._catalog = catalog
        self.fetches = 0

    async def fetch_languages(self) -> dict[str, Any]:
        self.fetches += 1
        if self._catalog is None:
            raise NetworkError("offline")
        return self._catalog


class TestResolveLanguage:
    """Tests for LanguageResolver.resolve()."""

    @pytest.mark.parametrize("header", ["Português", "pt", "Portuguese - pt", "PT", "portuguese"])
    def test_portuguese_spellings(self, header: str) -> None:
        assert resolve_language(header) == "pt"

    def test_name_with_iso_suffix(self) -> None:
        assert resolve_language("Name - ES") == "es"
        assert resolve_language("Wayuunaiki -guc") == "guc"

    def test_region_code_is_not_split(self) -> None:
        """A bare "zh-CN" is a code, not "<name> - <iso>"."""
        assert resolve_language("zh-CN") == "zh-CN"

    def test_alias_and_native_names(self) -> None:
        assert resolve_language("Español") == "es"
        assert resolve_language("Espanol") == "es"
        assert resolve_language("Deutsch") == "de"

    def test_bare_iso_pattern_accepted(self) -> None:
        assert resolve_language("xyz") == "xyz"

    @pytest.mark.parametrize("header", ["", None, "Not a language at all", "12"])
    def test_unresolvable(self, header: str | None) -> None:
        assert resolve_language(header) is None

    def test_suggestions_for_typos(self) -> None:
        resolver = LanguageResolver()
        assert "Portuguese" in resolver.suggest("Portugese")


class TestPrimaryLanguage:
    """Tests for LanguageResolver.primary_language()."""

    def test_known_language(self) -> None:
        assert LanguageResolver().primary_language("Español") == "es"

    def test_column_title_is_not_a_language(self) -> None:
        assert LanguageResolver().primary_language("Name") == "en"

    def test_blank_defaults_to_english(self) -> None:
        assert LanguageResolver().primary_language(None) == "en"


class TestCatalog:
    """Tests for catalog parsing and caching."""

    def test_fallback_catalog_is_bundled(self) -> None:
        catalog = load_fallback_catalog()
        assert catalog["pt"].english_name == "Portuguese"
        assert catalog["pt"].native_name == "Português"
        assert len(catalog) > 100

    def test_parse_catalog_shapes(self) -> None:
        catalog = parse_catalog(
            {"xx": {"englishName": "Exish", "nativeName": "Exo"}, "yy": "Whyish", "": "skip"}
        )
        assert catalog["xx"].native_name == "Exo"
        assert catalog["yy"].english_name == "Whyish"
        assert "" not in catalog

    def test_parse_catalog_rejects_non_objects(self) -> None:
        with pytest.raises(ValueError):
            parse_catalog(["en"])

    @pytest.mark.asyncio
    async def test_remote_catalog_is_cached(self) -> None:
        now = [0.0]
        cache = LanguageCatalogCache(ttl=60, clock=lambda: now[0])
        transport = CountingTransport({"xx": {"englishName": "Exish", "nativeName": "Exo"}})

        first = await cache.get(transport)
        now[0] = 30.0
        second = await cache.get(transport)

        assert first is second
        assert transport.fetches == 1

        now[0] = 61.0
        await cache.get(transport)
        assert transport.fetches == 2

    @pytest.mark.asyncio
    async def test_failed_fetch_uses_fallback_and_is_not_cached(self) -> None:
        cache = LanguageCatalogCache(ttl=60, clock=lambda: 0.0)
        transport = CountingTransport(None)

        catalog = await cache.get(transport)
        await cache.get(transport)

        assert "pt" in catalog
        assert transport.fetches == 2

    @pytest.mark.asyncio
    async def test_remote_names_resolve(self) -> None:
        cache = LanguageCatalogCache(ttl=60)
        resolver = await cache.resolver(
            CountingTransport({"xx": {"englishName": "Exish", "nativeName": "Exo"}})
        )
        assert resolver.resolve("Exo") == "xx"
