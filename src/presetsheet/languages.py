"""
Language resolution for translation sheet headers.

Headers are free text ("Portuguese", "Português", "pt", "Name - ES"). The
resolver maps them to canonical language codes using the known code set,
a curated alias table and the language catalog's English and native names.
"""

from __future__ import annotations

import difflib
import json
import re
import time
from collections.abc import Callable
from dataclasses import dataclass
from functools import lru_cache
from importlib import resources
from typing import TYPE_CHECKING, Any

from presetsheet.exceptions import TransportError
from presetsheet.logging import OperationLog, ensure_log

if TYPE_CHECKING:
    from presetsheet.transport import ApiTransport

ISO_PATTERN = re.compile(r"^[a-z]{2,8}(?:-[a-z0-9]{2,8})?$", re.IGNORECASE)
# "<name> - <iso>"; whitespace on at least one side of the separator keeps
# bare region codes such as "zh-CN" out of this branch.
NAME_ISO_PATTERN = re.compile(
    r"^(.+?)(?:\s+-\s*|\s*-\s+)([a-z]{2,8}(?:-[a-z0-9]{2,8})?)$", re.IGNORECASE
)

DEFAULT_PRIMARY_LANGUAGE = "en"

LANGUAGE_NAME_ALIASES: dict[str, str] = {
    # English names
    "English": "en",
    "Spanish": "es",
    "French": "fr",
    "German": "de",
    "Italian": "it",
    "Portuguese": "pt",
    "Russian": "ru",
    "Chinese": "zh",
    "Japanese": "ja",
    "Korean": "ko",
    "Arabic": "ar",
    "Hindi": "hi",
    "Bengali": "bn",
    "Dutch": "nl",
    "Swedish": "sv",
    "Norwegian": "no",
    "Danish": "da",
    "Finnish": "fi",
    "Polish": "pl",
    "Turkish": "tr",
    "Greek": "el",
    "Hebrew": "he",
    "Thai": "th",
    "Vietnamese": "vi",
    "Indonesian": "id",
    "Malay": "ms",
    "Swahili": "sw",
    "Tagalog": "tl",
    # Native names and accent-free spellings
    "Español": "es",
    "Espanol": "es",
    "Français": "fr",
    "Francais": "fr",
    "Deutsch": "de",
    "Italiano": "it",
    "Português": "pt",
    "Portugues": "pt",
    "Русский": "ru",
    "中文": "zh",
    "日本語": "ja",
    "한국어": "ko",
    "العربية": "ar",
    "हिन्दी": "hi",
    "বাংলা": "bn",
    "Nederlands": "nl",
    "Svenska": "sv",
    "Norsk": "no",
    "Dansk": "da",
    "Suomi": "fi",
    "Polski": "pl",
    "Türkçe": "tr",
    "Turkce": "tr",
    "Ελληνικά": "el",
    "עברית": "he",
    "ไทย": "th",
    "Tiếng Việt": "vi",
    "Bahasa Indonesia": "id",
    "Bahasa Melayu": "ms",
    "Kiswahili": "sw",
}


@dataclass(frozen=True)
class Language:
    code: str
    english_name: str
    native_name: str


Catalog = dict[str, Language]


def parse_catalog(data: Any) -> Catalog:
    """Parse a catalog document.

    Accepts ``{code: {englishName, nativeName}}`` and the older
    ``{code: "Name"}`` shape. Malformed entries are skipped.
    """
    if not isinstance(data, dict):
        raise ValueError("Language catalog must be a JSON object")

    catalog: Catalog = {}
    for code, entry in data.items():
        if not isinstance(code, str) or not code:
            continue
        if isinstance(entry, str):
            catalog[code] = Language(code, entry, entry)
        elif isinstance(entry, dict):
            english = str(entry.get("englishName") or entry.get("name") or "")
            native = str(entry.get("nativeName") or english)
            if english or native:
                catalog[code] = Language(code, english or native, native)
    return catalog


@lru_cache
def load_fallback_catalog() -> Catalog:
    """The catalog bundled with the package."""
    text = (
        resources.files("presetsheet")
        .joinpath("data/languages_fallback.json")
        .read_text(encoding="utf-8")
    )
    return parse_catalog(json.loads(text))


def language_aliases(catalog: Catalog | None = None) -> dict[str, str]:
    """Curated aliases extended with every English and native catalog name."""
    aliases = dict(LANGUAGE_NAME_ALIASES)
    for language in (catalog or load_fallback_catalog()).values():
        aliases.setdefault(language.english_name, language.code)
        aliases.setdefault(language.native_name, language.code)
    return aliases


class LanguageResolver:
    """Resolves header text to canonical language codes."""

    def __init__(self, catalog: Catalog | None = None) -> None:
        self.catalog = dict(catalog) if catalog else dict(load_fallback_catalog())

        self._code_by_lower: dict[str, str] = {}
        for code in self.catalog:
            self._code_by_lower[code.lower()] = code

        self._alias_to_code: dict[str, str] = {}
        for name, code in language_aliases().items():
            self._alias_to_code[name.lower()] = self._canonical(code)

        self._name_to_code: dict[str, str] = {}
        for language in self.catalog.values():
            for name in (language.english_name, language.native_name):
                if name:
                    self._name_to_code.setdefault(name.lower(), language.code)

    def _canonical(self, code: str) -> str:
        return self._code_by_lower.get(code.lower(), code)

    def resolve(self, header: Any) -> str | None:
        """Return the language code for ``header`` or None if unresolvable.

        Order: "<name> - <iso>", known code, alias, catalog name, bare ISO.
        """
        text = str(header or "").strip()
        if not text:
            return None

        match = NAME_ISO_PATTERN.match(text)
        if match:
            iso = match.group(2).lower()
            return self._code_by_lower.get(iso, iso)

        lowered = text.lower()
        if lowered in self._code_by_lower:
            return self._code_by_lower[lowered]
        if lowered in self._alias_to_code:
            return self._alias_to_code[lowered]
        if lowered in self._name_to_code:
            return self._name_to_code[lowered]
        if ISO_PATTERN.match(text):
            return lowered
        return None

    def name_for(self, code: str) -> str:
        """English display name for a code, or the code itself."""
        language = self.catalog.get(self._canonical(code))
        return language.english_name if language else code

    def suggest(self, header: str, limit: int = 3) -> list[str]:
        """Closest known language names, for "did you mean" hints."""
        names = sorted(
            {lang.english_name for lang in self.catalog.values()}
            | {lang.native_name for lang in self.catalog.values()}
            | set(LANGUAGE_NAME_ALIASES)
        )
        by_lower = {name.lower(): name for name in names}
        matches = difflib.get_close_matches(
            str(header).strip().lower(), list(by_lower), n=limit, cutoff=0.6
        )
        return [by_lower[m] for m in matches]

    def primary_language(self, header_cell: Any) -> str:
        """Primary language from the Categories header cell (A1).

        Only known languages count here; a plain column title such as
        "Name" would otherwise pass as a bare ISO code.
        """
        text = str(header_cell or "").strip()
        code = self.resolve(text)
        if code and (code.lower() in self._code_by_lower or NAME_ISO_PATTERN.match(text)):
            return code
        return DEFAULT_PRIMARY_LANGUAGE


@lru_cache
def default_resolver() -> LanguageResolver:
    return LanguageResolver()


def resolve_language(header: Any, resolver: LanguageResolver | None = None) -> str | None:
    """Resolve a header with the given resolver or the bundled catalog."""
    return (resolver or default_resolver()).resolve(header)


class LanguageCatalogCache:
    """Remote catalog cached for ``ttl`` seconds, with the bundled fallback.

    A failed fetch is never cached, so the next call retries the remote.
    """

    def __init__(self, ttl: float, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl
        self._clock = clock
        self._catalog: Catalog | None = None
        self._fetched_at = 0.0

    async def get(self, transport: ApiTransport, log: OperationLog | None = None) -> Catalog:
        log = ensure_log(log)
        now = self._clock()
        if self._catalog is not None and now - self._fetched_at < self._ttl:
            return self._catalog

        try:
            catalog = parse_catalog(await transport.fetch_languages())
        except (TransportError, ValueError) as e:
            log.warning(f"Language catalog unavailable, using bundled fallback: {e}")
            return load_fallback_catalog()

        if not catalog:
            log.warning("Language catalog was empty, using bundled fallback")
            return load_fallback_catalog()

        self._catalog = catalog
        self._fetched_at = now
        log.debug(f"Fetched language catalog with {len(catalog)} languages")
        return catalog

    async def resolver(
        self, transport: ApiTransport, log: OperationLog | None = None
    ) -> LanguageResolver:
        return LanguageResolver(await self.get(transport, log))
