"""
Translation mapping.

Builds per-language message maps from the four translation sheets, and
converts between the flat dotted-key form (``fields.<tagKey>.label``) and
the nested form used by older archives.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from presetsheet.exceptions import UnresolvedReferenceError
from presetsheet.languages import LanguageResolver, default_resolver
from presetsheet.logging import OperationLog, ensure_log
from presetsheet.models import Field, Messages, Preset, TranslationMessage
from presetsheet.sheets import (
    CATEGORY_TRANSLATIONS,
    HELPER_TRANSLATIONS,
    LABEL_TRANSLATIONS,
    OPTION_TRANSLATIONS,
    SheetGrid,
    TranslationCol,
    data_row_indexes,
)
from presetsheet.slugs import slugify

TRANSLATED_OPTION_SEPARATORS = re.compile(r"[;,，、]")

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Message keys
# ---------------------------------------------------------------------------


def preset_name_key(icon: str) -> str:
    return f"presets.{icon}.name"


def field_label_key(tag_key: str) -> str:
    return f"fields.{tag_key}.label"


def field_helper_key(tag_key: str) -> str:
    return f"fields.{tag_key}.helperText"


def field_option_key(tag_key: str, value: str) -> str:
    return f"fields.{tag_key}.options.{value}"


# ---------------------------------------------------------------------------
# Header parsing
# ---------------------------------------------------------------------------


def first_language_column(headers: list[str]) -> int:
    """Index of the first language column.

    Sheets may carry an ``ISO | Source`` pair of metadata columns after the
    source text column; languages then start at column 3.
    """
    if (
        len(headers) > 2
        and "iso" in headers[1].lower()
        and "source" in headers[2].lower()
    ):
        return 3
    return TranslationCol.FIRST_LANGUAGE


def parse_language_columns(
    headers: list[str],
    resolver: LanguageResolver,
    primary_language: str,
    log: OperationLog,
    sheet_name: str = "",
) -> dict[int, str]:
    """Map column index to language code for a translation sheet header.

    Unresolvable headers and the primary language are skipped; a language
    seen twice keeps its first column.
    """
    columns: dict[int, str] = {}
    seen: dict[str, int] = {}
    for col in range(first_language_column(headers), len(headers)):
        header = headers[col]
        if not header:
            continue
        code = resolver.resolve(header)
        if code is None:
            hint = resolver.suggest(header)
            suffix = f" Did you mean: {', '.join(hint)}?" if hint else ""
            log.warning(
                f'{sheet_name}: Unrecognized language column "{header}", skipping it.{suffix}'
            )
            continue
        if code.lower() == primary_language.lower():
            log.debug(f"{sheet_name}: Column {col + 1} is the primary language, skipping it")
            continue
        if code in seen:
            log.warning(
                f'{sheet_name}: Duplicate language column "{header}" ({code}) at column '
                f"{col + 1}, keeping column {seen[code] + 1}"
            )
            continue
        seen[code] = col
        columns[col] = code
    return columns


# ---------------------------------------------------------------------------
# Entity resolution
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Resolved(Generic[T]):
    entity: T
    strategy: str


class Strategy(ABC, Generic[T]):
    """One way of matching a translation row to its entity."""

    name = ""

    @abstractmethod
    def find(self, source_text: str, row: int) -> T | None:
        pass


class PresetByName(Strategy[Preset]):
    name = "ByName"

    def __init__(self, presets: list[Preset]) -> None:
        self._by_name: dict[str, Preset] = {}
        for p in presets:
            self._by_name.setdefault(normalize_name(p.name), p)

    def find(self, source_text: str, row: int) -> Preset | None:  # noqa: ARG002
        return self._by_name.get(normalize_name(source_text))


class PresetById(Strategy[Preset]):
    name = "ById"

    def __init__(self, presets: list[Preset]) -> None:
        self._by_icon = {p.icon: p for p in reversed(presets)}

    def find(self, source_text: str, row: int) -> Preset | None:  # noqa: ARG002
        return self._by_icon.get(source_text.strip()) or self._by_icon.get(slugify(source_text))


class ByPosition(Strategy[T]):
    """Row N of a translation sheet belongs to the entity from source row N.

    ``rows`` holds the source sheet's data-row index for each entity; by
    default entity N came from data row N.
    """

    name = "ByPosition"

    def __init__(self, entities: list[T], rows: list[int] | None = None) -> None:
        indexes = rows if rows is not None else range(len(entities))
        self._by_row: dict[int, T] = dict(zip(indexes, entities))

    def find(self, source_text: str, row: int) -> T | None:  # noqa: ARG002
        return self._by_row.get(row)


def normalize_name(text: str) -> str:
    return " ".join(text.split()).casefold()


def resolve_entity(
    strategies: list[Strategy[T]], source_text: str, row: int, kind: str
) -> Resolved[T]:
    """Try each strategy in order.

    Raises:
        UnresolvedReferenceError: when no strategy matches.
    """
    for strategy in strategies:
        entity = strategy.find(source_text, row)
        if entity is not None:
            return Resolved(entity, strategy.name)
    raise UnresolvedReferenceError(kind, source_text or f"row {row + 2}")


# ---------------------------------------------------------------------------
# Sheet mapping
# ---------------------------------------------------------------------------


def split_translated_options(text: str) -> list[str]:
    return [t.strip() for t in TRANSLATED_OPTION_SEPARATORS.split(text)]


class TranslationMapper:
    """Builds the message map for one export run."""

    def __init__(
        self,
        fields: list[Field],
        presets: list[Preset],
        resolver: LanguageResolver | None = None,
        primary_language: str = "en",
        log: OperationLog | None = None,
        field_rows: list[int] | None = None,
        preset_rows: list[int] | None = None,
    ) -> None:
        self.fields = fields
        self.presets = presets
        self.resolver = resolver or default_resolver()
        self.primary_language = primary_language
        self.log = ensure_log(log)
        self.messages: Messages = {}
        self._preset_strategies: list[Strategy[Preset]] = [
            PresetByName(presets),
            PresetById(presets),
            ByPosition(presets, preset_rows),
        ]
        self._field_strategies: list[Strategy[Field]] = [ByPosition(fields, field_rows)]

    def _put(self, lang: str, key: str, message: TranslationMessage) -> None:
        self.messages.setdefault(lang, {})[key] = message

    def _rows(self, grid: SheetGrid) -> list[int]:
        """Data-row indexes of the rows worth mapping."""
        return data_row_indexes(grid)

    def _check_width(self, grid: SheetGrid, index: int) -> None:
        width = len(grid.rows[index])
        row = index + 2
        if width < grid.width:
            self.log.error(
                f"{grid.name} row {row}: {grid.width - width} missing column(s), "
                "translations for this row are incomplete"
            )
        elif width > grid.width:
            self.log.info(
                f"{grid.name} row {row}: {width - grid.width} extra column(s) ignored"
            )

    def _language_columns(self, grid: SheetGrid) -> dict[int, str]:
        return parse_language_columns(
            grid.headers, self.resolver, self.primary_language, self.log, grid.name
        )

    def map_presets(self, grid: SheetGrid) -> None:
        columns = self._language_columns(grid)
        for index in self._rows(grid):
            self._check_width(grid, index)
            source = grid.text(index, TranslationCol.SOURCE_TEXT)
            try:
                resolved = resolve_entity(self._preset_strategies, source, index, "preset")
            except UnresolvedReferenceError as e:
                self.log.warning(f"{grid.name} row {index + 2}: {e}, skipping row")
                continue
            preset = resolved.entity
            self.log.debug(
                f'{grid.name} row {index + 2}: "{source}" matched preset '
                f"{preset.icon} {resolved.strategy}"
            )
            for col, lang in columns.items():
                value = grid.text(index, col)
                if value:
                    self._put(
                        lang,
                        preset_name_key(preset.icon),
                        TranslationMessage(value, f"Name for preset '{preset.icon}'"),
                    )

    def _resolve_field(self, grid: SheetGrid, index: int) -> Field | None:
        source = grid.text(index, TranslationCol.SOURCE_TEXT)
        try:
            resolved = resolve_entity(self._field_strategies, source, index, "field")
        except UnresolvedReferenceError:
            self.log.warning(
                f"{grid.name} row {index + 2}: No Details row matches, skipping row"
            )
            return None
        return resolved.entity

    def map_field_property(self, grid: SheetGrid, prop: str) -> None:
        """Map the label or helperText sheet."""
        columns = self._language_columns(grid)
        noun = "Label" if prop == "label" else "Helper text"
        for index in self._rows(grid):
            self._check_width(grid, index)
            f = self._resolve_field(grid, index)
            if f is None:
                continue
            key = field_label_key(f.tag_key) if prop == "label" else field_helper_key(f.tag_key)
            for col, lang in columns.items():
                value = grid.text(index, col)
                if value:
                    self._put(
                        lang, key, TranslationMessage(value, f"{noun} for field '{f.tag_key}'")
                    )

    def map_options(self, grid: SheetGrid) -> None:
        columns = self._language_columns(grid)
        for index in self._rows(grid):
            self._check_width(grid, index)
            f = self._resolve_field(grid, index)
            if f is None or not f.options:
                continue
            for col, lang in columns.items():
                cell = grid.text(index, col)
                if not cell:
                    continue
                translated = split_translated_options(cell)
                if len(translated) != len(f.options):
                    self.log.warning(
                        f"{grid.name} row {index + 2}: {lang} has {len(translated)} option(s), "
                        f"field '{f.tag_key}' has {len(f.options)}"
                    )
                for option, label in zip(f.options, translated):
                    if not label:
                        continue
                    self._put(
                        lang,
                        field_option_key(f.tag_key, option.value),
                        TranslationMessage(
                            {"label": label, "value": option.value},
                            f"Option '{option.label}' for field '{f.label}'",
                        ),
                    )

    def map_all(self, sheets: Mapping[str, SheetGrid]) -> Messages:
        if CATEGORY_TRANSLATIONS in sheets:
            self.map_presets(sheets[CATEGORY_TRANSLATIONS])
        if LABEL_TRANSLATIONS in sheets:
            self.map_field_property(sheets[LABEL_TRANSLATIONS], "label")
        if HELPER_TRANSLATIONS in sheets:
            self.map_field_property(sheets[HELPER_TRANSLATIONS], "helperText")
        if OPTION_TRANSLATIONS in sheets:
            self.map_options(sheets[OPTION_TRANSLATIONS])
        return self.messages


def map_translations(
    sheets: Mapping[str, SheetGrid],
    fields: list[Field],
    presets: list[Preset],
    resolver: LanguageResolver | None = None,
    primary_language: str = "en",
    log: OperationLog | None = None,
    field_rows: list[int] | None = None,
    preset_rows: list[int] | None = None,
) -> Messages:
    """Build ``{language: {dotted key: message}}`` from the translation sheets.

    Missing sheets are skipped; missing cells produce no message.
    ``field_rows`` and ``preset_rows`` give the Details and Categories
    data-row index of each field and preset for positional matching.
    """
    mapper = TranslationMapper(
        fields, presets, resolver, primary_language, log, field_rows, preset_rows
    )
    messages = mapper.map_all(sheets)
    mapper.log.info(f"Mapped translations for {len(messages)} language(s)")
    return messages


# ---------------------------------------------------------------------------
# Flat <-> nested
# ---------------------------------------------------------------------------


def _message_value(value: Any) -> Any:
    if isinstance(value, TranslationMessage):
        return value.message
    if isinstance(value, dict) and "message" in value:
        return value["message"]
    return value


def restructure(flat: Mapping[str, Mapping[str, Any]]) -> dict[str, Any]:
    """Convert flat dotted keys to the nested layout.

    ``{lang: {"presets.water.name": m, "fields.kind.options.river": o}}``
    becomes ``{lang: {"presets": {"presets": {"water": {"name": m}},
    "fields": {"kind": {"options": {"river": o}}}}}}``. Message wrappers are
    unwrapped to their ``message`` value; keys outside the presets/fields
    key space are dropped.
    """
    nested: dict[str, Any] = {}
    for lang, entries in flat.items():
        presets: dict[str, dict[str, Any]] = {}
        fields: dict[str, dict[str, Any]] = {}
        nested[lang] = {"presets": {"presets": presets, "fields": fields}}
        if not isinstance(entries, Mapping):
            continue
        for key, value in entries.items():
            parts = key.split(".")
            if len(parts) < 3 or parts[0] not in ("presets", "fields"):
                continue
            target = presets if parts[0] == "presets" else fields
            item = target.setdefault(parts[1], {})
            message = _message_value(value)
            if len(parts) == 3:
                item[parts[2]] = message
            elif parts[2] == "options" and len(parts) == 4:
                item.setdefault("options", {})[parts[3]] = message
    return nested


def flatten(nested: Mapping[str, Any]) -> dict[str, dict[str, Any]]:
    """Inverse of :func:`restructure`."""
    flat: dict[str, dict[str, Any]] = {}
    for lang, tree in nested.items():
        entries: dict[str, Any] = {}
        flat[lang] = entries
        groups = tree.get("presets") if isinstance(tree, Mapping) else None
        if not isinstance(groups, Mapping):
            continue
        for kind in ("presets", "fields"):
            items = groups.get(kind)
            if not isinstance(items, Mapping):
                continue
            for item_id, props in items.items():
                if not isinstance(props, Mapping):
                    continue
                for prop, value in props.items():
                    if prop == "options" and isinstance(value, Mapping):
                        for option_id, option_message in value.items():
                            entries[f"{kind}.{item_id}.options.{option_id}"] = option_message
                    else:
                        entries[f"{kind}.{item_id}.{prop}"] = value
    return flat


def messages_from_flat(
    flat: Mapping[str, Mapping[str, Any]],
) -> Messages:
    """Parse a flat ``translations.json`` document into messages."""
    messages: Messages = {}
    for lang, entries in flat.items():
        if not isinstance(entries, Mapping):
            continue
        parsed: dict[str, TranslationMessage] = {}
        for key, value in entries.items():
            if isinstance(value, Mapping) and "message" in value:
                parsed[key] = TranslationMessage(
                    value["message"], str(value.get("description") or "")
                )
            else:
                parsed[key] = TranslationMessage(value)
        messages[lang] = parsed
    return messages


def is_nested(document: Mapping[str, Any]) -> bool:
    """True when a translations document uses the nested layout."""
    for tree in document.values():
        if isinstance(tree, Mapping) and isinstance(tree.get("presets"), Mapping):
            inner = tree["presets"]
            if "presets" in inner or "fields" in inner:
                return True
    return False
