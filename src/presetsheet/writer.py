"""
Sheet writer.

Writes a canonical :class:`Config` into the workbook's sheets, in the
layout the extractor reads back. Translation sheets mirror the Categories
and Details rows one-to-one.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from presetsheet.cells import to_cell
from presetsheet.extract import FIELD_REF_SEPARATORS, OPTION_SEPARATORS
from presetsheet.languages import LanguageResolver, default_resolver
from presetsheet.logging import OperationLog, ensure_log
from presetsheet.metadata import write_metadata
from presetsheet.models import NUMBER, SELECT_MULTIPLE, SELECT_ONE, TEXT, Config, Field
from presetsheet.sheets import (
    CATEGORIES,
    CATEGORY_TRANSLATIONS,
    DETAILS,
    HELPER_TRANSLATIONS,
    LABEL_TRANSLATIONS,
    METADATA,
    OPTION_TRANSLATIONS,
    TRANSLATION_SHEETS,
    CategoryCol,
    DetailCol,
    Grid,
    Workbook,
    whitespace_only_cells,
)
from presetsheet.translations import (
    field_helper_key,
    field_label_key,
    field_option_key,
    first_language_column,
    preset_name_key,
)

CATEGORY_HEADERS = ["Icons", "Details", "Color"]
DETAIL_HEADERS = ["Label", "Helper Text", "Type", "Options", "ID", "Universal"]

TYPE_WORDS = {
    TEXT: "text",
    NUMBER: "number",
    SELECT_ONE: "select",
    SELECT_MULTIPLE: "multiple",
}


def field_reference(f: Field) -> str:
    """How a Categories row names a field: its label, or its key if the
    label would be split apart when read back."""
    if FIELD_REF_SEPARATORS.search(f.label) or not f.label.strip():
        return f.tag_key
    return f.label


def category_rows(config: Config, language_name: str, icon_cells: Mapping[str, Any]) -> Grid:
    by_key = {f.tag_key: f for f in config.fields}
    rows: Grid = [[language_name, *CATEGORY_HEADERS]]
    for preset in config.presets:
        refs = [field_reference(by_key[k]) if k in by_key else k for k in preset.fields]
        rows.append(
            [preset.name, icon_cells.get(preset.icon, ""), ", ".join(refs), preset.color]
        )
    return rows


def detail_rows(config: Config, log: OperationLog) -> Grid:
    rows: Grid = [list(DETAIL_HEADERS)]
    for f in config.fields:
        labels = [o.label for o in f.options or []]
        if any(OPTION_SEPARATORS.search(label) for label in labels):
            log.warning(
                f'Field "{f.label}": option labels containing commas or line breaks '
                "will be split when the sheet is read back"
            )
        rows.append(
            [
                f.label,
                f.helper_text,
                TYPE_WORDS[f.type],
                ", ".join(labels),
                "",
                "TRUE" if f.universal else "FALSE",
            ]
        )
    return rows


def _text(message: Any) -> str:
    if message is None:
        return ""
    value = message.message
    if isinstance(value, Mapping):
        return str(value.get("label", ""))
    return str(value)


def translation_sheets(config: Config, language_name: str) -> dict[str, Grid]:
    """Rows for the four translation sheets, one column per language."""
    languages = sorted(
        lang for lang in config.messages if lang.lower() != config.primary_language.lower()
    )
    header = [language_name, *languages]

    def row(source: str, key: str) -> list[Any]:
        return [source, *(_text(config.messages[lang].get(key)) for lang in languages)]

    categories: Grid = [list(header)]
    for preset in config.presets:
        categories.append(row(preset.name, preset_name_key(preset.icon)))

    labels: Grid = [list(header)]
    helpers: Grid = [list(header)]
    options: Grid = [list(header)]
    for f in config.fields:
        labels.append(row(f.label, field_label_key(f.tag_key)))
        helpers.append(row(f.helper_text, field_helper_key(f.tag_key)))
        option_row: list[Any] = [", ".join(o.label for o in f.options or [])]
        for lang in languages:
            translated = [
                _text(config.messages[lang].get(field_option_key(f.tag_key, o.value)))
                for o in f.options or []
            ]
            option_row.append(", ".join(translated) if any(translated) else "")
        options.append(option_row)

    return {
        CATEGORY_TRANSLATIONS: categories,
        LABEL_TRANSLATIONS: labels,
        HELPER_TRANSLATIONS: helpers,
        OPTION_TRANSLATIONS: options,
    }


def write_config(
    workbook: Workbook,
    config: Config,
    icon_cells: Mapping[str, Any] | None = None,
    resolver: LanguageResolver | None = None,
    log: OperationLog | None = None,
) -> list[str]:
    """Replace the workbook's configuration sheets with ``config``.

    Args:
        workbook: Target workbook.
        config: Canonical configuration.
        icon_cells: Value for each preset's icon cell, keyed by icon slug.
            Defaults to each icon's ``svg``.
        resolver: Used to name the primary language in the header cell.
        log: Operation log.

    Returns:
        Names of the sheets written.
    """
    log = ensure_log(log)
    resolver = resolver or default_resolver()
    language_name = resolver.name_for(config.primary_language)
    if icon_cells is None:
        icon_cells = {icon.name: icon.svg for icon in config.icons}

    sheets: dict[str, Grid] = {
        CATEGORIES: category_rows(config, language_name, icon_cells),
        DETAILS: detail_rows(config, log),
    }
    sheets.update(translation_sheets(config, language_name))

    for name, rows in sheets.items():
        workbook.set_values(name, rows)
        log.debug(f"Wrote {len(rows) - 1} row(s) to {name}")
    write_metadata(workbook, config.metadata)

    log.info(
        f"Wrote {len(config.presets)} categories and {len(config.fields)} fields "
        f"with {len(config.messages)} translation language(s)"
    )
    return [*sheets, METADATA]


# Source column mirrored into column A of each translation sheet.
TRANSLATION_SOURCES: dict[str, tuple[str, int]] = {
    CATEGORY_TRANSLATIONS: (CATEGORIES, CategoryCol.NAME),
    LABEL_TRANSLATIONS: (DETAILS, DetailCol.LABEL),
    HELPER_TRANSLATIONS: (DETAILS, DetailCol.HELPER_TEXT),
    OPTION_TRANSLATIONS: (DETAILS, DetailCol.OPTIONS),
}


def language_header(code: str, resolver: LanguageResolver) -> str:
    """Header for a new language column, e.g. "Spanish - es"."""
    return f"{resolver.name_for(code)} - {code}"


def _primary_header(workbook: Workbook, resolver: LanguageResolver) -> str:
    values = workbook.get_values(CATEGORIES)
    header = to_cell(values[0][0]).text if values and values[0] else ""
    return header or resolver.name_for(resolver.primary_language(header))


def scaffold_translation_sheets(
    workbook: Workbook,
    languages: list[str] | None = None,
    resolver: LanguageResolver | None = None,
    log: OperationLog | None = None,
) -> list[str]:
    """Create the translation sheets that do not exist yet.

    Each new sheet gets the primary language header plus one column per
    language, and its first column mirrors the source column row for row,
    blank rows included, so positional matching lines up. Existing sheets
    are not touched.

    Returns:
        Names of the sheets created.
    """
    log = ensure_log(log)
    resolver = resolver or default_resolver()
    primary = _primary_header(workbook, resolver)
    headers = [language_header(code, resolver) for code in languages or []]

    created: list[str] = []
    for name in TRANSLATION_SHEETS:
        if workbook.has_sheet(name):
            continue
        source, col = TRANSLATION_SOURCES[name]
        rows: Grid = [[primary, *headers]]
        for raw in workbook.get_values(source)[1:]:
            text = to_cell(raw[col]).text if col < len(raw) else ""
            rows.append([text, *([""] * len(headers))])
        while len(rows) > 1 and not rows[-1][0]:
            rows.pop()
        workbook.set_values(name, rows)
        created.append(name)
        log.info(f"Created {name} with {len(rows) - 1} row(s)")
    return created


def add_languages(
    workbook: Workbook,
    languages: list[str],
    resolver: LanguageResolver | None = None,
    log: OperationLog | None = None,
) -> list[str]:
    """Add a "<Name> - <iso>" column for each language to every translation sheet.

    ``languages`` may hold codes or names. Missing translation sheets are
    created first. Languages a sheet already has, the primary language and
    unresolvable entries are skipped.

    Returns:
        Codes of the languages added to at least one sheet.
    """
    log = ensure_log(log)
    resolver = resolver or default_resolver()
    primary = resolver.primary_language(_primary_header(workbook, resolver))

    codes: list[str] = []
    for entry in languages:
        code = resolver.resolve(entry)
        if code is None:
            hint = resolver.suggest(entry)
            suffix = f" Did you mean: {', '.join(hint)}?" if hint else ""
            log.warning(f'Unknown language "{entry}", not added.{suffix}')
        elif code.lower() == primary.lower():
            log.debug(f"{code} is the primary language, not added")
        elif code not in codes:
            codes.append(code)

    scaffold_translation_sheets(workbook, resolver=resolver, log=log)

    added: set[str] = set()
    for name in TRANSLATION_SHEETS:
        rows = workbook.get_values(name)
        header = [to_cell(v).text for v in rows[0]] if rows else [primary]
        existing = {
            resolver.resolve(h) for h in header[first_language_column(header):] if h
        }
        new = [code for code in codes if code not in existing]
        if not new:
            continue
        width = len(header)
        updated: Grid = [[*header, *(language_header(code, resolver) for code in new)]]
        for raw in rows[1:]:
            padded = list(raw) + [""] * (width - len(raw))
            updated.append([*padded, *([""] * len(new))])
        workbook.set_values(name, updated)
        log.info(f"Added {', '.join(new)} to {name}")
        added.update(new)
    return [code for code in codes if code in added]


def clean_whitespace_cells(
    workbook: Workbook, names: tuple[str, ...] = (CATEGORIES, DETAILS)
) -> int:
    """Blank out cells holding only whitespace. Returns the number cleared."""
    cleared = 0
    for name in names:
        if not workbook.has_sheet(name):
            continue
        cells = whitespace_only_cells(workbook.get_values(name))
        for row, col in cells:
            workbook.set_cell(name, row, col, "")
        cleared += len(cells)
    return cleared
