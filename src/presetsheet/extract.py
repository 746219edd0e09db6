"""
Field and preset extraction.

Turns the Details and Categories sheets into canonical :class:`Field` and
:class:`Preset` objects. Rows are validated first; every violation in a
sheet is collected and raised together as one ValidationError.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from presetsheet.exceptions import UnresolvedReferenceError, ValidationError
from presetsheet.logging import OperationLog, ensure_log
from presetsheet.models import (
    DEFAULT_COLOR,
    NUMBER,
    SELECT_MULTIPLE,
    SELECT_ONE,
    TEXT,
    Field,
    FieldType,
    Option,
    Preset,
    build_terms,
)
from presetsheet.sheets import CategoryCol, DetailCol, SheetGrid, data_row_indexes
from presetsheet.slugs import field_tag_key, option_value, preset_slug

OPTION_SEPARATORS = re.compile(r"[,，\n]")
FIELD_REF_SEPARATORS = re.compile(r"[,;\n•·，]")
HEX_COLOR = re.compile(r"^#?(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")
WHITE_BACKGROUNDS = ("#ffffff", "#fff", "white")

_TYPE_BY_CHAR: dict[str, FieldType] = {
    "t": TEXT,
    "n": NUMBER,
    "s": SELECT_ONE,
    "m": SELECT_MULTIPLE,
}


def sheet_row(index: int) -> int:
    """Spreadsheet row number (1-based, header included) for a data-row index."""
    return index + 2


def field_type_from_cell(type_text: str) -> FieldType:
    """Map a free-text type cell to a field type by its first character.

    ``t`` text, ``n`` number, ``m`` selectMultiple, anything else selectOne.
    """
    first = type_text.strip()[:1].lower()
    if first in ("t", "n", "m"):
        return _TYPE_BY_CHAR[first]
    return SELECT_ONE


def parse_options_cell(text: str) -> list[str]:
    """Split an options cell into labels, dropping empty tokens."""
    return [token.strip() for token in OPTION_SEPARATORS.split(text) if token.strip()]


def build_options(labels: list[str], tag_key: str) -> list[Option]:
    """Build options with stable, unique values.

    Each value is derived from its label, falling back to ``<tag_key>-<n>``.
    A value already used by an earlier option gets a ``-<n>`` suffix, where
    ``n`` is the option's 1-based position.
    """
    options: list[Option] = []
    seen: set[str] = set()
    for index, label in enumerate(labels):
        value = option_value(label, tag_key, index)
        if value in seen:
            base, n = value, index + 1
            value = f"{base}-{n}"
            while value in seen:
                n += 1
                value = f"{base}-{n}"
        seen.add(value)
        options.append(Option(label.strip(), value))
    return options


def parse_universal(text: str) -> bool | None:
    """TRUE/FALSE (any case) or blank. Returns None for anything else."""
    if not text:
        return False
    upper = text.strip().upper()
    if upper == "TRUE":
        return True
    if upper == "FALSE":
        return False
    return None


def normalize_color(text: str) -> str | None:
    """``#RRGGBB``-style color from a cell, or None if it is not a hex color."""
    text = text.strip()
    if not HEX_COLOR.match(text):
        return None
    return text if text.startswith("#") else f"#{text}"


@dataclass
class FieldRow:
    """A Details row that passed validation."""

    position: int
    label: str
    helper_text: str
    type: FieldType
    options: list[str] | None
    universal: bool


@dataclass
class RowProblems:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def validate_field_row(
    grid: SheetGrid, index: int, position: int = 0
) -> tuple[FieldRow | None, RowProblems]:
    """Validate one Details row, returning the parsed row when it is valid.

    ``index`` is the data-row index, ``position`` the row's place among
    non-blank rows.
    """
    problems = RowProblems()
    row = sheet_row(index)
    label = grid.text(index, DetailCol.LABEL)
    helper = grid.text(index, DetailCol.HELPER_TEXT)
    type_text = grid.text(index, DetailCol.TYPE)
    options_text = grid.text(index, DetailCol.OPTIONS)
    universal_text = grid.text(index, DetailCol.UNIVERSAL)

    if not label:
        problems.errors.append(f"Details row {row}: Label (column A) is empty")

    field_type: FieldType = TEXT
    if not type_text:
        problems.errors.append(f"Details row {row}: Field type (column C) is empty")
    else:
        field_type = field_type_from_cell(type_text)
        if type_text[:1].lower() not in _TYPE_BY_CHAR:
            problems.warnings.append(
                f'Details row {row}: Ambiguous field type "{type_text}", treating it as '
                "select one. Use T(ext), N(umber), S(elect one) or M(ultiple choice)"
            )

    options: list[str] | None = None
    if type_text and field_type in (SELECT_ONE, SELECT_MULTIPLE):
        options = parse_options_cell(options_text)
        if not options:
            problems.errors.append(
                f'Details row {row}: Field type "{type_text}" requires options '
                "(column D), but none provided"
            )

    universal = parse_universal(universal_text)
    if universal is None:
        problems.errors.append(
            f'Details row {row}: Universal (column F) must be TRUE or FALSE, got "{universal_text}"'
        )

    if problems.errors:
        return None, problems
    return (
        FieldRow(position, label, helper, field_type, options, bool(universal)),
        problems,
    )


def extract_fields(grid: SheetGrid, log: OperationLog | None = None) -> list[Field]:
    """Extract fields from the Details sheet.

    Fully blank rows are skipped. Tag keys fall back to ``field-<n>``, ``n``
    being the 1-based position among non-blank rows, when a label has
    nothing sluggable.

    Raises:
        ValidationError: listing every invalid row.
    """
    log = ensure_log(log)
    errors: list[str] = []
    parsed: list[FieldRow] = []

    for position, index in enumerate(data_row_indexes(grid)):
        row, problems = validate_field_row(grid, index, position)
        errors.extend(problems.errors)
        for warning in problems.warnings:
            log.warning(warning)
        if row is not None:
            parsed.append(row)

    if errors:
        raise ValidationError.from_errors("Details sheet validation failed", errors)

    fields: list[Field] = []
    for row in parsed:
        tag_key = field_tag_key(row.label, row.position)
        options = build_options(row.options, tag_key) if row.options is not None else None
        fields.append(
            Field(
                tag_key=tag_key,
                type=row.type,
                label=row.label,
                helper_text=row.helper_text,
                universal=row.universal,
                options=options,
            )
        )

    log.info(f"Extracted {len(fields)} field(s) from {grid.name}")
    return fields


class FieldIndex:
    """Lookup from a preset's field reference to a tag key."""

    def __init__(self, fields: list[Field]) -> None:
        self._by_name: dict[str, str] = {}
        for f in fields:
            self._by_name.setdefault(f.label, f.tag_key)
            self._by_name.setdefault(f.label.lower(), f.tag_key)
            self._by_name.setdefault(f.tag_key, f.tag_key)

    def lookup(self, reference: str) -> str:
        """Tag key for a label, lowercased label or tag key.

        Raises:
            UnresolvedReferenceError: if nothing matches.
        """
        ref = reference.strip()
        key = self._by_name.get(ref) or self._by_name.get(ref.lower())
        if key is None:
            raise UnresolvedReferenceError("field", ref)
        return key


def split_field_refs(text: str) -> list[str]:
    return [t.strip() for t in FIELD_REF_SEPARATORS.split(text) if t.strip()]


def resolve_field_refs(
    text: str,
    index: FieldIndex,
    row: int,
    log: OperationLog,
) -> list[str]:
    """Resolve a Categories fields cell to an ordered, de-duplicated key list."""
    keys: list[str] = []
    for position, ref in enumerate(split_field_refs(text)):
        try:
            key = index.lookup(ref)
        except UnresolvedReferenceError:
            key = field_tag_key(ref, position)
            log.warning(
                f'Categories row {row}: Field "{ref}" not found in Details, using key "{key}"'
            )
        if key not in keys:
            keys.append(key)
    return keys


def preset_color(grid: SheetGrid, index: int, log: OperationLog) -> str:
    """Explicit color column, then the name cell's background, then the default."""
    row = sheet_row(index)
    explicit = grid.text(index, CategoryCol.COLOR)
    if explicit:
        color = normalize_color(explicit)
        if color:
            return color
        log.warning(f'Categories row {row}: Invalid color "{explicit}", ignoring it')

    background = grid.background(index)
    if background and background.strip().lower() not in WHITE_BACKGROUNDS:
        color = normalize_color(background)
        if color:
            return color
    return DEFAULT_COLOR


def extract_presets(
    grid: SheetGrid,
    fields: list[Field],
    log: OperationLog | None = None,
) -> list[Preset]:
    """Extract presets from the Categories sheet.

    Raises:
        ValidationError: listing every row with an empty name.
    """
    log = ensure_log(log)
    index = FieldIndex(fields)
    errors: list[str] = []
    presets: list[Preset] = []

    for position, i in enumerate(data_row_indexes(grid)):
        row = sheet_row(i)
        name = grid.text(i, CategoryCol.NAME)
        if not name:
            errors.append(f"Categories row {row}: Category name (column A) is empty")
            continue

        fields_text = grid.text(i, CategoryCol.FIELDS)
        if fields_text:
            keys = resolve_field_refs(fields_text, index, row, log)
        else:
            keys = [f.tag_key for f in fields]
            log.warning(
                f"Categories row {row}: No fields specified (column C), "
                f"attaching all {len(keys)} defined field(s)"
            )
        icon = preset_slug(name, position)
        presets.append(
            Preset(
                icon=icon,
                name=name,
                color=preset_color(grid, i, log),
                fields=keys,
                sort=position + 1,
                terms=build_terms(name, keys),
                tags={icon: "yes"},
            )
        )

    if errors:
        raise ValidationError.from_errors("Categories sheet validation failed", errors)

    log.info(f"Extracted {len(presets)} preset(s) from {grid.name}")
    return presets
