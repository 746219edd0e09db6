"""
Validation checkpoints.

``validate_inputs`` runs against the workbook before extraction;
``validate_config`` runs against an assembled or imported configuration
before it leaves the pipeline. Both collect every problem into a
:class:`ValidationResult` instead of stopping at the first.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Literal

from presetsheet.exceptions import ValidationError
from presetsheet.extract import HEX_COLOR
from presetsheet.languages import ISO_PATTERN, LanguageResolver, default_resolver
from presetsheet.logging import OperationLog
from presetsheet.metadata import REQUIRED_KEYS
from presetsheet.models import Config
from presetsheet.sheets import (
    CATEGORIES,
    DETAILS,
    TRANSLATION_SHEETS,
    SheetGrid,
    Workbook,
    column_letter,
    is_blank_row,
    read_sheet,
    whitespace_only_cells,
)
from presetsheet.translations import first_language_column

MissingIconPolicy = Literal["warn", "error"]


@dataclass
class ValidationResult:
    """Result of a validation checkpoint."""

    blocks: list[str] = field(default_factory=list)  # Hard errors - cannot proceed
    warnings: list[str] = field(default_factory=list)  # Reported, do not stop the run

    @property
    def ok(self) -> bool:
        """Check if the operation can proceed (no blocks)."""
        return len(self.blocks) == 0

    @property
    def has_warnings(self) -> bool:
        return len(self.warnings) > 0

    def merge(self, other: ValidationResult) -> ValidationResult:
        self.blocks.extend(other.blocks)
        self.warnings.extend(other.warnings)
        return self

    def report(self, log: OperationLog) -> None:
        for warning in self.warnings:
            log.warning(warning)

    def raise_for_blocks(self, summary: str = "Validation failed") -> None:
        """Raise a ValidationError listing every block, if there are any."""
        if self.blocks:
            raise ValidationError.from_errors(summary, self.blocks)


def duplicate_names(grid: SheetGrid) -> list[str]:
    """Warnings for first-column values repeated within a sheet.

    Comparison ignores case and surrounding whitespace.
    """
    spelling: dict[str, str] = {}
    rows_by_name: dict[str, list[int]] = {}
    for index, row in enumerate(grid.rows):
        name = row[0].text.strip() if row else ""
        if name:
            key = name.lower()
            spelling.setdefault(key, name)
            rows_by_name.setdefault(key, []).append(index + 2)
    return [
        f'Sheet "{grid.name}" repeats "{spelling[key]}" in rows {", ".join(map(str, rows))}'
        for key, rows in rows_by_name.items()
        if len(rows) > 1
    ]


def validate_inputs(
    workbook: Workbook, resolver: LanguageResolver | None = None
) -> ValidationResult:
    """Check that the workbook has what an export needs."""
    result = ValidationResult()
    resolver = resolver or default_resolver()

    for name in (CATEGORIES, DETAILS):
        if not workbook.has_sheet(name):
            result.blocks.append(f'Required sheet "{name}" is missing')

    if workbook.has_sheet(CATEGORIES):
        grid = read_sheet(workbook, CATEGORIES)
        if not grid.headers:
            result.blocks.append(f'Sheet "{CATEGORIES}" has no header row')
        elif not any(not is_blank_row(row) for row in grid.rows):
            result.blocks.append(f'Sheet "{CATEGORIES}" has no categories')

    if workbook.has_sheet(DETAILS) and not read_sheet(workbook, DETAILS).headers:
        result.blocks.append(f'Sheet "{DETAILS}" has no header row')

    for name in (CATEGORIES, DETAILS):
        if workbook.has_sheet(name):
            result.warnings.extend(duplicate_names(read_sheet(workbook, name)))
            cells = whitespace_only_cells(workbook.get_values(name))
            if cells:
                where = ", ".join(f"{column_letter(c)}{r + 1}" for r, c in cells)
                result.warnings.append(
                    f'Sheet "{name}" has whitespace-only cell(s) at {where}; '
                    "they are treated as empty and cleared"
                )

    language_sets: dict[str, set[str]] = {}
    for name in TRANSLATION_SHEETS:
        if not workbook.has_sheet(name):
            continue
        headers = read_sheet(workbook, name).headers
        codes = {
            code
            for code in (resolver.resolve(h) for h in headers[first_language_column(headers):])
            if code
        }
        language_sets[name] = codes

    if language_sets:
        union = set().union(*language_sets.values())
        for name, codes in language_sets.items():
            missing = sorted(union - codes)
            if missing:
                result.warnings.append(
                    f'Sheet "{name}" has no column for language(s): {", ".join(missing)}'
                )
    return result


def validate_config(
    config: Config, missing_icon_policy: MissingIconPolicy = "warn"
) -> ValidationResult:
    """Schema and cross-reference checks on a configuration."""
    result = ValidationResult()

    metadata = config.metadata.to_dict()
    for key in REQUIRED_KEYS:
        if not str(metadata.get(key) or "").strip():
            result.blocks.append(f"Metadata is missing {key}")

    # Fields
    key_counts = Counter(f.tag_key for f in config.fields)
    for key, count in key_counts.items():
        if not key:
            result.blocks.append("A field has an empty tag key")
        elif count > 1:
            result.blocks.append(f'Field tag key "{key}" is used by {count} fields')

    for f in config.fields:
        if f.is_select:
            if not f.options:
                result.blocks.append(f'Field "{f.label}" is a select field without options')
                continue
            values = Counter(o.value for o in f.options)
            for value, count in values.items():
                if not value:
                    result.blocks.append(f'Field "{f.label}" has an option with an empty value')
                elif count > 1:
                    result.blocks.append(f'Field "{f.label}" repeats option value "{value}"')

    # Presets
    field_keys = set(key_counts)
    icon_names = {icon.name for icon in config.icons}
    slug_counts = Counter(p.icon for p in config.presets)
    for slug, count in slug_counts.items():
        if not slug:
            result.blocks.append("A category has an empty slug")
        elif count > 1:
            names = ", ".join(f'"{p.name}"' for p in config.presets if p.icon == slug)
            result.warnings.append(
                f'Duplicate category slug "{slug}" shared by {count} categories ({names}); '
                "they will overwrite each other in the mapping application"
            )

    for p in config.presets:
        unknown = [k for k in p.fields if k not in field_keys]
        if unknown:
            result.warnings.append(
                f'Category "{p.name}" references unknown field(s): {", ".join(unknown)}'
            )
        if not HEX_COLOR.match(p.color) or not p.color.startswith("#"):
            result.warnings.append(f'Category "{p.name}" has an invalid color "{p.color}"')
        if p.icon and p.icon not in icon_names:
            message = f'Category "{p.name}" has no icon'
            if missing_icon_policy == "error":
                result.blocks.append(message)
            else:
                result.warnings.append(message)

    # Translations
    preset_slugs = set(slug_counts)
    for lang, entries in config.messages.items():
        if not ISO_PATTERN.match(lang):
            result.warnings.append(f'Translations use an unrecognized language code "{lang}"')
        for key in entries:
            parts = key.split(".")
            if len(parts) >= 3 and parts[0] == "presets" and parts[1] not in preset_slugs:
                result.warnings.append(f"{lang}: translation {key} has no matching category")
            if len(parts) >= 3 and parts[0] == "fields" and parts[1] not in field_keys:
                result.warnings.append(f"{lang}: translation {key} has no matching field")
        for f in config.fields:
            if not f.options:
                continue
            prefix = f"fields.{f.tag_key}.options."
            translated = sum(1 for key in entries if key.startswith(prefix))
            if translated and translated != len(f.options):
                result.warnings.append(
                    f'{lang}: field "{f.label}" has {len(f.options)} option(s) but '
                    f"{translated} translated"
                )

    return result
