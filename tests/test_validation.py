"""Tests for input and configuration validation."""

from __future__ import annotations

import pytest

from presetsheet.exceptions import ValidationError
from presetsheet.models import Config, Field, Icon, Metadata, Option, Preset, TranslationMessage
from presetsheet.sheets import (
    CATEGORIES,
    CATEGORY_TRANSLATIONS,
    DETAILS,
    LABEL_TRANSLATIONS,
    InMemoryWorkbook,
)
from presetsheet.validation import ValidationResult, validate_config, validate_inputs


def valid_config() -> Config:
    return Config(
        metadata=Metadata("comapeo-test", "config-test", "24.01.01"),
        fields=[
            Field("kind", "selectOne", "Kind", options=[Option("A", "a"), Option("B", "b")]),
        ],
        presets=[Preset("river", "River", fields=["kind"], sort=1)],
        icons=[Icon("river", "<svg/>")],
    )


class TestValidationResult:
    """Tests for ValidationResult."""

    def test_merge_and_raise(self) -> None:
        result = ValidationResult(warnings=["w1"]).merge(ValidationResult(blocks=["b1"]))
        assert not result.ok
        assert result.has_warnings
        with pytest.raises(ValidationError) as exc_info:
            result.raise_for_blocks("Nope")
        assert exc_info.value.errors == ["b1"]

    def test_ok_does_not_raise(self) -> None:
        ValidationResult(warnings=["w"]).raise_for_blocks()


class TestValidateInputs:
    """Tests for validate_inputs()."""

    def test_missing_sheets(self) -> None:
        result = validate_inputs(InMemoryWorkbook())
        assert result.blocks == [
            'Required sheet "Categories" is missing',
            'Required sheet "Details" is missing',
        ]

    def test_no_categories(self) -> None:
        workbook = InMemoryWorkbook(
            {CATEGORIES: [["English"], ["", ""]], DETAILS: [["Label"]]}
        )
        assert validate_inputs(workbook).blocks == ['Sheet "Categories" has no categories']

    def test_language_mismatch_between_translation_sheets(self) -> None:
        workbook = InMemoryWorkbook(
            {
                CATEGORIES: [["English"], ["River"]],
                DETAILS: [["Label"]],
                CATEGORY_TRANSLATIONS: [["English", "es", "pt"]],
                LABEL_TRANSLATIONS: [["English", "Español"]],
            }
        )
        result = validate_inputs(workbook)
        assert result.ok
        assert result.warnings == [
            'Sheet "Detail Label Translations" has no column for language(s): pt'
        ]

    def test_duplicate_names_warn(self) -> None:
        workbook = InMemoryWorkbook(
            {
                CATEGORIES: [["English"], ["River"], ["Camp"], ["river"], [""], ["River"]],
                DETAILS: [["Label"], ["Name"], ["Depth"]],
            }
        )
        result = validate_inputs(workbook)
        assert result.ok
        assert result.warnings == ['Sheet "Categories" repeats "River" in rows 2, 4, 6']

    def test_whitespace_only_cells_warn(self) -> None:
        workbook = InMemoryWorkbook(
            {
                CATEGORIES: [["English", "Icons"], ["River", " "]],
                DETAILS: [["Label", "Helper Text"], ["Name", ""], ["Depth", "\t"]],
            }
        )
        assert validate_inputs(workbook).warnings == [
            'Sheet "Categories" has whitespace-only cell(s) at B2; '
            "they are treated as empty and cleared",
            'Sheet "Details" has whitespace-only cell(s) at B3; '
            "they are treated as empty and cleared",
        ]


class TestValidateConfig:
    """Tests for validate_config()."""

    def test_valid(self) -> None:
        result = validate_config(valid_config())
        assert result.ok
        assert result.warnings == []

    def test_duplicate_tag_keys_block(self) -> None:
        config = valid_config()
        config.fields.append(Field("kind", "text", "Kind again"))
        assert 'Field tag key "kind" is used by 2 fields' in validate_config(config).blocks

    def test_select_without_options_blocks(self) -> None:
        config = valid_config()
        config.fields.append(Field("empty", "selectMultiple", "Empty", options=[]))
        assert validate_config(config).blocks == [
            'Field "Empty" is a select field without options'
        ]

    def test_duplicate_option_values_block(self) -> None:
        config = valid_config()
        config.fields[0].options = [Option("A", "a"), Option("A", "a")]
        assert validate_config(config).blocks == ['Field "Kind" repeats option value "a"']

    def test_duplicate_preset_slug_warns(self) -> None:
        config = valid_config()
        config.presets.append(Preset("river", "River!", fields=["kind"], sort=2))
        result = validate_config(config)
        assert result.ok
        assert any('Duplicate category slug "river"' in w for w in result.warnings)

    def test_missing_icon_policy(self) -> None:
        config = valid_config()
        config.icons = []
        assert validate_config(config).warnings == ['Category "River" has no icon']
        assert validate_config(config, "error").blocks == ['Category "River" has no icon']

    def test_reference_and_color_warnings(self) -> None:
        config = valid_config()
        config.presets[0].fields.append("ghost")
        config.presets[0].color = "blue"
        warnings = validate_config(config).warnings
        assert 'Category "River" references unknown field(s): ghost' in warnings
        assert 'Category "River" has an invalid color "blue"' in warnings

    def test_metadata_required(self) -> None:
        config = valid_config()
        config.metadata = Metadata("", "name", "1")
        assert validate_config(config).blocks == ["Metadata is missing dataset_id"]

    def test_translation_warnings(self) -> None:
        config = valid_config()
        config.messages = {
            "es": {
                "presets.lake.name": TranslationMessage("Lago"),
                "fields.kind.options.a": TranslationMessage({"label": "A", "value": "a"}),
            },
            "Spanish!": {},
        }
        warnings = validate_config(config).warnings
        assert "es: translation presets.lake.name has no matching category" in warnings
        assert 'es: field "Kind" has 2 option(s) but 1 translated' in warnings
        assert 'Translations use an unrecognized language code "Spanish!"' in warnings
