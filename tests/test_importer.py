"""Tests for the import pipeline."""

from __future__ import annotations

import io
import json
import zipfile
from pathlib import Path
from typing import Any

import pytest

from presetsheet.exceptions import FormatError, ValidationError
from presetsheet.formats import SchemaVariant
from presetsheet.importer import icon_asset, import_archive
from presetsheet.models import Icon
from presetsheet.sheets import CATEGORIES, DETAILS, InMemoryWorkbook, read_sheet

RIVER_SVG = '<svg xmlns="http://www.w3.org/2000/svg"><path d="M0 0"/></svg>'


def comapeo_archive(extra_files: dict[str, bytes | str] | None = None) -> bytes:
    presets = {
        "presets": [
            {
                "icon": "river_icon",
                "name": "River",
                "color": "#1E90FF",
                "fields": ["kind"],
                "geometry": ["point", "line"],
            }
        ],
        "fields": [
            {
                "tagKey": "kind",
                "type": "selectOne",
                "label": "Kind",
                "options": [{"label": "Fast", "value": "f"}, {"label": "Slow", "value": "s"}],
            }
        ],
    }
    files: dict[str, bytes | str] = {
        "presets.json": json.dumps(presets),
        "metadata.json": json.dumps({"dataset_id": "comapeo-rivers", "name": "Rivers"}),
        "translations.json": json.dumps(
            {"es": {"presets.river_icon.name": {"message": "Río", "description": ""}}}
        ),
        "icons/river_icon.svg": RIVER_SVG,
    }
    files.update(extra_files or {})
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, content in files.items():
            zf.writestr(name, content)
    return buffer.getvalue()


class FailingWorkbook(InMemoryWorkbook):
    """Workbook whose Details sheet cannot be written."""

    def set_values(self, name: str, rows: list[list[Any]]) -> None:
        if name == DETAILS:
            raise RuntimeError("sheet is protected")
        super().set_values(name, rows)


class TestIconAsset:
    """Tests for icon_asset()."""

    def test_inline_svg(self) -> None:
        asset = icon_asset(Icon("river", RIVER_SVG))
        assert asset is not None
        assert asset.filename == "river.svg"

    def test_png_data_uri(self) -> None:
        asset = icon_asset(Icon("camp", "data:image/png;base64,iVBORw0KGgo="))
        assert asset is not None
        assert asset.filename == "camp.png"
        assert asset.data.startswith(b"\x89PNG")

    def test_hosted_url(self) -> None:
        assert icon_asset(Icon("lake", "https://cdn.test/lake.svg")) is None


class TestImportArchive:
    """Tests for import_archive()."""

    def test_writes_sheets_with_inline_icons(self) -> None:
        workbook = InMemoryWorkbook()
        result = import_archive(comapeo_archive(), workbook)

        assert result.variant is SchemaVariant.COMAPEO
        assert result.icon_files == []
        categories = workbook.get_values(CATEGORIES)
        assert categories[1] == ["River", RIVER_SVG, "Kind", "#1E90FF"]
        details = read_sheet(workbook, DETAILS)
        assert details.text(0, 3) == "Fast, Slow"
        assert result.config.messages["es"]["presets.river.name"].message == "Río"

    def test_icons_saved_to_output_dir(self, tmp_path: Path) -> None:
        workbook = InMemoryWorkbook()
        result = import_archive(comapeo_archive(), workbook, tmp_path / "assets")

        icon_path = tmp_path / "assets" / "icons" / "river.svg"
        assert result.icon_files == [icon_path]
        assert icon_path.read_text() == RIVER_SVG
        assert workbook.get_values(CATEGORIES)[1][1] == icon_path.resolve().as_uri()

    def test_png_icons_win_over_svg(self, tmp_path: Path) -> None:
        png = b"\x89PNG\r\n\x1a\nriver"
        archive = comapeo_archive({"icons/river_icon-medium@1x.png": png})
        import_archive(archive, InMemoryWorkbook(), tmp_path)
        assert (tmp_path / "icons" / "river.png").read_bytes() == png

    def test_failed_write_removes_created_dir(self, tmp_path: Path) -> None:
        output_dir = tmp_path / "assets"
        with pytest.raises(RuntimeError):
            import_archive(comapeo_archive(), FailingWorkbook(), output_dir)
        assert not output_dir.exists()

    def test_failed_write_keeps_existing_dir(self, tmp_path: Path) -> None:
        (tmp_path / "keep.txt").write_text("mine")
        with pytest.raises(RuntimeError):
            import_archive(comapeo_archive(), FailingWorkbook(), tmp_path)
        assert (tmp_path / "keep.txt").exists()
        assert not (tmp_path / "icons" / "river.svg").exists()

    def test_invalid_configuration_writes_nothing(self) -> None:
        payload = {
            "fields": [{"tagKey": "kind", "type": "selectOne", "label": "Kind", "options": []}],
            "presets": [],
        }
        workbook = InMemoryWorkbook()
        with pytest.raises(ValidationError):
            import_archive(json.dumps(payload).encode(), workbook)
        assert workbook.sheet_names() == []

    def test_missing_icon_blocks_when_configured(self) -> None:
        payload = {"presets": [{"name": "Camp", "geometry": ["point"]}], "fields": []}
        with pytest.raises(ValidationError):
            import_archive(json.dumps(payload).encode(), InMemoryWorkbook(), None, "error")

    def test_unreadable_source(self) -> None:
        with pytest.raises(FormatError):
            import_archive(b'{"anything": true}', InMemoryWorkbook())
