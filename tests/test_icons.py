"""Tests for icon resolution."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from presetsheet.cells import EMPTY, ImageRef, Text
from presetsheet.exceptions import NetworkError
from presetsheet.icons import IconResolver, icons_from_cells, is_hosted_asset, search_terms
from presetsheet.models import Icon, Preset
from presetsheet.progress import Progress, ProgressReporter
from presetsheet.settings import Settings
from presetsheet.sheets import CATEGORIES, InMemoryWorkbook, read_sheet
from presetsheet.transport import LocalFileTransport

SVG = '<svg xmlns="http://www.w3.org/2000/svg"><circle r="4"/></svg>'


class FlakySearchTransport(LocalFileTransport):
    """Fails the first ``failures`` searches, then serves golden files."""

    def __init__(self, golden_dir: Path, failures: int) -> None:
        super().__init__(golden_dir)
        self._failures = failures

    async def search_icons(self, term: str) -> list[str]:
        if self._failures > 0:
            self._failures -= 1
            self.calls.append(("search_icons", term))
            raise NetworkError("timeout")
        return await super().search_icons(term)


class TestHelpers:
    """Tests for the icon helpers."""

    @pytest.mark.parametrize(
        "text",
        [
            "https://drive.google.com/file/d/abc",
            "https://example.com/river.svg",
            "file:///tmp/icons/river.svg",
            "data:image/png;base64,AAAA",
            "  <svg></svg>",
        ],
    )
    def test_hosted_assets(self, text: str) -> None:
        assert is_hosted_asset(text)

    def test_plain_text_is_not_hosted(self) -> None:
        assert not is_hosted_asset("river")

    def test_search_terms(self) -> None:
        assert search_terms("Water point", "well") == [
            "well",
            "Water point",
            "Water",
            "point",
            "marker",
        ]
        assert search_terms("camp") == ["camp", "marker"]


class TestIconResolver:
    """Tests for IconResolver."""

    @pytest.fixture
    def transport(self, golden: Callable[[dict[str, Any]], Path]) -> LocalFileTransport:
        return LocalFileTransport(
            golden(
                {
                    "icons/search/animal.json": ["https://img.test/animal.png"],
                    "icons/search/marker.json": ["https://img.test/marker.png"],
                    "icons/generate.json": {
                        "https://img.test/animal.png": SVG,
                        "https://img.test/marker.png": "<svg>marker</svg>",
                        "https://img.test/in-cell.png": "<svg>cell</svg>",
                    },
                }
            )
        )

    @pytest.mark.asyncio
    async def test_hosted_cell_used_verbatim(
        self, transport: LocalFileTransport, settings: Settings
    ) -> None:
        resolver = IconResolver(transport, settings)
        preset = Preset("animal", "Animal")
        icon, generated = await resolver.resolve(preset, Text(" https://cdn.test/a.svg "))

        assert icon == Icon("animal", "https://cdn.test/a.svg")
        assert generated is False
        assert transport.calls == []

    @pytest.mark.asyncio
    async def test_cell_image_is_recolored(
        self, transport: LocalFileTransport, settings: Settings
    ) -> None:
        resolver = IconResolver(transport, settings)
        preset = Preset("animal", "Animal", color="#FF0000")
        icon, generated = await resolver.resolve(preset, ImageRef("https://img.test/in-cell.png"))

        assert icon == Icon("animal", "<svg>cell</svg>")
        assert generated is True
        assert transport.calls == [("generate_icon", "https://img.test/in-cell.png", "#FF0000")]

    @pytest.mark.asyncio
    async def test_search_by_name(self, transport: LocalFileTransport, settings: Settings) -> None:
        resolver = IconResolver(transport, settings)
        icon, generated = await resolver.resolve(Preset("animal", "Animal"), EMPTY)
        assert icon == Icon("animal", SVG)
        assert generated is True

    @pytest.mark.asyncio
    async def test_search_falls_back_to_marker(
        self, transport: LocalFileTransport, settings: Settings
    ) -> None:
        resolver = IconResolver(transport, settings)
        icon, _ = await resolver.resolve(Preset("tent", "Tent"), EMPTY)
        assert icon == Icon("tent", "<svg>marker</svg>")

    @pytest.mark.asyncio
    async def test_search_is_bounded(self, golden: Callable[[dict[str, Any]], Path]) -> None:
        transport = LocalFileTransport(golden({}))
        settings = Settings(
            retry_base_delay=0.0, retry_max_delay=0.0, icon_search_attempts=2, icon_search_rounds=3
        )
        resolver = IconResolver(transport, settings)

        icon, generated = await resolver.resolve(Preset("tent", "Tent"), EMPTY)

        assert icon is None
        assert generated is False
        # two terms ("Tent", "marker") x one call each x three rounds
        assert len([c for c in transport.calls if c[0] == "search_icons"]) == 6
        assert any("No icon found" in w for w in resolver.log.warnings)

    @pytest.mark.asyncio
    async def test_transient_search_failures_are_retried(
        self, golden: Callable[[dict[str, Any]], Path], settings: Settings
    ) -> None:
        directory = golden(
            {
                "icons/search/animal.json": ["https://img.test/animal.png"],
                "icons/generate.json": {"https://img.test/animal.png": SVG},
            }
        )
        transport = FlakySearchTransport(directory, failures=1)
        icon, _ = await IconResolver(transport, settings).resolve(Preset("animal", "Animal"), EMPTY)
        assert icon == Icon("animal", SVG)

    @pytest.mark.asyncio
    async def test_resolve_all_writes_generated_icons_back(
        self, transport: LocalFileTransport, settings: Settings
    ) -> None:
        workbook = InMemoryWorkbook(
            {
                CATEGORIES: [
                    ["English", "Icons", "Details", "Color"],
                    ["Animal", "", "", ""],
                    ["", "", "", ""],
                    ["Camp", "https://cdn.test/camp.svg", "", ""],
                ]
            }
        )
        grid = read_sheet(workbook, CATEGORIES)
        presets = [Preset("animal", "Animal"), Preset("camp", "Camp")]

        icons = await IconResolver(transport, settings).resolve_all(presets, grid, workbook)

        assert icons == [Icon("animal", SVG), Icon("camp", "https://cdn.test/camp.svg")]
        values = workbook.get_values(CATEGORIES)
        assert values[1][1] == SVG
        assert values[3][1] == "https://cdn.test/camp.svg"

    @pytest.mark.asyncio
    async def test_resolve_all_reports_progress_per_preset(
        self, transport: LocalFileTransport, settings: Settings
    ) -> None:
        workbook = InMemoryWorkbook(
            {
                CATEGORIES: [
                    ["English", "Icons", "Details", "Color"],
                    ["Animal", "", "", ""],
                    ["Camp", "https://cdn.test/camp.svg", "", ""],
                ]
            }
        )
        grid = read_sheet(workbook, CATEGORIES)
        presets = [Preset("animal", "Animal"), Preset("camp", "Camp")]
        updates: list[Progress] = []
        progress = ProgressReporter(updates.append, interval=0.0)

        await IconResolver(transport, settings).resolve_all(
            presets, grid, progress=progress, percent_range=(30, 60)
        )

        assert updates == [Progress("icons", 45, "Animal"), Progress("icons", 60, "Camp")]


class TestIconsFromCells:
    """Tests for icons_from_cells()."""

    def test_only_stored_icons_are_returned(self) -> None:
        workbook = InMemoryWorkbook(
            {
                CATEGORIES: [
                    ["English", "Icons"],
                    ["River", SVG],
                    ["Camp", "tent"],
                ]
            }
        )
        grid = read_sheet(workbook, CATEGORIES)
        icons = icons_from_cells([Preset("river", "River"), Preset("camp", "Camp")], grid)
        assert icons == [Icon("river", SVG)]
