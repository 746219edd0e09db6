"""Shared fixtures for presetsheet tests."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from presetsheet.settings import Settings
from presetsheet.sheets import (
    CATEGORIES,
    CATEGORY_TRANSLATIONS,
    DETAILS,
    LABEL_TRANSLATIONS,
    OPTION_TRANSLATIONS,
    InMemoryWorkbook,
)

DETAIL_HEADER = ["Label", "Helper Text", "Type", "Options", "ID", "Universal"]
CATEGORY_HEADER = ["English", "Icons", "Details", "Color"]


@pytest.fixture
def settings() -> Settings:
    """Settings with no backoff delays so retry tests run instantly."""
    return Settings(
        retry_base_delay=0.0,
        retry_max_delay=0.0,
        build_max_retries=2,
        icon_search_attempts=2,
        icon_search_rounds=2,
        progress_interval=0.0,
    )


@pytest.fixture
def animal_workbook() -> InMemoryWorkbook:
    """One category with no explicit fields and one select field."""
    return InMemoryWorkbook(
        {
            CATEGORIES: [CATEGORY_HEADER, ["Animal", "", "", ""]],
            DETAILS: [DETAIL_HEADER, ["Animal type", "Pick one", "s", "Mammal, Bird", "", ""]],
        },
        title="Animals",
    )


@pytest.fixture
def translated_workbook() -> InMemoryWorkbook:
    """A small workbook with translations in Spanish and Portuguese."""
    return InMemoryWorkbook(
        {
            CATEGORIES: [
                CATEGORY_HEADER,
                ["River", "", "Name, Depth", "#1E90FF"],
                ["Camp", "", "Name", ""],
            ],
            DETAILS: [
                DETAIL_HEADER,
                ["Name", "What is it called?", "text", "", "", "TRUE"],
                ["Depth", "", "number", "", "", ""],
                ["Water", "", "multiple", "Clean, Dirty", "", "FALSE"],
            ],
            CATEGORY_TRANSLATIONS: [
                ["English", "Español", "Portuguese - pt"],
                ["River", "Río", "Rio"],
                ["Camp", "Campamento", ""],
            ],
            LABEL_TRANSLATIONS: [
                ["English", "es", "pt"],
                ["Name", "Nombre", "Nome"],
                ["Depth", "Profundidad", "Profundidade"],
                ["Water", "Agua", "Água"],
            ],
            OPTION_TRANSLATIONS: [
                ["English", "es", "pt"],
                ["", "", ""],
                ["", "", ""],
                ["Clean, Dirty", "Limpia, Sucia", "Limpa, Suja"],
            ],
        },
        title="Rivers",
    )


def write_golden(directory: Path, files: dict[str, Any]) -> Path:
    """Write golden JSON files for LocalFileTransport."""
    for name, content in files.items():
        path = directory / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(content))
    return directory


@pytest.fixture
def golden(tmp_path: Path) -> Callable[[dict[str, Any]], Path]:
    """Factory writing golden files into a fresh directory."""
    return lambda files: write_golden(tmp_path / "golden", files)
