"""
Workbook access.

A workbook is a set of named sheets, each a rectangular grid of raw values
with row 1 holding headers. Everything else in presetsheet reads and writes
sheets through the :class:`Workbook` interface.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from presetsheet.cells import EMPTY, CellValue, Empty, to_cell

CATEGORIES = "Categories"
DETAILS = "Details"
METADATA = "Metadata"
CATEGORY_TRANSLATIONS = "Category Translations"
LABEL_TRANSLATIONS = "Detail Label Translations"
HELPER_TRANSLATIONS = "Detail Helper Text Translations"
OPTION_TRANSLATIONS = "Detail Option Translations"

TRANSLATION_SHEETS = (
    CATEGORY_TRANSLATIONS,
    LABEL_TRANSLATIONS,
    HELPER_TRANSLATIONS,
    OPTION_TRANSLATIONS,
)


class CategoryCol:
    NAME = 0
    ICON = 1
    FIELDS = 2
    COLOR = 3


class DetailCol:
    LABEL = 0
    HELPER_TEXT = 1
    TYPE = 2
    OPTIONS = 3
    ID = 4
    UNIVERSAL = 5


class TranslationCol:
    SOURCE_TEXT = 0
    FIRST_LANGUAGE = 1


Grid = list[list[Any]]


class Workbook(ABC):
    """Abstract spreadsheet document."""

    @property
    @abstractmethod
    def title(self) -> str:
        """Document title, used to derive default metadata."""
        pass

    @abstractmethod
    def sheet_names(self) -> list[str]:
        pass

    @abstractmethod
    def get_values(self, name: str) -> Grid:
        """Return a copy of the sheet's raw values, or [] if it does not exist."""
        pass

    @abstractmethod
    def set_values(self, name: str, rows: Grid) -> None:
        """Replace the sheet's contents, creating the sheet if needed."""
        pass

    @abstractmethod
    def set_cell(self, name: str, row: int, col: int, value: Any) -> None:
        """Write one cell. ``row`` and ``col`` are zero-based, row 0 is the header."""
        pass

    @abstractmethod
    def get_backgrounds(self, name: str) -> list[list[str | None]]:
        """Background colors parallel to :meth:`get_values`."""
        pass

    def has_sheet(self, name: str) -> bool:
        return name in self.sheet_names()


class InMemoryWorkbook(Workbook):
    """Workbook held in plain dictionaries."""

    def __init__(
        self,
        sheets: dict[str, Grid] | None = None,
        title: str = "",
        backgrounds: dict[str, list[list[str | None]]] | None = None,
    ) -> None:
        self._title = title
        self._sheets: dict[str, Grid] = {
            name: [list(row) for row in rows] for name, rows in (sheets or {}).items()
        }
        self._backgrounds: dict[str, list[list[str | None]]] = {
            name: [list(row) for row in rows] for name, rows in (backgrounds or {}).items()
        }

    @property
    def title(self) -> str:
        return self._title

    def sheet_names(self) -> list[str]:
        return list(self._sheets)

    def get_values(self, name: str) -> Grid:
        return [list(row) for row in self._sheets.get(name, [])]

    def set_values(self, name: str, rows: Grid) -> None:
        self._sheets[name] = [list(row) for row in rows]
        self._backgrounds.pop(name, None)

    def set_cell(self, name: str, row: int, col: int, value: Any) -> None:
        grid = self._sheets.setdefault(name, [])
        while len(grid) <= row:
            grid.append([])
        cells = grid[row]
        while len(cells) <= col:
            cells.append("")
        cells[col] = value

    def get_backgrounds(self, name: str) -> list[list[str | None]]:
        return [list(row) for row in self._backgrounds.get(name, [])]

    def set_backgrounds(self, name: str, rows: list[list[str | None]]) -> None:
        self._backgrounds[name] = [list(row) for row in rows]

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self._title,
            "sheets": {
                name: {"values": rows, "backgrounds": self._backgrounds.get(name, [])}
                for name, rows in self._sheets.items()
            },
        }


class JsonWorkbook(InMemoryWorkbook):
    """Workbook persisted as a JSON document on disk.

    Layout: ``{"title": ..., "sheets": {name: {"values": [...], "backgrounds": [...]}}}``.
    Changes are kept in memory until :meth:`save` is called.
    """

    def __init__(self, path: Path, title: str | None = None) -> None:
        self.path = Path(path)
        sheets: dict[str, Grid] = {}
        backgrounds: dict[str, list[list[str | None]]] = {}
        stored_title = ""
        if self.path.exists():
            data = json.loads(self.path.read_text(encoding="utf-8"))
            stored_title = data.get("title", "")
            for name, sheet in data.get("sheets", {}).items():
                sheets[name] = sheet.get("values", [])
                if sheet.get("backgrounds"):
                    backgrounds[name] = sheet["backgrounds"]
        super().__init__(
            sheets,
            title=title if title is not None else (stored_title or self.path.stem),
            backgrounds=backgrounds,
        )

    def save(self) -> Path:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            json.dumps(self.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8"
        )
        return self.path


@dataclass
class SheetGrid:
    """A sheet split into its header row and typed data rows."""

    name: str
    headers: list[str] = field(default_factory=list)
    rows: list[list[CellValue]] = field(default_factory=list)
    backgrounds: list[str | None] = field(default_factory=list)

    @property
    def width(self) -> int:
        return len(self.headers)

    def cell(self, row: int, col: int) -> CellValue:
        """Typed cell at a data-row index, Empty when out of range."""
        if row >= len(self.rows) or col >= len(self.rows[row]):
            return EMPTY
        return self.rows[row][col]

    def text(self, row: int, col: int) -> str:
        return self.cell(row, col).text

    def background(self, row: int) -> str | None:
        return self.backgrounds[row] if row < len(self.backgrounds) else None


def read_sheet(workbook: Workbook, name: str) -> SheetGrid:
    """Read a sheet and convert every value to a :data:`CellValue`.

    Trailing rows that are entirely empty are dropped; other fully blank rows
    are kept so data-row indexes still line up with spreadsheet rows.
    """
    values = workbook.get_values(name)
    if not values:
        return SheetGrid(name)

    headers = [to_cell(v).text for v in values[0]]
    rows = [[to_cell(v) for v in row] for row in values[1:]]
    while rows and is_blank_row(rows[-1]):
        rows.pop()

    bg_grid = workbook.get_backgrounds(name)[1:]
    backgrounds = [row[0] if row else None for row in bg_grid]
    return SheetGrid(name, headers, rows, backgrounds)


def column_letter(col: int) -> str:
    """Spreadsheet column name for a 0-based index: 0 -> A, 26 -> AA."""
    letters = ""
    col += 1
    while col:
        col, rem = divmod(col - 1, 26)
        letters = chr(ord("A") + rem) + letters
    return letters


def whitespace_only_cells(values: Grid) -> list[tuple[int, int]]:
    """(row, col) of raw string values that hold nothing but whitespace."""
    return [
        (r, c)
        for r, row in enumerate(values)
        for c, value in enumerate(row)
        if isinstance(value, str) and value and not value.strip()
    ]


def is_blank_row(row: list[CellValue]) -> bool:
    return all(isinstance(cell, Empty) for cell in row)


def data_row_indexes(grid: SheetGrid) -> list[int]:
    """Data-row indexes of the non-blank rows, in sheet order.

    An entity's position is its index in this list; sheet row numbers are
    recovered as ``data_row_indexes(grid)[position] + 2``.
    """
    return [i for i, row in enumerate(grid.rows) if not is_blank_row(row)]
