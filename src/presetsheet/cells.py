"""Typed cell values produced at the sheet-reading boundary."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union


@dataclass(frozen=True)
class Empty:
    """A blank cell."""

    @property
    def text(self) -> str:
        return ""


@dataclass(frozen=True)
class Text:
    """A cell holding a string (numbers and booleans are rendered as text)."""

    value: str

    @property
    def text(self) -> str:
        return self.value.strip()


@dataclass(frozen=True)
class ImageRef:
    """A cell holding an embedded image, identified by its content URL."""

    url: str

    @property
    def text(self) -> str:
        return ""


CellValue = Union[Empty, Text, ImageRef]

EMPTY = Empty()


def to_cell(raw: Any) -> CellValue:
    """Classify a raw grid value.

    Raw values are what a workbook stores: ``None``, strings, numbers,
    booleans, or an ``{"image": url}`` mapping for in-cell images.
    """
    if raw is None:
        return EMPTY
    if isinstance(raw, (Empty, Text, ImageRef)):
        return raw
    if isinstance(raw, dict):
        url = raw.get("image") or raw.get("url") or raw.get("contentUrl")
        return ImageRef(str(url)) if url else EMPTY
    if isinstance(raw, bool):
        return Text("TRUE" if raw else "FALSE")
    if isinstance(raw, float) and raw.is_integer():
        return Text(str(int(raw)))
    text = str(raw)
    if not text.strip():
        return EMPTY
    return Text(text)


def to_raw(cell: CellValue) -> Any:
    """Inverse of :func:`to_cell`, used when writing typed cells back."""
    if isinstance(cell, ImageRef):
        return {"image": cell.url}
    if isinstance(cell, Text):
        return cell.value
    return ""
