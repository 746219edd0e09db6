"""Metadata sheet handling and package.json generation."""

from __future__ import annotations

import datetime as dt
import secrets
from typing import Any

from presetsheet.cells import to_cell
from presetsheet.models import Metadata, generate_version
from presetsheet.sheets import METADATA, Workbook
from presetsheet.slugs import slugify

METADATA_HEADERS = ["Key", "Value"]
REQUIRED_KEYS = ("dataset_id", "name", "version")


def default_dataset_id(title: str) -> str:
    return f"comapeo-{slugify(title)}"


def default_name(title: str) -> str:
    return f"config-{slugify(title)}"


def read_metadata_rows(workbook: Workbook) -> dict[str, str]:
    """Key/Value pairs from the Metadata sheet, header row excluded."""
    values: dict[str, str] = {}
    for row in workbook.get_values(METADATA)[1:]:
        if not row:
            continue
        key = to_cell(row[0]).text
        if key:
            values[key] = to_cell(row[1]).text if len(row) > 1 else ""
    return values


def touch_metadata(workbook: Workbook, today: dt.date | None = None) -> Metadata:
    """Read metadata, fill in defaults and write it back.

    ``dataset_id`` and ``name`` default from the workbook title; a missing
    ``projectKey`` is generated once. ``version`` is regenerated on every call.
    """
    stored = read_metadata_rows(workbook)
    title = workbook.title
    metadata = Metadata(
        dataset_id=stored.pop("dataset_id", "") or default_dataset_id(title),
        name=stored.pop("name", "") or default_name(title),
        version=generate_version(today),
    )
    stored.pop("version", None)
    if not stored.get("projectKey"):
        stored["projectKey"] = secrets.token_hex(32)
    metadata.extra = stored
    write_metadata(workbook, metadata)
    return metadata


def write_metadata(workbook: Workbook, metadata: Metadata) -> None:
    rows: list[list[Any]] = [list(METADATA_HEADERS)]
    rows.extend([key, value] for key, value in metadata.to_dict().items())
    workbook.set_values(METADATA, rows)


def build_package_json(metadata: Metadata, language: str = "en") -> dict[str, Any]:
    """package.json for building the configuration with mapeo-settings-builder."""
    return {
        "name": metadata.dataset_id,
        "version": metadata.version,
        "description": f"CoMapeo configuration for {metadata.name}",
        "dependencies": {"mapeo-settings-builder": "^6.0.0"},
        "scripts": {
            "build": (
                f"mkdir -p build && mapeo-settings build -l '{language}' "
                "-o build/${npm_package_name}-v${npm_package_version}.comapeocat"
            ),
            "lint": "mapeo-settings lint",
        },
    }
