"""
Import pipeline.

archive -> format detection -> normalization -> validation -> sheets.
Nothing is written to the workbook until the normalized configuration has
passed validation. Icon files go to an optional output directory, which is
removed again if the import fails after creating it.
"""

from __future__ import annotations

import base64
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from presetsheet.archive import ArchiveContents, IconAsset, read_archive
from presetsheet.formats import NORMALIZERS, SchemaVariant, canonicalize, detect_schema
from presetsheet.languages import LanguageResolver
from presetsheet.logging import OperationLog, ensure_log
from presetsheet.models import Config, Icon
from presetsheet.progress import ProgressReporter
from presetsheet.sheets import Workbook
from presetsheet.validation import MissingIconPolicy, validate_config
from presetsheet.writer import write_config


@dataclass
class ImportResult:
    """Result of an import."""

    variant: SchemaVariant
    config: Config
    sheets_written: list[str] = field(default_factory=list)
    icon_files: list[Path] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def merge_archive_icons(config: Config, assets: dict[str, IconAsset]) -> None:
    """Replace or add icons with the files found in the archive."""
    by_name = {icon.name: icon for icon in config.icons}
    for name, asset in assets.items():
        by_name[name] = Icon(name, asset.to_inline())
    config.icons = list(by_name.values())


def icon_asset(icon: Icon) -> IconAsset | None:
    """The file form of an inline SVG or data-URI icon, None for hosted URLs."""
    content = icon.svg.strip()
    if content.startswith("<svg") or content.startswith("<?xml"):
        return IconAsset(icon.name, "svg", content.encode("utf-8"))
    if content.startswith("data:image/") and ";base64," in content:
        header, _, data = content.partition(";base64,")
        kind = "png" if header.endswith("png") else "svg"
        return IconAsset(icon.name, kind, base64.b64decode(data))
    return None


class IconStore:
    """Writes icon files into ``<output_dir>/icons`` and undoes it on failure."""

    def __init__(self, output_dir: Path) -> None:
        self.output_dir = Path(output_dir)
        self.created_dir = not self.output_dir.exists()
        self.files: list[Path] = []

    def save(self, icon: Icon) -> Path | None:
        asset = icon_asset(icon)
        if asset is None:
            return None
        icons_dir = self.output_dir / "icons"
        icons_dir.mkdir(parents=True, exist_ok=True)
        path = icons_dir / asset.filename
        path.write_bytes(asset.data)
        self.files.append(path)
        return path

    def rollback(self) -> None:
        if self.created_dir:
            shutil.rmtree(self.output_dir, ignore_errors=True)
            return
        for path in self.files:
            path.unlink(missing_ok=True)


def import_contents(
    contents: ArchiveContents,
    workbook: Workbook,
    output_dir: Path | None = None,
    missing_icon_policy: MissingIconPolicy = "warn",
    resolver: LanguageResolver | None = None,
    log: OperationLog | None = None,
    progress: ProgressReporter | None = None,
) -> ImportResult:
    """Normalize, validate and write already-read archive contents.

    Raises:
        FormatError: if the payload cannot be understood.
        ValidationError: if the normalized configuration has blocking problems.
    """
    log = ensure_log(log, "import")
    if progress:
        progress.report("detect", 10)
    variant = detect_schema(contents.payload)
    log.info(f"Detected {variant.value} configuration format")
    config = NORMALIZERS[variant](contents.payload, log)
    merge_archive_icons(config, contents.icons)
    config = canonicalize(config, log)

    if progress:
        progress.report("validate", 40)
    result = validate_config(config, missing_icon_policy)
    result.report(log)
    result.raise_for_blocks("Imported configuration is invalid")

    store = IconStore(output_dir) if output_dir is not None else None
    try:
        icon_cells: dict[str, str] = {icon.name: icon.svg for icon in config.icons}
        if store is not None:
            for icon in config.icons:
                path = store.save(icon)
                if path is not None:
                    icon_cells[icon.name] = path.resolve().as_uri()
        if progress:
            progress.report("write", 70)
        sheets = write_config(workbook, config, icon_cells, resolver, log)
    except Exception:
        if store is not None:
            log.warning(f"Import failed, removing icons written to {store.output_dir}")
            store.rollback()
        raise

    if progress:
        progress.report("done", 100)
    return ImportResult(
        variant=variant,
        config=config,
        sheets_written=sheets,
        icon_files=list(store.files) if store else [],
        warnings=list(result.warnings),
    )


def import_archive(
    source: bytes | Path,
    workbook: Workbook,
    output_dir: Path | None = None,
    missing_icon_policy: MissingIconPolicy = "warn",
    resolver: LanguageResolver | None = None,
    log: OperationLog | None = None,
    progress: ProgressReporter | None = None,
) -> ImportResult:
    """Import an archive (or JSON document) into ``workbook``."""
    log = ensure_log(log, "import")
    contents = read_archive(source)
    log.info(f"Read archive with {len(contents.files)} file(s), {len(contents.icons)} icon(s)")
    return import_contents(
        contents, workbook, output_dir, missing_icon_policy, resolver, log, progress
    )
