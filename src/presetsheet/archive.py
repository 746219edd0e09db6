"""
Configuration archives.

Reading accepts zip or tar containers (optionally wrapped in a single top
level folder) or a bare JSON document. A container holds ``metadata.json``,
``presets.json``, ``translations.json`` and icons, either as PNG files under
``icons/`` or as an ``icons.svg`` sprite.
"""

from __future__ import annotations

import base64
import io
import json
import tarfile
import xml.etree.ElementTree as ET
import zipfile
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any
from urllib.parse import unquote, urlparse

from presetsheet.exceptions import FormatError
from presetsheet.models import Config
from presetsheet.slugs import normalize_icon_slug

SVG_NS = "http://www.w3.org/2000/svg"
ZIP_SIGNATURE = b"PK\x03\x04"
PNG_SIZES = ("medium", "small", "large")
PNG_RESOLUTIONS = ("1x", "2x", "3x")
CONFIG_FILES = ("metadata.json", "presets.json", "translations.json")
SYMBOL_TAGS = (f"{{{SVG_NS}}}symbol", "symbol")

ET.register_namespace("", SVG_NS)


@dataclass(frozen=True)
class IconAsset:
    """An icon file found in an archive."""

    name: str
    kind: str  # "png" or "svg"
    data: bytes

    @property
    def filename(self) -> str:
        return f"{self.name}.{self.kind}"

    def to_data_uri(self) -> str:
        mime = "image/png" if self.kind == "png" else "image/svg+xml"
        return f"data:{mime};base64,{base64.b64encode(self.data).decode('ascii')}"

    def to_inline(self) -> str:
        """Inline markup for SVGs, a data URI for PNGs."""
        if self.kind == "svg":
            return self.data.decode("utf-8")
        return self.to_data_uri()


@dataclass
class ArchiveContents:
    """Everything read from an archive, before format normalization."""

    payload: dict[str, Any] = field(default_factory=dict)
    icons: dict[str, IconAsset] = field(default_factory=dict)
    files: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------


def _read_container(data: bytes) -> dict[str, bytes] | None:
    """File map of a zip or tar container, or None when it is neither."""
    if data.startswith(ZIP_SIGNATURE):
        try:
            with zipfile.ZipFile(io.BytesIO(data)) as zf:
                return {
                    info.filename: zf.read(info)
                    for info in zf.infolist()
                    if not info.is_dir()
                }
        except zipfile.BadZipFile as e:
            raise FormatError(f"Could not unzip archive: {e}") from e

    try:
        with tarfile.open(fileobj=io.BytesIO(data), mode="r:*") as tf:
            files: dict[str, bytes] = {}
            for member in tf.getmembers():
                if not member.isfile():
                    continue
                extracted = tf.extractfile(member)
                if extracted is not None:
                    files[member.name] = extracted.read()
            return files
    except tarfile.TarError:
        return None


def _clean_path(name: str) -> PurePosixPath | None:
    path = PurePosixPath(name.replace("\\", "/").lstrip("./"))
    if not path.parts or any(p in ("..", "__MACOSX") for p in path.parts):
        return None
    if path.name.startswith("._"):
        return None
    return path


def _load_json(raw: bytes, name: str) -> Any:
    try:
        return json.loads(raw.decode("utf-8-sig"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise FormatError(f"{name} is not valid JSON: {e}") from e


def parse_sprite(svg_text: str | bytes) -> dict[str, bytes]:
    """Split an ``icons.svg`` sprite into standalone SVG documents by symbol name."""
    try:
        root = ET.fromstring(svg_text)
    except ET.ParseError as e:
        raise FormatError(f"icons.svg is not valid SVG: {e}") from e

    icons: dict[str, bytes] = {}
    for symbol in root.iter():
        if symbol.tag not in SYMBOL_TAGS:
            continue
        symbol_id = symbol.get("id")
        if not symbol_id:
            continue
        if symbol.tag.startswith("{"):
            svg = ET.Element(f"{{{SVG_NS}}}svg")
        else:
            # sprites written without xmlns
            svg = ET.Element("svg", {"xmlns": SVG_NS})
        if symbol.get("viewBox"):
            svg.set("viewBox", symbol.get("viewBox", ""))
        for child in list(symbol):
            svg.append(child)
        name = normalize_icon_slug(symbol_id)
        icons.setdefault(name, ET.tostring(svg, encoding="utf-8"))
    return icons


def png_base_name(filename: str) -> str:
    """Icon name of a PNG file, e.g. "camp-medium@2x.png" -> "camp"."""
    stem = PurePosixPath(filename).stem
    return normalize_icon_slug(stem.split("@", 1)[0])


def find_png(name: str, index: dict[str, bytes]) -> bytes | None:
    """Best PNG for an icon: medium, small, large at 1x, 2x, 3x, then plain."""
    for size in PNG_SIZES:
        for resolution in PNG_RESOLUTIONS:
            found = index.get(f"{name}-{size}@{resolution}.png")
            if found is not None:
                return found
    return index.get(f"{name}.png")


def collect_icons(
    png_files: dict[str, bytes],
    svg_files: dict[str, bytes],
    sprite: bytes | None,
) -> dict[str, IconAsset]:
    """Merge icon sources by name; PNG wins over SVG."""
    svgs: dict[str, bytes] = parse_sprite(sprite) if sprite else {}
    for filename, data in svg_files.items():
        svgs.setdefault(normalize_icon_slug(PurePosixPath(filename).stem), data)

    icons = {name: IconAsset(name, "svg", data) for name, data in svgs.items()}
    for name in sorted({png_base_name(f) for f in png_files}):
        data = find_png(name, png_files)
        if data is not None:
            icons[name] = IconAsset(name, "png", data)
    return icons


def read_archive(source: bytes | Path) -> ArchiveContents:
    """Read an archive or JSON document into :class:`ArchiveContents`.

    Raises:
        FormatError: if the data is neither a readable container nor JSON.
    """
    data = Path(source).read_bytes() if isinstance(source, Path) else source
    if not data:
        raise FormatError("Archive is empty")

    raw_files = _read_container(data)
    if raw_files is None:
        payload = _load_json(data, "Configuration")
        if not isinstance(payload, dict):
            raise FormatError("Configuration JSON must be an object")
        return ArchiveContents(payload=payload)

    files: dict[PurePosixPath, bytes] = {}
    for name, content in raw_files.items():
        path = _clean_path(name)
        if path is not None:
            files[path] = content

    def shallowest(filename: str) -> bytes | None:
        matches = sorted((p for p in files if p.name == filename), key=lambda p: len(p.parts))
        return files[matches[0]] if matches else None

    payload: dict[str, Any] = {}
    presets = shallowest("presets.json")
    if presets is not None:
        presets_doc = _load_json(presets, "presets.json")
        if isinstance(presets_doc, dict):
            payload.update(presets_doc)
    else:
        # Single-document archives carry the whole configuration in one JSON file.
        for path in sorted(files, key=lambda p: len(p.parts)):
            if path.suffix != ".json" or path.name in CONFIG_FILES or path.name == "icons.json":
                continue
            doc = _load_json(files[path], path.name)
            if isinstance(doc, dict) and ({"categories", "presets", "fields"} & set(doc)):
                payload.update(doc)
                break

    for key, filename in (("metadata", "metadata.json"), ("translations", "translations.json")):
        content = shallowest(filename)
        if content is not None:
            payload[key] = _load_json(content, filename)

    package_json = shallowest("package.json")
    if package_json is not None and "packageJson" not in payload:
        payload["packageJson"] = _load_json(package_json, "package.json")

    icons_doc = shallowest("icons.json")
    if icons_doc is not None and "icons" not in payload:
        payload["icons"] = _load_json(icons_doc, "icons.json")

    if not payload:
        raise FormatError("Archive contains no configuration files")

    png_files: dict[str, bytes] = {}
    svg_files: dict[str, bytes] = {}
    for path, content in files.items():
        if "icons" not in path.parts[:-1]:
            continue
        if path.suffix.lower() == ".png":
            png_files[path.name] = content
        elif path.suffix.lower() == ".svg" and path.name != "icons.svg":
            svg_files[path.name] = content

    return ArchiveContents(
        payload=payload,
        icons=collect_icons(png_files, svg_files, shallowest("icons.svg")),
        files=sorted(str(p) for p in files),
    )


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------


def _decode_data_uri(uri: str) -> tuple[str, bytes] | None:
    header, _, body = uri.partition(",")
    if not header.startswith("data:") or not body:
        return None
    kind = "png" if "image/png" in header else "svg"
    if header.endswith(";base64"):
        return kind, base64.b64decode(body)
    return kind, body.encode("utf-8")


def archive_files(config: Config) -> dict[str, bytes]:
    """Files for a configuration archive."""
    document = config.to_dict()

    def dump(obj: Any) -> bytes:
        return (json.dumps(obj, indent=2, ensure_ascii=False) + "\n").encode("utf-8")

    files: dict[str, bytes] = {
        "metadata.json": dump(
            {**document["metadata"], "primaryLanguage": config.primary_language}
        ),
        "presets.json": dump({"presets": document["presets"], "fields": document["fields"]}),
        "translations.json": dump(document["messages"]),
        "icons.json": dump(document["icons"]),
    }
    if config.package_json is not None:
        files["package.json"] = dump(config.package_json)

    for icon in config.icons:
        svg = icon.svg.strip()
        if svg.startswith("<svg"):
            files[f"icons/{icon.name}.svg"] = svg.encode("utf-8")
        elif svg.startswith("data:"):
            decoded = _decode_data_uri(svg)
            if decoded is not None:
                kind, content = decoded
                name = f"{icon.name}-medium@1x.png" if kind == "png" else f"{icon.name}.svg"
                files[f"icons/{name}"] = content
        elif svg.startswith("file:"):
            local = Path(unquote(urlparse(svg).path))
            if local.is_file():
                name = (
                    f"{icon.name}-medium@1x.png" if local.suffix == ".png" else f"{icon.name}.svg"
                )
                files[f"icons/{name}"] = local.read_bytes()
    return files


def write_archive(config: Config, path: Path) -> Path:
    """Write a zip archive for ``config``."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, content in archive_files(config).items():
            zf.writestr(name, content)
    return path


def archive_name(config: Config) -> str:
    return f"{config.metadata.name}-{config.metadata.version}.comapeocat"
