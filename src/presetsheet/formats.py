"""
Import format detection and normalization.

Archives come in several shapes over the years:

- ``COMAPEO``: array-based presets and fields carrying ``tagKey``.
- ``MAPEO``: presets and fields as objects keyed by id, snake_case field
  types, ``placeholder`` helper text.
- ``BUILD_REQUEST``: the build API payload with ``categories``.

:func:`detect_schema` classifies a payload; each variant has its own
normalizer returning the same canonical :class:`Config`, and
:func:`canonicalize` then re-derives every key the way the sheets would.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterator, Mapping
from enum import Enum
from typing import Any

from presetsheet.exceptions import FormatError
from presetsheet.extract import build_options, normalize_color
from presetsheet.languages import DEFAULT_PRIMARY_LANGUAGE
from presetsheet.logging import OperationLog, ensure_log
from presetsheet.models import (
    DEFAULT_COLOR,
    DEFAULT_GEOMETRY,
    FIELD_TYPES,
    NUMBER,
    SELECT_MULTIPLE,
    SELECT_ONE,
    TEXT,
    Config,
    Field,
    FieldType,
    Icon,
    Messages,
    Metadata,
    Option,
    Preset,
    TranslationMessage,
    build_terms,
    coerce_universal,
)
from presetsheet.slugs import field_tag_key, option_value, preset_slug, slugify
from presetsheet.translations import flatten, is_nested, messages_from_flat


class SchemaVariant(Enum):
    COMAPEO = "comapeo"
    MAPEO = "mapeo"
    BUILD_REQUEST = "build_request"
    UNKNOWN = "unknown"


_SNAKE_TYPES: dict[str, FieldType] = {
    "select_one": SELECT_ONE,
    "select_multiple": SELECT_MULTIPLE,
    "selectone": SELECT_ONE,
    "selectmultiple": SELECT_MULTIPLE,
    "multiple": SELECT_MULTIPLE,
    "select": SELECT_ONE,
    "number": NUMBER,
    "text": TEXT,
}

# "mapeo-settings build -l 'es' ..." in a package.json build script
BUILD_LANGUAGE_FLAG = re.compile(r"-l\s+'([^']+)'")


def detect_schema(payload: Any) -> SchemaVariant:
    """Classify an import payload by its shape."""
    if not isinstance(payload, Mapping):
        return SchemaVariant.UNKNOWN

    if isinstance(payload.get("categories"), list):
        return SchemaVariant.BUILD_REQUEST

    presets = payload.get("presets")
    fields = payload.get("fields")
    metadata = payload.get("metadata")
    metadata = metadata if isinstance(metadata, Mapping) else {}

    if isinstance(fields, list) and fields and isinstance(fields[0], Mapping):
        if "tagKey" in fields[0]:
            return SchemaVariant.COMAPEO
    if isinstance(presets, list) and presets and isinstance(presets[0], Mapping):
        if "geometry" in presets[0]:
            return SchemaVariant.COMAPEO

    if isinstance(presets, Mapping) or isinstance(fields, Mapping):
        return SchemaVariant.MAPEO

    if isinstance(metadata.get("dataset_id"), str) and isinstance(metadata.get("name"), str):
        return SchemaVariant.COMAPEO
    if metadata.get("name") and not metadata.get("dataset_id"):
        return SchemaVariant.MAPEO

    return SchemaVariant.UNKNOWN


def coerce_field_type(raw: Any) -> FieldType:
    """Canonical field type from any known spelling; unknown types become text."""
    if raw in FIELD_TYPES:
        return raw  # type: ignore[return-value]
    return _SNAKE_TYPES.get(str(raw or "").strip().lower(), TEXT)


def parse_options(raw: Any, tag_key: str) -> list[Option] | None:
    """Options from a list of strings, a list of objects or a value->label map."""
    if raw is None:
        return None
    options: list[Option] = []
    if isinstance(raw, Mapping):
        for index, (value, label) in enumerate(raw.items()):
            options.append(Option(str(label), str(value) or option_value(label, tag_key, index)))
    elif isinstance(raw, list):
        for index, item in enumerate(raw):
            if isinstance(item, Mapping):
                label = str(item.get("label") or item.get("name") or item.get("value") or "")
                value = str(item.get("value") or "") or option_value(label, tag_key, index)
            else:
                label = str(item)
                value = option_value(label, tag_key, index)
            options.append(Option(label, value))
    return options


def primary_language_of(payload: Mapping[str, Any]) -> str:
    """Primary language recorded in a payload.

    Looked up in ``primaryLanguage`` (top level or in ``metadata``), then in
    the ``-l '<lang>'`` flag of the package.json build script, then in the
    first build request locale.
    """
    metadata = payload.get("metadata")
    candidates = [
        payload.get("primaryLanguage"),
        metadata.get("primaryLanguage") if isinstance(metadata, Mapping) else None,
    ]
    package_json = payload.get("packageJson")
    if isinstance(package_json, Mapping) and isinstance(package_json.get("scripts"), Mapping):
        match = BUILD_LANGUAGE_FLAG.search(str(package_json["scripts"].get("build") or ""))
        candidates.append(match.group(1) if match else None)
    locales = payload.get("locales")
    if isinstance(locales, list) and locales:
        candidates.append(locales[0])

    for candidate in candidates:
        if isinstance(candidate, str) and candidate.strip():
            return candidate.strip()
    return DEFAULT_PRIMARY_LANGUAGE


def _str_list(raw: Any) -> list[str]:
    """A JSON list of scalars as strings; anything else is empty."""
    if not isinstance(raw, (list, tuple)):
        return []
    return [str(item) for item in raw if isinstance(item, (str, int, float))]


def _metadata(raw: Any) -> Metadata:
    data = dict(raw) if isinstance(raw, Mapping) else {}
    data.pop("primaryLanguage", None)
    name = str(data.pop("name", "") or "")
    dataset_id = str(data.pop("dataset_id", "") or "") or f"comapeo-{slugify(name)}"
    version = str(data.pop("version", "") or "")
    extra = {str(k): str(v) for k, v in data.items() if isinstance(v, (str, int, float))}
    metadata = Metadata(dataset_id=dataset_id, name=name or dataset_id, extra=extra)
    if version:
        metadata.version = version
    return metadata


def _messages(raw: Any) -> Messages:
    if not isinstance(raw, Mapping) or not raw:
        return {}
    flat = flatten(raw) if is_nested(raw) else raw
    return messages_from_flat(flat)


def _icons(raw: Any) -> list[Icon]:
    icons: list[Icon] = []
    if isinstance(raw, list):
        for item in raw:
            if not isinstance(item, Mapping):
                continue
            name = str(item.get("name") or item.get("id") or "")
            svg = item.get("svg") or item.get("svgData") or item.get("svgUrl") or item.get("png")
            if name and svg:
                icons.append(Icon(name, str(svg)))
    elif isinstance(raw, Mapping):
        icons.extend(Icon(str(k), str(v)) for k, v in raw.items() if v)
    return icons


def _field(data: Mapping[str, Any], index: int, key_hint: str = "") -> Field:
    label = str(data.get("label") or data.get("name") or key_hint or "")
    tag_key = str(data.get("tagKey") or data.get("key") or key_hint or "") or field_tag_key(
        label, index
    )
    field_type = coerce_field_type(data.get("type"))
    options = parse_options(data.get("options"), tag_key) if field_type != TEXT else None
    if field_type in (SELECT_ONE, SELECT_MULTIPLE) and options is None:
        options = []
    if field_type in (TEXT, NUMBER):
        options = None
    helper = data.get("helperText") or data.get("placeholder") or data.get("description") or ""
    return Field(
        tag_key=tag_key,
        type=field_type,
        label=label,
        helper_text=str(helper),
        universal=coerce_universal(data.get("universal", False)),
        options=options,
    )


def _preset(
    data: Mapping[str, Any], index: int, field_keys: Mapping[str, str], key_hint: str = ""
) -> Preset:
    name = str(data.get("name") or key_hint or "")
    icon = str(data.get("icon") or data.get("iconId") or key_hint or "") or preset_slug(
        name, index
    )
    refs = _str_list(data.get("fields") or data.get("defaultFieldIds"))
    fields = [field_keys.get(ref, ref) for ref in refs]
    sort = data.get("sort")
    tags = data.get("tags")
    return Preset(
        icon=icon,
        name=name,
        color=str(data.get("color") or DEFAULT_COLOR),
        fields=fields,
        sort=int(sort) if isinstance(sort, (int, float)) else index + 1,
        terms=_str_list(data.get("terms")),
        geometry=_str_list(data.get("geometry")) or list(DEFAULT_GEOMETRY),
        tags={str(k): str(v) for k, v in tags.items()} if isinstance(tags, Mapping) else {},
    )


def normalize_comapeo(payload: Mapping[str, Any], log: OperationLog) -> Config:
    fields = [
        _field(f, i) for i, f in enumerate(payload.get("fields") or []) if isinstance(f, Mapping)
    ]
    keys = {f.tag_key: f.tag_key for f in fields}
    presets = [
        _preset(p, i, keys)
        for i, p in enumerate(payload.get("presets") or [])
        if isinstance(p, Mapping)
    ]
    return Config(
        metadata=_metadata(payload.get("metadata")),
        fields=fields,
        presets=presets,
        icons=_icons(payload.get("icons")),
        messages=_messages(payload.get("messages") or payload.get("translations")),
        primary_language=primary_language_of(payload),
    )


def _keyed(raw: Any, id_key: str, kind: str, log: OperationLog) -> Mapping[str, Any]:
    """Object-keyed entries; list entries are keyed by ``id_key`` or position."""
    if isinstance(raw, Mapping):
        return raw
    if isinstance(raw, list):
        return {
            str((item.get(id_key) if isinstance(item, Mapping) else None) or i): item
            for i, item in enumerate(raw)
        }
    if raw:
        log.warning(f"Ignoring {kind}: expected an object or a list")
    return {}


def normalize_mapeo(payload: Mapping[str, Any], log: OperationLog) -> Config:
    raw_fields = _keyed(payload.get("fields"), "key", "fields", log)
    raw_presets = _keyed(payload.get("presets"), "icon", "presets", log)

    fields: list[Field] = []
    keys: dict[str, str] = {}
    for index, (field_id, data) in enumerate(raw_fields.items()):
        if not isinstance(data, Mapping):
            log.warning(f"Skipping malformed field {field_id!r}")
            continue
        f = _field(data, index, key_hint=str(field_id))
        keys[str(field_id)] = f.tag_key
        fields.append(f)

    presets: list[Preset] = []
    for index, (preset_id, data) in enumerate(raw_presets.items()):
        if not isinstance(data, Mapping):
            log.warning(f"Skipping malformed preset {preset_id!r}")
            continue
        presets.append(_preset(data, index, keys, key_hint=str(preset_id)))

    return Config(
        metadata=_metadata(payload.get("metadata")),
        fields=fields,
        presets=presets,
        icons=_icons(payload.get("icons")),
        messages=_messages(payload.get("translations") or payload.get("messages")),
        primary_language=primary_language_of(payload),
    )


def _translation_group(
    locale: Mapping[str, Any], name: str, lang: str, log: OperationLog
) -> Iterator[tuple[str, Mapping[str, Any]]]:
    """Entries of one translation group whose properties are objects."""
    group = locale.get(name)
    if not isinstance(group, Mapping):
        if group:
            log.warning(f"{lang}: ignoring malformed {name} translations")
        return
    for entity_id, props in group.items():
        if isinstance(props, Mapping):
            yield str(entity_id), props
        else:
            log.warning(f"{lang}: ignoring malformed {name} translation {entity_id!r}")


def _build_request_messages(
    raw: Any,
    preset_ids: Mapping[str, str],
    fields_by_id: Mapping[str, Field],
    log: OperationLog,
) -> Messages:
    """Messages from ``{lang: {category: {id: {name}}, field: {id: {...}}}}``."""
    messages: Messages = {}
    if not isinstance(raw, Mapping):
        return messages
    for lang, locale in raw.items():
        if not isinstance(locale, Mapping):
            continue
        entries: dict[str, TranslationMessage] = {}
        for category_id, props in _translation_group(locale, "category", str(lang), log):
            icon = preset_ids.get(category_id, category_id)
            if props.get("name"):
                entries[f"presets.{icon}.name"] = TranslationMessage(
                    str(props["name"]), f"Name for preset '{icon}'"
                )
        for field_id, props in _translation_group(locale, "field", str(lang), log):
            f = fields_by_id.get(field_id)
            if f is None:
                continue
            for prop, value in props.items():
                prop = str(prop)
                if not value:
                    continue
                if prop in ("label", "helperText"):
                    noun = "Label" if prop == "label" else "Helper text"
                    entries[f"fields.{f.tag_key}.{prop}"] = TranslationMessage(
                        str(value), f"{noun} for field '{f.tag_key}'"
                    )
                elif prop.startswith("options.") and f.options:
                    index = prop.split(".", 1)[1]
                    if index.isdigit() and int(index) < len(f.options):
                        option = f.options[int(index)]
                        entries[f"fields.{f.tag_key}.options.{option.value}"] = TranslationMessage(
                            {"label": str(value), "value": option.value},
                            f"Option '{option.label}' for field '{f.label}'",
                        )
        messages[str(lang)] = entries
    return messages


def normalize_build_request(payload: Mapping[str, Any], log: OperationLog) -> Config:
    fields: list[Field] = []
    fields_by_id: dict[str, Field] = {}
    for index, data in enumerate(payload.get("fields") or []):
        if not isinstance(data, Mapping):
            continue
        f = _field(data, index)
        fields.append(f)
        fields_by_id[str(data.get("id") or f.tag_key)] = f
    keys = {field_id: f.tag_key for field_id, f in fields_by_id.items()}

    presets: list[Preset] = []
    preset_ids: dict[str, str] = {}
    icon_ids: dict[str, str] = {}
    for index, data in enumerate(payload.get("categories") or []):
        if not isinstance(data, Mapping):
            continue
        name = str(data.get("name") or "")
        icon = str(data.get("id") or "") or preset_slug(name, index)
        refs = _str_list(data.get("fields") or data.get("defaultFieldIds"))
        preset = Preset(
            icon=icon,
            name=name,
            color=str(data.get("color") or DEFAULT_COLOR),
            fields=[keys.get(ref, ref) for ref in refs],
            sort=index + 1,
        )
        presets.append(preset)
        preset_ids[icon] = icon
        if data.get("iconId"):
            icon_ids[str(data["iconId"])] = icon

    icons = [Icon(icon_ids.get(i.name, i.name), i.svg) for i in _icons(payload.get("icons"))]
    return Config(
        metadata=_metadata(payload.get("metadata")),
        fields=fields,
        presets=presets,
        icons=icons,
        messages=_build_request_messages(
            payload.get("translations"), preset_ids, fields_by_id, log
        ),
        primary_language=primary_language_of(payload),
    )


def normalize_unknown(payload: Any, log: OperationLog) -> Config:
    """Best-effort extraction of whatever fields and presets are present."""
    error = FormatError("Unrecognized configuration format")
    log.warning(f"{error}, attempting best-effort extraction")
    if not isinstance(payload, Mapping):
        raise error

    raw_fields = payload.get("fields")
    raw_presets = payload.get("presets") or payload.get("categories")
    fields = [
        _field(f, i)
        for i, f in enumerate(raw_fields if isinstance(raw_fields, list) else [])
        if isinstance(f, Mapping) and (f.get("label") or f.get("name"))
    ]
    keys = {f.tag_key: f.tag_key for f in fields}
    presets = [
        _preset(p, i, keys)
        for i, p in enumerate(raw_presets if isinstance(raw_presets, list) else [])
        if isinstance(p, Mapping) and p.get("name")
    ]
    if not fields and not presets:
        raise FormatError("Unrecognized configuration format: no fields or presets found")
    return Config(
        metadata=_metadata(payload.get("metadata")),
        fields=fields,
        presets=presets,
        icons=_icons(payload.get("icons")),
        messages=_messages(payload.get("messages") or payload.get("translations")),
        primary_language=primary_language_of(payload),
    )


NORMALIZERS: dict[SchemaVariant, Callable[[Any, OperationLog], Config]] = {
    SchemaVariant.COMAPEO: normalize_comapeo,
    SchemaVariant.MAPEO: normalize_mapeo,
    SchemaVariant.BUILD_REQUEST: normalize_build_request,
    SchemaVariant.UNKNOWN: normalize_unknown,
}


def normalize(payload: Any, log: OperationLog | None = None) -> tuple[SchemaVariant, Config]:
    """Detect the payload's schema, normalize it and canonicalize the keys.

    Raises:
        FormatError: if nothing usable can be extracted.
    """
    log = ensure_log(log)
    variant = detect_schema(payload)
    log.info(f"Detected {variant.value} configuration format")
    config = canonicalize(NORMALIZERS[variant](payload, log), log)
    return variant, config


def canonicalize(config: Config, log: OperationLog | None = None) -> Config:
    """Re-derive keys exactly as extraction from the sheets would.

    Tag keys come from labels, option values from option labels and icon
    slugs from names, all with positional fallbacks. Preset field lists,
    icons and translation keys are remapped to the new keys, presets are
    ordered by ``sort`` and renumbered from 1.
    """
    log = ensure_log(log)
    key_map: dict[str, str] = {}
    option_maps: dict[str, dict[str, str]] = {}
    fields: list[Field] = []
    for position, f in enumerate(config.fields):
        tag_key = field_tag_key(f.label, position)
        key_map.setdefault(f.tag_key, tag_key)
        options = None
        if f.options is not None:
            options = build_options([o.label for o in f.options], tag_key)
            option_maps[f.tag_key] = {
                old.value: new.value for old, new in zip(f.options, options)
            }
        if tag_key != f.tag_key:
            log.debug(f'Field "{f.label}": key {f.tag_key} -> {tag_key}')
        fields.append(
            Field(tag_key, f.type, f.label, f.helper_text, f.universal, options)
        )

    icon_map: dict[str, str] = {}
    presets: list[Preset] = []
    ordered = sorted(enumerate(config.presets), key=lambda item: (item[1].sort, item[0]))
    for position, (_, p) in enumerate(ordered):
        icon = preset_slug(p.name, position)
        icon_map.setdefault(p.icon, icon)
        keys: list[str] = []
        for ref in p.fields:
            key = key_map.get(ref, slugify(ref))
            if key and key not in keys:
                keys.append(key)
        color = normalize_color(p.color) or DEFAULT_COLOR
        presets.append(
            Preset(
                icon=icon,
                name=p.name,
                color=color,
                fields=keys,
                sort=position + 1,
                terms=build_terms(p.name, keys),
                tags={icon: "yes"},
            )
        )

    icons: list[Icon] = []
    seen: set[str] = set()
    for icon in config.icons:
        name = icon_map.get(icon.name, icon.name)
        if name not in seen:
            seen.add(name)
            icons.append(Icon(name, icon.svg))

    messages: Messages = {}
    for lang, entries in config.messages.items():
        remapped: dict[str, TranslationMessage] = {}
        for key, message in entries.items():
            new_key = _remap_key(key, key_map, option_maps, icon_map)
            if new_key is None:
                log.debug(f"{lang}: dropping translation {key} with no matching entity")
                continue
            if isinstance(message.message, Mapping):
                value = new_key.rsplit(".", 1)[-1]
                message = TranslationMessage(
                    {"label": str(message.message.get("label", "")), "value": value},
                    message.description,
                )
            remapped[new_key] = message
        messages[lang] = remapped

    return Config(
        metadata=config.metadata,
        fields=fields,
        presets=presets,
        icons=icons,
        messages=messages,
        package_json=config.package_json,
        primary_language=config.primary_language,
    )


def _remap_key(
    key: str,
    key_map: Mapping[str, str],
    option_maps: Mapping[str, Mapping[str, str]],
    icon_map: Mapping[str, str],
) -> str | None:
    parts = key.split(".")
    if len(parts) == 3 and parts[0] == "presets":
        icon = icon_map.get(parts[1])
        return f"presets.{icon}.{parts[2]}" if icon else None
    if len(parts) >= 3 and parts[0] == "fields":
        tag_key = key_map.get(parts[1])
        if tag_key is None:
            return None
        if len(parts) == 3:
            return f"fields.{tag_key}.{parts[2]}"
        if len(parts) == 4 and parts[2] == "options":
            value = option_maps.get(parts[1], {}).get(parts[3])
            return f"fields.{tag_key}.options.{value}" if value else None
    return None
