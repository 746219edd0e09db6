"""
Canonical configuration model.

Every export produces these objects and every import normalizes into them,
whatever shape the source archive had. ``to_dict`` renders the camelCase
JSON shape consumed by the mapping application.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Any, Literal, Union

FieldType = Literal["text", "number", "selectOne", "selectMultiple"]

TEXT: FieldType = "text"
NUMBER: FieldType = "number"
SELECT_ONE: FieldType = "selectOne"
SELECT_MULTIPLE: FieldType = "selectMultiple"
FIELD_TYPES: tuple[FieldType, ...] = (TEXT, NUMBER, SELECT_ONE, SELECT_MULTIPLE)
SELECT_TYPES: tuple[FieldType, ...] = (SELECT_ONE, SELECT_MULTIPLE)

DEFAULT_COLOR = "#0000FF"
DEFAULT_GEOMETRY = ("point", "line", "area")


def coerce_universal(raw: Any) -> bool:
    """Universal flag from JSON; strings count only when they read "true"."""
    if isinstance(raw, str):
        return raw.strip().lower() == "true"
    return bool(raw)


@dataclass(frozen=True)
class Option:
    label: str
    value: str

    def to_dict(self) -> dict[str, str]:
        return {"label": self.label, "value": self.value}


@dataclass
class Field:
    """A detail definition that presets can attach."""

    tag_key: str
    type: FieldType
    label: str
    helper_text: str = ""
    universal: bool = False
    options: list[Option] | None = None

    @property
    def is_select(self) -> bool:
        return self.type in SELECT_TYPES

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "tagKey": self.tag_key,
            "type": self.type,
            "label": self.label,
            "helperText": self.helper_text,
        }
        if self.options is not None:
            result["options"] = [o.to_dict() for o in self.options]
        result["universal"] = self.universal
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Field:
        options = data.get("options")
        return cls(
            tag_key=str(data.get("tagKey") or ""),
            type=data.get("type") if data.get("type") in FIELD_TYPES else TEXT,
            label=str(data.get("label") or ""),
            helper_text=str(data.get("helperText") or ""),
            universal=coerce_universal(data.get("universal", False)),
            options=(
                [Option(str(o.get("label", "")), str(o.get("value", ""))) for o in options]
                if isinstance(options, list)
                else None
            ),
        )


@dataclass
class Preset:
    """A category entry."""

    icon: str
    name: str
    color: str = DEFAULT_COLOR
    fields: list[str] = field(default_factory=list)
    sort: int = 0
    terms: list[str] = field(default_factory=list)
    geometry: list[str] = field(default_factory=lambda: list(DEFAULT_GEOMETRY))
    tags: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.tags and self.icon:
            self.tags = {self.icon: "yes"}
        if not self.terms:
            self.terms = build_terms(self.name, self.fields)

    def to_dict(self) -> dict[str, Any]:
        return {
            "icon": self.icon,
            "color": self.color,
            "fields": list(self.fields),
            "geometry": list(self.geometry),
            "tags": dict(self.tags),
            "name": self.name,
            "sort": self.sort,
            "terms": list(self.terms),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Preset:
        return cls(
            icon=str(data.get("icon") or ""),
            name=str(data.get("name") or ""),
            color=str(data.get("color") or DEFAULT_COLOR),
            fields=[str(f) for f in data.get("fields") or []],
            sort=int(data.get("sort") or 0),
            terms=[str(t) for t in data.get("terms") or []],
            geometry=list(data.get("geometry") or DEFAULT_GEOMETRY),
            tags=dict(data.get("tags") or {}),
        )


def build_terms(name: str, field_keys: list[str]) -> list[str]:
    """Search terms for a preset: its name plus each field key as words."""
    return [name, *(key.replace("-", " ") for key in field_keys)]


@dataclass(frozen=True)
class Icon:
    """An icon. ``svg`` holds inline markup or a URL (possibly to a PNG)."""

    name: str
    svg: str

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "svg": self.svg}


def generate_version(today: dt.date | None = None) -> str:
    """Version string in ``yy.MM.dd`` form."""
    today = today or dt.date.today()
    return today.strftime("%y.%m.%d")


@dataclass
class Metadata:
    dataset_id: str
    name: str
    version: str = field(default_factory=generate_version)
    extra: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, str]:
        return {
            "dataset_id": self.dataset_id,
            "name": self.name,
            "version": self.version,
            **self.extra,
        }


MessageValue = Union[str, dict[str, str]]


@dataclass(frozen=True)
class TranslationMessage:
    message: MessageValue
    description: str = ""

    def to_dict(self) -> dict[str, Any]:
        message = dict(self.message) if isinstance(self.message, dict) else self.message
        return {"message": message, "description": self.description}


# language code -> dotted key -> message
Messages = dict[str, dict[str, TranslationMessage]]


@dataclass
class Config:
    """Aggregate root handed to the archiver or build API."""

    metadata: Metadata
    fields: list[Field] = field(default_factory=list)
    presets: list[Preset] = field(default_factory=list)
    icons: list[Icon] = field(default_factory=list)
    messages: Messages = field(default_factory=dict)
    package_json: dict[str, Any] | None = None
    primary_language: str = "en"

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"metadata": self.metadata.to_dict()}
        if self.package_json is not None:
            result["packageJson"] = self.package_json
        result["fields"] = [f.to_dict() for f in self.fields]
        result["presets"] = [p.to_dict() for p in self.presets]
        result["icons"] = [i.to_dict() for i in self.icons]
        result["messages"] = {
            lang: {key: msg.to_dict() for key, msg in entries.items()}
            for lang, entries in self.messages.items()
        }
        return result
