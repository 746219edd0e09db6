"""presetsheet - Category configurations maintained in a spreadsheet.

This library turns a workbook of categories, fields and translations into a
CoMapeo-style configuration archive, and imports existing archives back into
the same sheets.
"""

__version__ = "0.1.0"

from presetsheet.client import ConfigClient, ExportResult
from presetsheet.exceptions import (
    APIError,
    BuildError,
    FormatError,
    NetworkError,
    PresetSheetError,
    TransportError,
    UnresolvedReferenceError,
    ValidationError,
)
from presetsheet.importer import ImportResult
from presetsheet.models import Config, Field, Icon, Metadata, Option, Preset
from presetsheet.settings import Settings, get_settings
from presetsheet.sheets import InMemoryWorkbook, JsonWorkbook, Workbook
from presetsheet.transport import ApiTransport, HttpApiTransport, LocalFileTransport

__all__ = [
    "APIError",
    "ApiTransport",
    "BuildError",
    "Config",
    "ConfigClient",
    "ExportResult",
    "Field",
    "FormatError",
    "HttpApiTransport",
    "Icon",
    "ImportResult",
    "InMemoryWorkbook",
    "JsonWorkbook",
    "LocalFileTransport",
    "Metadata",
    "NetworkError",
    "Option",
    "Preset",
    "PresetSheetError",
    "Settings",
    "TransportError",
    "UnresolvedReferenceError",
    "ValidationError",
    "Workbook",
    "__version__",
    "get_settings",
]
