"""
Icon resolution for presets.

A preset's icon comes from, in order: a hosted asset already in its icon
cell, an image embedded in that cell (recolored through the icon API), or
an icon API search on the preset's name. Generated icons are written back
to the sheet so later runs reuse them.
"""

from __future__ import annotations

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from presetsheet.cells import CellValue, ImageRef, Text
from presetsheet.exceptions import TransportError
from presetsheet.logging import OperationLog, ensure_log
from presetsheet.models import Icon, Preset
from presetsheet.progress import ProgressReporter
from presetsheet.settings import Settings, get_settings
from presetsheet.sheets import CATEGORIES, CategoryCol, SheetGrid, Workbook, data_row_indexes
from presetsheet.transport import ApiTransport

DRIVE_URL_PREFIX = "https://drive.google.com"
HOSTED_PREFIXES = (DRIVE_URL_PREFIX, "https://", "http://", "file:", "data:image/")
FALLBACK_TERM = "marker"


class IconNotFound(Exception):
    """No search term produced an image."""


def is_hosted_asset(text: str) -> bool:
    """True for cell text that already points at (or is) an icon."""
    stripped = text.strip()
    return stripped.startswith(HOSTED_PREFIXES) or stripped.startswith("<svg")


def search_terms(name: str, hint: str = "") -> list[str]:
    """Search terms for a preset name, most specific first."""
    candidates = [hint, name, *name.split(" "), *name.split("-"), FALLBACK_TERM]
    terms: list[str] = []
    for term in candidates:
        term = term.strip()
        if term and term not in terms:
            terms.append(term)
    return terms


class IconResolver:
    """Resolves icons, never raising for network problems."""

    def __init__(
        self,
        transport: ApiTransport,
        settings: Settings | None = None,
        log: OperationLog | None = None,
    ) -> None:
        self._transport = transport
        self._settings = settings or get_settings()
        self.log = ensure_log(log)

    async def _search_term(self, term: str) -> str | None:
        """Up to ``icon_search_attempts`` immediate tries for one term.

        Only failed requests are retried; an empty result is final.
        """
        for attempt in range(1, self._settings.icon_search_attempts + 1):
            try:
                results = await self._transport.search_icons(term)
            except (TransportError, ValueError) as e:
                self.log.debug(f'Icon search for "{term}" failed (attempt {attempt}): {e}')
                continue
            return results[0] if results else None
        return None

    async def _search_once(self, terms: list[str]) -> str:
        for term in terms:
            image_url = await self._search_term(term)
            if image_url:
                self.log.debug(f'Icon search matched term "{term}"')
                return image_url
        raise IconNotFound(", ".join(terms))

    async def find_image(self, name: str, hint: str = "") -> str | None:
        """Search for an image URL, retrying the whole term list with backoff."""
        terms = search_terms(name, hint)
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(IconNotFound),
                stop=stop_after_attempt(max(1, self._settings.icon_search_rounds)),
                wait=wait_exponential(
                    multiplier=self._settings.retry_base_delay,
                    min=0,
                    max=self._settings.retry_max_delay,
                ),
                reraise=True,
            ):
                with attempt:
                    return await self._search_once(terms)
        except IconNotFound:
            self.log.warning(f'No icon found for "{name}" (tried: {", ".join(terms)})')
        return None

    async def generate(self, image_url: str, color: str) -> str | None:
        try:
            return await self._transport.generate_icon(image_url, color)
        except (TransportError, ValueError) as e:
            self.log.warning(f"Icon generation failed for {image_url}: {e}")
            return None

    async def _search_and_generate(self, preset: Preset, hint: str = "") -> str | None:
        image_url = await self.find_image(preset.name, hint)
        if image_url is None:
            return None
        return await self.generate(image_url, preset.color)

    async def resolve(self, preset: Preset, source: CellValue) -> tuple[Icon | None, bool]:
        """Resolve one preset's icon.

        Returns:
            The icon (None when none could be produced) and whether it was
            newly generated and should be cached in the sheet.
        """
        if isinstance(source, Text) and is_hosted_asset(source.value):
            return Icon(preset.icon, source.value.strip()), False

        svg: str | None = None
        if isinstance(source, ImageRef):
            svg = await self.generate(source.url, preset.color)
            if svg is None:
                self.log.info(
                    f'Cell image for "{preset.name}" could not be used, searching instead'
                )

        if svg is None:
            hint = source.text if isinstance(source, Text) else ""
            svg = await self._search_and_generate(preset, hint)

        if svg is None:
            self.log.warning(f'Preset "{preset.name}" will be exported without an icon')
            return None, False
        return Icon(preset.icon, svg), True

    async def resolve_all(
        self,
        presets: list[Preset],
        grid: SheetGrid,
        workbook: Workbook | None = None,
        progress: ProgressReporter | None = None,
        percent_range: tuple[int, int] = (0, 100),
    ) -> list[Icon]:
        """Resolve icons for every preset, caching generated ones in the sheet.

        ``presets`` must be in Categories row order, one per non-blank row.
        Progress is reported once per preset, scaled into ``percent_range``.
        """
        start, end = percent_range
        icons: list[Icon] = []
        seen: set[str] = set()
        total = len(presets) or 1
        rows = data_row_indexes(grid)
        for n, preset in enumerate(presets):
            index = rows[n] if n < len(rows) else n
            icon, generated = await self.resolve(preset, grid.cell(index, CategoryCol.ICON))
            if icon is not None:
                if generated and workbook is not None:
                    workbook.set_cell(CATEGORIES, index + 1, CategoryCol.ICON, icon.svg)
                if icon.name not in seen:
                    seen.add(icon.name)
                    icons.append(icon)
            if progress is not None:
                percent = start + (n + 1) * (end - start) // total
                progress.report("icons", percent, preset.name)
        self.log.info(f"Resolved {len(icons)} icon(s) for {len(presets)} preset(s)")
        return icons


def icons_from_cells(
    presets: list[Preset], grid: SheetGrid, log: OperationLog | None = None
) -> list[Icon]:
    """Icons already present in the Categories sheet, without any network calls."""
    log = ensure_log(log)
    icons: list[Icon] = []
    seen: set[str] = set()
    rows = data_row_indexes(grid)
    for n, preset in enumerate(presets):
        index = rows[n] if n < len(rows) else n
        cell = grid.cell(index, CategoryCol.ICON)
        if isinstance(cell, Text) and is_hosted_asset(cell.value):
            if preset.icon not in seen:
                seen.add(preset.icon)
                icons.append(Icon(preset.icon, cell.value.strip()))
        else:
            log.debug(f'Preset "{preset.name}" has no stored icon')
    return icons
