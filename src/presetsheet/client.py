"""ConfigClient - Main API for presetsheet.

Provides the `export` and `import_archive` methods that move a category
configuration between a spreadsheet workbook and a configuration archive.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from pathlib import Path

from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    stop_after_delay,
    wait_exponential,
)

from presetsheet.archive import archive_name, write_archive
from presetsheet.exceptions import BuildError, PresetSheetError, TransportError
from presetsheet.extract import extract_fields, extract_presets
from presetsheet.icons import IconResolver, icons_from_cells
from presetsheet.importer import ImportResult, import_archive
from presetsheet.languages import LanguageCatalogCache, LanguageResolver, default_resolver
from presetsheet.logging import LogSink, OperationLog, ensure_log, setup_logging
from presetsheet.metadata import build_package_json, touch_metadata
from presetsheet.models import Config
from presetsheet.progress import ProgressCallback, ProgressReporter
from presetsheet.settings import Settings, get_settings
from presetsheet.sheets import (
    CATEGORIES,
    DETAILS,
    TRANSLATION_SHEETS,
    Workbook,
    data_row_indexes,
    read_sheet,
)
from presetsheet.transport import ApiTransport
from presetsheet.translations import map_translations
from presetsheet.validation import validate_config, validate_inputs
from presetsheet.writer import add_languages, clean_whitespace_cells

__all__ = ["ConfigClient", "ExportResult"]


@dataclass
class ExportResult:
    """Result of an export."""

    config: Config
    archive_path: Path | None = None
    build_url: str | None = None
    warnings: list[str] = field(default_factory=list)


class ConfigClient:
    """Client for exporting and importing category configurations.

    Example:
        >>> workbook = JsonWorkbook(Path("animals.json"))
        >>> client = ConfigClient(workbook, HttpApiTransport())
        >>> result = await client.export("./dist")
        >>> print(result.archive_path)
    """

    def __init__(
        self,
        workbook: Workbook,
        transport: ApiTransport | None = None,
        settings: Settings | None = None,
        progress_callback: ProgressCallback | None = None,
        log_sink: LogSink | None = None,
        configure_logging: bool = False,
    ) -> None:
        """Initialize the client.

        Args:
            workbook: The spreadsheet holding the configuration
            transport: Remote APIs for languages, icons and builds. Without one
                the export works offline with the bundled language list and
                the icons already stored in the sheet.
            settings: Defaults to :func:`get_settings`
            progress_callback: Receives throttled progress updates
            log_sink: Receives buffered warnings and errors
            configure_logging: Replace loguru's handlers using the
                ``json_logs`` and ``log_level`` settings. Meant for applications;
                libraries embedding the client leave it off.
        """
        self.workbook = workbook
        self._transport = transport
        self._settings = settings or get_settings()
        if configure_logging:
            setup_logging(self._settings.json_logs, self._settings.log_level)
        self._progress_callback = progress_callback
        self._log_sink = log_sink
        self._languages = LanguageCatalogCache(self._settings.languages_cache_ttl)

    def _operation(self, name: str) -> OperationLog:
        return OperationLog(name, self._log_sink, self._settings.log_flush_threshold)

    def _progress(self) -> ProgressReporter:
        return ProgressReporter(self._progress_callback, self._settings.progress_interval)

    async def _resolver(self, log: OperationLog) -> LanguageResolver:
        if self._transport is None:
            return default_resolver()
        return await self._languages.resolver(self._transport, log)

    async def export(
        self,
        output_dir: str | Path | None = None,
        *,
        build: bool = False,
        today: dt.date | None = None,
    ) -> ExportResult:
        """Export the workbook's configuration.

        Args:
            output_dir: Directory for the archive; no archive is written when None
            build: Also send the configuration to the build API
            today: Date used for the version stamp (default: today)

        Returns:
            ExportResult with the assembled configuration and any outputs

        Raises:
            ValidationError: if the sheets or the assembled configuration are invalid
            BuildError: if the build upload exhausted its retries
        """
        progress = self._progress()
        with self._operation("export") as log:
            progress.report("validate", 5)
            resolver = await self._resolver(log)
            inputs = validate_inputs(self.workbook, resolver)
            inputs.report(log)
            inputs.raise_for_blocks("Spreadsheet is not ready for export")
            cleared = clean_whitespace_cells(self.workbook)
            if cleared:
                log.info(f"Cleared {cleared} whitespace-only cell(s)")

            categories = read_sheet(self.workbook, CATEGORIES)
            primary = resolver.primary_language(
                categories.headers[0] if categories.headers else None
            )
            metadata = touch_metadata(self.workbook, today)

            progress.report("extract", 15)
            details = read_sheet(self.workbook, DETAILS)
            fields = extract_fields(details, log)
            presets = extract_presets(categories, fields, log)
            log.info(f"Extracted {len(fields)} fields and {len(presets)} categories")

            progress.report("icons", 30)
            if self._transport is not None:
                icon_resolver = IconResolver(self._transport, self._settings, log)
                icons = await icon_resolver.resolve_all(
                    presets, categories, self.workbook, progress, percent_range=(30, 60)
                )
            else:
                icons = icons_from_cells(presets, categories, log)

            progress.report("translations", 60)
            translation_grids = {
                name: read_sheet(self.workbook, name)
                for name in TRANSLATION_SHEETS
                if self.workbook.has_sheet(name)
            }
            messages = map_translations(
                translation_grids,
                fields,
                presets,
                resolver,
                primary,
                log,
                field_rows=data_row_indexes(details),
                preset_rows=data_row_indexes(categories),
            )

            config = Config(
                metadata=metadata,
                fields=fields,
                presets=presets,
                icons=icons,
                messages=messages,
                package_json=build_package_json(metadata, primary),
                primary_language=primary,
            )

            progress.report("validate", 75)
            result = validate_config(config, self._settings.missing_icon_policy)
            result.report(log)
            result.raise_for_blocks("Exported configuration is invalid")

            export = ExportResult(config=config, warnings=inputs.warnings + result.warnings)
            if output_dir is not None:
                path = Path(output_dir) / archive_name(config)
                export.archive_path = write_archive(config, path)
                log.info(f"Wrote {export.archive_path}")

            if build:
                progress.report("build", 85)
                url, path = await self.upload(config, output_dir, log)
                export.build_url = url
                if path is not None:
                    export.archive_path = path

            progress.report("done", 100)
            return export

    async def upload(
        self,
        config: Config,
        output_dir: str | Path | None = None,
        log: OperationLog | None = None,
    ) -> tuple[str | None, Path | None]:
        """Send ``config`` to the build API, retrying transport failures.

        Returns:
            (url, path): the download URL, or the path where a returned
            archive was saved (the working directory when ``output_dir`` is None)

        Raises:
            BuildError: once the retry attempts or the total timeout are used up
        """
        if self._transport is None:
            raise PresetSheetError("No transport configured for the build API")
        log = ensure_log(log, "build")
        settings = self._settings
        payload = config.to_dict()
        attempts = 0
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(TransportError),
                stop=stop_after_attempt(settings.build_max_retries + 1)
                | stop_after_delay(settings.build_timeout),
                wait=wait_exponential(
                    multiplier=settings.retry_base_delay, max=settings.retry_max_delay
                ),
            ):
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    if attempts > 1:
                        log.warning(f"Retrying build upload (attempt {attempts})")
                    result = await self._transport.build(payload)
        except RetryError as e:
            last = e.last_attempt.exception()
            log.exception(f"Build upload failed after {attempts} attempt(s): {last}", last)
            raise BuildError(attempts, last) from last

        if result.content is not None:
            path = Path(output_dir or ".") / archive_name(config)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(result.content)
            log.info(f"Saved built archive to {path}")
            return None, path
        log.info(f"Build available at {result.url}")
        return result.url, None

    async def import_archive(
        self,
        source: bytes | str | Path,
        output_dir: str | Path | None = None,
    ) -> ImportResult:
        """Import an archive or JSON configuration into the workbook.

        Args:
            source: Archive bytes or a path to an archive or JSON file
            output_dir: Where icon files are written; icons are inlined when None

        Raises:
            FormatError: if the source cannot be read
            ValidationError: if the imported configuration is invalid
        """
        if isinstance(source, str):
            source = Path(source)
        progress = self._progress()
        with self._operation("import") as log:
            resolver = await self._resolver(log)
            return import_archive(
                source,
                self.workbook,
                Path(output_dir) if output_dir is not None else None,
                self._settings.missing_icon_policy,
                resolver,
                log,
                progress,
            )

    async def add_languages(self, languages: list[str]) -> list[str]:
        """Add translation columns for ``languages`` (codes or names).

        Translation sheets that do not exist yet are created from the
        Categories and Details sheets.

        Returns:
            Codes of the languages that were added
        """
        with self._operation("languages") as log:
            resolver = await self._resolver(log)
            return add_languages(self.workbook, languages, resolver, log)

    async def close(self) -> None:
        if self._transport is not None:
            await self._transport.close()
