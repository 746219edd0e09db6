"""Tests for logging setup and the per-operation log."""

from __future__ import annotations

import json

import pytest
from loguru import logger

from presetsheet.logging import LogEntry, OperationLog, setup_logging


class TestOperationLog:
    """Tests for OperationLog buffering."""

    def test_warnings_and_errors_are_buffered(self) -> None:
        batches: list[list[LogEntry]] = []
        with OperationLog("export", sink=batches.append) as log:
            log.info("not buffered")
            log.warning("careful")
            log.error("broken")

        assert batches == [[LogEntry("WARNING", "careful"), LogEntry("ERROR", "broken")]]
        assert log.warnings == ["careful"]
        assert log.errors == ["broken"]

    def test_flushes_at_threshold(self) -> None:
        batches: list[list[LogEntry]] = []
        with OperationLog("export", sink=batches.append, flush_threshold=2) as log:
            for i in range(5):
                log.warning(f"w{i} {{braces}} kept")

        assert [len(batch) for batch in batches] == [2, 2, 1]
        assert batches[0][0].message == "w0 {braces} kept"

    def test_failure_is_recorded_and_flushed(self) -> None:
        batches: list[list[LogEntry]] = []
        with pytest.raises(RuntimeError):
            with OperationLog("import", sink=batches.append):
                raise RuntimeError("boom")

        assert batches == [[LogEntry("ERROR", "boom")]]

    def test_exception_keeps_message_only(self) -> None:
        batches: list[list[LogEntry]] = []
        with OperationLog("export", sink=batches.append) as log:
            try:
                raise ValueError("bad payload")
            except ValueError as e:
                log.exception(f"Upload failed: {e}", e)

        assert batches == [[LogEntry("ERROR", "Upload failed: bad payload")]]
        assert log.errors == ["Upload failed: bad payload"]


class TestSetupLogging:
    """Tests for setup_logging()."""

    def test_json_logs(self, capsys: pytest.CaptureFixture[str]) -> None:
        try:
            setup_logging(json_logs=True, log_level="INFO")
            logger.debug("hidden")
            logger.bind(operation="export").info("shown")
            records = [json.loads(line)["record"] for line in capsys.readouterr().err.splitlines()]
        finally:
            logger.remove()

        assert [r["message"] for r in records] == ["shown"]
        assert records[0]["extra"] == {"operation": "export"}

    def test_plain_logs_prefix_operation(self, capsys: pytest.CaptureFixture[str]) -> None:
        try:
            setup_logging(log_level="WARNING")
            logger.info("hidden")
            OperationLog("import").warning("careful")
            err = capsys.readouterr().err
        finally:
            logger.remove()

        assert "hidden" not in err
        assert "[import] " in err
        assert "careful" in err
