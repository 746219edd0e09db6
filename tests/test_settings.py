"""Tests for Settings."""

from __future__ import annotations

import pytest

from presetsheet.settings import Settings


class TestSettings:
    """Tests for environment overrides and validators."""

    def test_environment_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PRESETSHEET_BUILD_MAX_RETRIES", "7")
        monkeypatch.setenv("PRESETSHEET_MISSING_ICON_POLICY", "error")
        settings = Settings()
        assert settings.build_max_retries == 7
        assert settings.missing_icon_policy == "error"

    def test_validators(self) -> None:
        settings = Settings(log_level="debug", build_api_url="https://build.test/")
        assert settings.log_level == "DEBUG"
        assert settings.build_api_url == "https://build.test"
