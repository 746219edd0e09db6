"""Tests for the HTTP and local file transports."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import pytest

from presetsheet.exceptions import APIError, NetworkError
from presetsheet.settings import Settings
from presetsheet.transport import HttpApiTransport, LocalFileTransport


def http_transport(handler: Callable[[httpx.Request], httpx.Response]) -> HttpApiTransport:
    settings = Settings(icon_api_base="https://icons.test/api/", build_api_url="https://build.test")
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpApiTransport(settings, client)


class TestHttpApiTransport:
    """Tests for HttpApiTransport."""

    @pytest.mark.asyncio
    async def test_search_icons(self) -> None:
        seen: list[httpx.URL] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url)
            return httpx.Response(200, json=["https://img.test/a.png", ""])

        transport = http_transport(handler)
        assert await transport.search_icons("river") == ["https://img.test/a.png"]
        assert seen[0].path == "/api/search"
        assert seen[0].params["s"] == "river"
        await transport.close()

    @pytest.mark.asyncio
    async def test_generate_icon_strips_hash(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["color"] == "FF0000"
            return httpx.Response(200, json=[{"svg": "<svg/>"}])

        transport = http_transport(handler)
        assert await transport.generate_icon("https://img.test/a.png", "#FF0000") == "<svg/>"

    @pytest.mark.asyncio
    async def test_error_response_becomes_api_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:  # noqa: ARG001
            return httpx.Response(
                422, json={"message": "Invalid config", "details": {"errors": ["no presets"]}}
            )

        transport = http_transport(handler)
        with pytest.raises(APIError) as exc_info:
            await transport.build({})
        assert exc_info.value.status_code == 422
        assert "Invalid config - no presets" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_connection_failure_becomes_network_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        transport = http_transport(handler)
        with pytest.raises(NetworkError):
            await transport.fetch_languages()

    @pytest.mark.asyncio
    async def test_build_returns_url_or_bytes(self) -> None:
        payloads: list[dict[str, Any]] = []

        def url_handler(request: httpx.Request) -> httpx.Response:
            assert str(request.url) == "https://build.test/build"
            payloads.append(json.loads(request.content))
            return httpx.Response(200, json={"url": "https://build.test/out.comapeocat"})

        result = await http_transport(url_handler).build({"metadata": {"name": "x"}})
        assert result.url == "https://build.test/out.comapeocat"
        assert payloads == [{"metadata": {"name": "x"}}]

        def zip_handler(request: httpx.Request) -> httpx.Response:  # noqa: ARG001
            return httpx.Response(
                200, content=b"PK\x03\x04zip", headers={"content-type": "application/zip"}
            )

        result = await http_transport(zip_handler).build({})
        assert result.content == b"PK\x03\x04zip"
        assert result.url is None


class TestLocalFileTransport:
    """Tests for LocalFileTransport."""

    @pytest.mark.asyncio
    async def test_reads_golden_files(self, golden: Callable[[dict[str, Any]], Path]) -> None:
        transport = LocalFileTransport(
            golden(
                {
                    "languages.json": {"xx": {"englishName": "Exish"}},
                    "icons/search/water-point.json": ["https://img.test/w.png"],
                    "icons/generate.json": {"https://img.test/w.png": "<svg/>"},
                    "build.json": {"url": "https://build.test/x"},
                }
            )
        )

        assert await transport.fetch_languages() == {"xx": {"englishName": "Exish"}}
        assert await transport.search_icons("Water point") == ["https://img.test/w.png"]
        assert await transport.search_icons("missing") == []
        assert await transport.generate_icon("https://img.test/w.png", "#000") == "<svg/>"
        assert (await transport.build({"a": 1})).url == "https://build.test/x"
        assert transport.build_payloads == [{"a": 1}]
        assert transport.calls[0] == ("fetch_languages",)

    @pytest.mark.asyncio
    async def test_missing_files(self, tmp_path: Path) -> None:
        transport = LocalFileTransport(tmp_path)
        with pytest.raises(NetworkError):
            await transport.fetch_languages()
        with pytest.raises(APIError):
            await transport.build({})
