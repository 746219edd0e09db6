"""Transport layer for the remote services used during export.

Three services are involved: the language catalog, the icon search and
generate API, and the build API that turns a configuration into an archive.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import certifi
import httpx

from presetsheet.exceptions import APIError, NetworkError
from presetsheet.settings import Settings, get_settings
from presetsheet.slugs import slugify

ARCHIVE_CONTENT_TYPES = ("application/octet-stream", "application/zip")


@dataclass(frozen=True)
class BuildResult:
    """Outcome of a build call: a hosted URL or the archive bytes."""

    url: str | None = None
    content: bytes | None = None


class ApiTransport(ABC):
    """Abstract transport for the remote services."""

    @abstractmethod
    async def fetch_languages(self) -> dict[str, Any]:
        """Fetch the language catalog.

        Returns:
            Mapping of language code to ``{englishName, nativeName}``.
        """
        pass

    @abstractmethod
    async def search_icons(self, term: str) -> list[str]:
        """Search the icon API.

        Args:
            term: Search term.

        Returns:
            Image URLs, best match first. Empty when nothing matched.
        """
        pass

    @abstractmethod
    async def generate_icon(self, image_url: str, color: str) -> str | None:
        """Recolor an image into an SVG icon.

        Args:
            image_url: Source image URL.
            color: Hex color with or without the leading ``#``.

        Returns:
            The generated SVG (a URL or inline markup), or None.
        """
        pass

    @abstractmethod
    async def build(self, payload: dict[str, Any]) -> BuildResult:
        """Submit an assembled configuration to the build API."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close transport and cleanup resources."""
        pass


class HttpApiTransport(ApiTransport):
    """Production transport over HTTP."""

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            settings: Service URLs and timeouts. Defaults to :func:`get_settings`.
            client: Preconfigured client, mainly for tests.
        """
        self._settings = settings or get_settings()
        self._client = client or httpx.AsyncClient(
            verify=certifi.where(),
            timeout=self._settings.request_timeout,
            follow_redirects=True,
        )

    def _check_response(self, response: httpx.Response, what: str) -> None:
        """Raise APIError for non-2xx responses."""
        if response.is_success:
            return

        try:
            error_data = response.json()
            message = error_data.get("message") or response.text
            details = error_data.get("details") or {}
            if isinstance(details, dict) and details.get("errors"):
                message = f"{message} - {', '.join(map(str, details['errors']))}"
        except (ValueError, AttributeError):
            message = response.text

        raise APIError(response.status_code, f"{what}: {message}")

    async def _get(self, url: str, what: str, **params: str) -> httpx.Response:
        try:
            response = await self._client.get(url, params=params or None)
        except httpx.HTTPError as e:
            raise NetworkError(f"{what} failed: {e}") from e
        self._check_response(response, what)
        return response

    async def fetch_languages(self) -> dict[str, Any]:
        """GET the language catalog JSON."""
        response = await self._get(self._settings.languages_url, "Language catalog")
        return response.json()  # type: ignore[no-any-return]

    async def search_icons(self, term: str) -> list[str]:
        """GET {icon_api_base}/search?s=<term>&l=en"""
        response = await self._get(
            f"{self._settings.icon_api_base}/search", "Icon search", s=term, l="en"
        )
        data = response.json()
        if not isinstance(data, list):
            return []
        return [str(item) for item in data if item]

    async def generate_icon(self, image_url: str, color: str) -> str | None:
        """GET {icon_api_base}/generate?image=<url>&color=<hex>"""
        response = await self._get(
            f"{self._settings.icon_api_base}/generate",
            "Icon generation",
            image=image_url,
            color=color.lstrip("#"),
        )
        data = response.json()
        if isinstance(data, list):
            data = data[0] if data else None
        if isinstance(data, dict):
            svg = data.get("svg")
            return str(svg) if svg else None
        return None

    async def build(self, payload: dict[str, Any]) -> BuildResult:
        """POST {build_api_url}/build"""
        try:
            response = await self._client.post(
                f"{self._settings.build_api_url}/build", json=payload
            )
        except httpx.HTTPError as e:
            raise NetworkError(f"Build request failed: {e}") from e
        self._check_response(response, "Build")

        content_type = response.headers.get("content-type", "")
        if any(t in content_type for t in ARCHIVE_CONTENT_TYPES):
            return BuildResult(content=response.content)

        try:
            data = response.json()
        except ValueError as e:
            raise APIError(response.status_code, "Build API returned an unexpected response") from e
        if isinstance(data, dict) and data.get("url"):
            return BuildResult(url=str(data["url"]))
        message = data.get("message") if isinstance(data, dict) else None
        raise APIError(response.status_code, message or "Build API returned no archive")

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()


class LocalFileTransport(ApiTransport):
    """Testing transport using local golden files.

    Layout under ``golden_dir``::

        languages.json
        icons/search/<slug(term)>.json     JSON array of image URLs
        icons/generate.json                {image_url: svg}
        build.json                         {"url": ...}

    Every call is recorded in ``calls``.
    """

    def __init__(self, golden_dir: Path) -> None:
        self._golden_dir = Path(golden_dir)
        self.calls: list[tuple[str, ...]] = []
        self.build_payloads: list[dict[str, Any]] = []

    def _read(self, *parts: str) -> Any:
        path = self._golden_dir.joinpath(*parts)
        if not path.exists():
            return None
        return json.loads(path.read_text(encoding="utf-8"))

    async def fetch_languages(self) -> dict[str, Any]:
        """Read the catalog from languages.json."""
        self.calls.append(("fetch_languages",))
        data = self._read("languages.json")
        if data is None:
            raise NetworkError(f"Golden file not found: {self._golden_dir / 'languages.json'}")
        return data  # type: ignore[no-any-return]

    async def search_icons(self, term: str) -> list[str]:
        """Read search results for ``term``."""
        self.calls.append(("search_icons", term))
        data = self._read("icons", "search", f"{slugify(term)}.json")
        return [str(u) for u in data] if isinstance(data, list) else []

    async def generate_icon(self, image_url: str, color: str) -> str | None:
        """Look up the generated SVG for ``image_url``."""
        self.calls.append(("generate_icon", image_url, color))
        data = self._read("icons", "generate.json") or {}
        svg = data.get(image_url)
        return str(svg) if svg else None

    async def build(self, payload: dict[str, Any]) -> BuildResult:
        """Record the payload and answer with build.json."""
        self.calls.append(("build",))
        self.build_payloads.append(payload)
        data = self._read("build.json")
        if not data or not data.get("url"):
            raise APIError(404, "No golden build response")
        return BuildResult(url=str(data["url"]))

    async def close(self) -> None:
        """No cleanup needed for local file transport."""
        pass
