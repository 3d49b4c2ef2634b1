"""Async client for the Mosaic registry HTTP API.

Endpoints consumed:

- ``GET /packages/{name}``: latest version and deprecation notice
- ``GET /packages/{name}/versions``: published versions with their
  dependency maps and archive locations
- ``GET {lua_source_url}``: the archive bytes (relative URLs are resolved
  against the registry base)
- ``GET /packages/search?q=``: free-text search
"""

from __future__ import annotations

import asyncio
import json
import logging
import urllib.parse
from typing import Any, Dict, List, Optional, Tuple

import aiohttp

from common.logging_utils import Timer, extra_context, is_debug_enabled, safe_url
from constants import Constants
from errors import PackageNotFoundError, RegistryError, VersionNotFoundError
from versioning.models import PackageInfo, VersionInfo

logger = logging.getLogger(__name__)


def _error_message(body: bytes) -> str:
    """Pull ``{"error": ...}`` out of a response body, else return the text."""
    text = body.decode("utf-8", errors="replace").strip()
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return text
    if isinstance(data, dict) and isinstance(data.get("error"), str):
        return data["error"]
    return text


class RegistryClient:
    """Client for registry metadata and archive downloads."""

    def __init__(
        self,
        base_url: str = Constants.REGISTRY_URL,
        timeout: int = Constants.REQUEST_TIMEOUT,
        session: Optional[Any] = None,
    ):
        """Initialize the registry client.

        Args:
            base_url: Registry API root, e.g. ``https://api.getmosaic.run``.
            timeout: Total request timeout in seconds.
            session: Pre-built session (tests); the client does not close it.
        """
        self.base_url = base_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    async def start(self) -> None:
        """Start the HTTP session."""
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=self._timeout,
                headers={"User-Agent": Constants.USER_AGENT},
            )
            self._owns_session = True

    async def stop(self) -> None:
        """Stop the HTTP session."""
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> "RegistryClient":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()

    # -- URL building ------------------------------------------------------

    def package_url(self, name: str) -> str:
        return f"{self.base_url}/packages/{urllib.parse.quote(name, safe='')}"

    def versions_url(self, name: str) -> str:
        return f"{self.package_url(name)}/versions"

    def search_url(self, query: str) -> str:
        return f"{self.base_url}/packages/search?{urllib.parse.urlencode({'q': query})}"

    def resolve_url(self, source_url: str) -> str:
        """Join a possibly relative archive location onto the registry base."""
        parsed = urllib.parse.urlparse(source_url)
        if parsed.scheme in ("http", "https"):
            return source_url
        path = source_url if source_url.startswith("/") else f"/{source_url}"
        return f"{self.base_url}{path}"

    # -- transport ---------------------------------------------------------

    async def _get(self, url: str, *, context: str) -> Tuple[int, bytes]:
        """GET ``url`` and return (status, body).

        Raises:
            RegistryError: connection failures and timeouts.
        """
        if self._session is None:
            await self.start()
        assert self._session is not None

        safe_target = safe_url(url)
        if is_debug_enabled(logger):
            logger.debug(
                "HTTP request",
                extra=extra_context(
                    event="http_request",
                    component="registry_client",
                    action="GET",
                    target=safe_target,
                    context=context,
                ),
            )
        with Timer() as t:
            try:
                async with self._session.get(url) as response:
                    status = response.status
                    body = await response.read()
            except asyncio.TimeoutError as exc:
                raise RegistryError(
                    f"{context}: request to {safe_target} timed out", url=safe_target
                ) from exc
            except aiohttp.ClientError as exc:
                raise RegistryError(
                    f"{context}: connection error for {safe_target}: {exc}", url=safe_target
                ) from exc

        if is_debug_enabled(logger):
            logger.debug(
                "HTTP response",
                extra=extra_context(
                    event="http_response",
                    component="registry_client",
                    action="GET",
                    status_code=status,
                    duration_ms=t.duration_ms(),
                    target=safe_target,
                    context=context,
                ),
            )
        return status, body

    async def _get_json(self, url: str, *, context: str, package: Optional[str] = None) -> Any:
        status, body = await self._get(url, context=context)
        if status == 404 and package is not None:
            raise PackageNotFoundError(package)
        if status < 200 or status >= 300:
            raise RegistryError(
                f"{context} failed ({status}): {_error_message(body)}",
                status=status,
                url=safe_url(url),
            )
        try:
            return json.loads(body)
        except json.JSONDecodeError as exc:
            raise RegistryError(
                f"{context}: registry returned invalid JSON", status=status, url=safe_url(url)
            ) from exc

    # -- API ---------------------------------------------------------------

    async def get_package(self, name: str) -> PackageInfo:
        """Fetch package metadata including the latest version.

        Raises:
            PackageNotFoundError: the registry answered 404.
            RegistryError: any other failure.
        """
        data = await self._get_json(self.package_url(name), context=f"lookup {name}", package=name)
        if not isinstance(data, dict) or not data.get("version"):
            raise RegistryError(f"lookup {name}: response has no version", url=self.package_url(name))
        return PackageInfo(
            name=str(data.get("name") or name),
            version=str(data["version"]),
            deprecated=bool(data.get("deprecated") or False),
            deprecation_reason=data.get("deprecation_reason"),
            description=str(data.get("description") or ""),
            author=str(data.get("author") or ""),
        )

    async def list_versions(self, name: str) -> List[VersionInfo]:
        """Fetch every published version of ``name``."""
        data = await self._get_json(self.versions_url(name), context=f"versions {name}", package=name)
        if not isinstance(data, list):
            raise RegistryError(f"versions {name}: expected a list", url=self.versions_url(name))
        versions: List[VersionInfo] = []
        for item in data:
            if not isinstance(item, dict) or "version" not in item:
                continue
            deps: Dict[str, str] = {
                str(k): str(v) for k, v in (item.get("dependencies") or {}).items()
            }
            versions.append(
                VersionInfo(
                    version=str(item["version"]),
                    lua_source_url=item.get("lua_source_url"),
                    dependencies=deps,
                )
            )
        return versions

    async def get_version(self, name: str, version: str) -> VersionInfo:
        """Return metadata for one exact version.

        Raises:
            VersionNotFoundError: the package exists but not at ``version``.
        """
        for info in await self.list_versions(name):
            if info.version == version:
                return info
        raise VersionNotFoundError(name, version)

    async def download(self, url: str, *, package: str) -> bytes:
        """Download an archive blob."""
        target = self.resolve_url(url)
        status, body = await self._get(target, context=f"download {package}")
        if status < 200 or status >= 300:
            raise RegistryError(
                f"download {package} failed ({status}): {_error_message(body)}",
                status=status,
                url=safe_url(target),
            )
        return body

    async def search(self, query: str) -> List[PackageInfo]:
        data = await self._get_json(self.search_url(query), context=f"search '{query}'")
        results: List[PackageInfo] = []
        for item in data if isinstance(data, list) else []:
            if not isinstance(item, dict):
                continue
            results.append(
                PackageInfo(
                    name=str(item.get("name", "unknown")),
                    version=str(item.get("version", "0.0.0")),
                    deprecated=bool(item.get("deprecated") or False),
                    deprecation_reason=item.get("deprecation_reason"),
                    description=str(item.get("description") or ""),
                    author=str(item.get("author") or ""),
                )
            )
        return results
