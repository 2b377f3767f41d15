"""HTTP execution collaborator backed by :mod:`httpx`."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any

import httpx

from ..editor.request_model import Cookie, HTTPRequest, HTTPResponse
from ..errors import RequestExecutionError
from .settings import Settings

__all__ = ["HttpExecutor"]

LOGGER = logging.getLogger(__name__)


class HttpExecutor:
    """Send :class:`HTTPRequest` payloads and capture the response.

    One :class:`httpx.AsyncClient` is created lazily and reused; call
    :meth:`aclose` when shutting down.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings or Settings()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def settings(self) -> Settings:
        return self._settings

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._settings.request_timeout,
                follow_redirects=self._settings.follow_redirects,
                verify=self._settings.verify_tls,
                headers=dict(self._settings.default_headers),
                transport=self._transport,
            )
        return self._client

    async def execute(self, request: HTTPRequest) -> HTTPResponse:
        """Send ``request``.

        Raises:
            RequestExecutionError: When the transport fails before any
                response arrives. HTTP error statuses are returned normally.
        """

        client = self._get_client()
        started = time.perf_counter()
        try:
            response = await client.request(
                request.method,
                _merge_query(request.url, request.query),
                headers=request.headers,
                content=request.body.encode("utf-8") if request.body else None,
            )
        except httpx.InvalidURL as exc:
            raise RequestExecutionError(
                message=f"Invalid URL: {request.url}",
                details={"url": request.url, "reason": str(exc)},
            ) from exc
        except httpx.HTTPError as exc:
            LOGGER.debug("%s %s failed: %s", request.method, request.url, exc)
            raise RequestExecutionError(
                message=f"Failed to execute request: {exc}",
                details={"url": request.url, "method": request.method, "type": type(exc).__name__},
            ) from exc
        duration = int((time.perf_counter() - started) * 1_000_000)

        content = response.content
        LOGGER.debug(
            "%s %s -> %s (%d bytes, %dus)",
            request.method,
            request.url,
            response.status_code,
            len(content),
            duration,
        )
        return HTTPResponse(
            status_code=response.status_code,
            status=f"{response.status_code} {response.reason_phrase}".strip(),
            headers=_collect_headers(response.headers),
            cookies=_collect_cookies(response),
            body=response.text,
            size=len(content),
            duration=duration,
        )

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def _merge_query(url: str, query: dict[str, str]) -> httpx.URL:
    """Append ``query`` to the parameters already present in ``url``."""

    merged = httpx.URL(url)
    for key, value in query.items():
        merged = merged.copy_add_param(key, value)
    return merged


def _collect_headers(headers: httpx.Headers) -> dict[str, list[str]]:
    collected: dict[str, list[str]] = {}
    for name, value in headers.multi_items():
        collected.setdefault(_canonical_header(name), []).append(value)
    return collected


def _canonical_header(name: str) -> str:
    return "-".join(part.capitalize() for part in name.split("-"))


def _collect_cookies(response: httpx.Response) -> list[Cookie]:
    cookies: list[Cookie] = []
    for item in response.cookies.jar:
        cookies.append(
            Cookie(
                name=item.name,
                value=item.value or "",
                domain=item.domain or "",
                path=item.path or "",
                expires=_format_expiry(item.expires),
                secure=bool(item.secure),
                http_only=_is_http_only(item),
            )
        )
    return cookies


def _is_http_only(item: Any) -> bool:
    has_attr = getattr(item, "has_nonstandard_attr", None)
    if has_attr is None:
        return False
    return bool(has_attr("HttpOnly") or has_attr("httponly"))


def _format_expiry(expires: int | None) -> str | None:
    if expires is None:
        return None
    return datetime.fromtimestamp(expires, tz=timezone.utc).isoformat()
