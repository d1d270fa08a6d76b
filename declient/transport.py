"""Transport seam: one async ``send`` per attempt.

The dispatch pipeline only relies on the ``Transport`` protocol: return an
``ApiResponse`` for 2xx, raise ``ApiError`` otherwise (with the response
when the server answered, without one when it did not).
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Protocol

import httpx

from declient.core.errors import ApiError
from declient.models.response import ApiResponse, RequestContext

logger = logging.getLogger(__name__)


class Transport(Protocol):
    async def send(
        self,
        method: str,
        url: str,
        query_params: Mapping[str, Any],
        body: Any,
        headers: Mapping[str, str],
    ) -> ApiResponse: ...

    async def aclose(self) -> None: ...


class HttpxTransport:
    """``Transport`` backed by a pooled ``httpx.AsyncClient``.

    Args:
        base_url: Origin (and optional prefix) for relative request URLs.
        timeout:  Per-request timeout in seconds.
        client:   Pre-built client, e.g. one using ``httpx.MockTransport``;
                  the transport then does not own it.
    """

    def __init__(
        self,
        base_url: str = "",
        *,
        timeout: float = 30.0,
        headers: Mapping[str, str] | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url
        self.timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, headers=dict(headers or {}))

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

    def _build(self, request: RequestContext) -> httpx.Request:
        kwargs: dict[str, Any] = {
            "params": request.query_params or None,
            "headers": request.headers,
            "timeout": self.timeout,
        }
        if isinstance(request.body, (bytes, str)):
            kwargs["content"] = request.body
        elif request.body is not None:
            kwargs["json"] = request.body
        url = request.url if self._owns_client else self._join(request.url)
        return self._client.build_request(request.method, url, **kwargs)

    def _join(self, url: str) -> str:
        # An injected client may have no base_url of its own.
        if str(self._client.base_url) or "://" in url:
            return url
        return f"{self.base_url.rstrip('/')}/{url.lstrip('/')}"

    async def send(
        self,
        method: str,
        url: str,
        query_params: Mapping[str, Any],
        body: Any,
        headers: Mapping[str, str],
    ) -> ApiResponse:
        """Send one request.

        Raises:
            ApiError: For non-2xx statuses (with ``response``) and for
                      transport failures such as refused connections or
                      timeouts (``response is None``, ``code`` set to the
                      httpx exception name).
        """
        context = RequestContext(
            method=method,
            url=url,
            query_params=dict(query_params),
            body=body,
            headers=dict(headers),
        )
        try:
            raw = await self._client.send(self._build(context))
        except httpx.TransportError as exc:
            raise ApiError(
                str(exc) or "Network Error",
                code=type(exc).__name__,
                request=context,
            ) from exc

        response = ApiResponse.from_httpx(raw, request=context)
        if not response.is_success_status_code():
            raise ApiError(
                f"Request failed with status code {response.status}",
                response=response,
                code=f"HTTP_{response.status}",
                request=context,
            )
        return response

    async def aclose(self) -> None:
        """Close the underlying client if this transport created it."""
        if self._owns_client:
            await self._client.aclose()
