"""Request and response records that flow through the dispatch pipeline."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any

import httpx

from declient.core.errors import ApiError


def status_text(status_code: int) -> str:
    """Return the standard reason phrase for *status_code*, or ``Unknown``."""
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Unknown"


@dataclass
class RequestContext:
    """Concrete request resolved from a method call.

    Attributes:
        method:       HTTP verb (``GET``, ``POST``, ...).
        url:          Path relative to the service base URL, placeholders
                      substituted.
        query_params: Query string entries.
        body:         Request payload, ``None`` for no body.
        headers:      Outgoing headers, static ones merged in.
    """

    method: str
    url: str
    query_params: dict[str, Any] = field(default_factory=dict)
    body: Any = None
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class ApiResponse:
    """A response as seen by interceptors and handlers.

    Status ``0`` is reserved for "no response received"; see
    :meth:`network_failure`.  Interceptors may mutate instances in place
    or return a replacement.
    """

    status: int
    data: Any = None
    status_text: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    request: RequestContext | None = None

    # ── Constructors ─────────────────────────────────────────────────

    @classmethod
    def from_httpx(cls, response: httpx.Response, request: RequestContext | None = None) -> ApiResponse:
        """Wrap an ``httpx.Response``, decoding JSON bodies."""
        return cls(
            status=response.status_code,
            data=_decode_body(response),
            status_text=response.reason_phrase,
            headers=dict(response.headers),
            request=request,
        )

    @classmethod
    def create_success(
        cls, data: Any, status_code: int = 200, request: RequestContext | None = None
    ) -> ApiResponse:
        return cls(status=status_code, data=data, status_text=status_text(status_code), request=request)

    @classmethod
    def create_error(
        cls, data: Any, status_code: int = 500, request: RequestContext | None = None
    ) -> ApiResponse:
        return cls(status=status_code, data=data, status_text=status_text(status_code), request=request)

    @classmethod
    def network_failure(
        cls, message: str | None, code: str | None, request: RequestContext | None = None
    ) -> ApiResponse:
        """Synthetic status-0 response standing in for a missing one."""
        return cls(
            status=0,
            data=message or "Network Error",
            status_text=code or "Network Error",
            request=request,
        )

    # ── Helpers ──────────────────────────────────────────────────────

    def is_success_status_code(self) -> bool:
        return 200 <= self.status < 300

    def ensure_success_status_code(self) -> None:
        """Raise ``ApiError`` if the status is not 2xx."""
        if not self.is_success_status_code():
            raise ApiError(
                f"HTTP {self.status} Error: {self.status_text or 'Request failed'}",
                response=self,
                request=self.request,
            )

    def clone_with_status_code(self, status_code: int) -> ApiResponse:
        """Return a copy with a new status and matching reason phrase."""
        return dataclasses.replace(
            self,
            status=status_code,
            status_text=status_text(status_code),
            headers=dict(self.headers),
        )


def _decode_body(response: httpx.Response) -> Any:
    """JSON for JSON content types, text otherwise, ``None`` when empty."""
    if not response.content:
        return None
    content_type = response.headers.get("content-type", "")
    if "json" in content_type:
        try:
            return response.json()
        except ValueError:
            return response.text
    return response.text
