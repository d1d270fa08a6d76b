"""Exception hierarchy for declient.

``ApiError`` is the single failure type that crosses the transport seam:
it carries the server response when there was one, and ``status == 0``
when the request never got an answer (connection refused, DNS, timeout).
Configuration problems are raised at composition time, before any
request is sent.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from declient.models.response import ApiResponse, RequestContext


class DeclientError(Exception):
    """Base exception for all declient errors."""


class ApiError(DeclientError):
    """Raised when a request fails, with or without a server response.

    Attributes:
        message:  Human-readable failure description.
        response: The (possibly interceptor-modified) response, or ``None``
                  when no response was received.
        code:     Machine-readable transport code (e.g. ``ConnectError``).
        request:  The ``RequestContext`` that was sent.
    """

    def __init__(
        self,
        message: str,
        *,
        response: ApiResponse | None = None,
        code: str | None = None,
        request: RequestContext | None = None,
    ) -> None:
        self.message = message
        self.response = response
        self.code = code
        self.request = request
        super().__init__(message)

    @property
    def status(self) -> int:
        """HTTP status of the response, ``0`` if none was received."""
        return self.response.status if self.response is not None else 0

    @property
    def data(self) -> Any:
        return self.response.data if self.response is not None else None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status={self.status}, message={self.message!r})"


class CircuitOpenError(ApiError):
    """Raised when the circuit breaker rejects a call without sending it.

    Attributes:
        service_name: Name of the service whose circuit is open.
        retry_after:  Seconds until the circuit admits a trial call.
    """

    def __init__(self, service_name: str, retry_after: float) -> None:
        self.service_name = service_name
        self.retry_after = max(0.0, retry_after)
        super().__init__(
            f"Circuit open for '{service_name}', retry after {self.retry_after:.1f}s",
            code="CIRCUIT_OPEN",
        )


class ConfigurationError(DeclientError):
    """Raised when a policy or service configuration is malformed."""


class BindingError(ConfigurationError):
    """Raised when a service declaration cannot be turned into descriptors.

    Attributes:
        method_name: Qualified name of the offending method.
    """

    def __init__(self, method_name: str, detail: str) -> None:
        self.method_name = method_name
        self.detail = detail
        super().__init__(f"Invalid binding on {method_name}: {detail}")
