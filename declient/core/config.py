"""Settings and per-service configuration.

``Settings`` holds process-wide defaults loaded from environment variables
with the ``DECLIENT_`` prefix.  ``ServiceConfig`` is what a caller passes
to ``create_api_service`` for one service.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings

from declient.models.policy import CircuitBreakerPolicy, ResiliencePolicy, RetryPolicy

# A static token, or a (possibly async) supplier returning a token or None.
Authorization = str | Callable[[], Any]
ResponseInterceptorFn = Callable[[Any], Any]


class Settings(BaseSettings):
    """Library-wide defaults.

    All fields can be overridden by environment variables prefixed with
    ``DECLIENT_``.  For example, ``DECLIENT_RETRY_ATTEMPTS=5`` raises the
    default retry budget.
    """

    # ── Transport ───────────────────────────────────────────────────
    DEFAULT_TIMEOUT: float = 30.0  # Seconds, enforced by the transport
    USER_AGENT: str = "declient/0.1.0"

    # ── Retry ───────────────────────────────────────────────────────
    RETRY_ATTEMPTS: int = 3  # Retries after the first attempt
    RETRY_BASE_DELAY: float = 0.1  # Seconds
    RETRY_MAX_DELAY: float = 2.0  # Seconds
    RETRY_EXPONENTIAL_BACKOFF: bool = True
    RETRY_ON_NETWORK_ERROR: bool = True

    # ── Circuit breaker ─────────────────────────────────────────────
    CIRCUIT_BREAKER_ENABLED: bool = True
    CIRCUIT_BREAKER_THRESHOLD: int = 5  # Failures in window before OPEN
    CIRCUIT_BREAKER_WINDOW_SECONDS: float = 60.0
    CIRCUIT_BREAKER_RECOVERY_SECONDS: float = 30.0  # Seconds before HALF_OPEN trial
    CIRCUIT_BREAKER_MINIMUM_REQUESTS: int = 10

    model_config = {
        "env_prefix": "DECLIENT_",
    }


def default_resilience_policy(settings: Settings | None = None) -> ResiliencePolicy:
    """Build the default ``ResiliencePolicy`` from *settings*."""
    settings = settings or Settings()
    return ResiliencePolicy(
        retry=RetryPolicy(
            retries=settings.RETRY_ATTEMPTS,
            retry_delay=settings.RETRY_BASE_DELAY,
            retry_delay_max=settings.RETRY_MAX_DELAY,
            exponential_backoff=settings.RETRY_EXPONENTIAL_BACKOFF,
            retry_on_network_error=settings.RETRY_ON_NETWORK_ERROR,
        ),
        circuit_breaker=CircuitBreakerPolicy(
            enabled=settings.CIRCUIT_BREAKER_ENABLED,
            threshold=settings.CIRCUIT_BREAKER_THRESHOLD,
            window=settings.CIRCUIT_BREAKER_WINDOW_SECONDS,
            timeout=settings.CIRCUIT_BREAKER_RECOVERY_SECONDS,
            minimum_requests=settings.CIRCUIT_BREAKER_MINIMUM_REQUESTS,
        ),
    )


class AuthorizationType(str, Enum):
    """How an authorization token is rendered into the header."""

    BEARER = "Bearer"
    BASIC = "Basic"
    CUSTOM = "Custom"


class ServiceConfig(BaseModel):
    """Configuration for one generated service.

    Attributes:
        base_url:              Origin and optional prefix for every path.
        headers:               Static headers sent with every request.
        authorization:         Token string or a sync/async token supplier.
        authorization_type:    Header scheme for the token.
        resilience:            Policy, ``False`` to disable, ``None`` for the
                               ``Settings`` defaults.
        response_interceptors: Service-wide interceptors, run before
                               method-level ones.
        timeout:               Transport timeout in seconds; ``None`` uses
                               ``Settings.DEFAULT_TIMEOUT``.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    base_url: str
    headers: dict[str, str] = Field(default_factory=dict)
    authorization: Authorization | None = None
    authorization_type: AuthorizationType = AuthorizationType.BEARER
    resilience: ResiliencePolicy | Literal[False] | None = None
    response_interceptors: list[ResponseInterceptorFn] = Field(default_factory=list)
    timeout: float | None = Field(default=None, gt=0.0)
