"""Resilience policy models.

Durations are in seconds.  A sub-policy set to ``False`` is disabled.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

# Predicates and delay functions may be sync or async callables.
RetryPredicate = Callable[[Any, int], Any]
RetryDelayFn = Callable[[int, Any], float]
FailurePredicate = Callable[[Any], bool]


class RetryPolicy(BaseModel):
    """Retry configuration for a single logical call."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    retries: int = Field(default=3, ge=0)
    retry_delay: float = Field(default=0.1, ge=0.0)
    retry_delay_max: float = Field(default=2.0, ge=0.0)
    exponential_backoff: bool | float = True
    retryable_status_codes: frozenset[int] = frozenset({408, 429, 500, 502, 503, 504})
    retry_on_network_error: bool = True
    should_retry: RetryPredicate | None = None
    retry_delay_fn: RetryDelayFn | None = None


class CircuitBreakerPolicy(BaseModel):
    """Circuit breaker configuration, shared by all calls on one service."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    enabled: bool = True
    threshold: int = Field(default=5, ge=1)
    window: float = Field(default=60.0, gt=0.0)
    timeout: float = Field(default=30.0, ge=0.0)
    minimum_requests: int = Field(default=10, ge=0)
    error_status_codes: frozenset[int] = frozenset({500, 502, 503, 504})
    is_failure: FailurePredicate | None = None


class ResiliencePolicy(BaseModel):
    """Retry and circuit breaker policies combined."""

    model_config = ConfigDict(frozen=True)

    retry: RetryPolicy | Literal[False] = Field(default_factory=RetryPolicy)
    circuit_breaker: CircuitBreakerPolicy | Literal[False] = Field(default_factory=CircuitBreakerPolicy)

    @property
    def retry_policy(self) -> RetryPolicy | None:
        return self.retry or None

    @property
    def circuit_breaker_policy(self) -> CircuitBreakerPolicy | None:
        if self.circuit_breaker is False or not self.circuit_breaker.enabled:
            return None
        return self.circuit_breaker
