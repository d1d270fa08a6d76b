"""Async circuit breaker with a rolling failure window.

Implements the three-phase breaker:

    CLOSED    →  (≥ minimum_requests and ≥ threshold failures in window)  →  OPEN
    OPEN      →  (timeout elapsed)                                      →  HALF_OPEN
    HALF_OPEN →  (trial call succeeds)                                  →  CLOSED
    HALF_OPEN →  (trial call fails)                                     →  OPEN

One ``CircuitBreaker`` is owned by each generated service instance, so a
failing backend never spends the failure budget of an unrelated one.  It
records the final outcome of each logical call, after retries.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from declient.core.errors import ApiError, CircuitOpenError
from declient.models.policy import CircuitBreakerPolicy

logger = logging.getLogger(__name__)


class CircuitPhase(str, Enum):
    """Circuit breaker phases."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitState:
    """Mutable breaker state; ``failure_count`` never exceeds ``request_count``."""

    phase: CircuitPhase = CircuitPhase.CLOSED
    window_start: float = 0.0
    failure_count: int = 0
    request_count: int = 0
    opened_at: float | None = None


class CircuitBreaker:
    """Async-safe circuit breaker for one service instance.

    Args:
        name:   Service name used in logs and ``CircuitOpenError``.
        policy: Thresholds and failure classification.
        clock:  Monotonic time source, in seconds.
    """

    def __init__(
        self,
        name: str,
        policy: CircuitBreakerPolicy | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self.policy = policy or CircuitBreakerPolicy()
        self._clock = clock
        self._state = CircuitState(window_start=clock())
        self._trial: int | None = None
        self._tickets = 0
        self._lock = asyncio.Lock()

        # Metrics
        self.total_calls = 0
        self.total_failures = 0
        self.total_rejections = 0
        self.total_successes = 0

    # ── Public properties ────────────────────────────────────────────

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def phase(self) -> CircuitPhase:
        """Current phase; reports HALF_OPEN once an open circuit's timeout elapsed."""
        if self._state.phase == CircuitPhase.OPEN and self._timeout_elapsed():
            return CircuitPhase.HALF_OPEN
        return self._state.phase

    @property
    def failure_count(self) -> int:
        return self._state.failure_count

    @property
    def request_count(self) -> int:
        return self._state.request_count

    def _timeout_elapsed(self) -> bool:
        opened_at = self._state.opened_at or 0.0
        return self._clock() - opened_at >= self.policy.timeout

    # ── Call gating ──────────────────────────────────────────────────

    async def pre_check(self) -> int | None:
        """Admit or reject a call; must run **before** the transport is touched.

        Returns:
            A trial ticket when the call is the half-open trial, else ``None``.
            Pass it back to :meth:`record` or :meth:`abandon`.

        Raises:
            CircuitOpenError: If the circuit is open, or a half-open trial
                              call is already in flight.
        """
        async with self._lock:
            state = self._state
            ticket = None

            if state.phase == CircuitPhase.OPEN:
                if not self._timeout_elapsed():
                    retry_after = self.policy.timeout - (self._clock() - (state.opened_at or 0.0))
                    self.total_rejections += 1
                    raise CircuitOpenError(self.name, retry_after)
                state.phase = CircuitPhase.HALF_OPEN
                logger.info("Circuit for %s half-open, admitting a trial call", self.name)

            if state.phase == CircuitPhase.HALF_OPEN:
                if self._trial is not None:
                    self.total_rejections += 1
                    raise CircuitOpenError(self.name, 0.0)
                self._tickets += 1
                ticket = self._trial = self._tickets

            self.total_calls += 1
            return ticket

    def is_failure(self, error: BaseException | None) -> bool:
        """Classify a call outcome; ``None`` means the call succeeded.

        A custom predicate that raises counts the call as a failure.
        """
        if error is None:
            return False
        if self.policy.is_failure is not None:
            try:
                return bool(self.policy.is_failure(error))
            except Exception:
                logger.exception("Failure predicate for %s raised; counting call as failed", self.name)
                return True
        if not isinstance(error, ApiError) or error.response is None:
            return True
        return error.response.status in self.policy.error_status_codes

    async def record(self, error: BaseException | None, ticket: int | None = None) -> None:
        """Record the final outcome of an admitted call.

        Only the current half-open trial (matching *ticket*) moves the
        circuit out of HALF_OPEN; calls admitted earlier just count.
        """
        failed = self.is_failure(error)
        async with self._lock:
            state = self._state
            now = self._clock()

            if now - state.window_start >= self.policy.window:
                state.window_start = now
                state.request_count = 0
                state.failure_count = 0

            state.request_count += 1
            if failed:
                state.failure_count += 1
                self.total_failures += 1
            else:
                self.total_successes += 1

            if ticket is not None and ticket == self._trial:
                self._trial = None
                if state.phase == CircuitPhase.HALF_OPEN:
                    if failed:
                        self._open(now)
                    else:
                        self._close(now)
            elif state.phase == CircuitPhase.CLOSED and (
                state.request_count >= self.policy.minimum_requests
                and state.failure_count >= self.policy.threshold
            ):
                self._open(now)

    def abandon(self, ticket: int | None = None) -> None:
        """Release the half-open trial slot held by a cancelled call."""
        if ticket is not None and ticket == self._trial:
            self._trial = None

    def _open(self, now: float) -> None:
        self._state.phase = CircuitPhase.OPEN
        self._state.opened_at = now
        logger.warning(
            "Circuit for %s opened (%d/%d failures in window), fast-failing for %.1fs",
            self.name,
            self._state.failure_count,
            self._state.request_count,
            self.policy.timeout,
        )

    def _close(self, now: float) -> None:
        self._state.phase = CircuitPhase.CLOSED
        self._state.opened_at = None
        self._state.window_start = now
        self._state.request_count = 0
        self._state.failure_count = 0
        logger.info("Circuit for %s closed after successful trial call", self.name)

    async def reset(self) -> None:
        """Force-reset the circuit breaker to CLOSED."""
        async with self._lock:
            self._trial = None
            self._close(self._clock())

    def snapshot(self) -> dict:
        """Return a JSON-serializable snapshot for health/metrics."""
        return {
            "name": self.name,
            "phase": self.phase.value,
            "failure_count": self._state.failure_count,
            "request_count": self._state.request_count,
            "total_calls": self.total_calls,
            "total_failures": self.total_failures,
            "total_rejections": self.total_rejections,
            "total_successes": self.total_successes,
        }
