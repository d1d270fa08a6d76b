"""Resilience patterns: circuit breaker and retry around the transport call.

The breaker sits outside the retry loop, gating each logical call and
recording its final outcome; the retry executor governs the attempts
within one call.
"""

from declient.resilience.circuit_breaker import CircuitBreaker, CircuitPhase, CircuitState
from declient.resilience.policy import DEFAULT_RESILIENCE_POLICY, merge_resilience_policies
from declient.resilience.retry import RetryExecutor

__all__ = [
    "DEFAULT_RESILIENCE_POLICY",
    "CircuitBreaker",
    "CircuitPhase",
    "CircuitState",
    "RetryExecutor",
    "merge_resilience_policies",
]
