"""Merging of resilience policies.

Each sub-policy is merged independently:

    override sets it to ``False``   →  disabled
    override supplies a policy      →  its explicitly set fields win
    override omits it               →  base kept verbatim
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ValidationError

from declient.core.errors import ConfigurationError
from declient.models.policy import CircuitBreakerPolicy, ResiliencePolicy, RetryPolicy

DEFAULT_RESILIENCE_POLICY = ResiliencePolicy()


def coerce_policy(policy: ResiliencePolicy | Mapping[str, Any]) -> ResiliencePolicy:
    """Validate *policy* into a ``ResiliencePolicy``.

    Raises:
        ConfigurationError: If *policy* is neither a policy nor a valid mapping.
    """
    if isinstance(policy, ResiliencePolicy):
        return policy
    if not isinstance(policy, Mapping):
        raise ConfigurationError(f"Expected a ResiliencePolicy or mapping, got {type(policy).__name__}")
    try:
        return ResiliencePolicy.model_validate(dict(policy))
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid resilience policy: {exc}") from exc


def _merge_fields(base: BaseModel | bool, override: BaseModel, model: type[BaseModel]) -> BaseModel:
    # A disabled base contributes nothing but the model defaults.
    start = base if isinstance(base, model) else model()
    updates = {name: getattr(override, name) for name in override.model_fields_set}
    try:
        return model.model_validate({**_all_fields(start), **updates})
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid {model.__name__} after merge: {exc}") from exc


def _all_fields(policy: BaseModel) -> dict[str, Any]:
    return {name: getattr(policy, name) for name in type(policy).model_fields}


def merge_resilience_policies(
    base: ResiliencePolicy | Mapping[str, Any],
    override: ResiliencePolicy | Mapping[str, Any],
) -> ResiliencePolicy:
    """Merge *override* onto *base*, returning a new policy.

    Raises:
        ConfigurationError: If either input is malformed.
    """
    base = coerce_policy(base)
    override = coerce_policy(override)
    merged: dict[str, Any] = {"retry": base.retry, "circuit_breaker": base.circuit_breaker}

    if "retry" in override.model_fields_set:
        if override.retry is False:
            merged["retry"] = False
        else:
            merged["retry"] = _merge_fields(base.retry, override.retry, RetryPolicy)

    if "circuit_breaker" in override.model_fields_set:
        if override.circuit_breaker is False:
            merged["circuit_breaker"] = False
        else:
            merged["circuit_breaker"] = _merge_fields(
                base.circuit_breaker, override.circuit_breaker, CircuitBreakerPolicy
            )

    return ResiliencePolicy(**merged)
