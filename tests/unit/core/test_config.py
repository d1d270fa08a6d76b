"""Tests for Settings and ServiceConfig.

Verifies that Settings:
- Loads typed defaults for all resilience fields
- Reads overrides from DECLIENT_ prefixed env vars
- Produces the matching default ResiliencePolicy
"""

import pytest

from declient.core.config import (
    AuthorizationType,
    ServiceConfig,
    Settings,
    default_resilience_policy,
)
from declient.dispatcher import DISABLED_POLICY, resolve_policy
from declient.models.policy import ResiliencePolicy, RetryPolicy


class TestSettingsDefaults:
    def test_retry_defaults(self):
        settings = Settings()
        assert settings.RETRY_ATTEMPTS == 3
        assert settings.RETRY_BASE_DELAY == 0.1
        assert settings.RETRY_MAX_DELAY == 2.0
        assert settings.RETRY_EXPONENTIAL_BACKOFF is True

    def test_circuit_breaker_defaults(self):
        settings = Settings()
        assert settings.CIRCUIT_BREAKER_THRESHOLD == 5
        assert settings.CIRCUIT_BREAKER_WINDOW_SECONDS == 60.0
        assert settings.CIRCUIT_BREAKER_RECOVERY_SECONDS == 30.0
        assert settings.CIRCUIT_BREAKER_MINIMUM_REQUESTS == 10

    def test_default_timeout(self):
        assert Settings().DEFAULT_TIMEOUT == 30.0


class TestSettingsEnvOverrides:
    def test_env_prefix_override(self, monkeypatch):
        monkeypatch.setenv("DECLIENT_RETRY_ATTEMPTS", "7")
        monkeypatch.setenv("DECLIENT_CIRCUIT_BREAKER_ENABLED", "false")
        settings = Settings()
        assert settings.RETRY_ATTEMPTS == 7
        assert settings.CIRCUIT_BREAKER_ENABLED is False

    def test_unprefixed_env_ignored(self, monkeypatch):
        monkeypatch.setenv("RETRY_ATTEMPTS", "9")
        assert Settings().RETRY_ATTEMPTS == 3


class TestDefaultResiliencePolicy:
    def test_built_from_settings(self):
        policy = default_resilience_policy(Settings(RETRY_ATTEMPTS=1, CIRCUIT_BREAKER_THRESHOLD=2))
        assert policy.retry.retries == 1
        assert policy.circuit_breaker.threshold == 2

    def test_disabled_breaker_setting(self):
        policy = default_resilience_policy(Settings(CIRCUIT_BREAKER_ENABLED=False))
        assert policy.circuit_breaker_policy is None


class TestServiceConfig:
    def test_minimal_config(self):
        config = ServiceConfig(base_url="https://api.example.com")
        assert config.headers == {}
        assert config.authorization is None
        assert config.authorization_type == AuthorizationType.BEARER
        assert config.resilience is None

    def test_accepts_token_supplier(self):
        async def supplier():
            return "tok"

        config = ServiceConfig(base_url="http://x", authorization=supplier)
        assert config.authorization is supplier

    def test_resilience_mapping_is_validated(self):
        config = ServiceConfig(base_url="http://x", resilience={"retry": {"retries": 1}})
        assert isinstance(config.resilience, ResiliencePolicy)
        assert config.resilience.retry.retries == 1

    def test_rejects_non_positive_timeout(self):
        with pytest.raises(ValueError):
            ServiceConfig(base_url="http://x", timeout=0)

    def test_resolve_policy(self):
        settings = Settings(RETRY_ATTEMPTS=4)
        assert resolve_policy(ServiceConfig(base_url="http://x", resilience=False), settings) is DISABLED_POLICY
        assert resolve_policy(ServiceConfig(base_url="http://x"), settings).retry.retries == 4
        explicit = ResiliencePolicy(retry=RetryPolicy(retries=0))
        assert resolve_policy(ServiceConfig(base_url="http://x", resilience=explicit), settings) is explicit
