"""ServiceDispatcher: runs one declared method call end to end.

    build request → circuit breaker gate → retry loop → transport
                  → interceptor pipeline → success/error resolution

Each generated service instance owns one dispatcher, hence one transport
and one circuit breaker.  Concurrent calls on the same instance share the
breaker; its state changes are serialized by the breaker's own lock.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from declient.binding_registry import InvocationDescriptor
from declient.core.config import ServiceConfig, Settings, default_resilience_policy
from declient.core.errors import ApiError, CircuitOpenError
from declient.interceptors import run_interceptors
from declient.models.policy import ResiliencePolicy
from declient.models.response import ApiResponse, RequestContext
from declient.request_builder import build_request, resolve_authorization
from declient.resilience.circuit_breaker import CircuitBreaker
from declient.resilience.retry import RetryExecutor
from declient.resolution import resolve_failure, resolve_success
from declient.transport import HttpxTransport, Transport

logger = logging.getLogger(__name__)

DISABLED_POLICY = ResiliencePolicy(retry=False, circuit_breaker=False)


def resolve_policy(config: ServiceConfig, settings: Settings) -> ResiliencePolicy:
    """Policy in effect for *config*: explicit, disabled, or the defaults."""
    if config.resilience is False:
        return DISABLED_POLICY
    if config.resilience is None:
        return default_resilience_policy(settings)
    return config.resilience


class ServiceDispatcher:
    """Dispatches declared method calls for one service instance.

    Args:
        name:      Service name, used in logs and circuit errors.
        config:    Service configuration.
        transport: Transport override; an ``HttpxTransport`` on
                   ``config.base_url`` is created when omitted.
        settings:  Library defaults.
        clock:     Time source for the circuit breaker.
        sleep:     Delay primitive for retries.
    """

    def __init__(
        self,
        name: str,
        config: ServiceConfig,
        *,
        transport: Transport | None = None,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        settings = settings or Settings()
        self.name = name
        self.config = config
        self.policy = resolve_policy(config, settings)
        self._interceptors = tuple(config.response_interceptors)
        self._transport: Transport = transport or HttpxTransport(
            config.base_url,
            timeout=config.timeout or settings.DEFAULT_TIMEOUT,
            headers={"User-Agent": settings.USER_AGENT},
        )

        retry_policy = self.policy.retry_policy
        self._retry = RetryExecutor(retry_policy, sleep=sleep) if retry_policy else None
        breaker_policy = self.policy.circuit_breaker_policy
        self._breaker = CircuitBreaker(name, breaker_policy, clock=clock) if breaker_policy else None

    @property
    def circuit_breaker(self) -> CircuitBreaker | None:
        """The breaker shared by all calls on this instance, if enabled."""
        return self._breaker

    @property
    def transport(self) -> Transport:
        return self._transport

    # ── Call pipeline ────────────────────────────────────────────────

    async def invoke(self, descriptor: InvocationDescriptor, arguments: Sequence[Any]) -> Any:
        """Run *descriptor* with positional *arguments* and resolve the result.

        Raises:
            ApiError: When the call fails and no error handler matches.
        """
        authorization = await resolve_authorization(self.config.authorization, self.config.authorization_type)
        request = build_request(descriptor, arguments, headers=self.config.headers, authorization=authorization)
        interceptors = (*self._interceptors, *descriptor.response_interceptors)
        logger.debug("%s.%s → %s %s", self.name, descriptor.name, request.method, request.url)

        try:
            response = await self._execute(descriptor, request)
        except ApiError as exc:
            return await self._settle_failure(descriptor, interceptors, exc)

        result = await run_interceptors(interceptors, response)
        return await resolve_success(descriptor.success_handlers, result.response)

    async def _settle_failure(
        self,
        descriptor: InvocationDescriptor,
        interceptors: Sequence[Any],
        error: ApiError,
    ) -> Any:
        if error.response is not None:
            response = error.response
        else:
            response = ApiResponse.network_failure(error.message, error.code, error.request)
        result = await run_interceptors(interceptors, response, failure=True)
        if result.promoted:
            logger.debug("%s.%s: failure converted to status %d", self.name, descriptor.name, result.response.status)
            return result.response.data
        return await resolve_failure(descriptor.error_handlers, error, result.response)

    async def _execute(self, descriptor: InvocationDescriptor, request: RequestContext) -> ApiResponse:
        """Gate the call through the breaker and record its final outcome."""
        breaker = self._breaker
        if breaker is None:
            return await self._attempts(descriptor, request)

        try:
            ticket = await breaker.pre_check()
        except CircuitOpenError as exc:
            exc.request = request
            raise

        try:
            response = await self._attempts(descriptor, request)
        except Exception as exc:
            await breaker.record(exc, ticket)
            raise
        except BaseException:
            breaker.abandon(ticket)
            raise
        await breaker.record(None, ticket)
        return response

    async def _attempts(self, descriptor: InvocationDescriptor, request: RequestContext) -> ApiResponse:
        async def attempt() -> ApiResponse:
            return await self._transport.send(
                request.method,
                request.url,
                request.query_params,
                request.body,
                request.headers,
            )

        if self._retry is None:
            return await attempt()
        return await self._retry.run(
            attempt,
            label=f"{request.method} {request.url}",
            on_retry=descriptor.retry_hook,
        )

    async def aclose(self) -> None:
        """Release the transport's connections."""
        await self._transport.aclose()
