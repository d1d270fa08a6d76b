"""Success and error handler lookup."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from declient._async import maybe_await
from declient.binding_registry import ErrorHandler, SuccessHandler
from declient.core.errors import ApiError
from declient.models.response import ApiResponse


def find_success_handler(handlers: Sequence[SuccessHandler], status: int) -> SuccessHandler | None:
    for handler in handlers:
        if status in handler.statuses:
            return handler
    return None


def find_error_handler(handlers: Sequence[ErrorHandler], status: int) -> ErrorHandler | None:
    """First status-scoped match, else the first catch-all.

    Status ``0`` (no response received) only ever matches a catch-all.
    """
    if status != 0:
        for handler in handlers:
            if not handler.is_catch_all and status in handler.statuses:
                return handler
    for handler in handlers:
        if handler.is_catch_all:
            return handler
    return None


async def resolve_success(handlers: Sequence[SuccessHandler], response: ApiResponse) -> Any:
    """Return the handler-transformed payload, or the raw payload."""
    handler = find_success_handler(handlers, response.status)
    if handler is None:
        return response.data
    return await maybe_await(handler.handler(response.data))


async def resolve_failure(
    handlers: Sequence[ErrorHandler],
    error: ApiError,
    response: ApiResponse,
) -> Any:
    """Return the matching error handler's result or re-raise *error*.

    *response* is the interceptor-final response; a real response
    replaces ``error.response`` so the caller sees every mutation.

    Raises:
        ApiError: *error* itself when no handler matches.
    """
    if error.response is not None or response.status != 0:
        error.response = response
    handler = find_error_handler(handlers, response.status)
    if handler is None:
        raise error
    return await maybe_await(handler.handler(error))
