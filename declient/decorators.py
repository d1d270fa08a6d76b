"""Declarative service decorators.

Usage::

    class UserService:
        @get("/users/{user_id}")
        @on_error(404, lambda err: None)
        async def get_user(self, user_id: Annotated[int, Path()]) -> dict: ...

        @post("/users")
        async def create_user(self, user: Annotated[dict, Body()]) -> dict: ...

Handlers and interceptors keep the order in which they are written, top
to bottom, and stacking the same decorator accumulates rather than
replaces.
"""

from __future__ import annotations

import functools
from collections.abc import Callable, Iterable
from typing import Any, TypeVar, overload

from declient.binding_registry import (
    ErrorHandler,
    HttpMethod,
    ParamMarker,
    ParamRole,
    SuccessHandler,
    metadata,
)
from declient.core.errors import BindingError

F = TypeVar("F", bound=Callable[..., Any])

StatusSpec = int | Iterable[int]


# ── Parameter markers ──────────────────────────────────────────────────


def Path(name: str | None = None) -> ParamMarker:  # noqa: N802
    """Substitute the argument into the ``{name}`` path placeholder."""
    return ParamMarker(ParamRole.PATH, name)


def Query(name: str | None = None) -> ParamMarker:  # noqa: N802
    """Send the argument as a query-string entry."""
    return ParamMarker(ParamRole.QUERY, name)


def Body() -> ParamMarker:  # noqa: N802
    """Send the argument as the request payload."""
    return ParamMarker(ParamRole.BODY)


def Header(name: str) -> ParamMarker:  # noqa: N802
    """Send the argument as the *name* request header."""
    return ParamMarker(ParamRole.HEADER, name)


# ── HTTP verbs ─────────────────────────────────────────────────────────


def _make_http_method_decorator(method: HttpMethod) -> Callable[[str], Callable[[F], F]]:
    """Factory for HTTP method decorators (@get, @post, etc.)."""

    def method_decorator(path: str) -> Callable[[F], F]:
        def decorator(func: F) -> F:
            existing = metadata.get(func)
            if existing is not None and existing.http_method is not None:
                raise BindingError(func.__qualname__, "HTTP verb declared more than once")

            @functools.wraps(func)
            async def placeholder(*args: Any, **kwargs: Any) -> Any:
                raise NotImplementedError(
                    f"{func.__qualname__} is a declared endpoint; "
                    "build the service with create_api_service() to call it."
                )

            metadata.rekey(func, placeholder)
            entry = metadata.entry(placeholder)
            entry.http_method = method
            entry.path_template = path
            return placeholder  # type: ignore[return-value]

        return decorator

    return method_decorator


get = _make_http_method_decorator(HttpMethod.GET)
post = _make_http_method_decorator(HttpMethod.POST)
put = _make_http_method_decorator(HttpMethod.PUT)
patch = _make_http_method_decorator(HttpMethod.PATCH)
delete = _make_http_method_decorator(HttpMethod.DELETE)


# ── Handlers ───────────────────────────────────────────────────────────
# Decorators apply bottom-up; inserting at the front keeps source order.


def _statuses(status: StatusSpec) -> frozenset[int]:
    if isinstance(status, int):
        return frozenset({status})
    return frozenset(status)


@overload
def on_error(status_or_handler: Callable[[Any], Any]) -> Callable[[F], F]: ...


@overload
def on_error(status_or_handler: StatusSpec | None, handler: Callable[[Any], Any]) -> Callable[[F], F]: ...


def on_error(status_or_handler, handler=None):
    """Register an error handler.

    ``@on_error(handler)`` and ``@on_error(None, handler)`` register a
    catch-all; ``@on_error(404, handler)`` or ``@on_error([502, 503],
    handler)`` are status-scoped.  The handler receives the ``ApiError``.
    """
    if handler is None:
        statuses = None
        handler = status_or_handler
    else:
        statuses = None if status_or_handler is None else _statuses(status_or_handler)

    def decorator(func: F) -> F:
        metadata.entry(func).error_handlers.insert(0, ErrorHandler(statuses, handler))
        return func

    return decorator


def on_success(status: StatusSpec, handler: Callable[[Any], Any]) -> Callable[[F], F]:
    """Transform the payload of responses whose status is in *status*."""
    statuses = _statuses(status)

    def decorator(func: F) -> F:
        metadata.entry(func).success_handlers.insert(0, SuccessHandler(statuses, handler))
        return func

    return decorator


def on_retrying(handler: Callable[[int, Any], Any]) -> Callable[[F], F]:
    """Observe retries: *handler* gets the 1-based retry number and the error."""

    def decorator(func: F) -> F:
        entry = metadata.entry(func)
        if entry.retry_hook is not None:
            raise BindingError(func.__qualname__, "on_retrying declared more than once")
        entry.retry_hook = handler
        return func

    return decorator


def response_interceptor(handler: Callable[[Any], Any]) -> Callable[[F], F]:
    """Inspect or replace the response before handlers run.

    *handler* receives the current ``ApiResponse`` and returns ``None``
    to keep it or a replacement response.
    """

    def decorator(func: F) -> F:
        metadata.entry(func).response_interceptors.insert(0, handler)
        return func

    return decorator
