"""Turns a descriptor plus call arguments into a ``RequestContext``."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any
from urllib.parse import quote

from pydantic import BaseModel

from declient._async import maybe_await
from declient.binding_registry import InvocationDescriptor, ParamRole
from declient.core.config import Authorization, AuthorizationType
from declient.models.response import RequestContext


def format_authorization(token: str, scheme: AuthorizationType) -> str:
    """Render *token* as an ``Authorization`` header value."""
    if scheme == AuthorizationType.BEARER:
        return f"Bearer {token}"
    if scheme == AuthorizationType.BASIC:
        return f"Basic {token}"
    return token


async def resolve_authorization(
    authorization: Authorization | None,
    scheme: AuthorizationType = AuthorizationType.BEARER,
) -> str | None:
    """Resolve a static or supplied token to a header value.

    Returns ``None`` when there is no token; the call then proceeds
    without an ``Authorization`` header.
    """
    if authorization is None:
        return None
    token = authorization if isinstance(authorization, str) else await maybe_await(authorization())
    if not token:
        return None
    return format_authorization(str(token), scheme)


def serialize_body(value: Any) -> Any:
    """Pydantic models are sent by alias in JSON mode; anything else as is."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    return value


def build_request(
    descriptor: InvocationDescriptor,
    arguments: Sequence[Any],
    *,
    headers: Mapping[str, str] | None = None,
    authorization: str | None = None,
) -> RequestContext:
    """Apply *descriptor*'s parameter bindings to positional *arguments*.

    ``None`` counts as "not supplied": its path placeholder is left in the
    URL verbatim, and no query entry or header is added.  Headers layer
    as static, then *authorization*, then parameter-bound.
    """
    url = descriptor.path_template
    query_params: dict[str, Any] = {}
    body: Any = None
    request_headers: dict[str, str] = dict(headers or {})
    if authorization:
        request_headers["Authorization"] = authorization

    for binding in descriptor.parameter_bindings:
        if binding.argument_index >= len(arguments):
            continue
        value = arguments[binding.argument_index]

        if binding.role == ParamRole.BODY:
            body = serialize_body(value)
        elif value is None:
            continue
        elif binding.role == ParamRole.PATH:
            url = url.replace(f"{{{binding.name}}}", quote(str(value), safe=""))
        elif binding.role == ParamRole.QUERY:
            query_params[binding.name] = value
        elif binding.role == ParamRole.HEADER:
            request_headers[binding.name] = str(value)

    return RequestContext(
        method=descriptor.http_method.value,
        url=url,
        query_params=query_params,
        body=body,
        headers=request_headers,
    )
