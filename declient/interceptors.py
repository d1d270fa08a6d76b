"""Response interceptor pipeline.

Interceptors run in order (service-level first, then method-level) on
both success and failure paths.  Each may mutate the current response,
return ``None`` to leave it, or return a replacement.  On the failure
path a 2xx status stops the chain and turns the call into a success.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

import httpx

from declient._async import maybe_await
from declient.models.response import ApiResponse

Interceptor = Callable[[ApiResponse], Any]


@dataclass
class PipelineResult:
    """Final response of a pipeline run.

    Attributes:
        response: Current response after the last interceptor ran.
        promoted: True when a failure was converted into a success.
    """

    response: ApiResponse
    promoted: bool = False


def _coerce(result: Any, current: ApiResponse) -> ApiResponse:
    if isinstance(result, ApiResponse):
        return result
    if isinstance(result, httpx.Response):
        return ApiResponse.from_httpx(result, request=current.request)
    raise TypeError(
        f"Response interceptors must return None or an ApiResponse, got {type(result).__name__}"
    )


async def run_interceptors(
    interceptors: Iterable[Interceptor],
    response: ApiResponse,
    *,
    failure: bool = False,
) -> PipelineResult:
    """Run *interceptors* over *response*.

    Args:
        interceptors: Ordered callables, sync or async.
        response:     Real response, or the status-0 synthetic one.
        failure:      True when settling a failed call.
    """
    current = response
    for interceptor in interceptors:
        result = await maybe_await(interceptor(current))
        if result is not None:
            current = _coerce(result, current)
        if failure and current.is_success_status_code():
            return PipelineResult(current, promoted=True)
    return PipelineResult(current)
