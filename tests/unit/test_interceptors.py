"""Tests for the interceptor pipeline and handler resolution."""

import httpx
import pytest

from declient.binding_registry import ErrorHandler, SuccessHandler
from declient.core.errors import ApiError
from declient.interceptors import run_interceptors
from declient.models.response import ApiResponse
from declient.resolution import (
    find_error_handler,
    find_success_handler,
    resolve_failure,
    resolve_success,
)

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Interceptor pipeline
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestInterceptorPipeline:
    async def test_runs_in_order_with_current_response(self):
        seen = []

        def first(response):
            seen.append(("first", response.status))
            return response.clone_with_status_code(201)

        async def second(response):
            seen.append(("second", response.status))

        result = await run_interceptors([first, second], ApiResponse.create_success({}))
        assert seen == [("first", 200), ("second", 201)]
        assert result.response.status == 201
        assert result.promoted is False

    async def test_none_keeps_response(self):
        original = ApiResponse.create_success({"a": 1})
        result = await run_interceptors([lambda r: None], original)
        assert result.response is original

    async def test_in_place_mutation_is_visible(self):
        def mutate(response):
            response.data["seen"] = True

        result = await run_interceptors([mutate], ApiResponse.create_success({}))
        assert result.response.data == {"seen": True}

    async def test_httpx_response_is_wrapped(self):
        result = await run_interceptors(
            [lambda r: httpx.Response(202, json={"wrapped": True})],
            ApiResponse.create_success({}),
        )
        assert result.response.status == 202
        assert result.response.data == {"wrapped": True}

    async def test_invalid_return_rejected(self):
        with pytest.raises(TypeError):
            await run_interceptors([lambda r: "nope"], ApiResponse.create_success({}))

    async def test_failure_path_promotes_on_2xx_and_stops(self):
        calls = []

        def convert(response):
            calls.append("convert")
            return response.create_success({"success": False}) if response.status == 404 else None

        def never(response):
            calls.append("never")

        result = await run_interceptors([convert, never], ApiResponse.create_error(None, 404), failure=True)
        assert result.promoted is True
        assert result.response.data == {"success": False}
        assert calls == ["convert"]

    async def test_success_path_never_promotes(self):
        result = await run_interceptors([lambda r: None], ApiResponse.create_success({}), failure=False)
        assert result.promoted is False

    async def test_failure_path_without_2xx_runs_all(self):
        calls = []
        result = await run_interceptors(
            [lambda r: calls.append(1), lambda r: r.clone_with_status_code(503)],
            ApiResponse.create_error(None, 500),
            failure=True,
        )
        assert calls == [1]
        assert result.response.status == 503
        assert result.promoted is False


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Handler lookup
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def catch_all(error):
    return "catch-all"


def on_404(error):
    return "not-found"


def on_5xx(error):
    return "server"


HANDLERS = (
    ErrorHandler(None, catch_all),
    ErrorHandler(frozenset({404}), on_404),
    ErrorHandler(frozenset({500, 502, 503}), on_5xx),
)


class TestErrorHandlerLookup:
    def test_exact_match_beats_earlier_catch_all(self):
        assert find_error_handler(HANDLERS, 404).handler is on_404

    def test_set_match(self):
        assert find_error_handler(HANDLERS, 502).handler is on_5xx

    def test_unmatched_status_falls_back_to_catch_all(self):
        assert find_error_handler(HANDLERS, 418).handler is catch_all

    def test_status_zero_only_matches_catch_all(self):
        specific_zero = (ErrorHandler(frozenset({0}), on_404),)
        assert find_error_handler(specific_zero, 0) is None
        assert find_error_handler(HANDLERS, 0).handler is catch_all

    def test_no_handlers(self):
        assert find_error_handler((), 500) is None

    def test_first_specific_match_wins(self):
        handlers = (ErrorHandler(frozenset({404}), on_404), ErrorHandler(frozenset({404}), on_5xx))
        assert find_error_handler(handlers, 404).handler is on_404


class TestSuccessHandlerLookup:
    def test_match_by_set(self):
        handler = SuccessHandler(frozenset({200, 201}), lambda d: d)
        assert find_success_handler((handler,), 201) is handler
        assert find_success_handler((handler,), 204) is None


class TestResolveSuccess:
    async def test_handler_transforms_payload(self):
        handlers = (SuccessHandler(frozenset({200}), lambda data: data["id"]),)
        assert await resolve_success(handlers, ApiResponse.create_success({"id": 7})) == 7

    async def test_async_handler_awaited(self):
        async def handler(data):
            return [data]

        handlers = (SuccessHandler(frozenset({200}), handler),)
        assert await resolve_success(handlers, ApiResponse.create_success(1)) == [1]

    async def test_raw_payload_without_match(self):
        handlers = (SuccessHandler(frozenset({201}), lambda data: "x"),)
        assert await resolve_success(handlers, ApiResponse.create_success({"raw": 1})) == {"raw": 1}

    async def test_handler_failure_propagates(self):
        def broken(data):
            raise KeyError("missing")

        with pytest.raises(KeyError):
            await resolve_success((SuccessHandler(frozenset({200}), broken),), ApiResponse.create_success({}))


class TestResolveFailure:
    async def test_handler_result_returned(self):
        error = ApiError("nf", response=ApiResponse.create_error(None, 404))
        assert await resolve_failure(HANDLERS, error, error.response) == "not-found"

    async def test_unmatched_reraises_original_with_final_response(self):
        error = ApiError("boom", response=ApiResponse.create_error(None, 500))
        final = ApiResponse.create_error({"annotated": True}, 500)
        with pytest.raises(ApiError) as exc_info:
            await resolve_failure((), error, final)
        assert exc_info.value is error
        assert exc_info.value.response is final

    async def test_network_failure_keeps_response_none(self):
        error = ApiError("refused", code="ConnectError")
        synthetic = ApiResponse.network_failure(error.message, error.code)
        with pytest.raises(ApiError) as exc_info:
            await resolve_failure((ErrorHandler(frozenset({500}), on_5xx),), error, synthetic)
        assert exc_info.value.response is None

    async def test_handler_exception_propagates(self):
        def reraise(error):
            raise RuntimeError("handled badly")

        error = ApiError("nf", response=ApiResponse.create_error(None, 404))
        with pytest.raises(RuntimeError):
            await resolve_failure((ErrorHandler(None, reraise),), error, error.response)
