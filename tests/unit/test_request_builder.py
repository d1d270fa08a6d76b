"""Tests for request construction and authorization resolution."""

from typing import Annotated, Optional

import pytest
from pydantic import BaseModel, Field

from declient.binding_registry import BindingRegistry
from declient.core.config import AuthorizationType
from declient.decorators import Body, Header, Path, Query, get, post
from declient.request_builder import build_request, format_authorization, resolve_authorization


class NewItem(BaseModel):
    item_name: str = Field(alias="itemName")
    price: float


class ItemService:
    @get("/shops/{shopId}/items/{itemId}")
    async def get_item(
        self,
        shop_id: Annotated[Optional[str], Path("shopId")],
        item_id: Annotated[Optional[int], Path("itemId")] = None,
    ) -> dict: ...

    @get("/items")
    async def search(
        self,
        q: Annotated[Optional[str], Query()] = None,
        limit: Annotated[Optional[int], Query("page_size")] = None,
        request_id: Annotated[Optional[str], Header("X-Request-Id")] = None,
    ) -> list: ...

    @post("/items")
    async def create(self, item: Annotated[object, Body()], auth: Annotated[str, Header("Authorization")] = None) -> dict: ...


@pytest.fixture
def definition():
    return BindingRegistry().from_service(ItemService)


class TestPathBindings:
    def test_placeholders_substituted_and_encoded(self, definition):
        request = build_request(definition.get("get_item"), ["my shop/1", 42])
        assert request.url == "/shops/my%20shop%2F1/items/42"
        assert request.method == "GET"

    def test_missing_argument_leaves_placeholder_verbatim(self, definition):
        request = build_request(definition.get("get_item"), ["s1", None])
        assert request.url == "/shops/s1/items/{itemId}"

    def test_short_argument_list_skips_binding(self, definition):
        request = build_request(definition.get("get_item"), ["s1"])
        assert request.url == "/shops/s1/items/{itemId}"


class TestQueryAndHeaderBindings:
    def test_defined_values_added(self, definition):
        request = build_request(definition.get("search"), ["shoes", 20, "req-1"])
        assert request.query_params == {"q": "shoes", "page_size": 20}
        assert request.headers == {"X-Request-Id": "req-1"}

    def test_none_values_skipped(self, definition):
        request = build_request(definition.get("search"), [None, None, None])
        assert request.query_params == {}
        assert request.headers == {}

    def test_falsy_but_defined_values_kept(self, definition):
        request = build_request(definition.get("search"), ["", 0, None])
        assert request.query_params == {"q": "", "page_size": 0}

    def test_header_precedence(self, definition):
        request = build_request(
            definition.get("create"),
            [{"a": 1}, "Token override"],
            headers={"Authorization": "static", "X-App": "demo"},
            authorization="Bearer resolved",
        )
        assert request.headers == {"Authorization": "Token override", "X-App": "demo"}

    def test_authorization_overrides_static_header(self, definition):
        request = build_request(
            definition.get("search"),
            [],
            headers={"Authorization": "static"},
            authorization="Bearer resolved",
        )
        assert request.headers["Authorization"] == "Bearer resolved"


class TestBodyBinding:
    def test_plain_body(self, definition):
        assert build_request(definition.get("create"), [{"a": 1}]).body == {"a": 1}

    def test_pydantic_body_serialized_by_alias(self, definition):
        item = NewItem(itemName="lamp", price=9.5)
        assert build_request(definition.get("create"), [item]).body == {"itemName": "lamp", "price": 9.5}


class TestAuthorization:
    @pytest.mark.parametrize(
        "scheme,expected",
        [
            (AuthorizationType.BEARER, "Bearer abc"),
            (AuthorizationType.BASIC, "Basic abc"),
            (AuthorizationType.CUSTOM, "abc"),
        ],
    )
    def test_format(self, scheme, expected):
        assert format_authorization("abc", scheme) == expected

    async def test_static_token(self):
        assert await resolve_authorization("abc") == "Bearer abc"

    async def test_sync_supplier(self):
        assert await resolve_authorization(lambda: "abc", AuthorizationType.BASIC) == "Basic abc"

    async def test_async_supplier(self):
        async def supplier():
            return "fresh"

        assert await resolve_authorization(supplier) == "Bearer fresh"

    @pytest.mark.parametrize("token", [None, ""])
    async def test_empty_supplier_result_adds_nothing(self, token):
        assert await resolve_authorization(lambda: token) is None

    async def test_no_authorization(self):
        assert await resolve_authorization(None) is None
