"""Tests for authflow.exchange -- code-for-token exchange requests."""

from __future__ import annotations

import json

import httpx
import pytest

from authflow.exceptions import ConfigError, ExchangeFailedError
from authflow.exchange import (
    CREDENTIALS_INCLUDE,
    CREDENTIALS_SAME_ORIGIN,
    TokenExchangeClient,
    build_exchange_body,
)
from authflow.models import BaseConfig, FlowConfig


def _flow(**kwargs: object) -> FlowConfig:
    defaults: dict[str, object] = {
        "name": "acme",
        "url": "https://app.example/auth/acme",
        "client_id": "client-1",
        "redirect_uri": "https://app.example/cb",
    }
    defaults.update(kwargs)
    return FlowConfig(**defaults)  # type: ignore[arg-type]


def _client(
    handler,
    cookies: dict[str, str] | None = None,
    **config: object,
) -> TokenExchangeClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler), cookies=cookies)
    return TokenExchangeClient(BaseConfig(**config), http)  # type: ignore[arg-type]


class TestBuildExchangeBody:
    def test_default_fields(self) -> None:
        body = build_exchange_body({"code": "c1"}, None, _flow())
        assert body == {"code": "c1", "clientId": "client-1", "redirectUri": "https://app.example/cb"}

    def test_user_data_overrides_defaults(self) -> None:
        body = build_exchange_body({"code": "c1"}, {"clientId": "other", "extra": 1}, _flow())
        assert body["clientId"] == "other"
        assert body["extra"] == 1

    def test_state_added_when_present(self) -> None:
        body = build_exchange_body({"code": "c1", "state": "s1"}, {"state": "mine"}, _flow())
        assert body["state"] == "s1"

    def test_response_params_copied(self) -> None:
        config = _flow(response_params=["session_state", "missing"])
        body = build_exchange_body({"code": "c1", "session_state": "ss"}, None, config)
        assert body["session_state"] == "ss"
        assert body["missing"] is None


class TestExchangeUrl:
    def test_joined_onto_base_url(self) -> None:
        client = TokenExchangeClient(BaseConfig(base_url="https://app.example/"))
        assert client.exchange_url(_flow(url="/auth/acme")) == "https://app.example/auth/acme"

    def test_absolute_url_kept(self) -> None:
        client = TokenExchangeClient(BaseConfig(base_url="https://app.example"))
        assert client.exchange_url(_flow(url="https://api.example/x")) == "https://api.example/x"

    def test_missing_url(self) -> None:
        with pytest.raises(ConfigError, match="no exchange url"):
            TokenExchangeClient(BaseConfig()).exchange_url(_flow(url=None))

    def test_credentials_mode(self) -> None:
        assert TokenExchangeClient(BaseConfig()).credentials_mode == CREDENTIALS_SAME_ORIGIN
        assert (
            TokenExchangeClient(BaseConfig(with_credentials=True)).credentials_mode
            == CREDENTIALS_INCLUDE
        )


class TestExchange:
    @pytest.mark.asyncio
    async def test_posts_json_and_returns_body(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"token": "t"})

        result = await _client(handler).exchange({"code": "c1", "state": "s1"}, {"x": "y"}, _flow())

        assert result == {"token": "t"}
        assert len(seen) == 1
        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == "https://app.example/auth/acme"
        assert request.headers["content-type"] == "application/json"
        assert request.headers["accept"] == "application/json"
        assert json.loads(request.content) == {
            "code": "c1",
            "clientId": "client-1",
            "redirectUri": "https://app.example/cb",
            "x": "y",
            "state": "s1",
        }

    @pytest.mark.asyncio
    async def test_error_status_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, text="denied")

        with pytest.raises(ExchangeFailedError) as exc_info:
            await _client(handler).exchange({"code": "c1"}, None, _flow())
        assert exc_info.value.status_code == 401
        assert exc_info.value.body == "denied"

    @pytest.mark.asyncio
    async def test_transport_error_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ExchangeFailedError) as exc_info:
            await _client(handler).exchange({"code": "c1"}, None, _flow())
        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_empty_body_returns_none(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(204)

        assert await _client(handler).exchange({"code": "c1"}, None, _flow()) is None

    @pytest.mark.asyncio
    async def test_invalid_json_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>")

        with pytest.raises(ExchangeFailedError, match="invalid JSON"):
            await _client(handler).exchange({"code": "c1"}, None, _flow())

    @pytest.mark.asyncio
    async def test_cookies_sent_to_same_origin(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={})

        client = _client(handler, cookies={"sid": "abc"}, base_url="https://app.example")
        await client.exchange({"code": "c1"}, None, _flow(url="/auth/acme"))
        assert "sid=abc" in seen[0].headers.get("cookie", "")

    @pytest.mark.asyncio
    async def test_cookies_withheld_cross_origin(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={})

        client = _client(handler, cookies={"sid": "abc"}, base_url="https://app.example")
        await client.exchange({"code": "c1"}, None, _flow(url="https://api.other/x"))
        assert "cookie" not in seen[0].headers

    @pytest.mark.asyncio
    async def test_cookies_included_with_credentials(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={})

        client = _client(
            handler, cookies={"sid": "abc"}, base_url="https://app.example", with_credentials=True
        )
        await client.exchange({"code": "c1"}, None, _flow(url="https://api.other/x"))
        assert "sid=abc" in seen[0].headers.get("cookie", "")
