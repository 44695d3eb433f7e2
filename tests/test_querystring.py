"""Tests for authflow.querystring -- parsing, encoding and URL parameter resolution."""

from __future__ import annotations

import pytest

from authflow.models import FlowConfig
from authflow.querystring import (
    build_query_string,
    encode_component,
    join_url,
    parse_query_string,
    resolve_param,
)
from authflow.state import StateManager
from authflow.storage import MemoryStorage


def _config(**kwargs: object) -> FlowConfig:
    defaults: dict[str, object] = {
        "name": "acme",
        "client_id": "client-1",
        "redirect_uri": "https://app.example/cb",
    }
    defaults.update(kwargs)
    return FlowConfig(**defaults)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# parse_query_string
# ---------------------------------------------------------------------------


class TestParseQueryString:
    def test_simple_pairs(self) -> None:
        assert parse_query_string("a=1&b=2") == {"a": "1", "b": "2"}

    def test_empty_string(self) -> None:
        assert parse_query_string("") == {}

    def test_segment_without_equals_has_empty_value(self) -> None:
        assert parse_query_string("flag&a=1") == {"flag": "", "a": "1"}

    def test_only_first_equals_splits(self) -> None:
        assert parse_query_string("token=abc==") == {"token": "abc=="}

    def test_percent_decoding(self) -> None:
        assert parse_query_string("redirect=https%3A%2F%2Fa.example%2Fcb") == {
            "redirect": "https://a.example/cb"
        }

    def test_plus_is_literal(self) -> None:
        assert parse_query_string("scope=a+b") == {"scope": "a+b"}

    def test_leading_marker_ignored(self) -> None:
        assert parse_query_string("#access_token=t") == {"access_token": "t"}
        assert parse_query_string("?code=c") == {"code": "c"}

    def test_empty_segments_skipped(self) -> None:
        assert parse_query_string("a=1&&b=2&") == {"a": "1", "b": "2"}

    def test_later_duplicate_wins(self) -> None:
        assert parse_query_string("a=1&a=2") == {"a": "2"}


# ---------------------------------------------------------------------------
# encode_component / join_url
# ---------------------------------------------------------------------------


class TestEncodeComponent:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("read write", "read%20write"),
            ("https://a.example/cb", "https%3A%2F%2Fa.example%2Fcb"),
            ("a+b", "a%2Bb"),
            ("it's(ok)!*~", "it's(ok)!*~"),
        ],
    )
    def test_matches_uri_component_encoding(self, raw: str, expected: str) -> None:
        assert encode_component(raw) == expected

    def test_non_string_values(self) -> None:
        assert encode_component(42) == "42"


class TestJoinUrl:
    def test_single_slash_between_parts(self) -> None:
        assert join_url("https://app.example/", "/auth/google") == "https://app.example/auth/google"
        assert join_url("https://app.example", "auth/google") == "https://app.example/auth/google"

    def test_absolute_url_unchanged(self) -> None:
        assert join_url("https://app.example", "https://other.example/x") == "https://other.example/x"

    def test_protocol_relative_url_unchanged(self) -> None:
        assert join_url("https://app.example", "//other.example/x") == "//other.example/x"

    def test_empty_base(self) -> None:
        assert join_url("", "/auth") == "/auth"


# ---------------------------------------------------------------------------
# build_query_string
# ---------------------------------------------------------------------------


class TestBuildQueryString:
    def test_default_params_in_order(self) -> None:
        result = build_query_string(_config(), MemoryStorage())
        assert result == (
            "response_type=code&client_id=client-1"
            "&redirect_uri=https%3A%2F%2Fapp.example%2Fcb"
        )

    def test_scope_list_joined_with_delimiter(self) -> None:
        config = _config(scope=["read", "write"], required_url_params=["scope"])
        assert build_query_string(config, MemoryStorage()).endswith("&scope=read%20write")

    def test_scope_prefix(self) -> None:
        config = _config(
            scope=["read", "write"], scope_prefix="openid", required_url_params=["scope"]
        )
        assert build_query_string(config, MemoryStorage()).endswith("&scope=openid%20read%20write")

    def test_custom_delimiter(self) -> None:
        config = _config(scope=["email", "profile"], scope_delimiter=",", required_url_params=["scope"])
        assert build_query_string(config, MemoryStorage()).endswith("&scope=email%2Cprofile")

    def test_list_order_default_required_optional(self) -> None:
        config = _config(
            default_url_params=["client_id"],
            required_url_params=["display"],
            optional_url_params=["response_type"],
            display="popup",
        )
        assert build_query_string(config, MemoryStorage()) == (
            "client_id=client-1&display=popup&response_type=code"
        )

    def test_none_values_omitted(self) -> None:
        config = _config(redirect_uri=None, optional_url_params=["display"])
        assert build_query_string(config, MemoryStorage()) == "response_type=code&client_id=client-1"

    def test_state_read_from_storage_and_encoded(self) -> None:
        storage = MemoryStorage()
        config = _config(state="a b/c", optional_url_params=["state"])
        StateManager(storage).issue_state(config.name, config.state)
        assert build_query_string(config, storage).endswith("&state=a%20b%2Fc")

    def test_generated_state_not_reinvoked(self) -> None:
        calls: list[int] = []

        def factory() -> str:
            calls.append(1)
            return f"gen-{len(calls)}"

        storage = MemoryStorage()
        config = _config(state=factory, optional_url_params=["state"])
        StateManager(storage).issue_state(config.name, config.state)

        assert build_query_string(config, storage).endswith("&state=gen-1")
        assert build_query_string(config, storage).endswith("&state=gen-1")
        assert len(calls) == 1

    def test_state_not_issued_is_omitted(self) -> None:
        config = _config(optional_url_params=["state"])
        assert "state=" not in build_query_string(config, MemoryStorage())

    def test_extra_fields_by_snake_or_camel_name(self) -> None:
        config = FlowConfig.model_validate(
            {
                "name": "acme",
                "clientId": "client-1",
                "redirectUri": "https://app.example/cb",
                "accessType": "offline",
                "prompt": "consent",
                "optionalUrlParams": ["access_type", "prompt"],
            }
        )
        assert build_query_string(config, MemoryStorage()).endswith(
            "&access_type=offline&prompt=consent"
        )


class TestResolveParam:
    def test_callable_extra_is_invoked(self) -> None:
        config = _config(login_hint=lambda: "user@example.com")
        assert resolve_param(config, MemoryStorage(), "login_hint") == "user@example.com"

    def test_missing_param_is_none(self) -> None:
        assert resolve_param(_config(), MemoryStorage(), "prompt") is None

    def test_scope_string_passed_through(self) -> None:
        config = _config(scope="openid email", scope_prefix="ignored")
        assert resolve_param(config, MemoryStorage(), "scope") == "openid email"
