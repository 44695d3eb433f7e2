"""Shared test fixtures for authflow.

Provides isolated config directories, in-memory collaborators for the
flow engine, and helpers for building identity tokens and fake exchange
endpoints. These fixtures are automatically discovered by pytest and
available to all test modules without explicit imports.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Optional

import httpx
import jwt
import pytest

from authflow.id_token import TokenAuthentication
from authflow.models import BaseConfig, FlowConfig, OAuthResponse
from authflow.navigator import UrlNavigator
from authflow.oauth2 import OAuth2
from authflow.output import OutputFormat, OutputManager, reset_output, set_output
from authflow.popup import Popup, PopupHandle
from authflow.storage import MemoryStorage


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager and the CLI log handler after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams the
    cached references become stale once the test finishes.
    """
    yield
    reset_output()
    logger = logging.getLogger("authflow")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to subdirectories of tmp_path,
    forces the XDG layout, and clears all AUTHFLOW_* environment variables.

    Returns:
        The tmp_path root directory.
    """
    monkeypatch.setattr("authflow.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for var in ["AUTHFLOW_BASE_URL", "AUTHFLOW_PLATFORM", "AUTHFLOW_WITH_CREDENTIALS"]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a quiet PLAIN output manager for the duration of a test."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()


# ---------------------------------------------------------------------------
# Flow engine collaborators
# ---------------------------------------------------------------------------


class FakeHandle(PopupHandle):
    """Popup handle that answers with a canned response.

    *respond* receives the authorization URL the popup was opened with, so
    a test can echo the issued state back.
    """

    def __init__(self, url: str, respond: Callable[[str], OAuthResponse]) -> None:
        self.url = url
        self._respond = respond
        self.polled = 0
        self.listened_on: list[str] = []

    async def poll_popup(self) -> OAuthResponse:
        self.polled += 1
        return self._respond(self.url)

    async def event_listener(self, redirect_uri: str) -> OAuthResponse:
        self.listened_on.append(redirect_uri)
        return self._respond(self.url)


class FakePopup(Popup):
    """Records every ``open`` call and hands out :class:`FakeHandle` objects."""

    def __init__(self, respond: Optional[Callable[[str], OAuthResponse]] = None) -> None:
        self.respond = respond or (lambda url: {})
        self.opened: list[dict[str, Any]] = []
        self.handles: list[FakeHandle] = []

    def open(self, url, name, options, redirect_uri) -> FakeHandle:
        self.opened.append(
            {"url": url, "name": name, "options": options, "redirect_uri": redirect_uri}
        )
        handle = FakeHandle(url, self.respond)
        self.handles.append(handle)
        return handle


def query_of(url: str) -> dict[str, str]:
    """Return the decoded query parameters of *url*."""
    from authflow.querystring import parse_query_string

    return parse_query_string(url.split("?", 1)[1] if "?" in url else "")


def make_id_token(**claims: Any) -> str:
    """Encode an HS256 identity token carrying *claims*."""
    return jwt.encode({"sub": "user-1", **claims}, "test-secret-key-with-enough-bytes", algorithm="HS256")


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def popup() -> FakePopup:
    return FakePopup()


@pytest.fixture
def navigator() -> UrlNavigator:
    return UrlNavigator("https://app.example/")


@pytest.fixture
def auth(storage: MemoryStorage) -> TokenAuthentication:
    return TokenAuthentication(storage)


@pytest.fixture
def exchange_requests() -> list[httpx.Request]:
    """Requests received by the fake exchange endpoint."""
    return []


@pytest.fixture
def exchange_http(exchange_requests: list[httpx.Request]) -> httpx.AsyncClient:
    """An AsyncClient whose transport records requests and answers with tokens."""

    def handler(request: httpx.Request) -> httpx.Response:
        exchange_requests.append(request)
        return httpx.Response(200, json={"access_token": "server-token"})

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def make_flow(storage, popup, auth, navigator, exchange_http):
    """Factory building an :class:`OAuth2` wired to the fake collaborators."""

    def _make(**config: Any) -> OAuth2:
        return OAuth2(storage, popup, BaseConfig(**config), auth, navigator, http=exchange_http)

    return _make


@pytest.fixture
def code_config() -> FlowConfig:
    """An authorization-code provider with a fixed state."""
    return FlowConfig(
        name="acme",
        url="https://app.example/auth/acme",
        authorization_endpoint="https://idp.example/authorize",
        client_id="client-1",
        redirect_uri="https://app.example/cb",
        scope=["read", "write"],
        required_url_params=["scope"],
        optional_url_params=["state"],
        state="s1",
    )
