"""Popup controller interface and a loopback implementation.

:class:`Popup` opens the authorization URL in a separate window and returns
a :class:`PopupHandle` whose coroutines resolve with the provider's
response once the window reaches the redirect URI. Browsers detect the
return either by polling the popup's location (:meth:`PopupHandle.poll_popup`)
or through a listener injected into the in-app browser on mobile platforms
(:meth:`PopupHandle.event_listener`). Both raise
:class:`~authflow.exceptions.PopupAbandonedError` when the user gives up and
:class:`~authflow.exceptions.PopupFailedError` when the provider returns an
``error``.

:class:`LoopbackPopup` drives the system browser from a terminal: it binds a
one-shot HTTP server to the host and port of a loopback ``redirect_uri``
(``http://127.0.0.1:<port>/callback``), opens the browser, and resolves with
the query parameters of the redirect. Fragment responses never reach the
server, so implicit flows need ``response_mode=query`` with this popup.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
import webbrowser
from abc import ABC, abstractmethod
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Callable, Mapping, Optional
from urllib.parse import urlsplit

from authflow.exceptions import ConfigError, PopupAbandonedError, PopupFailedError
from authflow.models import OAuthResponse
from authflow.querystring import parse_query_string

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 120.0

_SUCCESS_PAGE = "Authorization complete. You can close this window and return to the terminal."


class PopupHandle(ABC):
    """An open authorization window."""

    @abstractmethod
    async def poll_popup(self) -> OAuthResponse:
        """Wait until the window reaches the redirect URI and return its parameters."""
        ...

    @abstractmethod
    async def event_listener(self, redirect_uri: str) -> OAuthResponse:
        """Wait for a load event on *redirect_uri* and return its parameters."""
        ...


class Popup(ABC):
    """Opens authorization windows."""

    @abstractmethod
    def open(
        self,
        url: str,
        name: str,
        options: Optional[Mapping[str, Any]],
        redirect_uri: Optional[str],
    ) -> PopupHandle:
        """Open *url* in a window called *name* and return its handle."""
        ...


def _raise_for_error(params: OAuthResponse) -> OAuthResponse:
    if "error" in params:
        raise PopupFailedError(params["error"], params.get("error_description", ""))
    return params


class _LoopbackHandle(PopupHandle):
    """Waits on a bound :class:`HTTPServer` for the provider redirect."""

    def __init__(self, server: HTTPServer, callback_path: str, timeout: float) -> None:
        self._server = server
        self._callback_path = callback_path
        self._timeout = timeout
        self._captured: Optional[OAuthResponse] = None

    def _handler_class(self, expected_path: str) -> type[BaseHTTPRequestHandler]:
        handle = self

        class CallbackHandler(BaseHTTPRequestHandler):
            def do_GET(self) -> None:
                parts = urlsplit(self.path)
                if parts.path.rstrip("/") != expected_path.rstrip("/"):
                    self.send_response(404)
                    self.end_headers()
                    return

                params = parse_query_string(parts.query)
                handle._captured = params
                body = _SUCCESS_PAGE
                if "error" in params:
                    body = f"Authorization failed: {params['error']}"

                self.send_response(200)
                self.send_header("Content-Type", "text/html; charset=utf-8")
                self.end_headers()
                self.wfile.write(f"<html><body><h2>{body}</h2></body></html>".encode("utf-8"))

            def log_message(self, format: str, *args: Any) -> None:
                logger.debug("Callback server: " + format, *args)

        return CallbackHandler

    def _wait(self, expected_path: str) -> OAuthResponse:
        server = self._server
        server.RequestHandlerClass = self._handler_class(expected_path)
        deadline = time.monotonic() + self._timeout
        try:
            while self._captured is None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise PopupAbandonedError(
                        f"No authorization response received within {self._timeout:g} seconds"
                    )
                server.timeout = min(remaining, 1.0)
                server.handle_request()
        finally:
            server.server_close()
        return _raise_for_error(self._captured)

    async def poll_popup(self) -> OAuthResponse:
        return await asyncio.to_thread(self._wait, self._callback_path)

    async def event_listener(self, redirect_uri: str) -> OAuthResponse:
        path = urlsplit(redirect_uri).path or "/"
        return await asyncio.to_thread(self._wait, path)


class LoopbackPopup(Popup):
    """A :class:`Popup` that uses the system browser and a local callback server.

    ``options["timeout"]`` (seconds) bounds how long the handle waits for
    the redirect; other options (window size and such) have no meaning
    here and are ignored.

    Args:
        open_browser: Whether to launch the system browser.
        announce: Called with the authorization URL when the browser is
            not launched, so the user can open it by hand.
    """

    def __init__(
        self,
        open_browser: bool = True,
        announce: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._open_browser = open_browser
        self._announce = announce

    def open(
        self,
        url: str,
        name: str,
        options: Optional[Mapping[str, Any]],
        redirect_uri: Optional[str],
    ) -> PopupHandle:
        if not redirect_uri:
            raise ConfigError(f"Provider '{name}' needs a redirect_uri for the loopback popup")
        parts = urlsplit(redirect_uri)
        if parts.scheme != "http" or not parts.hostname or not parts.port:
            raise ConfigError(
                f"Loopback popup needs an http://host:port redirect_uri, got '{redirect_uri}'"
            )

        timeout = float((options or {}).get("timeout", DEFAULT_TIMEOUT))
        server = HTTPServer((parts.hostname, parts.port), BaseHTTPRequestHandler)
        handle = _LoopbackHandle(server, parts.path or "/", timeout)
        logger.info("Waiting for '%s' authorization on %s", name, redirect_uri)

        if self._open_browser:
            # Open browser in a separate thread to avoid blocking
            threading.Thread(target=webbrowser.open, args=(url,), daemon=True).start()
        elif self._announce is not None:
            self._announce(url)
        return handle
