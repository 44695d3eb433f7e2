"""Exchange an authorization code for tokens through a backend endpoint.

The browser never talks to the provider's token endpoint itself: it posts
the code, together with whatever the application wants to send along, to
its own backend (``FlowConfig.url``), which holds the client secret and
returns the tokens or a session. The response body is passed through to
the caller untouched.

A non-2xx status is terminal for the flow; nothing here retries.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional
from urllib.parse import urlsplit

import httpx

from authflow.exceptions import ConfigError, ExchangeFailedError
from authflow.models import BaseConfig, FlowConfig
from authflow.querystring import join_url

logger = logging.getLogger(__name__)

CREDENTIALS_INCLUDE = "include"
CREDENTIALS_SAME_ORIGIN = "same-origin"


def _origin(url: str) -> tuple[str, str]:
    parts = urlsplit(url)
    return parts.scheme.lower(), parts.netloc.lower()


def build_exchange_body(
    oauth_data: Mapping[str, Any],
    user_data: Optional[Mapping[str, Any]],
    config: FlowConfig,
) -> dict[str, Any]:
    """Assemble the JSON body posted to the exchange endpoint.

    ``user_data`` is merged over ``code`` / ``clientId`` / ``redirectUri``,
    then ``state`` is added when the provider returned one, then every
    field named in ``config.response_params`` is copied from the response.
    """
    body: dict[str, Any] = {
        "code": oauth_data.get("code"),
        "clientId": config.client_id,
        "redirectUri": config.redirect_uri,
    }
    body.update(user_data or {})

    if oauth_data.get("state"):
        body["state"] = oauth_data["state"]

    for param in config.response_params:
        body[param] = oauth_data.get(param)
    return body


class TokenExchangeClient:
    """POST authorization codes to the application's exchange endpoint.

    Args:
        config: Shared settings (``base_url``, ``with_credentials``, ``timeout``).
        http: Client to send requests with. Its cookie jar supplies the
            credentials sent to the endpoint. A private client is created
            per call when omitted.

    Example::

        async with httpx.AsyncClient() as http:
            client = TokenExchangeClient(BaseConfig(base_url="https://app.example"), http)
            tokens = await client.exchange({"code": "abc"}, None, flow_config)
    """

    def __init__(self, config: BaseConfig, http: Optional[httpx.AsyncClient] = None) -> None:
        self._config = config
        self._http = http

    @property
    def credentials_mode(self) -> str:
        """``"include"`` when cookies go to any origin, else ``"same-origin"``."""
        return CREDENTIALS_INCLUDE if self._config.with_credentials else CREDENTIALS_SAME_ORIGIN

    def exchange_url(self, config: FlowConfig) -> str:
        """Resolve the exchange URL, joining it onto ``base_url`` when one is set.

        Raises:
            ConfigError: If the provider has no ``url``.
        """
        if not config.url:
            raise ConfigError(f"Provider '{config.name}' has no exchange url")
        if self._config.base_url:
            return join_url(self._config.base_url, config.url)
        return config.url

    def _sends_cookies(self, url: str) -> bool:
        if self.credentials_mode == CREDENTIALS_INCLUDE:
            return True
        if not urlsplit(url).netloc:
            return True
        if not self._config.base_url:
            return False
        return _origin(url) == _origin(self._config.base_url)

    async def exchange(
        self,
        oauth_data: Mapping[str, Any],
        user_data: Optional[Mapping[str, Any]],
        config: FlowConfig,
    ) -> Any:
        """Post the authorization code and return the parsed response body.

        Args:
            oauth_data: The provider's response (must carry ``code``).
            user_data: Extra fields for the backend; they override the
                default ``code`` / ``clientId`` / ``redirectUri`` keys.
            config: The flow configuration.

        Returns:
            The decoded JSON body, or ``None`` when the body is empty.

        Raises:
            ExchangeFailedError: On a non-2xx status or a transport error.
        """
        url = self.exchange_url(config)
        body = build_exchange_body(oauth_data, user_data, config)

        if self._http is not None:
            return await self._post(self._http, url, body)
        async with httpx.AsyncClient(timeout=self._config.timeout) as http:
            return await self._post(http, url, body)

    async def _post(self, http: httpx.AsyncClient, url: str, body: dict[str, Any]) -> Any:
        request = http.build_request(
            "POST",
            url,
            json=body,
            headers={"Accept": "application/json"},
            timeout=self._config.timeout,
        )
        if not self._sends_cookies(url):
            request.headers.pop("Cookie", None)

        logger.debug("Exchanging authorization code at %s (credentials=%s)", url, self.credentials_mode)
        try:
            response = await http.send(request)
        except httpx.HTTPError as exc:
            raise ExchangeFailedError(f"Token exchange failed: {exc}") from exc

        if not response.is_success:
            raise ExchangeFailedError(
                f"Token exchange failed with status {response.status_code}: {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise ExchangeFailedError(
                f"Token exchange returned invalid JSON: {exc}",
                status_code=response.status_code,
                body=response.text,
            ) from exc
