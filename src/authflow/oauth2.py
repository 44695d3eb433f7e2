"""OAuth2 / OpenID Connect authorization flow orchestration.

:class:`OAuth2` ties the pieces together. For one :meth:`~OAuth2.open`
call the steps always run in this order:

1. Snapshot the flow configuration (defaults applied, caller's object
   untouched) and classify the flow (:class:`~authflow.models.FlowKind`).
2. Issue ``state`` and ``nonce`` into storage.
3. Build the authorization URL.
4. Either navigate the whole page there (``display == "page"``; the flow
   continues in :meth:`~OAuth2.resume` after the redirect) or open a popup
   and await the provider's response.
5. Reject a response whose ``state`` does not match.
6. Implicit / hybrid flows: check the identity token's ``nonce`` and hand
   the response back. Authorization-code flows: exchange the code through
   the backend and hand back its answer.

See Also:
    :mod:`authflow.popup`, :mod:`authflow.navigator`, :mod:`authflow.exchange`
    for the collaborators.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Union

import httpx

from authflow.exceptions import NonceMismatchError, StateMismatchError
from authflow.exchange import TokenExchangeClient
from authflow.id_token import Authentication, IdTokenVerifier
from authflow.models import BaseConfig, FlowConfig, FlowKind, OAuthResponse
from authflow.navigator import Navigator
from authflow.popup import Popup
from authflow.querystring import build_query_string, encode_component, parse_query_string
from authflow.request import build_authorization_url
from authflow.state import StateManager
from authflow.storage import Storage

logger = logging.getLogger(__name__)

FlowOptions = Union[FlowConfig, Mapping[str, Any]]


class OAuth2:
    """Run OAuth2 authorization flows against configured providers.

    Args:
        storage: Holds issued state / nonce values between request and response.
        popup: Opens authorization windows for non-page flows.
        config: Shared settings.
        auth: Identity-token collaborator (logout hint, nonce check).
        navigator: Full-page navigation and current location.
        http: HTTP client for the code exchange; one is created per
            exchange when omitted.

    Example::

        flow = OAuth2(MemoryStorage(), LoopbackPopup(), BaseConfig(), auth, navigator)
        tokens = await flow.open(preset_config("github", client_id="..."))
    """

    def __init__(
        self,
        storage: Storage,
        popup: Popup,
        config: BaseConfig,
        auth: Authentication,
        navigator: Navigator,
        http: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.storage = storage
        self.popup = popup
        self.config = config
        self.auth = auth
        self.navigator = navigator
        self.states = StateManager(storage)
        self.exchange_client = TokenExchangeClient(config, http)
        self.id_token_verifier = IdTokenVerifier(storage, auth, config.response_id_token_prop)

    async def open(
        self,
        options: FlowOptions,
        user_data: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """Start an authorization flow and return its result.

        Args:
            options: The provider's flow configuration (a
                :class:`~authflow.models.FlowConfig` or a mapping).
            user_data: Extra fields posted with the code in the
                authorization-code flow.

        Returns:
            ``None`` for ``display == "page"`` (the page navigates away);
            the provider's response for implicit / hybrid flows; the
            exchange endpoint's response for authorization-code flows.

        Raises:
            StateMismatchError: The returned ``state`` does not match.
            NonceMismatchError: The identity token's ``nonce`` does not match.
            ExchangeFailedError: The exchange endpoint rejected the code.
            PopupError: Raised by the popup controller.
        """
        current = FlowConfig.coerce(options)
        flow_kind = current.flow_kind
        url = self._prepare(current)

        if current.display == "page":
            logger.info("Redirecting to '%s' authorization endpoint", current.name)
            self.navigator.navigate(url)
            return None

        handle = self.popup.open(url, current.name, current.popup_options, current.redirect_uri)
        if self.config.platform == "mobile":
            oauth_data = await handle.event_listener(current.redirect_uri)
        else:
            oauth_data = await handle.poll_popup()

        return await self._complete(current, flow_kind, oauth_data, user_data)

    def authorization_url(self, options: FlowOptions) -> str:
        """Issue ``state`` / ``nonce`` for a new flow and return its authorization URL.

        This is the first half of :meth:`open` for callers that send the
        user to the provider themselves and later call :meth:`resume`.
        """
        return self._prepare(FlowConfig.coerce(options))

    def _prepare(self, current: FlowConfig) -> str:
        self.states.issue_state(current.name, current.state)
        self.states.issue_nonce(current.name, current.nonce)
        return build_authorization_url(current, self.storage)

    async def resume(
        self,
        options: FlowOptions,
        user_data: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """Finish a ``display == "page"`` flow after the provider redirected back.

        Reads the response from the navigator's current location (see
        :meth:`set_token_from_redirect`) and applies the same checks and
        exchange as :meth:`open`.
        """
        current = FlowConfig.coerce(options)
        oauth_data = self.set_token_from_redirect()
        return await self._complete(current, current.flow_kind, oauth_data, user_data)

    async def _complete(
        self,
        current: FlowConfig,
        flow_kind: FlowKind,
        oauth_data: OAuthResponse,
        user_data: Optional[Mapping[str, Any]],
    ) -> Any:
        if not self.states.verify_state(current.name, oauth_data.get("state")):
            logger.warning("State mismatch for '%s'", current.name)
            raise StateMismatchError()

        if flow_kind is not FlowKind.AUTHORIZATION_CODE:
            if not self.verify_id_token(oauth_data, current.name):
                logger.warning("Nonce mismatch for '%s'", current.name)
                raise NonceMismatchError()
            logger.info("'%s' %s flow completed", current.name, flow_kind.value)
            return oauth_data

        result = await self.exchange_for_token(oauth_data, user_data, current)
        logger.info("'%s' authorization code exchanged", current.name)
        return result

    def end_session(self, options: FlowOptions) -> None:
        """Navigate to the provider's end-session endpoint.

        The URL is ``{end_session_uri}?id_token_hint=<token>&post_logout_redirect_uri=<uri>``.
        Inputs are not validated: a missing ``end_session_uri`` produces a
        malformed navigation.
        """
        current = FlowConfig.coerce(options)
        id_token = self.auth.get_id_token()
        url = (
            f"{current.end_session_uri}"
            f"?id_token_hint={encode_component(id_token)}"
            f"&post_logout_redirect_uri={encode_component(current.post_logout_redirect_uri)}"
        )
        logger.info("Ending '%s' session", current.name)
        self.navigator.navigate(url)

    def set_token_from_redirect(self) -> OAuthResponse:
        """Return the response fields carried by the current location.

        Query and fragment are both parsed; fragment values win when a key
        appears in both. A trailing ``/`` on either part is ignored.
        """
        location = self.navigator.current_location()
        query = parse_query_string(location.query.removesuffix("/"))
        fragment = parse_query_string(location.fragment.removesuffix("/"))
        query.update(fragment)
        return query

    def build_query_string(self, options: FlowOptions) -> str:
        return build_query_string(FlowConfig.coerce(options), self.storage)

    def verify_id_token(self, oauth_data: Optional[Mapping[str, Any]], provider_name: str) -> bool:
        return self.id_token_verifier.verify(oauth_data, provider_name)

    async def exchange_for_token(
        self,
        oauth_data: Mapping[str, Any],
        user_data: Optional[Mapping[str, Any]],
        options: FlowOptions,
    ) -> Any:
        return await self.exchange_client.exchange(oauth_data, user_data, FlowConfig.coerce(options))
