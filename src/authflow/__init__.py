"""authflow -- OAuth2 / OpenID Connect authorization flows for public clients.

The engine builds authorization requests, opens the authorization endpoint
(full-page navigation or popup), validates the returned ``state``, checks
the identity token's ``nonce`` for implicit and hybrid flows, and exchanges
authorization codes for tokens through a backend endpoint. Storage, popup,
navigation and identity-token decoding are injected collaborators.

Typical usage::

    from authflow import OAuth2, BaseConfig, MemoryStorage, preset_config

    flow = OAuth2(storage, popup, BaseConfig(), auth, navigator)
    result = await flow.open(preset_config("github", client_id="...", redirect_uri="..."))

Modules:
    oauth2: The :class:`OAuth2` flow orchestrator.
    models: Pydantic configuration models and flow value types.
    querystring: Query-string codec.
    state: State / nonce issuing and verification.
    exchange: Code-for-token exchange client.
    popup, navigator, storage, id_token: Collaborator interfaces and implementations.
    app: Typer CLI.
"""

__version__ = "0.1.0"

from authflow.exceptions import (  # noqa: E402
    AuthFlowError,
    ExchangeFailedError,
    NonceMismatchError,
    PopupAbandonedError,
    PopupFailedError,
    StateMismatchError,
)
from authflow.models import BaseConfig, FlowConfig, FlowKind  # noqa: E402
from authflow.oauth2 import OAuth2  # noqa: E402
from authflow.providers import preset_config  # noqa: E402
from authflow.storage import MemoryStorage  # noqa: E402

__all__ = [
    "AuthFlowError",
    "BaseConfig",
    "ExchangeFailedError",
    "FlowConfig",
    "FlowKind",
    "MemoryStorage",
    "NonceMismatchError",
    "OAuth2",
    "PopupAbandonedError",
    "PopupFailedError",
    "StateMismatchError",
    "preset_config",
]
