"""Build the authorization endpoint URL for a flow."""

from __future__ import annotations

from authflow.exceptions import ConfigError
from authflow.models import FlowConfig
from authflow.querystring import build_query_string
from authflow.storage import Storage


def build_authorization_url(config: FlowConfig, storage: Storage) -> str:
    """Return ``authorization_endpoint?<query>`` for *config*.

    Reads the issued state and nonce from *storage* but never writes to
    it, so calling this twice for the same pending flow yields the same URL.

    Raises:
        ConfigError: If ``authorization_endpoint`` is not configured.
    """
    if not config.authorization_endpoint:
        raise ConfigError(f"Provider '{config.name}' has no authorization_endpoint")
    return f"{config.authorization_endpoint}?{build_query_string(config, storage)}"
