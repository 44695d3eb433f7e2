"""Built-in provider presets.

Each preset carries the provider's authorization endpoint, scopes and the
URL parameters it expects. Applications only add what is specific to them
(``client_id``, ``redirect_uri``, the exchange ``url``)::

    config = preset_config("google", client_id="...", redirect_uri="http://127.0.0.1:8765/cb")

``state=True`` / ``nonce=True`` in a preset mean "generate a random value
for every flow".
"""

from __future__ import annotations

import copy
from typing import Any

from authflow.exceptions import ConfigError
from authflow.models import FlowConfig

PRESETS: dict[str, dict[str, Any]] = {
    "google": {
        "url": "/auth/google",
        "authorization_endpoint": "https://accounts.google.com/o/oauth2/auth",
        "scope": ["profile", "email"],
        "scope_prefix": "openid",
        "scope_delimiter": " ",
        "required_url_params": ["scope"],
        "optional_url_params": ["display", "state"],
        "display": "popup",
        "state": True,
        "popup_options": {"width": 452, "height": 633},
    },
    "facebook": {
        "url": "/auth/facebook",
        "authorization_endpoint": "https://www.facebook.com/v2.5/dialog/oauth",
        "scope": ["email"],
        "scope_delimiter": ",",
        "nonce": True,
        "required_url_params": ["nonce", "display", "scope"],
        "display": "popup",
        "popup_options": {"width": 580, "height": 400},
    },
    "linkedin": {
        "url": "/auth/linkedin",
        "authorization_endpoint": "https://www.linkedin.com/uas/oauth2/authorization",
        "scope": ["r_emailaddress"],
        "scope_delimiter": " ",
        "required_url_params": ["state"],
        "state": True,
        "popup_options": {"width": 527, "height": 582},
    },
    "github": {
        "url": "/auth/github",
        "authorization_endpoint": "https://github.com/login/oauth/authorize",
        "scope": ["user:email"],
        "scope_delimiter": " ",
        "optional_url_params": ["scope", "state"],
        "state": True,
        "popup_options": {"width": 1020, "height": 618},
    },
    "instagram": {
        "url": "/auth/instagram",
        "authorization_endpoint": "https://api.instagram.com/oauth/authorize",
        "scope": ["basic"],
        "scope_delimiter": "+",
        "required_url_params": ["scope"],
        "display": "popup",
    },
    "live": {
        "url": "/auth/live",
        "authorization_endpoint": "https://login.live.com/oauth20_authorize.srf",
        "scope": ["wl.emails"],
        "scope_delimiter": " ",
        "required_url_params": ["display", "scope"],
        "display": "popup",
        "popup_options": {"width": 500, "height": 560},
    },
}


def list_presets() -> list[str]:
    return sorted(PRESETS)


def preset_config(provider: str, name: str | None = None, **overrides: Any) -> FlowConfig:
    """Build a :class:`~authflow.models.FlowConfig` from a preset.

    Args:
        provider: Preset key (see :func:`list_presets`).
        name: Flow name; defaults to *provider*.
        **overrides: Field values applied over the preset.

    Raises:
        ConfigError: If *provider* is not a known preset.
    """
    try:
        data = copy.deepcopy(PRESETS[provider])
    except KeyError:
        available = ", ".join(list_presets())
        raise ConfigError(f"Unknown provider preset '{provider}'. Available: {available}") from None
    data.update(overrides)
    data["name"] = name or provider
    return FlowConfig.model_validate(data)
