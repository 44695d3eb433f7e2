"""Query-string codec for authorization requests and responses.

:func:`parse_query_string` turns the query or fragment the provider
redirects back with into a flat mapping. :func:`build_query_string`
serialises a :class:`~authflow.models.FlowConfig` into the parameter
string of the authorization URL.

Parameter order on the authorization URL is part of the provider contract:
the three parameter-name lists are emitted in a fixed order
(``default_url_params``, ``required_url_params``, ``optional_url_params``)
and never sorted, so the same config always yields the same URL.
"""

from __future__ import annotations

from typing import Any, Sequence
from urllib.parse import quote, unquote, urlsplit

from authflow.models import FlowConfig
from authflow.state import StateManager
from authflow.storage import Storage

# Characters encodeURIComponent leaves alone besides the unreserved set.
_COMPONENT_SAFE = "!~*'()"

_URL_PARAM_LISTS = ("default_url_params", "required_url_params", "optional_url_params")


def encode_component(value: Any) -> str:
    """Percent-encode *value* the way ``encodeURIComponent`` does."""
    return quote(str(value), safe=_COMPONENT_SAFE)


def join_url(base_url: str, url: str) -> str:
    """Join *url* onto *base_url* with exactly one slash between them.

    Absolute URLs (with a scheme) and protocol-relative URLs are returned
    unchanged.
    """
    if urlsplit(url).scheme or url.startswith("//"):
        return url
    if not base_url:
        return url
    if not url:
        return base_url
    return base_url.rstrip("/") + "/" + url.lstrip("/")


def parse_query_string(raw: str) -> dict[str, str]:
    """Parse ``a=1&b=2`` into ``{"a": "1", "b": "2"}``.

    A leading ``?`` or ``#`` is ignored and empty segments are skipped.
    Only the first ``=`` of a segment separates key from value; a segment
    without ``=`` becomes a key with an empty value. Keys and values are
    percent-decoded (``+`` is kept literally). Later duplicates win.
    """
    if raw[:1] in ("?", "#"):
        raw = raw[1:]
    result: dict[str, str] = {}
    for segment in raw.split("&"):
        if not segment:
            continue
        key, _, value = segment.partition("=")
        result[unquote(key)] = unquote(value)
    return result


def _join_scope(config: FlowConfig, scope: Sequence[str]) -> str:
    delimiter = config.scope_delimiter
    joined = delimiter.join(scope)
    if config.scope_prefix:
        joined = delimiter.join([config.scope_prefix, joined])
    return joined


def resolve_param(config: FlowConfig, storage: Storage, param_name: str) -> Any:
    """Resolve the raw (unencoded) value for one authorization URL parameter.

    ``state`` and ``nonce`` always come from storage, so the URL carries
    exactly the values that were issued for this flow. Otherwise a
    callable configuration entry is invoked, or the matching configuration
    field is read; a ``scope`` sequence is joined with the configured
    delimiter and prefix.
    """
    states = StateManager(storage)
    if param_name == "state":
        return states.stored_state(config.name)
    if param_name == "nonce":
        return states.stored_nonce(config.name)

    value = config.lookup(param_name)
    if callable(value):
        value = value()

    if param_name == "scope" and isinstance(value, (list, tuple)):
        value = _join_scope(config, value)
    return value


def build_query_string(config: FlowConfig, storage: Storage) -> str:
    """Serialise *config* into the authorization URL's query string.

    Every value is percent-encoded once. Parameters whose value resolves
    to ``None`` are left out.

    Args:
        config: The flow configuration.
        storage: Storage holding the issued state and nonce.

    Returns:
        The ``name=value`` pairs joined with ``&``.
    """
    pairs: list[str] = []
    for list_name in _URL_PARAM_LISTS:
        for param_name in getattr(config, list_name) or ():
            value = resolve_param(config, storage, param_name)
            if value is None:
                continue
            pairs.append(f"{param_name}={encode_component(value)}")
    return "&".join(pairs)
