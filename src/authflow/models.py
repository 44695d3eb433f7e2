"""Canonical Pydantic models shared across all authflow modules.

**Flow configuration** -- :class:`FlowConfig` describes one provider: its
endpoints, the parameters to put on the authorization URL, and how the
``state`` / ``nonce`` anti-forgery values are produced. :class:`BaseConfig`
holds the settings shared by every flow (platform, exchange base URL,
credentials mode).

**Flow values** -- ``state`` and ``nonce`` are modelled as a small tagged
union: :class:`StaticValue` (a literal string), :class:`GeneratedValue` (a
zero-argument factory invoked once per flow), or ``None`` (not issued).

Configuration fields are snake_case in Python and accept camelCase aliases,
so provider definitions written for browser libraries (``redirectUri``,
``authorizationEndpoint``) validate unchanged. Unknown keys are kept in
``model_extra`` and may be referenced from the URL parameter lists.
"""

from __future__ import annotations

import enum
import secrets
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Union
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator
from pydantic.alias_generators import to_camel

OAuthResponse = dict[str, str]
"""Fields returned by the provider through the redirect (query and/or fragment)."""


def generate_token() -> str:
    """Return a random URL-safe value suitable for ``state`` or ``nonce``."""
    return secrets.token_urlsafe(32)


# --- State / nonce sources ---


@dataclass(frozen=True)
class StaticValue:
    """A literal ``state`` / ``nonce`` persisted verbatim."""

    value: str

    def produce(self) -> str:
        return self.value


@dataclass(frozen=True)
class GeneratedValue:
    """A ``state`` / ``nonce`` produced by calling *factory* once per flow."""

    factory: Callable[[], str]

    def produce(self) -> str:
        return str(self.factory())


ValueSource = Union[StaticValue, GeneratedValue]


def to_value_source(value: Any) -> Optional[ValueSource]:
    """Coerce raw configuration input into a :data:`ValueSource`.

    ``str`` becomes a :class:`StaticValue`, a callable becomes a
    :class:`GeneratedValue`, ``True`` requests a random value and
    ``None`` / ``False`` mean "not issued".

    Raises:
        ValueError: For any other input type.
    """
    if value is None or value is False:
        return None
    if isinstance(value, (StaticValue, GeneratedValue)):
        return value
    if value is True:
        return GeneratedValue(generate_token)
    if isinstance(value, str):
        return StaticValue(value)
    if callable(value):
        return GeneratedValue(value)
    raise ValueError(
        f"expected a string, a zero-argument callable or a boolean, got {type(value).__name__}"
    )


# --- Flow kind ---


class FlowKind(str, enum.Enum):
    """OAuth2 flow family, derived once from ``response_type``."""

    AUTHORIZATION_CODE = "authorization_code"
    IMPLICIT = "implicit"
    HYBRID = "hybrid"

    @classmethod
    def from_response_type(cls, response_type: str) -> FlowKind:
        """Classify a ``response_type`` value.

        Any response type mentioning ``token`` (``token``, ``id_token``,
        ``id_token token``) returns tokens directly from the authorization
        endpoint; if it also asks for a ``code`` the flow is hybrid.
        """
        lowered = (response_type or "").lower()
        if "token" in lowered:
            if "code" in lowered.split():
                return cls.HYBRID
            return cls.IMPLICIT
        return cls.AUTHORIZATION_CODE


# --- Flow config ---


class FlowConfig(BaseModel):
    """Per-provider authorization flow configuration.

    Instances are immutable: :class:`~authflow.oauth2.OAuth2` builds a new
    snapshot for every ``open`` call, so the caller's object is never
    modified.

    Example::

        FlowConfig(
            name="google",
            authorization_endpoint="https://accounts.google.com/o/oauth2/auth",
            client_id="abc.apps.googleusercontent.com",
            redirect_uri="http://127.0.0.1:8765/callback",
            scope=["profile", "email"],
            scope_prefix="openid",
            required_url_params=["scope"],
            optional_url_params=["state"],
            state=True,
        )
    """

    model_config = ConfigDict(
        extra="allow",
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        arbitrary_types_allowed=True,
    )

    name: str = Field(description="Unique provider key; prefixes the stored state/nonce entries")
    url: Optional[str] = Field(default=None, description="Backend code-exchange endpoint")
    authorization_endpoint: Optional[str] = None
    redirect_uri: Optional[str] = None
    end_session_uri: Optional[str] = None
    post_logout_redirect_uri: Optional[str] = None
    client_id: Optional[str] = None
    response_type: str = "code"
    scope: Optional[Union[str, list[str]]] = None
    scope_delimiter: str = " "
    scope_prefix: Optional[str] = None
    state: Optional[ValueSource] = None
    nonce: Optional[ValueSource] = None
    default_url_params: list[str] = Field(
        default_factory=lambda: ["response_type", "client_id", "redirect_uri"]
    )
    required_url_params: list[str] = Field(default_factory=list)
    optional_url_params: list[str] = Field(default_factory=list)
    response_params: list[str] = Field(
        default_factory=list,
        description="Extra provider response fields forwarded to the exchange endpoint",
    )
    popup_options: Optional[dict[str, Any]] = None
    display: Optional[str] = None

    @field_validator("state", "nonce", mode="before")
    @classmethod
    def _coerce_value_source(cls, value: Any) -> Optional[ValueSource]:
        return to_value_source(value)

    @field_validator("required_url_params", "optional_url_params", "response_params", mode="before")
    @classmethod
    def _none_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_serializer("state", "nonce")
    def _serialize_value_source(self, value: Optional[ValueSource]) -> Union[str, bool, None]:
        if isinstance(value, StaticValue):
            return value.value
        if isinstance(value, GeneratedValue):
            return True
        return None

    @property
    def flow_kind(self) -> FlowKind:
        """The :class:`FlowKind` implied by :attr:`response_type`."""
        return FlowKind.from_response_type(self.response_type)

    @classmethod
    def coerce(cls, options: Union[FlowConfig, Mapping[str, Any]]) -> FlowConfig:
        """Return a fresh snapshot of *options* merged over the defaults."""
        if isinstance(options, FlowConfig):
            return options.model_copy()
        return cls.model_validate(dict(options))

    def lookup(self, name: str) -> Any:
        """Return the configuration value for a wire parameter *name*.

        Declared fields are matched by their snake_case name (``redirect_uri``,
        ``client-id``); extra fields are looked up under the raw, camelCase
        and snake_case spellings. Missing entries return ``None``.
        """
        attr = name.replace("-", "_")
        if attr in type(self).model_fields:
            return getattr(self, attr)
        extra = self.model_extra or {}
        for key in (name, to_camel(attr), attr):
            if key in extra:
                return extra[key]
        return None


# --- Shared config ---


class BaseConfig(BaseModel):
    """Settings shared by every flow.

    Attributes:
        platform: ``"mobile"`` makes popups report back through
            :meth:`~authflow.popup.PopupHandle.event_listener`; anything
            else uses :meth:`~authflow.popup.PopupHandle.poll_popup`.
        base_url: Prefix joined with relative exchange URLs.
        with_credentials: Send cookies to the exchange endpoint regardless
            of origin (``"include"`` credentials mode).
        response_id_token_prop: Response field holding the identity token.
        timeout: Exchange request timeout in seconds.
    """

    platform: str = "browser"
    base_url: Optional[str] = None
    with_credentials: bool = False
    response_id_token_prop: str = "id_token"
    timeout: float = Field(default=30.0, gt=0)


# --- Location ---


class Location(BaseModel):
    """The query and fragment of the page the navigator is showing."""

    query: str = ""
    fragment: str = ""

    @classmethod
    def from_url(cls, url: str) -> Location:
        parts = urlsplit(url)
        return cls(query=parts.query, fragment=parts.fragment)
