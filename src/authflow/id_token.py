"""Identity-token access and nonce verification.

:class:`Authentication` is the collaborator that knows the current
identity token and can decompose a raw token into its claims.
:class:`TokenAuthentication` keeps the token in a
:class:`~authflow.storage.Storage` and decodes JWT claims with PyJWT
*without* verifying the signature: the claims are only compared against a
value this client issued itself, and signature validation belongs to the
backend that consumes the token.

:class:`IdTokenVerifier` checks that the ``nonce`` claim of a returned
identity token matches the one issued for the flow. It is deliberately
lenient: a response without an identity token, a token that cannot be
decoded, or a token without a ``nonce`` claim all count as verified.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional

import jwt

from authflow.state import StateManager
from authflow.storage import Storage

logger = logging.getLogger(__name__)

_ID_TOKEN_KEY = "id_token"


class Authentication(ABC):
    """Access to the current identity token and its claims."""

    @abstractmethod
    def get_id_token(self) -> Optional[str]:
        """Return the identity token of the signed-in user, if any."""
        ...

    @abstractmethod
    def decompose_token(self, raw: str) -> Optional[dict[str, Any]]:
        """Return the claims of *raw*, or ``None`` if it cannot be decoded."""
        ...


class TokenAuthentication(Authentication):
    """:class:`Authentication` backed by a :class:`~authflow.storage.Storage`.

    Args:
        storage: Where the identity token is kept.
        key: Storage key of the identity token.
    """

    def __init__(self, storage: Storage, key: str = _ID_TOKEN_KEY) -> None:
        self._storage = storage
        self._key = key

    def get_id_token(self) -> Optional[str]:
        return self._storage.get(self._key)

    def set_id_token(self, token: str) -> None:
        self._storage.set(self._key, token)

    def clear(self) -> None:
        self._storage.remove(self._key)

    def decompose_token(self, raw: str) -> Optional[dict[str, Any]]:
        try:
            claims = jwt.decode(
                raw,
                options={"verify_signature": False, "verify_aud": False, "verify_exp": False},
            )
        except jwt.PyJWTError as exc:
            logger.debug("Cannot decode identity token: %s", exc)
            return None
        return claims if isinstance(claims, dict) else None


class IdTokenVerifier:
    """Check the ``nonce`` claim of an identity token returned by the provider.

    Args:
        storage: Storage holding the issued nonce.
        auth: Collaborator used to decompose the token.
        id_token_prop: Response field that carries the identity token.
    """

    def __init__(self, storage: Storage, auth: Authentication, id_token_prop: str = _ID_TOKEN_KEY) -> None:
        self._states = StateManager(storage)
        self._auth = auth
        self._id_token_prop = id_token_prop

    def verify(self, oauth_data: Optional[Mapping[str, Any]], flow_name: str) -> bool:
        id_token = oauth_data.get(self._id_token_prop) if oauth_data else None
        if not id_token:
            return True

        claims = self._auth.decompose_token(id_token)
        if not claims:
            logger.debug("Identity token for '%s' could not be decomposed; skipping nonce check", flow_name)
            return True

        nonce = claims.get("nonce")
        if not nonce:
            logger.debug("Identity token for '%s' has no nonce claim; skipping nonce check", flow_name)
            return True

        return self._states.verify_nonce(flow_name, nonce)
