"""Issue and verify the anti-forgery values of a pending flow.

``state`` protects the redirect against cross-site request forgery and
``nonce`` binds the identity token to this flow. Both are persisted in a
:class:`~authflow.storage.Storage` under keys scoped by the flow name, so
concurrent flows for different providers never interfere. Two concurrent
flows for the *same* provider share the entries and the later one wins.

Entries are never deleted here; their lifecycle belongs to the storage.
"""

from __future__ import annotations

import logging
from typing import Optional

from authflow.models import ValueSource
from authflow.storage import Storage

logger = logging.getLogger(__name__)


def state_key(flow_name: str) -> str:
    """Storage key of the issued ``state`` for *flow_name*."""
    return f"{flow_name}_state"


def nonce_key(flow_name: str) -> str:
    """Storage key of the issued ``nonce`` for *flow_name*."""
    return f"{flow_name}_nonce"


class StateManager:
    """Persist and check ``state`` / ``nonce`` values for named flows.

    Args:
        storage: Where issued values are kept between the authorization
            request and the provider's response.
    """

    def __init__(self, storage: Storage) -> None:
        self._storage = storage

    def _issue(self, key: str, source: Optional[ValueSource]) -> Optional[str]:
        if source is None:
            return None
        value = source.produce()
        self._storage.set(key, value)
        logger.debug("Issued '%s'", key)
        return value

    def issue_state(self, flow_name: str, source: Optional[ValueSource]) -> Optional[str]:
        """Produce and persist the ``state`` for *flow_name*.

        A :class:`~authflow.models.GeneratedValue` is invoked once, a
        :class:`~authflow.models.StaticValue` is stored verbatim and
        ``None`` issues nothing.

        Returns:
            The persisted value, or ``None`` when nothing was issued.
        """
        return self._issue(state_key(flow_name), source)

    def issue_nonce(self, flow_name: str, source: Optional[ValueSource]) -> Optional[str]:
        """Produce and persist the ``nonce`` for *flow_name* (see :meth:`issue_state`)."""
        return self._issue(nonce_key(flow_name), source)

    def stored_state(self, flow_name: str) -> Optional[str]:
        return self._storage.get(state_key(flow_name))

    def stored_nonce(self, flow_name: str) -> Optional[str]:
        return self._storage.get(nonce_key(flow_name))

    def verify_state(self, flow_name: str, received: Optional[str]) -> bool:
        """Check a returned ``state``.

        Returns ``True`` when the provider sent no state (none was
        required) or when it equals the stored one.
        """
        if not received:
            return True
        return received == self.stored_state(flow_name)

    def verify_nonce(self, flow_name: str, claim: Optional[str]) -> bool:
        """Check an identity token ``nonce`` claim against the stored one."""
        return claim == self.stored_nonce(flow_name)
