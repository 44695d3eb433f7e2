"""Exception hierarchy for authflow.

All exceptions inherit from :class:`AuthFlowError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`authflow.exit_codes`.
The CLI entry point in :func:`authflow.app.main` catches ``AuthFlowError``
and exits with the appropriate code.

Every failure is terminal for the ``open`` call that raised it; nothing in
the engine retries. Callers restart the authorization flow instead.

Subclass hierarchy::

    AuthFlowError (exit 1)
    +-- ConfigError           (exit 1)
    +-- InvalidUsageError     (exit 2)
    +-- StateMismatchError    (exit 4)
    +-- NonceMismatchError    (exit 5)
    +-- ExchangeFailedError   (exit 6)
    +-- PopupError            (exit 7)
        +-- PopupAbandonedError
        +-- PopupFailedError
"""

from __future__ import annotations

from typing import Optional

from authflow.exit_codes import (
    EXIT_EXCHANGE_FAILED,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NONCE_MISMATCH,
    EXIT_POPUP_ERROR,
    EXIT_STATE_MISMATCH,
)


class AuthFlowError(Exception):
    """Base exception for all authflow errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigError(AuthFlowError):
    """Raised for configuration problems (missing providers, invalid JSON, bad values)."""

    exit_code = EXIT_GENERIC_FAILURE


class InvalidUsageError(AuthFlowError):
    """Raised for invalid CLI arguments or missing required parameters."""

    exit_code = EXIT_INVALID_USAGE


class StateMismatchError(AuthFlowError):
    """Raised when the returned ``state`` differs from the stored one."""

    exit_code = EXIT_STATE_MISMATCH

    def __init__(self, message: str = "OAuth 2.0 state parameter mismatch."):
        super().__init__(message)


class NonceMismatchError(AuthFlowError):
    """Raised when the identity token's ``nonce`` claim differs from the stored one."""

    exit_code = EXIT_NONCE_MISMATCH

    def __init__(self, message: str = "OAuth 2.0 nonce parameter mismatch."):
        super().__init__(message)


class ExchangeFailedError(AuthFlowError):
    """Raised when the token exchange call fails.

    Args:
        message: Human-readable error description.
        status_code: HTTP status returned by the exchange endpoint, or
            ``None`` when the request never got a response.
        body: Response body text, if any.
    """

    exit_code = EXIT_EXCHANGE_FAILED

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: str = "",
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class PopupError(AuthFlowError):
    """Base class for failures reported by the popup controller."""

    exit_code = EXIT_POPUP_ERROR


class PopupAbandonedError(PopupError):
    """Raised when the user closes or never completes the authorization window."""


class PopupFailedError(PopupError):
    """Raised when the provider redirects back with an ``error`` parameter.

    Args:
        error: The OAuth2 ``error`` code (e.g. ``access_denied``).
        description: The optional ``error_description``.
    """

    def __init__(self, error: str, description: str = ""):
        message = f"Authorization failed: {error}"
        if description:
            message += f" - {description}"
        super().__init__(message)
        self.error = error
        self.description = description
