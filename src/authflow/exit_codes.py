"""Numeric process exit codes for the ``authflow`` CLI.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~authflow.exceptions.AuthFlowError` subclass.
Shell wrappers can inspect the exit code to tell a rejected flow from a
broken configuration without parsing stderr.

Example::

    $ authflow login google
    $ echo $?
    4   # EXIT_STATE_MISMATCH -- the returned state did not match
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_STATE_MISMATCH = 4
"""The ``state`` returned by the provider does not match the issued one."""

EXIT_NONCE_MISMATCH = 5
"""The identity token's ``nonce`` claim does not match the issued one."""

EXIT_EXCHANGE_FAILED = 6
"""The code-for-token exchange endpoint returned a non-success status."""

EXIT_POPUP_ERROR = 7
"""The user abandoned the authorization window or the provider returned an error."""
