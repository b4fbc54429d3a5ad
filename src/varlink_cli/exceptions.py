"""Custom exception hierarchy for varlink-cli.

All exceptions that cross layer boundaries must inherit from
:class:`VarlinkCliError`.  Raw socket, subprocess and ``varlink`` library
exceptions must NEVER propagate beyond the infrastructure layer — they
are caught there and re-raised as a typed subclass defined here.

Hierarchy
---------
VarlinkCliError
├── UsageError                      (exit 1)
│   ├── HelpRequested
│   └── MissingArgumentError
├── TargetResolutionError           (exit 2)
│   ├── InvalidAddressError
│   └── MissingTargetError
├── VarlinkConnectionError          (exit 2)
│   ├── DialError
│   └── BridgeConnectError
├── EncodingError                   (exit 2)
│   └── InvalidParametersError
├── RemoteProtocolError             (exit 2)
├── TransportError                  (exit 2)
└── OperationCancelledError         (exit 2)
"""

from __future__ import annotations

from typing import Any


class VarlinkCliError(Exception):
    """Base exception for all varlink-cli errors.

    Every user-visible error condition must map to a subclass of this
    exception so that the CLI error boundary can render a clean message
    without leaking internal stack traces.
    """

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint: str | None = hint
        """Optional actionable guidance shown below the error message."""


# --- Command line -----------------------------------------------------------

class UsageError(VarlinkCliError):
    """Raised for bad or missing command-line arguments."""

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        usage: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.usage: str | None = usage
        """Usage text of the command the error belongs to, if known."""


class HelpRequested(UsageError):
    """Raised when ``-h``/``--help`` is given on any command level."""


class MissingArgumentError(UsageError):
    """Raised when the mandatory positional argument is empty."""


# --- Target resolution ------------------------------------------------------

class TargetResolutionError(VarlinkCliError):
    """Raised when a target string cannot be turned into a connection target."""


class InvalidAddressError(TargetResolutionError):
    """Raised when an ``ADDRESS/INTERFACE`` string contains no ``/``."""


class MissingTargetError(TargetResolutionError):
    """Raised when neither an address nor a bridge is available."""


# --- Connection establishment -----------------------------------------------

class VarlinkConnectionError(VarlinkCliError):
    """Raised when a connection to the service cannot be established."""

    def __init__(
        self,
        message: str,
        *,
        cause: BaseException | None = None,
        hint: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.cause: BaseException | None = cause


class DialError(VarlinkConnectionError):
    """Raised when dialing a service address fails."""

    def __init__(self, address: str, cause: BaseException | None = None) -> None:
        super().__init__(f"Cannot connect to '{address}': {cause}", cause=cause)
        self.address: str = address


class BridgeConnectError(VarlinkConnectionError):
    """Raised when the bridge command cannot be started."""

    def __init__(self, command: str, cause: BaseException | None = None) -> None:
        super().__init__(f"Cannot connect with bridge '{command}': {cause}", cause=cause)
        self.command: str = command


# --- Request encoding -------------------------------------------------------

class EncodingError(VarlinkCliError):
    """Raised when a request cannot be encoded."""


class InvalidParametersError(EncodingError):
    """Raised when the JSON parameter argument is not a valid JSON object."""

    def __init__(self, message: str, *, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause: BaseException | None = cause


# --- Remote / transport failures --------------------------------------------

class RemoteProtocolError(VarlinkCliError):
    """Raised when the service answers with a structured, named error.

    *context* names the operation that failed (``Cannot get info for
    'ADDRESS'``) and prefixes the message when given.
    """

    def __init__(
        self,
        name: str,
        parameters: dict[str, Any] | None = None,
        *,
        context: str | None = None,
    ) -> None:
        message = f"Call failed with error: {name}"
        super().__init__(f"{context}: {message}" if context else message)
        self.name: str = name
        self.parameters: dict[str, Any] | None = parameters
        self.context: str | None = context


class TransportError(VarlinkCliError):
    """Raised when the connection drops or delivers a malformed frame."""

    def __init__(self, message: str, *, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause: BaseException | None = cause


class OperationCancelledError(VarlinkCliError):
    """Raised when the running command is cancelled mid-flight."""
