"""Turn the positional command-line argument into a connection target.

Pure string handling: no I/O, and only
:class:`~varlink_cli.exceptions.VarlinkCliError` subclasses escape.
"""

from __future__ import annotations

from varlink_cli.core.models import (
    BridgedTarget,
    DirectTarget,
    MethodReference,
    ResolvedTarget,
    Target,
)
from varlink_cli.exceptions import (
    InvalidAddressError,
    MissingArgumentError,
    MissingTargetError,
)

BRIDGE_DISPLAY_PREFIX = "bridge:"

_ADDRESS_HINT = (
    "Use ADDRESS/INTERFACE[.METHOD], "
    "e.g. unix:/run/org.example.ping/org.example.ping.Ping"
)


def resolve_target(raw: str, bridge: str = "") -> ResolvedTarget:
    """Resolve ``[ADDRESS/]INTERFACE[.METHOD]``.

    With a *bridge* configured, *raw* is not split at all: it is taken
    verbatim as the interface or method reference.  Otherwise *raw* is
    split at its **last** ``/``; a trailing ``/`` yields an empty
    reference, which is passed through for the service to judge.

    Raises
    ------
    MissingArgumentError
        If *raw* is empty and no bridge is configured.
    InvalidAddressError
        If *raw* contains no ``/``.
    """
    if bridge:
        return ResolvedTarget(BridgedTarget(bridge), MethodReference(raw))

    if not raw:
        raise MissingArgumentError("Missing [ADDRESS/]INTERFACE argument.")

    address, separator, reference = raw.rpartition("/")
    if not separator:
        raise InvalidAddressError(f"Invalid address '{raw}'", hint=_ADDRESS_HINT)

    return ResolvedTarget(DirectTarget(address), MethodReference(reference))


def resolve_service_address(raw: str, bridge: str = "") -> Target:
    """Resolve the ``info`` argument, which is a bare address.

    Raises
    ------
    MissingTargetError
        If neither *raw* nor *bridge* is given.
    """
    if bridge:
        return BridgedTarget(bridge)
    if not raw:
        raise MissingTargetError("No ADDRESS or activation or bridge")
    return DirectTarget(raw)


def display_address(target: Target) -> str:
    """Human-readable address used in ``info`` messages."""
    if isinstance(target, BridgedTarget):
        return BRIDGE_DISPLAY_PREFIX + target.command
    return target.address
