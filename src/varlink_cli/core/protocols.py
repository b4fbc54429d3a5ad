"""Protocols (interfaces) consumed by the core layer.

These define the contracts that the transport adapter must satisfy.
Core code depends ONLY on these protocols — never on the concrete
socket/subprocess implementation — preserving the dependency inversion
principle.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from varlink_cli.core.models import CallFlags, ServiceInfo

ReplyAccessor = Callable[[], Awaitable[dict[str, Any]]]
"""Awaitable factory returning the next raw reply message of a call."""


class Connection(Protocol):
    """A live, exclusively owned connection to one Varlink service.

    Every coroutine is a suspend point: cancelling the awaiting task must
    abort it promptly with :class:`asyncio.CancelledError`.
    """

    async def send(
        self,
        method: str,
        parameters: dict[str, Any] | None,
        flags: CallFlags = CallFlags.NONE,
    ) -> ReplyAccessor:
        """Send exactly one method call and return its reply accessor.

        *parameters* of ``None`` means the request carries no
        ``parameters`` member at all.

        Raises
        ------
        TransportError
            When the request cannot be written.
        """
        ...  # pragma: no cover

    async def get_info(self) -> ServiceInfo:
        """Call ``org.varlink.service.GetInfo``.

        Raises
        ------
        RemoteProtocolError
            When the service answers with a named error.
        TransportError
            When the connection fails.
        """
        ...  # pragma: no cover

    async def get_interface_description(self, interface: str) -> str:
        """Call ``org.varlink.service.GetInterfaceDescription`` for *interface*."""
        ...  # pragma: no cover

    async def close(self) -> None:
        """Release the socket or bridge process.  Safe to call twice."""
        ...  # pragma: no cover


class Transport(Protocol):
    """Factory for :class:`Connection` objects."""

    async def dial(self, address: str) -> Connection:
        """Connect to a service address.

        Raises
        ------
        DialError
            When the address is invalid or the service is unreachable.
        """
        ...  # pragma: no cover

    async def dial_bridge(self, command: str) -> Connection:
        """Start *command* and speak the protocol over its stdin/stdout.

        Raises
        ------
        BridgeConnectError
            When the bridge process cannot be started.
        """
        ...  # pragma: no cover
