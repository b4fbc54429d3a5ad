"""Core Varlink service — connection establishment and single-shot calls.

This is the central service class consumed by the CLI layer.  It
depends on a :class:`~varlink_cli.core.protocols.Transport` injected at
construction time (dependency inversion), keeping the core free of any
socket or subprocess code.

Guarantees
----------
* At most one connection and one request per operation; no retries.
* The connection is closed on every exit path, including cancellation.
* Cancelling the awaiting task surfaces as
  :class:`~varlink_cli.exceptions.OperationCancelledError`.
* Only :class:`~varlink_cli.exceptions.VarlinkCliError` subclasses escape.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable
from contextlib import asynccontextmanager
from typing import TypeVar

from loguru import logger

from varlink_cli.core.codec import decode_reply, parse_parameters
from varlink_cli.core.models import (
    BridgedTarget,
    CallFlags,
    Reply,
    ReplyError,
    ServiceInfo,
    Target,
)
from varlink_cli.core.protocols import Connection, Transport
from varlink_cli.exceptions import (
    BridgeConnectError,
    DialError,
    MissingTargetError,
    OperationCancelledError,
    RemoteProtocolError,
    TransportError,
    VarlinkCliError,
)

_T = TypeVar("_T")


@asynccontextmanager
async def cancellation_guard() -> AsyncIterator[None]:
    """Translate task cancellation into :class:`OperationCancelledError`."""
    try:
        yield
    except asyncio.CancelledError as exc:
        raise OperationCancelledError("Operation cancelled.") from exc


class VarlinkService:
    """Stateless service running one Varlink operation per call.

    Parameters
    ----------
    transport:
        Any object satisfying the :class:`Transport` protocol.
    """

    def __init__(self, transport: Transport) -> None:
        self._transport: Transport = transport

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def info(self, target: Target) -> ServiceInfo:
        """Fetch the service metadata of *target*."""
        async with cancellation_guard(), self.connect(target) as connection:
            return await self._guarded(connection.get_info())

    async def describe(self, target: Target, interface: str) -> str:
        """Fetch the interface description text of *interface*."""
        async with cancellation_guard(), self.connect(target) as connection:
            return await self._guarded(connection.get_interface_description(interface))

    async def call(
        self,
        target: Target,
        method: str,
        raw_parameters: str = "",
        flags: CallFlags = CallFlags.NONE,
    ) -> Reply | None:
        """Call *method* once and return its decoded reply.

        *raw_parameters* is validated before anything is dialed.  For a
        ``ONEWAY`` call ``None`` is returned as soon as the request has
        been sent; the reply accessor is never touched.

        Raises
        ------
        InvalidParametersError
            If *raw_parameters* is not a JSON object.
        MissingTargetError, DialError, BridgeConnectError
            If no connection can be established.
        TransportError
            If the request cannot be sent or the reply cannot be read.
        OperationCancelledError
            If the awaiting task is cancelled.
        """
        parameters = parse_parameters(raw_parameters)

        async with cancellation_guard(), self.connect(target) as connection:
            receive = await self._guarded(connection.send(method, parameters, flags))
            logger.debug("Sent call to {!r} (flags={!r})", method, flags)
            if flags & CallFlags.ONEWAY:
                return None
            message = await self._guarded(receive())
            logger.debug("Received reply for {!r}", method)
            return decode_reply(message)

    async def call_checked(
        self,
        target: Target,
        method: str,
        raw_parameters: str = "",
        flags: CallFlags = CallFlags.NONE,
    ) -> Reply | None:
        """Like :meth:`call`, but raise a named remote error.

        Raises
        ------
        RemoteProtocolError
            If the service replies with a structured error.
        """
        reply = await self.call(target, method, raw_parameters, flags)
        if isinstance(reply, ReplyError):
            raise RemoteProtocolError(reply.name, reply.parameters)
        return reply

    # ------------------------------------------------------------------
    # Connection establishment
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def connect(self, target: Target) -> AsyncIterator[Connection]:
        """Establish a connection to *target* and always close it."""
        connection = await self._establish(target)
        try:
            yield connection
        finally:
            logger.debug("Closing connection to {!r}", target.describe())
            await connection.close()

    async def _establish(self, target: Target) -> Connection:
        """Dial the address or start the bridge; only our errors escape."""
        if isinstance(target, BridgedTarget):
            logger.debug("Connecting through bridge {!r}", target.command)
            try:
                return await self._transport.dial_bridge(target.command)
            except VarlinkCliError:
                raise
            except Exception as exc:
                raise BridgeConnectError(target.command, exc) from exc

        if not target.address:
            raise MissingTargetError("No ADDRESS or activation or bridge")

        logger.debug("Dialing {!r}", target.address)
        try:
            return await self._transport.dial(target.address)
        except VarlinkCliError:
            raise
        except Exception as exc:
            raise DialError(target.address, exc) from exc

    # ------------------------------------------------------------------
    # Transport delegation (safe boundary)
    # ------------------------------------------------------------------

    @staticmethod
    async def _guarded(awaitable: Awaitable[_T]) -> _T:
        """Await a transport coroutine and ensure only our exceptions escape."""
        try:
            return await awaitable
        except VarlinkCliError:
            raise
        except Exception as exc:
            raise TransportError(f"Unexpected transport error: {exc}", cause=exc) from exc
