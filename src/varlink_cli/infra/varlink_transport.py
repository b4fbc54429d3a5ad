"""Varlink transport backed by the ``varlink`` library and asyncio streams.

This module is the **only** place in the codebase that imports
``varlink``.  ``varlink.Client`` resolves addresses (``unix:``, ``tcp:``,
``exec:``) and opens the socket; the protocol itself is spoken over an
asyncio stream so that every read and write is a cancellable suspend
point.  Bridges are spawned as ``/bin/sh -c COMMAND`` with the protocol
carried on the child's stdin/stdout.

Frames are UTF-8 JSON objects terminated by a single NUL byte.

All raw exceptions are caught here and re-raised as typed
:class:`~varlink_cli.exceptions.VarlinkCliError` subclasses — nothing
raw escapes the infrastructure boundary.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import socket
from collections.abc import Awaitable, Callable
from typing import Any

from loguru import logger

from varlink_cli.core.codec import decode_reply, encode_call
from varlink_cli.core.models import CallFlags, ReplyError, ReplySuccess, ServiceInfo
from varlink_cli.core.protocols import ReplyAccessor
from varlink_cli.exceptions import (
    BridgeConnectError,
    DialError,
    RemoteProtocolError,
    TransportError,
)

SERVICE_INTERFACE = "org.varlink.service"

FRAME_TERMINATOR = b"\0"

STREAM_LIMIT = 16 * 1024 * 1024
"""Largest single frame accepted (interface descriptions can be big)."""

BRIDGE_SHELL = "/bin/sh"


class VarlinkConnection:
    """Concrete :class:`~varlink_cli.core.protocols.Connection`.

    Wraps one reader/writer stream pair.  *on_close* releases whatever
    owns the stream (the ``varlink.Client`` or the bridge process) after
    the writer has been closed.
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        *,
        label: str,
        on_close: Callable[[], Awaitable[None]] | None = None,
    ) -> None:
        self._reader = reader
        self._writer = writer
        self._label = label
        self._on_close = on_close
        self._closed = False

    # ------------------------------------------------------------------
    # Connection protocol
    # ------------------------------------------------------------------

    async def send(
        self,
        method: str,
        parameters: dict[str, Any] | None,
        flags: CallFlags = CallFlags.NONE,
    ) -> ReplyAccessor:
        await self._write_message(encode_call(method, parameters, flags))
        return self._read_message

    async def get_info(self) -> ServiceInfo:
        reply = await self._service_call("GetInfo")
        return ServiceInfo.from_parameters(reply.parameters)

    async def get_interface_description(self, interface: str) -> str:
        reply = await self._service_call("GetInterfaceDescription", {"interface": interface})
        description = reply.parameters.get("description")
        if not isinstance(description, str):
            raise TransportError(
                f"Malformed reply: no interface description for '{interface}'",
            )
        return description

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except (OSError, RuntimeError) as exc:
            # The peer may already be gone; nothing is left to release.
            logger.debug("Error while closing {!r}: {}", self._label, exc)
        if self._on_close is not None:
            await self._on_close()

    # ------------------------------------------------------------------
    # Framing
    # ------------------------------------------------------------------

    async def _service_call(
        self,
        method: str,
        parameters: dict[str, Any] | None = None,
    ) -> ReplySuccess:
        receive = await self.send(f"{SERVICE_INTERFACE}.{method}", parameters)
        reply = decode_reply(await receive())
        if isinstance(reply, ReplyError):
            raise RemoteProtocolError(reply.name, reply.parameters)
        return reply

    async def _write_message(self, message: dict[str, Any]) -> None:
        frame = json.dumps(message).encode("utf-8") + FRAME_TERMINATOR
        try:
            self._writer.write(frame)
            await self._writer.drain()
        except (OSError, RuntimeError) as exc:
            raise TransportError(
                f"Error calling '{message.get('method')}': {exc}",
                cause=exc,
            ) from exc
        logger.debug("-> {}", frame[:-1].decode("utf-8"))

    async def _read_message(self) -> dict[str, Any]:
        try:
            frame = await self._reader.readuntil(FRAME_TERMINATOR)
        except asyncio.IncompleteReadError as exc:
            raise TransportError(
                f"Connection to '{self._label}' closed before a reply was received",
                cause=exc,
            ) from exc
        except asyncio.LimitOverrunError as exc:
            raise TransportError("Reply exceeds the maximum frame size", cause=exc) from exc
        except OSError as exc:
            raise TransportError(f"Cannot read reply: {exc}", cause=exc) from exc

        payload = frame[: -len(FRAME_TERMINATOR)]
        logger.debug("<- {}", payload.decode("utf-8", errors="replace"))
        try:
            message: Any = json.loads(payload)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise TransportError(f"Malformed reply frame: {exc}", cause=exc) from exc
        if not isinstance(message, dict):
            raise TransportError("Malformed reply frame: not a JSON object")
        return message


class VarlinkTransport:
    """Concrete :class:`~varlink_cli.core.protocols.Transport`.

    Usage::

        transport = VarlinkTransport()
        connection = await transport.dial("unix:/run/org.example.ping")
        try:
            info = await connection.get_info()
        finally:
            await connection.close()
    """

    # ------------------------------------------------------------------
    # Protocol methods
    # ------------------------------------------------------------------

    async def dial(self, address: str) -> VarlinkConnection:
        """Connect to *address* using ``varlink.Client``.

        Raises
        ------
        DialError
            When the address is rejected or the socket cannot connect.
        """
        try:
            import varlink
        except ModuleNotFoundError as exc:
            raise DialError(address, exc) from exc

        try:
            client = varlink.Client(address=address)
        except Exception as exc:
            raise DialError(address, exc) from exc

        stack = contextlib.ExitStack()
        stack.enter_context(client)

        async def release_client() -> None:
            stack.close()

        try:
            sock = await _open_in_thread(client.open_connection)
            try:
                reader, writer = await asyncio.open_connection(sock=sock, limit=STREAM_LIMIT)
            except BaseException:
                sock.close()
                raise
        except asyncio.CancelledError:
            stack.close()
            raise
        except Exception as exc:
            stack.close()
            raise DialError(address, exc) from exc

        logger.debug("Connected to {!r}", address)
        return VarlinkConnection(reader, writer, label=address, on_close=release_client)

    async def dial_bridge(self, command: str) -> VarlinkConnection:
        """Start *command* through the shell and use its stdin/stdout.

        A process cancelled while being spawned is killed and reaped by
        asyncio before the cancellation propagates.

        Raises
        ------
        BridgeConnectError
            When the process cannot be started.
        """
        try:
            process = await asyncio.create_subprocess_exec(
                BRIDGE_SHELL,
                "-c",
                command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                limit=STREAM_LIMIT,
            )
        except OSError as exc:
            raise BridgeConnectError(command, exc) from exc

        if process.stdin is None or process.stdout is None:
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()
            raise BridgeConnectError(command, OSError("bridge pipes are not available"))

        logger.debug("Started bridge {!r} (pid {})", command, process.pid)

        async def reap_bridge() -> None:
            await _terminate(process)

        return VarlinkConnection(
            process.stdout,
            process.stdin,
            label=command,
            on_close=reap_bridge,
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _open_in_thread(factory: Callable[[], socket.socket]) -> socket.socket:
    """Run a blocking socket factory without blocking the event loop.

    If the awaiting task is cancelled first, the socket produced by the
    still-running thread is closed as soon as it arrives.
    """
    future = asyncio.get_running_loop().run_in_executor(None, factory)
    try:
        return await asyncio.shield(future)
    except asyncio.CancelledError:
        future.add_done_callback(_close_abandoned_socket)
        raise


def _close_abandoned_socket(future: asyncio.Future[socket.socket]) -> None:
    if future.cancelled() or future.exception() is not None:
        return
    logger.debug("Closing socket from cancelled dial")
    future.result().close()


async def _terminate(process: asyncio.subprocess.Process, grace: float = 1.0) -> None:
    """Wait briefly for the bridge to exit after EOF, then terminate it."""
    if process.returncode is not None:
        return
    try:
        await asyncio.wait_for(process.wait(), timeout=grace)
        return
    except asyncio.TimeoutError:
        pass
    with contextlib.suppress(ProcessLookupError):
        process.terminate()
    await process.wait()
