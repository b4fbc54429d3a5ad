"""Tests for the transport adapter (infra/varlink_transport.py).

Framing is exercised over ``socket.socketpair()``; ``varlink.Client`` is
mocked at the infra boundary.  A real ``/bin/sh`` bridge is used where
available.

Coverage:
* NUL-terminated JSON request/reply framing.
* ``org.varlink.service`` introspection calls.
* Transport failures (EOF, malformed frames) → ``TransportError``.
* Dial and bridge errors → ``DialError`` / ``BridgeConnectError``.
* Cancelled dials release the socket; cancelled reads and bridge spawns
  surface as ``OperationCancelledError`` and close the stream.
"""

from __future__ import annotations

import asyncio
import json
import os
import socket
import threading
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from varlink_cli.core.models import BridgedTarget, CallFlags, DirectTarget
from varlink_cli.core.varlink_service import VarlinkService
from varlink_cli.exceptions import (
    BridgeConnectError,
    DialError,
    OperationCancelledError,
    RemoteProtocolError,
    TransportError,
)
from varlink_cli.infra.varlink_transport import (
    BRIDGE_SHELL,
    VarlinkConnection,
    VarlinkTransport,
    _open_in_thread,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class _Peer:
    """The service side of a socketpair."""

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self.reader = reader
        self.writer = writer

    async def receive(self) -> dict[str, Any]:
        frame = await self.reader.readuntil(b"\0")
        return json.loads(frame[:-1])

    async def reply(self, message: dict[str, Any] | bytes) -> None:
        raw = message if isinstance(message, bytes) else json.dumps(message).encode()
        self.writer.write(raw + b"\0")
        await self.writer.drain()


async def _connected_pair() -> tuple[VarlinkConnection, _Peer]:
    left, right = socket.socketpair()
    reader, writer = await asyncio.open_connection(sock=left)
    peer_reader, peer_writer = await asyncio.open_connection(sock=right)
    return VarlinkConnection(reader, writer, label="test"), _Peer(peer_reader, peer_writer)


class _FixedTransport:
    """Hands out one already-connected :class:`VarlinkConnection`."""

    def __init__(self, connection: VarlinkConnection) -> None:
        self.connection = connection

    async def dial(self, address: str) -> VarlinkConnection:
        return self.connection

    async def dial_bridge(self, command: str) -> VarlinkConnection:
        return self.connection


# ---------------------------------------------------------------------------
# Framing
# ---------------------------------------------------------------------------

class TestFraming:
    def test_request_without_parameters(self) -> None:
        async def scenario() -> dict[str, Any]:
            connection, peer = await _connected_pair()
            await connection.send("org.example.ping.Ping", None)
            request = await peer.receive()
            await connection.close()
            return request

        assert asyncio.run(scenario()) == {"method": "org.example.ping.Ping"}

    def test_request_with_empty_object_and_oneway(self) -> None:
        async def scenario() -> dict[str, Any]:
            connection, peer = await _connected_pair()
            await connection.send("org.example.ping.Ping", {}, CallFlags.ONEWAY)
            request = await peer.receive()
            await connection.close()
            return request

        assert asyncio.run(scenario()) == {
            "method": "org.example.ping.Ping",
            "parameters": {},
            "oneway": True,
        }

    def test_reply_roundtrip(self) -> None:
        async def scenario() -> dict[str, Any]:
            connection, peer = await _connected_pair()
            receive = await connection.send("org.example.ping.Ping", {"ping": "hi"})
            request = await peer.receive()
            await peer.reply({"parameters": {"pong": request["parameters"]["ping"]}})
            message = await receive()
            await connection.close()
            return message

        assert asyncio.run(scenario()) == {"parameters": {"pong": "hi"}}

    def test_eof_before_reply(self) -> None:
        async def scenario() -> None:
            connection, peer = await _connected_pair()
            receive = await connection.send("a.B", None)
            peer.writer.close()
            try:
                await receive()
            finally:
                await connection.close()

        with pytest.raises(TransportError, match="closed before a reply"):
            asyncio.run(scenario())

    def test_malformed_frame(self) -> None:
        async def scenario() -> None:
            connection, peer = await _connected_pair()
            receive = await connection.send("a.B", None)
            await peer.reply(b"{not json")
            try:
                await receive()
            finally:
                await connection.close()

        with pytest.raises(TransportError, match="Malformed reply frame"):
            asyncio.run(scenario())

    def test_non_object_frame(self) -> None:
        async def scenario() -> None:
            connection, peer = await _connected_pair()
            receive = await connection.send("a.B", None)
            await peer.reply(b"[1, 2]")
            try:
                await receive()
            finally:
                await connection.close()

        with pytest.raises(TransportError, match="not a JSON object"):
            asyncio.run(scenario())

    def test_close_is_idempotent_and_releases_owner(self) -> None:
        released = AsyncMock()

        async def scenario() -> None:
            left, _right = socket.socketpair()
            reader, writer = await asyncio.open_connection(sock=left)
            connection = VarlinkConnection(reader, writer, label="test", on_close=released)
            await connection.close()
            await connection.close()

        asyncio.run(scenario())
        released.assert_awaited_once()


# ---------------------------------------------------------------------------
# org.varlink.service
# ---------------------------------------------------------------------------

class TestServiceInterface:
    def test_get_info(self) -> None:
        async def scenario() -> tuple[dict[str, Any], Any]:
            connection, peer = await _connected_pair()
            task = asyncio.create_task(connection.get_info())
            request = await peer.receive()
            await peer.reply({
                "parameters": {
                    "vendor": "Acme",
                    "product": "Pinger",
                    "version": "1",
                    "url": "https://acme.example",
                    "interfaces": ["org.varlink.service", "org.example.ping"],
                },
            })
            info = await task
            await connection.close()
            return request, info

        request, info = asyncio.run(scenario())
        assert request == {"method": "org.varlink.service.GetInfo"}
        assert info.vendor == "Acme"
        assert info.interfaces == ("org.varlink.service", "org.example.ping")

    def test_get_interface_description(self) -> None:
        description = "interface org.example.ping\n\nmethod Ping(ping: string) -> (pong: string)\n"

        async def scenario() -> tuple[dict[str, Any], str]:
            connection, peer = await _connected_pair()
            task = asyncio.create_task(connection.get_interface_description("org.example.ping"))
            request = await peer.receive()
            await peer.reply({"parameters": {"description": description}})
            text = await task
            await connection.close()
            return request, text

        request, text = asyncio.run(scenario())
        assert request == {
            "method": "org.varlink.service.GetInterfaceDescription",
            "parameters": {"interface": "org.example.ping"},
        }
        assert text == description

    def test_named_error_raises_remote_error(self) -> None:
        async def scenario() -> None:
            connection, peer = await _connected_pair()
            task = asyncio.create_task(connection.get_interface_description("org.nope"))
            await peer.receive()
            await peer.reply({
                "error": "org.varlink.service.InterfaceNotFound",
                "parameters": {"interface": "org.nope"},
            })
            try:
                await task
            finally:
                await connection.close()

        with pytest.raises(RemoteProtocolError) as exc_info:
            asyncio.run(scenario())
        assert exc_info.value.name == "org.varlink.service.InterfaceNotFound"
        assert exc_info.value.parameters == {"interface": "org.nope"}


# ---------------------------------------------------------------------------
# Dialing
# ---------------------------------------------------------------------------

class TestDial:
    def test_dial_uses_varlink_client(self) -> None:
        left, right = socket.socketpair()
        client = MagicMock()
        client.open_connection.return_value = left

        async def scenario() -> None:
            connection = await VarlinkTransport().dial("unix:/run/org.example.ping")
            await connection.close()

        with patch("varlink.Client", return_value=client) as client_cls:
            asyncio.run(scenario())

        client_cls.assert_called_once_with(address="unix:/run/org.example.ping")
        client.__exit__.assert_called_once()
        right.close()

    def test_rejected_address(self) -> None:
        with patch("varlink.Client", side_effect=ConnectionError("Invalid address 'x'")):
            with pytest.raises(DialError, match="Cannot connect to 'x'"):
                asyncio.run(VarlinkTransport().dial("x"))

    def test_refused_connection(self) -> None:
        client = MagicMock()
        client.open_connection.side_effect = ConnectionRefusedError("refused")
        with patch("varlink.Client", return_value=client):
            with pytest.raises(DialError, match="refused"):
                asyncio.run(VarlinkTransport().dial("unix:/run/missing"))
        client.__exit__.assert_called_once()

    def test_cancelled_dial_closes_late_socket(self) -> None:
        gate = threading.Event()
        left, right = socket.socketpair()

        def slow_factory() -> socket.socket:
            gate.wait(timeout=5.0)
            return left

        async def scenario() -> None:
            task = asyncio.create_task(_open_in_thread(slow_factory))
            await asyncio.sleep(0.01)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            gate.set()
            for _ in range(200):
                if left.fileno() == -1:
                    break
                await asyncio.sleep(0.01)

        asyncio.run(scenario())
        assert left.fileno() == -1
        right.close()


# ---------------------------------------------------------------------------
# Bridge
# ---------------------------------------------------------------------------

class TestBridge:
    @pytest.mark.skipif(not os.path.exists(BRIDGE_SHELL), reason="no POSIX shell")
    def test_bridge_roundtrip(self) -> None:
        command = "head -c 1 >/dev/null; printf '{\"parameters\":{\"pong\":\"x\"}}\\000'"

        async def scenario() -> dict[str, Any]:
            connection = await VarlinkTransport().dial_bridge(command)
            try:
                receive = await connection.send("org.example.ping.Ping", {"ping": "x"})
                return await receive()
            finally:
                await connection.close()

        assert asyncio.run(scenario()) == {"parameters": {"pong": "x"}}

    @pytest.mark.skipif(not os.path.exists(BRIDGE_SHELL), reason="no POSIX shell")
    def test_bridge_exiting_early_is_transport_error(self) -> None:
        async def scenario() -> None:
            connection = await VarlinkTransport().dial_bridge("exit 0")
            try:
                await asyncio.sleep(0.05)
                receive = await connection.send("a.B", None)
                await receive()
            finally:
                await connection.close()

        with pytest.raises(TransportError):
            asyncio.run(scenario())

    def test_spawn_failure(self) -> None:
        with patch(
            "varlink_cli.infra.varlink_transport.asyncio.create_subprocess_exec",
            new=AsyncMock(side_effect=FileNotFoundError("no such file")),
        ):
            with pytest.raises(BridgeConnectError, match="Cannot connect with bridge 'cmd'"):
                asyncio.run(VarlinkTransport().dial_bridge("cmd"))

    def test_missing_pipes(self) -> None:
        process = MagicMock(stdin=None, stdout=MagicMock(), returncode=None)
        process.wait = AsyncMock(return_value=-9)
        with patch(
            "varlink_cli.infra.varlink_transport.asyncio.create_subprocess_exec",
            new=AsyncMock(return_value=process),
        ):
            with pytest.raises(BridgeConnectError, match="bridge pipes are not available"):
                asyncio.run(VarlinkTransport().dial_bridge("cmd"))
        process.kill.assert_called_once()
        process.wait.assert_awaited_once()


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------

class TestCancellation:
    def test_cancel_pending_read_closes_stream(self) -> None:
        async def scenario() -> bytes:
            connection, peer = await _connected_pair()
            service = VarlinkService(_FixedTransport(connection))
            task = asyncio.create_task(service.call(DirectTarget("unix:/run/x"), "a.B"))
            await peer.receive()
            await asyncio.sleep(0.01)
            task.cancel()
            with pytest.raises(OperationCancelledError):
                await asyncio.wait_for(task, timeout=2.0)
            remaining = await asyncio.wait_for(peer.reader.read(), timeout=2.0)
            peer.writer.close()
            return remaining

        assert asyncio.run(scenario()) == b""

    @pytest.mark.skipif(not os.path.exists(BRIDGE_SHELL), reason="no POSIX shell")
    def test_cancel_pending_bridge_reply(self) -> None:
        async def scenario() -> None:
            connection = await VarlinkTransport().dial_bridge("cat >/dev/null")
            service = VarlinkService(_FixedTransport(connection))
            task = asyncio.create_task(service.call(BridgedTarget("cat"), "a.B"))
            await asyncio.sleep(0.05)
            task.cancel()
            with pytest.raises(OperationCancelledError):
                await asyncio.wait_for(task, timeout=5.0)

        asyncio.run(scenario())

    def test_cancel_while_spawning_bridge(self) -> None:
        async def never_spawns(*_args: Any, **_kwargs: Any) -> Any:
            await asyncio.Event().wait()

        async def scenario() -> None:
            service = VarlinkService(VarlinkTransport())
            task = asyncio.create_task(service.call(BridgedTarget("cmd"), "a.B"))
            await asyncio.sleep(0.01)
            task.cancel()
            with pytest.raises(OperationCancelledError):
                await asyncio.wait_for(task, timeout=2.0)

        with patch(
            "varlink_cli.infra.varlink_transport.asyncio.create_subprocess_exec",
            new=never_spawns,
        ):
            asyncio.run(scenario())
