"""Shared pytest fixtures and configuration for the varlink-cli test suite.

Guidelines
----------
* No real Varlink service is ever contacted.
* The transport is faked at the core boundary (:class:`FakeTransport`);
  transport tests use ``socket.socketpair()`` only.
* Async code is driven with ``asyncio.run`` inside the tests.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterator
from typing import Any

import pytest

from varlink_cli.cli.logging_utils import configure_logging
from varlink_cli.core.models import CallFlags, ServiceInfo


class FakeConnection:
    """In-memory :class:`~varlink_cli.core.protocols.Connection`."""

    def __init__(
        self,
        *,
        reply: dict[str, Any] | BaseException | None = None,
        info: ServiceInfo | None = None,
        description: str = "",
        hang: bool = False,
        introspection_error: BaseException | None = None,
    ) -> None:
        self.reply = {"parameters": {}} if reply is None else reply
        self.introspection_error = introspection_error
        self.info = info
        self.description = description
        self.hang = hang
        self.sent: list[tuple[str, dict[str, Any] | None, CallFlags]] = []
        self.reply_awaited = False
        self.described: list[str] = []
        self.closed = 0

    async def send(
        self,
        method: str,
        parameters: dict[str, Any] | None,
        flags: CallFlags = CallFlags.NONE,
    ) -> Any:
        self.sent.append((method, parameters, flags))
        return self._receive

    async def _receive(self) -> dict[str, Any]:
        self.reply_awaited = True
        if self.hang:
            await asyncio.Event().wait()
        if isinstance(self.reply, BaseException):
            raise self.reply
        return self.reply

    async def get_info(self) -> ServiceInfo:
        if self.hang:
            await asyncio.Event().wait()
        if self.introspection_error is not None:
            raise self.introspection_error
        assert self.info is not None
        return self.info

    async def get_interface_description(self, interface: str) -> str:
        self.described.append(interface)
        if self.introspection_error is not None:
            raise self.introspection_error
        return self.description

    async def close(self) -> None:
        self.closed += 1


class FakeTransport:
    """Records dial attempts and hands out one :class:`FakeConnection`."""

    def __init__(
        self,
        connection: FakeConnection | None = None,
        *,
        error: BaseException | None = None,
    ) -> None:
        self.connection = connection or FakeConnection()
        self.error = error
        self.dialed: list[str] = []
        self.bridged: list[str] = []

    async def dial(self, address: str) -> FakeConnection:
        self.dialed.append(address)
        if self.error is not None:
            raise self.error
        return self.connection

    async def dial_bridge(self, command: str) -> FakeConnection:
        self.bridged.append(command)
        if self.error is not None:
            raise self.error
        return self.connection

    @property
    def attempts(self) -> int:
        return len(self.dialed) + len(self.bridged)


@pytest.fixture()
def connection() -> FakeConnection:
    return FakeConnection()


@pytest.fixture()
def transport(connection: FakeConnection) -> FakeTransport:
    return FakeTransport(connection)


@pytest.fixture()
def sample_info() -> ServiceInfo:
    return ServiceInfo(
        vendor="Example Vendor",
        product="Example Service",
        version="1.2",
        url="https://example.org",
        interfaces=("org.varlink.service", "org.example.ping"),
    )


@pytest.fixture(autouse=True)
def _quiet_logging() -> Iterator[None]:
    """Drop any ``--debug`` sink bound to a captured stream."""
    yield
    configure_logging(False)
