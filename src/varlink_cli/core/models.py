"""Domain models for varlink-cli.

All models are **frozen** dataclasses — immutable value objects with no
behaviour beyond data access.  Every instance is created fresh for one
process invocation and discarded at exit; nothing here is persisted.
"""

from __future__ import annotations

import enum
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Union


# ---------------------------------------------------------------------------
# Connection targets
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class DirectTarget:
    """A service reached by dialing its address (``unix:…``, ``tcp:…``)."""

    address: str

    def describe(self) -> str:
        return self.address


@dataclass(frozen=True, slots=True)
class BridgedTarget:
    """A service reached through a bridge command proxying the connection."""

    command: str

    def describe(self) -> str:
        return self.command


Target = Union[DirectTarget, BridgedTarget]
"""Exactly one of the two variants is used per invocation."""


@dataclass(frozen=True, slots=True)
class MethodReference:
    """Dotted name passed to the remote call.

    For ``call`` this is ``INTERFACE.METHOD``; for ``help`` only the
    interface name is meaningful.
    """

    name: str


@dataclass(frozen=True, slots=True)
class ResolvedTarget:
    """Result of splitting ``[ADDRESS/]INTERFACE[.METHOD]``."""

    target: Target
    reference: MethodReference


# ---------------------------------------------------------------------------
# Calls and replies
# ---------------------------------------------------------------------------

class CallFlags(enum.IntFlag):
    """Bitset of per-call flags."""

    NONE = 0
    ONEWAY = 1
    """Fire-and-forget: no reply is requested or awaited."""


@dataclass(frozen=True, slots=True)
class ReplySuccess:
    """A successful method reply."""

    parameters: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ReplyError:
    """A structured, named error reported by the service."""

    name: str
    parameters: dict[str, Any] | None = None


Reply = Union[ReplySuccess, ReplyError]


@dataclass(frozen=True, slots=True)
class ServiceInfo:
    """Service metadata returned by ``org.varlink.service.GetInfo``."""

    vendor: str
    product: str
    version: str
    url: str
    interfaces: tuple[str, ...] = ()

    @classmethod
    def from_parameters(cls, parameters: Mapping[str, Any]) -> ServiceInfo:
        """Build from the raw reply parameters of ``GetInfo``."""
        raw_interfaces = parameters.get("interfaces")
        if not isinstance(raw_interfaces, list):
            raw_interfaces = []
        return cls(
            vendor=str(parameters.get("vendor", "")),
            product=str(parameters.get("product", "")),
            version=str(parameters.get("version", "")),
            url=str(parameters.get("url", "")),
            interfaces=tuple(str(name) for name in raw_interfaces),
        )


# ---------------------------------------------------------------------------
# Process configuration
# ---------------------------------------------------------------------------

class ColorMode(str, enum.Enum):
    """Value of the ``--color`` global option."""

    ON = "on"
    OFF = "off"
    AUTO = "auto"


@dataclass(frozen=True, slots=True)
class Configuration:
    """Global options, resolved once at startup and passed explicitly."""

    bridge: str = ""
    """Bridge command; when non-empty, no address is ever dialed."""

    color: ColorMode = ColorMode.AUTO

    color_enabled: bool = False
    """Whether output is colorized, after resolving ``auto``."""

    debug: bool = False

    @classmethod
    def resolve(
        cls,
        *,
        bridge: str = "",
        color: ColorMode | str = ColorMode.AUTO,
        debug: bool = False,
        environ: Mapping[str, str] | None = None,
    ) -> Configuration:
        """Build a configuration, resolving ``auto`` color from *environ*.

        ``auto`` enables color only when ``TERM`` is set and non-empty.
        """
        env = os.environ if environ is None else environ
        mode = ColorMode(color)
        if mode is ColorMode.ON:
            enabled = True
        elif mode is ColorMode.OFF:
            enabled = False
        else:
            enabled = bool(env.get("TERM", ""))
        return cls(bridge=bridge, color=mode, color_enabled=enabled, debug=debug)
