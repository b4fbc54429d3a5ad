"""Core / service layer — pure domain logic for one Varlink invocation.

Rules
-----
* No ``print()`` calls.
* No socket, subprocess or filesystem I/O.
* No imports from ``cli`` or ``infra``.
* All functions must be fully typed.
"""

from varlink_cli.core.codec import decode_reply, encode_call, parse_parameters
from varlink_cli.core.models import (
    BridgedTarget,
    CallFlags,
    ColorMode,
    Configuration,
    DirectTarget,
    MethodReference,
    Reply,
    ReplyError,
    ReplySuccess,
    ResolvedTarget,
    ServiceInfo,
    Target,
)
from varlink_cli.core.protocols import Connection, ReplyAccessor, Transport
from varlink_cli.core.target_resolver import (
    display_address,
    resolve_service_address,
    resolve_target,
)
from varlink_cli.core.varlink_service import VarlinkService, cancellation_guard

__all__: list[str] = [
    "BridgedTarget",
    "CallFlags",
    "ColorMode",
    "Configuration",
    "Connection",
    "DirectTarget",
    "MethodReference",
    "Reply",
    "ReplyAccessor",
    "ReplyError",
    "ReplySuccess",
    "ResolvedTarget",
    "ServiceInfo",
    "Target",
    "Transport",
    "VarlinkService",
    "cancellation_guard",
    "decode_reply",
    "display_address",
    "encode_call",
    "parse_parameters",
    "resolve_service_address",
    "resolve_target",
]
