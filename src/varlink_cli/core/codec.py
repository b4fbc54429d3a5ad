"""Call encoding and reply decoding.

Requests and replies are plain JSON-shaped dicts here; framing them on
the wire is the transport's job.  A reply is discriminated by its
reserved ``error`` member: present means a structured remote error,
absent means success.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from loguru import logger

from varlink_cli.core.models import CallFlags, Reply, ReplyError, ReplySuccess
from varlink_cli.exceptions import InvalidParametersError, TransportError

ERROR_KEY = "error"
PARAMETERS_KEY = "parameters"


def parse_parameters(raw: str) -> dict[str, Any] | None:
    """Validate the JSON parameter argument of ``call``.

    An empty string (and the JSON literal ``null``) means *no*
    parameters, which is different from an explicit ``{}``.

    Raises
    ------
    InvalidParametersError
        If *raw* is not valid JSON or not a JSON object.
    """
    if raw == "":
        return None
    try:
        value: Any = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise InvalidParametersError(
            f"Cannot parse parameters: {exc}",
            cause=exc,
        ) from exc
    if value is None:
        return None
    if not isinstance(value, dict):
        raise InvalidParametersError(
            f"Cannot parse parameters: expected a JSON object, got {type(value).__name__}",
        )
    return value


def encode_call(
    method: str,
    parameters: dict[str, Any] | None = None,
    flags: CallFlags = CallFlags.NONE,
) -> dict[str, Any]:
    """Build the request message for one method call."""
    request: dict[str, Any] = {"method": method}
    if parameters is not None:
        request[PARAMETERS_KEY] = parameters
    if flags & CallFlags.ONEWAY:
        request["oneway"] = True
    return request


def decode_reply(message: Mapping[str, Any]) -> Reply:
    """Turn a raw reply message into a :class:`Reply`.

    Raises
    ------
    TransportError
        If the message is not shaped like a reply.
    """
    if ERROR_KEY in message and message[ERROR_KEY] is not None:
        name = message[ERROR_KEY]
        if not isinstance(name, str):
            raise TransportError(f"Malformed error reply: error name is {type(name).__name__}")
        return ReplyError(name=name, parameters=_error_parameters(message.get(PARAMETERS_KEY)))

    parameters = message.get(PARAMETERS_KEY)
    if parameters is None:
        return ReplySuccess()
    if not isinstance(parameters, dict):
        raise TransportError(
            f"Malformed reply: parameters is {type(parameters).__name__}, expected object",
        )
    return ReplySuccess(parameters=dict(parameters))


def _error_parameters(raw: object) -> dict[str, Any] | None:
    """Error parameters are optional; anything but an object counts as none."""
    if isinstance(raw, dict):
        return dict(raw)
    if raw is not None:
        logger.debug("Ignoring malformed error parameters: {!r}", raw)
    return None
