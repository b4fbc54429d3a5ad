"""Handlers for the ``info``, ``help`` and ``call`` commands.

Each handler composes target resolution, the core
:class:`~varlink_cli.core.varlink_service.VarlinkService` and the
:class:`~varlink_cli.cli.render.Renderer`, and returns an exit code.
Failures are raised as :class:`~varlink_cli.exceptions.VarlinkCliError`
subclasses and rendered by the error boundary in :mod:`varlink_cli.cli.app`.
"""

from __future__ import annotations

import argparse

from varlink_cli.cli import exit_codes
from varlink_cli.cli.render import Renderer
from varlink_cli.core.models import CallFlags, Configuration, ReplySuccess
from varlink_cli.core.target_resolver import (
    display_address,
    resolve_service_address,
    resolve_target,
)
from varlink_cli.core.varlink_service import VarlinkService
from varlink_cli.exceptions import MissingTargetError, RemoteProtocolError, TransportError


async def run_info(
    args: argparse.Namespace,
    config: Configuration,
    service: VarlinkService,
    renderer: Renderer,
) -> int:
    """``info [ADDRESS]`` — print vendor, product, version, URL, interfaces."""
    target = resolve_service_address(args.address or "", config.bridge)
    address = display_address(target)
    try:
        info = await service.info(target)
    except RemoteProtocolError as exc:
        raise RemoteProtocolError(
            exc.name,
            exc.parameters,
            context=f"Cannot get info for '{address}'",
        ) from exc
    except TransportError as exc:
        raise TransportError(f"Cannot get info for '{address}': {exc}", cause=exc.cause) from exc
    renderer.info(info)
    return exit_codes.SUCCESS


async def run_help(
    args: argparse.Namespace,
    config: Configuration,
    service: VarlinkService,
    renderer: Renderer,
) -> int:
    """``help [ADDRESS/]INTERFACE`` — print the interface description."""
    raw: str = args.interface or ""
    if not raw and not config.bridge:
        raise MissingTargetError("No ADDRESS or activation or bridge")

    resolved = resolve_target(raw, config.bridge)
    interface = resolved.reference.name
    try:
        description = await service.describe(resolved.target, interface)
    except RemoteProtocolError as exc:
        raise RemoteProtocolError(
            exc.name,
            exc.parameters,
            context=f"Cannot get interface description for '{interface}'",
        ) from exc
    except TransportError as exc:
        raise TransportError(
            f"Cannot get interface description for '{interface}': {exc}",
            cause=exc.cause,
        ) from exc
    renderer.description(description)
    return exit_codes.SUCCESS


async def run_call(
    args: argparse.Namespace,
    config: Configuration,
    service: VarlinkService,
    renderer: Renderer,
) -> int:
    """``call [--oneway] [ADDRESS/]INTERFACE.METHOD [ARGUMENTS]``."""
    resolved = resolve_target(args.method or "", config.bridge)
    flags = CallFlags.ONEWAY if args.oneway else CallFlags.NONE

    reply = await service.call_checked(
        resolved.target,
        resolved.reference.name,
        args.parameters or "",
        flags,
    )
    if isinstance(reply, ReplySuccess):
        renderer.reply(reply.parameters)
    return exit_codes.SUCCESS
