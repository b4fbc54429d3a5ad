"""CLI application entry point and command routing for varlink-cli.

This module is the **sole error boundary** for the entire application.
It catches :class:`~varlink_cli.exceptions.VarlinkCliError`,
``KeyboardInterrupt``, and any unexpected ``Exception``, rendering
user-friendly messages via Rich and returning well-defined exit codes.

Architecture notes
------------------
* No business logic lives here — all work is delegated to the command
  handlers, the core service and the transport.
* Global options are resolved once into an immutable
  :class:`~varlink_cli.core.models.Configuration` which is passed down
  explicitly.
* Each process run parses, selects one command, runs it under
  ``asyncio.run`` and exits; there is no loop and no retry.
* This module is the only place that translates between the domain world
  and the OS process exit code.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Sequence
from typing import Any, NoReturn

from varlink_cli.cli import exit_codes
from varlink_cli.cli.commands import run_call, run_help, run_info
from varlink_cli.cli.console import get_rich_console
from varlink_cli.cli.logging_utils import configure_logging
from varlink_cli.cli.render import Renderer
from varlink_cli.core.models import ColorMode, Configuration
from varlink_cli.core.protocols import Transport
from varlink_cli.core.varlink_service import VarlinkService
from varlink_cli.exceptions import (
    HelpRequested,
    OperationCancelledError,
    UsageError,
    VarlinkCliError,
)
from varlink_cli.version import __version__

PROG = "varlink"


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------

class _ArgumentParser(argparse.ArgumentParser):
    """Parser whose errors become :class:`UsageError` instead of exiting."""

    def error(self, message: str) -> NoReturn:
        raise UsageError(message, usage=self.format_help())


class _HelpAction(argparse.Action):
    """``-h``/``--help``: print usage and exit non-zero."""

    def __init__(
        self,
        option_strings: Sequence[str],
        dest: str = argparse.SUPPRESS,
        default: Any = argparse.SUPPRESS,
        help: str | None = None,
    ) -> None:
        super().__init__(option_strings, dest, nargs=0, default=default, help=help)

    def __call__(self, parser: argparse.ArgumentParser, *_args: Any, **_kwargs: Any) -> None:
        raise HelpRequested("", usage=parser.format_help())


def _add_help(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-h", "--help", action=_HelpAction, help="Prints help information")


def _build_parser() -> argparse.ArgumentParser:
    """Construct the top-level argument parser.

    Global options precede the command:

    * ``varlink [GLOBAL OPTIONS] info [ADDRESS]``
    * ``varlink [GLOBAL OPTIONS] help [ADDRESS/]INTERFACE``
    * ``varlink [GLOBAL OPTIONS] call [--oneway] [ADDRESS/]INTERFACE.METHOD [ARGUMENTS]``
    """
    parser = _ArgumentParser(
        prog=PROG,
        usage=f"{PROG} [GLOBAL OPTIONS] COMMAND ...",
        description="Command-line client for Varlink services.",
        add_help=False,
    )
    global_options = parser.add_argument_group("Global Options")
    global_options.add_argument("--debug", action="store_true", help="Enable debug output")
    global_options.add_argument(
        "--bridge",
        default="",
        metavar="CMD",
        help="Use bridge for connection",
    )
    global_options.add_argument(
        "--color",
        choices=[mode.value for mode in ColorMode],
        default=ColorMode.AUTO.value,
        help="colorize output [default: auto]",
    )
    global_options.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"{PROG} {__version__}",
    )
    _add_help(global_options)

    commands = parser.add_subparsers(dest="command", title="Commands", metavar="COMMAND")

    info = commands.add_parser(
        "info",
        help="Print information about a service",
        usage=f"{PROG} [GLOBAL OPTIONS] info [OPTIONS] [ADDRESS]",
        add_help=False,
    )
    info.add_argument("address", nargs="?", default="", metavar="ADDRESS")
    _add_help(info)
    info.set_defaults(handler=run_info, format_usage=info.format_help)

    help_ = commands.add_parser(
        "help",
        help="Print interface description or service information",
        usage=f"{PROG} [GLOBAL OPTIONS] help [OPTIONS] <[ADDRESS/]INTERFACE>",
        add_help=False,
    )
    help_.add_argument("interface", nargs="?", default="", metavar="[ADDRESS/]INTERFACE")
    _add_help(help_)
    help_.set_defaults(handler=run_help, format_usage=help_.format_help)

    call = commands.add_parser(
        "call",
        help="Call a method",
        usage=(
            f"{PROG} [GLOBAL OPTIONS] call [OPTIONS] "
            "<[ADDRESS/]INTERFACE.METHOD> [ARGUMENTS]"
        ),
        add_help=False,
    )
    call.add_argument("--oneway", action="store_true", help="Do not wait for a reply")
    call.add_argument("method", nargs="?", default="", metavar="[ADDRESS/]INTERFACE.METHOD")
    call.add_argument("parameters", nargs="?", default="", metavar="ARGUMENTS")
    _add_help(call)
    call.set_defaults(handler=run_call, format_usage=call.format_help)

    return parser


def _build_renderer(config: Configuration) -> Renderer:
    return Renderer(
        get_rich_console(config),
        get_rich_console(config, stderr=True),
    )


def _default_transport() -> Transport:
    from varlink_cli.infra.varlink_transport import VarlinkTransport

    return VarlinkTransport()


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------

def main(argv: list[str] | None = None, *, transport: Transport | None = None) -> int:
    """Run the varlink CLI.

    Parameters
    ----------
    argv:
        Explicit argument list.  When ``None`` (default), ``sys.argv[1:]``
        is used.
    transport:
        Transport used to reach the service.  Defaults to
        :class:`~varlink_cli.infra.varlink_transport.VarlinkTransport`;
        tests inject fakes here.

    Returns
    -------
    int
        OS process exit code.  ``-V/--version`` prints the version and
        returns ``SUCCESS`` rather than exiting the interpreter.
    """
    parser = _build_parser()
    config = Configuration.resolve()
    renderer = _build_renderer(config)
    format_usage = parser.format_help

    try:
        try:
            args = parser.parse_args(argv)
        except SystemExit as exc:
            # Only -V/--version exits from argparse; errors raise UsageError.
            return exc.code if isinstance(exc.code, int) else exit_codes.SUCCESS
        config = Configuration.resolve(bridge=args.bridge, color=args.color, debug=args.debug)
        renderer = _build_renderer(config)
        configure_logging(config.debug)

        if args.command is None:
            raise UsageError("", usage=parser.format_help())
        format_usage = args.format_usage

        service = VarlinkService(transport if transport is not None else _default_transport())
        return asyncio.run(args.handler(args, config, service, renderer))
    except UsageError as exc:
        if str(exc) and not isinstance(exc, HelpRequested):
            renderer.error(exc)
            renderer.usage("")
        renderer.usage(exc.usage or format_usage())
        return exit_codes.USAGE_ERROR
    except VarlinkCliError as exc:
        renderer.error(exc)
        return exit_codes.OPERATIONAL_ERROR
    except KeyboardInterrupt:
        renderer.error(OperationCancelledError("Operation cancelled."))
        return exit_codes.OPERATIONAL_ERROR


# ---------------------------------------------------------------------------
# Script-level error boundary
# ---------------------------------------------------------------------------

def cli() -> None:
    """Top-level error boundary invoked by the console-script entry point.

    This function wraps :func:`main` and guarantees the process never
    exits with a raw stack trace during normal usage.
    """
    try:
        code = main()
        sys.exit(code)
    except Exception as exc:  # noqa: BLE001
        print(
            "Unexpected error. Please report this issue.\n"
            f"  {type(exc).__name__}: {exc}",
            file=sys.stderr,
        )
        sys.exit(exit_codes.OPERATIONAL_ERROR)
