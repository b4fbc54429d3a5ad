"""Output rendering for replies, errors, service info and descriptions.

Successful results go to the primary (stdout) console; every error and
its parameters go to the diagnostic (stderr) console, so that scripts
parsing stdout never see error payloads.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from rich.console import Console
from rich.text import Text

from varlink_cli.core.models import ServiceInfo
from varlink_cli.exceptions import RemoteProtocolError, VarlinkCliError

JSON_INDENT = 2


class Renderer:
    """Writes command results to a stdout and a stderr console."""

    def __init__(self, out: Console, err: Console) -> None:
        self._out = out
        self._err = err

    # ------------------------------------------------------------------
    # Success paths
    # ------------------------------------------------------------------

    def reply(self, parameters: Mapping[str, Any]) -> None:
        """Pretty-print reply parameters as indented JSON on stdout."""
        self._print_json(self._out, parameters)

    def description(self, text: str) -> None:
        """Print an interface description verbatim.

        The text bypasses Rich entirely, so tabs, trailing whitespace and
        anything resembling markup reach the terminal unchanged.
        """
        stream = self._out.file
        stream.write(text + "\n")
        stream.flush()

    def info(self, info: ServiceInfo) -> None:
        """Print labeled service metadata followed by its interfaces."""
        for label, value in (
            ("Vendor:", info.vendor),
            ("Product:", info.product),
            ("Version:", info.version),
            ("URL:", info.url),
        ):
            self._out.print(Text.assemble((label, "info.label"), " ", value), soft_wrap=True)
        self._out.print(Text("Interfaces:", style="info.label"), soft_wrap=True)
        self._out.print(Text("  " + "\n  ".join(info.interfaces)), soft_wrap=True)
        self._out.print()

    # ------------------------------------------------------------------
    # Error paths (stderr only)
    # ------------------------------------------------------------------

    def error(self, exc: VarlinkCliError) -> None:
        """Print ``Error: <message>`` and an optional hint."""
        if isinstance(exc, RemoteProtocolError):
            self.remote_error(exc.name, exc.parameters, context=exc.context)
            return
        self._error_line(Text(str(exc)))
        if exc.hint:
            self._err.print(Text.assemble(("Hint:", "yellow"), " ", exc.hint), soft_wrap=True)

    def remote_error(
        self,
        name: str,
        parameters: Mapping[str, Any] | None,
        *,
        context: str | None = None,
    ) -> None:
        """Print a named remote error and its parameters, if any."""
        prefix = f"{context}: " if context else ""
        self._error_line(
            Text.assemble(prefix, "Call failed with error: ", (name, "error.name")),
        )
        if parameters is not None:
            self._print_json(self._err, parameters)

    def usage(self, text: str) -> None:
        """Print usage text to stderr, without markup interpretation."""
        self._err.out(text.rstrip("\n"), highlight=False)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _error_line(self, message: Text) -> None:
        self._err.print(
            Text.assemble(("Error:", "error.marker"), " ", message),
            soft_wrap=True,
        )

    @staticmethod
    def _print_json(console: Console, data: Mapping[str, Any]) -> None:
        console.print_json(data=dict(data), indent=JSON_INDENT)
