"""Rich console construction for the CLI layer.

Every console is derived from the resolved
:class:`~varlink_cli.core.models.Configuration`; nothing inspects the
terminal or the environment after startup.  Color roles live in a single
theme so that JSON keys, strings, numbers, booleans and null each keep
a fixed, overridable style.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import IO

from rich.console import Console
from rich.theme import Theme

from varlink_cli.core.models import ColorMode, Configuration

DEFAULT_THEME: dict[str, str] = {
    "json.key": "cyan",
    "json.str": "magenta",
    "json.number": "magenta",
    "json.bool_true": "magenta",
    "json.bool_false": "magenta",
    "json.null": "magenta",
    "json.brace": "none",
    "error.marker": "bold red",
    "error.name": "red",
    "info.label": "bold",
}
"""Style per output role; JSON roles use Rich's ``JSONHighlighter`` names."""


def get_rich_console(
    config: Configuration,
    *,
    stderr: bool = False,
    file: IO[str] | None = None,
    theme: Mapping[str, str] | None = None,
) -> Console:
    """Create a console for stdout (or stderr) honouring *config*.

    ``--color on`` forces ANSI styles even when redirected; with color
    disabled the console emits plain text only.
    """
    styles = dict(DEFAULT_THEME)
    if theme:
        styles.update(theme)
    return Console(
        file=file,
        stderr=stderr,
        theme=Theme(styles),
        highlight=False,
        force_terminal=True if config.color is ColorMode.ON else None,
        color_system="auto" if config.color_enabled else None,
    )
