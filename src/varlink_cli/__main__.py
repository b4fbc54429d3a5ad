"""Allow ``python -m varlink_cli`` invocation.

This module simply delegates to the CLI error-boundary entry point so
that ``python -m varlink_cli`` behaves identically to the ``varlink-cli``
console script.
"""

from __future__ import annotations

from varlink_cli.cli.app import cli

if __name__ == "__main__":
    cli()
