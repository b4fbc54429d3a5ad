"""Exit-code constants used by the CLI layer.

Centralised here so that every exit path uses a well-known, tested
value rather than magic integers scattered across the codebase.  Scripts
depend on this three-tier taxonomy; do not add codes.
"""

from __future__ import annotations

SUCCESS: int = 0
"""Clean exit — command completed without error."""

USAGE_ERROR: int = 1
"""Bad or missing command-line arguments, or ``--help``."""

OPERATIONAL_ERROR: int = 2
"""Connection, encoding, transport, remote or cancellation failure."""
