"""Infrastructure layer — sockets, bridge processes and wire framing.

This layer wraps all interaction with the ``varlink`` library, the
operating system and child processes.  Every raw exception must be
caught here and re-raised as a
:class:`~varlink_cli.exceptions.VarlinkCliError` subclass.

Rules
-----
* No imports from ``cli``.
* No user-facing output (no ``print()``, no Rich rendering).
* Must expose clean, typed interfaces consumed by the core layer.
"""

from varlink_cli.infra.varlink_transport import VarlinkConnection, VarlinkTransport

__all__: list[str] = [
    "VarlinkConnection",
    "VarlinkTransport",
]
