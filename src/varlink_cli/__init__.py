"""varlink-cli — command-line client for Varlink services.

Introspects a service (``info``), prints interface descriptions
(``help``) and calls single methods (``call``), either by dialing the
service address directly or through a bridge command.
"""

from loguru import logger

from varlink_cli.version import __version__

logger.disable("varlink_cli")

__all__: list[str] = ["__version__"]
