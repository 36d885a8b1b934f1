"""
Logging setup for the CLI and the API server.

Installs a single rich console handler on the root logger. Modules log
through ``logging.getLogger(__name__)`` and never configure handlers
themselves.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

_HANDLER_NAME = "presscache-rich"


def configure_logging(level: str = "INFO", console: Console | None = None) -> None:
    """Configure root logging with a rich handler.

    Calling this more than once replaces the previously installed handler
    instead of stacking duplicates.

    Parameters
    ----------
    level : str
        Log level name (``DEBUG``, ``INFO``, ...).
    console : Console | None
        Console to write to (defaults to stderr).
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        if handler.get_name() == _HANDLER_NAME:
            root_logger.removeHandler(handler)

    handler = RichHandler(
        console=console or Console(stderr=True),
        rich_tracebacks=True,
        show_path=False,
        log_time_format="[%Y-%m-%d %H:%M:%S]",
    )
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))

    root_logger.addHandler(handler)
    root_logger.setLevel(level.upper())

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
