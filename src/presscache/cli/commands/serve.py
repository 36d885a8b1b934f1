"""CLI command for running the API server."""

from __future__ import annotations

from typing import Optional

import typer

from presscache.container import container


def serve(
    host: Optional[str] = typer.Option(
        None, "--host", help="Interface to bind (default: from settings)"
    ),
    port: Optional[int] = typer.Option(
        None, "--port", "-p", help="Port to run the server on (default: from settings)"
    ),
    reload: bool = typer.Option(
        False, "--reload", help="Auto-reload on code changes (development)"
    ),
) -> None:
    """
    Start the presscache API server.

    Runs a single worker: the in-flight fetch table and the refresh queue
    live in process memory.

    Examples:
        presscache serve
        presscache serve --port 3000
        presscache serve --host 0.0.0.0 --reload
    """
    import uvicorn

    settings = container.settings
    uvicorn.run(
        "presscache.api.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )
