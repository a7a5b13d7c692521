"""
FastAPI Application Entry Point.

Usage:
    # Run with uvicorn
    uvicorn speech_relay.main:app --host 0.0.0.0 --port 8000

    # Or through the console script
    speech-relay --host 0.0.0.0 --port 8000

The lifespan builds the AppContainer from settings on startup and stops
it on shutdown, which waits (bounded) for in-flight artifact uploads.
"""

from __future__ import annotations

import argparse
import os
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI

from speech_relay import __version__
from speech_relay.api.dependencies import get_settings
from speech_relay.api.routes import router
from speech_relay.core.config import Settings
from speech_relay.core.container import AppContainer
from speech_relay.core.logging import configure_logging


def create_app(
    settings: Optional[Settings] = None,
    container: Optional[AppContainer] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Settings to build the container from. Defaults to the
            settings file resolved by get_settings().
        container: Prebuilt container (tests). Takes precedence over
            settings.
    """
    configure_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        active = container or AppContainer.build(settings or get_settings())
        await active.start()
        app.state.container = active
        try:
            yield
        finally:
            await active.stop()
            app.state.container = None

    app = FastAPI(title="speech-relay", version=__version__, lifespan=lifespan)
    app.include_router(router)
    return app


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="speech-relay", description="Run the speech relay HTTP server.")
    parser.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    parser.add_argument(
        "--port", type=int, default=8000,
        help="Bind port (default: 8000). Unless storage.public_base_url is set, "
             "the local backend looks artifacts up on this host and port",
    )
    parser.add_argument("--reload", action="store_true", help="Reload on code changes (development)")
    return parser.parse_args(argv)


def run(argv: Optional[List[str]] = None) -> None:
    """Console-script entry point."""
    import uvicorn

    args = _parse_args(argv)
    # Read by the settings loader, including in the --reload worker process.
    os.environ["SPEECH_RELAY_HOST"] = args.host
    os.environ["SPEECH_RELAY_PORT"] = str(args.port)
    uvicorn.run(
        "speech_relay.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_config=None,  # keep our handlers
    )


# Global application instance for ASGI servers (uvicorn, gunicorn, etc.)
app = create_app()
