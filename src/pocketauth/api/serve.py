"""API server for ``pocketauth serve``.

Mounts the versioned ``/api/v1/`` routers. Login and session handling belong
to the embedding application: put a middleware in front of this app that sets
``request.state.user_id`` for authenticated browsers.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


def create_api_app():
    """Build the FastAPI application with the v1 routers."""
    from fastapi import FastAPI

    from pocketauth import __version__
    from pocketauth.api.v1 import mount_v1_routers

    app = FastAPI(
        title="PocketAuth",
        description="OAuth2 authorization server.",
        version=__version__,
        docs_url="/api/v1/docs",
        redoc_url="/api/v1/redoc",
        openapi_url="/api/v1/openapi.json",
    )

    mount_v1_routers(app)

    return app


def run_api_server(
    host: str = "127.0.0.1",
    port: int = 8888,
    dev: bool = False,
) -> None:
    """Start the API server under uvicorn."""
    import uvicorn

    logger.info("PocketAuth listening on http://%s:%d (docs at /api/v1/docs)", host, port)

    if dev:
        import pathlib

        src_dir = str(pathlib.Path(__file__).resolve().parent.parent)
        uvicorn.run(
            "pocketauth.api.serve:create_api_app",
            factory=True,
            host=host,
            port=port,
            reload=True,
            reload_dirs=[src_dir],
            reload_includes=["*.py"],
            log_level="debug",
        )
    else:
        app = create_api_app()
        uvicorn.run(app, host=host, port=port)
