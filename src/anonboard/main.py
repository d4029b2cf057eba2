# src/anonboard/main.py
"""Main entry point for the anonboard server."""

from __future__ import annotations

import logging
from pathlib import Path

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from anonboard.api import register_error_handlers, router
from anonboard.core.logging import configure_logging
from anonboard.core.settings import Settings, settings as default_settings
from anonboard.services.assembly import build_ports, prepare_ports
from anonboard.services.ingestion import PostIngestionPipeline
from anonboard.services.ports import Ports

logger = logging.getLogger(__name__)


def _install_ports(app: FastAPI, ports: Ports, app_settings: Settings) -> None:
    app.state.ports = ports
    app.state.pipeline = PostIngestionPipeline(ports, max_upload_bytes=app_settings.max_upload_bytes)


def create_app(ports: Ports | None = None, app_settings: Settings | None = None) -> FastAPI:
    """Build the ASGI application.

    Args:
        ports: Ready-made backends, used as-is. When omitted, the
            configured backends are built and the schema is created on
            startup.
        app_settings: Settings to use instead of the environment.
    """
    app_settings = app_settings or default_settings
    app = FastAPI(
        title=app_settings.app_name,
        description="Anonymous imageboard",
        version="0.1.0",
        debug=app_settings.debug,
    )
    app.state.settings = app_settings
    if ports is not None:
        _install_ports(app, ports, app_settings)

    upload_root = Path(app_settings.upload_root)
    app.mount(
        app_settings.upload_url_prefix,
        StaticFiles(directory=upload_root, check_dir=False),
        name="uploads",
    )
    static_root = Path(app_settings.static_root)
    if static_root.is_dir():
        app.mount("/static", StaticFiles(directory=static_root), name="static")

    register_error_handlers(app)
    app.include_router(router)

    @app.on_event("startup")
    async def on_startup() -> None:
        upload_root.mkdir(parents=True, exist_ok=True)
        if getattr(app.state, "ports", None) is None:
            built = build_ports(app_settings)
            await prepare_ports(built)
            _install_ports(app, built, app_settings)
        logger.info("%s ready", app_settings.app_name)

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        current: Ports | None = getattr(app.state, "ports", None)
        if current is not None:
            await current.dispose()

    return app


app = create_app()


def run() -> None:
    """Serve the application with uvicorn on BIND_ADDR."""
    import uvicorn

    configure_logging(default_settings.log_level)
    uvicorn.run(
        "anonboard.main:app",
        host=default_settings.bind_host,
        port=default_settings.bind_port,
        reload=default_settings.debug,
        log_config=None,
    )


if __name__ == "__main__":
    run()
