"""FastAPI application factory for the OxKube webhook.

Usage::

    from oxkube.api.app import create_app

    app = create_app(synchronizer=synchronizer, config=config)

The factory is used by both the production bootstrap (``oxkube.app``) and
unit tests.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest

from oxkube.api.routes import build_router
from oxkube.models.config import OxKubeConfig

_log = structlog.get_logger(component="api.app")


def create_app(synchronizer: Any, config: OxKubeConfig | None = None) -> FastAPI:
    """Create and configure the OxKube FastAPI application.

    Args:
        synchronizer: GraphSynchronizer (anything with an async ``process``).
        config:       OxKubeConfig.  Supplies the webhook path, webhook
                      authentication and the metrics switch.

    Returns:
        Configured FastAPI application, ready to be served by uvicorn.
    """
    from oxkube import __version__

    config = config or OxKubeConfig()
    webhook_config = config.consumers.webhook

    app = FastAPI(
        title="OxKube",
        summary="Kubernetes to Onix CMDB synchronization webhook",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    app.state.synchronizer = synchronizer
    app.state.config = config
    app.state.webhook_config = webhook_config

    if config.metrics:
        _log.debug("metrics enabled, registering /metrics")

        @app.get("/metrics", include_in_schema=False)
        async def metrics() -> Response:
            return Response(generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)

    app.include_router(build_router(webhook_config.path))

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request,
        exc: Exception,
    ) -> PlainTextResponse:
        """Catch-all for unhandled exceptions: never expose stack traces."""
        _log.error(
            "unhandled_exception",
            path=str(request.url.path),
            method=request.method,
            error=str(exc),
        )
        return PlainTextResponse("An unexpected error occurred.", status_code=500)

    return app
