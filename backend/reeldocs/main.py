"""
FastAPI application for the video documentation pipeline.

Provides the HTTP API for projects, videos and processing jobs with
SSE and WebSocket progress updates.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from reeldocs import __version__
from reeldocs.api import models_routes, routes, websocket
from reeldocs.config import Settings, get_settings
from reeldocs.logging_config import setup_logging
from reeldocs.services.container import ServiceContainer

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    services: ServiceContainer | None = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Application settings (default: environment)
        services: Pre-built services (tests); built from settings on startup otherwise

    Returns:
        FastAPI app; services are started and closed by its lifespan
    """
    settings = settings or (services.settings if services else get_settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan handler.

        Builds services, creates tables, fails jobs interrupted by a
        previous shutdown and starts the pipeline workers.
        """
        setup_logging(settings)
        logger.info("Starting reeldocs API")
        logger.info(f"Log level: {settings.log_level}")
        logger.info(
            f"Models - video: {settings.video_model}, docs: {settings.docs_model}, "
            f"translation: {settings.translation_model}"
        )

        container = services or ServiceContainer.from_settings(settings)
        app.state.services = container
        await container.start()

        yield

        logger.info("Shutting down reeldocs API")
        await container.close()

    app = FastAPI(
        title="Reeldocs API",
        description="Video to multi-language documentation pipeline",
        version=__version__,
        lifespan=lifespan,
    )

    # Services are reachable before startup when injected (ASGI tests without lifespan)
    if services is not None:
        app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[origin.strip() for origin in settings.cors_origins.split(",")],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(routes.router)
    app.include_router(models_routes.router)
    app.include_router(websocket.router)
    routes.register_error_handlers(app)

    @app.get("/health")
    async def health_check() -> dict:
        """
        Health check endpoint.

        Returns:
            Basic health status
        """
        return {"status": "ok", "version": __version__}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "reeldocs.main:app",
        host="0.0.0.0",
        port=8801,
        reload=True,
    )
