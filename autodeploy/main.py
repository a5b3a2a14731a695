"""
FastAPI main application entry point.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, status
from fastapi.middleware.cors import CORSMiddleware

from autodeploy.api.router import api_router
from autodeploy.core.config import Settings, settings as default_settings
from autodeploy.core.exception_handlers import register_exception_handlers
from autodeploy.services.deployment import DeploymentPipeline

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_app(
    settings: Optional[Settings] = None,
    pipeline: Optional[DeploymentPipeline] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Settings to use (defaults to the environment-loaded settings)
        pipeline: Pre-built pipeline; built from settings when omitted

    Returns:
        Configured FastAPI app
    """
    settings = settings or default_settings
    configure_logging(settings.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            f"{settings.APP_NAME} {settings.APP_VERSION} starting "
            f"(environment={settings.ENVIRONMENT}, workspaces={settings.WORKSPACE_ROOT})"
        )
        if not await app.state.pipeline.runtime.ping():
            logger.warning("Container engine is not reachable; deployments will fail until it is")
        yield
        logger.info("Application shutdown complete")

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Zero-configuration git-to-container deployment API",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url=f"{settings.API_PREFIX}/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.pipeline = pipeline or DeploymentPipeline.from_settings(settings)

    # Register domain exception handlers
    register_exception_handlers(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cors_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "Accept", "Origin", "X-Requested-With"],
        max_age=600,
    )

    app.include_router(api_router, prefix=settings.API_PREFIX)

    @app.get("/", status_code=status.HTTP_200_OK)
    async def root():
        """
        Root endpoint.

        Returns:
            Welcome message with API documentation link
        """
        return {
            "message": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "docs": "/docs",
            "health": f"{settings.API_PREFIX}/deploy/health",
        }

    return app


app = create_app()


def run() -> None:
    """Serve the API with uvicorn."""
    uvicorn.run(
        "autodeploy.main:app",
        host=default_settings.HOST,
        port=default_settings.PORT,
        log_level=default_settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
