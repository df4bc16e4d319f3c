"""
FastAPI application for the twin server.

Serves device twin status, desired writes and object sync records
of a running TwinServer.
"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from ..config import TwinServerSettings, get_twin_server_settings
from ..exceptions import ConfigError, NotFoundError, TransportError, TwinError
from .v1 import build_api_router

logger = logging.getLogger(__name__)

ERROR_STATUS = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConfigError, status.HTTP_400_BAD_REQUEST),
    (TransportError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def create_app(server=None, settings: TwinServerSettings = None) -> FastAPI:
    """
    Application factory.

    Args:
        server: TwinServer whose components the routes use.
        settings: Server settings.
    """
    settings = settings or (server.settings if server else get_twin_server_settings())

    app = FastAPI(
        title=settings.api.title,
        description="Device twin status, desired writes and object sync records",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
    )
    app.state.twin_server = server
    app.state.settings = settings

    register_exception_handlers(app)
    register_routes(app)

    return app


def register_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(TwinError)
    async def twin_error_handler(request: Request, exc: TwinError):
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        for error_type, code in ERROR_STATUS:
            if isinstance(exc, error_type):
                status_code = code
                break
        return JSONResponse(status_code=status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}")

        if app.state.settings.debug:
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "error": "INTERNAL_ERROR",
                    "message": str(exc),
                    "type": type(exc).__name__,
                },
            )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "INTERNAL_ERROR",
                "message": "An internal error occurred",
            },
        )


def register_routes(app: FastAPI) -> None:
    """Register API routes."""

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Check application health."""
        server = app.state.twin_server
        running = bool(server and server.running)
        return {
            "status": "healthy" if running else "unhealthy",
            "transport": "online" if running and server.transport.is_online else "offline",
        }

    @app.get("/stats", tags=["Health"])
    async def get_stats():
        """Get server statistics."""
        server = app.state.twin_server
        return server.get_stats() if server else {"running": False}

    app.include_router(build_api_router(app.state.settings.api.prefix))
