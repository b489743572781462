"""FastAPI application entry point.

Nearby Offers API - location-aware commerce discovery and offer feed.
"""

from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from nearby_offers.routes import api_router
from nearby_offers.schemas.common import error_payload
from nearby_offers.services.errors import (
    CommerceNotFound,
    DiscoveryError,
    Unauthenticated,
    UpstreamQueryError,
    ValidationError,
)
from nearby_offers.services.identity_provider import SupabaseIdentityProvider
from nearby_offers.settings import get_settings
from nearby_offers.stores.postgres import init_db, close_db, ping_db
from nearby_offers.stores.redis import init_redis, close_redis

logger = logging.getLogger("uvicorn.error")

# DiscoveryError subclass -> HTTP status
ERROR_STATUS: dict[type[DiscoveryError], int] = {
    ValidationError: 400,
    Unauthenticated: 401,
    CommerceNotFound: 404,
    UpstreamQueryError: 502,
}


def status_for(exc: DiscoveryError) -> int:
    for error_type, status_code in ERROR_STATUS.items():
        if isinstance(exc, error_type):
            return status_code
    return 500


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Handles startup and shutdown events.
    """
    # Initialize database (skip in tests if no DB available)
    try:
        await init_db()
        await ping_db()
        logger.info("Postgres connected")
    except Exception:
        logger.exception("Postgres init failed")

    # Initialize Redis (cache is optional)
    try:
        await init_redis()
    except Exception:
        logger.exception("Redis init failed")

    app.state.identity_provider = SupabaseIdentityProvider()

    yield

    # Shutdown
    await app.state.identity_provider.close()
    await close_redis()
    await close_db()


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Nearby commerces and personalized offer feed",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(DiscoveryError)
    async def discovery_exception_handler(request: Request, exc: DiscoveryError) -> JSONResponse:
        """Map discovery errors to the structured error format."""
        status_code = status_for(exc)
        headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthenticated) else None
        if status_code >= 500:
            logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.code, exc.message)
        return JSONResponse(
            status_code=status_code,
            content=error_payload(exc.code, exc.message, exc.detail),
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Query/path validation failures use the same 400 shape as ValidationError."""
        errors = [
            {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg", "")}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content=error_payload("VALIDATION_ERROR", "Invalid request parameters", {"errors": errors}),
        )

    # Exception handler for structured error format
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler returning structured error format."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=error_payload("INTERNAL_ERROR", str(exc) if settings.debug else "Internal server error"),
        )

    # Health check endpoint
    @app.get("/health", tags=["health"])
    async def health_check() -> dict[str, bool]:
        """Health check endpoint."""
        return {"ok": True}

    # Include API routes
    app.include_router(api_router)

    return app


# Application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "nearby_offers.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
