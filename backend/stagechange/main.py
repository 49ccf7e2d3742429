"""
Stage Change Service - Main FastAPI Application

Hosts transition workflow sessions for the case-management UI. Configures
middleware, routes and the shared backend client.
"""

from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config.settings import settings
from .api.routes import api_router
from .api.middleware import CorrelationIdMiddleware, register_error_handlers
from .repositories.api_client import StageChangeApiClient
from .services.session_registry import WorkflowRegistry
from .utils.logger import setup_logging, get_logger

# Setup logging first
setup_logging()
logger = get_logger(__name__)

VERSION = "1.0.0"


# =============================================================================
# Application Lifecycle
# =============================================================================

def _lifespan_for(registry: Optional[WorkflowRegistry]):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Startup:
            - Creates the backend client and the workflow registry
        Shutdown:
            - Drops any sessions still open
        """
        logger.info("Starting Stage Change Service...")
        app.state.registry = registry or WorkflowRegistry(StageChangeApiClient())
        logger.info(f"Backend API: {settings.api_base_url}")

        yield

        open_sessions = len(app.state.registry.session_ids)
        if open_sessions:
            logger.warning(f"Shutting down with {open_sessions} open workflow session(s)")
        logger.info("Application shutdown complete")

    return lifespan


# =============================================================================
# Application Factory
# =============================================================================

def create_app(registry: Optional[WorkflowRegistry] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        registry: Pre-built registry (tests inject one wired to a fake backend)

    Returns:
        Configured FastAPI application instance
    """
    application = FastAPI(
        title="Stage Change Service",
        description="Project stage transitions with approvals, side effects and notifications",
        version=VERSION,
        lifespan=_lifespan_for(registry),
        docs_url="/api/docs" if settings.debug else None,
        redoc_url="/api/redoc" if settings.debug else None,
        openapi_url="/api/openapi.json" if settings.debug else None,
    )

    _configure_middleware(application)
    register_error_handlers(application)
    _configure_routes(application)

    return application


def _configure_middleware(app: FastAPI) -> None:
    """Configure application middleware."""
    # allow_credentials must be False when allowing all origins
    allow_all = settings.cors_origins.strip() == "*"

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_origins_list,
        allow_credentials=not allow_all,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Correlation-Id"],
    )

    app.add_middleware(CorrelationIdMiddleware)


def _configure_routes(app: FastAPI) -> None:
    """Configure application routes."""
    app.include_router(api_router, prefix="/api")

    @app.get("/api/health", tags=["Health"])
    async def health():
        """
        Health check endpoint.

        Reports whether the case-management backend answers.
        """
        backend = "healthy"
        try:
            async with httpx.AsyncClient(
                base_url=settings.api_base_url, timeout=5.0
            ) as client:
                response = await client.get("/api/health")
            if response.status_code >= 500:
                backend = "unhealthy"
        except httpx.HTTPError as e:
            logger.warning(f"Backend health check failed: {e}")
            backend = "unreachable"

        return {
            "status": "healthy" if backend == "healthy" else "degraded",
            "version": VERSION,
            "environment": settings.environment,
            "backend": backend,
            "openSessions": len(app.state.registry.session_ids),
        }


# =============================================================================
# Application Instance
# =============================================================================

app = create_app()
