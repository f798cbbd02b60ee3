"""
Contracting Service API - Main Application.

FastAPI application with CORS enabled for the sales funnels and the ops
console. Services are built at startup from the environment (see
repositories/settings.py); `create_app(services=...)` lets tests inject
prebuilt services.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api import __version__
from domain.errors import (
    ConnectivityError,
    ContractingError,
    DomainError,
    DraftNotFoundError,
    ResolutionError,
    ValidationError,
)
from repositories.settings import load_settings
from services.factory import ContractingServices, build_services

logger = logging.getLogger(__name__)


def status_code_for(error: ContractingError) -> int:
    """HTTP status for a contracting error category."""

    if isinstance(error, (ResolutionError, ValidationError)):
        return 422
    if isinstance(error, DraftNotFoundError):
        return 404
    if isinstance(error, DomainError):
        return 409
    if isinstance(error, ConnectivityError):
        return 503
    return 500


def create_app(services: Optional[ContractingServices] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        built = services
        if built is None:
            settings = load_settings()
            logging.basicConfig(
                level=settings.log_level,
                format="%(asctime)s %(levelname)s %(name)s: %(message)s",
            )
            built = build_services(settings)
            logger.info(
                f"Contracting service started (env={settings.environment}, store={settings.store_backend})"
            )
        app.state.services = built
        yield
        built.shutdown()

    app = FastAPI(
        title="Contracting Service API",
        description="Contract draft onboarding, verification and activation for energy supply contracts",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Configure CORS - Allow all origins for development
    # TODO: Restrict origins to the funnel and ops console domains in production
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ContractingError)
    async def contracting_error_handler(request: Request, exc: ContractingError):
        status_code = status_code_for(exc)
        if status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.code} {exc.message}")
        return JSONResponse(
            status_code=status_code,
            content={"success": False, "code": exc.code, "message": exc.message},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = "; ".join(
            f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}" for error in errors
        )
        return JSONResponse(
            status_code=422,
            content={"success": False, "code": "VALIDATION_ERROR", "message": message},
        )

    @app.get("/health", tags=["Health"])
    def health_check(request: Request):
        """
        Health check endpoint.

        Returns the API status, version and which store backs the service.
        """
        state_services: ContractingServices = request.app.state.services
        return {
            "status": "healthy",
            "version": __version__,
            "service": "contracting-service-api",
            "store": state_services.settings.store_backend,
            "degraded_fallback": state_services.fallback_stores is not None,
        }

    @app.get("/", tags=["Root"])
    def root():
        """
        Root endpoint with API information.
        """
        return {
            "message": "Contracting Service API",
            "version": __version__,
            "docs": "/docs",
            "health": "/health",
        }

    # Import and include routers
    from api.routers import contracting, ops

    app.include_router(contracting.router, prefix="/api/v1/contracting", tags=["Contracting"])
    app.include_router(ops.router, prefix="/api/v1/contracting/ops", tags=["Operations"])

    return app


app = create_app()
