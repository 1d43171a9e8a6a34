"""Main FastAPI application for the hospital document API.

Sets up logging, CORS, middleware, the collection routers and the JSON
error bodies shared by every endpoint.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from hospitalms.api.dependencies import get_document_store, get_settings
from hospitalms.api.errors import APIError
from hospitalms.api.middleware import setup_middleware
from hospitalms.api.routes import doctors, health, patients, prescriptions, users, visits
from hospitalms.infrastructure.logging_config import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logger.info(f"{settings.app_name} API starting up ({settings.db_config.db_type} store)")
    logger.info("API documentation available at /api/docs")
    yield
    logger.info(f"{settings.app_name} API shutting down")
    app.dependency_overrides.get(get_document_store, get_document_store)().close()


def create_app() -> FastAPI:
    """Build the application from the current settings."""
    settings = get_settings()
    setup_logging(use_json=settings.json_logs, log_level=settings.log_level)

    app = FastAPI(
        title=f"{settings.app_name} API",
        description="Patients, doctors, visits, prescriptions and users with bulk import endpoints",
        version=settings.version,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Process-Time"],
    )
    setup_middleware(app)

    for module in (health, patients, doctors, visits, prescriptions, users):
        app.include_router(module.router)

    @app.exception_handler(APIError)
    async def api_error_handler(request: Request, exc: APIError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} - {exc.message}: {exc.error}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"message": "Invalid request body", "error": str(exc.errors())},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return JSONResponse(status_code=404, content={"error": f"Route not found: {request.url.path}"})
        return JSONResponse(status_code=exc.status_code, content={"message": str(exc.detail)})

    @app.get("/")
    def root():
        return {
            "message": "Hospital Management API",
            "status": "running",
            "database": settings.db_config.db_type,
            "docs": "/api/docs",
            "health": "/api/health",
        }

    return app


app = create_app()
