"""
FastAPI application entry point.

Builds the query pipeline once at startup and maps pipeline failures to HTTP
responses. Every error body has the shape {"error": ...}; validation failures
add "details".
"""

import logging
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from .models.common import APIError
from .routers import health, query
from nlquery.settings import EngineSettings
from nlquery.models.manager import ModelManager
from nlquery.models.providers.base import ConfigurationError, ProviderError
from nlquery.pipeline.query.executor import QueryExecutor
from nlquery.pipeline.query.generator import QueryGenerator
from nlquery.pipeline.query.orchestrator import QueryOrchestrator
from nlquery.pipeline.query.query_types import QueryPipelineError, QueryValidationError, UnknownDialectError
from nlquery.pipeline.query.schema_loader import SchemaLoader
from nlquery.pipeline.query.validator import QueryValidator

logger = logging.getLogger(__name__)

# Global application state
app_state = {}


def build_components(settings: EngineSettings) -> dict:
    """Wire the pipeline components from one settings value."""
    model_manager = ModelManager(settings)
    schema_loader = SchemaLoader(settings.schema_dir)
    generator = QueryGenerator(model_manager, schema_loader)
    validator = QueryValidator(schema_loader, validate_rest_paths=settings.validate_rest_paths)
    executor = QueryExecutor(
        graphql_url=settings.graphql_url,
        rest_api_url=settings.rest_api_url,
        database_url=settings.database_url,
        timeout=settings.timeout_s,
    )
    return {
        "settings": settings,
        "model_manager": model_manager,
        "schema_loader": schema_loader,
        "generator": generator,
        "validator": validator,
        "executor": executor,
        "orchestrator": QueryOrchestrator(generator, validator, executor),
    }


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings: EngineSettings = app.state.settings or EngineSettings()
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    logger.info("Starting natural-language query API server...")
    app_state.update(build_components(settings))
    logger.info(f"Model registry loaded: {len(app_state['model_manager'].registry)} models")

    yield  # Server runs here

    logger.info("Shutting down natural-language query API server...")
    await app_state["executor"].dispose()
    app_state["model_manager"].cleanup()
    app_state.clear()


def _error_response(status_code: int, message: str, **extra) -> JSONResponse:
    body = APIError(error=message, **extra)
    return JSONResponse(status_code=status_code, content=body.model_dump(by_alias=True, exclude_none=True))


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        fields = []
        for err in exc.errors():
            loc = err.get("loc") or ()
            if err.get("type") in ("missing", "string_too_short") and len(loc) > 1:
                if str(loc[-1]) not in fields:
                    fields.append(str(loc[-1]))
        if fields:
            return _error_response(400, f"Missing required fields: {', '.join(fields)}")
        return _error_response(400, "Invalid request body")

    @app.exception_handler(UnknownDialectError)
    async def unknown_dialect_handler(request: Request, exc: UnknownDialectError):
        return _error_response(400, str(exc))

    @app.exception_handler(QueryValidationError)
    async def query_validation_handler(request: Request, exc: QueryValidationError):
        return _error_response(400, "Validation failed", details=exc.errors, generated_query=exc.query)

    @app.exception_handler(ConfigurationError)
    @app.exception_handler(ProviderError)
    @app.exception_handler(QueryPipelineError)
    async def pipeline_error_handler(request: Request, exc: Exception):
        logger.error(f"{request.url.path} failed: {type(exc).__name__}: {exc}")
        return _error_response(500, str(exc))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.url.path}")
        return _error_response(500, "Internal Server Error")


def create_app(settings: Optional[EngineSettings] = None) -> FastAPI:
    """
    Factory function to create and configure the FastAPI application.

    Settings default to the process environment at startup.
    """

    app = FastAPI(
        title="Natural Language Query API",
        description="Generate, validate and execute SQL, GraphQL and REST queries from natural language",
        version=health.API_VERSION,
        lifespan=lifespan
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://localhost:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(health.router, prefix="/health", tags=["health"])
    app.include_router(query.router, tags=["query"])

    @app.get("/")
    async def root():
        """Root endpoint with basic API information."""
        return {
            "name": "Natural Language Query API",
            "version": health.API_VERSION,
            "status": "operational",
            "endpoints": {
                "health": "/health",
                "generate": "/generate-query",
                "execute": "/execute-query",
                "pipeline": "/ai-query",
                "docs": "/docs",
                "redoc": "/redoc"
            }
        }

    return app

# Create the FastAPI app instance
app = create_app()
