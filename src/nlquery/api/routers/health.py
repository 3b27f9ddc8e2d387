"""
Health check endpoints for monitoring and diagnostics.
"""

import time
from fastapi import APIRouter, Depends
from datetime import datetime

from ..models.common import HealthStatus
from ..dependencies.pipeline import get_executor, get_model_manager, get_schema_loader
from nlquery.models.manager import ModelManager
from nlquery.pipeline.query.executor import QueryExecutor
from nlquery.pipeline.query.schema_loader import SchemaLoader

router = APIRouter()

# Track server start time for uptime calculation
_server_start_time = time.time()

API_VERSION = "1.0.0"


@router.get("/", response_model=HealthStatus)
async def health_check(
    model_manager: ModelManager = Depends(get_model_manager),
    schema_loader: SchemaLoader = Depends(get_schema_loader),
    executor: QueryExecutor = Depends(get_executor)
):
    """
    Basic health check endpoint.

    Reports which schema documents are present, how many models the registry
    knows, and which live backends are configured. Nothing is contacted.
    """
    dependencies = {}

    for kind, present in schema_loader.availability().items():
        dependencies[f"schema.{kind}"] = "available" if present else "missing"

    dependencies["model_registry"] = f"{len(model_manager.registry)} models, default: {model_manager.default_model or 'none'}"

    for name, configured in (
        ("graphql_endpoint", executor.graphql_url),
        ("rest_api", executor.rest_api_url),
        ("database", executor.database_url),
    ):
        dependencies[name] = "configured" if configured else "not configured"

    return HealthStatus(
        status="healthy",
        version=API_VERSION,
        uptime=time.time() - _server_start_time,
        dependencies=dependencies
    )


@router.get("/detailed")
async def detailed_health_check(model_manager: ModelManager = Depends(get_model_manager)):
    """Per-model call statistics since startup."""
    uptime = time.time() - _server_start_time

    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "uptime_seconds": uptime,
        "uptime_human": f"{uptime//3600:.0f}h {(uptime%3600)//60:.0f}m {uptime%60:.0f}s",
        "models": sorted(model_manager.registry),
        "model_stats": model_manager.get_stats(),
    }
