"""
Natural-language query endpoints: generate, execute, and the full pipeline.
"""

import asyncio
import logging
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..models.common import APIError
from ..models.query import (
    AIQueryRequest, AIQueryResponse,
    ExecuteQueryRequest, ExecuteQueryResponse,
    GenerateQueryRequest, GenerateQueryResponse,
)
from ..dependencies.pipeline import get_executor, get_generator, get_orchestrator, get_validator
from nlquery.pipeline.query.executor import QueryExecutor
from nlquery.pipeline.query.generator import QueryGenerator
from nlquery.pipeline.query.orchestrator import QueryOrchestrator
from nlquery.pipeline.query.query_types import Dialect, QueryValidationError
from nlquery.pipeline.query.validator import QueryValidator

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/generate-query", response_model=GenerateQueryResponse)
async def generate_query(
    request: GenerateQueryRequest,
    generator: QueryGenerator = Depends(get_generator)
):
    """Generate a query for the requested dialect without validating or running it."""
    dialect = Dialect.parse(request.query_type)
    generated = await asyncio.to_thread(generator.generate, request.query, dialect, request.model)
    return GenerateQueryResponse(generated_query=generated)


@router.post("/execute-query", response_model=ExecuteQueryResponse)
async def execute_query(
    request: ExecuteQueryRequest,
    validator: QueryValidator = Depends(get_validator),
    executor: QueryExecutor = Depends(get_executor)
):
    """Validate a query against its schema, then run it against the live backend."""
    dialect = Dialect.parse(request.query_type)

    outcome = validator.validate(request.query, dialect)
    if not outcome.is_valid:
        body = APIError(error="Validation failed", details=outcome.errors)
        return JSONResponse(status_code=400, content=body.model_dump(by_alias=True, exclude_none=True))

    result = await executor.execute(request.query, dialect)
    return ExecuteQueryResponse(result=result)


@router.post("/ai-query", response_model=AIQueryResponse)
async def ai_query(
    request: AIQueryRequest,
    orchestrator: QueryOrchestrator = Depends(get_orchestrator)
):
    """
    Full pipeline: generate a query from the prompt, validate it, execute it.

    A generated query that fails validation is reported as a server-side
    failure (the model produced it, not the caller) together with the
    validation messages and the query text.
    """
    dialect = Dialect.parse(request.query_type)
    try:
        pipeline_result = await orchestrator.run(request.prompt, dialect, request.model)
    except QueryValidationError as e:
        logger.warning(f"Generated {dialect.value} query failed validation: {e.errors}")
        body = APIError(error=str(e), details=e.errors, generated_query=e.query)
        return JSONResponse(status_code=500, content=body.model_dump(by_alias=True, exclude_none=True))

    return AIQueryResponse(generated_query=pipeline_result.generated_query, result=pipeline_result.result)
