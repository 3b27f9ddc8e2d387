"""
End-to-end natural-language query pipeline: generate -> validate -> execute.
"""

import asyncio
import logging
import time
from typing import Optional, Union

from .executor import QueryExecutor
from .generator import QueryGenerator
from .query_types import Dialect, PipelineResult, QueryValidationError
from .validator import QueryValidator

logger = logging.getLogger(__name__)


class QueryOrchestrator:
    """
    Single pass, fail fast, no retries. A generated query is only executed
    after the validator for its dialect has accepted it.
    """

    def __init__(self, generator: QueryGenerator, validator: QueryValidator, executor: QueryExecutor):
        self.generator = generator
        self.validator = validator
        self.executor = executor

    async def run(self, natural_query: str, dialect: Union[Dialect, str], model_identifier: Optional[str] = None) -> PipelineResult:
        dialect = Dialect.parse(dialect)
        start_time = time.perf_counter()

        # --- 1. GENERATE ---
        # provider SDKs are blocking
        generated_query = await asyncio.to_thread(
            self.generator.generate, natural_query, dialect, model_identifier
        )

        # --- 2. VALIDATE ---
        outcome = self.validator.validate(generated_query, dialect)
        if not outcome.is_valid:
            raise QueryValidationError(outcome.errors, generated_query)

        # --- 3. EXECUTE ---
        result = await self.executor.execute(generated_query, dialect)

        logger.info(f"{dialect.value} pipeline completed in {time.perf_counter() - start_time:.2f}s")
        return PipelineResult(generated_query=generated_query, result=result)
