import pytest
from unittest.mock import AsyncMock, Mock

from nlquery.models.providers.base import ProviderError
from nlquery.pipeline.query.executor import QueryExecutor
from nlquery.pipeline.query.generator import QueryGenerator
from nlquery.pipeline.query.orchestrator import QueryOrchestrator
from nlquery.pipeline.query.query_types import (
    Dialect, ExecutionTimeout, PipelineResult, QueryValidationError, UnknownDialectError, ValidationOutcome
)
from nlquery.pipeline.query.schema_loader import SchemaLoader
from nlquery.pipeline.query.validator import QueryValidator


@pytest.fixture
def generator():
    generator = Mock(spec=QueryGenerator)
    generator.generate.return_value = "SELECT * FROM users"
    return generator


@pytest.fixture
def executor():
    executor = Mock(spec=QueryExecutor)
    executor.execute = AsyncMock(return_value=[{"id": 1}])
    return executor


@pytest.fixture
def orchestrator(generator, executor, schema_dir):
    return QueryOrchestrator(generator, QueryValidator(SchemaLoader(schema_dir)), executor)


class TestQueryOrchestrator:
    @pytest.mark.asyncio
    async def test_generate_validate_execute(self, orchestrator, generator, executor):
        result = await orchestrator.run("all users", "SQL", "gpt-test")

        assert result == PipelineResult(generated_query="SELECT * FROM users", result=[{"id": 1}])
        generator.generate.assert_called_once_with("all users", Dialect.SQL, "gpt-test")
        executor.execute.assert_awaited_once_with("SELECT * FROM users", Dialect.SQL)

    @pytest.mark.asyncio
    async def test_invalid_query_is_never_executed(self, orchestrator, generator, executor):
        generator.generate.return_value = "SELECT * FROM ghosts"

        with pytest.raises(QueryValidationError) as exc_info:
            await orchestrator.run("all ghosts", "SQL")

        assert exc_info.value.errors == ["Unknown tables: ghosts"]
        assert exc_info.value.query == "SELECT * FROM ghosts"
        assert "Validation failed for generated query" in str(exc_info.value)
        executor.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_generation_failure_stops_pipeline(self, orchestrator, generator, executor):
        generator.generate.side_effect = ProviderError("openai API error")

        with pytest.raises(ProviderError):
            await orchestrator.run("all users", "SQL")
        executor.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_execution_timeout_propagates(self, orchestrator, executor):
        executor.execute.side_effect = ExecutionTimeout("Timeout: SQL execution exceeded 0.1s")

        with pytest.raises(ExecutionTimeout):
            await orchestrator.run("all users", "SQL")

    @pytest.mark.asyncio
    async def test_unknown_dialect(self, orchestrator, generator):
        with pytest.raises(UnknownDialectError):
            await orchestrator.run("all users", "XML")
        generator.generate.assert_not_called()

    @pytest.mark.asyncio
    async def test_uses_validator_outcome(self, generator, executor):
        validator = Mock(spec=QueryValidator)
        validator.validate.return_value = ValidationOutcome.invalid(["Syntax Error: Unexpected <EOF>."])
        generator.generate.return_value = "{ users"

        with pytest.raises(QueryValidationError):
            await QueryOrchestrator(generator, validator, executor).run("users", "GraphQL")
        validator.validate.assert_called_once_with("{ users", Dialect.GRAPHQL)
