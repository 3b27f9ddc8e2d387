import asyncio
import json
import pytest
import httpx
from unittest.mock import AsyncMock, MagicMock, Mock

from sqlalchemy.exc import OperationalError

from nlquery.models.providers.base import ConfigurationError
from nlquery.pipeline.query.executor import QueryExecutor, _async_database_url
from nlquery.pipeline.query.query_types import Dialect, ExecutionError, ExecutionTimeout


def _client_factory(handler):
    return lambda: httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _mock_engine(result=None, error=None):
    conn = AsyncMock()
    if error is not None:
        conn.execute.side_effect = error
    else:
        conn.execute.return_value = result
    engine = MagicMock()
    engine.connect.return_value.__aenter__.return_value = conn
    engine.connect.return_value.__aexit__.return_value = False
    engine.dispose = AsyncMock()
    return engine, conn


class TestDatabaseUrl:
    @pytest.mark.parametrize("url,expected", [
        ("postgres://u:p@db/app", "postgresql+asyncpg://u:p@db/app"),
        ("postgresql://u:p@db/app", "postgresql+asyncpg://u:p@db/app"),
        ("postgresql+asyncpg://u:p@db/app", "postgresql+asyncpg://u:p@db/app"),
    ])
    def test_async_driver(self, url, expected):
        assert _async_database_url(url) == expected

    def test_engine_requires_url(self):
        with pytest.raises(ConfigurationError, match="DATABASE_URL"):
            QueryExecutor().engine


class TestGraphQLExecution:
    @pytest.mark.asyncio
    async def test_returns_data(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"data": {"users": [{"id": "1"}]}})

        executor = QueryExecutor(graphql_url="http://gql.test/graphql", http_client_factory=_client_factory(handler))
        result = await executor.execute("{ users { id } }", Dialect.GRAPHQL)

        assert result == {"users": [{"id": "1"}]}
        assert seen["url"] == "http://gql.test/graphql"
        assert seen["body"] == {"query": "{ users { id } }"}

    @pytest.mark.asyncio
    async def test_graphql_errors_raise(self):
        def handler(request):
            return httpx.Response(200, json={"errors": [{"message": "Cannot query field"}]})

        executor = QueryExecutor(graphql_url="http://gql.test/graphql", http_client_factory=_client_factory(handler))
        with pytest.raises(ExecutionError, match="Cannot query field"):
            await executor.execute("{ users { id } }", "GraphQL")

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        executor = QueryExecutor(
            graphql_url="http://gql.test/graphql",
            http_client_factory=_client_factory(lambda request: httpx.Response(502)),
        )
        with pytest.raises(ExecutionError, match="GraphQL request failed"):
            await executor.execute("{ users { id } }", "GraphQL")

    @pytest.mark.asyncio
    async def test_unconfigured_endpoint(self):
        with pytest.raises(ConfigurationError, match="GRAPHQL_URL"):
            await QueryExecutor().execute("{ users { id } }", "GraphQL")


class TestRestExecution:
    @pytest.mark.asyncio
    async def test_sends_method_path_params_and_body(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json={"id": 7})

        executor = QueryExecutor(rest_api_url="http://api.test", http_client_factory=_client_factory(handler))
        envelope = json.dumps({"method": "post", "url": "/users", "params": {"notify": "1"}, "body": {"email": "a@b.c"}})
        result = await executor.execute(envelope, Dialect.REST)

        assert result == {"status": 201, "data": {"id": 7}}
        assert seen["method"] == "POST"
        assert seen["url"] == "http://api.test/users?notify=1"
        assert seen["body"] == {"email": "a@b.c"}

    @pytest.mark.asyncio
    async def test_non_json_body_returned_as_text(self):
        executor = QueryExecutor(
            rest_api_url="http://api.test",
            http_client_factory=_client_factory(lambda request: httpx.Response(200, text="pong")),
        )
        result = await executor.execute('{"method": "GET", "url": "/ping"}', "REST")

        assert result == {"status": 200, "data": "pong"}

    @pytest.mark.asyncio
    async def test_bad_envelope(self):
        executor = QueryExecutor(rest_api_url="http://api.test")
        with pytest.raises(ExecutionError, match="method and url"):
            await executor.execute('{"url": "/users"}', "REST")

    @pytest.mark.asyncio
    async def test_error_status_raises(self):
        executor = QueryExecutor(
            rest_api_url="http://api.test",
            http_client_factory=_client_factory(lambda request: httpx.Response(404, json={"detail": "nope"})),
        )
        with pytest.raises(ExecutionError, match="GET http://api.test/missing failed"):
            await executor.execute('{"method": "GET", "url": "/missing"}', "REST")


class TestSqlExecution:
    @pytest.mark.asyncio
    async def test_returns_rows(self):
        result = Mock(returns_rows=True)
        result.mappings.return_value.all.return_value = [{"id": 1, "email": "a@b.c"}]
        engine, conn = _mock_engine(result)

        executor = QueryExecutor(engine=engine)
        rows = await executor.execute("SELECT id, email FROM users", Dialect.SQL)

        assert rows == [{"id": 1, "email": "a@b.c"}]
        assert conn.execute.call_args.args[0].text == "SELECT id, email FROM users"
        conn.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_returns_rowcount_for_writes(self):
        engine, _ = _mock_engine(Mock(returns_rows=False, rowcount=3))

        result = await QueryExecutor(engine=engine).execute("UPDATE users SET name = 'x'", "SQL")

        assert result == {"rowcount": 3}

    @pytest.mark.asyncio
    async def test_database_error(self):
        engine, _ = _mock_engine(error=OperationalError("SELECT 1", {}, Exception("connection refused")))

        with pytest.raises(ExecutionError, match="SQL execution failed"):
            await QueryExecutor(engine=engine).execute("SELECT 1", "SQL")

    @pytest.mark.asyncio
    async def test_dispose(self):
        engine, _ = _mock_engine()
        await QueryExecutor(engine=engine).dispose()
        engine.dispose.assert_awaited_once()


class TestTimeout:
    @pytest.mark.asyncio
    async def test_slow_backend_times_out_and_is_cancelled(self):
        cancelled = asyncio.Event()

        async def handler(request):
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise
            return httpx.Response(200, json={"data": {}})

        executor = QueryExecutor(
            graphql_url="http://gql.test/graphql",
            timeout=0.05,
            http_client_factory=_client_factory(handler),
        )

        with pytest.raises(ExecutionTimeout, match="Timeout"):
            await asyncio.wait_for(executor.execute("{ users { id } }", "GraphQL"), timeout=2)
        assert cancelled.is_set()

    @pytest.mark.asyncio
    async def test_timeout_is_an_execution_error(self):
        assert issubclass(ExecutionTimeout, ExecutionError)
        assert issubclass(ExecutionTimeout, TimeoutError)
