import asyncio
import json
import logging
import time
from typing import Any, Callable, Dict, Optional, Union

import httpx
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from nlquery.models.providers.base import ConfigurationError
from .query_types import Dialect, ExecutionError, ExecutionTimeout

logger = logging.getLogger(__name__)


def _async_database_url(database_url: str) -> str:
    """Point plain postgres URLs at the asyncpg driver."""
    for prefix in ("postgres://", "postgresql://"):
        if database_url.startswith(prefix):
            return "postgresql+asyncpg://" + database_url[len(prefix):]
    return database_url


class QueryExecutor:
    """
    Runs a validated query against the matching live backend, bounded by a
    timeout. On timeout the in-flight call is cancelled and ExecutionTimeout
    is raised; a mutation may or may not have been applied by then.
    """

    def __init__(
        self,
        graphql_url: Optional[str] = None,
        rest_api_url: Optional[str] = None,
        database_url: Optional[str] = None,
        timeout: float = 30.0,
        http_client_factory: Optional[Callable[[], httpx.AsyncClient]] = None,
        engine: Optional[AsyncEngine] = None,
    ):
        self.graphql_url = graphql_url
        self.rest_api_url = rest_api_url
        self.database_url = database_url
        self.timeout = timeout
        self._http_client_factory = http_client_factory or httpx.AsyncClient
        self._engine = engine

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            if not self.database_url:
                raise ConfigurationError("DATABASE_URL is not configured")
            self._engine = create_async_engine(_async_database_url(self.database_url), pool_pre_ping=True)
        return self._engine

    async def execute(self, query: Any, dialect: Union[Dialect, str]) -> Any:
        dialect = Dialect.parse(dialect)
        start_time = time.perf_counter()
        try:
            result = await asyncio.wait_for(self._dispatch(query, dialect), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.warning(f"{dialect.value} execution timed out after {self.timeout}s")
            raise ExecutionTimeout(f"Timeout: {dialect.value} execution exceeded {self.timeout}s") from e

        logger.info(f"{dialect.value} query executed in {time.perf_counter() - start_time:.3f}s")
        return result

    async def _dispatch(self, query: Any, dialect: Dialect) -> Any:
        if dialect is Dialect.GRAPHQL:
            return await self._execute_graphql(query)
        if dialect is Dialect.REST:
            return await self._execute_rest(query)
        return await self._execute_sql(query)

    async def _execute_graphql(self, query: str) -> Dict[str, Any]:
        if not self.graphql_url:
            raise ConfigurationError("GRAPHQL_URL is not configured")

        async with self._http_client_factory() as client:
            try:
                response = await client.post(self.graphql_url, json={"query": query})
                response.raise_for_status()
                payload = response.json()
            except httpx.HTTPError as e:
                raise ExecutionError(f"GraphQL request failed: {e}") from e
            except ValueError as e:
                raise ExecutionError(f"GraphQL endpoint returned invalid JSON: {e}") from e

        if not isinstance(payload, dict):
            return payload
        if payload.get("errors"):
            messages = [err.get("message", str(err)) for err in payload["errors"]]
            raise ExecutionError(f"GraphQL errors: {'; '.join(messages)}")
        return payload.get("data", payload)

    async def _execute_rest(self, query: Any) -> Dict[str, Any]:
        if not self.rest_api_url:
            raise ConfigurationError("REST_API_URL is not configured")

        if isinstance(query, (str, bytes)):
            try:
                envelope = json.loads(query)
            except ValueError as e:
                raise ExecutionError(f"Invalid JSON format for REST query: {e}") from e
        else:
            envelope = query
        if not isinstance(envelope, dict) or not envelope.get("method") or not envelope.get("url"):
            raise ExecutionError("REST query must be a JSON object with method and url")

        method = str(envelope["method"]).upper()
        url = f"{self.rest_api_url}{envelope['url']}"

        async with self._http_client_factory() as client:
            try:
                response = await client.request(
                    method,
                    url,
                    params=envelope.get("params"),
                    json=envelope.get("body"),
                )
                response.raise_for_status()
            except httpx.HTTPError as e:
                raise ExecutionError(f"REST request {method} {url} failed: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = response.text
        return {"status": response.status_code, "data": data}

    async def _execute_sql(self, query: str) -> Any:
        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(text(query))
                if result.returns_rows:
                    rows = [dict(row) for row in result.mappings().all()]
                    await conn.commit()
                    return rows
                rowcount = result.rowcount
                await conn.commit()
                return {"rowcount": rowcount}
        except (SQLAlchemyError, OSError) as e:
            raise ExecutionError(f"SQL execution failed: {e}") from e

    async def dispose(self):
        if self._engine is not None:
            await self._engine.dispose()
