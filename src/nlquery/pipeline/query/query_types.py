from typing import Any, List, Optional, Sequence
from dataclasses import dataclass
from enum import Enum
from pydantic import BaseModel, Field


class QueryPipelineError(RuntimeError):
    """Base class for failures raised by the query pipeline stages."""

class SchemaLoadError(QueryPipelineError): ...
class GenerationError(QueryPipelineError): ...
class ExecutionError(QueryPipelineError): ...

class ExecutionTimeout(ExecutionError, TimeoutError): ...

class UnknownDialectError(QueryPipelineError, ValueError): ...

class QueryValidationError(QueryPipelineError):
    """A generated query was rejected; carries the messages and the offending query text."""

    def __init__(self, errors: Sequence[str], query: Any):
        self.errors = list(errors)
        self.query = query
        super().__init__(f"Validation failed for generated query: {self.errors}\nQuery: {query}")


class Dialect(Enum):
    SQL = "SQL"
    GRAPHQL = "GraphQL"
    REST = "REST"

    @classmethod
    def parse(cls, value: Any) -> "Dialect":
        if isinstance(value, cls):
            return value
        key = str(value or "").strip().lower()
        dialect = _DIALECT_NAMES.get(key)
        if dialect is None:
            raise UnknownDialectError(f"Invalid queryType '{value}'. Must be one of: SQL, GraphQL, REST")
        return dialect

    @property
    def schema_kind(self) -> str:
        return _SCHEMA_KINDS[self]


_DIALECT_NAMES = {
    "sql": Dialect.SQL,
    "graphql": Dialect.GRAPHQL,
    "rest": Dialect.REST,
    "openapi": Dialect.REST,
}

_SCHEMA_KINDS = {
    Dialect.SQL: "sql",
    Dialect.GRAPHQL: "graphql",
    Dialect.REST: "openapi",
}


class ValidationOutcome(BaseModel):
    """Either valid (no errors) or invalid with a non-empty, ordered list of messages."""
    errors: List[str] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @classmethod
    def valid(cls) -> "ValidationOutcome":
        return cls()

    @classmethod
    def invalid(cls, errors: Sequence[str]) -> "ValidationOutcome":
        errors = [str(e) for e in errors]
        if not errors:
            raise ValueError("An invalid outcome needs at least one error message")
        return cls(errors=errors)


@dataclass
class SchemaBundle:
    graphql: Optional[str] = None
    openapi: Optional[str] = None
    sql: Optional[str] = None

    def get(self, kind: str) -> Optional[str]:
        return getattr(self, kind)

    def context_text(self) -> str:
        """Present schemas joined under a labeled header each."""
        sections = []
        for kind in ("graphql", "openapi", "sql"):
            content = self.get(kind)
            if content:
                sections.append(f"\n\n=== {kind.upper()} Schema ===\n\n{content}")
        return "".join(sections)


class PipelineResult(BaseModel):
    generated_query: str
    result: Any = None
