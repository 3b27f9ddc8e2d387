"""
Schema-based validation of generated queries.

Each dialect has its own checker; all of them return a ValidationOutcome and
none of them lets an exception escape. The schema for the dialect being
checked is loaded strictly: a missing document is a failed validation, not a
silent pass.
"""

from typing import Any, Dict, List, Union
from urllib.parse import urlsplit
import json
import logging
import re

import sqlglot
from sqlglot import exp
from sqlglot.errors import ParseError, SqlglotError
from graphql import GraphQLError, build_schema, parse, validate as validate_document
from openapi_spec_validator import validate as validate_openapi_spec
from openapi_spec_validator.validation.exceptions import OpenAPIValidationError

from .query_types import Dialect, SchemaLoadError, UnknownDialectError, ValidationOutcome
from .schema_loader import SchemaLoader

logger = logging.getLogger(__name__)

HTTP_METHODS = {"get", "put", "post", "delete", "options", "head", "patch", "trace"}

_CREATE_TABLE = re.compile(
    r'CREATE\s+TABLE\s+(?:IF\s+NOT\s+EXISTS\s+)?(?:["`]?\w+["`]?\.)?["`]?(\w+)["`]?',
    re.IGNORECASE,
)
_PATH_PARAM = re.compile(r'\{[^}/]+\}')


# Top-level nodes accepted as statements. Prose parses as a column or alias
# expression and a bare keyword as exp.Command.
STATEMENT_TYPES = (
    exp.Query,
    exp.Insert,
    exp.Update,
    exp.Delete,
    exp.Merge,
    exp.Create,
    exp.Drop,
    exp.Alter,
    exp.TruncateTable,
)


def _clean_identifier(name: str) -> str:
    return name.replace('"', '').replace('`', '')


def declared_tables(ddl: str) -> List[str]:
    """Table names declared by CREATE TABLE statements in a DDL document."""
    return [_clean_identifier(m.group(1)) for m in _CREATE_TABLE.finditer(ddl)]


def referenced_tables(sql: str, dialect: str = "postgres") -> List[str]:
    """
    Tables referenced by a SQL text, in order of appearance and without
    duplicates (compared case-insensitively). CTE names are not tables.
    Raises SqlglotError on bad syntax or on text that is not a statement.
    """
    statements = [s for s in sqlglot.parse(sql, read=dialect) if s is not None]
    if not statements:
        raise ParseError("Empty SQL statement")

    tables: List[str] = []
    seen = set()
    for statement in statements:
        if not isinstance(statement, STATEMENT_TYPES):
            raise ParseError(f"Expected a SQL statement, got {statement.sql(dialect=dialect)!r}")
        cte_names = {cte.alias_or_name.lower() for cte in statement.find_all(exp.CTE)}
        for table in statement.find_all(exp.Table):
            name = _clean_identifier(table.name or "")
            key = name.lower()
            if not name or key in cte_names or key in seen:
                continue
            seen.add(key)
            tables.append(name)
    return tables


def sql_error_message(error: SqlglotError) -> str:
    """One-line description of a sqlglot failure, without the highlighted excerpt."""
    details = getattr(error, "errors", None) or []
    if not details:
        return str(error)
    first = details[0]
    message = first.get("description") or str(error).splitlines()[0]
    if first.get("line") is not None:
        message += f" (line {first['line']}, col {first.get('col')})"
    return message


def _path_matches(template: str, path: str) -> bool:
    parts = _PATH_PARAM.split(template.rstrip('/') or '/')
    pattern = '[^/]+'.join(re.escape(p) for p in parts)
    return re.fullmatch(pattern, path.rstrip('/') or '/') is not None


class QueryValidator:
    def __init__(self, schema_loader: SchemaLoader, validate_rest_paths: bool = False, sql_dialect: str = "postgres"):
        self.schema_loader = schema_loader
        self.validate_rest_paths = validate_rest_paths
        self.sql_dialect = sql_dialect

    def validate(self, query: Any, dialect: Union[Dialect, str]) -> ValidationOutcome:
        try:
            dialect = Dialect.parse(dialect)
        except UnknownDialectError:
            return ValidationOutcome.invalid(["Unknown query type"])

        checker = {
            Dialect.GRAPHQL: self.validate_graphql,
            Dialect.REST: self.validate_rest,
            Dialect.SQL: self.validate_sql,
        }[dialect]

        try:
            outcome = checker(query)
        except SchemaLoadError as e:
            outcome = ValidationOutcome.invalid([str(e)])
        except Exception as e:
            logger.exception(f"{dialect.value} validation crashed")
            outcome = ValidationOutcome.invalid([str(e) or type(e).__name__])

        if not outcome.is_valid:
            logger.info(f"{dialect.value} query rejected: {outcome.errors}")
        return outcome

    def validate_graphql(self, query: str) -> ValidationOutcome:
        sdl = self.schema_loader.load(Dialect.GRAPHQL.schema_kind, strict=True)
        try:
            schema = build_schema(sdl)
        except (GraphQLError, TypeError) as e:
            return ValidationOutcome.invalid([f"Invalid GraphQL schema: {e}"])

        try:
            document = parse(query)
        except GraphQLError as e:
            return ValidationOutcome.invalid([e.message])

        errors = validate_document(schema, document)
        if errors:
            return ValidationOutcome.invalid([e.message for e in errors])
        return ValidationOutcome.valid()

    def validate_rest(self, query: Any) -> ValidationOutcome:
        if isinstance(query, (str, bytes)):
            try:
                parsed = json.loads(query)
            except ValueError:
                return ValidationOutcome.invalid(["Invalid JSON format for REST query"])
        else:
            parsed = query

        if not isinstance(parsed, dict):
            return ValidationOutcome.invalid(["REST query must be a JSON object with method and url"])

        content = self.schema_loader.load(Dialect.REST.schema_kind, strict=True)
        try:
            spec = json.loads(content)
        except ValueError as e:
            return ValidationOutcome.invalid([f"Invalid OpenAPI document: {e}"])
        try:
            validate_openapi_spec(spec)
        except OpenAPIValidationError as e:
            return ValidationOutcome.invalid([f"Invalid OpenAPI document: {e.message}"])

        missing = [name for name in ("method", "url") if not parsed.get(name)]
        if missing:
            return ValidationOutcome.invalid([f"Missing required field: {name}" for name in missing])

        if self.validate_rest_paths:
            return self._check_endpoint(spec, str(parsed["method"]), str(parsed["url"]))
        return ValidationOutcome.valid()

    def _check_endpoint(self, spec: Dict[str, Any], method: str, url: str) -> ValidationOutcome:
        method = method.lower()
        if method not in HTTP_METHODS:
            return ValidationOutcome.invalid([f"Unsupported HTTP method: {method.upper()}"])

        path = urlsplit(url).path or "/"
        for template, operations in (spec.get("paths") or {}).items():
            if not _path_matches(template, path):
                continue
            if method in (operations or {}):
                return ValidationOutcome.valid()
            return ValidationOutcome.invalid([f"Method {method.upper()} not allowed for {template}"])
        return ValidationOutcome.invalid([f"Unknown endpoint: {method.upper()} {path}"])

    def validate_sql(self, query: str) -> ValidationOutcome:
        try:
            tables = referenced_tables(query, dialect=self.sql_dialect)
        except SqlglotError as e:
            return ValidationOutcome.invalid([f"Invalid SQL syntax: {sql_error_message(e)}"])

        ddl = self.schema_loader.load(Dialect.SQL.schema_kind, strict=True)
        known = {name.lower() for name in declared_tables(ddl)}

        unknown = [t for t in tables if t.lower() not in known]
        if unknown:
            return ValidationOutcome.invalid([f"Unknown tables: {', '.join(unknown)}"])
        return ValidationOutcome.valid()
