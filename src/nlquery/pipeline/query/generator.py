from typing import Optional, Union
import logging
import re

from nlquery.models.manager import ModelManager
from .query_types import Dialect, GenerationError
from .schema_loader import SchemaLoader

logger = logging.getLogger(__name__)

PROMPT_REF = "query/generate@v1"

_LEADING_FENCE = re.compile(r'^```[ \t]*(?:(?:sql|json|graphql)(?!\w))?[ \t]*(?:\r?\n)?', re.IGNORECASE)
_TRAILING_FENCE = re.compile(r'(?:\r?\n)?[ \t]*```$')


def strip_code_fences(text: str) -> str:
    """
    Removes leading/trailing markdown code fences (untagged or tagged sql, json
    or graphql) and surrounding whitespace, until nothing changes.
    """
    cleaned = text.strip()
    while True:
        stripped = _TRAILING_FENCE.sub('', _LEADING_FENCE.sub('', cleaned, count=1), count=1).strip()
        if stripped == cleaned:
            return cleaned
        cleaned = stripped


class QueryGenerator:
    """
    Turns a natural-language request into a query for the target dialect using
    the resolved completion backend and whatever schemas are available.
    """

    def __init__(self, model_manager: ModelManager, schema_loader: SchemaLoader):
        self.model_manager = model_manager
        self.schema_loader = schema_loader

    def generate(self, natural_query: str, dialect: Union[Dialect, str], model_identifier: Optional[str] = None) -> str:
        dialect = Dialect.parse(dialect)

        bundle = self.schema_loader.load_bundle()
        schema_text = bundle.context_text()
        logger.debug(f"Loaded schemas total characters: {len(schema_text)}")

        response = self.model_manager.call(
            model_identifier,
            prompt_ref=PROMPT_REF,
            variables={
                "schema_text": schema_text,
                "natural_query": natural_query,
                "query_type": dialect.value,
            },
        )
        logger.debug(f"Raw LLM output: {response.content}")

        query = strip_code_fences(response.content or "")
        if not query:
            raise GenerationError(f"Model returned no {dialect.value} query")
        return query
