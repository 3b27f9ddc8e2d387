import logging
from pathlib import Path
from typing import Optional, Union

from .query_types import SchemaBundle, SchemaLoadError

logger = logging.getLogger(__name__)

SCHEMA_KINDS = ("graphql", "openapi", "sql")


class SchemaLoader:
    """
    Reads schema.graphql, schema.openapi and schema.sql from the schema store.

    Nothing is cached: every call goes back to disk. Lenient loads return None
    for a missing document (generation can work with partial context); strict
    loads raise SchemaLoadError (validation cannot).
    """

    def __init__(self, schema_dir: Union[Path, str]):
        self.schema_dir = Path(schema_dir)

    def path_for(self, kind: str) -> Path:
        if kind not in SCHEMA_KINDS:
            raise SchemaLoadError(f"Unknown schema type: {kind}")
        return self.schema_dir / f"schema.{kind}"

    def load(self, kind: str, strict: bool = False) -> Optional[str]:
        path = self.path_for(kind)
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            if strict:
                raise SchemaLoadError(f"Failed to load {kind} schema: {e}") from e
            logger.warning(f"Could not load schema.{kind}: {e}")
            return None

        if not content.strip():
            if strict:
                raise SchemaLoadError(f"Failed to load {kind} schema: {path} is empty")
            logger.warning(f"schema.{kind} is empty, omitting it")
            return None
        return content

    def load_bundle(self) -> SchemaBundle:
        return SchemaBundle(**{kind: self.load(kind) for kind in SCHEMA_KINDS})

    def availability(self):
        return {kind: self.path_for(kind).is_file() for kind in SCHEMA_KINDS}
