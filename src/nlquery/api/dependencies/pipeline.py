"""
FastAPI dependencies exposing the pipeline components built at startup.

Components live in app_state (populated by the lifespan in main.py) and are
shared by all requests; tests replace them through dependency_overrides.
"""

from nlquery.models.manager import ModelManager
from nlquery.pipeline.query.executor import QueryExecutor
from nlquery.pipeline.query.generator import QueryGenerator
from nlquery.pipeline.query.orchestrator import QueryOrchestrator
from nlquery.pipeline.query.schema_loader import SchemaLoader
from nlquery.pipeline.query.validator import QueryValidator


def _app_state():
    from ..main import app_state
    return app_state

def get_model_manager() -> ModelManager:
    return _app_state()["model_manager"]

def get_schema_loader() -> SchemaLoader:
    return _app_state()["schema_loader"]

def get_generator() -> QueryGenerator:
    return _app_state()["generator"]

def get_validator() -> QueryValidator:
    return _app_state()["validator"]

def get_executor() -> QueryExecutor:
    return _app_state()["executor"]

def get_orchestrator() -> QueryOrchestrator:
    return _app_state()["orchestrator"]
