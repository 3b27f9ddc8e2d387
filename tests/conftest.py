import pytest
from pathlib import Path

from nlquery.settings import EngineSettings

SETTINGS_ENV_VARS = (
    "SCHEMA_DIR", "MODELS_CONFIG", "PROMPTS_DIR", "DATABASE_URL", "GRAPHQL_URL", "REST_API_URL",
    "TIMEOUT", "OPENAI_API_KEY", "ANTHROPIC_API_KEY", "OPENROUTER_API_KEY", "VALIDATE_REST_PATHS", "LOG_LEVEL",
)

GRAPHQL_SDL = """
type User {
  id: ID!
  email: String!
  name: String
}

type Query {
  users: [User!]!
  user(id: ID!): User
}
"""

OPENAPI_DOC = """
{
  "openapi": "3.0.3",
  "info": {"title": "Test API", "version": "1.0.0"},
  "paths": {
    "/users": {
      "get": {"responses": {"200": {"description": "ok"}}},
      "post": {"responses": {"201": {"description": "created"}}}
    },
    "/users/{id}": {
      "get": {
        "parameters": [{"name": "id", "in": "path", "required": true, "schema": {"type": "integer"}}],
        "responses": {"200": {"description": "ok"}}
      }
    }
  }
}
"""

SQL_DDL = """
CREATE TABLE users (
    id SERIAL PRIMARY KEY,
    email VARCHAR(255) NOT NULL
);

CREATE TABLE IF NOT EXISTS orders (
    id SERIAL PRIMARY KEY,
    user_id INTEGER REFERENCES users(id)
);
"""


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep the host environment out of settings built during tests."""
    for name in SETTINGS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def schema_dir(tmp_path):
    """Schema store holding all three documents."""
    schema_dir = tmp_path / "schema"
    schema_dir.mkdir()
    (schema_dir / "schema.graphql").write_text(GRAPHQL_SDL)
    (schema_dir / "schema.openapi").write_text(OPENAPI_DOC)
    (schema_dir / "schema.sql").write_text(SQL_DDL)
    return schema_dir


@pytest.fixture
def prompts_dir(tmp_path):
    """The shipped query generation prompt, copied into a temp dir."""
    source = Path(__file__).resolve().parent.parent / "prompts" / "query" / "generate" / "v1"
    target = tmp_path / "prompts" / "query" / "generate" / "v1"
    target.mkdir(parents=True)
    for name in ("system.j2", "user.j2", "config.yaml"):
        (target / name).write_text((source / name).read_text())
    return tmp_path / "prompts"


@pytest.fixture
def models_config(tmp_path):
    config_file = tmp_path / "models.yaml"
    config_file.write_text("""
default_model: gpt-test

models:
  gpt-test:
    provider: openai
    model: gpt-4o-mini
    params:
      temperature: 0.2

  claude-test:
    provider: anthropic
    model: claude-3-5-sonnet-20241022

  local-test:
    provider: local_process
    command: my-llm
""")
    return config_file


@pytest.fixture
def settings(schema_dir, prompts_dir, models_config):
    return EngineSettings(
        schema_dir=schema_dir,
        models_config=models_config,
        prompts_dir=prompts_dir,
        openai_api_key="sk-openai",
        anthropic_api_key="sk-anthropic",
        _env_file=None,
    )
