"""
Process-level settings.

Read once at startup from the environment (and an optional .env file) and
handed to the components that need them, so nothing below the API layer reads
os.environ directly. Malformed values fail at startup.
"""

from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_TIMEOUT_MS = 30000


class EngineSettings(BaseSettings):
    schema_dir: Path = Path("schema")
    models_config: Path = Path("config/models.yaml")
    prompts_dir: Path = Path("prompts")

    database_url: Optional[str] = None
    graphql_url: Optional[str] = None
    rest_api_url: Optional[str] = None
    timeout_ms: int = Field(DEFAULT_TIMEOUT_MS, gt=0, validation_alias="TIMEOUT")

    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    openrouter_api_key: Optional[str] = None

    validate_rest_paths: bool = False
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, v: str) -> str:
        return v.upper()

    @property
    def timeout_s(self) -> float:
        return self.timeout_ms / 1000
