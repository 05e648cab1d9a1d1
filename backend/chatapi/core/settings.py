from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Annotated, List

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

BACKEND_ROOT = Path(__file__).resolve().parents[2]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_ignore_empty=True, extra="ignore")

    # Server
    port: int = Field(default=3001, validation_alias="PORT")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    # CORS
    cors_origins: Annotated[List[str], NoDecode] = Field(default_factory=list, validation_alias="CORS_ORIGINS")

    # Database. No default: the DB client refuses to start without it.
    database_url: str | None = Field(default=None, validation_alias="DATABASE_URL")

    # Schema tooling (Alembic)
    migrations_dir: str = Field(default=str(BACKEND_ROOT / "alembic"), validation_alias="MIGRATIONS_DIR")

    # LLM (Gemini)
    # We read both, but the caller should choose deterministically and pass api_key explicitly.
    google_api_key: str | None = Field(default=None, validation_alias="GOOGLE_API_KEY")
    gemini_api_key: str | None = Field(default=None, validation_alias="GEMINI_API_KEY")
    gemini_model: str = Field(default="gemini-2.5-flash", validation_alias="GEMINI_MODEL")

    # Agent generation parameters
    agent_max_retries: int = Field(default=3, validation_alias="AGENT_MAX_RETRIES")
    agent_temperature: float = Field(default=0.7, validation_alias="AGENT_TEMPERATURE")
    agent_top_p: float = Field(default=1.0, validation_alias="AGENT_TOP_P")
    agent_top_k: int = Field(default=40, validation_alias="AGENT_TOP_K")
    agent_frequency_penalty: float = Field(default=0.0, validation_alias="AGENT_FREQUENCY_PENALTY")
    agent_presence_penalty: float = Field(default=0.0, validation_alias="AGENT_PRESENCE_PENALTY")
    agent_max_steps: int = Field(default=10, validation_alias="AGENT_MAX_STEPS")
    agent_max_output_tokens: int = Field(default=1000, validation_alias="AGENT_MAX_OUTPUT_TOKENS")
    agent_system_prompt: str = Field(
        default="You are a helpful assistant that can answer questions and help with tasks.",
        validation_alias="AGENT_SYSTEM_PROMPT",
    )
    agent_verbose: bool = Field(default=True, validation_alias="AGENT_VERBOSE")
    agent_seed: int | None = Field(default=42, validation_alias="AGENT_SEED")

    # Embeddings
    embedding_model: str = Field(default="models/text-embedding-004", validation_alias="EMBEDDING_MODEL")

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v):
        # Allow:
        # - comma-separated string: "http://a,http://b"
        # - already-a-list
        if v is None:
            return []
        if isinstance(v, str):
            return [s.strip() for s in v.split(",") if s.strip()]
        return v

    @model_validator(mode="after")
    def _validate_agent_params(self) -> "Settings":
        if self.agent_max_retries < 0:
            raise ValueError("AGENT_MAX_RETRIES must be >= 0")
        if not (0.0 <= float(self.agent_temperature) <= 2.0):
            raise ValueError("AGENT_TEMPERATURE must be between 0 and 2")
        if not (0.0 < float(self.agent_top_p) <= 1.0):
            raise ValueError("AGENT_TOP_P must be in (0, 1]")
        if self.agent_top_k <= 0:
            raise ValueError("AGENT_TOP_K must be > 0")
        for name in ("agent_frequency_penalty", "agent_presence_penalty"):
            if not (-2.0 <= float(getattr(self, name)) <= 2.0):
                raise ValueError(f"{name.upper()} must be between -2 and 2")
        if self.agent_max_steps <= 0:
            raise ValueError("AGENT_MAX_STEPS must be > 0")
        if self.agent_max_output_tokens <= 0:
            raise ValueError("AGENT_MAX_OUTPUT_TOKENS must be > 0")
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
