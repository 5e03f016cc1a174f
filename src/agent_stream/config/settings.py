"""Application settings."""

from functools import lru_cache
import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[3]


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "agent-stream"
    app_env: str = "dev"
    app_debug: bool = False

    llm_provider: str = "openai"
    llm_model: str = "gpt-4o-mini"
    llm_base_url: str = "https://api.openai.com/v1"
    llm_timeout_s: float = Field(default=120.0, ge=0.5)
    llm_max_retries: int = Field(default=1, ge=0)
    llm_backoff_s: float = Field(default=0.2, ge=0.0)
    openai_api_key: str = ""

    normal_max_steps: int = Field(default=5, ge=1)
    deep_max_steps: int = Field(default=10, ge=1)
    normal_max_output_tokens: int = Field(default=16000, ge=1)
    deep_max_output_tokens: int = Field(default=32000, ge=1)
    heartbeat_interval_s: float = Field(default=15.0, gt=0.0)

    quality_gate_enabled: bool = True
    quality_threshold: int = Field(default=90, ge=0, le=100)
    critique_max_output_tokens: int = Field(default=512, ge=1)
    refine_max_output_tokens: int = Field(default=16000, ge=1)
    slides_max_output_tokens: int = Field(default=16000, ge=1)

    skill_timeout_s: float = Field(default=60.0, ge=0.01)
    skill_max_retries: int = Field(default=0, ge=0)
    skill_retry_backoff_s: float = Field(default=0.0, ge=0.0)

    persona_dir: str = ""
    inputs_dir: str = "inputs"
    workspace_dir: str = "."

    model_config = SettingsConfigDict(
        env_prefix="AGENT_STREAM_",
        extra="ignore",
        env_file=(PROJECT_ROOT / ".env", PROJECT_ROOT / ".env.local"),
        env_file_encoding="utf-8",
    )

    def resolved_openai_api_key(self) -> str:
        return self.openai_api_key or os.getenv("OPENAI_API_KEY", "")

    def resolved_persona_dir(self) -> Path:
        if self.persona_dir:
            return Path(self.persona_dir)
        return Path(__file__).resolve().parents[1] / "persona"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
