"""Application configuration from environment variables."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    anthropic_api_key: str = ""
    openai_api_key: str = ""
    google_api_key: str = ""
    inkdiagram_env: str = "development"
    inkdiagram_log_level: str = "info"

    # CORS
    cors_origins: list[str] = ["http://localhost:3000"]

    # Provider switching (AI_PROVIDER)
    ai_provider: Literal["anthropic", "openai", "google"] = "anthropic"

    # Model routing
    model_mid: str = "claude-sonnet-4-5-20250929"
    model_frontier: str = "claude-sonnet-4-5-20250929"
    model_openai: str = "gpt-4o-mini"
    model_google: str = "gemini-2.0-flash"

    # Extended thinking (anthropic only)
    thinking_budget_tokens: int = 10000
    max_output_tokens: int = 16000

    # Langfuse tracing, enabled when both keys are set
    langfuse_public_key: str = ""
    langfuse_secret_key: str = ""
    langfuse_host: str = "http://localhost:3001"

    # Where the orchestrator sends its generation requests
    collaborator_url: str = "http://localhost:8000/api/ai/interpret-stream"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
