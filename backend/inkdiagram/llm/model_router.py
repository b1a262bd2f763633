"""Provider and model selection.

With the anthropic provider the mode picks the tier: frontier for structure
extraction, mid-tier for everything else. Other providers use one model.
"""

from __future__ import annotations

from inkdiagram.config import Settings, settings

_MODE_MODEL_MAP = {
    "normal": "mid",
    "structure-extraction": "frontier",
    "detail-addition": "mid",
}

API_KEY_ENV = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
    "google": "GOOGLE_API_KEY",
}


def get_model_for_mode(mode: str, config: Settings | None = None) -> str:
    config = config or settings
    if config.ai_provider == "openai":
        return config.model_openai
    if config.ai_provider == "google":
        return config.model_google

    tier = _MODE_MODEL_MAP.get(mode, "mid")
    if tier == "frontier":
        return config.model_frontier
    return config.model_mid


def provider_api_key(config: Settings) -> str:
    if config.ai_provider == "openai":
        return config.openai_api_key
    if config.ai_provider == "google":
        return config.google_api_key
    return config.anthropic_api_key


def missing_key_message(config: Settings) -> str | None:
    """Error text when the active provider has no API key, else None."""
    if provider_api_key(config):
        return None
    return f"{API_KEY_ENV[config.ai_provider]} is not set. Add it to the environment or the .env file."
