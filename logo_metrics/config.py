"""Application configuration from environment variables."""

from __future__ import annotations

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    gemini_api_key: str = Field(
        default="",
        validation_alias=AliasChoices(
            "GEMINI_API_KEY", "API_KEY", "LOGO_METRICS_GEMINI_API_KEY"
        ),
    )
    gemini_model: str = "gemini-3-pro-preview"
    gemini_api_base: str = "https://generativelanguage.googleapis.com/v1beta"
    request_timeout: float = 60.0
    grounding: bool = True

    log_level: str = "info"

    # Extraction
    max_side: int | None = None
    workers: int = 1

    model_config = {
        "env_prefix": "LOGO_METRICS_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "populate_by_name": True,
        "extra": "ignore",
    }


settings = Settings()
