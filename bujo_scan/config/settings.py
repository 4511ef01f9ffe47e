from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="BUJO_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # OpenAI GPT Vision
    openai_api_key: Optional[str] = None
    openai_api_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o-mini"
    openai_max_tokens: int = 1000
    gpt_rate_limit_requests: int = 20
    gpt_rate_limit_window_seconds: float = 60.0

    # Mistral OCR
    mistral_api_key: Optional[str] = None
    mistral_api_url: str = "https://api.mistral.ai/v1"
    mistral_model: str = "mistral-ocr-latest"

    # OCR.space
    ocr_space_api_key: str = "helloworld"
    ocr_space_api_url: str = "https://api.ocr.space/parse/image"
    ocr_space_engine: int = 2  # 2 handles handwriting better

    # HTTP
    request_timeout_seconds: float = 30.0
    retry_attempts: int = 3
    retry_backoff_seconds: float = 1.0

    # Orchestration
    metrics_history_size: int = 100
    orchestrator_config_path: Optional[str] = None

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"  # json or console


@lru_cache()
def get_settings() -> Settings:
    return Settings()
