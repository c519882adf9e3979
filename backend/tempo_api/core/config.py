"""Application configuration managed via environment variables."""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Tempo Session Scheduler"
    debug: bool = False
    log_level: str = "INFO"
    opik_enabled: bool = False
    opik_api_key: str | None = None
    opik_project: str = "tempo"

    openai_api_key: str | None = None
    generation_model: str = "gpt-4o"
    generation_max_tokens: int = 4000
    generation_temperature: float = 0.7
    generation_max_retries: int = 3
    generation_base_delay_ms: int = 1000
    generation_max_delay_ms: int = 10000

    # Duration rules (minutes)
    schedule_min_task_duration: int = 5
    schedule_max_task_duration: int = 180
    schedule_short_break: int = 5
    schedule_long_break: int = 15
    schedule_debrief: int = 5
    schedule_block_size: int = 5
    schedule_max_work_without_break: int = 90
    schedule_short_break_credit: int = 25
    schedule_max_session_minutes: int = 24 * 60


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings()


settings = get_settings()
