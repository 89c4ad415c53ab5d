"""
Configuration for the Arbiter service
=====================================

Environment variables (or a .env file):
- DATABASE_URL: SQLAlchemy URL (default: sqlite:///./data.db)
- OPENROUTER_API_KEY: key for the production adjudicator; without it the
  deterministic fallback adjudicator is used
- OPENROUTER_MODEL: chat model used for judging
- JUDGE_MOCK: force the fallback adjudicator even when a key is set
- JUDGE_TIMEOUT: seconds the API waits for a verdict before giving up
- INVITE_TTL_HOURS: how long an invitation stays open (default: 24)
- MAX_ROUNDS: cap on hearings per case, 0 disables the cap
"""

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings from environment variables"""

    # Database
    database_url: str = "sqlite:///./data.db"
    sql_echo: bool = False

    # Adjudicator
    openrouter_api_key: Optional[str] = None
    openrouter_model: str = "mistralai/mistral-small-3.2-24b-instruct:free"
    openrouter_base_url: str = "https://openrouter.ai/api/v1/chat/completions"
    judge_mock: bool = False
    judge_timeout: float = 90.0
    llm_timeout: int = 60
    llm_max_tokens: int = 1200

    # Case policy
    invite_ttl_hours: int = 24
    max_rounds: int = 0

    # Uploads
    upload_dir: str = "./uploads"

    # HTTP
    cors_origins: List[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
    ]
    log_level: str = "INFO"

    class Config:
        env_prefix = ""
        case_sensitive = False
        env_file = ".env"
        env_file_encoding = "utf-8"

    @property
    def use_fallback_adjudicator(self) -> bool:
        return self.judge_mock or not self.openrouter_api_key


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
