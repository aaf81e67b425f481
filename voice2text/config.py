"""
Configuration management using pydantic-settings.
Loads environment variables with type validation.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Voice2Text Backend"
    app_version: str = "0.1.0"
    debug: bool = False

    # Database
    database_url: str = "sqlite+aiosqlite:///./voice2text.db"

    # Deepgram
    deepgram_api_key: str = ""
    deepgram_api_url: str = "https://api.deepgram.com/v1"
    deepgram_model: str = "nova-2"
    deepgram_smart_format: bool = True
    transcription_timeout_seconds: float = 300.0
    # 0 keeps the single-attempt behaviour
    transcription_max_retries: int = 0
    transcription_retry_backoff_seconds: float = 1.0

    # Supabase
    supabase_url: str = ""
    supabase_service_role_key: str = ""
    # When set, tokens are verified locally instead of calling Supabase
    supabase_jwt_secret: Optional[str] = None
    supabase_jwt_audience: str = "authenticated"

    # Uploads
    upload_dir: str = "uploads"

    # CORS
    cors_origins: str = (
        "http://localhost:5173,"
        "https://voice2text-frontend.netlify.app"
    )
    cors_origin_regex: str = r"https://.*\.netlify\.app"

    # Rate limiting
    rate_limit_enabled: bool = True
    transcribe_rate_limit: str = "20/minute"

    # Server
    host: str = "0.0.0.0"
    port: int = 5000

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [
            origin.strip().rstrip("/")
            for origin in self.cors_origins.split(",")
            if origin.strip()
        ]

    def missing_credentials(self) -> List[str]:
        """Names of required credentials that are not configured."""
        missing = []
        if not self.deepgram_api_key:
            missing.append("DEEPGRAM_API_KEY")
        if not self.supabase_jwt_secret:
            if not self.supabase_url:
                missing.append("SUPABASE_URL")
            if not self.supabase_service_role_key:
                missing.append("SUPABASE_SERVICE_ROLE_KEY")
        return missing


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings instance.
    Use dependency injection in FastAPI routes.
    """
    return Settings()
