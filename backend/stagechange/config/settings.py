"""Application Settings - Central Configuration"""
from functools import lru_cache
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Case-management backend
    api_base_url: str = "http://localhost:5000"
    api_token: str = ""
    api_timeout_seconds: float = 30.0

    # Stage change configuration bundle cache (5 minutes)
    config_stale_seconds: int = 300

    # Attachments
    upload_default_content_type: str = "application/octet-stream"
    upload_timeout_seconds: float = 120.0

    # Logging
    logs_path: str = "./logs"
    log_level: str = "INFO"
    log_to_file: bool = True

    # Server
    host: str = "127.0.0.1"
    port: int = 8000

    # CORS - set to "*" to allow all origins
    cors_origins: str = "*"

    # Environment
    environment: str = "development"
    debug: bool = True

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins string to list"""
        return [origin.strip() for origin in self.cors_origins.split(",")]


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
