"""Application configuration."""

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    database_url: str = "sqlite:///./data/llmdesk.db"

    # Encryption of stored API keys (validated at startup by EncryptionService)
    encryption_key: Optional[str] = None

    # Export metadata
    generator: str = "llm-desk"

    # Upstream model listing
    fetch_timeout: float = 30.0

    # Application
    app_host: str = "127.0.0.1"
    app_port: int = 8000
    log_level: str = "INFO"


settings = Settings()
