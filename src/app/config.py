from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8-sig",
        case_sensitive=False,
        extra="ignore",
    )

    APP_ENV: str = "local"
    LOG_LEVEL: str = "INFO"
    FRONTEND_CORS_ORIGINS: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://localhost:5173"],
    )

    # Compliance defaults handed to every scraper
    COMPLIANCE_USER_AGENT: str = "RecipeVault/1.0 (https://recipe-vault.com; contact@recipe-vault.com)"
    COMPLIANCE_RESPECT_ROBOTS_TXT: bool = True
    COMPLIANCE_FOLLOW_REDIRECTS: bool = True
    COMPLIANCE_MAX_REDIRECTS: int = 3
    COMPLIANCE_TIMEOUT_MS: int = 30_000
    COMPLIANCE_RETRY_ATTEMPTS: int = 3
    COMPLIANCE_RETRY_DELAY_MS: int = 1_000
    ROBOTS_TXT_ENFORCED: bool = False

    # Import jobs
    IMPORT_RETENTION_HOURS: float = 24
    IMPORT_SWEEP_INTERVAL_SECONDS: float = 600
    MAX_IMPORT_ERRORS: int = 50
    MAX_ACTIVE_IMPORTS: int = 10

    METADATA_MAX_AGE_DAYS: int = 30
    OCR_CONFIDENCE_THRESHOLD: float = 60
    YOUTUBE_TRANSCRIPT_FALLBACK: bool = True


settings = Settings()
