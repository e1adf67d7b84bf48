"""Application configuration using Pydantic Settings."""

from __future__ import annotations

from functools import lru_cache
from urllib.parse import quote_plus

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """ReelForge application settings.

    Loaded from environment variables or .env file.
    """

    # --- Application ---
    APP_NAME: str = "ReelForge"
    DEBUG: bool = False

    # --- Database (MySQL 8.0+) ---
    DB_HOST: str = "127.0.0.1"
    DB_PORT: int = 3306
    DB_USER: str = "root"
    DB_PASSWORD: str = ""
    DB_NAME: str = "reelforge"

    @property
    def DATABASE_URL(self) -> str:
        """Async MySQL connection string using asyncmy driver."""
        encoded_password = quote_plus(self.DB_PASSWORD)
        return (
            f"mysql+asyncmy://{self.DB_USER}:{encoded_password}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
            "?charset=utf8mb4"
        )

    # --- Redis (job update notifications) ---
    REDIS_URL: str = "redis://localhost:6379/0"

    # --- Luma Dream Machine (primary text/image-to-video) ---
    LUMA_API_KEY: str = ""
    LUMA_ENDPOINT: str = "https://api.lumalabs.ai/dream-machine/v1"

    # --- Runway (secondary text/image-to-video) ---
    RUNWAY_API_KEY: str = ""
    RUNWAY_ENDPOINT: str = "https://api.dev.runwayml.com/v1"
    RUNWAY_API_VERSION: str = "2024-11-06"

    # --- Replicate (Stable Video Diffusion, image-to-video only) ---
    REPLICATE_API_TOKEN: str = ""
    REPLICATE_ENDPOINT: str = "https://api.replicate.com/v1"
    REPLICATE_SVD_VERSION: str = (
        "3f0457e4619daac51203dedb472816fd4af51f3149fa7a9e0b5ffcf1b8172438"
    )

    # --- Provider calls ---
    PROVIDER_TIMEOUT: float = 30.0  # seconds, applied per provider call

    # --- Billing ---
    CREDITS_PER_SCENE: int = 10

    # --- Artifact storage (S3 / R2 compatible) ---
    S3_ENDPOINT_URL: str = ""
    S3_REGION: str = "auto"
    S3_ACCESS_KEY_ID: str = ""
    S3_SECRET_ACCESS_KEY: str = ""
    S3_BUCKET: str = "reelforge-videos"
    S3_PUBLIC_URL: str = ""
    DOWNLOAD_URL_TTL: int = 3600  # seconds

    # --- Migration ---
    MIGRATION_CLAIM_TTL: int = 900  # seconds before an abandoned claim can be retaken
    MIGRATION_RETRY_ON_POLL: bool = True

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings singleton."""
    return Settings()
