"""Core application configuration and settings.

Handles environment variables, database and Redis locations, JWT settings,
rate limiting, and the Vertex AI credentials used by the mentor chat.
"""
import os
from functools import lru_cache
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv
from google.auth import default
from google.auth.transport.requests import Request
from google.oauth2 import service_account
from pydantic import Field
from pydantic_settings import BaseSettings

from educonnect.core.logging import get_logger

logger = get_logger(__name__)

# Load environment variables
ROOT = Path(__file__).resolve().parents[2]
load_dotenv(dotenv_path=ROOT / ".env", override=True)
load_dotenv(override=True)

DEFAULT_JWT_SECRET = "development-secret-key-change-in-production"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application Settings
    app_name: str = Field(default="EduConnect API", alias="APP_NAME")
    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: bool = Field(default=False, alias="LOG_JSON")

    # Database
    database_url: str = Field(default="sqlite:///./educonnect.db", alias="DATABASE_URL")
    seed_sample_data: bool = Field(default=True, alias="SEED_SAMPLE_DATA")

    # JWT Authentication
    jwt_secret_key: str = Field(default=DEFAULT_JWT_SECRET, alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(default=1440, alias="ACCESS_TOKEN_EXPIRE_MINUTES")  # 24 hours

    # Redis Configuration
    redis_host: str = Field(default="localhost", alias="REDIS_HOST")
    redis_port: int = Field(default=6379, alias="REDIS_PORT")
    redis_password: Optional[str] = Field(default=None, alias="REDIS_PASSWORD")
    redis_db: int = Field(default=0, alias="REDIS_DB")

    # Chat rate limiting
    rate_limit_backend: str = Field(default="memory", alias="RATE_LIMIT_BACKEND")  # memory | redis
    rate_limit_max_requests: int = Field(default=10, alias="RATE_LIMIT_MAX_REQUESTS")
    rate_limit_window_seconds: int = Field(default=60, alias="RATE_LIMIT_WINDOW_SECONDS")

    # Google Cloud Platform / Vertex AI
    project_id: str = Field(
        default_factory=lambda: (
            os.getenv("PROJECT_ID")
            or os.getenv("GOOGLE_CLOUD_PROJECT")
            or os.getenv("GCP_PROJECT")
            or ""
        ),
        alias="PROJECT_ID"
    )
    region: str = Field(
        default_factory=lambda: (
            os.getenv("REGION")
            or os.getenv("GOOGLE_CLOUD_REGION")
            or os.getenv("LOCATION")
            or "us-central1"
        ),
        alias="REGION"
    )
    service_account_file: str = Field(
        default_factory=lambda: (
            os.getenv("GOOGLE_APPLICATION_CREDENTIALS")
            or os.getenv("SERVICE_ACCOUNT_FILE")
            or ""
        ),
        alias="GOOGLE_APPLICATION_CREDENTIALS"
    )
    llm_model: str = Field(default="gemini-2.0-flash", alias="LLM_MODEL")
    llm_max_output_tokens: int = Field(default=500, alias="LLM_MAX_OUTPUT_TOKENS")
    llm_temperature: float = Field(default=0.7, alias="LLM_TEMPERATURE")

    # Chat behaviour
    chat_context_turns: int = Field(default=6, alias="CHAT_CONTEXT_TURNS")
    chat_history_limit: int = Field(default=50, alias="CHAT_HISTORY_LIMIT")
    allow_guest_chat: bool = Field(default=False, alias="ALLOW_GUEST_CHAT")

    # API Settings
    cors_origins: list[str] = Field(
        default_factory=lambda: [
            "http://localhost:8501",
            "http://127.0.0.1:8501",
            "http://localhost:3000",
        ],
        alias="CORS_ORIGINS"
    )
    static_dir: str = Field(default=str(ROOT / "static"), alias="STATIC_DIR")

    class Config:
        case_sensitive = False
        env_file = ".env"
        populate_by_name = True
        extra = "ignore"

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    def validate_required_settings(self):
        """Validate that required settings are present."""
        if self.is_production and self.jwt_secret_key == DEFAULT_JWT_SECRET:
            raise ValueError(
                "JWT_SECRET_KEY must be set to a secure value in production."
            )
        if self.is_production and not self.project_id:
            raise ValueError(
                "PROJECT_ID not set. Define PROJECT_ID in .env "
                "(or GOOGLE_CLOUD_PROJECT/GCP_PROJECT)."
            )
        if self.rate_limit_backend not in ("memory", "redis"):
            raise ValueError(
                f"RATE_LIMIT_BACKEND must be 'memory' or 'redis', got '{self.rate_limit_backend}'."
            )
        if len(self.jwt_secret_key) < 32:
            logger.warning("JWT_SECRET_KEY should be at least 32 characters for security")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


def get_vertex_credentials(service_account_file: Optional[str] = None):
    """Get credentials for Vertex AI (service account file or ADC).

    Returns:
        Credentials object

    Raises:
        Exception: If credential creation fails
    """
    service_account_file = service_account_file or settings.service_account_file
    try:
        scopes = ["https://www.googleapis.com/auth/cloud-platform"]
        if service_account_file:
            return service_account.Credentials.from_service_account_file(
                service_account_file,
                scopes=scopes
            )

        credentials, _ = default(scopes=scopes)
        credentials.refresh(Request())
        return credentials

    except Exception as e:
        logger.error(f"Error creating Vertex AI credentials: {e}")
        raise


# Validate settings on module import (only in non-test environments)
if settings.environment != "test":
    try:
        settings.validate_required_settings()
    except ValueError as e:
        logger.error(f"Configuration Error: {e}")
        # Don't raise in development to allow partial setup
        if settings.is_production:
            raise
