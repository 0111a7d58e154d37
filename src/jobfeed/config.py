"""
Runtime configuration loaded from environment variables

Values come from the process environment after a local .env file (if any)
has been merged in by python-dotenv. Secrets are optional at load time so
that each endpoint can report its own misconfiguration instead of the
whole app refusing to start.
"""

import logging
import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_PATH = "data/jobfeed.db"
DEFAULT_PERPLEXITY_BASE_URL = "https://api.perplexity.ai"
DEFAULT_PERPLEXITY_MODEL = "sonar"


class Settings(BaseModel):
    """Application settings"""

    database_path: str = Field(default=DEFAULT_DATABASE_PATH, description="SQLite database file")
    ingest_api_key: str | None = Field(None, description="Bearer secret for /api/ingest/*")
    sync_secret: str | None = Field(None, description="Optional ?secret= for cron endpoints")
    perplexity_api_key: str | None = Field(None, description="Perplexity API key")
    perplexity_base_url: str = Field(default=DEFAULT_PERPLEXITY_BASE_URL)
    perplexity_model: str = Field(default=DEFAULT_PERPLEXITY_MODEL)
    ingest_rate_limit: int = Field(default=60, ge=1, description="Requests per window per client")
    ingest_rate_window_seconds: float = Field(default=60.0, gt=0)
    log_level: str = Field(default="INFO")
    cors_origins: str = Field(
        default="http://localhost:*", description="Comma-separated CORS origins"
    )

    @field_validator("ingest_api_key", "sync_secret", "perplexity_api_key")
    @classmethod
    def blank_secret_is_unset(cls, v: str | None) -> str | None:
        """Treat empty or whitespace-only secrets as missing"""
        if v is None or not v.strip():
            return None
        return v.strip()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is one the logging module knows"""
        level = v.strip().upper()
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if level not in allowed:
            raise ValueError(f"log_level must be one of {allowed}, got '{v}'")
        return level

    @classmethod
    def from_env(cls, load_env_file: bool = True) -> "Settings":
        """
        Build settings from environment variables

        Args:
            load_env_file: Merge a local .env file first (default: True)

        Returns:
            Validated Settings instance
        """
        if load_env_file:
            load_dotenv()

        values: dict[str, str] = {}
        env_map = {
            "database_path": "DATABASE_PATH",
            "ingest_api_key": "INGEST_API_KEY",
            "sync_secret": "SYNC_SECRET",
            "perplexity_api_key": "PERPLEXITY_API_KEY",
            "perplexity_base_url": "PERPLEXITY_BASE_URL",
            "perplexity_model": "PERPLEXITY_MODEL",
            "ingest_rate_limit": "INGEST_RATE_LIMIT",
            "ingest_rate_window_seconds": "INGEST_RATE_WINDOW_SECONDS",
            "log_level": "LOG_LEVEL",
            "cors_origins": "FLASK_CORS_ORIGINS",
        }
        for field_name, env_name in env_map.items():
            value = os.getenv(env_name)
            if value is not None:
                values[field_name] = value

        return cls(**values)
