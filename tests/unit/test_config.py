"""
Tests for environment-driven settings
"""

import pytest
from pydantic import ValidationError

from jobfeed.config import DEFAULT_DATABASE_PATH, Settings
from jobfeed.utils.text import to_slug, truncate

ENV_VARS = [
    "DATABASE_PATH",
    "INGEST_API_KEY",
    "SYNC_SECRET",
    "PERPLEXITY_API_KEY",
    "PERPLEXITY_BASE_URL",
    "PERPLEXITY_MODEL",
    "INGEST_RATE_LIMIT",
    "INGEST_RATE_WINDOW_SECONDS",
    "LOG_LEVEL",
    "FLASK_CORS_ORIGINS",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestSettings:
    def test_defaults(self, clean_env):
        settings = Settings.from_env(load_env_file=False)

        assert settings.database_path == DEFAULT_DATABASE_PATH
        assert settings.ingest_api_key is None
        assert settings.sync_secret is None
        assert settings.log_level == "INFO"

    def test_reads_environment(self, clean_env):
        clean_env.setenv("DATABASE_PATH", "/tmp/x.db")
        clean_env.setenv("INGEST_API_KEY", "secret")
        clean_env.setenv("INGEST_RATE_LIMIT", "5")
        clean_env.setenv("LOG_LEVEL", "debug")
        clean_env.setenv("FLASK_CORS_ORIGINS", "https://app.example")

        settings = Settings.from_env(load_env_file=False)

        assert settings.database_path == "/tmp/x.db"
        assert settings.ingest_api_key == "secret"
        assert settings.ingest_rate_limit == 5
        assert settings.log_level == "DEBUG"
        assert settings.cors_origins == "https://app.example"

    def test_blank_secret_is_unset(self, clean_env):
        clean_env.setenv("INGEST_API_KEY", "   ")
        assert Settings.from_env(load_env_file=False).ingest_api_key is None

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            Settings(log_level="LOUD")


class TestTextHelpers:
    def test_to_slug(self):
        assert to_slug("Acme Corp") == "acme-corp"
        assert to_slug("  Café & Co. ") == "cafe-co"
        assert to_slug("") == ""

    def test_truncate(self):
        assert truncate("abcdef", 3) == "abc"
        assert truncate("ab", 3) == "ab"
        assert truncate(None, 3) == ""
