"""Tests for environment-driven settings."""

import pytest

from cat_tracker.config import (
    API_KEY_ENV_NAMES,
    DEFAULT_CORS_ORIGINS,
    Settings,
    api_key_from_env,
    database_url_from_env,
)

DB_VARS = ("DB_USER", "DB_PASSWORD", "DB_HOST", "DB_PORT", "DB_NAME", "DB_SSLMODE", "DATABASE_URL")


@pytest.fixture
def clean_env(monkeypatch):
    for name in DB_VARS + API_KEY_ENV_NAMES + ("CORS_ORIGINS", "LOG_LEVEL", "VISION_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestDatabaseUrl:
    def test_discrete_variables_win(self, clean_env):
        clean_env.setenv("DB_USER", "cats")
        clean_env.setenv("DB_PASSWORD", "meow")
        clean_env.setenv("DB_HOST", "db")
        clean_env.setenv("DB_NAME", "catalog")
        clean_env.setenv("DB_SSLMODE", "require")
        clean_env.setenv("DATABASE_URL", "sqlite://")

        assert database_url_from_env() == "postgresql+psycopg2://cats:meow@db:5432/catalog?sslmode=require"

    def test_database_url_fallback(self, clean_env):
        clean_env.setenv("DATABASE_URL", "sqlite:///cats.db")
        assert database_url_from_env() == "sqlite:///cats.db"

    def test_missing_configuration(self, clean_env):
        clean_env.setenv("DB_USER", "cats")
        with pytest.raises(RuntimeError, match="DB_PASSWORD, DB_HOST, DB_NAME"):
            database_url_from_env()


class TestApiKey:
    def test_first_present_name_wins(self, clean_env):
        clean_env.setenv("OPENAI_KEY", "sk-third")
        clean_env.setenv("OPENAI_APIKEY", "sk-second")
        assert api_key_from_env() == "sk-second"

    def test_absent(self, clean_env):
        assert api_key_from_env() is None


class TestSettings:
    def test_from_env(self, clean_env):
        clean_env.setenv("DATABASE_URL", "sqlite://")
        clean_env.setenv("CORS_ORIGINS", "https://cats.example.com, http://localhost:3000")
        clean_env.setenv("LOG_LEVEL", "debug")
        clean_env.setenv("VISION_TIMEOUT", "7.5")

        settings = Settings.from_env()

        assert settings.cors_origins == ["https://cats.example.com", "http://localhost:3000"]
        assert settings.log_level == "DEBUG"
        assert settings.vision_timeout == 7.5
        assert settings.vision_api_key is None

    def test_defaults(self, clean_env):
        clean_env.setenv("DATABASE_URL", "sqlite://")
        settings = Settings.from_env()
        assert settings.cors_origins == DEFAULT_CORS_ORIGINS
        assert settings.vision_model == "gpt-4o"
        assert settings.port == 5000
