# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for application settings."""

import os
from unittest.mock import patch

import pytest

from learnpath.core.config.settings import (
    DatabaseSettings,
    GamificationSettings,
    PathSettings,
    Settings,
    clear_settings_cache,
    get_settings,
)


class TestDatabaseSettings:
    """Tests for DatabaseSettings."""

    def test_default_values(self) -> None:
        """Test default configuration values."""
        settings = DatabaseSettings()

        assert settings.url == "sqlite+aiosqlite:///./learnpath.db"
        assert settings.echo is False
        assert settings.is_sqlite is True

    def test_loads_from_environment(self) -> None:
        """Test that settings load from environment variables."""
        env = {"LEARNPATH_DB_URL": "postgresql+asyncpg://u:p@db:5432/learnpath"}

        with patch.dict(os.environ, env, clear=False):
            settings = DatabaseSettings()

        assert settings.url == "postgresql+asyncpg://u:p@db:5432/learnpath"
        assert settings.is_sqlite is False


class TestGamificationSettings:
    """Tests for GamificationSettings."""

    def test_default_values(self) -> None:
        settings = GamificationSettings()

        assert settings.base_xp_for_next_level == 100
        assert settings.level_growth_factor == 1.15
        assert settings.daily_goal_xp == 50
        assert settings.daily_goal_bonus_xp == 30
        assert settings.telemetry_max_events == 100

    def test_growth_factor_must_exceed_one(self) -> None:
        with pytest.raises(ValueError):
            GamificationSettings(level_growth_factor=1.0)

    def test_loads_from_environment(self) -> None:
        env = {"GAMIFICATION_DAILY_GOAL_BONUS_XP": "45"}

        with patch.dict(os.environ, env, clear=False):
            settings = GamificationSettings()

        assert settings.daily_goal_bonus_xp == 45


class TestPathSettings:
    """Tests for PathSettings."""

    def test_default_values(self) -> None:
        settings = PathSettings()

        assert settings.max_nodes == 100
        assert settings.strict_reorder is True
        assert settings.id_prefix == "PATH"

    def test_loads_from_environment(self) -> None:
        env = {"PATH_STRICT_REORDER": "false", "PATH_MAX_NODES": "20"}

        with patch.dict(os.environ, env, clear=False):
            settings = PathSettings()

        assert settings.strict_reorder is False
        assert settings.max_nodes == 20


class TestSettings:
    """Tests for main Settings class."""

    def test_default_values(self) -> None:
        settings = Settings()

        assert settings.environment == "development"
        assert settings.is_development is True
        assert settings.is_production is False

    def test_production_rejects_sqlite(self) -> None:
        with pytest.raises(ValueError, match="SQLite is not supported in production"):
            Settings(environment="production", debug=False)

    def test_production_with_postgres(self) -> None:
        settings = Settings(
            environment="production",
            debug=False,
            database={"url": "postgresql+asyncpg://u:p@db:5432/learnpath"},
        )

        assert settings.is_production is True

    def test_get_settings_cached(self) -> None:
        clear_settings_cache()

        assert get_settings() is get_settings()

    def test_clear_settings_cache(self) -> None:
        first = get_settings()
        clear_settings_cache()

        assert get_settings() is not first
