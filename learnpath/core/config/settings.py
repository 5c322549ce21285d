# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Application configuration settings using Pydantic Settings.

Settings are loaded from environment variables with sensible defaults.
The Settings class aggregates all subsettings; a cached instance is
provided via get_settings().

Example:
    >>> from learnpath.core.config.settings import get_settings
    >>> settings = get_settings()
    >>> settings.gamification.level_growth_factor
    1.15
"""

from functools import lru_cache
from typing import Literal, Self

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Database configuration for the progression store.

    Attributes:
        url: Async SQLAlchemy URL (asyncpg in production, aiosqlite locally).
        echo: Echo SQL statements.
        pool_pre_ping: Test connections before handing them out.
    """

    model_config = SettingsConfigDict(
        env_prefix="LEARNPATH_DB_",
        extra="ignore",
    )

    url: str = "sqlite+aiosqlite:///./learnpath.db"
    echo: bool = False
    pool_pre_ping: bool = True

    @property
    def is_sqlite(self) -> bool:
        """Whether the configured backend is SQLite."""
        return self.url.startswith("sqlite")


class GamificationSettings(BaseSettings):
    """Gamification ledger configuration.

    Attributes:
        base_xp_for_next_level: Threshold of the first level for new profiles.
        level_growth_factor: Multiplier applied to the threshold per level-up.
        daily_goal_xp: Default daily XP goal for new profiles.
        daily_goal_bonus_xp: XP granted when a met daily goal is claimed.
        telemetry_max_events: Size of the capped telemetry log.
    """

    model_config = SettingsConfigDict(
        env_prefix="GAMIFICATION_",
        extra="ignore",
    )

    base_xp_for_next_level: int = Field(default=100, gt=0)
    level_growth_factor: float = Field(default=1.15, gt=1.0)
    daily_goal_xp: int = Field(default=50, gt=0)
    daily_goal_bonus_xp: int = Field(default=30, ge=0)
    telemetry_max_events: int = Field(default=100, gt=0)


class PathSettings(BaseSettings):
    """Learning path configuration.

    Attributes:
        max_nodes: Upper bound on the number of nodes in one path.
        strict_reorder: Require reorder requests to be a permutation of the
            current node ids. When False only the length is checked.
        id_prefix: Prefix of generated template path ids.
    """

    model_config = SettingsConfigDict(
        env_prefix="PATH_",
        extra="ignore",
    )

    max_nodes: int = Field(default=100, gt=0)
    strict_reorder: bool = True
    id_prefix: str = "PATH"


class Settings(BaseSettings):
    """Main settings aggregating all subsettings.

    Attributes:
        environment: Current environment (development, staging, production).
        debug: Enable debug mode.
        log_level: Logging level.
        database: Database settings.
        gamification: Gamification ledger settings.
        paths: Learning path settings.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    environment: Literal["development", "test", "staging", "production"] = "development"
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "DEBUG"

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    gamification: GamificationSettings = Field(default_factory=GamificationSettings)
    paths: PathSettings = Field(default_factory=PathSettings)

    @model_validator(mode="after")
    def validate_production_settings(self) -> Self:
        """Reject a SQLite store in production.

        Raises:
            ValueError: If running in production against SQLite.
        """
        if self.environment == "production" and self.database.is_sqlite:
            raise ValueError(
                "SQLite is not supported in production. "
                "Set LEARNPATH_DB_URL to a postgresql+asyncpg URL."
            )
        return self

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Cached Settings instance.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing or after changing the environment.
    """
    get_settings.cache_clear()
