# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Configuration package for learnpath.

Example:
    >>> from learnpath.core.config import get_settings
    >>> settings = get_settings()
    >>> settings.paths.max_nodes
    100
"""

from learnpath.core.config.settings import (
    DatabaseSettings,
    GamificationSettings,
    PathSettings,
    Settings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    "Settings",
    "get_settings",
    "clear_settings_cache",
    "DatabaseSettings",
    "GamificationSettings",
    "PathSettings",
]
