# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Utility functions and helpers for learnpath.

This package contains cross-cutting utilities:
- logging: Structured logging with structlog
- datetime: Timezone-aware datetime operations
- rounding: Half-up rounding for reports
"""

from learnpath.utils.datetime import ensure_utc, format_iso, utc_now
from learnpath.utils.logging import bind_context, clear_context, get_logger, setup_logging
from learnpath.utils.rounding import percent, round_half_up

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    "bind_context",
    "clear_context",
    # Datetime
    "utc_now",
    "ensure_utc",
    "format_iso",
    # Rounding
    "round_half_up",
    "percent",
]
