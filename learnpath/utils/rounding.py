# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Half-up rounding for user-facing percentages and totals.

The builtin ``round`` rounds halves to even (``round(2.5) == 2``), which
is surprising in reports. These helpers always round halves away from
zero for non-negative inputs.
"""

import math


def round_half_up(value: float, digits: int = 0) -> float:
    """Round a non-negative value half up to the given number of digits."""
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def percent(part: int, whole: int, digits: int = 1) -> float:
    """Percentage of part in whole, 0.0 when whole is zero."""
    if whole <= 0:
        return 0.0
    return round_half_up(part / whole * 100, digits)
