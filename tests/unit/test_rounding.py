# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for rounding helpers."""

from learnpath.utils.rounding import percent, round_half_up


class TestRoundHalfUp:
    """Tests for round_half_up."""

    def test_half_rounds_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(0.5) == 1

    def test_below_half_rounds_down(self):
        assert round_half_up(2.4) == 2

    def test_digits(self):
        assert round_half_up(1.25, 1) == 1.3
        assert round_half_up(1.666, 1) == 1.7


class TestPercent:
    """Tests for percent."""

    def test_two_thirds(self):
        assert percent(2, 3) == 66.7

    def test_whole_number_digits(self):
        assert percent(2, 3, digits=0) == 67

    def test_zero_whole(self):
        assert percent(0, 0) == 0.0

    def test_full(self):
        assert percent(4, 4) == 100.0
