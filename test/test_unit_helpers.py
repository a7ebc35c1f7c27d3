# Test type: Unit Test
# Validation to be executed: Validates helper utility functions: rupee and
#   percentage rounding (ties away from zero) and threshold-band lookup.
# Command: pytest test/test_unit_helpers.py -v

"""Unit tests for chronyx_tax.utils.helpers module."""

import pytest

from chronyx_tax.utils.helpers import (
    band_rate,
    format_inr,
    percentage_of,
    round_percent,
    round_rupee,
)


class TestRoundRupee:
    @pytest.mark.parametrize(
        "value, expected",
        [(0, 0), (0.49, 0), (0.5, 1), (1.5, 2), (2.5, 3), (18_750.5, 18_751), (-2.5, -3)],
    )
    def test_ties_away_from_zero(self, value, expected):
        assert round_rupee(value) == expected

    def test_float_noise(self):
        """255000 × 0.7 carries binary noise; the rupee is still exact."""
        assert round_rupee(255_000 * 0.7) == 178_500

    def test_returns_float(self):
        assert isinstance(round_rupee(10), float)


class TestRoundPercent:
    def test_two_places(self):
        assert round_percent(5.958333) == 5.96

    def test_tie(self):
        assert round_percent(2.705) == 2.71
        assert round_percent(0.125) == 0.13


class TestPercentageOf:
    def test_effective_rate(self):
        assert percentage_of(71_500, 1_200_000) == 5.96

    def test_zero_whole(self):
        assert percentage_of(100, 0) == 0.0


class TestBandRate:
    BANDS = ((50_000_000, 0.37), (20_000_000, 0.25), (10_000_000, 0.15), (5_000_000, 0.10))

    @pytest.mark.parametrize(
        "amount, rate",
        [(0, 0.0), (5_000_000, 0.0), (5_000_001, 0.10), (10_000_000, 0.10),
         (10_000_001, 0.15), (20_000_001, 0.25), (50_000_001, 0.37)],
    )
    def test_strictly_exceeds(self, amount, rate):
        assert band_rate(amount, self.BANDS) == rate


class TestFormatInr:
    @pytest.mark.parametrize(
        "amount, expected",
        [
            (0, "₹0"),
            (999, "₹999"),
            (1_000, "₹1,000"),
            (150_000, "₹1,50,000"),
            (1_234_567, "₹12,34,567"),
            (50_000_000, "₹5,00,00,000"),
            (2_499.5, "₹2,500"),
            (-75_000, "-₹75,000"),
        ],
    )
    def test_indian_grouping(self, amount, expected):
        assert format_inr(amount) == expected
