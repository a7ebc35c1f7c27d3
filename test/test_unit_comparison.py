# Test type: Unit Test
# Validation to be executed: Validates the old-vs-new regime comparator:
#   recommendation, savings, tie handling and consistency with the calculator.
# Command: pytest test/test_unit_comparison.py -v

"""Unit tests for chronyx_tax.services.comparison_service module."""

import pytest

from chronyx_tax.errors import InvalidInputError, NotFoundError
from chronyx_tax.services.comparison_service import compare_regimes
from chronyx_tax.services.tax_service import calculate

FY = "FY2025_26"


class TestCompareRegimes:
    def test_new_cheaper(self, repo):
        """₹10L with 80C 3L + 80D 20k: old 71,240 vs new 44,200."""
        result = compare_regimes(repo, FY, 1_000_000, {"80C": 300_000, "80D": 20_000})
        assert result.old_regime.total_tax == 71_240
        assert result.new_regime.total_tax == 44_200
        assert result.recommended_regime == "new"
        assert result.savings_amount == 27_040
        assert result.savings_percentage == 2.70

    def test_old_cheaper_with_large_deductions(self, repo):
        """Big uncapped claims make the old regime win; savings stay positive."""
        deductions = {"80C": 150_000, "80D": 75_000, "80E": 300_000, "HRA": 250_000}
        result = compare_regimes(repo, FY, 1_500_000, deductions)
        assert result.old_regime.total_tax < result.new_regime.total_tax
        assert result.recommended_regime == "old"
        assert result.savings_amount == result.new_regime.total_tax - result.old_regime.total_tax

    def test_tie_recommends_old(self, repo):
        """₹5L: both regimes are fully rebated to zero."""
        result = compare_regimes(repo, FY, 500_000)
        assert result.old_regime.total_tax == result.new_regime.total_tax == 0
        assert result.recommended_regime == "old"
        assert result.savings_amount == 0
        assert result.savings_percentage == 0

    def test_zero_income(self, repo):
        result = compare_regimes(repo, FY, 0)
        assert result.savings_percentage == 0
        assert result.recommended_regime == "old"

    @pytest.mark.parametrize("gross", [0, 650_000, 1_200_000, 3_300_000])
    def test_matches_single_calculations(self, repo, gross):
        deductions = {"80C": 120_000, "80TTA": 15_000}
        result = compare_regimes(repo, FY, gross, deductions)
        assert result.old_regime == calculate(repo, FY, "old", gross, deductions)
        assert result.new_regime == calculate(repo, FY, "new", gross, deductions)

    def test_new_regime_ignores_deductions(self, repo):
        result = compare_regimes(repo, FY, 1_200_000, {"80C": 150_000})
        assert result.new_regime.total_deductions == 0
        assert result.old_regime.total_deductions == 150_000

    def test_unknown_year(self, repo):
        with pytest.raises(NotFoundError):
            compare_regimes(repo, "FY2001_02", 1_000_000)

    def test_negative_income(self, repo):
        with pytest.raises(InvalidInputError):
            compare_regimes(repo, FY, -1)
