# Test type: Integration Test
# Validation to be executed: Business logic integration: discovered deductions
#   flow into the calculator, the comparator and the recommendation rules,
#   with results matching hand-worked figures for a salaried taxpayer.
# Command: pytest test/test_integration_pipeline.py -v

"""Integration tests that exercise the full tax pipeline without HTTP."""

import pytest

from chronyx_tax.models.schemas import InsuranceRecord, RecommendRequest
from chronyx_tax.services.comparison_service import compare_regimes
from chronyx_tax.services.deduction_service import discover_deductions
from chronyx_tax.services.recommendation_service import build_recommendations, summarise
from chronyx_tax.services.tax_service import calculate

FY = "FY2025_26"
GROSS = 1_300_000


class TestSalariedTaxpayer:
    """Walk one taxpayer from tracked records to a regime decision."""

    @pytest.fixture
    def discovery(self, repo):
        insurances = [
            InsuranceRecord(id="h1", policy_type="Health", premium_amount=30_000),
            InsuranceRecord(id="l1", policy_type="Life", premium_amount=40_000),
        ]
        return discover_deductions(FY, GROSS, repo.get_deduction_limits(FY), insurances)

    @pytest.fixture
    def accepted(self, discovery):
        """The user accepts every discovered deduction."""
        claims = {}
        for d in discovery.deductions:
            claims[d.section_code] = claims.get(d.section_code, 0) + d.claimed_amount
        return claims

    def test_discovered_claims(self, accepted):
        assert accepted == {"80D": 30_000, "80C": 40_000}

    def test_old_regime_with_claims(self, repo, accepted):
        result = calculate(repo, FY, "old", GROSS, accepted)
        assert result.taxable_income == 1_180_000
        assert result.tax_before_rebate == 166_500
        assert result.cess == 6_660
        assert result.total_tax == 173_160

    def test_new_regime_ignores_claims(self, repo, accepted):
        result = calculate(repo, FY, "new", GROSS, accepted)
        assert result.total_deductions == 0
        assert result.taxable_income == 1_225_000
        assert result.tax_before_rebate == 85_000
        assert result.total_tax == 88_400

    def test_comparison_and_recommendations(self, repo, accepted):
        comparison = compare_regimes(repo, FY, GROSS, accepted)
        assert comparison.recommended_regime == "new"
        assert comparison.savings_amount == 84_760
        assert comparison.savings_percentage == 6.52

        recs = build_recommendations(RecommendRequest(
            financial_year=FY,
            gross_income=GROSS,
            regime="old",
            old_regime_tax=comparison.old_regime.total_tax,
            new_regime_tax=comparison.new_regime.total_tax,
            deductions=accepted,
        ))
        switch = [r for r in recs if r.category == "regime"]
        assert switch[0].title == "Switch to New Regime"
        assert switch[0].impact_amount == 84_760
        assert summarise(recs).total == len(recs)


class TestFinancialYears:
    def test_next_year_uses_same_tables(self, repo):
        current = calculate(repo, "FY2025_26", "new", 1_200_000)
        following = calculate(repo, "FY2026_27", "new", 1_200_000)
        assert current.total_tax == following.total_tax == 71_500
        assert following.financial_year == "FY2026_27"
