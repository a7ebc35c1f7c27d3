# Test type: Unit Test
# Validation to be executed: Validates deduction discovery heuristics from
#   insurance and loan records, marginal-bracket savings and suggestions.
# Command: pytest test/test_unit_deductions.py -v

"""Unit tests for chronyx_tax.services.deduction_service module."""

import pytest

from chronyx_tax.models.schemas import InsuranceRecord, LoanRecord
from chronyx_tax.services.deduction_service import discover_deductions, marginal_rate

FY = "FY2025_26"


@pytest.fixture
def insurances():
    return [
        InsuranceRecord(id="h1", policy_type="Health", premium_amount=30_000),
        InsuranceRecord(id="h2", policy_type="Health", premium_amount=60_000),
        InsuranceRecord(id="h3", policy_type="Health", premium_amount=99_000, status="expired"),
        InsuranceRecord(id="l1", policy_type="Life", premium_amount=40_000),
        InsuranceRecord(id="m1", policy_type="Motor", premium_amount=10_000),
    ]


@pytest.fixture
def loans():
    return [
        LoanRecord(id="hl", loan_type="Home Loan", principal_amount=3_000_000,
                   interest_rate=8.5, emi_amount=26_000),
        LoanRecord(id="el", loan_type="Education Loan", principal_amount=500_000,
                   interest_rate=10, emi_amount=10_000),
        LoanRecord(id="cl", loan_type="Car Loan", principal_amount=800_000,
                   interest_rate=9, emi_amount=16_000),
    ]


class TestMarginalRate:
    @pytest.mark.parametrize(
        "gross, rate",
        [(0, 0), (300_000, 0), (300_001, 0.05), (700_001, 0.10),
         (1_000_001, 0.15), (1_200_001, 0.20), (1_500_001, 0.30)],
    )
    def test_brackets(self, gross, rate):
        assert marginal_rate(gross) == rate


class TestDiscovery:
    @pytest.fixture
    def result(self, old_limits, insurances, loans):
        return discover_deductions(FY, 1_300_000, old_limits, insurances, loans)

    def _by_description(self, result):
        return {d.description: d for d in result.deductions}

    def test_health_premiums_capped_at_80d_limit(self, result):
        d = self._by_description(result)["Health Insurance Premium"]
        assert d.section_code == "80D"
        assert d.claimed_amount == 75_000
        assert d.max_limit == 75_000
        assert d.savings_impact == 15_000
        assert d.source_ids == ["h1", "h2"]
        assert d.confidence_score == 0.95

    def test_life_premium(self, result):
        d = self._by_description(result)["Life Insurance Premium"]
        assert d.section_code == "80C"
        assert d.claimed_amount == 40_000
        assert d.savings_impact == 8_000

    def test_home_loan_interest_and_principal(self, result):
        found = self._by_description(result)
        interest = found["Home Loan Interest"]
        assert interest.section_code == "24B"
        assert interest.claimed_amount == 178_500
        assert interest.savings_impact == 35_700
        assert interest.confidence_score == 0.80

        principal = found["Home Loan Principal Repayment"]
        assert principal.section_code == "80C"
        assert principal.claimed_amount == 93_600
        assert principal.savings_impact == 18_720
        assert principal.confidence_score == 0.75

    def test_education_loan_uncapped(self, result):
        d = self._by_description(result)["Education Loan Interest"]
        assert d.section_code == "80E"
        assert d.max_limit is None
        assert d.claimed_amount == 35_000

    def test_inactive_and_irrelevant_records_ignored(self, result):
        ids = {i for d in result.deductions for i in d.source_ids}
        assert not ids & {"h3", "m1", "cl"}

    def test_summary(self, result):
        assert result.summary.discovered_count == 5
        assert result.summary.total_deductions == 422_100
        assert result.summary.total_tax_savings == 84_420
        assert result.summary.sections_covered == ["80D", "80C", "24B", "80E"]
        assert result.summary.suggestions_count == 2

    def test_suggestions(self, result):
        suggestions = {s.section_code: s for s in result.suggestions}
        assert suggestions["80C"].potential_savings == 3_280
        assert "16,400" in suggestions["80C"].description
        assert "ELSS" in suggestions["80C"].options
        assert suggestions["80CCD1B"].potential_savings == 10_000


class TestEdgeCases:
    def test_no_records(self, old_limits):
        result = discover_deductions(FY, 800_000, old_limits)
        assert result.deductions == []
        assert result.summary.total_deductions == 0
        assert [s.section_code for s in result.suggestions] == ["80C", "80CCD1B"]

    def test_80d_falls_back_when_limit_missing(self):
        result = discover_deductions(
            FY, 500_000, {},
            insurances=[InsuranceRecord(policy_type="Health", premium_amount=40_000)],
        )
        assert result.deductions[0].claimed_amount == 25_000

    def test_80d_zero_limit_is_respected(self):
        result = discover_deductions(
            FY, 500_000, {"80D": 0},
            insurances=[InsuranceRecord(policy_type="Health", premium_amount=40_000)],
        )
        assert result.deductions[0].claimed_amount == 0
        assert result.deductions[0].max_limit == 0

    def test_80c_suggestion_dropped_when_full(self, old_limits):
        result = discover_deductions(
            FY, 2_000_000, old_limits,
            insurances=[InsuranceRecord(policy_type="Term", premium_amount=160_000)],
        )
        assert [s.section_code for s in result.suggestions] == ["80CCD1B"]

    def test_zero_bracket_means_zero_savings(self, old_limits):
        result = discover_deductions(
            FY, 250_000, old_limits,
            insurances=[InsuranceRecord(policy_type="Health", premium_amount=10_000)],
        )
        assert result.deductions[0].savings_impact == 0
