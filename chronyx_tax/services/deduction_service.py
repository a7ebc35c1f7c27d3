"""Deduction discovery from a user's insurance and loan records.

Advisory only: the output is a list of suggestions for the user to
accept, never an input to the calculator.  Interest and principal figures
for loans are rough annual estimates, hence the confidence scores.

Sources → sections:
    health policies         → 80D
    life / term policies    → 80C
    home / housing loans    → 24B (interest), 80C (principal)
    education loans         → 80E (interest, uncapped)
"""

from __future__ import annotations

import logging
from typing import List, Mapping, Optional, Sequence

from chronyx_tax.config import settings
from chronyx_tax.models.schemas import (
    DeductionSuggestion,
    DiscoveredDeduction,
    DiscoveryResponse,
    DiscoverySummary,
    InsuranceRecord,
    LoanRecord,
)
from chronyx_tax.utils.helpers import band_rate, round_rupee

logger = logging.getLogger(__name__)

# Coarse marginal bracket by gross income, highest first
_MARGINAL_BRACKETS = (
    (1_500_000.0, 0.30),
    (1_200_000.0, 0.20),
    (1_000_000.0, 0.15),
    (700_000.0, 0.10),
    (300_000.0, 0.05),
)

# Share of a year's nominal interest actually paid on an amortising loan
_INTEREST_PAID_FACTOR = 0.7
# Share of an EMI that goes to principal
_PRINCIPAL_SHARE_OF_EMI = 0.3

_80C_OPTIONS = ["PPF", "ELSS", "NSC", "Tax Saver FD", "Tuition Fees"]


def marginal_rate(gross_income: float) -> float:
    return band_rate(gross_income, _MARGINAL_BRACKETS)


def _is_active(status: str) -> bool:
    return (status or "").lower() == "active"


def _loan_kind(loan: LoanRecord) -> str:
    kind = (loan.loan_type or "").lower()
    if "home" in kind or "housing" in kind:
        return "home"
    if "education" in kind:
        return "education"
    return "other"


def _annual_interest(loan: LoanRecord) -> float:
    return loan.principal_amount * loan.interest_rate / 100 * _INTEREST_PAID_FACTOR


def _ids(records: Sequence) -> List[str]:
    return [r.id for r in records if r.id]


def _from_insurances(
    insurances: Sequence[InsuranceRecord],
    limits: Mapping[str, Optional[float]],
    rate: float,
) -> List[DiscoveredDeduction]:
    found: list[DiscoveredDeduction] = []
    active = [i for i in insurances if _is_active(i.status)]

    health = [i for i in active if i.policy_type.lower() == "health"]
    health_premiums = sum(i.premium_amount for i in health)
    if health_premiums > 0:
        limit = limits.get("80D")
        if limit is None:
            limit = settings.SECTION_80D_DEFAULT_LIMIT
        claimable = min(health_premiums, limit)
        found.append(DiscoveredDeduction(
            section_code="80D",
            description="Health Insurance Premium",
            claimed_amount=round_rupee(claimable),
            max_limit=limit,
            source_type="insurance",
            source_ids=_ids(health),
            confidence_score=0.95,
            savings_impact=round_rupee(claimable * rate),
        ))

    life = [i for i in active if i.policy_type.lower() in ("life", "term")]
    life_premiums = sum(i.premium_amount for i in life)
    if life_premiums > 0:
        limit = settings.SECTION_80C_LIMIT
        found.append(DiscoveredDeduction(
            section_code="80C",
            description="Life Insurance Premium",
            claimed_amount=round_rupee(life_premiums),
            max_limit=limit,
            source_type="insurance",
            source_ids=_ids(life),
            confidence_score=0.95,
            savings_impact=round_rupee(min(life_premiums, limit) * rate),
        ))

    return found


def _from_loans(loans: Sequence[LoanRecord], rate: float) -> List[DiscoveredDeduction]:
    found: list[DiscoveredDeduction] = []
    active = [l for l in loans if _is_active(l.status)]

    home = [l for l in active if _loan_kind(l) == "home"]
    home_interest = sum(_annual_interest(l) for l in home)
    if home_interest > 0:
        limit = settings.SECTION_24B_LIMIT
        claimable = min(home_interest, limit)
        found.append(DiscoveredDeduction(
            section_code="24B",
            description="Home Loan Interest",
            claimed_amount=round_rupee(claimable),
            max_limit=limit,
            source_type="loan",
            source_ids=_ids(home),
            confidence_score=0.80,
            savings_impact=round_rupee(claimable * rate),
        ))

        principal_repaid = sum(l.emi_amount * 12 * _PRINCIPAL_SHARE_OF_EMI for l in home)
        if principal_repaid > 0:
            limit = settings.SECTION_80C_LIMIT
            found.append(DiscoveredDeduction(
                section_code="80C",
                description="Home Loan Principal Repayment",
                claimed_amount=round_rupee(principal_repaid),
                max_limit=limit,
                source_type="loan",
                source_ids=_ids(home),
                confidence_score=0.75,
                savings_impact=round_rupee(min(principal_repaid, limit) * rate),
            ))

    education = [l for l in active if _loan_kind(l) == "education"]
    education_interest = sum(_annual_interest(l) for l in education)
    if education_interest > 0:
        found.append(DiscoveredDeduction(
            section_code="80E",
            description="Education Loan Interest",
            claimed_amount=round_rupee(education_interest),
            max_limit=None,
            source_type="loan",
            source_ids=_ids(education),
            confidence_score=0.80,
            savings_impact=round_rupee(education_interest * rate),
        ))

    return found


def _suggestions(found: Sequence[DiscoveredDeduction], rate: float) -> List[DeductionSuggestion]:
    suggestions: list[DeductionSuggestion] = []

    total_80c = sum(d.claimed_amount for d in found if d.section_code == "80C")
    if total_80c < settings.SECTION_80C_LIMIT:
        remaining = settings.SECTION_80C_LIMIT - total_80c
        suggestions.append(DeductionSuggestion(
            section_code="80C",
            title="Maximize 80C Deductions",
            description=f"You can claim up to ₹{remaining:,.0f} more under Section 80C",
            options=list(_80C_OPTIONS),
            potential_savings=round_rupee(remaining * rate),
        ))

    if not any(d.section_code == "80CCD1B" for d in found):
        suggestions.append(DeductionSuggestion(
            section_code="80CCD1B",
            title="NPS Contribution",
            description=f"Additional ₹{settings.SECTION_80CCD1B_LIMIT:,.0f} deduction for NPS contribution",
            potential_savings=round_rupee(settings.SECTION_80CCD1B_LIMIT * rate),
        ))

    return suggestions


def discover_deductions(
    financial_year: str,
    gross_income: float,
    deduction_limits: Mapping[str, Optional[float]],
    insurances: Sequence[InsuranceRecord] = (),
    loans: Sequence[LoanRecord] = (),
) -> DiscoveryResponse:
    """Scan insurance and loan records for claimable deductions."""
    rate = marginal_rate(gross_income)

    found = _from_insurances(insurances, deduction_limits, rate) + _from_loans(loans, rate)
    suggestions = _suggestions(found, rate)

    sections: list[str] = []
    for d in found:
        if d.section_code not in sections:
            sections.append(d.section_code)

    summary = DiscoverySummary(
        discovered_count=len(found),
        total_deductions=round_rupee(sum(d.claimed_amount for d in found)),
        total_tax_savings=round_rupee(sum(d.savings_impact for d in found)),
        sections_covered=sections,
        suggestions_count=len(suggestions),
    )
    logger.info(
        "Discovered %d deduction(s) for %s across %s",
        summary.discovered_count, financial_year, sections or "no sections",
    )
    return DiscoveryResponse(
        financial_year=financial_year,
        deductions=found,
        suggestions=suggestions,
        summary=summary,
    )
