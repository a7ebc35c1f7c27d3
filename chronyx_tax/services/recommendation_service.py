"""Rule-based tax-saving recommendations.

Each rule inspects the caller's income, chosen regime, regime totals and
claimed deductions and may emit one ``Recommendation``.  Results are
sorted by priority (critical first); rules of equal priority keep their
evaluation order.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Optional, Sequence

from chronyx_tax.config import settings
from chronyx_tax.models.schemas import (
    Recommendation,
    RecommendationSummary,
    RecommendRequest,
)
from chronyx_tax.utils.helpers import round_rupee

_PRIORITY_ORDER = {"critical": 0, "high": 1, "medium": 2, "low": 3}
_TYPES = ("mandatory", "optimization", "risk_alert", "planning")

# Maximum 80D tax saving shown when no health premium is claimed
_80D_INDICATIVE_SAVING = 7_500.0


def _rupees(amount: float) -> str:
    return f"₹{amount:,.0f}"


def _regime_switch(body: RecommendRequest) -> Optional[Recommendation]:
    if body.old_regime_tax is None or body.new_regime_tax is None:
        return None
    savings = round_rupee(abs(body.old_regime_tax - body.new_regime_tax))
    if savings <= 0:
        return None
    better = "old" if body.old_regime_tax < body.new_regime_tax else "new"
    label = f"Switch to {better.capitalize()} Regime"
    return Recommendation(
        type="optimization",
        category="regime",
        priority="high",
        title=label,
        description=f"You can save {_rupees(savings)} by choosing the {better} tax regime",
        reason=(
            "Your deductions make the old regime more beneficial"
            if better == "old"
            else "With limited deductions, the new regime offers better rates"
        ),
        impact_amount=savings,
        impact_description=f"{_rupees(savings)} annual tax savings",
        action_required=body.regime != better,
        action_type="switch_regime",
        action_label=label,
    )


def _section_80c(body: RecommendRequest) -> Optional[Recommendation]:
    claimed = body.deductions.get("80C", 0)
    if claimed >= settings.SECTION_80C_LIMIT or body.gross_income <= 500_000:
        return None
    gap = settings.SECTION_80C_LIMIT - claimed
    if body.gross_income > 1_500_000:
        bracket = 0.30
    elif body.gross_income > 1_000_000:
        bracket = 0.15
    else:
        bracket = 0.05
    saving = round_rupee(gap * bracket)
    return Recommendation(
        type="optimization",
        category="deduction",
        priority="high",
        title="Maximize Section 80C",
        description=f"You can claim {_rupees(gap)} more under Section 80C",
        reason="Investing in tax-saving instruments reduces taxable income",
        impact_amount=saving,
        impact_description=f"Up to {_rupees(saving)} tax savings",
        action_required=True,
        action_type="add_deduction",
        action_label="Add 80C Investment",
    )


def _section_80ccd1b(body: RecommendRequest) -> Optional[Recommendation]:
    claimed = body.deductions.get("80CCD1B", 0)
    if claimed >= settings.SECTION_80CCD1B_LIMIT or body.gross_income <= 700_000:
        return None
    gap = settings.SECTION_80CCD1B_LIMIT - claimed
    saving = round_rupee(gap * (0.30 if body.gross_income > 1_500_000 else 0.20))
    return Recommendation(
        type="optimization",
        category="deduction",
        priority="medium",
        title="NPS Contribution (80CCD1B)",
        description=f"Additional {_rupees(settings.SECTION_80CCD1B_LIMIT)} deduction available for NPS",
        reason="NPS offers an exclusive tax benefit over and above 80C limit",
        impact_amount=saving,
        impact_description=f"Up to {_rupees(saving)} tax savings",
        action_required=True,
        action_type="add_deduction",
        action_label="Add NPS Investment",
    )


def _health_insurance(body: RecommendRequest) -> Optional[Recommendation]:
    if body.deductions.get("80D", 0) != 0 or body.gross_income <= 300_000:
        return None
    return Recommendation(
        type="mandatory",
        category="insurance",
        priority="high",
        title="Get Health Insurance",
        description="No health insurance premium detected for 80D deduction",
        reason="Health insurance provides both tax benefits and financial protection",
        impact_amount=_80D_INDICATIVE_SAVING,
        impact_description=f"Up to {_rupees(_80D_INDICATIVE_SAVING)} tax savings + health coverage",
        action_required=True,
        action_type="upload_document",
        action_label="Upload Insurance Policy",
    )


def _missing_income(body: RecommendRequest) -> Optional[Recommendation]:
    if body.incomes:
        return None
    return Recommendation(
        type="mandatory",
        category="income",
        priority="critical",
        title="Add Income Sources",
        description="No income sources detected for this financial year",
        reason="Accurate income reporting is mandatory for tax calculation",
        impact_description="Required for accurate tax computation",
        action_required=True,
        action_type="confirm_data",
        action_label="Add Income",
    )


def _surcharge_warning(body: RecommendRequest) -> Optional[Recommendation]:
    lowest_band = min(threshold for threshold, _ in settings.SURCHARGE_BANDS)
    if body.gross_income <= lowest_band:
        return None
    return Recommendation(
        type="risk_alert",
        category="compliance",
        priority="high",
        title="High Income - Surcharge Applicable",
        description=f"Surcharge will apply on your income above {_rupees(lowest_band)}",
        reason="High-income taxpayers attract additional surcharge on tax",
        impact_description="Plan investments to optimize surcharge impact",
    )


def _advance_tax(body: RecommendRequest) -> Optional[Recommendation]:
    if body.gross_income <= 1_000_000:
        return None
    return Recommendation(
        type="planning",
        category="compliance",
        priority="medium",
        title="Advance Tax Payment",
        description="Consider paying advance tax to avoid interest",
        reason="If tax liability exceeds ₹10,000, advance tax is required",
        impact_description="Avoid 1% interest per month on unpaid tax",
        confidence="medium",
    )


RULES: Sequence[Callable[[RecommendRequest], Optional[Recommendation]]] = (
    _regime_switch,
    _section_80c,
    _section_80ccd1b,
    _health_insurance,
    _missing_income,
    _surcharge_warning,
    _advance_tax,
)


def build_recommendations(body: RecommendRequest) -> List[Recommendation]:
    found = [rec for rec in (rule(body) for rule in RULES) if rec is not None]
    found.sort(key=lambda r: _PRIORITY_ORDER[r.priority])
    return found


def summarise(recommendations: Sequence[Recommendation]) -> RecommendationSummary:
    by_type: Dict[str, int] = {t: 0 for t in _TYPES}
    for rec in recommendations:
        by_type[rec.type] += 1
    return RecommendationSummary(
        total=len(recommendations),
        by_type=by_type,
        action_required=sum(1 for r in recommendations if r.action_required),
        total_potential_savings=sum(r.impact_amount for r in recommendations),
    )
