"""Pre-filing audit of a taxpayer's declared income and deductions.

Every check that fails emits one ``AuditFlag`` and costs a fixed number of
points from a score that starts at 100 and never drops below 0:

    unverified income sources        15
    80C over its limit               20
    80D over its limit               15
    24(b) interest over its limit    15
    deductions above half of income  10
    old regime with low deductions    5
    declared vs. gross mismatch      10
    no income reported               30

The score maps to a readiness level: excellent (≥ 90), good (≥ 75),
needs_attention (≥ 50), otherwise critical.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Mapping, Optional, Sequence, Tuple

from chronyx_tax.config import settings
from chronyx_tax.models.schemas import AuditFlag, AuditRequest, AuditResponse, AuditSummary
from chronyx_tax.utils.helpers import format_inr

logger = logging.getLogger(__name__)

HIGH_DEDUCTION_RATIO = 0.5
LOW_DEDUCTION_THRESHOLD = 50_000.0
MISMATCH_TOLERANCE = 10_000.0

Limits = Mapping[str, Optional[float]]
Check = Callable[[AuditRequest, Limits], Optional[Tuple[int, AuditFlag]]]


def _claim(body: AuditRequest, section: str) -> float:
    return max(0.0, body.deductions.get(section, 0.0))


def _total_claimed(body: AuditRequest) -> float:
    return sum(amount for amount in body.deductions.values() if amount > 0)


def _declared_income(body: AuditRequest) -> float:
    return sum(i.gross_amount for i in body.incomes)


def _section_limit(limits: Limits, section: str, fallback: float) -> Optional[float]:
    """The configured cap for *section*; ``None`` means uncapped."""
    if section in limits:
        return limits[section]
    return fallback


# ── Checks ───────────────────────────────────────────────────────────────

def _unverified_incomes(body: AuditRequest, limits: Limits):
    unverified = [i for i in body.incomes if not i.user_confirmed and not i.document_url]
    if not unverified:
        return None
    return 15, AuditFlag(
        flag_type="missing_document",
        severity="warning",
        title="Unverified Income Sources",
        description=f"{len(unverified)} income source(s) without supporting documents",
        resolution_action="Upload Form-16 or salary slips",
    )


def _limit_check(section: str, fallback: float, penalty: int, title: str, action: str) -> Check:
    def check(body: AuditRequest, limits: Limits):
        limit = _section_limit(limits, section, fallback)
        claimed = _claim(body, section)
        if limit is None or claimed <= limit:
            return None
        return penalty, AuditFlag(
            flag_type="limit_exceeded",
            severity="error",
            title=title,
            description=f"Claimed {format_inr(claimed)} but limit is {format_inr(limit)}",
            affected_section=section,
            affected_amount=claimed - limit,
            resolution_required=True,
            resolution_action=action.format(limit=format_inr(limit)),
        )

    return check


def _high_deduction_ratio(body: AuditRequest, limits: Limits):
    if body.gross_income <= 0:
        return None
    ratio = _total_claimed(body) / body.gross_income
    if ratio <= HIGH_DEDUCTION_RATIO:
        return None
    return 10, AuditFlag(
        flag_type="high_risk",
        severity="warning",
        title="High Deduction Ratio",
        description=f"Deductions are {ratio * 100:.1f}% of gross income and may attract scrutiny",
        resolution_action="Keep all supporting documents ready",
    )


def _old_regime_low_deductions(body: AuditRequest, limits: Limits):
    if body.regime != "old" or _total_claimed(body) >= LOW_DEDUCTION_THRESHOLD:
        return None
    return 5, AuditFlag(
        flag_type="compliance",
        severity="info",
        title="Consider New Regime",
        description="Low deductions may make the new regime more beneficial",
    )


def _income_mismatch(body: AuditRequest, limits: Limits):
    declared = _declared_income(body)
    difference = abs(declared - body.gross_income)
    if declared <= 0 or difference <= MISMATCH_TOLERANCE:
        return None
    return 10, AuditFlag(
        flag_type="mismatch",
        severity="warning",
        title="Income Mismatch",
        description=(
            f"Declared income {format_inr(declared)} differs from "
            f"calculated {format_inr(body.gross_income)}"
        ),
        affected_amount=difference,
        resolution_required=True,
        resolution_action="Verify all income sources are included",
    )


def _no_income(body: AuditRequest, limits: Limits):
    if body.gross_income > 0 or body.incomes:
        return None
    return 30, AuditFlag(
        flag_type="verification_needed",
        severity="critical",
        title="No Income Reported",
        description="Add your income sources for an accurate tax calculation",
        resolution_required=True,
        resolution_action="Add income from salary, business, or other sources",
    )


CHECKS: Sequence[Check] = (
    _unverified_incomes,
    _limit_check(
        "80C", settings.SECTION_80C_LIMIT, 20,
        "80C Limit Exceeded", "Reduce 80C claim to {limit}",
    ),
    _limit_check(
        "80D", settings.SECTION_80D_MAX_LIMIT, 15,
        "80D Limit Exceeded", "Verify 80D claim with supporting documents",
    ),
    _limit_check(
        "24B", settings.SECTION_24B_LIMIT, 15,
        "Home Loan Interest Limit Exceeded", "Reduce 24(b) claim to {limit}",
    ),
    _high_deduction_ratio,
    _old_regime_low_deductions,
    _income_mismatch,
    _no_income,
)


def readiness_level(score: int) -> str:
    if score >= 90:
        return "excellent"
    if score >= 75:
        return "good"
    if score >= 50:
        return "needs_attention"
    return "critical"


def summarise(flags: Sequence[AuditFlag]) -> AuditSummary:
    def count(severity: str) -> int:
        return sum(1 for f in flags if f.severity == severity)

    return AuditSummary(
        total_flags=len(flags),
        critical=count("critical"),
        errors=count("error"),
        warnings=count("warning"),
        info=count("info"),
        resolution_required=sum(1 for f in flags if f.resolution_required),
    )


def run_audit(body: AuditRequest, deduction_limits: Limits) -> AuditResponse:
    """Run every check against *body* and score the result.

    *deduction_limits* are the financial year's section caps; a section
    missing from them falls back to the statutory cap in ``settings``.
    """
    flags: List[AuditFlag] = []
    score = 100
    for check in CHECKS:
        outcome = check(body, deduction_limits)
        if outcome is None:
            continue
        penalty, flag = outcome
        score -= penalty
        flags.append(flag)

    score = max(0, score)
    logger.info(
        "Audit for %s (%s regime): score %d with %d flag(s)",
        body.financial_year, body.regime, score, len(flags),
    )
    return AuditResponse(
        financial_year=body.financial_year,
        audit_score=score,
        readiness_level=readiness_level(score),
        flags=flags,
        summary=summarise(flags),
    )
