"""Routers for tax endpoints:
    POST  /api/v1/tax/calculate
    POST  /api/v1/tax/compare
    POST  /api/v1/tax/discover-deductions
    POST  /api/v1/tax/recommend
    POST  /api/v1/tax/audit
    POST  /api/v1/tax/full-calculation
    GET   /api/v1/tax/calculations
    GET   /api/v1/tax/financial-years
"""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import SQLAlchemyError

from chronyx_tax.auth import CurrentUser, get_current_user
from chronyx_tax.config import settings
from chronyx_tax.database import get_session
from chronyx_tax.errors import PersistenceError
from chronyx_tax.models.schemas import (
    AuditRequest,
    AuditResponse,
    CalculateRequest,
    CalculationHistoryResponse,
    CompareRequest,
    ComparisonResult,
    DiscoverDeductionsRequest,
    DiscoveryResponse,
    FinancialYearSummary,
    FullCalculationRequest,
    FullCalculationResult,
    RecommendationResponse,
    RecommendRequest,
    RegimeSummary,
    SlabDefinition,
    TaxCalculationResult,
)
from chronyx_tax.services.audit_service import run_audit
from chronyx_tax.services.comparison_service import compare_regimes
from chronyx_tax.services.deduction_service import discover_deductions
from chronyx_tax.services.history_service import list_calculations, save_calculation
from chronyx_tax.services.income_service import full_calculation
from chronyx_tax.services.recommendation_service import build_recommendations, summarise
from chronyx_tax.services.rule_repository import REGIME_CODES, RuleRepository, active_repository
from chronyx_tax.services.tax_service import calculate

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1/tax",
    tags=["Tax"],
)


async def _save_quietly(user: CurrentUser, result: TaxCalculationResult) -> None:
    """Write *result* to the history; a failed save is only logged."""
    try:
        async with get_session() as session:
            await save_calculation(session, user.id, result)
    except (PersistenceError, SQLAlchemyError) as exc:
        logger.warning("Calculation for user %s not saved: %s", user.id, exc)


# ── 1. Single-regime calculation ─────────────────────────────────────────

@router.post(
    "/calculate",
    response_model=TaxCalculationResult,
    summary="Calculate income tax under one regime",
)
async def tax_calculate(
    body: CalculateRequest,
    user: CurrentUser = Depends(get_current_user),
    rules: RuleRepository = Depends(active_repository),
) -> TaxCalculationResult:
    """Apply the standard deduction, capped deductions, slab rates, the
    Section 87A rebate, surcharge and cess, and return the full breakdown.

    With ``save_calculation`` the result is also written to the user's
    history; a failed save is logged and does not affect the response.
    """
    logger.info(
        "Calculate request from %s: %s %s regime, gross=%.2f",
        user.id, body.financial_year, body.regime, body.gross_income,
    )
    result = calculate(rules, body.financial_year, body.regime, body.gross_income, body.deductions)

    if body.save_calculation:
        await _save_quietly(user, result)
    return result


# ── 2. Regime comparison ─────────────────────────────────────────────────

@router.post(
    "/compare",
    response_model=ComparisonResult,
    summary="Compare old and new regimes and recommend the cheaper one",
)
async def tax_compare(
    body: CompareRequest,
    user: CurrentUser = Depends(get_current_user),
    rules: RuleRepository = Depends(active_repository),
) -> ComparisonResult:
    """Compute both regimes on the same income and deductions.

    ``new`` is recommended only when it is strictly cheaper.
    """
    logger.info("Compare request from %s: %s gross=%.2f", user.id, body.financial_year, body.gross_income)
    return compare_regimes(rules, body.financial_year, body.gross_income, body.deductions)


# ── 3. Deduction discovery ───────────────────────────────────────────────

@router.post(
    "/discover-deductions",
    response_model=DiscoveryResponse,
    summary="Suggest deductions from insurance and loan records",
)
async def tax_discover_deductions(
    body: DiscoverDeductionsRequest,
    user: CurrentUser = Depends(get_current_user),
    rules: RuleRepository = Depends(active_repository),
) -> DiscoveryResponse:
    limits = rules.get_deduction_limits(body.financial_year)
    return discover_deductions(
        financial_year=body.financial_year,
        gross_income=body.gross_income,
        deduction_limits=limits,
        insurances=body.insurances,
        loans=body.loans,
    )


# ── 4. Recommendations ───────────────────────────────────────────────────

@router.post(
    "/recommend",
    response_model=RecommendationResponse,
    summary="Rule-based tax-saving recommendations",
)
async def tax_recommend(
    body: RecommendRequest,
    user: CurrentUser = Depends(get_current_user),
    rules: RuleRepository = Depends(active_repository),
) -> RecommendationResponse:
    rules.get_financial_year(body.financial_year)
    recommendations = build_recommendations(body)
    return RecommendationResponse(
        financial_year=body.financial_year,
        recommendations=recommendations,
        summary=summarise(recommendations),
    )


# ── 5. Filing audit ──────────────────────────────────────────────────────

@router.post(
    "/audit",
    response_model=AuditResponse,
    summary="Score filing readiness and flag risky claims",
)
async def tax_audit(
    body: AuditRequest,
    user: CurrentUser = Depends(get_current_user),
    rules: RuleRepository = Depends(active_repository),
) -> AuditResponse:
    limits = rules.get_deduction_limits(body.financial_year)
    return run_audit(body, limits)


# ── 6. Calculation from income sources ──────────────────────────────────

@router.post(
    "/full-calculation",
    response_model=FullCalculationResult,
    summary="Group income sources by head and calculate tax on the total",
)
async def tax_full_calculation(
    body: FullCalculationRequest,
    user: CurrentUser = Depends(get_current_user),
    rules: RuleRepository = Depends(active_repository),
) -> FullCalculationResult:
    """Sum the income sources by head into gross total income, calculate
    the chosen regime, and compare it with the other regime.
    """
    result = full_calculation(rules, body.financial_year, body.regime, body.incomes, body.deductions)
    if body.save_calculation:
        await _save_quietly(user, result.calculation)
    return result


# ── 7. History ───────────────────────────────────────────────────────────

@router.get(
    "/calculations",
    response_model=CalculationHistoryResponse,
    summary="List the caller's saved calculations, newest first",
)
async def tax_calculations(
    financial_year: Optional[str] = Query(None),
    limit: int = Query(settings.HISTORY_PAGE_LIMIT, ge=1, le=500),
    user: CurrentUser = Depends(get_current_user),
) -> CalculationHistoryResponse:
    async with get_session() as session:
        records = await list_calculations(session, user.id, financial_year, limit)
    return CalculationHistoryResponse(calculations=records)


# ── 8. Rule catalogue ────────────────────────────────────────────────────

@router.get(
    "/financial-years",
    response_model=List[FinancialYearSummary],
    summary="Active financial years with their regimes and deduction limits",
)
async def tax_financial_years(
    user: CurrentUser = Depends(get_current_user),
    rules: RuleRepository = Depends(active_repository),
) -> List[FinancialYearSummary]:
    years: list[FinancialYearSummary] = []
    for fy in rules.list_financial_years():
        regimes: list[RegimeSummary] = []
        for code in REGIME_CODES:
            resolved = rules.get_regime(fy.code, code)
            regime = resolved.regime
            regimes.append(
                RegimeSummary(
                    code=regime.code,
                    display_name=regime.display_name,
                    standard_deduction=regime.standard_deduction,
                    rebate_limit=regime.rebate_limit,
                    rebate_max=regime.rebate_max,
                    allows_deductions=regime.allows_deductions,
                    slabs=[
                        SlabDefinition(
                            slab_order=s.slab_order,
                            min_amount=s.min_amount,
                            max_amount=s.max_amount,
                            rate_percentage=s.rate_percentage,
                        )
                        for s in resolved.slabs
                    ],
                )
            )
        years.append(
            FinancialYearSummary(
                code=fy.code,
                display_name=fy.display_name,
                regimes=regimes,
                deduction_limits=rules.get_deduction_limits(fy.code),
            )
        )
    return years
