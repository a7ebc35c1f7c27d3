"""Tax calculation starting from individual income sources.

Sources are grouped under the income heads of the return, summed into
gross total income, and run through the single-regime calculator.  The
other regime is computed on the same figures so the result says whether
the chosen regime is optimal.
"""

from __future__ import annotations

import logging
from typing import Dict, Mapping, Optional, Sequence

from chronyx_tax.models.schemas import FullCalculationResult, IncomeHeads, IncomeSource
from chronyx_tax.services.rule_repository import RuleRepository
from chronyx_tax.services.tax_service import calculate

logger = logging.getLogger(__name__)

# income_type → IncomeHeads field; anything else is "other" income
INCOME_HEADS: Dict[str, str] = {
    "salary": "salary_income",
    "pension": "salary_income",
    "house_property": "house_property_income",
    "rental": "house_property_income",
    "business": "business_income",
    "freelance": "business_income",
    "capital_gains_stcg": "capital_gains_income",
    "capital_gains_ltcg": "capital_gains_income",
}


def group_incomes(incomes: Sequence[IncomeSource]) -> IncomeHeads:
    totals = {
        "salary_income": 0.0,
        "house_property_income": 0.0,
        "business_income": 0.0,
        "capital_gains_income": 0.0,
        "other_income": 0.0,
    }
    for income in incomes:
        head = INCOME_HEADS.get(income.income_type.strip().lower(), "other_income")
        totals[head] += income.gross_amount
    return IncomeHeads(**totals, gross_total_income=sum(totals.values()))


def full_calculation(
    repository: RuleRepository,
    financial_year: str,
    regime: str,
    incomes: Sequence[IncomeSource],
    deductions: Optional[Mapping[str, float]] = None,
) -> FullCalculationResult:
    heads = group_incomes(incomes)
    gross = heads.gross_total_income

    chosen = calculate(repository, financial_year, regime, gross, deductions)
    alternate_regime = "old" if regime == "new" else "new"
    alternate = calculate(repository, financial_year, alternate_regime, gross, deductions)

    logger.info(
        "Full calculation for %s: %d source(s), gross total %.2f, %s=%.2f %s=%.2f",
        financial_year, len(incomes), gross,
        regime, chosen.total_tax, alternate_regime, alternate.total_tax,
    )
    return FullCalculationResult(
        financial_year=financial_year,
        regime=regime,
        income=heads,
        calculation=chosen,
        alternate_regime=alternate_regime,
        alternate_regime_tax=alternate.total_tax,
        savings_vs_alternate=alternate.total_tax - chosen.total_tax,
        is_optimal=chosen.total_tax <= alternate.total_tax,
    )
