"""Old-vs-new regime comparison.

Both regimes are computed from the same gross income and claimed
deductions; the new regime ignores the deductions on its own.  The
recommendation depends on total tax payable only, and a tie keeps the
old regime.
"""

from __future__ import annotations

import logging
from typing import Mapping, Optional

from chronyx_tax.models.schemas import ComparisonResult, TaxCalculationResult
from chronyx_tax.services.rule_repository import RuleRepository
from chronyx_tax.services.tax_service import calculate
from chronyx_tax.utils.helpers import percentage_of

logger = logging.getLogger(__name__)


def recommend(old: TaxCalculationResult, new: TaxCalculationResult, gross_income: float) -> dict:
    """Pick the regime with the lower total tax.

    ``new`` is recommended only when it is strictly cheaper.
    """
    savings = old.total_tax - new.total_tax
    savings_amount = abs(savings)
    return {
        "recommended_regime": "new" if savings > 0 else "old",
        "savings_amount": savings_amount,
        "savings_percentage": percentage_of(savings_amount, gross_income),
    }


def compare_regimes(
    repository: RuleRepository,
    financial_year: str,
    gross_income: float,
    deductions: Optional[Mapping[str, float]] = None,
) -> ComparisonResult:
    old = calculate(repository, financial_year, "old", gross_income, deductions)
    new = calculate(repository, financial_year, "new", gross_income, deductions)
    outcome = recommend(old, new, gross_income)

    logger.info(
        "Compared regimes for %s: old=%.2f new=%.2f → %s (saves %.2f)",
        financial_year, old.total_tax, new.total_tax,
        outcome["recommended_regime"], outcome["savings_amount"],
    )
    return ComparisonResult(
        financial_year=financial_year,
        gross_income=gross_income,
        old_regime=old,
        new_regime=new,
        **outcome,
    )
