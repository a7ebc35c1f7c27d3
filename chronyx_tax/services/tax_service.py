"""Indian income-tax calculation for a single regime.

Pipeline (whole-rupee rounding, ties away from zero):

    1. income after standard deduction = max(0, gross − standard deduction)
    2. capped deductions               (only when the regime allows them)
    3. taxable income                  = max(0, step 1 − step 2)
    4. slab walk                       → per-slab tax (rounded for display),
                                          tax before rebate (exact sum, rounded once)
    5. Section 87A rebate              when taxable income ≤ rebate limit
    6. surcharge                       banded on taxable income
    7. health & education cess         4 % of (tax after rebate + surcharge)
    8. total tax
    9. effective rate                  total tax / gross income, 2 dp
"""

from __future__ import annotations

import logging
import math
from typing import Dict, List, Mapping, Optional, Tuple

from chronyx_tax.config import settings
from chronyx_tax.errors import InvalidInputError
from chronyx_tax.models.schemas import SlabBreakdown, TaxCalculationResult
from chronyx_tax.services.rule_repository import RegimeRules, RuleRepository, TaxSlab
from chronyx_tax.utils.helpers import band_rate, percentage_of, round_rupee

logger = logging.getLogger(__name__)


def check_inputs(gross_income: float, deductions: Optional[Mapping[str, float]] = None) -> None:
    """Reject negative or non-finite income and non-finite deduction claims."""
    if gross_income is None or not math.isfinite(gross_income):
        raise InvalidInputError("Gross income must be a finite number")
    if gross_income < 0:
        raise InvalidInputError("Gross income cannot be negative")
    for section, amount in (deductions or {}).items():
        if amount is not None and not math.isfinite(amount):
            raise InvalidInputError(f"Deduction claim for {section} must be a finite number")


def apply_deductions(
    claimed: Mapping[str, float],
    limits: Mapping[str, Optional[float]],
) -> Tuple[float, Dict[str, float]]:
    """Cap each positive claim at its section limit.

    Sections without a configured limit, or with a ``None`` limit, are
    applied in full.  Non-positive claims are skipped.

    Returns ``(total_applied, {section: applied})``.
    """
    applied: Dict[str, float] = {}
    total = 0.0
    for section, amount in claimed.items():
        if amount is None or amount <= 0:
            continue
        limit = limits.get(section)
        allowed = min(amount, limit) if limit is not None else amount
        applied[section] = allowed
        total += allowed
    return total, applied


def walk_slabs(taxable_income: float, slabs: Tuple[TaxSlab, ...]) -> Tuple[float, List[SlabBreakdown]]:
    """Consume *taxable_income* through *slabs* in ascending order.

    Every slab appears in the breakdown, untouched ones with zero amounts.
    Each row shows its tax rounded to the rupee; the total is the exact sum
    of the slab taxes rounded once.

    Returns ``(tax_before_rebate, breakdown)``.
    """
    breakdown: list[SlabBreakdown] = []
    total = 0.0
    remaining = taxable_income

    for slab in slabs:
        if remaining <= 0:
            taxable_in_slab = 0.0
            exact = 0.0
        else:
            if slab.max_amount is None:
                width = remaining
            else:
                width = slab.max_amount - slab.min_amount
            taxable_in_slab = min(remaining, width)
            exact = taxable_in_slab * slab.rate_percentage / 100
            remaining -= taxable_in_slab

        total += exact
        breakdown.append(
            SlabBreakdown(
                slab_order=slab.slab_order,
                min_amount=slab.min_amount,
                max_amount=slab.max_amount,
                rate_percentage=slab.rate_percentage,
                taxable_in_slab=taxable_in_slab,
                tax_in_slab=round_rupee(exact),
            )
        )

    return round_rupee(total), breakdown


def calculate_rebate(taxable_income: float, tax_before_rebate: float, rules: RegimeRules) -> float:
    """Section 87A: waive up to ``rebate_max`` when income is within the limit."""
    regime = rules.regime
    if taxable_income <= regime.rebate_limit and tax_before_rebate > 0:
        return min(tax_before_rebate, regime.rebate_max)
    return 0.0


def calculate_surcharge(taxable_income: float, tax_after_rebate: float) -> float:
    """Surcharge on tax, banded by taxable income (> 50 L, 1 Cr, 2 Cr, 5 Cr)."""
    rate = band_rate(taxable_income, settings.SURCHARGE_BANDS)
    return round_rupee(tax_after_rebate * rate)


def calculate_tax(
    financial_year: str,
    gross_income: float,
    rules: RegimeRules,
    deduction_limits: Mapping[str, Optional[float]],
    deductions: Optional[Mapping[str, float]] = None,
) -> TaxCalculationResult:
    """Compute the full tax breakdown for one regime.

    Pure: identical inputs always give an identical result.

    Raises
    ------
    InvalidInputError
        If *gross_income* is negative or not finite, or a deduction claim
        is not finite.
    """
    check_inputs(gross_income, deductions)

    regime = rules.regime

    # 1. Standard deduction
    income_after_std = max(0.0, gross_income - regime.standard_deduction)

    # 2. Chapter VI-A deductions
    if regime.allows_deductions:
        total_deductions, applied = apply_deductions(deductions or {}, deduction_limits)
    else:
        total_deductions, applied = 0.0, {}

    # 3. Taxable income
    taxable_income = max(0.0, income_after_std - total_deductions)

    # 4. Slabs
    tax_before_rebate, breakdown = walk_slabs(taxable_income, rules.slabs)

    # 5. Rebate
    rebate = calculate_rebate(taxable_income, tax_before_rebate, rules)
    tax_after_rebate = max(0.0, tax_before_rebate - rebate)

    # 6–8. Surcharge, cess, total
    surcharge = calculate_surcharge(taxable_income, tax_after_rebate)
    cess = round_rupee((tax_after_rebate + surcharge) * settings.CESS_RATE)
    total_tax = tax_after_rebate + surcharge + cess

    # 9. Effective rate
    effective_rate = percentage_of(total_tax, gross_income)

    return TaxCalculationResult(
        financial_year=financial_year,
        regime=regime.code,
        display_name=regime.display_name,
        gross_income=gross_income,
        standard_deduction=regime.standard_deduction,
        total_deductions=total_deductions,
        deductions_breakdown=applied,
        taxable_income=taxable_income,
        slab_breakdown=breakdown,
        tax_before_rebate=tax_before_rebate,
        rebate_87a=rebate,
        tax_after_rebate=tax_after_rebate,
        surcharge=surcharge,
        cess=cess,
        total_tax=total_tax,
        effective_rate=effective_rate,
    )


def calculate(
    repository: RuleRepository,
    financial_year: str,
    regime: str,
    gross_income: float,
    deductions: Optional[Mapping[str, float]] = None,
) -> TaxCalculationResult:
    """Resolve the rules for *financial_year* / *regime* and run the calculator.

    Input is validated before any lookup so negative or non-finite
    amounts never reach the rule store.
    """
    check_inputs(gross_income, deductions)

    rules = repository.get_regime(financial_year, regime)
    limits = repository.get_deduction_limits(financial_year) if rules.regime.allows_deductions else {}

    result = calculate_tax(financial_year, gross_income, rules, limits, deductions)
    logger.info(
        "Calculated %s regime tax for %s: gross=%.2f taxable=%.2f total=%.2f",
        regime, financial_year, gross_income, result.taxable_income, result.total_tax,
    )
    return result
