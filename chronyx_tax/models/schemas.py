"""Pydantic request / response schemas for all API endpoints.

Field names follow the JSON contract consumed by the CHRONYX front end
(snake_case throughout, ``rebate_87a`` for the Section 87A rebate).
"""

from __future__ import annotations
from datetime import datetime
from typing import Annotated, Dict, List, Literal, Optional
from pydantic import BaseModel, Field

RegimeCode = Literal["old", "new"]

# Monetary input: NaN and infinity are rejected at the boundary
Amount = Annotated[float, Field(allow_inf_nan=False)]


# ── 1. Single calculation  (/tax/calculate) ──────────────────────────────

class CalculateRequest(BaseModel):
    financial_year: str = Field(..., min_length=1, description="Financial year code, e.g. FY2025_26")
    regime: RegimeCode = Field(..., description="Tax regime: 'old' or 'new'")
    gross_income: float = Field(..., ge=0, allow_inf_nan=False, description="Annual gross income in INR")
    deductions: Dict[str, Amount] = Field(
        default_factory=dict,
        description="Claimed amount per deduction section code, e.g. {'80C': 150000}",
    )
    save_calculation: bool = Field(False, description="Persist the result to the history table")


class SlabBreakdown(BaseModel):
    """Tax levied within one progressive bracket."""
    slab_order: int
    min_amount: float
    max_amount: Optional[float] = Field(None, description="Exclusive upper bound; null for the last slab")
    rate_percentage: float
    taxable_in_slab: float
    tax_in_slab: float


class TaxCalculationResult(BaseModel):
    """Full, auditable breakdown of the tax payable under one regime."""
    financial_year: str
    regime: RegimeCode
    display_name: str = ""
    gross_income: float
    standard_deduction: float
    total_deductions: float = Field(..., description="Sum of capped deductions (excludes standard deduction)")
    deductions_breakdown: Dict[str, float] = Field(default_factory=dict)
    taxable_income: float
    slab_breakdown: List[SlabBreakdown]
    tax_before_rebate: float
    rebate_87a: float
    tax_after_rebate: float
    surcharge: float
    cess: float
    total_tax: float
    effective_rate: float = Field(..., description="total_tax / gross_income as a percentage (2 dp)")


# ── 2. Regime comparison  (/tax/compare) ─────────────────────────────────

class CompareRequest(BaseModel):
    financial_year: str = Field(..., min_length=1)
    gross_income: float = Field(..., ge=0, allow_inf_nan=False)
    deductions: Dict[str, Amount] = Field(default_factory=dict)


class ComparisonResult(BaseModel):
    financial_year: str
    gross_income: float
    old_regime: TaxCalculationResult
    new_regime: TaxCalculationResult
    recommended_regime: RegimeCode
    savings_amount: float
    savings_percentage: float


# ── 3. Deduction discovery  (/tax/discover-deductions) ───────────────────

class InsuranceRecord(BaseModel):
    """An insurance policy as stored by the insurance tracker."""
    id: Optional[str] = None
    policy_type: str = Field(..., description="Health, Life, Term, Motor, ...")
    premium_amount: float = Field(..., ge=0, allow_inf_nan=False, description="Annual premium in INR")
    status: str = "active"


class LoanRecord(BaseModel):
    """A loan as stored by the loan tracker."""
    id: Optional[str] = None
    loan_type: Optional[str] = Field(None, description="Home Loan, Education Loan, ...")
    principal_amount: float = Field(0, ge=0, allow_inf_nan=False)
    interest_rate: float = Field(0, ge=0, allow_inf_nan=False, description="Annual interest rate in percent")
    emi_amount: float = Field(0, ge=0, allow_inf_nan=False)
    status: str = "active"


class DiscoverDeductionsRequest(BaseModel):
    financial_year: str = Field(..., min_length=1)
    gross_income: float = Field(0, ge=0, allow_inf_nan=False)
    insurances: List[InsuranceRecord] = Field(default_factory=list)
    loans: List[LoanRecord] = Field(default_factory=list)


class DiscoveredDeduction(BaseModel):
    section_code: str
    description: str
    claimed_amount: float
    max_limit: Optional[float] = None
    source_type: Literal["insurance", "loan"]
    source_ids: List[str] = Field(default_factory=list)
    confidence_score: float = Field(..., ge=0, le=1)
    is_auto_detected: bool = True
    savings_impact: float = Field(..., description="Estimated tax saved at the marginal bracket")


class DeductionSuggestion(BaseModel):
    section_code: str
    title: str
    description: str
    options: List[str] = Field(default_factory=list)
    potential_savings: float


class DiscoverySummary(BaseModel):
    discovered_count: int
    total_deductions: float
    total_tax_savings: float
    sections_covered: List[str]
    suggestions_count: int


class DiscoveryResponse(BaseModel):
    financial_year: str
    deductions: List[DiscoveredDeduction]
    suggestions: List[DeductionSuggestion]
    summary: DiscoverySummary


# ── 4. Recommendations  (/tax/recommend) ─────────────────────────────────

class IncomeSource(BaseModel):
    income_type: str = Field(..., description="salary, rental, business, capital_gains_ltcg, ...")
    gross_amount: float = Field(0, ge=0, allow_inf_nan=False)
    user_confirmed: bool = Field(False, description="The user has reviewed this income")
    document_url: Optional[str] = Field(None, description="Supporting document, e.g. Form-16")


class RecommendRequest(BaseModel):
    financial_year: str = Field(..., min_length=1)
    gross_income: float = Field(0, ge=0, allow_inf_nan=False)
    regime: RegimeCode = "new"
    old_regime_tax: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    new_regime_tax: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    deductions: Dict[str, Amount] = Field(default_factory=dict)
    incomes: List[IncomeSource] = Field(default_factory=list)


Priority = Literal["critical", "high", "medium", "low"]


class Recommendation(BaseModel):
    type: Literal["mandatory", "optimization", "risk_alert", "planning"]
    category: str
    priority: Priority
    title: str
    description: str
    reason: str
    impact_amount: float = 0.0
    impact_description: str = ""
    confidence: Literal["high", "medium", "low"] = "high"
    action_required: bool = False
    action_type: Optional[str] = None
    action_label: Optional[str] = None


class RecommendationSummary(BaseModel):
    total: int
    by_type: Dict[str, int]
    action_required: int
    total_potential_savings: float


class RecommendationResponse(BaseModel):
    financial_year: str
    recommendations: List[Recommendation]
    summary: RecommendationSummary


# ── 5. History  (/tax/calculations) ──────────────────────────────────────

class CalculationRecord(BaseModel):
    id: int
    financial_year: str
    regime: RegimeCode
    gross_income: float
    taxable_income: float
    total_tax: float
    effective_rate: float
    breakdown: TaxCalculationResult
    created_at: Optional[datetime] = None


class CalculationHistoryResponse(BaseModel):
    calculations: List[CalculationRecord]


# ── 6. Rule catalogue  (/tax/financial-years) ────────────────────────────

class SlabDefinition(BaseModel):
    slab_order: int
    min_amount: float
    max_amount: Optional[float] = None
    rate_percentage: float


class RegimeSummary(BaseModel):
    code: RegimeCode
    display_name: str
    standard_deduction: float
    rebate_limit: float
    rebate_max: float
    allows_deductions: bool
    slabs: List[SlabDefinition]


class FinancialYearSummary(BaseModel):
    code: str
    display_name: str
    regimes: List[RegimeSummary]
    deduction_limits: Dict[str, Optional[float]] = Field(
        default_factory=dict,
        description="Maximum claimable amount per section; null means uncapped",
    )


# ── 7. Filing audit  (/tax/audit) ────────────────────────────────────────

class AuditRequest(BaseModel):
    financial_year: str = Field(..., min_length=1)
    regime: RegimeCode = "new"
    gross_income: float = Field(0, ge=0, allow_inf_nan=False)
    deductions: Dict[str, Amount] = Field(default_factory=dict)
    incomes: List[IncomeSource] = Field(default_factory=list)


FlagType = Literal[
    "missing_document", "limit_exceeded", "mismatch", "high_risk", "compliance", "verification_needed",
]
Severity = Literal["critical", "error", "warning", "info"]


class AuditFlag(BaseModel):
    flag_type: FlagType
    severity: Severity
    title: str
    description: str
    affected_section: Optional[str] = None
    affected_amount: Optional[float] = None
    resolution_required: bool = False
    resolution_action: Optional[str] = None


class AuditSummary(BaseModel):
    total_flags: int
    critical: int
    errors: int
    warnings: int
    info: int
    resolution_required: int


class AuditResponse(BaseModel):
    financial_year: str
    audit_score: int = Field(..., ge=0, le=100)
    readiness_level: Literal["excellent", "good", "needs_attention", "critical"]
    flags: List[AuditFlag]
    summary: AuditSummary


# ── 8. Full calculation from income sources  (/tax/full-calculation) ─────

class FullCalculationRequest(BaseModel):
    financial_year: str = Field(..., min_length=1)
    regime: RegimeCode = "new"
    incomes: List[IncomeSource] = Field(default_factory=list)
    deductions: Dict[str, Amount] = Field(default_factory=dict)
    save_calculation: bool = False


class IncomeHeads(BaseModel):
    """Income grouped by head; the heads add up to gross total income."""
    salary_income: float = 0.0
    house_property_income: float = 0.0
    business_income: float = 0.0
    capital_gains_income: float = 0.0
    other_income: float = 0.0
    gross_total_income: float = 0.0


class FullCalculationResult(BaseModel):
    financial_year: str
    regime: RegimeCode
    income: IncomeHeads
    calculation: TaxCalculationResult
    alternate_regime: RegimeCode
    alternate_regime_tax: float
    savings_vs_alternate: float = Field(..., description="Alternate regime tax minus this regime's tax")
    is_optimal: bool
