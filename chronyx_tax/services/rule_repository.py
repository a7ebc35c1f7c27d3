"""Read-only access to tax rules: financial years, regimes, slabs, and
deduction limits.

The calculator never talks to a datastore directly; it receives a
``RuleRepository``.  Two sources are provided:

* ``InMemoryRuleRepository``: built from plain dicts.  ``default_repository()``
  ships the FY2025_26 / FY2026_27 tables.
* ``load_rules_from_db(session)``: reads the rule tables and returns an
  in-memory snapshot, so lookups stay synchronous.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from chronyx_tax.errors import ConfigurationError, InvalidInputError, NotFoundError
from chronyx_tax.models.db_models import (
    DeductionRuleRow,
    FinancialYearRow,
    RegimeRow,
    TaxSlabRow,
)

logger = logging.getLogger(__name__)

REGIME_CODES: Tuple[str, str] = ("old", "new")


@dataclass(frozen=True)
class FinancialYear:
    code: str
    display_name: str
    is_active: bool = True


@dataclass(frozen=True)
class Regime:
    code: str
    display_name: str
    standard_deduction: float
    rebate_limit: float
    rebate_max: float
    allows_deductions: bool
    financial_year_code: str


@dataclass(frozen=True)
class TaxSlab:
    slab_order: int
    min_amount: float
    max_amount: Optional[float]
    rate_percentage: float


@dataclass(frozen=True)
class RegimeRules:
    """A regime together with its slabs, sorted by ``slab_order``."""
    regime: Regime
    slabs: Tuple[TaxSlab, ...]


def validate_slabs(regime: Regime, slabs: Iterable[TaxSlab]) -> Tuple[TaxSlab, ...]:
    """Sort slabs and check they form one contiguous, open-ended ladder.

    Raises ``ConfigurationError`` when the list is empty, a slab does not
    start where the previous one ended, or the last slab is capped.
    """
    ordered = tuple(sorted(slabs, key=lambda s: s.slab_order))
    label = f"{regime.code} regime in {regime.financial_year_code}"
    if not ordered:
        raise ConfigurationError(f"Tax slabs not configured for {label}")

    expected_min = ordered[0].min_amount
    for slab in ordered:
        if slab.min_amount != expected_min:
            raise ConfigurationError(
                f"Slab {slab.slab_order} of {label} starts at {slab.min_amount}, "
                f"expected {expected_min}"
            )
        if slab.rate_percentage < 0:
            raise ConfigurationError(f"Slab {slab.slab_order} of {label} has a negative rate")
        if slab.max_amount is None:
            if slab is not ordered[-1]:
                raise ConfigurationError(
                    f"Slab {slab.slab_order} of {label} is unbounded but is not the last slab"
                )
            break
        if slab.max_amount <= slab.min_amount:
            raise ConfigurationError(f"Slab {slab.slab_order} of {label} has an empty range")
        expected_min = slab.max_amount
    else:
        raise ConfigurationError(f"Last slab of {label} must have no upper bound")

    return ordered


class RuleRepository(ABC):
    """Synchronous, side-effect-free lookups over tax rules."""

    @abstractmethod
    def get_financial_year(self, code: str) -> FinancialYear:
        """Return the active financial year *code* or raise ``NotFoundError``."""

    @abstractmethod
    def get_regime(self, financial_year_code: str, regime_code: str) -> RegimeRules:
        """Return the regime with its ordered slabs."""

    @abstractmethod
    def get_deduction_limits(self, financial_year_code: str) -> Dict[str, Optional[float]]:
        """Return ``{section_code: max_limit}``; ``None`` means uncapped."""

    @abstractmethod
    def list_financial_years(self) -> List[FinancialYear]:
        """All active financial years, sorted by code."""


class InMemoryRuleRepository(RuleRepository):
    """Rule repository backed by dictionaries.

    *years* maps a financial-year code to a dict with ``display_name``,
    optional ``is_active``, ``regimes`` (``{"old": {...}, "new": {...}}``) and
    ``deduction_limits``.  Each regime dict holds ``display_name``,
    ``standard_deduction``, ``rebate_limit``, ``rebate_max``,
    ``allows_deductions`` and ``slabs`` as ``(min, max, rate)`` tuples or
    ``TaxSlab`` objects.
    """

    def __init__(self, years: Mapping[str, Mapping]) -> None:
        self._years: Dict[str, FinancialYear] = {}
        self._regimes: Dict[Tuple[str, str], Regime] = {}
        self._slabs: Dict[Tuple[str, str], Tuple[TaxSlab, ...]] = {}
        self._limits: Dict[str, Dict[str, Optional[float]]] = {}

        for fy_code, fy in years.items():
            self._years[fy_code] = FinancialYear(
                code=fy_code,
                display_name=fy.get("display_name", fy_code),
                is_active=fy.get("is_active", True),
            )
            self._limits[fy_code] = dict(fy.get("deduction_limits", {}))
            for regime_code, table in fy.get("regimes", {}).items():
                self._regimes[(fy_code, regime_code)] = Regime(
                    code=regime_code,
                    display_name=table.get("display_name", regime_code),
                    standard_deduction=float(table.get("standard_deduction", 0)),
                    rebate_limit=float(table.get("rebate_limit", 0)),
                    rebate_max=float(table.get("rebate_max", 0)),
                    allows_deductions=bool(table.get("allows_deductions", False)),
                    financial_year_code=fy_code,
                )
                self._slabs[(fy_code, regime_code)] = tuple(
                    _as_slab(order, raw) for order, raw in enumerate(table.get("slabs", ()), start=1)
                )

    def get_financial_year(self, code: str) -> FinancialYear:
        fy = self._years.get(code)
        if fy is None or not fy.is_active:
            raise NotFoundError(f"Financial year {code} not found or inactive")
        return fy

    def get_regime(self, financial_year_code: str, regime_code: str) -> RegimeRules:
        if regime_code not in REGIME_CODES:
            raise InvalidInputError(f"Regime must be 'old' or 'new', got {regime_code!r}")
        self.get_financial_year(financial_year_code)

        regime = self._regimes.get((financial_year_code, regime_code))
        if regime is None:
            raise NotFoundError(
                f"Tax rules not configured for {regime_code} regime in {financial_year_code}"
            )
        slabs = validate_slabs(regime, self._slabs.get((financial_year_code, regime_code), ()))
        return RegimeRules(regime=regime, slabs=slabs)

    def get_deduction_limits(self, financial_year_code: str) -> Dict[str, Optional[float]]:
        self.get_financial_year(financial_year_code)
        limits = self._limits.get(financial_year_code, {})
        for section, limit in limits.items():
            if limit is not None and limit < 0:
                raise ConfigurationError(
                    f"Deduction limit for {section} in {financial_year_code} is negative"
                )
        return dict(limits)

    def list_financial_years(self) -> List[FinancialYear]:
        return sorted(
            (fy for fy in self._years.values() if fy.is_active),
            key=lambda fy: fy.code,
        )


def _as_slab(order: int, raw) -> TaxSlab:
    if isinstance(raw, TaxSlab):
        return raw
    min_amount, max_amount, rate = raw
    return TaxSlab(
        slab_order=order,
        min_amount=float(min_amount),
        max_amount=None if max_amount is None else float(max_amount),
        rate_percentage=float(rate),
    )


# ── Built-in rule tables ─────────────────────────────────────────────────

_NEW_REGIME = {
    "display_name": "New Tax Regime",
    "standard_deduction": 75_000,
    "allows_deductions": False,
    "rebate_limit": 700_000,
    "rebate_max": 25_000,
    "slabs": [
        (0, 300_000, 0),
        (300_000, 700_000, 5),
        (700_000, 1_000_000, 10),
        (1_000_000, 1_200_000, 15),
        (1_200_000, 1_500_000, 20),
        (1_500_000, None, 30),
    ],
}

_OLD_REGIME = {
    "display_name": "Old Tax Regime",
    "standard_deduction": 50_000,
    "allows_deductions": True,
    "rebate_limit": 500_000,
    "rebate_max": 12_500,
    "slabs": [
        (0, 250_000, 0),
        (250_000, 500_000, 5),
        (500_000, 1_000_000, 20),
        (1_000_000, None, 30),
    ],
}

_DEDUCTION_LIMITS: Dict[str, Optional[float]] = {
    "80C": 150_000,
    "80CCC": 150_000,
    "80CCD": 200_000,
    "80D": 75_000,
    "80E": None,
    "80G": None,
    "80TTA": 10_000,
    "80TTB": 50_000,
    "HRA": None,
    "LTA": None,
}

DEFAULT_RULES: Dict[str, dict] = {
    "FY2025_26": {
        "display_name": "FY 2025-26",
        "regimes": {"new": _NEW_REGIME, "old": _OLD_REGIME},
        "deduction_limits": _DEDUCTION_LIMITS,
    },
    "FY2026_27": {
        "display_name": "FY 2026-27",
        "regimes": {"new": _NEW_REGIME, "old": _OLD_REGIME},
        "deduction_limits": _DEDUCTION_LIMITS,
    },
}


def default_repository() -> InMemoryRuleRepository:
    return InMemoryRuleRepository(DEFAULT_RULES)


# ── Database-backed source ───────────────────────────────────────────────

async def load_rules_from_db(session: AsyncSession) -> InMemoryRuleRepository:
    """Snapshot every rule table into an ``InMemoryRuleRepository``.

    Inactive years are carried over (and rejected on lookup) so that the
    snapshot mirrors the tables exactly.
    """
    result = await session.execute(
        select(FinancialYearRow).options(
            selectinload(FinancialYearRow.regimes).selectinload(RegimeRow.slabs),
            selectinload(FinancialYearRow.deductions),
        )
    )
    years: Dict[str, dict] = {}
    for fy in result.scalars().all():
        years[fy.code] = {
            "display_name": fy.display_name,
            "is_active": fy.is_active,
            "deduction_limits": {d.section_code: d.max_limit for d in fy.deductions},
            "regimes": {
                r.code: {
                    "display_name": r.display_name,
                    "standard_deduction": r.standard_deduction,
                    "rebate_limit": r.rebate_limit,
                    "rebate_max": r.rebate_max,
                    "allows_deductions": r.allows_deductions,
                    "slabs": [
                        TaxSlab(
                            slab_order=s.slab_order,
                            min_amount=s.min_amount,
                            max_amount=s.max_amount,
                            rate_percentage=s.rate_percentage,
                        )
                        for s in r.slabs
                    ],
                }
                for r in fy.regimes
            },
        }
    logger.info("Loaded tax rules for %d financial year(s) from the database.", len(years))
    return InMemoryRuleRepository(years)


async def seed_default_rules(session: AsyncSession) -> bool:
    """Insert ``DEFAULT_RULES`` when the rule tables are empty.

    Returns ``True`` if rows were written.
    """
    existing = await session.scalar(select(func.count()).select_from(FinancialYearRow))
    if existing:
        return False

    for fy_code, fy in DEFAULT_RULES.items():
        fy_row = FinancialYearRow(code=fy_code, display_name=fy["display_name"], is_active=True)
        session.add(fy_row)
        for section, limit in fy["deduction_limits"].items():
            fy_row.deductions.append(DeductionRuleRow(section_code=section, max_limit=limit))
        for regime_code, table in fy["regimes"].items():
            regime_row = RegimeRow(
                code=regime_code,
                display_name=table["display_name"],
                standard_deduction=table["standard_deduction"],
                rebate_limit=table["rebate_limit"],
                rebate_max=table["rebate_max"],
                allows_deductions=table["allows_deductions"],
            )
            fy_row.regimes.append(regime_row)
            for order, (lo, hi, rate) in enumerate(table["slabs"], start=1):
                regime_row.slabs.append(
                    TaxSlabRow(slab_order=order, min_amount=lo, max_amount=hi, rate_percentage=rate)
                )
    await session.flush()
    logger.info("Seeded default tax rules for %s.", ", ".join(DEFAULT_RULES))
    return True


# ── Active repository ────────────────────────────────────────────────────

_active_repository: RuleRepository = default_repository()


def active_repository() -> RuleRepository:
    """FastAPI dependency returning the repository chosen at startup."""
    return _active_repository


def use_repository(repository: RuleRepository) -> None:
    global _active_repository
    _active_repository = repository


async def configure_rule_source() -> RuleRepository:
    """Select the rule source named by ``settings.RULES_SOURCE``.

    ``database`` snapshots the rule tables; when PostgreSQL is unreachable
    the built-in tables stay in use.
    """
    from chronyx_tax.config import settings
    from chronyx_tax.database import get_session

    source = settings.RULES_SOURCE.lower()
    if source == "database":
        async with get_session() as session:
            if session is not None:
                use_repository(await load_rules_from_db(session))
                return _active_repository
        logger.warning("RULES_SOURCE=database but PostgreSQL is unavailable; using built-in rules.")
    elif source != "memory":
        logger.warning("Unknown RULES_SOURCE %r; using built-in rules.", settings.RULES_SOURCE)

    use_repository(default_repository())
    return _active_repository
