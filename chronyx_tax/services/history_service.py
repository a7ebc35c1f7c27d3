"""Append-only history of saved tax calculations."""

from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from chronyx_tax.errors import PersistenceError
from chronyx_tax.models.db_models import TaxCalculationRow
from chronyx_tax.models.schemas import CalculationRecord, TaxCalculationResult

logger = logging.getLogger(__name__)


async def save_calculation(
    session: Optional[AsyncSession],
    user_id: str,
    result: TaxCalculationResult,
) -> TaxCalculationRow:
    """Insert one immutable history row for *user_id*.

    Raises ``PersistenceError`` when the database is unavailable or the
    insert fails; callers treat this as non-fatal.
    """
    if session is None:
        raise PersistenceError("Database unavailable; calculation not saved")

    row = TaxCalculationRow(
        user_id=user_id,
        financial_year_code=result.financial_year,
        regime_code=result.regime,
        gross_income=result.gross_income,
        taxable_income=result.taxable_income,
        total_tax=result.total_tax,
        effective_rate=result.effective_rate,
        breakdown=result.model_dump(mode="json"),
    )
    try:
        session.add(row)
        await session.flush()
    except SQLAlchemyError as exc:
        raise PersistenceError(f"Failed to save calculation: {exc}") from exc

    logger.info("Saved %s regime calculation %s for user %s", result.regime, row.id, user_id)
    return row


async def list_calculations(
    session: Optional[AsyncSession],
    user_id: str,
    financial_year: Optional[str] = None,
    limit: int = 50,
) -> List[CalculationRecord]:
    """Return *user_id*'s saved calculations, newest first."""
    if session is None:
        return []

    stmt = select(TaxCalculationRow).where(TaxCalculationRow.user_id == user_id)
    if financial_year:
        stmt = stmt.where(TaxCalculationRow.financial_year_code == financial_year)
    stmt = stmt.order_by(TaxCalculationRow.created_at.desc(), TaxCalculationRow.id.desc()).limit(limit)

    rows = (await session.execute(stmt)).scalars().all()
    return [
        CalculationRecord(
            id=row.id,
            financial_year=row.financial_year_code,
            regime=row.regime_code,
            gross_income=row.gross_income,
            taxable_income=row.taxable_income,
            total_tax=row.total_tax,
            effective_rate=row.effective_rate,
            breakdown=TaxCalculationResult.model_validate(row.breakdown),
            created_at=row.created_at,
        )
        for row in rows
    ]
