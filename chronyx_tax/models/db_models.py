"""SQLAlchemy ORM models for PostgreSQL persistence.

Rule tables (read-only at request time):
    tax_financial_years → tax_regimes → tax_slabs
    tax_financial_years → tax_deductions

History table (append-only):
    tax_calculations
"""

from __future__ import annotations
from datetime import datetime
from typing import List
from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass

class FinancialYearRow(Base):
    __tablename__ = "tax_financial_years"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(16), nullable=False, unique=True)
    display_name: Mapped[str] = mapped_column(String(64), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    regimes: Mapped[List["RegimeRow"]] = relationship(back_populates="financial_year")
    deductions: Mapped[List["DeductionRuleRow"]] = relationship(back_populates="financial_year")


class RegimeRow(Base):
    __tablename__ = "tax_regimes"
    __table_args__ = (UniqueConstraint("financial_year_id", "code", name="uq_regime_per_year"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    financial_year_id: Mapped[int] = mapped_column(
        ForeignKey("tax_financial_years.id"), nullable=False
    )
    code: Mapped[str] = mapped_column(String(3), nullable=False)
    display_name: Mapped[str] = mapped_column(String(64), nullable=False)
    standard_deduction: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    rebate_limit: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    rebate_max: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    allows_deductions: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    financial_year: Mapped[FinancialYearRow] = relationship(back_populates="regimes")
    slabs: Mapped[List["TaxSlabRow"]] = relationship(
        back_populates="regime", order_by="TaxSlabRow.slab_order"
    )


class TaxSlabRow(Base):
    __tablename__ = "tax_slabs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    regime_id: Mapped[int] = mapped_column(ForeignKey("tax_regimes.id"), nullable=False)
    slab_order: Mapped[int] = mapped_column(Integer, nullable=False)
    min_amount: Mapped[float] = mapped_column(Float, nullable=False)
    max_amount: Mapped[float | None] = mapped_column(Float, nullable=True)
    rate_percentage: Mapped[float] = mapped_column(Float, nullable=False)

    regime: Mapped[RegimeRow] = relationship(back_populates="slabs")


class DeductionRuleRow(Base):
    __tablename__ = "tax_deductions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    financial_year_id: Mapped[int] = mapped_column(
        ForeignKey("tax_financial_years.id"), nullable=False
    )
    section_code: Mapped[str] = mapped_column(String(16), nullable=False)
    max_limit: Mapped[float | None] = mapped_column(Float, nullable=True)

    financial_year: Mapped[FinancialYearRow] = relationship(back_populates="deductions")


class TaxCalculationRow(Base):
    """One saved calculation. Rows are inserted once and never updated."""

    __tablename__ = "tax_calculations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    financial_year_code: Mapped[str] = mapped_column(
        ForeignKey("tax_financial_years.code"), nullable=False
    )
    regime_code: Mapped[str] = mapped_column(String(3), nullable=False)
    gross_income: Mapped[float] = mapped_column(Float, nullable=False)
    taxable_income: Mapped[float] = mapped_column(Float, nullable=False)
    total_tax: Mapped[float] = mapped_column(Float, nullable=False)
    effective_rate: Mapped[float] = mapped_column(Float, nullable=False)
    breakdown: Mapped[dict] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
