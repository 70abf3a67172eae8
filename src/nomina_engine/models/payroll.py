"""Payroll period, prenomina and calculation models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Date,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from nomina_engine.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from nomina_engine.models.employee import Employee

ZERO = Decimal("0")


# ===== Periods =====


class PayrollPeriod(Base, TimestampMixin):
    """Payroll period.

    ``status`` moves strictly forward (open -> calculated -> approved -> paid)
    and is only written through PeriodService, which bumps ``version`` on
    every transition.
    """

    __tablename__ = "payroll_period"

    payroll_period_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    period_code: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    period_number: Mapped[int] = mapped_column(Integer, nullable=False)
    frequency: Mapped[str] = mapped_column(String, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="open")
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Running totals over stored calculations
    total_gross: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    total_deductions: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    total_net: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    total_employer_contributions: Mapped[Decimal] = mapped_column(
        nullable=False, default=ZERO
    )

    calculated_at: Mapped[datetime | None] = mapped_column(nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(nullable=True)

    __table_args__ = (
        UniqueConstraint("year", "frequency", "period_number", name="payroll_period_number_unique"),
        CheckConstraint(
            "frequency IN ('weekly', 'biweekly', 'monthly')",
            name="payroll_period_frequency_check",
        ),
        CheckConstraint(
            "status IN ('open', 'calculated', 'approved', 'paid')",
            name="payroll_period_status_check",
        ),
        CheckConstraint("end_date >= start_date", name="payroll_period_dates_check"),
    )

    # Relationships
    calculations: Mapped[list[PayrollCalculation]] = relationship(
        back_populates="payroll_period"
    )

    @staticmethod
    def build_code(year: int, frequency: str, period_number: int) -> str:
        """Period code in YYYY-W01 / YYYY-BW01 / YYYY-M01 format."""
        prefix = {"weekly": "W", "biweekly": "BW", "monthly": "M"}[frequency]
        return f"{year}-{prefix}{period_number:02d}"


# ===== Prenomina =====


class PrenominaMetric(Base, TimestampMixin):
    """Pre-payroll aggregate of attendance and incidences for one employee."""

    __tablename__ = "prenomina_metric"

    prenomina_metric_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    payroll_period_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_period.payroll_period_id", ondelete="CASCADE"),
        nullable=False,
    )

    worked_days: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False, default=ZERO)
    regular_hours: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False, default=ZERO)
    overtime_hours: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False, default=ZERO)
    double_overtime_hours: Mapped[Decimal] = mapped_column(
        Numeric(8, 2), nullable=False, default=ZERO
    )
    triple_overtime_hours: Mapped[Decimal] = mapped_column(
        Numeric(8, 2), nullable=False, default=ZERO
    )
    absence_days: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False, default=ZERO)
    vacation_days: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False, default=ZERO)

    loan_deduction: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    advance_deduction: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    other_deduction: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    bonus_amount: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    commission_amount: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    other_extra_amount: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    aguinaldo_amount: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)

    __table_args__ = (
        UniqueConstraint("employee_id", "payroll_period_id", name="prenomina_employee_period_unique"),
    )


# ===== Calculations =====


class PayrollCalculation(Base, TimestampMixin):
    """Stored payroll result for one employee and period (upserted)."""

    __tablename__ = "payroll_calculation"

    payroll_calculation_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    payroll_period_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_period.payroll_period_id", ondelete="CASCADE"),
        nullable=False,
    )
    prenomina_metric_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("prenomina_metric.prenomina_metric_id", ondelete="SET NULL"),
        nullable=True,
    )

    sdi_used: Mapped[Decimal] = mapped_column(nullable=False)

    # Income
    regular_salary: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    overtime_amount: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    double_overtime_amount: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    triple_overtime_amount: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    vacation_premium: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    aguinaldo: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    bonus_amount: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    commission_amount: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    other_extras: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)

    # Deductions
    isr_before_subsidy: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    employment_subsidy: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    isr_withholding: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    imss_employee: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    infonavit_employee: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    loan_deductions: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    advance_deductions: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    other_deductions: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    deduction_shortfall: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    shortfall_detail: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    # Totals
    total_gross_income: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    total_statutory_deductions: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    total_other_deductions: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    total_deductions: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    total_net_pay: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)

    calculation_status: Mapped[str] = mapped_column(String, nullable=False, default="calculated")
    payroll_status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    calculated_at: Mapped[datetime | None] = mapped_column(nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(nullable=True)

    __table_args__ = (
        UniqueConstraint("employee_id", "payroll_period_id", name="payroll_calc_employee_period_unique"),
        CheckConstraint(
            "calculation_status IN ('calculated', 'approved')",
            name="payroll_calc_status_check",
        ),
        CheckConstraint(
            "payroll_status IN ('pending', 'paid')",
            name="payroll_calc_payroll_status_check",
        ),
        CheckConstraint("total_net_pay >= 0", name="payroll_calc_net_non_negative"),
    )

    # Relationships
    employee: Mapped[Employee] = relationship()
    payroll_period: Mapped[PayrollPeriod] = relationship(back_populates="calculations")
    employer_contribution: Mapped[EmployerContribution | None] = relationship(
        back_populates="payroll_calculation",
        cascade="all, delete-orphan",
        uselist=False,
        lazy="selectin",
    )


class EmployerContribution(Base, TimestampMixin):
    """Employer-side IMSS and INFONAVIT breakdown for one calculation."""

    __tablename__ = "employer_contribution"

    employer_contribution_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    payroll_calculation_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_calculation.payroll_calculation_id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    contribution_base_sdi: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    imss_fixed_fee: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    imss_excess_sickness: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    imss_cash_benefits: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    imss_pensioner_medical: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    imss_disability_life: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    imss_childcare: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    imss_retirement: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    imss_severance_old_age: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    imss_work_risk: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)

    total_imss: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    total_infonavit: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    total_retirement: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    total_contributions: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)

    # Relationships
    payroll_calculation: Mapped[PayrollCalculation] = relationship(
        back_populates="employer_contribution"
    )
