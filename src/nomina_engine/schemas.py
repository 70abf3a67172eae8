"""Pydantic schemas for service and CLI output."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Period schemas
# ============================================================================


class PayrollPeriodResponse(BaseModel):
    """Schema for payroll period response."""

    model_config = ConfigDict(from_attributes=True)

    payroll_period_id: UUID
    period_code: str
    year: int
    period_number: int
    frequency: str
    start_date: date
    end_date: date
    payment_date: date
    status: str
    version: int
    total_gross: Decimal
    total_deductions: Decimal
    total_net: Decimal
    total_employer_contributions: Decimal
    calculated_at: datetime | None = None
    approved_at: datetime | None = None
    paid_at: datetime | None = None


# ============================================================================
# Calculation schemas
# ============================================================================


class EmployerContributionResponse(BaseModel):
    """Schema for employer contribution breakdown."""

    model_config = ConfigDict(from_attributes=True)

    contribution_base_sdi: Decimal
    imss_fixed_fee: Decimal
    imss_excess_sickness: Decimal
    imss_cash_benefits: Decimal
    imss_pensioner_medical: Decimal
    imss_disability_life: Decimal
    imss_childcare: Decimal
    imss_retirement: Decimal
    imss_severance_old_age: Decimal
    imss_work_risk: Decimal
    total_imss: Decimal
    total_infonavit: Decimal
    total_retirement: Decimal
    total_contributions: Decimal


class PayrollCalculationResponse(BaseModel):
    """Schema for a stored payroll calculation."""

    model_config = ConfigDict(from_attributes=True)

    payroll_calculation_id: UUID
    employee_id: UUID
    payroll_period_id: UUID
    sdi_used: Decimal

    regular_salary: Decimal
    overtime_amount: Decimal
    double_overtime_amount: Decimal
    triple_overtime_amount: Decimal
    vacation_premium: Decimal
    aguinaldo: Decimal
    bonus_amount: Decimal
    commission_amount: Decimal
    other_extras: Decimal

    isr_before_subsidy: Decimal
    employment_subsidy: Decimal
    isr_withholding: Decimal
    imss_employee: Decimal
    infonavit_employee: Decimal
    loan_deductions: Decimal
    advance_deductions: Decimal
    other_deductions: Decimal
    deduction_shortfall: Decimal
    shortfall_detail: dict[str, Any] = Field(default_factory=dict)

    total_gross_income: Decimal
    total_statutory_deductions: Decimal
    total_other_deductions: Decimal
    total_deductions: Decimal
    total_net_pay: Decimal

    calculation_status: str
    payroll_status: str
    calculated_at: datetime | None = None

    employer_contribution: EmployerContributionResponse | None = None


# ============================================================================
# Summary schemas
# ============================================================================


class EmployeeSummary(BaseModel):
    """One employee line of a period summary."""

    employee_id: UUID
    employee_number: str
    employee_name: str
    gross: Decimal
    deductions: Decimal
    net: Decimal
    calculation_status: str
    payroll_status: str


class PeriodSummary(BaseModel):
    """Totals of a payroll period computed from its stored calculations."""

    payroll_period_id: UUID
    period_code: str
    status: str
    employee_count: int
    total_gross: Decimal
    total_deductions: Decimal
    total_net: Decimal
    employer_contributions: Decimal
    employees: list[EmployeeSummary] = Field(default_factory=list)


class ConceptTotal(BaseModel):
    """Total amount of one payroll concept across a period."""

    concept: str
    category: str
    total: Decimal
