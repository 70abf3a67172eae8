"""Type definitions for calculation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

if TYPE_CHECKING:
    from nomina_engine.models import Employee, PayrollPeriod, PrenominaMetric

CENTS = Decimal("0.01")
ZERO = Decimal("0")


def round_money(value: Decimal) -> Decimal:
    """Round a currency amount to cents, half-up."""
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


class PeriodType(str, Enum):
    """Payroll period frequencies (also the tax table period types)."""

    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"


class InfonavitDeductionType(str, Enum):
    """How an INFONAVIT credit discount is expressed."""

    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"
    UMA_FACTOR = "uma_factor"


# ===== Tax tables =====


@dataclass(frozen=True)
class TaxBracket:
    """One row of an ISR or subsidy table."""

    lower_limit: Decimal
    fixed_fee: Decimal
    rate: Decimal  # As decimal, e.g., 0.1088 for 10.88%


@dataclass(frozen=True)
class ImssEmployeeRates:
    """IMSS employee quota rates (fractions of the contribution base)."""

    excess_sickness: Decimal = Decimal("0.0040")
    cash_benefits: Decimal = Decimal("0.0025")
    pensioner_medical: Decimal = Decimal("0.00375")
    disability_life: Decimal = Decimal("0.00625")
    severance_old_age: Decimal = Decimal("0.01125")


@dataclass(frozen=True)
class ImssEmployerRates:
    """IMSS employer quota rates.

    ``fixed_fee`` (cuota fija) applies to one UMA per day worked; every other
    rate applies to the capped SDI base.
    """

    fixed_fee: Decimal = Decimal("0.2040")
    excess_sickness: Decimal = Decimal("0.0110")
    cash_benefits: Decimal = Decimal("0.0070")
    pensioner_medical: Decimal = Decimal("0.0105")
    disability_life: Decimal = Decimal("0.0175")
    childcare: Decimal = Decimal("0.0100")
    retirement: Decimal = Decimal("0.0200")
    severance_old_age: Decimal = Decimal("0.03150")
    work_risk: Decimal = Decimal("0.0054355")


@dataclass(frozen=True)
class ImssRules:
    """IMSS contribution configuration."""

    employee: ImssEmployeeRates = field(default_factory=ImssEmployeeRates)
    employer: ImssEmployerRates = field(default_factory=ImssEmployerRates)
    cap_uma_multiplier: Decimal = Decimal("25")
    excess_threshold_uma_multiplier: Decimal = Decimal("3")


@dataclass(frozen=True)
class InfonavitRules:
    """INFONAVIT configuration."""

    employer_rate: Decimal = Decimal("0.05")


@dataclass(frozen=True)
class LaborRules:
    """Labor-law parameters used by the orchestrator and SDI calculator."""

    daily_hours: Decimal = Decimal("8")
    regular_overtime_multiplier: Decimal = Decimal("1")
    double_overtime_multiplier: Decimal = Decimal("2")
    triple_overtime_multiplier: Decimal = Decimal("3")
    vacation_premium_rate: Decimal = Decimal("0.25")
    aguinaldo_days: Decimal = Decimal("15")
    # None disables re-tiering of reported double-time hours
    double_time_weekly_cap_hours: Decimal | None = None


@dataclass(frozen=True)
class TaxTable:
    """Tax configuration for one fiscal year and period type."""

    fiscal_year: int
    period_type: PeriodType
    isr_brackets: tuple[TaxBracket, ...]
    subsidy_brackets: tuple[TaxBracket, ...]
    uma_daily_value: Decimal
    imss: ImssRules = field(default_factory=ImssRules)
    infonavit: InfonavitRules = field(default_factory=InfonavitRules)
    labor: LaborRules = field(default_factory=LaborRules)


# ===== Calculation inputs =====


@dataclass(frozen=True)
class EmployeeInput:
    """Snapshot of the employee fields the engine reads."""

    employee_id: UUID
    daily_salary: Decimal
    hire_date: date
    employment_status: str = "active"
    pay_frequency: str = PeriodType.BIWEEKLY.value
    integrated_daily_salary: Decimal | None = None
    infonavit_credit: str | None = None
    infonavit_deduction_type: str | None = None
    infonavit_deduction_value: Decimal | None = None

    @property
    def is_active(self) -> bool:
        return self.employment_status == "active"

    @property
    def has_infonavit_credit(self) -> bool:
        credit = (self.infonavit_credit or "").strip()
        return credit != "" and credit.lower() != "none"

    @classmethod
    def from_model(cls, employee: Employee) -> EmployeeInput:
        return cls(
            employee_id=employee.employee_id,
            daily_salary=employee.daily_salary,
            hire_date=employee.hire_date,
            employment_status=employee.employment_status,
            pay_frequency=employee.pay_frequency,
            integrated_daily_salary=employee.integrated_daily_salary,
            infonavit_credit=employee.infonavit_credit,
            infonavit_deduction_type=employee.infonavit_deduction_type,
            infonavit_deduction_value=employee.infonavit_deduction_value,
        )


@dataclass(frozen=True)
class PeriodInput:
    """Snapshot of the payroll period fields the engine reads."""

    period_id: UUID
    period_code: str
    frequency: PeriodType
    year: int
    start_date: date
    end_date: date

    @property
    def calendar_days(self) -> int:
        return (self.end_date - self.start_date).days + 1

    @classmethod
    def from_model(cls, period: PayrollPeriod) -> PeriodInput:
        return cls(
            period_id=period.payroll_period_id,
            period_code=period.period_code,
            frequency=PeriodType(period.frequency),
            year=period.year,
            start_date=period.start_date,
            end_date=period.end_date,
        )


@dataclass(frozen=True)
class PrenominaInput:
    """Aggregated attendance/incidence metrics for one employee and period."""

    worked_days: Decimal
    regular_hours: Decimal = ZERO
    overtime_regular_hours: Decimal = ZERO
    overtime_double_hours: Decimal = ZERO
    overtime_triple_hours: Decimal = ZERO
    absence_days: Decimal = ZERO
    vacation_days: Decimal = ZERO
    loan_deduction: Decimal = ZERO
    advance_deduction: Decimal = ZERO
    other_deduction: Decimal = ZERO
    bonus_amount: Decimal = ZERO
    commission_amount: Decimal = ZERO
    other_extra_amount: Decimal = ZERO
    aguinaldo_amount: Decimal = ZERO
    prenomina_metric_id: UUID | None = None

    @classmethod
    def from_model(cls, metric: PrenominaMetric) -> PrenominaInput:
        return cls(
            worked_days=metric.worked_days,
            regular_hours=metric.regular_hours,
            overtime_regular_hours=metric.overtime_hours,
            overtime_double_hours=metric.double_overtime_hours,
            overtime_triple_hours=metric.triple_overtime_hours,
            absence_days=metric.absence_days,
            vacation_days=metric.vacation_days,
            loan_deduction=metric.loan_deduction,
            advance_deduction=metric.advance_deduction,
            other_deduction=metric.other_deduction,
            bonus_amount=metric.bonus_amount,
            commission_amount=metric.commission_amount,
            other_extra_amount=metric.other_extra_amount,
            aguinaldo_amount=metric.aguinaldo_amount,
            prenomina_metric_id=metric.prenomina_metric_id,
        )


# ===== Calculation outputs =====


@dataclass(frozen=True)
class WithholdingResult:
    """ISR withholding after the employment subsidy."""

    isr_before_subsidy: Decimal
    subsidy: Decimal
    isr_withholding: Decimal
    subsidy_applied: Decimal
    bracket: TaxBracket | None = None


@dataclass(frozen=True)
class ImssEmployeeBreakdown:
    excess_sickness: Decimal
    cash_benefits: Decimal
    pensioner_medical: Decimal
    disability_life: Decimal
    severance_old_age: Decimal

    @property
    def total(self) -> Decimal:
        return (
            self.excess_sickness
            + self.cash_benefits
            + self.pensioner_medical
            + self.disability_life
            + self.severance_old_age
        )


@dataclass(frozen=True)
class ImssEmployerBreakdown:
    fixed_fee: Decimal
    excess_sickness: Decimal
    cash_benefits: Decimal
    pensioner_medical: Decimal
    disability_life: Decimal
    childcare: Decimal
    retirement: Decimal
    severance_old_age: Decimal
    work_risk: Decimal

    @property
    def disease_maternity(self) -> Decimal:
        """Enfermedad y maternidad branch (fixed fee, excess, cash, medical)."""
        return (
            self.fixed_fee
            + self.excess_sickness
            + self.cash_benefits
            + self.pensioner_medical
        )

    @property
    def total(self) -> Decimal:
        return (
            self.disease_maternity
            + self.disability_life
            + self.childcare
            + self.retirement
            + self.severance_old_age
            + self.work_risk
        )


@dataclass(frozen=True)
class ContributionResult:
    """IMSS and INFONAVIT amounts for one employee and period."""

    contribution_base_sdi: Decimal  # SDI after the UMA cap
    period_base: Decimal  # capped SDI x worked days
    imss_employee: ImssEmployeeBreakdown
    imss_employer: ImssEmployerBreakdown
    infonavit_employee: Decimal
    infonavit_employer: Decimal

    @property
    def total_retirement(self) -> Decimal:
        return self.imss_employer.retirement + self.imss_employer.severance_old_age

    @property
    def total_employer(self) -> Decimal:
        return self.imss_employer.total + self.infonavit_employer


@dataclass(frozen=True)
class OvertimeBreakdown:
    hourly_rate: Decimal
    regular_hours: Decimal
    double_hours: Decimal
    triple_hours: Decimal
    regular_amount: Decimal
    double_amount: Decimal
    triple_amount: Decimal

    @property
    def total(self) -> Decimal:
        return self.regular_amount + self.double_amount + self.triple_amount


@dataclass
class CalculationResult:
    """Result of calculating pay for one employee and period."""

    employee_id: UUID
    payroll_period_id: UUID
    sdi: Decimal
    sdi_refreshed: bool

    # Income
    regular_salary: Decimal
    overtime: OvertimeBreakdown
    vacation_premium: Decimal
    aguinaldo: Decimal
    bonus_amount: Decimal
    commission_amount: Decimal
    other_extras: Decimal

    # Statutory
    withholding: WithholdingResult
    contributions: ContributionResult

    # Applied deductions (after capping)
    isr_withholding: Decimal
    imss_employee: Decimal
    infonavit_employee: Decimal
    loan_deductions: Decimal
    advance_deductions: Decimal
    other_deductions: Decimal

    shortfall_detail: dict[str, Decimal] = field(default_factory=dict)
    prenomina_metric_id: UUID | None = None

    @property
    def total_gross_income(self) -> Decimal:
        return (
            self.regular_salary
            + self.overtime.total
            + self.vacation_premium
            + self.aguinaldo
            + self.bonus_amount
            + self.commission_amount
            + self.other_extras
        )

    @property
    def total_statutory_deductions(self) -> Decimal:
        return self.isr_withholding + self.imss_employee + self.infonavit_employee

    @property
    def total_other_deductions(self) -> Decimal:
        return self.loan_deductions + self.advance_deductions + self.other_deductions

    @property
    def total_deductions(self) -> Decimal:
        return self.total_statutory_deductions + self.total_other_deductions

    @property
    def total_net_pay(self) -> Decimal:
        return self.total_gross_income - self.total_deductions

    @property
    def deduction_shortfall(self) -> Decimal:
        return sum(self.shortfall_detail.values(), ZERO)
