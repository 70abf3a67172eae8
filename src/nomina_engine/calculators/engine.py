"""Payroll calculation engine - per-employee orchestrator."""

from __future__ import annotations

from dataclasses import fields
from decimal import Decimal

from nomina_engine.calculators.contribution_calculator import ContributionCalculator
from nomina_engine.calculators.sdi_calculator import SDICalculator
from nomina_engine.calculators.types import (
    ZERO,
    CalculationResult,
    EmployeeInput,
    OvertimeBreakdown,
    PeriodInput,
    PrenominaInput,
    TaxTable,
    round_money,
)
from nomina_engine.calculators.withholding_calculator import WithholdingCalculator
from nomina_engine.errors import ConfigError, ValidationError

# Deductions are applied in this order, each capped to the net still available
DEDUCTION_PRIORITY = (
    "isr_withholding",
    "imss_employee",
    "infonavit_employee",
    "loan_deductions",
    "advance_deductions",
    "other_deductions",
)

_NON_NEGATIVE_PRENOMINA = (
    "worked_days",
    "regular_hours",
    "overtime_regular_hours",
    "overtime_double_hours",
    "overtime_triple_hours",
    "absence_days",
    "vacation_days",
    "loan_deduction",
    "advance_deduction",
    "other_deduction",
    "bonus_amount",
    "commission_amount",
    "other_extra_amount",
    "aguinaldo_amount",
)


class PayrollEngine:
    """Pure payroll calculation for one employee and period.

    Calculation pipeline (stable order):
    1) Validate employee is active and prenomina exists
    2) Compute/refresh SDI if requested or absent
    3) Regular salary = daily salary x worked days
    4) Tiered overtime from hourly rate = daily salary / daily hours
    5) Taxable gross
    6) ISR/subsidy and IMSS/INFONAVIT
    7) Apply deductions capped so net pay never goes negative

    Persistence (upsert) and period status are handled by PayrollService.
    The engine does no I/O and is safe to run on worker threads.
    """

    def calculate(
        self,
        employee: EmployeeInput,
        period: PeriodInput,
        prenomina: PrenominaInput | None,
        tax_table: TaxTable,
        calculate_sdi: bool = False,
    ) -> CalculationResult:
        prenomina = self._validate(employee, period, prenomina, tax_table)

        labor = tax_table.labor

        # 2) SDI
        sdi_refreshed = calculate_sdi or not employee.integrated_daily_salary
        if sdi_refreshed:
            sdi = SDICalculator.calculate(
                employee.daily_salary, employee.hire_date, period.end_date, labor
            )
        else:
            sdi = employee.integrated_daily_salary

        # 3) Regular salary
        daily = employee.daily_salary
        regular_salary = round_money(daily * prenomina.worked_days)

        # 4) Overtime
        overtime = self._calculate_overtime(daily, prenomina, period, tax_table)

        # Other income
        vacation_premium = round_money(
            daily * prenomina.vacation_days * labor.vacation_premium_rate
        )
        aguinaldo = round_money(prenomina.aguinaldo_amount)
        bonus = round_money(prenomina.bonus_amount)
        commission = round_money(prenomina.commission_amount)
        other_extras = round_money(prenomina.other_extra_amount)

        # 5) Taxable gross
        gross = (
            regular_salary
            + overtime.total
            + vacation_premium
            + aguinaldo
            + bonus
            + commission
            + other_extras
        )

        # 6) Statutory
        withholding = WithholdingCalculator.calculate(gross, tax_table)
        contributions = ContributionCalculator.calculate(
            sdi, prenomina.worked_days, employee, tax_table
        )

        # 7) Deductions with cap
        requested = {
            "isr_withholding": withholding.isr_withholding,
            "imss_employee": contributions.imss_employee.total,
            "infonavit_employee": contributions.infonavit_employee,
            "loan_deductions": round_money(prenomina.loan_deduction),
            "advance_deductions": round_money(prenomina.advance_deduction),
            "other_deductions": round_money(prenomina.other_deduction),
        }
        applied, shortfall = self.apply_deductions(gross, requested)

        return CalculationResult(
            employee_id=employee.employee_id,
            payroll_period_id=period.period_id,
            sdi=sdi,
            sdi_refreshed=sdi_refreshed,
            regular_salary=regular_salary,
            overtime=overtime,
            vacation_premium=vacation_premium,
            aguinaldo=aguinaldo,
            bonus_amount=bonus,
            commission_amount=commission,
            other_extras=other_extras,
            withholding=withholding,
            contributions=contributions,
            shortfall_detail=shortfall,
            prenomina_metric_id=prenomina.prenomina_metric_id,
            **applied,
        )

    @staticmethod
    def apply_deductions(
        gross: Decimal, requested: dict[str, Decimal]
    ) -> tuple[dict[str, Decimal], dict[str, Decimal]]:
        """Cap deductions in priority order so the remaining net stays >= 0.

        Returns (applied amounts, shortfall per concept). Concepts that were
        applied in full do not appear in the shortfall dict.
        """
        remaining = max(gross, ZERO)
        applied: dict[str, Decimal] = {}
        shortfall: dict[str, Decimal] = {}

        for concept in DEDUCTION_PRIORITY:
            amount = requested.get(concept, ZERO)
            take = min(amount, remaining)
            applied[concept] = take
            remaining -= take
            if take < amount:
                shortfall[concept] = amount - take

        return applied, shortfall

    def _calculate_overtime(
        self,
        daily_salary: Decimal,
        prenomina: PrenominaInput,
        period: PeriodInput,
        tax_table: TaxTable,
    ) -> OvertimeBreakdown:
        labor = tax_table.labor
        hourly = daily_salary / labor.daily_hours

        regular_hours = prenomina.overtime_regular_hours
        double_hours = prenomina.overtime_double_hours
        triple_hours = prenomina.overtime_triple_hours

        if labor.double_time_weekly_cap_hours is not None:
            weeks = Decimal(period.calendar_days) / Decimal(7)
            cap = labor.double_time_weekly_cap_hours * weeks
            if double_hours > cap:
                triple_hours += double_hours - cap
                double_hours = cap

        return OvertimeBreakdown(
            hourly_rate=hourly,
            regular_hours=regular_hours,
            double_hours=double_hours,
            triple_hours=triple_hours,
            regular_amount=round_money(
                hourly * regular_hours * labor.regular_overtime_multiplier
            ),
            double_amount=round_money(
                hourly * double_hours * labor.double_overtime_multiplier
            ),
            triple_amount=round_money(
                hourly * triple_hours * labor.triple_overtime_multiplier
            ),
        )

    def _validate(
        self,
        employee: EmployeeInput,
        period: PeriodInput,
        prenomina: PrenominaInput | None,
        tax_table: TaxTable,
    ) -> PrenominaInput:
        if not employee.is_active:
            raise ValidationError(
                f"Employee {employee.employee_id} is not active "
                f"(status '{employee.employment_status}')",
                field="employment_status",
            )
        if employee.daily_salary is None or employee.daily_salary <= 0:
            raise ValidationError(
                f"Employee {employee.employee_id} has no positive daily salary",
                field="daily_salary",
            )
        if prenomina is None:
            raise ValidationError(
                f"Prenomina metrics not found for employee {employee.employee_id} "
                f"in period {period.period_code}",
                field="prenomina",
            )

        for f in fields(PrenominaInput):
            if f.name not in _NON_NEGATIVE_PRENOMINA:
                continue
            value = getattr(prenomina, f.name)
            if value is None or value < 0:
                raise ValidationError(
                    f"Prenomina field {f.name} must be non-negative, got {value}",
                    field=f.name,
                )

        if tax_table.period_type != period.frequency:
            raise ConfigError(
                f"table is for {tax_table.period_type.value} periods, "
                f"period {period.period_code} is {period.frequency.value}",
                fiscal_year=tax_table.fiscal_year,
                period_type=tax_table.period_type.value,
            )

        return prenomina
