"""IMSS and INFONAVIT contribution calculation."""

from __future__ import annotations

from decimal import Decimal

from nomina_engine.calculators.types import (
    ZERO,
    ContributionResult,
    EmployeeInput,
    ImssEmployeeBreakdown,
    ImssEmployerBreakdown,
    InfonavitDeductionType,
    TaxTable,
    round_money,
)
from nomina_engine.errors import ValidationError


class ContributionCalculator:
    """Calculates social-security contributions from the SDI.

    The IMSS base is the SDI capped at cap_uma_multiplier (25) UMAs, times
    the days worked. The sickness/maternity excess quota only applies to the
    part of the capped SDI above excess_threshold_uma_multiplier (3) UMAs.
    The employer cuota fija applies to one UMA per day regardless of salary.
    """

    @staticmethod
    def contribution_base(sdi: Decimal, table: TaxTable) -> Decimal:
        """SDI capped at the statutory UMA multiple."""
        cap = table.uma_daily_value * table.imss.cap_uma_multiplier
        return min(sdi, cap)

    @classmethod
    def calculate(
        cls,
        sdi: Decimal,
        worked_days: Decimal,
        employee: EmployeeInput,
        table: TaxTable,
    ) -> ContributionResult:
        if sdi < 0:
            raise ValidationError(f"SDI cannot be negative: {sdi}", field="sdi")
        if worked_days < 0:
            raise ValidationError(
                f"Worked days cannot be negative: {worked_days}", field="worked_days"
            )

        uma = table.uma_daily_value
        capped_sdi = cls.contribution_base(sdi, table)
        base = capped_sdi * worked_days

        threshold = uma * table.imss.excess_threshold_uma_multiplier
        excess_base = max(capped_sdi - threshold, ZERO) * worked_days
        uma_base = uma * worked_days

        ee = table.imss.employee
        employee_quotas = ImssEmployeeBreakdown(
            excess_sickness=round_money(excess_base * ee.excess_sickness),
            cash_benefits=round_money(base * ee.cash_benefits),
            pensioner_medical=round_money(base * ee.pensioner_medical),
            disability_life=round_money(base * ee.disability_life),
            severance_old_age=round_money(base * ee.severance_old_age),
        )

        er = table.imss.employer
        employer_quotas = ImssEmployerBreakdown(
            fixed_fee=round_money(uma_base * er.fixed_fee),
            excess_sickness=round_money(excess_base * er.excess_sickness),
            cash_benefits=round_money(base * er.cash_benefits),
            pensioner_medical=round_money(base * er.pensioner_medical),
            disability_life=round_money(base * er.disability_life),
            childcare=round_money(base * er.childcare),
            retirement=round_money(base * er.retirement),
            severance_old_age=round_money(base * er.severance_old_age),
            work_risk=round_money(base * er.work_risk),
        )

        return ContributionResult(
            contribution_base_sdi=capped_sdi,
            period_base=round_money(base),
            imss_employee=employee_quotas,
            imss_employer=employer_quotas,
            infonavit_employee=cls.infonavit_employee(
                base, worked_days, employee, table
            ),
            infonavit_employer=round_money(
                sdi * worked_days * table.infonavit.employer_rate
            ),
        )

    @staticmethod
    def infonavit_employee(
        base: Decimal,
        worked_days: Decimal,
        employee: EmployeeInput,
        table: TaxTable,
    ) -> Decimal:
        """Housing credit discount for employees with an active credit."""
        if not employee.has_infonavit_credit:
            return ZERO

        value = employee.infonavit_deduction_value
        if value is None or value < 0:
            raise ValidationError(
                f"Employee {employee.employee_id} has INFONAVIT credit "
                f"'{employee.infonavit_credit}' without a deduction value",
                field="infonavit_deduction_value",
            )

        try:
            kind = InfonavitDeductionType(employee.infonavit_deduction_type)
        except ValueError:
            raise ValidationError(
                f"Unsupported INFONAVIT deduction type "
                f"'{employee.infonavit_deduction_type}'",
                field="infonavit_deduction_type",
            ) from None

        if kind == InfonavitDeductionType.PERCENTAGE:
            return round_money(base * value / 100)
        if kind == InfonavitDeductionType.FIXED_AMOUNT:
            return round_money(value)
        # Veces UMA: value UMAs per day worked
        return round_money(table.uma_daily_value * value * worked_days)
