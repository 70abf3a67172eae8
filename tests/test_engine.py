"""Unit tests for PayrollEngine.

The engine is pure, so these tests build input snapshots directly.
"""

from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from nomina_engine.calculators.engine import DEDUCTION_PRIORITY, PayrollEngine
from nomina_engine.calculators.types import LaborRules, PeriodType, PrenominaInput
from nomina_engine.errors import ConfigError, ValidationError

from conftest import make_table


class TestReferenceCalculation:
    """Biweekly: 800/day, 15 days, 5 regular overtime hours."""

    def test_income(self, employee_input, period_input, prenomina_input, biweekly_table):
        result = PayrollEngine().calculate(
            employee_input, period_input, prenomina_input, biweekly_table
        )

        assert result.regular_salary == Decimal("12000.00")
        assert result.overtime.hourly_rate == Decimal("100")
        assert result.overtime.regular_amount == Decimal("500.00")
        assert result.total_gross_income == Decimal("12500.00")

    def test_withholding(self, employee_input, period_input, prenomina_input, biweekly_table):
        result = PayrollEngine().calculate(
            employee_input, period_input, prenomina_input, biweekly_table
        )

        # 353.22 + (12500 - 6224.69) * 0.1088
        assert result.withholding.isr_before_subsidy == Decimal("1035.97")
        assert result.withholding.bracket.lower_limit == Decimal("6224.69")
        assert result.isr_withholding == Decimal("1035.97")

    def test_totals(self, employee_input, period_input, prenomina_input, biweekly_table):
        result = PayrollEngine().calculate(
            employee_input, period_input, prenomina_input, biweekly_table
        )

        assert result.imss_employee == Decimal("330.89")
        assert result.infonavit_employee == Decimal("0")
        assert result.total_deductions == Decimal("1366.86")
        assert result.total_net_pay == Decimal("11133.14")
        assert result.total_net_pay == result.total_gross_income - result.total_deductions
        assert result.deduction_shortfall == Decimal("0")
        assert result.sdi == Decimal("843.84")
        assert result.sdi_refreshed is False

    def test_deterministic(self, employee_input, period_input, prenomina_input, biweekly_table):
        engine = PayrollEngine()
        first = engine.calculate(employee_input, period_input, prenomina_input, biweekly_table)
        second = engine.calculate(employee_input, period_input, prenomina_input, biweekly_table)
        assert first == second


class TestIncome:
    """Overtime tiers, vacation premium and extras."""

    def test_double_and_triple_overtime(
        self, employee_input, period_input, biweekly_table
    ):
        prenomina = PrenominaInput(
            worked_days=Decimal("15"),
            overtime_double_hours=Decimal("2"),
            overtime_triple_hours=Decimal("1"),
        )
        result = PayrollEngine().calculate(employee_input, period_input, prenomina, biweekly_table)

        assert result.overtime.double_amount == Decimal("400.00")
        assert result.overtime.triple_amount == Decimal("300.00")
        assert result.overtime.total == Decimal("700.00")

    def test_vacation_premium_and_extras(self, employee_input, period_input, biweekly_table):
        prenomina = PrenominaInput(
            worked_days=Decimal("9"),
            vacation_days=Decimal("6"),
            bonus_amount=Decimal("1000"),
            commission_amount=Decimal("250.50"),
            other_extra_amount=Decimal("99.99"),
            aguinaldo_amount=Decimal("0"),
        )
        result = PayrollEngine().calculate(employee_input, period_input, prenomina, biweekly_table)

        assert result.vacation_premium == Decimal("1200.00")
        assert result.total_gross_income == Decimal(
            "7200.00"
        ) + Decimal("1200.00") + Decimal("1000.00") + Decimal("250.50") + Decimal("99.99")

    def test_double_time_cap_disabled_by_default(
        self, employee_input, period_input, biweekly_table
    ):
        prenomina = PrenominaInput(worked_days=Decimal("15"), overtime_double_hours=Decimal("30"))
        result = PayrollEngine().calculate(employee_input, period_input, prenomina, biweekly_table)
        assert result.overtime.double_hours == Decimal("30")
        assert result.overtime.triple_hours == Decimal("0")

    def test_double_time_cap_moves_excess_to_triple(self, employee_input, period_input):
        table = make_table(labor=LaborRules(double_time_weekly_cap_hours=Decimal("9")))
        two_weeks = replace(period_input, end_date=date(2025, 1, 14))
        prenomina = PrenominaInput(worked_days=Decimal("14"), overtime_double_hours=Decimal("20"))

        result = PayrollEngine().calculate(employee_input, two_weeks, prenomina, table)

        assert result.overtime.double_hours == Decimal("18")
        assert result.overtime.triple_hours == Decimal("2")
        assert result.overtime.double_amount == Decimal("3600.00")
        assert result.overtime.triple_amount == Decimal("600.00")


class TestSDIRefresh:
    """SDI is recomputed when requested or missing."""

    def test_missing_sdi_is_computed(self, employee_input, period_input, prenomina_input, biweekly_table):
        employee = replace(employee_input, integrated_daily_salary=None)
        result = PayrollEngine().calculate(employee, period_input, prenomina_input, biweekly_table)
        assert result.sdi_refreshed is True
        assert result.sdi == Decimal("843.84")

    def test_requested_refresh_overrides_stored(
        self, employee_input, period_input, prenomina_input, biweekly_table
    ):
        employee = replace(employee_input, integrated_daily_salary=Decimal("900.00"))
        result = PayrollEngine().calculate(
            employee, period_input, prenomina_input, biweekly_table, calculate_sdi=True
        )
        assert result.sdi_refreshed is True
        assert result.sdi == Decimal("843.84")

    def test_stored_sdi_used(self, employee_input, period_input, prenomina_input, biweekly_table):
        employee = replace(employee_input, integrated_daily_salary=Decimal("900.00"))
        result = PayrollEngine().calculate(employee, period_input, prenomina_input, biweekly_table)
        assert result.sdi == Decimal("900.00")
        assert result.contributions.contribution_base_sdi == Decimal("900.00")


class TestDeductionCap:
    """Net pay never goes negative; the capped amount is reported."""

    def test_priority_order(self):
        assert DEDUCTION_PRIORITY[:3] == ("isr_withholding", "imss_employee", "infonavit_employee")

    def test_apply_deductions(self):
        applied, shortfall = PayrollEngine.apply_deductions(
            Decimal("100"),
            {
                "isr_withholding": Decimal("30"),
                "imss_employee": Decimal("50"),
                "infonavit_employee": Decimal("40"),
                "loan_deductions": Decimal("10"),
            },
        )
        assert applied["isr_withholding"] == Decimal("30")
        assert applied["imss_employee"] == Decimal("50")
        assert applied["infonavit_employee"] == Decimal("20")
        assert applied["loan_deductions"] == Decimal("0")
        assert applied["other_deductions"] == Decimal("0")
        assert shortfall == {"infonavit_employee": Decimal("20"), "loan_deductions": Decimal("10")}

    def test_large_loan_is_capped(self, employee_input, period_input, biweekly_table):
        prenomina = PrenominaInput(worked_days=Decimal("1"), loan_deduction=Decimal("5000"))
        result = PayrollEngine().calculate(employee_input, period_input, prenomina, biweekly_table)

        assert result.total_gross_income == Decimal("800.00")
        assert result.isr_withholding == Decimal("15.36")
        assert result.imss_employee == Decimal("22.05")
        assert result.loan_deductions == Decimal("762.59")
        assert result.total_net_pay == Decimal("0.00")
        assert result.shortfall_detail == {"loan_deductions": Decimal("4237.41")}
        assert result.deduction_shortfall == Decimal("4237.41")

    def test_zero_days_zero_net(self, employee_input, period_input, biweekly_table):
        prenomina = PrenominaInput(worked_days=Decimal("0"), advance_deduction=Decimal("100"))
        result = PayrollEngine().calculate(employee_input, period_input, prenomina, biweekly_table)
        assert result.total_gross_income == Decimal("0")
        assert result.total_net_pay == Decimal("0")
        assert result.shortfall_detail == {"advance_deductions": Decimal("100.00")}


class TestValidation:
    """Invalid inputs raise before anything is computed."""

    def test_inactive_employee(self, employee_input, period_input, prenomina_input, biweekly_table):
        employee = replace(employee_input, employment_status="terminated")
        with pytest.raises(ValidationError) as exc_info:
            PayrollEngine().calculate(employee, period_input, prenomina_input, biweekly_table)
        assert exc_info.value.field == "employment_status"

    def test_missing_prenomina(self, employee_input, period_input, biweekly_table):
        with pytest.raises(ValidationError) as exc_info:
            PayrollEngine().calculate(employee_input, period_input, None, biweekly_table)
        assert exc_info.value.field == "prenomina"

    def test_negative_prenomina_field(self, employee_input, period_input, biweekly_table):
        prenomina = PrenominaInput(worked_days=Decimal("15"), bonus_amount=Decimal("-1"))
        with pytest.raises(ValidationError) as exc_info:
            PayrollEngine().calculate(employee_input, period_input, prenomina, biweekly_table)
        assert exc_info.value.field == "bonus_amount"

    def test_non_positive_salary(self, employee_input, period_input, prenomina_input, biweekly_table):
        employee = replace(employee_input, daily_salary=Decimal("0"))
        with pytest.raises(ValidationError):
            PayrollEngine().calculate(employee, period_input, prenomina_input, biweekly_table)

    def test_table_for_other_period_type(self, employee_input, period_input, prenomina_input):
        weekly = make_table(PeriodType.WEEKLY)
        with pytest.raises(ConfigError):
            PayrollEngine().calculate(employee_input, period_input, prenomina_input, weekly)
