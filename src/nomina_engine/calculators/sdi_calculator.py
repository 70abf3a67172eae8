"""Integrated daily salary (SDI) calculation."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from nomina_engine.calculators.types import LaborRules, round_money
from nomina_engine.errors import ValidationError


class SDICalculator:
    """Computes the Salario Diario Integrado from seniority.

    factor = 1 + (vacation_days * vacation_premium_rate + aguinaldo_days) / 365
    SDI = daily_salary * factor, rounded half-up to cents.

    Vacation entitlement (LFT art. 76):
    - first year: 12 days, +2 per year through year 5 (20 days)
    - years 6-10: 22 days, then +2 for every further 5-year block
    """

    DAYS_PER_YEAR = Decimal("365")

    @staticmethod
    def seniority_years(hire_date: date, as_of_date: date) -> int:
        """Whole years of service completed on as_of_date."""
        if hire_date > as_of_date:
            raise ValidationError(
                f"Hire date {hire_date} is after {as_of_date}", field="hire_date"
            )
        years = as_of_date.year - hire_date.year
        if (as_of_date.month, as_of_date.day) < (hire_date.month, hire_date.day):
            years -= 1
        return years

    @staticmethod
    def vacation_days(seniority_years: int) -> int:
        """Statutory vacation days for a seniority tier."""
        if seniority_years <= 1:
            return 12
        if seniority_years <= 5:
            return 12 + 2 * (seniority_years - 1)
        # 6-10 -> 22, 11-15 -> 24, 16-20 -> 26, ...
        return 22 + 2 * ((seniority_years - 6) // 5)

    @classmethod
    def integration_factor(
        cls, seniority_years: int, labor: LaborRules | None = None
    ) -> Decimal:
        labor = labor or LaborRules()
        vacation = Decimal(cls.vacation_days(seniority_years))
        return 1 + (
            vacation * labor.vacation_premium_rate + labor.aguinaldo_days
        ) / cls.DAYS_PER_YEAR

    @classmethod
    def calculate(
        cls,
        daily_salary: Decimal,
        hire_date: date,
        as_of_date: date,
        labor: LaborRules | None = None,
    ) -> Decimal:
        """Return the SDI as of a date."""
        if daily_salary is None or daily_salary <= 0:
            raise ValidationError(
                f"Daily salary must be positive, got {daily_salary}",
                field="daily_salary",
            )
        years = cls.seniority_years(hire_date, as_of_date)
        return round_money(daily_salary * cls.integration_factor(years, labor))
