"""Unit tests for ISR withholding and employment subsidy."""

from decimal import Decimal

import pytest

from nomina_engine.calculators.types import PeriodType, TaxBracket
from nomina_engine.calculators.withholding_calculator import WithholdingCalculator
from nomina_engine.errors import ConfigError

from conftest import TEST_BIWEEKLY_ISR, brackets, make_table


class TestBracketSelection:
    """The applicable row has the largest lower_limit <= income."""

    def test_exact_lower_limit_selects_that_row(self):
        bracket = WithholdingCalculator.find_bracket(TEST_BIWEEKLY_ISR, Decimal("6224.69"))
        assert bracket.lower_limit == Decimal("6224.69")

    def test_just_below_limit_selects_previous_row(self):
        bracket = WithholdingCalculator.find_bracket(TEST_BIWEEKLY_ISR, Decimal("6224.68"))
        assert bracket.lower_limit == Decimal("2000.00")

    def test_above_last_row_selects_last(self):
        bracket = WithholdingCalculator.find_bracket(TEST_BIWEEKLY_ISR, Decimal("999999"))
        assert bracket.lower_limit == Decimal("25000.00")

    def test_below_first_row_returns_none(self):
        table = brackets(("100.00", "0", "0.02"))
        assert WithholdingCalculator.find_bracket(table, Decimal("50")) is None


class TestISR:
    """ISR = fixed_fee + (income - lower_limit) * rate."""

    def test_reference_bracket(self):
        table = make_table()
        isr, bracket = WithholdingCalculator.calculate_isr(Decimal("12500.00"), table)
        # 353.22 + 6275.31 * 0.1088 = 1035.973728
        assert isr == Decimal("1035.97")
        assert bracket == TaxBracket(Decimal("6224.69"), Decimal("353.22"), Decimal("0.1088"))

    def test_first_bracket(self):
        table = make_table()
        isr, _ = WithholdingCalculator.calculate_isr(Decimal("1000.01"), table)
        # (1000.01 - 0.01) * 0.0192 = 19.20
        assert isr == Decimal("19.20")

    def test_zero_income_is_zero_tax(self):
        isr, bracket = WithholdingCalculator.calculate_isr(Decimal("0"), make_table())
        assert isr == Decimal("0")
        assert bracket is None

    def test_income_below_table_raises_config_error(self):
        table = make_table(isr=brackets(("1000.00", "0", "0.10")))
        with pytest.raises(ConfigError) as exc_info:
            WithholdingCalculator.calculate_isr(Decimal("500"), table)
        assert exc_info.value.fiscal_year == 2025
        assert exc_info.value.period_type == "biweekly"


class TestSubsidy:
    """Employment subsidy reduces ISR but never below zero."""

    SUBSIDY = brackets(("0.01", "234.20", "0"), ("5018.59", "0", "0"))

    def test_subsidy_reduces_isr(self):
        table = make_table(subsidy=self.SUBSIDY)
        result = WithholdingCalculator.calculate(Decimal("4000.00"), table)
        # 38.40 + 2000 * 0.064 = 166.40
        assert result.isr_before_subsidy == Decimal("166.40")
        assert result.subsidy == Decimal("234.20")
        assert result.subsidy_applied == Decimal("166.40")
        assert result.isr_withholding == Decimal("0.00")

    def test_partial_subsidy(self):
        table = make_table(subsidy=brackets(("0.01", "100.00", "0")))
        result = WithholdingCalculator.calculate(Decimal("4000.00"), table)
        assert result.subsidy_applied == Decimal("100.00")
        assert result.isr_withholding == Decimal("66.40")

    def test_no_subsidy_above_threshold(self):
        table = make_table(subsidy=self.SUBSIDY)
        result = WithholdingCalculator.calculate(Decimal("12500.00"), table)
        assert result.subsidy == Decimal("0")
        assert result.isr_withholding == Decimal("1035.97")

    def test_missing_subsidy_row_is_zero(self):
        table = make_table(subsidy=brackets(("5000.00", "50.00", "0")))
        assert WithholdingCalculator.calculate_subsidy(Decimal("100"), table) == Decimal("0")

    def test_weekly_table(self, weekly_table):
        assert weekly_table.period_type == PeriodType.WEEKLY
        result = WithholdingCalculator.calculate(Decimal("2000.00"), weekly_table)
        # 85.61 + 541.96 * 0.1088 = 144.575248
        assert result.isr_before_subsidy == Decimal("144.58")
        assert result.subsidy_applied == Decimal("109.29")
        assert result.isr_withholding == Decimal("35.29")
