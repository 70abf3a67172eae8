"""ISR withholding and employment subsidy calculation."""

from __future__ import annotations

from bisect import bisect_right
from collections.abc import Sequence
from decimal import Decimal

from nomina_engine.calculators.types import (
    ZERO,
    TaxBracket,
    TaxTable,
    WithholdingResult,
    round_money,
)
from nomina_engine.errors import ConfigError


class WithholdingCalculator:
    """Calculates ISR using SAT bracket tables.

    Bracket selection picks the row with the largest lower_limit that is
    <= taxable income. ISR = fixed_fee + (income - lower_limit) * rate.
    The employment subsidy is looked up the same way and subtracted from
    ISR; withholding never goes below zero.

    Tables are validated as strictly ascending when they are loaded
    (see nomina_engine.tax_config), so lookup is a binary search.
    """

    @staticmethod
    def find_bracket(
        brackets: Sequence[TaxBracket], amount: Decimal
    ) -> TaxBracket | None:
        """Return the bracket with the largest lower_limit <= amount."""
        limits = [b.lower_limit for b in brackets]
        index = bisect_right(limits, amount) - 1
        if index < 0:
            return None
        return brackets[index]

    @staticmethod
    def _apply(bracket: TaxBracket, amount: Decimal) -> Decimal:
        excess = amount - bracket.lower_limit
        return bracket.fixed_fee + excess * bracket.rate

    @classmethod
    def calculate_isr(
        cls, taxable_income: Decimal, table: TaxTable
    ) -> tuple[Decimal, TaxBracket | None]:
        """ISR before subsidy and the bracket used."""
        if taxable_income <= 0:
            return ZERO, None

        bracket = cls.find_bracket(table.isr_brackets, taxable_income)
        if bracket is None:
            raise ConfigError(
                f"no ISR bracket covers taxable income {taxable_income}",
                fiscal_year=table.fiscal_year,
                period_type=table.period_type.value,
            )
        return round_money(cls._apply(bracket, taxable_income)), bracket

    @classmethod
    def calculate_subsidy(cls, taxable_income: Decimal, table: TaxTable) -> Decimal:
        """Employment subsidy the income is entitled to (zero if no row applies)."""
        if taxable_income <= 0:
            return ZERO
        bracket = cls.find_bracket(table.subsidy_brackets, taxable_income)
        if bracket is None:
            return ZERO
        return max(round_money(cls._apply(bracket, taxable_income)), ZERO)

    @classmethod
    def calculate(cls, taxable_income: Decimal, table: TaxTable) -> WithholdingResult:
        """ISR withholding net of employment subsidy."""
        isr, bracket = cls.calculate_isr(taxable_income, table)
        subsidy = cls.calculate_subsidy(taxable_income, table)
        subsidy_applied = min(subsidy, isr)

        return WithholdingResult(
            isr_before_subsidy=isr,
            subsidy=subsidy,
            isr_withholding=isr - subsidy_applied,
            subsidy_applied=subsidy_applied,
            bracket=bracket,
        )
