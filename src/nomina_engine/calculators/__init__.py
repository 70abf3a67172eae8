"""Payroll calculation engine."""

from nomina_engine.calculators.contribution_calculator import ContributionCalculator
from nomina_engine.calculators.engine import PayrollEngine
from nomina_engine.calculators.sdi_calculator import SDICalculator
from nomina_engine.calculators.types import CalculationResult, TaxTable
from nomina_engine.calculators.withholding_calculator import WithholdingCalculator

__all__ = [
    "PayrollEngine",
    "CalculationResult",
    "ContributionCalculator",
    "SDICalculator",
    "TaxTable",
    "WithholdingCalculator",
]
