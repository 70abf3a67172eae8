"""Single-employee payroll calculation service."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from nomina_engine.calculators.engine import PayrollEngine
from nomina_engine.calculators.types import (
    CalculationResult,
    EmployeeInput,
    PeriodInput,
    PrenominaInput,
)
from nomina_engine.config import get_settings
from nomina_engine.errors import NotFoundError
from nomina_engine.models import PayrollCalculation, PayrollPeriod
from nomina_engine.repositories import (
    EmployeeRepository,
    PayrollCalculationRepository,
    PayrollPeriodRepository,
    PrenominaRepository,
)
from nomina_engine.services.period_service import PeriodService
from nomina_engine.tax_config import FileTaxConfigProvider, TaxConfigProvider

logger = logging.getLogger(__name__)


def default_tax_provider() -> TaxConfigProvider:
    return FileTaxConfigProvider(get_settings().tax_config_dir)


class PayrollService:
    """Loads inputs, runs the engine and persists the result.

    Flow for calculate():
    1. Period must exist and allow calculation (open/calculated)
    2. Load employee, prenomina and the period's tax table
    3. Run PayrollEngine (pure)
    4. Write back refreshed SDI, upsert PayrollCalculation
    5. Advance the period open → calculated and refresh its totals
    """

    def __init__(
        self,
        session: AsyncSession,
        tax_provider: TaxConfigProvider | None = None,
        engine: PayrollEngine | None = None,
    ):
        self.session = session
        self.tax_provider = tax_provider or default_tax_provider()
        self.engine = engine or PayrollEngine()
        self.employees = EmployeeRepository(session)
        self.prenomina = PrenominaRepository(session)
        self.periods = PayrollPeriodRepository(session)
        self.calculations = PayrollCalculationRepository(session)
        self.period_service = PeriodService(session)

    async def calculate(
        self,
        employee_id: UUID,
        payroll_period_id: UUID,
        calculate_sdi: bool = False,
    ) -> PayrollCalculation:
        period = await self.period_service.ensure_can_calculate(payroll_period_id)

        employee = await self.employees.get(employee_id)
        if employee is None:
            raise NotFoundError("Employee", employee_id)
        metric = await self.prenomina.get(employee_id, payroll_period_id)

        period_input = PeriodInput.from_model(period)
        tax_table = self.tax_provider.get_tax_table(period_input.year, period_input.frequency)

        result = self.engine.calculate(
            EmployeeInput.from_model(employee),
            period_input,
            PrenominaInput.from_model(metric) if metric is not None else None,
            tax_table,
            calculate_sdi=calculate_sdi,
        )

        calc = await self.save_result(result)
        await self.period_service.mark_calculated(payroll_period_id)
        await self.refresh_period_totals(period)

        logger.info(
            "Calculated employee %s for period %s: gross=%s net=%s",
            employee.employee_number,
            period.period_code,
            result.total_gross_income,
            result.total_net_pay,
        )
        return calc

    async def save_result(self, result: CalculationResult) -> PayrollCalculation:
        """Persist an engine result (SDI write-back + calculation upsert)."""
        if result.sdi_refreshed:
            await self.employees.update_sdi(result.employee_id, result.sdi)
        if result.shortfall_detail:
            logger.warning(
                "Deductions capped for employee %s in period %s: %s",
                result.employee_id,
                result.payroll_period_id,
                {k: str(v) for k, v in result.shortfall_detail.items()},
            )
        return await self.calculations.upsert(result)

    async def refresh_period_totals(self, period: PayrollPeriod) -> dict:
        totals = await self.calculations.period_totals(period.payroll_period_id)
        await self.periods.update_totals(period.payroll_period_id, totals)
        await self.session.refresh(period)
        return totals
