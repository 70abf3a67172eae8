"""Data access for employees, prenomina, periods and stored calculations.

Repositories share the caller's AsyncSession and never commit; the
transaction boundary belongs to the service (or CLI) that opened it.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from nomina_engine.calculators.types import ZERO, CalculationResult
from nomina_engine.models import (
    Employee,
    EmployerContribution,
    PayrollCalculation,
    PayrollPeriod,
    PrenominaMetric,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EmployeeRepository:
    """Read access to employees plus the stored SDI write-back."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, employee_id: UUID) -> Employee | None:
        return await self.session.get(Employee, employee_id)

    async def get_many(self, employee_ids: Iterable[UUID]) -> dict[UUID, Employee]:
        ids = list(dict.fromkeys(employee_ids))
        if not ids:
            return {}
        result = await self.session.execute(
            select(Employee).where(Employee.employee_id.in_(ids))
        )
        return {e.employee_id: e for e in result.scalars()}

    async def list_eligible(self, frequency: str) -> list[Employee]:
        """Active employees paid at ``frequency``, ordered by employee number."""
        result = await self.session.execute(
            select(Employee)
            .where(
                Employee.employment_status == "active",
                Employee.pay_frequency == frequency,
            )
            .order_by(Employee.employee_number)
        )
        return list(result.scalars())

    async def update_sdi(self, employee_id: UUID, sdi: Decimal) -> None:
        await self.session.execute(
            update(Employee)
            .where(Employee.employee_id == employee_id)
            .values(integrated_daily_salary=sdi)
        )


class PrenominaRepository:
    """Read access to prenomina metrics."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, employee_id: UUID, payroll_period_id: UUID) -> PrenominaMetric | None:
        result = await self.session.execute(
            select(PrenominaMetric).where(
                PrenominaMetric.employee_id == employee_id,
                PrenominaMetric.payroll_period_id == payroll_period_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_for_period(
        self, payroll_period_id: UUID, employee_ids: Iterable[UUID]
    ) -> dict[UUID, PrenominaMetric]:
        ids = list(employee_ids)
        if not ids:
            return {}
        result = await self.session.execute(
            select(PrenominaMetric).where(
                PrenominaMetric.payroll_period_id == payroll_period_id,
                PrenominaMetric.employee_id.in_(ids),
            )
        )
        return {m.employee_id: m for m in result.scalars()}


class PayrollPeriodRepository:
    """Period reads and guarded status writes."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, payroll_period_id: UUID) -> PayrollPeriod | None:
        return await self.session.get(PayrollPeriod, payroll_period_id)

    async def get_status(self, payroll_period_id: UUID) -> str | None:
        """Current status straight from the database (bypasses the identity map)."""
        result = await self.session.execute(
            select(PayrollPeriod.status).where(
                PayrollPeriod.payroll_period_id == payroll_period_id
            )
        )
        return result.scalar_one_or_none()

    async def compare_and_set_status(
        self,
        payroll_period_id: UUID,
        expected: Iterable[str],
        new_status: str,
        **values,
    ) -> bool:
        """Conditional status write with version bump.

        Returns False if the period was not in one of the ``expected``
        statuses when the UPDATE ran (another writer got there first).
        """
        result = await self.session.execute(
            update(PayrollPeriod)
            .where(
                PayrollPeriod.payroll_period_id == payroll_period_id,
                PayrollPeriod.status.in_([str(getattr(s, "value", s)) for s in expected]),
            )
            .values(
                status=new_status,
                version=PayrollPeriod.version + 1,
                updated_at=utcnow(),
                **values,
            )
            .execution_options(synchronize_session=False)
        )
        updated = (result.rowcount or 0) == 1
        if updated:
            period = await self.get(payroll_period_id)
            if period is not None:
                await self.session.refresh(period)
        return updated

    async def touch_if_status(
        self,
        payroll_period_id: UUID,
        expected: Iterable[str],
    ) -> bool:
        """Guarded write that leaves status and version unchanged.

        The row stays locked until the transaction ends. Returns False if
        the period is no longer in one of the ``expected`` statuses.
        """
        result = await self.session.execute(
            update(PayrollPeriod)
            .where(
                PayrollPeriod.payroll_period_id == payroll_period_id,
                PayrollPeriod.status.in_([str(getattr(s, "value", s)) for s in expected]),
            )
            .values(updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return (result.rowcount or 0) == 1

    async def update_totals(
        self,
        payroll_period_id: UUID,
        totals: dict[str, Decimal],
    ) -> None:
        await self.session.execute(
            update(PayrollPeriod)
            .where(PayrollPeriod.payroll_period_id == payroll_period_id)
            .values(
                total_gross=totals["total_gross"],
                total_deductions=totals["total_deductions"],
                total_net=totals["total_net"],
                total_employer_contributions=totals["total_employer_contributions"],
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )


class PayrollCalculationRepository:
    """Stored calculation results, upserted per (employee, period)."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(
        self, employee_id: UUID, payroll_period_id: UUID
    ) -> PayrollCalculation | None:
        result = await self.session.execute(
            select(PayrollCalculation).where(
                PayrollCalculation.employee_id == employee_id,
                PayrollCalculation.payroll_period_id == payroll_period_id,
            )
        )
        return result.scalar_one_or_none()

    async def count_for_period(self, payroll_period_id: UUID) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(PayrollCalculation)
            .where(PayrollCalculation.payroll_period_id == payroll_period_id)
        )
        return int(result.scalar_one())

    async def upsert(self, result: CalculationResult) -> PayrollCalculation:
        """Insert or overwrite the row for (employee_id, payroll_period_id)."""
        calc = await self.get(result.employee_id, result.payroll_period_id)
        if calc is None:
            calc = PayrollCalculation(
                employee_id=result.employee_id,
                payroll_period_id=result.payroll_period_id,
            )
            self.session.add(calc)

        withholding = result.withholding
        calc.prenomina_metric_id = result.prenomina_metric_id
        calc.sdi_used = result.sdi

        calc.regular_salary = result.regular_salary
        calc.overtime_amount = result.overtime.regular_amount
        calc.double_overtime_amount = result.overtime.double_amount
        calc.triple_overtime_amount = result.overtime.triple_amount
        calc.vacation_premium = result.vacation_premium
        calc.aguinaldo = result.aguinaldo
        calc.bonus_amount = result.bonus_amount
        calc.commission_amount = result.commission_amount
        calc.other_extras = result.other_extras

        calc.isr_before_subsidy = withholding.isr_before_subsidy
        calc.employment_subsidy = withholding.subsidy_applied
        calc.isr_withholding = result.isr_withholding
        calc.imss_employee = result.imss_employee
        calc.infonavit_employee = result.infonavit_employee
        calc.loan_deductions = result.loan_deductions
        calc.advance_deductions = result.advance_deductions
        calc.other_deductions = result.other_deductions
        calc.deduction_shortfall = result.deduction_shortfall
        calc.shortfall_detail = {k: str(v) for k, v in result.shortfall_detail.items()}

        calc.total_gross_income = result.total_gross_income
        calc.total_statutory_deductions = result.total_statutory_deductions
        calc.total_other_deductions = result.total_other_deductions
        calc.total_deductions = result.total_deductions
        calc.total_net_pay = result.total_net_pay

        calc.calculation_status = "calculated"
        calc.payroll_status = "pending"
        calc.calculated_at = utcnow()
        calc.approved_at = None
        calc.paid_at = None

        self._apply_employer_contribution(calc, result)
        await self.session.flush()
        return calc

    @staticmethod
    def _apply_employer_contribution(
        calc: PayrollCalculation, result: CalculationResult
    ) -> None:
        contributions = result.contributions
        er = contributions.imss_employer

        contribution = calc.employer_contribution
        if contribution is None:
            contribution = EmployerContribution()
            calc.employer_contribution = contribution

        contribution.contribution_base_sdi = contributions.contribution_base_sdi
        contribution.imss_fixed_fee = er.fixed_fee
        contribution.imss_excess_sickness = er.excess_sickness
        contribution.imss_cash_benefits = er.cash_benefits
        contribution.imss_pensioner_medical = er.pensioner_medical
        contribution.imss_disability_life = er.disability_life
        contribution.imss_childcare = er.childcare
        contribution.imss_retirement = er.retirement
        contribution.imss_severance_old_age = er.severance_old_age
        contribution.imss_work_risk = er.work_risk
        contribution.total_imss = er.total
        contribution.total_infonavit = contributions.infonavit_employer
        contribution.total_retirement = contributions.total_retirement
        contribution.total_contributions = contributions.total_employer

    async def mark_for_period(self, payroll_period_id: UUID, **values) -> int:
        """Bulk-stamp every calculation of a period (approval/payment)."""
        result = await self.session.execute(
            update(PayrollCalculation)
            .where(PayrollCalculation.payroll_period_id == payroll_period_id)
            .values(updated_at=utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def period_totals(self, payroll_period_id: UUID) -> dict[str, Decimal]:
        """Aggregate gross/deduction/net and employer totals over stored rows."""
        result = await self.session.execute(
            select(
                func.count(PayrollCalculation.payroll_calculation_id),
                func.coalesce(func.sum(PayrollCalculation.total_gross_income), 0),
                func.coalesce(func.sum(PayrollCalculation.total_deductions), 0),
                func.coalesce(func.sum(PayrollCalculation.total_net_pay), 0),
                func.coalesce(func.sum(EmployerContribution.total_contributions), 0),
            )
            .select_from(PayrollCalculation)
            .outerjoin(
                EmployerContribution,
                EmployerContribution.payroll_calculation_id
                == PayrollCalculation.payroll_calculation_id,
            )
            .where(PayrollCalculation.payroll_period_id == payroll_period_id)
        )
        count, gross, deductions, net, employer = result.one()
        return {
            "employee_count": int(count),
            "total_gross": _money(gross),
            "total_deductions": _money(deductions),
            "total_net": _money(net),
            "total_employer_contributions": _money(employer),
        }


def _money(value) -> Decimal:
    if value is None:
        return ZERO
    return Decimal(str(value)).quantize(Decimal("0.01"))
