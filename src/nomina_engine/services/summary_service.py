"""Read-only period summaries built from stored calculations."""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from nomina_engine.calculators.types import ZERO
from nomina_engine.models import Employee, PayrollCalculation
from nomina_engine.schemas import ConceptTotal, EmployeeSummary, PeriodSummary
from nomina_engine.services.period_service import PeriodService

# (concept, category, PayrollCalculation attributes summed)
# "credit" offsets ISR and is already netted in isr_withholding
CONCEPTS: tuple[tuple[str, str, tuple[str, ...]], ...] = (
    ("Regular Salary", "income", ("regular_salary",)),
    ("Overtime", "income", ("overtime_amount", "double_overtime_amount", "triple_overtime_amount")),
    ("Vacation Premium", "income", ("vacation_premium",)),
    ("Aguinaldo", "income", ("aguinaldo",)),
    ("Bonus", "income", ("bonus_amount",)),
    ("Commission", "income", ("commission_amount",)),
    ("Other Income", "income", ("other_extras",)),
    ("Employment Subsidy", "credit", ("employment_subsidy",)),
    ("ISR Withholding", "deduction", ("isr_withholding",)),
    ("IMSS Employee", "deduction", ("imss_employee",)),
    ("Infonavit Employee", "deduction", ("infonavit_employee",)),
    ("Loan Deductions", "deduction", ("loan_deductions",)),
    ("Advance Deductions", "deduction", ("advance_deductions",)),
    ("Other Deductions", "deduction", ("other_deductions",)),
)

EMPLOYER_CONCEPTS: tuple[tuple[str, str], ...] = (
    ("IMSS Employer", "total_imss"),
    ("Infonavit Employer", "total_infonavit"),
    ("Retirement Savings", "total_retirement"),
)


class SummaryService:
    """Formats stored results of a period; never recalculates."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.period_service = PeriodService(session)

    async def _load(self, payroll_period_id: UUID) -> list[tuple[PayrollCalculation, Employee]]:
        result = await self.session.execute(
            select(PayrollCalculation, Employee)
            .join(Employee, Employee.employee_id == PayrollCalculation.employee_id)
            .where(PayrollCalculation.payroll_period_id == payroll_period_id)
            .order_by(Employee.employee_number)
        )
        return [(calc, employee) for calc, employee in result.all()]

    async def period_summary(self, payroll_period_id: UUID) -> PeriodSummary:
        period = await self.period_service.get_period(payroll_period_id)
        rows = await self._load(payroll_period_id)

        employees = []
        total_gross = total_deductions = total_net = employer = ZERO
        for calc, employee in rows:
            total_gross += calc.total_gross_income
            total_deductions += calc.total_deductions
            total_net += calc.total_net_pay
            if calc.employer_contribution is not None:
                employer += calc.employer_contribution.total_contributions
            employees.append(
                EmployeeSummary(
                    employee_id=employee.employee_id,
                    employee_number=employee.employee_number,
                    employee_name=employee.full_name,
                    gross=calc.total_gross_income,
                    deductions=calc.total_deductions,
                    net=calc.total_net_pay,
                    calculation_status=calc.calculation_status,
                    payroll_status=calc.payroll_status,
                )
            )

        return PeriodSummary(
            payroll_period_id=period.payroll_period_id,
            period_code=period.period_code,
            status=period.status,
            employee_count=len(employees),
            total_gross=total_gross,
            total_deductions=total_deductions,
            total_net=total_net,
            employer_contributions=employer,
            employees=employees,
        )

    async def concept_totals(self, payroll_period_id: UUID) -> list[ConceptTotal]:
        await self.period_service.get_period(payroll_period_id)
        rows = await self._load(payroll_period_id)

        totals: list[ConceptTotal] = []
        for concept, category, attrs in CONCEPTS:
            amount = sum(
                (Decimal(getattr(calc, attr)) for calc, _ in rows for attr in attrs), ZERO
            )
            totals.append(ConceptTotal(concept=concept, category=category, total=amount))

        for concept, attr in EMPLOYER_CONCEPTS:
            amount = sum(
                (
                    getattr(calc.employer_contribution, attr)
                    for calc, _ in rows
                    if calc.employer_contribution is not None
                ),
                ZERO,
            )
            totals.append(ConceptTotal(concept=concept, category="employer", total=amount))

        return totals
