"""Bulk payroll calculation coordinator."""

from __future__ import annotations

import asyncio
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from nomina_engine.calculators.engine import PayrollEngine
from nomina_engine.calculators.types import (
    ZERO,
    CalculationResult,
    EmployeeInput,
    PeriodInput,
    PrenominaInput,
)
from nomina_engine.config import get_settings
from nomina_engine.errors import DeadlineExceeded, NotFoundError, PayrollError
from nomina_engine.models import Employee
from nomina_engine.services.payroll_service import PayrollService
from nomina_engine.tax_config import TaxConfigProvider

logger = logging.getLogger(__name__)


@dataclass
class EmployeeOutcome:
    """Per-employee entry of a bulk calculation."""

    employee_id: UUID
    success: bool
    employee_number: str | None = None
    employee_name: str | None = None
    payroll_calculation_id: UUID | None = None
    total_gross_income: Decimal | None = None
    total_net_pay: Decimal | None = None
    deduction_shortfall: Decimal | None = None
    error: str | None = None
    error_type: str | None = None

    @classmethod
    def failed(
        cls, employee_id: UUID, exc: BaseException, employee: Employee | None = None
    ) -> EmployeeOutcome:
        return cls(
            employee_id=employee_id,
            success=False,
            employee_number=employee.employee_number if employee else None,
            employee_name=employee.full_name if employee else None,
            error=str(exc),
            error_type=type(exc).__name__,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "employee_id": str(self.employee_id),
            "employee_number": self.employee_number,
            "employee_name": self.employee_name,
            "success": self.success,
        }
        if self.success:
            data.update(
                payroll_calculation_id=str(self.payroll_calculation_id),
                total_gross_income=str(self.total_gross_income),
                total_net_pay=str(self.total_net_pay),
                deduction_shortfall=str(self.deduction_shortfall),
            )
        else:
            data.update(error=self.error, error_type=self.error_type)
        return data


@dataclass
class BulkCalculationResult:
    """Aggregate outcome of a bulk calculation, results in input order."""

    payroll_period_id: UUID
    period_code: str
    results: list[EmployeeOutcome] = field(default_factory=list)
    deadline_exceeded: bool = False
    period_status: str | None = None
    duration_ms: int = 0

    @property
    def total_calculated(self) -> int:
        return len(self.results)

    @property
    def total_success(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def total_failed(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def total_gross(self) -> Decimal:
        return sum((r.total_gross_income for r in self.results if r.success), ZERO)

    @property
    def total_net(self) -> Decimal:
        return sum((r.total_net_pay for r in self.results if r.success), ZERO)

    @property
    def is_partial_failure(self) -> bool:
        """Some, but not all, employees failed."""
        return self.total_failed > 0 and self.total_success > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "payroll_period_id": str(self.payroll_period_id),
            "period_code": self.period_code,
            "period_status": self.period_status,
            "total_calculated": self.total_calculated,
            "total_success": self.total_success,
            "total_failed": self.total_failed,
            "total_gross": str(self.total_gross),
            "total_net": str(self.total_net),
            "is_partial_failure": self.is_partial_failure,
            "deadline_exceeded": self.deadline_exceeded,
            "duration_ms": self.duration_ms,
            "results": [r.to_dict() for r in self.results],
        }


class BulkCalculationService:
    """Calculates a whole payroll period, capturing failures per employee.

    The pure engine runs on a bounded thread pool; loading and persistence
    stay on the caller's single AsyncSession. Each successful result is
    upserted inside its own SAVEPOINT so a storage error only fails that
    employee. Work still running when the deadline expires is cancelled
    and reported as DeadlineExceeded.
    """

    def __init__(
        self,
        session: AsyncSession,
        tax_provider: TaxConfigProvider | None = None,
        engine: PayrollEngine | None = None,
        max_workers: int | None = None,
    ):
        self.session = session
        self.payroll_service = PayrollService(session, tax_provider=tax_provider, engine=engine)
        self.tax_provider = self.payroll_service.tax_provider
        self.engine = self.payroll_service.engine
        self.max_workers = max_workers or get_settings().bulk_max_workers

    async def bulk_calculate(
        self,
        payroll_period_id: UUID,
        employee_ids: list[UUID] | None = None,
        calculate_all: bool = False,
        deadline_seconds: float | None = None,
        calculate_sdi: bool = False,
    ) -> BulkCalculationResult:
        """Calculate every target employee, capturing failures per employee.

        ``deadline_seconds`` bounds only the calculation fan-out. Loading the
        targets before it and saving the finished results after it are not
        counted; every result computed in time is stored, even if storing
        runs past the deadline.
        """
        started = time.monotonic()
        if deadline_seconds is None:
            deadline_seconds = get_settings().bulk_deadline_seconds

        period_service = self.payroll_service.period_service
        period = await period_service.ensure_can_calculate(payroll_period_id)
        period_input = PeriodInput.from_model(period)
        # A missing or malformed table fails the whole call before any work
        tax_table = self.tax_provider.get_tax_table(period_input.year, period_input.frequency)

        targets = await self._resolve_targets(period.frequency, employee_ids, calculate_all)
        outcomes: list[EmployeeOutcome | None] = [None] * len(targets)

        # Snapshots are taken on the loop thread; ORM objects never leave it
        jobs: dict[int, tuple[Employee, EmployeeInput, PrenominaInput | None]] = {}
        found = [emp for _, emp in targets if emp is not None]
        metrics = await self.payroll_service.prenomina.get_for_period(
            payroll_period_id, [e.employee_id for e in found]
        )
        for index, (employee_id, employee) in enumerate(targets):
            if employee is None:
                outcomes[index] = EmployeeOutcome.failed(
                    employee_id, NotFoundError("Employee", employee_id)
                )
                continue
            metric = metrics.get(employee_id)
            jobs[index] = (
                employee,
                EmployeeInput.from_model(employee),
                PrenominaInput.from_model(metric) if metric is not None else None,
            )

        computed, deadline_exceeded = await self._fan_out(
            jobs, period_input, tax_table, calculate_sdi, deadline_seconds
        )

        for index, (employee, _, _) in jobs.items():
            result = computed[index]
            if isinstance(result, CalculationResult):
                outcomes[index] = await self._persist(employee, result)
            else:
                logger.warning(
                    "Employee %s failed in %s: %s", employee.employee_number, period.period_code, result
                )
                outcomes[index] = EmployeeOutcome.failed(employee.employee_id, result, employee)

        bulk = BulkCalculationResult(
            payroll_period_id=payroll_period_id,
            period_code=period.period_code,
            results=[o for o in outcomes if o is not None],
            deadline_exceeded=deadline_exceeded,
        )

        if bulk.total_success > 0:
            await period_service.mark_calculated(payroll_period_id)
            await self.payroll_service.refresh_period_totals(period)
        bulk.period_status = period.status
        bulk.duration_ms = int((time.monotonic() - started) * 1000)

        logger.info(
            "Bulk calculation for %s: %d calculated, %d succeeded, %d failed%s",
            period.period_code,
            bulk.total_calculated,
            bulk.total_success,
            bulk.total_failed,
            " (deadline exceeded)" if deadline_exceeded else "",
        )
        return bulk

    async def _resolve_targets(
        self,
        frequency: str,
        employee_ids: list[UUID] | None,
        calculate_all: bool,
    ) -> list[tuple[UUID, Employee | None]]:
        """(employee_id, employee or None if unknown) in processing order."""
        employees = self.payroll_service.employees
        if calculate_all:
            return [(e.employee_id, e) for e in await employees.list_eligible(frequency)]

        ids = list(dict.fromkeys(employee_ids or []))
        by_id = await employees.get_many(ids)
        return [(employee_id, by_id.get(employee_id)) for employee_id in ids]

    async def _fan_out(
        self,
        jobs: dict[int, tuple[Employee, EmployeeInput, PrenominaInput | None]],
        period_input: PeriodInput,
        tax_table,
        calculate_sdi: bool,
        deadline_seconds: float | None,
    ) -> tuple[dict[int, CalculationResult | BaseException], bool]:
        if not jobs:
            return {}, False

        loop = asyncio.get_running_loop()
        pool = ThreadPoolExecutor(
            max_workers=min(self.max_workers, len(jobs)),
            thread_name_prefix="nomina-bulk",
        )
        try:
            futures = {
                index: loop.run_in_executor(
                    pool,
                    self.engine.calculate,
                    employee_input,
                    period_input,
                    prenomina_input,
                    tax_table,
                    calculate_sdi,
                )
                for index, (_, employee_input, prenomina_input) in jobs.items()
            }
            _, pending = await asyncio.wait(futures.values(), timeout=deadline_seconds)
            for future in pending:
                future.cancel()
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        computed: dict[int, CalculationResult | BaseException] = {}
        for index, future in futures.items():
            employee = jobs[index][0]
            if future in pending:
                computed[index] = DeadlineExceeded(employee.employee_id, deadline_seconds)
                continue
            exc = future.exception()
            if exc is None:
                computed[index] = future.result()
            else:
                if not isinstance(exc, PayrollError):
                    logger.error(
                        "Unexpected error calculating employee %s",
                        employee.employee_number,
                        exc_info=exc,
                    )
                computed[index] = exc

        return computed, bool(pending)

    async def _persist(self, employee: Employee, result: CalculationResult) -> EmployeeOutcome:
        # Read before the savepoint; a rollback expires objects touched inside it
        outcome = EmployeeOutcome(
            employee_id=employee.employee_id,
            success=True,
            employee_number=employee.employee_number,
            employee_name=employee.full_name,
            total_gross_income=result.total_gross_income,
            total_net_pay=result.total_net_pay,
            deduction_shortfall=result.deduction_shortfall,
        )

        savepoint = await self.session.begin_nested()
        try:
            calc = await self.payroll_service.save_result(result)
            outcome.payroll_calculation_id = calc.payroll_calculation_id
            await savepoint.commit()
        except Exception as exc:
            await savepoint.rollback()
            logger.exception("Could not store calculation for employee %s", outcome.employee_number)
            return EmployeeOutcome(
                employee_id=outcome.employee_id,
                success=False,
                employee_number=outcome.employee_number,
                employee_name=outcome.employee_name,
                error=str(exc),
                error_type=type(exc).__name__,
            )

        return outcome
