"""Tests for the payroll period lifecycle guard."""

from __future__ import annotations

import pytest
import pytest_asyncio
from sqlalchemy import select

from nomina_engine.errors import ConflictError
from nomina_engine.models import PayrollCalculation
from nomina_engine.services.payroll_service import PayrollService
from nomina_engine.services.period_service import PeriodService
from nomina_engine.services.state_machine import PeriodStatus

pytestmark = pytest.mark.asyncio


@pytest_asyncio.fixture
async def calculated_period(session, tax_provider, make_employee, open_period, make_prenomina):
    for _ in range(2):
        employee = await make_employee()
        await make_prenomina(employee, open_period)
        await PayrollService(session, tax_provider).calculate(
            employee.employee_id, open_period.payroll_period_id
        )
    return open_period


async def stored_calculations(session, period) -> list[PayrollCalculation]:
    result = await session.execute(
        select(PayrollCalculation)
        .where(PayrollCalculation.payroll_period_id == period.payroll_period_id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars())


class TestLifecycle:
    async def test_full_lifecycle(self, session, calculated_period):
        service = PeriodService(session)
        period_id = calculated_period.payroll_period_id
        assert calculated_period.status == "calculated"

        period = await service.approve(period_id)
        assert period.status == "approved"
        assert period.approved_at is not None
        assert all(c.calculation_status == "approved" for c in await stored_calculations(session, period))

        period = await service.process_payment(period_id)
        assert period.status == "paid"
        assert period.paid_at is not None
        assert all(c.payroll_status == "paid" for c in await stored_calculations(session, period))

    async def test_version_bumped_per_transition(self, session, calculated_period):
        service = PeriodService(session)
        period_id = calculated_period.payroll_period_id
        assert calculated_period.version == 2

        await service.approve(period_id)
        assert calculated_period.version == 3
        await service.process_payment(period_id)
        assert calculated_period.version == 4

    async def test_second_approve_fails(self, session, calculated_period):
        service = PeriodService(session)
        await service.approve(calculated_period.payroll_period_id)

        with pytest.raises(ConflictError) as exc_info:
            await service.approve(calculated_period.payroll_period_id)
        assert exc_info.value.current_status == "approved"

    async def test_approve_open_period_fails(self, session, open_period):
        with pytest.raises(ConflictError):
            await PeriodService(session).approve(open_period.payroll_period_id)

    async def test_approve_without_calculations_fails(self, session, make_period):
        period = await make_period(status="calculated")
        with pytest.raises(ConflictError) as exc_info:
            await PeriodService(session).approve(period.payroll_period_id)
        assert "no calculations" in str(exc_info.value)

    async def test_pay_requires_approved(self, session, calculated_period):
        with pytest.raises(ConflictError):
            await PeriodService(session).process_payment(calculated_period.payroll_period_id)

    async def test_recalculation_after_approval_rejected(
        self, session, tax_provider, calculated_period
    ):
        await PeriodService(session).approve(calculated_period.payroll_period_id)
        calcs = await stored_calculations(session, calculated_period)

        with pytest.raises(ConflictError):
            await PayrollService(session, tax_provider).calculate(
                calcs[0].employee_id, calculated_period.payroll_period_id
            )

    async def test_mark_calculated_idempotent(self, session, open_period):
        service = PeriodService(session)
        await service.mark_calculated(open_period.payroll_period_id)
        await service.mark_calculated(open_period.payroll_period_id)
        assert open_period.status == "calculated"
        assert open_period.version == 2


class TestConditionalWrite:
    """A status change by another writer makes the guarded UPDATE miss."""

    async def test_stale_transition_raises_conflict(self, session, calculated_period):
        service = PeriodService(session)
        period_id = calculated_period.payroll_period_id

        # Another writer approves first
        assert await service.periods.compare_and_set_status(
            period_id, expected=(PeriodStatus.CALCULATED,), new_status="approved"
        )

        with pytest.raises(ConflictError) as exc_info:
            await service._transition(
                calculated_period, "approve", PeriodStatus.CALCULATED, PeriodStatus.APPROVED
            )
        assert exc_info.value.current_status == "approved"

    async def test_compare_and_set_misses_on_wrong_status(self, session, open_period):
        repo = PeriodService(session).periods
        updated = await repo.compare_and_set_status(
            open_period.payroll_period_id,
            expected=(PeriodStatus.APPROVED,),
            new_status="paid",
        )
        assert updated is False
        assert await repo.get_status(open_period.payroll_period_id) == "open"


class TestRecalculationGuard:
    """Recalculating a calculated period holds the period row under the guard."""

    async def test_recalculation_losing_to_approval_conflicts(
        self, session, tax_provider, make_employee, make_prenomina, calculated_period, monkeypatch
    ):
        period_id = calculated_period.payroll_period_id
        late = await make_employee()
        await make_prenomina(late, calculated_period)
        service = PayrollService(session, tax_provider)
        read_status = service.period_service.periods.get_status

        # Approval lands between the status check and the guarded write
        async def approve_after_read(payroll_period_id):
            status = await read_status(payroll_period_id)
            if status == "calculated":
                await PeriodService(session).approve(payroll_period_id)
            return status

        monkeypatch.setattr(service.period_service.periods, "get_status", approve_after_read)

        with pytest.raises(ConflictError) as exc_info:
            await service.calculate(late.employee_id, period_id)

        assert exc_info.value.current_status == "approved"
        assert await service.calculations.get(late.employee_id, period_id) is None
        calcs = await stored_calculations(session, calculated_period)
        assert len(calcs) == 2
        assert all(c.calculation_status == "approved" for c in calcs)

    async def test_mark_calculated_holds_calculated_period(
        self, session, calculated_period, monkeypatch
    ):
        period_id = calculated_period.payroll_period_id
        service = PeriodService(session)
        read_status = service.periods.get_status

        async def approve_after_read(payroll_period_id):
            status = await read_status(payroll_period_id)
            if status == "calculated":
                await PeriodService(session).approve(payroll_period_id)
            return status

        monkeypatch.setattr(service.periods, "get_status", approve_after_read)

        with pytest.raises(ConflictError) as exc_info:
            await service.mark_calculated(period_id)
        assert exc_info.value.reason == "status changed concurrently"

    async def test_guarded_write_keeps_status_and_version(self, session, calculated_period):
        repo = PeriodService(session).periods
        period_id = calculated_period.payroll_period_id

        assert await repo.touch_if_status(period_id, ("open", "calculated")) is True
        assert await repo.touch_if_status(period_id, ("open",)) is False

        await session.refresh(calculated_period)
        assert calculated_period.status == "calculated"
        assert calculated_period.version == 2
