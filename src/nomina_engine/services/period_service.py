"""Payroll period lifecycle guard."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from nomina_engine.errors import ConflictError, NotFoundError
from nomina_engine.models import PayrollPeriod
from nomina_engine.repositories import (
    PayrollCalculationRepository,
    PayrollPeriodRepository,
    utcnow,
)
from nomina_engine.services.state_machine import PeriodStateMachine, PeriodStatus

logger = logging.getLogger(__name__)


class PeriodService:
    """Guards every payroll period status write.

    Transitions are check-then-write: the status is validated against the
    loaded row, then written with ``UPDATE ... WHERE status IN (expected)``.
    If another writer moved the period in between, the UPDATE touches zero
    rows and ConflictError is raised. Each transition bumps ``version``.

    Calculation also writes the period row (status unchanged) so that a
    recalculation of a ``calculated`` period and a concurrent approval
    are serialized on that row.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.periods = PayrollPeriodRepository(session)
        self.calculations = PayrollCalculationRepository(session)

    async def get_period(self, payroll_period_id: UUID) -> PayrollPeriod:
        period = await self.periods.get(payroll_period_id)
        if period is None:
            raise NotFoundError("PayrollPeriod", payroll_period_id)
        return period

    async def ensure_can_calculate(self, payroll_period_id: UUID) -> PayrollPeriod:
        """Load the period and check calculation is allowed in its status."""
        period = await self.get_period(payroll_period_id)
        status = await self.periods.get_status(payroll_period_id)
        PeriodStateMachine.validate_action(payroll_period_id, status, "calculate")
        await self._hold_for_calculation(period)
        return period

    async def mark_calculated(self, payroll_period_id: UUID) -> PayrollPeriod:
        """Advance open → calculated; status is kept if already calculated.

        Raises ConflictError if the period left the calculable statuses
        (e.g. it was approved concurrently).
        """
        period = await self.get_period(payroll_period_id)
        status = await self.periods.get_status(payroll_period_id)
        PeriodStateMachine.validate_action(payroll_period_id, status, "calculate")
        if status == PeriodStatus.CALCULATED:
            await self._hold_for_calculation(period)
            return period

        updated = await self.periods.compare_and_set_status(
            payroll_period_id,
            expected=(PeriodStatus.OPEN,),
            new_status=PeriodStatus.CALCULATED.value,
            calculated_at=utcnow(),
        )
        if not updated:
            current = await self.periods.get_status(payroll_period_id)
            if current == PeriodStatus.CALCULATED:
                await self._hold_for_calculation(period)
                return period
            raise ConflictError(
                payroll_period_id, current, "calculate", reason="status changed concurrently"
            )

        logger.info("Payroll period %s moved open -> calculated", period.period_code)
        return period

    async def approve(self, payroll_period_id: UUID) -> PayrollPeriod:
        """Approve a calculated period and stamp its calculations as approved."""
        period = await self.get_period(payroll_period_id)
        status = await self.periods.get_status(payroll_period_id)
        PeriodStateMachine.validate_action(payroll_period_id, status, "approve")

        count = await self.calculations.count_for_period(payroll_period_id)
        if count == 0:
            raise ConflictError(
                payroll_period_id, status, "approve", reason="period has no calculations"
            )

        now = utcnow()
        await self._transition(
            period, "approve", PeriodStatus.CALCULATED, PeriodStatus.APPROVED, approved_at=now
        )
        stamped = await self.calculations.mark_for_period(
            payroll_period_id, calculation_status="approved", approved_at=now
        )
        logger.info(
            "Payroll period %s approved (%d calculations)", period.period_code, stamped
        )
        return period

    async def process_payment(self, payroll_period_id: UUID) -> PayrollPeriod:
        """Mark an approved period and its calculations as paid."""
        period = await self.get_period(payroll_period_id)
        status = await self.periods.get_status(payroll_period_id)
        PeriodStateMachine.validate_action(payroll_period_id, status, "pay")

        now = utcnow()
        await self._transition(
            period, "pay", PeriodStatus.APPROVED, PeriodStatus.PAID, paid_at=now
        )
        stamped = await self.calculations.mark_for_period(
            payroll_period_id, payroll_status="paid", paid_at=now
        )
        logger.info("Payroll period %s paid (%d calculations)", period.period_code, stamped)
        return period

    async def _hold_for_calculation(self, period: PayrollPeriod) -> None:
        """Keep the period row under the calculate guard until commit.

        An approval committed before this write makes it miss. One that
        starts after it waits for this transaction and then counts and
        stamps its rows.
        """
        held = await self.periods.touch_if_status(
            period.payroll_period_id, PeriodStateMachine.sources_for("calculate")
        )
        if not held:
            current = await self.periods.get_status(period.payroll_period_id)
            raise ConflictError(
                period.payroll_period_id,
                current,
                "calculate",
                reason="status changed concurrently",
            )

    async def _transition(
        self,
        period: PayrollPeriod,
        action: str,
        from_status: PeriodStatus,
        to_status: PeriodStatus,
        **values,
    ) -> None:
        if not PeriodStateMachine.can_transition(from_status, to_status):
            raise ConflictError(period.payroll_period_id, from_status.value, action)

        updated = await self.periods.compare_and_set_status(
            period.payroll_period_id,
            expected=(from_status,),
            new_status=to_status.value,
            **values,
        )
        if not updated:
            current = await self.periods.get_status(period.payroll_period_id)
            raise ConflictError(
                period.payroll_period_id,
                current,
                action,
                reason="status changed concurrently",
            )
