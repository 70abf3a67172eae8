"""Payroll services: calculation, bulk coordination, lifecycle and summaries."""

from nomina_engine.services.bulk_service import (
    BulkCalculationResult,
    BulkCalculationService,
    EmployeeOutcome,
)
from nomina_engine.services.payroll_service import PayrollService
from nomina_engine.services.period_service import PeriodService
from nomina_engine.services.state_machine import PeriodStateMachine, PeriodStatus
from nomina_engine.services.summary_service import SummaryService

__all__ = [
    "BulkCalculationResult",
    "BulkCalculationService",
    "EmployeeOutcome",
    "PayrollService",
    "PeriodService",
    "PeriodStateMachine",
    "PeriodStatus",
    "SummaryService",
]
