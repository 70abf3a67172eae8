"""SQLAlchemy ORM models for the nomina engine."""

from nomina_engine.models.base import Base, TimestampMixin
from nomina_engine.models.employee import Employee
from nomina_engine.models.payroll import (
    EmployerContribution,
    PayrollCalculation,
    PayrollPeriod,
    PrenominaMetric,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "Employee",
    "EmployerContribution",
    "PayrollCalculation",
    "PayrollPeriod",
    "PrenominaMetric",
]
