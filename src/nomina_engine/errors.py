"""Error taxonomy for the payroll calculation engine."""

from __future__ import annotations

from uuid import UUID


class PayrollError(Exception):
    """Base class for all engine errors."""

    code = "PAYROLL_ERROR"


class ValidationError(PayrollError):
    """Raised when employee or prenomina input is missing or invalid."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class ConfigError(PayrollError):
    """Raised when a tax table is missing or malformed."""

    code = "CONFIG_ERROR"

    def __init__(
        self,
        message: str,
        fiscal_year: int | None = None,
        period_type: str | None = None,
    ):
        self.fiscal_year = fiscal_year
        self.period_type = period_type
        if fiscal_year is not None:
            scope = f"{fiscal_year}" if period_type is None else f"{fiscal_year}/{period_type}"
            message = f"Tax configuration {scope}: {message}"
        super().__init__(message)


class ConflictError(PayrollError):
    """Raised when an operation is not valid for the current period status."""

    code = "CONFLICT"

    def __init__(
        self,
        period_id: UUID | None,
        current_status: str | None,
        action: str,
        reason: str | None = None,
    ):
        self.period_id = period_id
        self.current_status = current_status
        self.action = action
        self.reason = reason
        msg = f"Cannot {action} payroll period {period_id} in status '{current_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class NotFoundError(PayrollError):
    """Raised when an employee or period id is unknown."""

    code = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: UUID):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} {entity_id} not found")


class DeadlineExceeded(PayrollError):
    """Raised for work that did not finish before a bulk deadline."""

    code = "DEADLINE_EXCEEDED"

    def __init__(self, employee_id: UUID, deadline_seconds: float):
        self.employee_id = employee_id
        self.deadline_seconds = deadline_seconds
        super().__init__(
            f"Calculation for employee {employee_id} did not finish within "
            f"{deadline_seconds}s"
        )
