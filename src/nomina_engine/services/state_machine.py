"""Payroll period state machine with transition validation."""

from __future__ import annotations

from enum import Enum

from nomina_engine.errors import ConflictError


class PeriodStatus(str, Enum):
    """Payroll period status values."""

    OPEN = "open"
    CALCULATED = "calculated"
    APPROVED = "approved"
    PAID = "paid"


class PeriodStateMachine:
    """State machine for payroll period status transitions.

    Allowed transitions:
    - open → calculated (first successful calculation)
    - calculated → approved
    - approved → paid

    Status only moves forward; paid is terminal.
    """

    # Define valid transitions: {from_status: [allowed_to_statuses]}
    VALID_TRANSITIONS: dict[str, list[str]] = {
        PeriodStatus.OPEN: [PeriodStatus.CALCULATED],
        PeriodStatus.CALCULATED: [PeriodStatus.APPROVED],
        PeriodStatus.APPROVED: [PeriodStatus.PAID],
        PeriodStatus.PAID: [],  # Terminal state
    }

    # Action name -> statuses the action may start from
    ACTION_SOURCES: dict[str, tuple[PeriodStatus, ...]] = {
        "calculate": (PeriodStatus.OPEN, PeriodStatus.CALCULATED),
        "approve": (PeriodStatus.CALCULATED,),
        "pay": (PeriodStatus.APPROVED,),
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def sources_for(cls, action: str) -> tuple[PeriodStatus, ...]:
        return cls.ACTION_SOURCES[action]

    @classmethod
    def validate_action(cls, period_id, status: str, action: str) -> None:
        """Raise ConflictError if ``action`` cannot start from ``status``."""
        sources = cls.sources_for(action)
        if status not in sources:
            expected = ", ".join(s.value for s in sources)
            raise ConflictError(
                period_id, status, action, reason=f"requires status {expected}"
            )
