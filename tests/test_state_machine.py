"""Tests for payroll period state machine."""

from uuid import uuid4

import pytest

from nomina_engine.errors import ConflictError
from nomina_engine.services.state_machine import PeriodStateMachine, PeriodStatus


class TestPeriodStateMachine:
    """Test state machine transitions."""

    def test_valid_transitions(self):
        """Test that valid transitions are allowed."""
        assert PeriodStateMachine.can_transition("open", "calculated") is True
        assert PeriodStateMachine.can_transition("calculated", "approved") is True
        assert PeriodStateMachine.can_transition("approved", "paid") is True

    def test_invalid_transitions(self):
        """Test that invalid transitions are blocked."""
        # Can't skip calculation or approval
        assert PeriodStateMachine.can_transition("open", "approved") is False
        assert PeriodStateMachine.can_transition("calculated", "paid") is False

        # Can't go backwards
        assert PeriodStateMachine.can_transition("calculated", "open") is False
        assert PeriodStateMachine.can_transition("approved", "calculated") is False

        # Paid is terminal
        for status in PeriodStatus:
            assert PeriodStateMachine.can_transition("paid", status) is False

    @pytest.mark.parametrize(
        "action,status",
        [
            ("calculate", "approved"),
            ("calculate", "paid"),
            ("approve", "open"),
            ("approve", "approved"),
            ("pay", "calculated"),
            ("pay", "paid"),
        ],
    )
    def test_validate_action_raises(self, action, status):
        period_id = uuid4()
        with pytest.raises(ConflictError) as exc_info:
            PeriodStateMachine.validate_action(period_id, status, action)

        assert exc_info.value.period_id == period_id
        assert exc_info.value.current_status == status
        assert exc_info.value.action == action

    @pytest.mark.parametrize(
        "action,status",
        [
            ("calculate", "open"),
            ("calculate", "calculated"),
            ("approve", "calculated"),
            ("pay", "approved"),
        ],
    )
    def test_validate_action_allows(self, action, status):
        PeriodStateMachine.validate_action(uuid4(), status, action)
