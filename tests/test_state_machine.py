"""Tests for payroll run state machine."""

import pytest

from antigua_payroll.services.state_machine import (
    InvalidTransitionError,
    PayrollRunStateMachine,
    PayrollRunStatus,
)


class TestPayrollRunStateMachine:
    """Test state machine transitions."""

    def test_valid_transitions(self):
        """Test that valid transitions are allowed."""
        assert PayrollRunStateMachine.can_transition("processing", "completed") is True
        assert PayrollRunStateMachine.can_transition("processing", "completed_with_errors") is True
        assert PayrollRunStateMachine.can_transition("completed", "finalized") is True
        assert PayrollRunStateMachine.can_transition("completed_with_errors", "finalized") is True

    def test_invalid_transitions(self):
        """Test that invalid transitions are blocked."""
        # Can't skip processing
        assert PayrollRunStateMachine.can_transition("processing", "finalized") is False

        # Can't go backwards
        assert PayrollRunStateMachine.can_transition("completed", "processing") is False

        # Finalized is terminal
        assert PayrollRunStateMachine.can_transition("finalized", "completed") is False
        assert PayrollRunStateMachine.get_next_statuses("finalized") == []

    def test_validate_transition_raises(self):
        """Test that validate_transition raises for invalid transitions."""
        with pytest.raises(InvalidTransitionError) as exc_info:
            PayrollRunStateMachine.validate_transition("finalized", "completed")

        assert exc_info.value.from_status == "finalized"
        assert exc_info.value.to_status == "completed"

    def test_completion_status(self):
        assert PayrollRunStateMachine.completion_status(0) == PayrollRunStatus.COMPLETED
        assert PayrollRunStateMachine.completion_status(2) == PayrollRunStatus.COMPLETED_WITH_ERRORS

    def test_duplicate_blocking_statuses(self):
        """completed_with_errors leaves the period open for a corrected run."""
        assert PayrollRunStateMachine.blocks_duplicate("processing") is True
        assert PayrollRunStateMachine.blocks_duplicate("completed") is True
        assert PayrollRunStateMachine.blocks_duplicate("finalized") is True
        assert PayrollRunStateMachine.blocks_duplicate("completed_with_errors") is False

    def test_results_mutable(self):
        assert PayrollRunStateMachine.are_results_mutable("completed") is True
        assert PayrollRunStateMachine.are_results_mutable("completed_with_errors") is True
        assert PayrollRunStateMachine.are_results_mutable("finalized") is False
