"""Payroll run state machine with transition validation."""

from __future__ import annotations

from enum import Enum

from antigua_payroll.exceptions import ConflictError


class PayrollRunStatus(str, Enum):
    """Payroll run status values."""

    PROCESSING = "processing"
    COMPLETED = "completed"
    COMPLETED_WITH_ERRORS = "completed_with_errors"
    FINALIZED = "finalized"


class InvalidTransitionError(ConflictError):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class PayrollRunStateMachine:
    """State machine for payroll run status transitions.

    Allowed transitions:
    - processing → completed
    - processing → completed_with_errors
    - completed → finalized
    - completed_with_errors → finalized
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        PayrollRunStatus.PROCESSING: [
            PayrollRunStatus.COMPLETED,
            PayrollRunStatus.COMPLETED_WITH_ERRORS,
        ],
        PayrollRunStatus.COMPLETED: [PayrollRunStatus.FINALIZED],
        PayrollRunStatus.COMPLETED_WITH_ERRORS: [PayrollRunStatus.FINALIZED],
        PayrollRunStatus.FINALIZED: [],  # Terminal state
    }

    # A run in one of these states blocks another run for the same period
    BLOCKS_DUPLICATE = {
        PayrollRunStatus.PROCESSING,
        PayrollRunStatus.COMPLETED,
        PayrollRunStatus.FINALIZED,
    }

    # Statuses where items may be overridden or the run deleted
    RESULTS_MUTABLE = {
        PayrollRunStatus.COMPLETED,
        PayrollRunStatus.COMPLETED_WITH_ERRORS,
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def completion_status(cls, failure_count: int) -> PayrollRunStatus:
        """Status a processing run moves to once every employee is computed."""
        if failure_count:
            return PayrollRunStatus.COMPLETED_WITH_ERRORS
        return PayrollRunStatus.COMPLETED

    @classmethod
    def blocks_duplicate(cls, status: str) -> bool:
        return status in cls.BLOCKS_DUPLICATE

    @classmethod
    def are_results_mutable(cls, status: str) -> bool:
        """Check if items can still be overridden or the run deleted."""
        return status in cls.RESULTS_MUTABLE

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(current_status, [])
