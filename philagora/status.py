"""Closed status enums and the workflow transition table."""

from enum import Enum


class InvalidTransitionError(Exception):
    """Raised when a workflow status change would regress or skip the table."""

    def __init__(self, current: "WorkflowStatus", target: "WorkflowStatus") -> None:
        self.current = current
        self.target = target
        super().__init__(f"Illegal workflow transition {current.value} -> {target.value}")


class WorkflowStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETE = "complete"


class AttemptStatus(str, Enum):
    GENERATED = "generated"
    REJECTED = "rejected"


# target -> statuses it may be entered from. COMPLETE is terminal.
TRANSITIONS: dict[WorkflowStatus, frozenset[WorkflowStatus]] = {
    WorkflowStatus.PENDING: frozenset(),
    WorkflowStatus.IN_PROGRESS: frozenset({WorkflowStatus.PENDING}),
    WorkflowStatus.COMPLETE: frozenset({WorkflowStatus.PENDING, WorkflowStatus.IN_PROGRESS}),
}


def allowed_sources(target: WorkflowStatus) -> frozenset[WorkflowStatus]:
    return TRANSITIONS[target]


def can_transition(current: WorkflowStatus, target: WorkflowStatus) -> bool:
    return current in TRANSITIONS[target]


def check_transition(current: WorkflowStatus, target: WorkflowStatus) -> None:
    """Raise InvalidTransitionError unless current -> target is in the table."""
    if not can_transition(current, target):
        raise InvalidTransitionError(current, target)
