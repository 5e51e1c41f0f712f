"""Tests for philagora/status.py."""

import pytest

from philagora.status import InvalidTransitionError, WorkflowStatus, can_transition, check_transition


@pytest.mark.parametrize(
    "current, target",
    [
        (WorkflowStatus.PENDING, WorkflowStatus.IN_PROGRESS),
        (WorkflowStatus.IN_PROGRESS, WorkflowStatus.COMPLETE),
        (WorkflowStatus.PENDING, WorkflowStatus.COMPLETE),
    ],
)
def test_forward_transitions_allowed(current, target):
    assert can_transition(current, target)
    check_transition(current, target)


@pytest.mark.parametrize(
    "current, target",
    [
        (WorkflowStatus.COMPLETE, WorkflowStatus.IN_PROGRESS),
        (WorkflowStatus.COMPLETE, WorkflowStatus.PENDING),
        (WorkflowStatus.IN_PROGRESS, WorkflowStatus.PENDING),
        (WorkflowStatus.COMPLETE, WorkflowStatus.COMPLETE),
        (WorkflowStatus.IN_PROGRESS, WorkflowStatus.IN_PROGRESS),
    ],
)
def test_regressions_rejected(current, target):
    assert not can_transition(current, target)
    with pytest.raises(InvalidTransitionError):
        check_transition(current, target)


def test_status_values_match_stored_strings():
    assert [s.value for s in WorkflowStatus] == ["pending", "in-progress", "complete"]
