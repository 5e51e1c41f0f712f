"""Tests for philagora/models.py dataclasses."""

from philagora.models import (
    PHASES_BY_KIND,
    Contribution,
    FailureReason,
    ModelResponse,
    Phase,
    Workflow,
    WorkflowKind,
)
from philagora.status import WorkflowStatus


def test_model_response_optional_token_count():
    r = ModelResponse(provider="gemini", model="gemini-2.5-pro", content="Some answer.", latency_sec=0.9,
                      token_count=None)
    assert r.token_count is None


def test_workflow_defaults():
    wf = Workflow(id="w1", kind=WorkflowKind.AGORA, prompt="Why?")
    assert wf.status is WorkflowStatus.PENDING
    assert wf.participants == []


def test_only_configuration_failures_are_final():
    assert FailureReason.TRANSPORT.retryable
    assert FailureReason.MALFORMED_OUTPUT.retryable
    assert not FailureReason.CONFIGURATION.retryable


def test_contribution_texts():
    agora = Contribution(workflow_id="w", persona_id="a", phase=Phase.RESPONSE, slot=0, attempt_id=1,
                         payload={"posts": ["one", "two"]})
    debate = Contribution(workflow_id="w", persona_id="a", phase=Phase.OPENING, slot=0, attempt_id=1,
                          payload={"content": "opening"})
    assert agora.texts() == ["one", "two"]
    assert debate.texts() == ["opening"]


def test_phases_by_kind():
    assert PHASES_BY_KIND[WorkflowKind.DEBATE] == (Phase.OPENING, Phase.REBUTTAL)
    assert PHASES_BY_KIND[WorkflowKind.AGORA] == (Phase.RESPONSE,)
