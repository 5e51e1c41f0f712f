"""Tests for philagora/planning.py."""

from datetime import datetime, timedelta, timezone

import pytest

from config.config_loader import LimitsConfig
from philagora.errors import ValidationError
from philagora.models import WorkflowKind
from philagora.planning import assign_participants, plan_debate, plan_question
from philagora.status import WorkflowStatus


def test_assign_participants_targets_next_in_roster():
    participants = assign_participants(["a", "b", "c"], with_targets=True)
    assert [(p.persona_id, p.slot, p.target_persona_id) for p in participants] == [
        ("a", 0, "b"),
        ("b", 1, "c"),
        ("c", 2, "a"),
    ]


def test_assign_participants_two_rebut_each_other():
    participants = assign_participants(["a", "b"], with_targets=True)
    assert [p.target_persona_id for p in participants] == ["b", "a"]


def test_assign_participants_without_targets():
    assert all(p.target_persona_id is None for p in assign_participants(["a", "b"], with_targets=False))


def test_plan_debate(store, limits_config):
    workflow = plan_debate(
        store,
        limits_config,
        title="  Should machines decide?  ",
        article_title="Algorithms in court",
        article_source="The Daily",
        persona_ids=["gamma", "alpha"],
        article_url="",
    )
    assert workflow.id.startswith("debate-")
    assert workflow.kind is WorkflowKind.DEBATE
    assert workflow.status is WorkflowStatus.PENDING
    assert workflow.prompt == "Should machines decide?"
    assert workflow.article_url is None
    assert [(p.persona_id, p.target_persona_id) for p in workflow.participants] == [
        ("gamma", "alpha"),
        ("alpha", "gamma"),
    ]
    assert store.get_workflow(workflow.id) is None


@pytest.mark.parametrize(
    "kwargs",
    [
        {"title": "", "article_title": "t", "article_source": "s", "persona_ids": ["alpha", "beta"]},
        {"title": "x", "article_title": "", "article_source": "s", "persona_ids": ["alpha", "beta"]},
        {"title": "x", "article_title": "t", "article_source": "s", "persona_ids": ["alpha"]},
        {"title": "x", "article_title": "t", "article_source": "s", "persona_ids": ["alpha", "alpha"]},
        {"title": "x", "article_title": "t", "article_source": "s", "persona_ids": ["alpha", "zeta"]},
    ],
)
def test_plan_debate_rejections(store, limits_config, kwargs):
    with pytest.raises(ValidationError):
        plan_debate(store, limits_config, **kwargs)


def test_plan_question(store, limits_config):
    workflow = plan_question(
        store, limits_config, question="How do I stop fearing failure?", persona_ids=["alpha", "beta"]
    )
    assert workflow.kind is WorkflowKind.AGORA
    assert workflow.asked_by == "Anonymous"
    assert [p.slot for p in workflow.participants] == [0, 1]
    assert all(p.target_persona_id is None for p in workflow.participants)


@pytest.mark.parametrize("question", ["too short", "x" * 501])
def test_plan_question_length_bounds(store, limits_config, question):
    with pytest.raises(ValidationError, match="between 10 and 500"):
        plan_question(store, limits_config, question=question, persona_ids=["alpha", "beta"])


@pytest.mark.parametrize("persona_ids", [["alpha"], ["alpha", "beta", "gamma", "alpha", "beta"]])
def test_plan_question_participant_bounds(store, limits_config, persona_ids):
    with pytest.raises(ValidationError, match="2 to 4"):
        plan_question(store, limits_config, question="A fair question here?", persona_ids=persona_ids)


def test_plan_question_daily_limit(store):
    limits = LimitsConfig(daily_thread_limit=2)
    now = datetime.now(timezone.utc)
    for _ in range(2):
        store.create_workflow(
            plan_question(store, limits, question="What is a good life?", persona_ids=["alpha", "beta"], now=now)
        )

    with pytest.raises(ValidationError, match="resting"):
        plan_question(store, limits, question="What is a good life?", persona_ids=["alpha", "beta"], now=now)

    tomorrow = now + timedelta(days=1)
    plan_question(store, limits, question="What is a good life?", persona_ids=["alpha", "beta"], now=tomorrow)
