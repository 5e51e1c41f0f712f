"""Tests for philagora/store.py."""

import sqlite3

import pytest

from philagora.models import Contribution, Phase, Synthesis, WorkflowKind
from philagora.status import WorkflowStatus
from philagora.store import SQLiteStore
from tests.conftest import make_persona, make_workflow, seed_contribution


def test_schema_created_in_new_directory(tmp_path):
    db = tmp_path / "nested" / "dir" / "p.db"
    SQLiteStore(db)
    assert db.exists()


def test_upsert_persona_updates_metadata(store):
    persona = make_persona("alpha")
    persona.tradition = "Revised"
    store.upsert_persona(persona)
    assert store.get_persona("alpha").tradition == "Revised"
    assert store.get_persona("alpha").core_principles == [{"title": "Virtue", "description": "Act well."}]
    assert [p.id for p in store.list_personas()] == ["alpha", "beta", "gamma"]


def test_instruction_versions_append(store):
    v2 = store.add_instruction_set("alpha", "Second draft.")
    assert v2.version == 2
    assert not v2.is_active
    assert [s.version for s in store.list_instruction_sets("alpha")] == [2, 1]
    assert store.get_active_instruction_set("alpha").version == 1


def test_activation_leaves_exactly_one_active(store):
    store.add_instruction_set("alpha", "Second draft.")
    store.add_instruction_set("alpha", "Third draft.")

    activated = store.activate_instruction_set("alpha", 3)

    assert activated.is_active
    active = [s.version for s in store.list_instruction_sets("alpha") if s.is_active]
    assert active == [3]
    store.activate_instruction_set("alpha", 1)
    assert [s.version for s in store.list_instruction_sets("alpha") if s.is_active] == [1]


def test_activation_of_missing_version_keeps_current(store):
    with pytest.raises(KeyError):
        store.activate_instruction_set("alpha", 99)
    assert store.get_active_instruction_set("alpha").version == 1


def test_second_active_row_rejected_by_index(store):
    with pytest.raises(sqlite3.IntegrityError):
        with store._connect() as conn:
            conn.execute(
                "INSERT INTO instruction_sets (persona_id, version, text, is_active, created_at) "
                "VALUES ('alpha', 5, 'rogue', 1, 'now')"
            )


def test_workflow_roundtrip_keeps_slots_and_targets(store):
    workflow = make_workflow(WorkflowKind.DEBATE)
    store.create_workflow(workflow)

    loaded = store.get_workflow(workflow.id)

    assert loaded.status is WorkflowStatus.PENDING
    assert loaded.article_source == "The Daily"
    assert [(p.persona_id, p.slot, p.target_persona_id) for p in loaded.participants] == [
        ("alpha", 0, "beta"),
        ("beta", 1, "gamma"),
        ("gamma", 2, "alpha"),
    ]
    assert loaded.created_at


def test_set_status_only_moves_forward(store):
    workflow = make_workflow(WorkflowKind.AGORA)
    store.create_workflow(workflow)

    assert store.set_status(workflow.id, WorkflowStatus.IN_PROGRESS)
    assert not store.set_status(workflow.id, WorkflowStatus.IN_PROGRESS)
    assert store.set_status(workflow.id, WorkflowStatus.COMPLETE)
    assert not store.set_status(workflow.id, WorkflowStatus.IN_PROGRESS)
    assert not store.set_status(workflow.id, WorkflowStatus.PENDING)
    assert store.get_workflow(workflow.id).status is WorkflowStatus.COMPLETE


def test_set_status_unknown_workflow(store):
    assert not store.set_status("missing", WorkflowStatus.COMPLETE)


def test_list_and_count_workflows(store):
    store.create_workflow(make_workflow(WorkflowKind.AGORA, workflow_id="a1"))
    store.create_workflow(make_workflow(WorkflowKind.DEBATE, workflow_id="d1"))

    assert {w.id for w in store.list_workflows()} == {"a1", "d1"}
    assert [w.id for w in store.list_workflows(WorkflowKind.DEBATE)] == ["d1"]
    assert store.count_workflows_since(WorkflowKind.AGORA, "2000-01-01") == 1
    assert store.count_workflows_since(WorkflowKind.AGORA, "2999-01-01") == 0


def test_contribution_insert_if_absent(store):
    workflow = make_workflow(WorkflowKind.AGORA)
    store.create_workflow(workflow)
    first = seed_contribution(store, workflow, "alpha", Phase.RESPONSE, {"posts": ["first"]})

    duplicate = Contribution(
        workflow_id=workflow.id,
        persona_id="alpha",
        phase=Phase.RESPONSE,
        slot=0,
        attempt_id=first.attempt_id,
        payload={"posts": ["second"]},
    )

    assert not store.add_contribution(duplicate)
    contributions = store.list_contributions(workflow.id)
    assert len(contributions) == 1
    assert contributions[0].payload == {"posts": ["first"]}


def test_contributions_ordered_by_phase_then_slot(store):
    workflow = make_workflow(WorkflowKind.DEBATE)
    store.create_workflow(workflow)
    seed_contribution(store, workflow, "beta", Phase.REBUTTAL, {"content": "r"}, slot=1, reply_to="gamma")
    seed_contribution(store, workflow, "gamma", Phase.OPENING, {"content": "o"}, slot=2)
    seed_contribution(store, workflow, "alpha", Phase.OPENING, {"content": "o"}, slot=0)

    ordered = [(c.persona_id, c.phase) for c in store.list_contributions(workflow.id)]

    assert ordered == [("alpha", Phase.OPENING), ("gamma", Phase.OPENING), ("beta", Phase.REBUTTAL)]


def test_synthesis_insert_if_absent(store):
    workflow = make_workflow(WorkflowKind.AGORA)
    store.create_workflow(workflow)
    attempt_id = seed_contribution(store, workflow, "alpha", Phase.RESPONSE, {"posts": ["p"]}).attempt_id

    assert store.save_synthesis(Synthesis(workflow_id=workflow.id, attempt_id=attempt_id, tensions=["one"]))
    assert not store.save_synthesis(Synthesis(workflow_id=workflow.id, attempt_id=attempt_id, tensions=["two"]))
    assert store.get_synthesis(workflow.id).tensions == ["one"]


def test_attempts_filtered_by_workflow(store):
    a = make_workflow(WorkflowKind.AGORA, workflow_id="a1")
    b = make_workflow(WorkflowKind.AGORA, workflow_id="b1")
    store.create_workflow(a)
    store.create_workflow(b)
    seed_contribution(store, a, "alpha", Phase.RESPONSE, {"posts": ["p"]})
    seed_contribution(store, b, "beta", Phase.RESPONSE, {"posts": ["p"]})

    assert [x.persona_id for x in store.list_attempts("a1")] == ["alpha"]
    assert len(store.list_attempts()) == 2
