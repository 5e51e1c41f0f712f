"""Tests for philagora/output.py."""

from pathlib import Path

import pytest

from philagora.models import Phase, Synthesis, WorkflowKind
from philagora.output import NO_RESPONSE, _slug, print_attempts, print_workflow, save_to_file
from philagora.views import load_workflow_view
from tests.conftest import make_workflow, seed_contribution


def test_slug_basic():
    assert _slug("Should we use YAML or JSON?") == "should-we-use-yaml-or-json"


def test_slug_max_len():
    assert len(_slug("a" * 100)) <= 40


@pytest.fixture
def debate_view(store):
    workflow = make_workflow(WorkflowKind.DEBATE)
    store.create_workflow(workflow)
    seed_contribution(store, workflow, "alpha", Phase.OPENING, {"content": "Alpha opens."}, slot=0)
    first = seed_contribution(store, workflow, "beta", Phase.OPENING, {"content": "Beta opens."}, slot=1)
    seed_contribution(store, workflow, "alpha", Phase.REBUTTAL, {"content": "@Beta no."}, slot=0, reply_to="beta")
    store.save_synthesis(
        Synthesis(workflow_id=workflow.id, attempt_id=first.attempt_id, tensions=["Fate vs will"],
                  agreements=["Courage"], questions=["Is fear useful?"])
    )
    return load_workflow_view(store, workflow.id)


def test_save_to_file_content(tmp_path: Path, debate_view):
    saved = save_to_file(debate_view, tmp_path / "nested" / "output")

    assert saved.exists()
    assert saved.suffix == ".md"
    content = saved.read_text(encoding="utf-8")
    assert "Philagora Debate" in content
    assert "## Opening Statements" in content
    assert "## Rebuttals" in content
    assert "Alpha opens." in content
    assert f"*{NO_RESPONSE}*" in content  # gamma never spoke
    assert "### Tensions" in content
    assert "- Fate vs will" in content
    assert "Practical Takeaways" not in content


def test_save_agora_without_synthesis(tmp_path: Path, store):
    workflow = make_workflow(WorkflowKind.AGORA)
    store.create_workflow(workflow)
    seed_contribution(store, workflow, "alpha", Phase.RESPONSE, {"posts": ["First.", "Second."]})

    content = save_to_file(load_workflow_view(store, workflow.id), tmp_path).read_text(encoding="utf-8")

    assert "Philagora Agora" in content
    assert "**Asked by:** Sam" in content
    assert "First." in content and "Second." in content
    assert "## Synthesis" not in content


def test_print_workflow_and_attempts(capsys, store, debate_view):
    print_workflow(debate_view)
    print_attempts(store.list_attempts(debate_view.workflow.id))

    out = capsys.readouterr().out
    assert "Alpha opens." in out
    assert NO_RESPONSE in out
    assert "Fate vs will" in out
    assert "Generation attempts" in out
