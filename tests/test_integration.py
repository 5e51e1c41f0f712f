"""Integration tests: real API calls, no mocks. Requires .env with the default provider's key."""

import os
from pathlib import Path

import pytest
from dotenv import load_dotenv

from config.config_loader import load_config

load_dotenv()

_CONFIG = load_config()
_KEY_ENV = _CONFIG.models[_CONFIG.provider].api_key_env

pytestmark = pytest.mark.integration

if not os.environ.get(_KEY_ENV, "").strip():
    pytestmark = pytest.mark.skip(reason=f"{_KEY_ENV} not set")


async def test_full_agora_pipeline(tmp_path: Path):
    """Seed the bundled personas, run a real two-persona thread, verify it completes."""
    from philagora.cli import build_engine
    from philagora.host import ExecutionHost
    from philagora.output import save_to_file
    from philagora.personas import seed_personas
    from philagora.planning import plan_question
    from philagora.status import WorkflowStatus
    from philagora.store import SQLiteStore
    from philagora.views import load_workflow_view

    store = SQLiteStore(tmp_path / "integration.db")
    engine = build_engine(_CONFIG, store=store)
    seeded = seed_personas(store, Path(__file__).parent.parent / "personas")
    assert len(seeded) >= 2

    workflow = plan_question(
        store,
        _CONFIG.limits,
        question="Should I take a safe job or start my own company?",
        persona_ids=[seeded[0].persona_id, seeded[1].persona_id],
    )
    host = ExecutionHost(store, engine.driver)
    workflow_id = host.submit_and_start(workflow)
    job = await host.wait(workflow_id)

    assert job.error is None
    view = load_workflow_view(store, workflow_id)
    assert view.workflow.status is WorkflowStatus.COMPLETE
    answered = [p for p in view.participants if any(view_c is not None for view_c in p.contributions.values())]
    assert answered, "No persona produced a contribution"

    saved = save_to_file(view, tmp_path / "output")
    content = saved.read_text(encoding="utf-8")
    assert "Philagora Agora" in content
    assert "**Panel:**" in content
