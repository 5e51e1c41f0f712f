"""Shared pytest fixtures."""

import json
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from config.config_loader import AppConfig, GenerationConfig, LimitsConfig, ModelConfig, RetryConfig, StorageConfig
from philagora.generation import GenerationClient
from philagora.models import Contribution, GenerationSuccess, ModelResponse, Persona, Workflow, WorkflowKind
from philagora.planning import assign_participants
from philagora.providers.base import AIProvider
from philagora.retry import RetryController, attempt_record
from philagora.status import WorkflowStatus
from philagora.store import SQLiteStore
from philagora.synthesis import SynthesisGenerator
from philagora.workflow import WorkflowDriver

PERSONA_IDS = ("alpha", "beta", "gamma")


def model_response(content: str, provider: str = "mock") -> ModelResponse:
    return ModelResponse(provider=provider, model="mock-model", content=content, latency_sec=0.1, token_count=10)


def opening_json(text: str) -> str:
    return json.dumps({"content": text})


def agora_json(*posts: str) -> str:
    return json.dumps({"posts": list(posts)})


def post_json(content: str = "A sharp observation.") -> str:
    return json.dumps({"content": content, "thesis": "One line.", "stance": "observes", "tag": "ethics"})


def debate_synthesis_json() -> str:
    return json.dumps({
        "tensions": ["Duty versus freedom"],
        "agreements": ["Both value honesty"],
        "questionsForReflection": ["What do we owe strangers?"],
        "synthesisSummary": {"agree": "Honesty", "diverge": "Duty", "unresolvedQuestion": "Strangers"},
    })


def agora_synthesis_json() -> str:
    return json.dumps({
        "tensions": ["Acceptance versus action"],
        "agreements": ["Start small"],
        "practicalTakeaways": ["Write down one fear tonight"],
    })


class MockProvider(AIProvider):
    """Test double AIProvider."""

    def __init__(self, provider_name: str = "mock", response_content: str = '{"content": "Mock response"}') -> None:
        self._name = provider_name
        self._response_content = response_content
        # Shadow the class method with an AsyncMock at the instance level.
        # ABC check passes because generate is defined in the class body below.
        self.generate = AsyncMock(  # type: ignore[assignment]
            return_value=model_response(response_content, provider_name)
        )

    def name(self) -> str:
        return self._name

    def model_string(self) -> str:
        return "mock-model"

    async def generate(self, system: str, user: str, max_tokens: int, temperature: float) -> ModelResponse:  # type: ignore[override]
        """Default implementation; replaced by AsyncMock in __init__."""
        return model_response(self._response_content, self._name)


@pytest.fixture
def mock_provider() -> MockProvider:
    return MockProvider()


@pytest.fixture
def gen_config() -> GenerationConfig:
    return GenerationConfig(inter_call_delay_sec=0.0)


@pytest.fixture
def retry_config() -> RetryConfig:
    return RetryConfig(max_attempts=2)


@pytest.fixture
def limits_config() -> LimitsConfig:
    return LimitsConfig()


@pytest.fixture
def sample_app_config(tmp_path: Path, gen_config: GenerationConfig) -> AppConfig:
    model_cfg = ModelConfig(
        name="claude",
        sdk="anthropic",
        model="claude-sonnet-4-20250514",
        api_key_env="ANTHROPIC_API_KEY",
        timeout_sec=60,
    )
    return AppConfig(
        provider="claude",
        models={"claude": model_cfg},
        generation=gen_config,
        storage=StorageConfig(db_path=tmp_path / "app.db"),
        available_providers={"claude"},
    )


def make_persona(persona_id: str) -> Persona:
    return Persona(
        id=persona_id,
        name=persona_id.capitalize(),
        tradition=f"{persona_id.capitalize()}ism",
        color="#123456",
        initials=persona_id[:2].upper(),
        era="Antiquity",
        core_principles=[{"title": "Virtue", "description": "Act well."}],
    )


@pytest.fixture
def store(tmp_path: Path) -> SQLiteStore:
    """SQLite store with three personas, each with one active instruction set."""
    s = SQLiteStore(tmp_path / "test.db")
    for pid in PERSONA_IDS:
        s.upsert_persona(make_persona(pid))
        added = s.add_instruction_set(pid, f"You are {pid.capitalize()}. Speak plainly.")
        s.activate_instruction_set(pid, added.version)
    return s


@pytest.fixture
def empty_store(tmp_path: Path) -> SQLiteStore:
    return SQLiteStore(tmp_path / "empty.db")


def make_workflow(
    kind: WorkflowKind,
    persona_ids: tuple[str, ...] = PERSONA_IDS,
    workflow_id: str | None = None,
) -> Workflow:
    if kind is WorkflowKind.DEBATE:
        return Workflow(
            id=workflow_id or "debate-test",
            kind=kind,
            prompt="Should machines decide?",
            participants=assign_participants(list(persona_ids), with_targets=True),
            status=WorkflowStatus.PENDING,
            article_title="Algorithms in court",
            article_source="The Daily",
        )
    return Workflow(
        id=workflow_id or "agora-test",
        kind=kind,
        prompt="How do I stop fearing failure?",
        participants=assign_participants(list(persona_ids), with_targets=False),
        status=WorkflowStatus.PENDING,
        asked_by="Sam",
    )


class Engine:
    """Client, controller, synthesizer and driver wired over one store and provider."""

    def __init__(self, store, provider, gen_config, retry_config) -> None:
        self.store = store
        self.provider = provider
        self.client = GenerationClient(store, provider, gen_config)
        self.controller = RetryController(store, self.client, retry_config)
        self.synthesizer = SynthesisGenerator(store, self.client)
        self.driver = WorkflowDriver(store, self.controller, self.synthesizer, gen_config)


@pytest.fixture
def engine_factory(store, gen_config, retry_config):
    def _make(provider: AIProvider | None) -> Engine:
        return Engine(store, provider, gen_config, retry_config)
    return _make


def seed_contribution(store, workflow, persona_id, phase, payload, slot=0, reply_to=None) -> Contribution:
    """Persist a generated attempt and the contribution that references it."""
    record = store.add_attempt(
        attempt_record(
            GenerationSuccess(data=payload, raw_text="{}"),
            template_key="debate_opening",
            phase=phase,
            attempt_number=1,
            user_input="seed",
            workflow_id=workflow.id,
            persona_id=persona_id,
        )
    )
    contribution = Contribution(
        workflow_id=workflow.id,
        persona_id=persona_id,
        phase=phase,
        slot=slot,
        attempt_id=record.id,
        payload=payload,
        reply_to_persona_id=reply_to,
    )
    store.add_contribution(contribution)
    return contribution
