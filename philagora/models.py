"""Pure dataclasses for the generation engine. No I/O, no deps."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from philagora.status import AttemptStatus, WorkflowStatus


class WorkflowKind(str, Enum):
    DEBATE = "debate"
    AGORA = "agora"


class Phase(str, Enum):
    OPENING = "opening"
    REBUTTAL = "rebuttal"
    RESPONSE = "response"
    STANDALONE = "standalone"
    SYNTHESIS = "synthesis"


class FailureReason(str, Enum):
    TRANSPORT = "transport"
    MALFORMED_OUTPUT = "malformed_output"
    CONFIGURATION = "configuration"

    @property
    def retryable(self) -> bool:
        return self is not FailureReason.CONFIGURATION


@dataclass
class Persona:
    id: str
    name: str
    tradition: str
    color: str = "#888888"
    initials: str = ""
    era: str = ""
    bio: str = ""
    core_principles: list[dict[str, str]] = field(default_factory=list)


@dataclass
class InstructionSet:
    persona_id: str
    version: int
    text: str
    is_active: bool = False
    id: int | None = None
    created_at: str = ""


@dataclass
class Participant:
    persona_id: str
    slot: int
    target_persona_id: str | None = None  # debate rebuttal target


@dataclass
class Workflow:
    id: str
    kind: WorkflowKind
    prompt: str            # debate title or user question
    participants: list[Participant] = field(default_factory=list)
    status: WorkflowStatus = WorkflowStatus.PENDING
    asked_by: str | None = None
    article_title: str | None = None
    article_source: str | None = None
    article_url: str | None = None
    created_at: str = ""


@dataclass
class ModelResponse:
    provider: str
    model: str
    content: str
    latency_sec: float
    token_count: int | None


@dataclass
class ComposedRequest:
    template_key: str
    system: str
    user: str
    max_tokens: int
    temperature: float


@dataclass
class GenerationSuccess:
    data: dict[str, Any]
    raw_text: str
    instruction_set_id: int | None = None
    request: ComposedRequest | None = None


@dataclass
class GenerationFailure:
    reason: FailureReason
    raw_text: str | None
    error: str
    instruction_set_id: int | None = None
    request: ComposedRequest | None = None


GenerationOutcome = GenerationSuccess | GenerationFailure


@dataclass
class GenerationAttempt:
    template_key: str
    phase: Phase
    attempt_number: int
    user_input: str
    raw_output: str
    status: AttemptStatus
    workflow_id: str | None = None
    persona_id: str | None = None
    instruction_set_id: int | None = None
    reason: FailureReason | None = None
    error: str | None = None
    id: int | None = None
    created_at: str = ""


@dataclass
class Contribution:
    workflow_id: str
    persona_id: str
    phase: Phase
    slot: int
    attempt_id: int
    payload: dict[str, Any]
    reply_to_persona_id: str | None = None
    id: int | None = None
    created_at: str = ""

    def texts(self) -> list[str]:
        """Generated text fragments, in order: posts for agora, content otherwise."""
        posts = self.payload.get("posts")
        if isinstance(posts, list):
            return [str(p) for p in posts]
        return [str(self.payload.get("content", ""))]


@dataclass
class Synthesis:
    workflow_id: str
    attempt_id: int
    tensions: list[str] = field(default_factory=list)
    agreements: list[str] = field(default_factory=list)
    questions: list[str] = field(default_factory=list)
    practical_takeaways: list[str] = field(default_factory=list)
    summary: dict[str, str] = field(default_factory=dict)
    created_at: str = ""


# Phases each workflow kind runs, in order.
PHASES_BY_KIND: dict[WorkflowKind, tuple[Phase, ...]] = {
    WorkflowKind.DEBATE: (Phase.OPENING, Phase.REBUTTAL),
    WorkflowKind.AGORA: (Phase.RESPONSE,),
}
