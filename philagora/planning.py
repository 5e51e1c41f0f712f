"""Build validated Workflow records. Slots and rebuttal targets are fixed here, once."""

import uuid
from datetime import datetime, timezone

from config.config_loader import LimitsConfig
from philagora.errors import ValidationError
from philagora.models import Participant, Workflow, WorkflowKind
from philagora.status import WorkflowStatus
from philagora.store import Store


def _check_personas(store: Store, persona_ids: list[str]) -> None:
    if len(set(persona_ids)) != len(persona_ids):
        raise ValidationError("Each persona may appear only once")
    for pid in persona_ids:
        if store.get_persona(pid) is None:
            raise ValidationError(f"Persona not found: {pid}")


def assign_participants(persona_ids: list[str], *, with_targets: bool) -> list[Participant]:
    """Slot i goes to persona_ids[i]; with targets, slot i rebuts slot (i + 1) % n."""
    n = len(persona_ids)
    return [
        Participant(
            persona_id=pid,
            slot=i,
            target_persona_id=persona_ids[(i + 1) % n] if with_targets and n > 1 else None,
        )
        for i, pid in enumerate(persona_ids)
    ]


def plan_debate(
    store: Store,
    limits: LimitsConfig,
    *,
    title: str,
    article_title: str,
    article_source: str,
    persona_ids: list[str],
    article_url: str | None = None,
) -> Workflow:
    title = title.strip()
    if not title or not article_title.strip() or not article_source.strip():
        raise ValidationError("title, article title and article source are required")
    if len(persona_ids) < limits.debate_min_participants:
        raise ValidationError(f"At least {limits.debate_min_participants} personas are required")
    _check_personas(store, persona_ids)

    return Workflow(
        id=f"debate-{uuid.uuid4().hex[:12]}",
        kind=WorkflowKind.DEBATE,
        prompt=title,
        participants=assign_participants(persona_ids, with_targets=True),
        status=WorkflowStatus.PENDING,
        article_title=article_title.strip(),
        article_source=article_source.strip(),
        article_url=(article_url or "").strip() or None,
    )


def plan_question(
    store: Store,
    limits: LimitsConfig,
    *,
    question: str,
    persona_ids: list[str],
    asked_by: str | None = None,
    now: datetime | None = None,
) -> Workflow:
    question = question.strip()
    if not limits.question_min_chars <= len(question) <= limits.question_max_chars:
        raise ValidationError(
            f"Question must be between {limits.question_min_chars} and {limits.question_max_chars} characters"
        )
    if not limits.agora_min_participants <= len(persona_ids) <= limits.agora_max_participants:
        raise ValidationError(
            f"Must include {limits.agora_min_participants} to {limits.agora_max_participants} personas"
        )
    _check_personas(store, persona_ids)

    now = now or datetime.now(timezone.utc)
    day_start = now.replace(hour=0, minute=0, second=0, microsecond=0).isoformat()
    if store.count_workflows_since(WorkflowKind.AGORA, day_start) >= limits.daily_thread_limit:
        raise ValidationError("The philosophers are resting. Check back tomorrow.")

    return Workflow(
        id=str(uuid.uuid4()),
        kind=WorkflowKind.AGORA,
        prompt=question,
        participants=assign_participants(persona_ids, with_targets=False),
        status=WorkflowStatus.PENDING,
        asked_by=(asked_by or "").strip() or "Anonymous",
    )
