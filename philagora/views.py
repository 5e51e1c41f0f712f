"""Read model for polling: status, roster, per-participant contributions, synthesis.

Consistent at any point of a run; a participant without a contribution for a
phase simply shows None there.
"""

from dataclasses import asdict, dataclass, field
from typing import Any

from philagora.models import PHASES_BY_KIND, Contribution, Persona, Phase, Synthesis, Workflow
from philagora.store import Store


@dataclass
class ParticipantView:
    persona_id: str
    slot: int
    persona: Persona | None
    target_persona_id: str | None
    contributions: dict[Phase, Contribution | None] = field(default_factory=dict)

    @property
    def display_name(self) -> str:
        return self.persona.name if self.persona else self.persona_id


@dataclass
class WorkflowView:
    workflow: Workflow
    participants: list[ParticipantView]
    synthesis: Synthesis | None
    attempt_count: int = 0


def load_workflow_view(store: Store, workflow_id: str) -> WorkflowView | None:
    workflow = store.get_workflow(workflow_id)
    if workflow is None:
        return None

    by_key = {(c.persona_id, c.phase): c for c in store.list_contributions(workflow_id)}
    phases = PHASES_BY_KIND[workflow.kind]
    participants = [
        ParticipantView(
            persona_id=p.persona_id,
            slot=p.slot,
            persona=store.get_persona(p.persona_id),
            target_persona_id=p.target_persona_id,
            contributions={phase: by_key.get((p.persona_id, phase)) for phase in phases},
        )
        for p in sorted(workflow.participants, key=lambda p: p.slot)
    ]
    return WorkflowView(
        workflow=workflow,
        participants=participants,
        synthesis=store.get_synthesis(workflow_id),
        attempt_count=len(store.list_attempts(workflow_id)),
    )


def view_to_dict(view: WorkflowView) -> dict[str, Any]:
    """JSON-ready shape for the read endpoint / `show --json`."""
    wf = view.workflow
    return {
        "workflow": {
            "id": wf.id,
            "kind": wf.kind.value,
            "prompt": wf.prompt,
            "status": wf.status.value,
            "asked_by": wf.asked_by,
            "article_title": wf.article_title,
            "article_source": wf.article_source,
            "article_url": wf.article_url,
            "created_at": wf.created_at,
        },
        "participants": [
            {
                "persona_id": p.persona_id,
                "name": p.display_name,
                "tradition": p.persona.tradition if p.persona else None,
                "color": p.persona.color if p.persona else None,
                "initials": p.persona.initials if p.persona else None,
                "slot": p.slot,
                "target_persona_id": p.target_persona_id,
                "contributions": {
                    phase.value: (c.payload if c is not None else None)
                    for phase, c in p.contributions.items()
                },
            }
            for p in view.participants
        ],
        "synthesis": asdict(view.synthesis) if view.synthesis else None,
        "attempt_count": view.attempt_count,
    }
