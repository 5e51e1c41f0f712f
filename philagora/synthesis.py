"""Cross-persona synthesis: build the transcript, call the editorial template, persist."""

import logging
from typing import Any

from philagora.generation import GenerationClient
from philagora.material import agora_transcript, debate_transcript
from philagora.models import GenerationSuccess, Persona, Phase, Synthesis, Workflow, WorkflowKind
from philagora.retry import attempt_record
from philagora.store import Store

logger = logging.getLogger(__name__)

SYNTHESIS_TEMPLATES = {
    WorkflowKind.DEBATE: "debate_synthesis",
    WorkflowKind.AGORA: "agora_synthesis",
}


def _strings(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if str(v).strip()]


def build_synthesis(workflow_id: str, attempt_id: int, data: dict[str, Any]) -> Synthesis:
    summary_raw = data.get("synthesisSummary") or {}
    summary: dict[str, str] = {}
    if isinstance(summary_raw, dict):
        summary = {
            key: str(summary_raw[key])
            for key in ("agree", "diverge", "unresolvedQuestion")
            if summary_raw.get(key)
        }
    return Synthesis(
        workflow_id=workflow_id,
        attempt_id=attempt_id,
        tensions=_strings(data.get("tensions")),
        agreements=_strings(data.get("agreements")),
        questions=_strings(data.get("questionsForReflection")),
        practical_takeaways=_strings(data.get("practicalTakeaways")),
        summary=summary,
    )


class SynthesisGenerator:
    """One impartial synthesis call per workflow, over whatever contributions exist."""

    def __init__(self, store: Store, client: GenerationClient) -> None:
        self._store = store
        self._client = client

    async def run(self, workflow: Workflow) -> Synthesis | None:
        """Generate and persist the synthesis.

        Returns:
            The persisted Synthesis, or None when there were no contributions
            or generation failed. Failures are logged, never raised.
        """
        existing = self._store.get_synthesis(workflow.id)
        if existing is not None:
            logger.info("Workflow %s already has a synthesis, skipping", workflow.id)
            return existing

        contributions = self._store.list_contributions(workflow.id)
        if not contributions:
            logger.info("Workflow %s has no contributions, skipping synthesis", workflow.id)
            return None

        personas: dict[str, Persona] = {}
        for c in contributions:
            persona = self._store.get_persona(c.persona_id)
            if persona is not None:
                personas[c.persona_id] = persona

        template_key = SYNTHESIS_TEMPLATES[workflow.kind]
        if workflow.kind is WorkflowKind.DEBATE:
            material = debate_transcript(workflow, contributions, personas)
        else:
            material = agora_transcript(workflow, contributions, personas)

        logger.info("Running %s for %s over %d contributions", template_key, workflow.id, len(contributions))
        outcome = await self._client.synthesize(template_key, material)
        record = self._store.add_attempt(
            attempt_record(
                outcome,
                template_key=template_key,
                phase=Phase.SYNTHESIS,
                attempt_number=1,
                user_input=material,
                workflow_id=workflow.id,
                persona_id=None,
            )
        )

        if not isinstance(outcome, GenerationSuccess):
            logger.warning("Synthesis failed for %s (%s): %s", workflow.id, outcome.reason.value, outcome.error)
            return None

        synthesis = build_synthesis(workflow.id, record.id, outcome.data)
        if not self._store.save_synthesis(synthesis):
            logger.info("Synthesis for %s was saved concurrently, keeping the first", workflow.id)
            return self._store.get_synthesis(workflow.id)
        return synthesis
