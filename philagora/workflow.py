"""Workflow driver: sequential per-persona generation, then synthesis, then complete.

Participants run one at a time in their pre-assigned slot order with a fixed
pause between model calls. A participant that exhausts its retries simply has
no contribution; the workflow always reaches ``complete``.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from config.config_loader import GenerationConfig
from philagora.material import agora_question_material, debate_opening_material, debate_rebuttal_material
from philagora.models import (
    Contribution,
    GenerationSuccess,
    Participant,
    Phase,
    Workflow,
    WorkflowKind,
)
from philagora.retry import RetryController
from philagora.status import WorkflowStatus
from philagora.store import Store
from philagora.synthesis import SynthesisGenerator

logger = logging.getLogger(__name__)

PHASE_TEMPLATES = {
    Phase.OPENING: "debate_opening",
    Phase.REBUTTAL: "debate_rebuttal",
    Phase.RESPONSE: "agora_response",
}


class WorkflowNotFoundError(LookupError):
    """The driver was handed an id with no workflow row."""


class WorkflowDriver:
    """Drives one workflow instance to ``complete``."""

    def __init__(
        self,
        store: Store,
        controller: RetryController,
        synthesizer: SynthesisGenerator,
        gen_config: GenerationConfig,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._store = store
        self._controller = controller
        self._synthesizer = synthesizer
        self._delay = gen_config.inter_call_delay_sec
        self._sleep = sleep

    async def run(self, workflow_id: str) -> None:
        """Run every phase, then synthesis. Marks the workflow complete on every path out.

        Raises:
            WorkflowNotFoundError: unknown id.
            Exception: persistence failures propagate after the workflow is
                marked complete; the execution host logs them.
        """
        try:
            workflow = self._store.get_workflow(workflow_id)
            if workflow is None:
                raise WorkflowNotFoundError(workflow_id)
            if workflow.status is WorkflowStatus.COMPLETE:
                logger.info("Workflow %s already complete, nothing to do", workflow_id)
                return

            logger.info(
                "Starting %s %s with %d participants", workflow.kind.value, workflow_id, len(workflow.participants)
            )
            calls = 0
            if workflow.kind is WorkflowKind.DEBATE:
                calls = await self._run_debate(workflow)
            else:
                calls = await self._run_agora(workflow)

            contributions = self._store.list_contributions(workflow_id)
            logger.info(
                "Workflow %s: %d contributions from %d model calls", workflow_id, len(contributions), calls
            )

            if contributions and calls:
                await self._pause()
            try:
                await self._synthesizer.run(workflow)
            except Exception:
                logger.exception("Synthesis crashed for %s, completing without it", workflow_id)
        finally:
            self._mark_complete(workflow_id)

    def _mark_complete(self, workflow_id: str) -> None:
        if not self._store.set_status(workflow_id, WorkflowStatus.COMPLETE):
            logger.debug("Workflow %s was already complete", workflow_id)

    async def _pause(self) -> None:
        if self._delay > 0:
            await self._sleep(self._delay)

    async def _run_agora(self, workflow: Workflow) -> int:
        existing = self._existing(workflow.id)
        material = agora_question_material(workflow)
        calls = 0
        for participant in workflow.participants:
            if (participant.persona_id, Phase.RESPONSE) in existing:
                logger.info("%s already answered in %s, skipping", participant.persona_id, workflow.id)
                continue
            if calls:
                await self._pause()
            await self._generate(workflow, participant, Phase.RESPONSE, material)
            calls += 1
        return calls

    async def _run_debate(self, workflow: Workflow) -> int:
        existing = self._existing(workflow.id)
        calls = 0

        opening_material = debate_opening_material(workflow)
        for participant in workflow.participants:
            if (participant.persona_id, Phase.OPENING) in existing:
                continue
            if calls:
                await self._pause()
            contribution = await self._generate(workflow, participant, Phase.OPENING, opening_material)
            calls += 1
            if contribution is not None:
                existing[(participant.persona_id, Phase.OPENING)] = contribution

        for participant in workflow.participants:
            if (participant.persona_id, Phase.REBUTTAL) in existing:
                continue
            target_id = participant.target_persona_id
            target_opening = existing.get((target_id, Phase.OPENING)) if target_id else None
            if target_opening is None:
                logger.warning(
                    "Skipping rebuttal for %s in %s: target %s has no opening statement",
                    participant.persona_id, workflow.id, target_id,
                )
                continue
            target = self._store.get_persona(target_id)
            material = debate_rebuttal_material(
                workflow, target.name if target else target_id, target_opening.texts()[0]
            )
            if calls:
                await self._pause()
            await self._generate(workflow, participant, Phase.REBUTTAL, material, reply_to=target_id)
            calls += 1

        return calls

    def _existing(self, workflow_id: str) -> dict[tuple[str | None, Phase], Contribution]:
        return {(c.persona_id, c.phase): c for c in self._store.list_contributions(workflow_id)}

    async def _generate(
        self,
        workflow: Workflow,
        participant: Participant,
        phase: Phase,
        material: str,
        reply_to: str | None = None,
    ) -> Contribution | None:
        outcome, record = await self._controller.run(
            persona_id=participant.persona_id,
            phase=phase,
            template_key=PHASE_TEMPLATES[phase],
            source_material=material,
            workflow_id=workflow.id,
        )
        if not isinstance(outcome, GenerationSuccess):
            logger.info("%s did not respond (%s) in %s", participant.persona_id, phase.value, workflow.id)
            return None

        contribution = Contribution(
            workflow_id=workflow.id,
            persona_id=participant.persona_id,
            phase=phase,
            slot=participant.slot,
            attempt_id=record.id,
            payload=outcome.data,
            reply_to_persona_id=reply_to,
        )
        if not self._store.add_contribution(contribution):
            logger.warning(
                "Contribution for %s/%s in %s already existed, keeping the first",
                participant.persona_id, phase.value, workflow.id,
            )
        return contribution
