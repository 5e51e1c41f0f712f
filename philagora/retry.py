"""Bounded retry around one (persona x phase) generation, logging every attempt."""

import logging

from config.config_loader import RetryConfig
from philagora.generation import GenerationClient
from philagora.models import (
    GenerationAttempt,
    GenerationOutcome,
    GenerationSuccess,
    Phase,
)
from philagora.status import AttemptStatus
from philagora.store import Store
from philagora.templates import TargetLength

logger = logging.getLogger(__name__)


def attempt_record(
    outcome: GenerationOutcome,
    *,
    template_key: str,
    phase: Phase,
    attempt_number: int,
    user_input: str,
    workflow_id: str | None,
    persona_id: str | None,
) -> GenerationAttempt:
    """Audit record for one outcome. Raw text is kept as-is; failures with no
    text fall back to the error message."""
    if isinstance(outcome, GenerationSuccess):
        return GenerationAttempt(
            workflow_id=workflow_id,
            persona_id=persona_id,
            template_key=template_key,
            phase=phase,
            attempt_number=attempt_number,
            instruction_set_id=outcome.instruction_set_id,
            user_input=user_input,
            raw_output=outcome.raw_text,
            status=AttemptStatus.GENERATED,
        )
    return GenerationAttempt(
        workflow_id=workflow_id,
        persona_id=persona_id,
        template_key=template_key,
        phase=phase,
        attempt_number=attempt_number,
        instruction_set_id=outcome.instruction_set_id,
        user_input=user_input,
        raw_output=outcome.raw_text or outcome.error,
        status=AttemptStatus.REJECTED,
        reason=outcome.reason,
        error=outcome.error,
    )


class RetryController:
    """Runs a generation up to the template's retry bound.

    Configuration failures stop after the first attempt. Exhaustion returns the
    last failure instead of raising, so the caller can move on.
    """

    def __init__(self, store: Store, client: GenerationClient, retry_config: RetryConfig) -> None:
        self._store = store
        self._client = client
        self._config = retry_config

    async def run(
        self,
        *,
        persona_id: str,
        phase: Phase,
        template_key: str,
        source_material: str,
        workflow_id: str | None = None,
        target_length: TargetLength | None = None,
    ) -> tuple[GenerationOutcome, GenerationAttempt]:
        """Returns the final outcome and the attempt record persisted for it."""
        bound = self._config.bound_for(template_key)

        for attempt_number in range(1, bound + 1):
            outcome = await self._client.generate(persona_id, template_key, source_material, target_length)
            record = self._store.add_attempt(
                attempt_record(
                    outcome,
                    template_key=template_key,
                    phase=phase,
                    attempt_number=attempt_number,
                    user_input=source_material,
                    workflow_id=workflow_id,
                    persona_id=persona_id,
                )
            )

            if isinstance(outcome, GenerationSuccess):
                logger.info(
                    "%s %s generated on attempt %d/%d", persona_id, phase.value, attempt_number, bound
                )
                return outcome, record

            if not outcome.reason.retryable:
                logger.warning(
                    "%s %s: %s failure, not retrying: %s",
                    persona_id, phase.value, outcome.reason.value, outcome.error,
                )
                return outcome, record

            if attempt_number < bound:
                logger.warning(
                    "%s %s: attempt %d/%d failed (%s), retrying",
                    persona_id, phase.value, attempt_number, bound, outcome.reason.value,
                )
            else:
                logger.warning(
                    "%s %s: exhausted %d attempts (last: %s): %s",
                    persona_id, phase.value, bound, outcome.reason.value, outcome.error,
                )

        return outcome, record
