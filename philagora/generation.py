"""Generation client: compose, call the provider, recover structured output.

Never raises for generation problems. Every call ends in a tagged outcome that
keeps the model's raw text whenever there was any.
"""

import logging

from config.config_loader import GenerationConfig
from philagora.composer import compose_request, compose_synthesis_request
from philagora.errors import ConfigurationError, StructuredOutputError
from philagora.models import (
    ComposedRequest,
    FailureReason,
    GenerationFailure,
    GenerationOutcome,
    GenerationSuccess,
)
from philagora.personas import resolve_persona
from philagora.providers.base import AIProvider, ProviderError
from philagora.recovery import parse_json_response
from philagora.store import Store
from philagora.templates import ContentTemplate, TargetLength, get_template, validate_output

logger = logging.getLogger(__name__)

_NO_PROVIDER = "No model provider credential is configured. Set the API key in .env to enable generation."


class GenerationClient:
    """Turns (persona, template, source material) into a GenerationOutcome."""

    def __init__(self, store: Store, provider: AIProvider | None, gen_config: GenerationConfig) -> None:
        self._store = store
        self._provider = provider
        self._config = gen_config

    @property
    def provider(self) -> AIProvider | None:
        return self._provider

    async def generate(
        self,
        persona_id: str,
        template_key: str,
        source_material: str,
        target_length: TargetLength | None = None,
    ) -> GenerationOutcome:
        """Generate one persona contribution."""
        try:
            template = get_template(template_key)
            persona, instruction_set = resolve_persona(self._store, persona_id)
        except ConfigurationError as exc:
            logger.warning("Configuration failure for %s/%s: %s", persona_id, template_key, exc)
            return GenerationFailure(reason=FailureReason.CONFIGURATION, raw_text=None, error=str(exc))

        request = compose_request(
            persona, instruction_set, template, source_material, self._config, target_length
        )
        return await self._call(request, template, instruction_set.id)

    async def synthesize(self, template_key: str, source_material: str) -> GenerationOutcome:
        """Generate an editorial synthesis. No persona framing, lower temperature."""
        try:
            template = get_template(template_key)
        except ConfigurationError as exc:
            return GenerationFailure(reason=FailureReason.CONFIGURATION, raw_text=None, error=str(exc))
        request = compose_synthesis_request(template, source_material, self._config)
        return await self._call(request, template, None)

    async def _call(
        self,
        request: ComposedRequest,
        template: ContentTemplate,
        instruction_set_id: int | None,
    ) -> GenerationOutcome:
        if self._provider is None:
            return GenerationFailure(
                reason=FailureReason.CONFIGURATION,
                raw_text=None,
                error=_NO_PROVIDER,
                instruction_set_id=instruction_set_id,
                request=request,
            )

        try:
            response = await self._provider.generate(
                request.system, request.user, request.max_tokens, request.temperature
            )
        except ProviderError as exc:
            return GenerationFailure(
                reason=FailureReason.TRANSPORT,
                raw_text=None,
                error=f"timeout: {exc}" if exc.timed_out else str(exc),
                instruction_set_id=instruction_set_id,
                request=request,
            )
        except Exception as exc:
            logger.warning("Unexpected provider failure (%s): %s", template.key, exc)
            return GenerationFailure(
                reason=FailureReason.TRANSPORT,
                raw_text=None,
                error=f"Unexpected error: {exc}",
                instruction_set_id=instruction_set_id,
                request=request,
            )

        raw_text = response.content
        try:
            data = validate_output(template, parse_json_response(raw_text), raw_text)
        except StructuredOutputError as exc:
            return GenerationFailure(
                reason=FailureReason.MALFORMED_OUTPUT,
                raw_text=raw_text,
                error=f"Failed to parse model output as JSON ({exc}). Raw output is kept in the attempt log.",
                instruction_set_id=instruction_set_id,
                request=request,
            )

        return GenerationSuccess(
            data=data,
            raw_text=raw_text,
            instruction_set_id=instruction_set_id,
            request=request,
        )
