"""Compose the model-facing request from persona, instruction set, template and source material."""

from config.config_loader import GenerationConfig
from philagora.models import ComposedRequest, InstructionSet, Persona
from philagora.templates import LENGTH_PLACEHOLDER, ContentTemplate, TargetLength, get_length_guidance

REPLY_LABEL = "YOU ARE REPLYING TO THE FOLLOWING:"
SOURCE_LABEL = "SOURCE MATERIAL:"


def format_principles(persona: Persona) -> str:
    lines = [
        f"- {p.get('title', '')}: {p.get('description', '')}"
        for p in persona.core_principles
        if p.get("title") or p.get("description")
    ]
    return "\n".join(lines) if lines else "(no principles available)"


def render_instructions(template: ContentTemplate, target_length: TargetLength | None = None) -> str:
    if not template.uses_length:
        return template.instructions
    return template.instructions.replace(LENGTH_PLACEHOLDER, get_length_guidance(template, target_length))


def max_tokens_for(gen_config: GenerationConfig, target_length: TargetLength | None) -> int:
    if target_length is None:
        return gen_config.default_max_tokens
    return gen_config.length_max_tokens.get(target_length.value, gen_config.default_max_tokens)


def compose_request(
    persona: Persona,
    instruction_set: InstructionSet,
    template: ContentTemplate,
    source_material: str,
    gen_config: GenerationConfig,
    target_length: TargetLength | None = None,
) -> ComposedRequest:
    """Build the system (persona) frame and user (content) frame for one generation.

    Reply-type templates label the user frame as a statement being answered
    rather than raw source material.
    """
    system = (
        f"{instruction_set.text}\n\n"
        "---\n\n"
        "PHILOSOPHER METADATA:\n"
        f"Name: {persona.name}\n"
        f"Tradition: {persona.tradition}\n"
        f"Era: {persona.era}\n"
        "Core Principles:\n"
        f"{format_principles(persona)}\n\n"
        "---\n\n"
        f"{render_instructions(template, target_length)}"
    )
    if template.is_reply:
        user = f"{REPLY_LABEL}\n\n{source_material}"
    else:
        user = f"{SOURCE_LABEL}\n{source_material}"

    return ComposedRequest(
        template_key=template.key,
        system=system,
        user=user,
        max_tokens=max_tokens_for(gen_config, target_length),
        temperature=gen_config.temperature,
    )


def compose_synthesis_request(
    template: ContentTemplate,
    source_material: str,
    gen_config: GenerationConfig,
) -> ComposedRequest:
    """Editorial request: template instructions only, no persona framing."""
    return ComposedRequest(
        template_key=template.key,
        system=template.instructions,
        user=source_material,
        max_tokens=gen_config.synthesis_max_tokens,
        temperature=gen_config.synthesis_temperature,
    )
