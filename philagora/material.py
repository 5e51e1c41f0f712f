"""Source-material builders for each workflow phase and for synthesis transcripts."""

from philagora.models import Contribution, Persona, Phase, Workflow


def debate_opening_material(workflow: Workflow) -> str:
    text = (
        f"DEBATE TOPIC: {workflow.prompt}\n\n"
        "TRIGGER ARTICLE:\n"
        f"Title: {workflow.article_title or ''}\n"
        f"Source: {workflow.article_source or ''}"
    )
    if workflow.article_url:
        text += f"\nURL: {workflow.article_url}"
    return text + "\n\nPresent your opening position."


def debate_rebuttal_material(workflow: Workflow, target_name: str, target_opening: str) -> str:
    return (
        f"DEBATE TOPIC: {workflow.prompt}\n\n"
        "YOU ARE REBUTTING:\n"
        f"Philosopher: {target_name}\n"
        f"Their opening statement:\n{target_opening}\n\n"
        "Respond to their specific claims."
    )


def agora_question_material(workflow: Workflow) -> str:
    return (
        f"USER QUESTION:\n{workflow.prompt}\n\n"
        f"Asked by: {workflow.asked_by or 'Anonymous'}\n\n"
        "Respond to this person's situation through your philosophical framework."
    )


def _label(personas: dict[str, Persona], persona_id: str) -> str:
    persona = personas.get(persona_id)
    return persona.name if persona else persona_id


def debate_transcript(
    workflow: Workflow,
    contributions: list[Contribution],
    personas: dict[str, Persona],
) -> str:
    """Openings then rebuttals, each rebuttal naming whom it rebuts."""
    parts = [
        f"DEBATE TOPIC: {workflow.prompt}",
        f"TRIGGER ARTICLE: {workflow.article_title or ''} ({workflow.article_source or ''})",
        "",
        "=== OPENING STATEMENTS ===",
        "",
    ]
    for c in contributions:
        if c.phase is Phase.OPENING:
            tradition = personas[c.persona_id].tradition if c.persona_id in personas else ""
            parts.append(f"### {_label(personas, c.persona_id)} ({tradition}):\n{c.texts()[0]}\n")

    rebuttals = [c for c in contributions if c.phase is Phase.REBUTTAL]
    if rebuttals:
        parts += ["=== REBUTTALS ===", ""]
        for c in rebuttals:
            target = f" (rebutting {_label(personas, c.reply_to_persona_id)})" if c.reply_to_persona_id else ""
            parts.append(f"### {_label(personas, c.persona_id)}{target}:\n{c.texts()[0]}\n")

    parts.append("Analyze the tensions, agreements, and unresolved questions.")
    return "\n".join(parts)


def agora_transcript(
    workflow: Workflow,
    contributions: list[Contribution],
    personas: dict[str, Persona],
) -> str:
    parts = [
        f"USER QUESTION: {workflow.prompt}",
        f"Asked by: {workflow.asked_by or 'Anonymous'}",
        "",
        "=== PHILOSOPHER RESPONSES ===",
        "",
    ]
    for c in contributions:
        tradition = personas[c.persona_id].tradition if c.persona_id in personas else ""
        parts.append(f"### {_label(personas, c.persona_id)} ({tradition}):")
        posts = c.texts()
        for idx, post in enumerate(posts, start=1):
            parts.append(f"Response {idx}: {post}\n" if len(posts) > 1 else f"{post}\n")

    parts.append("Analyze the tensions, agreements, and practical takeaways.")
    return "\n".join(parts)
