"""Rich console rendering and markdown export for workflow views."""

import logging
import re
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from philagora.models import GenerationAttempt, Phase, Synthesis, WorkflowKind
from philagora.views import ParticipantView, WorkflowView

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

NO_RESPONSE = "did not respond"

_PHASE_TITLES = {
    Phase.OPENING: "Opening Statements",
    Phase.REBUTTAL: "Rebuttals",
    Phase.RESPONSE: "Responses",
}


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def _synthesis_sections(synthesis: Synthesis) -> list[tuple[str, list[str]]]:
    sections = [
        ("Tensions", synthesis.tensions),
        ("Agreements", synthesis.agreements),
        ("Questions for Reflection", synthesis.questions),
        ("Practical Takeaways", synthesis.practical_takeaways),
    ]
    return [(title, items) for title, items in sections if items]


def _participant_title(p: ParticipantView, phase: Phase) -> str:
    title = f"[bold]{p.display_name}[/bold]"
    if p.persona:
        title += f" ({p.persona.tradition})"
    if phase is Phase.REBUTTAL and p.target_persona_id:
        title += f" -> {p.target_persona_id}"
    return title


def _border(p: ParticipantView) -> str:
    if p.persona and p.persona.color.startswith("#"):
        return p.persona.color
    return "cyan"


def print_workflow(view: WorkflowView) -> None:
    """Print roster, contributions (or 'did not respond') and synthesis."""
    wf = view.workflow
    label = "Debate" if wf.kind is WorkflowKind.DEBATE else "Agora"
    console.print(Rule(f"[bold cyan]{label}: {wf.prompt[:70]}[/bold cyan]"))
    console.print(
        Text(
            f"Status: {wf.status.value} | Participants: {len(view.participants)} | "
            f"Attempts logged: {view.attempt_count} | Id: {wf.id}",
            style="dim",
        )
    )

    phases = list(view.participants[0].contributions) if view.participants else []
    for phase in phases:
        console.print(Rule(_PHASE_TITLES.get(phase, phase.value), style="dim"))
        for p in view.participants:
            contribution = p.contributions.get(phase)
            if contribution is None:
                console.print(
                    Panel(Text(NO_RESPONSE, style="italic dim"), title=_participant_title(p, phase), border_style="dim")
                )
                continue
            body = "\n\n".join(contribution.texts())
            console.print(Panel(body, title=_participant_title(p, phase), border_style=_border(p)))

    if view.synthesis is not None:
        console.print(Rule("[bold green]Synthesis[/bold green]"))
        for title, items in _synthesis_sections(view.synthesis):
            console.print(f"[bold]{title}[/bold]")
            for item in items:
                console.print(f"  - {item}")
        for key, value in view.synthesis.summary.items():
            console.print(f"[dim]{key}:[/dim] {value}")


def print_attempts(attempts: list[GenerationAttempt]) -> None:
    table = Table(title="Generation attempts")
    table.add_column("#", justify="right")
    table.add_column("Persona")
    table.add_column("Template")
    table.add_column("Try", justify="right")
    table.add_column("Status")
    table.add_column("Reason")
    for a in attempts:
        status_style = "green" if a.status.value == "generated" else "red"
        table.add_row(
            str(a.id),
            a.persona_id or "(editorial)",
            a.template_key,
            str(a.attempt_number),
            f"[{status_style}]{a.status.value}[/{status_style}]",
            a.reason.value if a.reason else "",
        )
    console.print(table)


def save_to_file(view: WorkflowView, output_dir: Path) -> Path:
    """Save the workflow transcript as a markdown file.

    Returns:
        Path to the saved file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    wf = view.workflow
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    filepath = output_dir / f"{timestamp}_{_slug(wf.prompt)}.md"

    heading = "Philagora Debate" if wf.kind is WorkflowKind.DEBATE else "Philagora Agora"
    lines: list[str] = [
        f"# {heading}: {wf.prompt[:80]}",
        "",
        f"**Status:** {wf.status.value}",
        f"**Panel:** {', '.join(p.display_name for p in view.participants)}",
        f"**Created:** {wf.created_at}",
    ]
    if wf.kind is WorkflowKind.DEBATE:
        lines.append(f"**Trigger article:** {wf.article_title} ({wf.article_source})")
    else:
        lines.append(f"**Asked by:** {wf.asked_by}")
    lines += ["", "---", ""]

    phases = list(view.participants[0].contributions) if view.participants else []
    for phase in phases:
        lines += [f"## {_PHASE_TITLES.get(phase, phase.value)}", ""]
        for p in view.participants:
            lines += [f"### {p.display_name}", ""]
            contribution = p.contributions.get(phase)
            if contribution is None:
                lines += [f"*{NO_RESPONSE}*", ""]
                continue
            for text in contribution.texts():
                lines += [text, ""]

    if view.synthesis is not None:
        lines += ["## Synthesis", ""]
        for title, items in _synthesis_sections(view.synthesis):
            lines += [f"### {title}", ""]
            lines += [f"- {item}" for item in items]
            lines.append("")

    filepath.write_text("\n".join(lines), encoding="utf-8")
    logger.info("Workflow saved to: %s", filepath)
    return filepath
