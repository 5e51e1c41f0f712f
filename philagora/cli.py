"""Click CLI: config loading, engine wiring, persona admin, workflow runs and output."""

import asyncio
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from config.config_loader import AppConfig, load_config
from philagora.errors import ValidationError
from philagora.generation import GenerationClient
from philagora.healthcheck import run_health_checks
from philagora.host import AlreadyStartedError, ExecutionHost
from philagora.models import GenerationSuccess, Phase, Workflow, WorkflowKind
from philagora.output import print_attempts, print_workflow, save_to_file
from philagora.personas import seed_personas
from philagora.planning import plan_debate, plan_question
from philagora.providers.registry import build_all_providers, build_provider
from philagora.retry import RetryController
from philagora.status import WorkflowStatus
from philagora.store import SQLiteStore, Store
from philagora.synthesis import SynthesisGenerator
from philagora.templates import TEMPLATES, TargetLength, resolve_content_type_key
from philagora.views import load_workflow_view, view_to_dict
from philagora.workflow import WorkflowDriver

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

_POLL_INTERVAL_SEC = 0.5


@dataclass
class Engine:
    config: AppConfig
    store: Store
    client: GenerationClient
    controller: RetryController
    driver: WorkflowDriver


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _fail(message: str) -> None:
    console.print(f"[bold red]Error:[/bold red] {message}")
    sys.exit(1)


def build_engine(config: AppConfig, store: Store | None = None, provider_name: str | None = None) -> Engine:
    """Wire store, provider, client, retry controller, synthesizer and driver."""
    store = store or SQLiteStore(config.storage.db_path)
    provider = build_provider(config, provider_name)
    if provider is None:
        logger.warning("No provider available; every generation will fail with a configuration error")
    client = GenerationClient(store, provider, config.generation)
    controller = RetryController(store, client, config.retry)
    synthesizer = SynthesisGenerator(store, client)
    driver = WorkflowDriver(store, controller, synthesizer, config.generation)
    return Engine(config=config, store=store, client=client, controller=controller, driver=driver)


def _engine(ctx: click.Context) -> Engine:
    if "engine" not in ctx.obj:
        ctx.obj["engine"] = build_engine(ctx.obj["config"], provider_name=ctx.obj["provider"])
    return ctx.obj["engine"]


async def _start_and_follow(
    engine: Engine, workflow_id: str, new_workflow: Workflow | None = None, *, resume: bool = False
) -> None:
    """Start (or resume) a workflow on a fresh host and poll the store until it completes."""
    host = ExecutionHost(engine.store, engine.driver)
    if new_workflow is not None:
        host.submit(new_workflow)
    job = host.resume(workflow_id) if resume else host.start(workflow_id)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Waiting for the philosophers...", total=None)
        while not job.done:
            view = load_workflow_view(engine.store, workflow_id)
            if view is not None:
                answered = sum(
                    1 for p in view.participants for c in p.contributions.values() if c is not None
                )
                progress.update(
                    task, description=f"{view.workflow.status.value}: {answered} contribution(s) so far"
                )
            await asyncio.sleep(_POLL_INTERVAL_SEC)
        await host.drain()

    if job.error is not None:
        console.print(f"[yellow]Workflow ended early:[/yellow] {job.error}")


def _print_view(engine: Engine, workflow_id: str) -> None:
    view = load_workflow_view(engine.store, workflow_id)
    if view is None:
        _fail(f"Workflow not found: {workflow_id}")
    print_workflow(view)


@click.group()
@click.option("--settings", "settings_path", default=None, type=click.Path(exists=True, dir_okay=False),
              help="Path to settings.yaml (default: bundled config)")
@click.option("--provider", default=None, help="Which configured model drives generation (default: from config)")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
@click.pass_context
def main(ctx: click.Context, settings_path: str | None, provider: str | None, verbose: bool) -> None:
    """Philagora -- persona generation engine for debates and agora question threads.

    \b
    Examples:
      philagora personas seed personas/
      philagora ask "Is ambition a virtue?" -p seneca -p russell
      philagora debate create "AI and work" --article-title "..." --article-source Reuters -p seneca -p confucius
      philagora debate run debate-1a2b3c4d5e6f
      philagora show debate-1a2b3c4d5e6f --save output/
    """
    if sys.platform == "win32":
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        if hasattr(sys.stderr, "reconfigure"):
            sys.stderr.reconfigure(encoding="utf-8", errors="replace")

    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config(Path(settings_path)) if settings_path else load_config()
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    if provider is not None and provider not in config.models:
        _fail(f"Unknown provider '{provider}'. Configured: {', '.join(sorted(config.models))}")

    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["provider"] = provider


# -- personas ---------------------------------------------------------------


@main.group()
def personas() -> None:
    """Manage personas and their versioned instruction sets."""


@personas.command("seed")
@click.argument("directory", required=False, type=click.Path(exists=True, file_okay=False))
@click.option("--activate", is_flag=True, help="Activate newly added versions even if one is already active")
@click.pass_context
def personas_seed(ctx: click.Context, directory: str | None, activate: bool) -> None:
    """Load persona files (markdown with front matter) into the store."""
    engine = _engine(ctx)
    target = Path(directory) if directory else engine.config.personas.dir
    if not target.is_dir():
        _fail(f"Persona directory not found: {target}")

    results = seed_personas(engine.store, target, activate=activate)
    if not results:
        console.print(f"No persona files in {target}.")
        return
    for r in results:
        version = f"v{r.version}" if r.version is not None else "unchanged"
        flag = " [green](active)[/green]" if r.activated else ""
        console.print(f"  {r.persona_id}: {version}{flag}")


@personas.command("list")
@click.pass_context
def personas_list(ctx: click.Context) -> None:
    """List personas with their active instruction-set version."""
    engine = _engine(ctx)
    table = Table(title="Personas")
    table.add_column("Id")
    table.add_column("Name")
    table.add_column("Tradition")
    table.add_column("Active", justify="right")
    table.add_column("Versions", justify="right")
    for persona in engine.store.list_personas():
        active = engine.store.get_active_instruction_set(persona.id)
        versions = engine.store.list_instruction_sets(persona.id)
        table.add_row(
            persona.id,
            persona.name,
            persona.tradition,
            f"v{active.version}" if active else "[red]none[/red]",
            str(len(versions)),
        )
    console.print(table)


@personas.command("add-version")
@click.argument("persona_id")
@click.argument("instructions_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--activate", is_flag=True, help="Make the new version the active one")
@click.pass_context
def personas_add_version(ctx: click.Context, persona_id: str, instructions_file: str, activate: bool) -> None:
    """Append a new instruction-set version for PERSONA_ID from a text file."""
    engine = _engine(ctx)
    if engine.store.get_persona(persona_id) is None:
        _fail(f"Persona not found: {persona_id}")
    text = Path(instructions_file).read_text(encoding="utf-8").strip()
    if not text:
        _fail("Instruction file is empty")

    added = engine.store.add_instruction_set(persona_id, text)
    console.print(f"Added {persona_id} v{added.version}")
    if activate:
        engine.store.activate_instruction_set(persona_id, added.version)
        console.print(f"Activated {persona_id} v{added.version}")


@personas.command("activate")
@click.argument("persona_id")
@click.argument("version", type=int)
@click.pass_context
def personas_activate(ctx: click.Context, persona_id: str, version: int) -> None:
    """Make VERSION the single active instruction set for PERSONA_ID."""
    engine = _engine(ctx)
    try:
        engine.store.activate_instruction_set(persona_id, version)
    except KeyError:
        _fail(f"{persona_id} has no instruction set v{version}")
    console.print(f"Activated {persona_id} v{version}")


# -- workflows ----------------------------------------------------------------


@main.command()
@click.argument("question")
@click.option("-p", "--persona", "persona_ids", multiple=True, required=True, help="Persona id (repeat 2-4 times)")
@click.option("--asked-by", default=None, help="Display name of the asker (default: Anonymous)")
@click.pass_context
def ask(ctx: click.Context, question: str, persona_ids: tuple[str, ...], asked_by: str | None) -> None:
    """Open an agora question thread, run it, and print the answers."""
    engine = _engine(ctx)
    try:
        workflow = plan_question(
            engine.store, engine.config.limits, question=question, persona_ids=list(persona_ids), asked_by=asked_by
        )
    except ValidationError as exc:
        _fail(str(exc))

    console.print(f"Thread [bold]{workflow.id}[/bold] with {', '.join(persona_ids)}")
    asyncio.run(_start_and_follow(engine, workflow.id, workflow))
    _print_view(engine, workflow.id)


@main.group()
def debate() -> None:
    """Create and run two-phase debates."""


@debate.command("create")
@click.argument("title")
@click.option("--article-title", required=True, help="Title of the triggering article")
@click.option("--article-source", required=True, help="Publication of the triggering article")
@click.option("--article-url", default=None, help="Link to the triggering article")
@click.option("-p", "--persona", "persona_ids", multiple=True, required=True, help="Persona id (repeat, at least 2)")
@click.pass_context
def debate_create(
    ctx: click.Context,
    title: str,
    article_title: str,
    article_source: str,
    article_url: str | None,
    persona_ids: tuple[str, ...],
) -> None:
    """Create a pending debate. Rebuttal targets are fixed now, in roster order."""
    engine = _engine(ctx)
    try:
        workflow = plan_debate(
            engine.store,
            engine.config.limits,
            title=title,
            article_title=article_title,
            article_source=article_source,
            article_url=article_url,
            persona_ids=list(persona_ids),
        )
    except ValidationError as exc:
        _fail(str(exc))

    workflow.status = WorkflowStatus.PENDING
    engine.store.create_workflow(workflow)
    console.print(f"Created debate [bold]{workflow.id}[/bold] (pending)")
    for p in workflow.participants:
        console.print(f"  slot {p.slot}: {p.persona_id} rebuts {p.target_persona_id}")


@debate.command("run")
@click.argument("workflow_id")
@click.pass_context
def debate_run(ctx: click.Context, workflow_id: str) -> None:
    """Run a pending debate to completion and print it."""
    engine = _engine(ctx)
    workflow = engine.store.get_workflow(workflow_id)
    if workflow is None or workflow.kind is not WorkflowKind.DEBATE:
        _fail(f"Debate not found: {workflow_id}")
    try:
        asyncio.run(_start_and_follow(engine, workflow_id))
    except AlreadyStartedError:
        _fail(f"Debate {workflow_id} is {workflow.status.value}; only pending debates can be run")
    _print_view(engine, workflow_id)


@main.command()
@click.argument("workflow_id")
@click.pass_context
def resume(ctx: click.Context, workflow_id: str) -> None:
    """Finish a workflow left in progress by an interrupted run."""
    engine = _engine(ctx)
    workflow = engine.store.get_workflow(workflow_id)
    if workflow is None:
        _fail(f"Workflow not found: {workflow_id}")
    try:
        asyncio.run(_start_and_follow(engine, workflow_id, resume=True))
    except AlreadyStartedError:
        _fail(f"Workflow {workflow_id} is {workflow.status.value}; only in-progress workflows can be resumed")
    _print_view(engine, workflow_id)


@main.command("list")
@click.option("--kind", type=click.Choice([k.value for k in WorkflowKind]), default=None)
@click.pass_context
def list_workflows(ctx: click.Context, kind: str | None) -> None:
    """List workflows, newest first."""
    engine = _engine(ctx)
    table = Table(title="Workflows")
    table.add_column("Id")
    table.add_column("Kind")
    table.add_column("Status")
    table.add_column("Prompt")
    table.add_column("Created")
    for wf in engine.store.list_workflows(WorkflowKind(kind) if kind else None):
        table.add_row(wf.id, wf.kind.value, wf.status.value, wf.prompt[:60], wf.created_at or "")
    console.print(table)


@main.command()
@click.argument("workflow_id")
@click.option("--json", "as_json", is_flag=True, help="Print the read model as JSON")
@click.option("--attempts", "show_attempts", is_flag=True, help="Also list every logged generation attempt")
@click.option("--save", "save_dir", default=None, type=click.Path(file_okay=False),
              help="Also write a markdown transcript to this directory")
@click.pass_context
def show(ctx: click.Context, workflow_id: str, as_json: bool, show_attempts: bool, save_dir: str | None) -> None:
    """Show a workflow's status, contributions and synthesis."""
    engine = _engine(ctx)
    view = load_workflow_view(engine.store, workflow_id)
    if view is None:
        _fail(f"Workflow not found: {workflow_id}")

    if as_json:
        click.echo(json.dumps(view_to_dict(view), indent=2, ensure_ascii=False))
    else:
        print_workflow(view)
        if show_attempts:
            print_attempts(engine.store.list_attempts(workflow_id))

    if save_dir:
        saved = save_to_file(view, Path(save_dir))
        console.print(f"\n[dim]Saved to: {saved}[/dim]")


@main.command()
@click.argument("persona_id")
@click.argument("source", required=False)
@click.option("--type", "content_type", default="news_reaction",
              help="Template key, or stored type 'post' / 'reflection'")
@click.option("--label", default=None, help="UI label used to disambiguate stored type 'post'")
@click.option("--length", "target_length", type=click.Choice([t.value for t in TargetLength]), default=None)
@click.option("--file", "source_file", type=click.Path(exists=True, dir_okay=False),
              help="Read source material from a file")
@click.pass_context
def generate(
    ctx: click.Context,
    persona_id: str,
    source: str | None,
    content_type: str,
    label: str | None,
    target_length: str | None,
    source_file: str | None,
) -> None:
    """Generate one standalone persona post from SOURCE material."""
    engine = _engine(ctx)
    if source_file:
        material = Path(source_file).read_text(encoding="utf-8").strip()
    elif source:
        material = source
    else:
        _fail("Provide SOURCE text or --file")

    template_key = resolve_content_type_key(content_type, label)
    if template_key not in TEMPLATES or TEMPLATES[template_key].is_synthesis:
        _fail(f"Not a persona content type: {content_type}")

    outcome, record = asyncio.run(
        engine.controller.run(
            persona_id=persona_id,
            phase=Phase.STANDALONE,
            template_key=template_key,
            source_material=material,
            target_length=TargetLength(target_length) if target_length else None,
        )
    )
    if not isinstance(outcome, GenerationSuccess):
        _fail(f"{outcome.reason.value}: {outcome.error} (attempt #{record.id})")
    console.print_json(data=outcome.data)
    console.print(f"[dim]Attempt #{record.id}, instruction set {outcome.instruction_set_id}[/dim]")


@main.command()
@click.pass_context
def check(ctx: click.Context) -> None:
    """Ping every provider that has an API key."""
    config: AppConfig = ctx.obj["config"]
    providers = build_all_providers(config)
    if not providers:
        _fail("No providers available. Check API keys in .env.")

    console.print("\n[bold]Checking providers...[/bold]")
    results = asyncio.run(run_health_checks(providers))
    failed = 0
    for name in sorted(results):
        ok, err = results[name]
        marker = " (default)" if name == config.provider else ""
        if ok:
            console.print(f"  [green]OK  [/green] {name}{marker}")
        else:
            failed += 1
            short_err = err.splitlines()[0][:120] if err else "unknown error"
            console.print(f"  [red]FAIL[/red] {name}{marker}: {short_err}")
    if failed:
        sys.exit(1)


if __name__ == "__main__":
    main()
