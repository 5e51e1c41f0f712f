"""Persona resolution and persona-file seeding.

A persona file is markdown with YAML front matter: metadata up top, the
instruction-set text as the body.

    ---
    id: seneca
    name: Seneca
    tradition: Stoicism
    era: 4 BC - 65 AD
    color: "#8B4513"
    initials: SE
    core_principles:
      - title: Time
        description: Time is the only thing truly ours.
    ---
    You are Seneca...
"""

import logging
from dataclasses import dataclass
from pathlib import Path

import frontmatter

from philagora.errors import ConfigurationError
from philagora.models import InstructionSet, Persona
from philagora.store import Store

logger = logging.getLogger(__name__)


@dataclass
class PersonaFile:
    persona: Persona
    instructions: str
    path: Path


@dataclass
class SeedResult:
    persona_id: str
    version: int | None   # new version appended, None if text unchanged
    activated: bool


def resolve_persona(store: Store, persona_id: str) -> tuple[Persona, InstructionSet]:
    """Load a persona and its active instruction set.

    Raises:
        ConfigurationError: unknown persona, or no active instruction set.
    """
    persona = store.get_persona(persona_id)
    if persona is None:
        raise ConfigurationError(f'Persona "{persona_id}" not found')
    active = store.get_active_instruction_set(persona_id)
    if active is None:
        raise ConfigurationError(
            f"No active instruction set for {persona.name}. Add and activate one first."
        )
    return persona, active


def _initials(name: str) -> str:
    parts = [p for p in name.split() if p]
    if len(parts) >= 2:
        return (parts[0][0] + parts[-1][0]).upper()
    return name[:2].upper()


def load_persona_file(path: Path) -> PersonaFile:
    """Parse one persona markdown file.

    Raises:
        ValueError: required metadata (id, name, tradition) or body missing.
    """
    post = frontmatter.load(str(path))
    meta = dict(post.metadata)
    missing = [k for k in ("id", "name", "tradition") if not meta.get(k)]
    if missing:
        raise ValueError(f"{path.name}: missing front matter keys: {', '.join(missing)}")
    instructions = post.content.strip()
    if not instructions:
        raise ValueError(f"{path.name}: empty instruction text")

    name = str(meta["name"])
    principles = meta.get("core_principles") or []
    persona = Persona(
        id=str(meta["id"]),
        name=name,
        tradition=str(meta["tradition"]),
        color=str(meta.get("color", "#888888")),
        initials=str(meta.get("initials") or _initials(name)),
        era=str(meta.get("era", "")),
        bio=str(meta.get("bio", "")),
        core_principles=[
            {"title": str(p.get("title", "")), "description": str(p.get("description", ""))}
            for p in principles
            if isinstance(p, dict)
        ],
    )
    return PersonaFile(persona=persona, instructions=instructions, path=path)


def seed_persona(store: Store, persona_file: PersonaFile, *, activate: bool = False) -> SeedResult:
    """Upsert metadata and append a new instruction-set version if the text changed.

    The new version is activated when `activate` is set or the persona has no
    active version yet.
    """
    persona = persona_file.persona
    store.upsert_persona(persona)

    versions = store.list_instruction_sets(persona.id)
    latest = versions[0] if versions else None
    new_version: int | None = None
    if latest is None or latest.text.strip() != persona_file.instructions:
        new_version = store.add_instruction_set(persona.id, persona_file.instructions).version

    activated = False
    target = new_version if new_version is not None else (latest.version if latest else None)
    if target is not None and (activate or store.get_active_instruction_set(persona.id) is None):
        store.activate_instruction_set(persona.id, target)
        activated = True

    return SeedResult(persona_id=persona.id, version=new_version, activated=activated)


def seed_personas(store: Store, directory: Path, *, activate: bool = False) -> list[SeedResult]:
    """Seed every *.md persona file in `directory`, sorted by name.

    Files that fail to parse are logged and skipped.
    """
    results: list[SeedResult] = []
    for path in sorted(directory.glob("*.md")):
        try:
            persona_file = load_persona_file(path)
        except ValueError as exc:
            logger.warning("Skipping persona file %s: %s", path.name, exc)
            continue
        results.append(seed_persona(store, persona_file, activate=activate))
    return results
