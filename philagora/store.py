"""Persistence interface injected into the engine, plus its SQLite implementation.

Every write is scoped to one workflow id and committed on its own, so a crash
mid-workflow keeps the participants already persisted.
"""

import json
import logging
import sqlite3
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

from philagora.models import (
    Contribution,
    FailureReason,
    GenerationAttempt,
    InstructionSet,
    Participant,
    Persona,
    Phase,
    Synthesis,
    Workflow,
    WorkflowKind,
)
from philagora.status import AttemptStatus, WorkflowStatus, allowed_sources

logger = logging.getLogger(__name__)

_PHASE_ORDER = {Phase.OPENING: 0, Phase.RESPONSE: 0, Phase.REBUTTAL: 1}


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Store(ABC):
    """Row access for personas, workflows, attempts, contributions and syntheses."""

    # -- personas ---------------------------------------------------------

    @abstractmethod
    def upsert_persona(self, persona: Persona) -> None: ...

    @abstractmethod
    def get_persona(self, persona_id: str) -> Persona | None: ...

    @abstractmethod
    def list_personas(self) -> list[Persona]: ...

    @abstractmethod
    def add_instruction_set(self, persona_id: str, text: str) -> InstructionSet:
        """Append a new, inactive version. Existing versions are never edited."""
        ...

    @abstractmethod
    def activate_instruction_set(self, persona_id: str, version: int) -> InstructionSet:
        """Atomically deactivate the current version and activate `version`.

        Raises:
            KeyError: if the persona has no such version.
        """
        ...

    @abstractmethod
    def get_active_instruction_set(self, persona_id: str) -> InstructionSet | None: ...

    @abstractmethod
    def list_instruction_sets(self, persona_id: str) -> list[InstructionSet]: ...

    # -- workflows --------------------------------------------------------

    @abstractmethod
    def create_workflow(self, workflow: Workflow) -> Workflow: ...

    @abstractmethod
    def get_workflow(self, workflow_id: str) -> Workflow | None: ...

    @abstractmethod
    def list_workflows(self, kind: WorkflowKind | None = None) -> list[Workflow]: ...

    @abstractmethod
    def set_status(self, workflow_id: str, target: WorkflowStatus) -> bool:
        """Move a workflow to `target` if the transition table allows it from
        the stored status. Returns False (and writes nothing) otherwise."""
        ...

    @abstractmethod
    def count_workflows_since(self, kind: WorkflowKind, since: str) -> int: ...

    # -- generation output ------------------------------------------------

    @abstractmethod
    def add_attempt(self, attempt: GenerationAttempt) -> GenerationAttempt: ...

    @abstractmethod
    def list_attempts(self, workflow_id: str | None = None) -> list[GenerationAttempt]: ...

    @abstractmethod
    def add_contribution(self, contribution: Contribution) -> bool:
        """Insert if absent for (workflow, persona, phase). Returns True if inserted."""
        ...

    @abstractmethod
    def list_contributions(self, workflow_id: str) -> list[Contribution]: ...

    @abstractmethod
    def save_synthesis(self, synthesis: Synthesis) -> bool:
        """Insert if absent for the workflow. Returns True if inserted."""
        ...

    @abstractmethod
    def get_synthesis(self, workflow_id: str) -> Synthesis | None: ...


_SCHEMA = """
CREATE TABLE IF NOT EXISTS personas (
    id              TEXT PRIMARY KEY,
    name            TEXT NOT NULL,
    tradition       TEXT NOT NULL,
    color           TEXT NOT NULL,
    initials        TEXT NOT NULL,
    era             TEXT NOT NULL DEFAULT '',
    bio             TEXT NOT NULL DEFAULT '',
    core_principles TEXT NOT NULL DEFAULT '[]'
);

CREATE TABLE IF NOT EXISTS instruction_sets (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    persona_id  TEXT NOT NULL REFERENCES personas(id),
    version     INTEGER NOT NULL,
    text        TEXT NOT NULL,
    is_active   INTEGER NOT NULL DEFAULT 0,
    created_at  TEXT NOT NULL,
    UNIQUE (persona_id, version)
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_instruction_sets_one_active
ON instruction_sets(persona_id) WHERE is_active = 1;

CREATE TABLE IF NOT EXISTS workflows (
    id              TEXT PRIMARY KEY,
    kind            TEXT NOT NULL CHECK (kind IN ('debate', 'agora')),
    prompt          TEXT NOT NULL,
    status          TEXT NOT NULL CHECK (status IN ('pending', 'in-progress', 'complete')),
    asked_by        TEXT,
    article_title   TEXT,
    article_source  TEXT,
    article_url     TEXT,
    created_at      TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS workflow_participants (
    workflow_id         TEXT NOT NULL REFERENCES workflows(id) ON DELETE CASCADE,
    persona_id          TEXT NOT NULL REFERENCES personas(id),
    slot                INTEGER NOT NULL,
    target_persona_id   TEXT,
    PRIMARY KEY (workflow_id, persona_id)
);

CREATE TABLE IF NOT EXISTS generation_attempts (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    workflow_id         TEXT,
    persona_id          TEXT,
    template_key        TEXT NOT NULL,
    phase               TEXT NOT NULL,
    attempt_number      INTEGER NOT NULL,
    instruction_set_id  INTEGER,
    user_input          TEXT NOT NULL DEFAULT '',
    raw_output          TEXT NOT NULL DEFAULT '',
    status              TEXT NOT NULL CHECK (status IN ('generated', 'rejected')),
    reason              TEXT,
    error               TEXT,
    created_at          TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_generation_attempts_workflow
ON generation_attempts(workflow_id, id);

CREATE TABLE IF NOT EXISTS contributions (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    workflow_id         TEXT NOT NULL REFERENCES workflows(id) ON DELETE CASCADE,
    persona_id          TEXT NOT NULL,
    phase               TEXT NOT NULL,
    slot                INTEGER NOT NULL,
    attempt_id          INTEGER NOT NULL REFERENCES generation_attempts(id),
    payload             TEXT NOT NULL,
    reply_to_persona_id TEXT,
    created_at          TEXT NOT NULL,
    UNIQUE (workflow_id, persona_id, phase)
);

CREATE TABLE IF NOT EXISTS syntheses (
    workflow_id         TEXT PRIMARY KEY REFERENCES workflows(id) ON DELETE CASCADE,
    attempt_id          INTEGER NOT NULL REFERENCES generation_attempts(id),
    tensions            TEXT NOT NULL DEFAULT '[]',
    agreements          TEXT NOT NULL DEFAULT '[]',
    questions           TEXT NOT NULL DEFAULT '[]',
    practical_takeaways TEXT NOT NULL DEFAULT '[]',
    summary             TEXT NOT NULL DEFAULT '{}',
    created_at          TEXT NOT NULL
);
"""


class SQLiteStore(Store):
    """SQLite-backed store. One short-lived connection per operation.

    Calls are synchronous and run on the event loop thread, including from
    concurrent host tasks. Each call is a short transaction, so tasks only
    block each other for the length of one write. Connections are never
    shared, so moving calls to a worker thread needs no locking here.
    """

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(str(self.db_path), timeout=30)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode = WAL")
            conn.executescript(_SCHEMA)

    # -- personas ---------------------------------------------------------

    def upsert_persona(self, persona: Persona) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO personas (id, name, tradition, color, initials, era, bio, core_principles)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name = excluded.name,
                    tradition = excluded.tradition,
                    color = excluded.color,
                    initials = excluded.initials,
                    era = excluded.era,
                    bio = excluded.bio,
                    core_principles = excluded.core_principles
                """,
                (
                    persona.id,
                    persona.name,
                    persona.tradition,
                    persona.color,
                    persona.initials,
                    persona.era,
                    persona.bio,
                    json.dumps(persona.core_principles),
                ),
            )

    def get_persona(self, persona_id: str) -> Persona | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM personas WHERE id = ?", (persona_id,)).fetchone()
        return _persona_from_row(row) if row else None

    def list_personas(self) -> list[Persona]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM personas ORDER BY name").fetchall()
        return [_persona_from_row(r) for r in rows]

    def add_instruction_set(self, persona_id: str, text: str) -> InstructionSet:
        created_at = utc_now()
        with self._connect() as conn:
            row = conn.execute(
                "SELECT MAX(version) AS max_ver FROM instruction_sets WHERE persona_id = ?",
                (persona_id,),
            ).fetchone()
            version = (row["max_ver"] or 0) + 1
            cur = conn.execute(
                """
                INSERT INTO instruction_sets (persona_id, version, text, is_active, created_at)
                VALUES (?, ?, ?, 0, ?)
                """,
                (persona_id, version, text, created_at),
            )
            set_id = cur.lastrowid
        logger.info("Instruction set v%d added for %s", version, persona_id)
        return InstructionSet(
            id=set_id, persona_id=persona_id, version=version, text=text, is_active=False, created_at=created_at
        )

    def activate_instruction_set(self, persona_id: str, version: int) -> InstructionSet:
        with self._connect() as conn:
            exists = conn.execute(
                "SELECT id FROM instruction_sets WHERE persona_id = ? AND version = ?",
                (persona_id, version),
            ).fetchone()
            if exists is None:
                raise KeyError(f"{persona_id} has no instruction set v{version}")
            conn.execute("UPDATE instruction_sets SET is_active = 0 WHERE persona_id = ?", (persona_id,))
            conn.execute("UPDATE instruction_sets SET is_active = 1 WHERE id = ?", (exists["id"],))
            row = conn.execute("SELECT * FROM instruction_sets WHERE id = ?", (exists["id"],)).fetchone()
        logger.info("Instruction set v%d activated for %s", version, persona_id)
        return _instruction_set_from_row(row)

    def get_active_instruction_set(self, persona_id: str) -> InstructionSet | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM instruction_sets WHERE persona_id = ? AND is_active = 1 LIMIT 1",
                (persona_id,),
            ).fetchone()
        return _instruction_set_from_row(row) if row else None

    def list_instruction_sets(self, persona_id: str) -> list[InstructionSet]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM instruction_sets WHERE persona_id = ? ORDER BY version DESC",
                (persona_id,),
            ).fetchall()
        return [_instruction_set_from_row(r) for r in rows]

    # -- workflows --------------------------------------------------------

    def create_workflow(self, workflow: Workflow) -> Workflow:
        if not workflow.created_at:
            workflow.created_at = utc_now()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO workflows (
                    id, kind, prompt, status, asked_by,
                    article_title, article_source, article_url, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    workflow.id,
                    workflow.kind.value,
                    workflow.prompt,
                    workflow.status.value,
                    workflow.asked_by,
                    workflow.article_title,
                    workflow.article_source,
                    workflow.article_url,
                    workflow.created_at,
                ),
            )
            conn.executemany(
                """
                INSERT INTO workflow_participants (workflow_id, persona_id, slot, target_persona_id)
                VALUES (?, ?, ?, ?)
                """,
                [(workflow.id, p.persona_id, p.slot, p.target_persona_id) for p in workflow.participants],
            )
        return workflow

    def get_workflow(self, workflow_id: str) -> Workflow | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM workflows WHERE id = ?", (workflow_id,)).fetchone()
            if row is None:
                return None
            participants = conn.execute(
                "SELECT * FROM workflow_participants WHERE workflow_id = ? ORDER BY slot",
                (workflow_id,),
            ).fetchall()
        return _workflow_from_row(row, participants)

    def list_workflows(self, kind: WorkflowKind | None = None) -> list[Workflow]:
        with self._connect() as conn:
            if kind is None:
                rows = conn.execute("SELECT id FROM workflows ORDER BY created_at DESC").fetchall()
            else:
                rows = conn.execute(
                    "SELECT id FROM workflows WHERE kind = ? ORDER BY created_at DESC", (kind.value,)
                ).fetchall()
        workflows = [self.get_workflow(r["id"]) for r in rows]
        return [w for w in workflows if w is not None]

    def set_status(self, workflow_id: str, target: WorkflowStatus) -> bool:
        sources = sorted(s.value for s in allowed_sources(target))
        if not sources:
            return False
        placeholders = ", ".join("?" for _ in sources)
        with self._connect() as conn:
            cur = conn.execute(
                f"UPDATE workflows SET status = ? WHERE id = ? AND status IN ({placeholders})",
                (target.value, workflow_id, *sources),
            )
            changed = cur.rowcount == 1
        if changed:
            logger.info("Workflow %s -> %s", workflow_id, target.value)
        return changed

    def count_workflows_since(self, kind: WorkflowKind, since: str) -> int:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS n FROM workflows WHERE kind = ? AND created_at >= ?",
                (kind.value, since),
            ).fetchone()
        return int(row["n"])

    # -- generation output ------------------------------------------------

    def add_attempt(self, attempt: GenerationAttempt) -> GenerationAttempt:
        attempt.created_at = attempt.created_at or utc_now()
        with self._connect() as conn:
            cur = conn.execute(
                """
                INSERT INTO generation_attempts (
                    workflow_id, persona_id, template_key, phase, attempt_number,
                    instruction_set_id, user_input, raw_output, status, reason, error, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    attempt.workflow_id,
                    attempt.persona_id,
                    attempt.template_key,
                    attempt.phase.value,
                    attempt.attempt_number,
                    attempt.instruction_set_id,
                    attempt.user_input,
                    attempt.raw_output,
                    attempt.status.value,
                    attempt.reason.value if attempt.reason else None,
                    attempt.error,
                    attempt.created_at,
                ),
            )
            attempt.id = cur.lastrowid
        return attempt

    def list_attempts(self, workflow_id: str | None = None) -> list[GenerationAttempt]:
        with self._connect() as conn:
            if workflow_id is None:
                rows = conn.execute("SELECT * FROM generation_attempts ORDER BY id").fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM generation_attempts WHERE workflow_id = ? ORDER BY id",
                    (workflow_id,),
                ).fetchall()
        return [_attempt_from_row(r) for r in rows]

    def add_contribution(self, contribution: Contribution) -> bool:
        contribution.created_at = contribution.created_at or utc_now()
        with self._connect() as conn:
            cur = conn.execute(
                """
                INSERT OR IGNORE INTO contributions (
                    workflow_id, persona_id, phase, slot, attempt_id,
                    payload, reply_to_persona_id, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    contribution.workflow_id,
                    contribution.persona_id,
                    contribution.phase.value,
                    contribution.slot,
                    contribution.attempt_id,
                    json.dumps(contribution.payload),
                    contribution.reply_to_persona_id,
                    contribution.created_at,
                ),
            )
            inserted = cur.rowcount == 1
            if inserted:
                contribution.id = cur.lastrowid
        return inserted

    def list_contributions(self, workflow_id: str) -> list[Contribution]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM contributions WHERE workflow_id = ?", (workflow_id,)
            ).fetchall()
        contributions = [_contribution_from_row(r) for r in rows]
        return sorted(contributions, key=lambda c: (_PHASE_ORDER.get(c.phase, 9), c.slot))

    def save_synthesis(self, synthesis: Synthesis) -> bool:
        synthesis.created_at = synthesis.created_at or utc_now()
        with self._connect() as conn:
            cur = conn.execute(
                """
                INSERT OR IGNORE INTO syntheses (
                    workflow_id, attempt_id, tensions, agreements, questions,
                    practical_takeaways, summary, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    synthesis.workflow_id,
                    synthesis.attempt_id,
                    json.dumps(synthesis.tensions),
                    json.dumps(synthesis.agreements),
                    json.dumps(synthesis.questions),
                    json.dumps(synthesis.practical_takeaways),
                    json.dumps(synthesis.summary),
                    synthesis.created_at,
                ),
            )
            return cur.rowcount == 1

    def get_synthesis(self, workflow_id: str) -> Synthesis | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM syntheses WHERE workflow_id = ?", (workflow_id,)).fetchone()
        if row is None:
            return None
        return Synthesis(
            workflow_id=row["workflow_id"],
            attempt_id=row["attempt_id"],
            tensions=json.loads(row["tensions"]),
            agreements=json.loads(row["agreements"]),
            questions=json.loads(row["questions"]),
            practical_takeaways=json.loads(row["practical_takeaways"]),
            summary=json.loads(row["summary"]),
            created_at=row["created_at"],
        )


def _persona_from_row(row: sqlite3.Row) -> Persona:
    return Persona(
        id=row["id"],
        name=row["name"],
        tradition=row["tradition"],
        color=row["color"],
        initials=row["initials"],
        era=row["era"],
        bio=row["bio"],
        core_principles=json.loads(row["core_principles"] or "[]"),
    )


def _instruction_set_from_row(row: sqlite3.Row) -> InstructionSet:
    return InstructionSet(
        id=row["id"],
        persona_id=row["persona_id"],
        version=row["version"],
        text=row["text"],
        is_active=bool(row["is_active"]),
        created_at=row["created_at"],
    )


def _workflow_from_row(row: sqlite3.Row, participants: list[sqlite3.Row]) -> Workflow:
    return Workflow(
        id=row["id"],
        kind=WorkflowKind(row["kind"]),
        prompt=row["prompt"],
        status=WorkflowStatus(row["status"]),
        asked_by=row["asked_by"],
        article_title=row["article_title"],
        article_source=row["article_source"],
        article_url=row["article_url"],
        created_at=row["created_at"],
        participants=[
            Participant(persona_id=p["persona_id"], slot=p["slot"], target_persona_id=p["target_persona_id"])
            for p in participants
        ],
    )


def _attempt_from_row(row: sqlite3.Row) -> GenerationAttempt:
    return GenerationAttempt(
        id=row["id"],
        workflow_id=row["workflow_id"],
        persona_id=row["persona_id"],
        template_key=row["template_key"],
        phase=Phase(row["phase"]),
        attempt_number=row["attempt_number"],
        instruction_set_id=row["instruction_set_id"],
        user_input=row["user_input"],
        raw_output=row["raw_output"],
        status=AttemptStatus(row["status"]),
        reason=FailureReason(row["reason"]) if row["reason"] else None,
        error=row["error"],
        created_at=row["created_at"],
    )


def _contribution_from_row(row: sqlite3.Row) -> Contribution:
    return Contribution(
        id=row["id"],
        workflow_id=row["workflow_id"],
        persona_id=row["persona_id"],
        phase=Phase(row["phase"]),
        slot=row["slot"],
        attempt_id=row["attempt_id"],
        payload=json.loads(row["payload"]),
        reply_to_persona_id=row["reply_to_persona_id"],
        created_at=row["created_at"],
    )
