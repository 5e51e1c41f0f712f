"""Execution host: persist the workflow synchronously, run the driver as a tracked task.

The caller gets the workflow id back immediately and polls the store. Each
run is wrapped so an uncaught driver exception is logged and the workflow is
still forced to ``complete``.
"""

import asyncio
import logging
from dataclasses import dataclass

from philagora.models import Workflow
from philagora.status import InvalidTransitionError, WorkflowStatus, check_transition
from philagora.store import Store
from philagora.workflow import WorkflowDriver, WorkflowNotFoundError

logger = logging.getLogger(__name__)


class AlreadyStartedError(Exception):
    """start() or resume() was called for a workflow in the wrong status."""


@dataclass
class Job:
    workflow_id: str
    task: asyncio.Task
    error: Exception | None = None

    @property
    def done(self) -> bool:
        return self.task.done()


class ExecutionHost:
    """Owns the background tasks for running workflows. No cancellation is exposed."""

    def __init__(self, store: Store, driver: WorkflowDriver) -> None:
        self._store = store
        self._driver = driver
        self._jobs: dict[str, Job] = {}

    def submit(self, workflow: Workflow) -> str:
        """Persist a new workflow at ``pending``. Nothing runs yet."""
        workflow.status = WorkflowStatus.PENDING
        self._store.create_workflow(workflow)
        logger.info("Workflow %s (%s) created", workflow.id, workflow.kind.value)
        return workflow.id

    def start(self, workflow_id: str) -> Job:
        """Move ``pending -> in-progress`` and spawn the driver.

        The status transition is the at-most-once gate: only one caller can
        win it for a given id. Must be called with a running event loop; the
        row is left ``pending`` if it is not.

        Raises:
            WorkflowNotFoundError: unknown id.
            AlreadyStartedError: the workflow is not pending.
            RuntimeError: no running event loop.
        """
        self._check_startable(workflow_id, resuming=False)
        loop = asyncio.get_running_loop()
        if not self._store.set_status(workflow_id, WorkflowStatus.IN_PROGRESS):
            raise AlreadyStartedError(f"Workflow {workflow_id} is not pending")
        return self._spawn(loop, workflow_id)

    def resume(self, workflow_id: str) -> Job:
        """Drive an ``in-progress`` workflow that no job in this host owns.

        Used after a process died mid-run. The driver skips contributions that
        already exist, so only the missing ones are generated. Contributions
        and synthesis are insert-if-absent, so a run that races another host
        still persists one of each.

        Raises:
            WorkflowNotFoundError: unknown id.
            AlreadyStartedError: the workflow is not in progress, or this host
                already runs it.
            RuntimeError: no running event loop.
        """
        self._check_startable(workflow_id, resuming=True)
        loop = asyncio.get_running_loop()
        logger.info("Resuming workflow %s", workflow_id)
        return self._spawn(loop, workflow_id)

    def submit_and_start(self, workflow: Workflow) -> str:
        workflow_id = self.submit(workflow)
        self.start(workflow_id)
        return workflow_id

    def job(self, workflow_id: str) -> Job | None:
        return self._jobs.get(workflow_id)

    def active_jobs(self) -> list[Job]:
        return [j for j in self._jobs.values() if not j.done]

    async def wait(self, workflow_id: str) -> Job:
        """Block until the workflow's job finishes. Never raises the driver's error."""
        job = self._jobs[workflow_id]
        await job.task
        return job

    async def drain(self) -> None:
        """Wait for every job spawned so far."""
        if self._jobs:
            await asyncio.gather(*(j.task for j in self._jobs.values()))

    def _check_startable(self, workflow_id: str, *, resuming: bool) -> None:
        if workflow_id in self._jobs:
            raise AlreadyStartedError(f"Workflow {workflow_id} already has a job")
        workflow = self._store.get_workflow(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(workflow_id)
        if resuming:
            if workflow.status is not WorkflowStatus.IN_PROGRESS:
                raise AlreadyStartedError(f"Workflow {workflow_id} is {workflow.status.value}, not in progress")
            return
        try:
            check_transition(workflow.status, WorkflowStatus.IN_PROGRESS)
        except InvalidTransitionError as exc:
            raise AlreadyStartedError(f"Workflow {workflow_id} is not pending: {exc}") from exc

    def _spawn(self, loop: asyncio.AbstractEventLoop, workflow_id: str) -> Job:
        task = loop.create_task(self._guarded_run(workflow_id), name=f"workflow_{workflow_id}")
        job = Job(workflow_id=workflow_id, task=task)
        self._jobs[workflow_id] = job
        return job

    async def _guarded_run(self, workflow_id: str) -> None:
        try:
            await self._driver.run(workflow_id)
        except Exception as exc:
            logger.exception("Workflow %s crashed; forcing complete", workflow_id)
            self._jobs[workflow_id].error = exc
            self._force_complete(workflow_id)

    def _force_complete(self, workflow_id: str) -> None:
        try:
            self._store.set_status(workflow_id, WorkflowStatus.COMPLETE)
        except Exception:
            logger.exception("Could not mark workflow %s complete", workflow_id)
