"""Workflow service: execution entry points and background dispatch."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings, get_settings
from core.constants import ExecutionMode, TriggerSource
from core.exceptions import (
    NotFoundError,
    QuotaExceededError,
    WorkflowInactiveError,
    WorkflowNotFoundError,
)
from db.models.execution import WorkflowExecution
from db.models.workflow import Workflow
from services.base import BaseService
from services.execution_store import ExecutionStore, get_execution_store
from workflow.engine import ExecutionEngine, ExecutionResult, get_execution_engine

logger = logging.getLogger(__name__)


def month_start(now: Optional[datetime] = None) -> datetime:
    """First instant of the current UTC calendar month."""
    now = now or datetime.now(timezone.utc)
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


# ─── Background dispatch ───────────────────────────────────────

class ExecutionDispatcher:
    """Submit executions without waiting for them.

    Backends:
        "inprocess": an asyncio task on the current loop
        "celery": the worker.tasks.workflow.execute_workflow task
        "auto": Celery when a worker answers a ping, otherwise in-process

    In-process tasks are kept in a set until they finish so they are not
    garbage collected mid-run.
    """

    def __init__(self, backend: Optional[str] = None, engine: Optional[ExecutionEngine] = None):
        self.backend = (backend or get_settings().EXECUTION_BACKEND).lower()
        self._engine = engine
        self._tasks: set[asyncio.Task] = set()

    @property
    def engine(self) -> ExecutionEngine:
        return self._engine or get_execution_engine()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def submit(
        self,
        workflow_id: str,
        trigger_data: dict,
        mode: ExecutionMode = ExecutionMode.NORMAL,
        trigger_source: TriggerSource = TriggerSource.WEBHOOK,
        retry_of_id: Optional[str] = None,
    ) -> str:
        """Start an execution in the background.

        Returns:
            The backend that accepted the run ("celery" or "inprocess").
        """
        if self.backend in ("celery", "auto") and await self._celery_available():
            from worker.tasks.workflow import execute_workflow

            execute_workflow.delay(
                workflow_id=workflow_id,
                trigger_data=trigger_data,
                execution_mode=ExecutionMode(mode).value,
                trigger_source=TriggerSource(trigger_source).value,
                retry_of_id=retry_of_id,
            )
            logger.info(f"Workflow {workflow_id} dispatched to Celery")
            return "celery"

        task = asyncio.create_task(
            self._run_in_process(workflow_id, trigger_data, mode, trigger_source, retry_of_id)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.info(f"Workflow {workflow_id} running in-process")
        return "inprocess"

    async def _celery_available(self) -> bool:
        if self.backend == "celery":
            return True
        try:
            from worker.celery_app import celery_app

            inspector = celery_app.control.inspect(timeout=1.0)
            workers = await asyncio.to_thread(inspector.ping)
        except Exception as e:
            logger.warning(f"Celery check failed, falling back to in-process: {e}")
            return False
        if not workers:
            logger.info("No Celery workers found, falling back to in-process")
        return bool(workers)

    async def _run_in_process(
        self,
        workflow_id: str,
        trigger_data: dict,
        mode: ExecutionMode,
        trigger_source: TriggerSource,
        retry_of_id: Optional[str],
    ) -> None:
        try:
            result = await self.engine.execute_workflow(
                workflow_id,
                trigger_data,
                mode=mode,
                trigger_source=trigger_source,
                retry_of_id=retry_of_id,
            )
            logger.info(f"Background execution {result.execution_id} finished")
        except Exception as e:
            # The engine has already recorded the failure; the caller got its response
            logger.error(f"Background execution of workflow {workflow_id} failed: {e}")

    async def drain(self) -> None:
        """Wait for all in-process executions to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


_dispatcher: Optional[ExecutionDispatcher] = None


def get_execution_dispatcher() -> ExecutionDispatcher:
    """Get or create the singleton ExecutionDispatcher."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = ExecutionDispatcher()
    return _dispatcher


# ─── Workflow service ──────────────────────────────────────────

class WorkflowService:
    """Checks and entry points that wrap the execution engine.

    NORMAL-mode runs require an active workflow and remaining monthly
    quota; TEST-mode runs skip both.
    """

    def __init__(
        self,
        store: Optional[ExecutionStore] = None,
        engine: Optional[ExecutionEngine] = None,
        dispatcher: Optional[ExecutionDispatcher] = None,
        settings: Optional[Settings] = None,
    ):
        self.store = store or get_execution_store()
        self.engine = engine or get_execution_engine()
        self.dispatcher = dispatcher or get_execution_dispatcher()
        self.settings = settings or get_settings()

    async def get_active_workflow(self, workflow_id: str, user_id: Optional[str] = None) -> Workflow:
        """Load a workflow that may run in NORMAL mode.

        Raises:
            WorkflowNotFoundError: unknown id, or not owned by ``user_id``
            WorkflowInactiveError: the workflow is paused
        """
        workflow = await self.store.get_workflow(workflow_id)
        if workflow is None or (user_id is not None and workflow.user_id != user_id):
            raise WorkflowNotFoundError(workflow_id)
        if not workflow.is_active:
            raise WorkflowInactiveError()
        return workflow

    async def check_quota(self, user_id: str) -> None:
        """Raise QuotaExceededError when the monthly allowance is used up."""
        limit = self.settings.MONTHLY_EXECUTION_LIMIT
        if limit <= 0:
            return
        used = await self.store.count_executions_since(user_id, month_start())
        if used >= limit:
            logger.info(f"User {user_id} reached the monthly limit ({used}/{limit})")
            raise QuotaExceededError()

    async def _admit(self, workflow_id: str, mode: ExecutionMode, user_id: Optional[str] = None) -> None:
        if mode == ExecutionMode.TEST:
            return
        workflow = await self.get_active_workflow(workflow_id, user_id)
        await self.check_quota(workflow.user_id)

    async def execute(
        self,
        workflow_id: str,
        trigger_data: Optional[dict] = None,
        mode: ExecutionMode = ExecutionMode.NORMAL,
        trigger_source: TriggerSource = TriggerSource.API,
    ) -> ExecutionResult:
        """Run a workflow and wait for the result."""
        mode = ExecutionMode(mode)
        await self._admit(workflow_id, mode)
        return await self.engine.execute_workflow(
            workflow_id, trigger_data or {}, mode=mode, trigger_source=trigger_source
        )

    async def trigger(
        self,
        workflow_id: str,
        trigger_data: Optional[dict] = None,
        user_id: Optional[str] = None,
        trigger_source: TriggerSource = TriggerSource.WEBHOOK,
    ) -> str:
        """Validate, then start a NORMAL-mode run in the background.

        Returns:
            The dispatcher backend that accepted the run.
        """
        await self._admit(workflow_id, ExecutionMode.NORMAL, user_id)
        return await self.dispatcher.submit(
            workflow_id,
            trigger_data or {},
            mode=ExecutionMode.NORMAL,
            trigger_source=trigger_source,
        )

    async def retry(self, execution_id: str) -> ExecutionResult:
        """Re-run a past execution from scratch with its original input.

        A new execution record is created (trigger_source RETRY,
        retry_of_id pointing at the original); the original is untouched.
        """
        original = await self.store.get_execution(execution_id)
        if original is None:
            raise NotFoundError("Execution not found")

        mode = ExecutionMode(original.execution_mode)
        await self._admit(original.workflow_id, mode)
        return await self.engine.execute_workflow(
            original.workflow_id,
            original.input_data or {},
            mode=mode,
            trigger_source=TriggerSource.RETRY,
            retry_of_id=original.id,
        )


# ─── Execution queries ─────────────────────────────────────────

class ExecutionService(BaseService[WorkflowExecution]):
    """Read access to execution history."""

    def __init__(self, db: AsyncSession):
        super().__init__(WorkflowExecution, db)

    async def get_by_workflow(
        self,
        workflow_id: str,
        offset: int = 0,
        limit: int = 20,
        status: Optional[str] = None,
    ) -> tuple[Any, int]:
        """Get executions for a specific workflow, newest first."""
        filters = {"workflow_id": workflow_id}
        if status:
            filters["status"] = status
        return await self.list(
            offset=offset,
            limit=limit,
            filters=filters,
            order_by="started_at",
        )
