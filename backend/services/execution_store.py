"""Execution store: persistence used by the workflow engine.

``ExecutionStore`` is the contract; ``SqlExecutionStore`` implements it on
the async SQLAlchemy models. Every operation opens its own short-lived
session so concurrent executions never share one.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func, select, update as sa_update

from core.constants import ExecutionMode
from db.models.execution import WorkflowExecution
from db.models.integration import Integration
from db.models.workflow import Workflow

logger = logging.getLogger(__name__)


class ExecutionStore(ABC):
    """Persistence operations the engine and step processors rely on."""

    @abstractmethod
    async def get_workflow(self, workflow_id: str) -> Optional[Workflow]:
        ...

    @abstractmethod
    async def get_execution(self, execution_id: str) -> Optional[WorkflowExecution]:
        ...

    @abstractmethod
    async def create_execution(self, data: dict[str, Any]) -> WorkflowExecution:
        ...

    @abstractmethod
    async def update_execution(self, execution_id: str, data: dict[str, Any]) -> None:
        ...

    @abstractmethod
    async def increment_workflow_counters(
        self, workflow_id: str, success: bool, executed_at: datetime
    ) -> None:
        """Atomically bump total_runs and successful_runs or failed_runs."""
        ...

    @abstractmethod
    async def finalize_execution(
        self,
        execution_id: str,
        workflow_id: str,
        data: dict[str, Any],
        success: bool,
        executed_at: datetime,
    ) -> None:
        """Apply the terminal execution update and the counter bump together."""
        ...

    @abstractmethod
    async def find_active_integration(
        self, user_id: str, integration_type: str
    ) -> Optional[Integration]:
        ...

    @abstractmethod
    async def count_executions_since(self, user_id: str, since: datetime) -> int:
        """Count NORMAL-mode executions a user started at or after ``since``."""
        ...


def _counter_values(success: bool, executed_at: datetime) -> dict[str, Any]:
    column = "successful_runs" if success else "failed_runs"
    return {
        "total_runs": Workflow.total_runs + 1,
        column: getattr(Workflow, column) + 1,
        "last_executed_at": executed_at,
    }


class SqlExecutionStore(ExecutionStore):
    """SQLAlchemy implementation.

    Args:
        session_factory: async sessionmaker. Defaults to the application's
            ``db.database.AsyncSessionLocal``, looked up on every call.
    """

    def __init__(self, session_factory=None):
        self._session_factory = session_factory

    def _session(self):
        if self._session_factory is not None:
            return self._session_factory()
        from db import database

        return database.AsyncSessionLocal()

    # ─── Read ──────────────────────────────────────────────

    async def get_workflow(self, workflow_id: str) -> Optional[Workflow]:
        async with self._session() as session:
            return await session.get(Workflow, workflow_id)

    async def get_execution(self, execution_id: str) -> Optional[WorkflowExecution]:
        async with self._session() as session:
            return await session.get(WorkflowExecution, execution_id)

    async def find_active_integration(
        self, user_id: str, integration_type: str
    ) -> Optional[Integration]:
        query = (
            select(Integration)
            .where(
                Integration.user_id == user_id,
                Integration.type == integration_type,
                Integration.is_active == True,  # noqa: E712
            )
            .order_by(Integration.created_at.desc())
            .limit(1)
        )
        async with self._session() as session:
            result = await session.execute(query)
            return result.scalar_one_or_none()

    async def count_executions_since(self, user_id: str, since: datetime) -> int:
        query = select(func.count()).select_from(WorkflowExecution).where(
            WorkflowExecution.user_id == user_id,
            WorkflowExecution.execution_mode == ExecutionMode.NORMAL.value,
            WorkflowExecution.started_at >= since,
        )
        async with self._session() as session:
            result = await session.execute(query)
            return result.scalar() or 0

    # ─── Write ─────────────────────────────────────────────

    async def create_execution(self, data: dict[str, Any]) -> WorkflowExecution:
        execution = WorkflowExecution(**data)
        async with self._session() as session:
            session.add(execution)
            await session.commit()
            await session.refresh(execution)
        return execution

    async def update_execution(self, execution_id: str, data: dict[str, Any]) -> None:
        async with self._session() as session:
            await session.execute(
                sa_update(WorkflowExecution)
                .where(WorkflowExecution.id == execution_id)
                .values(**data)
            )
            await session.commit()

    async def increment_workflow_counters(
        self, workflow_id: str, success: bool, executed_at: datetime
    ) -> None:
        async with self._session() as session:
            await session.execute(
                sa_update(Workflow)
                .where(Workflow.id == workflow_id)
                .values(**_counter_values(success, executed_at))
            )
            await session.commit()

    async def finalize_execution(
        self,
        execution_id: str,
        workflow_id: str,
        data: dict[str, Any],
        success: bool,
        executed_at: datetime,
    ) -> None:
        async with self._session() as session:
            async with session.begin():
                await session.execute(
                    sa_update(WorkflowExecution)
                    .where(WorkflowExecution.id == execution_id)
                    .values(**data)
                )
                await session.execute(
                    sa_update(Workflow)
                    .where(Workflow.id == workflow_id)
                    .values(**_counter_values(success, executed_at))
                )
        logger.debug(
            f"Execution {execution_id} finalized ({'success' if success else 'failure'})"
        )


# ─── Singleton ─────────────────────────────────────────────────

_store: Optional[ExecutionStore] = None


def get_execution_store() -> ExecutionStore:
    """Get or create the singleton execution store."""
    global _store
    if _store is None:
        _store = SqlExecutionStore()
    return _store
