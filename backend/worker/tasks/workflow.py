"""Celery tasks for workflow execution.

Webhook intake hands executions to this task when the Celery backend is
enabled. The task runs the same ExecutionEngine as the API process, in a
fresh event loop with its own database engine, so the outcome is only
observable through the persisted execution record.
"""

import asyncio
import logging
from typing import Optional

from core.constants import ExecutionMode, TriggerSource
from worker.celery_app import celery_app

logger = logging.getLogger(__name__)


async def _run_workflow(
    workflow_id: str,
    trigger_data: dict,
    execution_mode: str,
    trigger_source: str,
    retry_of_id: Optional[str],
) -> dict:
    from db.worker_session import worker_session_factory
    from services.execution_store import SqlExecutionStore
    from workflow.engine import ExecutionEngine

    async with worker_session_factory() as session_factory:
        engine = ExecutionEngine(store=SqlExecutionStore(session_factory))
        result = await engine.execute_workflow(
            workflow_id,
            trigger_data,
            mode=ExecutionMode(execution_mode),
            trigger_source=TriggerSource(trigger_source),
            retry_of_id=retry_of_id,
        )
    return result.to_dict()


@celery_app.task(
    name="worker.tasks.workflow.execute_workflow",
    acks_late=True,
    queue="workflows",
)
def execute_workflow(
    workflow_id: str,
    trigger_data: dict = None,
    execution_mode: str = ExecutionMode.NORMAL.value,
    trigger_source: str = TriggerSource.WEBHOOK.value,
    retry_of_id: str = None,
):
    """Execute a workflow in the background.

    Failures are already recorded on the execution by the engine; they are
    logged here and reported as the task result, never retried.
    """
    logger.info(f"Starting workflow execution for {workflow_id} ({trigger_source})")

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(
            _run_workflow(
                workflow_id,
                trigger_data or {},
                execution_mode,
                trigger_source,
                retry_of_id,
            )
        )
    except Exception as exc:
        logger.error(f"Workflow {workflow_id} execution failed: {exc}")
        return {"success": False, "error": str(exc), "workflow_id": workflow_id}
    finally:
        loop.close()
