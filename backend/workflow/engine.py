"""Workflow Execution Engine: breadth-first workflow runner.

Takes a stored workflow (a graph of steps and connections) and runs it
against a trigger payload:

- Starts at the single trigger step
- Runs one step at a time, in FIFO queue order
- Merges each step's output into a shared context (last writer wins)
- Follows outgoing connections whose condition holds
- Processes each step id at most once (cycles terminate)
- Writes exactly one terminal update per execution, together with the
  workflow's run counters

Workflow Definition Schema (stored in Workflow.definition JSON):
{
    "steps": [
        {"id": "t1", "type": "trigger", "blockType": "webhook-trigger", "config": {}},
        {"id": "c1", "type": "condition", "blockType": "if-condition",
         "config": {"field": "status", "operator": "equals", "value": "ok"}},
        {"id": "l1", "type": "utility", "blockType": "logger",
         "config": {"message": "Order {{order.id}} accepted"}}
    ],
    "connections": [
        {"from": "t1", "to": "c1"},
        {"from": "c1", "to": "l1",
         "condition": {"field": "condition_result", "operator": "true"}}
    ]
}
"""

import copy
import json
import logging
import traceback
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from core.constants import ExecutionMode, ExecutionStatus, TriggerSource
from core.exceptions import WorkflowNotFoundError
from core.logging_config import execution_log_context
from tasks.base_task import StepRunContext
from workflow.definition import WorkflowDefinition, parse_definition
from workflow.router import should_follow

logger = logging.getLogger(__name__)


# ─── Results ──────────────────────────────────────────────────

@dataclass
class StepTrace:
    """One executed step as recorded in ``steps_executed``."""
    step_id: str
    block_type: str
    input: dict
    output: Any
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "stepId": self.step_id,
            "type": self.block_type,
            "input": self.input,
            "output": self.output,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class ExecutionResult:
    """What a successful ``execute_workflow`` call returns."""
    execution_id: str
    success: bool
    output: dict
    steps_executed: int
    trace: list[StepTrace] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "execution_id": self.execution_id,
            "success": self.success,
            "output": self.output,
            "steps_executed": self.steps_executed,
        }


def _json_safe(value: Any) -> Any:
    """Make a value storable in a JSON column (unknown types become strings)."""
    return json.loads(json.dumps(value, default=str))


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ─── Execution Engine ─────────────────────────────────────────

class ExecutionEngine:
    """Main workflow execution engine.

    Collaborators are injected so tests can swap them; by default the
    application singletons are used.
    """

    def __init__(self, store=None, adapter=None, registry=None):
        self._store = store
        self._adapter = adapter
        self._registry = registry

    @property
    def store(self):
        if self._store is None:
            from services.execution_store import get_execution_store
            self._store = get_execution_store()
        return self._store

    @property
    def adapter(self):
        if self._adapter is None:
            from integrations.adapter import get_integration_adapter
            self._adapter = get_integration_adapter()
        return self._adapter

    @property
    def registry(self):
        if self._registry is None:
            from tasks.registry import get_step_registry
            self._registry = get_step_registry()
        return self._registry

    async def execute_workflow(
        self,
        workflow_id: str,
        trigger_data: Optional[dict] = None,
        mode: ExecutionMode = ExecutionMode.NORMAL,
        trigger_source: TriggerSource = TriggerSource.MANUAL,
        retry_of_id: Optional[str] = None,
    ) -> ExecutionResult:
        """Execute a workflow against a trigger payload.

        Args:
            workflow_id: Workflow to run
            trigger_data: Payload the run starts with (becomes the context)
            mode: NORMAL or TEST; recorded on the execution
            trigger_source: What started the run; recorded on the execution
            retry_of_id: Execution this run re-executes, if any

        Returns:
            ExecutionResult for a successful run

        Raises:
            WorkflowNotFoundError: unknown workflow id (no record created)
            InvalidDefinitionError: unusable definition (no record created)
            Exception: any step error, after the execution is marked FAILED
        """
        workflow = await self.store.get_workflow(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(workflow_id)

        definition = parse_definition(workflow.definition)
        trigger_data = dict(trigger_data or {})
        mode = ExecutionMode(mode)
        trigger_source = TriggerSource(trigger_source)

        started_at = _now()
        execution = await self.store.create_execution({
            "workflow_id": workflow_id,
            "user_id": workflow.user_id,
            "status": ExecutionStatus.RUNNING.value,
            "execution_mode": mode.value,
            "trigger_source": trigger_source.value,
            "input_data": _json_safe(trigger_data),
            "started_at": started_at,
            "retry_of_id": retry_of_id,
        })

        run = StepRunContext(
            execution_id=execution.id,
            workflow_id=workflow_id,
            user_id=workflow.user_id,
            store=self.store,
            adapter=self.adapter,
        )

        with execution_log_context(execution.id, workflow_id):
            logger.info(
                f"Execution {execution.id} started for workflow {workflow_id} "
                f"({mode.value}, {trigger_source.value})"
            )
            return await self._run(definition, trigger_data, run, started_at)

    async def _run(
        self,
        definition: WorkflowDefinition,
        trigger_data: dict,
        run: StepRunContext,
        started_at: datetime,
    ) -> ExecutionResult:
        """Traverse the graph and write the terminal update."""
        execution_id, workflow_id = run.execution_id, run.workflow_id
        trace: list[StepTrace] = []
        try:
            context = await self._traverse(definition, trigger_data, run, trace)
        except Exception as e:
            await self._finalize_failure(execution_id, workflow_id, started_at, trace, e)
            raise

        completed_at = _now()
        await self.store.finalize_execution(
            execution_id,
            workflow_id,
            {
                "status": ExecutionStatus.SUCCESS.value,
                "completed_at": completed_at,
                "duration_ms": self._duration_ms(started_at, completed_at),
                "output_data": _json_safe(context),
                "steps_executed": _json_safe([t.to_dict() for t in trace]),
                "total_steps": len(trace),
            },
            success=True,
            executed_at=completed_at,
        )
        logger.info(f"Execution {execution_id} succeeded after {len(trace)} steps")

        return ExecutionResult(
            execution_id=execution_id,
            success=True,
            output=context,
            steps_executed=len(trace),
            trace=trace,
        )

    async def _traverse(
        self,
        definition: WorkflowDefinition,
        context: dict,
        run,
        trace: list[StepTrace],
    ) -> dict:
        """Walk the graph from the trigger step. Appends to ``trace`` as it goes."""
        queue: deque[str] = deque([definition.trigger.id])
        visited: set[str] = set()

        while queue:
            step_id = queue.popleft()
            if step_id in visited:
                continue
            visited.add(step_id)

            step = definition.get_step(step_id)
            if step is None:
                # Dangling connection target
                logger.debug(f"Skipping unknown step {step_id} in execution {run.execution_id}")
                continue

            processor = self.registry.create_instance(step.block_type)
            snapshot = copy.deepcopy(context)
            delta = await processor.run(step.config, context, run, step_id=step.id)

            trace.append(StepTrace(
                step_id=step.id,
                block_type=step.block_type,
                input=snapshot,
                output=delta,
            ))
            context.update(delta)

            for connection in definition.outgoing(step.id):
                if should_follow(connection, context):
                    queue.append(connection.target)

        return context

    async def _finalize_failure(
        self,
        execution_id: str,
        workflow_id: str,
        started_at: datetime,
        trace: list[StepTrace],
        error: Exception,
    ) -> None:
        completed_at = _now()
        logger.error(f"Execution {execution_id} failed: {error}")
        try:
            await self.store.finalize_execution(
                execution_id,
                workflow_id,
                {
                    "status": ExecutionStatus.FAILED.value,
                    "completed_at": completed_at,
                    "duration_ms": self._duration_ms(started_at, completed_at),
                    "error_message": str(error) or error.__class__.__name__,
                    "error_stack": traceback.format_exc(),
                    "steps_executed": _json_safe([t.to_dict() for t in trace]),
                    "total_steps": len(trace),
                },
                success=False,
                executed_at=completed_at,
            )
        except Exception:
            logger.exception(f"Could not record failure of execution {execution_id}")

    @staticmethod
    def _duration_ms(started_at: datetime, completed_at: datetime) -> int:
        return int((completed_at - started_at).total_seconds() * 1000)


# ─── Singleton ─────────────────────────────────────────────────

_engine: Optional[ExecutionEngine] = None


def get_execution_engine() -> ExecutionEngine:
    """Get or create the singleton ExecutionEngine."""
    global _engine
    if _engine is None:
        _engine = ExecutionEngine()
    return _engine
