"""
Base step processor interface for all workflow block types.

Every blockType (webhook trigger, Gmail send, sentiment analysis, delay, etc.)
is handled by a subclass of BaseStepProcessor implementing execute().
A processor receives the step config and the current context and returns
a context delta that the engine merges into the context.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict

import structlog

from core.exceptions import IntegrationNotConfiguredError

if TYPE_CHECKING:
    from integrations.adapter import IntegrationAdapter
    from services.execution_store import ExecutionStore

logger = structlog.get_logger(__name__)


@dataclass
class StepRunContext:
    """Execution identity and collaborators handed to every processor."""

    execution_id: str
    workflow_id: str
    user_id: str
    store: "ExecutionStore"
    adapter: "IntegrationAdapter"


class BaseStepProcessor(ABC):
    """
    Abstract base class for all step processors.

    Subclasses must implement:
    - execute(config, context, run) -> dict
    - block_type (class property)
    - display_name (class property)
    """

    block_type: str = "base"
    display_name: str = "Base Step"
    description: str = "Abstract base step"
    icon: str = "⚙️"

    @abstractmethod
    async def execute(
        self,
        config: Dict[str, Any],
        context: Dict[str, Any],
        run: StepRunContext,
    ) -> Dict[str, Any]:
        """
        Execute the step with given configuration.

        Args:
            config: Step-specific configuration (from the workflow definition)
            context: Current execution context (read-only by convention)
            run: Execution identity plus store/adapter

        Returns:
            Context delta to merge into the execution context
        """
        pass

    async def run(
        self,
        config: Dict[str, Any],
        context: Dict[str, Any],
        run: StepRunContext,
        step_id: str = "",
    ) -> Dict[str, Any]:
        """
        Run the step with timing and logging.

        This is the entry point called by the execution engine. Errors are
        logged and re-raised unchanged.
        """
        start = time.monotonic()
        logger.info(
            "Step starting",
            block_type=self.block_type,
            step_id=step_id,
            execution_id=run.execution_id,
        )
        try:
            delta = await self.execute(config or {}, context, run)
        except Exception as e:
            logger.error(
                "Step failed",
                block_type=self.block_type,
                step_id=step_id,
                execution_id=run.execution_id,
                error=str(e),
                duration_ms=round((time.monotonic() - start) * 1000, 2),
            )
            raise

        logger.info(
            "Step completed",
            block_type=self.block_type,
            step_id=step_id,
            duration_ms=round((time.monotonic() - start) * 1000, 2),
        )
        return delta if delta is not None else {}

    @classmethod
    def get_config_schema(cls) -> Dict[str, Any]:
        """
        Return JSON schema for step configuration.

        Override in subclasses to define expected config shape.
        """
        return {"type": "object", "properties": {}}


async def require_integration(run: StepRunContext, integration_type: str, label: str):
    """Load the owner's active integration of ``integration_type`` or fail."""
    integration = await run.store.find_active_integration(run.user_id, integration_type)
    if integration is None:
        raise IntegrationNotConfiguredError(integration_type, label)
    return integration
