"""Workflow endpoints: synchronous execution, run statistics and the block catalogue."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.execution import ExecuteWorkflowRequest, ExecutionResultResponse
from api.schemas.workflow import WorkflowStatsResponse
from app.dependencies import get_db, get_workflow_service
from core.constants import ExecutionMode, TriggerSource
from core.exceptions import FlowpilotException, WorkflowNotFoundError
from db.models.workflow import Workflow
from services.workflow_service import WorkflowService
from tasks.registry import get_step_registry

logger = logging.getLogger(__name__)

router = APIRouter(tags=["workflows"])


@router.get("/block-types", summary="List all available block types")
async def list_block_types():
    """Registered step processors with their config schemas.

    Used by the workflow editor to populate the step palette.
    """
    registry = get_step_registry()
    return {
        "block_types": registry.list_all(),
        "count": len(registry.available_types),
    }


@router.get("/{workflow_id}/stats", response_model=WorkflowStatsResponse)
async def get_workflow_stats(
    workflow_id: str,
    db: AsyncSession = Depends(get_db),
) -> WorkflowStatsResponse:
    workflow = await db.get(Workflow, workflow_id)
    if workflow is None:
        raise WorkflowNotFoundError(workflow_id)
    return WorkflowStatsResponse.model_validate(workflow)


@router.post("/{workflow_id}/execute")
async def execute_workflow(
    workflow_id: str,
    request: ExecuteWorkflowRequest,
    service: WorkflowService = Depends(get_workflow_service),
):
    """
    Run a workflow and wait for it to finish.

    Returns ``{"success": true, "execution": {...}}`` or
    ``{"success": false, "error": "..."}`` when the run fails.
    """
    source = TriggerSource.TEST if request.execution_mode == ExecutionMode.TEST else TriggerSource.API
    try:
        result = await service.execute(
            workflow_id,
            request.trigger_data,
            mode=request.execution_mode,
            trigger_source=source,
        )
    except FlowpilotException:
        raise
    except Exception as e:
        logger.warning(f"Execution of workflow {workflow_id} failed: {e}")
        return JSONResponse(status_code=500, content={"success": False, "error": str(e)})

    return {
        "success": True,
        "execution": ExecutionResultResponse(**result.to_dict()).model_dump(),
    }
