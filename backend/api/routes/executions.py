"""Workflow execution history and retry endpoints."""

import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from api.schemas.common import PaginationParams
from api.schemas.execution import (
    ExecutionListResponse,
    ExecutionResponse,
    ExecutionResultResponse,
)
from app.dependencies import get_db, get_workflow_service
from core.exceptions import FlowpilotException, NotFoundError
from services.workflow_service import ExecutionService, WorkflowService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["executions"])


@router.get("/workflow/{workflow_id}", response_model=ExecutionListResponse)
async def list_workflow_executions(
    workflow_id: str,
    pagination: PaginationParams = Depends(),
    exec_status: Optional[str] = Query(None, alias="status", description="Filter by execution status"),
    db: AsyncSession = Depends(get_db),
) -> ExecutionListResponse:
    """
    List executions of a workflow, newest first (paginated).
    """
    svc = ExecutionService(db)
    executions, total = await svc.get_by_workflow(
        workflow_id,
        offset=pagination.offset,
        limit=pagination.per_page,
        status=exec_status,
    )
    return ExecutionListResponse(
        executions=[ExecutionResponse.model_validate(ex) for ex in executions],
        total=total,
        page=pagination.page,
        per_page=pagination.per_page,
    )


@router.get("/{execution_id}")
async def get_execution(
    execution_id: str,
    db: AsyncSession = Depends(get_db),
):
    """
    Get a single execution with its step trace.
    """
    execution = await ExecutionService(db).get_by_id(execution_id)
    if execution is None:
        raise NotFoundError("Execution not found")
    return {"success": True, "execution": ExecutionResponse.model_validate(execution).model_dump(mode="json")}


@router.post("/{execution_id}/retry")
async def retry_execution(
    execution_id: str,
    service: WorkflowService = Depends(get_workflow_service),
):
    """
    Re-run an execution from scratch with its original input.

    The result is a new execution linked through ``retry_of_id``.
    """
    try:
        result = await service.retry(execution_id)
    except FlowpilotException:
        raise
    except Exception as e:
        logger.warning(f"Retry of execution {execution_id} failed: {e}")
        return JSONResponse(status_code=500, content={"success": False, "error": str(e)})

    return {
        "success": True,
        "retry_of": execution_id,
        "execution": ExecutionResultResponse(**result.to_dict()).model_dump(),
    }
