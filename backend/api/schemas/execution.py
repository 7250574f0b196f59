"""Execution and workflow run schemas."""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Any, Dict, List, Optional

from core.constants import ExecutionMode


class ExecuteWorkflowRequest(BaseModel):
    """Request to run a workflow synchronously."""

    trigger_data: Dict[str, Any] = Field(default_factory=dict, description="Payload the run starts with")
    execution_mode: ExecutionMode = Field(
        default=ExecutionMode.NORMAL,
        description="NORMAL enforces the active flag and quota; TEST skips both",
    )


class ExecutionResultResponse(BaseModel):
    """Outcome of a finished synchronous run."""

    execution_id: str
    success: bool
    output: Dict[str, Any] = Field(default_factory=dict, description="Final execution context")
    steps_executed: int = Field(description="Number of steps that ran")


class ExecutionResponse(BaseModel):
    """Execution record response."""

    id: str = Field(description="Execution ID")
    workflow_id: str = Field(description="Workflow ID")
    user_id: str = Field(description="Owner of the workflow")
    status: str = Field(description="PENDING, RUNNING, SUCCESS or FAILED")
    execution_mode: str = Field(description="NORMAL or TEST")
    trigger_source: str = Field(description="MANUAL, WEBHOOK, API, RETRY or TEST")
    input_data: Optional[Any] = Field(default=None, description="Trigger payload")
    output_data: Optional[Any] = Field(default=None, description="Final context (successful runs)")
    steps_executed: Optional[List[Dict[str, Any]]] = Field(
        default=None, description="Trace of {stepId, type, input, output, timestamp}"
    )
    total_steps: int = Field(default=0)
    error_message: Optional[str] = Field(default=None, description="Error message if execution failed")
    started_at: Optional[datetime] = Field(default=None, description="Execution start timestamp")
    completed_at: Optional[datetime] = Field(default=None, description="Execution completion timestamp")
    duration_ms: Optional[int] = Field(default=None, description="Execution duration in milliseconds")
    retry_of_id: Optional[str] = Field(default=None, description="Execution this one re-ran")

    class Config:
        from_attributes = True


class ExecutionListResponse(BaseModel):
    """Paginated list of executions."""

    executions: List[ExecutionResponse] = Field(description="List of executions")
    total: int = Field(description="Total number of executions")
    page: int = Field(description="Current page number")
    per_page: int = Field(description="Items per page")
