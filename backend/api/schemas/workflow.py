"""Workflow schemas."""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional


class WorkflowStatsResponse(BaseModel):
    """Aggregate run counters of a workflow."""

    id: str = Field(description="Workflow ID")
    name: str = Field(description="Workflow name")
    is_active: bool = Field(description="Whether NORMAL-mode runs are accepted")
    total_runs: int = Field(description="Finished executions")
    successful_runs: int = Field(description="Executions that ended in SUCCESS")
    failed_runs: int = Field(description="Executions that ended in FAILED")
    last_executed_at: Optional[datetime] = Field(default=None, description="Last finished execution")

    class Config:
        from_attributes = True
