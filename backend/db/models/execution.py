"""Workflow execution model."""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import ExecutionMode, ExecutionStatus, TriggerSource
from db.base import BaseModel


class WorkflowExecution(BaseModel):
    """One run of a workflow against a trigger payload.

    Attributes:
        id: Unique identifier (UUID string)
        workflow_id: Foreign key to Workflow
        user_id: Owner of the workflow at execution time
        status: PENDING, RUNNING, SUCCESS or FAILED
        execution_mode: NORMAL or TEST
        trigger_source: MANUAL, WEBHOOK, API, RETRY or TEST
        input_data: Trigger payload snapshot
        output_data: Final context (SUCCESS only)
        steps_executed: Ordered trace [{stepId, type, input, output, timestamp}]
        total_steps: Length of the trace
        error_message: Error text (FAILED only)
        error_stack: Formatted traceback (FAILED only)
        started_at / completed_at: Run boundaries
        duration_ms: completed_at - started_at
        retry_of_id: Execution this one re-runs, if any
    """

    __tablename__ = "workflow_executions"

    workflow_id: Mapped[str] = mapped_column(
        ForeignKey("workflows.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status: Mapped[str] = mapped_column(
        default=ExecutionStatus.PENDING.value, index=True
    )
    execution_mode: Mapped[str] = mapped_column(default=ExecutionMode.NORMAL.value)
    trigger_source: Mapped[str] = mapped_column(
        default=TriggerSource.MANUAL.value, index=True
    )
    input_data: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    output_data: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    steps_executed: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    total_steps: Mapped[int] = mapped_column(default=0)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    error_stack: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    started_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    duration_ms: Mapped[Optional[int]] = mapped_column(nullable=True)
    retry_of_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("workflow_executions.id", ondelete="SET NULL"),
        nullable=True,
    )

    workflow: Mapped["Workflow"] = relationship(
        "Workflow", back_populates="executions", lazy="noload"
    )
