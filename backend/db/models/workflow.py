"""Workflow model."""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import BaseModel


class Workflow(BaseModel):
    """A user-authored automation.

    Attributes:
        id: Unique identifier (UUID string)
        user_id: Foreign key to the owning User
        name: Workflow name
        description: Workflow description
        definition: Step graph as JSON ({"steps": [...], "connections": [...]})
        is_active: Whether webhook/NORMAL executions are accepted
        total_runs: Number of finished executions
        successful_runs: Executions that ended in SUCCESS
        failed_runs: Executions that ended in FAILED
        last_executed_at: When the last execution finished
    """

    __tablename__ = "workflows"

    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(nullable=False, index=True)
    description: Mapped[str] = mapped_column(nullable=False, default="")
    # JSON object, or a JSON-encoded string from older clients
    definition: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    is_active: Mapped[bool] = mapped_column(default=True, index=True)

    total_runs: Mapped[int] = mapped_column(default=0, nullable=False)
    successful_runs: Mapped[int] = mapped_column(default=0, nullable=False)
    failed_runs: Mapped[int] = mapped_column(default=0, nullable=False)
    last_executed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    user: Mapped["User"] = relationship(
        "User", back_populates="workflows", lazy="noload"
    )
    executions: Mapped[list["WorkflowExecution"]] = relationship(
        "WorkflowExecution",
        back_populates="workflow",
        cascade="all, delete-orphan",
        lazy="noload",
    )
