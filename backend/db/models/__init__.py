"""Database models.

This module imports all models to ensure they are registered
with SQLAlchemy's declarative base.
"""

from db.models.user import User
from db.models.workflow import Workflow
from db.models.integration import Integration
from db.models.execution import WorkflowExecution

__all__ = [
    "User",
    "Workflow",
    "Integration",
    "WorkflowExecution",
]
