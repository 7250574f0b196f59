"""Constants and enums for the workflow automation backend."""

from enum import Enum


class ExecutionStatus(str, Enum):
    """Workflow execution status."""

    PENDING = "PENDING"
    RUNNING = "RUNNING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class ExecutionMode(str, Enum):
    """How an execution was requested.

    TEST bypasses the active-flag and quota checks.
    """

    NORMAL = "NORMAL"
    TEST = "TEST"


class TriggerSource(str, Enum):
    """What started an execution."""

    MANUAL = "MANUAL"
    WEBHOOK = "WEBHOOK"
    API = "API"
    RETRY = "RETRY"
    TEST = "TEST"


class StepKind(str, Enum):
    """Kind of a workflow step (the ``type`` key of a step definition)."""

    TRIGGER = "trigger"
    ACTION = "action"
    CONDITION = "condition"
    UTILITY = "utility"


class IntegrationType(str, Enum):
    """Third-party providers a user can connect."""

    GMAIL = "GMAIL"
    SLACK = "SLACK"
    GOOGLE_SHEETS = "GOOGLE_SHEETS"
    GITHUB = "GITHUB"
