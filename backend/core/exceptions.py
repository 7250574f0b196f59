"""Custom exceptions for the workflow automation backend."""


class FlowpilotException(Exception):
    """Base exception for the workflow automation backend."""

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code.

        Args:
            message: Exception message
            status_code: HTTP status code
        """
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundError(FlowpilotException):
    """Resource not found exception."""

    def __init__(self, message: str = "Resource not found"):
        """Initialize NotFoundError with 404 status code."""
        super().__init__(message, 404)


class ValidationError(FlowpilotException):
    """Validation error exception."""

    def __init__(self, message: str = "Validation failed"):
        """Initialize ValidationError with 422 status code."""
        super().__init__(message, 422)


class WorkflowNotFoundError(NotFoundError):
    """The workflow id does not resolve."""

    def __init__(self, workflow_id: str):
        self.workflow_id = workflow_id
        super().__init__("Workflow not found")


class InvalidDefinitionError(ValidationError):
    """The stored workflow definition cannot be executed."""

    def __init__(self, message: str = "Invalid workflow definition"):
        super().__init__(message)


class UnknownBlockTypeError(ValidationError):
    """A step names a blockType with no registered processor."""

    def __init__(self, block_type: str):
        self.block_type = block_type
        super().__init__(f"Unknown step type: {block_type}")


class WorkflowInactiveError(ValidationError):
    """A NORMAL-mode run was requested for a paused workflow."""

    def __init__(self, message: str = "Workflow is not active"):
        super().__init__(message)
        self.status_code = 400


class QuotaExceededError(FlowpilotException):
    """The owner used up the monthly execution allowance."""

    def __init__(
        self,
        message: str = "Monthly execution limit reached. Upgrade your plan for more executions.",
    ):
        super().__init__(message, 429)


class IntegrationError(FlowpilotException):
    """An external provider call failed."""

    def __init__(self, message: str, provider: str = ""):
        self.provider = provider
        super().__init__(message, 502)


class IntegrationNotConfiguredError(IntegrationError):
    """The owner has no active integration of the required type."""

    def __init__(self, integration_type: str, label: str = ""):
        self.integration_type = integration_type
        super().__init__(f"{label or integration_type} integration not found", integration_type)
