"""Utility step processors: delay, formatter, if-condition, logger."""

import asyncio
from typing import Any, Dict

import structlog

from tasks.base_task import BaseStepProcessor, StepRunContext
from workflow.coercion import strict_equals, to_number, to_text
from workflow.templating import replace_variables

logger = structlog.get_logger(__name__)

DEFAULT_DELAY_MS = 1000


class DelayStep(BaseStepProcessor):
    """Pause this execution without blocking others."""

    block_type = "delay"
    display_name = "Delay"
    description = "Wait before continuing to the next step"
    icon = "⏱️"

    async def execute(self, config: Dict[str, Any], context: Dict[str, Any], run: StepRunContext) -> Dict[str, Any]:
        raw = config.get("durationMs", config.get("duration", DEFAULT_DELAY_MS))
        duration_ms = to_number(raw)
        if duration_ms != duration_ms or duration_ms < 0:  # NaN or negative
            duration_ms = 0
        await asyncio.sleep(duration_ms / 1000)
        return dict(context)

    @classmethod
    def get_config_schema(cls) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "durationMs": {"type": "number", "default": DEFAULT_DELAY_MS},
            },
        }


class FormatterStep(BaseStepProcessor):
    block_type = "formatter"
    display_name = "Formatter"
    description = "Render a text template from context values"
    icon = "🧩"

    async def execute(self, config: Dict[str, Any], context: Dict[str, Any], run: StepRunContext) -> Dict[str, Any]:
        if config.get("format") == "template":
            return {"formatted": replace_variables(config.get("template", ""), context)}
        return {}

    @classmethod
    def get_config_schema(cls) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "format": {"type": "string", "enum": ["template"]},
                "template": {"type": "string"},
            },
        }


def compare(actual: Any, operator: str, expected: Any) -> bool:
    """Evaluate an if-condition comparison. Unknown operators are False."""
    if operator == "equals":
        return strict_equals(actual, expected)
    if operator == "contains":
        return to_text(expected) in to_text(actual)
    if operator == "greater_than":
        return to_number(actual) > to_number(expected)
    if operator == "less_than":
        return to_number(actual) < to_number(expected)
    return False


class IfConditionStep(BaseStepProcessor):
    """Record a boolean for downstream connection conditions."""

    block_type = "if-condition"
    display_name = "If / Condition"
    description = "Compare a context field against a value"
    icon = "🔀"

    async def execute(self, config: Dict[str, Any], context: Dict[str, Any], run: StepRunContext) -> Dict[str, Any]:
        actual = context.get(config.get("field"))
        result = compare(actual, config.get("operator"), config.get("value"))
        return {"condition_result": result}

    @classmethod
    def get_config_schema(cls) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "field": {"type": "string"},
                "operator": {
                    "type": "string",
                    "enum": ["equals", "contains", "greater_than", "less_than"],
                },
                "value": {},
            },
            "required": ["field", "operator"],
        }


class LoggerStep(BaseStepProcessor):
    block_type = "logger"
    display_name = "Logger"
    description = "Write a message to the execution log"
    icon = "📋"

    async def execute(self, config: Dict[str, Any], context: Dict[str, Any], run: StepRunContext) -> Dict[str, Any]:
        message = replace_variables(config.get("message", ""), context)
        logger.info(
            "Workflow logger step",
            execution_id=run.execution_id,
            workflow_id=run.workflow_id,
            message=message,
        )
        return {"logged": message}


UTILITY_STEP_TYPES = {
    "delay": DelayStep,
    "formatter": FormatterStep,
    "if-condition": IfConditionStep,
    "logger": LoggerStep,
}
