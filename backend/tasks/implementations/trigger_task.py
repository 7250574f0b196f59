"""Trigger step processors.

The trigger is the entry point of every workflow. When it runs, the
context still equals the payload the execution was started with.
"""

from typing import Any, Dict

from core.constants import IntegrationType
from tasks.base_task import BaseStepProcessor, StepRunContext, require_integration


class WebhookTriggerStep(BaseStepProcessor):
    """Pass the webhook body through unchanged."""

    block_type = "webhook-trigger"
    display_name = "Webhook"
    description = "Start the workflow when a webhook is received"
    icon = "🪝"

    async def execute(self, config: Dict[str, Any], context: Dict[str, Any], run: StepRunContext) -> Dict[str, Any]:
        return dict(context)


class GmailTriggerStep(BaseStepProcessor):
    """Start from new emails delivered by the mailbox poller.

    The poller places fetched messages under ``emails`` in the payload.
    """

    block_type = "gmail-trigger"
    display_name = "New Gmail Email"
    description = "Start the workflow when new emails arrive"
    icon = "📥"

    async def execute(self, config: Dict[str, Any], context: Dict[str, Any], run: StepRunContext) -> Dict[str, Any]:
        await require_integration(run, IntegrationType.GMAIL.value, "Gmail")
        emails = context.get("emails") or []
        return {"trigger": "gmail", "emails": emails}


class TypeformTriggerStep(BaseStepProcessor):
    """Wrap a form submission under ``submission``."""

    block_type = "typeform-trigger"
    display_name = "Typeform Submission"
    description = "Start the workflow when a form response is submitted"
    icon = "📝"

    async def execute(self, config: Dict[str, Any], context: Dict[str, Any], run: StepRunContext) -> Dict[str, Any]:
        return {"trigger": "typeform", "submission": dict(context)}


TRIGGER_STEP_TYPES = {
    "webhook-trigger": WebhookTriggerStep,
    "gmail-trigger": GmailTriggerStep,
    "typeform-trigger": TypeformTriggerStep,
}
