"""
Integration Steps: send email, post chat messages, append spreadsheet rows.

Each step looks up the workflow owner's active integration of the
required type, substitutes context variables into its config and calls
the integration adapter. A missing integration fails the step.
"""

from typing import Any, Dict

from core.constants import IntegrationType
from tasks.base_task import BaseStepProcessor, StepRunContext, require_integration
from workflow.templating import replace_variables


class GmailSendStep(BaseStepProcessor):
    """Send an email through the owner's Gmail account."""

    block_type = "gmail-send"
    display_name = "Send Gmail"
    description = "Send an email from the connected Gmail account"
    icon = "✉️"

    async def execute(self, config: Dict[str, Any], context: Dict[str, Any], run: StepRunContext) -> Dict[str, Any]:
        integration = await require_integration(run, IntegrationType.GMAIL.value, "Gmail")

        to = replace_variables(config.get("to", ""), context)
        subject = replace_variables(config.get("subject", ""), context)
        body = replace_variables(config.get("body", ""), context)

        result = await run.adapter.send_email(integration, to, subject, body)
        return {"action": "gmail_sent", "result": result, "to": to}

    @classmethod
    def get_config_schema(cls) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "to": {"type": "string", "description": "Recipient address, supports {{variables}}"},
                "subject": {"type": "string", "description": "Subject line"},
                "body": {"type": "string", "description": "Plain-text body"},
            },
            "required": ["to"],
        }


class SlackSendStep(BaseStepProcessor):
    """Post a message to a Slack channel."""

    block_type = "slack-send"
    display_name = "Send Slack Message"
    description = "Post a message to a channel in the connected Slack workspace"
    icon = "💬"

    async def execute(self, config: Dict[str, Any], context: Dict[str, Any], run: StepRunContext) -> Dict[str, Any]:
        integration = await require_integration(run, IntegrationType.SLACK.value, "Slack")

        channel = config.get("channel", "")
        message = replace_variables(config.get("message", ""), context)

        result = await run.adapter.post_chat_message(integration, channel, message)
        return {"action": "slack_sent", "result": result, "channel": channel, "message": message}

    @classmethod
    def get_config_schema(cls) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "channel": {"type": "string", "description": "Channel id or name, e.g. #alerts"},
                "message": {"type": "string", "description": "Message text, supports {{variables}}"},
            },
            "required": ["channel", "message"],
        }


class SheetsAddRowStep(BaseStepProcessor):
    """Append a row to a Google Sheets spreadsheet."""

    block_type = "sheets-add-row"
    display_name = "Add Spreadsheet Row"
    description = "Append a row of values to a Google Sheets range"
    icon = "📊"

    async def execute(self, config: Dict[str, Any], context: Dict[str, Any], run: StepRunContext) -> Dict[str, Any]:
        integration = await require_integration(
            run, IntegrationType.GOOGLE_SHEETS.value, "Google Sheets"
        )

        spreadsheet_id = config.get("spreadsheetId") or config.get("resourceId")
        range_ = config.get("range", "")
        values = [replace_variables(v, context) for v in (config.get("values") or [])]

        result = await run.adapter.append_row(integration, spreadsheet_id, range_, values)
        return {"action": "sheets_row_added", "result": result, "values": values}

    @classmethod
    def get_config_schema(cls) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "spreadsheetId": {"type": "string", "description": "Target spreadsheet id"},
                "range": {"type": "string", "description": "A1 range, e.g. Sheet1!A:C"},
                "values": {"type": "array", "items": {"type": "string"}},
            },
            "required": ["spreadsheetId", "values"],
        }


INTEGRATION_STEP_TYPES = {
    "gmail-send": GmailSendStep,
    "slack-send": SlackSendStep,
    "sheets-add-row": SheetsAddRowStep,
}
