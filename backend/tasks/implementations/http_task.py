"""HTTP step implementation.

Sends the (substituted) body to an arbitrary URL. URL safety checks,
JSON encoding and response parsing live in the integration adapter.
"""

from typing import Any, Dict

from tasks.base_task import BaseStepProcessor, StepRunContext
from workflow.templating import replace_object_variables, replace_variables


class WebhookPostStep(BaseStepProcessor):
    """Call an external HTTP endpoint.

    Config:
        url: Target URL (required)
        method: HTTP method (default: POST)
        headers: Extra request headers; Content-Type defaults to JSON
        body: String template or nested object whose string leaves
              are templates
    """

    block_type = "webhook-post"
    display_name = "HTTP Request"
    description = "Send data to any URL"
    icon = "🌐"

    async def execute(self, config: Dict[str, Any], context: Dict[str, Any], run: StepRunContext) -> Dict[str, Any]:
        url = config.get("url", "")
        method = config.get("method") or "POST"
        headers = config.get("headers") or {}
        body = config.get("body")

        if isinstance(body, str):
            body = replace_variables(body, context)
        else:
            body = replace_object_variables(body, context)

        result = await run.adapter.http_request(url, method, headers, body)
        return {"action": "webhook_posted", "result": result, "url": url}

    @classmethod
    def get_config_schema(cls) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "url": {"type": "string", "description": "Target URL"},
                "method": {
                    "type": "string",
                    "enum": ["GET", "POST", "PUT", "PATCH", "DELETE"],
                    "default": "POST",
                },
                "headers": {"type": "object", "description": "HTTP headers"},
                "body": {"description": "Request body (string or object)"},
            },
            "required": ["url"],
        }


HTTP_STEP_TYPES = {
    "webhook-post": WebhookPostStep,
}
