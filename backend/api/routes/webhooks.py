"""Webhook intake endpoints.

Generic, per-user and per-service webhooks validate the workflow, start a
NORMAL-mode run in the background and answer immediately. The outcome is
only visible through the execution history. The test webhook runs
synchronously in TEST mode.
"""

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from app.dependencies import get_workflow_service
from core.constants import ExecutionMode, TriggerSource
from core.exceptions import FlowpilotException
from services.workflow_service import WorkflowService
from triggers.normalizers import normalize_payload

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


async def read_payload(request: Request) -> dict[str, Any]:
    """Parse the request body into a trigger payload.

    Empty or non-JSON bodies become ``{}``; JSON values that are not
    objects are wrapped as ``{"payload": value}``.
    """
    body = await request.body()
    if not body:
        return {}
    try:
        data = await request.json()
    except ValueError:
        logger.warning("Webhook body is not valid JSON, ignoring it")
        return {}
    if isinstance(data, dict):
        return data
    return {"payload": data}


@router.post("/trigger/{workflow_id}")
async def trigger_workflow(
    workflow_id: str,
    request: Request,
    service: WorkflowService = Depends(get_workflow_service),
) -> dict[str, Any]:
    """Generic webhook: start the workflow with the request body."""
    payload = await read_payload(request)
    logger.info(f"Webhook trigger received for workflow {workflow_id}")

    await service.trigger(workflow_id, payload)
    return {
        "success": True,
        "message": "triggered",
        "workflow_id": workflow_id,
        "timestamp": _timestamp(),
    }


@router.post("/user/{user_id}/workflow/{workflow_id}")
async def trigger_user_workflow(
    user_id: str,
    workflow_id: str,
    request: Request,
    service: WorkflowService = Depends(get_workflow_service),
) -> dict[str, Any]:
    """Per-user webhook: the workflow must belong to ``user_id``."""
    payload = await read_payload(request)
    logger.info(f"User webhook trigger received for workflow {workflow_id} (user {user_id})")

    await service.trigger(workflow_id, payload, user_id=user_id)
    return {
        "success": True,
        "message": "triggered",
        "workflow_id": workflow_id,
        "user_id": user_id,
        "timestamp": _timestamp(),
    }


@router.post("/external/{service_name}/{workflow_id}")
async def trigger_external_workflow(
    service_name: str,
    workflow_id: str,
    request: Request,
    service: WorkflowService = Depends(get_workflow_service),
) -> dict[str, Any]:
    """Third-party webhook: normalize the provider's body first."""
    payload = normalize_payload(service_name, await read_payload(request))
    logger.info(f"External webhook from {service_name} received for workflow {workflow_id}")

    await service.trigger(workflow_id, payload)
    return {
        "success": True,
        "message": "triggered",
        "workflow_id": workflow_id,
        "service": service_name,
        "timestamp": _timestamp(),
    }


@router.post("/test/{workflow_id}")
async def test_workflow(
    workflow_id: str,
    request: Request,
    service: WorkflowService = Depends(get_workflow_service),
):
    """Run the workflow now in TEST mode and return the result."""
    payload = await read_payload(request) or {"test": True, "timestamp": _timestamp()}

    try:
        result = await service.execute(
            workflow_id,
            payload,
            mode=ExecutionMode.TEST,
            trigger_source=TriggerSource.TEST,
        )
    except FlowpilotException:
        raise
    except Exception as e:
        logger.warning(f"Test execution of workflow {workflow_id} failed: {e}")
        return JSONResponse(status_code=500, content={"success": False, "error": str(e)})

    return {
        "success": True,
        "message": "test executed",
        "result": result.to_dict(),
        "workflow_id": workflow_id,
        "timestamp": _timestamp(),
    }
