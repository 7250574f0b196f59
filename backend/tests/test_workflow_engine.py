"""Tests for the workflow execution engine."""

import asyncio
import json
import time

import pytest

from core.constants import ExecutionMode, ExecutionStatus, IntegrationType, TriggerSource
from core.exceptions import (
    IntegrationNotConfiguredError,
    InvalidDefinitionError,
    UnknownBlockTypeError,
    WorkflowNotFoundError,
)


def _step(step_id, block_type, kind="action", **config):
    return {"id": step_id, "type": kind, "blockType": block_type, "config": config}


def _trigger(step_id="t1", block_type="webhook-trigger"):
    return _step(step_id, block_type, kind="trigger")


def _link(source, target, **condition):
    connection = {"from": source, "to": target}
    if condition:
        connection["condition"] = condition
    return connection


def _step_ids(execution):
    return [entry["stepId"] for entry in execution.steps_executed]


@pytest.mark.integration
class TestOrderScenario:
    """trigger -> http-post -> if-condition -> logger."""

    @pytest.fixture
    def definition(self):
        return {
            "steps": [
                _trigger(),
                _step("h1", "webhook-post", url="https://hooks.example.com/orders",
                      body={"order": "{{order.id}}", "total": "{{amount}}"}),
                _step("c1", "if-condition", kind="condition",
                      field="amount", operator="greater_than", value=100),
                _step("l1", "logger", kind="utility", message="Big order {{order.id}} for {{amount}}"),
                _step("l2", "logger", kind="utility", message="Small order {{order.id}}"),
            ],
            "connections": [
                _link("t1", "h1"),
                _link("h1", "c1"),
                _link("c1", "l1", field="condition_result", operator="true"),
                _link("c1", "l2", field="condition_result", operator="false"),
            ],
        }

    async def test_runs_matching_branch(self, engine, adapter, create_workflow, list_executions, definition):
        workflow = await create_workflow(definition)

        result = await engine.execute_workflow(workflow.id, {"order": {"id": "A-17"}, "amount": 250})

        assert result.success is True
        assert result.steps_executed == 4
        assert result.output["condition_result"] is True
        assert result.output["logged"] == "Big order A-17 for 250"
        assert result.output["action"] == "webhook_posted"

        posted = adapter.calls_to("http_request")
        assert len(posted) == 1
        assert posted[0]["url"] == "https://hooks.example.com/orders"
        assert posted[0]["body"] == {"order": "A-17", "total": "250"}

        [execution] = await list_executions(workflow.id)
        assert execution.status == ExecutionStatus.SUCCESS.value
        assert _step_ids(execution) == ["t1", "h1", "c1", "l1"]
        assert execution.total_steps == 4
        assert execution.completed_at is not None
        assert execution.duration_ms >= 0

    async def test_runs_other_branch(self, engine, create_workflow, list_executions, definition):
        workflow = await create_workflow(definition)

        result = await engine.execute_workflow(workflow.id, {"order": {"id": "B-2"}, "amount": 12})

        assert result.output["condition_result"] is False
        assert result.output["logged"] == "Small order B-2"
        [execution] = await list_executions(workflow.id)
        assert _step_ids(execution) == ["t1", "h1", "c1", "l2"]

    @pytest.mark.parametrize(
        "status, expected_ids",
        [
            ("ok", ["t1", "h1", "c1", "l1"]),
            ("fail", ["t1", "h1", "c1", "l2"]),
        ],
    )
    async def test_status_equals_branch(self, engine, adapter, create_workflow, list_executions, status, expected_ids):
        workflow = await create_workflow({
            "steps": [
                _trigger(),
                _step("h1", "http-post", url="https://hooks.example.com/status"),
                _step("c1", "if-condition", kind="condition", field="status", operator="equals", value="ok"),
                _step("l1", "logger", kind="utility", message="passed"),
                _step("l2", "logger", kind="utility", message="failed"),
            ],
            "connections": [
                _link("t1", "h1"),
                _link("h1", "c1"),
                _link("c1", "l1", field="condition_result", operator="true"),
                _link("c1", "l2", field="condition_result", operator="false"),
            ],
        })

        await engine.execute_workflow(workflow.id, {"status": status})

        assert len(adapter.calls_to("http_request")) == 1
        [execution] = await list_executions(workflow.id)
        assert execution.status == ExecutionStatus.SUCCESS.value
        assert _step_ids(execution) == expected_ids


@pytest.mark.integration
class TestExecutionRecord:

    async def test_records_input_and_trace(self, engine, create_workflow, list_executions, simple_definition):
        workflow = await create_workflow(simple_definition)

        result = await engine.execute_workflow(
            workflow.id,
            {"name": "Ada"},
            mode=ExecutionMode.TEST,
            trigger_source=TriggerSource.TEST,
        )

        [execution] = await list_executions(workflow.id)
        assert execution.id == result.execution_id
        assert execution.input_data == {"name": "Ada"}
        assert execution.output_data == {"name": "Ada", "logged": "Hello Ada"}
        assert execution.execution_mode == "TEST"
        assert execution.trigger_source == "TEST"
        assert execution.user_id == workflow.user_id

        trigger_entry, logger_entry = execution.steps_executed
        assert trigger_entry["type"] == "webhook-trigger"
        assert trigger_entry["input"] == {"name": "Ada"}
        assert logger_entry["input"] == {"name": "Ada"}
        assert logger_entry["output"] == {"logged": "Hello Ada"}
        assert "timestamp" in logger_entry

    async def test_counters_track_outcomes(self, engine, store, create_workflow, simple_definition):
        ok = await create_workflow(simple_definition)
        broken = await create_workflow({
            "steps": [_trigger(), _step("g1", "gmail-send", to="a@example.com")],
            "connections": [_link("t1", "g1")],
        })

        await engine.execute_workflow(ok.id, {"name": "x"})
        await engine.execute_workflow(ok.id, {"name": "y"})
        with pytest.raises(IntegrationNotConfiguredError):
            await engine.execute_workflow(broken.id, {})

        ok = await store.get_workflow(ok.id)
        assert (ok.total_runs, ok.successful_runs, ok.failed_runs) == (2, 2, 0)
        assert ok.last_executed_at is not None

        broken = await store.get_workflow(broken.id)
        assert (broken.total_runs, broken.successful_runs, broken.failed_runs) == (1, 0, 1)

    async def test_accepts_definition_stored_as_string(self, engine, create_workflow, simple_definition):
        workflow = await create_workflow(json.dumps(simple_definition))

        result = await engine.execute_workflow(workflow.id, {"name": "Bo"})

        assert result.output["logged"] == "Hello Bo"


@pytest.mark.integration
class TestFailures:

    async def test_step_error_marks_execution_failed(self, engine, create_workflow, list_executions):
        workflow = await create_workflow({
            "steps": [
                _trigger(),
                _step("g1", "gmail-send", to="{{email}}", subject="Hi"),
                _step("l1", "logger", kind="utility", message="never"),
            ],
            "connections": [_link("t1", "g1"), _link("g1", "l1")],
        })

        with pytest.raises(IntegrationNotConfiguredError, match="Gmail integration not found"):
            await engine.execute_workflow(workflow.id, {"email": "a@example.com"})

        [execution] = await list_executions(workflow.id)
        assert execution.status == ExecutionStatus.FAILED.value
        assert execution.error_message == "Gmail integration not found"
        assert "IntegrationNotConfiguredError" in execution.error_stack
        assert execution.completed_at is not None
        # Steps that ran before the failure stay in the trace
        assert _step_ids(execution) == ["t1"]

    async def test_unknown_block_type_fails_execution(self, engine, create_workflow, list_executions):
        workflow = await create_workflow({
            "steps": [_trigger(), _step("x1", "teleport")],
            "connections": [_link("t1", "x1")],
        })

        with pytest.raises(UnknownBlockTypeError):
            await engine.execute_workflow(workflow.id, {})

        [execution] = await list_executions(workflow.id)
        assert execution.status == ExecutionStatus.FAILED.value
        assert execution.error_message == "Unknown step type: teleport"

    async def test_unknown_trigger_block_type_fails_execution(self, engine, create_workflow, list_executions):
        workflow = await create_workflow({"steps": [_trigger(block_type="carrier-pigeon")]})

        with pytest.raises(UnknownBlockTypeError):
            await engine.execute_workflow(workflow.id, {})

        [execution] = await list_executions(workflow.id)
        assert execution.status == ExecutionStatus.FAILED.value
        assert execution.steps_executed == []

    @pytest.mark.parametrize(
        "definition, message",
        [
            ({"steps": []}, "Invalid workflow definition"),
            ("{not json", "Invalid workflow definition"),
            ({"steps": [_step("a1", "logger")]}, "No trigger step found in workflow"),
            ({"steps": [_trigger("t1"), _trigger("t2")]}, "exactly one trigger step, found 2"),
        ],
    )
    async def test_bad_definition_creates_no_record(
        self, engine, store, create_workflow, list_executions, definition, message
    ):
        workflow = await create_workflow(definition)

        with pytest.raises(InvalidDefinitionError, match=message):
            await engine.execute_workflow(workflow.id, {})

        assert await list_executions(workflow.id) == []
        workflow = await store.get_workflow(workflow.id)
        assert workflow.total_runs == 0

    async def test_unknown_workflow(self, engine):
        with pytest.raises(WorkflowNotFoundError):
            await engine.execute_workflow("missing-workflow", {})


@pytest.mark.integration
class TestTraversal:

    async def test_breadth_first_order(self, engine, create_workflow, list_executions):
        workflow = await create_workflow({
            "steps": [
                _trigger(),
                _step("a", "logger", message="a"),
                _step("b", "logger", message="b"),
                _step("c", "logger", message="c"),
            ],
            "connections": [_link("t1", "a"), _link("t1", "b"), _link("a", "c")],
        })

        await engine.execute_workflow(workflow.id, {})

        [execution] = await list_executions(workflow.id)
        assert _step_ids(execution) == ["t1", "a", "b", "c"]

    async def test_each_step_runs_once(self, engine, create_workflow, list_executions):
        workflow = await create_workflow({
            "steps": [
                _trigger(),
                _step("a", "logger", message="a"),
                _step("b", "logger", message="b"),
                _step("c", "logger", message="c"),
            ],
            "connections": [
                _link("t1", "a"),
                _link("t1", "b"),
                _link("a", "c"),
                _link("b", "c"),
                _link("c", "a"),
            ],
        })

        result = await engine.execute_workflow(workflow.id, {})

        [execution] = await list_executions(workflow.id)
        assert _step_ids(execution) == ["t1", "a", "b", "c"]
        assert result.steps_executed == 4

    async def test_dangling_connection_is_skipped(self, engine, create_workflow, list_executions):
        workflow = await create_workflow({
            "steps": [_trigger(), _step("a", "logger", message="a")],
            "connections": [_link("t1", "ghost"), _link("t1", "a")],
        })

        result = await engine.execute_workflow(workflow.id, {})

        assert result.success is True
        [execution] = await list_executions(workflow.id)
        assert _step_ids(execution) == ["t1", "a"]

    async def test_numeric_step_ids(self, engine, create_workflow, list_executions):
        workflow = await create_workflow({
            "steps": [_trigger(step_id=1), _step(2, "logger", kind="utility", message="reached")],
            "connections": [_link(1, 2)],
        })

        result = await engine.execute_workflow(workflow.id, {})

        assert result.output["logged"] == "reached"
        [execution] = await list_executions(workflow.id)
        assert _step_ids(execution) == ["1", "2"]

    async def test_last_writer_wins(self, engine, create_workflow):
        workflow = await create_workflow({
            "steps": [
                _trigger(),
                _step("f1", "formatter", format="template", template="first {{name}}"),
                _step("f2", "formatter", format="template", template="second {{formatted}}"),
            ],
            "connections": [_link("t1", "f1"), _link("f1", "f2")],
        })

        result = await engine.execute_workflow(workflow.id, {"name": "x"})

        assert result.output["formatted"] == "second first x"

    async def test_unmet_condition_stops_branch(self, engine, create_workflow, list_executions):
        workflow = await create_workflow({
            "steps": [_trigger(), _step("a", "logger", message="a")],
            "connections": [_link("t1", "a", field="status", operator="equals", value="paid")],
        })

        await engine.execute_workflow(workflow.id, {"status": "pending"})

        [execution] = await list_executions(workflow.id)
        assert _step_ids(execution) == ["t1"]

    async def test_integration_step_uses_owner_credentials(
        self, engine, adapter, create_workflow, create_integration
    ):
        integration = await create_integration(IntegrationType.SLACK.value, access_token="xoxb-1")
        workflow = await create_workflow({
            "steps": [
                _trigger(),
                _step("s1", "send-chat-message", channel="#sales", message="New lead: {{lead.name}}"),
            ],
            "connections": [_link("t1", "s1")],
        })

        result = await engine.execute_workflow(workflow.id, {"lead": {"name": "Grace"}})

        [call] = adapter.calls_to("post_chat_message")
        assert call["channel"] == "#sales"
        assert call["text"] == "New lead: Grace"
        assert call["credential"].id == integration.id
        assert result.output["action"] == "slack_sent"


@pytest.mark.integration
async def test_delayed_executions_overlap(engine, create_workflow, list_executions):
    workflow = await create_workflow({
        "steps": [_trigger(), _step("d1", "delay", kind="utility", durationMs=300)],
        "connections": [_link("t1", "d1")],
    })

    started = time.monotonic()
    results = await asyncio.gather(
        engine.execute_workflow(workflow.id, {"n": 1}),
        engine.execute_workflow(workflow.id, {"n": 2}),
    )
    elapsed = time.monotonic() - started

    assert all(r.success for r in results)
    assert elapsed < 0.58
    executions = await list_executions(workflow.id)
    assert {e.status for e in executions} == {ExecutionStatus.SUCCESS.value}
    assert len(executions) == 2


@pytest.mark.integration
async def test_concurrent_executions_keep_counters_exact(engine, store, create_workflow):
    workflow = await create_workflow({
        "steps": [
            _trigger(),
            _step("d1", "delay", kind="utility", durationMs=20),
            _step("g1", "gmail-send", to="a@example.com"),
        ],
        "connections": [
            _link("t1", "d1"),
            _link("d1", "g1", field="send", operator="true"),
        ],
    })
    payloads = [{"send": n % 4 == 0} for n in range(10)]

    results = await asyncio.gather(
        *(engine.execute_workflow(workflow.id, payload) for payload in payloads),
        return_exceptions=True,
    )

    failures = [r for r in results if isinstance(r, IntegrationNotConfiguredError)]
    assert len(failures) == 3
    workflow = await store.get_workflow(workflow.id)
    assert workflow.total_runs == 10
    assert workflow.successful_runs == 7
    assert workflow.failed_runs == 3
    assert workflow.total_runs == workflow.successful_runs + workflow.failed_runs
