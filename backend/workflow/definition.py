"""Workflow definition parsing.

Stored definitions look like::

    {
        "steps": [
            {"id": "t1", "type": "trigger", "blockType": "webhook-trigger",
             "config": {}, "position": {"x": 0, "y": 0}},
            {"id": "a1", "type": "action", "blockType": "http-post",
             "config": {"url": "https://example.com/hook"}}
        ],
        "connections": [
            {"from": "t1", "to": "a1",
             "condition": {"field": "status", "operator": "equals", "value": "ok"}}
        ]
    }

The definition column may also hold the same document as a JSON string.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Optional

from core.constants import StepKind
from core.exceptions import InvalidDefinitionError


def _step_ref(value: Any) -> Optional[str]:
    """Step ids are matched as strings, whatever JSON type they were stored as."""
    return None if value is None else str(value)


@dataclass(frozen=True)
class Condition:
    field: str
    operator: str
    value: Any = None

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional["Condition"]:
        if not isinstance(data, dict):
            return None
        return cls(
            field=str(data.get("field", "")),
            operator=str(data.get("operator", "")),
            value=data.get("value"),
        )


@dataclass(frozen=True)
class Connection:
    source: str
    target: str
    condition: Optional[Condition] = None

    @classmethod
    def from_dict(cls, data: dict) -> "Connection":
        if not isinstance(data, dict):
            raise InvalidDefinitionError("Connections must be objects")
        return cls(
            source=_step_ref(data.get("from")),
            target=_step_ref(data.get("to")),
            condition=Condition.from_dict(data.get("condition")),
        )


@dataclass
class Step:
    id: str
    kind: str
    block_type: str
    config: dict = field(default_factory=dict)
    position: Optional[dict] = None
    connections: list = field(default_factory=list)

    @property
    def is_trigger(self) -> bool:
        return self.kind == StepKind.TRIGGER.value

    @classmethod
    def from_dict(cls, data: dict) -> "Step":
        if not isinstance(data, dict) or data.get("id") in (None, ""):
            raise InvalidDefinitionError("Every step needs an id")
        config = data.get("config")
        if config is None:
            config = {}
        if not isinstance(config, dict):
            raise InvalidDefinitionError(f"Config of step {data['id']} must be an object")
        return cls(
            id=_step_ref(data["id"]),
            kind=str(data.get("type", "")),
            block_type=str(data.get("blockType", "")),
            config=config,
            position=data.get("position"),
            connections=list(data.get("connections") or []),
        )


@dataclass
class WorkflowDefinition:
    steps: list[Step]
    connections: list[Connection]

    def __post_init__(self):
        self._index = {}
        for step in self.steps:
            # First definition of an id wins
            self._index.setdefault(step.id, step)

    @property
    def trigger(self) -> Step:
        return next(s for s in self.steps if s.is_trigger)

    def get_step(self, step_id: str) -> Optional[Step]:
        return self._index.get(step_id)

    def outgoing(self, step_id: str) -> list[Connection]:
        """Connections leaving ``step_id`` in declaration order."""
        return [c for c in self.connections if c.source == step_id]


def parse_definition(raw: Any) -> WorkflowDefinition:
    """Parse and validate a stored workflow definition.

    Raises:
        InvalidDefinitionError: malformed JSON, no steps, or not exactly
            one trigger step.
    """
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError as e:
            raise InvalidDefinitionError(f"Invalid workflow definition: {e}") from e

    if not isinstance(raw, dict):
        raise InvalidDefinitionError()

    raw_steps = raw.get("steps")
    if not isinstance(raw_steps, list) or not raw_steps:
        raise InvalidDefinitionError()

    raw_connections = raw.get("connections") or []
    if not isinstance(raw_connections, list):
        raise InvalidDefinitionError("Workflow connections must be a list")

    steps = [Step.from_dict(s) for s in raw_steps]
    triggers = [s for s in steps if s.is_trigger]
    if not triggers:
        raise InvalidDefinitionError("No trigger step found in workflow")
    if len(triggers) > 1:
        raise InvalidDefinitionError(
            f"Workflow must have exactly one trigger step, found {len(triggers)}"
        )

    return WorkflowDefinition(
        steps=steps,
        connections=[Connection.from_dict(c) for c in raw_connections],
    )
