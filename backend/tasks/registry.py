"""
Step Registry: Central registry for all workflow block types.

Maps blockType strings to processor classes. Generic names used by
external editors (send-email, http-post, ...) resolve through aliases.
"""

from typing import Dict, Optional, Type

from core.exceptions import UnknownBlockTypeError
from tasks.base_task import BaseStepProcessor
from tasks.implementations.ai_task import AI_STEP_TYPES
from tasks.implementations.http_task import HTTP_STEP_TYPES
from tasks.implementations.integration_task import INTEGRATION_STEP_TYPES
from tasks.implementations.trigger_task import TRIGGER_STEP_TYPES
from tasks.implementations.utility_task import UTILITY_STEP_TYPES

BLOCK_TYPE_ALIASES = {
    "send-email": "gmail-send",
    "send-chat-message": "slack-send",
    "append-row": "sheets-add-row",
    "http-post": "webhook-post",
    "sentiment": "ai-sentiment",
    "keywords": "ai-keywords",
}


class StepRegistry:
    """Central registry for all step processor implementations."""

    def __init__(self):
        self._processors: Dict[str, Type[BaseStepProcessor]] = {}
        self._aliases: Dict[str, str] = {}
        self._register_builtin_steps()

    def _register_builtin_steps(self):
        """Register all built-in block types."""
        for group in (
            TRIGGER_STEP_TYPES,
            INTEGRATION_STEP_TYPES,
            HTTP_STEP_TYPES,
            AI_STEP_TYPES,
            UTILITY_STEP_TYPES,
        ):
            for block_type, processor_class in group.items():
                self.register(block_type, processor_class)

        for alias, block_type in BLOCK_TYPE_ALIASES.items():
            self.register_alias(alias, block_type)

    def register(self, block_type: str, processor_class: Type[BaseStepProcessor]):
        """Register a new block type."""
        self._processors[block_type] = processor_class

    def register_alias(self, alias: str, block_type: str):
        self._aliases[alias] = block_type

    def get(self, block_type: str) -> Optional[Type[BaseStepProcessor]]:
        """Get a processor class by blockType or alias."""
        return self._processors.get(self._aliases.get(block_type, block_type))

    def create_instance(self, block_type: str) -> BaseStepProcessor:
        """Create a processor for ``block_type``.

        Raises:
            UnknownBlockTypeError: nothing is registered under that name
        """
        processor_class = self.get(block_type)
        if processor_class is None:
            raise UnknownBlockTypeError(block_type)
        return processor_class()

    def list_all(self) -> list:
        """List all registered block types with metadata."""
        return [
            {
                "block_type": block_type,
                "display_name": cls.display_name,
                "description": cls.description,
                "icon": cls.icon,
                "aliases": sorted(a for a, t in self._aliases.items() if t == block_type),
                "config_schema": cls.get_config_schema(),
            }
            for block_type, cls in self._processors.items()
        ]

    @property
    def available_types(self) -> list:
        return list(self._processors.keys())


# Singleton
_registry: Optional[StepRegistry] = None


def get_step_registry() -> StepRegistry:
    """Get or create the singleton step registry."""
    global _registry
    if _registry is None:
        _registry = StepRegistry()
    return _registry
