import logging
from types import MappingProxyType
from typing import Iterable, List, Optional
from deskflow.core.errors import FlowDefinitionError
from deskflow.workflow.base import FlowDefinition, ChoiceOption
from deskflow.workflow.flows import AVAILABLE_FLOWS

logger = logging.getLogger(__name__)

class FlowCatalog:
    """Read-only registry of flow definitions keyed by intent."""

    def __init__(self, flows: Optional[Iterable[FlowDefinition]] = None):
        registry = {}
        for flow in (AVAILABLE_FLOWS if flows is None else flows):
            if flow.intent in registry:
                raise FlowDefinitionError(f"Duplicate flow for intent '{flow.intent}'")
            registry[flow.intent] = flow
        self._registry = MappingProxyType(registry)
        logger.info(f"Flow Catalog initialized with: {list(self._registry.keys())}")

    def get(self, intent: Optional[str]) -> Optional[FlowDefinition]:
        if not intent:
            return None
        return self._registry.get(intent)

    @property
    def intents(self) -> List[str]:
        return list(self._registry.keys())

    def menu(self) -> List[ChoiceOption]:
        """Top-level intent buttons."""
        return [ChoiceOption(label=flow.name, value=flow.intent) for flow in self._registry.values()]
