import logging
from typing import Optional
from deskflow.core.settings import settings, AppSettings
from deskflow.llm.gateway import LLMGateway
from deskflow.services.actions import ActionExecutor
from deskflow.services.context_store import build_context_store
from deskflow.services.entity_extractor import EntityExtractor
from deskflow.services.intent_classifier import IntentClassifier
from deskflow.services.known_issues import build_known_issue_repository
from deskflow.services.records import build_record_sink
from deskflow.services.responder import ResponseComposer
from deskflow.workflow.catalog import FlowCatalog
from deskflow.workflow.engine import FlowEngine

logger = logging.getLogger(__name__)

_gateway: Optional[LLMGateway] = None
_engine: Optional[FlowEngine] = None

def build_flow_engine(config: AppSettings = settings, gateway: Optional[LLMGateway] = None) -> FlowEngine:
    """Wires the engine from configuration. A None gateway runs rules and static content only."""
    return FlowEngine(
        store=build_context_store(config.context),
        catalog=FlowCatalog(),
        classifier=IntentClassifier(gateway, config.engine),
        extractor=EntityExtractor(gateway, enabled=config.engine.ai_enabled),
        composer=ResponseComposer(gateway, config.engine),
        executor=ActionExecutor(build_record_sink(config.records), config.records),
        known_issues=build_known_issue_repository(config.records),
        config=config,
    )

def get_gateway() -> Optional[LLMGateway]:
    global _gateway
    if _gateway is None and settings.engine.ai_enabled:
        _gateway = LLMGateway(config=settings.llm)
    return _gateway

def get_engine() -> FlowEngine:
    global _engine
    if _engine is None:
        _engine = build_flow_engine(settings, get_gateway())
        logger.info(f"Flow engine ready (context backend: {settings.context.backend}, AI: {settings.engine.ai_enabled})")
    return _engine
