import logging
from typing import Any, Dict, List, Optional
from deskflow.core.prompts import build_step_system_prompt
from deskflow.core.settings import settings, EngineSettings
from deskflow.workflow.base import FieldSpec

logger = logging.getLogger(__name__)

# Deterministic steps are always rendered from the catalog
AI_SKIPPED_STEP_TYPES = {"known_issue_check", "confirmation", "awaiting_input", "action_execution", "summary"}
MIN_AI_RESPONSE_LENGTH = 5

class StaticResponseStrategy:
    async def respond(self, fallback_text: str, **kwargs) -> str:
        return fallback_text

class AIResponseStrategy:
    """Paraphrases the step prompt with the LLM; None means use the static text."""

    def __init__(self, gateway, history_window: int = 10):
        self.gateway = gateway
        self.history_window = history_window

    async def respond(
        self,
        fallback_text: str,
        flow_name: Optional[str] = None,
        step=None,
        user_message: str = "",
        collected_data: Optional[Dict[str, str]] = None,
        missing_fields: Optional[List[FieldSpec]] = None,
        history: Optional[List[Dict[str, Any]]] = None,
    ) -> Optional[str]:
        system_prompt = build_step_system_prompt(flow_name, step, collected_data, missing_fields)
        window = (history or [])[-self.history_window:] if self.history_window > 0 else []
        raw = await self.gateway.generate(
            system_prompt,
            user_message or f"(The user just reached this step.) Guidance: {fallback_text}",
            window,
        )
        if not raw:
            return None

        text = raw.strip()
        if len(text) < MIN_AI_RESPONSE_LENGTH:
            logger.warning(f"Discarding short AI response: {text!r}")
            return None
        return text

class ResponseComposer:
    def __init__(self, gateway=None, config: Optional[EngineSettings] = None):
        self.config = config or settings.engine
        self.static = StaticResponseStrategy()
        self.ai = AIResponseStrategy(gateway, self.config.history_window) if gateway is not None and self.config.ai_enabled else None

    async def compose(self, fallback_text: str, step=None, **kwargs) -> str:
        if self.ai is not None and (step is None or step.type not in AI_SKIPPED_STEP_TYPES):
            try:
                text = await self.ai.respond(fallback_text, step=step, **kwargs)
            except Exception as e:
                logger.warning(f"AI response failed, using static content: {e}")
                text = None
            if text:
                return text
        return await self.static.respond(fallback_text)
