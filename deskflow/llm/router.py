import logging
from typing import Dict, Optional, Tuple
from langchain_core.language_models import BaseChatModel
from deskflow.core.settings import settings, LLMSettings
from deskflow.llm.client import LLMClient
from deskflow.llm.providers.groq_client import GroqClient
from deskflow.llm.providers.gemini_client import GeminiClient
from deskflow.llm.providers.self_hosted_client import SelfHostedClient

logger = logging.getLogger(__name__)

GENERATION = "generation"
CLASSIFICATION = "classification"
EXTRACTION = "extraction"

class LLMRouter:
    def __init__(self, clients: Optional[Dict[str, LLMClient]] = None, config: Optional[LLMSettings] = None):
        self.config = config or settings.llm
        self.clients = clients if clients is not None else {
            "groq": GroqClient(),
            "gemini": GeminiClient(),
            "self_hosted": SelfHostedClient()
        }

    @property
    def chain(self):
        """Fallback chain: Primary -> Fallback -> Production, duplicates dropped."""
        ordered = []
        for provider in (self.config.primary_provider, self.config.fallback_provider, self.config.production_provider):
            if provider and provider not in ordered:
                ordered.append(provider)
        return ordered

    def _model_for(self, use_case: str) -> Optional[str]:
        model_map = {
            GENERATION: self.config.generation_model,
            CLASSIFICATION: self.config.classification_model,
            EXTRACTION: self.config.extraction_model,
        }
        return model_map.get(use_case)

    async def get_chat_model(self, use_case: str = GENERATION) -> Tuple[Optional[BaseChatModel], Optional[str]]:
        """
        Returns (ChatModel, provider_name) for the first healthy provider in the chain,
        or (None, None) when every provider is down.
        """
        target_model = self._model_for(use_case)

        for provider in self.chain:
            client = self.clients.get(provider)
            if not client:
                continue

            if await client.check_health():
                logger.debug(f"Routing to {provider} for {use_case}")
                model = client.get_chat_model(
                    model_name=target_model,
                    temperature=self.config.temperature,
                    max_tokens=self.config.max_tokens,
                    timeout=self.config.timeout_seconds,
                )
                return model, provider
            else:
                logger.warning(f"Provider {provider} unhealthy, falling back...")

        logger.error("All LLM providers failed health checks.")
        return None, None

    async def is_available(self) -> bool:
        for provider in self.chain:
            client = self.clients.get(provider)
            if client and await client.check_health():
                return True
        return False
