from abc import ABC, abstractmethod
from langchain_core.language_models import BaseChatModel
from typing import Optional

class LLMClient(ABC):
    """
    Abstract Base Class for LLM Providers.
    Wraps LangChain's BaseChatModel and provides a unified interface.
    """

    @abstractmethod
    def get_chat_model(
        self,
        model_name: Optional[str] = None,
        temperature: float = 0.3,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> BaseChatModel:
        """Returns a configured LangChain ChatModel instance."""
        pass

    @abstractmethod
    async def check_health(self) -> bool:
        """Checks if the provider is configured and reachable."""
        pass
