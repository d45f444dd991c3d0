from typing import Optional
from langchain_groq import ChatGroq
from langchain_core.language_models import BaseChatModel
from deskflow.core.settings import settings
from deskflow.llm.client import LLMClient

class GroqClient(LLMClient):
    def get_chat_model(self, model_name: Optional[str] = None, temperature: float = 0.3, max_tokens: Optional[int] = None, timeout: Optional[float] = None) -> BaseChatModel:
        return ChatGroq(
            api_key=settings.groq.api_key,
            model=model_name or settings.groq.default_model,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout,
            base_url=settings.groq.base_url,
        )

    async def check_health(self) -> bool:
        # No cheap ping endpoint; a configured key counts as available
        return bool(settings.groq.api_key)
