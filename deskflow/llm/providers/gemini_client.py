from typing import Optional
from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_core.language_models import BaseChatModel
from deskflow.core.settings import settings
from deskflow.llm.client import LLMClient

class GeminiClient(LLMClient):
    def get_chat_model(self, model_name: Optional[str] = None, temperature: float = 0.3, max_tokens: Optional[int] = None, timeout: Optional[float] = None) -> BaseChatModel:
        return ChatGoogleGenerativeAI(
            google_api_key=settings.gemini.api_key,
            model=model_name or settings.gemini.default_model,
            temperature=temperature,
            max_output_tokens=max_tokens,
            timeout=timeout,
        )

    async def check_health(self) -> bool:
        return bool(settings.gemini.api_key)
