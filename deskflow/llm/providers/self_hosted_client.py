from typing import Optional
from langchain_openai import ChatOpenAI
from langchain_core.language_models import BaseChatModel
from deskflow.core.settings import settings
from deskflow.llm.client import LLMClient
import httpx

class SelfHostedClient(LLMClient):
    """Any OpenAI-compatible endpoint (vLLM, Ollama, llama.cpp server)."""

    def get_chat_model(self, model_name: Optional[str] = None, temperature: float = 0.3, max_tokens: Optional[int] = None, timeout: Optional[float] = None) -> BaseChatModel:
        return ChatOpenAI(
            base_url=settings.self_hosted.base_url,
            api_key=settings.self_hosted.api_key,
            model=model_name or settings.self_hosted.default_model,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout,
        )

    async def check_health(self) -> bool:
        try:
            async with httpx.AsyncClient() as client:
                resp = await client.get(f"{settings.self_hosted.base_url}/models", timeout=2.0)
                return resp.status_code == 200
        except Exception:
            return False
