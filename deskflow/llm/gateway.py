import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence
from pydantic import BaseModel, Field
from langchain_core.prompts import ChatPromptTemplate, MessagesPlaceholder
from langchain_core.output_parsers import StrOutputParser, JsonOutputParser, BaseOutputParser
from langchain_core.exceptions import OutputParserException
from langchain_core.messages import HumanMessage, AIMessage, BaseMessage
from deskflow.core.settings import settings, LLMSettings
from deskflow.core.prompts import CLASSIFICATION_SYSTEM_PROMPT, EXTRACTION_SYSTEM_PROMPT, describe_fields
from deskflow.core.observability import TraceManager
from deskflow.llm.router import LLMRouter, GENERATION, CLASSIFICATION, EXTRACTION

logger = logging.getLogger(__name__)

class IntentLabel(BaseModel):
    intent: str = Field(..., description="Exactly one of the listed intents.")
    confidence: float = Field(0.0, description="How sure the classification is, from 0.0 to 1.0.")

def to_messages(history: Sequence[Dict[str, Any]]) -> List[BaseMessage]:
    messages = []
    for turn in history or []:
        content = turn.get("content") or ""
        if turn.get("role") == "assistant":
            messages.append(AIMessage(content=content))
        else:
            messages.append(HumanMessage(content=content))
    return messages

class LLMGateway:
    """
    Uniform generate / classify / extract contract over the provider router.
    No method raises: failures are logged and mapped to None or {}.
    """

    def __init__(self, router: Optional[LLMRouter] = None, config: Optional[LLMSettings] = None):
        self.config = config or settings.llm
        self.router = router or LLMRouter(config=self.config)
        self.text_parser = StrOutputParser()
        self.intent_parser = JsonOutputParser(pydantic_object=IntentLabel)
        self.entity_parser = JsonOutputParser()

        self.generation_prompt = ChatPromptTemplate.from_messages([
            ("system", "{system_prompt}"),
            MessagesPlaceholder("history"),
            ("user", "{input}")
        ])
        self.classification_prompt = ChatPromptTemplate.from_messages([
            ("system", CLASSIFICATION_SYSTEM_PROMPT),
            ("user", 'User message: "{input}"\n\n{format_instructions}')
        ]).partial(format_instructions=self.intent_parser.get_format_instructions())
        self.extraction_prompt = ChatPromptTemplate.from_messages([
            ("system", EXTRACTION_SYSTEM_PROMPT),
            ("user", 'User message: "{input}"')
        ])

    async def _invoke(self, use_case: str, prompt: ChatPromptTemplate, parser: BaseOutputParser, variables: Dict[str, Any]) -> Any:
        provider = None
        try:
            model, provider = await self.router.get_chat_model(use_case)
            if model is None:
                TraceManager.warning("LLM unavailable", use_case=use_case)
                return None

            chain = prompt | model | parser
            return await asyncio.wait_for(chain.ainvoke(variables), timeout=self.config.timeout_seconds)
        except asyncio.TimeoutError:
            TraceManager.warning("LLM call timed out", use_case=use_case, provider=provider)
            return None
        except OutputParserException as e:
            TraceManager.warning("Unparseable LLM output", use_case=use_case, provider=provider, output=str(e.llm_output or "")[:200])
            return None
        except Exception as e:
            logger.warning(f"LLM {use_case} call via {provider} failed: {e}")
            return None

    async def generate(self, system_prompt: str, user_message: str, history: Sequence[Dict[str, Any]] = ()) -> Optional[str]:
        result = await self._invoke(GENERATION, self.generation_prompt, self.text_parser, {
            "system_prompt": system_prompt,
            "history": to_messages(history),
            "input": user_message,
        })
        return (result or "").strip() or None

    async def classify(self, message: str, categories: Sequence[str]) -> Optional[str]:
        """Returns one of `categories`, or None when the output names none of them."""
        parsed = await self._invoke(CLASSIFICATION, self.classification_prompt, self.intent_parser, {
            "categories": ", ".join(categories),
            "input": message,
        })
        if not isinstance(parsed, dict) or not isinstance(parsed.get("intent"), str):
            return None

        label = parsed["intent"].strip().lower().replace(" ", "_")
        if label not in categories:
            TraceManager.warning("Classification outside the known intents", label=label)
            return None
        return label

    async def extract_entities(self, message: str, fields) -> Dict[str, str]:
        if not fields:
            return {}
        parsed = await self._invoke(EXTRACTION, self.extraction_prompt, self.entity_parser, {
            "fields": describe_fields(fields),
            "input": message,
        })
        if not isinstance(parsed, dict):
            return {}

        names = {f.name for f in fields}
        return {
            key: str(value).strip()
            for key, value in parsed.items()
            if key in names and value is not None and str(value).strip()
        }

    async def is_available(self) -> bool:
        try:
            return await self.router.is_available()
        except Exception as e:
            logger.warning(f"LLM availability check failed: {e}")
            return False
