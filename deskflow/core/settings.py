from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from deskflow.core.intents import DEFAULT_INTENT_RULES

# Common Config for all settings classes to pick up .env
settings_config = SettingsConfigDict(
    env_file=".env",
    env_file_encoding="utf-8",
    extra="ignore"
)

class IntentRule(BaseModel):
    """Operator-configured keyword rule used by the rule-based classifier."""
    intent: str
    keywords: List[str] = Field(default_factory=list)
    priority: int = 0

class GroqSettings(BaseSettings):
    api_key: Optional[str] = Field(None, alias="GROQ_API_KEY")
    base_url: str = Field("https://api.groq.com/openai/v1", alias="GROQ_BASE_URL")
    default_model: str = Field("llama-3.3-70b-versatile", alias="GROQ_DEFAULT_MODEL")

    model_config = settings_config

class GeminiSettings(BaseSettings):
    api_key: Optional[str] = Field(None, alias="GEMINI_API_KEY")
    default_model: str = Field("gemini-1.5-flash", alias="GEMINI_DEFAULT_MODEL")

    model_config = settings_config

class SelfHostedSettings(BaseSettings):
    base_url: str = Field("http://localhost:8001/v1", alias="SELF_HOSTED_BASE_URL")
    api_key: str = Field("none", alias="SELF_HOSTED_API_KEY")
    default_model: str = Field("qwen2.5:0.5b", alias="SELF_HOSTED_DEFAULT_MODEL")

    model_config = settings_config

class LLMSettings(BaseSettings):
    primary_provider: str = Field("self_hosted", alias="LLM_PRIMARY_PROVIDER")
    fallback_provider: str = Field("groq", alias="LLM_FALLBACK_PROVIDER")
    production_provider: str = Field("self_hosted", alias="LLM_PRODUCTION_PROVIDER")

    generation_model: Optional[str] = Field(None, alias="LLM_GENERATION_MODEL")
    classification_model: Optional[str] = Field(None, alias="LLM_CLASSIFICATION_MODEL")
    extraction_model: Optional[str] = Field(None, alias="LLM_EXTRACTION_MODEL")

    temperature: float = Field(0.3, alias="LLM_TEMPERATURE")
    max_tokens: int = Field(500, alias="LLM_MAX_TOKENS")
    timeout_seconds: float = Field(10.0, alias="LLM_TIMEOUT_SECONDS")

    model_config = settings_config

class DatabaseSettings(BaseSettings):
    url: str = Field("sqlite+aiosqlite:///./deskflow.db", alias="DATABASE_URL")
    pool_size: int = Field(5, alias="DB_POOL_SIZE")
    max_overflow: int = Field(10, alias="DB_MAX_OVERFLOW")

    model_config = settings_config

class RedisSettings(BaseSettings):
    url: str = Field("redis://localhost:6379", alias="REDIS_URL")

    model_config = settings_config

class EngineSettings(BaseSettings):
    ai_enabled: bool = Field(True, alias="DESKFLOW_AI_ENABLED")
    fallback_enabled: bool = Field(True, alias="DESKFLOW_FALLBACK_ENABLED")
    history_window: int = Field(10, alias="DESKFLOW_HISTORY_WINDOW")
    ai_confidence: float = Field(0.9, alias="DESKFLOW_AI_CONFIDENCE")
    # JSON list, e.g. [{"intent": "onboarding", "keywords": ["new hire"], "priority": 1}]
    intent_rules: List[IntentRule] = Field(
        default_factory=lambda: [IntentRule(**rule) for rule in DEFAULT_INTENT_RULES],
        alias="DESKFLOW_INTENT_RULES",
    )

    model_config = settings_config

class ContextSettings(BaseSettings):
    backend: str = Field("memory", alias="DESKFLOW_CONTEXT_BACKEND")
    max_age_minutes: int = Field(30, alias="DESKFLOW_CONTEXT_MAX_AGE_MINUTES")
    key_prefix: str = Field("deskflow:context:", alias="DESKFLOW_CONTEXT_KEY_PREFIX")

    model_config = settings_config

class RecordSettings(BaseSettings):
    sink: str = Field("simulated", alias="DESKFLOW_RECORD_SINK")
    known_issue_backend: str = Field("memory", alias="DESKFLOW_KNOWN_ISSUE_BACKEND")
    prefixes: Dict[str, str] = Field(
        default_factory=lambda: {
            "hr_case": "HR",
            "sc_request": "REQ",
            "sc_req_item": "RITM",
            "incident": "INC",
            "task": "TASK",
            "security": "SEC",
        },
        alias="DESKFLOW_RECORD_PREFIXES",
    )
    default_prefix: str = Field("SIM", alias="DESKFLOW_RECORD_DEFAULT_PREFIX")

    model_config = settings_config

    def prefix_for(self, table: str) -> str:
        return self.prefixes.get(table, self.default_prefix)

class AppSettings(BaseSettings):
    env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    # Using default_factory with BaseSettings classes will now trigger their own env loading
    groq: GroqSettings = Field(default_factory=GroqSettings)
    gemini: GeminiSettings = Field(default_factory=GeminiSettings)
    self_hosted: SelfHostedSettings = Field(default_factory=SelfHostedSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    db: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    engine: EngineSettings = Field(default_factory=EngineSettings)
    context: ContextSettings = Field(default_factory=ContextSettings)
    records: RecordSettings = Field(default_factory=RecordSettings)

    model_config = settings_config

settings = AppSettings()
