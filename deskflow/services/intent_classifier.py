import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence
from deskflow.core.intents import (
    ALL_INTENTS, GENERAL, FALLBACK_PATTERNS, FALLBACK_CONFIDENCE, GENERAL_CONFIDENCE,
)
from deskflow.core.observability import TraceManager
from deskflow.core.settings import settings, EngineSettings, IntentRule

logger = logging.getLogger(__name__)

AI = "ai"
RULE = "rule"

@dataclass(frozen=True)
class IntentResult:
    intent: str
    confidence: float
    source: str

class AIIntentStrategy:
    """Closed-set classification through the LLM gateway."""

    def __init__(self, gateway, confidence: float = 0.9):
        self.gateway = gateway
        self.confidence = confidence

    async def classify(self, message: str) -> Optional[IntentResult]:
        if not message or not message.strip():
            return None
        label = await self.gateway.classify(message, ALL_INTENTS)
        if label not in ALL_INTENTS:
            return None
        return IntentResult(intent=label, confidence=self.confidence, source=AI)

class RuleIntentStrategy:
    """
    Weighted keyword rules, then the built-in pattern map, then `general`.

    A rule scores matched/total keywords plus 0.1 / (priority + 1). Keywords
    match whole words only, so "hi" does not fire on "this". Rules are evaluated
    by ascending priority and only a strictly higher score replaces the current best.
    """

    def __init__(self, rules: Sequence[IntentRule] = (), fallback_enabled: bool = True):
        self.rules: List[IntentRule] = sorted(
            (r for r in rules if r.keywords and r.intent in ALL_INTENTS),
            key=lambda r: r.priority,
        )
        self.fallback_enabled = fallback_enabled

    def score(self, rule: IntentRule, text: str) -> float:
        matched = sum(1 for keyword in rule.keywords if re.search(rf"\b{re.escape(keyword.lower())}\b", text))
        if matched == 0:
            return 0.0
        return min(1.0, matched / len(rule.keywords) + 0.1 / (rule.priority + 1))

    def classify(self, message: str) -> IntentResult:
        text = (message or "").strip().lower()
        if not text:
            return IntentResult(intent=GENERAL, confidence=GENERAL_CONFIDENCE, source=RULE)

        best_intent, best_score = None, 0.0
        for rule in self.rules:
            score = self.score(rule, text)
            if score > best_score:
                best_intent, best_score = rule.intent, score
        if best_intent:
            return IntentResult(intent=best_intent, confidence=round(best_score, 4), source=RULE)

        if self.fallback_enabled:
            for intent, patterns in FALLBACK_PATTERNS.items():
                if any(p.search(text) for p in patterns):
                    return IntentResult(intent=intent, confidence=FALLBACK_CONFIDENCE, source=RULE)

        return IntentResult(intent=GENERAL, confidence=GENERAL_CONFIDENCE, source=RULE)

class IntentClassifier:
    """AI strategy first (when enabled), rule strategy otherwise. Always returns a result."""

    def __init__(self, gateway=None, config: Optional[EngineSettings] = None):
        self.config = config or settings.engine
        self.ai = AIIntentStrategy(gateway, self.config.ai_confidence) if gateway is not None and self.config.ai_enabled else None
        self.rules = RuleIntentStrategy(self.config.intent_rules, self.config.fallback_enabled)

    async def classify(self, message: str) -> IntentResult:
        if self.ai is not None:
            try:
                result = await self.ai.classify(message)
            except Exception as e:
                logger.warning(f"AI classification failed, using rules: {e}")
                result = None
            if result is not None:
                TraceManager.info("Intent classified", intent=result.intent, source=AI)
                return result
            TraceManager.warning("AI classification unavailable, using rules")

        result = self.rules.classify(message)
        TraceManager.info("Intent classified", intent=result.intent, source=RULE, confidence=result.confidence)
        return result
