import pytest
from unittest.mock import AsyncMock
from deskflow.core.settings import EngineSettings, IntentRule
from deskflow.services.intent_classifier import IntentClassifier, RuleIntentStrategy

def rules_config(rules, ai_enabled=False, fallback_enabled=True):
    return EngineSettings(
        DESKFLOW_AI_ENABLED=ai_enabled,
        DESKFLOW_FALLBACK_ENABLED=fallback_enabled,
        DESKFLOW_INTENT_RULES=rules,
    )

@pytest.mark.asyncio
async def test_empty_message_is_general():
    result = await IntentClassifier(config=rules_config([])).classify("   ")
    assert result.intent == "general"
    assert result.confidence <= 0.3

@pytest.mark.asyncio
@pytest.mark.parametrize("message,intent", [
    ("I need to onboard a new employee", "onboarding"),
    ("Our contractor is leaving on Friday, it's their last day", "offboarding"),
    ("My VPN is not working again", "it_support"),
    ("I can't log in to my laptop", "it_support"),
])
async def test_fallback_patterns(message, intent):
    result = await IntentClassifier(config=rules_config([])).classify(message)
    assert result.intent == intent
    assert result.confidence >= 0.7
    assert result.source == "rule"

@pytest.mark.asyncio
async def test_fallback_can_be_disabled():
    result = await IntentClassifier(config=rules_config([], fallback_enabled=False)).classify("onboard someone")
    assert result.intent == "general"

def test_rule_score_includes_priority_bonus():
    strategy = RuleIntentStrategy()
    rule = IntentRule(intent="offboarding", keywords=["leaving", "exit"], priority=0)
    assert strategy.score(rule, "employee leaving") == pytest.approx(0.6)
    assert strategy.score(rule, "nothing here") == 0.0

def test_higher_score_wins_over_priority_order():
    strategy = RuleIntentStrategy([
        IntentRule(intent="offboarding", keywords=["leaving", "exit"], priority=0),
        IntentRule(intent="onboarding", keywords=["new hire"], priority=1),
    ])
    result = strategy.classify("our new hire is leaving the old team")
    assert result.intent == "onboarding"
    assert result.confidence == 1.0

def test_equal_scores_keep_the_lower_priority_rule():
    strategy = RuleIntentStrategy([
        IntentRule(intent="it_support", keywords=["badge"], priority=2),
        IntentRule(intent="offboarding", keywords=["badge"], priority=2),
    ])
    assert strategy.classify("return my badge").intent == "it_support"

def test_rules_for_unknown_intents_are_ignored():
    strategy = RuleIntentStrategy([IntentRule(intent="payroll", keywords=["salary"])])
    assert strategy.rules == []

@pytest.mark.asyncio
async def test_configured_rules_come_from_settings():
    config = rules_config([{"intent": "it_support", "keywords": ["printer"], "priority": 0}])
    result = await IntentClassifier(config=config).classify("the printer is jammed")
    assert result.intent == "it_support"
    assert result.confidence == pytest.approx(1.0)

@pytest.mark.asyncio
async def test_ai_strategy_is_used_when_enabled():
    gateway = AsyncMock()
    gateway.classify.return_value = "offboarding"

    result = await IntentClassifier(gateway, rules_config([], ai_enabled=True)).classify("someone is leaving")

    assert result.intent == "offboarding"
    assert result.source == "ai"
    assert result.confidence == pytest.approx(0.9)

@pytest.mark.asyncio
async def test_ai_failure_falls_back_to_rules():
    gateway = AsyncMock()
    gateway.classify.side_effect = RuntimeError("provider exploded")

    result = await IntentClassifier(gateway, rules_config([], ai_enabled=True)).classify("I need to onboard a new employee")

    assert result.intent == "onboarding"
    assert result.source == "rule"

@pytest.mark.asyncio
async def test_ai_label_outside_closed_set_falls_back():
    gateway = AsyncMock()
    gateway.classify.return_value = "payroll"

    result = await IntentClassifier(gateway, rules_config([], ai_enabled=True)).classify("hello")

    assert result.intent == "general"
    assert result.source == "rule"

@pytest.mark.asyncio
@pytest.mark.parametrize("message", [
    "My VPN keeps disconnecting",
    "I need a password reset",
    "Outlook is broken",
    "my laptop is broken",
    "network connectivity is down",
])
async def test_default_rules_route_it_requests(message):
    result = await IntentClassifier(config=EngineSettings(DESKFLOW_AI_ENABLED=False)).classify(message)
    assert result.intent == "it_support"
    assert result.source == "rule"

@pytest.mark.asyncio
@pytest.mark.parametrize("message,intent", [
    ("We have a new hire joining next week", "onboarding"),
    ("Sam is leaving, Friday is the last day", "offboarding"),
    ("hello, what can you do", "general"),
    ("I think I need to onboard someone", "onboarding"),
])
async def test_default_rules_and_fallback_keywords(message, intent):
    result = await IntentClassifier(config=EngineSettings(DESKFLOW_AI_ENABLED=False)).classify(message)
    assert result.intent == intent

def test_default_rules_are_shipped():
    config = EngineSettings(DESKFLOW_AI_ENABLED=False)
    assert [(r.intent, r.priority) for r in config.intent_rules] == [
        ("onboarding", 1), ("offboarding", 2), ("it_support", 3), ("general", 10),
    ]

def test_rule_keywords_match_whole_words():
    strategy = RuleIntentStrategy([IntentRule(intent="general", keywords=["hi"], priority=10)])
    assert strategy.score(strategy.rules[0], "i think this is broken") == 0.0
    assert strategy.score(strategy.rules[0], "hi there") > 0.0
