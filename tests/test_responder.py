import pytest
from unittest.mock import AsyncMock
from deskflow.core.settings import EngineSettings
from deskflow.services.responder import ResponseComposer
from deskflow.workflow.flows.onboarding import ONBOARDING_FLOW

DEPARTMENT_STEP = ONBOARDING_FLOW.steps[0]
SUMMARY_STEP = ONBOARDING_FLOW.steps[-1]

def composer(gateway, ai_enabled=True):
    return ResponseComposer(gateway, EngineSettings(DESKFLOW_AI_ENABLED=ai_enabled, DESKFLOW_HISTORY_WINDOW=2))

@pytest.mark.asyncio
async def test_ai_text_replaces_static_prompt():
    gateway = AsyncMock()
    gateway.generate.return_value = "  Great! Which department are they joining?\n"

    text = await composer(gateway).compose("Which department?", step=DEPARTMENT_STEP, flow_name="Employee Onboarding",
                                           history=[{"role": "user", "content": str(i)} for i in range(5)])

    assert text == "Great! Which department are they joining?"
    system_prompt, _, history = gateway.generate.call_args.args
    assert "Department" in system_prompt
    assert len(history) == 2

@pytest.mark.asyncio
async def test_short_or_missing_ai_text_uses_static_content():
    gateway = AsyncMock()
    gateway.generate.return_value = "ok"
    assert await composer(gateway).compose("Which department?", step=DEPARTMENT_STEP) == "Which department?"

    gateway.generate.return_value = None
    assert await composer(gateway).compose("Which department?", step=DEPARTMENT_STEP) == "Which department?"

@pytest.mark.asyncio
async def test_deterministic_steps_skip_the_llm():
    gateway = AsyncMock()
    text = await composer(gateway).compose("Onboarding is complete!", step=SUMMARY_STEP)
    assert text == "Onboarding is complete!"
    gateway.generate.assert_not_called()

@pytest.mark.asyncio
async def test_ai_disabled_is_static():
    gateway = AsyncMock()
    assert await composer(gateway, ai_enabled=False).compose("Hello", step=DEPARTMENT_STEP) == "Hello"
    gateway.generate.assert_not_called()

@pytest.mark.asyncio
async def test_gateway_exception_uses_static_content():
    gateway = AsyncMock()
    gateway.generate.side_effect = RuntimeError("boom")
    assert await composer(gateway).compose("Hello", step=DEPARTMENT_STEP) == "Hello"
