import pytest
from deskflow.core.errors import ContextStoreError
from deskflow.services.context_store import InMemoryContextStore
from deskflow.workflow.engine import (
    FlowEngine, MENU_MESSAGE, RESTART_MESSAGE, CANCEL_MESSAGE, COMPLETED_MESSAGE, CLOSING_MESSAGE,
    DECLINED_FIX_MESSAGE,
)

async def _onboarding_to_confirmation(engine, cid):
    await engine.process_choice(cid, "onboarding")
    await engine.process_choice(cid, "engineering")
    for answer in ("Jane Doe", "Policy Analyst", "2026-11-02", "Remote/Telework"):
        await engine.process_message(cid, answer)
    return await engine.process_choice(cid, "standard_laptop")

async def _it_support_to_known_issue(engine, cid):
    await engine.process_choice(cid, "it_support")
    await engine.process_choice(cid, "vpn")
    return await engine.process_message(cid, "My VPN keeps timing out right after I sign in")

@pytest.mark.asyncio
async def test_start_conversation_offers_menu(flow_engine):
    response = await flow_engine.start_conversation()

    assert response.conversation_id
    assert response.message == MENU_MESSAGE
    assert [c.value for c in response.choices] == ["onboarding", "offboarding", "it_support"]

    stored = await flow_engine.store.get(response.conversation_id)
    assert stored["intent"] is None
    assert stored["history"][0]["role"] == "assistant"

@pytest.mark.asyncio
async def test_onboarding_choice_presents_department_step(flow_engine):
    cid = (await flow_engine.start_conversation()).conversation_id

    response = await flow_engine.process_choice(cid, "onboarding")

    assert response.flow.intent == "onboarding"
    assert response.flow.current_step == 0
    assert response.flow.completed_steps == []
    assert "Which department" in response.message
    assert "engineering" in [c.value for c in response.choices]

@pytest.mark.asyncio
async def test_department_choice_advances_one_step(flow_engine):
    cid = (await flow_engine.start_conversation()).conversation_id
    await flow_engine.process_choice(cid, "onboarding")

    response = await flow_engine.process_choice(cid, "engineering")

    assert response.collected_data["department"] == "engineering"
    assert response.flow.current_step == 1
    assert response.flow.completed_steps == [0]
    assert "full legal name" in response.message

@pytest.mark.asyncio
async def test_free_text_is_classified_into_a_flow(flow_engine):
    cid = (await flow_engine.start_conversation()).conversation_id

    response = await flow_engine.process_message(cid, "I need to onboard a new employee")

    assert response.flow.intent == "onboarding"
    assert response.message.startswith("Welcome! I'll help set up onboarding")
    assert response.flow.current_step == 0
    assert response.flow.completed_steps == []
    assert "engineering" in [c.value for c in response.choices]
    stored = await flow_engine.store.get(cid)
    assert 0.0 < stored["confidence"] < 1.0
    assert stored["intentSource"] == "rule"

@pytest.mark.asyncio
async def test_small_talk_stays_general(flow_engine):
    cid = (await flow_engine.start_conversation()).conversation_id

    response = await flow_engine.process_message(cid, "hello there")

    assert response.flow.intent == "general"
    assert response.message == MENU_MESSAGE
    assert len(response.choices) == 3

@pytest.mark.asyncio
async def test_fields_are_asked_one_at_a_time(flow_engine):
    cid = (await flow_engine.start_conversation()).conversation_id
    await flow_engine.process_choice(cid, "onboarding")
    await flow_engine.process_choice(cid, "engineering")

    response = await flow_engine.process_message(cid, "Jane Doe")

    assert response.collected_data["employee_name"] == "Jane Doe"
    assert response.flow.current_step == 1
    assert response.message == "What is their job title?"
    stored = await flow_engine.store.get(cid)
    assert stored["missingFields"] == ["job_title", "start_date", "work_location"]

@pytest.mark.asyncio
async def test_choice_field_rejects_unknown_text(flow_engine):
    cid = (await flow_engine.start_conversation()).conversation_id
    await flow_engine.process_choice(cid, "onboarding")

    response = await flow_engine.process_message(cid, "the moon")

    assert "department" not in response.collected_data
    assert response.flow.current_step == 0
    assert response.message.startswith("Please pick one of the options below.")

@pytest.mark.asyncio
async def test_onboarding_reaches_confirmation(flow_engine):
    cid = (await flow_engine.start_conversation()).conversation_id

    response = await _onboarding_to_confirmation(flow_engine, cid)

    assert response.state == "awaiting_input"
    assert response.flow.current_step == 3
    assert response.action_card.type == "confirmation"
    assert response.action_card.id == "onboarding_confirm"
    assert "Jane Doe" in response.action_card.description
    assert response.collected_data["work_location"] == "remote"

@pytest.mark.asyncio
async def test_confirmed_onboarding_creates_records(flow_engine):
    cid = (await flow_engine.start_conversation()).conversation_id
    await _onboarding_to_confirmation(flow_engine, cid)

    response = await flow_engine.process_action(cid, "onboarding_confirm", True)

    assert response.state == "completed"
    assert response.outcome == "request_created"
    assert response.flow.completed_steps == [0, 1, 2, 3, 4]
    assert response.action_card.type == "checklist"
    assert all(item.status == "completed" for item in response.action_card.items)

    numbers = [r.display_number for r in response.active_records]
    assert len(numbers) == 4
    assert numbers[0].startswith("HR")
    assert numbers[1].startswith("REQ")
    assert numbers[2].startswith("RITM")
    assert numbers[3].startswith("TASK")
    assert all(r.simulated for r in response.active_records)
    assert numbers[0] in response.message

@pytest.mark.asyncio
async def test_cancel_at_confirmation_submits_nothing(flow_engine):
    cid = (await flow_engine.start_conversation()).conversation_id
    await _onboarding_to_confirmation(flow_engine, cid)

    response = await flow_engine.process_action(cid, "onboarding_confirm", False)

    assert response.message == CANCEL_MESSAGE
    assert response.active_records == []
    assert {c.value for c in response.choices} == {"start_over", "end_conversation"}
    stored = await flow_engine.store.get(cid)
    assert stored["pendingAction"] is None
    assert stored["state"] == "active"

@pytest.mark.asyncio
async def test_stale_action_id_is_rejected_without_changes(flow_engine):
    cid = (await flow_engine.start_conversation()).conversation_id
    await _onboarding_to_confirmation(flow_engine, cid)
    before = await flow_engine.store.get(cid)

    response = await flow_engine.process_action(cid, "offboarding_confirm", True)

    assert response.error is True
    after = await flow_engine.store.get(cid)
    assert after["turnCount"] == before["turnCount"]
    assert after["pendingAction"]["id"] == "onboarding_confirm"

@pytest.mark.asyncio
async def test_confirm_with_nothing_pending_is_an_input_error(flow_engine):
    cid = (await flow_engine.start_conversation()).conversation_id

    response = await flow_engine.process_action(cid, "onboarding_confirm", True)

    assert response.error is True

@pytest.mark.asyncio
async def test_known_vpn_issue_offers_auto_resolve(flow_engine):
    cid = (await flow_engine.start_conversation()).conversation_id

    response = await _it_support_to_known_issue(flow_engine, cid)

    assert response.state == "awaiting_input"
    assert response.flow.current_step == 2
    assert response.action_card.type == "auto_resolve"
    assert "VPN connection times out" in response.message
    assert len(response.action_card.items) == 3

@pytest.mark.asyncio
async def test_accepting_auto_resolve_closes_without_ticket(flow_engine):
    cid = (await flow_engine.start_conversation()).conversation_id
    await _it_support_to_known_issue(flow_engine, cid)

    response = await flow_engine.process_action(cid, "auto_resolve", True)

    assert response.state == "completed"
    assert response.outcome == "resolved"
    assert response.active_records == []
    assert flow_engine.known_issues.get("KI-VPN-TIMEOUT").hit_count == 1

@pytest.mark.asyncio
async def test_declined_known_issue_continues_to_diagnostics(flow_engine):
    cid = (await flow_engine.start_conversation()).conversation_id
    await _it_support_to_known_issue(flow_engine, cid)

    declined = await flow_engine.process_action(cid, "auto_resolve", False)
    assert declined.message == DECLINED_FIX_MESSAGE
    assert "continue_troubleshooting" in [c.value for c in declined.choices]

    response = await flow_engine.process_message(cid, "please continue")

    assert response.flow.current_step == 3
    assert response.action_card is None
    assert "When did this problem start?" in response.message
    assert "today" in [c.value for c in response.choices]

@pytest.mark.asyncio
async def test_continue_troubleshooting_choice_reaches_diagnostics(flow_engine):
    cid = (await flow_engine.start_conversation()).conversation_id
    await _it_support_to_known_issue(flow_engine, cid)
    await flow_engine.process_action(cid, "auto_resolve", False)

    response = await flow_engine.process_choice(cid, "continue_troubleshooting")

    assert response.flow.current_step == 3
    assert response.action_card is None
    assert response.state == "active"
    stored = await flow_engine.store.get(cid)
    assert stored["declinedKnownIssue"] == "KI-VPN-TIMEOUT"

@pytest.mark.asyncio
async def test_still_having_issues_restarts_it_support(flow_engine):
    cid = (await flow_engine.start_conversation()).conversation_id
    await _it_support_to_known_issue(flow_engine, cid)
    resolved = await flow_engine.process_action(cid, "auto_resolve", True)
    still_broken = next(c for c in resolved.choices if c.label == "Still having issues")
    assert still_broken.value == "it_support"

    response = await flow_engine.process_choice(cid, still_broken.value)

    assert response.state == "active"
    assert response.flow.intent == "it_support"
    assert response.outcome is None
    assert response.collected_data == {}
    assert "vpn" in [c.value for c in response.choices]

@pytest.mark.asyncio
async def test_it_support_without_known_issue_opens_incident(flow_engine):
    cid = (await flow_engine.start_conversation()).conversation_id
    await flow_engine.process_choice(cid, "it_support")
    await flow_engine.process_choice(cid, "hardware")

    response = await flow_engine.process_message(cid, "My monitor flickers")
    assert response.flow.current_step == 3

    await flow_engine.process_choice(cid, "today")
    response = await flow_engine.process_choice(cid, "constant")
    assert response.flow.current_step == 4

    response = await flow_engine.process_choice(cid, "high")
    assert response.action_card.id == "it_support_confirm"

    response = await flow_engine.process_action(cid, "it_support_confirm", True)
    assert response.outcome == "case_created"
    assert response.active_records[0].display_number.startswith("INC")
    assert response.active_records[0].record_type == "incident"

@pytest.mark.asyncio
async def test_offboarding_routes_contractors(flow_engine):
    cid = (await flow_engine.start_conversation()).conversation_id
    await flow_engine.process_choice(cid, "offboarding")

    response = await flow_engine.process_choice(cid, "contractor")

    assert response.flow.current_step == 2
    assert response.flow.completed_steps == [0]
    assert "contractor's full name" in response.message

@pytest.mark.asyncio
async def test_offboarding_employee_skips_contractor_step(flow_engine):
    cid = (await flow_engine.start_conversation()).conversation_id
    await flow_engine.process_choice(cid, "offboarding")
    await flow_engine.process_choice(cid, "employee")
    await flow_engine.process_message(cid, "John Smith")
    await flow_engine.process_message(cid, "2026-12-31")

    response = await flow_engine.process_choice(cid, "retirement")

    assert response.flow.current_step == 3
    assert response.flow.completed_steps == [0, 1]
    assert response.collected_data["reason"] == "retirement"

@pytest.mark.asyncio
async def test_start_over_keeps_history(flow_engine):
    cid = (await flow_engine.start_conversation()).conversation_id
    await flow_engine.process_choice(cid, "onboarding")
    await flow_engine.process_choice(cid, "engineering")

    response = await flow_engine.process_choice(cid, "start_over")

    assert response.message == RESTART_MESSAGE
    assert response.flow.intent is None
    assert response.collected_data == {}
    stored = await flow_engine.store.get(cid)
    assert stored["turnCount"] == 3
    assert len(stored["history"]) == 7

@pytest.mark.asyncio
async def test_messages_after_completion_offer_a_new_request(flow_engine):
    cid = (await flow_engine.start_conversation()).conversation_id
    await flow_engine.process_choice(cid, "onboarding")
    closing = await flow_engine.process_choice(cid, "end_conversation")
    assert closing.message == CLOSING_MESSAGE

    response = await flow_engine.process_message(cid, "anything else?")

    assert response.message == COMPLETED_MESSAGE
    assert response.state == "completed"

@pytest.mark.asyncio
async def test_unknown_conversation_is_an_input_error(flow_engine):
    response = await flow_engine.process_message("does-not-exist", "hello")

    assert response.error is True
    assert response.conversation_id == "does-not-exist"
    assert await flow_engine.store.get("does-not-exist") is None

@pytest.mark.asyncio
async def test_blank_message_leaves_context_untouched(flow_engine):
    cid = (await flow_engine.start_conversation()).conversation_id
    before = await flow_engine.store.get(cid)

    response = await flow_engine.process_message(cid, "   ")

    assert response.error is True
    after = await flow_engine.store.get(cid)
    assert after["turnCount"] == before["turnCount"] == 0
    assert after["history"] == before["history"]

@pytest.mark.asyncio
async def test_reset_conversation_deletes_context(flow_engine):
    cid = (await flow_engine.start_conversation()).conversation_id

    assert await flow_engine.reset_conversation(cid) is True
    assert await flow_engine.reset_conversation(cid) is False
    response = await flow_engine.process_message(cid, "hello")
    assert response.error is True

class BrokenStore(InMemoryContextStore):
    async def get(self, conversation_id):
        raise ContextStoreError("store offline")

@pytest.mark.asyncio
async def test_store_failures_propagate(test_settings):
    engine = FlowEngine(store=BrokenStore(), config=test_settings)

    with pytest.raises(ContextStoreError):
        await engine.process_message("any", "hello")


AI_TEXT = "Happy to help! Let's keep going with the next detail."

async def _at_employee_details(engine):
    cid = (await engine.start_conversation()).conversation_id
    await engine.process_choice(cid, "onboarding")
    await engine.process_choice(cid, "engineering")
    return cid

@pytest.mark.asyncio
async def test_multi_field_extraction_moves_to_next_step(ai_flow_engine, mock_gateway):
    cid = await _at_employee_details(ai_flow_engine)
    mock_gateway.extract_entities.return_value = {
        "employee_name": "Jane Doe",
        "job_title": "Policy Analyst",
        "start_date": "2026-11-02",
        "work_location": "Remote/Telework",
    }

    response = await ai_flow_engine.process_message(cid, "Jane Doe, Policy Analyst, starts 2026-11-02, remote")

    assert response.flow.current_step == 2
    assert response.flow.completed_steps == [0, 1]
    assert response.message == "What equipment package should IT prepare?"
    assert "standard_laptop" in [c.value for c in response.choices]
    assert response.collected_data["work_location"] == "remote"
    stored = await ai_flow_engine.store.get(cid)
    assert stored["missingFields"] == []

@pytest.mark.asyncio
async def test_awaiting_confirmation_skips_extraction(ai_flow_engine, mock_gateway):
    cid = (await ai_flow_engine.start_conversation()).conversation_id
    await _onboarding_to_confirmation(ai_flow_engine, cid)
    mock_gateway.extract_entities.reset_mock()

    response = await ai_flow_engine.process_message(cid, "Actually the name is John Smith")

    mock_gateway.extract_entities.assert_not_called()
    assert response.state == "awaiting_input"
    assert response.action_card.type == "confirmation"
    assert response.collected_data["employee_name"] == "Jane Doe"

@pytest.mark.asyncio
async def test_ai_text_on_data_steps_only(ai_flow_engine, mock_gateway):
    mock_gateway.generate.return_value = AI_TEXT
    cid = (await ai_flow_engine.start_conversation()).conversation_id

    response = await ai_flow_engine.process_choice(cid, "onboarding")
    assert response.message == AI_TEXT

    confirmation = await _onboarding_to_confirmation(ai_flow_engine, (await ai_flow_engine.start_conversation()).conversation_id)
    assert confirmation.action_card.type == "confirmation"
    assert AI_TEXT not in confirmation.message

    known_issue = await _it_support_to_known_issue(ai_flow_engine, (await ai_flow_engine.start_conversation()).conversation_id)
    assert known_issue.action_card.type == "auto_resolve"
    assert "VPN connection times out" in known_issue.message
    assert AI_TEXT not in known_issue.message

@pytest.mark.asyncio
async def test_recorded_fields_survive_later_empty_extraction(ai_flow_engine, mock_gateway):
    cid = await _at_employee_details(ai_flow_engine)
    mock_gateway.extract_entities.side_effect = [
        {"employee_name": "Jane Doe", "job_title": "Policy Analyst"},
        {"employee_name": "  "},
    ]

    await ai_flow_engine.process_message(cid, "Jane Doe, she'll be a Policy Analyst")
    response = await ai_flow_engine.process_message(cid, "2026-11-02")

    assert response.collected_data["employee_name"] == "Jane Doe"
    assert response.collected_data["job_title"] == "Policy Analyst"
    assert response.collected_data["start_date"] == "2026-11-02"
    stored = await ai_flow_engine.store.get(cid)
    assert stored["missingFields"] == ["work_location"]

@pytest.mark.asyncio
async def test_prompt_history_is_capped(ai_flow_engine, mock_gateway):
    mock_gateway.generate.return_value = AI_TEXT
    await _at_employee_details(ai_flow_engine)

    history = mock_gateway.generate.call_args.args[2]
    assert len(history) == 2
    assert history[0] == {"role": "user", "content": "onboarding"}
    assert history[1] == {"role": "assistant", "content": AI_TEXT}
