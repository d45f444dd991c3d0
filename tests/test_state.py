from deskflow.workflow.state import Context, ConversationResponse, PendingAction, RecordEntry

def test_document_uses_camel_case_and_round_trips():
    ctx = Context(id="c1", intent="onboarding", current_step=2, completed_steps=[0, 1],
                  collected_data={"department": "legal"},
                  pending_action=PendingAction(id="onboarding_confirm", type="confirmation", title="Confirm"),
                  active_records=[RecordEntry(record_type="incident", id="sim-1", display_number="INC123456",
                                              label="IT Support Incident", simulated=True)])
    ctx.add_turn("user", "hello")
    ctx.add_turn("assistant", "")

    document = ctx.to_document()

    assert document["currentStep"] == 2
    assert document["collectedData"] == {"department": "legal"}
    assert document["pendingAction"]["id"] == "onboarding_confirm"
    assert document["activeRecords"][0]["displayNumber"] == "INC123456"
    assert "lastUpdated" not in document
    assert len(document["history"]) == 1
    assert Context.from_document(document) == ctx

def test_document_with_last_updated_loads():
    ctx = Context.from_document({"id": "c1", "lastUpdated": "2026-10-19T09:00:00+00:00"})
    assert ctx.last_updated.year == 2026
    assert ctx.state == "active"

def test_reset_flow_keeps_history_and_records():
    ctx = Context(id="c1", intent="it_support", flow_started=True, turn_count=4, state="completed")
    ctx.add_turn("user", "vpn broken")

    ctx.reset_flow()

    assert ctx.intent is None
    assert ctx.flow_started is False
    assert ctx.state == "active"
    assert ctx.turn_count == 4
    assert len(ctx.history) == 1

def test_response_serialises_with_camel_case():
    body = ConversationResponse(conversation_id="c1", message="hi").model_dump(by_alias=True)
    assert body["conversationId"] == "c1"
    assert body["flow"]["totalSteps"] == 0
    assert body["actionCard"] is None
