import logging
import uuid
from typing import Dict, List, Optional
from deskflow.core.errors import ConversationInputError
from deskflow.core.intents import (
    GENERAL, IT_SUPPORT, START_OVER, END_CONVERSATION, TRY_AGAIN, normalize_choice, resolve_choice_intent,
)
from deskflow.core.observability import TraceManager
from deskflow.core.settings import settings, AppSettings
from deskflow.services.actions import ActionExecutor
from deskflow.services.context_store import ContextStore
from deskflow.services.entity_extractor import (
    EntityExtractor, merge_fields, compute_missing_fields, capture_answer,
)
from deskflow.services.intent_classifier import IntentClassifier
from deskflow.services.known_issues import KnownIssueRepository, InMemoryKnownIssueRepository
from deskflow.services.responder import ResponseComposer
from deskflow.workflow.base import (
    FlowDefinition, ChoiceOption, WelcomeStep, ChoiceStep, DataCollectionStep, ConfirmationStep,
    KnownIssueCheckStep, ConditionalRoutingStep, ActionExecutionStep, SummaryStep, match_choice,
)
from deskflow.workflow.catalog import FlowCatalog
from deskflow.workflow.state import (
    Context, ConversationResponse, ActionCard, ChecklistItem, FlowStatus, KnownIssueMatch,
    PendingAction, RecordEntry,
)

logger = logging.getLogger(__name__)

MENU_MESSAGE = "Hello! I can help with employee onboarding, offboarding and IT support. What would you like to do?"
RESTART_MESSAGE = "Let's start fresh. What can I help you with?"
CLOSING_MESSAGE = "Thank you for using the service desk. Have a great day!"
CANCEL_MESSAGE = "No problem, I've cancelled that request. Nothing was submitted."
COMPLETED_MESSAGE = "This request is complete. Would you like to start a new one?"
DECLINED_FIX_MESSAGE = (
    "No problem, I won't apply that fix. Reply with more details, or pick "
    "Continue troubleshooting, and I'll keep diagnosing the issue."
)
CONTINUE_TROUBLESHOOTING = "continue_troubleshooting"
RETRY_MESSAGE = "Sorry, something went wrong on my side. Please try again."
AUTO_RESOLVE_ACTION_ID = "auto_resolve"

CLOSING_CHOICES = [
    ChoiceOption(label="Start a new request", value=START_OVER),
    ChoiceOption(label="Done", value=END_CONVERSATION),
]
CANCEL_CHOICES = [
    ChoiceOption(label="Start over", value=START_OVER),
    ChoiceOption(label="No thanks", value=END_CONVERSATION),
]
DECLINED_FIX_CHOICES = [
    ChoiceOption(label="Continue troubleshooting", value=CONTINUE_TROUBLESHOOTING),
    ChoiceOption(label="Start over", value=START_OVER),
]
RECOVERY_CHOICES = [
    ChoiceOption(label="Try again", value=TRY_AGAIN),
    ChoiceOption(label="Start over", value=START_OVER),
]

class FlowEngine:
    """
    Conversation state machine. One inbound event (message, choice, action)
    is processed to completion and persisted before the response is returned.
    Input errors produce an error response and leave the stored context untouched;
    context store failures propagate to the caller.
    """

    def __init__(
        self,
        store: ContextStore,
        catalog: Optional[FlowCatalog] = None,
        classifier: Optional[IntentClassifier] = None,
        extractor: Optional[EntityExtractor] = None,
        composer: Optional[ResponseComposer] = None,
        executor: Optional[ActionExecutor] = None,
        known_issues: Optional[KnownIssueRepository] = None,
        config: Optional[AppSettings] = None,
    ):
        self.config = config or settings
        self.store = store
        self.catalog = catalog or FlowCatalog()
        self.classifier = classifier or IntentClassifier(config=self.config.engine)
        self.extractor = extractor or EntityExtractor()
        self.composer = composer or ResponseComposer(config=self.config.engine)
        self.executor = executor or ActionExecutor(config=self.config.records)
        self.known_issues = known_issues or InMemoryKnownIssueRepository()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def start_conversation(self) -> ConversationResponse:
        ctx = Context(id=str(uuid.uuid4()))
        TraceManager.set_conversation_id(ctx.id)
        ctx.add_turn("assistant", MENU_MESSAGE)
        await self._save(ctx)
        TraceManager.audit("conversation_started")
        return self._reply(ctx, MENU_MESSAGE, choices=self.catalog.menu())

    async def reset_conversation(self, conversation_id: str) -> bool:
        TraceManager.set_conversation_id(conversation_id)
        deleted = await self.store.delete(conversation_id)
        TraceManager.audit("conversation_reset", deleted=deleted)
        return deleted

    async def sweep_expired(self, max_age_minutes: Optional[int] = None) -> int:
        max_age = max_age_minutes if max_age_minutes is not None else self.config.context.max_age_minutes
        removed = await self.store.sweep_expired(max_age)
        logger.info(f"Swept {removed} expired conversations (max age {max_age} min)")
        return removed

    @TraceManager.span("process_message")
    async def process_message(self, conversation_id: str, text: str) -> ConversationResponse:
        try:
            if not (text or "").strip():
                raise ConversationInputError("Please provide a message.", conversation_id)
            ctx = await self._load(conversation_id)
        except ConversationInputError as e:
            return self._input_error(e)

        text = text.strip()
        self._record_user_turn(ctx, text)
        reply = await self._handle_message(ctx, text)
        return await self._finish(ctx, reply)

    @TraceManager.span("process_choice")
    async def process_choice(self, conversation_id: str, value: str) -> ConversationResponse:
        try:
            if not (value or "").strip():
                raise ConversationInputError("Please select an option.", conversation_id)
            ctx = await self._load(conversation_id)
        except ConversationInputError as e:
            return self._input_error(e)

        value = value.strip()
        self._record_user_turn(ctx, value)
        reply = await self._handle_choice(ctx, value)
        return await self._finish(ctx, reply)

    @TraceManager.span("process_action")
    async def process_action(self, conversation_id: str, action_id: str, confirmed: bool) -> ConversationResponse:
        try:
            if not (action_id or "").strip():
                raise ConversationInputError("Please choose an action.", conversation_id)
            ctx = await self._load(conversation_id)
            pending = ctx.pending_action
            if pending is not None and pending.id != action_id:
                raise ConversationInputError("That action is no longer pending.", conversation_id)
            if pending is None and confirmed:
                raise ConversationInputError("There is nothing waiting for confirmation.", conversation_id)
        except ConversationInputError as e:
            return self._input_error(e)

        self._record_user_turn(ctx, "Confirmed" if confirmed else "Cancelled")
        if confirmed:
            reply = await self._confirm(ctx, pending)
        else:
            reply = self._cancel(ctx, pending)
        return await self._finish(ctx, reply)

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    async def _handle_message(self, ctx: Context, text: str) -> ConversationResponse:
        if ctx.state == "completed":
            return self._reply(ctx, COMPLETED_MESSAGE, choices=CLOSING_CHOICES)

        if ctx.intent is None or ctx.intent == GENERAL:
            result = await self.classifier.classify(text)
            self._set_intent(ctx, result.intent, result.confidence, result.source)

        flow = self.catalog.get(ctx.intent)
        if flow is None:
            return await self._general_reply(ctx, text)
        if not ctx.flow_started:
            return await self._start_flow(ctx, flow, text)
        if ctx.state == "awaiting_input":
            return await self._present_step(ctx, flow, user_message=text)

        step = flow.step_at(ctx.current_step)
        if isinstance(step, DataCollectionStep):
            return await self._collect(ctx, flow, step, text)
        if isinstance(step, (ChoiceStep, ConditionalRoutingStep)):
            value = match_choice(step.choices, text)
            if value is not None:
                return await self._apply_choice(ctx, flow, step, value)
            return await self._present_step(ctx, flow, user_message=text, lead="Please pick one of the options below.")
        return await self._present_step(ctx, flow, user_message=text)

    async def _handle_choice(self, ctx: Context, value: str) -> ConversationResponse:
        reserved = normalize_choice(value)
        if reserved == START_OVER:
            ctx.reset_flow()
            TraceManager.audit("conversation_restarted")
            return self._reply(ctx, RESTART_MESSAGE, choices=self.catalog.menu())
        if reserved == END_CONVERSATION:
            ctx.state = "completed"
            ctx.pending_action = None
            return self._reply(ctx, CLOSING_MESSAGE, choices=[ChoiceOption(label="Start a new request", value=START_OVER)])
        if reserved == TRY_AGAIN:
            flow = self.catalog.get(ctx.intent)
            if flow is None or not ctx.flow_started:
                return self._reply(ctx, MENU_MESSAGE, choices=self.catalog.menu())
            return await self._present_step(ctx, flow)

        # A flow choice on a finished conversation starts that flow afresh
        if ctx.state == "completed" and resolve_choice_intent(value) is not None:
            ctx.reset_flow()
            TraceManager.audit("conversation_restarted")

        if ctx.intent is None or ctx.intent == GENERAL:
            intent = resolve_choice_intent(value)
            if intent is not None:
                self._set_intent(ctx, intent, 1.0, "choice")
            else:
                result = await self.classifier.classify(value)
                self._set_intent(ctx, result.intent, result.confidence, result.source)
            flow = self.catalog.get(ctx.intent)
            if flow is None:
                return await self._general_reply(ctx, value)
            return await self._start_flow(ctx, flow, value)

        if ctx.state == "completed":
            return self._reply(ctx, COMPLETED_MESSAGE, choices=CLOSING_CHOICES)

        flow = self.catalog.get(ctx.intent)
        if not ctx.flow_started:
            return await self._start_flow(ctx, flow, value)
        if ctx.state == "awaiting_input":
            return await self._present_step(ctx, flow)

        return await self._apply_choice(ctx, flow, flow.step_at(ctx.current_step), value)

    async def _confirm(self, ctx: Context, pending: PendingAction) -> ConversationResponse:
        flow = self.catalog.get(ctx.intent)
        ctx.pending_action = None
        ctx.state = "active"

        if pending.type == "auto_resolve":
            return await self._auto_resolve(ctx)

        action_index = flow.action_step_from(ctx.current_step)
        if action_index is None:
            # Confirmation with nothing to run: move on
            self._advance(ctx, flow)
            return await self._present_step(ctx, flow)

        step: ActionExecutionStep = flow.step_at(action_index)
        execution = await self.executor.execute(step.actions, ctx.collected_data)

        items = []
        created = []
        for result in execution.results:
            if result.success:
                items.append(ChecklistItem(label=result.title, status="completed", detail=result.number or ""))
                created.append(RecordEntry(
                    record_type=result.record_type,
                    id=result.record_id or "",
                    display_number=result.number or "",
                    label=result.title,
                    simulated=result.simulated,
                ))
                for number in result.related_numbers:
                    created.append(RecordEntry(
                        record_type="sc_req_item",
                        id="",
                        display_number=number,
                        label=f"{result.title} Item",
                        simulated=result.simulated,
                    ))
            else:
                items.append(ChecklistItem(label=result.title, status="error", detail=result.error or "Failed"))
        ctx.active_records.extend(created)

        if ctx.current_step != action_index:
            self._advance(ctx, flow, action_index)
        self._advance(ctx, flow)

        card = ActionCard(
            id=f"{flow.intent}_results",
            type="checklist",
            title="Actions Completed" if execution.success else "Actions Completed With Errors",
            items=items,
        )
        return await self._present_step(ctx, flow, card=card, records=created)

    def _cancel(self, ctx: Context, pending: Optional[PendingAction]) -> ConversationResponse:
        declined_fix = pending is not None and pending.type == "auto_resolve" and ctx.known_issue is not None
        if declined_fix:
            ctx.declined_known_issue = ctx.known_issue.id
            ctx.known_issue = None
        ctx.pending_action = None
        if ctx.state == "awaiting_input":
            ctx.state = "active"
        TraceManager.audit("action_cancelled", action=pending.id if pending else None)
        if declined_fix:
            # Any reply moves past the known-issue step to diagnostics
            return self._reply(ctx, DECLINED_FIX_MESSAGE, choices=DECLINED_FIX_CHOICES)
        return self._reply(ctx, CANCEL_MESSAGE, choices=CANCEL_CHOICES)

    async def _auto_resolve(self, ctx: Context) -> ConversationResponse:
        issue = ctx.known_issue
        if issue is not None:
            await self.known_issues.record_hit(issue.id)
            TraceManager.audit("known_issue_resolved", known_issue=issue.id, title=issue.title)
        ctx.state = "completed"
        ctx.outcome = "resolved"
        return self._reply(
            ctx,
            "Resolution applied! Please verify the issue is resolved. "
            "If the problem persists, start a new request and I'll open an incident for you.",
            choices=[
                ChoiceOption(label="It's fixed, thanks", value=END_CONVERSATION),
                ChoiceOption(label="Still having issues", value=IT_SUPPORT),
            ],
        )

    # ------------------------------------------------------------------
    # Flow mechanics
    # ------------------------------------------------------------------

    def _set_intent(self, ctx: Context, intent: str, confidence: float, source: str):
        ctx.intent = intent
        ctx.confidence = confidence
        ctx.intent_source = source
        ctx.current_step = 0
        ctx.completed_steps = []
        ctx.missing_fields = []
        ctx.flow_started = False
        TraceManager.audit("intent_detected", intent=intent, confidence=confidence, source=source)

    async def _start_flow(self, ctx: Context, flow: FlowDefinition, user_message: str) -> ConversationResponse:
        ctx.flow_started = True
        ctx.current_step = 0
        ctx.state = "active"
        ctx.outcome = None
        ctx.pending_action = None
        return await self._present_step(ctx, flow, user_message=user_message, lead=flow.welcome)

    def _advance(self, ctx: Context, flow: FlowDefinition, target: Optional[int] = None) -> Optional[int]:
        """Completes the current step and moves forward. Returns the new index, None at flow end."""
        ctx.completed_steps.append(ctx.current_step)
        next_index = target if target is not None else flow.next_index(ctx.current_step)
        if next_index is None:
            ctx.state = "completed"
            ctx.outcome = ctx.outcome or "completed"
            return None
        TraceManager.audit("step_advanced", intent=flow.intent, from_step=ctx.current_step, to_step=next_index)
        ctx.current_step = next_index
        ctx.missing_fields = []
        return next_index

    async def _collect(self, ctx: Context, flow: FlowDefinition, step: DataCollectionStep, text: str) -> ConversationResponse:
        missing = compute_missing_fields(step.fields, ctx.collected_data)
        asked = missing[0] if missing else None

        extracted = await self.extractor.extract(text, step.fields)
        if not extracted:
            value = capture_answer(asked, text)
            if value is not None:
                extracted = {asked.name: value}

        ctx.collected_data = merge_fields(ctx.collected_data, extracted)
        missing = compute_missing_fields(step.fields, ctx.collected_data)
        ctx.missing_fields = [f.name for f in missing]

        if not missing:
            self._advance(ctx, flow)
            return await self._present_step(ctx, flow, user_message=text)

        lead = None
        if not extracted and asked is not None and asked.choices:
            lead = "Please pick one of the options below."
        return await self._present_step(ctx, flow, user_message=text, lead=lead)

    async def _apply_choice(self, ctx: Context, flow: FlowDefinition, step, value: str) -> ConversationResponse:
        if isinstance(step, ConditionalRoutingStep):
            matched = match_choice(step.choices, value)
            target = flow.route_index(ctx.current_step, matched) if matched else None
            if target is not None:
                self._advance(ctx, flow, target)
                return await self._present_step(ctx, flow)

        if isinstance(step, DataCollectionStep):
            missing = compute_missing_fields(step.fields, ctx.collected_data)
            if missing:
                asked = missing[0]
                stored = match_choice(asked.choices, value) if asked.choices else value
                if stored is None:
                    return await self._present_step(ctx, flow, lead="Please pick one of the options below.")
                ctx.collected_data = merge_fields(ctx.collected_data, {asked.name: stored})
                missing = compute_missing_fields(step.fields, ctx.collected_data)
                ctx.missing_fields = [f.name for f in missing]
            if missing:
                return await self._present_step(ctx, flow)
            self._advance(ctx, flow)
            return await self._present_step(ctx, flow)

        if isinstance(step, (ChoiceStep, ConditionalRoutingStep)):
            stored = match_choice(step.choices, value) or value
            ctx.collected_data = merge_fields(ctx.collected_data, {step.field: stored})
            self._advance(ctx, flow)
            return await self._present_step(ctx, flow)

        return await self._present_step(ctx, flow)

    async def _present_step(
        self,
        ctx: Context,
        flow: FlowDefinition,
        user_message: str = "",
        lead: Optional[str] = None,
        card: Optional[ActionCard] = None,
        records: Optional[List[RecordEntry]] = None,
    ) -> ConversationResponse:
        """Renders the current step, passing through steps that need no user input."""
        if ctx.state == "completed":
            return self._reply(ctx, self._join(lead, COMPLETED_MESSAGE), choices=CLOSING_CHOICES, card=card)

        step = flow.step_at(ctx.current_step)

        if isinstance(step, WelcomeStep):
            self._advance(ctx, flow)
            return await self._present_step(ctx, flow, user_message, self._join(lead, step.content), card, records)

        if isinstance(step, DataCollectionStep):
            missing = compute_missing_fields(step.fields, ctx.collected_data)
            ctx.missing_fields = [f.name for f in missing]
            if not missing:
                self._advance(ctx, flow)
                return await self._present_step(ctx, flow, user_message, lead, card, records)
            asked = missing[0]
            # Step intro only before anything in this step has been answered
            fresh = not any(ctx.collected_data.get(f.name) for f in step.fields)
            prompt = f"{step.content} {asked.prompt}" if fresh and step.content != asked.prompt else asked.prompt
            message = await self._compose(ctx, flow, step, self._join(lead, prompt), user_message, missing)
            return self._reply(ctx, message, choices=list(asked.choices), card=card)

        if isinstance(step, (ChoiceStep, ConditionalRoutingStep)):
            message = await self._compose(ctx, flow, step, self._join(lead, step.content), user_message)
            return self._reply(ctx, message, choices=list(step.choices), card=card)

        if isinstance(step, KnownIssueCheckStep):
            return await self._check_known_issue(ctx, flow, step, user_message, lead, card, records)

        if isinstance(step, (ConfirmationStep, ActionExecutionStep)):
            title = step.action_title if isinstance(step, ConfirmationStep) else step.name
            pending = ctx.pending_action or PendingAction(id=f"{flow.intent}_{step.key}", type="confirmation", title=title)
            ctx.pending_action = pending
            ctx.state = "awaiting_input"
            return self._reply(ctx, self._join(lead, step.content), card=self._confirmation_card(ctx, flow, pending))

        if isinstance(step, SummaryStep):
            ctx.state = "completed"
            ctx.outcome = step.outcome
            TraceManager.audit("flow_completed", intent=flow.intent, outcome=step.outcome)
            lines = [f"- {r.label}: {r.display_number}" for r in (records or [])]
            message = self._join(lead, step.content, "\n".join(lines) if lines else None)
            return self._reply(ctx, message, choices=CLOSING_CHOICES, card=card)

        return self._reply(ctx, self._join(lead, "Please continue."), card=card)

    async def _check_known_issue(self, ctx, flow, step: KnownIssueCheckStep, user_message, lead, card, records):
        if ctx.state == "awaiting_input" and ctx.known_issue is not None:
            return self._reply(ctx, self._join(lead, self._known_issue_message(ctx.known_issue)),
                               card=self._known_issue_card(ctx.known_issue))

        category = ctx.collected_data.get(step.category_field) or ctx.collected_data.get("issue_category") or ""
        description = ctx.collected_data.get(step.description_field) or ""
        issue = await self.known_issues.match(category, description)
        if issue is not None and issue.id == ctx.declined_known_issue:
            issue = None

        if issue is None:
            self._advance(ctx, flow)
            return await self._present_step(ctx, flow, user_message, lead, card, records)

        ctx.known_issue = KnownIssueMatch(
            id=issue.id,
            title=issue.title,
            category=issue.category,
            resolution=issue.resolution,
            resolution_steps=list(issue.resolution_steps),
            confidence=issue.confidence,
        )
        ctx.pending_action = PendingAction(id=AUTO_RESOLVE_ACTION_ID, type="auto_resolve", title="Apply Known Resolution")
        ctx.state = "awaiting_input"
        TraceManager.audit("known_issue_matched", known_issue=issue.id, category=category)
        return self._reply(ctx, self._join(lead, self._known_issue_message(ctx.known_issue)),
                           card=self._known_issue_card(ctx.known_issue))

    async def _general_reply(self, ctx: Context, text: str) -> ConversationResponse:
        message = await self.composer.compose(
            MENU_MESSAGE,
            user_message=text,
            history=self._history_for_prompt(ctx),
        )
        return self._reply(ctx, message, choices=self.catalog.menu())

    async def _compose(self, ctx: Context, flow: FlowDefinition, step, static_text: str, user_message: str, missing=None) -> str:
        return await self.composer.compose(
            static_text,
            step=step,
            flow_name=flow.name,
            user_message=user_message,
            collected_data=dict(ctx.collected_data),
            missing_fields=missing,
            history=self._history_for_prompt(ctx),
        )

    # ------------------------------------------------------------------
    # Cards and responses
    # ------------------------------------------------------------------

    def _field_labels(self, flow: FlowDefinition) -> Dict[str, str]:
        labels = {}
        for step in flow.steps:
            if isinstance(step, DataCollectionStep):
                labels.update({f.name: f.label for f in step.fields})
            elif isinstance(step, (ChoiceStep, ConditionalRoutingStep)):
                labels[step.field] = step.name
        return labels

    def _confirmation_card(self, ctx: Context, flow: FlowDefinition, pending: PendingAction) -> ActionCard:
        labels = self._field_labels(flow)
        items = [
            ChecklistItem(label=labels.get(name, name.replace("_", " ").title()), status="pending", detail=value)
            for name, value in ctx.collected_data.items()
        ]
        summary = "; ".join(f"{item.label}: {item.detail}" for item in items)
        return ActionCard(id=pending.id, type="confirmation", title=pending.title, description=summary, items=items)

    @staticmethod
    def _known_issue_message(issue: KnownIssueMatch) -> str:
        return f"I found a known resolution for your issue:\n\n{issue.title}\n\n{issue.resolution}"

    @staticmethod
    def _known_issue_card(issue: KnownIssueMatch) -> ActionCard:
        return ActionCard(
            id=AUTO_RESOLVE_ACTION_ID,
            type="auto_resolve",
            title="Apply Known Resolution",
            description=issue.title,
            items=[ChecklistItem(label=s, status="pending") for s in issue.resolution_steps],
        )

    @staticmethod
    def _join(*parts: Optional[str]) -> str:
        return "\n\n".join(p for p in parts if p)

    def _history_for_prompt(self, ctx: Context) -> List[Dict[str, str]]:
        # The latest user turn is sent separately as the prompt input
        turns = [t.model_dump() for t in ctx.history]
        if turns and turns[-1]["role"] == "user":
            turns = turns[:-1]
        return turns

    def _reply(
        self,
        ctx: Context,
        message: str,
        choices: Optional[List[ChoiceOption]] = None,
        card: Optional[ActionCard] = None,
    ) -> ConversationResponse:
        flow = self.catalog.get(ctx.intent)
        return ConversationResponse(
            conversation_id=ctx.id,
            message=message,
            choices=list(choices or []),
            action_card=card,
            flow=FlowStatus(
                intent=ctx.intent,
                current_step=ctx.current_step,
                total_steps=flow.total_steps if flow else 0,
                completed_steps=list(ctx.completed_steps),
            ),
            collected_data=dict(ctx.collected_data),
            active_records=list(ctx.active_records),
            state=ctx.state,
            outcome=ctx.outcome,
        )

    def _input_error(self, error: ConversationInputError) -> ConversationResponse:
        logger.info(f"Rejected input for conversation {error.conversation_id}: {error}")
        return ConversationResponse(
            conversation_id=error.conversation_id,
            message=f"Sorry, I couldn't process that. {error}",
            choices=[ChoiceOption(label="Start over", value=START_OVER)],
            error=True,
        )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def _load(self, conversation_id: str) -> Context:
        if not conversation_id:
            raise ConversationInputError("A conversation id is required.")
        TraceManager.set_conversation_id(conversation_id)
        document = await self.store.get(conversation_id)
        if document is None:
            raise ConversationInputError("That conversation was not found. Please start a new one.", conversation_id)
        return Context.from_document(document)

    @staticmethod
    def _record_user_turn(ctx: Context, content: str):
        ctx.turn_count += 1
        ctx.add_turn("user", content)

    async def _save(self, ctx: Context):
        await self.store.update(ctx.id, ctx.to_document())

    async def _finish(self, ctx: Context, reply: ConversationResponse) -> ConversationResponse:
        ctx.add_turn("assistant", reply.message)
        await self._save(ctx)
        return reply
