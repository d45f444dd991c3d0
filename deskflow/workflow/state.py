from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from deskflow.workflow.base import ChoiceOption

class CamelModel(BaseModel):
    """Serialises with camelCase keys, accepts either spelling."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class HistoryTurn(CamelModel):
    role: Literal["user", "assistant"]
    content: str

class RecordEntry(CamelModel):
    record_type: str
    id: str
    display_number: str
    label: str
    simulated: bool = False

class KnownIssueMatch(CamelModel):
    id: str
    title: str
    category: str
    resolution: str
    resolution_steps: List[str] = Field(default_factory=list)
    confidence: float = 0.0

class PendingAction(CamelModel):
    id: str
    type: Literal["confirmation", "auto_resolve"]
    title: str

class Context(CamelModel):
    """Persisted state of one conversation. The JSON document form is the storage contract."""

    id: str
    intent: Optional[str] = None
    current_step: int = 0
    completed_steps: List[int] = Field(default_factory=list)
    collected_data: Dict[str, str] = Field(default_factory=dict)
    missing_fields: List[str] = Field(default_factory=list)
    history: List[HistoryTurn] = Field(default_factory=list)
    state: Literal["active", "awaiting_input", "completed"] = "active"
    outcome: Optional[str] = None
    turn_count: int = 0
    active_records: List[RecordEntry] = Field(default_factory=list)
    flow_started: bool = False
    confidence: Optional[float] = None
    intent_source: Optional[str] = None
    known_issue: Optional[KnownIssueMatch] = None
    declined_known_issue: Optional[str] = None
    pending_action: Optional[PendingAction] = None
    last_updated: Optional[datetime] = None

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "Context":
        return cls.model_validate(document)

    def to_document(self) -> Dict[str, Any]:
        # lastUpdated is owned by the store
        return self.model_dump(mode="json", by_alias=True, exclude={"last_updated"})

    def add_turn(self, role: str, content: str):
        if content:
            self.history.append(HistoryTurn(role=role, content=content))

    def reset_flow(self):
        """Back to the initial state. History, records and turn count survive."""
        self.intent = None
        self.current_step = 0
        self.completed_steps = []
        self.collected_data = {}
        self.missing_fields = []
        self.state = "active"
        self.outcome = None
        self.flow_started = False
        self.confidence = None
        self.intent_source = None
        self.known_issue = None
        self.declined_known_issue = None
        self.pending_action = None

class ChecklistItem(CamelModel):
    label: str
    status: Literal["pending", "completed", "error"] = "pending"
    detail: str = ""

class ActionCard(CamelModel):
    id: str
    type: Literal["confirmation", "auto_resolve", "checklist"]
    title: str
    description: str = ""
    items: List[ChecklistItem] = Field(default_factory=list)

class FlowStatus(CamelModel):
    intent: Optional[str] = None
    current_step: int = 0
    total_steps: int = 0
    completed_steps: List[int] = Field(default_factory=list)

class ConversationResponse(CamelModel):
    conversation_id: Optional[str] = None
    message: str
    choices: List[ChoiceOption] = Field(default_factory=list)
    action_card: Optional[ActionCard] = None
    flow: FlowStatus = Field(default_factory=FlowStatus)
    collected_data: Dict[str, str] = Field(default_factory=dict)
    active_records: List[RecordEntry] = Field(default_factory=list)
    state: str = "active"
    outcome: Optional[str] = None
    error: bool = False
