from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from deskflow.core.errors import FlowDefinitionError

class ChoiceOption(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    value: str

def match_choice(choices: List[ChoiceOption], text: str) -> Optional[str]:
    """Value of the option whose label or value equals `text` (case-insensitive)."""
    needle = (text or "").strip().lower()
    if not needle:
        return None
    for choice in choices:
        if needle in (choice.value.lower(), choice.label.lower()):
            return choice.value
    return None

class FieldSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    label: str
    type: Literal["text", "date", "choice"] = "text"
    required: bool = True
    prompt: str
    choices: List[ChoiceOption] = Field(default_factory=list)

class ActionKind(str, Enum):
    HR = "hr"
    IT = "it"
    SERVICENOW = "servicenow"
    MANAGER = "manager"
    SECURITY = "security"
    DEFAULT = "default"

    @classmethod
    def _missing_(cls, value):
        return cls.DEFAULT

class ActionSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    type: ActionKind = ActionKind.DEFAULT
    title: str
    description: str = ""
    table: Optional[str] = None

    @field_validator("type", mode="before")
    @classmethod
    def unknown_kind_is_default(cls, value):
        # Unrecognised kinds dispatch to the default handler
        return ActionKind(value)

class _Step(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    name: str
    content: str
    next_step: Optional[str] = None

class WelcomeStep(_Step):
    type: Literal["welcome"] = "welcome"

class ChoiceStep(_Step):
    type: Literal["choice"] = "choice"
    field: str
    choices: List[ChoiceOption] = Field(min_length=1)

class DataCollectionStep(_Step):
    type: Literal["data_collection", "sequential_data_collection", "identity_verification", "security_assessment"] = "data_collection"
    fields: List[FieldSpec] = Field(min_length=1)

class ConfirmationStep(_Step):
    type: Literal["confirmation", "awaiting_input"] = "confirmation"
    action_title: str = "Please confirm"

class KnownIssueCheckStep(_Step):
    type: Literal["known_issue_check"] = "known_issue_check"
    category_field: str = "category"
    description_field: str = "issue_description"

class ConditionalRoutingStep(_Step):
    type: Literal["conditional_routing"] = "conditional_routing"
    field: str
    choices: List[ChoiceOption] = Field(min_length=1)
    routes: Dict[str, str] = Field(default_factory=dict)

class ActionExecutionStep(_Step):
    type: Literal["action_execution"] = "action_execution"
    actions: List[ActionSpec] = Field(min_length=1)

class SummaryStep(_Step):
    type: Literal["summary"] = "summary"
    outcome: str

Step = Annotated[
    Union[
        WelcomeStep,
        ChoiceStep,
        DataCollectionStep,
        ConfirmationStep,
        KnownIssueCheckStep,
        ConditionalRoutingStep,
        ActionExecutionStep,
        SummaryStep,
    ],
    Field(discriminator="type"),
]

class FlowDefinition(BaseModel):
    """
    Ordered steps for one intent. Steps are addressed by index; `next_step`
    and routing targets name step keys and may only point forward.
    """
    model_config = ConfigDict(frozen=True)

    intent: str
    name: str
    welcome: str
    steps: List[Step] = Field(min_length=1)

    @model_validator(mode="after")
    def check_links(self):
        keys = [step.key for step in self.steps]
        if len(set(keys)) != len(keys):
            raise FlowDefinitionError(f"Flow '{self.intent}' has duplicate step keys")

        positions = {key: i for i, key in enumerate(keys)}
        for i, step in enumerate(self.steps):
            targets = [step.next_step] if step.next_step else []
            if isinstance(step, ConditionalRoutingStep):
                targets.extend(step.routes.values())
                routed = set(step.routes)
                offered = {c.value for c in step.choices}
                if not routed <= offered:
                    raise FlowDefinitionError(f"Step '{step.key}' routes values it does not offer: {sorted(routed - offered)}")
            for target in targets:
                if target not in positions:
                    raise FlowDefinitionError(f"Step '{step.key}' points at unknown step '{target}'")
                if positions[target] <= i:
                    raise FlowDefinitionError(f"Step '{step.key}' points backwards to '{target}'")
        return self

    @property
    def total_steps(self) -> int:
        return len(self.steps)

    def step_at(self, index: int):
        if 0 <= index < len(self.steps):
            return self.steps[index]
        return None

    def index_of(self, key: str) -> int:
        for i, step in enumerate(self.steps):
            if step.key == key:
                return i
        raise KeyError(key)

    def next_index(self, index: int) -> Optional[int]:
        """Index following `index`, or None when the flow is complete."""
        step = self.step_at(index)
        if step is None:
            return None
        if step.next_step:
            return self.index_of(step.next_step)
        if index + 1 < len(self.steps):
            return index + 1
        return None

    def route_index(self, index: int, value: str) -> Optional[int]:
        step = self.step_at(index)
        if isinstance(step, ConditionalRoutingStep) and value in step.routes:
            return self.index_of(step.routes[value])
        return None

    def action_step_from(self, index: int) -> Optional[int]:
        """Index of the action step at or after `index`."""
        for i in range(max(index, 0), len(self.steps)):
            if isinstance(self.steps[i], ActionExecutionStep):
                return i
        return None
