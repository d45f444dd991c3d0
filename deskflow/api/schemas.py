from typing import Optional
from pydantic import Field
from deskflow.workflow.state import CamelModel

class MessageRequest(CamelModel):
    message: str

class ChoiceRequest(CamelModel):
    value: str
    label: Optional[str] = None

class ActionRequest(CamelModel):
    action_id: str
    confirmed: bool

class SweepRequest(CamelModel):
    max_age_minutes: Optional[int] = Field(None, ge=0)

class SweepResponse(CamelModel):
    removed: int

class ResetResponse(CamelModel):
    conversation_id: str
    deleted: bool

class HealthResponse(CamelModel):
    status: str
    env: str
    context_backend: str
    llm_available: Optional[bool] = None
