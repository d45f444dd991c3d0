import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence
from deskflow.core.observability import TraceManager
from deskflow.core.settings import settings, RecordSettings
from deskflow.services.records import RecordSink, RecordRef, SimulatingRecordSink
from deskflow.workflow.base import ActionKind, ActionSpec

logger = logging.getLogger(__name__)

@dataclass
class ActionResult:
    action_id: str
    title: str
    success: bool
    record_type: str
    number: Optional[str] = None
    record_id: Optional[str] = None
    simulated: bool = False
    error: Optional[str] = None
    related_numbers: List[str] = field(default_factory=list)

@dataclass
class ExecutionResult:
    success: bool
    results: List[ActionResult]

def _name(data: Dict[str, str]) -> str:
    return data.get("employee_name") or data.get("contractor_name") or "Unknown"

def build_hr_fields(action: ActionSpec, data: Dict[str, str]) -> Dict[str, str]:
    name = _name(data)
    return {
        "short_description": f"{action.title} - {name}",
        "description": (
            f"{action.description}\n"
            f"Name: {name}\n"
            f"Department: {data.get('department', 'N/A')}\n"
            f"Date: {data.get('start_date') or data.get('last_day') or data.get('end_date') or 'N/A'}\n"
            f"Job Title: {data.get('job_title', 'N/A')}\n"
            f"Location: {data.get('work_location', 'N/A')}"
        ),
        "subject_person": name,
        "priority": "3",
    }

def build_it_request_fields(action: ActionSpec, data: Dict[str, str]) -> Dict[str, str]:
    name = _name(data)
    return {
        "short_description": f"{action.title} - {name}",
        "description": (
            f"{action.description}\n"
            f"Name: {name}\n"
            f"Department: {data.get('department', 'N/A')}\n"
            f"Location: {data.get('work_location', 'N/A')}\n"
            f"Equipment: {data.get('equipment', 'N/A')}"
        ),
        "priority": "3",
    }

URGENCY_PRIORITY = {"high": "2", "medium": "3", "low": "4"}

def build_incident_fields(action: ActionSpec, data: Dict[str, str]) -> Dict[str, str]:
    category = data.get("category") or data.get("issue_category") or "general"
    description = data.get("issue_description") or "Reported via service desk assistant"
    return {
        "short_description": f"{category} issue - {description[:100]}",
        "description": (
            f"Category: {category}\n"
            f"Description: {data.get('issue_description', 'N/A')}\n"
            f"When Started: {data.get('when_started', 'N/A')}\n"
            f"Frequency: {data.get('frequency', 'N/A')}\n"
            f"Steps Tried: {data.get('steps_tried', 'N/A')}\n"
            f"Error Message: {data.get('error_message', 'None reported')}"
        ),
        "category": "IT Support",
        "subcategory": category,
        "urgency": data.get("urgency", "medium"),
        "priority": URGENCY_PRIORITY.get(data.get("urgency"), "3"),
    }

def build_task_fields(action: ActionSpec, data: Dict[str, str]) -> Dict[str, str]:
    name = _name(data)
    return {
        "short_description": f"{action.title} - {name}",
        "description": (
            f"New hire: {name}\n"
            f"Start Date: {data.get('start_date', 'N/A')}\n"
            f"Department: {data.get('department', 'N/A')}"
        ),
        "assigned_to": data.get("manager_name", ""),
        "priority": "3",
    }

class ActionExecutor:
    """
    Runs a flow's actions against the record sink. Sink failures are
    simulated; an error escaping a handler fails only that action.
    """

    def __init__(self, sink: Optional[RecordSink] = None, config: Optional[RecordSettings] = None):
        self.config = config or settings.records
        self.sink = sink if isinstance(sink, SimulatingRecordSink) else SimulatingRecordSink(sink, self.config)
        self.handlers = {
            ActionKind.HR: self._create_hr_case,
            ActionKind.IT: self._create_it_record,
            ActionKind.SERVICENOW: self._create_it_record,
            ActionKind.MANAGER: self._create_manager_task,
            ActionKind.SECURITY: self._run_security_action,
            ActionKind.DEFAULT: self._run_default_action,
        }

    async def execute(self, actions: Sequence[ActionSpec], collected_data: Dict[str, str]) -> ExecutionResult:
        results = []
        for action in actions:
            handler = self.handlers.get(action.type, self._run_default_action)
            try:
                ref, related = await handler(action, dict(collected_data))
                result = ActionResult(
                    action_id=action.id,
                    title=action.title,
                    success=True,
                    record_type=ref.table,
                    number=ref.number,
                    record_id=ref.id,
                    simulated=ref.simulated,
                    related_numbers=related,
                )
                TraceManager.audit("action_executed", action=action.id, number=ref.number, simulated=ref.simulated)
            except Exception as e:
                logger.error(f"Action failed: {action.title} - {e}", exc_info=True)
                result = ActionResult(
                    action_id=action.id,
                    title=action.title,
                    success=False,
                    record_type=action.table or action.type.value,
                    error=str(e),
                )
            results.append(result)

        return ExecutionResult(success=all(r.success for r in results), results=results)

    async def _create_hr_case(self, action: ActionSpec, data: Dict[str, str]):
        ref = await self.sink.create(action.table or "hr_case", build_hr_fields(action, data))
        return ref, []

    async def _create_it_record(self, action: ActionSpec, data: Dict[str, str]):
        if action.table == "incident":
            return await self.sink.create("incident", build_incident_fields(action, data)), []

        # A request plus its request item
        fields = build_it_request_fields(action, data)
        request = await self.sink.create(action.table or "sc_request", fields)
        item = await self.sink.create("sc_req_item", {**fields, "request": request.id})
        return request, [item.number]

    async def _create_manager_task(self, action: ActionSpec, data: Dict[str, str]):
        return await self.sink.create(action.table or "task", build_task_fields(action, data)), []

    async def _run_security_action(self, action: ActionSpec, data: Dict[str, str]):
        fields = {
            "short_description": f"{action.title} - {_name(data)}",
            "description": action.description,
            "subject_person": _name(data),
            "effective_date": data.get("end_date") or data.get("last_day", ""),
        }
        return await self.sink.create(action.table or "security", fields), []

    async def _run_default_action(self, action: ActionSpec, data: Dict[str, str]):
        ref: RecordRef = await self.sink.create(action.table or "default", {
            "short_description": action.title,
            "description": action.description,
        })
        return ref, []
