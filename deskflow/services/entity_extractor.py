import logging
from typing import Dict, List, Optional, Sequence
from deskflow.workflow.base import FieldSpec, match_choice

logger = logging.getLogger(__name__)

class EntityExtractor:
    """Pulls field values out of free text. Never raises; failure means nothing extracted."""

    def __init__(self, gateway=None, enabled: bool = True):
        self.gateway = gateway
        self.enabled = enabled and gateway is not None

    async def extract(self, message: str, schema: Sequence[FieldSpec]) -> Dict[str, str]:
        if not self.enabled or not schema or not (message or "").strip():
            return {}
        try:
            raw = await self.gateway.extract_entities(message, list(schema))
        except Exception as e:
            logger.warning(f"Entity extraction failed: {e}")
            return {}

        extracted = {}
        by_name = {f.name: f for f in schema}
        for name, value in (raw or {}).items():
            spec = by_name.get(name)
            value = str(value).strip() if value is not None else ""
            if spec is None or not value:
                continue
            if spec.choices:
                # Choice fields only accept one of their options
                value = match_choice(spec.choices, value)
                if value is None:
                    continue
            extracted[name] = value
        return extracted

def merge_fields(collected: Dict[str, str], extracted: Dict[str, str]) -> Dict[str, str]:
    """Non-empty values overwrite; empty values never clear what was collected."""
    merged = dict(collected)
    for name, value in extracted.items():
        if value is not None and str(value).strip():
            merged[name] = str(value).strip()
    return merged

def compute_missing_fields(schema: Sequence[FieldSpec], collected: Dict[str, str]) -> List[FieldSpec]:
    return [f for f in schema if f.required and not (collected.get(f.name) or "").strip()]

def capture_answer(field: Optional[FieldSpec], message: str) -> Optional[str]:
    """Deterministic fallback: the raw reply answers the field that was just asked."""
    if field is None:
        return None
    text = (message or "").strip()
    if not text:
        return None
    if field.choices:
        return match_choice(field.choices, text)
    return text
