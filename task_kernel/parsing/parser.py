"""
Response Parser — turns untrusted language-model output into a PENDING Task.

Behavioral Contract:
- Tolerates formatting noise: surrounding whitespace and Markdown code fences.
- Tolerates unknown slot types (degrade to ``string``) and unknown keys.
- Never invents a task: anything structurally wrong raises MalformedResponseError
  carrying the raw text, and the caller decides how to recover.
"""

import json
import logging
import re
from typing import Any, Dict, Optional

from pydantic import BaseModel, ValidationError, ValidationInfo, field_validator

from task_kernel.errors import MalformedResponseError
from task_kernel.log import preview
from task_kernel.models.intent import Intent
from task_kernel.models.slot import DynamicValue, Slot, SlotType
from task_kernel.models.task import Task, TaskContext, TaskStatus

logger = logging.getLogger(__name__)

_FENCE_OPEN = re.compile(r"^```[ \t]*[A-Za-z0-9_+-]*[ \t]*\r?\n?")
_FENCE_CLOSE = re.compile(r"\r?\n?[ \t]*```$")


# --- Intermediate schema (what the model is asked to produce) ---

class ParsedIntent(BaseModel):
    domain: str
    action: str
    confidence: float = 1.0

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value: Any) -> float:
        if value is None or isinstance(value, bool):
            return 1.0
        try:
            confidence = float(value)
        except (TypeError, ValueError):
            return 1.0
        if confidence != confidence:  # NaN
            return 1.0
        return min(1.0, max(0.0, confidence))


class ParsedSlot(BaseModel):
    name: Optional[str] = None
    type: SlotType = SlotType.STRING
    required: bool = True
    value: DynamicValue = None
    resolved: bool = False
    description: Optional[str] = None

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value: Any) -> SlotType:
        return SlotType.coerce(value)

    @field_validator("description", mode="before")
    @classmethod
    def _stringify_description(cls, value: Any) -> Optional[str]:
        return None if value is None else str(value)

    @field_validator("required", "resolved", mode="before")
    @classmethod
    def _default_non_bool(cls, value: Any, info: ValidationInfo) -> bool:
        # null or junk flags fall back to the field default
        if isinstance(value, bool):
            return value
        return cls.model_fields[info.field_name].default


class ParsedTaskResponse(BaseModel):
    intent: ParsedIntent
    slots: Dict[str, ParsedSlot]

    @field_validator("slots", mode="before")
    @classmethod
    def _index_slot_list(cls, value: Any) -> Any:
        # Some models return a list of slot objects instead of a name-keyed map.
        if isinstance(value, list) and all(
            isinstance(item, dict) and isinstance(item.get("name"), str)
            for item in value
        ):
            return {item["name"]: item for item in value}
        return value


def strip_code_fence(raw: str) -> str:
    """Remove optional ```/```json wrapping and surrounding whitespace."""
    cleaned = raw.strip()
    if cleaned.startswith("```"):
        cleaned = _FENCE_OPEN.sub("", cleaned, count=1)
    if cleaned.endswith("```"):
        cleaned = _FENCE_CLOSE.sub("", cleaned, count=1)
    return cleaned.strip()


class TaskParser:
    """Parses completion-service output into Task objects."""

    def parse(self, raw: str, context: Optional[TaskContext] = None) -> Task:
        """
        Parse ``raw`` into a PENDING Task attached to ``context``.

        Raises MalformedResponseError on invalid JSON, a non-object root,
        or a missing/ill-shaped ``intent`` or ``slots``.
        """
        if not isinstance(raw, str):
            raise MalformedResponseError(repr(raw), "response is not text")

        cleaned = strip_code_fence(raw)
        logger.debug("Parsing task payload: %s", preview(cleaned))

        try:
            payload = json.loads(cleaned)
        except json.JSONDecodeError as e:
            return self._fail(raw, f"invalid JSON: {e.msg} at position {e.pos}")

        if not isinstance(payload, dict):
            return self._fail(raw, f"expected a JSON object, got {type(payload).__name__}")

        try:
            parsed = ParsedTaskResponse.model_validate(payload)
        except ValidationError as e:
            return self._fail(raw, _summarize(e))

        return self._build_task(parsed, context or TaskContext())

    def _build_task(self, parsed: ParsedTaskResponse, context: TaskContext) -> Task:
        slots = {}
        for key, parsed_slot in parsed.slots.items():
            slots[key] = Slot(
                name=key,
                type=parsed_slot.type,
                required=parsed_slot.required,
                value=parsed_slot.value,
                # A slot only counts as resolved when it actually carries a value.
                resolved=parsed_slot.resolved and parsed_slot.value is not None,
                description=parsed_slot.description,
            )

        return Task(
            intent=Intent(
                domain=parsed.intent.domain,
                action=parsed.intent.action,
                confidence=parsed.intent.confidence,
            ),
            status=TaskStatus.PENDING,
            slots=slots,
            context=context,
        )

    def _fail(self, raw: str, reason: str):
        logger.warning("Rejected task payload (%s): %s", reason, preview(raw))
        raise MalformedResponseError(raw, reason)


def _summarize(error: ValidationError) -> str:
    parts = []
    for item in error.errors()[:3]:
        location = ".".join(str(p) for p in item.get("loc", ())) or "<root>"
        parts.append(f"{location}: {item.get('msg', 'invalid')}")
    return "; ".join(parts)
