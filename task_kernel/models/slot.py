"""Slots — named, typed parameters a task needs before it can execute."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, JsonValue, TypeAdapter

# Recursive dynamically-typed payload: null, str, number, bool, list or str-keyed map.
DynamicValue = JsonValue

_dynamic_value = TypeAdapter(DynamicValue)


class SlotType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    DATETIME = "datetime"
    CONTACT = "contact"
    CONTACTS = "contacts"
    MEDIA = "media"
    LOCATION = "location"
    ADDRESS = "address"
    CURRENCY = "currency"
    ENUM = "enum"
    OBJECT = "object"
    ARRAY = "array"

    @classmethod
    def coerce(cls, raw: object) -> "SlotType":
        """Map external text to a SlotType. Unknown names degrade to STRING."""
        if isinstance(raw, cls):
            return raw
        if not isinstance(raw, str):
            return cls.STRING
        try:
            return cls(raw.strip().lower())
        except ValueError:
            return cls.STRING


class SlotConstraints(BaseModel):
    """Hints for renderers. Stored with the slot, not enforced by the engine."""

    model_config = ConfigDict(frozen=True)

    min_length: Optional[int] = None
    max_length: Optional[int] = None
    min: Optional[float] = None
    max: Optional[float] = None
    pattern: Optional[str] = None
    enum_values: Optional[List[str]] = None


class Slot(BaseModel):
    """A single task parameter and its resolution state."""

    model_config = ConfigDict(frozen=True)

    name: str
    type: SlotType = SlotType.STRING
    required: bool = True
    value: DynamicValue = None
    resolved: bool = False
    description: Optional[str] = None
    constraints: Optional[SlotConstraints] = None

    def with_value(self, value: DynamicValue) -> "Slot":
        """Set the value; a non-null value resolves the slot, None un-resolves it."""
        value = _dynamic_value.validate_python(value)
        return self.model_copy(update={"value": value, "resolved": value is not None})
