"""Tests for the task kernel data models."""

import pytest
from pydantic import ValidationError

from task_kernel.models import (
    Intent,
    Slot,
    SlotType,
    Task,
    TaskError,
    TaskResult,
    TaskStatus,
)


def _make_task(**slots) -> Task:
    return Task(
        intent=Intent(domain="messaging", action="send_text"),
        slots={name: Slot(name=name, **fields) for name, fields in slots.items()},
    )


class TestIntent:
    def test_full_name(self):
        assert Intent(domain="messaging", action="send_text").full_name == "messaging.send_text"

    def test_parse_splits_on_first_dot(self):
        intent = Intent.parse("notes.create.table")
        assert intent.domain == "notes"
        assert intent.action == "create.table"

    def test_parse_without_dot(self):
        assert Intent.parse("messaging") is None
        assert Intent.parse(".send") is None

    def test_confidence_bounds(self):
        with pytest.raises(ValidationError):
            Intent(domain="a", action="b", confidence=1.5)

    def test_immutable(self):
        intent = Intent(domain="a", action="b")
        with pytest.raises(ValidationError):
            intent.domain = "c"


class TestSlot:
    def test_defaults(self):
        slot = Slot(name="recipient")
        assert slot.type == SlotType.STRING
        assert slot.required
        assert slot.value is None
        assert not slot.resolved

    def test_with_value_resolves(self):
        slot = Slot(name="recipient").with_value("mom")
        assert slot.value == "mom"
        assert slot.resolved

    def test_with_none_unresolves(self):
        slot = Slot(name="recipient").with_value("mom").with_value(None)
        assert slot.value is None
        assert not slot.resolved

    def test_structured_values(self):
        slot = Slot(name="recipients", type=SlotType.CONTACTS).with_value(
            [{"name": "Mom", "phone": "555"}, {"name": "Dad"}]
        )
        assert slot.value[0]["phone"] == "555"

    def test_coerce_slot_type(self):
        assert SlotType.coerce("Contact") == SlotType.CONTACT
        assert SlotType.coerce(" datetime ") == SlotType.DATETIME
        assert SlotType.coerce("phone_number") == SlotType.STRING
        assert SlotType.coerce(42) == SlotType.STRING


class TestTask:
    def test_missing_slots_in_slot_order(self):
        task = _make_task(
            recipient={"required": True},
            message={"required": True},
            app={"required": False},
        )
        assert task.missing_slots == ["recipient", "message"]
        assert not task.is_ready

    def test_ready_when_required_resolved(self):
        task = _make_task(
            recipient={"value": "mom", "resolved": True},
            app={"required": False},
        )
        assert task.missing_slots == []
        assert task.is_ready

    def test_task_without_slots_is_ready(self):
        assert _make_task().is_ready

    def test_terminal_states(self):
        assert TaskStatus.terminal_states() == {
            TaskStatus.COMPLETED,
            TaskStatus.FAILED,
            TaskStatus.CANCELLED,
        }
        task = _make_task()
        assert not task.is_terminal
        assert task.with_status(TaskStatus.CANCELLED).is_terminal

    def test_with_slot_value_copies(self):
        task = _make_task(recipient={})
        updated = task.with_slot_value("recipient", "mom")
        assert updated.slots["recipient"].resolved
        assert not task.slots["recipient"].resolved
        assert updated.updated_at >= task.updated_at
        assert updated.id == task.id

    def test_with_slot_value_unknown_name(self):
        task = _make_task(recipient={})
        assert task.with_slot_value("nope", "x") is task

    def test_with_result_sets_status(self):
        task = _make_task()
        assert task.with_result(TaskResult(success=True)).status == TaskStatus.COMPLETED
        failed = task.with_result(TaskResult(
            success=False,
            error=TaskError(code="timeout", message="No answer"),
        ))
        assert failed.status == TaskStatus.FAILED
        assert failed.result.error.code == "timeout"

    def test_json_round_trip(self):
        task = _make_task(recipient={"value": {"name": "Mom"}, "resolved": True})
        restored = Task.model_validate_json(task.model_dump_json())
        assert restored == task
