"""
Prompt templates for the completion service.

The templates ask the external service for structured output (intent parsing)
or for short user-facing text (slot questions, confirmations, completion
messages). The kernel never writes that text itself.
"""

from typing import Sequence

from task_kernel.models.task import ConversationTurn

INTENT_PARSING_SYSTEM = """\
You are the intent understanding engine of a task-driven assistant.

Convert the user's input into a structured Task JSON object.

## Output Format

Respond with valid JSON only. No explanations, no markdown.

{
  "intent": {"domain": "<domain>", "action": "<action>", "confidence": <0.0-1.0>},
  "slots": {
    "<slot_name>": {
      "name": "<slot_name>",
      "type": "<slot_type>",
      "required": true|false,
      "value": <extracted value or null>,
      "resolved": true|false
    }
  }
}

## Available Domains and Actions

- messaging: send_text, send_media, start_call, video_call
- notes: create, create_table, edit, delete, search
- transport: book_ride, get_directions, check_eta
- calendar: create_event, check_schedule, set_reminder
- media: play_music, take_photo, share
- settings: change_setting, toggle_feature
- apps: open_app, install_app, uninstall_app
- contacts: add_contact, find_contact, call_contact
- web: search, open_url

## Slot Types

string, number, boolean, date, datetime, contact, contacts, media,
location, address, currency, enum, object, array

## Rules

1. Extract as much information as possible from the input.
2. Set "resolved": true only if the value is explicitly provided.
3. Set "value": null if the information is not provided.
4. Use confidence < 0.7 if the intent is ambiguous.
5. Always include required slots, even when unresolved.

## Examples

User: "Send hi to mom"
{"intent": {"domain": "messaging", "action": "send_text", "confidence": 0.95},
 "slots": {
  "recipient": {"name": "recipient", "type": "contact", "required": true, "value": "mom", "resolved": true},
  "message": {"name": "message", "type": "string", "required": true, "value": "hi", "resolved": true},
  "app": {"name": "app", "type": "string", "required": false, "value": null, "resolved": false}}}

User: "Book a cab"
{"intent": {"domain": "transport", "action": "book_ride", "confidence": 0.9},
 "slots": {
  "destination": {"name": "destination", "type": "address", "required": true, "value": null, "resolved": false},
  "pickup": {"name": "pickup", "type": "address", "required": false, "value": null, "resolved": false},
  "rideType": {"name": "rideType", "type": "enum", "required": false, "value": null, "resolved": false}}}
"""


def intent_parsing_user_prompt(
    user_input: str,
    history: Sequence[ConversationTurn] = (),
    history_window: int = 3,
) -> str:
    """User message for intent parsing, with the last few turns as context."""
    lines = []
    recent = list(history)[-history_window:] if history_window > 0 else []
    if recent:
        lines.append("Previous conversation:")
        for turn in recent:
            lines.append(f"{turn.role.value}: {turn.content}")
        lines.append("")
    lines.append(f'Current user input: "{user_input}"')
    lines.append("")
    lines.append("Parse this into a Task JSON object.")
    return "\n".join(lines)


def slot_question_prompt(task_description: str, slot_name: str, slot_type: str) -> str:
    return f"""\
Generate a brief, natural question to ask the user for the missing information.

Task: {task_description}
Missing slot: {slot_name}
Slot type: {slot_type}

Rules:
- Keep it conversational and brief
- Don't mention technical terms like "slot"
- Make it sound like a helpful assistant

Respond with ONLY the question, nothing else."""


def confirmation_prompt(task_summary: str) -> str:
    return f"""\
Generate a brief confirmation message for the user.

Task: {task_summary}

Rules:
- Summarize what will be done
- Keep it under 50 words
- End with asking for confirmation
- Be conversational

Respond with ONLY the confirmation message, nothing else."""


def completion_prompt(task_summary: str, success: bool) -> str:
    return f"""\
Generate a brief completion message for the user.

Task: {task_summary}
Success: {str(success).lower()}

Rules:
- If successful, confirm what was done
- If failed, briefly explain and suggest next steps
- Keep it under 30 words
- Be conversational

Respond with ONLY the message, nothing else."""
