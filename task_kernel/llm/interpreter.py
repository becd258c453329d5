"""
Intent Interpreter — turns an utterance into a Task via the completion service.

Used by callers that create tasks from free-form input. The interpreter asks
the service for text; it never writes user-facing text itself.
"""

import logging
from typing import Optional

from task_kernel.errors import SlotNotFoundError
from task_kernel.llm.client import ChatMessage, CompletionClient, MessageRole
from task_kernel.parsing import prompts
from task_kernel.parsing.parser import TaskParser
from task_kernel.models.task import Task, TaskContext

logger = logging.getLogger(__name__)


class IntentInterpreter:
    """Prompt → completion service → response parser."""

    def __init__(
        self,
        client: CompletionClient,
        parser: Optional[TaskParser] = None,
        history_window: int = 3,
    ):
        self.client = client
        self.parser = parser or TaskParser()
        self.history_window = history_window

    async def parse_intent(self, user_input: str, context: Optional[TaskContext] = None) -> Task:
        """
        Ask the service to classify ``user_input`` and parse the answer.

        Raises CompletionError if the service fails and MalformedResponseError
        if its answer cannot be parsed.
        """
        context = (context or TaskContext()).model_copy(update={"raw_input": user_input})
        messages = [
            ChatMessage(role=MessageRole.SYSTEM, content=prompts.INTENT_PARSING_SYSTEM),
            ChatMessage(
                role=MessageRole.USER,
                content=prompts.intent_parsing_user_prompt(
                    user_input,
                    context.conversation_history,
                    self.history_window,
                ),
            ),
        ]
        raw = await self.client.chat(messages, json_mode=True)
        task = self.parser.parse(raw, context)
        logger.info("Interpreted input as %s (confidence %.2f)", task.intent.full_name, task.intent.confidence)
        return task

    async def generate_slot_question(self, task: Task, slot_name: str) -> str:
        slot = task.slots.get(slot_name)
        if slot is None:
            raise SlotNotFoundError(task.id, slot_name)
        prompt = prompts.slot_question_prompt(
            task_description=f"Intent: {task.intent.full_name}",
            slot_name=slot_name,
            slot_type=slot.type.value,
        )
        return await self.client.complete(prompt)

    async def generate_confirmation(self, task: Task) -> str:
        return await self.client.complete(prompts.confirmation_prompt(summarize(task)))

    async def generate_completion_message(self, task: Task) -> str:
        success = task.result.success if task.result else False
        return await self.client.complete(prompts.completion_prompt(summarize(task), success))


def summarize(task: Task) -> str:
    """``intent: name=value, ...`` over resolved slots."""
    resolved = ", ".join(
        f"{name}={slot.value}" for name, slot in task.slots.items() if slot.resolved
    )
    return f"{task.intent.full_name}: {resolved}" if resolved else task.intent.full_name
