"""Tests for the completion client and the intent interpreter."""

import json

import httpx
import pytest

from task_kernel.config import Settings
from task_kernel.errors import CompletionError, MalformedResponseError, SlotNotFoundError
from task_kernel.llm.client import ChatMessage, MessageRole, OpenAICompatibleClient
from task_kernel.llm.interpreter import IntentInterpreter, summarize
from task_kernel.models import (
    ConversationRole,
    ConversationTurn,
    InputSource,
    Intent,
    Slot,
    Task,
    TaskContext,
    TaskResult,
    TaskStatus,
)

SEND_TEXT_JSON = json.dumps({
    "intent": {"domain": "messaging", "action": "send_text", "confidence": 0.9},
    "slots": {
        "recipient": {"name": "recipient", "type": "contact", "value": "mom", "resolved": True},
        "message": {"name": "message", "type": "string", "value": None, "resolved": False},
    },
})


def _completion(content):
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def _client(handler, **kwargs) -> OpenAICompatibleClient:
    return OpenAICompatibleClient(
        api_key="sk-test",
        base_url="https://llm.example/v1/",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


class FakeCompletionClient:
    """Records prompts and answers from a script."""

    def __init__(self, chat_reply: str = SEND_TEXT_JSON, complete_reply: str = "OK"):
        self.chat_reply = chat_reply
        self.complete_reply = complete_reply
        self.prompts = []
        self.chats = []

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.complete_reply

    async def chat(self, messages, json_mode: bool = False) -> str:
        self.chats.append((messages, json_mode))
        return self.chat_reply


class TestOpenAICompatibleClient:
    @pytest.mark.asyncio
    async def test_chat_request_shape(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("Authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=_completion("hello"))

        client = _client(handler, model="test-model", temperature=0.1)
        reply = await client.chat(
            [ChatMessage(role=MessageRole.SYSTEM, content="sys"),
             ChatMessage(role=MessageRole.USER, content="hi")],
            json_mode=True,
        )

        assert reply == "hello"
        assert seen["url"] == "https://llm.example/v1/chat/completions"
        assert seen["auth"] == "Bearer sk-test"
        assert seen["body"]["model"] == "test-model"
        assert seen["body"]["temperature"] == 0.1
        assert seen["body"]["messages"] == [
            {"role": "system", "content": "sys"},
            {"role": "user", "content": "hi"},
        ]
        assert seen["body"]["response_format"] == {"type": "json_object"}

    @pytest.mark.asyncio
    async def test_complete_sends_single_user_message(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=_completion("Who should I text?"))

        assert await _client(handler).complete("ask") == "Who should I text?"
        assert seen["body"]["messages"] == [{"role": "user", "content": "ask"}]
        assert "response_format" not in seen["body"]

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        client = _client(lambda request: httpx.Response(503, text="busy"))
        with pytest.raises(CompletionError) as exc_info:
            await client.complete("x")
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        {"choices": []},
        {"choices": [{"message": {"content": ""}}]},
        {"unexpected": True},
    ])
    async def test_unusable_payload(self, payload):
        client = _client(lambda request: httpx.Response(200, json=payload))
        with pytest.raises(CompletionError):
            await client.complete("x")

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(CompletionError, match="Completion request failed"):
            await _client(handler).complete("x")

    def test_from_settings(self):
        settings = Settings(
            llm_api_key="sk-env",
            llm_base_url="http://localhost:8080/v1",
            llm_model="local-model",
            llm_temperature=0.0,
        )
        client = OpenAICompatibleClient.from_settings(settings)
        assert client.base_url == "http://localhost:8080/v1"
        assert client.model == "local-model"
        assert client.temperature == 0.0


class TestIntentInterpreter:
    @pytest.mark.asyncio
    async def test_parse_intent(self):
        fake = FakeCompletionClient()
        interpreter = IntentInterpreter(fake)
        context = TaskContext(source=InputSource.VOICE, session_id="s1")

        task = await interpreter.parse_intent("text mom", context)

        assert task.status == TaskStatus.PENDING
        assert task.intent.full_name == "messaging.send_text"
        assert task.context.raw_input == "text mom"
        assert task.context.source == InputSource.VOICE
        messages, json_mode = fake.chats[0]
        assert json_mode
        assert messages[0].role == MessageRole.SYSTEM
        assert 'Current user input: "text mom"' in messages[1].content

    @pytest.mark.asyncio
    async def test_parse_intent_includes_recent_history(self):
        fake = FakeCompletionClient()
        history = [
            ConversationTurn(role=ConversationRole.USER, content=f"turn {n}")
            for n in range(5)
        ]
        await IntentInterpreter(fake).parse_intent(
            "and dad too", TaskContext(conversation_history=history)
        )
        prompt = fake.chats[0][0][1].content
        assert "turn 4" in prompt and "turn 2" in prompt
        assert "turn 1" not in prompt

    @pytest.mark.asyncio
    async def test_parse_intent_malformed(self):
        interpreter = IntentInterpreter(FakeCompletionClient(chat_reply="I can't help with that"))
        with pytest.raises(MalformedResponseError):
            await interpreter.parse_intent("??")

    @pytest.mark.asyncio
    async def test_slot_question(self):
        fake = FakeCompletionClient(complete_reply="Who should I send it to?")
        task = Task(
            intent=Intent(domain="messaging", action="send_text"),
            slots={"recipient": Slot(name="recipient")},
        )
        question = await IntentInterpreter(fake).generate_slot_question(task, "recipient")

        assert question == "Who should I send it to?"
        assert "Intent: messaging.send_text" in fake.prompts[0]
        assert "Missing slot: recipient" in fake.prompts[0]

    @pytest.mark.asyncio
    async def test_slot_question_unknown_slot(self):
        task = Task(intent=Intent(domain="messaging", action="send_text"))
        with pytest.raises(SlotNotFoundError):
            await IntentInterpreter(FakeCompletionClient()).generate_slot_question(task, "nope")

    @pytest.mark.asyncio
    async def test_confirmation_and_completion_messages(self):
        fake = FakeCompletionClient()
        task = Task(
            intent=Intent(domain="messaging", action="send_text"),
            slots={
                "recipient": Slot(name="recipient", value="mom", resolved=True),
                "app": Slot(name="app", required=False),
            },
        )
        interpreter = IntentInterpreter(fake)

        await interpreter.generate_confirmation(task)
        await interpreter.generate_completion_message(task.with_result(TaskResult(success=True)))

        assert "Task: messaging.send_text: recipient=mom" in fake.prompts[0]
        assert "Success: true" in fake.prompts[1]

    def test_summarize_without_resolved_slots(self):
        task = Task(intent=Intent(domain="web", action="search"))
        assert summarize(task) == "web.search"
