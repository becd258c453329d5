"""
Completion service contract and an OpenAI-compatible implementation.

The kernel only needs raw text back; any provider that can satisfy
``complete`` / ``chat`` plugs in.
"""

import logging
from enum import Enum
from typing import List, Optional, Protocol

import httpx
from pydantic import BaseModel

from task_kernel.config import Settings
from task_kernel.errors import CompletionError
from task_kernel.log import preview

logger = logging.getLogger(__name__)


class MessageRole(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ChatMessage(BaseModel):
    role: MessageRole
    content: str


class CompletionClient(Protocol):
    """Protocol for completion services — pluggable backend."""

    async def complete(self, prompt: str) -> str: ...

    async def chat(self, messages: List[ChatMessage], json_mode: bool = False) -> str: ...


class OpenAICompatibleClient:
    """
    Calls ``POST {base_url}/chat/completions``.

    Works against OpenAI and any server exposing the same API shape.
    Pass ``transport`` to substitute the network layer (e.g. in tests).
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gpt-4o-mini",
        base_url: str = "https://api.openai.com/v1",
        temperature: float = 0.3,
        timeout_seconds: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.temperature = temperature
        self.timeout_seconds = timeout_seconds
        self._api_key = api_key
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "OpenAICompatibleClient":
        return cls(
            api_key=settings.llm_api_key,
            model=settings.llm_model,
            base_url=settings.llm_base_url,
            temperature=settings.llm_temperature,
            timeout_seconds=settings.llm_timeout_seconds,
            **kwargs,
        )

    async def complete(self, prompt: str) -> str:
        return await self.chat([ChatMessage(role=MessageRole.USER, content=prompt)])

    async def chat(self, messages: List[ChatMessage], json_mode: bool = False) -> str:
        body = {
            "model": self.model,
            "messages": [m.model_dump(mode="json") for m in messages],
            "temperature": self.temperature,
        }
        if json_mode:
            body["response_format"] = {"type": "json_object"}

        headers = {}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        logger.debug("Completion request: %s", preview(messages[-1].content, 100) if messages else "")
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    f"{self.base_url}/chat/completions",
                    json=body,
                    headers=headers,
                )
        except httpx.HTTPError as e:
            logger.error("Completion service unreachable: %s", e)
            raise CompletionError(f"Completion request failed: {e}") from e

        if response.status_code >= 400:
            raise CompletionError(
                f"Completion service returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise CompletionError(f"Unexpected completion payload: {e}") from e

        if not content:
            raise CompletionError("Empty response from completion service")

        logger.debug("Completion response: %s", preview(content))
        return content
