from __future__ import annotations

"""OpenAI-compatible chat completion client with tool-call support."""

from dataclasses import dataclass, field
import json
import logging
from typing import Any, Protocol

import httpx

from dochound.rag.deadline import DeadlineExceededError


class LLMError(RuntimeError):
    """Raised when LLM requests fail or responses are invalid."""
    pass


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolCall:
    """A single function call requested by the model."""
    id: str
    name: str
    arguments: str

    def parsed_arguments(self) -> dict[str, Any]:
        """Decode the JSON arguments string into an object."""
        data = json.loads(self.arguments or "{}")
        if not isinstance(data, dict):
            raise ValueError("Tool arguments must be a JSON object")
        return data


@dataclass(frozen=True)
class ChatCompletion:
    """Parsed chat completion: text content and any tool calls."""
    content: str | None
    tool_calls: list[ToolCall] = field(default_factory=list)
    finish_reason: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


class ChatClient(Protocol):
    """Protocol for chat completion backends."""

    async def complete(
        self,
        messages: list[dict[str, str]],
        *,
        tools: list[dict[str, Any]] | None = None,
        tool_choice: str | dict[str, Any] | None = None,
    ) -> ChatCompletion:
        """Run one chat completion request."""
        raise NotImplementedError


def forced_tool_choice(name: str) -> dict[str, Any]:
    """Return a tool_choice value that requires the named function."""
    return {"type": "function", "function": {"name": name}}


@dataclass(frozen=True)
class OpenAIChatClient:
    """Chat client backed by an OpenAI-compatible /chat/completions endpoint."""
    api_key: str
    base_url: str
    model: str
    temperature: float
    max_tokens: int
    timeout: float

    async def complete(
        self,
        messages: list[dict[str, str]],
        *,
        tools: list[dict[str, Any]] | None = None,
        tool_choice: str | dict[str, Any] | None = None,
    ) -> ChatCompletion:
        """Send messages and parse the first choice of the response."""
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if tools:
            payload["tools"] = tools
            if tool_choice is not None:
                payload["tool_choice"] = tool_choice
        headers = {"Authorization": f"Bearer {self.api_key}"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/chat/completions",
                    json=payload,
                    headers=headers,
                )
                response.raise_for_status()
                data = response.json()
        except httpx.TimeoutException as exc:
            raise DeadlineExceededError("chat completion", self.timeout) from exc
        except httpx.HTTPError as exc:
            raise LLMError(str(exc)) from exc
        except ValueError as exc:
            raise LLMError("LLM response is not valid JSON") from exc
        return parse_chat_completion(data)


def parse_chat_completion(data: dict[str, Any]) -> ChatCompletion:
    """Parse an OpenAI chat completion payload."""
    if not isinstance(data, dict):
        raise LLMError("Invalid OpenAI response")
    choices = data.get("choices") or []
    if not choices:
        raise LLMError("Invalid OpenAI response: no choices")
    choice = choices[0] or {}
    message = choice.get("message") or {}
    content = message.get("content")
    if content is not None and not isinstance(content, str):
        raise LLMError("Invalid OpenAI response content")
    tool_calls: list[ToolCall] = []
    for item in message.get("tool_calls") or []:
        function = item.get("function") or {}
        name = function.get("name")
        if not isinstance(name, str):
            logger.warning("llm_tool_call_unnamed", extra={"tool_call": item})
            continue
        arguments = function.get("arguments")
        tool_calls.append(
            ToolCall(
                id=str(item.get("id", "")),
                name=name,
                arguments=arguments if isinstance(arguments, str) else json.dumps(arguments or {}),
            )
        )
    return ChatCompletion(
        content=content,
        tool_calls=tool_calls,
        finish_reason=choice.get("finish_reason"),
        raw=data,
    )


def build_chat_client(
    *,
    api_key: str | None,
    base_url: str,
    model: str,
    temperature: float,
    max_tokens: int,
    timeout: float,
) -> OpenAIChatClient:
    """Factory for the chat client used by the orchestrator."""
    if not api_key:
        raise LLMError("OPENAI_API_KEY is required for the chat client")
    if not model:
        raise LLMError("OPENAI_MODEL is required for the chat client")
    return OpenAIChatClient(
        api_key=api_key,
        base_url=base_url.rstrip("/"),
        model=model,
        temperature=temperature,
        max_tokens=max_tokens,
        timeout=timeout,
    )
