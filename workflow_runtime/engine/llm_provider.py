"""
Chat-completion backends for agent nodes.

Conversations travel in OpenAI message format (system / user /
assistant with tool_calls / tool). Each backend translates that format
to its SDK and back into an `LLMResponse`.

Model routing:
    gemini-*   google-genai (API key, or Vertex AI when no key is set)
    claude-*   anthropic
    otherwise  openai
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from ..core.config import settings

logger = logging.getLogger(__name__)

EMPTY_PARAMETERS: dict[str, Any] = {"type": "object", "properties": {}}


@dataclass
class ToolCall:
    """A tool invocation proposed by the model."""

    id: str
    name: str
    args: dict[str, Any]

    def to_message(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": json.dumps(self.args)},
        }


@dataclass
class LLMResponse:
    text: str | None = None
    tool_calls: list[ToolCall] = field(default_factory=list)

    def assistant_message(self) -> dict[str, Any]:
        """The reply as an assistant turn to append to the conversation."""
        message: dict[str, Any] = {"role": "assistant", "content": self.text}
        if self.tool_calls:
            message["tool_calls"] = [tc.to_message() for tc in self.tool_calls]
        return message


def decode_arguments(raw: Any) -> dict[str, Any]:
    """Tool arguments arrive as a JSON string from some SDKs and as a dict from others."""
    if isinstance(raw, dict):
        return raw
    if not raw:
        return {}
    try:
        decoded = json.loads(raw)
    except (TypeError, json.JSONDecodeError):
        logger.warning("Ignoring undecodable tool arguments: %.200s", raw)
        return {}
    return decoded if isinstance(decoded, dict) else {"value": decoded}


def tool_parameters(tool: dict[str, Any]) -> dict[str, Any]:
    """JSON schema of a tool's arguments, with a lower-case top-level type."""
    params = dict(tool.get("input_schema") or tool.get("parameters") or EMPTY_PARAMETERS)
    if isinstance(params.get("type"), str):
        params["type"] = params["type"].lower()
    return params


def split_system(messages: list[dict[str, Any]]) -> tuple[str | None, list[dict[str, Any]]]:
    system = None
    rest = []
    for message in messages:
        if message["role"] == "system":
            system = message.get("content")
        else:
            rest.append(message)
    return system, rest


class LLMBackend(ABC):
    """One provider SDK. The client is created on first use."""

    def __init__(self) -> None:
        self._client: Any = None

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = self.create_client()
        return self._client

    @abstractmethod
    def create_client(self) -> Any:
        ...

    @abstractmethod
    async def complete(
        self,
        model: str,
        messages: list[dict[str, Any]],
        temperature: float,
        tools: list[dict[str, Any]] | None,
        json_output: bool,
        max_tokens: int | None,
    ) -> LLMResponse:
        ...


class OpenAIBackend(LLMBackend):
    def create_client(self) -> Any:
        from openai import AsyncOpenAI

        return AsyncOpenAI(api_key=settings.openai_api_key)

    async def complete(self, model, messages, temperature, tools, json_output, max_tokens):
        request: dict[str, Any] = {"model": model, "messages": messages, "temperature": temperature}
        if tools:
            request["tools"] = [
                {
                    "type": "function",
                    "function": {
                        "name": t["name"],
                        "description": t.get("description", ""),
                        "parameters": tool_parameters(t),
                    },
                }
                for t in tools
            ]
            request["tool_choice"] = "auto"
        if json_output:
            request["response_format"] = {"type": "json_object"}
        if max_tokens:
            request["max_tokens"] = max_tokens

        completion = await self.client.chat.completions.create(**request)
        if not completion.choices:
            return LLMResponse()

        reply = completion.choices[0].message
        calls = [
            ToolCall(id=tc.id, name=tc.function.name, args=decode_arguments(tc.function.arguments))
            for tc in reply.tool_calls or []
        ]
        return LLMResponse(text=reply.content, tool_calls=calls)


class AnthropicBackend(LLMBackend):
    default_max_tokens = 4096

    def create_client(self) -> Any:
        from anthropic import AsyncAnthropic

        return AsyncAnthropic(api_key=settings.anthropic_api_key)

    @staticmethod
    def to_anthropic(message: dict[str, Any]) -> dict[str, Any]:
        if message["role"] == "tool":
            return {
                "role": "user",
                "content": [{
                    "type": "tool_result",
                    "tool_use_id": message.get("tool_call_id", ""),
                    "content": message.get("content") or "",
                }],
            }
        if message["role"] == "assistant" and message.get("tool_calls"):
            blocks: list[dict[str, Any]] = []
            if message.get("content"):
                blocks.append({"type": "text", "text": message["content"]})
            blocks.extend(
                {
                    "type": "tool_use",
                    "id": tc["id"],
                    "name": tc["function"]["name"],
                    "input": decode_arguments(tc["function"].get("arguments")),
                }
                for tc in message["tool_calls"]
            )
            return {"role": "assistant", "content": blocks}
        return {"role": message["role"], "content": message.get("content") or ""}

    async def complete(self, model, messages, temperature, tools, json_output, max_tokens):
        system, conversation = split_system(messages)
        request: dict[str, Any] = {
            "model": model,
            "messages": [self.to_anthropic(m) for m in conversation],
            "max_tokens": max_tokens or self.default_max_tokens,
            "temperature": temperature,
        }
        if json_output:
            system = f"{system}\n\nRespond with a single JSON object." if system else "Respond with a single JSON object."
        if system:
            request["system"] = system
        if tools:
            request["tools"] = [
                {
                    "name": t["name"],
                    "description": t.get("description", ""),
                    "input_schema": tool_parameters(t),
                }
                for t in tools
            ]

        reply = await self.client.messages.create(**request)
        texts = [b.text for b in reply.content if b.type == "text"]
        calls = [
            ToolCall(id=b.id, name=b.name, args=b.input if isinstance(b.input, dict) else {})
            for b in reply.content
            if b.type == "tool_use"
        ]
        return LLMResponse(text="\n".join(texts) if texts else None, tool_calls=calls)


class GeminiBackend(LLMBackend):
    def create_client(self) -> Any:
        from google import genai

        if settings.gemini_api_key:
            return genai.Client(api_key=settings.gemini_api_key)
        return genai.Client(
            vertexai=True,
            project=os.environ.get("GOOGLE_CLOUD_PROJECT"),
            location=os.environ.get("GOOGLE_CLOUD_LOCATION", "us-central1"),
        )

    @staticmethod
    def to_contents(messages: list[dict[str, Any]]) -> list[Any]:
        from google.genai.types import Content, Part

        call_names = {
            tc["id"]: tc["function"]["name"]
            for m in messages
            for tc in m.get("tool_calls") or []
        }
        contents = []
        for message in messages:
            role = message["role"]
            text = message.get("content") or ""
            if role == "user":
                contents.append(Content(role="user", parts=[Part(text=text)]))
            elif role == "assistant" and message.get("tool_calls"):
                contents.append(Content(role="model", parts=[
                    Part.from_function_call(
                        name=tc["function"]["name"],
                        args=decode_arguments(tc["function"].get("arguments")),
                    )
                    for tc in message["tool_calls"]
                ]))
            elif role == "assistant" and text:
                contents.append(Content(role="model", parts=[Part(text=text)]))
            elif role == "tool":
                name = message.get("name") or call_names.get(message.get("tool_call_id"), "unknown")
                contents.append(Content(role="user", parts=[
                    Part.from_function_response(name=name, response=decode_arguments(text) or {"content": text})
                ]))
        return contents

    async def complete(self, model, messages, temperature, tools, json_output, max_tokens):
        from google.genai.types import FunctionDeclaration, GenerateContentConfig, Tool

        system, conversation = split_system(messages)
        config: dict[str, Any] = {"temperature": temperature}
        if system:
            config["system_instruction"] = system
        if max_tokens:
            config["max_output_tokens"] = max_tokens
        if json_output and not tools:
            config["response_mime_type"] = "application/json"
        if tools:
            config["tools"] = [Tool(function_declarations=[
                FunctionDeclaration(
                    name=t["name"],
                    description=t.get("description", ""),
                    parameters=tool_parameters(t),
                )
                for t in tools
            ])]

        # The sync client is used from a worker thread
        reply = await asyncio.to_thread(
            self.client.models.generate_content,
            model=model,
            contents=self.to_contents(conversation),
            config=GenerateContentConfig(**config),
        )
        if not reply.candidates or not reply.candidates[0].content:
            return LLMResponse()

        parts = reply.candidates[0].content.parts or []
        calls = [
            ToolCall(
                id=f"call_{uuid.uuid4().hex[:12]}",
                name=p.function_call.name,
                args=dict(p.function_call.args or {}),
            )
            for p in parts
            if getattr(p, "function_call", None)
        ]
        texts = [p.text for p in parts if getattr(p, "text", None)]
        return LLMResponse(text="".join(texts) or None, tool_calls=calls)


_backends: dict[str, LLMBackend] = {}


def backend_for(model: str) -> LLMBackend:
    """Pick (and cache) the backend that serves `model`."""
    if model.startswith("gemini-"):
        key, backend_class = "gemini", GeminiBackend
    elif model.startswith("claude-"):
        key, backend_class = "anthropic", AnthropicBackend
    else:
        key, backend_class = "openai", OpenAIBackend
    if key not in _backends:
        _backends[key] = backend_class()
    return _backends[key]


async def call_llm(
    model: str,
    messages: list[dict[str, Any]],
    temperature: float = 0.2,
    tools: list[dict[str, Any]] | None = None,
    json_output: bool = False,
    max_tokens: int | None = None,
) -> LLMResponse:
    """
    Run one chat completion.

    Args:
        model: Model identifier, e.g. "gpt-4o" or "claude-sonnet-4-5"
        messages: Conversation in OpenAI message format
        temperature: Sampling temperature
        tools: Tool descriptions with name, description and input_schema
        json_output: Ask the model for a single JSON object
        max_tokens: Output token cap, backend default when omitted
    """
    logger.debug("LLM call: model=%s messages=%d tools=%d", model, len(messages), len(tools or []))
    return await backend_for(model).complete(model, messages, temperature, tools, json_output, max_tokens)
